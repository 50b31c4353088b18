import pytest

from kairos.offer_agent.agents.reveal.reveal import (
    find_image_above_cancel,
    find_row_icon,
    reveal_hidden_content,
)
from kairos.offer_agent.agents.reveal.types import RevealStrategy


@pytest.fixture
def cancel_screen(node, detail_screen):
    """Detail screen without a row icon, with clickable images above and below a cancel button."""

    def _build(*images: tuple[int, int, int, int]):
        extra = [node("Button", text="Cancelar viaje", clickable=True, bounds=(0, 2100, 1080, 2200))]
        extra.extend(node("ImageView", clickable=True, bounds=bounds) for bounds in images)
        return detail_screen(extra=extra)

    return _build


class TestFindRowIcon:
    """Test cases for the row icon strategy."""

    def test_finds_icon_aligned_with_the_suggestions(self, node, detail_screen):
        snapshot = detail_screen(extra=[node("ImageView", clickable=True, bounds=(900, 1500, 1080, 1600))])
        icon = find_row_icon(snapshot.root)

        assert icon is not None
        assert icon.widget == "ImageView"

    def test_labeled_controls_are_ignored(self, node, detail_screen):
        snapshot = detail_screen(
            extra=[node("ImageView", desc="Mas opciones", clickable=True, bounds=(900, 1500, 1080, 1600))]
        )
        assert find_row_icon(snapshot.root) is None

    def test_misaligned_icon_is_ignored(self, node, detail_screen):
        snapshot = detail_screen(extra=[node("ImageView", clickable=True, bounds=(900, 1490, 1080, 1600))])
        assert find_row_icon(snapshot.root) is None


class TestFindImageAboveCancel:
    """Test cases for the image above cancel strategy."""

    def test_picks_the_closest_image_above(self, cancel_screen):
        snapshot = cancel_screen((0, 1000, 100, 1100), (0, 1800, 100, 1880), (0, 2250, 100, 2350))
        image = find_image_above_cancel(snapshot.root)

        assert image is not None
        assert image.bounds.top == 1800

    def test_no_cancel_button(self, node, detail_screen):
        snapshot = detail_screen(extra=[node("ImageView", clickable=True, bounds=(0, 1800, 100, 1880))])
        assert find_image_above_cancel(snapshot.root) is None

    def test_images_below_do_not_count(self, cancel_screen):
        snapshot = cancel_screen((0, 2250, 100, 2350))
        assert find_image_above_cancel(snapshot.root) is None


class TestRevealHiddenContent:
    """Test cases for reveal_hidden_content."""

    @pytest.mark.asyncio
    async def test_row_icon_first(self, node, detail_screen, actuator):
        snapshot = detail_screen(
            extra=[
                node("ImageView", clickable=True, bounds=(900, 1500, 1080, 1600)),
                node("Button", text="Cancelar viaje", clickable=True, bounds=(0, 2100, 1080, 2200)),
                node("ImageView", clickable=True, bounds=(0, 1800, 100, 1880)),
            ]
        )
        result = await reveal_hidden_content(snapshot.root, actuator)

        assert result.strategy == RevealStrategy.ROW_ICON
        assert result.found
        assert result.clicked
        actuator.click.assert_awaited_once()
        assert actuator.click.await_args.args[0].bounds.top == 1500

    @pytest.mark.asyncio
    async def test_falls_back_to_image_above_cancel(self, cancel_screen, actuator):
        result = await reveal_hidden_content(cancel_screen((0, 1800, 100, 1880)).root, actuator)

        assert result.strategy == RevealStrategy.ABOVE_CANCEL
        assert result.clicked
        assert actuator.click.await_args.args[0].bounds.top == 1800

    @pytest.mark.asyncio
    async def test_not_found_is_not_an_error(self, detail_screen, actuator):
        result = await reveal_hidden_content(detail_screen().root, actuator)

        assert result.strategy == RevealStrategy.NOT_FOUND
        assert not result.found
        assert not result.clicked
        actuator.click.assert_not_awaited()
        actuator.dispatch_tap_gesture.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reports_failed_click(self, cancel_screen, actuator):
        actuator.click.return_value = False
        result = await reveal_hidden_content(cancel_screen((0, 1800, 100, 1880)).root, actuator)

        assert result.found
        assert not result.clicked
