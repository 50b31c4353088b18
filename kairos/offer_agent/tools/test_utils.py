import pytest

from kairos.offer_agent.tools.utils import climb_to_clickable, tap_node_center


@pytest.fixture
def nested_label(node, build_snapshot):
    """A label three levels below a clickable container."""
    snapshot = build_snapshot(
        node(
            "ViewGroup",
            clickable=True,
            bounds=(0, 300, 1080, 500),
            children=[node("LinearLayout", children=[node(text="Calle 80", bounds=(10, 310, 500, 350))])],
        )
    )
    return snapshot.root.children[0].children[0].children[0]


class TestClimbToClickable:
    """Test cases for climb_to_clickable function."""

    @pytest.mark.asyncio
    async def test_clicks_first_clickable_ancestor_once(self, nested_label, actuator):
        """Test that exactly one click is issued, on the closest clickable ancestor."""
        outcome = await climb_to_clickable(nested_label, actuator)

        assert outcome.attempted
        assert outcome.succeeded
        actuator.click.assert_awaited_once()
        clicked = actuator.click.await_args.args[0]
        assert clicked.widget == "ViewGroup"

    @pytest.mark.asyncio
    async def test_reports_actuator_failure(self, nested_label, actuator):
        actuator.click.return_value = False
        outcome = await climb_to_clickable(nested_label, actuator)

        assert outcome.attempted
        assert not outcome.succeeded
        assert not outcome

    @pytest.mark.asyncio
    async def test_depth_is_bounded(self, nested_label, actuator):
        """Test that the clickable container two levels up is out of reach with max_depth=2."""
        outcome = await climb_to_clickable(nested_label, actuator, max_depth=2)

        assert not outcome.attempted
        actuator.click.assert_not_awaited()
        actuator.dispatch_tap_gesture.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gesture_fallback_taps_node_center(self, node, build_snapshot, actuator):
        snapshot = build_snapshot(node("ImageView", bounds=(100, 200, 200, 300)))
        icon = snapshot.root.children[0]

        outcome = await climb_to_clickable(icon, actuator, gesture_fallback=True)

        assert outcome.succeeded
        actuator.click.assert_not_awaited()
        actuator.dispatch_tap_gesture.assert_awaited_once_with(150, 250)

    @pytest.mark.asyncio
    async def test_gesture_fallback_skips_empty_bounds(self, node, build_snapshot, actuator):
        snapshot = build_snapshot(node("ImageView", bounds=(0, 0, 0, 0)))
        icon = snapshot.root.children[0]

        outcome = await climb_to_clickable(icon, actuator, gesture_fallback=True)

        assert not outcome.attempted
        actuator.dispatch_tap_gesture.assert_not_awaited()


class TestTapNodeCenter:
    """Test cases for tap_node_center function."""

    @pytest.mark.asyncio
    async def test_taps_center(self, node, build_snapshot, actuator):
        snapshot = build_snapshot(node(bounds=(0, 0, 100, 50)))
        assert await tap_node_center(snapshot.root.children[0], actuator)
        actuator.dispatch_tap_gesture.assert_awaited_once_with(50, 25)
