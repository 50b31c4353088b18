from kairos.offer_agent.agents.offer_dialog.types import OfferDialogResult, OfferDialogScreen
from kairos.offer_agent.constants import (
    BUTTON_WIDGET,
    CLOSE_DIALOG_DESCRIPTION,
    EDIT_TEXT_WIDGET,
    SUBMIT_OFFER_LABEL,
)
from kairos.offer_agent.controllers.protocols import Actuator
from kairos.offer_agent.utils.logger import get_logger
from kairos.offer_agent.utils.ui_hierarchy import UiNode, iter_bfs

logger = get_logger(__name__)


def _equals_ignore_case(value: str | None, expected: str) -> bool:
    return value is not None and value.strip().lower() == expected.lower()


def parse_offer_dialog(root: UiNode) -> OfferDialogScreen:
    """Locates the fare field, the submit button and the close control of the counter-offer dialog."""
    screen = OfferDialogScreen()
    for node in iter_bfs(root):
        if screen.field is None and node.widget == EDIT_TEXT_WIDGET:
            screen.field = node
            screen.current_value = node.text
        elif screen.submit_button is None and (
            node.widget == BUTTON_WIDGET and _equals_ignore_case(node.text, SUBMIT_OFFER_LABEL)
        ):
            screen.submit_button = node
        elif screen.close_button is None and _equals_ignore_case(
            node.content_description, CLOSE_DIALOG_DESCRIPTION
        ):
            screen.close_button = node

        if screen.field and screen.submit_button and screen.close_button:
            break
    return screen


async def _close_dialog(screen: OfferDialogScreen, actuator: Actuator) -> None:
    if screen.close_button is None:
        return
    closed = await actuator.click(screen.close_button)
    logger.debug(f"[DIALOG] Close button clicked: {closed}")


async def submit_counter_offer(root: UiNode, amount: str, actuator: Actuator) -> OfferDialogResult:
    """
    Writes `amount` in the fare field and submits it.

    Succeeds only when both the text entry and the submit click succeed. On failure the dialog is
    closed when a close control is available.
    """
    screen = parse_offer_dialog(root)
    logger.info(
        f"[DIALOG] Current value: {screen.current_value}, field: {screen.field is not None}, "
        f"submit: {screen.submit_button is not None}, close: {screen.close_button is not None}"
    )

    if screen.field is None or screen.submit_button is None:
        reason = "Fare field not found" if screen.field is None else "Submit button not found"
        logger.error(f"[DIALOG] {reason}")
        await _close_dialog(screen, actuator)
        return OfferDialogResult(success=False, reason=reason)

    if not await actuator.set_text(screen.field, amount):
        logger.error(f"[DIALOG] Could not write {amount} in the fare field")
        await _close_dialog(screen, actuator)
        return OfferDialogResult(success=False, reason="Text entry failed")
    logger.info(f"[DIALOG] Fare written: {amount}")

    if not await actuator.click(screen.submit_button):
        logger.error("[DIALOG] Submit click failed")
        await _close_dialog(screen, actuator)
        return OfferDialogResult(success=False, reason="Submit click failed")

    logger.success(f"[DIALOG] Counter-offer {amount} submitted")
    return OfferDialogResult(success=True, reason="Submitted")
