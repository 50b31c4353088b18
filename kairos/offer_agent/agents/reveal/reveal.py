"""
Reveal heuristic for detail screens that hide part of their content behind a secondary control.

Two tiers, tried in order:
1. An unlabeled clickable icon on the same row as the horizontal list of offer suggestions
   (same top and bottom bounds).
2. The clickable unlabeled image closest above the "cancelar" button.

Not finding a target is not an error: the detail screen is processed with whatever is visible.
"""

from kairos.offer_agent.agents.reveal.types import RevealResult, RevealStrategy
from kairos.offer_agent.constants import (
    BUTTON_WIDGET,
    CANCEL_BUTTON_PHRASE,
    HORIZONTAL_SCROLL_WIDGETS,
    IMAGE_WIDGETS,
)
from kairos.offer_agent.controllers.protocols import Actuator
from kairos.offer_agent.tools.utils import climb_to_clickable
from kairos.offer_agent.utils.logger import get_logger
from kairos.offer_agent.utils.ui_hierarchy import UiNode, find_all, find_first, text_contains_any

logger = get_logger(__name__)


def is_horizontal_scroller(node: UiNode) -> bool:
    if node.widget in HORIZONTAL_SCROLL_WIDGETS:
        return True
    bounds = node.bounds
    return node.scrollable and not bounds.is_empty and bounds.width > bounds.height


def is_unlabeled_clickable(node: UiNode) -> bool:
    return node.clickable and not node.text and not node.content_description


def find_row_icon(root: UiNode) -> UiNode | None:
    """Textless clickable icon vertically aligned with a horizontal scroller."""
    scrollers = find_all(root, is_horizontal_scroller)
    for scroller in scrollers:
        scroller_bounds = scroller.bounds
        icon = find_first(
            root,
            lambda node: node != scroller
            and is_unlabeled_clickable(node)
            and not is_horizontal_scroller(node)
            and not node.bounds.is_empty
            and not node.bounds.contains(scroller_bounds)
            and node.bounds.is_vertically_aligned_with(scroller_bounds),
        )
        if icon is not None:
            return icon
    return None


def find_image_above_cancel(root: UiNode) -> UiNode | None:
    """Among unlabeled clickable images fully above the cancel button, the one with the largest top."""
    cancel_button = find_first(
        root,
        lambda node: node.widget == BUTTON_WIDGET
        and text_contains_any(node.text, (CANCEL_BUTTON_PHRASE,)),
    )
    if cancel_button is None:
        logger.warning("[REVEAL] No 'cancelar' button, cannot locate the image to click")
        return None

    cancel_bounds = cancel_button.bounds
    candidates = find_all(
        root,
        lambda node: node.widget in IMAGE_WIDGETS
        and is_unlabeled_clickable(node)
        and node.bounds.is_above(cancel_bounds),
    )
    if not candidates:
        return None
    return max(candidates, key=lambda node: node.bounds.top)


async def reveal_hidden_content(root: UiNode, actuator: Actuator) -> RevealResult:
    """Locates the reveal control and clicks it once. Never raises on a miss."""
    target = find_row_icon(root)
    strategy = RevealStrategy.ROW_ICON
    if target is None:
        target = find_image_above_cancel(root)
        strategy = RevealStrategy.ABOVE_CANCEL
    if target is None:
        logger.warning("[REVEAL] No reveal target found, processing the screen as is")
        return RevealResult(strategy=RevealStrategy.NOT_FOUND)

    logger.info(f"[REVEAL] Target found with strategy {strategy.value}, clicking")
    outcome = await climb_to_clickable(target, actuator, gesture_fallback=True)
    return RevealResult(strategy=strategy, clicked=outcome.succeeded)
