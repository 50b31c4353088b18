from pydantic import BaseModel

from kairos.offer_agent.constants import MAX_CLICK_CLIMB_DEPTH
from kairos.offer_agent.controllers.protocols import Actuator
from kairos.offer_agent.utils.logger import get_logger
from kairos.offer_agent.utils.ui_hierarchy import UiNode

logger = get_logger(__name__)


class ClickOutcome(BaseModel):
    attempted: bool
    succeeded: bool

    def __bool__(self) -> bool:
        return self.succeeded


NOT_ATTEMPTED = ClickOutcome(attempted=False, succeeded=False)


async def tap_node_center(node: UiNode, actuator: Actuator) -> bool:
    """Taps the centre of the node's bounds with a raw gesture. False when the node has no size."""
    bounds = node.bounds
    if bounds.is_empty:
        logger.warning(f"[GESTURE] Node has no usable bounds on screen: {node.class_name}")
        return False
    center = bounds.get_center()
    logger.debug(f"[GESTURE] Tap at x={center.x}, y={center.y} for node {node.class_name}")
    await actuator.dispatch_tap_gesture(center.x, center.y)
    return True


async def climb_to_clickable(
    node: UiNode,
    actuator: Actuator,
    max_depth: int = MAX_CLICK_CLIMB_DEPTH,
    gesture_fallback: bool = False,
) -> ClickOutcome:
    """
    Clicks the first clickable, visible and enabled node among `node` and its ancestors.

    At most `max_depth` levels are climbed. Exactly one actuation is issued when a target is found.
    With `gesture_fallback`, a node without actionable ancestor is tapped at its centre instead.
    """
    current: UiNode | None = node
    depth = 0
    while current is not None and depth < max_depth:
        if current.is_actionable:
            succeeded = await actuator.click(current)
            logger.debug(f"[CLICK] click result: {succeeded} for '{current.label}'")
            return ClickOutcome(attempted=True, succeeded=succeeded)
        current = current.parent
        depth += 1

    logger.warning(f"No clickable, visible and enabled ancestor found for '{node.label}'.")
    if gesture_fallback:
        tapped = await tap_node_center(node, actuator)
        return ClickOutcome(attempted=tapped, succeeded=tapped)
    return NOT_ATTEMPTED
