"""
Detail screen parser.

Origin and destination come from dedicated resource ids, everything else from text patterns and
widget classes. Missing fields stay None.
"""

from kairos.offer_agent.agents.detail.types import ExtractedDetailInfo, OfferSuggestion
from kairos.offer_agent.clients.route_client import RouteOracle
from kairos.offer_agent.constants import (
    ACCEPT_BUTTON_PHRASES,
    BUTTON_WIDGET,
    DETAIL_DESTINATION_RESOURCE_ID,
    DETAIL_ORIGIN_RESOURCE_ID,
)
from kairos.offer_agent.utils.logger import get_logger
from kairos.offer_agent.utils.text_extractors import (
    extract_price,
    extract_trip_estimate,
    is_currency_text,
)
from kairos.offer_agent.utils.ui_hierarchy import (
    UiNode,
    find_by_resource_id,
    iter_bfs,
    text_contains_any,
)

logger = get_logger(__name__)


def is_accept_button(node: UiNode) -> bool:
    return node.clickable and text_contains_any(node.text, ACCEPT_BUTTON_PHRASES)


def is_edit_button(node: UiNode) -> bool:
    return node.clickable and node.widget == BUTTON_WIDGET and not node.text


def is_suggestion_button(node: UiNode) -> bool:
    return (
        node.clickable
        and node.widget == BUTTON_WIDGET
        and is_currency_text(node.text)
        and not is_accept_button(node)
    )


def extract_detail(root: UiNode) -> ExtractedDetailInfo:
    """Reads the detail screen without any I/O."""
    origin_node = find_by_resource_id(root, DETAIL_ORIGIN_RESOURCE_ID)
    destination_node = find_by_resource_id(root, DETAIL_DESTINATION_RESOURCE_ID)
    info = ExtractedDetailInfo(
        origin=origin_node.text if origin_node else None,
        destination=destination_node.text if destination_node else None,
    )

    for node in iter_bfs(root):
        text = node.text
        if info.suggested_price is None and not node.clickable and is_currency_text(text):
            info.suggested_price = extract_price(text)
        if info.ui_estimate is None:
            info.ui_estimate = extract_trip_estimate(text)

        if info.accept_button is None and is_accept_button(node):
            info.accept_button = node
        elif info.edit_button is None and is_edit_button(node):
            info.edit_button = node
        elif is_suggestion_button(node):
            info.suggestions.append(
                OfferSuggestion(label=text or "", amount=extract_price(text), node=node)
            )

    return info


async def parse_detail(root: UiNode, route_oracle: RouteOracle) -> ExtractedDetailInfo:
    """
    Reads the detail screen, then asks the route oracle for the authoritative trip distance when
    both addresses are known. The oracle may suspend; an empty answer leaves the field None.
    """
    info = extract_detail(root)
    if info.origin and info.destination:
        measurement = await route_oracle.measure(info.origin, info.destination)
        if measurement is not None:
            info.api_trip_distance_km = measurement.distance_km
        else:
            logger.warning("[DETAIL] Route measurement unavailable, falling back to UI estimate")
    else:
        logger.warning("[DETAIL] Origin or destination missing, no route measurement")

    logger.info(f"[DETAIL] {info.summary()}")
    return info
