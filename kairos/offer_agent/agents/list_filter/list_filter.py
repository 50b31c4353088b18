"""
List screen filter.

Finds the clickable containers of the trip list, classifies the labels of each one and returns
the first entry passing every enabled filter. Filters run cheapest first: pickup distance,
rating, trip count, then the trip distance, which may need a route lookup.
"""

import re
from collections import deque

from kairos.offer_agent.agents.list_filter.types import ExtractedListingInfo, ListingMatch
from kairos.offer_agent.clients.route_client import RouteOracle
from kairos.offer_agent.config import AgentConfiguration
from kairos.offer_agent.constants import CONTAINER_WIDGET
from kairos.offer_agent.utils.logger import get_logger
from kairos.offer_agent.utils.text_extractors import (
    extract_pickup_distance_km,
    extract_rating_pair,
    extract_trip_estimate,
    is_bare_counter,
    is_currency_text,
    parse_rating,
)
from kairos.offer_agent.utils.ui_hierarchy import UiNode

logger = get_logger(__name__)

MIN_ADDRESS_LENGTH = 10
_ADDRESS_TOKENS = re.compile(
    r"\b(?:cl|cll|kr|cr|cra|calle|carrera|tv|transversal|dg|diagonal|av|avenida|autopista"
    r"|portal|terminal)(?:\b|(?=\d))",
    re.IGNORECASE,
)


def is_container(node: UiNode) -> bool:
    return CONTAINER_WIDGET.lower() in node.class_name.lower()


def find_job_containers(root: UiNode) -> list[UiNode]:
    """
    Clickable containers of the list. The search does not descend into a container once found,
    so nested clickable groups of the same entry are not reported twice.
    """
    containers: list[UiNode] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if is_container(node) and node.clickable:
            containers.append(node)
            continue
        stack.extend(reversed(node.children))
    return containers


def looks_like_address(text: str) -> bool:
    if len(text) <= MIN_ADDRESS_LENGTH or is_bare_counter(text):
        return False
    return "#" in text or "(" in text or _ADDRESS_TOKENS.search(text) is not None


def _is_junk(text: str) -> bool:
    return is_currency_text(text) or is_bare_counter(text) or parse_rating(text) is not None


def extract_listing_info(container: UiNode) -> ExtractedListingInfo:
    """Classifies the texts of one container. Only nested containers are explored."""
    info = ExtractedListingInfo()
    addresses: list[str] = []
    labels: list[str] = []

    queue: deque[UiNode] = deque(container.children)
    while queue:
        node = queue.popleft()
        text = node.text
        if text:
            labels.append(text)
            pickup = extract_pickup_distance_km(text)
            estimate = extract_trip_estimate(text)
            if pickup is not None:
                if info.pickup_distance_km is None:
                    info.pickup_distance_km = pickup
            elif estimate is not None:
                if info.ui_estimate is None:
                    info.ui_estimate = estimate
            elif _is_junk(text):
                pass
            elif looks_like_address(text) and text not in addresses:
                addresses.append(text)

        if is_container(node):
            queue.extend(node.children)

    info.origin = addresses[0] if len(addresses) > 0 else None
    info.destination = addresses[1] if len(addresses) > 1 else None
    info.rating = extract_rating_pair(labels)
    return info


def _passes_pickup(info: ExtractedListingInfo, config: AgentConfiguration) -> bool:
    if info.pickup_distance_km is None:
        logger.debug("[LIST] Discarded: no pickup distance")
        return False
    if info.pickup_distance_km > config.max_pickup_distance_km:
        logger.debug(
            f"[LIST] Discarded by pickup distance: {info.pickup_distance_km} km "
            f"> {config.max_pickup_distance_km} km"
        )
        return False
    return True


def _passes_rating(info: ExtractedListingInfo, config: AgentConfiguration) -> bool:
    if not config.rating_filter_enabled:
        return True
    if info.rating is None:
        logger.debug("[LIST] Discarded: rating filter enabled but no rating found")
        return False
    if info.rating.rating < config.min_rating:
        logger.debug(f"[LIST] Discarded by rating: {info.rating.rating} < {config.min_rating}")
        return False
    return True


def _passes_trip_count(info: ExtractedListingInfo, config: AgentConfiguration) -> bool:
    if not config.trip_count_filter_enabled:
        return True
    if info.rating is None:
        logger.debug("[LIST] Discarded: trip count filter enabled but no trip count found")
        return False
    if info.rating.trip_count < config.min_trip_count:
        logger.debug(
            f"[LIST] Discarded by trip count: {info.rating.trip_count} < {config.min_trip_count}"
        )
        return False
    return True


async def _measure_trip_distance(
    info: ExtractedListingInfo, route_oracle: RouteOracle
) -> float | None:
    """Route measurement when both addresses are known, UI estimate otherwise."""
    if info.origin and info.destination:
        measurement = await route_oracle.measure(info.origin, info.destination)
        if measurement is not None:
            logger.info(
                f"[LIST] Trip A-B (route): {measurement.distance_km} km, "
                f"{measurement.duration_min} min"
            )
            return measurement.distance_km
        logger.warning(
            f"[LIST] No route for O='{info.origin}', D='{info.destination}', trying UI estimate"
        )
    if info.ui_estimate is not None:
        return info.ui_estimate.distance_km
    return None


async def find_qualifying_listing(
    root: UiNode,
    config: AgentConfiguration,
    route_oracle: RouteOracle,
) -> ListingMatch | None:
    containers = find_job_containers(root)
    logger.debug(f"[LIST] Found {len(containers)} candidate containers")

    for container in containers:
        info = extract_listing_info(container)
        logger.debug(f"[LIST] {info.summary()}")

        if not (
            _passes_pickup(info, config)
            and _passes_rating(info, config)
            and _passes_trip_count(info, config)
        ):
            continue

        trip_distance = await _measure_trip_distance(info, route_oracle)
        if trip_distance is None:
            logger.debug("[LIST] Discarded: trip distance unknown")
            continue
        if trip_distance > config.max_trip_distance_km:
            logger.debug(
                f"[LIST] Discarded by trip distance: {trip_distance} km "
                f"> {config.max_trip_distance_km} km"
            )
            continue

        logger.success(
            f"[LIST] Compatible trip found. Pickup: {info.pickup_distance_km} km, "
            f"Trip A-B: {trip_distance} km"
        )
        return ListingMatch(container=container, info=info, trip_distance_km=trip_distance)

    return None
