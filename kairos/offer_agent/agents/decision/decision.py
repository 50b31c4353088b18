import math

from kairos.offer_agent.agents.decision.types import Decision
from kairos.offer_agent.agents.detail.types import ExtractedDetailInfo
from kairos.offer_agent.config import AgentConfiguration
from kairos.offer_agent.constants import COUNTER_OFFER_ROUNDING, SHORT_TRIP_THRESHOLD_KM


def ceil_to_nearest_500(value: float) -> int:
    """Smallest non-negative multiple of 500 that is >= value, as integer currency units."""
    steps = math.ceil(value / COUNTER_OFFER_ROUNDING)
    return max(steps, 0) * COUNTER_OFFER_ROUNDING


def decide(info: ExtractedDetailInfo, config: AgentConfiguration) -> Decision:
    """
    Pure pricing decision for one trip.

    Shadow mode is not handled here: the decision is always computed, and the caller decides
    whether to act on it.
    """
    distance = info.trip_distance_km
    price = info.suggested_price

    if price is not None and price < config.minimum_profit:
        if distance is not None and distance < SHORT_TRIP_THRESHOLD_KM:
            return Decision.counter(
                ceil_to_nearest_500(config.minimum_profit),
                reason=f"Price {price} below minimum profit on a short trip ({distance} km)",
            )
        return Decision.discard(
            reason=f"Price {price} below minimum profit {config.minimum_profit}"
        )

    if distance is not None and distance > 0:
        minimum_acceptable = distance * config.price_per_km
        if price is not None and price >= minimum_acceptable:
            return Decision.accept(
                reason=f"Price {price} >= minimum acceptable {minimum_acceptable:.0f}"
            )
        return Decision.counter(
            ceil_to_nearest_500(minimum_acceptable),
            reason=f"Price {price} < minimum acceptable {minimum_acceptable:.0f} for {distance} km",
        )

    return Decision.discard(reason="Trip distance unknown")
