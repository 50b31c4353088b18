from enum import Enum


class ServiceState(str, Enum):
    SEARCHING = "searching"
    AWAITING_DETAIL_APPEARANCE = "awaiting_detail_appearance"
    REVEALING_DETAIL = "revealing_detail"
    PROCESSING_DETAIL = "processing_detail"
    AWAITING_OFFER_DIALOG = "awaiting_offer_dialog"
    IN_OFFER_DIALOG = "in_offer_dialog"


# Every state may also fall back to SEARCHING.
ALLOWED_TRANSITIONS: dict[ServiceState, frozenset[ServiceState]] = {
    ServiceState.SEARCHING: frozenset(
        {ServiceState.AWAITING_DETAIL_APPEARANCE, ServiceState.REVEALING_DETAIL}
    ),
    ServiceState.AWAITING_DETAIL_APPEARANCE: frozenset({ServiceState.REVEALING_DETAIL}),
    ServiceState.REVEALING_DETAIL: frozenset({ServiceState.PROCESSING_DETAIL}),
    ServiceState.PROCESSING_DETAIL: frozenset({ServiceState.AWAITING_OFFER_DIALOG}),
    ServiceState.AWAITING_OFFER_DIALOG: frozenset({ServiceState.IN_OFFER_DIALOG}),
    ServiceState.IN_OFFER_DIALOG: frozenset(),
}

# States where a detail screen showing up forces the machine into RevealingDetail.
DETAIL_OVERRIDE_STATES = frozenset(
    {ServiceState.SEARCHING, ServiceState.AWAITING_DETAIL_APPEARANCE}
)


def is_allowed_transition(current: ServiceState, new: ServiceState) -> bool:
    return new == ServiceState.SEARCHING or new in ALLOWED_TRANSITIONS[current]
