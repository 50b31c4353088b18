from pydantic import BaseModel, ConfigDict

from kairos.offer_agent.utils.text_extractors import RatingInfo, TripEstimate
from kairos.offer_agent.utils.ui_hierarchy import UiNode


class ExtractedListingInfo(BaseModel):
    """Fields read from one list entry. Built fresh per container, never persisted."""

    pickup_distance_km: float | None = None
    origin: str | None = None
    destination: str | None = None
    ui_estimate: TripEstimate | None = None
    rating: RatingInfo | None = None

    def summary(self) -> str:
        return (
            f"Pickup={self.pickup_distance_km} km, Origin='{self.origin}', "
            f"Destination='{self.destination}', UI estimate={self.ui_estimate}, Rating={self.rating}"
        )


class ListingMatch(BaseModel):
    """The first list entry that passed every enabled filter."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    container: UiNode
    info: ExtractedListingInfo
    trip_distance_km: float | None = None
