from pydantic import BaseModel, ConfigDict

from kairos.offer_agent.utils.text_extractors import TripEstimate
from kairos.offer_agent.utils.ui_hierarchy import UiNode


class OfferSuggestion(BaseModel):
    """A pre-set counter-offer button of the detail screen ("COL$9,000")."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    label: str
    amount: float | None
    node: UiNode


class ExtractedDetailInfo(BaseModel):
    """
    Everything read from one detail screen pass.

    Node references belong to the snapshot that was parsed and die with it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    origin: str | None = None
    destination: str | None = None
    suggested_price: float | None = None
    api_trip_distance_km: float | None = None
    ui_estimate: TripEstimate | None = None
    accept_button: UiNode | None = None
    edit_button: UiNode | None = None
    suggestions: list[OfferSuggestion] = []

    @property
    def ui_trip_distance_km(self) -> float | None:
        return self.ui_estimate.distance_km if self.ui_estimate else None

    @property
    def trip_distance_km(self) -> float | None:
        """Route measurement when available, UI estimate otherwise."""
        if self.api_trip_distance_km is not None:
            return self.api_trip_distance_km
        return self.ui_trip_distance_km

    def summary(self) -> str:
        return (
            f"Origin: {self.origin}, Destination: {self.destination}, "
            f"Price: {self.suggested_price}, API distance: {self.api_trip_distance_km}, "
            f"UI estimate: {self.ui_estimate}, Accept: {self.accept_button is not None}, "
            f"Edit: {self.edit_button is not None}, Suggestions: {[s.label for s in self.suggestions]}"
        )
