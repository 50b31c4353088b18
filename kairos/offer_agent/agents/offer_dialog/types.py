from pydantic import BaseModel, ConfigDict

from kairos.offer_agent.utils.ui_hierarchy import UiNode


class OfferDialogScreen(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    current_value: str | None = None
    field: UiNode | None = None
    submit_button: UiNode | None = None
    close_button: UiNode | None = None


class OfferDialogResult(BaseModel):
    success: bool
    reason: str = ""
