from enum import Enum

from pydantic import BaseModel, ConfigDict

from kairos.offer_agent.utils.ui_hierarchy import Snapshot


class EventKind(str, Enum):
    CONTENT_CHANGED = "content_changed"
    SCROLLED = "scrolled"
    WINDOW_STATE_CHANGED = "window_state_changed"


class ScreenEvent(BaseModel):
    """A change notification together with the snapshot taken when it was observed."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    kind: EventKind
    snapshot: Snapshot
    # Orchestrator generation at the time the event was queued. Set by the orchestrator.
    generation: int | None = None
    synthetic: bool = False