"""Boundaries with the device: what the core asks of it, never how it is done."""

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from kairos.offer_agent.controllers.types import ScreenEvent
from kairos.offer_agent.utils.ui_hierarchy import Snapshot, UiNode


@runtime_checkable
class Actuator(Protocol):
    """Performs actions on the observed screen. Every method reports success as a bool."""

    async def click(self, node: UiNode) -> bool:
        """Click the given node."""
        ...

    async def set_text(self, node: UiNode, value: str) -> bool:
        """Replace the content of an editable node with `value`."""
        ...

    async def dispatch_tap_gesture(self, x: int, y: int) -> None:
        """Tap raw screen coordinates."""
        ...


@runtime_checkable
class ScreenSnapshotProvider(Protocol):
    """Source of screen snapshots and change notifications."""

    async def capture(self) -> Snapshot | None:
        """Take a fresh snapshot, or None when the screen cannot be read right now."""
        ...

    def events(self) -> AsyncIterator[ScreenEvent]:
        """Stream of change notifications, each carrying the snapshot it was observed on."""
        ...
