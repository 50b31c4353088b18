"""
State machine driving the offer pipeline.

Screen notifications are queued and handled one at a time by a single worker task. Each queued
event is stamped with the generation counter, which is bumped on every state transition: an event
stamped before the last transition is dropped unread, and every handler re-checks the generation
after each suspension point (route lookups, settle delays) before requesting an actuation.

Timed work (settle delays, await timeouts, re-snapshots) runs in tracked tasks that `stop()`
cancels. Nothing is actuated once the orchestrator is closed.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine
from typing import Any

from kairos.offer_agent.agents.decision.decision import decide
from kairos.offer_agent.agents.decision.types import DecisionKind
from kairos.offer_agent.agents.detail.detail import parse_detail
from kairos.offer_agent.agents.detail.types import ExtractedDetailInfo
from kairos.offer_agent.agents.list_filter.list_filter import find_qualifying_listing
from kairos.offer_agent.agents.offer_dialog.offer_dialog import submit_counter_offer
from kairos.offer_agent.agents.orchestrator.types import (
    DETAIL_OVERRIDE_STATES,
    ServiceState,
    is_allowed_transition,
)
from kairos.offer_agent.agents.reveal.reveal import reveal_hidden_content
from kairos.offer_agent.clients.route_client import RouteOracle
from kairos.offer_agent.config import AgentConfiguration, ConfigProvider
from kairos.offer_agent.controllers.protocols import Actuator, ScreenSnapshotProvider
from kairos.offer_agent.controllers.types import EventKind, ScreenEvent
from kairos.offer_agent.observability import (
    LoggingObservabilityProvider,
    ObservabilityProvider,
    instrumented_handler,
)
from kairos.offer_agent.tools.utils import climb_to_clickable
from kairos.offer_agent.utils.errors import InvalidTransitionError
from kairos.offer_agent.utils.logger import get_logger
from kairos.offer_agent.utils.ui_hierarchy import UiNode, is_target_screen

logger = get_logger(__name__)

DEFAULT_QUEUE_SIZE = 32

LIST_EVENTS = frozenset({EventKind.CONTENT_CHANGED, EventKind.SCROLLED})
SCREEN_CHANGE_EVENTS = frozenset({EventKind.CONTENT_CHANGED, EventKind.WINDOW_STATE_CHANGED})
AWAITING_STATES = frozenset(
    {ServiceState.AWAITING_DETAIL_APPEARANCE, ServiceState.AWAITING_OFFER_DIALOG}
)

Handler = Callable[[ScreenEvent, UiNode], Awaitable[None]]


class OfferOrchestrator:
    def __init__(
        self,
        actuator: Actuator,
        snapshot_provider: ScreenSnapshotProvider,
        route_oracle: RouteOracle,
        config_provider: ConfigProvider,
        observability: ObservabilityProvider | None = None,
        dialog_settle_delay_seconds: float = 0.5,
        reveal_settle_delay_seconds: float = 0.4,
        await_timeout_seconds: float | None = 8.0,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        self._actuator = actuator
        self._snapshot_provider = snapshot_provider
        self._route_oracle = route_oracle
        self._config_provider = config_provider
        self._observability = observability or LoggingObservabilityProvider()
        self._dialog_settle_delay = dialog_settle_delay_seconds
        self._reveal_settle_delay = reveal_settle_delay_seconds
        self._await_timeout = await_timeout_seconds

        self._state = ServiceState.SEARCHING
        self._generation = 0
        self._pending_amount: int | None = None
        self._closed = False

        self._queue: asyncio.Queue[ScreenEvent] = asyncio.Queue(maxsize=queue_size)
        self._worker: asyncio.Task | None = None
        self._timers: set[asyncio.Task] = set()
        self._timeout_task: asyncio.Task | None = None

        self._handlers: dict[ServiceState, Handler] = {
            ServiceState.SEARCHING: self._handle_searching,
            ServiceState.AWAITING_DETAIL_APPEARANCE: self._handle_awaiting_detail,
            ServiceState.REVEALING_DETAIL: self._handle_revealing_detail,
            ServiceState.PROCESSING_DETAIL: self._handle_processing_detail,
            ServiceState.AWAITING_OFFER_DIALOG: self._handle_awaiting_offer_dialog,
            ServiceState.IN_OFFER_DIALOG: self._handle_in_offer_dialog,
        }
        config_provider.subscribe(self._on_configuration_changed)

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending_amount(self) -> int | None:
        return self._pending_amount

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._closed

    @property
    def pending_timers(self) -> int:
        return len(self._timers)

    ###### Lifecycle ######

    def start(self) -> None:
        if self._worker is not None:
            return
        self._closed = False
        self._worker = asyncio.create_task(self._work(), name="offer-orchestrator-worker")
        logger.info(f"[STATE] Orchestrator started in {self._state.value}")

    async def stop(self) -> None:
        """Cancels the worker and every pending timer, then drops the queued events."""
        self._closed = True
        tasks = list(self._timers)
        if self._worker is not None:
            tasks.append(self._worker)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._timers.clear()
        self._timeout_task = None
        self._worker = None
        self._pending_amount = None
        while not self._queue.empty():
            self._queue.get_nowait().snapshot.release()
            self._queue.task_done()
        logger.info("[STATE] Orchestrator stopped")

    async def run(self, events: AsyncIterator[ScreenEvent] | None = None) -> None:
        """
        Feeds notifications to the machine until the stream ends or the task is cancelled.

        Uses the snapshot provider's stream unless `events` is given. Always tears down on exit.
        """
        self.start()
        try:
            async for event in events or self._snapshot_provider.events():
                self.notify(event)
            await self._queue.join()
        finally:
            await self.stop()

    async def wait_idle(self) -> None:
        """Returns once every queued event has been handled."""
        await self._queue.join()

    def notify(self, event: ScreenEvent) -> bool:
        """Queues a notification. When the queue is full the oldest event is dropped."""
        if self._closed:
            event.snapshot.release()
            return False
        if self._queue.full():
            dropped = self._queue.get_nowait()
            self._queue.task_done()
            dropped.snapshot.release()
            logger.debug(f"Event queue full, dropped a {dropped.kind.value} event")
        if event.generation is None:
            event = event.model_copy(update={"generation": self._generation})
        self._queue.put_nowait(event)
        return True

    def _on_configuration_changed(self, configuration: AgentConfiguration) -> None:
        logger.info("[STATE] New configuration received, used from the next decision cycle")

    ###### Internals ######

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def _schedule(self, coroutine: Coroutine[Any, Any, None], name: str) -> asyncio.Task:
        task = asyncio.create_task(coroutine, name=name)
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)
        return task

    def _cancel_timeout(self) -> None:
        task, self._timeout_task = self._timeout_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    def _transition(self, new_state: ServiceState, reason: str) -> None:
        previous = self._state
        if new_state == previous:
            return
        if not is_allowed_transition(previous, new_state):
            raise InvalidTransitionError(
                f"Transition {previous.value} -> {new_state.value} is not allowed"
            )
        self._state = new_state
        self._generation += 1
        self._observability.log_state_transition(previous.value, new_state.value, reason)

        self._cancel_timeout()
        if new_state in AWAITING_STATES and self._await_timeout is not None and not self._closed:
            self._timeout_task = self._schedule(
                self._expire_wait(self._generation), name=f"timeout-{new_state.value}"
            )

    def _reset(self, reason: str) -> None:
        self._pending_amount = None
        self._transition(ServiceState.SEARCHING, reason)

    async def _work(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._process(event)
            finally:
                self._queue.task_done()

    async def _process(self, event: ScreenEvent) -> None:
        with event.snapshot as snapshot:
            if event.generation is not None and event.generation != self._generation:
                logger.debug(
                    f"[STATE] Dropping stale {event.kind.value} event "
                    f"(generation {event.generation}, current {self._generation})"
                )
                return
            try:
                await self._dispatch(event, snapshot.root)
            except Exception as e:
                logger.exception(f"[STATE] Handler for {self._state.value} failed: {e}")
                self._observability.log_error(self._state.value, str(e))
                self._reset("handler error")

    async def _dispatch(self, event: ScreenEvent, root: UiNode) -> None:
        if self._state in DETAIL_OVERRIDE_STATES and is_target_screen(root):
            self._transition(ServiceState.REVEALING_DETAIL, "detail screen detected")
        await self._handlers[self._state](event, root)

    async def _expire_wait(self, generation: int) -> None:
        await asyncio.sleep(self._await_timeout)
        if not self._is_current(generation):
            return
        logger.warning(
            f"[STATE] Nothing happened after {self._await_timeout}s in {self._state.value}"
        )
        self._reset("await timeout")

    async def _resnapshot(self, generation: int, delay: float) -> None:
        """Captures the screen after `delay` and queues it as a content change."""
        await asyncio.sleep(delay)
        if not self._is_current(generation):
            return
        snapshot = await self._snapshot_provider.capture()
        if snapshot is None:
            return
        if not self._is_current(generation):
            snapshot.release()
            return
        self.notify(
            ScreenEvent(
                kind=EventKind.CONTENT_CHANGED,
                snapshot=snapshot,
                generation=generation,
                synthetic=True,
            )
        )

    ###### State handlers ######

    @instrumented_handler("searching")
    async def _handle_searching(self, event: ScreenEvent, root: UiNode) -> None:
        if event.kind not in LIST_EVENTS:
            return
        generation = self._generation
        config = self._config_provider.current()

        match = await find_qualifying_listing(root, config, self._route_oracle)
        if match is None:
            return
        if not self._is_current(generation):
            logger.info("[LIST] State changed during the search, discarding the match")
            return
        if not config.automatic_actions_enabled:
            logger.info("[LIST][SHADOW] Qualifying listing left unopened")
            return

        self._transition(ServiceState.AWAITING_DETAIL_APPEARANCE, "listing selected")
        generation = self._generation
        outcome = await climb_to_clickable(match.container, self._actuator)
        self._observability.log_actuation("click_listing", outcome.succeeded)
        if not outcome.succeeded and self._is_current(generation):
            self._reset("listing click failed")

    @instrumented_handler("awaiting_detail_appearance")
    async def _handle_awaiting_detail(self, event: ScreenEvent, root: UiNode) -> None:
        # The detail screen itself is caught by the pre-dispatch guard.
        if event.kind in SCREEN_CHANGE_EVENTS:
            logger.debug("[STATE] Still waiting for the detail screen")

    @instrumented_handler("revealing_detail")
    async def _handle_revealing_detail(self, event: ScreenEvent, root: UiNode) -> None:
        generation = self._generation
        config = self._config_provider.current()
        if config.automatic_actions_enabled:
            result = await reveal_hidden_content(root, self._actuator)
            if result.found:
                self._observability.log_actuation("reveal", result.clicked)
            reason = f"reveal: {result.strategy.value}"
        else:
            logger.info("[REVEAL][SHADOW] Reveal skipped, processing the screen as is")
            reason = "reveal skipped"
        if not self._is_current(generation):
            return
        self._transition(ServiceState.PROCESSING_DETAIL, reason)
        self._schedule(
            self._resnapshot(self._generation, self._reveal_settle_delay),
            name="reveal-resnapshot",
        )

    @instrumented_handler("processing_detail")
    async def _handle_processing_detail(self, event: ScreenEvent, root: UiNode) -> None:
        if not is_target_screen(root):
            self._reset("detail screen left")
            return
        if event.kind != EventKind.CONTENT_CHANGED:
            return

        generation = self._generation
        config = self._config_provider.current()
        info = await parse_detail(root, self._route_oracle)
        if not self._is_current(generation):
            logger.info("[DETAIL] State changed during the route lookup, discarding the result")
            return

        decision = decide(info, config)
        shadow = not config.automatic_actions_enabled
        self._observability.log_decision(str(decision), decision.reason, shadow)
        if shadow:
            self._reset("automatic actions disabled")
            return

        if decision.kind == DecisionKind.ACCEPT:
            await self._accept(info)
        elif decision.kind == DecisionKind.COUNTER_OFFER and decision.amount is not None:
            await self._open_offer_dialog(info, decision.amount)
        else:
            self._reset("trip discarded")

    async def _accept(self, info: ExtractedDetailInfo) -> None:
        if info.accept_button is None:
            logger.error("[DETAIL] Accept button not found")
            self._reset("accept button missing")
            return
        outcome = await climb_to_clickable(info.accept_button, self._actuator)
        self._observability.log_actuation("accept", outcome.succeeded)
        if outcome.succeeded:
            logger.success("[DETAIL] Trip accepted")
        self._reset("trip accepted" if outcome.succeeded else "accept click failed")

    async def _open_offer_dialog(self, info: ExtractedDetailInfo, amount: int) -> None:
        if info.edit_button is None:
            logger.error("[DETAIL] Edit button not found, cannot counter-offer")
            self._reset("edit button missing")
            return

        self._pending_amount = amount
        self._transition(ServiceState.AWAITING_OFFER_DIALOG, f"counter-offer {amount}")
        generation = self._generation
        outcome = await climb_to_clickable(info.edit_button, self._actuator)
        self._observability.log_actuation("open_offer_dialog", outcome.succeeded)
        if not outcome.succeeded and self._is_current(generation):
            self._reset("edit button click failed")

    @instrumented_handler("awaiting_offer_dialog")
    async def _handle_awaiting_offer_dialog(self, event: ScreenEvent, root: UiNode) -> None:
        if event.kind not in SCREEN_CHANGE_EVENTS:
            return
        self._transition(ServiceState.IN_OFFER_DIALOG, "dialog opening")
        self._schedule(self._drive_offer_dialog(self._generation), name="offer-dialog")

    @instrumented_handler("in_offer_dialog")
    async def _handle_in_offer_dialog(self, event: ScreenEvent, root: UiNode) -> None:
        # The offer dialog task owns this state.
        return

    async def _drive_offer_dialog(self, generation: int) -> None:
        await asyncio.sleep(self._dialog_settle_delay)
        if not self._is_current(generation):
            return
        amount = self._pending_amount
        try:
            snapshot = await self._snapshot_provider.capture()
            if snapshot is None:
                logger.error("[DIALOG] Could not read the offer dialog")
                return
            with snapshot:
                if amount is None or not self._is_current(generation):
                    return
                result = await submit_counter_offer(snapshot.root, str(amount), self._actuator)
                self._observability.log_actuation("submit_offer", result.success)
        except Exception as e:
            logger.exception(f"[DIALOG] Offer dialog failed: {e}")
            self._observability.log_error("offer_dialog", str(e))
        finally:
            if self._is_current(generation):
                self._reset("offer dialog handled")
