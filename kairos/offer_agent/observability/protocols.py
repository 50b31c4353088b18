"""Protocol definitions for observability providers."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ObservabilityProvider(Protocol):
    """Protocol for observability backends (logs, metrics, custom sinks).

    The orchestrator only talks to this interface, so backends can be swapped and tests can
    record calls with a mock.
    """

    def log_state_transition(self, previous: str, new: str, reason: str) -> None:
        """Log a state machine transition.

        Args:
            previous: State before the transition
            new: State after the transition
            reason: Why the transition happened
        """
        ...

    def log_decision(self, decision: str, reason: str, shadow: bool) -> None:
        """Log a pricing decision.

        Args:
            decision: Rendered decision (e.g. "ACCEPT", "COUNTER_OFFER(30000)")
            reason: Human readable reason of the decision
            shadow: True when the decision was computed but not acted on
        """
        ...

    def log_actuation(self, action: str, success: bool) -> None:
        """Log a click, gesture or text entry requested on the device.

        Args:
            action: Name of the action (e.g. "click_listing", "accept", "submit_offer")
            success: Low-level success flag reported by the actuator
        """
        ...

    def log_handler_execution(
        self,
        handler: str,
        duration_ms: float,
        error: str | None = None,
    ) -> None:
        """Log one state handler execution.

        Args:
            handler: Name of the handler (e.g. "searching", "processing_detail")
            duration_ms: Duration of the handler in milliseconds
            error: Error message if the handler failed
        """
        ...

    def log_error(self, source: str, error: str) -> None:
        """Log an error occurrence.

        Args:
            source: Source of the error (handler name, component name, etc.)
            error: Error message or description
        """
        ...
