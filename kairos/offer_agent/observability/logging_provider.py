"""Observability provider writing every metric to the application logger."""

from collections import Counter

from kairos.offer_agent.utils.logger import get_logger

logger = get_logger(__name__)


class LoggingObservabilityProvider:
    """Default provider: logs each event and keeps simple counters for a final summary."""

    def __init__(self):
        self.counters: Counter[str] = Counter()

    def log_state_transition(self, previous: str, new: str, reason: str) -> None:
        self.counters["transitions"] += 1
        logger.info(f"[STATE] {previous} -> {new} ({reason})")

    def log_decision(self, decision: str, reason: str, shadow: bool) -> None:
        self.counters["decisions"] += 1
        if shadow:
            self.counters["shadow_decisions"] += 1
        prefix = "[DECISION][SHADOW]" if shadow else "[DECISION]"
        logger.info(f"{prefix} {decision}: {reason}")

    def log_actuation(self, action: str, success: bool) -> None:
        self.counters["actuations"] += 1
        if not success:
            self.counters["failed_actuations"] += 1
        logger.debug(f"[CLICK] {action}: {'ok' if success else 'failed'}")

    def log_handler_execution(
        self,
        handler: str,
        duration_ms: float,
        error: str | None = None,
    ) -> None:
        self.counters[f"handler.{handler}"] += 1
        if error:
            logger.debug(f"Handler {handler} failed after {duration_ms:.1f} ms: {error}")
        else:
            logger.debug(f"Handler {handler} took {duration_ms:.1f} ms")

    def log_error(self, source: str, error: str) -> None:
        self.counters["errors"] += 1
        logger.error(f"[{source}] {error}")

    def summary(self) -> dict[str, int]:
        return dict(self.counters)
