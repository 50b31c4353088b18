"""Observability module for the offer agent."""

from kairos.offer_agent.observability.decorators import instrumented_handler
from kairos.offer_agent.observability.logging_provider import LoggingObservabilityProvider
from kairos.offer_agent.observability.protocols import ObservabilityProvider

__all__ = [
    "ObservabilityProvider",
    "LoggingObservabilityProvider",
    "instrumented_handler",
]
