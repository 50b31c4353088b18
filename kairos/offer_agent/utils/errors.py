class OfferAgentError(Exception):
    """Base class for errors raised by the offer agent."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StaleSnapshotError(OfferAgentError):
    """A node handle was used after the snapshot that produced it was released."""

    pass


class ControllerErrors(OfferAgentError):
    """Device wiring failed (no ADB device, unreadable hierarchy dump...)."""

    pass


class ConfigurationError(OfferAgentError):
    """The agent configuration could not be loaded or validated."""

    pass


class InvalidTransitionError(OfferAgentError):
    """The orchestrator was asked for a state change its transition table forbids."""

    pass
