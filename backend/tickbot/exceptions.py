class TickbotError(Exception):
    """Base class for engine errors surfaced to callers."""


class EngineAlreadyRunning(TickbotError):
    pass


class NotConnectedError(TickbotError):
    """Raised when a request is sent while no socket is open."""
