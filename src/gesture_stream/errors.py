"""Exception types raised by gesture_stream."""


class GestureStreamError(Exception):
    """Base class for all gesture_stream errors."""


class ConfigError(GestureStreamError, ValueError):
    """A pipeline configuration value is missing, unknown or out of range."""


class ProviderUnavailableError(GestureStreamError):
    """The perception provider could not be started.

    Raised for missing inference libraries, cameras that cannot be opened and
    denied device permissions. Callers decide whether to retry or give up;
    nothing in this package retries on its own.
    """


class MalformedFrameError(GestureStreamError, ValueError):
    """A landmark frame has the wrong shape, non-finite values or no handedness."""
