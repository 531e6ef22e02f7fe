"""Exception types raised by the service layer."""


class TalkpulseError(Exception):
    """Base class for service errors."""


class ValidationError(TalkpulseError, ValueError):
    """Input rejected before any write was attempted."""


class StorageError(TalkpulseError):
    """Object storage read/write failed."""


class RenderError(TalkpulseError):
    """Code image could not be rendered or rasterized."""


class ReadinessTimeoutError(RenderError):
    """An expected artifact did not appear within the readiness poll window."""


class RelayError(TalkpulseError):
    """Forwarding a payload to the external webhook failed."""
