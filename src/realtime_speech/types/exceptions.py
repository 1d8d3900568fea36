"""Exception classes for realtime speech sessions."""


class RealtimeError(Exception):
    """Base exception for realtime session failures.

    Every error carries an HTTP-style status so that server routes can surface it directly, plus an optional
    provider or transport code.

    Attributes:
        message: Human readable, one-line description.
        status: HTTP-style status code.
        code: Optional provider/transport error code.
    """

    default_status = 500

    def __init__(self, message: str, status: int | None = None, code: str | None = None) -> None:
        """Initialize with message, status, and code.

        Args:
            message: Human readable description of the failure.
            status: HTTP-style status code (default: class default_status).
            code: Optional provider/transport error code.
        """
        super().__init__(message)
        self.message = message
        self.status = status if status is not None else self.default_status
        self.code = code

    def as_dict(self) -> dict[str, str | int | None]:
        """Safe representation for logging (no provider bodies)."""
        return {"status": self.status, "message": self.message, "code": self.code}


class ConfigurationError(RealtimeError):
    """Missing or invalid realtime configuration, model, or API key.

    Not retryable.
    """


class RealtimeCallError(RealtimeError):
    """Failure at the call-setup (SDP offer/answer) boundary."""

    default_status = 502


class RealtimeSessionError(RealtimeError):
    """Failure at the session-bootstrap boundary."""

    default_status = 502


class NegotiationError(RealtimeError):
    """Microphone acquisition or SDP exchange failed; fatal to the current session attempt."""


class ProtocolError(RealtimeError):
    """The provider reported an error event; the session stays open."""

    default_status = 502


class TransportError(RealtimeError):
    """The peer connection, data channel, or socket dropped."""

    default_status = 503
