"""Realtime transport interface.

A transport owns the connection resources of exactly one recording session (media, peer connection or socket) and
reports progress to a `TransportHandler` bound to that session. Transports never interpret provider events; raw
messages are handed to the handler for dispatch.
"""

import abc
from typing import Callable, Protocol

from ..types.exceptions import TransportError
from ..types.session import RecorderStatus, SessionConfig

AbortCheck = Callable[[], bool]
"""Returns True once the caller cancelled the session."""


class TransportHandler(Protocol):
    """Receives transport progress."""

    def on_status(self, status: RecorderStatus) -> None:
        """Negotiation progressed to a new status."""
        ...

    def on_open(self) -> None:
        """The event channel is open; audio may flow."""
        ...

    def on_message(self, message: str | bytes) -> None:
        """A raw provider message arrived."""
        ...

    def on_close(self, error: TransportError | None) -> None:
        """The event channel closed, with an error when the connection failed."""
        ...


class RealtimeTransport(abc.ABC):
    """Negotiates and holds the connection for one recording session."""

    @abc.abstractmethod
    async def start(self, session: SessionConfig, handler: TransportHandler, is_aborted: AbortCheck) -> bool:
        """Negotiate the connection.

        Implementations check `is_aborted` after every suspension point and stop negotiating as soon as it returns
        True.

        Args:
            session: Resolved session configuration.
            handler: Receiver of progress and messages.
            is_aborted: Cancellation check.

        Returns:
            False when negotiation stopped because the session was cancelled.

        Raises:
            NegotiationError: If media acquisition or the offer/answer exchange fails.
            TransportError: If the connection cannot be established.
        """
        ...

    @abc.abstractmethod
    async def stop(self) -> None:
        """Release every resource. Safe to call more than once; never notifies the handler."""
        ...
