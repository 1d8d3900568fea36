"""Realtime event dispatcher.

Routes provider events to transcript handling regardless of which transport delivered them. Dispatch is synchronous
and table driven: each recognized event type maps to one handler, and handlers only touch the reconciler and the
callbacks supplied by the owning session.

Unknown event types are ignored so that new provider events never break a session.
"""

import json
import logging
from typing import Any, Callable, Mapping

from ..transcript import TranscriptReconciler
from ..types.events import (
    OUTPUT_AUDIO_COMPLETED,
    OUTPUT_AUDIO_PREFIX,
    RESPONSE_COMPLETED,
    RESPONSE_ERROR,
    RESPONSE_FINISHED,
    SPEECH_PREFIX,
    TRANSCRIPTION_COMPLETED,
    TRANSCRIPTION_DELTA,
)
from ..types.exceptions import ProtocolError
from .extract import extract_delta_text, extract_nested_text, extract_transcript_text

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE_ERROR = "Realtime response failed"

TextCallback = Callable[[str], None]
ErrorCallback = Callable[[ProtocolError], None]
EventCallback = Callable[[dict[str, Any]], None]


def delta_text(event: Mapping[str, Any]) -> str:
    """Extract delta text, accepting a plain string or `{"text": ...}` under "delta" or "text"."""
    text = extract_nested_text(event.get("delta")) or extract_nested_text(event.get("text"))
    if text:
        return text

    return extract_delta_text(event.get("delta"))


def completed_text(event: Mapping[str, Any]) -> str:
    """Extract final transcript text, preferring the explicit "transcription" field."""
    for key in ("transcription", "transcript", "text"):
        text = extract_nested_text(event.get(key))
        if text:
            return text

    return extract_transcript_text(event.get("transcription"))


def response_error(event: Mapping[str, Any]) -> ProtocolError:
    """Convert a `response.error` event into a protocol error."""
    error = event.get("error")
    message = extract_nested_text(error, ("message", "text")).strip() or DEFAULT_RESPONSE_ERROR
    code = error.get("code") if isinstance(error, Mapping) else None
    status = error.get("status") if isinstance(error, Mapping) and isinstance(error.get("status"), int) else None

    return ProtocolError(message, status=status, code=code if isinstance(code, str) else None)


class EventDispatcher:
    """Dispatch parsed provider events for one session.

    Attributes:
        reconciler: Transcript aggregate updated by transcription events.
    """

    def __init__(
        self,
        reconciler: TranscriptReconciler,
        on_delta: TextCallback,
        on_completed: TextCallback,
        on_error: ErrorCallback,
        on_speech_output_delta: EventCallback | None = None,
        on_speech_output_completed: EventCallback | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            reconciler: Transcript aggregate for the session.
            on_delta: Called with the current aggregate after each non-empty delta.
            on_completed: Called with the final text when the transcript or response completes.
            on_error: Called with the provider error from `response.error`.
            on_speech_output_delta: Called with every speech output event.
            on_speech_output_completed: Called with speech output completion events.
        """
        self.reconciler = reconciler
        self._on_delta = on_delta
        self._on_completed = on_completed
        self._on_error = on_error
        self._on_speech_output_delta = on_speech_output_delta
        self._on_speech_output_completed = on_speech_output_completed

        self._handlers: dict[str, Callable[[dict[str, Any]], None]] = {
            TRANSCRIPTION_DELTA: self._handle_delta,
            TRANSCRIPTION_COMPLETED: self._handle_transcription_completed,
            RESPONSE_COMPLETED: self._handle_response_completed,
            RESPONSE_FINISHED: self._handle_response_completed,
            RESPONSE_ERROR: self._handle_response_error,
        }

    def dispatch(self, event: Any) -> None:
        """Route one parsed event to its handler.

        Args:
            event: Parsed provider event; anything without a string "type" is ignored.
        """
        if not isinstance(event, dict):
            return

        event_type = event.get("type")
        if not isinstance(event_type, str):
            return

        handler = self._handlers.get(event_type)
        if handler:
            handler(event)
            return

        if event_type.startswith((OUTPUT_AUDIO_PREFIX, SPEECH_PREFIX)):
            self._handle_speech_output(event_type, event)
            return

        logger.debug("event_type=<%s> | ignoring unrecognized realtime event", event_type)

    def dispatch_message(self, message: str | bytes) -> None:
        """Parse a single-line JSON message and dispatch it.

        Unparseable messages are logged and dropped.
        """
        try:
            event = json.loads(message)
        except (TypeError, ValueError) as error:
            logger.warning("error=<%s> | failed to parse realtime event", error)
            return

        self.dispatch(event)

    def _handle_delta(self, event: dict[str, Any]) -> None:
        text = delta_text(event)
        if not text:
            return

        self.reconciler.append(text)
        self._on_delta(self.reconciler.text)

    def _handle_transcription_completed(self, event: dict[str, Any]) -> None:
        text = completed_text(event)
        if text:
            self.reconciler.replace(text)

        self._on_completed(self.reconciler.text)

    def _handle_response_completed(self, event: dict[str, Any]) -> None:
        self._on_completed(self.reconciler.text)

    def _handle_response_error(self, event: dict[str, Any]) -> None:
        error = response_error(event)
        logger.error(
            "status=<%s>, message=<%s>, code=<%s> | realtime response error", error.status, error.message, error.code
        )
        self._on_error(error)

    def _handle_speech_output(self, event_type: str, event: dict[str, Any]) -> None:
        if self._on_speech_output_delta:
            self._on_speech_output_delta(event)

        completed = event_type == OUTPUT_AUDIO_COMPLETED or (
            event_type.startswith(SPEECH_PREFIX) and event_type.endswith(".completed")
        )
        if completed and self._on_speech_output_completed:
            self._on_speech_output_completed(event)
