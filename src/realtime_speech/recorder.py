"""Realtime recorder.

Owns the lifetime of one recording session at a time: resolves the session configuration, drives a transport through
negotiation, feeds provider events to the dispatcher, and surfaces transcript text, status changes, and completion to
the caller.

Status flow:

    idle -> acquiring_media -> negotiating -> connected -> processing -> completed
                                                                     \\-> error (from any non-terminal status)

Every exit path (finalization, caller stop, transport drop, negotiation failure, close) releases the transport, the
session-scoped setting overrides, and pending timers.

Usage:

    async with RealtimeRecorder(transport_factory, on_text=print, on_complete=submit) as recorder:
        await recorder.start_recording()
        ...
        await recorder.stop_recording()
"""

import asyncio
import inspect
import logging
from contextlib import ExitStack
from typing import Any, Callable, TypedDict

from ._async import _TaskPool
from .client import RealtimeApiClient
from .config import RealtimeDefaults, RecorderSettings, scoped_overrides
from .protocol.dispatcher import EventDispatcher
from .session.resolver import resolve_session_config
from .transcript import TranscriptReconciler
from .transport import MediaPlayerMicrophone, RealtimeTransport, WebRTCTransport, WebSocketTransport
from .transport.media import AudioSource, MicrophoneSource
from .types.exceptions import NegotiationError, ProtocolError, RealtimeError, TransportError
from .types.session import RecorderStatus, SessionConfig

logger = logging.getLogger(__name__)

ACTIVE_STATUSES: frozenset[str] = frozenset({"acquiring_media", "negotiating", "connected", "processing"})

TransportFactory = Callable[[], RealtimeTransport]


class RecorderOptions(TypedDict, total=False):
    """Per-recorder caller options.

    Session keys are passed to the session resolver as caller overrides.

    Attributes:
        type: Explicit session type.
        mode: "speech_to_text", "transcription", "speech_to_speech", or a conversational mode.
        model: Model override.
        instructions: Session instructions.
        voice: Output voice.
        turn_detection: Voice activity detection overrides.
        noise_reduction: Noise reduction preset or options.
        include: Extra provider include flags.
        speech_to_speech: Request speech-to-speech.
        text_output: Request text output.
        audio_output: Request audio output.
        audio: Audio section overrides.
        session: Session section overrides.
        auto_send_on_success: Always submit a non-empty final transcript.
        auto_send_delay_override: Submission delay in seconds, overriding the recorder settings.
    """

    type: str
    mode: str
    model: str
    instructions: str
    voice: str
    turn_detection: dict[str, Any]
    noise_reduction: str | dict[str, Any]
    include: list[str]
    speech_to_speech: bool
    text_output: bool
    audio_output: bool
    audio: dict[str, Any]
    session: dict[str, Any]
    auto_send_on_success: bool
    auto_send_delay_override: float


_AUTO_SEND_OPTIONS = frozenset({"auto_send_on_success", "auto_send_delay_override"})


def create_transport_factory(
    defaults: RealtimeDefaults,
    api_client: RealtimeApiClient,
    audio_source: AudioSource | None = None,
    microphone: MicrophoneSource | None = None,
) -> TransportFactory:
    """Create a transport factory for the configured transport.

    Args:
        defaults: Realtime defaults; `transport` selects the flow.
        api_client: Client for the realtime server routes.
        audio_source: Buffered audio for the WebSocket flow.
        microphone: Live audio for the WebRTC flow (default: PulseAudio default device).

    Raises:
        ValueError: If the WebSocket flow is selected without an audio source.
    """
    if defaults.transport == "webrtc":
        return lambda: WebRTCTransport(api_client.create_call, microphone or MediaPlayerMicrophone())

    if audio_source is None:
        raise ValueError("transport=<websocket> | audio source is required")

    return lambda: WebSocketTransport(api_client.create_session, audio_source)


class _SessionHandler:
    """Transport handler bound to one recording session.

    Callbacks from a transport whose session is no longer current are dropped, so a cancelled negotiation that resumes
    late never touches the session that replaced it.
    """

    def __init__(self, recorder: "RealtimeRecorder", generation: int) -> None:
        """Bind to the recorder session with the given generation."""
        self._recorder = recorder
        self._generation = generation

    @property
    def is_current(self) -> bool:
        """Whether this session is still the recorder's current session."""
        return self._generation == self._recorder._generation

    def is_aborted(self) -> bool:
        """Whether this session was cancelled or replaced."""
        return not self.is_current or self._recorder._aborted

    def on_status(self, status: RecorderStatus) -> None:
        """Forward negotiation progress."""
        if self.is_current:
            self._recorder.on_status(status)

    def on_open(self) -> None:
        """Forward the open event."""
        if self.is_current:
            self._recorder.on_open()

    def on_message(self, message: str | bytes) -> None:
        """Forward a provider message."""
        if self.is_current:
            self._recorder.on_message(message)

    def on_close(self, error: TransportError | None) -> None:
        """Forward the close event."""
        if self.is_current:
            self._recorder.on_close(error)


class RealtimeRecorder:
    """Records one realtime session at a time.

    Attributes:
        defaults: Service and session defaults for resolution.
        settings: Application toggles; audio sessions force playback on while open.
        options: Per-recorder caller options.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        defaults: RealtimeDefaults | None = None,
        settings: RecorderSettings | None = None,
        options: RecorderOptions | None = None,
        on_text: Callable[[str], None] | None = None,
        on_complete: Callable[[str], Any] | None = None,
        on_status: Callable[[RecorderStatus], None] | None = None,
        on_error: Callable[[RealtimeError], None] | None = None,
        on_speech_output_delta: Callable[[dict[str, Any]], None] | None = None,
        on_speech_output_completed: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        """Initialize the recorder.

        Args:
            transport_factory: Creates a fresh transport for every session.
            defaults: Service and session defaults.
            settings: Application toggles.
            options: Per-recorder caller options.
            on_text: Called with the current transcript whenever it changes.
            on_complete: Called with the final transcript when it is submitted; may return a coroutine.
            on_status: Called on every status change.
            on_error: Called with every surfaced error.
            on_speech_output_delta: Called with provider speech output events.
            on_speech_output_completed: Called with provider speech output completion events.
        """
        self.defaults = defaults or RealtimeDefaults()
        self.settings = settings or RecorderSettings()
        self.options: RecorderOptions = options if options is not None else {}

        self._transport_factory = transport_factory
        self._on_text = on_text
        self._on_complete = on_complete
        self._on_status = on_status
        self._on_error = on_error
        self._on_speech_output_delta = on_speech_output_delta
        self._on_speech_output_completed = on_speech_output_completed

        self._status: RecorderStatus = "idle"
        self._error: str | None = None
        self._generation = 0
        self._aborted = False
        self._finalized = False

        self._reconciler = TranscriptReconciler()
        self._dispatcher: EventDispatcher | None = None
        self._transport: RealtimeTransport | None = None
        self._scope: ExitStack | None = None

        self._timers = _TaskPool()
        self._pending = _TaskPool()

    async def __aenter__(self) -> "RealtimeRecorder":
        """Enter the recorder context."""
        return self

    async def __aexit__(self, *_: Any) -> None:
        """Close the recorder on exit."""
        await self.close()

    @property
    def status(self) -> RecorderStatus:
        """Current lifecycle status."""
        return self._status

    @property
    def error(self) -> str | None:
        """Last surfaced error message, cleared on start and on finalization."""
        return self._error

    @property
    def text(self) -> str:
        """Current transcript."""
        return self._reconciler.text

    @property
    def is_loading(self) -> bool:
        """Whether a session is being negotiated."""
        return self._status in ("acquiring_media", "negotiating")

    @property
    def is_listening(self) -> bool:
        """Whether a session is connected."""
        return self._status in ("connected", "processing")

    def resolve_session(self) -> SessionConfig:
        """Resolve the session configuration for the next recording."""
        overrides = {key: value for key, value in self.options.items() if key not in _AUTO_SEND_OPTIONS}
        return resolve_session_config(self.defaults.service_defaults(), self.defaults.session_defaults(), overrides)

    async def start_recording(self) -> None:
        """Start a recording session.

        A no-op while a session is already being negotiated or connected. Failures are surfaced through the error
        status rather than raised.
        """
        if self._status in ACTIVE_STATUSES:
            logger.debug("status=<%s> | recording already active", self._status)
            return

        self._generation += 1
        handler = _SessionHandler(self, self._generation)
        self._aborted = False
        self._finalized = False
        self._reconciler.reset()
        self._error = None
        self._set_status("acquiring_media")

        await self._release()
        await self._timers.cancel()
        if handler.is_aborted():
            logger.debug("realtime recording cancelled before negotiation")
            return

        session = self.resolve_session()
        transport = self._transport_factory()
        self._transport = transport
        self._dispatcher = EventDispatcher(
            self._reconciler,
            on_delta=self._handle_transcript_delta,
            on_completed=self._finalize,
            on_error=self._handle_protocol_error,
            on_speech_output_delta=self._on_speech_output_delta,
            on_speech_output_completed=self._on_speech_output_completed,
        )

        self._scope = ExitStack()
        if session["audio_output"]:
            self._scope.enter_context(scoped_overrides(self.settings, text_to_speech=True, automatic_playback=True))

        try:
            started = await transport.start(session, handler, handler.is_aborted)
        except RealtimeError as error:
            await self._handle_start_failure(transport, handler, error)
            return
        except Exception as error:
            logger.debug("error=<%s> | unexpected failure while negotiating", error, exc_info=True)
            await self._handle_start_failure(
                transport, handler, NegotiationError(str(error) or "Failed to start realtime transcription")
            )
            return

        if not started or handler.is_aborted():
            logger.debug("realtime negotiation cancelled")
            await transport.stop()

    async def stop_recording(self) -> None:
        """Stop the current session.

        Text received so far is finalized rather than discarded.
        """
        self._aborted = True

        if self._transport is None:
            await self._release()
            if not self._finalized:
                self._set_status("idle")
            return

        if not self._finalized and self._reconciler.text:
            self._finalize(self._reconciler.text)
            await self._release()
            return

        await self._release()
        self._set_status("completed" if self._finalized else "idle")

    async def close(self) -> None:
        """Abort any session, cancel pending timers, and release every resource."""
        self._aborted = True
        await self._timers.cancel()
        await self._release()
        await self._pending.wait()
        logger.debug("realtime recorder closed")

    # TransportHandler

    def on_status(self, status: RecorderStatus) -> None:
        """Record negotiation progress."""
        if not self._aborted:
            self._set_status(status)

    def on_open(self) -> None:
        """Mark the session connected."""
        if not self._aborted:
            self._set_status("connected")

    def on_message(self, message: str | bytes) -> None:
        """Dispatch a provider message."""
        if self._dispatcher is not None:
            self._dispatcher.dispatch_message(message)

    def on_close(self, error: TransportError | None) -> None:
        """Tear down after the transport closed, keeping any text already received."""
        if error is not None:
            logger.warning(
                "status=<%s>, message=<%s>, code=<%s> | realtime transport closed",
                error.status,
                error.message,
                error.code,
            )

        if not self._finalized and self._reconciler.text:
            self._finalize(self._reconciler.text)
            return

        self._pending.create(self._release())
        if self._finalized or self._aborted:
            return

        if error is not None:
            self._report_error(error)
        else:
            self._set_status("idle")

    # Internals

    def _set_status(self, status: RecorderStatus) -> None:
        if status == self._status:
            return

        logger.debug("from=<%s>, to=<%s> | recorder status changed", self._status, status)
        self._status = status
        if self._on_status:
            self._on_status(status)

    def _emit_text(self, text: str) -> None:
        if self._on_text:
            self._on_text(text)

    def _report_error(self, error: RealtimeError) -> None:
        self._error = error.message
        self._set_status("error")
        if self._on_error:
            self._on_error(error)

    async def _handle_start_failure(
        self, transport: RealtimeTransport, handler: _SessionHandler, error: RealtimeError
    ) -> None:
        if handler.is_aborted():
            logger.debug("error=<%s> | ignoring failure of cancelled negotiation", error)
            await transport.stop()
            return

        if self._finalized:
            logger.debug("error=<%s> | ignoring transport failure after finalization", error)
            await transport.stop()
            return

        logger.error(
            "status=<%s>, message=<%s>, code=<%s> | failed to start realtime session",
            error.status,
            error.message,
            error.code,
        )
        self._report_error(error)
        await self._release()

    def _handle_transcript_delta(self, text: str) -> None:
        self._emit_text(text)
        self._set_status("processing")

    def _handle_protocol_error(self, error: ProtocolError) -> None:
        self._report_error(error)

    def _finalize(self, text: str) -> None:
        """Finalize the session once; later calls only release resources."""
        if self._finalized:
            self._pending.create(self._release())
            return

        self._finalized = True
        self._reconciler.replace(text)

        trimmed = text.strip()
        self._emit_text(text)
        self._error = None
        self._set_status("completed" if trimmed else "idle")

        if trimmed:
            self._schedule_auto_send(text)

        self._pending.create(self._release())

    def _schedule_auto_send(self, text: str) -> None:
        auto_send_on_success = bool(self.options.get("auto_send_on_success"))
        delay_override = self.options.get("auto_send_delay_override")
        override_specified = delay_override is not None
        auto_send_text = self.settings.auto_send_text

        delay_source = delay_override if delay_override is not None else auto_send_text
        if not (auto_send_on_success or (self.settings.speech_to_text and delay_source > -1)):
            return

        if delay_override is not None:
            delay = delay_override
        else:
            delay = auto_send_text if auto_send_text > -1 else 0

        logger.debug("delay=<%s>, override=<%s> | scheduling transcript submission", delay, override_specified)
        if delay > 0:
            self._timers.create(self._send_after(text, delay))
        else:
            self._send_completion(text)

    async def _send_after(self, text: str, delay: float) -> None:
        await asyncio.sleep(delay)
        self._send_completion(text)

    def _send_completion(self, text: str) -> None:
        if not self._on_complete:
            return

        result = self._on_complete(text)
        if inspect.iscoroutine(result):
            self._pending.create(result)

    async def _release(self) -> None:
        """Release the transport and restore scoped settings; idempotent."""
        transport, self._transport = self._transport, None
        scope, self._scope = self._scope, None
        self._dispatcher = None

        if scope is not None:
            scope.close()

        if transport is not None:
            await transport.stop()
