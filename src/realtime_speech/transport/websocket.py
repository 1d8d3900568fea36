"""WebSocket transport.

Bootstrap flow: fetch a short-lived session descriptor from the server, open a socket to the provider with the
ephemeral credentials it carries, then stream the buffered audio as `input_audio_buffer.append` events followed by
`input_audio_buffer.commit` and `response.create`. Provider events are read from the socket until it closes.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import websockets
from websockets import ClientConnection

from .._async import _TaskPool, stop_quietly
from ..types.events import (
    InputAudioBufferAppendEvent,
    InputAudioBufferCommitEvent,
    ResponseCreateEvent,
    TypedEvent,
    output_modalities,
)
from ..types.exceptions import NegotiationError, TransportError
from ..types.session import SessionConfig, SessionDescriptor
from .base import AbortCheck, RealtimeTransport, TransportHandler
from .media import AudioSource, iter_chunks

logger = logging.getLogger(__name__)

CHUNK_SIZE = 48 * 1024
CONNECT_TIMEOUT_S = 15.0
TRANSCRIPTION_INSTRUCTIONS = "Transcribe the provided audio into text."

SessionFetcher = Callable[[], Awaitable[SessionDescriptor]]
"""Fetches a session descriptor from the session-bootstrap boundary."""


def client_secret(session: Mapping[str, Any]) -> str | None:
    """Extract the ephemeral client credential from a provider session."""
    secret = session.get("client_secret")
    if isinstance(secret, Mapping):
        secret = secret.get("value")
    return secret if isinstance(secret, str) and secret else None


def socket_url(descriptor: SessionDescriptor) -> str:
    """Build the provider socket URL, adding the model query parameter when absent."""
    parts = urlsplit(descriptor["url"])
    query = dict(parse_qsl(parts.query))
    if descriptor.get("model") and "model" not in query:
        query["model"] = descriptor["model"]

    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), ""))


def build_response_create(session: SessionConfig) -> ResponseCreateEvent:
    """Request a response in the session's output modalities."""
    modalities = output_modalities(session.get("text_output", True), session.get("audio_output", False))
    instructions = TRANSCRIPTION_INSTRUCTIONS if session.get("type") == "transcription" else None
    return ResponseCreateEvent(modalities, instructions)


class WebSocketTransport(RealtimeTransport):
    """Socket transport for one recording session."""

    _websocket: ClientConnection | None

    def __init__(
        self,
        session_fetcher: SessionFetcher,
        audio_source: AudioSource,
        chunk_size: int = CHUNK_SIZE,
        connect_timeout: float = CONNECT_TIMEOUT_S,
    ) -> None:
        """Initialize the transport.

        Args:
            session_fetcher: Fetches the session descriptor.
            audio_source: Buffered audio to send.
            chunk_size: Maximum raw bytes per append event.
            connect_timeout: Seconds to wait for the socket to open.
        """
        self._session_fetcher = session_fetcher
        self._audio_source = audio_source
        self._chunk_size = chunk_size
        self._connect_timeout = connect_timeout

        self._handler: TransportHandler | None = None
        self._websocket = None
        self._tasks = _TaskPool()

    async def start(self, session: SessionConfig, handler: TransportHandler, is_aborted: AbortCheck) -> bool:
        """Open the socket and stream the buffered audio."""
        self._handler = handler
        handler.on_status("negotiating")

        descriptor = await self._session_fetcher()
        if is_aborted():
            return False

        token = client_secret(descriptor.get("session") or {})
        if not token:
            raise NegotiationError("Realtime session did not include client credentials", status=502)

        url = socket_url(descriptor)
        headers = [("Authorization", f"Bearer {token}"), ("OpenAI-Beta", "realtime=v1")]

        try:
            self._websocket = await asyncio.wait_for(
                websockets.connect(url, additional_headers=headers), timeout=self._connect_timeout
            )
        except asyncio.TimeoutError as error:
            raise TransportError("Timed out connecting to realtime socket", code="timeout") from error
        except (OSError, websockets.WebSocketException) as error:
            raise TransportError(f"Failed to connect to realtime socket: {error}") from error

        logger.debug("url=<%s> | realtime socket connected", url)
        if is_aborted():
            return False

        handler.on_open()
        self._tasks.create(self._receive(self._websocket))

        await self._send_audio(session)
        return not is_aborted()

    async def stop(self) -> None:
        """Stop reading, close the socket, and release the audio buffer."""
        self._handler = None
        websocket, self._websocket = self._websocket, None

        async def stop_receiver() -> None:
            await self._tasks.cancel()

        async def stop_websocket() -> None:
            if websocket is not None:
                await websocket.close()

        await stop_quietly(stop_receiver, stop_websocket, self._audio_source.stop)
        logger.debug("websocket transport closed")

    async def _send_audio(self, session: SessionConfig) -> None:
        audio = await self._audio_source.read()

        chunks = 0
        for chunk in iter_chunks(audio, self._chunk_size):
            await self._send_event(InputAudioBufferAppendEvent.from_bytes(chunk))
            chunks += 1

        await self._send_event(InputAudioBufferCommitEvent())
        await self._send_event(build_response_create(session))
        logger.debug("chunks=<%d>, bytes=<%d> | buffered audio sent", chunks, len(audio))

    async def _send_event(self, event: TypedEvent) -> None:
        if self._websocket is None:
            raise TransportError("Realtime socket is not connected")

        await self._websocket.send(event.to_json())

    async def _receive(self, websocket: ClientConnection) -> None:
        error: TransportError | None = None
        try:
            async for message in websocket:
                if self._handler:
                    self._handler.on_message(message)
        except websockets.ConnectionClosedError as closed:
            code = str(closed.rcvd.code) if closed.rcvd else None
            error = TransportError(f"Realtime socket closed: {closed}", code=code)

        if self._handler:
            self._handler.on_close(error)
