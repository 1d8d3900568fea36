"""WebRTC transport.

Negotiates a peer connection with the provider:

1. Acquire the microphone.
2. Create the peer connection and the "oai-events" data channel, before any track is added.
3. Attach the microphone tracks, receiving audio only when the session requests audio output.
4. Create the SDP offer and send it with the resolved session to the call-setup boundary.
5. Apply the returned SDP answer; the session is connected once the data channel opens.

Provider events arrive over the data channel.
"""

import logging
from typing import Any, Awaitable, Callable

from aiortc import RTCPeerConnection, RTCSessionDescription

from .._async import stop_quietly
from ..types.exceptions import NegotiationError, TransportError
from ..types.session import RealtimeCallRequest, RealtimeCallResponse, SessionConfig
from .base import AbortCheck, RealtimeTransport, TransportHandler
from .media import MicrophoneSource

logger = logging.getLogger(__name__)

DATA_CHANNEL_LABEL = "oai-events"
FAILED_CONNECTION_STATES = frozenset({"failed", "disconnected", "closed"})

CallInvoker = Callable[[RealtimeCallRequest], Awaitable[RealtimeCallResponse]]
"""Sends a call request to the call-setup boundary."""


def build_call_request(sdp_offer: str, session: SessionConfig) -> RealtimeCallRequest:
    """Build the call-setup request for an SDP offer and resolved session."""
    request: RealtimeCallRequest = {"sdp_offer": sdp_offer, "session": dict(session)}
    if session.get("include"):
        request["include"] = list(session["include"])
    return request


class WebRTCTransport(RealtimeTransport):
    """Peer connection transport for one recording session."""

    def __init__(
        self,
        call_invoker: CallInvoker,
        microphone: MicrophoneSource,
        peer_connection_factory: Callable[[], Any] = RTCPeerConnection,
    ) -> None:
        """Initialize the transport.

        Args:
            call_invoker: Sends the SDP offer and session to the call-setup boundary.
            microphone: Live audio input.
            peer_connection_factory: Creates the peer connection.
        """
        self._call_invoker = call_invoker
        self._microphone = microphone
        self._peer_connection_factory = peer_connection_factory

        self._handler: TransportHandler | None = None
        self._peer_connection: Any = None
        self._data_channel: Any = None

    async def start(self, session: SessionConfig, handler: TransportHandler, is_aborted: AbortCheck) -> bool:
        """Negotiate the peer connection."""
        self._handler = handler

        tracks = await self._microphone.open()
        if is_aborted():
            return False

        peer_connection = self._peer_connection_factory()
        self._peer_connection = peer_connection
        handler.on_status("negotiating")

        data_channel = peer_connection.createDataChannel(DATA_CHANNEL_LABEL)
        self._data_channel = data_channel
        data_channel.on("message", self._on_message)
        data_channel.on("open", self._on_open)
        data_channel.on("close", self._on_close)
        peer_connection.on("connectionstatechange", self._on_connection_state_change)

        receive_audio = session.get("audio_output") is True
        direction = "sendrecv" if receive_audio else "sendonly"
        for track in tracks:
            peer_connection.addTransceiver(track, direction=direction)

        logger.debug("tracks=<%d>, receive_audio=<%s> | creating sdp offer", len(tracks), receive_audio)

        offer = await peer_connection.createOffer()
        if is_aborted():
            return False

        await peer_connection.setLocalDescription(offer)
        if is_aborted():
            return False

        local_description = peer_connection.localDescription or offer
        sdp_offer = getattr(local_description, "sdp", "") or ""
        if not sdp_offer:
            raise NegotiationError("Failed to create SDP offer for realtime call")

        response = await self._call_invoker(build_call_request(sdp_offer, session))
        if is_aborted():
            return False

        sdp_answer = (response or {}).get("sdp_answer")
        if not sdp_answer:
            raise NegotiationError("Realtime call did not return an SDP answer", status=502)

        await peer_connection.setRemoteDescription(RTCSessionDescription(sdp=sdp_answer, type="answer"))
        return not is_aborted()

    async def stop(self) -> None:
        """Close the data channel and peer connection, and stop the microphone."""
        self._handler = None
        data_channel, self._data_channel = self._data_channel, None
        peer_connection, self._peer_connection = self._peer_connection, None

        async def stop_data_channel() -> None:
            if data_channel is not None:
                data_channel.close()

        async def stop_peer_connection() -> None:
            if peer_connection is not None:
                await peer_connection.close()

        await stop_quietly(stop_data_channel, stop_peer_connection, self._microphone.stop)
        logger.debug("webrtc transport closed")

    def _on_message(self, message: str | bytes) -> None:
        if self._handler:
            self._handler.on_message(message)

    def _on_open(self) -> None:
        if self._handler:
            self._handler.on_open()

    def _on_close(self) -> None:
        if self._handler:
            self._handler.on_close(None)

    def _on_connection_state_change(self) -> None:
        peer_connection = self._peer_connection
        handler = self._handler
        if peer_connection is None or handler is None:
            return

        state = peer_connection.connectionState
        logger.debug("state=<%s> | peer connection state changed", state)
        if state in FAILED_CONNECTION_STATES:
            handler.on_close(TransportError(f"Realtime connection {state}", code=state))
