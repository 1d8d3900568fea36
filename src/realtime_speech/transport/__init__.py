"""Realtime transports: WebRTC peer connection and WebSocket bootstrap flows."""

from .base import AbortCheck, RealtimeTransport, TransportHandler
from .media import AudioSource, MediaPlayerMicrophone, MicrophoneSource, PcmBufferSource
from .webrtc import CallInvoker, WebRTCTransport, build_call_request
from .websocket import SessionFetcher, WebSocketTransport

__all__ = [
    "AbortCheck",
    "AudioSource",
    "CallInvoker",
    "MediaPlayerMicrophone",
    "MicrophoneSource",
    "PcmBufferSource",
    "RealtimeTransport",
    "SessionFetcher",
    "TransportHandler",
    "WebRTCTransport",
    "WebSocketTransport",
    "build_call_request",
]
