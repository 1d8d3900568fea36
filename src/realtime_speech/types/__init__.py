"""Type definitions for realtime speech sessions."""

from .events import (
    InputAudioBufferAppendEvent,
    InputAudioBufferCommitEvent,
    OutputModality,
    ResponseCreateEvent,
    TypedEvent,
)
from .exceptions import (
    ConfigurationError,
    NegotiationError,
    ProtocolError,
    RealtimeCallError,
    RealtimeError,
    RealtimeSessionError,
    TransportError,
)
from .session import (
    AudioFormat,
    AudioInputConfig,
    AudioOutputConfig,
    InputAudioFormat,
    RealtimeCallRequest,
    RealtimeCallResponse,
    RecorderStatus,
    SessionAudioConfig,
    SessionConfig,
    SessionDescriptor,
    SessionType,
    Transport,
)

__all__ = [
    # Events
    "TypedEvent",
    "InputAudioBufferAppendEvent",
    "InputAudioBufferCommitEvent",
    "ResponseCreateEvent",
    "OutputModality",
    # Errors
    "RealtimeError",
    "ConfigurationError",
    "RealtimeCallError",
    "RealtimeSessionError",
    "NegotiationError",
    "ProtocolError",
    "TransportError",
    # Session config
    "AudioFormat",
    "AudioInputConfig",
    "AudioOutputConfig",
    "SessionAudioConfig",
    "SessionConfig",
    "SessionType",
    "Transport",
    "RecorderStatus",
    "RealtimeCallRequest",
    "RealtimeCallResponse",
    "InputAudioFormat",
    "SessionDescriptor",
]
