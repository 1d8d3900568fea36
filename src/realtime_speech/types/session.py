"""Session configuration types.

These dictionaries describe the canonical, provider-ready session configuration produced by the resolver and the
request/response shapes exchanged at the HTTP boundaries. Keys are snake_case; nested provider-specific options are
passed through as plain dictionaries.
"""

from typing import Any, Literal, TypedDict

from typing_extensions import NotRequired

SessionType = Literal["transcription", "realtime"]
"""Realtime session type.

- "transcription": Pure speech-to-text, never emits audio.
- "realtime": Conversational session, may emit audio when requested.
"""

Transport = Literal["webrtc", "websocket"]
"""Transport used to exchange audio with the provider."""

RecorderStatus = Literal["idle", "acquiring_media", "negotiating", "connected", "processing", "completed", "error"]
"""Lifecycle status of a recorder session.

Transitions: idle -> acquiring_media -> negotiating -> connected -> processing -> completed, with error reachable from
any non-terminal state.
"""


class AudioFormat(TypedDict, total=False):
    """Canonical audio format.

    Extra, provider-specific keys (snake_case) may be present in addition to the fields below.

    Attributes:
        codec: Audio codec identifier (default: "pcm16").
        sample_rate: Sample rate in Hz (default: 24000).
        channels: Number of channels (default: 1).
    """

    codec: str
    sample_rate: int
    channels: int


class AudioInputConfig(TypedDict, total=False):
    """Audio input configuration.

    Attributes:
        format: Canonical input audio format.
        noise_reduction: Noise reduction preset name or options.
        turn_detection: Provider voice activity detection options.
        transcription_defaults: Transcription options; never present for speech-to-speech sessions.
    """

    format: AudioFormat
    noise_reduction: str | dict[str, Any]
    turn_detection: dict[str, Any]
    transcription_defaults: dict[str, Any]


class AudioOutputConfig(TypedDict, total=False):
    """Audio output configuration.

    Attributes:
        enabled: Whether audio output is requested.
        voice: Voice identifier for synthesized speech.
        voices: Voices the caller may choose from.
        format: Output audio format.
    """

    enabled: bool
    voice: str
    voices: list[str]
    format: AudioFormat


class SessionAudioConfig(TypedDict, total=False):
    """Audio configuration of a session."""

    input: AudioInputConfig
    output: AudioOutputConfig


class SessionConfig(TypedDict):
    """Canonical, provider-ready session configuration.

    Created fresh per call by the resolver. `include` never contains the reserved modality tokens "text" and "audio";
    those are expressed through `text_output` and `audio_output`.
    """

    type: SessionType
    model: NotRequired[str]
    instructions: NotRequired[str]
    speech_to_speech: NotRequired[bool]
    text_output: bool
    audio_output: bool
    include: list[str]
    audio: SessionAudioConfig


class RealtimeCallRequest(TypedDict, total=False):
    """Request sent to the call-setup boundary.

    Carries the SDP offer plus the flattened call overrides.
    """

    sdp_offer: str
    session: dict[str, Any]
    include: list[str]
    mode: str
    type: str
    model: str
    voice: str
    instructions: str
    turn_detection: dict[str, Any]
    noise_reduction: str | dict[str, Any]
    audio: dict[str, Any]


class RealtimeCallResponse(TypedDict):
    """Response from the call-setup boundary."""

    sdp_answer: str
    expires_at: NotRequired[int | str]


class InputAudioFormat(TypedDict):
    """Input audio format advertised by the session-bootstrap boundary."""

    encoding: str
    sample_rate: int
    channels: int


class SessionDescriptor(TypedDict):
    """Short-lived session descriptor returned by the session-bootstrap boundary.

    Attributes:
        url: Provider socket URL.
        transport: Transport name.
        stream: Whether streaming deltas are expected.
        input_audio_format: Audio format the provider expects.
        model: Provider model identifier.
        session: Raw provider session JSON (includes ephemeral credentials).
    """

    url: str
    transport: str
    stream: bool
    input_audio_format: InputAudioFormat
    model: str
    session: dict[str, Any]
