"""Realtime wire event types.

Outgoing events are typed dictionaries that serialize to the provider's single-line JSON messages. Incoming events are
plain dictionaries discriminated by their "type" field; the constants below name the ones the dispatcher understands.

Key features:

- Typed constructors for the outgoing vocabulary
- JSON-serializable events (audio stored as base64 strings)
- Forward compatible: unknown incoming types are ignored, not rejected
"""

import base64
import json
from typing import Any, Literal, cast

OutputModality = Literal["text", "audio"]
"""Output modality requested from the provider."""

# ============================================================================
# Incoming event types
# ============================================================================

TRANSCRIPTION_DELTA = "conversation.item.input_audio_transcription.delta"
TRANSCRIPTION_COMPLETED = "conversation.item.input_audio_transcription.completed"
RESPONSE_COMPLETED = "response.completed"
RESPONSE_FINISHED = "response.finished"
RESPONSE_ERROR = "response.error"
OUTPUT_AUDIO_PREFIX = "response.output_audio."
SPEECH_PREFIX = "response.speech."
OUTPUT_AUDIO_COMPLETED = "response.output_audio.completed"


class TypedEvent(dict):
    """Base class for wire events."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        """Initialize the typed event with optional data.

        Args:
            data: Optional dictionary of event data to initialize with
        """
        super().__init__(data or {})

    @property
    def type(self) -> str:
        """Event type discriminator."""
        return cast(str, self["type"])

    def as_dict(self) -> dict:
        """Convert this event to a raw dictionary."""
        return {**self}

    def to_json(self) -> str:
        """Serialize to a single-line JSON message."""
        return json.dumps(self, separators=(",", ":"))


# ============================================================================
# Outgoing events
# ============================================================================


class InputAudioBufferAppendEvent(TypedEvent):
    """Append audio to the provider's input buffer.

    Parameters:
        audio: Base64-encoded audio string.
    """

    def __init__(self, audio: str):
        """Initialize append event."""
        super().__init__({"type": "input_audio_buffer.append", "audio": audio})

    @classmethod
    def from_bytes(cls, chunk: bytes) -> "InputAudioBufferAppendEvent":
        """Create from raw audio bytes."""
        return cls(base64.b64encode(chunk).decode("ascii"))

    @property
    def audio(self) -> str:
        """Base64-encoded audio string."""
        return cast(str, self["audio"])


class InputAudioBufferCommitEvent(TypedEvent):
    """Commit the provider's input buffer as one user turn."""

    def __init__(self) -> None:
        """Initialize commit event."""
        super().__init__({"type": "input_audio_buffer.commit"})


class ResponseCreateEvent(TypedEvent):
    """Request a response from the provider.

    Parameters:
        modalities: Requested output modalities.
        instructions: Optional response instructions.
    """

    def __init__(self, modalities: list[OutputModality], instructions: str | None = None):
        """Initialize response request event."""
        response: dict[str, Any] = {"modalities": list(modalities)}
        if instructions:
            response["instructions"] = instructions

        super().__init__({"type": "response.create", "response": response})

    @property
    def modalities(self) -> list[OutputModality]:
        """Requested output modalities."""
        return cast(list[OutputModality], self["response"]["modalities"])


def output_modalities(text_output: bool, audio_output: bool) -> list[OutputModality]:
    """Derive requested output modalities from resolved output flags.

    Text is always requested when neither flag is set so that the provider produces a transcript.
    """
    modalities: list[OutputModality] = []
    if text_output or not audio_output:
        modalities.append("text")
    if audio_output:
        modalities.append("audio")
    return modalities
