"""Caller-side realtime defaults and recorder behavior settings."""

from contextlib import contextmanager
from typing import Any, Iterator, Literal

from pydantic import BaseModel, ConfigDict, Field

from ..session.audio_format import DEFAULT_CHANNELS, DEFAULT_CODEC, DEFAULT_SAMPLE_RATE


def _default_input_audio_format() -> dict[str, Any]:
    return {"encoding": DEFAULT_CODEC, "sample_rate": DEFAULT_SAMPLE_RATE, "channels": DEFAULT_CHANNELS}


class RealtimeDefaults(BaseModel):
    """Realtime settings advertised to the recorder.

    Attributes:
        model: Realtime model identifier; empty when the server decides.
        transport: Transport flow used by the recorder.
        stream: Whether audio is streamed while recording.
        url: Base URL of the provider realtime API.
        input_audio_format: Legacy top-level input audio format.
        include: Provider include flags.
        audio: Audio input/output defaults.
        session: Default session block.
    """

    model_config = ConfigDict(extra="allow")

    model: str = ""
    transport: Literal["websocket", "webrtc"] = "websocket"
    stream: bool = True
    url: str | None = None
    input_audio_format: dict[str, Any] = Field(default_factory=_default_input_audio_format)
    include: list[str] = Field(default_factory=list)
    audio: dict[str, Any] | None = None
    session: dict[str, Any] | None = None

    def service_defaults(self) -> dict[str, Any]:
        """Service-level layer for session resolution."""
        return self.model_dump(exclude_none=True, exclude={"session"})

    def session_defaults(self) -> dict[str, Any]:
        """Session-level layer for session resolution."""
        return dict(self.session or {})


class RecorderSettings(BaseModel):
    """Application toggles consulted by the recorder.

    Attributes:
        speech_to_text: Whether dictation is enabled.
        text_to_speech: Whether responses are read aloud.
        automatic_playback: Whether synthesized audio plays without a user gesture.
        auto_send_text: Delay in seconds before a finalized transcript is submitted; -1 disables.
    """

    model_config = ConfigDict(validate_assignment=True)

    speech_to_text: bool = False
    text_to_speech: bool = False
    automatic_playback: bool = False
    auto_send_text: float = -1


@contextmanager
def scoped_overrides(settings: BaseModel, **values: Any) -> Iterator[BaseModel]:
    """Temporarily override settings, restoring the previous values on exit.

    Args:
        settings: Settings object to modify in place.
        **values: Field overrides.

    Raises:
        ValueError: If a value names an unknown field.
    """
    fields = type(settings).model_fields
    unknown = [name for name in values if name not in fields]
    if unknown:
        raise ValueError(f"settings=<{unknown}> | unknown settings")

    previous = {name: getattr(settings, name) for name in values}
    try:
        for name, value in values.items():
            setattr(settings, name, value)
        yield settings
    finally:
        for name, value in previous.items():
            setattr(settings, name, value)
