"""Provider session payloads.

Builds the JSON session documents sent to the provider at the HTTP boundaries: the call-setup session (WebRTC flow)
and the bootstrap session (WebSocket flow). Both take the server-side realtime configuration plus, for call setup, the
caller's `RealtimeCallRequest` overrides, and emit the provider's snake_case field names.
"""

from typing import Any, Mapping, cast

from ..types.session import InputAudioFormat, RealtimeCallRequest
from .audio_format import DEFAULT_CHANNELS, DEFAULT_SAMPLE_RATE, convert_keys_to_snake_case, normalize_audio_format
from .resolver import RESERVED_INCLUDE_TOKENS, merge_deep, sanitize_include


def _path(source: Mapping[str, Any] | None, *keys: str) -> Any:
    """Walk nested mappings, returning None as soon as a level is missing."""
    value: Any = source
    for key in keys:
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    return value


def _first(*values: Any) -> Any:
    """Return the first value that is not None."""
    return next((value for value in values if value is not None), None)


def to_wire_format(descriptor: Any) -> dict[str, Any]:
    """Normalize an audio format and rename the codec to the provider's "type" field."""
    normalized = dict(normalize_audio_format(descriptor))
    return {"type": normalized.pop("codec"), **normalized}


def partition_include(
    values: list[str], speech_to_speech: bool, include_items: list[str]
) -> tuple[list[str], list[str]]:
    """Split include flags into output modalities and provider include entries.

    Args:
        values: Flags that may carry legacy modality tokens ("text"/"audio").
        speech_to_speech: Whether audio output is forced.
        include_items: Flags that only ever contribute include entries.

    Returns:
        Output modalities and include entries, both de-duplicated in first-seen order.
    """
    modalities: list[str] = []
    include: list[str] = []

    for entry in values:
        normalized = entry.lower()
        if normalized in RESERVED_INCLUDE_TOKENS:
            if normalized not in modalities:
                modalities.append(normalized)
        elif entry not in include:
            include.append(entry)

    for entry in include_items:
        if entry.lower() not in RESERVED_INCLUDE_TOKENS and entry not in include:
            include.append(entry)

    if speech_to_speech and "audio" not in modalities:
        modalities.append("audio")

    return modalities, include


def _noise_reduction(value: Any) -> dict[str, Any] | None:
    if isinstance(value, str):
        preset = value.strip()
        return {"type": preset} if preset else None
    if isinstance(value, Mapping) and value:
        return cast(dict[str, Any], convert_keys_to_snake_case(value))
    return None


def build_call_session(
    realtime_config: Mapping[str, Any], request: RealtimeCallRequest | Mapping[str, Any]
) -> dict[str, Any]:
    """Build the provider session for the call-setup boundary.

    Args:
        realtime_config: Server-side realtime configuration (`speech.stt.realtime`).
        request: Caller's call request; its `session` is usually a resolved `SessionConfig`.

    Returns:
        Provider session payload.
    """
    config = cast(dict[str, Any], convert_keys_to_snake_case(realtime_config))
    overrides = cast(dict[str, Any], convert_keys_to_snake_case({k: v for k, v in request.items() if k != "sdp_offer"}))
    session_config: dict[str, Any] = config.get("session") or {}
    override_session: dict[str, Any] = overrides.get("session") or {}

    session_type = _first(override_session.get("type"), overrides.get("type"), session_config.get("type"), "realtime")
    speech_to_speech = session_type != "transcription" and bool(
        _first(override_session.get("speech_to_speech"), session_config.get("speech_to_speech"))
    )

    session: dict[str, Any] = {
        "type": session_type,
        "model": _first(override_session.get("model"), overrides.get("model"), session_config.get("model"))
        or config.get("model"),
    }

    mode = _first(override_session.get("mode"), overrides.get("mode"), session_config.get("mode"))
    if mode:
        session["mode"] = mode

    instructions = _first(
        override_session.get("instructions"), overrides.get("instructions"), session_config.get("instructions")
    )
    if instructions:
        session["instructions"] = instructions

    include_values = sanitize_include(
        config.get("include"),
        overrides.get("include"),
        session_config.get("output_modalities"),
        session_config.get("modalities"),
        override_session.get("output_modalities"),
    )
    include_items = sanitize_include(session_config.get("include"), override_session.get("include"))
    audio_requested = session_type != "transcription" and (
        speech_to_speech or override_session.get("audio_output") is True
    )
    modalities, include = partition_include(include_values, audio_requested, include_items)

    if session_type != "transcription":
        session["output_modalities"] = ["audio"] if "audio" in modalities else ["text"]

    if include:
        session["include"] = include

    audio_input: dict[str, Any] = {
        "format": to_wire_format(
            _first(
                _path(override_session, "audio", "input", "format"),
                _path(overrides, "audio", "input", "format"),
                _path(session_config, "audio", "input", "format"),
                _path(config, "audio", "input", "format"),
                config.get("input_audio_format"),
            )
        )
    }

    configured_input = _first(_path(session_config, "audio", "input"), _path(config, "audio", "input")) or {}

    noise_reduction = _noise_reduction(
        _first(
            _path(override_session, "audio", "input", "noise_reduction"),
            _path(overrides, "audio", "input", "noise_reduction"),
            overrides.get("noise_reduction"),
            configured_input.get("noise_reduction"),
        )
    )
    if noise_reduction is not None:
        audio_input["noise_reduction"] = noise_reduction

    if not speech_to_speech:
        transcription = _first(
            _path(override_session, "audio", "input", "transcription_defaults"),
            configured_input.get("transcription_defaults"),
        )
        if isinstance(transcription, Mapping) and transcription:
            audio_input["transcription"] = dict(transcription)

    override_turn_detection = _first(
        _path(override_session, "audio", "input", "turn_detection"),
        _path(overrides, "audio", "input", "turn_detection"),
        overrides.get("turn_detection"),
    )
    turn_detection = merge_deep(
        configured_input.get("turn_detection") if isinstance(configured_input.get("turn_detection"), Mapping) else None,
        override_turn_detection if isinstance(override_turn_detection, Mapping) else None,
    )
    if turn_detection:
        audio_input["turn_detection"] = turn_detection

    audio: dict[str, Any] = {"input": audio_input}

    voice = _first(
        _path(override_session, "audio", "output", "voice"),
        overrides.get("voice"),
        _path(session_config, "audio", "output", "voice"),
        session_config.get("voice"),
    )
    voices = _first(
        _path(override_session, "audio", "output", "voices"),
        _path(session_config, "audio", "output", "voices"),
        session_config.get("voices"),
        _path(overrides, "audio", "output", "voices"),
    )

    audio_output: dict[str, Any] = {}
    if voice and "audio" in modalities:
        audio_output["voice"] = voice
    if isinstance(voices, list) and voices:
        audio_output["voices"] = list(voices)
    if audio_output:
        audio["output"] = audio_output

    session["audio"] = audio
    return session


def bootstrap_input_format(realtime_config: Mapping[str, Any]) -> InputAudioFormat:
    """Resolve the input format advertised by the bootstrap boundary.

    Uses the same normalization as the call payload, reporting the codec as "encoding".
    """
    config = cast(dict[str, Any], convert_keys_to_snake_case(realtime_config))
    normalized = normalize_audio_format(
        _first(_path(config, "audio", "input", "format"), config.get("input_audio_format"))
    )
    return {
        "encoding": normalized.get("codec", "pcm16"),
        "sample_rate": normalized.get("sample_rate", DEFAULT_SAMPLE_RATE),
        "channels": normalized.get("channels", DEFAULT_CHANNELS),
    }


def build_bootstrap_session(realtime_config: Mapping[str, Any]) -> dict[str, Any]:
    """Build the provider session for the bootstrap boundary."""
    return {
        "model": realtime_config.get("model"),
        "input_audio_format": dict(bootstrap_input_format(realtime_config)),
    }
