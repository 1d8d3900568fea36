"""Session configuration resolver.

Merges three configuration layers into one canonical `SessionConfig`:

1. Service defaults: settings advertised by the server (model, include flags, audio defaults).
2. Session defaults: the default `session` block of those settings.
3. Caller overrides: per-invocation options (type/mode, model, voice, turn detection, ...).

Precedence is caller > session default > service default. Each configuration section has its own merge function so
that the precedence is explicit. Resolution never fails; validation of required fields (model, API key) happens at the
call-setup boundary.

Keys of every layer are snake_cased on entry, so camelCase configuration files and Python callers can be mixed.
"""

import copy
import logging
from typing import Any, Mapping, cast

from ..types.session import AudioInputConfig, AudioOutputConfig, SessionAudioConfig, SessionConfig, SessionType
from .audio_format import convert_keys_to_snake_case, normalize_audio_format

logger = logging.getLogger(__name__)

RESERVED_INCLUDE_TOKENS = frozenset({"text", "audio"})
"""Modality tokens carried by text_output/audio_output rather than include."""

_TRANSCRIPTION_MODES = frozenset({"speech_to_text", "transcription"})
_SPEECH_TO_SPEECH_MODE = "speech_to_speech"

_SCALAR_SESSION_KEYS = ("type", "model", "instructions", "speech_to_speech", "text_output", "audio_output")


def merge_deep(base: Mapping[str, Any] | None, override: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge two mappings key by key.

    Nested mappings merge recursively, so overriding one leaf never erases its siblings. Lists and scalars from the
    override replace the base value. None values in the override are ignored.

    Args:
        base: Lower precedence mapping.
        override: Higher precedence mapping.

    Returns:
        A new merged dictionary; inputs are not mutated.
    """
    merged: dict[str, Any] = copy.deepcopy(dict(base)) if base else {}
    for key, value in (override or {}).items():
        if value is None:
            continue

        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = merge_deep(current, value)
        else:
            merged[key] = copy.deepcopy(value)

    return merged


def sanitize_include(*values: Any) -> list[str]:
    """Trim, drop empty entries, and de-duplicate include flags.

    The union is case-sensitive and preserves first-seen order. Accepts lists of strings or bare strings.
    """
    entries: list[str] = []
    for value in values:
        candidates = value if isinstance(value, (list, tuple)) else [value]
        for entry in candidates:
            if not isinstance(entry, str):
                continue
            trimmed = entry.strip()
            if trimmed and trimmed not in entries:
                entries.append(trimmed)

    return entries


def merge_audio_input(base: Mapping[str, Any] | None, override: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge audio input sections.

    Format and turn detection merge key by key. A noise reduction preset string replaces whatever was there; two
    noise reduction option objects merge key by key.
    """
    merged = merge_deep(base, {key: value for key, value in (override or {}).items() if key != "noise_reduction"})

    noise_reduction = (override or {}).get("noise_reduction")
    if isinstance(noise_reduction, Mapping) and isinstance(merged.get("noise_reduction"), Mapping):
        merged["noise_reduction"] = merge_deep(merged["noise_reduction"], noise_reduction)
    elif noise_reduction is not None:
        merged["noise_reduction"] = copy.deepcopy(noise_reduction)

    return merged


def merge_audio_output(base: Mapping[str, Any] | None, override: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge audio output sections; a caller voice never erases the configured voices list."""
    return merge_deep(base, override)


def merge_audio(base: Mapping[str, Any] | None, override: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge audio sections by delegating to the input and output merges."""
    base = base or {}
    override = override or {}

    merged = merge_deep(
        {key: value for key, value in base.items() if key not in ("input", "output")},
        {key: value for key, value in override.items() if key not in ("input", "output")},
    )

    audio_input = merge_audio_input(base.get("input"), override.get("input"))
    if audio_input:
        merged["input"] = audio_input

    audio_output = merge_audio_output(base.get("output"), override.get("output"))
    if audio_output:
        merged["output"] = audio_output

    return merged


def merge_session(base: Mapping[str, Any] | None, override: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge session sections.

    Scalars from the override win; include flags are unioned; audio merges per section.
    """
    base = base or {}
    override = override or {}
    merged: dict[str, Any] = {}

    for source in (base, override):
        for key, value in source.items():
            if value is None or key in ("audio", "include"):
                continue
            merged[key] = copy.deepcopy(value)

    include = sanitize_include(base.get("include"), override.get("include"))
    if include:
        merged["include"] = include

    audio = merge_audio(base.get("audio"), override.get("audio"))
    if audio:
        merged["audio"] = audio

    return merged


def _caller_session(overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Fold flattened caller options into a session-shaped override."""
    session: dict[str, Any] = {key: overrides[key] for key in _SCALAR_SESSION_KEYS if key in overrides}

    if "include" in overrides:
        session["include"] = overrides["include"]

    audio: dict[str, Any] = copy.deepcopy(overrides.get("audio") or {})
    if overrides.get("voice") is not None:
        audio.setdefault("output", {})["voice"] = overrides["voice"]
    if overrides.get("turn_detection") is not None:
        audio.setdefault("input", {})["turn_detection"] = overrides["turn_detection"]
    if overrides.get("noise_reduction") is not None:
        audio.setdefault("input", {})["noise_reduction"] = overrides["noise_reduction"]
    if audio:
        session["audio"] = audio

    return merge_session(session, overrides.get("session"))


def _resolve_type(
    caller: Mapping[str, Any], overrides: Mapping[str, Any], session_defaults: Mapping[str, Any]
) -> tuple[SessionType, bool | None]:
    """Resolve the session type and whether the mode forces speech-to-speech.

    Returns:
        The session type and True when the mode forces speech-to-speech, False when it forbids it, else None.
    """
    explicit = caller.get("type")
    if isinstance(explicit, str) and explicit.strip():
        return cast(SessionType, explicit.strip()), None

    mode = overrides.get("mode")
    if mode is None and isinstance(overrides.get("session"), Mapping):
        mode = overrides["session"].get("mode")

    if isinstance(mode, str) and mode.strip():
        normalized = mode.strip().lower()
        if normalized in _TRANSCRIPTION_MODES:
            return "transcription", False
        return "realtime", True if normalized == _SPEECH_TO_SPEECH_MODE else None

    default_type = session_defaults.get("type")
    if isinstance(default_type, str) and default_type.strip():
        return cast(SessionType, default_type.strip()), None

    return "transcription", None


def _service_requests_audio(service_defaults: Mapping[str, Any], session_defaults: Mapping[str, Any]) -> bool:
    for source in (service_defaults, session_defaults):
        if source.get("audio_output") is True:
            return True
        output = (source.get("audio") or {}).get("output") or {}
        if isinstance(output, Mapping) and output.get("enabled") is True:
            return True
    return False


def _resolve_format(session: Mapping[str, Any], service_defaults: Mapping[str, Any]) -> Any:
    """Pick the format source: session-level audio input format, then the legacy top-level input format."""
    for source in (session, service_defaults):
        audio_input = (source.get("audio") or {}).get("input") or {}
        if isinstance(audio_input, Mapping) and audio_input.get("format"):
            return audio_input["format"]

    for source in (session, service_defaults):
        if source.get("input_audio_format"):
            return source["input_audio_format"]

    return None


def _resolve_noise_reduction(value: Any) -> str | dict[str, Any] | None:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, Mapping) and value:
        return cast(dict[str, Any], convert_keys_to_snake_case(value))
    return None


def _resolve_audio_input(
    session: Mapping[str, Any], service_defaults: Mapping[str, Any], speech_to_speech: bool
) -> AudioInputConfig:
    defaults_input = (service_defaults.get("audio") or {}).get("input") or {}
    session_input = (session.get("audio") or {}).get("input") or {}
    merged = merge_audio_input(defaults_input, session_input)

    audio_input: AudioInputConfig = {"format": normalize_audio_format(_resolve_format(session, service_defaults))}

    noise_reduction = _resolve_noise_reduction(merged.get("noise_reduction"))
    if noise_reduction is not None:
        audio_input["noise_reduction"] = noise_reduction

    turn_detection = merged.get("turn_detection")
    if isinstance(turn_detection, Mapping) and turn_detection:
        audio_input["turn_detection"] = convert_keys_to_snake_case(turn_detection)

    transcription_defaults = merged.get("transcription_defaults")
    if not speech_to_speech and isinstance(transcription_defaults, Mapping) and transcription_defaults:
        audio_input["transcription_defaults"] = convert_keys_to_snake_case(transcription_defaults)

    return audio_input


def resolve_session_config(
    service_defaults: Mapping[str, Any] | None = None,
    session_defaults: Mapping[str, Any] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> SessionConfig:
    """Resolve the canonical session configuration for one call.

    Args:
        service_defaults: Server-advertised realtime settings (model, include, audio, input_audio_format).
        session_defaults: Default session block (type, model, instructions, audio, include, ...).
        overrides: Per-invocation caller options. Recognized keys: type, mode, model, instructions, voice,
            turn_detection, noise_reduction, include, speech_to_speech, text_output, audio_output, audio, session.

    Returns:
        A fresh session configuration; inputs are never mutated.
    """
    service = cast(dict[str, Any], convert_keys_to_snake_case(service_defaults or {}))
    defaults = cast(dict[str, Any], convert_keys_to_snake_case(session_defaults or {}))
    caller_options = cast(dict[str, Any], convert_keys_to_snake_case(overrides or {}))

    caller = _caller_session(caller_options)
    session = merge_session(defaults, caller)

    session_type, mode_speech_to_speech = _resolve_type(caller, caller_options, defaults)
    speech_to_speech = session.get("speech_to_speech") is True
    if mode_speech_to_speech is not None:
        speech_to_speech = mode_speech_to_speech

    text_output = session.get("text_output")
    if not isinstance(text_output, bool):
        text_output = session_type == "transcription"

    output = merge_audio_output(
        (service.get("audio") or {}).get("output"),
        (session.get("audio") or {}).get("output"),
    )
    audio_output = session_type != "transcription" and (
        session.get("audio_output") is True
        or (isinstance(output, Mapping) and output.get("enabled") is True)
        or speech_to_speech
        or _service_requests_audio(service, defaults)
    )
    if not audio_output:
        speech_to_speech = False

    include = [
        entry
        for entry in sanitize_include(service.get("include"), defaults.get("include"), caller.get("include"))
        if entry.lower() not in RESERVED_INCLUDE_TOKENS
    ]

    audio: SessionAudioConfig = {"input": _resolve_audio_input(session, service, speech_to_speech)}
    if output or audio_output:
        audio_output_config = cast(AudioOutputConfig, convert_keys_to_snake_case(output))
        audio_output_config["enabled"] = audio_output
        audio["output"] = audio_output_config

    config: SessionConfig = {
        "type": session_type,
        "text_output": text_output,
        "audio_output": audio_output,
        "include": include,
        "audio": audio,
    }

    model = session.get("model") or service.get("model")
    if isinstance(model, str) and model:
        config["model"] = model

    if isinstance(session.get("instructions"), str) and session["instructions"]:
        config["instructions"] = session["instructions"]

    if speech_to_speech:
        config["speech_to_speech"] = True

    logger.debug(
        "type=<%s>, text_output=<%s>, audio_output=<%s>, include=<%s> | resolved realtime session config",
        session_type,
        text_output,
        audio_output,
        include,
    )
    return config
