"""Session configuration: format normalization, layered resolution, and provider payloads."""

from .audio_format import convert_keys_to_snake_case, normalize_audio_format, to_snake_case
from .payload import bootstrap_input_format, build_bootstrap_session, build_call_session, to_wire_format
from .resolver import (
    merge_audio,
    merge_audio_input,
    merge_audio_output,
    merge_session,
    resolve_session_config,
    sanitize_include,
)

__all__ = [
    "bootstrap_input_format",
    "build_bootstrap_session",
    "build_call_session",
    "convert_keys_to_snake_case",
    "merge_audio",
    "merge_audio_input",
    "merge_audio_output",
    "merge_session",
    "normalize_audio_format",
    "resolve_session_config",
    "sanitize_include",
    "to_snake_case",
    "to_wire_format",
]
