"""Audio format normalization.

Turns heterogeneous format descriptors ("encoding"/"codec", "rate"/"sampleRate"/"sample_rate", ...) into one canonical
`AudioFormat`. Also hosts the snake_case key conversion used wherever caller configuration crosses into the provider's
wire format.
"""

import re
from typing import Any, Mapping, cast

from ..types.session import AudioFormat

DEFAULT_CODEC = "pcm16"
DEFAULT_SAMPLE_RATE = 24000
DEFAULT_CHANNELS = 1

_FORMAT_KEYS = frozenset({"encoding", "codec", "rate", "sampleRate", "sample_rate", "channels"})

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATORS = re.compile(r"[-\s]+")
_REPEATED_UNDERSCORES = re.compile(r"__+")


def to_snake_case(key: str) -> str:
    """Convert a camelCase, kebab-case, or spaced key to snake_case."""
    key = _CAMEL_BOUNDARY.sub(r"\1_\2", key)
    key = _SEPARATORS.sub("_", key)
    key = _REPEATED_UNDERSCORES.sub("_", key)
    return key.lower()


def convert_keys_to_snake_case(value: Any) -> Any:
    """Recursively convert mapping keys to snake_case.

    None values are dropped from mappings. Lists are converted element-wise. Anything else is returned unchanged.
    """
    if isinstance(value, list):
        return [convert_keys_to_snake_case(entry) for entry in value]

    if not isinstance(value, Mapping):
        return value

    return {
        to_snake_case(str(key)): convert_keys_to_snake_case(entry)
        for key, entry in value.items()
        if entry is not None
    }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_audio_format(descriptor: Any = None) -> AudioFormat:
    """Normalize an arbitrary format descriptor into a canonical audio format.

    Rules:

    - A string "encoding" becomes the codec verbatim.
    - An object "encoding" contributes its "codec" field as the codec; its remaining keys are snake_cased and merged.
    - Otherwise a string "codec" is used, else the codec defaults to "pcm16".
    - Numeric rate ("rate", then "sampleRate", then "sample_rate") and channels pass through, else default to
      24000 Hz and 1 channel.
    - Any other descriptor keys are snake_cased and merged.

    Never raises; a missing or malformed descriptor yields the defaults.

    Args:
        descriptor: Format descriptor (mapping, bare codec string, or None).

    Returns:
        Canonical audio format.
    """
    if isinstance(descriptor, str) and descriptor.strip():
        return {"codec": descriptor.strip(), "sample_rate": DEFAULT_SAMPLE_RATE, "channels": DEFAULT_CHANNELS}

    if not isinstance(descriptor, Mapping):
        return {"codec": DEFAULT_CODEC, "sample_rate": DEFAULT_SAMPLE_RATE, "channels": DEFAULT_CHANNELS}

    encoding = descriptor.get("encoding")
    codec = DEFAULT_CODEC
    extra: dict[str, Any] = {}

    if isinstance(encoding, str):
        codec = encoding
    elif isinstance(encoding, Mapping):
        if isinstance(encoding.get("codec"), str):
            codec = encoding["codec"]
        extra = convert_keys_to_snake_case({key: value for key, value in encoding.items() if key != "codec"})
    elif isinstance(descriptor.get("codec"), str):
        codec = descriptor["codec"]

    sample_rate: Any = DEFAULT_SAMPLE_RATE
    for key in ("rate", "sampleRate", "sample_rate"):
        if _is_number(descriptor.get(key)):
            sample_rate = descriptor[key]
            break

    channels = descriptor.get("channels")
    rest = {key: value for key, value in descriptor.items() if key not in _FORMAT_KEYS}

    normalized: dict[str, Any] = {
        "codec": codec,
        "sample_rate": sample_rate,
        "channels": channels if _is_number(channels) else DEFAULT_CHANNELS,
        **convert_keys_to_snake_case(rest),
        **extra,
    }
    return cast(AudioFormat, normalized)
