"""Application configuration loading.

The application configuration is an opaque dictionary; the realtime speech engine only reads its
`speech.stt.realtime` block. Configuration can be given as a dictionary or loaded from a JSON file:

    config = load_app_config("file:///etc/app/config.json")
    realtime = get_realtime_config(config)

String values of the exact form `${VAR_NAME}` in the API key are resolved against the process environment.
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping, cast

import jsonschema
from jsonschema import ValidationError

from ..session.audio_format import convert_keys_to_snake_case
from ..types.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_ENV_REFERENCE = re.compile(r"^\$\{([^}]+)\}$")

_FORMAT_SCHEMA = {
    "anyOf": [
        {"type": "string"},
        {
            "type": "object",
            "properties": {
                "encoding": {"type": ["string", "object"]},
                "codec": {"type": "string"},
                "sample_rate": {"type": "number"},
                "rate": {"type": "number"},
                "channels": {"type": "number"},
            },
        },
    ]
}

# JSON Schema for the realtime speech block, validated after keys are snake_cased
REALTIME_CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Realtime Speech Configuration",
    "description": "Configuration of the realtime speech-to-text block (speech.stt.realtime)",
    "type": "object",
    "properties": {
        "api_key": {"description": "Provider API key or ${ENV_VAR} reference", "type": "string"},
        "model": {"description": "Realtime model identifier", "type": "string"},
        "url": {"description": "Base URL of the provider realtime API", "type": "string"},
        "transport": {"description": "Transport used by clients", "type": "string", "enum": ["websocket", "webrtc"]},
        "stream": {"description": "Whether clients stream audio while recording", "type": "boolean"},
        "include": {"description": "Provider include flags", "type": "array", "items": {"type": "string"}},
        "input_audio_format": _FORMAT_SCHEMA,
        "audio": {"description": "Audio input/output defaults", "type": "object"},
        "session": {"description": "Default session block", "type": "object"},
    },
}

APP_CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Application Configuration",
    "type": "object",
    "properties": {
        "speech": {
            "type": "object",
            "properties": {"stt": {"type": "object", "properties": {"realtime": {"type": "object"}}}},
        },
    },
}

# Pre-compile validators
_APP_VALIDATOR = jsonschema.Draft7Validator(APP_CONFIG_SCHEMA)
_REALTIME_VALIDATOR = jsonschema.Draft7Validator(REALTIME_CONFIG_SCHEMA)


def _validate(validator: jsonschema.Draft7Validator, config: Any) -> None:
    try:
        validator.validate(config)
    except ValidationError as e:
        error_path = " -> ".join(str(p) for p in e.absolute_path) if e.absolute_path else "root"
        raise ConfigurationError(f"Configuration validation error at {error_path}: {e.message}") from e


def load_app_config(config: str | Mapping[str, Any]) -> dict[str, Any]:
    """Load the application configuration from a file or dictionary.

    Args:
        config: Either a file path (with optional file:// prefix) or a configuration dictionary.

    Returns:
        The validated configuration dictionary.

    Raises:
        FileNotFoundError: If the configuration file doesn't exist.
        json.JSONDecodeError: If the configuration file contains invalid JSON.
        ConfigurationError: If the configuration does not match the expected shape.
    """
    if isinstance(config, str):
        file_path = config.removeprefix("file://")

        config_path = Path(file_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(config_path, "r") as f:
            config_dict = json.load(f)
    elif isinstance(config, Mapping):
        config_dict = dict(config)
    else:
        raise ConfigurationError("Config must be a file path string or dictionary")

    _validate(_APP_VALIDATOR, config_dict)
    return cast(dict[str, Any], config_dict)


def extract_env_variable(value: Any) -> Any:
    """Resolve a `${VAR_NAME}` reference against the process environment.

    Anything that is not exactly one reference is returned unchanged, as is a reference to an unset variable.
    """
    if not isinstance(value, str):
        return value

    match = _ENV_REFERENCE.match(value.strip())
    if not match:
        return value

    resolved = os.environ.get(match.group(1))
    if resolved is None:
        logger.debug("variable=<%s> | environment variable is not set", match.group(1))
        return value

    return resolved


def get_realtime_config(app_config: Mapping[str, Any] | None) -> dict[str, Any]:
    """Extract and validate the realtime speech block of the application configuration.

    Args:
        app_config: Application configuration.

    Returns:
        The realtime block with snake_case keys and the API key resolved.

    Raises:
        ConfigurationError: 404 when the block is missing, 500 when the model or API key is missing or when the block
            is malformed.
    """
    speech = (app_config or {}).get("speech")
    stt = speech.get("stt") if isinstance(speech, Mapping) else None
    realtime = stt.get("realtime") if isinstance(stt, Mapping) else None
    if not isinstance(realtime, Mapping):
        raise ConfigurationError("Realtime STT is not configured", status=404)

    config = cast(dict[str, Any], convert_keys_to_snake_case(realtime))

    model = config.get("model")
    if not isinstance(model, str) or not model.strip():
        raise ConfigurationError("Realtime STT model is not configured")

    api_key = extract_env_variable(config.get("api_key"))
    if not isinstance(api_key, str) or not api_key.strip():
        raise ConfigurationError("Realtime speech API key is not configured")

    config["model"] = model.strip()
    config["api_key"] = api_key.strip()

    _validate(_REALTIME_VALIDATOR, config)
    logger.debug("model=<%s>, transport=<%s> | realtime config loaded", config["model"], config.get("transport"))
    return config
