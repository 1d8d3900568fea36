import copy

import pytest

from realtime_speech.session.resolver import (
    merge_audio_input,
    merge_deep,
    merge_session,
    resolve_session_config,
    sanitize_include,
)


@pytest.fixture
def service_defaults():
    return {
        "model": "gpt-realtime-mini",
        "include": ["item.input_audio_transcription.logprobs"],
        "inputAudioFormat": {"encoding": "pcm16", "sampleRate": 24000, "channels": 1},
    }


@pytest.fixture
def session_defaults():
    return {
        "audio": {
            "input": {
                "format": {"encoding": "pcm16"},
                "turnDetection": {"type": "server_vad", "silenceDurationMs": 500},
                "transcriptionDefaults": {"model": "gpt-4o-transcribe", "language": "en"},
            },
            "output": {"voice": "alloy", "voices": ["alloy", "verse"]},
        }
    }


def test_merge_deep_keeps_siblings():
    base = {"output": {"voice": "alloy", "voices": ["alloy", "verse"]}}
    override = {"output": {"voice": "verse"}}

    tru_merged = merge_deep(base, override)
    exp_merged = {"output": {"voice": "verse", "voices": ["alloy", "verse"]}}
    assert tru_merged == exp_merged
    assert base == {"output": {"voice": "alloy", "voices": ["alloy", "verse"]}}


def test_merge_deep_ignores_none():
    assert merge_deep({"a": 1}, {"a": None, "b": 2}) == {"a": 1, "b": 2}


def test_sanitize_include():
    tru_include = sanitize_include([" a ", "b", ""], ["a", "B", 3], "c")
    exp_include = ["a", "b", "B", "c"]
    assert tru_include == exp_include


def test_merge_audio_input_noise_reduction():
    base = {"noise_reduction": {"type": "near_field", "level": 1}, "turn_detection": {"type": "server_vad"}}

    tru_objects = merge_audio_input(base, {"noise_reduction": {"level": 2}})
    exp_objects = {"noise_reduction": {"type": "near_field", "level": 2}, "turn_detection": {"type": "server_vad"}}
    assert tru_objects == exp_objects

    tru_preset = merge_audio_input(base, {"noise_reduction": "far_field"})
    exp_preset = {"noise_reduction": "far_field", "turn_detection": {"type": "server_vad"}}
    assert tru_preset == exp_preset


def test_merge_session_unions_include():
    tru_session = merge_session({"model": "a", "include": ["x"]}, {"model": "b", "include": ["y", "x"]})
    exp_session = {"model": "b", "include": ["x", "y"]}
    assert tru_session == exp_session


def test_resolve_happy_path_transcription(service_defaults):
    session_defaults = {"audio": {"input": {"format": {"encoding": "pcm16"}}}}

    config = resolve_session_config(service_defaults, session_defaults, {})

    assert config["type"] == "transcription"
    assert config["text_output"] is True
    assert config["audio_output"] is False
    assert config["model"] == "gpt-realtime-mini"
    assert config["audio"]["input"]["format"] == {"codec": "pcm16", "sample_rate": 24000, "channels": 1}
    assert "output" not in config["audio"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"type": "transcription", "audio_output": True},
        {"type": "transcription", "speech_to_speech": True},
        {"type": "transcription", "mode": "speech_to_speech"},
        {"type": "transcription", "audio": {"output": {"enabled": True}}},
    ],
)
def test_resolve_transcription_never_outputs_audio(overrides, service_defaults, session_defaults):
    config = resolve_session_config({**service_defaults, "audio_output": True}, session_defaults, overrides)

    assert config["type"] == "transcription"
    assert config["audio_output"] is False
    assert "speech_to_speech" not in config


def test_resolve_include_sanitization():
    overrides = {"include": ["text", " item.input_audio_transcription.logprobs ", "audio"]}

    tru_include = resolve_session_config({}, {}, overrides)["include"]
    exp_include = ["item.input_audio_transcription.logprobs"]
    assert tru_include == exp_include


@pytest.mark.parametrize(
    ("overrides", "exp_type"),
    [
        ({"mode": "speech_to_text"}, "transcription"),
        ({"mode": "Transcription"}, "transcription"),
        ({"mode": "conversation"}, "realtime"),
        ({"mode": "speech_to_speech"}, "realtime"),
        ({"type": "realtime", "mode": "speech_to_text"}, "realtime"),
        ({"session": {"mode": "conversation"}}, "realtime"),
        ({}, "transcription"),
    ],
)
def test_resolve_type(overrides, exp_type):
    assert resolve_session_config({}, {}, overrides)["type"] == exp_type


def test_resolve_type_from_session_defaults():
    assert resolve_session_config({}, {"type": "realtime"}, {})["type"] == "realtime"


def test_resolve_speech_to_speech(session_defaults):
    config = resolve_session_config({}, session_defaults, {"mode": "speech_to_speech", "voice": "verse"})

    assert config["type"] == "realtime"
    assert config["audio_output"] is True
    assert config["speech_to_speech"] is True
    assert config["text_output"] is False
    assert config["audio"]["output"] == {"voice": "verse", "voices": ["alloy", "verse"], "enabled": True}
    assert "transcription_defaults" not in config["audio"]["input"]


def test_resolve_realtime_without_audio_request():
    config = resolve_session_config({}, {}, {"mode": "conversation", "text_output": True})

    assert config["audio_output"] is False
    assert config["text_output"] is True
    assert "speech_to_speech" not in config


def test_resolve_audio_output_from_service_defaults():
    config = resolve_session_config({"audio": {"output": {"enabled": True}}}, {}, {"type": "realtime"})

    assert config["audio_output"] is True
    assert "speech_to_speech" not in config


def test_resolve_audio_input_merge(session_defaults):
    overrides = {"turn_detection": {"silence_duration_ms": 800}, "noise_reduction": "near_field"}

    audio_input = resolve_session_config({}, session_defaults, overrides)["audio"]["input"]

    assert audio_input["turn_detection"] == {"type": "server_vad", "silence_duration_ms": 800}
    assert audio_input["noise_reduction"] == "near_field"
    assert audio_input["transcription_defaults"] == {"model": "gpt-4o-transcribe", "language": "en"}


def test_resolve_format_priority(service_defaults):
    session_defaults = {"audio": {"input": {"format": {"encoding": "g711_ulaw", "sampleRate": 8000}}}}

    tru_format = resolve_session_config(service_defaults, session_defaults, {})["audio"]["input"]["format"]
    exp_format = {"codec": "g711_ulaw", "sample_rate": 8000, "channels": 1}
    assert tru_format == exp_format


def test_resolve_legacy_format(service_defaults):
    tru_format = resolve_session_config(service_defaults, {}, {})["audio"]["input"]["format"]
    exp_format = {"codec": "pcm16", "sample_rate": 24000, "channels": 1}
    assert tru_format == exp_format


def test_resolve_caller_model_and_instructions(service_defaults):
    config = resolve_session_config(service_defaults, {}, {"model": "gpt-realtime", "instructions": "Be brief."})

    assert config["model"] == "gpt-realtime"
    assert config["instructions"] == "Be brief."


def test_resolve_does_not_mutate_inputs(service_defaults, session_defaults):
    overrides = {"voice": "verse", "turn_detection": {"silence_duration_ms": 800}}
    originals = copy.deepcopy((service_defaults, session_defaults, overrides))

    resolve_session_config(service_defaults, session_defaults, overrides)

    assert (service_defaults, session_defaults, overrides) == originals
