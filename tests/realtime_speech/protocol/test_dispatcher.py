import json
import logging
import unittest.mock

import pytest

from realtime_speech.protocol.dispatcher import (
    DEFAULT_RESPONSE_ERROR,
    EventDispatcher,
    completed_text,
    delta_text,
    response_error,
)
from realtime_speech.transcript import TranscriptReconciler
from realtime_speech.types.exceptions import ProtocolError


@pytest.fixture
def on_delta():
    return unittest.mock.Mock()


@pytest.fixture
def on_completed():
    return unittest.mock.Mock()


@pytest.fixture
def on_error():
    return unittest.mock.Mock()


@pytest.fixture
def on_speech_output_delta():
    return unittest.mock.Mock()


@pytest.fixture
def on_speech_output_completed():
    return unittest.mock.Mock()


@pytest.fixture
def dispatcher(on_delta, on_completed, on_error, on_speech_output_delta, on_speech_output_completed):
    return EventDispatcher(
        TranscriptReconciler(),
        on_delta=on_delta,
        on_completed=on_completed,
        on_error=on_error,
        on_speech_output_delta=on_speech_output_delta,
        on_speech_output_completed=on_speech_output_completed,
    )


def delta_event(delta):
    return {"type": "conversation.item.input_audio_transcription.delta", "delta": delta}


@pytest.mark.parametrize(
    ("event", "exp_text"),
    [
        ({"delta": "Hel"}, "Hel"),
        ({"delta": {"text": "lo"}}, "lo"),
        ({"text": "fallback"}, "fallback"),
        ({"delta": {"alternatives": [{"text": "alt"}]}}, "alt"),
        ({}, ""),
    ],
)
def test_delta_text(event, exp_text):
    assert delta_text(event) == exp_text


@pytest.mark.parametrize(
    ("event", "exp_text"),
    [
        ({"transcription": "final", "transcript": "other"}, "final"),
        ({"transcript": "spoken"}, "spoken"),
        ({"text": {"text": "nested"}}, "nested"),
        ({"transcription": {"items": [{"text": "a"}, {"text": "b"}]}}, "a b"),
        ({}, ""),
    ],
)
def test_completed_text(event, exp_text):
    assert completed_text(event) == exp_text


def test_response_error():
    error = response_error({"error": {"message": "Rate limited", "code": "rate_limit_exceeded", "status": 429}})

    assert isinstance(error, ProtocolError)
    assert error.as_dict() == {"status": 429, "message": "Rate limited", "code": "rate_limit_exceeded"}


@pytest.mark.parametrize("event", [{}, {"error": {}}, {"error": {"message": "   "}}])
def test_response_error_default_message(event):
    error = response_error(event)

    assert error.message == DEFAULT_RESPONSE_ERROR
    assert error.status == 502
    assert error.code is None


def test_dispatch_deltas(dispatcher, on_delta):
    dispatcher.dispatch(delta_event("Hello"))
    dispatcher.dispatch(delta_event({"text": " world"}))
    dispatcher.dispatch(delta_event(""))

    tru_calls = on_delta.call_args_list
    exp_calls = [unittest.mock.call("Hello"), unittest.mock.call("Hello world")]
    assert tru_calls == exp_calls
    assert dispatcher.reconciler.text == "Hello world"


def test_dispatch_transcription_completed(dispatcher, on_completed):
    dispatcher.dispatch(delta_event("hello wrld"))
    dispatcher.dispatch(
        {"type": "conversation.item.input_audio_transcription.completed", "transcription": "Hello, world."}
    )

    on_completed.assert_called_once_with("Hello, world.")
    assert dispatcher.reconciler.text == "Hello, world."


def test_dispatch_transcription_completed_without_text(dispatcher, on_completed):
    dispatcher.dispatch(delta_event("partial"))
    dispatcher.dispatch({"type": "conversation.item.input_audio_transcription.completed"})

    on_completed.assert_called_once_with("partial")


@pytest.mark.parametrize("event_type", ["response.completed", "response.finished"])
def test_dispatch_response_completed(event_type, dispatcher, on_completed):
    dispatcher.dispatch(delta_event("so far"))
    dispatcher.dispatch({"type": event_type, "response": {"output_text": ["ignored"]}})

    on_completed.assert_called_once_with("so far")


def test_dispatch_response_error(dispatcher, on_error, on_completed, caplog):
    event = {"type": "response.error", "error": {"message": "Unauthorized", "code": "ERR_UNAUTHORIZED", "status": 401}}

    with caplog.at_level(logging.ERROR, logger="realtime_speech.protocol.dispatcher"):
        dispatcher.dispatch(event)

    on_error.assert_called_once()
    tru_error = on_error.call_args.args[0]
    assert tru_error.as_dict() == {"status": 401, "message": "Unauthorized", "code": "ERR_UNAUTHORIZED"}
    on_completed.assert_not_called()

    tru_args = [record.args for record in caplog.records]
    exp_args = [(401, "Unauthorized", "ERR_UNAUTHORIZED")]
    assert tru_args == exp_args


@pytest.mark.parametrize(
    ("event_type", "exp_completed"),
    [
        ("response.output_audio.delta", False),
        ("response.output_audio.completed", True),
        ("response.speech.delta", False),
        ("response.speech.segment.completed", True),
    ],
)
def test_dispatch_speech_output(
    event_type, exp_completed, dispatcher, on_speech_output_delta, on_speech_output_completed, on_delta
):
    event = {"type": event_type, "delta": "AAAA"}

    dispatcher.dispatch(event)

    on_speech_output_delta.assert_called_once_with(event)
    assert on_speech_output_completed.called is exp_completed
    on_delta.assert_not_called()


def test_dispatch_speech_output_without_observers(on_delta, on_completed, on_error):
    dispatcher = EventDispatcher(TranscriptReconciler(), on_delta, on_completed, on_error)

    dispatcher.dispatch({"type": "response.output_audio.completed"})

    on_completed.assert_not_called()


@pytest.mark.parametrize(
    "event",
    [None, "text", ["list"], {"no": "type"}, {"type": 5}, {"type": "session.updated"}, {"type": "response.created"}],
)
def test_dispatch_ignores_unknown(event, dispatcher, on_delta, on_completed, on_error):
    dispatcher.dispatch(event)

    on_delta.assert_not_called()
    on_completed.assert_not_called()
    on_error.assert_not_called()


def test_dispatch_message(dispatcher, on_delta):
    dispatcher.dispatch_message(json.dumps(delta_event("from text")))
    dispatcher.dispatch_message(json.dumps(delta_event(" and bytes")).encode())

    assert on_delta.call_args_list[-1] == unittest.mock.call("from text and bytes")


def test_dispatch_message_invalid_json(dispatcher, on_delta, caplog):
    with caplog.at_level(logging.WARNING, logger="realtime_speech.protocol.dispatcher"):
        dispatcher.dispatch_message("{not json")

    on_delta.assert_not_called()
    assert "failed to parse realtime event" in caplog.text
