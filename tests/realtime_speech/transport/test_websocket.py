import asyncio
import base64
import json
import unittest.mock

import pytest
import websockets
from websockets.frames import Close

from realtime_speech.session.resolver import resolve_session_config
from realtime_speech.transport.media import PcmBufferSource
from realtime_speech.transport.websocket import (
    TRANSCRIPTION_INSTRUCTIONS,
    WebSocketTransport,
    build_response_create,
    client_secret,
    socket_url,
)
from realtime_speech.types.exceptions import NegotiationError, TransportError

_END = object()


class FakeWebSocket:
    """Socket double that records sent messages and yields pushed ones."""

    def __init__(self):
        self.sent = []
        self.close = unittest.mock.AsyncMock()
        self._incoming = asyncio.Queue()

    async def send(self, message):
        self.sent.append(json.loads(message))

    def push(self, item):
        self._incoming.put_nowait(item)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._incoming.get()
        if item is _END:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def websocket():
    return FakeWebSocket()


@pytest.fixture
def mock_connect(websocket):
    async def connect(*args, **kwargs):
        return websocket

    with unittest.mock.patch("realtime_speech.transport.websocket.websockets.connect") as mock_connect:
        mock_connect.side_effect = connect
        yield mock_connect


@pytest.fixture
def descriptor():
    return {
        "url": "wss://api.openai.com/v1/realtime",
        "transport": "websocket",
        "stream": True,
        "input_audio_format": {"encoding": "pcm16", "sample_rate": 24000, "channels": 1},
        "model": "gpt-realtime-mini",
        "session": {"id": "sess_1", "client_secret": {"value": "ek_123"}},
    }


@pytest.fixture
def session_fetcher(descriptor):
    return unittest.mock.AsyncMock(return_value=descriptor)


@pytest.fixture
def audio_source():
    source = PcmBufferSource(bytes(range(100)))
    source.stop = unittest.mock.AsyncMock(wraps=source.stop)
    return source


@pytest.fixture
def handler():
    return unittest.mock.Mock()


@pytest.fixture
def transport(session_fetcher, audio_source):
    return WebSocketTransport(session_fetcher, audio_source, chunk_size=40, connect_timeout=1.0)


@pytest.fixture
def session():
    return resolve_session_config({"model": "gpt-realtime-mini"})


@pytest.mark.parametrize(
    ("session", "exp_secret"),
    [
        ({"client_secret": {"value": "ek_123"}}, "ek_123"),
        ({"client_secret": "ek_456"}, "ek_456"),
        ({"client_secret": {"value": ""}}, None),
        ({}, None),
    ],
)
def test_client_secret(session, exp_secret):
    assert client_secret(session) == exp_secret


@pytest.mark.parametrize(
    ("url", "model", "exp_url"),
    [
        ("wss://api.openai.com/v1/realtime", "gpt-realtime", "wss://api.openai.com/v1/realtime?model=gpt-realtime"),
        ("wss://proxy.example.com/rt?region=eu", "m", "wss://proxy.example.com/rt?region=eu&model=m"),
        ("wss://proxy.example.com/rt?model=fixed", "m", "wss://proxy.example.com/rt?model=fixed"),
        ("wss://proxy.example.com/rt", "", "wss://proxy.example.com/rt"),
    ],
)
def test_socket_url(url, model, exp_url, descriptor):
    descriptor.update({"url": url, "model": model})

    assert socket_url(descriptor) == exp_url


def test_build_response_create_transcription(session):
    event = build_response_create(session)

    assert event["response"] == {"modalities": ["text"], "instructions": TRANSCRIPTION_INSTRUCTIONS}


def test_build_response_create_speech_to_speech():
    event = build_response_create(resolve_session_config({}, {}, {"mode": "speech_to_speech"}))

    assert event["response"] == {"modalities": ["audio"]}


@pytest.mark.asyncio
async def test_start(transport, session, handler, mock_connect, websocket):
    started = await transport.start(session, handler, lambda: False)

    assert started is True
    handler.on_status.assert_called_once_with("negotiating")
    handler.on_open.assert_called_once_with()

    mock_connect.assert_called_once_with(
        "wss://api.openai.com/v1/realtime?model=gpt-realtime-mini",
        additional_headers=[("Authorization", "Bearer ek_123"), ("OpenAI-Beta", "realtime=v1")],
    )

    tru_types = [message["type"] for message in websocket.sent]
    exp_types = [
        "input_audio_buffer.append",
        "input_audio_buffer.append",
        "input_audio_buffer.append",
        "input_audio_buffer.commit",
        "response.create",
    ]
    assert tru_types == exp_types

    tru_audio = b"".join(base64.b64decode(message["audio"]) for message in websocket.sent[:3])
    exp_audio = bytes(range(100))
    assert tru_audio == exp_audio

    await transport.stop()


@pytest.mark.asyncio
async def test_start_aborted_after_fetch(transport, session, handler, mock_connect):
    started = await transport.start(session, handler, lambda: True)

    assert started is False
    mock_connect.assert_not_called()


@pytest.mark.asyncio
async def test_start_missing_client_secret(transport, session, handler, descriptor, mock_connect):
    descriptor["session"] = {"id": "sess_1"}

    with pytest.raises(NegotiationError, match="client credentials") as exc_info:
        await transport.start(session, handler, lambda: False)

    assert exc_info.value.status == 502
    mock_connect.assert_not_called()


@pytest.mark.asyncio
async def test_start_connect_timeout(session_fetcher, audio_source, session, handler):
    async def connect(*args, **kwargs):
        await asyncio.sleep(10)

    transport = WebSocketTransport(session_fetcher, audio_source, connect_timeout=0.01)

    with unittest.mock.patch("realtime_speech.transport.websocket.websockets.connect", side_effect=connect):
        with pytest.raises(TransportError) as exc_info:
            await transport.start(session, handler, lambda: False)

    assert exc_info.value.code == "timeout"
    handler.on_open.assert_not_called()


@pytest.mark.asyncio
async def test_start_connect_failure(transport, session, handler, mock_connect):
    mock_connect.side_effect = OSError("Connection refused")

    with pytest.raises(TransportError, match="Connection refused") as exc_info:
        await transport.start(session, handler, lambda: False)

    assert exc_info.value.status == 503


@pytest.mark.asyncio
async def test_receive(transport, session, handler, mock_connect, websocket):
    await transport.start(session, handler, lambda: False)

    message = '{"type":"conversation.item.input_audio_transcription.delta","delta":"hi"}'
    websocket.push(message)
    websocket.push(_END)
    await transport._tasks.wait()

    handler.on_message.assert_called_once_with(message)
    handler.on_close.assert_called_once_with(None)


@pytest.mark.asyncio
async def test_receive_connection_closed_error(transport, session, handler, mock_connect, websocket):
    await transport.start(session, handler, lambda: False)

    websocket.push(websockets.ConnectionClosedError(Close(1011, "internal error"), None))
    await transport._tasks.wait()

    error = handler.on_close.call_args.args[0]
    assert isinstance(error, TransportError)
    assert error.code == "1011"


@pytest.mark.asyncio
async def test_stop(transport, session, handler, mock_connect, websocket, audio_source):
    await transport.start(session, handler, lambda: False)

    await transport.stop()
    await transport.stop()

    websocket.close.assert_awaited_once()
    assert audio_source.stop.await_count == 2
    assert len(transport._tasks) == 0
    handler.on_close.assert_not_called()
