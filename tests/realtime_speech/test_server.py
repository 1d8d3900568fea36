import json
import logging
import unittest.mock

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from realtime_speech.server import create_realtime_router, error_response
from realtime_speech.types.exceptions import NegotiationError, TransportError


@pytest.fixture
def app_config():
    return {"speech": {"stt": {"realtime": {"apiKey": "sk-test", "model": "gpt-realtime-mini"}}}}


@pytest.fixture
def get_app_config(app_config):
    return unittest.mock.Mock(return_value=app_config)


@pytest.fixture
def requests():
    return []


@pytest.fixture
def respond():
    def respond(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/sessions"):
            return httpx.Response(200, json={"id": "sess_1", "client_secret": {"value": "ek_123"}})
        return httpx.Response(201, json={"sdp": "answer-sdp", "expires_at": 1700000000})

    return respond


@pytest.fixture
def client(get_app_config, requests, respond):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return respond(request)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    app = FastAPI()
    app.include_router(create_realtime_router(get_app_config, http_client=http_client))
    return TestClient(app)


def test_create_call(client, requests):
    response = client.post("/realtime/call", json={"sdpOffer": "offer-sdp", "model": "gpt-realtime"})

    assert response.status_code == 200
    assert response.json() == {"sdp_answer": "answer-sdp", "expires_at": 1700000000}

    body = requests[0].content.decode()
    assert "offer-sdp" in body
    assert '"model": "gpt-realtime"' in body


@pytest.mark.parametrize(
    "kwargs",
    [
        {"json": {}},
        {"json": {"sdp_offer": "  "}},
        {"json": ["offer-sdp"]},
        {"content": b"not json", "headers": {"Content-Type": "application/json"}},
    ],
)
def test_create_call_missing_sdp_offer(kwargs, client, get_app_config, requests):
    response = client.post("/realtime/call", **kwargs)

    assert response.status_code == 400
    assert response.json() == {"error": "Missing SDP offer"}
    get_app_config.assert_not_called()
    assert requests == []


def test_create_call_missing_config(client, get_app_config, requests):
    get_app_config.return_value = None

    response = client.post("/realtime/call", json={"sdp_offer": "offer-sdp"})

    assert response.status_code == 404
    assert response.json() == {"error": "Realtime STT is not configured"}
    assert requests == []


@pytest.mark.parametrize(
    "respond",
    [lambda request: httpx.Response(401, json={"error": {"message": "Unauthorized", "code": "ERR_UNAUTHORIZED"}})],
)
def test_create_call_provider_error(respond, client):
    response = client.post("/realtime/call", json={"sdp_offer": "offer-sdp"})

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized", "code": "ERR_UNAUTHORIZED"}


def test_create_call_unexpected_error(client, get_app_config, caplog):
    get_app_config.side_effect = RuntimeError("config store offline")

    with caplog.at_level(logging.ERROR, logger="realtime_speech.server"):
        response = client.post("/realtime/call", json={"sdp_offer": "offer-sdp"})

    assert response.status_code == 500
    assert response.json() == {"error": "config store offline"}
    assert "unexpected failure creating realtime call" in caplog.text


def test_create_session(client, requests):
    response = client.post("/realtime/session")

    assert response.status_code == 200
    descriptor = response.json()
    assert descriptor["session"] == {"id": "sess_1", "client_secret": {"value": "ek_123"}}
    assert descriptor["model"] == "gpt-realtime-mini"
    assert descriptor["transport"] == "websocket"
    assert requests[0].headers["Authorization"] == "Bearer sk-test"


def test_create_session_async_config_provider(app_config, requests):
    async def get_app_config(request):
        return app_config

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"client_secret": {"value": "ek_123"}})

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    app = FastAPI()
    app.include_router(create_realtime_router(get_app_config, http_client=http_client, prefix="/api/realtime"))

    response = TestClient(app).post("/api/realtime/session")

    assert response.status_code == 200
    assert response.json()["session"] == {"client_secret": {"value": "ek_123"}}
    assert len(requests) == 1


def test_create_session_missing_api_key(client, get_app_config, requests):
    get_app_config.return_value = {"speech": {"stt": {"realtime": {"model": "gpt-realtime-mini"}}}}

    response = client.post("/realtime/session")

    assert response.status_code == 500
    assert response.json() == {"error": "Realtime speech API key is not configured"}
    assert requests == []


def test_create_session_unexpected_error(client, get_app_config):
    get_app_config.side_effect = KeyError()

    response = client.post("/realtime/session")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


@pytest.mark.parametrize(
    ("error", "exp_status", "exp_body"),
    [
        (NegotiationError("Failed to create SDP offer"), 500, {"error": "Failed to create SDP offer"}),
        (TransportError("closed", code="1011"), 503, {"error": "closed", "code": "1011"}),
        (ValueError("bad value"), 500, {"error": "bad value"}),
    ],
)
def test_error_response(error, exp_status, exp_body):
    response = error_response(error)

    assert response.status_code == exp_status
    assert json.loads(response.body) == exp_body
