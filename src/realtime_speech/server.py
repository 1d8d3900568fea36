"""HTTP routes for the realtime boundaries.

Mounts the call-setup and session-bootstrap boundaries on a FastAPI router:

- `POST {prefix}/call`: SDP offer plus overrides in, `{"sdp_answer", "expires_at"?}` out.
- `POST {prefix}/session`: session descriptor for the WebSocket flow.

Failures are returned as `{"error": message, "code": code}` with the error's status; `code` is only present when known.

Usage:

    app = FastAPI()
    app.include_router(create_realtime_router(lambda request: app_config))
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from .services import RealtimeCallService, RealtimeSessionService, normalize_call_request
from .types.exceptions import RealtimeError

logger = logging.getLogger(__name__)

AppConfigProvider = Callable[[Request], Mapping[str, Any] | None | Awaitable[Mapping[str, Any] | None]]
"""Returns the application configuration for a request."""


def error_response(error: Exception) -> JSONResponse:
    """Convert an exception into the route error body."""
    if isinstance(error, RealtimeError):
        body: dict[str, Any] = {"error": error.message}
        if error.code:
            body["code"] = error.code
        return JSONResponse(body, status_code=error.status)

    return JSONResponse({"error": str(error) or "Internal server error"}, status_code=500)


async def _read_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}

    return body if isinstance(body, dict) else {}


async def _resolve_app_config(provider: AppConfigProvider, request: Request) -> Mapping[str, Any] | None:
    app_config = provider(request)
    if inspect.isawaitable(app_config):
        return await app_config
    return app_config


def create_realtime_router(
    get_app_config: AppConfigProvider,
    http_client: httpx.AsyncClient | None = None,
    prefix: str = "/realtime",
) -> APIRouter:
    """Create the realtime router.

    Args:
        get_app_config: Returns the application configuration for a request; may be async.
        http_client: Client used for provider requests. Short-lived clients are used if omitted.
        prefix: Route prefix.

    Returns:
        Router exposing `/call` and `/session`.
    """
    router = APIRouter(prefix=prefix, tags=["realtime"])
    call_service = RealtimeCallService(http_client=http_client)
    session_service = RealtimeSessionService(http_client=http_client)

    @router.post("/call")
    async def create_call(request: Request) -> Any:
        """Create a realtime call from an SDP offer."""
        call_request = normalize_call_request(await _read_body(request))
        sdp_offer = call_request.get("sdp_offer")
        if not isinstance(sdp_offer, str) or not sdp_offer.strip():
            return JSONResponse({"error": "Missing SDP offer"}, status_code=400)

        try:
            app_config = await _resolve_app_config(get_app_config, request)
            return await call_service.create_call(app_config, call_request)
        except RealtimeError as error:
            return error_response(error)
        except Exception as error:
            logger.exception("error=<%s> | unexpected failure creating realtime call", error)
            return error_response(error)

    @router.post("/session")
    async def create_session(request: Request) -> Any:
        """Issue a realtime session descriptor."""
        try:
            app_config = await _resolve_app_config(get_app_config, request)
            return await session_service.create_session_descriptor(app_config)
        except RealtimeError as error:
            return error_response(error)
        except Exception as error:
            logger.exception("error=<%s> | unexpected failure creating realtime session", error)
            return error_response(error)

    return router
