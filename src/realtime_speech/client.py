"""HTTP client for the realtime server routes.

Gives recorders the "authenticated HTTP call" capability they need: posting an SDP offer to the call-setup route
(WebRTC flow) and fetching a session descriptor from the bootstrap route (WebSocket flow). Route failures are raised
with the status, message, and code the server returned.
"""

import logging
from typing import Any

import httpx

from .types.exceptions import RealtimeCallError, RealtimeError, RealtimeSessionError
from .types.session import RealtimeCallRequest, RealtimeCallResponse, SessionDescriptor

logger = logging.getLogger(__name__)


def _raise_for_route_error(response: httpx.Response, error_type: type[RealtimeError], default_message: str) -> None:
    if response.is_success:
        return

    try:
        body = response.json()
    except ValueError:
        body = {}

    body = body if isinstance(body, dict) else {}
    message = body.get("error") if isinstance(body.get("error"), str) else default_message
    code = body.get("code") if isinstance(body.get("code"), str) else None
    raise error_type(message, status=response.status_code, code=code)


class RealtimeApiClient:
    """Calls the realtime server routes.

    Attributes:
        base_url: URL prefix the realtime routes are mounted under.
    """

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: URL prefix the realtime routes are mounted under.
            http_client: Client used for requests. A short-lived client is created per request if omitted.
            headers: Extra headers for every request, e.g. the application's own authorization.
        """
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client
        self._headers = headers or {}

    async def create_call(self, request: RealtimeCallRequest) -> RealtimeCallResponse:
        """Post an SDP offer and resolved session to the call-setup route.

        Raises:
            RealtimeCallError: With the route's status, message, and code.
        """
        response = await self._post("/call", dict(request))
        _raise_for_route_error(response, RealtimeCallError, "Failed to create realtime call")

        data = response.json()
        result: RealtimeCallResponse = {"sdp_answer": data.get("sdp_answer", "")}
        if data.get("expires_at") is not None:
            result["expires_at"] = data["expires_at"]
        return result

    async def create_session(self) -> SessionDescriptor:
        """Fetch a session descriptor from the bootstrap route.

        Raises:
            RealtimeSessionError: With the route's status, message, and code.
        """
        response = await self._post("/session", {})
        _raise_for_route_error(response, RealtimeSessionError, "Failed to create realtime session")
        return response.json()

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        url = f"{self.base_url}{path}"
        logger.debug("url=<%s> | posting realtime request", url)

        if self._http_client is not None:
            return await self._http_client.post(url, json=payload, headers=self._headers)

        async with httpx.AsyncClient() as client:
            return await client.post(url, json=payload, headers=self._headers)
