"""Session-bootstrap boundary.

Issues a short-lived provider session for the WebSocket flow. The server turns the realtime configuration into a
provider session request, attaches its API key, and wraps the provider's raw session JSON (which carries the ephemeral
client credentials) with the transport metadata the client needs to connect.
"""

import logging
from typing import Any, Mapping
from urllib.parse import urlsplit, urlunsplit

import httpx

from ..config import get_realtime_config
from ..session.payload import bootstrap_input_format, build_bootstrap_session
from ..types.exceptions import RealtimeError, RealtimeSessionError
from ..types.session import SessionDescriptor
from ._http import describe_provider_error

logger = logging.getLogger(__name__)

DEFAULT_REALTIME_URL = "wss://api.openai.com/v1/realtime"
DEFAULT_SESSION_ENDPOINT = "https://api.openai.com/v1/realtime/sessions"
DEFAULT_TIMEOUT = 30.0


def resolve_session_endpoint(base_url: str | None) -> str:
    """Normalize a configured realtime URL into the provider's session-creation endpoint.

    `ws(s)://` schemes become `http(s)://`, query and fragment are dropped, and `/sessions` is appended unless the path
    already ends with it.

    Args:
        base_url: Configured realtime URL.

    Returns:
        The session-creation endpoint.
    """
    if not base_url or not base_url.strip():
        return DEFAULT_SESSION_ENDPOINT

    normalized = base_url.strip()
    if normalized[:2].lower() == "ws":
        normalized = "http" + normalized[2:]

    parts = urlsplit(normalized)
    path = parts.path.rstrip("/")
    if not path.lower().endswith("/sessions"):
        path = f"{path}/sessions"

    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def build_headers(api_key: str) -> dict[str, str]:
    """Provider headers for session creation."""
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "OpenAI-Beta": "realtime=v1",
    }


class RealtimeSessionService:
    """Issues realtime session descriptors."""

    def __init__(self, http_client: httpx.AsyncClient | None = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize the service.

        Args:
            http_client: Client used for provider requests. A short-lived client is created per call if omitted.
            timeout: Request timeout in seconds for the short-lived client.
        """
        self._http_client = http_client
        self._timeout = timeout

    async def create_session_descriptor(self, app_config: Mapping[str, Any] | None) -> SessionDescriptor:
        """Create a provider session and describe how to connect to it.

        Args:
            app_config: Application configuration holding `speech.stt.realtime`.

        Returns:
            The session descriptor.

        Raises:
            ConfigurationError: When the realtime configuration, model, or API key is missing.
            RealtimeSessionError: When the provider rejects the request or returns an empty body.
        """
        realtime_config = get_realtime_config(app_config)

        endpoint = resolve_session_endpoint(realtime_config.get("url"))
        payload = build_bootstrap_session(realtime_config)
        headers = build_headers(realtime_config["api_key"])

        logger.debug("endpoint=<%s>, model=<%s> | creating realtime session", endpoint, payload["model"])

        try:
            session = await self._post(endpoint, payload, headers)
            if not session:
                raise RealtimeSessionError("Empty response from realtime session endpoint", status=502)
        except (httpx.HTTPError, RealtimeError) as error:
            status, message, code = describe_provider_error(error, "Failed to create realtime session")
            logger.error(
                "status=<%s>, message=<%s>, code=<%s> | failed to create realtime session", status, message, code
            )

            if isinstance(error, RealtimeError):
                raise
            raise RealtimeSessionError(message, status=status, code=code) from error

        stream = realtime_config.get("stream")
        return {
            "url": realtime_config.get("url") or DEFAULT_REALTIME_URL,
            "transport": realtime_config.get("transport") or "websocket",
            "stream": stream if isinstance(stream, bool) else True,
            "input_audio_format": bootstrap_input_format(realtime_config),
            "model": realtime_config["model"],
            "session": session,
        }

    async def _post(self, endpoint: str, payload: dict[str, Any], headers: dict[str, str]) -> Any:
        if self._http_client is not None:
            response = await self._http_client.post(endpoint, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(endpoint, json=payload, headers=headers)

        response.raise_for_status()
        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as error:
            raise RealtimeSessionError("Invalid response from realtime session endpoint", status=502) from error


async def issue_realtime_session(
    app_config: Mapping[str, Any] | None, http_client: httpx.AsyncClient | None = None
) -> SessionDescriptor:
    """Issue a realtime session descriptor with a default service."""
    return await RealtimeSessionService(http_client=http_client).create_session_descriptor(app_config)
