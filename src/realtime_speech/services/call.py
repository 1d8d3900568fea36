"""Call-setup boundary.

Creates a realtime call from a client SDP offer: the server resolves the realtime configuration, builds the provider
session, and forwards both to the provider's calls endpoint as a multipart form. The provider's SDP answer is returned
to the client.
"""

import json
import logging
from typing import Any, Mapping, cast

import httpx

from ..config import get_realtime_config
from ..session.audio_format import convert_keys_to_snake_case
from ..session.payload import build_call_session
from ..session.resolver import merge_session
from ..types.exceptions import RealtimeCallError, RealtimeError
from ..types.session import RealtimeCallRequest, RealtimeCallResponse
from ._http import describe_provider_error

logger = logging.getLogger(__name__)

REALTIME_CALLS_ENDPOINT = "https://api.openai.com/v1/realtime/calls"
DEFAULT_TIMEOUT = 30.0


def _parse_answer(response: httpx.Response) -> dict[str, Any]:
    """Read the provider answer, accepting JSON or a raw SDP body."""
    if not response.content:
        return {}

    try:
        data = response.json()
    except ValueError:
        return {"sdp": response.text}

    return data if isinstance(data, dict) else {}


class RealtimeCallService:
    """Creates realtime calls against the provider.

    Attributes:
        endpoint: Provider call-setup endpoint.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        endpoint: str = REALTIME_CALLS_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the service.

        Args:
            http_client: Client used for provider requests. A short-lived client is created per call if omitted.
            endpoint: Provider call-setup endpoint.
            timeout: Request timeout in seconds for the short-lived client.
        """
        self._http_client = http_client
        self.endpoint = endpoint
        self._timeout = timeout

    async def create_call(
        self, app_config: Mapping[str, Any] | None, request: RealtimeCallRequest | Mapping[str, Any]
    ) -> RealtimeCallResponse:
        """Forward an SDP offer to the provider and return its answer.

        Args:
            app_config: Application configuration holding `speech.stt.realtime`.
            request: SDP offer plus call overrides.

        Returns:
            The SDP answer, with `expires_at` only when the provider sent one.

        Raises:
            RealtimeCallError: 400 when the SDP offer is missing, 502 when no SDP answer comes back, or the provider's
                status/message/code when the provider rejects the call.
            ConfigurationError: When the realtime configuration, model, or API key is missing.
        """
        sdp_offer = (request or {}).get("sdp_offer")
        if not isinstance(sdp_offer, str) or not sdp_offer.strip():
            raise RealtimeCallError("Missing SDP offer", status=400)

        realtime_config = get_realtime_config(app_config)
        session = build_call_session(realtime_config, request)

        files = {"sdp": (None, sdp_offer), "session": (None, json.dumps(session))}
        headers = {"Authorization": f"Bearer {realtime_config['api_key']}"}

        logger.debug("model=<%s>, type=<%s> | creating realtime call", session.get("model"), session.get("type"))

        try:
            data = await self._post(files, headers)

            sdp_answer = data.get("sdp") or data.get("sdp_answer")
            if not sdp_answer:
                raise RealtimeCallError("Realtime call did not return an SDP answer", status=502)
        except (httpx.HTTPError, RealtimeError) as error:
            status, message, code = describe_provider_error(error, "Failed to create realtime call")
            logger.error("status=<%s>, message=<%s>, code=<%s> | failed to create realtime call", status, message, code)

            if isinstance(error, RealtimeError):
                raise
            raise RealtimeCallError(message, status=status, code=code) from error

        result: RealtimeCallResponse = {"sdp_answer": sdp_answer}
        expires_at = data.get("expires_at", data.get("expiresAt"))
        if expires_at is not None:
            result["expires_at"] = expires_at

        return result

    async def _post(self, files: dict[str, Any], headers: dict[str, str]) -> dict[str, Any]:
        if self._http_client is not None:
            response = await self._http_client.post(self.endpoint, files=files, headers=headers)
            response.raise_for_status()
            return _parse_answer(response)

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(self.endpoint, files=files, headers=headers)
            response.raise_for_status()
            return _parse_answer(response)


async def create_realtime_call(
    app_config: Mapping[str, Any] | None,
    request: RealtimeCallRequest | Mapping[str, Any],
    http_client: httpx.AsyncClient | None = None,
) -> RealtimeCallResponse:
    """Create a realtime call with a default service."""
    return await RealtimeCallService(http_client=http_client).create_call(app_config, request)


def normalize_call_request(body: Mapping[str, Any] | None) -> RealtimeCallRequest:
    """Normalize a client call body into a call request.

    Keys are snake_cased and flattened overrides (model, instructions, voice, turn detection, noise reduction) are
    folded into the session block, where they take precedence over the client's session values.
    """
    request = cast(dict[str, Any], convert_keys_to_snake_case(dict(body or {})))

    folded: dict[str, Any] = {key: request[key] for key in ("model", "instructions", "type", "mode") if key in request}
    audio: dict[str, Any] = {}
    if isinstance(request.get("voice"), str):
        audio["output"] = {"voice": request["voice"]}
    audio_input = {key: request[key] for key in ("turn_detection", "noise_reduction") if key in request}
    if audio_input:
        audio["input"] = audio_input
    if audio:
        folded["audio"] = audio

    session = merge_session(request.get("session"), folded)
    if session:
        request["session"] = session

    return cast(RealtimeCallRequest, request)
