"""Shared handling of provider HTTP failures."""

from typing import Any

import httpx


def _error_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}

    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, dict) else {}


def describe_provider_error(error: Exception, default_message: str) -> tuple[int, str, str | None]:
    """Reduce a provider failure to its status, message, and code.

    Only these three fields ever leave this function; raw provider bodies and headers do not.

    Args:
        error: Exception raised while calling the provider.
        default_message: Message used when the provider supplied none.

    Returns:
        The status (default 502), message, and code.
    """
    status = 502
    message = ""
    code = None

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        body = _error_body(error.response)
        message = body.get("message") if isinstance(body.get("message"), str) else ""
        code = body.get("code") if isinstance(body.get("code"), str) else None
    elif isinstance(getattr(error, "status", None), int):
        status = error.status  # type: ignore[attr-defined]

    if not code and isinstance(getattr(error, "code", None), str):
        code = error.code  # type: ignore[attr-defined]

    return status, message or str(error) or default_message, code
