"""Server-side HTTP boundaries for realtime sessions."""

from .bootstrap import (
    DEFAULT_REALTIME_URL,
    DEFAULT_SESSION_ENDPOINT,
    RealtimeSessionService,
    issue_realtime_session,
    resolve_session_endpoint,
)
from .call import REALTIME_CALLS_ENDPOINT, RealtimeCallService, create_realtime_call, normalize_call_request

__all__ = [
    "DEFAULT_REALTIME_URL",
    "DEFAULT_SESSION_ENDPOINT",
    "REALTIME_CALLS_ENDPOINT",
    "RealtimeCallService",
    "RealtimeSessionService",
    "create_realtime_call",
    "issue_realtime_session",
    "normalize_call_request",
    "resolve_session_endpoint",
]
