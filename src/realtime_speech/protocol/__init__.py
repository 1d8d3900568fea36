"""Provider event parsing and dispatch."""

from .dispatcher import EventDispatcher, completed_text, delta_text, response_error
from .extract import collect_text, extract_delta_text, extract_event_text, extract_nested_text, extract_transcript_text

__all__ = [
    "EventDispatcher",
    "collect_text",
    "completed_text",
    "delta_text",
    "extract_delta_text",
    "extract_event_text",
    "extract_nested_text",
    "extract_transcript_text",
    "response_error",
]
