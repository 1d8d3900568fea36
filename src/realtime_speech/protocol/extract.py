"""Text extraction from provider payloads.

Providers have shipped several shapes for the same transcript over time: a bare string, `{"text": str}`,
`{"text": [...]}`, nested `transcript`/`items`/`alternatives`/`segments` structures, and response objects carrying
`output_text` or content parts. Each shape has a matcher; matchers run in a fixed priority order and the first
non-blank result wins. When no shape matches, a recursive harvester collects text from the object graph, tracking
visited containers so that cyclic payloads terminate.
"""

import re
from typing import Any, Callable, Mapping, Sequence

Matcher = Callable[[Mapping[str, Any]], str]

_TEXT_KEY_PATTERN = re.compile(r"text|transcript|content|value|word|caption|utterance|delta|string|display|normalized")


def _blank(value: str) -> bool:
    return not value.strip()


def _non_blank_string(value: Any) -> str:
    return value if isinstance(value, str) and value.strip() else ""


def _join(parts: Sequence[str], separator: str) -> str:
    return separator.join(part for part in parts if part)


def _first_match(value: Mapping[str, Any], matchers: Sequence[Matcher]) -> str:
    for matcher in matchers:
        text = matcher(value)
        if text and not _blank(text):
            return text
    return ""


def collect_text(value: Any, visited: set[int] | None = None, context: bool = False) -> str:
    """Harvest text from an arbitrary object graph.

    Strings are collected only under a text-like key (or everywhere once `context` is set). Containers already on the
    current path are skipped.

    Args:
        value: Object graph to search.
        visited: Identities of containers on the current path.
        context: Whether an enclosing key already marked this subtree as text.

    Returns:
        The collected text, or an empty string.
    """
    visited = set() if visited is None else visited

    if isinstance(value, str):
        return value if context and value.strip() else ""

    if isinstance(value, (list, tuple)):
        if id(value) in visited:
            return ""
        visited.add(id(value))
        parts = [collect_text(item, visited, context) for item in value]
        visited.discard(id(value))
        return _join(parts, "" if context else " ")

    if not isinstance(value, Mapping):
        return ""

    if id(value) in visited:
        return ""

    visited.add(id(value))
    parts = [
        collect_text(item, visited, context or bool(_TEXT_KEY_PATTERN.search(str(key).lower())))
        for key, item in value.items()
        if item is not None
    ]
    visited.discard(id(value))

    joined = _join(parts, " ")
    return joined if context else joined.strip()


def content_text(content: Any) -> str:
    """Concatenate the text of content parts (`["...", {"text": "..."}]`)."""
    if not isinstance(content, list):
        return ""

    parts = []
    for item in content:
        if isinstance(item, str):
            parts.append(item)
        elif isinstance(item, Mapping) and isinstance(item.get("text"), str):
            parts.append(item["text"])
    return "".join(parts)


def response_text(response: Any) -> str:
    """Extract text from a response object (`output_text`, `output[].content`, or `content`)."""
    if not isinstance(response, Mapping):
        return ""

    output_text = response.get("output_text")
    if isinstance(output_text, list):
        text = "".join(part for part in output_text if isinstance(part, str))
        if not _blank(text):
            return text

    output = response.get("output")
    if isinstance(output, list):
        text = _join([content_text(item.get("content")) for item in output if isinstance(item, Mapping)], "")
        if not _blank(text):
            return text

    text = content_text(response.get("content"))
    return "" if _blank(text) else text


# ============================================================================
# Transcript shapes
# ============================================================================


def _text_list(values: Any, extract: Callable[[Any], str]) -> str:
    if not isinstance(values, list):
        return ""
    return _join([value if isinstance(value, str) else extract(value) for value in values], "")


def _item_text(item: Any) -> str:
    """Text of one `items` entry, trying its text, content, alternatives, and value fields in order."""
    if not item:
        return ""
    if isinstance(item, str):
        return item
    if not isinstance(item, Mapping):
        return ""

    if _non_blank_string(item.get("text")):
        return item["text"]
    if isinstance(item.get("text"), list):
        return _text_list(item["text"], extract_transcript_text)
    if _non_blank_string(item.get("content")):
        return item["content"]
    if isinstance(item.get("content"), list):
        return _text_list(item["content"], extract_transcript_text)

    for alternative in item.get("alternatives") or []:
        if _non_blank_string(alternative):
            return alternative
        if isinstance(alternative, Mapping) and _non_blank_string(alternative.get("text")):
            return alternative["text"]

    if _non_blank_string(item.get("value")):
        return item["value"]
    if isinstance(item.get("value"), list):
        return _text_list(item["value"], extract_transcript_text)

    return extract_transcript_text(item)


_TRANSCRIPT_MATCHERS: tuple[Matcher, ...] = (
    lambda t: _non_blank_string(t.get("text")),
    lambda t: _text_list(t.get("text"), extract_transcript_text),
    lambda t: _join([_item_text(item) for item in t["items"]], " ") if isinstance(t.get("items"), list) else "",
    lambda t: extract_transcript_text(t["transcript"]) if t.get("transcript") else "",
    lambda t: extract_delta_text(t["delta"]) if t.get("delta") else "",
)


def extract_transcript_text(transcript: Any) -> str:
    """Extract text from a transcript value (string, list, or transcript object)."""
    if not transcript:
        return ""

    if isinstance(transcript, str):
        return transcript

    if isinstance(transcript, list):
        combined = _join([extract_transcript_text(item) for item in transcript], " ")
        return "" if _blank(combined) else combined

    if not isinstance(transcript, Mapping):
        return ""

    text = _first_match(transcript, _TRANSCRIPT_MATCHERS)
    if text:
        return text

    fallback = collect_text(transcript, context=True)
    return "" if _blank(fallback) else fallback


# ============================================================================
# Delta shapes
# ============================================================================


def _alternative_text(alternative: Any) -> str:
    if _non_blank_string(alternative):
        return alternative
    if isinstance(alternative, Mapping) and _non_blank_string(alternative.get("text")):
        return alternative["text"]
    return extract_transcript_text(alternative) if alternative else ""


def _segment_text(segment: Any) -> str:
    if isinstance(segment, str):
        return segment
    if isinstance(segment, Mapping) and _non_blank_string(segment.get("text")):
        return segment["text"]
    return extract_transcript_text(segment) if segment else ""


def _string_field(value: Any, key: str) -> str:
    return value[key] if isinstance(value, Mapping) and isinstance(value.get(key), str) else ""


def _list_field(value: Mapping[str, Any], key: str) -> list:
    entries = value.get(key)
    return entries if isinstance(entries, list) and entries else []


_DELTA_MATCHERS: tuple[Matcher, ...] = (
    lambda d: _non_blank_string(d.get("text")),
    lambda d: _text_list(_list_field(d, "text"), extract_delta_text),
    lambda d: _non_blank_string(d.get("output_text")),
    lambda d: _text_list(_list_field(d, "output_text"), extract_delta_text),
    lambda d: extract_transcript_text(d["transcript"]) if d.get("transcript") else "",
    lambda d: _join([extract_transcript_text(entry) for entry in _list_field(d, "transcripts")], " ").strip(),
    lambda d: extract_transcript_text({"items": d["items"]}) if _list_field(d, "items") else "",
    lambda d: _join([_alternative_text(alt) for alt in _list_field(d, "alternatives")], " ").strip(),
    lambda d: content_text(_list_field(d, "content")),
    lambda d: _join(
        [content_text(item.get("content")) for item in _list_field(d, "output") if isinstance(item, Mapping)], ""
    ),
    lambda d: extract_delta_text(d["segment"]) if d.get("segment") else "",
    lambda d: _join([_segment_text(segment) for segment in _list_field(d, "segments")], " ").strip(),
    lambda d: response_text(d.get("response") or d.get("result")),
)


def extract_delta_text(delta: Any) -> str:
    """Extract text from a streaming delta value."""
    if not delta:
        return ""

    if isinstance(delta, str):
        return delta

    if isinstance(delta, list):
        return _join([extract_delta_text(item) for item in delta], "")

    if not isinstance(delta, Mapping):
        return ""

    text = _first_match(delta, _DELTA_MATCHERS)
    if text:
        return text

    fallback = collect_text(delta)
    return "" if _blank(fallback) else fallback


# ============================================================================
# Event shapes
# ============================================================================


_EVENT_MATCHERS: tuple[Matcher, ...] = (
    lambda e: _non_blank_string(e.get("text")),
    lambda e: _text_list(_list_field(e, "text"), extract_delta_text),
    lambda e: _non_blank_string(e.get("delta")),
    lambda e: extract_delta_text(e.get("delta")),
    lambda e: _non_blank_string(e.get("output_text")),
    lambda e: "".join(part for part in _list_field(e, "output_text") if isinstance(part, str)),
    lambda e: _non_blank_string(e["segment"].get("text")) if isinstance(e.get("segment"), Mapping) else "",
    lambda e: _join([_string_field(segment, "text") for segment in _list_field(e, "segments")], " "),
    lambda e: extract_transcript_text(e["transcript"]) if e.get("transcript") else "",
    lambda e: _join([extract_transcript_text(entry) for entry in _list_field(e, "transcripts")], " ").strip(),
    lambda e: extract_transcript_text(e["item"]) if e.get("item") else "",
    lambda e: extract_transcript_text({"items": e["items"]}) if _list_field(e, "items") else "",
    lambda e: response_text(e.get("response") or e.get("result")),
    lambda e: content_text(e.get("content")),
)


def extract_event_text(event: Any) -> str:
    """Extract text from a whole provider event."""
    if not isinstance(event, Mapping):
        return ""

    text = _first_match(event, _EVENT_MATCHERS)
    if text:
        return text

    fallback = collect_text(event)
    return "" if _blank(fallback) else fallback


def extract_nested_text(value: Any, keys: Sequence[str] = ("text",)) -> str:
    """Return a string value, or the first string found under one of `keys`."""
    if isinstance(value, str):
        return value

    if isinstance(value, Mapping):
        for key in keys:
            if isinstance(value.get(key), str):
                return value[key]

    return ""
