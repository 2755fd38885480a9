"""Tolerant parser for rewrite-service replies.

Replies are expected to be a JSON array of ``{"index": int, "text": str}``
objects but often arrive wrapped in Markdown fences, with trailing commas or
truncated mid-array.  The parser recovers whatever complete entries it can.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?", re.IGNORECASE)
_OBJECT_GAP_RE = re.compile(r"}\s*{")
_TRAILING_COMMA_RE = re.compile(r",\s*([\]}])")
_AFTER_LAST_CLOSER_RE = re.compile(r"[^}\]]*$")
_SALVAGE_RE = re.compile(r"\{[^{}]*\"index\"\s*:\s*\d+[^{}]*\"text\"\s*:\s*\"(?:[^\"\\]|\\.)*\"[^{}]*\}")
_INDEX_RE = re.compile(r"\"index\"\s*:\s*(\d+)")
_TEXT_RE = re.compile(r"\"text\"\s*:\s*\"((?:[^\"\\]|\\.)*)\"")

_CLOSERS = {"[": "]", "{": "}"}


def _scan(text: str) -> tuple[list[str], bool, Optional[int]]:
    """Track bracket nesting outside JSON strings.

    Returns the stack of still-open brackets, whether the text ends inside a
    string, and the offset just past the bracket that closes the outermost
    one (``None`` if it never closes).
    """
    stack: list[str] = []
    in_string = False
    escaped = False
    for offset, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(char)
        elif char in "]}" and stack:
            stack.pop()
            if not stack:
                return [], False, offset + 1
    return stack, in_string, None


def _repair(fragment: str) -> str:
    fragment = _OBJECT_GAP_RE.sub("},{", fragment)
    return _TRAILING_COMMA_RE.sub(r"\1", fragment)


def _close_balanced(fragment: str) -> Optional[str]:
    stack, in_string, _ = _scan(fragment)
    if in_string:
        return None
    body = fragment.rstrip().rstrip(",")
    return body + "".join(_CLOSERS[b] for b in reversed(stack))


def _close_after_last_object(fragment: str) -> str:
    trimmed = _AFTER_LAST_CLOSER_RE.sub("", fragment)
    missing = trimmed.count("[") - trimmed.count("]")
    return trimmed + "]" * max(0, missing)


def _loads(candidate: Optional[str]) -> Optional[Any]:
    if not candidate:
        return None
    try:
        return json.loads(_repair(candidate))
    except json.JSONDecodeError:
        return None


def _salvage(text: str) -> list[Any]:
    items: list[Any] = []
    for raw in _SALVAGE_RE.findall(text):
        try:
            items.append(json.loads(raw))
            continue
        except json.JSONDecodeError:
            pass
        index = _INDEX_RE.search(raw)
        body = _TEXT_RE.search(raw)
        if index and body:
            items.append({"index": int(index.group(1)), "text": body.group(1)})
    return items


def _valid_entries(items: Any) -> list[dict[str, Any]]:
    if not isinstance(items, list):
        return []
    return [
        {"index": item["index"], "text": item["text"]}
        for item in items
        if isinstance(item, dict)
        and isinstance(item.get("index"), int)
        and not isinstance(item.get("index"), bool)
        and isinstance(item.get("text"), str)
    ]


def parse_rewrite_response(text: str) -> list[dict[str, Any]]:
    """Parse a rewrite reply into ``[{"index": int, "text": str}, ...]``.

    Entries lacking an integer ``index`` or a string ``text`` are dropped.
    Returns an empty list when nothing can be recovered.
    """
    cleaned = _FENCE_RE.sub("", text or "").strip()
    start = cleaned.find("[")
    if start == -1:
        return _valid_entries(_loads(cleaned)) or _valid_entries(_salvage(cleaned))

    fragment = cleaned[start:]
    _, _, end = _scan(fragment)
    if end is not None:
        attempts = [fragment[:end]]
    else:
        attempts = [_close_balanced(fragment), _close_after_last_object(fragment)]

    for attempt in attempts:
        parsed = _loads(attempt)
        if parsed is not None:
            return _valid_entries(parsed)
    return _valid_entries(_salvage(fragment))
