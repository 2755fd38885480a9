"""Ordered text matchers used by the replacement engine.

Each matcher has the signature ``(document, unit, new_text) -> str | None``:
it returns the rewritten document when it found the unit's text, otherwise
``None`` and the engine tries the next one.  Matchers never touch markup
outside the span they matched.
"""

from __future__ import annotations

import math
import re
from typing import Callable, Optional

from funnelcap.transplant.models import TextUnit

Matcher = Callable[[str, TextUnit, str], Optional[str]]

_TAG_SPLIT_RE = re.compile(r"(<[^>]+>)")
_TAG_RE = re.compile(r"<[^>]+>")
_LOOSE_GAP = r"(?:\s|&nbsp;|<[^>]{0,200}>)*"


# ---------------------------------------------------------------------------
# Proportional redistribution
# ---------------------------------------------------------------------------

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def distribute_proportionally(segments: list[str], text_positions: list[int], new_text: str) -> None:
    """Spread the words of *new_text* over the text segments of a match.

    *segments* is the alternating text/tag split of the matched span and is
    modified in place; *text_positions* are the indexes of its text segments.
    Each text segment receives a share of the new words proportional to its
    share of the original words (cumulative-ratio rounding); leftover words
    go to the last segment.  Every new word is used exactly once.
    """
    if len(text_positions) <= 1:
        if text_positions:
            segments[text_positions[0]] = new_text
        return

    originals = [segments[pos] for pos in text_positions]
    counts = [max(1, len(s.split())) for s in originals]
    total = sum(counts)
    new_words = new_text.split()

    if total == 0 or not new_words:
        segments[text_positions[0]] = new_text
        for pos in text_positions[1:]:
            segments[pos] = ""
        return

    word_idx = 0
    cumulative = 0
    last = len(text_positions) - 1
    for si, pos in enumerate(text_positions):
        cumulative += counts[si]
        target = _round_half_up(cumulative / total * len(new_words))
        take = max(0, target - word_idx)
        if take > 0 and word_idx < len(new_words):
            chunk = " ".join(new_words[word_idx:word_idx + take])
            original = originals[si]
            lead = " " if si > 0 and original[:1].isspace() else ""
            trail = " " if si < last and original[-1:].isspace() else ""
            segments[pos] = f"{lead}{chunk}{trail}"
            word_idx += take
        else:
            segments[pos] = ""

    if word_idx < len(new_words):
        tail_pos = text_positions[-1]
        remaining = " ".join(new_words[word_idx:])
        segments[tail_pos] = f"{segments[tail_pos]} {remaining}" if segments[tail_pos] else remaining


def _replace_span(document: str, match: re.Match, new_text: str) -> str:
    """Replace a matched span, keeping any inline tags inside it."""
    matched = match.group(0)
    tags = _TAG_RE.findall(matched)
    if not tags:
        replacement = new_text
    else:
        segments = _TAG_SPLIT_RE.split(matched)
        text_positions = [
            i for i, seg in enumerate(segments) if seg and not seg.startswith("<")
        ]
        if text_positions:
            distribute_proportionally(segments, text_positions, new_text)
            replacement = "".join(segments)
        else:
            replacement = new_text + "".join(tags)
    return document[:match.start()] + replacement + document[match.end():]


# ---------------------------------------------------------------------------
# Matchers
# ---------------------------------------------------------------------------

def _replace_inside_element(document: str, pattern: str, unit: TextUnit, new_text: str) -> Optional[str]:
    match = re.search(pattern, document, re.IGNORECASE)
    if match is None:
        return None
    content = match.group(1)
    target = unit.raw_text if unit.raw_text != unit.original_text else unit.original_text
    offset = content.find(target)
    if not target or offset == -1:
        return None
    start = match.start(1) + offset
    return document[:start] + new_text + document[start + len(target):]


def match_element_id(document: str, unit: TextUnit, new_text: str) -> Optional[str]:
    """Replace inside the same-tag element carrying the unit's ``id``."""
    element_id = unit.element_id
    if not element_id or not unit.tag_name or unit.is_attribute:
        return None
    tag = re.escape(unit.tag_name)
    pattern = (
        rf"<{tag}\b[^>]*\bid=[\"']{re.escape(element_id)}[\"'][^>]*>([\s\S]*?)</{tag}>"
    )
    return _replace_inside_element(document, pattern, unit, new_text)


def match_element_class(document: str, unit: TextUnit, new_text: str) -> Optional[str]:
    """Replace inside the first same-tag element carrying the unit's first class."""
    if unit.element_id or not unit.first_class or not unit.tag_name or unit.is_attribute:
        return None
    tag = re.escape(unit.tag_name)
    pattern = (
        rf"<{tag}\b[^>]*\bclass=[\"'][^\"']*{re.escape(unit.first_class)}[^\"']*[\"'][^>]*>"
        rf"([\s\S]*?)</{tag}>"
    )
    return _replace_inside_element(document, pattern, unit, new_text)


def match_nbsp_raw(document: str, unit: TextUnit, new_text: str) -> Optional[str]:
    """Replace the literal raw text when it carries ``&nbsp;`` markers.

    Accepted only when the match does not start inside a tag.
    """
    raw = unit.raw_text
    if raw == unit.original_text or "&nbsp;" not in raw:
        return None
    found = document.find(raw)
    if found == -1:
        return None
    before = document[:found]
    if before.rfind("<") > before.rfind(">"):
        return None
    return document[:found] + new_text + document[found + len(raw):]


def match_exact_text(document: str, unit: TextUnit, new_text: str) -> Optional[str]:
    if unit.original_text not in document:
        return None
    return document.replace(unit.original_text, new_text, 1)


def match_exact_raw(document: str, unit: TextUnit, new_text: str) -> Optional[str]:
    if unit.raw_text == unit.original_text or not unit.raw_text or unit.raw_text not in document:
        return None
    return document.replace(unit.raw_text, new_text, 1)


def match_tag_tolerant(document: str, unit: TextUnit, new_text: str) -> Optional[str]:
    """Word-by-word match tolerating whitespace, ``&nbsp;`` and inline tags."""
    text = unit.original_text
    if not 5 <= len(text) < 500:
        return None
    words = text.split()
    if not 2 <= len(words) <= 30:
        return None
    pattern = _LOOSE_GAP.join(re.escape(w) for w in words)
    match = re.search(pattern, document, re.IGNORECASE)
    if match is None:
        return None
    return _replace_span(document, match, new_text)


def match_loose_spaces(document: str, unit: TextUnit, new_text: str) -> Optional[str]:
    """Exact text where each run of spaces may also be ``&nbsp;``."""
    text = unit.original_text
    if not text or len(text) >= 200:
        return None
    pattern = "(?:[ ]|&nbsp;)+".join(re.escape(part) for part in re.split(r" +", text))
    match = re.search(pattern, document)
    if match is None:
        return None
    return _replace_span(document, match, new_text)


MATCHERS: list[tuple[str, Matcher]] = [
    ("element-id", match_element_id),
    ("element-class", match_element_class),
    ("nbsp-raw", match_nbsp_raw),
    ("exact-text", match_exact_text),
    ("exact-raw", match_exact_raw),
    ("tag-tolerant", match_tag_tolerant),
    ("loose-spaces", match_loose_spaces),
]
