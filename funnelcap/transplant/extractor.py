"""Text extraction: turn a rendered page into ordered :class:`TextUnit` records.

The browser decides visibility (computed layout and style); everything else
(filtering, dedup, raw-text escaping) happens here so it can be tested
without a browser.
"""

from __future__ import annotations

import html
import re
from typing import Any

from funnelcap.capture import page_commands
from funnelcap.transplant.models import TextUnit

_LETTER_RE = re.compile(r"[a-zA-Z\u00C0-\u024F]")
_CODE_MARKERS = ("{", "}", "=>")
_ASCII_SPACE_RE = re.compile(r"[ \t\n\r\f\v]+")
_ANY_SPACE_RE = re.compile(r"\s+")

_MAX_CLASSES = 200
_MAX_ATTRIBUTES = 300


def normalize_text(text: str) -> str:
    """Collapse every whitespace run (non-breaking spaces included) to one space."""
    return _ANY_SPACE_RE.sub(" ", text).strip()


def raw_markup_text(text: str) -> str:
    """Render *text* the way it appears in serialised HTML.

    Ordinary whitespace runs collapse like the browser's serialiser keeps
    them visually; non-breaking spaces become ``&nbsp;`` markers.
    """
    escaped = html.escape(_ASCII_SPACE_RE.sub(" ", text).strip(" "), quote=False)
    return escaped.replace("\u00a0", "&nbsp;")


def _keep_text(text: str, seen: set[str]) -> bool:
    if len(text) < 2 or text in seen:
        return False
    if not _LETTER_RE.search(text):
        return False
    if any(marker in text for marker in _CODE_MARKERS):
        return False
    return not text.startswith(("http", "//"))


def _attribute_snippet(attributes: dict[str, str]) -> str:
    # id leads so the cut never drops it.
    ordered = sorted(attributes.items(), key=lambda item: item[0] != "id")
    snippet = " ".join(f'{name}="{value}"' for name, value in ordered)
    return snippet[:_MAX_ATTRIBUTES]


def build_text_units(candidates: dict[str, list[dict[str, Any]]]) -> list[TextUnit]:
    """Filter raw page candidates into text units.

    Args:
        candidates: ``{"elements": [...], "attributes": [...]}`` as returned by
            :func:`~funnelcap.capture.page_commands.extract_text_candidates`.

    Returns:
        Units in emission order; ``index`` is the emission sequence.
    """
    units: list[TextUnit] = []
    seen: set[str] = set()

    for element in candidates.get("elements", []):
        direct = element.get("text", "") or ""
        text = normalize_text(direct)
        if not _keep_text(text, seen):
            continue
        seen.add(text)
        tag = element.get("tag", "")
        attributes = element.get("attributes") or {}
        classes = (attributes.get("class") or "")[:_MAX_CLASSES]
        full_tag = f'<{tag} class="{classes[:100]}">' if classes else f"<{tag}>"
        units.append(
            TextUnit(
                index=len(units),
                original_text=text,
                raw_text=raw_markup_text(direct),
                tag_name=tag,
                full_tag=full_tag,
                classes=classes,
                attributes=_attribute_snippet(attributes),
                context=tag,
                position=int(element.get("top", 0) or 0),
            )
        )

    for attr in candidates.get("attributes", []):
        value = normalize_text(attr.get("value", "") or "")
        if len(value) < 3 or value in seen:
            continue
        if not _LETTER_RE.search(value) or value.startswith("http"):
            continue
        seen.add(value)
        name = attr.get("name", "")
        units.append(
            TextUnit(
                index=len(units),
                original_text=value,
                raw_text=html.escape(value),
                tag_name=attr.get("tag", ""),
                full_tag="",
                classes="",
                attributes=f'{name}="{value}"'[:_MAX_ATTRIBUTES],
                context=f"attr:{name}",
                position=0,
            )
        )

    print(f"[EXTRACT] {len(units)} text unit(s)")
    return units


def extract_text_units(page: Any) -> list[TextUnit]:
    """Extract text units from the live *page*."""
    return build_text_units(page_commands.extract_text_candidates(page))
