"""Replacement engine: substitute rewritten text into a captured document."""

from __future__ import annotations

from typing import Iterable, Optional

from funnelcap.transplant.matchers import MATCHERS, Matcher
from funnelcap.transplant.models import ReplacementOutcome, ReplacementReport, TextUnit

NOT_FOUND_REASON = "text not found in document"


def replace_unit(
    document: str,
    unit: TextUnit,
    new_text: str,
    matchers: Optional[list[tuple[str, Matcher]]] = None,
) -> tuple[str, Optional[str]]:
    """Run the matchers in order and stop at the first that succeeds.

    Returns:
        ``(document, matcher_name)``; the name is ``None`` when nothing
        matched and the document is returned unchanged.
    """
    for name, matcher in matchers or MATCHERS:
        updated = matcher(document, unit, new_text)
        if updated is not None:
            return updated, name
    return document, None


def apply_replacements(document: str, units: Iterable[TextUnit]) -> tuple[str, ReplacementReport]:
    """Apply every unit that carries a ``new_text``.

    Units are handled longest ``original_text`` first so a short string can
    not pre-empt a longer one that contains it; equal lengths keep ascending
    ``index`` order.  Units without ``new_text`` (failed rewrite batches) are
    skipped and leave the original text in place.
    """
    candidates = [u for u in units if u.original_text and u.new_text]
    ordered = sorted(candidates, key=lambda u: (-len(u.original_text), u.index))

    report = ReplacementReport()
    for unit in ordered:
        document, matched_by = replace_unit(document, unit, unit.new_text)
        report.details.append(
            ReplacementOutcome(
                index=unit.index,
                original_text=unit.original_text,
                new_text=unit.new_text,
                tag_name=unit.tag_name,
                position=unit.position,
                replaced=matched_by is not None,
                reason=f"replaced ({matched_by})" if matched_by else NOT_FOUND_REASON,
            )
        )

    print(f"[TRANSPLANT] {report.replaced}/{report.total} unit(s) replaced")
    return document, report
