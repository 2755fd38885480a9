"""State bag carried through the clone pipeline graph."""

from __future__ import annotations

from typing import Any, TypedDict


class CloneState(TypedDict, total=False):
    job_id: str
    url: str
    clone_mode: str  # "rewrite" | "identical"
    brief: dict[str, Any]
    original_html: str
    title: str
    units_total: int
    cursor: int  # highest unit index already sent for rewriting
    has_more: bool
    final_html: str
    report: dict[str, Any]
    status: str
