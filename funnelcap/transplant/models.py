"""Data models for text extraction and replacement."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

_ID_ATTR_RE = re.compile(r"""(?:^|\s)id=(["'])(.*?)\1""")


@dataclass
class TextUnit:
    """One replaceable span of visible text or attribute value.

    ``original_text`` is whitespace-collapsed; ``raw_text`` is the text as it
    appears in serialised markup (``&nbsp;`` and entity-escaped ``& < >``).
    """

    index: int
    original_text: str
    raw_text: str
    tag_name: str
    full_tag: str = ""
    classes: str = ""
    attributes: str = ""
    context: str = ""
    position: int = 0
    processed: bool = False
    new_text: Optional[str] = None

    @property
    def element_id(self) -> Optional[str]:
        match = _ID_ATTR_RE.search(self.attributes)
        return match.group(2) if match and match.group(2) else None

    @property
    def first_class(self) -> Optional[str]:
        tokens = self.classes.split()
        return tokens[0] if tokens else None

    @property
    def is_attribute(self) -> bool:
        return self.context.startswith("attr:")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ReplacementOutcome:
    index: int
    original_text: str
    new_text: Optional[str]
    tag_name: str
    position: int
    replaced: bool
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ReplacementReport:
    details: list[ReplacementOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.details)

    @property
    def replaced(self) -> int:
        return sum(1 for d in self.details if d.replaced)

    @property
    def not_replaced(self) -> int:
        return self.total - self.replaced

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "replaced": self.replaced,
            "not_replaced": self.not_replaced,
            "details": [d.to_dict() for d in self.details],
        }
