"""Data models for the funnel capture pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


@dataclass
class CrawlParams:
    """Options for one crawl invocation.

    ``None`` for the numeric / viewport fields means "use the value from
    :data:`funnelcap.config.settings`".
    """

    entry_url: str
    headless: Optional[bool] = None
    max_steps: Optional[int] = None
    max_depth: Optional[int] = None
    follow_same_origin_only: bool = True
    capture_screenshots: bool = True
    capture_network: bool = True
    capture_cookies: bool = True
    capture_snapshots: bool = False
    viewport_width: Optional[int] = None
    viewport_height: Optional[int] = None
    quiz_mode: bool = False
    quiz_max_steps: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CrawlLink:
    href: str
    text: str
    is_cta: bool = False


@dataclass(frozen=True)
class FormInput:
    name: str
    type: str
    required: bool = False


@dataclass(frozen=True)
class CrawlForm:
    action: str
    method: str
    inputs: tuple[FormInput, ...] = ()
    submit_button_text: Optional[str] = None


@dataclass
class NetworkEvent:
    """One request observed on the browser context.

    ``status`` is filled in when the matching response arrives.
    """

    url: str
    method: str
    resource_type: str
    is_tracking: bool
    is_checkout: bool
    status: Optional[int] = None


@dataclass(frozen=True)
class CookieRecord:
    name: str
    domain: str
    path: str
    expires: float
    http_only: bool
    secure: bool


@dataclass(frozen=True)
class Step:
    """One captured page.  Immutable once appended to a :class:`CrawlResult`."""

    step_index: int
    url: str
    title: str
    timestamp: str
    links: tuple[CrawlLink, ...] = ()
    cta_candidates: tuple[CrawlLink, ...] = ()
    forms: tuple[CrawlForm, ...] = ()
    network_events: tuple[NetworkEvent, ...] = ()
    cookies: tuple[CookieRecord, ...] = ()
    dom_length: int = 0
    screenshot: Optional[str] = None
    snapshot: Optional[str] = None
    content_text: Optional[str] = None
    is_quiz_step: bool = False
    quiz_label: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CrawlResult:
    entry_url: str
    steps: list[Step] = field(default_factory=list)
    duration_ms: int = 0
    visited_urls: list[str] = field(default_factory=list)
    error: Optional[str] = None
    is_quiz_funnel: bool = False

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "entry_url": self.entry_url,
            "steps": [s.to_dict() for s in self.steps],
            "total_steps": self.total_steps,
            "duration_ms": self.duration_ms,
            "visited_urls": list(self.visited_urls),
            "error": self.error,
            "is_quiz_funnel": self.is_quiz_funnel,
        }


@dataclass
class StylesheetSource:
    """Rule text of one stylesheet as read from the live page.

    ``css`` is ``None`` when the sheet could not be read (cross-origin).
    """

    href: Optional[str]
    css: Optional[str]

    @property
    def blocked(self) -> bool:
        return self.css is None


@dataclass
class PageCapture:
    """Result of a single-page capture used by the clone feature."""

    url: str
    html: str
    title: str
    css_count: int
    img_count: int
    method_used: str = "browser"

    @property
    def rendered_size(self) -> int:
        return len(self.html)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "html": self.html,
            "title": self.title,
            "rendered_size": self.rendered_size,
            "css_count": self.css_count,
            "img_count": self.img_count,
            "method_used": self.method_used,
        }
