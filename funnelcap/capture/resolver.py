"""Resource URL resolution for snapshot normalisation."""

from __future__ import annotations

import re
from urllib.parse import urljoin, urlsplit

_SKIPPED_PREFIXES = ("data:", "blob:", "#", "mailto:", "tel:", "javascript:")

# url(...) references that are not already absolute / inline
_CSS_URL_RE = re.compile(
    r"""url\(\s*["']?(?!data:|https?:|blob:)([^"')]+)["']?\s*\)""",
    re.IGNORECASE,
)


def resolve_url(reference: str, page_url: str) -> str:
    """Return *reference* as an absolute URL relative to *page_url*.

    Non-fetchable schemes (``data:``, ``blob:``, ``#``, ``mailto:``, ``tel:``,
    ``javascript:``) and already-absolute ``http(s)://`` references are
    returned unchanged, as is anything that cannot be resolved.  The function
    never raises and is idempotent.
    """
    if not reference:
        return reference
    lowered = reference.lower()
    if lowered.startswith(_SKIPPED_PREFIXES):
        return reference
    if lowered.startswith(("http://", "https://")):
        return reference
    try:
        resolved = urljoin(page_url, reference)
    except ValueError:
        return reference
    if not urlsplit(resolved).scheme:
        return reference
    return resolved


def rewrite_css_urls(css: str, base_url: str) -> str:
    """Rewrite every relative ``url(...)`` in *css* against *base_url*."""

    def _sub(match: re.Match[str]) -> str:
        return f'url("{resolve_url(match.group(1).strip(), base_url)}")'

    return _CSS_URL_RE.sub(_sub, css)


def resolve_srcset(srcset: str, page_url: str) -> str:
    """Absolutise the URL portion of each comma-separated ``srcset`` entry."""
    entries = []
    for entry in srcset.split(","):
        parts = entry.strip().split()
        if parts:
            parts[0] = resolve_url(parts[0], page_url)
        entries.append(" ".join(parts))
    return ", ".join(entries)


def normalize_url(url: str, keep_query: bool = True) -> str:
    """Return ``origin + path (+ query)`` for visited-set bookkeeping."""
    parts = urlsplit(url)
    path = parts.path or "/"
    base = f"{parts.scheme}://{parts.netloc}{path}"
    if keep_query and parts.query:
        return f"{base}?{parts.query}"
    return base


def origin_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"
