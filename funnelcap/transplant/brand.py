"""Brand post-pass: swap the source page's own brand for the new product name."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)
_TITLE_SEPARATOR_RE = re.compile(r"\s*[-|:–—]\s*")
_OG_SITE_NAME_RES = (
    re.compile(r"property=[\"']og:site_name[\"']\s*content=[\"']([^\"']+)[\"']", re.IGNORECASE),
    re.compile(r"content=[\"']([^\"']+)[\"']\s*property=[\"']og:site_name[\"']", re.IGNORECASE),
)
_TAG_SPLIT_RE = re.compile(r"(<[^>]+>)")
_RAW_OPEN_RE = re.compile(r"<(style|script)\b[^>]*(?<!/)>$", re.IGNORECASE)
_RAW_CLOSE_RE = re.compile(r"</(style|script)\s*>$", re.IGNORECASE)


def detect_brand_tokens(source_url: str, source_html: str, product_name: str) -> list[str]:
    """Collect brand strings of the source page, longest first.

    Sources are the first host-name label, the segments of ``<title>`` and
    the ``og:site_name`` meta tag.  Tokens of three characters or fewer and
    the product name itself are dropped.
    """
    product = product_name.lower()
    candidates: list[str] = []

    host = (urlsplit(source_url).hostname or "").removeprefix("www.")
    label = host.split(".")[0] if host else ""
    if len(label) > 3:
        candidates.extend([label, label[:1].upper() + label[1:]])

    title = _TITLE_RE.search(source_html)
    if title:
        for part in _TITLE_SEPARATOR_RE.split(title.group(1).strip()):
            part = part.strip()
            if 3 < len(part) < 40 and part.lower() != product:
                candidates.append(part)

    for pattern in _OG_SITE_NAME_RES:
        og = pattern.search(source_html)
        if og:
            if len(og.group(1).strip()) > 3:
                candidates.append(og.group(1).strip())
            break

    unique = [
        token
        for token in dict.fromkeys(candidates)
        if len(token) > 3 and token.lower() != product
    ]
    return sorted(unique, key=len, reverse=True)


def replace_brand_text(html: str, source_url: str, source_html: str, product_name: str) -> str:
    """Replace brand tokens in text content only.

    Tags, attribute values and the bodies of ``<style>`` and ``<script>``
    elements are markup and are left untouched.
    """
    if not product_name or not source_url:
        return html
    tokens = detect_brand_tokens(source_url, source_html, product_name)
    if not tokens:
        return html

    print(f"[BRAND] {tokens} -> {product_name!r}")
    patterns = [re.compile(re.escape(token), re.IGNORECASE) for token in tokens]
    parts = _TAG_SPLIT_RE.split(html)
    raw_element: Optional[str] = None
    for i, part in enumerate(parts):
        if part.startswith("<"):
            if raw_element is None:
                opening = _RAW_OPEN_RE.match(part)
                if opening:
                    raw_element = opening.group(1).lower()
            else:
                closing = _RAW_CLOSE_RE.match(part)
                if closing and closing.group(1).lower() == raw_element:
                    raw_element = None
            continue
        if raw_element is not None:
            continue
        for pattern in patterns:
            part = pattern.sub(lambda _m: product_name, part)
        parts[i] = part
    return "".join(parts)
