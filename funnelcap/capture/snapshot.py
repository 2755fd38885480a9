"""Snapshot normalisation: turn a page into one self-contained HTML document.

The live page is never modified.  The browser only supplies the serialised
document plus the rule text of every readable stylesheet
(:func:`~funnelcap.capture.page_commands.collect_document_source`); the
rewrite itself runs on a parsed copy with BeautifulSoup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from bs4 import BeautifulSoup, Doctype
from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter

from funnelcap.capture import page_commands
from funnelcap.capture.fetcher import fetch_html, is_spa
from funnelcap.capture.models import PageCapture, StylesheetSource
from funnelcap.capture.resolver import resolve_srcset, resolve_url, rewrite_css_urls

_URL_ATTRIBUTES = (
    "src",
    "href",
    "poster",
    "data-src",
    "data-lazy-src",
    "data-original",
    "data-bg",
    "action",
)

# Minimal escaping, plus U+00A0 written as &nbsp; the way browsers serialise it.
_SNAPSHOT_FORMATTER = HTMLFormatter(
    entity_substitution=lambda text: EntitySubstitution.substitute_xml(text).replace("\u00a0", "&nbsp;"),
)


@dataclass
class Snapshot:
    html: str
    title: str
    css_count: int
    img_count: int
    blocked_stylesheets: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _is_stylesheet_link(tag: Any) -> bool:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return tag.name == "link" and "stylesheet" in [r.lower() for r in rel]


def _consolidate_css(sheets: Iterable[StylesheetSource], page_url: str) -> list[str]:
    blocks: list[str] = []
    for sheet in sheets:
        if sheet.blocked or not (sheet.css or "").strip():
            continue
        base = sheet.href or page_url
        label = sheet.href or "inline"
        blocks.append(f"/* source: {label} */\n{rewrite_css_urls(sheet.css, base)}")
    return blocks


def _strip_executable(soup: BeautifulSoup) -> None:
    for script in soup.find_all("script"):
        script.decompose()
    for tag in soup.find_all(True):
        for attr in [a for a in tag.attrs if a.lower().startswith("on")]:
            del tag[attr]


def _absolutize(soup: BeautifulSoup, page_url: str) -> None:
    for tag in soup.find_all(True):
        for attr in _URL_ATTRIBUTES:
            value = tag.get(attr)
            if isinstance(value, str) and value:
                tag[attr] = resolve_url(value, page_url)
        srcset = tag.get("srcset")
        if isinstance(srcset, str) and srcset:
            tag["srcset"] = resolve_srcset(srcset, page_url)
        style = tag.get("style")
        if isinstance(style, str) and "url(" in style:
            tag["style"] = rewrite_css_urls(style, page_url)


def _inject_style(soup: BeautifulSoup, css_blocks: list[str]) -> None:
    head = soup.find("head")
    if head is None:
        head = soup.new_tag("head")
        root = soup.find("html") or soup
        root.insert(0, head)
    style = soup.new_tag("style")
    style.string = "\n\n".join(css_blocks)
    charset = head.find("meta", attrs={"charset": True})
    if charset is not None:
        charset.insert_after(style)
    else:
        head.insert(0, style)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize_document(
    html: str,
    page_url: str,
    sheets: Iterable[StylesheetSource],
) -> Snapshot:
    """Rewrite *html* into a self-contained document.

    Args:
        html: Serialised document as read from the page.
        page_url: URL the document was loaded from (resolution base).
        sheets: Every stylesheet of the page in cascade order.  Sheets whose
            ``css`` is ``None`` are *blocked*: their rules are not inlined and
            their ``<link rel="stylesheet">`` survives with an absolute href.

    Returns:
        A :class:`Snapshot` whose ``html`` starts with ``<!DOCTYPE html>``.
    """
    sheets = list(sheets)
    blocked = {
        resolve_url(s.href, page_url) for s in sheets if s.blocked and s.href
    }
    css_blocks = _consolidate_css(sheets, page_url)

    soup = BeautifulSoup(html, "html.parser")
    for node in soup.find_all(string=lambda s: isinstance(s, Doctype)):
        node.extract()

    _strip_executable(soup)

    for link in soup.find_all("link"):
        if not _is_stylesheet_link(link):
            continue
        href = link.get("href")
        if isinstance(href, str) and resolve_url(href, page_url) in blocked:
            continue
        link.decompose()

    _absolutize(soup, page_url)

    if css_blocks:
        # Inline <style> rules are already part of the consolidated sheet.
        for style in soup.find_all("style"):
            style.decompose()
        _inject_style(soup, css_blocks)

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""
    root = soup.find("html") or soup
    print(
        f"[SNAPSHOT] {page_url}: {len(css_blocks)} stylesheet(s) inlined, "
        f"{len(blocked)} blocked"
    )
    return Snapshot(
        html="<!DOCTYPE html>\n" + root.decode(formatter=_SNAPSHOT_FORMATTER),
        title=title,
        css_count=len(css_blocks),
        img_count=len(soup.find_all("img")),
        blocked_stylesheets=sorted(blocked),
    )


def sheets_from_static_html(html: str, page_url: str) -> list[StylesheetSource]:
    """Derive stylesheet sources from raw HTML when no browser is involved.

    Inline ``<style>`` blocks are readable; linked stylesheets are treated as
    unreadable so their ``<link>`` elements are preserved.
    """
    soup = BeautifulSoup(html, "html.parser")
    sheets: list[StylesheetSource] = []
    for tag in soup.find_all(["style", "link"]):
        if tag.name == "style":
            sheets.append(StylesheetSource(href=None, css=tag.get_text()))
        elif _is_stylesheet_link(tag) and tag.get("href"):
            sheets.append(StylesheetSource(href=resolve_url(tag["href"], page_url), css=None))
    return sheets


def serialize_normalized_document(page: Any) -> Snapshot:
    """Snapshot the live *page* without mutating it."""
    source = page_commands.collect_document_source(page)
    sheets = [
        StylesheetSource(href=s.get("href"), css=s.get("css"))
        for s in source.get("sheets", [])
    ]
    snapshot = normalize_document(source["html"], source["url"], sheets)
    if not snapshot.title:
        snapshot.title = source.get("title", "")
    return snapshot


def capture_page(url: str, render: Optional[bool] = None) -> PageCapture:
    """Capture *url* as a self-contained document for the clone feature.

    Args:
        url: Page to capture.
        render: ``True`` forces the headless browser, ``False`` forces a
            static fetch, ``None`` fetches statically first and falls back to
            the browser when the response looks like a JavaScript SPA.
    """
    if render is not True:
        raw = fetch_html(url)
        if render is False or not is_spa(raw.html):
            snapshot = normalize_document(
                raw.html, raw.url, sheets_from_static_html(raw.html, raw.url)
            )
            return PageCapture(
                url=raw.url,
                html=snapshot.html,
                title=snapshot.title,
                css_count=snapshot.css_count,
                img_count=snapshot.img_count,
                method_used="static",
            )
        print(f"[SNAPSHOT] {url} looks JS-rendered, switching to the browser")

    from funnelcap.capture.browser import browser_context  # noqa: PLC0415
    from funnelcap.capture.navigator import open_page  # noqa: PLC0415

    with browser_context() as context:
        page = open_page(context, url)
        try:
            snapshot = serialize_normalized_document(page)
            final_url = page.url
        finally:
            page.close()

    return PageCapture(
        url=final_url,
        html=snapshot.html,
        title=snapshot.title,
        css_count=snapshot.css_count,
        img_count=snapshot.img_count,
        method_used="browser",
    )
