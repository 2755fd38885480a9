"""Tests for snapshot normalisation and single-page capture.

No browser is used: ``normalize_document`` is exercised with the stylesheet
sources a live page would report, and ``capture_page`` is tested on its
static path with ``respx``.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import respx

from funnelcap.capture.models import StylesheetSource
from funnelcap.capture.snapshot import (
    capture_page,
    normalize_document,
    serialize_normalized_document,
    sheets_from_static_html,
)

_PAGE_URL = "https://lp.example.com/offer/index.html"

_HTML = """\
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Great Offer</title>
  <link rel="stylesheet" href="/css/site.css">
  <link rel="stylesheet" href="https://fonts.cdn.net/font.css">
  <link rel="icon" href="favicon.ico">
  <style>.hero{color:red}</style>
  <script>window.tracking = true;</script>
</head>
<body onload="init()">
  <img src="img/hero.jpg" srcset="img/hero.jpg 1x, img/hero@2x.jpg 2x" data-src="lazy.jpg">
  <div style="background:url('img/bg.png')">Hello</div>
  <a href="next.html" onclick="track()">Next</a>
  <form action="/submit"><button>Go</button></form>
  <video poster="poster.jpg"></video>
</body>
</html>
"""


def _sheets() -> list[StylesheetSource]:
    return [
        StylesheetSource(href="https://lp.example.com/css/site.css", css=".a{background:url(../img/a.png)}"),
        StylesheetSource(href="https://fonts.cdn.net/font.css", css=None),
        StylesheetSource(href=None, css=".hero{color:red}"),
    ]


class TestNormalizeDocument:
    def test_starts_with_doctype(self):
        snap = normalize_document(_HTML, _PAGE_URL, _sheets())
        assert snap.html.startswith("<!DOCTYPE html>\n<html")
        assert snap.html.count("<!DOCTYPE") == 1

    def test_scripts_and_handlers_removed(self):
        snap = normalize_document(_HTML, _PAGE_URL, _sheets())
        assert "<script" not in snap.html
        assert "onload" not in snap.html
        assert "onclick" not in snap.html

    def test_blocked_stylesheet_link_survives_absolute(self):
        """Scenario D: an unreadable sheet keeps its <link> and is not inlined."""
        snap = normalize_document(_HTML, _PAGE_URL, _sheets())
        assert 'href="https://fonts.cdn.net/font.css"' in snap.html
        assert snap.blocked_stylesheets == ["https://fonts.cdn.net/font.css"]
        assert "source: https://fonts.cdn.net/font.css" not in snap.html

    def test_readable_stylesheet_inlined_and_link_removed(self):
        snap = normalize_document(_HTML, _PAGE_URL, _sheets())
        assert 'rel="stylesheet" href="/css/site.css"' not in snap.html
        assert "/* source: https://lp.example.com/css/site.css */" in snap.html
        assert 'url("https://lp.example.com/img/a.png")' in snap.html
        assert snap.css_count == 2

    def test_single_consolidated_style_after_charset(self):
        snap = normalize_document(_HTML, _PAGE_URL, _sheets())
        assert snap.html.count("<style>") == 1
        assert snap.html.index('<meta charset="utf-8"/>') < snap.html.index("<style>")

    def test_resource_attributes_absolutized(self):
        snap = normalize_document(_HTML, _PAGE_URL, _sheets())
        assert 'src="https://lp.example.com/offer/img/hero.jpg"' in snap.html
        assert "https://lp.example.com/offer/img/hero@2x.jpg 2x" in snap.html
        assert 'data-src="https://lp.example.com/offer/lazy.jpg"' in snap.html
        assert 'href="https://lp.example.com/offer/next.html"' in snap.html
        assert 'action="https://lp.example.com/submit"' in snap.html
        assert 'poster="https://lp.example.com/offer/poster.jpg"' in snap.html
        assert 'url("https://lp.example.com/offer/img/bg.png")' in snap.html

    def test_non_stylesheet_links_kept(self):
        snap = normalize_document(_HTML, _PAGE_URL, _sheets())
        assert 'href="https://lp.example.com/offer/favicon.ico"' in snap.html

    def test_title_and_image_count(self):
        snap = normalize_document(_HTML, _PAGE_URL, _sheets())
        assert snap.title == "Great Offer"
        assert snap.img_count == 1

    def test_no_readable_css_keeps_inline_styles(self):
        html = "<html><head><style>.x{}</style></head><body></body></html>"
        snap = normalize_document(html, _PAGE_URL, [])
        assert "<style>.x{}</style>" in snap.html
        assert snap.css_count == 0

    def test_head_created_when_missing(self):
        snap = normalize_document("<html><body><p>x</p></body></html>", _PAGE_URL,
                                  [StylesheetSource(href=None, css="p{}")])
        assert "<head><style>" in snap.html

    def test_nbsp_written_as_entity_other_text_literal(self):
        html = '<html><body><p title="a&nbsp;b">Only&nbsp;today in Città &amp; co</p></body></html>'
        snap = normalize_document(html, _PAGE_URL, [StylesheetSource(href=None, css=".a > .b{}")])
        assert "<p title=\"a&nbsp;b\">Only&nbsp;today in Città &amp; co</p>" in snap.html
        assert "\u00a0" not in snap.html
        assert ".a > .b{}" in snap.html


class TestStaticSheets:
    def test_inline_readable_links_blocked(self):
        sheets = sheets_from_static_html(_HTML, _PAGE_URL)
        assert StylesheetSource(href=None, css=".hero{color:red}") in sheets
        blocked = [s.href for s in sheets if s.blocked]
        assert blocked == ["https://lp.example.com/css/site.css", "https://fonts.cdn.net/font.css"]


class TestSerializeNormalizedDocument:
    def test_reads_page_without_mutating(self):
        page = MagicMock()
        page.evaluate.return_value = {
            "html": _HTML,
            "url": _PAGE_URL,
            "title": "Great Offer",
            "sheets": [{"href": "https://fonts.cdn.net/font.css", "css": None}],
        }
        snap = serialize_normalized_document(page)
        assert 'href="https://fonts.cdn.net/font.css"' in snap.html
        page.evaluate.assert_called_once()
        page.set_content.assert_not_called()


class TestCapturePage:
    @respx.mock
    def test_static_capture(self):
        respx.get(_PAGE_URL).mock(return_value=httpx.Response(200, text=_HTML))
        page = capture_page(_PAGE_URL, render=False)
        assert page.method_used == "static"
        assert page.title == "Great Offer"
        assert page.rendered_size == len(page.html)
        # Linked sheets are unreadable statically and stay as <link>s.
        assert 'href="https://lp.example.com/css/site.css"' in page.html
        assert page.to_dict()["css_count"] == page.css_count

    @respx.mock
    def test_auto_switches_to_browser_for_spa(self):
        spa = '<html><body><div id="root"></div></body></html>'
        respx.get(_PAGE_URL).mock(return_value=httpx.Response(200, text=spa))

        fake_page = MagicMock()
        fake_page.url = _PAGE_URL
        fake_page.evaluate.return_value = {
            "html": "<html><head><title>Rendered</title></head><body><p>Hi</p></body></html>",
            "url": _PAGE_URL,
            "title": "Rendered",
            "sheets": [],
        }
        context_cm = MagicMock()
        context_cm.__enter__.return_value = MagicMock()
        with patch("funnelcap.capture.browser.browser_context", return_value=context_cm), \
             patch("funnelcap.capture.navigator.open_page", return_value=fake_page):
            page = capture_page(_PAGE_URL)

        assert page.method_used == "browser"
        assert page.title == "Rendered"
        fake_page.close.assert_called_once()
