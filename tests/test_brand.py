"""Tests for the brand post-pass."""

from __future__ import annotations

from funnelcap.capture.models import StylesheetSource
from funnelcap.capture.snapshot import normalize_document
from funnelcap.transplant.brand import detect_brand_tokens, replace_brand_text

_SOURCE = (
    "<html><head><title>AcmeShop</title>"
    '<meta property="og:site_name" content="Acme Shop Online"></head><body></body></html>'
)


class TestDetectBrandTokens:
    def test_sources(self):
        tokens = detect_brand_tokens("https://www.acmeshop.com/offer", _SOURCE, "Zenith")
        assert tokens[0] == "Acme Shop Online"
        assert "acmeshop" in tokens
        assert "AcmeShop" in tokens

    def test_short_tokens_and_product_dropped(self):
        html = "<title>Zenith - Ab</title>"
        assert detect_brand_tokens("https://abc.com/", html, "Zenith") == []


class TestReplaceBrandText:
    def test_text_replaced_markup_kept(self):
        html = '<a href="https://acmeshop.com/x" class="acmeshop-link">Welcome to ACMESHOP</a>'
        out = replace_brand_text(html, "https://acmeshop.com/", _SOURCE, "Zenith")
        assert out == '<a href="https://acmeshop.com/x" class="acmeshop-link">Welcome to Zenith</a>'

    def test_noop_without_product(self):
        html = "<p>acmeshop</p>"
        assert replace_brand_text(html, "https://acmeshop.com/", _SOURCE, "") == html

    def test_stylesheet_and_script_bodies_kept(self):
        snapshot = normalize_document(
            '<html><head><link rel="stylesheet" href="/s.css"></head>'
            '<body><p class="h">Shop at AcmeShop</p></body></html>',
            "https://www.acmeshop.com/lp",
            [StylesheetSource(href="https://www.acmeshop.com/s.css", css=".h{background:url(/img/bg.png)}")],
        )
        out = replace_brand_text(snapshot.html, "https://www.acmeshop.com/lp", _SOURCE, "Zenith")
        assert "https://www.acmeshop.com/img/bg.png" in out
        assert "/* source: https://www.acmeshop.com/s.css */" in out
        assert "Shop at Zenith" in out

    def test_inline_script_kept(self):
        html = '<script>var u="https://acmeshop.com/api";</script><p>AcmeShop deals</p>'
        out = replace_brand_text(html, "https://acmeshop.com/", _SOURCE, "Zenith")
        assert out == '<script>var u="https://acmeshop.com/api";</script><p>Zenith deals</p>'
