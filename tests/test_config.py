"""Tests for settings resolution."""

from __future__ import annotations

import pytest

from funnelcap.config import Settings
from funnelcap.errors import ConfigurationError


class TestEnvironment:
    def test_numeric_override(self, monkeypatch):
        monkeypatch.setenv("CRAWL_MAX_STEPS", "7")
        monkeypatch.setenv("QUIZ_STEPS_CEILING", "12")
        s = Settings()
        assert s.crawl_max_steps == 7
        assert s.quiz_steps_ceiling == 12

    @pytest.mark.parametrize("raw, expected", [("false", False), ("0", False), ("YES", True)])
    def test_headless_flag(self, monkeypatch, raw, expected):
        monkeypatch.setenv("BROWSER_HEADLESS", raw)
        assert Settings().headless is expected

    def test_db_path_under_workspace(self, tmp_path):
        assert Settings(workspace_dir=tmp_path).db_path == tmp_path / "funnelcap.db"


class TestRewriteCredentials:
    def test_anthropic_key_required(self):
        with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
            Settings(llm_provider="anthropic", anthropic_api_key="").require_rewrite_credentials()

    def test_openai_key_required(self):
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            Settings(llm_provider="openai", openai_api_key="").require_rewrite_credentials()

    def test_ollama_needs_no_key(self):
        Settings(llm_provider="ollama").require_rewrite_credentials()

    def test_configured_key_passes(self):
        Settings(llm_provider="anthropic", anthropic_api_key="sk-test").require_rewrite_credentials()

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError, match="Unknown"):
            Settings(llm_provider="bogus").require_rewrite_credentials()
