"""Tests for the rewrite reply parser and the batch client.

No network calls: the chat model is a ``MagicMock`` (or the provider
classes are patched) in every test.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from funnelcap.config import settings
from funnelcap.errors import RewriteError
from funnelcap.rewrite.client import ProductBrief, _get_llm, build_rewrite_prompt, rewrite_batch
from funnelcap.rewrite.parsing import parse_rewrite_response
from funnelcap.transplant.models import TextUnit

_BRIEF = ProductBrief(product_name="Zenith Shoes", product_description="Running shoes for trails")


def _unit(index, text="Old text"):
    return TextUnit(index=index, original_text=text, raw_text=text, tag_name="p", classes="lead")


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class TestParseRewriteResponse:
    def test_plain_array(self):
        assert parse_rewrite_response('[{"index": 0, "text": "Hi"}]') == [{"index": 0, "text": "Hi"}]

    def test_truncated_reply_keeps_complete_object(self):
        assert parse_rewrite_response('[{"index":0,"text":"Hello"') == [{"index": 0, "text": "Hello"}]

    def test_truncated_inside_string(self):
        reply = '[{"index":0,"text":"Hi"},{"index":1,"text":"Hel'
        assert parse_rewrite_response(reply) == [{"index": 0, "text": "Hi"}]

    def test_markdown_fence_and_trailing_comma(self):
        reply = '```json\n[{"index": 1, "text": "A"},]\n```'
        assert parse_rewrite_response(reply) == [{"index": 1, "text": "A"}]

    def test_missing_comma_between_objects(self):
        reply = '[{"index":0,"text":"a"} {"index":1,"text":"b"}]'
        assert [e["index"] for e in parse_rewrite_response(reply)] == [0, 1]

    def test_brackets_inside_strings(self):
        reply = 'Sure! [{"index":0,"text":"a ] tricky } one"}] Hope this helps.'
        assert parse_rewrite_response(reply) == [{"index": 0, "text": "a ] tricky } one"}]

    def test_salvage_loose_objects(self):
        reply = 'Here: {"index": 2, "text": "X"} and then {"index": 3, "text": "Y"}'
        assert parse_rewrite_response(reply) == [{"index": 2, "text": "X"}, {"index": 3, "text": "Y"}]

    def test_invalid_entries_dropped(self):
        reply = (
            '[{"index":"0","text":"a"},{"index":true,"text":"b"},'
            '{"index":2,"text":5},{"index":3,"text":"ok"},"junk"]'
        )
        assert parse_rewrite_response(reply) == [{"index": 3, "text": "ok"}]

    @pytest.mark.parametrize("reply", ["", None, "Sorry, I cannot help with that."])
    def test_nothing_recoverable(self, reply):
        assert parse_rewrite_response(reply) == []


# ---------------------------------------------------------------------------
# Prompt + batch client
# ---------------------------------------------------------------------------

class TestBuildRewritePrompt:
    def test_contains_brief_and_batch(self):
        prompt = build_rewrite_prompt([_unit(4, "Buy now")], _BRIEF, "https://www.acmeshop.com/p")
        assert "Product name: Zenith Shoes" in prompt
        assert '"index": 4' in prompt
        assert '"text": "Buy now"' in prompt
        assert '"acmeshop"' in prompt
        assert "Copywriting framework" not in prompt

    def test_optional_brief_lines(self):
        brief = ProductBrief("Z", "D", framework="AIDA", target="runners", custom_prompt="Be playful")
        prompt = build_rewrite_prompt([_unit(0)], brief)
        assert "Copywriting framework: AIDA" in prompt
        assert "Target audience: runners" in prompt
        assert "Custom copy instructions: Be playful" in prompt


class TestRewriteBatch:
    def test_maps_indexes_of_batch_only(self):
        llm = MagicMock()
        llm.invoke.return_value = SimpleNamespace(
            content='[{"index": 4, "text": "New four"}, {"index": 9, "text": "Stray"}]'
        )
        result = rewrite_batch([_unit(4), _unit(5)], _BRIEF, llm=llm)
        assert result == {4: "New four"}
        llm.invoke.assert_called_once()

    def test_list_content_blocks(self):
        llm = MagicMock()
        llm.invoke.return_value = SimpleNamespace(
            content=[{"type": "text", "text": '[{"index": 0, '}, {"type": "text", "text": '"text": "x"}]'}]
        )
        assert rewrite_batch([_unit(0)], _BRIEF, llm=llm) == {0: "x"}

    def test_transport_failure_raises(self):
        llm = MagicMock()
        llm.invoke.side_effect = ConnectionError("refused")
        with pytest.raises(RewriteError, match="refused"):
            rewrite_batch([_unit(0)], _BRIEF, llm=llm)

    def test_empty_batch_skips_call(self):
        llm = MagicMock()
        assert rewrite_batch([], _BRIEF, llm=llm) == {}
        llm.invoke.assert_not_called()


class TestGetLlm:
    def test_openai(self, monkeypatch):
        monkeypatch.setattr(settings, "llm_provider", "openai")
        with patch("langchain_openai.ChatOpenAI") as chat:
            _get_llm()
        assert chat.call_args.kwargs["model"] == settings.openai_chat_model

    def test_ollama(self, monkeypatch):
        monkeypatch.setattr(settings, "llm_provider", "ollama")
        with patch("langchain_ollama.ChatOllama") as chat:
            _get_llm()
        assert chat.call_args.kwargs["base_url"] == settings.ollama_base_url

    def test_anthropic_default(self, monkeypatch):
        monkeypatch.setattr(settings, "llm_provider", "anthropic")
        with patch("langchain_anthropic.ChatAnthropic") as chat:
            _get_llm()
        assert chat.call_args.kwargs["max_tokens"] == 6000
