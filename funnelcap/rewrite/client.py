"""Rewrite-service client: batch text units through a chat model.

The model receives a product brief plus a small batch of
``{index, text, tag, classes}`` records and answers with a JSON array of
``{index, text}`` (see :mod:`funnelcap.rewrite.parsing`).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Optional
from urllib.parse import urlsplit

from funnelcap.config import settings
from funnelcap.errors import RewriteError
from funnelcap.rewrite.parsing import parse_rewrite_response
from funnelcap.transplant.models import TextUnit

_MAX_TOKENS = 6000


@dataclass
class ProductBrief:
    """What the cloned page should sell instead."""

    product_name: str
    product_description: str
    framework: Optional[str] = None
    target: Optional[str] = None
    custom_prompt: Optional[str] = None


# ---------------------------------------------------------------------------
# LLM helper
# ---------------------------------------------------------------------------

def _get_llm() -> Any:
    """Return a configured LangChain chat model based on ``settings``."""
    provider = settings.llm_provider.lower()
    if provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=settings.openai_chat_model,
            temperature=settings.rewrite_temperature,
            api_key=settings.openai_api_key,
        )

    if provider == "ollama":
        from langchain_ollama import ChatOllama

        return ChatOllama(
            model=settings.ollama_chat_model,
            base_url=settings.ollama_base_url,
            temperature=settings.rewrite_temperature,
        )

    from langchain_anthropic import ChatAnthropic

    return ChatAnthropic(
        model=settings.anthropic_chat_model,
        temperature=settings.rewrite_temperature,
        max_tokens=_MAX_TOKENS,
        api_key=settings.anthropic_api_key,
    )


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

def _source_brand(source_url: str) -> str:
    host = (urlsplit(source_url).hostname or "").removeprefix("www.")
    label = host.split(".")[0] if host else ""
    return label if len(label) > 3 else ""


def build_rewrite_prompt(units: Iterable[TextUnit], brief: ProductBrief, source_url: str = "") -> str:
    batch = [
        {"index": u.index, "text": u.original_text, "tag": u.tag_name, "classes": u.classes}
        for u in units
    ]
    brief_lines = [
        f"Product name: {brief.product_name}",
        f"Product description: {brief.product_description}",
    ]
    if brief.framework:
        brief_lines.append(f"Copywriting framework: {brief.framework}")
    if brief.target:
        brief_lines.append(f"Target audience: {brief.target}")
    if brief.custom_prompt:
        brief_lines.append(f"Custom copy instructions: {brief.custom_prompt}")

    brand = _source_brand(source_url)
    brand_rule = (
        f"- The original brand is probably \"{brand}\": replace every mention of it "
        f"with \"{brief.product_name}\".\n"
        if brand
        else ""
    )

    return (
        "The landing page below is a structural TEMPLATE. Rewrite every text using "
        "ONLY the information about the new product.\n\n"
        "NEW PRODUCT:\n"
        + "\n".join(brief_lines)
        + "\n\n"
        "RULES:\n"
        "- Use the original texts only to judge approximate length, kind of text "
        "(headline, button, description) and formatting.\n"
        "- Do not copy any words from the original texts; write new copy from scratch.\n"
        f"- Every text must be about \"{brief.product_name}\".\n"
        "- Keep the language of each original text; never mix languages in one text.\n"
        "- If an original text starts with &nbsp; or spaces, keep that formatting.\n"
        "- Texts shorter than 100 characters (headlines, buttons) must not contain HTML.\n"
        "- Replace competitor brand, company or site names with "
        f"\"{brief.product_name}\".\n"
        + brand_rule
        + "\nTEXTS TO REWRITE:\n"
        + json.dumps(batch, ensure_ascii=False, indent=2)
        + "\n\nReturn ONLY a JSON array in the same order:\n"
        '[{"index": 0, "text": "rewritten text"}, ...]'
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def rewrite_batch(
    units: list[TextUnit],
    brief: ProductBrief,
    source_url: str = "",
    llm: Any = None,
) -> dict[int, str]:
    """Rewrite one batch of units.

    Returns:
        ``{index: new_text}`` for every entry recovered from the reply whose
        index belongs to the batch.  Missing entries are simply absent.

    Raises:
        RewriteError: If the model call fails.
    """
    if not units:
        return {}
    llm = llm or _get_llm()
    prompt = build_rewrite_prompt(units, brief, source_url)
    print(f"[REWRITE] Sending batch of {len(units)} unit(s) (first index {units[0].index})")
    try:
        response = llm.invoke(prompt)
    except Exception as exc:
        raise RewriteError(f"Rewrite call failed: {exc}") from exc

    raw = response.content if hasattr(response, "content") else str(response)
    if isinstance(raw, list):
        raw = "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in raw
        )
    wanted = {u.index for u in units}
    rewritten = {
        entry["index"]: entry["text"]
        for entry in parse_rewrite_response(raw)
        if entry["index"] in wanted
    }
    print(f"[REWRITE] Recovered {len(rewritten)}/{len(units)} rewritten text(s)")
    return rewritten
