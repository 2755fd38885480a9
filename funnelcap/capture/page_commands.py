"""Named in-page commands.

Each command is a small JavaScript function evaluated through Playwright's
``page.evaluate``.  Commands only *read* the live DOM (except the click
command, which performs exactly one click) and return plain JSON data; all
decisions that do not need layout information are made in Python so they can
be unit-tested without a browser.

Public wrappers
---------------
``collect_document_source``  - stylesheet rule text + serialised document.
``extract_text_candidates``  - visible elements with their direct text.
``compute_fingerprint``      - content signature used for quiz loop control.
``list_advance_candidates``  - interactive elements a quiz could advance with.
``click_advance_candidate``  - click the n-th advance candidate.
``collect_links`` / ``collect_forms`` / ``quiz_step_label`` / ``dom_length``
/ ``body_text``.
"""

from __future__ import annotations

from typing import Any

# ---------------------------------------------------------------------------
# JavaScript sources
# ---------------------------------------------------------------------------

COLLECT_DOCUMENT_SOURCE_JS = """
() => {
  const sheets = [];
  for (const sheet of Array.from(document.styleSheets)) {
    const href = sheet.href || null;
    try {
      const rules = Array.from(sheet.cssRules || []);
      sheets.push({ href, css: rules.map((r) => r.cssText).join('\\n') });
    } catch (e) {
      sheets.push({ href, css: null });
    }
  }
  return {
    url: document.location.href,
    title: document.title || '',
    html: document.documentElement.outerHTML,
    sheets,
  };
}
"""

EXTRACT_TEXT_CANDIDATES_JS = """
() => {
  const skip = new Set(['SCRIPT', 'STYLE', 'NOSCRIPT', 'IFRAME', 'SVG', 'META', 'LINK',
    'BR', 'HR', 'IMG', 'VIDEO', 'AUDIO', 'PICTURE', 'SOURCE', 'CANVAS',
    'INPUT', 'SELECT', 'TEXTAREA', 'OPTION']);
  const elements = [];
  for (const el of Array.from(document.body ? document.body.querySelectorAll('*') : [])) {
    if (skip.has(el.tagName.toUpperCase())) continue;
    const rect = el.getBoundingClientRect();
    if (rect.width < 5 || rect.height < 5) continue;
    const style = window.getComputedStyle(el);
    if (style.display === 'none' || style.visibility === 'hidden' || style.opacity === '0') continue;
    let direct = '';
    el.childNodes.forEach((node) => {
      if (node.nodeType === 3) direct += node.textContent || '';
    });
    if (!direct.trim()) continue;
    const attrs = {};
    for (const attr of Array.from(el.attributes)) attrs[attr.name] = attr.value;
    elements.push({
      tag: el.tagName.toLowerCase(),
      text: direct,
      attributes: attrs,
      top: Math.round(rect.top + window.scrollY),
    });
  }
  const attributes = [];
  document.querySelectorAll('[alt],[title],[placeholder],[aria-label]').forEach((el) => {
    for (const name of ['alt', 'title', 'placeholder', 'aria-label']) {
      const value = el.getAttribute(name);
      if (value) attributes.push({ tag: el.tagName.toLowerCase(), name, value });
    }
  });
  return { elements, attributes };
}
"""

COMPUTE_FINGERPRINT_JS = """
() => {
  const main = document.querySelector('main, [role="main"], .quiz-container, .quiz-content, [class*="quiz"], #quiz, .content, [class*="content"]') || document.body;
  const text = ((main && main.innerText) || '').slice(0, 5000);
  const h1 = document.querySelector('h1');
  const h2 = document.querySelector('h2');
  const stepEl = document.querySelector('[data-step], [data-question], .step, .slide, [class*="step"]');
  const marker = stepEl
    ? (stepEl.getAttribute('data-step') || stepEl.getAttribute('data-question') || String(stepEl.className || ''))
    : '';
  const selected = Array.from(document.querySelectorAll('[class*="option"], [class*="answer"], [class*="choice"], input[type="radio"]:checked, [aria-selected="true"]'))
    .map((el) => ((el.innerText || '').slice(0, 100) || el.value || ''));
  return {
    heading: [(h1 && h1.innerText) || '', (h2 && h2.innerText) || ''],
    marker,
    textLength: text.length,
    selected,
    prefix: text.slice(0, 800),
  };
}
"""

ADVANCE_SELECTOR = (
    'button, [role="button"], input[type="submit"], a[class*="btn"], a[class*="button"], '
    'label[for], input[type="radio"]:not(:checked), [class*="option"]:not([aria-selected="true"]), '
    '[class*="answer"], [class*="choice"], [class*="cta"], [class*="next"]'
)

_ADVANCE_FILTER_JS = """
  const visible = (el) => {
    const text = (el.innerText || '').trim() || el.value || el.placeholder || '';
    if (!text || text.length > 200) return null;
    const rect = el.getBoundingClientRect();
    if (rect.width < 5 || rect.height < 5) return null;
    const style = window.getComputedStyle(el);
    if (style.visibility === 'hidden' || style.display === 'none') return null;
    return text;
  };
"""

LIST_ADVANCE_CANDIDATES_JS = (
    "(selector) => {"
    + _ADVANCE_FILTER_JS
    + """
  const out = [];
  Array.from(document.querySelectorAll(selector)).forEach((el) => {
    const text = visible(el);
    if (text === null) return;
    out.push({
      position: out.length,
      tag: el.tagName.toLowerCase(),
      role: el.getAttribute('role') || '',
      type: (el.getAttribute('type') || '').toLowerCase(),
      className: String(el.className || ''),
      text: text.slice(0, 200),
    });
  });
  return out;
}
"""
)

CLICK_ADVANCE_CANDIDATE_JS = (
    "([selector, position]) => {"
    + _ADVANCE_FILTER_JS
    + """
  const els = Array.from(document.querySelectorAll(selector)).filter((el) => visible(el) !== null);
  const el = els[position];
  if (!el) return false;
  try {
    el.click();
    return true;
  } catch (e) {
    return false;
  }
}
"""
)

COLLECT_LINKS_JS = """
(anchors) => anchors.map((a) => ({
  href: a.href,
  text: (a.textContent || '').trim().slice(0, 200),
}))
"""

COLLECT_FORMS_JS = """
(forms) => forms.map((form) => {
  const inputs = Array.from(form.querySelectorAll('input, select, textarea'))
    .filter((el) => el.name)
    .map((el) => ({ name: el.name, type: (el.type || 'text').toLowerCase(), required: !!el.required }));
  const submit = form.querySelector('button[type="submit"], input[type="submit"]');
  return {
    action: form.action || '',
    method: (form.method || 'get').toLowerCase(),
    inputs,
    submitButtonText: submit ? ((submit.textContent || '').trim().slice(0, 100) || null) : null,
  };
})
"""

QUIZ_STEP_LABEL_JS = """
() => {
  const pick = (sel) => {
    const el = document.querySelector(sel);
    return el && el.innerText ? el.innerText.trim() : '';
  };
  return pick('h1') || pick('h2') || pick('[class*="question"], [data-question], .quiz-question') || 'Quiz step';
}
"""

DOM_LENGTH_JS = "() => document.documentElement.outerHTML.length"

BODY_TEXT_JS = "() => ((document.body && document.body.innerText) || '').slice(0, 100000)"


# ---------------------------------------------------------------------------
# Python wrappers
# ---------------------------------------------------------------------------

def collect_document_source(page: Any) -> dict[str, Any]:
    return page.evaluate(COLLECT_DOCUMENT_SOURCE_JS)


def extract_text_candidates(page: Any) -> dict[str, list[dict[str, Any]]]:
    return page.evaluate(EXTRACT_TEXT_CANDIDATES_JS)


def compute_fingerprint(page: Any) -> str:
    """Return the content signature of the current quiz page.

    Combines heading text, the step/question marker, the visible-text length,
    the text of option-like elements and a prefix of the main text.
    """
    data = page.evaluate(COMPUTE_FINGERPRINT_JS)
    heading = "|".join(data.get("heading") or [])
    selected = "|".join(data.get("selected") or [])
    return (
        f"{heading}|{data.get('marker', '')}|{data.get('textLength', 0)}"
        f"|{selected}|{data.get('prefix', '')}"
    )


def list_advance_candidates(page: Any) -> list[dict[str, Any]]:
    return page.evaluate(LIST_ADVANCE_CANDIDATES_JS, ADVANCE_SELECTOR)


def click_advance_candidate(page: Any, position: int) -> bool:
    return bool(page.evaluate(CLICK_ADVANCE_CANDIDATE_JS, [ADVANCE_SELECTOR, position]))


def collect_links(page: Any) -> list[dict[str, str]]:
    return page.eval_on_selector_all("a[href]", COLLECT_LINKS_JS)


def collect_forms(page: Any) -> list[dict[str, Any]]:
    return page.eval_on_selector_all("form[action]", COLLECT_FORMS_JS)


def quiz_step_label(page: Any) -> str:
    return page.evaluate(QUIZ_STEP_LABEL_JS)


def dom_length(page: Any) -> int:
    return int(page.evaluate(DOM_LENGTH_JS))


def body_text(page: Any) -> str:
    return page.evaluate(BODY_TEXT_JS)
