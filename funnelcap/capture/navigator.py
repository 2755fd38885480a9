"""Navigation controller: drive a browser through a funnel.

Two modes share one step-capture routine:

* **standard**: breadth-first crawl over same-origin links, bounded by
  ``max_steps`` and ``max_depth``.
* **quiz**: stay on one tab and keep clicking the most likely "advance"
  control, using a content fingerprint to detect when the page stops
  changing.

Pages are visited strictly one after another: BFS needs the links of the
previous page and quiz mode needs the previous fingerprint.
"""

from __future__ import annotations

import base64
import re
import threading
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from funnelcap.capture import page_commands
from funnelcap.capture.models import (
    CrawlForm,
    CrawlLink,
    CrawlParams,
    CrawlResult,
    FormInput,
    Step,
)
from funnelcap.capture.resolver import normalize_url, origin_of, resolve_url
from funnelcap.capture.snapshot import serialize_normalized_document
from funnelcap.capture.telemetry import TelemetryRecorder, capture_cookies
from funnelcap.config import settings
from funnelcap.errors import JobCancelledError, NavigationError

ProgressCallback = Callable[[int, int], None]

_CTA_TEXT_RE = re.compile(r"btn|button|cta|submit|buy|order|get|start|join|sign|claim", re.IGNORECASE)

QUIZ_NEXT_PATTERN = re.compile(
    r"→|\b(?:next(?:\s*step)?|continue|avanti|continua|submit|get\s*(?:my|your)?\s*results?|"
    r"see\s*(?:my\s*)?results?|claim(?:\s*discount)?|start|inizia|scopri|prossimo|vai\s*avanti|"
    r"ottieni|go|vai|proceed|siguiente|seguir|weiter|suivant|continuer|próximo|continuar)\b",
    re.IGNORECASE,
)
_CTA_CLASS_RE = re.compile(r"btn|button|cta|next|submit", re.IGNORECASE)
_OPTION_CLASS_RE = re.compile(r"option|answer|choice", re.IGNORECASE)
_CHECKOUT_PAGE_RE = re.compile(
    r"checkout|carrello|cart|pagamento|payment|acquista|buy\s*now|ordine|order\s*summary|pay\s*now",
    re.IGNORECASE,
)


# ---------------------------------------------------------------------------
# Small pure helpers
# ---------------------------------------------------------------------------

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_cta_link(text: str) -> bool:
    return bool(_CTA_TEXT_RE.search(text)) or (0 < len(text) < 50)


def is_checkout_like(url: str, title: str = "") -> bool:
    """Return ``True`` when the URL or title reads like a checkout page."""
    return bool(_CHECKOUT_PAGE_RE.search(f"{url} {title}"))


def score_advance_candidate(candidate: dict[str, Any]) -> int:
    """Priority of one interactive element as a quiz "advance" control.

    Explicit next/continue wording wins, then native buttons, radio inputs,
    submit inputs, CTA-ish classes, labels and option-ish classes.
    """
    text = candidate.get("text", "") or ""
    tag = (candidate.get("tag", "") or "").lower()
    role = (candidate.get("role", "") or "").lower()
    input_type = (candidate.get("type", "") or "").lower()
    class_name = candidate.get("className", "") or ""

    if QUIZ_NEXT_PATTERN.search(text):
        return 10
    if tag == "button" or role == "button":
        return 7
    if tag == "input" and input_type == "radio":
        return 6
    if tag == "input" and input_type == "submit":
        return 5
    if _CTA_CLASS_RE.search(class_name):
        return 4
    if tag == "label":
        return 3
    if _OPTION_CLASS_RE.search(class_name):
        return 2
    return 1


def rank_advance_candidates(candidates: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Highest priority first; ties keep DOM order (``sorted`` is stable)."""
    return sorted(candidates, key=lambda c: -score_advance_candidate(c))


def click_best_advance_candidate(page: Any) -> bool:
    """Click the best clickable advance candidate.  ``False`` if none worked."""
    for candidate in rank_advance_candidates(page_commands.list_advance_candidates(page)):
        if page_commands.click_advance_candidate(page, candidate["position"]):
            print(
                f"[QUIZ] Clicked <{candidate.get('tag')}> "
                f"{candidate.get('text', '')[:60]!r} (score {score_advance_candidate(candidate)})"
            )
            return True
    return False


def open_page(context: Any, url: str, timeout_ms: Optional[int] = None) -> Any:
    """Open *url* in a new page of *context* and wait for it to settle.

    The page is closed again if navigation fails.

    Raises:
        NavigationError: If the browser returned no response.
        playwright.sync_api.Error: On navigation timeout or network failure.
    """
    timeout = timeout_ms or settings.nav_timeout_ms
    page = context.new_page()
    page.set_default_timeout(timeout)
    try:
        response = page.goto(url, wait_until="domcontentloaded", timeout=timeout)
        if response is None:
            raise NavigationError(f"No response loading {url}")
    except Exception:
        page.close()
        raise
    try:
        page.wait_for_load_state("networkidle")
    except PlaywrightTimeoutError:
        pass
    return page


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class NavigationController:
    """Runs one crawl over an already-open browser context."""

    def __init__(
        self,
        context: Any,
        params: CrawlParams,
        *,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.context = context
        self.params = params
        self.on_progress = on_progress
        self.cancel_event = cancel_event
        self.recorder = TelemetryRecorder()

        self.max_steps = params.max_steps if params.max_steps is not None else settings.crawl_max_steps
        self.max_depth = params.max_depth if params.max_depth is not None else settings.crawl_max_depth
        requested_quiz = (
            params.quiz_max_steps if params.quiz_max_steps is not None else settings.quiz_max_steps
        )
        self.quiz_max_steps = max(1, min(requested_quiz, settings.quiz_steps_ceiling))

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def run(self) -> CrawlResult:
        started = time.monotonic()
        if self.params.capture_network:
            self.recorder.attach(self.context)
        try:
            if self.params.quiz_mode:
                result = self._run_quiz()
            else:
                result = self._run_standard()
        finally:
            self.recorder.detach()
        result.duration_ms = int((time.monotonic() - started) * 1000)
        return result

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------
    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise JobCancelledError("cancelled")

    def _report(self, current: int, total: int) -> None:
        if self.on_progress is not None:
            self.on_progress(current, total)

    def _screenshot(self, page: Any) -> Optional[str]:
        try:
            data = page.screenshot(
                full_page=True, type="png", timeout=settings.screenshot_timeout_ms
            )
        except PlaywrightError as exc:
            print(f"[CRAWL] Screenshot skipped for {page.url}: {exc}")
            return None
        return base64.b64encode(data).decode("ascii")

    def _links(self, page: Any) -> tuple[list[CrawlLink], list[CrawlLink]]:
        links: list[CrawlLink] = []
        ctas: list[CrawlLink] = []
        base = page.url
        for raw in page_commands.collect_links(page):
            href = resolve_url(raw.get("href", ""), base)
            if not href.lower().startswith(("http://", "https://")):
                continue
            text = raw.get("text", "") or ""
            link = CrawlLink(href=href, text=text, is_cta=is_cta_link(text))
            links.append(link)
            if link.is_cta:
                ctas.append(link)
        return links, ctas

    def _forms(self, page: Any) -> list[CrawlForm]:
        return [
            CrawlForm(
                action=f.get("action", ""),
                method=f.get("method", "get"),
                inputs=tuple(
                    FormInput(name=i["name"], type=i.get("type", "text"), required=bool(i.get("required")))
                    for i in f.get("inputs", [])
                ),
                submit_button_text=f.get("submitButtonText"),
            )
            for f in page_commands.collect_forms(page)
        ]

    def _capture_step(self, page: Any, step_index: int, quiz_label: Optional[str] = None) -> Step:
        params = self.params
        title = page.title()
        screenshot = self._screenshot(page) if params.capture_screenshots else None
        links, ctas = self._links(page)
        forms = self._forms(page)
        cookies = capture_cookies(self.context) if params.capture_cookies else []
        events = self.recorder.drain() if params.capture_network else []
        dom_len = page_commands.dom_length(page) if params.capture_network else 0
        snapshot = serialize_normalized_document(page).html if params.capture_snapshots else None
        content_text = None
        if not params.quiz_mode and self.max_steps == 1:
            content_text = page_commands.body_text(page)

        return Step(
            step_index=step_index,
            url=page.url,
            title=(quiz_label or title) if params.quiz_mode else title,
            timestamp=_now_iso(),
            links=tuple(links),
            cta_candidates=tuple(ctas),
            forms=tuple(forms),
            network_events=tuple(events),
            cookies=tuple(cookies),
            dom_length=dom_len,
            screenshot=screenshot,
            snapshot=snapshot,
            content_text=content_text,
            is_quiz_step=params.quiz_mode,
            quiz_label=quiz_label,
        )

    # ------------------------------------------------------------------
    # Standard BFS mode
    # ------------------------------------------------------------------
    def _run_standard(self) -> CrawlResult:
        entry = normalize_url(self.params.entry_url)
        entry_origin = origin_of(entry)
        result = CrawlResult(entry_url=self.params.entry_url)

        queue: deque[tuple[str, int]] = deque([(entry, 0)])
        queued = {entry}
        attempted: set[str] = set()

        while queue and len(result.steps) < self.max_steps:
            self._check_cancelled()
            url, depth = queue.popleft()
            if url in attempted or depth > self.max_depth:
                continue
            attempted.add(url)
            self._report(len(result.steps) + 1, self.max_steps)
            self.recorder.clear()

            print(f"[CRAWL] ({len(result.steps) + 1}/{self.max_steps}) depth={depth} {url}")
            try:
                page = open_page(self.context, url)
            except (PlaywrightError, NavigationError) as exc:
                if depth == 0:
                    raise NavigationError(f"Could not load entry URL {url}: {exc}") from exc
                print(f"[CRAWL] Skipping {url}: {exc}")
                continue

            try:
                final_url = page.url
                if self.params.follow_same_origin_only and origin_of(final_url) != entry_origin:
                    print(f"[CRAWL] Discarding off-origin page {final_url}")
                    continue

                step = self._capture_step(page, len(result.steps) + 1)
                result.steps.append(step)
                result.visited_urls.append(url)

                if depth < self.max_depth:
                    for link in step.links:
                        key = normalize_url(link.href)
                        if origin_of(key) != entry_origin:
                            continue
                        if key in attempted or key in queued:
                            continue
                        queue.append((key, depth + 1))
                        queued.add(key)
            except PlaywrightError as exc:
                print(f"[CRAWL] Step failed for {url}: {exc}")
            finally:
                page.close()

        print(f"[CRAWL] Done: {len(result.steps)} step(s)")
        return result

    # ------------------------------------------------------------------
    # Quiz-adaptive mode
    # ------------------------------------------------------------------
    def _run_quiz(self) -> CrawlResult:
        entry = normalize_url(self.params.entry_url)
        result = CrawlResult(
            entry_url=self.params.entry_url,
            visited_urls=[entry],
            is_quiz_funnel=True,
        )
        try:
            page = open_page(self.context, entry)
        except PlaywrightError as exc:
            raise NavigationError(f"Could not load quiz entry {entry}: {exc}") from exc

        same_fingerprint = 0
        try:
            while len(result.steps) < self.quiz_max_steps:
                self._check_cancelled()
                try:
                    fingerprint = page_commands.compute_fingerprint(page)
                    label = page_commands.quiz_step_label(page)
                    step = self._capture_step(page, len(result.steps) + 1, quiz_label=label)
                    result.steps.append(step)
                    self._report(len(result.steps), self.quiz_max_steps)
                    print(f"[QUIZ] Step {step.step_index}: {label[:80]!r}")

                    if is_checkout_like(page.url, step.title):
                        print("[QUIZ] Checkout-like page reached, stopping.")
                        break

                    if not click_best_advance_candidate(page):
                        print("[QUIZ] No clickable advance candidate, stopping.")
                        break

                    page.wait_for_timeout(settings.quiz_step_wait_ms)
                    try:
                        page.wait_for_load_state("domcontentloaded")
                    except PlaywrightTimeoutError:
                        pass

                    if page_commands.compute_fingerprint(page) != fingerprint:
                        same_fingerprint = 0
                        continue
                    page.wait_for_timeout(settings.quiz_transition_ms)
                    if page_commands.compute_fingerprint(page) != fingerprint:
                        same_fingerprint = 0
                        continue
                    same_fingerprint += 1
                    print(f"[QUIZ] Content unchanged after advance ({same_fingerprint})")
                    if same_fingerprint >= settings.quiz_same_fingerprint_max:
                        print("[QUIZ] Page stopped changing, stopping.")
                        break
                except PlaywrightError as exc:
                    print(f"[QUIZ] Traversal ended: {exc}")
                    break
        finally:
            page.close()

        print(f"[QUIZ] Done: {len(result.steps)} step(s)")
        return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def crawl(
    params: CrawlParams,
    *,
    context: Any = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> CrawlResult:
    """Crawl a funnel and return its ordered steps.

    Args:
        params: Crawl options.
        context: An open Playwright ``BrowserContext``.  When omitted a
            scoped browser is launched and always closed before returning.
        on_progress: Called with ``(current_step, total_steps)``.
        cancel_event: Checked between steps; when set the crawl raises
            :class:`~funnelcap.errors.JobCancelledError`.

    Raises:
        NavigationError: If the entry URL cannot be loaded.
    """
    if context is not None:
        return NavigationController(
            context, params, on_progress=on_progress, cancel_event=cancel_event
        ).run()

    from funnelcap.capture.browser import browser_context  # noqa: PLC0415

    with browser_context(
        headless=params.headless,
        viewport_width=params.viewport_width,
        viewport_height=params.viewport_height,
    ) as ctx:
        return NavigationController(
            ctx, params, on_progress=on_progress, cancel_event=cancel_event
        ).run()
