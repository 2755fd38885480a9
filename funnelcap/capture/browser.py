"""Scoped Playwright browser contexts.

Every consumer opens a browser through :func:`browser_context`, which always
closes the context *and* the browser on exit (success or error) so no
Chromium process outlives the crawl or capture that started it.

Playwright is imported lazily so modules and tests that never open a real
browser do not need a browser install.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional

from funnelcap.config import settings

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]


@contextmanager
def browser_context(
    headless: Optional[bool] = None,
    viewport_width: Optional[int] = None,
    viewport_height: Optional[int] = None,
) -> Iterator[Any]:
    """Yield a fresh Playwright ``BrowserContext``.

    Args:
        headless: Run Chromium without a window.  Defaults to
            ``settings.headless``.
        viewport_width: Viewport width in CSS pixels.
        viewport_height: Viewport height in CSS pixels.
    """
    from playwright.sync_api import sync_playwright  # noqa: PLC0415

    with sync_playwright() as pw:
        browser = pw.chromium.launch(
            headless=settings.headless if headless is None else headless,
            args=_LAUNCH_ARGS,
        )
        try:
            context = browser.new_context(
                viewport={
                    "width": viewport_width or settings.viewport_width,
                    "height": viewport_height or settings.viewport_height,
                },
                user_agent=settings.user_agent,
                ignore_https_errors=True,
            )
            try:
                yield context
            finally:
                context.close()
        finally:
            browser.close()
