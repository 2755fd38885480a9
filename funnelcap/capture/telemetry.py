"""Per-step network and cookie telemetry for a browser context."""

from __future__ import annotations

import re
import threading
from typing import Any

from funnelcap.capture.models import CookieRecord, NetworkEvent

TRACKING_PATTERN = re.compile(
    r"facebook|google|analytics|pixel|track|doubleclick|hotjar|segment|gtm|"
    r"tag_manager|clarity|mixpanel|amplitude",
    re.IGNORECASE,
)
CHECKOUT_PATTERN = re.compile(
    r"checkout|cart|pay|stripe|paypal|payment|order|purchase", re.IGNORECASE
)


def is_tracking_url(url: str) -> bool:
    return bool(TRACKING_PATTERN.search(url))


def is_checkout_url(url: str) -> bool:
    return bool(CHECKOUT_PATTERN.search(url))


class TelemetryRecorder:
    """Buffers request/response events of one browser context.

    The recorder is attached once per crawl.  The navigation controller
    calls :meth:`drain` exactly once per step, so events never leak from one
    step into the next.  Playwright delivers events on its dispatcher thread,
    hence the lock.
    """

    def __init__(self) -> None:
        self._events: list[NetworkEvent] = []
        self._lock = threading.Lock()
        self._context: Any = None
        self._active = False

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------
    def attach(self, context: Any) -> None:
        self._context = context
        self._active = True
        context.on("request", self._on_request)
        context.on("response", self._on_response)

    def detach(self) -> None:
        """Stop recording; later events from the context are ignored."""
        self._active = False
        if self._context is not None:
            for event, handler in (("request", self._on_request), ("response", self._on_response)):
                try:
                    self._context.remove_listener(event, handler)
                except (AttributeError, KeyError, ValueError):
                    pass
        self._context = None

    def _on_request(self, request: Any) -> None:
        if not self._active:
            return
        url = request.url
        event = NetworkEvent(
            url=url,
            method=request.method,
            resource_type=request.resource_type,
            is_tracking=is_tracking_url(url),
            is_checkout=is_checkout_url(url),
        )
        with self._lock:
            self._events.append(event)

    def _on_response(self, response: Any) -> None:
        if not self._active:
            return
        request = response.request
        with self._lock:
            for event in self._events:
                if event.url == request.url and event.method == request.method:
                    event.status = response.status
                    break

    # ------------------------------------------------------------------
    # Buffer access
    # ------------------------------------------------------------------
    def drain(self) -> list[NetworkEvent]:
        """Return every buffered event and clear the buffer."""
        with self._lock:
            events = list(self._events)
            self._events.clear()
        return events

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


def capture_cookies(context: Any) -> list[CookieRecord]:
    """Read the context's cookie jar."""
    return [
        CookieRecord(
            name=c.get("name", ""),
            domain=c.get("domain", ""),
            path=c.get("path", "/"),
            expires=float(c.get("expires", -1)),
            http_only=bool(c.get("httpOnly", False)),
            secure=bool(c.get("secure", False)),
        )
        for c in context.cookies()
    ]
