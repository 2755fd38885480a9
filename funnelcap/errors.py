"""Exception types shared across the capture, transplant and job layers."""

from __future__ import annotations


class FunnelcapError(Exception):
    """Base class for every error raised by funnelcap itself."""


class ConfigurationError(FunnelcapError):
    """Required configuration (e.g. a rewrite-service key) is missing."""


class NavigationError(FunnelcapError):
    """The entry URL of a crawl or capture could not be loaded."""


class RewriteError(FunnelcapError):
    """A rewrite batch failed at the transport level or was unparsable."""


class JobNotFoundError(FunnelcapError):
    """No job with the requested id exists in the store."""


class JobCancelledError(FunnelcapError):
    """The owning pipeline observed the cooperative cancel flag."""
