"""funnelcap - funnel capture and content-transplant backend."""

__version__ = "0.3.0"
