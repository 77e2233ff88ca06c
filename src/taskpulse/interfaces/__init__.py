"""Entry points: HTTP API, command line and Slack."""

from .context import AppContext, build_context

__all__ = ["AppContext", "build_context"]
