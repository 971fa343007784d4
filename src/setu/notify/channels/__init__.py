"""Concrete notification channels."""

from setu.notify.channels.email import EmailChannel

__all__ = ["EmailChannel"]
