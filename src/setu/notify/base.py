"""
Notification channel base class.

Provides what every channel shares: a name, an enable switch and the
pre-flight check that a message has somewhere to go.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from setu.notify.protocol import DeliveryResult, Notification


class BaseChannel(ABC):
    """Base class for notification channels."""

    def __init__(self, name: str, *, enabled: bool = True) -> None:
        self._name = name
        self._enabled = enabled

    @property
    def name(self) -> str:
        return self._name

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def ready(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def should_send(self, notification: Notification) -> bool:
        """Enabled, ready and at least one recipient."""
        return self.ready and bool(notification.recipients.all)

    @abstractmethod
    def send(self, notification: Notification) -> DeliveryResult:
        """Deliver *notification*.  Must not raise."""
        ...
