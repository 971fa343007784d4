"""
Notification protocol.

Channels take a fully rendered :class:`Notification` and return a
:class:`DeliveryResult`; they never raise.  Callers decide what a failed
delivery means (for the lifecycle watcher: nothing, the record is
finalized anyway).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from setu.core.settings import SmtpSettings

_EMAIL_SPLIT = re.compile(r"[;,]")


def split_emails(value: str | list[str] | None) -> list[str]:
    """Split a ``,``/``;`` separated address list, dropping blanks."""
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [part.strip() for part in _EMAIL_SPLIT.split(value) if part.strip()]


@dataclass(frozen=True, slots=True)
class Recipients:
    """Sender and recipient lists for one message."""

    from_address: str = ""
    to: tuple[str, ...] = ()
    cc: tuple[str, ...] = ()
    bcc: tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, settings: SmtpSettings) -> Recipients:
        """Configured default sender and recipients."""
        return cls(
            from_address=settings.from_address,
            to=tuple(split_emails(settings.to)),
            cc=tuple(split_emails(settings.cc)),
            bcc=tuple(split_emails(settings.bcc)),
        )

    def override(self, overrides: dict[str, Any] | None) -> Recipients:
        """Per-message overrides (``from``/``to``/``cc``/``bcc``) win field by field."""
        overrides = overrides or {}
        return Recipients(
            from_address=overrides.get("from") or self.from_address,
            to=tuple(split_emails(overrides["to"])) if overrides.get("to") else self.to,
            cc=tuple(split_emails(overrides["cc"])) if overrides.get("cc") else self.cc,
            bcc=tuple(split_emails(overrides["bcc"])) if overrides.get("bcc") else self.bcc,
        )

    @property
    def all(self) -> list[str]:
        return [*self.to, *self.cc, *self.bcc]


@dataclass(frozen=True, slots=True)
class Attachment:
    filename: str
    content: str
    content_type: str = "text/csv; charset=utf-8"


@dataclass
class Notification:
    """A rendered message ready for delivery."""

    subject: str
    text: str
    html: str
    recipients: Recipients
    attachments: list[Attachment] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class DeliveryResult:
    """Result of a delivery attempt."""

    channel_name: str
    success: bool
    message: str | None = None
    response: dict[str, Any] | None = None
    error: Exception | None = None
    delivered_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def ok(cls, channel_name: str, message: str | None = None, **kwargs: Any) -> DeliveryResult:
        return cls(channel_name=channel_name, success=True, message=message, **kwargs)

    @classmethod
    def fail(cls, channel_name: str, error: Exception) -> DeliveryResult:
        return cls(
            channel_name=channel_name,
            success=False,
            error=error,
            message=str(error),
        )


@runtime_checkable
class NotificationChannel(Protocol):
    """Anything that can deliver a :class:`Notification`."""

    @property
    def name(self) -> str:
        ...

    @property
    def ready(self) -> bool:
        """Whether the channel is configured well enough to attempt delivery."""
        ...

    def send(self, notification: Notification) -> DeliveryResult:
        ...


__all__ = [
    "split_emails",
    "Recipients",
    "Attachment",
    "Notification",
    "DeliveryResult",
    "NotificationChannel",
]
