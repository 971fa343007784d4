"""
Domain types for the action lifecycle.

``TargetGroup`` and ``BaselineRef`` are produced by the resolver and
never persisted on their own; both end up flattened into an
``ActionRecord``, the one entity that is stored (as JSON in
``action_history.metadata``) and walked by the watcher.
"""

from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any

from setu.core.timestamps import from_iso8601, to_iso8601, utc_now


class GroupKind(str, Enum):
    """How a computer group decides membership."""

    AUTOMATIC = "Automatic"
    MANUAL = "Manual"
    SERVER_BASED = "ServerBased"

    @classmethod
    def classify(cls, label: str | None) -> GroupKind:
        """Map an upstream kind label to a :class:`GroupKind`.

        Case-insensitive substring test; anything that is neither
        automatic nor manual is server based.
        """
        text = (label or "").lower()
        if "automatic" in text:
            return cls.AUTOMATIC
        if "manual" in text:
            return cls.MANUAL
        return cls.SERVER_BASED


@dataclass(frozen=True, slots=True)
class TargetGroup:
    """A resolved computer group.

    Attributes:
        name: Group name as reported upstream.
        id: Numeric group id (kept as text).
        site: Owning site name, ``"ActionSite"`` for the master action site.
        kind: Membership kind, selects the targeting template.
        label: The raw kind label returned upstream.
    """

    name: str
    id: str
    site: str
    kind: GroupKind
    label: str = ""


@dataclass(frozen=True, slots=True)
class BaselineRef:
    """A resolved baseline: where it lives and its fixlet id."""

    name: str
    site: str
    fixlet_id: str


@dataclass(frozen=True, slots=True)
class PatchWindow:
    """Structured scheduling window."""

    days: float = 0
    hours: float = 0
    minutes: float = 0

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> PatchWindow:
        return cls(
            days=_number(data.get("days")),
            hours=_number(data.get("hours")),
            minutes=_number(data.get("minutes")),
        )


def _number(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


@dataclass
class ActionRecord:
    """One issued action and its lifecycle flags.

    ``post_notify_sent`` goes from ``False`` to ``True`` once and is never
    reset.  Only :class:`~setu.actions.store.ActionStore` flips it.
    """

    action_id: str
    created_at: datetime = field(default_factory=utc_now)
    stage: str = ""
    source_document: str = ""
    baseline_name: str = ""
    baseline_site: str = ""
    baseline_fixlet_id: str = ""
    group_name: str = ""
    group_id: str = ""
    group_site: str = ""
    group_type: str = ""
    completion_offset: str = ""
    pre_notify_requested: bool = False
    notify_channel_ready: bool = False
    post_notify_sent: bool = False
    triggered_by: str = "Unknown"
    recipients: dict[str, str] = field(default_factory=dict)

    @property
    def title(self) -> str:
        return f"BPS_{self.baseline_name}_{self.stage}"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = to_iso8601(self.created_at)
        return data

    def to_metadata(self) -> str:
        """Serialize for the durable ``metadata`` column."""
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActionRecord:
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["action_id"] = str(values.get("action_id", ""))
        created = values.get("created_at")
        values["created_at"] = from_iso8601(created) if isinstance(created, str) else (created or utc_now())
        for flag in ("pre_notify_requested", "notify_channel_ready", "post_notify_sent"):
            if flag in values:
                values[flag] = bool(values[flag])
        values["recipients"] = dict(values.get("recipients") or {})
        return cls(**values)

    @classmethod
    def from_metadata(cls, metadata: str, *, post_notify_sent: bool | None = None) -> ActionRecord:
        """Rebuild from the durable column.  The row flag wins over the JSON copy."""
        record = cls.from_dict(json.loads(metadata))
        if post_notify_sent is not None:
            record.post_notify_sent = bool(post_notify_sent)
        return record


@dataclass(frozen=True, slots=True)
class ResultRow:
    """One computer's outcome for an action."""

    server: str = "N/A"
    patch: str = "N/A"
    status: str = "N/A"
    start: str = "N/A"
    end: str = "N/A"
    issuer: str | None = None

    @classmethod
    def from_parts(cls, parts: list[str]) -> ResultRow:
        padded = list(parts) + [None] * 6
        server, patch, status, start, end, issuer = padded[:6]
        return cls(
            server=server if server is not None else "N/A",
            patch=patch if patch is not None else "N/A",
            status=status if status is not None else "N/A",
            start=start if start is not None else "N/A",
            end=end if end is not None else "N/A",
            issuer=issuer,
        )

    @property
    def succeeded(self) -> bool:
        return "executed successfully" in self.status.lower()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


__all__ = [
    "GroupKind",
    "TargetGroup",
    "BaselineRef",
    "PatchWindow",
    "ActionRecord",
    "ResultRow",
]
