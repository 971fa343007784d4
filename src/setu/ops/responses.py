"""
Typed response objects for operations.

``to_dict`` renders the camelCase shape that external callers of the
trigger and status endpoints already consume.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from setu.actions.models import ResultRow


@dataclass(frozen=True, slots=True)
class TriggerResult:
    """Result payload for :func:`setu.ops.actions.trigger_baseline`."""

    action_id: str | None
    site_name: str
    fixlet_id: str
    group: str
    group_id: str
    group_site: str
    group_type: str
    title: str
    stage: str
    end_offset: str
    created_at: str
    pre_notify: bool = False
    pre_notify_error: str | None = None
    target_expression: str = ""
    document: str = ""
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        d = {
            "actionId": self.action_id,
            "siteName": self.site_name,
            "fixletId": self.fixlet_id,
            "group": self.group,
            "groupId": self.group_id,
            "groupSite": self.group_site,
            "groupType": self.group_type,
            "title": self.title,
            "stage": self.stage,
            "endOffset": self.end_offset,
            "createdAt": self.created_at,
            "preNotify": self.pre_notify,
            "preNotifyError": self.pre_notify_error,
        }
        if self.dry_run:
            d["dryRun"] = True
            d["document"] = self.document
        return d


@dataclass(frozen=True, slots=True)
class ActionStatusView:
    """Result payload for :func:`setu.ops.actions.get_action_status`."""

    action_id: str
    state: str
    notified: bool

    def to_dict(self) -> dict[str, Any]:
        return {"actionId": self.action_id, "state": self.state, "notified": self.notified}


@dataclass(frozen=True, slots=True)
class ActionResultsView:
    """Result payload for :func:`setu.ops.actions.get_action_results`."""

    action_id: str
    rows: list[ResultRow] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.rows)

    @property
    def success(self) -> int:
        return sum(1 for row in self.rows if row.succeeded)

    def to_dict(self) -> dict[str, Any]:
        return {
            "actionId": self.action_id,
            "total": self.total,
            "success": self.success,
            "rows": [row.to_dict() for row in self.rows],
        }


@dataclass(frozen=True, slots=True)
class CleanupResult:
    """Result payload for :func:`setu.ops.actions.cleanup_actions`."""

    deleted: int
    retention_days: int
    cutoff: str | None = None
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "deleted": self.deleted,
            "retentionDays": self.retention_days,
            "cutoff": self.cutoff,
            "dryRun": self.dry_run,
        }
