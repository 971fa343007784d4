"""
Typed request objects for operations.

Each dataclass is the *input* contract for one operation function.
Requests carry only validated, transport-agnostic data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from setu.actions.models import PatchWindow


@dataclass(frozen=True, slots=True)
class TriggerRequest:
    """Request for :func:`setu.ops.actions.trigger_baseline`.

    Attributes:
        baseline_name: Baseline to deploy.
        group_name: Computer group to target.
        stage: Deployment phase label (``Sandbox``/``Pilot``/``Production``);
            ``None`` uses the configured default.
        window: :class:`PatchWindow`, ``{days, hours, minutes}`` mapping, or
            a legacy bare number of hours.
        change_ticket: ServiceNow change number (``CHG...``).
        require_change_ticket: Override the configured change gate.
        notify: Send the pre-trigger notification and arm the
            post-completion one.
        recipients: Per-trigger ``from``/``to``/``cc``/``bcc`` overrides.
        triggered_by: Free-text identity of the caller, kept for audit.
    """

    baseline_name: str
    group_name: str
    stage: str | None = None
    window: PatchWindow | dict[str, Any] | float | str | None = None
    change_ticket: str | None = None
    require_change_ticket: bool | None = None
    notify: bool = False
    recipients: dict[str, str] = field(default_factory=dict)
    triggered_by: str = "Unknown"


@dataclass(frozen=True, slots=True)
class CleanupRequest:
    """Request for :func:`setu.ops.actions.cleanup_actions`."""

    retention_days: int | None = None  # ``None`` -> configured retention
