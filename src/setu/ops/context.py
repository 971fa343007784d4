"""
Request-scoped context for operations.

Every operation function receives an :class:`OperationContext` as its first
argument.  The context carries the wired components, caller identity,
dry-run flag and arbitrary metadata.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from setu.ops.services import Services


@dataclass
class OperationContext:
    """Context passed to every operation function.

    Attributes:
        services: Components built once at startup (store, clients, channel).
        request_id: Unique ID for this operation invocation (auto-generated).
        caller: Origin of the request, e.g. ``"cli"`` or ``"sdk"``.
        user: Optional identity of the person triggering the operation.
        dry_run: When ``True``, operations stop before any external write.
        metadata: Arbitrary key/value pairs forwarded to logging.
    """

    services: Services
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    caller: str = "sdk"
    user: str | None = None
    dry_run: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
