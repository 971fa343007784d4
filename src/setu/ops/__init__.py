"""
Operations layer: trigger and read operations for the action lifecycle.

- All functions accept ``OperationContext`` as first argument
- All functions return ``OperationResult[T]`` (never raise)
- All functions are transport-agnostic (no HTTP, no CLI knowledge)

Usage::

    from setu.ops import OperationContext, build_services
    from setu.ops.actions import trigger_baseline
    from setu.ops.requests import TriggerRequest

    ctx = OperationContext(services=build_services())
    result = trigger_baseline(ctx, TriggerRequest("Patch_A", "SRV-GRP", window={"hours": 2}))
"""

from setu.ops.context import OperationContext
from setu.ops.result import OperationError, OperationResult
from setu.ops.services import Services, build_services

__all__ = [
    "OperationContext",
    "OperationError",
    "OperationResult",
    "Services",
    "build_services",
]
