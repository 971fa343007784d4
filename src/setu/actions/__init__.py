"""Action lifecycle: resolve, synthesize, store and watch BigFix actions.

Import the components from their modules (``setu.actions.resolver``,
``setu.actions.synthesizer``, ``setu.actions.store``,
``setu.actions.watcher``); only the domain types are re-exported here.
"""

from setu.actions.models import (
    ActionRecord,
    BaselineRef,
    GroupKind,
    PatchWindow,
    ResultRow,
    TargetGroup,
)

__all__ = [
    "ActionRecord",
    "BaselineRef",
    "GroupKind",
    "PatchWindow",
    "ResultRow",
    "TargetGroup",
]
