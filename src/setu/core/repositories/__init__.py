"""Repositories for setu tables.

Each repository class extends :class:`BaseRepository` and provides
typed, dialect-aware access to one table.  The action store, the
resolver and the retention task use these instead of inline SQL.

Architecture::

    ┌────────────────────────────────────────────────────────────────┐
    │  actions/store.py, actions/resolver.py, core/retention.py      │
    └────────────────────────────┬───────────────────────────────────┘
                                 │ uses
                                 ▼
    ┌────────────────────────────────────────────────────────────────┐
    │  setu.core.repositories  (this package)                        │
    │                                                                │
    │  actions.py    - ActionHistoryRepository                       │
    │  ownership.py  - AssetOwnershipRepository                      │
    └────────────────────────────────────────────────────────────────┘

Tags:
    repository, sql, data-access, setu-core
"""

from setu.core.repositories.actions import ActionHistoryRepository
from setu.core.repositories.ownership import AssetOwnershipRepository

__all__ = [
    "ActionHistoryRepository",
    "AssetOwnershipRepository",
]
