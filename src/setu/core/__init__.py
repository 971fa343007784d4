"""Setu Core -- shared primitives for the action lifecycle.

Manifesto:
    The dispatcher, the watcher and the CLI all need the same foundations:
    typed errors, structured logs, validated settings and a small durable
    row store.  ``setu.core`` holds those and knows nothing about BigFix.

    - **Sync-only primitives:** every external call is a blocking call with a timeout
    - **Protocol-first:** Connection and Dialect are protocols, not classes
    - **Schema ownership:** the durable tables are defined once in schema.py

Architecture::

    Layer 1 -- Type System & Errors
        errors.py          Structured error hierarchy (SetuError + codes)
        protocols.py       Connection protocol
        timestamps.py      UTC helpers (stdlib-only)

    Layer 2 -- Database & Storage
        dialect.py         SQL dialect abstraction (SQLite, PostgreSQL)
        repository.py      BaseRepository with dialect-aware helpers
        repositories/      ActionHistoryRepository, AssetOwnershipRepository
        schema.py          DDL registry + create_core_tables()
        sqlite_conn.py     SqliteConnection adapter
        retention.py       Age-bounded purge of finalized rows

    Layer 3 -- Runtime
        logging.py         structlog configuration
        settings.py        pydantic-settings configuration
        scheduling/        ThreadTaskBackend, LeaseManager
"""

from setu.core.errors import (
    ChangeRejectedError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    GhostAssetError,
    NotFoundError,
    SetuError,
    ShapeMismatchError,
    StoreError,
    TransientError,
    UpstreamError,
    ValidationError,
)
from setu.core.schema import create_core_tables
from setu.core.sqlite_conn import SqliteConnection

__all__ = [
    "ChangeRejectedError",
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "GhostAssetError",
    "NotFoundError",
    "SetuError",
    "ShapeMismatchError",
    "StoreError",
    "TransientError",
    "UpstreamError",
    "ValidationError",
    "SqliteConnection",
    "create_core_tables",
]
