"""
Structured error types for setu.

Every failure that can leave a trigger or a watcher tick is one of a small
set of typed errors. Each carries a machine-readable ``code`` (returned to
callers), an :class:`ErrorCategory` (for log routing), a ``retryable`` flag
and an :class:`ErrorContext` with upstream details.

Manifesto:
    - **Typed hierarchy:** callers branch on type or ``code``, never on message text
    - **Surfacing is explicit:** not-found, ghost, shape, validation and
      upstream errors abort the owning operation; everything else is logged
    - **Error chaining:** the underlying transport exception is kept as ``cause``

Architecture:
    ::

        SetuError (category, code, retryable, context, cause)
        ├── NotFoundError         NOT_FOUND          baseline/group has no match
        │   └── GhostAssetError   GHOST_ASSET        known locally, gone upstream
        ├── ShapeMismatchError    SHAPE_MISMATCH     tuple arity did not match
        ├── ValidationError       VALIDATION_FAILED  bad window, missing ticket
        ├── ChangeRejectedError   CHANGE_REJECTED    ticket verdict not approved
        ├── UpstreamError         UPSTREAM_REJECTED  non-2xx, status + body kept
        ├── TransientError        UPSTREAM_UNAVAILABLE  network / timeout
        ├── ConfigError           CONFIG             collaborator not configured
        └── StoreError            STORE_FAILED       durable store failure

Tags:
    error-handling, exception-hierarchy, error-context, setu-core

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

#: Upstream bodies are truncated to this many characters before being attached.
BODY_PREVIEW_CHARS = 300


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    # Infrastructure errors (usually transient)
    NETWORK = "NETWORK"
    DATABASE = "DATABASE"

    # Upstream/data errors
    SOURCE = "SOURCE"
    PARSE = "PARSE"
    VALIDATION = "VALIDATION"

    # Configuration errors (never retryable)
    CONFIG = "CONFIG"
    AUTH = "AUTH"

    # Application errors
    ORCHESTRATION = "ORCHESTRATION"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        action_id: Upstream action identifier, when one exists.
        baseline: Baseline name involved in the failure.
        group: Target group name involved in the failure.
        url: URL that was being accessed.
        http_status: HTTP status code returned by the upstream.
        metadata: Additional key/value pairs.
    """

    action_id: str | None = None
    baseline: str | None = None
    group: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["action_id", "baseline", "group", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SetuError(Exception):
    """Base exception for all setu errors.

    Subclasses set ``default_category``, ``default_code`` and
    ``default_retryable``; any of them can be overridden per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_code: str = "INTERNAL"
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        code: str | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.code = code or self.default_code
        self.retryable = self.default_retryable if retryable is None else retryable
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SetuError:
        """Attach context fields and return ``self`` for chaining."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    @property
    def details(self) -> dict[str, Any]:
        """Context rendered for API/CLI consumers."""
        return self.context.to_dict()

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logging."""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.details:
            result["context"] = self.details
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code!r})"


class NotFoundError(SetuError):
    """A baseline or group name has no upstream match."""

    default_category = ErrorCategory.SOURCE
    default_code = "NOT_FOUND"


class GhostAssetError(NotFoundError):
    """A group known to local ownership records is absent upstream.

    The ownership row has already been removed when this is raised; the
    message asks the operator to recreate the group.
    """

    default_code = "GHOST_ASSET"


class ShapeMismatchError(SetuError):
    """An upstream tuple did not have the expected arity."""

    default_category = ErrorCategory.PARSE
    default_code = "SHAPE_MISMATCH"


class ValidationError(SetuError):
    """Caller input rejected before any external submission."""

    default_category = ErrorCategory.VALIDATION
    default_code = "VALIDATION_FAILED"


class ChangeRejectedError(SetuError):
    """The change-management gate returned a non-approved verdict."""

    default_category = ErrorCategory.AUTH
    default_code = "CHANGE_REJECTED"

    def __init__(self, message: str, *, verdict: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.verdict = verdict
        self.context.metadata.setdefault("verdict", verdict)


class UpstreamError(SetuError):
    """Non-2xx response from an upstream endpoint.

    The status and a truncated copy of the body travel with the error so
    they can be surfaced verbatim.
    """

    default_category = ErrorCategory.SOURCE
    default_code = "UPSTREAM_REJECTED"

    def __init__(self, message: str, *, status: int, body: str = "", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.status = status
        self.body = body or ""
        self.context.http_status = status
        self.context.metadata.setdefault("body", self.body[:BODY_PREVIEW_CHARS])


class TransientError(SetuError):
    """Transport failure (connection refused, timeout, DNS)."""

    default_category = ErrorCategory.NETWORK
    default_code = "UPSTREAM_UNAVAILABLE"
    default_retryable = True


class ConfigError(SetuError):
    """A collaborator is not configured."""

    default_category = ErrorCategory.CONFIG
    default_code = "CONFIG"


class StoreError(SetuError):
    """Durable store read/write failure."""

    default_category = ErrorCategory.DATABASE
    default_code = "STORE_FAILED"
    default_retryable = True


__all__ = [
    "BODY_PREVIEW_CHARS",
    "ErrorCategory",
    "ErrorContext",
    "SetuError",
    "NotFoundError",
    "GhostAssetError",
    "ShapeMismatchError",
    "ValidationError",
    "ChangeRejectedError",
    "UpstreamError",
    "TransientError",
    "ConfigError",
    "StoreError",
]
