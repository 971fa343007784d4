"""
Operation result envelope.

Components raise :class:`~setu.core.errors.SetuError`; operation functions
catch at their boundary and hand back an :class:`OperationResult`, so the
CLI (and anything embedding setu) branches on ``error.code`` instead of on
exception types.  Degraded-but-successful outcomes, such as a trigger whose
member manifest could not be fetched, travel as ``warnings``.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any, Generic, TypeVar

from setu.core.errors import ErrorCategory, SetuError


@dataclass(frozen=True, slots=True)
class OperationError:
    """Why an operation failed.

    Attributes:
        code: ``NOT_FOUND``, ``GHOST_ASSET``, ``UPSTREAM_REJECTED``, ...
        message: Operator-facing text.
        category: Routing hint carried over from the raised error.
        details: Upstream status, body preview, change verdict and the like.
        retryable: ``True`` for transport failures.
    """

    code: str
    message: str
    category: ErrorCategory | None = None
    details: dict[str, Any] = field(default_factory=dict)
    retryable: bool = False

    @classmethod
    def from_exception(cls, error: SetuError) -> OperationError:
        return cls(
            code=error.code,
            message=error.message,
            category=error.category,
            details=dict(error.details),
            retryable=error.retryable,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message, "retryable": self.retryable}
        if self.details:
            out["details"] = self.details
        return out


def _plain(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    return value


T = TypeVar("T")


@dataclass
class OperationResult(Generic[T]):
    """Success payload or :class:`OperationError`, plus warnings and timing.

    Build with :meth:`ok`, :meth:`fail` or :meth:`from_error`.
    """

    success: bool
    data: T | None = None
    error: OperationError | None = None
    warnings: list[str] = field(default_factory=list)
    elapsed_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(
        cls,
        data: T,
        *,
        warnings: list[str] | None = None,
        elapsed_ms: float = 0.0,
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult[T]:
        return cls(True, data, None, list(warnings or []), elapsed_ms, dict(metadata or {}))

    @classmethod
    def fail(
        cls,
        code: str,
        message: str,
        *,
        category: ErrorCategory | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
        warnings: list[str] | None = None,
        elapsed_ms: float = 0.0,
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult[T]:
        error = OperationError(code, message, category, dict(details or {}), retryable)
        return cls(False, None, error, list(warnings or []), elapsed_ms, dict(metadata or {}))

    @classmethod
    def from_error(
        cls,
        error: SetuError,
        *,
        warnings: list[str] | None = None,
        elapsed_ms: float = 0.0,
    ) -> OperationResult[T]:
        """Failed result carrying the code, category and context of *error*."""
        return cls(False, None, OperationError.from_exception(error), list(warnings or []), elapsed_ms)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form; empty sections are omitted."""
        out: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = _plain(self.data)
        if self.error is not None:
            out["error"] = self.error.to_dict()
        if self.warnings:
            out["warnings"] = list(self.warnings)
        if self.elapsed_ms:
            out["elapsed_ms"] = round(self.elapsed_ms, 2)
        if self.metadata:
            out["metadata"] = dict(self.metadata)
        return out


class _Timer:
    __slots__ = ("_started",)

    def __init__(self) -> None:
        self._started = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._started) * 1000


def start_timer() -> _Timer:
    """Stopwatch for ``elapsed_ms``."""
    return _Timer()
