"""Sync httpx client for the BigFix REST API.

Every call is a single blocking request bounded by the configured
timeout.  Nothing is retried here: the watcher's next tick is the retry
and a failed trigger is re-issued by the operator.

Failure mapping:

    ================================  =======================================
    transport error / timeout         :class:`~setu.core.errors.TransientError`
    non-2xx response                  :class:`~setu.core.errors.UpstreamError`
                                      (status + body kept)
    2xx with a body that is not JSON  :class:`~setu.core.errors.ShapeMismatchError`
    ================================  =======================================

``fetch_action_status`` is the exception: a non-2xx status is returned to
the caller as ``(status_code, body)`` because an ``id not found`` body is a
meaningful answer for the status read path.

Usage::

    with BigFixClient.from_settings(get_settings().bigfix) as client:
        rows = client.query_rows('(name of it) of bes computers')
"""

from __future__ import annotations

from typing import Any

import httpx

from setu.bigfix.query import collect_leaves, parse_tuple_rows
from setu.core.errors import (
    ConfigError,
    ErrorContext,
    ShapeMismatchError,
    TransientError,
    UpstreamError,
)
from setu.core.logging import get_logger
from setu.core.settings import BigFixSettings

logger = get_logger(__name__)

RESULTS_RELEVANCE = (
    '((if exists (name of computers of it) then name of computers of it else "N/A"),'
    ' (if exists (names of member actions of actions of it) then (names of member actions of actions of it) else "N/A"),'
    ' (detailed status of it as string | "N/A"),'
    ' (start time of it as string | "N/A"),'
    ' (end time of it as string | "N/A"){issuer}) of results of bes action whose (id of it = {action_id})'
)
ISSUER_COLUMN = ', (name of issuer of action of it as string | "N/A")'


class BigFixClient:
    """Thin wrapper over :class:`httpx.Client` with BigFix endpoints.

    Args:
        base_url: Server root, e.g. ``https://bigfix:52311``.
        user: Basic-auth user.
        password: Basic-auth password.
        verify: Verify the server certificate.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).

    Raises:
        ConfigError: If *base_url* is empty.
    """

    def __init__(
        self,
        base_url: str,
        user: str = "",
        password: str = "",
        *,
        verify: bool = True,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ConfigError("BigFix URL not configured (set BIGFIX_BASE_URL)")
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=(user, password),
            verify=verify,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: BigFixSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> BigFixClient:
        return cls(
            settings.base_url,
            settings.user,
            settings.password,
            verify=not settings.allow_self_signed,
            timeout=settings.timeout_seconds,
            transport=transport,
        )

    # -- transport ---------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.warning("bigfix_transport_error", method=method, path=path, error=str(e))
            raise TransientError(
                f"BigFix request failed: {e}",
                context=ErrorContext(url=f"{self.base_url}{path}"),
                cause=e,
            ) from e

    @staticmethod
    def _ensure_ok(response: httpx.Response, what: str) -> None:
        if response.is_success:
            return
        body = response.text
        logger.warning(
            "bigfix_rejected",
            what=what,
            status=response.status_code,
            body=body[:300],
        )
        raise UpstreamError(
            f"BigFix {what} returned HTTP {response.status_code}",
            status=response.status_code,
            body=body,
            context=ErrorContext(url=str(response.request.url)),
        )

    # -- endpoints ---------------------------------------------------------

    def query(self, relevance: str) -> Any:
        """Run a relevance query and return the decoded JSON payload."""
        response = self._request(
            "GET",
            "/api/query",
            params={"output": "json", "relevance": relevance},
            headers={"Accept": "application/json"},
        )
        self._ensure_ok(response, "query")
        try:
            return response.json()
        except ValueError as e:
            raise ShapeMismatchError("Unexpected query response shape (not JSON)", cause=e) from e

    def query_rows(self, relevance: str) -> list[list[str]]:
        """Run a relevance query and flatten each result row."""
        return parse_tuple_rows(self.query(relevance))

    def post_action(self, document: str) -> str:
        """Submit an action document and return the response body."""
        response = self._request(
            "POST",
            "/api/actions",
            content=document.encode("utf-8"),
            headers={"Content-Type": "text/xml"},
        )
        self._ensure_ok(response, "action submission")
        return response.text

    def fetch_action_status(self, action_id: str) -> tuple[int, str]:
        """``(http_status, body)`` for ``GET /api/action/{id}/status``."""
        response = self._request(
            "GET",
            f"/api/action/{action_id}/status",
            headers={"Accept": "text/xml"},
        )
        return response.status_code, response.text or ""

    def group_member_names(self, group_id: str) -> list[str]:
        """Computer names currently in the group with *group_id*."""
        payload = self.query(f"names of members of bes computer group whose (id of it = {group_id})")
        rows = payload.get("result") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            return []
        return collect_leaves(rows)

    def action_results(self, action_id: str, *, with_issuer: bool = False) -> list[list[str]]:
        """Per-computer result tuples for *action_id*.

        Rows are ``[server, patch, status, start, end]`` plus ``issuer``
        when *with_issuer* is set.
        """
        relevance = RESULTS_RELEVANCE.format(
            issuer=ISSUER_COLUMN if with_issuer else "",
            action_id=action_id,
        )
        return self.query_rows(relevance)

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> BigFixClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


__all__ = ["BigFixClient", "RESULTS_RELEVANCE"]
