"""
ServiceNow change-ticket validation.

A trigger that requires a change ticket is only allowed through when the
ticket exists, is visible to the integration user and sits in the
``Implement`` state.  The check runs before anything is submitted to
BigFix.

Verdicts:

    APPROVED                 ticket found, state is Implement
    NOT_FOUND_OR_FORBIDDEN   401/403, or no matching record
    NOT_IMPLEMENT            ticket found in another state
    MISCONFIGURED            SN_URL / SN_USER / SN_PASSWORD not all set
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from setu.core.errors import (
    ChangeRejectedError,
    ErrorContext,
    TransientError,
    ValidationError,
)
from setu.core.logging import get_logger
from setu.core.settings import ServiceNowSettings

logger = get_logger(__name__)

CHANGE_FIELDS = "sys_id,number,state,stage,approval,work_start,work_end"
RECORD_KEYS = ("sys_id", "number", "state", "approval", "work_start", "work_end")

_API_NOW_SUFFIX = re.compile(r"/api/now$", re.IGNORECASE)


class VerdictCode(str, Enum):
    APPROVED = "APPROVED"
    NOT_FOUND_OR_FORBIDDEN = "NOT_FOUND_OR_FORBIDDEN"
    NOT_IMPLEMENT = "NOT_IMPLEMENT"
    MISCONFIGURED = "MISCONFIGURED"


_MESSAGES = {
    VerdictCode.APPROVED: "Change Request is at Implement stage.",
    VerdictCode.NOT_FOUND_OR_FORBIDDEN: (
        "Change Request doesn't exist or user doesn't have required privileges."
    ),
    VerdictCode.NOT_IMPLEMENT: "Change Request is not at Implement stage.",
    VerdictCode.MISCONFIGURED: (
        "ServiceNow env not configured (SN_URL, SN_USER, SN_PASSWORD required)"
    ),
}


@dataclass(frozen=True, slots=True)
class ChangeVerdict:
    number: str
    code: VerdictCode
    record: dict[str, Any] = field(default_factory=dict)

    @property
    def approved(self) -> bool:
        return self.code is VerdictCode.APPROVED

    @property
    def message(self) -> str:
        return _MESSAGES[self.code]

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.approved,
            "number": self.number,
            "code": self.code.value,
            "message": self.message,
            "record": dict(self.record),
        }


def normalize_change_number(number: str | None) -> str:
    """Upper-case and check the ``CHG`` prefix.

    Raises:
        ValidationError: If the number is missing or does not start with ``CHG``.
    """
    value = (number or "").strip().upper()
    if not value.startswith("CHG"):
        raise ValidationError("Invalid or missing change number (must start with CHG)")
    return value


class ServiceNowValidator:
    """Look up a change request and return a :class:`ChangeVerdict`."""

    def __init__(
        self,
        settings: ServiceNowSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._transport = transport

    @property
    def base_url(self) -> str:
        return _API_NOW_SUFFIX.sub("", self.settings.url.rstrip("/"))

    def validate(self, number: str) -> ChangeVerdict:
        number = normalize_change_number(number)
        if not self.settings.configured:
            logger.warning("servicenow_not_configured", number=number)
            return ChangeVerdict(number, VerdictCode.MISCONFIGURED)

        url = f"{self.base_url}/api/now/table/change_request"
        params = {
            "sysparm_query": f"number={number}",
            "sysparm_fields": CHANGE_FIELDS,
            "sysparm_display_value": "true",
        }
        try:
            with httpx.Client(
                auth=(self.settings.user, self.settings.password),
                verify=not self.settings.allow_self_signed,
                timeout=self.settings.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = client.get(url, params=params, headers={"Accept": "application/json"})
        except httpx.TransportError as e:
            raise TransientError(
                f"ServiceNow request failed: {e}",
                context=ErrorContext(url=url, metadata={"number": number}),
                cause=e,
            ) from e

        logger.debug("servicenow_response", number=number, status=response.status_code)
        if response.status_code in (401, 403):
            return ChangeVerdict(number, VerdictCode.NOT_FOUND_OR_FORBIDDEN)

        records = self._records(response)
        if not records:
            return ChangeVerdict(number, VerdictCode.NOT_FOUND_OR_FORBIDDEN)

        first = records[0] if isinstance(records[0], dict) else {}
        state = str(first.get("state") or "").strip()
        record = {key: first.get(key) for key in RECORD_KEYS}
        record["state"] = state
        if state.lower() != "implement":
            return ChangeVerdict(number, VerdictCode.NOT_IMPLEMENT, record)
        return ChangeVerdict(number, VerdictCode.APPROVED, record)

    @staticmethod
    def _records(response: httpx.Response) -> list[Any]:
        try:
            result = response.json().get("result")
        except (ValueError, AttributeError):
            return []
        if isinstance(result, list):
            return result
        if isinstance(result, dict):
            return [result]
        return []

    def require_approved(self, number: str | None) -> ChangeVerdict:
        """Validate *number* and raise unless the verdict is APPROVED.

        Raises:
            ValidationError: Missing or malformed number.
            ChangeRejectedError: Any verdict other than APPROVED.
            TransientError: ServiceNow unreachable.
        """
        if not number:
            raise ValidationError("A change ticket is required for this trigger")
        verdict = self.validate(number)
        if not verdict.approved:
            raise ChangeRejectedError(
                f"Change {verdict.number} rejected: {verdict.message}",
                verdict=verdict.code.value,
                context=ErrorContext(metadata={"number": verdict.number}),
            )
        logger.info("change_approved", number=verdict.number)
        return verdict


__all__ = [
    "VerdictCode",
    "ChangeVerdict",
    "ServiceNowValidator",
    "normalize_change_number",
]
