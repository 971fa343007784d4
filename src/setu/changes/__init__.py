"""Change-management gate (ServiceNow change requests)."""

from setu.changes.servicenow import ChangeVerdict, ServiceNowValidator, VerdictCode

__all__ = ["ChangeVerdict", "ServiceNowValidator", "VerdictCode"]
