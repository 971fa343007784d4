"""
Target Resolver.

Turns a baseline name and a group name into the identifiers needed to
build an action.  Both lookups are exact-name relevance queries; the
first result row is flattened with :func:`~setu.bigfix.query.collect_leaves`
and assigned positionally.

Outcomes per lookup:

    non-2xx                 UpstreamError      (status + body, not retried)
    empty result set        NotFoundError      (baseline)
                            GhostAssetError    (group known to asset_ownership,
                                                ownership row deleted)
                            NotFoundError      (group unknown everywhere)
    fewer leaves than arity ShapeMismatchError
"""

from __future__ import annotations

from typing import NoReturn

from setu.actions.models import BaselineRef, GroupKind, TargetGroup
from setu.bigfix.client import BigFixClient
from setu.bigfix.query import collect_leaves, escape_relevance_string
from setu.core.errors import (
    ErrorContext,
    GhostAssetError,
    NotFoundError,
    ShapeMismatchError,
)
from setu.core.logging import get_logger
from setu.core.repositories import AssetOwnershipRepository

logger = get_logger(__name__)

BASELINE_RELEVANCE = '(name of site of it, id of it) of bes baseline whose (name of it is "{name}")'
GROUP_RELEVANCE = (
    "(name of it, id of it, name of site of it, "
    '(if automatic flag of it then "Automatic" else if manual flag of it then "manual" else "server based"))'
    ' of bes computer group whose (name of it is "{name}")'
)


class TargetResolver:
    """Resolve baseline and group names against BigFix.

    Args:
        client: BigFix REST client.
        ownership: Local ownership records, consulted only when a group
            lookup comes back empty.
    """

    def __init__(self, client: BigFixClient, ownership: AssetOwnershipRepository) -> None:
        self.client = client
        self.ownership = ownership

    def _first_row(self, relevance: str) -> list[str] | None:
        payload = self.client.query(relevance)
        rows = payload.get("result") if isinstance(payload, dict) else None
        if not isinstance(rows, list) or not rows:
            return None
        return collect_leaves(rows[0])

    def resolve_baseline(self, name: str) -> BaselineRef:
        parts = self._first_row(BASELINE_RELEVANCE.format(name=escape_relevance_string(name)))
        if parts is None:
            raise NotFoundError(f"Baseline not found: {name}", context=ErrorContext(baseline=name))
        if len(parts) < 2:
            raise ShapeMismatchError(
                "Unexpected baseline query shape",
                context=ErrorContext(baseline=name, metadata={"leaves": len(parts)}),
            )
        site, fixlet_id = parts[0], parts[1]
        logger.debug("baseline_resolved", baseline=name, site=site, fixlet_id=fixlet_id)
        return BaselineRef(name=name, site=site, fixlet_id=fixlet_id)

    def resolve_group(self, name: str) -> TargetGroup:
        parts = self._first_row(GROUP_RELEVANCE.format(name=escape_relevance_string(name)))
        if parts is None:
            self._heal_missing_group(name)
        if len(parts) < 4:
            raise ShapeMismatchError(
                "Unexpected group query shape",
                context=ErrorContext(group=name, metadata={"leaves": len(parts)}),
            )
        group_name, group_id, site, label = parts[:4]
        group = TargetGroup(
            name=group_name,
            id=group_id,
            site=site,
            kind=GroupKind.classify(label),
            label=label,
        )
        logger.debug("group_resolved", group=group_name, group_id=group_id, site=site, kind=group.kind.value)
        return group

    def _heal_missing_group(self, name: str) -> NoReturn:
        """Raise the right not-found error, deleting a ghost ownership row."""
        logger.info("group_missing_upstream", group=name)
        if self.ownership.find_by_name(name, "Group") is not None:
            deleted = self.ownership.delete_by_name(name, "Group")
            logger.warning("ghost_group_removed", group=name, rows=deleted)
            raise GhostAssetError(
                f"Group '{name}' was deleted from the BigFix Console. "
                "It has been removed from your list. Please create it again.",
                context=ErrorContext(group=name),
            )
        raise NotFoundError(f"Group not found: {name}", context=ErrorContext(group=name))


__all__ = ["TargetResolver", "BASELINE_RELEVANCE", "GROUP_RELEVANCE"]
