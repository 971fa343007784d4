"""
Action operations: the dispatcher and the read paths around it.

``trigger_baseline`` runs strictly in this order; each step either
completes or ends the operation:

    1. change gate          (before any state-mutating call)
    2. resolve baseline     NOT_FOUND / SHAPE_MISMATCH / UPSTREAM_*
    3. resolve group        NOT_FOUND / GHOST_ASSET / SHAPE_MISMATCH
    4. member manifest      best effort, only when notifying
    5. target + offset      VALIDATION_FAILED for a non-positive window
    6. build + submit       UPSTREAM_REJECTED with status and body
    7. extract action id    missing id is logged, not fatal
    8. persist record       durable failure is logged, not fatal
    9. pre-notification     failure reported in ``pre_notify_error``

Re-running a trigger with identical arguments issues a new action.
"""

from __future__ import annotations

from setu.actions.models import ActionRecord, ResultRow
from setu.actions.synthesizer import (
    action_title,
    build_action_document,
    build_target_expression,
    compute_completion_offset,
)
from setu.bigfix.query import extract_action_id, pick_tag
from setu.changes.servicenow import ChangeVerdict
from setu.core.errors import SetuError, UpstreamError, ValidationError
from setu.core.logging import LogContext, get_logger
from setu.core.repositories import ActionHistoryRepository
from setu.core.schema import CORE_TABLES, create_core_tables
from setu.core.timestamps import to_iso8601, utc_now
from setu.notify.templates import pre_trigger_notification
from setu.ops.context import OperationContext
from setu.ops.requests import CleanupRequest, TriggerRequest
from setu.ops.responses import (
    ActionResultsView,
    ActionStatusView,
    CleanupResult,
    TriggerResult,
)
from setu.ops.result import OperationResult, start_timer

logger = get_logger(__name__)

_INVALID_IDS = {"", "null", "undefined", "none"}


def trigger_baseline(
    ctx: OperationContext,
    request: TriggerRequest,
) -> OperationResult[TriggerResult]:
    """Resolve, synthesize, submit and record one baseline action."""
    timer = start_timer()
    services = ctx.services
    settings = services.settings
    warnings: list[str] = []

    with LogContext(request_id=ctx.request_id, triggered_by=request.triggered_by):
        logger.info(
            "trigger_requested",
            baseline=request.baseline_name,
            group=request.group_name,
            stage=request.stage,
            notify=request.notify,
        )
        try:
            if not request.baseline_name or not request.group_name:
                raise ValidationError("baselineName and groupName are required")

            # 1) change gate
            require_ticket = (
                settings.require_change_ticket
                if request.require_change_ticket is None
                else request.require_change_ticket
            )
            if require_ticket:
                services.validator.require_approved(request.change_ticket)

            # 2-3) resolution
            resolver = services.resolver
            baseline = resolver.resolve_baseline(request.baseline_name)
            group = resolver.resolve_group(request.group_name)

            # 4) manifest for the pre-notification
            members: list[str] | None = None
            if request.notify:
                try:
                    members = services.bigfix.group_member_names(group.id)
                except SetuError as e:
                    logger.warning("member_manifest_failed", group_id=group.id, error=str(e))
                    warnings.append(f"Member list unavailable: {e.message}")

            # 5) target + offset
            expression = build_target_expression(group)
            offset = compute_completion_offset(request.window, utc_offset_ms=services.utc_offset_ms())
            logger.debug("completion_offset_computed", offset=offset)

            # 6) document + submission
            stage = (request.stage or settings.default_stage).strip()
            title = action_title(request.baseline_name, stage)
            document = build_action_document(
                site=baseline.site,
                fixlet_id=baseline.fixlet_id,
                target_expression=expression,
                offset=offset,
                title=title,
            )
            created_at = utc_now()
            if ctx.dry_run:
                return OperationResult.ok(
                    TriggerResult(
                        action_id=None,
                        site_name=baseline.site,
                        fixlet_id=baseline.fixlet_id,
                        group=group.name,
                        group_id=group.id,
                        group_site=group.site,
                        group_type=group.label,
                        title=title,
                        stage=stage,
                        end_offset=offset,
                        created_at=to_iso8601(created_at),
                        pre_notify=request.notify,
                        target_expression=expression,
                        document=document,
                        dry_run=True,
                    ),
                    warnings=warnings,
                    elapsed_ms=timer.elapsed_ms,
                )

            body = services.bigfix.post_action(document)

            # 7) identifier
            action_id = extract_action_id(body)
            if action_id is None:
                logger.warning("action_id_missing", body=body[:300])
                warnings.append("BigFix accepted the action but returned no recognizable id")

            # 8) persist
            notify_ready = services.notify_ready
            record = ActionRecord(
                action_id=action_id or "",
                created_at=created_at,
                stage=stage,
                source_document=document,
                baseline_name=request.baseline_name,
                baseline_site=baseline.site,
                baseline_fixlet_id=baseline.fixlet_id,
                group_name=group.name,
                group_id=group.id,
                group_site=group.site,
                group_type=group.label,
                completion_offset=offset,
                pre_notify_requested=request.notify,
                notify_channel_ready=notify_ready,
                triggered_by=request.triggered_by or "Unknown",
                recipients=dict(request.recipients),
            )
            if action_id:
                services.store.add(record)

            # 9) pre-notification
            pre_notify_error: str | None = None
            if request.notify and notify_ready:
                notification = pre_trigger_notification(
                    record,
                    services.default_recipients.override(request.recipients),
                    member_names=members,
                )
                try:
                    delivery = services.channel.send(notification)
                except Exception as e:
                    delivery = None
                    pre_notify_error = str(e)
                if delivery is not None and not delivery.success:
                    pre_notify_error = delivery.message or "delivery failed"
                if pre_notify_error:
                    logger.warning("pre_notification_failed", action_id=action_id, error=pre_notify_error)
                else:
                    logger.info("pre_notification_sent", action_id=action_id)

            logger.info("trigger_completed", action_id=action_id, stage=stage, offset=offset)
            return OperationResult.ok(
                TriggerResult(
                    action_id=action_id,
                    site_name=baseline.site,
                    fixlet_id=baseline.fixlet_id,
                    group=group.name,
                    group_id=group.id,
                    group_site=group.site,
                    group_type=group.label,
                    title=title,
                    stage=stage,
                    end_offset=offset,
                    created_at=to_iso8601(created_at),
                    pre_notify=request.notify,
                    pre_notify_error=pre_notify_error,
                    target_expression=expression,
                    document=document,
                ),
                warnings=warnings,
                elapsed_ms=timer.elapsed_ms,
            )

        except SetuError as e:
            logger.warning("trigger_failed", **e.to_dict())
            return OperationResult.from_error(e, warnings=warnings, elapsed_ms=timer.elapsed_ms)
        except Exception as e:
            logger.exception("trigger_failed", error=str(e))
            return OperationResult.fail("INTERNAL", str(e), elapsed_ms=timer.elapsed_ms)


def get_last_action_id(ctx: OperationContext) -> OperationResult[dict]:
    """Most recent action id: this process's pointer, else the newest durable row."""
    timer = start_timer()
    services = ctx.services
    action_id = services.store.last_action_id
    if action_id is None and services.store.repository is not None:
        try:
            action_id = services.store.repository.latest_action_id()
        except Exception as e:
            logger.warning("latest_action_lookup_failed", error=str(e))
    return OperationResult.ok({"actionId": action_id}, elapsed_ms=timer.elapsed_ms)


def _is_finalized(ctx: OperationContext, action_id: str) -> bool:
    store = ctx.services.store
    if store.is_finalized(action_id):
        return True
    if store.repository is None:
        return False
    try:
        row = store.repository.get(action_id)
    except Exception as e:
        logger.warning("action_lookup_failed", action_id=action_id, error=str(e))
        return False
    return bool(row and row["post_notify_sent"])


def get_action_status(ctx: OperationContext, action_id: str) -> OperationResult[ActionStatusView]:
    """Current BigFix state of *action_id* and whether it has been finalized.

    An expired action reports ``notified`` as true; an ``id not found``
    answer from BigFix is treated as expired.
    """
    timer = start_timer()
    action_id = str(action_id or "").strip()
    if action_id.lower() in _INVALID_IDS:
        return OperationResult.fail("VALIDATION_FAILED", "Invalid action id", elapsed_ms=timer.elapsed_ms)
    try:
        http_status, text = ctx.services.bigfix.fetch_action_status(action_id)
        if not 200 <= http_status < 300:
            if "id not found" in text.lower():
                return OperationResult.ok(
                    ActionStatusView(action_id, "expired", True),
                    elapsed_ms=timer.elapsed_ms,
                )
            raise UpstreamError(f"BigFix status request failed ({http_status})", status=http_status, body=text)
        state = (pick_tag(text, "Status") or "Unknown").lower()
        notified = state == "expired" or _is_finalized(ctx, action_id)
        return OperationResult.ok(ActionStatusView(action_id, state, notified), elapsed_ms=timer.elapsed_ms)
    except SetuError as e:
        logger.warning("status_failed", action_id=action_id, **e.to_dict())
        return OperationResult.from_error(e, elapsed_ms=timer.elapsed_ms)


def get_action_results(ctx: OperationContext, action_id: str) -> OperationResult[ActionResultsView]:
    """Per-computer results of *action_id* with a success count."""
    timer = start_timer()
    action_id = str(action_id or "").strip()
    if not action_id.isdigit():
        return OperationResult.fail("VALIDATION_FAILED", "Invalid action id", elapsed_ms=timer.elapsed_ms)
    try:
        rows = [
            ResultRow.from_parts(parts)
            for parts in ctx.services.bigfix.action_results(action_id, with_issuer=True)
        ]
    except SetuError as e:
        logger.warning("results_failed", action_id=action_id, **e.to_dict())
        return OperationResult.from_error(e, elapsed_ms=timer.elapsed_ms)
    view = ActionResultsView(action_id, rows)
    logger.info("results_summary", action_id=action_id, total=view.total, success=view.success)
    return OperationResult.ok(view, elapsed_ms=timer.elapsed_ms)


def list_pending_actions(ctx: OperationContext) -> OperationResult[list[ActionRecord]]:
    """Records still waiting for their post-completion step."""
    timer = start_timer()
    records = sorted(ctx.services.store.pending(), key=lambda r: r.created_at)
    return OperationResult.ok(records, elapsed_ms=timer.elapsed_ms)


def cleanup_actions(
    ctx: OperationContext,
    request: CleanupRequest | None = None,
) -> OperationResult[CleanupResult]:
    """Delete finalized rows older than the retention window."""
    timer = start_timer()
    request = request or CleanupRequest()
    days = ctx.services.settings.retention_days if request.retention_days is None else request.retention_days
    if ctx.dry_run or days <= 0:
        return OperationResult.ok(
            CleanupResult(deleted=0, retention_days=days, dry_run=ctx.dry_run),
            elapsed_ms=timer.elapsed_ms,
        )
    result = ctx.services.store.cleanup(days)
    if result is None:
        return OperationResult.fail("STORE_FAILED", "Retention cleanup failed", elapsed_ms=timer.elapsed_ms)
    return OperationResult.ok(
        CleanupResult(deleted=result.deleted, retention_days=days, cutoff=result.cutoff),
        elapsed_ms=timer.elapsed_ms,
    )


def validate_change(ctx: OperationContext, number: str) -> OperationResult[ChangeVerdict]:
    """Look up a change ticket without triggering anything."""
    timer = start_timer()
    try:
        verdict = ctx.services.validator.validate(number)
    except SetuError as e:
        return OperationResult.from_error(e, elapsed_ms=timer.elapsed_ms)
    return OperationResult.ok(verdict, elapsed_ms=timer.elapsed_ms)


def initialize_database(ctx: OperationContext) -> OperationResult[dict]:
    """Create the durable tables (idempotent)."""
    timer = start_timer()
    tables = list(CORE_TABLES.values())
    if ctx.dry_run:
        return OperationResult.ok({"tables": tables, "dryRun": True}, elapsed_ms=timer.elapsed_ms)
    try:
        create_core_tables(ctx.services.conn)
        counts = ActionHistoryRepository(ctx.services.conn)
        return OperationResult.ok(
            {"tables": tables, "actions": counts.count(), "pending": counts.count(notified=False)},
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as e:
        logger.exception("op_failed", error=str(e))
        return OperationResult.fail("INTERNAL", f"Failed to create tables: {e}", elapsed_ms=timer.elapsed_ms)


__all__ = [
    "trigger_baseline",
    "get_last_action_id",
    "get_action_status",
    "get_action_results",
    "list_pending_actions",
    "cleanup_actions",
    "validate_change",
    "initialize_database",
]
