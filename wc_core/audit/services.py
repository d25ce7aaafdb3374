# backend/wc_core/audit/services.py
from __future__ import annotations

import base64
import binascii
import json
import logging
import threading
import time
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Dict, Iterator, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Count
from django.db.models.functions import ExtractHour, TruncDate
from django.utils import timezone

from wc_core.audit.exceptions import (
    AuditAuthorizationError,
    AuditEventNotFound,
    AuditExportCancelled,
    AuditStorageError,
    AuditValidationError,
)
from wc_core.audit.export import EXPORT_FORMATS, build_export
from wc_core.audit.models import AuditAction, AuditEvent, AuditTenantCursor, canonical_timestamp
from wc_core.audit.records import (
    DEFAULT_QUERY_LIMIT,
    MAX_INVESTIGATION_WINDOW_HOURS,
    MAX_QUERY_LIMIT,
    AuditEventInput,
    AuditExport,
    AuditInvestigation,
    AuditPage,
    AuditQuery,
)
from wc_core.audit.selectors import get_tenant_event, list_audit_events, tenant_events_qs
from wc_core.common.context import TenantContext, new_correlation_id
from wc_core.iam.scope import parse_tenant_uuid

logger = logging.getLogger(__name__)

FIELD_LIMITS = {
    "tenant_id": 64,
    "resource": 128,
    "entity_type": 128,
    "entity_id": 128,
    "user_id": 128,
    "correlation_id": 128,
}

REQUIRED_FIELDS = ("resource", "action", "user_id", "tenant_id")

PEAK_HOURS = 3

# investigations also cover the hour after the trigger
INVESTIGATION_TAIL = timedelta(hours=1)


def _utcnow() -> datetime:
    return timezone.now()


def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _validate_details(details) -> Dict[str, Any]:
    if details is None:
        return {}
    if not isinstance(details, dict):
        raise AuditValidationError({"details": "Must be a JSON object."})
    try:
        round_tripped = json.loads(json.dumps(details, allow_nan=False))
    except (TypeError, ValueError):
        raise AuditValidationError({"details": "Must contain only JSON-serialisable values."})
    if round_tripped != details:
        raise AuditValidationError({"details": "Must contain only JSON-serialisable values."})
    return round_tripped


def _normalise_action(action) -> str:
    value = _text(action).upper()
    if value not in AuditAction.values:
        raise AuditValidationError({"action": f"Invalid action. Allowed: {list(AuditAction.values)}"})
    return value


def _validate_input(event: AuditEventInput) -> Dict[str, Any]:
    data = {
        "tenant_id": _text(event.tenant_id),
        "resource": _text(event.resource),
        "action": _text(event.action),
        "user_id": _text(event.user_id),
        "entity_type": _text(event.entity_type),
        "entity_id": _text(event.entity_id),
        "correlation_id": _text(event.correlation_id),
    }

    errors = {name: "This field is required." for name in REQUIRED_FIELDS if not data[name]}
    if errors:
        raise AuditValidationError(errors)

    data["action"] = _normalise_action(data["action"])
    data["entity_type"] = data["entity_type"] or data["resource"]
    data["correlation_generated"] = bool(event.correlation_generated) or not data["correlation_id"]
    data["correlation_id"] = data["correlation_id"] or new_correlation_id()

    too_long = {
        name: f"Ensure this field has no more than {limit} characters."
        for name, limit in FIELD_LIMITS.items()
        if len(data[name]) > limit
    }
    if too_long:
        raise AuditValidationError(too_long)

    data["details"] = _validate_details(event.details)
    return data


def _same_tenant(caller: str, requested: str) -> bool:
    if caller == requested:
        return True
    # UUID tenant ids compare by value (case, braces, hyphens)
    caller_uuid, requested_uuid = parse_tenant_uuid(caller), parse_tenant_uuid(requested)
    return caller_uuid is not None and caller_uuid == requested_uuid


def _authorize(context: TenantContext, tenant_id) -> str:
    requested = _text(tenant_id)
    if not requested:
        raise AuditValidationError({"tenant_id": "This field is required."})
    if not _same_tenant(context.tenant_id, requested):
        logger.warning(
            "Cross-tenant audit access refused caller_tenant=%s requested_tenant=%s user=%s",
            context.tenant_id,
            requested,
            context.user_id,
        )
        raise AuditAuthorizationError()
    # rows are stored under the caller's spelling of the id
    return context.tenant_id


def encode_cursor(event: AuditEvent) -> str:
    raw = json.dumps([canonical_timestamp(event.timestamp), event.sequence])
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> tuple[datetime, int]:
    try:
        ts_raw, seq = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8"))
        ts = datetime.fromisoformat(ts_raw)
        if timezone.is_naive(ts) or not isinstance(seq, int):
            raise ValueError(cursor)
    except (binascii.Error, UnicodeError, TypeError, ValueError):
        raise AuditValidationError({"cursor": "Invalid cursor."})
    return ts, seq


def _query_limit(limit) -> int:
    max_limit = getattr(settings, "AUDIT_QUERY_MAX_LIMIT", MAX_QUERY_LIMIT)
    if limit is None:
        return min(getattr(settings, "AUDIT_QUERY_DEFAULT_LIMIT", DEFAULT_QUERY_LIMIT), max_limit)
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= max_limit:
        raise AuditValidationError({"limit": f"Must be an integer between 1 and {max_limit}."})
    return limit


def _filtered_qs(query: AuditQuery, *, after=None):
    if query.date_from is not None and query.date_to is not None and query.date_from > query.date_to:
        raise AuditValidationError({"date_from": "Must not be after date_to."})

    return list_audit_events(
        tenant_id=_text(query.tenant_id),
        resource=query.resource or None,
        entity_type=query.entity_type or None,
        entity_id=query.entity_id or None,
        user_id=query.user_id or None,
        action=_normalise_action(query.action) if query.action else None,
        date_from=query.date_from,
        date_to=query.date_to,
        correlation_id=query.correlation_id or None,
        after=after,
    )


class AuditTrailService:
    """
    Single entry point for the audit trail.

    Writes: record()/record_for() run inside the caller's transaction.
    Reads: query/iter_events/export/statistics/verify_integrity/investigate
    are always scoped to the caller's tenant.
    """

    @staticmethod
    def record(event: AuditEventInput) -> AuditEvent:
        data = _validate_input(event)

        try:
            # joins the caller's transaction as a savepoint
            with transaction.atomic():
                return AuditTrailService._append(data)
        except DatabaseError as exc:
            logger.error(
                "Audit write failed tenant=%s correlation_id=%s resource=%s action=%s",
                data["tenant_id"],
                data["correlation_id"],
                data["resource"],
                data["action"],
                exc_info=True,
            )
            raise AuditStorageError() from exc

    @staticmethod
    def _append(data: Dict[str, Any]) -> AuditEvent:
        cursor, _ = AuditTenantCursor.objects.select_for_update().get_or_create(tenant_id=data["tenant_id"])

        ts = _utcnow()
        if cursor.last_timestamp is not None and cursor.last_timestamp > ts:
            # clock went backwards; keep per-tenant time non-decreasing
            ts = cursor.last_timestamp

        event = AuditEvent(
            id=uuid.uuid4(),
            sequence=cursor.last_sequence + 1,
            timestamp=ts,
            **data,
        )
        event.record_hash = event.compute_hash()
        event.save(force_insert=True)

        cursor.last_sequence = event.sequence
        cursor.last_timestamp = ts
        cursor.save(update_fields=["last_sequence", "last_timestamp"])
        return event

    @staticmethod
    def record_for(
        context: TenantContext,
        *,
        resource: str,
        action: str,
        entity_type: str = "",
        entity_id="",
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        return AuditTrailService.record(
            AuditEventInput(
                tenant_id=context.tenant_id,
                user_id=context.user_id,
                correlation_id=context.correlation_id,
                correlation_generated=context.correlation_generated,
                resource=resource,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                details=details,
            )
        )

    @staticmethod
    def query(context: TenantContext, query: AuditQuery) -> AuditPage:
        query = replace(query, tenant_id=_authorize(context, query.tenant_id))
        limit = _query_limit(query.limit)
        after = decode_cursor(query.cursor) if query.cursor else None

        qs = _filtered_qs(query, after=after)
        try:
            rows = list(qs[: limit + 1])
        except DatabaseError as exc:
            logger.error("Audit query failed tenant=%s", context.tenant_id, exc_info=True)
            raise AuditStorageError() from exc

        next_cursor = None
        if len(rows) > limit:
            rows = rows[:limit]
            next_cursor = encode_cursor(rows[-1])
        return AuditPage(events=rows, next_cursor=next_cursor)

    @staticmethod
    def iter_events(context: TenantContext, query: AuditQuery) -> Iterator[AuditEvent]:
        """
        Walk every matching event page by page (bounded memory).
        """
        page_query = replace(query, limit=getattr(settings, "AUDIT_QUERY_MAX_LIMIT", MAX_QUERY_LIMIT))
        while True:
            page = AuditTrailService.query(context, page_query)
            yield from page.events
            if not page.next_cursor:
                return
            page_query = replace(page_query, cursor=page.next_cursor)

    @staticmethod
    def export(
        context: TenantContext,
        query: AuditQuery,
        fmt: str,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> AuditExport:
        fmt = _text(fmt).lower()
        if fmt not in EXPORT_FORMATS:
            raise AuditValidationError({"format": f"Unsupported export format. Allowed: {list(EXPORT_FORMATS)}"})
        _authorize(context, query.tenant_id)

        deadline = time.monotonic() + timeout if timeout is not None else None

        def checkpoint() -> None:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Audit export cancelled tenant=%s", context.tenant_id)
                raise AuditExportCancelled()
            if deadline is not None and time.monotonic() >= deadline:
                logger.info("Audit export timed out tenant=%s timeout=%s", context.tenant_id, timeout)
                raise AuditExportCancelled("Audit export timed out before completion.")

        return build_export(
            AuditTrailService.iter_events(context, replace(query, cursor=None)),
            fmt=fmt,
            tenant_id=context.tenant_id,
            checkpoint=checkpoint,
            spool_max_bytes=getattr(settings, "AUDIT_EXPORT_SPOOL_MAX_BYTES", 5 * 1024 * 1024),
        )

    @staticmethod
    def statistics(
        context: TenantContext,
        tenant_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> dict:
        tenant_id = _authorize(context, tenant_id)
        qs = _filtered_qs(AuditQuery(tenant_id=tenant_id, date_from=date_from, date_to=date_to))

        by_resource_action = [
            {"resource": row["resource"], "action": row["action"], "count": row["count"]}
            for row in qs.values("resource", "action").annotate(count=Count("id")).order_by("resource", "action")
        ]

        by_resource: Dict[str, int] = {}
        by_action: Dict[str, int] = {}
        for row in by_resource_action:
            by_resource[row["resource"]] = by_resource.get(row["resource"], 0) + row["count"]
            by_action[row["action"]] = by_action.get(row["action"], 0) + row["count"]

        # busiest users first
        by_user = {
            row["user_id"]: row["count"]
            for row in qs.values("user_id").annotate(count=Count("id")).order_by("-count", "user_id")
        }

        # days and hours are bucketed in UTC, whatever TIME_ZONE says
        events_per_day = [
            {"date": str(row["day"]), "count": row["count"]}
            for row in qs.annotate(day=TruncDate("timestamp", tzinfo=dt_timezone.utc))
            .values("day")
            .annotate(count=Count("id"))
            .order_by("day")
        ]
        peak_hours = [
            {"hour": row["hour"], "count": row["count"]}
            for row in qs.annotate(hour=ExtractHour("timestamp", tzinfo=dt_timezone.utc))
            .values("hour")
            .annotate(count=Count("id"))
            .order_by("-count", "hour")[:PEAK_HOURS]
        ]

        return {
            "tenant_id": tenant_id,
            "date_from": date_from,
            "date_to": date_to,
            "total": sum(by_resource.values()),
            "by_resource": by_resource,
            "by_action": by_action,
            "by_resource_action": by_resource_action,
            "by_user": by_user,
            "events_per_day": events_per_day,
            "peak_hours": peak_hours,
        }

    @staticmethod
    @transaction.atomic
    def investigate(context: TenantContext, event_id, window_hours: int = 24) -> AuditInvestigation:
        """
        Rebuild what happened around one event: every event from
        `window_hours` before it until an hour after it that touches the same
        entity, was done by the same user, or shares its correlation id.

        The investigation is itself recorded as an AuditInvestigation READ
        event under the caller's context.
        """
        if (
            isinstance(window_hours, bool)
            or not isinstance(window_hours, int)
            or not 1 <= window_hours <= MAX_INVESTIGATION_WINDOW_HOURS
        ):
            raise AuditValidationError(
                {"window_hours": f"Must be an integer between 1 and {MAX_INVESTIGATION_WINDOW_HOURS}."}
            )

        try:
            event_uuid = uuid.UUID(_text(event_id))
        except ValueError:
            raise AuditValidationError({"event_id": "Must be a valid UUID."})

        trigger = get_tenant_event(tenant_id=context.tenant_id, event_id=event_uuid)
        if trigger is None:
            raise AuditEventNotFound()

        window_start = trigger.timestamp - timedelta(hours=window_hours)
        window_end = trigger.timestamp + INVESTIGATION_TAIL

        def related(e: AuditEvent) -> bool:
            same_entity = bool(trigger.entity_id) and (e.entity_type, e.entity_id) == (
                trigger.entity_type,
                trigger.entity_id,
            )
            return same_entity or e.user_id == trigger.user_id or e.correlation_id == trigger.correlation_id

        events = [
            e
            for e in AuditTrailService.iter_events(
                context,
                AuditQuery(tenant_id=context.tenant_id, date_from=window_start, date_to=window_end),
            )
            if related(e)
        ]

        investigation = AuditInvestigation(
            investigation_id=new_correlation_id(),
            tenant_id=context.tenant_id,
            trigger_event_id=str(trigger.id),
            window_start=window_start,
            window_end=window_end,
            events=events,
        )

        AuditTrailService.record_for(
            context,
            resource="AuditInvestigation",
            action=AuditAction.READ,
            entity_id=investigation.investigation_id,
            details={
                "trigger_event_id": investigation.trigger_event_id,
                "window_hours": window_hours,
                "events_analyzed": len(events),
            },
        )
        logger.info(
            "Audit investigation tenant=%s trigger=%s events=%d",
            context.tenant_id,
            investigation.trigger_event_id,
            len(events),
        )
        return investigation

    @staticmethod
    def verify_integrity(context: TenantContext, tenant_id: str) -> list[str]:
        """
        Recompute record hashes; returns ids of events whose stored hash no
        longer matches their content.
        """
        tenant_id = _authorize(context, tenant_id)

        tampered = [
            str(event.id)
            for event in tenant_events_qs(tenant_id=tenant_id).order_by("timestamp", "sequence").iterator()
            if event.compute_hash() != event.record_hash
        ]
        if tampered:
            logger.warning("Audit integrity check failed tenant=%s tampered=%d", tenant_id, len(tampered))
        return tampered
