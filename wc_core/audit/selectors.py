# backend/wc_core/audit/selectors.py
from __future__ import annotations

from datetime import datetime

from django.db.models import Q, QuerySet

from wc_core.audit.models import AuditEvent


def tenant_events_qs(*, tenant_id: str) -> QuerySet[AuditEvent]:
    return AuditEvent.objects.filter(tenant_id=tenant_id)


def list_audit_events(
    *,
    tenant_id: str,
    resource: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    user_id: str | None = None,
    action: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    correlation_id: str | None = None,
    after: tuple[datetime, int] | None = None,
) -> QuerySet[AuditEvent]:
    """
    Tenant events in append order: (timestamp, sequence) ascending.
    `after` is a keyset position; only events strictly after it are returned.
    """
    qs = tenant_events_qs(tenant_id=tenant_id)

    if resource:
        qs = qs.filter(resource=resource)
    if entity_type:
        qs = qs.filter(entity_type=entity_type)
    if entity_id:
        qs = qs.filter(entity_id=entity_id)
    if user_id:
        qs = qs.filter(user_id=user_id)
    if action:
        qs = qs.filter(action=action)
    if date_from is not None:
        qs = qs.filter(timestamp__gte=date_from)
    if date_to is not None:
        qs = qs.filter(timestamp__lt=date_to)
    if correlation_id:
        qs = qs.filter(correlation_id=correlation_id)

    if after is not None:
        ts, seq = after
        qs = qs.filter(Q(timestamp__gt=ts) | Q(timestamp=ts, sequence__gt=seq))

    return qs.order_by("timestamp", "sequence")


def distinct_tenant_ids() -> list[str]:
    return list(
        AuditEvent.objects.order_by("tenant_id").values_list("tenant_id", flat=True).distinct()
    )


def get_tenant_event(*, tenant_id: str, event_id) -> AuditEvent | None:
    return tenant_events_qs(tenant_id=tenant_id).filter(id=event_id).first()
