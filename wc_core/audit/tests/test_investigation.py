import uuid
from datetime import datetime, timezone as dt_timezone

import pytest

from wc_core.audit.exceptions import AuditEventNotFound, AuditValidationError
from wc_core.audit.models import AuditEvent
from wc_core.audit.services import AuditTrailService
from wc_core.common.context import TenantContext

pytestmark = pytest.mark.django_db


def _ctx(user_id="nurse-1", correlation_id="corr-a", tenant_id="tenant-A"):
    return TenantContext(tenant_id=tenant_id, user_id=user_id, correlation_id=correlation_id)


def _record(ctx, resource="Medication", action="UPDATE", entity_id="m1"):
    return AuditTrailService.record_for(ctx, resource=resource, action=action, entity_id=entity_id)


@pytest.fixture
def trail(clock):
    """
    Medication m1 is changed at 10:00 by nurse-1 under corr-a. Around it,
    some events are related to that change and some are not.
    """
    e = {}
    clock.now = datetime(2024, 1, 15, 8, 30, tzinfo=dt_timezone.utc)
    e["early_same_user"] = _record(_ctx(correlation_id="corr-early"), resource="CarePlan", entity_id="p9")
    clock.now = datetime(2024, 1, 15, 9, 0, tzinfo=dt_timezone.utc)
    e["same_entity"] = _record(_ctx(user_id="carer-2", correlation_id="corr-x"))
    clock.advance(minutes=10)
    e["unrelated"] = _record(_ctx(user_id="carer-2", correlation_id="corr-x"), resource="CarePlan", entity_id="p1")
    clock.advance(minutes=10)
    e["same_correlation"] = _record(_ctx(user_id="carer-3"), resource="Resident", entity_id="r1")
    clock.advance(minutes=10)
    _record(_ctx(tenant_id="tenant-B"))
    clock.now = datetime(2024, 1, 15, 10, 0, tzinfo=dt_timezone.utc)
    e["trigger"] = _record(_ctx())
    clock.advance(minutes=30)
    e["after_same_user"] = _record(_ctx(correlation_id="corr-later"), resource="CarePlan", entity_id="p2")
    clock.advance(minutes=30)
    e["past_tail"] = _record(_ctx())
    clock.advance(minutes=30)
    return e


def test_investigation_keeps_related_events_in_order(trail):
    investigation = AuditTrailService.investigate(_ctx(), trail["trigger"].id)

    assert [ev.id for ev in investigation.events] == [
        trail[k].id
        for k in ("early_same_user", "same_entity", "same_correlation", "trigger", "after_same_user")
    ]
    assert investigation.trigger_event_id == str(trail["trigger"].id)
    assert investigation.window_start == datetime(2024, 1, 14, 10, 0, tzinfo=dt_timezone.utc)
    assert investigation.window_end == datetime(2024, 1, 15, 11, 0, tzinfo=dt_timezone.utc)
    assert {ev.tenant_id for ev in investigation.events} == {"tenant-A"}


def test_window_hours_bounds_the_lookback(trail):
    investigation = AuditTrailService.investigate(_ctx(), str(trail["trigger"].id), window_hours=1)

    ids = [ev.id for ev in investigation.events]
    assert trail["same_entity"].id in ids
    assert trail["early_same_user"].id not in ids


def test_investigation_summary(trail):
    data = AuditTrailService.investigate(_ctx(), trail["trigger"].id).to_dict()

    assert data["event_count"] == 5
    assert data["scope"] == {
        "resources": ["CarePlan", "Medication", "Resident"],
        "entity_types": ["CarePlan", "Medication", "Resident"],
        "user_ids": ["carer-2", "carer-3", "nurse-1"],
    }
    flagged = [row["event_id"] for row in data["timeline"] if row["is_trigger"]]
    assert flagged == [str(trail["trigger"].id)]


def test_investigation_is_itself_audited(trail):
    ctx = _ctx(user_id="auditor-1", correlation_id="corr-inv")

    investigation = AuditTrailService.investigate(ctx, trail["trigger"].id, window_hours=2)

    recorded = AuditEvent.objects.get(tenant_id="tenant-A", resource="AuditInvestigation")
    assert recorded.action == "READ"
    assert recorded.user_id == "auditor-1"
    assert recorded.entity_id == investigation.investigation_id
    assert recorded.details == {
        "trigger_event_id": str(trail["trigger"].id),
        "window_hours": 2,
        "events_analyzed": len(investigation.events),
    }


def test_event_in_another_tenant_is_not_found(trail):
    with pytest.raises(AuditEventNotFound):
        AuditTrailService.investigate(_ctx(tenant_id="tenant-B"), trail["trigger"].id)

    with pytest.raises(AuditEventNotFound):
        AuditTrailService.investigate(_ctx(), uuid.uuid4())


@pytest.mark.parametrize(
    "kwargs,field",
    [
        ({"event_id": "not-a-uuid"}, "event_id"),
        ({"window_hours": 0}, "window_hours"),
        ({"window_hours": 24 * 7 + 1}, "window_hours"),
        ({"window_hours": 1.5}, "window_hours"),
        ({"window_hours": True}, "window_hours"),
    ],
)
def test_invalid_investigation_input(trail, kwargs, field):
    kwargs.setdefault("event_id", trail["trigger"].id)

    with pytest.raises(AuditValidationError) as exc:
        AuditTrailService.investigate(_ctx(), **kwargs)
    assert field in exc.value.fields
    assert not AuditEvent.objects.filter(resource="AuditInvestigation").exists()
