import pytest
from django.db import models

from wc_core.audit.exceptions import AuditAuthorizationError
from wc_core.audit.models import AuditEvent, AuditImmutableError
from wc_core.audit.services import AuditTrailService

pytestmark = pytest.mark.django_db


def _record(ctx, **kwargs):
    kwargs.setdefault("resource", "Medication")
    kwargs.setdefault("action", "CREATE")
    return AuditTrailService.record_for(ctx, **kwargs)


def test_saved_event_cannot_be_modified(ctx_a):
    event = _record(ctx_a, details={"dose": "5mg"})

    event.details = {"dose": "50mg"}
    with pytest.raises(AuditImmutableError):
        event.save()

    event.refresh_from_db()
    assert event.details == {"dose": "5mg"}


def test_saved_event_cannot_be_deleted(ctx_a):
    event = _record(ctx_a)

    with pytest.raises(AuditImmutableError):
        event.delete()
    assert AuditEvent.objects.filter(pk=event.pk).exists()


def test_bulk_update_and_delete_are_refused(ctx_a):
    _record(ctx_a)

    with pytest.raises(AuditImmutableError):
        AuditEvent.objects.filter(tenant_id="tenant-A").update(action="DELETE")

    with pytest.raises(AuditImmutableError):
        AuditEvent.objects.filter(tenant_id="tenant-A").delete()

    assert AuditEvent.objects.filter(tenant_id="tenant-A", action="CREATE").count() == 1


def test_verify_integrity_clean_trail(ctx_a):
    for i in range(3):
        _record(ctx_a, entity_id=str(i), details={"n": i})

    assert AuditTrailService.verify_integrity(ctx_a, "tenant-A") == []


def test_verify_integrity_reports_tampered_rows(ctx_a):
    ok = _record(ctx_a, details={"dose": "5mg"})
    bad = _record(ctx_a, details={"dose": "5mg"})

    # simulate tampering below the ORM guard (e.g. direct SQL)
    models.QuerySet.update(AuditEvent.objects.filter(pk=bad.pk), details={"dose": "500mg"})

    tampered = AuditTrailService.verify_integrity(ctx_a, "tenant-A")
    assert tampered == [str(bad.id)]
    assert str(ok.id) not in tampered


def test_verify_integrity_is_tenant_scoped(ctx_a, ctx_b):
    _record(ctx_b)

    with pytest.raises(AuditAuthorizationError):
        AuditTrailService.verify_integrity(ctx_a, "tenant-B")


def test_statistics_groups_by_resource_and_action(ctx_a, ctx_b):
    _record(ctx_a, resource="Medication", action="CREATE")
    _record(ctx_a, resource="Medication", action="CREATE")
    _record(ctx_a, resource="Medication", action="READ")
    _record(ctx_a, resource="CarePlan", action="UPDATE")
    _record(ctx_b, resource="Medication", action="CREATE")

    stats = AuditTrailService.statistics(ctx_a, "tenant-A")

    assert stats["total"] == 4
    assert stats["by_resource"] == {"CarePlan": 1, "Medication": 3}
    assert stats["by_action"] == {"CREATE": 2, "READ": 1, "UPDATE": 1}
    assert stats["by_resource_action"] == [
        {"resource": "CarePlan", "action": "UPDATE", "count": 1},
        {"resource": "Medication", "action": "CREATE", "count": 2},
        {"resource": "Medication", "action": "READ", "count": 1},
    ]


def test_statistics_respects_date_range(ctx_a, clock):
    _record(ctx_a)
    start = clock.advance(days=1)
    _record(ctx_a)
    _record(ctx_a)
    end = clock.advance(days=1)
    _record(ctx_a)

    stats = AuditTrailService.statistics(ctx_a, "tenant-A", date_from=start, date_to=end)
    assert stats["total"] == 2


def test_statistics_refuses_other_tenant(ctx_a):
    with pytest.raises(AuditAuthorizationError):
        AuditTrailService.statistics(ctx_a, "tenant-B")


def test_statistics_by_user_day_and_peak_hour(ctx_a, clock):
    carer = ctx_a.derive(user_id="carer-7")

    # 2024-01-15: two at 09:00, one at 10:00 by another user
    _record(ctx_a)
    _record(ctx_a)
    clock.advance(hours=1)
    _record(carer)
    # 2024-01-16 at 09:00 and 14:00
    clock.advance(hours=23)
    _record(ctx_a)
    clock.advance(hours=5)
    _record(carer)

    stats = AuditTrailService.statistics(ctx_a, "tenant-A")

    assert stats["by_user"] == {"nurse-1": 3, "carer-7": 2}
    assert list(stats["by_user"]) == ["nurse-1", "carer-7"]
    assert stats["events_per_day"] == [
        {"date": "2024-01-15", "count": 3},
        {"date": "2024-01-16", "count": 2},
    ]
    assert stats["peak_hours"] == [
        {"hour": 9, "count": 3},
        {"hour": 10, "count": 1},
        {"hour": 14, "count": 1},
    ]


def test_statistics_peak_hours_keeps_top_three(ctx_a, clock):
    for _ in range(5):
        _record(ctx_a)
        clock.advance(hours=1)

    stats = AuditTrailService.statistics(ctx_a, "tenant-A")

    assert [row["hour"] for row in stats["peak_hours"]] == [9, 10, 11]


def test_statistics_on_empty_trail(ctx_a):
    stats = AuditTrailService.statistics(ctx_a, "tenant-A")

    assert stats["total"] == 0
    assert stats["by_user"] == {}
    assert stats["events_per_day"] == []
    assert stats["peak_hours"] == []
