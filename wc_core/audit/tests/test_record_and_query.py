import uuid

import pytest
from django.db import DatabaseError, transaction

from wc_core.audit.exceptions import AuditAuthorizationError, AuditStorageError, AuditValidationError
from wc_core.audit.models import AuditEvent
from wc_core.audit.records import AuditEventInput, AuditQuery
from wc_core.audit.services import AuditTrailService, decode_cursor, encode_cursor
from wc_core.common.context import TenantContext

pytestmark = pytest.mark.django_db


def _record(ctx, resource="Medication", action="CREATE", **kwargs):
    return AuditTrailService.record_for(ctx, resource=resource, action=action, **kwargs)


def test_record_then_query_returns_event(ctx_a):
    event = AuditTrailService.record(
        AuditEventInput(
            tenant_id="tenant-A",
            user_id="u1",
            resource="Medication",
            entity_type="MedicationAdministration",
            entity_id="m1",
            action="CREATE",
            details={"dose": "5mg"},
            correlation_id="c1",
        )
    )

    page = AuditTrailService.query(ctx_a, AuditQuery(tenant_id="tenant-A", resource="Medication"))

    assert [e.id for e in page.events] == [event.id]
    stored = page.events[0]
    assert stored.entity_type == "MedicationAdministration"
    assert stored.details == {"dose": "5mg"}
    assert stored.correlation_id == "c1"
    assert stored.sequence == 1
    assert page.next_cursor is None


def test_entity_type_defaults_to_resource(ctx_a):
    event = _record(ctx_a, resource="Medication", action="CREATE", entity_id="m1")

    assert event.entity_type == "Medication"
    page = AuditTrailService.query(ctx_a, AuditQuery(tenant_id="tenant-A", entity_type="Medication", entity_id="m1"))
    assert [e.id for e in page.events] == [event.id]


def test_lowercase_action_is_normalised(ctx_a):
    event = _record(ctx_a, action="read")
    assert event.action == "READ"


def test_context_fields_are_stamped(ctx_a):
    event = _record(ctx_a)

    assert event.tenant_id == "tenant-A"
    assert event.user_id == "nurse-1"
    assert event.correlation_id == "corr-a"
    assert not event.correlation_generated
    assert event.record_hash == event.compute_hash()


class _DomainFailure(Exception):
    pass


def test_domain_rollback_discards_audit_event(ctx_a):
    with pytest.raises(_DomainFailure):
        with transaction.atomic():
            _record(ctx_a, entity_id="m1")
            raise _DomainFailure()

    assert AuditEvent.objects.filter(tenant_id="tenant-A").count() == 0

    # the tenant sequence is rolled back with it
    assert _record(ctx_a, entity_id="m2").sequence == 1


def test_missing_correlation_id_is_generated():
    event = AuditTrailService.record(
        AuditEventInput(tenant_id="tenant-A", user_id="u1", resource="Consent", action="UPDATE")
    )
    assert event.correlation_id
    assert event.correlation_generated


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"user_id": ""}, "user_id"),
        ({"tenant_id": "  "}, "tenant_id"),
        ({"resource": ""}, "resource"),
        ({"action": "ARCHIVE"}, "action"),
        ({"details": {"when": object()}}, "details"),
        ({"details": ["not", "an", "object"]}, "details"),
        ({"entity_id": "x" * 200}, "entity_id"),
    ],
)
def test_invalid_input_is_rejected_before_storage(overrides, field):
    data = {"tenant_id": "tenant-A", "user_id": "u1", "resource": "Medication", "action": "CREATE"}
    data.update(overrides)

    with pytest.raises(AuditValidationError) as exc:
        AuditTrailService.record(AuditEventInput(**data))

    assert field in exc.value.fields
    assert AuditEvent.objects.count() == 0


def test_sequence_is_per_tenant(ctx_a, ctx_b):
    a1 = _record(ctx_a)
    a2 = _record(ctx_a)
    b1 = _record(ctx_b)

    assert (a1.sequence, a2.sequence) == (1, 2)
    assert b1.sequence == 1


def test_timestamps_never_go_backwards(ctx_a, clock):
    first = _record(ctx_a)

    # wall clock steps back one minute
    clock.advance(minutes=-1)
    second = _record(ctx_a)

    assert second.timestamp == first.timestamp
    assert second.sequence == first.sequence + 1

    page = AuditTrailService.query(ctx_a, AuditQuery(tenant_id="tenant-A"))
    assert [e.id for e in page.events] == [first.id, second.id]


def test_query_filters(ctx_a, clock):
    t0 = clock.now
    e1 = _record(ctx_a, resource="Medication", action="CREATE", entity_id="m1")
    clock.advance(hours=1)
    e2 = _record(ctx_a, resource="Medication", action="UPDATE", entity_id="m1")
    clock.advance(hours=1)
    e3 = _record(ctx_a, resource="CarePlan", action="READ", entity_id="p1")

    def ids(**filters):
        page = AuditTrailService.query(ctx_a, AuditQuery(tenant_id="tenant-A", **filters))
        return [e.id for e in page.events]

    assert ids(resource="Medication") == [e1.id, e2.id]
    assert ids(action="read") == [e3.id]
    assert ids(user_id="nurse-1") == [e1.id, e2.id, e3.id]
    assert ids(user_id="someone-else") == []
    assert ids(correlation_id="corr-a") == [e1.id, e2.id, e3.id]

    # date_from inclusive, date_to exclusive
    assert ids(date_from=t0, date_to=e3.timestamp) == [e1.id, e2.id]
    assert ids(date_from=e2.timestamp) == [e2.id, e3.id]


def test_query_is_tenant_isolated(ctx_a, ctx_b):
    _record(ctx_a)
    _record(ctx_b)

    page = AuditTrailService.query(ctx_a, AuditQuery(tenant_id="tenant-A"))
    assert {e.tenant_id for e in page.events} == {"tenant-A"}


def test_cross_tenant_query_is_refused(ctx_a, ctx_b):
    _record(ctx_b)

    with pytest.raises(AuditAuthorizationError):
        AuditTrailService.query(ctx_a, AuditQuery(tenant_id="tenant-B"))


def test_uuid_tenant_id_matches_in_any_spelling():
    tenant_uuid = uuid.uuid4()
    ctx = TenantContext(tenant_id=str(tenant_uuid), user_id="nurse-1", correlation_id="corr-u")
    event = _record(ctx)

    for spelling in (str(tenant_uuid).upper(), tenant_uuid.hex, "{" + str(tenant_uuid) + "}"):
        page = AuditTrailService.query(ctx, AuditQuery(tenant_id=spelling))
        assert [e.id for e in page.events] == [event.id], spelling

    with pytest.raises(AuditAuthorizationError):
        AuditTrailService.query(ctx, AuditQuery(tenant_id=str(uuid.uuid4())))


def test_pagination_walks_all_events_in_order(ctx_a):
    created = [_record(ctx_a, entity_id=str(i)).id for i in range(5)]

    seen = []
    cursor = None
    pages = 0
    while True:
        page = AuditTrailService.query(ctx_a, AuditQuery(tenant_id="tenant-A", limit=2, cursor=cursor))
        seen.extend(e.id for e in page.events)
        pages += 1
        if not page.next_cursor:
            break
        cursor = page.next_cursor

    assert seen == created
    assert pages == 3


def test_iter_events_crosses_pages(ctx_a, settings):
    settings.AUDIT_QUERY_MAX_LIMIT = 2
    created = [_record(ctx_a, entity_id=str(i)).id for i in range(5)]

    assert [e.id for e in AuditTrailService.iter_events(ctx_a, AuditQuery(tenant_id="tenant-A"))] == created


def test_cursor_round_trip(ctx_a):
    event = _record(ctx_a)
    ts, seq = decode_cursor(encode_cursor(event))

    assert ts == event.timestamp
    assert seq == event.sequence


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"cursor": "not-a-cursor"}, "cursor"),
        ({"limit": 0}, "limit"),
        ({"limit": 10_000}, "limit"),
        ({"limit": 1.5}, "limit"),
        ({"action": "PATCH"}, "action"),
    ],
)
def test_invalid_query_is_rejected(ctx_a, overrides, field):
    with pytest.raises(AuditValidationError) as exc:
        AuditTrailService.query(ctx_a, AuditQuery(tenant_id="tenant-A", **overrides))
    assert field in exc.value.fields


def test_inverted_date_range_is_rejected(ctx_a, clock):
    with pytest.raises(AuditValidationError):
        AuditTrailService.query(
            ctx_a,
            AuditQuery(tenant_id="tenant-A", date_from=clock.now, date_to=clock.advance(hours=-1)),
        )


def test_storage_failure_propagates_and_logs(ctx_a, monkeypatch, caplog):
    def boom(data):
        raise DatabaseError("disk full")

    monkeypatch.setattr(AuditTrailService, "_append", staticmethod(boom))

    with pytest.raises(AuditStorageError):
        _record(ctx_a)

    assert AuditEvent.objects.count() == 0
    assert "Audit write failed" in caplog.text
