import csv
import io
import json
import threading

import pytest

from wc_core.audit.exceptions import AuditAuthorizationError, AuditExportCancelled, AuditValidationError
from wc_core.audit.records import AuditQuery
from wc_core.audit.services import AuditTrailService

pytestmark = pytest.mark.django_db


@pytest.fixture
def trail(ctx_a, ctx_b):
    events = [
        AuditTrailService.record_for(ctx_a, resource="Medication", action="CREATE", entity_id="m1", details={"dose": "5mg"}),
        AuditTrailService.record_for(ctx_a, resource="Medication", action="UPDATE", entity_id="m1", details={}),
        AuditTrailService.record_for(ctx_a, resource="CarePlan", action="READ", entity_id="p1"),
    ]
    AuditTrailService.record_for(ctx_b, resource="Medication", action="CREATE", entity_id="other")
    return events


def test_json_export_contains_every_matching_event(ctx_a, trail):
    artifact = AuditTrailService.export(ctx_a, AuditQuery(tenant_id="tenant-A"), "json")

    rows = json.loads(artifact.content.decode("utf-8"))
    assert artifact.count == 3
    assert artifact.content_type == "application/json"
    assert artifact.filename.startswith("audit-tenant-A-")
    assert artifact.filename.endswith(".json")

    assert [r["id"] for r in rows] == [str(e.id) for e in trail]
    assert rows[0]["details"] == {"dose": "5mg"}
    assert rows[0]["record_hash"] == trail[0].record_hash
    assert {r["tenant_id"] for r in rows} == {"tenant-A"}


def test_csv_export_applies_filters(ctx_a, trail):
    artifact = AuditTrailService.export(ctx_a, AuditQuery(tenant_id="tenant-A", resource="Medication"), "CSV")

    reader = csv.DictReader(io.StringIO(artifact.content.decode("utf-8")))
    rows = list(reader)

    assert artifact.content_type == "text/csv"
    assert artifact.count == 2
    assert [r["id"] for r in rows] == [str(trail[0].id), str(trail[1].id)]
    assert json.loads(rows[0]["details"]) == {"dose": "5mg"}
    assert rows[1]["action"] == "UPDATE"


def test_empty_export_is_valid(ctx_a):
    artifact = AuditTrailService.export(ctx_a, AuditQuery(tenant_id="tenant-A"), "json")

    assert artifact.count == 0
    assert json.loads(artifact.content) == []


def test_export_spans_several_pages(ctx_a, settings):
    settings.AUDIT_QUERY_MAX_LIMIT = 2
    for i in range(5):
        AuditTrailService.record_for(ctx_a, resource="CareUpdate", action="CREATE", entity_id=str(i))

    artifact = AuditTrailService.export(ctx_a, AuditQuery(tenant_id="tenant-A"), "csv")
    assert artifact.count == 5


def test_unknown_format_is_rejected(ctx_a):
    with pytest.raises(AuditValidationError) as exc:
        AuditTrailService.export(ctx_a, AuditQuery(tenant_id="tenant-A"), "xml")
    assert "format" in exc.value.fields


def test_export_of_other_tenant_is_refused(ctx_a, trail):
    with pytest.raises(AuditAuthorizationError):
        AuditTrailService.export(ctx_a, AuditQuery(tenant_id="tenant-B"), "json")


def test_cancelled_export_produces_nothing(ctx_a, trail):
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(AuditExportCancelled):
        AuditTrailService.export(ctx_a, AuditQuery(tenant_id="tenant-A"), "json", cancel_event=cancel)


def test_export_timeout_cancels(ctx_a, trail):
    with pytest.raises(AuditExportCancelled):
        AuditTrailService.export(ctx_a, AuditQuery(tenant_id="tenant-A"), "csv", timeout=0)
