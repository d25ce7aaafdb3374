import pytest

from wc_core.audit.services import AuditTrailService
from wc_core.tests.helpers import client_for, make_user, scoped

pytestmark = pytest.mark.django_db

URL = "/api/v1/audit/compliance/reports/"


def test_report_endpoint_returns_sections(api_client, tenant, context):
    AuditTrailService.record_for(context, resource="Resident", action="READ", entity_id="r1")

    r = api_client.get(URL, {"framework": "gdpr"}, **scoped(tenant))

    assert r.status_code == 200, r.data
    assert r.data["framework"] == "GDPR"
    assert r.data["total_events"] == 1
    assert [s["key"] for s in r.data["sections"]] == [
        "personal_data_access",
        "consent_withdrawals",
        "deletions",
        "lawful_basis",
    ]


def test_report_endpoint_without_events_is_422(api_client, tenant):
    r = api_client.get(URL, {"framework": "CQC"}, **scoped(tenant))

    assert r.status_code == 422, r.data
    assert r.data["error"]["code"] == "insufficient_data"


def test_report_endpoint_requires_known_framework(api_client, tenant):
    r = api_client.get(URL, **scoped(tenant))
    assert r.status_code == 400, r.data

    r = api_client.get(URL, {"framework": "SOX"}, **scoped(tenant))
    assert r.status_code == 400, r.data
    assert "framework" in r.data["error"]["details"]


def test_report_endpoint_other_tenant_is_forbidden(api_client, tenant, other_tenant):
    r = api_client.get(URL, {"framework": "GDPR", "tenant_id": str(other_tenant.id)}, **scoped(tenant))

    assert r.status_code == 403, r.data
    assert r.data["error"]["code"] == "authorization_error"


def test_compliance_officer_allowed_carer_denied(tenant, context):
    AuditTrailService.record_for(context, resource="Resident", action="READ", entity_id="r1")

    officer = client_for(make_user(tenant, "officer", "COMPLIANCE_OFFICER"))
    carer = client_for(make_user(tenant, "carer", "CARER"))

    assert officer.get(URL, {"framework": "NHS_DSPT"}, **scoped(tenant)).status_code == 200
    assert carer.get(URL, {"framework": "NHS_DSPT"}, **scoped(tenant)).status_code == 403
