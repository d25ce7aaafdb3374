import json

import pytest
from django.contrib.auth.models import User
from django.test import RequestFactory
from rest_framework.test import APIClient

from wc_core.common.middleware import TenantScopeMiddleware
from wc_core.iam.scope import MISSING_SCOPE_MSG


@pytest.mark.django_db
def test_middleware_missing_scope_returns_error_envelope():
    rf = RequestFactory()
    req = rf.get("/api/v1/audit/events/")

    # A real User instance is authenticated; no need (and not allowed) to set is_authenticated.
    req.user = User.objects.create_user(username="u1", password="pass123")

    mw = TenantScopeMiddleware(get_response=lambda r: None)
    resp = mw.process_request(req)

    assert resp is not None
    assert resp.status_code == 400

    body = json.loads(resp.content.decode("utf-8"))
    assert "error" in body
    assert body["error"]["code"] == "validation_error"
    assert "Missing scope header" in body["error"]["message"]
    assert "request_id" in body["error"]


@pytest.mark.django_db
def test_api_missing_tenant_header_uses_envelope_with_correlation_id(api_client):
    r = api_client.get("/api/v1/audit/events/", HTTP_X_CORRELATION_ID="corr-abc")

    assert r.status_code == 400, r.data
    assert r.data["error"]["code"] == "validation_error"
    assert MISSING_SCOPE_MSG in [str(d) for d in r.data["error"]["details"]]
    assert r.data["error"]["request_id"] == "corr-abc"
    assert r["X-Correlation-Id"] == "corr-abc"


@pytest.mark.django_db
def test_api_unauthenticated_returns_401_envelope():
    r = APIClient().get("/api/v1/audit/events/")

    assert r.status_code == 401
    assert r.data["error"]["code"] == "not_authenticated"


@pytest.mark.django_db
def test_api_echoes_correlation_header(api_client, tenant):
    r = api_client.get(
        "/api/v1/audit/events/",
        HTTP_X_TENANT_ID=str(tenant.id),
        HTTP_X_CORRELATION_ID="trace-42",
    )
    assert r.status_code == 200, r.data
    assert r["X-Correlation-Id"] == "trace-42"


@pytest.mark.django_db
def test_legacy_api_alias_is_routed(api_client, tenant):
    r = api_client.get("/api/audit/events/", HTTP_X_TENANT_ID=str(tenant.id))
    assert r.status_code == 200, r.data


@pytest.mark.django_db
def test_database_outage_maps_to_storage_error(api_client, tenant, monkeypatch):
    from django.db import OperationalError

    def down(**kwargs):
        raise OperationalError("connection refused")

    monkeypatch.setattr("wc_core.residents.api.views.search_residents", down)

    r = api_client.get("/api/v1/residents/", HTTP_X_TENANT_ID=str(tenant.id), HTTP_X_CORRELATION_ID="trace-db")

    assert r.status_code == 503
    assert r.data["error"]["code"] == "storage_error"
    assert r.data["error"]["request_id"] == "trace-db"
