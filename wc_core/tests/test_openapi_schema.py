import json

import pytest

pytestmark = pytest.mark.django_db


def test_schema_lists_versioned_paths_only(api_client):
    r = api_client.get("/api/schema/", {"format": "json"})

    assert r.status_code == 200
    schema = json.loads(r.content)
    paths = schema["paths"]

    assert "/api/v1/audit/events/" in paths
    assert "/api/v1/audit/events/{id}/investigation/" in paths
    assert "/api/v1/audit/compliance/reports/" in paths
    assert "/api/v1/residents/" in paths
    assert not any(p.startswith("/api/") and not p.startswith("/api/v1/") for p in paths)


def test_schema_documents_scope_headers(api_client):
    r = api_client.get("/api/schema/", {"format": "json"})
    op = json.loads(r.content)["paths"]["/api/v1/audit/events/"]["get"]

    headers = {p["name"] for p in op["parameters"] if p["in"] == "header"}
    assert {"X-Tenant-Id", "X-Correlation-Id"} <= headers
