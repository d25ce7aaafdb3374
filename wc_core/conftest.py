# backend/wc_core/conftest.py
import pytest

from wc_core.common.context import TenantContext
from wc_core.tenants.models import Tenant
from wc_core.tests.helpers import client_for, make_user


@pytest.fixture
def tenant(db):
    return Tenant.objects.create(code="test-tenant", name="Test Tenant")


@pytest.fixture
def other_tenant(db):
    return Tenant.objects.create(code="other-tenant", name="Other Tenant")


@pytest.fixture
def user(db, tenant):
    """
    Test user with ADMIN group + tenant membership.
    """
    return make_user(tenant, "testuser", "ADMIN")


@pytest.fixture
def api_client(user):
    return client_for(user)


@pytest.fixture
def context(tenant, user):
    return TenantContext(tenant_id=str(tenant.id), user_id=str(user.pk), correlation_id="corr-test")


@pytest.fixture
def other_context(other_tenant):
    return TenantContext(tenant_id=str(other_tenant.id), user_id="other-user", correlation_id="corr-other")
