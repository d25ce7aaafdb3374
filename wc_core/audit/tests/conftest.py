# backend/wc_core/audit/tests/conftest.py
from datetime import datetime, timedelta, timezone as dt_timezone

import pytest

from wc_core.common.context import TenantContext


class FixedClock:
    """
    Stand-in for the audit write clock; tests move it explicitly.
    """

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock(monkeypatch):
    c = FixedClock(datetime(2024, 1, 15, 9, 0, tzinfo=dt_timezone.utc))
    monkeypatch.setattr("wc_core.audit.services._utcnow", c)
    return c


@pytest.fixture
def ctx_a():
    return TenantContext(tenant_id="tenant-A", user_id="nurse-1", correlation_id="corr-a")


@pytest.fixture
def ctx_b():
    return TenantContext(tenant_id="tenant-B", user_id="nurse-2", correlation_id="corr-b")
