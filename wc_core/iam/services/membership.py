# backend/wc_core/iam/services/membership.py
from __future__ import annotations

from uuid import UUID

from wc_core.iam.models import TenantMembership
from wc_core.tenants.models import TenantStatus


def is_user_member_of_tenant(*, user_id: int, tenant_id: UUID) -> bool:
    """
    Validate user -> tenant membership.
    This is the single source of truth used by scope enforcement.
    """
    return TenantMembership.objects.filter(
        is_active=True,
        tenant_id=tenant_id,
        tenant__status=TenantStatus.ACTIVE,
        user_profile__user_id=user_id,
        user_profile__is_active=True,
    ).exists()
