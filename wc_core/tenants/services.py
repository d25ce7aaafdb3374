# backend/wc_core/tenants/services.py
from __future__ import annotations

import logging
from uuid import UUID

from django.db import transaction
from rest_framework.exceptions import ValidationError

from wc_core.audit.services import AuditTrailService
from wc_core.common.context import TenantContext
from wc_core.tenants.models import Tenant, TenantStatus

logger = logging.getLogger(__name__)


class TenantService:
    """
    Provider registration and status changes. Both are audited under the
    affected tenant as SystemConfiguration events, in the same transaction.
    """

    @staticmethod
    @transaction.atomic
    def register(
        *,
        name: str,
        code: str,
        cqc_location_id: str = "",
        ods_code: str = "",
        actor: str = "tenant-admin",
    ) -> Tenant:
        name = (name or "").strip()
        code = (code or "").strip()

        errors = {}
        if not name:
            errors["name"] = "This field is required."
        if not code:
            errors["code"] = "This field is required."
        if errors:
            raise ValidationError(errors)

        tenant = Tenant.objects.create(
            name=name,
            code=code,
            cqc_location_id=(cqc_location_id or "").strip(),
            ods_code=(ods_code or "").strip(),
        )

        AuditTrailService.record_for(
            TenantContext.for_system(tenant.audit_tenant_id, actor),
            resource="SystemConfiguration",
            action="CREATE",
            entity_type="Tenant",
            entity_id=tenant.audit_tenant_id,
            details={"key": "tenant", "code": tenant.code, "name": tenant.name},
        )
        logger.info("Tenant %s registered", tenant.code)
        return tenant

    @staticmethod
    @transaction.atomic
    def set_status(*, tenant_id: UUID, status: str, actor: str = "tenant-admin") -> Tenant:
        if status not in TenantStatus.values:
            raise ValidationError({"status": f"Invalid status. Allowed: {list(TenantStatus.values)}"})

        tenant = Tenant.objects.select_for_update().get(id=tenant_id)
        if tenant.status == status:
            return tenant

        previous = tenant.status
        tenant.status = status
        tenant.save(update_fields=["status", "updated_at"])

        AuditTrailService.record_for(
            TenantContext.for_system(tenant.audit_tenant_id, actor),
            resource="SystemConfiguration",
            action="UPDATE",
            entity_type="Tenant",
            entity_id=tenant.audit_tenant_id,
            details={"key": "tenant_status", "from": previous, "to": status},
        )
        logger.info("Tenant %s status %s -> %s", tenant.code, previous, status)
        return tenant

    @staticmethod
    def suspend(*, tenant_id: UUID) -> Tenant:
        return TenantService.set_status(tenant_id=tenant_id, status=TenantStatus.SUSPENDED)

    @staticmethod
    def reinstate(*, tenant_id: UUID) -> Tenant:
        return TenantService.set_status(tenant_id=tenant_id, status=TenantStatus.ACTIVE)
