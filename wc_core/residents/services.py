# backend/wc_core/residents/services.py
from __future__ import annotations

from uuid import UUID

from django.db import IntegrityError, transaction

from wc_core.audit.models import AuditAction
from wc_core.audit.services import AuditTrailService
from wc_core.common.api.exceptions import ConflictError
from wc_core.common.context import TenantContext
from wc_core.residents.models import Resident
from wc_core.residents.selectors import get_resident

RESOURCE = "Resident"
UPDATABLE_FIELDS = {"full_name", "room", "date_of_birth", "nhs_number"}
DUPLICATE_NHS_MSG = "NHS number already exists for this tenant."


class ResidentService:
    """
    Resident writes. Each write and its audit event commit or roll back together.
    """

    @staticmethod
    @transaction.atomic
    def create_resident(
        context: TenantContext,
        *,
        full_name: str,
        nhs_number: str,
        room: str = "",
        date_of_birth=None,
    ) -> Resident:
        try:
            with transaction.atomic():
                resident = Resident.objects.create(
                    tenant_id=context.tenant_id,
                    full_name=full_name,
                    nhs_number=nhs_number,
                    room=room or "",
                    date_of_birth=date_of_birth,
                )
        except IntegrityError:
            raise ConflictError(DUPLICATE_NHS_MSG)

        AuditTrailService.record_for(
            context,
            resource=RESOURCE,
            action=AuditAction.CREATE,
            entity_id=resident.id,
            details={"full_name": full_name, "room": resident.room},
        )
        return resident

    @staticmethod
    @transaction.atomic
    def update_resident(context: TenantContext, *, resident_id: UUID, data: dict) -> Resident:
        resident = Resident.objects.select_for_update().get(id=resident_id, tenant_id=context.tenant_id)

        updates = {k: v for k, v in (data or {}).items() if k in UPDATABLE_FIELDS}
        for k, v in updates.items():
            setattr(resident, k, v)

        try:
            with transaction.atomic():
                resident.save()
        except IntegrityError:
            raise ConflictError(DUPLICATE_NHS_MSG)

        AuditTrailService.record_for(
            context,
            resource=RESOURCE,
            action=AuditAction.UPDATE,
            entity_id=resident.id,
            details={"updated_fields": sorted(updates)},
        )
        return resident

    @staticmethod
    @transaction.atomic
    def read_resident(context: TenantContext, *, resident_id: UUID) -> Resident:
        """
        Fetch a resident and record the access.
        """
        resident = get_resident(tenant_id=context.tenant_id, resident_id=resident_id)
        AuditTrailService.record_for(
            context,
            resource=RESOURCE,
            action=AuditAction.READ,
            entity_id=resident.id,
        )
        return resident
