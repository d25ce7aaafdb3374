# backend/wc_core/residents/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import Q, QuerySet

from wc_core.residents.models import Resident


def get_resident(*, tenant_id: str, resident_id: UUID) -> Resident:
    return Resident.objects.get(id=resident_id, tenant_id=tenant_id)


def search_residents(*, tenant_id: str, q: str | None = None) -> QuerySet[Resident]:
    qs = Resident.objects.filter(tenant_id=tenant_id)

    qv = (q or "").strip()
    if qv:
        qs = qs.filter(
            Q(full_name__icontains=qv)
            | Q(nhs_number__icontains=qv)
            | Q(room__icontains=qv)
        )

    return qs.order_by("full_name", "id")
