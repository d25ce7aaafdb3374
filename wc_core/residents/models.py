# backend/wc_core/residents/models.py
from django.db import models
from wc_core.common.models import TenantScopedModel


class Resident(TenantScopedModel):
    """
    Person receiving care, scoped to a tenant.
    Every change to a resident is mirrored by an audit event.
    """
    full_name = models.CharField(max_length=255)
    room = models.CharField(max_length=32, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)

    # NHS number is unique within a tenant
    nhs_number = models.CharField(max_length=16)

    class Meta:
        db_table = "residents_resident"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "nhs_number"],
                name="uq_resident_tenant_nhs_number",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "full_name"]),
        ]

    def __str__(self) -> str:
        return f"{self.full_name} ({self.nhs_number})"
