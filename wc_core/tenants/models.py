# backend/wc_core/tenants/models.py
import uuid

from django.db import models


class TenantStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    INACTIVE = "INACTIVE", "Inactive"
    SUSPENDED = "SUSPENDED", "Suspended"


class Tenant(models.Model):
    """
    A registered care provider. Every audit event, resident and membership
    hangs off one of these; audit rows carry str(id) as their tenant_id.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)
    code = models.SlugField(max_length=64, unique=True)

    # regulator identifiers, shown on compliance exports
    cqc_location_id = models.CharField(max_length=32, blank=True, default="")
    ods_code = models.CharField(max_length=16, blank=True, default="")

    status = models.CharField(
        max_length=16,
        choices=TenantStatus.choices,
        default=TenantStatus.ACTIVE,
        db_index=True,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "tenants_tenant"
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    @property
    def audit_tenant_id(self) -> str:
        return str(self.id)

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE
