# backend/wc_core/iam/models.py
import uuid
from django.conf import settings
from django.db import models
from wc_core.tenants.models import Tenant


class UserProfile(models.Model):
    """
    Staff profile for a Django user. The audit trail records user.pk as the
    acting user_id; the profile carries what regulators ask about that person.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="wc_profile")
    job_title = models.CharField(max_length=128, blank=True, default="")
    # NMC PIN or equivalent professional registration
    registration_number = models.CharField(max_length=32, blank=True, default="")
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "iam_user_profile"

    def __str__(self) -> str:
        return self.user.get_username()


class TenantMembership(models.Model):
    """
    Grants a user access to a tenant.
    This is the enforcement point for tenant-level access; roles come from
    Django auth Groups.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="memberships")
    user_profile = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name="memberships")

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "iam_tenant_membership"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "user_profile"],
                name="uq_tenant_user_profile_membership",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "is_active"]),
        ]
