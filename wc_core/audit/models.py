# backend/wc_core/audit/models.py
from __future__ import annotations

import hashlib
import json
import uuid
from datetime import timezone as dt_timezone

from django.db import models


class AuditImmutableError(RuntimeError):
    """
    Raised when code tries to change or remove a persisted audit event.
    """


class AuditAction(models.TextChoices):
    CREATE = "CREATE", "Create"
    READ = "READ", "Read"
    UPDATE = "UPDATE", "Update"
    DELETE = "DELETE", "Delete"


class AuditEventQuerySet(models.QuerySet):
    """
    Append-only queryset: bulk update/delete are refused.
    Retention removes whole rows through purge().
    """

    def update(self, **kwargs):
        raise AuditImmutableError("Audit events are append-only (update forbidden).")

    def delete(self):
        raise AuditImmutableError("Audit events cannot be deleted outside retention.")

    def purge(self) -> int:
        deleted, _ = super().delete()
        return deleted


def canonical_timestamp(value) -> str:
    return value.astimezone(dt_timezone.utc).isoformat()


class AuditEvent(models.Model):
    """
    Immutable audit record.
    Ground-truth timeline of who did what to which record, per tenant.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant_id = models.CharField(max_length=64, db_index=True)
    sequence = models.PositiveBigIntegerField()

    resource = models.CharField(max_length=128)  # e.g. "Medication"
    entity_type = models.CharField(max_length=128)  # defaults to resource
    entity_id = models.CharField(max_length=128, blank=True, default="")
    action = models.CharField(max_length=16, choices=AuditAction.choices)

    details = models.JSONField(default=dict, blank=True)

    user_id = models.CharField(max_length=128)
    correlation_id = models.CharField(max_length=128)
    # minted by the service or request edge, not passed in by the caller
    correlation_generated = models.BooleanField(default=False)

    timestamp = models.DateTimeField()
    record_hash = models.CharField(max_length=64, editable=False)

    objects = AuditEventQuerySet.as_manager()

    class Meta:
        db_table = "audit_audit_event"
        constraints = [
            models.UniqueConstraint(fields=["tenant_id", "sequence"], name="uq_audit_tenant_sequence"),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "timestamp", "sequence"], name="audit_tenant_ts_seq_idx"),
            models.Index(fields=["tenant_id", "resource", "timestamp"], name="audit_tenant_resource_idx"),
            models.Index(fields=["tenant_id", "entity_type", "entity_id"], name="audit_tenant_entity_idx"),
            models.Index(fields=["tenant_id", "user_id"], name="audit_tenant_user_idx"),
            models.Index(fields=["tenant_id", "correlation_id"], name="audit_tenant_corr_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.tenant_id}#{self.sequence} {self.action} {self.resource}:{self.entity_id}"

    def hash_payload(self) -> dict:
        return {
            "id": str(self.id),
            "tenant_id": self.tenant_id,
            "sequence": self.sequence,
            "resource": self.resource,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "details": self.details,
            "user_id": self.user_id,
            "correlation_id": self.correlation_id,
            "correlation_generated": self.correlation_generated,
            "timestamp": canonical_timestamp(self.timestamp),
        }

    def compute_hash(self) -> str:
        serialized = json.dumps(self.hash_payload(), sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()

    # ============================
    # IMMUTABILITY ENFORCEMENT
    # ============================

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AuditImmutableError("AuditEvent is immutable (update forbidden).")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise AuditImmutableError("AuditEvent cannot be deleted.")


class AuditTenantCursor(models.Model):
    """
    Per-tenant write cursor.
    Locked for the duration of each append so sequence and timestamp are
    assigned in write order.
    """
    tenant_id = models.CharField(max_length=64, primary_key=True)
    last_sequence = models.PositiveBigIntegerField(default=0)
    last_timestamp = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "audit_tenant_cursor"

    def __str__(self) -> str:
        return f"{self.tenant_id} @ {self.last_sequence}"
