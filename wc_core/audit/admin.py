# backend/wc_core/audit/admin.py
from django.contrib import admin

from wc_core.audit.models import AuditEvent


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = (
        "timestamp",
        "tenant_id",
        "sequence",
        "resource",
        "action",
        "entity_type",
        "entity_id",
        "user_id",
        "correlation_id",
    )
    list_filter = ("action", "resource")
    search_fields = ("tenant_id", "entity_id", "user_id", "correlation_id")
    ordering = ("-timestamp", "-sequence")

    # append-only: no edits or deletes from the admin
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
