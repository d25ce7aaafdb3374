# backend/wc_core/tenants/admin.py
from django.contrib import admin

from wc_core.tenants.models import Tenant


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "cqc_location_id", "status")
    list_filter = ("status",)
    search_fields = ("name", "code", "cqc_location_id", "ods_code")
    readonly_fields = ("id", "status", "created_at", "updated_at")
