# backend/wc_core/residents/admin.py
from django.contrib import admin

from wc_core.residents.models import Resident


@admin.register(Resident)
class ResidentAdmin(admin.ModelAdmin):
    list_display = ("full_name", "nhs_number", "room", "tenant_id", "created_at")
    list_filter = ("tenant_id",)
    search_fields = ("full_name", "nhs_number", "room")
    readonly_fields = ("created_at", "updated_at")
    ordering = ("-created_at",)
