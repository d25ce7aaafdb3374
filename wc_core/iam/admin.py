# backend/wc_core/iam/admin.py
from __future__ import annotations

from django.contrib import admin

from wc_core.iam.models import TenantMembership, UserProfile


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "job_title", "registration_number", "is_active")
    list_filter = ("is_active",)
    search_fields = ("user__username", "user__email", "registration_number")


@admin.register(TenantMembership)
class TenantMembershipAdmin(admin.ModelAdmin):
    list_display = ("tenant", "user_profile", "is_active", "created_at")
    list_filter = ("tenant", "is_active")
    search_fields = ("tenant__name", "tenant__code", "user_profile__user__username")
