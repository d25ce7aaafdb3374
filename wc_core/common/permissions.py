# backend/wc_core/common/permissions.py
from __future__ import annotations

from typing import FrozenSet

from rest_framework.permissions import SAFE_METHODS, BasePermission

# Django auth Group names
ROLE_ADMIN = "ADMIN"
ROLE_AUDITOR = "AUDITOR"
ROLE_COMPLIANCE_OFFICER = "COMPLIANCE_OFFICER"
ROLE_CARER = "CARER"
ROLE_READONLY = "READONLY"

ALL_ROLES = (ROLE_ADMIN, ROLE_AUDITOR, ROLE_COMPLIANCE_OFFICER, ROLE_CARER, ROLE_READONLY)

AUDIT_READERS = frozenset({ROLE_AUDITOR})
REPORT_READERS = frozenset({ROLE_AUDITOR, ROLE_COMPLIANCE_OFFICER})
CARE_STAFF = frozenset({ROLE_CARER})
CARE_VIEWERS = frozenset({ROLE_CARER, ROLE_READONLY})


def user_roles(user) -> FrozenSet[str]:
    """
    Roles come from the user's Django groups. Superusers act as ADMIN;
    an authenticated user with no groups is READONLY.
    """
    if not user or not getattr(user, "is_authenticated", False):
        return frozenset()
    if getattr(user, "is_superuser", False):
        return frozenset({ROLE_ADMIN})

    names = frozenset(user.groups.values_list("name", flat=True))
    return names or frozenset({ROLE_READONLY})


class BaseRolePermission(BasePermission):
    """
    Role check per ViewSet action. ADMIN is always allowed; an action
    missing from `roles_by_action` is denied, except that safe methods fall
    back to the "list" roles.

    Tenant scope is not checked here: views call require_tenant_context so a
    missing or bad X-Tenant-Id is a 400, not a blanket 403.
    """
    message = "Your role does not allow this action."

    roles_by_action: dict = {}

    def has_permission(self, request, view) -> bool:
        roles = user_roles(request.user)
        if not roles:
            return False
        if ROLE_ADMIN in roles:
            return True

        action = getattr(view, "action", None)
        allowed = self.roles_by_action.get(action)
        if allowed is None and request.method in SAFE_METHODS:
            allowed = self.roles_by_action.get("list")

        return bool(allowed and roles & allowed)

    def has_object_permission(self, request, view, obj) -> bool:
        return self.has_permission(request, view)


class ResidentPermission(BaseRolePermission):
    roles_by_action = {
        "list": CARE_VIEWERS,
        "retrieve": CARE_VIEWERS,
        "create": CARE_STAFF,
        "partial_update": CARE_STAFF,
    }


class AuditPermission(BaseRolePermission):
    """Audit trail is read-only over HTTP; events are written by services."""
    roles_by_action = {
        "list": AUDIT_READERS,
        "search": AUDIT_READERS,
        "export": AUDIT_READERS,
        "statistics": AUDIT_READERS,
        "verify": AUDIT_READERS,
        "investigation": AUDIT_READERS,
    }


class ComplianceReportPermission(BaseRolePermission):
    roles_by_action = {"list": REPORT_READERS}
