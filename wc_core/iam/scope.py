# backend/wc_core/iam/scope.py
from __future__ import annotations

from uuid import UUID

from rest_framework.exceptions import PermissionDenied, ValidationError

from wc_core.common.context import TenantContext
from wc_core.iam.services.membership import is_user_member_of_tenant

# Preferred header name (what we standardize on)
HDR_TENANT = "X-Tenant-Id"

# Legacy variant (kept for compatibility)
HDR_TENANT_LEGACY = "X-Tenant-ID"

MISSING_SCOPE_MSG = "Missing scope header. Provide X-Tenant-Id."
INVALID_SCOPE_MSG = "Invalid scope header. Provide a valid UUID for X-Tenant-Id."
NOT_MEMBER_MSG = "You do not have access to the selected tenant."


def parse_tenant_uuid(value) -> UUID | None:
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def _get_header(request, name: str) -> str | None:
    # request.headers is case-insensitive; returns None if missing
    headers = getattr(request, "headers", None)
    if headers is not None:
        v = headers.get(name)
        if v:
            return v
    meta_key = "HTTP_" + name.upper().replace("-", "_")
    return request.META.get(meta_key)


def get_tenant_header(request) -> str | None:
    return _get_header(request, HDR_TENANT) or _get_header(request, HDR_TENANT_LEGACY)


def resolve_tenant_from_headers(request) -> UUID | None:
    """
    Reads the tenant scope header.
    - If absent: returns None.
    - If present but not a UUID: raises 400 ValidationError with INVALID_SCOPE_MSG.
    """
    raw = get_tenant_header(request)
    if not raw:
        return None

    tenant_id = parse_tenant_uuid(raw)
    if tenant_id is None:
        raise ValidationError(INVALID_SCOPE_MSG)
    return tenant_id


def assert_tenant_membership(user, tenant_id: UUID) -> None:
    """
    Ensures user is an active member of an active tenant.
    Raises 403 if not.
    """
    if not user or not getattr(user, "is_authenticated", False):
        raise PermissionDenied("Authentication required to set scope.")

    if not is_user_member_of_tenant(user_id=user.id, tenant_id=tenant_id):
        raise PermissionDenied(NOT_MEMBER_MSG)


def apply_scope_from_headers(request, user=None) -> UUID | None:
    """
    Public API used by the auth layer (CookieOrHeaderJWTAuthentication).

    If the tenant header is present:
      - validates it is a UUID
      - verifies user membership
      - sets request.tenant_id
      - returns the tenant UUID

    If no tenant header: returns None and does nothing.
    """
    tenant_id = resolve_tenant_from_headers(request)
    if tenant_id is None:
        return None

    u = user or getattr(request, "user", None)
    assert_tenant_membership(u, tenant_id)

    request.tenant_id = tenant_id
    return tenant_id


def require_tenant_context(request) -> TenantContext:
    """
    Resolve the caller's TenantContext for a view action.

    Prefers the tenant already attached by middleware/auth, otherwise reads and
    checks the header here (force-authenticated test clients skip the auth
    class entirely).
    """
    tenant_id = getattr(request, "tenant_id", None)
    if not tenant_id:
        tenant_id = apply_scope_from_headers(request, user=request.user)
        if tenant_id is None:
            raise ValidationError(MISSING_SCOPE_MSG)

    return TenantContext.from_request(request, tenant_id=tenant_id)
