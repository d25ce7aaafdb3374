# backend/wc_core/common/context.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from typing import Optional

from rest_framework import status
from rest_framework.exceptions import APIException

CORRELATION_HEADER = "X-Correlation-Id"
SYSTEM_USER_PREFIX = "system:"


def new_correlation_id() -> str:
    return uuid.uuid4().hex


# kept beside TenantContext: this module is imported while DRF loads its
# auth classes, so it must not pull in rest_framework.views
class TenantContextError(APIException):
    """
    Raised when an operation tries to switch tenant mid-flight or when a
    context cannot be built (missing tenant/user).
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid tenant context."
    default_code = "tenant_context_error"


@dataclass(frozen=True)
class TenantContext:
    """
    Who is acting, for which tenant, as part of which logical operation.

    Built once at the edge (request or background job) and passed explicitly
    into every service call. The tenant never changes for the lifetime of a
    context; use derive() to hand work to a background job.
    """
    tenant_id: str
    user_id: str
    correlation_id: str = ""
    # True when no caller supplied an id and one was minted here or by the middleware
    correlation_generated: bool = False

    def __post_init__(self):
        tenant_id = str(self.tenant_id or "").strip()
        user_id = str(self.user_id or "").strip()

        if not tenant_id:
            raise TenantContextError({"detail": "Tenant context requires a tenant.", "tenant_id": "This field is required."})
        if not user_id:
            raise TenantContextError({"detail": "Tenant context requires a user.", "user_id": "This field is required."})

        # frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "tenant_id", tenant_id)
        object.__setattr__(self, "user_id", user_id)
        correlation_id = (self.correlation_id or "").strip()
        if not correlation_id:
            correlation_id = new_correlation_id()
            object.__setattr__(self, "correlation_generated", True)
        object.__setattr__(self, "correlation_id", correlation_id)

    @property
    def is_system(self) -> bool:
        return self.user_id.startswith(SYSTEM_USER_PREFIX)

    @classmethod
    def from_request(cls, request, *, tenant_id=None) -> "TenantContext":
        """
        Build the context for an authenticated API request.

        tenant_id defaults to the tenant resolved from X-Tenant-Id
        (request.tenant_id, attached by the scope layer).
        """
        tenant = tenant_id if tenant_id is not None else getattr(request, "tenant_id", None)
        user = getattr(request, "user", None)
        user_id = user.pk if user is not None and getattr(user, "is_authenticated", False) else None

        correlation_id = getattr(request, "correlation_id", None)
        generated = bool(getattr(request, "correlation_generated", False))
        if not correlation_id:
            correlation_id = request.headers.get(CORRELATION_HEADER) or ""
            generated = False

        return cls(
            tenant_id=str(tenant) if tenant is not None else "",
            user_id=str(user_id) if user_id is not None else "",
            correlation_id=correlation_id,
            correlation_generated=generated,
        )

    @classmethod
    def for_system(cls, tenant_id: str, job: str, *, correlation_id: Optional[str] = None) -> "TenantContext":
        return cls(
            tenant_id=tenant_id,
            user_id=f"{SYSTEM_USER_PREFIX}{job}",
            correlation_id=correlation_id or "",
        )

    def with_tenant(self, tenant_id) -> "TenantContext":
        if str(tenant_id).strip() != self.tenant_id:
            raise TenantContextError("Tenant cannot change within an operation.")
        return self

    def derive(self, *, correlation_id: Optional[str] = None, user_id: Optional[str] = None) -> "TenantContext":
        """
        Propagate this context to background work, keeping the tenant.
        """
        return replace(
            self,
            correlation_id=correlation_id or self.correlation_id,
            correlation_generated=False if correlation_id else self.correlation_generated,
            user_id=user_id or self.user_id,
        )
