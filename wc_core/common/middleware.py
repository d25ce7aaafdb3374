# backend/wc_core/common/middleware.py
from __future__ import annotations

import logging

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

from wc_core.common.api.exceptions import build_error_envelope
from wc_core.common.context import CORRELATION_HEADER, new_correlation_id
from wc_core.iam.scope import (
    INVALID_SCOPE_MSG,
    MISSING_SCOPE_MSG,
    NOT_MEMBER_MSG,
    get_tenant_header,
    parse_tenant_uuid,
)

logger = logging.getLogger(__name__)

MAX_CORRELATION_ID_LENGTH = 128

API_PREFIXES = ("/api/v1/", "/api/")
PUBLIC_PREFIXES = ("/admin/", "/api/docs/", "/api/schema/")
API_ROOTS = ("/api/v1/", "/api/")


def resolve_correlation_id(request) -> tuple[str, bool]:
    """
    Caller-supplied X-Correlation-Id, or a fresh one if absent or oversized.
    The flag is True when the id was generated here.
    """
    raw = (request.headers.get(CORRELATION_HEADER) or "").strip()
    if raw and len(raw) <= MAX_CORRELATION_ID_LENGTH:
        return raw, False
    return new_correlation_id(), True


class TenantScopeMiddleware(MiddlewareMixin):
    """
    Stamps every request with a correlation id and, for session users on
    API paths, resolves request.tenant_id from X-Tenant-Id.

    Missing or malformed header -> 400, not a member of an active tenant -> 403.
    Anonymous requests pass through untouched; JWT requests get the same
    check from CookieOrHeaderJWTAuthentication once DRF knows the user.
    """

    @staticmethod
    def _needs_scope(path: str) -> bool:
        if path.startswith(PUBLIC_PREFIXES) or path in API_ROOTS:
            return False
        return path.startswith(API_PREFIXES)

    @staticmethod
    def _reject(request, status_code: int, code: str, message: str) -> JsonResponse:
        logger.info(
            "Scope rejected path=%s status=%s correlation_id=%s",
            request.path,
            status_code,
            request.correlation_id,
        )
        return JsonResponse(
            build_error_envelope(request=request, code=code, message=message),
            status=status_code,
        )

    def process_request(self, request):
        request.tenant_id = None
        request.correlation_id, request.correlation_generated = resolve_correlation_id(request)

        if not self._needs_scope(getattr(request, "path", "") or ""):
            return None

        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return None

        raw = get_tenant_header(request)
        if not raw:
            return self._reject(request, 400, "validation_error", MISSING_SCOPE_MSG)

        tenant_id = parse_tenant_uuid(raw)
        if tenant_id is None:
            return self._reject(request, 400, "validation_error", INVALID_SCOPE_MSG)

        # looked up through the module so tests can patch membership
        from wc_core.iam.services import membership

        if not membership.is_user_member_of_tenant(user_id=user.id, tenant_id=tenant_id):
            return self._reject(request, 403, "permission_denied", NOT_MEMBER_MSG)

        request.tenant_id = tenant_id
        return None

    def process_response(self, request, response):
        correlation_id = getattr(request, "correlation_id", None)
        if correlation_id and CORRELATION_HEADER not in response:
            response[CORRELATION_HEADER] = correlation_id
        return response
