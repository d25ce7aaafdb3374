# backend/wc_core/iam/auth.py
from __future__ import annotations

from django.conf import settings
from rest_framework_simplejwt.authentication import JWTAuthentication

from wc_core.iam.scope import apply_scope_from_headers

DEFAULT_ACCESS_COOKIE = "wc_access"


def access_cookie_name() -> str:
    return settings.SIMPLE_JWT.get("AUTH_COOKIE", DEFAULT_ACCESS_COOKIE)


class CookieOrHeaderJWTAuthentication(JWTAuthentication):
    """
    JWT auth for staff clients. The access token comes from
    `Authorization: Bearer <token>` or, for the browser app, the HttpOnly
    access cookie.

    Session-authenticated requests have their X-Tenant-Id checked by the
    scope middleware; JWT requests only have a user once this class runs,
    so the tenant membership check happens here.
    """

    def _raw_token_from_request(self, request):
        header = self.get_header(request)
        if header is not None:
            return self.get_raw_token(header)
        return request.COOKIES.get(access_cookie_name()) or None

    def authenticate(self, request):
        raw_token = self._raw_token_from_request(request)
        if raw_token is None:
            return None

        validated_token = self.get_validated_token(raw_token)
        user = self.get_user(validated_token)

        # 400 for a malformed header, 403 for a tenant the user does not belong to
        apply_scope_from_headers(request, user=user)
        return user, validated_token
