# backend/wc_core/audit/exceptions.py
from __future__ import annotations

from rest_framework import status
from rest_framework.exceptions import APIException


class AuditValidationError(APIException):
    """
    Input to the audit trail is malformed (missing actor, unknown action...).
    Raised before anything touches the database.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid audit input."
    default_code = "validation_error"

    def __init__(self, fields: dict | None = None, message: str | None = None):
        self.fields = dict(fields or {})
        detail = {"detail": message or self.default_detail, **self.fields}
        super().__init__(detail=detail, code=self.default_code)


class AuditAuthorizationError(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Caller is not allowed to access audit data of this tenant."
    default_code = "authorization_error"


class AuditStorageError(APIException):
    """
    The audit store failed to persist or read. Always propagated so the
    enclosing domain operation fails with it.
    """
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Audit storage is unavailable."
    default_code = "storage_error"


class AuditExportCancelled(APIException):
    status_code = status.HTTP_408_REQUEST_TIMEOUT
    default_detail = "Audit export was cancelled before completion."
    default_code = "export_cancelled"


class InsufficientDataError(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "No audit events in the requested range."
    default_code = "insufficient_data"


class RetentionPassError(APIException):
    """
    One or more (tenant, category) units failed during a retention pass.
    The units that succeeded stay committed.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Retention pass finished with failures."
    default_code = "retention_pass_error"

    def __init__(self, failures, result=None):
        self.failures = list(failures)
        self.result = result
        pairs = ", ".join(f"{f.tenant_id}/{f.category}" for f in self.failures)
        super().__init__(detail=f"{self.default_detail} Failed units: {pairs}", code=self.default_code)


class AuditEventNotFound(APIException):
    """Event id unknown within the caller's tenant (other tenants' ids included)."""
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Audit event not found."
    default_code = "not_found"
