# backend/wc_core/api/urls.py
from __future__ import annotations

from rest_framework.routers import DefaultRouter

from wc_core.audit.api.views import AuditEventViewSet
from wc_core.compliance.api.views import ComplianceReportViewSet
from wc_core.residents.api.views import ResidentViewSet

router = DefaultRouter()

router.register(r"audit/events", AuditEventViewSet, basename="audit-events")
router.register(r"audit/compliance/reports", ComplianceReportViewSet, basename="compliance-reports")
router.register(r"residents", ResidentViewSet, basename="residents")

urlpatterns = [
    *router.urls,
]
