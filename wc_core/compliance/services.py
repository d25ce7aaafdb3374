# backend/wc_core/compliance/services.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from django.utils import timezone

from wc_core.audit.exceptions import AuditValidationError, InsufficientDataError
from wc_core.audit.records import AuditQuery
from wc_core.audit.services import AuditTrailService
from wc_core.common.context import TenantContext
from wc_core.compliance.frameworks import ComplianceFramework
from wc_core.compliance.reports import ComplianceReport
from wc_core.compliance.rules import FRAMEWORK_RULES

logger = logging.getLogger(__name__)


class ComplianceReportGenerator:
    """
    Builds framework reports from the audit trail.
    Reads only through AuditTrailService, so tenant isolation applies as-is.
    """

    @staticmethod
    def generate_report(
        context: TenantContext,
        *,
        tenant_id: str,
        framework: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> ComplianceReport:
        key = (framework or "").strip().upper()
        if key not in ComplianceFramework.values:
            raise AuditValidationError(
                {"framework": f"Unknown framework. Allowed: {list(ComplianceFramework.values)}"}
            )

        query = AuditQuery(tenant_id=tenant_id, date_from=date_from, date_to=date_to)
        events = list(AuditTrailService.iter_events(context, query))
        if not events:
            raise InsufficientDataError()

        report = ComplianceReport(
            tenant_id=context.tenant_id,
            framework=key,
            date_from=date_from,
            date_to=date_to,
            generated_at=timezone.now(),
            total_events=len(events),
            sections=[rule(events) for rule in FRAMEWORK_RULES[key]],
        )

        logger.info(
            "Compliance report framework=%s tenant=%s events=%d violations=%d",
            key,
            context.tenant_id,
            report.total_events,
            report.violation_count,
        )
        return report
