# backend/wc_core/compliance/api/views.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from wc_core.common.permissions import ComplianceReportPermission
from wc_core.compliance.api.serializers import ComplianceReportParamsSerializer, ComplianceReportSerializer
from wc_core.compliance.services import ComplianceReportGenerator
from wc_core.iam.scope import require_tenant_context


class ComplianceReportViewSet(viewsets.ViewSet):
    """
    Framework compliance report over the caller's audit trail.
    """
    permission_classes = [IsAuthenticated, ComplianceReportPermission]
    serializer_class = ComplianceReportSerializer

    @extend_schema(
        tags=["Compliance"],
        parameters=[ComplianceReportParamsSerializer],
        responses={200: ComplianceReportSerializer},
    )
    def list(self, request):
        context = require_tenant_context(request)

        params = ComplianceReportParamsSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        data = params.validated_data

        report = ComplianceReportGenerator.generate_report(
            context,
            tenant_id=data.get("tenant_id") or context.tenant_id,
            framework=data["framework"],
            date_from=data.get("date_from"),
            date_to=data.get("date_to"),
        )
        return Response(report.to_dict(), status=status.HTTP_200_OK)
