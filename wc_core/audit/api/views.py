# backend/wc_core/audit/api/views.py
from __future__ import annotations

from django.conf import settings
from django.http import HttpResponse
from django.utils import timezone
from django_filters import utils as filter_utils
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from wc_core.audit.api.serializers import (
    AuditEventSerializer,
    AuditExportParamsSerializer,
    AuditIntegritySerializer,
    AuditInvestigationParamsSerializer,
    AuditInvestigationSerializer,
    AuditPageSerializer,
    AuditSearchSerializer,
    AuditStatisticsParamsSerializer,
    AuditStatisticsSerializer,
)
from wc_core.audit.filters import AuditEventFilter
from wc_core.audit.models import AuditEvent
from wc_core.audit.records import AuditPage
from wc_core.audit.services import AuditTrailService
from wc_core.common.permissions import AuditPermission
from wc_core.iam.scope import require_tenant_context


def _page_payload(page: AuditPage) -> dict:
    return {
        "next_cursor": page.next_cursor,
        "results": AuditEventSerializer(page.events, many=True).data,
    }


def _parse_filter(request):
    f = AuditEventFilter(data=request.query_params, queryset=AuditEvent.objects.none())
    if not f.is_valid():
        raise filter_utils.translate_validation(f.errors)
    return f


TENANT_PARAM = OpenApiParameter(
    name="tenant_id",
    type=OpenApiTypes.STR,
    location=OpenApiParameter.QUERY,
    required=False,
    description="Defaults to the caller's tenant. Any other tenant is refused with 403.",
)


class AuditEventViewSet(viewsets.GenericViewSet):
    """
    Read side of the audit trail (scoped to the caller's tenant).
    Events are append-only; there are no write endpoints.
    """
    permission_classes = [IsAuthenticated, AuditPermission]

    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()
    filterset_class = AuditEventFilter

    @extend_schema(tags=["Audit"], responses={200: AuditPageSerializer})
    def list(self, request):
        context = require_tenant_context(request)
        query = _parse_filter(request).to_query(tenant_id=context.tenant_id)

        page = AuditTrailService.query(context, query)
        return Response(_page_payload(page), status=status.HTTP_200_OK)

    @extend_schema(tags=["Audit"], request=AuditSearchSerializer, responses={200: AuditPageSerializer})
    @action(detail=False, methods=["post"], url_path="search")
    def search(self, request):
        context = require_tenant_context(request)

        ser = AuditSearchSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        page = AuditTrailService.query(context, ser.to_query(tenant_id=context.tenant_id))
        return Response(_page_payload(page), status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Audit"],
        parameters=[
            OpenApiParameter(
                name="export_format",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                enum=["csv", "json"],
                description="Export file format (default json).",
            ),
        ],
        responses={200: OpenApiResponse(OpenApiTypes.BINARY, description="CSV or JSON attachment")},
    )
    @action(detail=False, methods=["get"], url_path="export")
    def export(self, request):
        context = require_tenant_context(request)

        params = AuditExportParamsSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        query = _parse_filter(request).to_query(tenant_id=context.tenant_id)

        artifact = AuditTrailService.export(
            context,
            query,
            params.validated_data["export_format"],
            timeout=getattr(settings, "AUDIT_EXPORT_TIMEOUT_SECONDS", None),
        )

        response = HttpResponse(artifact.content, content_type=artifact.content_type)
        response["Content-Disposition"] = f'attachment; filename="{artifact.filename}"'
        response["X-Audit-Event-Count"] = str(artifact.count)
        return response

    @extend_schema(tags=["Audit"], parameters=[AuditStatisticsParamsSerializer], responses={200: AuditStatisticsSerializer})
    @action(detail=False, methods=["get"], url_path="statistics")
    def statistics(self, request):
        context = require_tenant_context(request)

        params = AuditStatisticsParamsSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        data = params.validated_data

        stats = AuditTrailService.statistics(
            context,
            data.get("tenant_id") or context.tenant_id,
            date_from=data.get("date_from"),
            date_to=data.get("date_to"),
        )
        return Response(AuditStatisticsSerializer(stats).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Audit"], parameters=[TENANT_PARAM], responses={200: AuditIntegritySerializer})
    @action(detail=False, methods=["get"], url_path="verify")
    def verify(self, request):
        context = require_tenant_context(request)
        tenant_id = request.query_params.get("tenant_id") or context.tenant_id

        tampered = AuditTrailService.verify_integrity(context, tenant_id)
        data = {
            "tenant_id": tenant_id,
            "verified": not tampered,
            "checked_at": timezone.now(),
            "tampered_event_ids": tampered,
        }
        return Response(AuditIntegritySerializer(data).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Audit"],
        parameters=[AuditInvestigationParamsSerializer],
        responses={200: AuditInvestigationSerializer},
    )
    @action(detail=True, methods=["get"], url_path="investigation")
    def investigation(self, request, pk=None):
        context = require_tenant_context(request)

        params = AuditInvestigationParamsSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        investigation = AuditTrailService.investigate(context, pk, window_hours=params.validated_data["window_hours"])
        return Response(AuditInvestigationSerializer(investigation.to_dict()).data, status=status.HTTP_200_OK)
