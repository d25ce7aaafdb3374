# backend/wc_core/residents/api/views.py
from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from wc_core.common.api.pagination import paginate
from wc_core.common.permissions import ResidentPermission
from wc_core.iam.scope import require_tenant_context
from wc_core.residents.api.serializers import (
    ResidentCreateSerializer,
    ResidentSerializer,
    ResidentUpdateSerializer,
)
from wc_core.residents.models import Resident
from wc_core.residents.selectors import search_residents
from wc_core.residents.services import ResidentService


class ResidentViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated, ResidentPermission]

    serializer_class = ResidentSerializer
    queryset = Resident.objects.none()

    @extend_schema(tags=["Residents"], responses={200: ResidentSerializer(many=True)})
    def list(self, request):
        context = require_tenant_context(request)

        qs = search_residents(tenant_id=context.tenant_id, q=request.query_params.get("q"))
        return paginate(request, qs, ResidentSerializer, view=self)

    @extend_schema(tags=["Residents"], request=ResidentCreateSerializer, responses={201: ResidentSerializer})
    def create(self, request):
        context = require_tenant_context(request)

        ser = ResidentCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        resident = ResidentService.create_resident(context, **ser.validated_data)
        return Response(ResidentSerializer(resident).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Residents"], responses={200: ResidentSerializer})
    def retrieve(self, request, pk=None):
        context = require_tenant_context(request)

        try:
            resident = ResidentService.read_resident(context, resident_id=pk)
        except (Resident.DoesNotExist, DjangoValidationError):
            raise NotFound("Resident not found.")
        return Response(ResidentSerializer(resident).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Residents"], request=ResidentUpdateSerializer, responses={200: ResidentSerializer})
    def partial_update(self, request, pk=None):
        context = require_tenant_context(request)

        ser = ResidentUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            resident = ResidentService.update_resident(context, resident_id=pk, data=ser.validated_data)
        except (Resident.DoesNotExist, DjangoValidationError):
            raise NotFound("Resident not found.")
        return Response(ResidentSerializer(resident).data, status=status.HTTP_200_OK)
