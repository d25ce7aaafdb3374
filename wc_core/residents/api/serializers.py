# backend/wc_core/residents/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from wc_core.residents.models import Resident


class ResidentCreateSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=255)
    nhs_number = serializers.CharField(max_length=16)
    room = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    date_of_birth = serializers.DateField(required=False, allow_null=True)


class ResidentUpdateSerializer(serializers.Serializer):
    """
    Partial update contract (PATCH).
    """
    full_name = serializers.CharField(max_length=255, required=False)
    nhs_number = serializers.CharField(max_length=16, required=False)
    room = serializers.CharField(max_length=32, required=False, allow_blank=True)
    date_of_birth = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class ResidentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Resident
        fields = [
            "id",
            "tenant_id",
            "full_name",
            "nhs_number",
            "room",
            "date_of_birth",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
