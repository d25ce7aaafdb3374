# backend/wc_core/compliance/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from wc_core.compliance.frameworks import ComplianceFramework


class ComplianceReportParamsSerializer(serializers.Serializer):
    framework = serializers.CharField(max_length=32)
    tenant_id = serializers.CharField(max_length=64, required=False)
    date_from = serializers.DateTimeField(required=False)
    date_to = serializers.DateTimeField(required=False)

    def validate_framework(self, value):
        value = value.strip().upper()
        if value not in ComplianceFramework.values:
            raise serializers.ValidationError(f"Unknown framework. Allowed: {list(ComplianceFramework.values)}")
        return value


class ViolationSerializer(serializers.Serializer):
    code = serializers.CharField()
    severity = serializers.CharField()
    description = serializers.CharField()
    event_ids = serializers.ListField(child=serializers.CharField())


class ReportSectionSerializer(serializers.Serializer):
    key = serializers.CharField()
    title = serializers.CharField()
    event_count = serializers.IntegerField()
    violations = ViolationSerializer(many=True)
    evidence = serializers.ListField(child=serializers.CharField())
    summary = serializers.DictField()


class ComplianceReportSerializer(serializers.Serializer):
    """
    Response shape of ComplianceReport.to_dict() (used for the schema).
    """
    tenant_id = serializers.CharField()
    framework = serializers.CharField()
    date_from = serializers.DateTimeField(allow_null=True)
    date_to = serializers.DateTimeField(allow_null=True)
    generated_at = serializers.DateTimeField()
    total_events = serializers.IntegerField()
    violation_count = serializers.IntegerField()
    compliant = serializers.BooleanField()
    sections = ReportSectionSerializer(many=True)
