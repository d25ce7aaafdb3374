# backend/wc_core/audit/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from wc_core.audit.export import EXPORT_FORMATS
from wc_core.audit.models import AuditAction, AuditEvent
from wc_core.audit.records import MAX_INVESTIGATION_WINDOW_HOURS, MAX_QUERY_LIMIT, AuditQuery


class AuditEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditEvent
        fields = [
            "id",
            "tenant_id",
            "sequence",
            "timestamp",
            "resource",
            "entity_type",
            "entity_id",
            "action",
            "user_id",
            "correlation_id",
            "details",
            "record_hash",
        ]
        read_only_fields = fields


class AuditPageSerializer(serializers.Serializer):
    next_cursor = serializers.CharField(allow_null=True)
    results = AuditEventSerializer(many=True)


class AuditSearchSerializer(serializers.Serializer):
    """
    JSON body filter for POST /audit/events/search/.
    """
    tenant_id = serializers.CharField(max_length=64, required=False)
    resource = serializers.CharField(max_length=128, required=False)
    entity_type = serializers.CharField(max_length=128, required=False)
    entity_id = serializers.CharField(max_length=128, required=False)
    user_id = serializers.CharField(max_length=128, required=False)
    action = serializers.CharField(max_length=16, required=False)
    date_from = serializers.DateTimeField(required=False)
    date_to = serializers.DateTimeField(required=False)
    correlation_id = serializers.CharField(max_length=128, required=False)
    limit = serializers.IntegerField(min_value=1, max_value=MAX_QUERY_LIMIT, required=False)
    cursor = serializers.CharField(required=False)

    def validate_action(self, value):
        value = value.upper()
        if value not in AuditAction.values:
            raise serializers.ValidationError(f"Invalid action. Allowed: {list(AuditAction.values)}")
        return value

    def to_query(self, *, tenant_id: str) -> AuditQuery:
        data = dict(self.validated_data)
        data.setdefault("tenant_id", tenant_id)
        return AuditQuery(**data)


class AuditExportParamsSerializer(serializers.Serializer):
    export_format = serializers.ChoiceField(choices=EXPORT_FORMATS, default="json")


class AuditStatisticsParamsSerializer(serializers.Serializer):
    tenant_id = serializers.CharField(max_length=64, required=False)
    date_from = serializers.DateTimeField(required=False)
    date_to = serializers.DateTimeField(required=False)


class ResourceActionCountSerializer(serializers.Serializer):
    resource = serializers.CharField()
    action = serializers.CharField()
    count = serializers.IntegerField()


class DayCountSerializer(serializers.Serializer):
    date = serializers.CharField()
    count = serializers.IntegerField()


class HourCountSerializer(serializers.Serializer):
    hour = serializers.IntegerField()
    count = serializers.IntegerField()


class AuditStatisticsSerializer(serializers.Serializer):
    tenant_id = serializers.CharField()
    date_from = serializers.DateTimeField(allow_null=True)
    date_to = serializers.DateTimeField(allow_null=True)
    total = serializers.IntegerField()
    by_resource = serializers.DictField(child=serializers.IntegerField())
    by_action = serializers.DictField(child=serializers.IntegerField())
    by_resource_action = ResourceActionCountSerializer(many=True)
    by_user = serializers.DictField(child=serializers.IntegerField())
    events_per_day = DayCountSerializer(many=True)
    peak_hours = HourCountSerializer(many=True)


class AuditIntegritySerializer(serializers.Serializer):
    tenant_id = serializers.CharField()
    verified = serializers.BooleanField()
    checked_at = serializers.DateTimeField()
    tampered_event_ids = serializers.ListField(child=serializers.CharField())


class AuditInvestigationParamsSerializer(serializers.Serializer):
    window_hours = serializers.IntegerField(min_value=1, max_value=MAX_INVESTIGATION_WINDOW_HOURS, default=24)


class TimelineEntrySerializer(serializers.Serializer):
    event_id = serializers.CharField()
    sequence = serializers.IntegerField()
    timestamp = serializers.CharField()
    resource = serializers.CharField()
    action = serializers.CharField()
    entity_type = serializers.CharField()
    entity_id = serializers.CharField(allow_blank=True)
    user_id = serializers.CharField()
    correlation_id = serializers.CharField()
    is_trigger = serializers.BooleanField()


class InvestigationScopeSerializer(serializers.Serializer):
    resources = serializers.ListField(child=serializers.CharField())
    entity_types = serializers.ListField(child=serializers.CharField())
    user_ids = serializers.ListField(child=serializers.CharField())


class AuditInvestigationSerializer(serializers.Serializer):
    investigation_id = serializers.CharField()
    tenant_id = serializers.CharField()
    trigger_event_id = serializers.CharField()
    window_start = serializers.CharField()
    window_end = serializers.CharField()
    event_count = serializers.IntegerField()
    scope = InvestigationScopeSerializer()
    timeline = TimelineEntrySerializer(many=True)
