# backend/wc_core/audit/filters.py
from __future__ import annotations

import django_filters
from django import forms

from wc_core.audit.models import AuditAction, AuditEvent
from wc_core.audit.records import AuditQuery, MAX_QUERY_LIMIT


class WholeNumberFilter(django_filters.NumberFilter):
    """NumberFilter parses to Decimal; page sizes must be whole numbers."""
    field_class = forms.IntegerField


class AuditEventFilter(django_filters.FilterSet):
    """
    Query-string contract for GET /audit/events/.
    Used only to parse and validate; the query itself runs in AuditTrailService.
    """

    tenant_id = django_filters.CharFilter(max_length=64)
    resource = django_filters.CharFilter(max_length=128)
    entity_type = django_filters.CharFilter(max_length=128)
    entity_id = django_filters.CharFilter(max_length=128)
    user_id = django_filters.CharFilter(max_length=128)
    action = django_filters.ChoiceFilter(choices=AuditAction.choices)
    correlation_id = django_filters.CharFilter(max_length=128)

    date_from = django_filters.IsoDateTimeFilter(label="From datetime (inclusive)")
    date_to = django_filters.IsoDateTimeFilter(label="To datetime (exclusive)")

    limit = WholeNumberFilter(min_value=1, max_value=MAX_QUERY_LIMIT)
    cursor = django_filters.CharFilter()

    class Meta:
        model = AuditEvent
        fields = []

    def to_query(self, *, tenant_id: str) -> AuditQuery:
        """
        Build an AuditQuery from validated data. tenant_id defaults to the
        caller's tenant; an explicit, different one is rejected by the service.
        """
        data = self.form.cleaned_data
        return AuditQuery(
            tenant_id=data.get("tenant_id") or tenant_id,
            resource=data.get("resource") or None,
            entity_type=data.get("entity_type") or None,
            entity_id=data.get("entity_id") or None,
            user_id=data.get("user_id") or None,
            action=data.get("action") or None,
            date_from=data.get("date_from"),
            date_to=data.get("date_to"),
            correlation_id=data.get("correlation_id") or None,
            limit=data.get("limit"),
            cursor=data.get("cursor") or None,
        )
