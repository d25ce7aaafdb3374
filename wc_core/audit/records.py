# backend/wc_core/audit/records.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from wc_core.audit.models import AuditEvent

DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 500

# investigations look back at most a week
MAX_INVESTIGATION_WINDOW_HOURS = 24 * 7


@dataclass(frozen=True)
class AuditEventInput:
    """
    What a domain module hands to AuditTrailService.record().
    Server-assigned fields (id, timestamp, sequence, hash) are not part of it.
    """
    resource: str
    action: str
    user_id: str
    tenant_id: str
    entity_type: str = ""
    entity_id: str = ""
    details: Optional[Dict[str, Any]] = None
    correlation_id: str = ""
    correlation_generated: bool = False


@dataclass(frozen=True)
class AuditQuery:
    tenant_id: str
    resource: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    user_id: Optional[str] = None
    action: Optional[str] = None
    date_from: Optional[datetime] = None  # inclusive
    date_to: Optional[datetime] = None  # exclusive
    correlation_id: Optional[str] = None
    limit: Optional[int] = None  # None -> AUDIT_QUERY_DEFAULT_LIMIT
    cursor: Optional[str] = None


@dataclass(frozen=True)
class AuditPage:
    events: List[AuditEvent] = field(default_factory=list)
    next_cursor: Optional[str] = None


@dataclass(frozen=True)
class AuditExport:
    content: bytes
    content_type: str
    filename: str
    count: int


@dataclass(frozen=True)
class AuditInvestigation:
    """
    Events around a trigger event that share its entity, its user or its
    correlation id, in append order.
    """
    investigation_id: str
    tenant_id: str
    trigger_event_id: str
    window_start: datetime
    window_end: datetime
    events: List[AuditEvent] = field(default_factory=list)

    @property
    def timeline(self) -> List[Dict[str, Any]]:
        return [
            {
                "event_id": str(e.id),
                "sequence": e.sequence,
                "timestamp": e.timestamp.isoformat(),
                "resource": e.resource,
                "action": e.action,
                "entity_type": e.entity_type,
                "entity_id": e.entity_id,
                "user_id": e.user_id,
                "correlation_id": e.correlation_id,
                "is_trigger": str(e.id) == self.trigger_event_id,
            }
            for e in self.events
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "investigation_id": self.investigation_id,
            "tenant_id": self.tenant_id,
            "trigger_event_id": self.trigger_event_id,
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "event_count": len(self.events),
            "scope": {
                "resources": sorted({e.resource for e in self.events}),
                "entity_types": sorted({e.entity_type for e in self.events}),
                "user_ids": sorted({e.user_id for e in self.events}),
            },
            "timeline": self.timeline,
        }
