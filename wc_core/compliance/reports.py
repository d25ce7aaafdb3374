# backend/wc_core/compliance/reports.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


class Severity:
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Violation:
    code: str
    severity: str
    description: str
    event_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "severity": self.severity,
            "description": self.description,
            "event_ids": list(self.event_ids),
        }


@dataclass
class ReportSection:
    key: str
    title: str
    event_count: int = 0
    violations: List[Violation] = field(default_factory=list)
    evidence: List[str] = field(default_factory=list)
    summary: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "title": self.title,
            "event_count": self.event_count,
            "violations": [v.to_dict() for v in self.violations],
            "evidence": list(self.evidence),
            "summary": dict(self.summary),
        }


@dataclass
class ComplianceReport:
    tenant_id: str
    framework: str
    date_from: Optional[datetime]
    date_to: Optional[datetime]
    generated_at: datetime
    total_events: int
    sections: List[ReportSection] = field(default_factory=list)

    @property
    def violation_count(self) -> int:
        return sum(len(s.violations) for s in self.sections)

    @property
    def compliant(self) -> bool:
        return self.violation_count == 0

    def section(self, key: str) -> ReportSection:
        for s in self.sections:
            if s.key == key:
                return s
        raise KeyError(key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "framework": self.framework,
            "date_from": self.date_from.isoformat() if self.date_from else None,
            "date_to": self.date_to.isoformat() if self.date_to else None,
            "generated_at": self.generated_at.isoformat(),
            "total_events": self.total_events,
            "violation_count": self.violation_count,
            "compliant": self.compliant,
            "sections": [s.to_dict() for s in self.sections],
        }
