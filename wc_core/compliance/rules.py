# backend/wc_core/compliance/rules.py
from __future__ import annotations

from collections import Counter, defaultdict
from datetime import timezone as dt_timezone
from typing import Callable, Dict, List, Sequence

from django.conf import settings

from wc_core.audit.models import AuditAction, AuditEvent
from wc_core.audit.retention import RETENTION_RESOURCE
from wc_core.compliance.frameworks import (
    CONFIGURATION_RESOURCE,
    PERSONAL_DATA_RESOURCES,
    PHI_RESOURCES,
    ComplianceFramework,
)
from wc_core.compliance.reports import ReportSection, Severity, Violation

Rule = Callable[[Sequence[AuditEvent]], ReportSection]

WRITE_ACTIONS = (AuditAction.CREATE, AuditAction.UPDATE, AuditAction.DELETE)
DEFAULT_BULK_ACCESS_THRESHOLD = 200


def _ids(events) -> List[str]:
    return [str(e.id) for e in events]


def _details(event: AuditEvent) -> dict:
    return event.details if isinstance(event.details, dict) else {}


# -------------------------------------------------------------------
# GDPR
# -------------------------------------------------------------------

def gdpr_personal_data_access(events: Sequence[AuditEvent]) -> ReportSection:
    matched = [e for e in events if e.action == AuditAction.READ and e.resource in PERSONAL_DATA_RESOURCES]
    return ReportSection(
        key="personal_data_access",
        title="Access to personal data",
        event_count=len(matched),
        evidence=_ids(matched),
        summary={"by_resource": dict(Counter(e.resource for e in matched))},
    )


def _is_consent_withdrawal(event: AuditEvent) -> bool:
    if event.resource != "Consent":
        return False
    details = _details(event)
    return (
        event.action == AuditAction.DELETE
        or details.get("withdrawn") is True
        or str(details.get("status", "")).lower() == "withdrawn"
    )


def gdpr_consent_withdrawals(events: Sequence[AuditEvent]) -> ReportSection:
    matched = [e for e in events if _is_consent_withdrawal(e)]
    return ReportSection(
        key="consent_withdrawals",
        title="Consent withdrawals",
        event_count=len(matched),
        evidence=_ids(matched),
    )


def gdpr_deletion_justification(events: Sequence[AuditEvent]) -> ReportSection:
    deletions = [e for e in events if e.action == AuditAction.DELETE and e.resource != RETENTION_RESOURCE]
    unjustified = [e for e in deletions if not _details(e).get("justification")]

    section = ReportSection(
        key="deletions",
        title="Erasure of records",
        event_count=len(deletions),
        evidence=_ids(deletions),
    )
    if unjustified:
        section.violations.append(
            Violation(
                code="GDPR_DELETION_WITHOUT_JUSTIFICATION",
                severity=Severity.HIGH,
                description=f"{len(unjustified)} deletion(s) recorded without a justification.",
                event_ids=_ids(unjustified),
            )
        )
    return section


def gdpr_processing_without_consent(events: Sequence[AuditEvent]) -> ReportSection:
    processing = [e for e in events if e.action in (AuditAction.READ, AuditAction.CREATE, AuditAction.UPDATE)]
    flagged = [e for e in processing if _details(e).get("consentGiven") is False]

    section = ReportSection(
        key="lawful_basis",
        title="Processing with recorded consent state",
        event_count=sum(1 for e in processing if "consentGiven" in _details(e)),
        evidence=_ids(flagged),
    )
    if flagged:
        section.violations.append(
            Violation(
                code="GDPR_PROCESSING_WITHOUT_CONSENT",
                severity=Severity.HIGH,
                description=f"{len(flagged)} access/modification event(s) recorded consentGiven=false.",
                event_ids=_ids(flagged),
            )
        )
    return section


# -------------------------------------------------------------------
# CQC
# -------------------------------------------------------------------

def cqc_medication_documentation(events: Sequence[AuditEvent]) -> ReportSection:
    administrations = [e for e in events if e.resource == "Medication" and e.action in (AuditAction.CREATE, AuditAction.UPDATE)]
    undocumented = [e for e in administrations if not _details(e)]

    section = ReportSection(
        key="medication_administration",
        title="Medication administration records",
        event_count=len(administrations),
        evidence=_ids(administrations),
    )
    if undocumented:
        section.violations.append(
            Violation(
                code="CQC_MEDICATION_UNDOCUMENTED",
                severity=Severity.MEDIUM,
                description=f"{len(undocumented)} medication event(s) recorded without documentation.",
                event_ids=_ids(undocumented),
            )
        )
    return section


def cqc_care_plan_approval(events: Sequence[AuditEvent]) -> ReportSection:
    updates = [e for e in events if e.resource == "CarePlan" and e.action == AuditAction.UPDATE]
    unapproved = [e for e in updates if not _details(e).get("approvedBy")]

    section = ReportSection(
        key="care_plan_reviews",
        title="Care plan changes",
        event_count=len(updates),
        evidence=_ids(updates),
    )
    if unapproved:
        section.violations.append(
            Violation(
                code="CQC_CARE_PLAN_UNAPPROVED",
                severity=Severity.MEDIUM,
                description=f"{len(unapproved)} care plan update(s) without an approver.",
                event_ids=_ids(unapproved),
            )
        )
    return section


def cqc_incident_acknowledgement(events: Sequence[AuditEvent]) -> ReportSection:
    incidents = [e for e in events if e.resource == "Incident"]
    reported = [e for e in incidents if e.action == AuditAction.CREATE]

    # events arrive in (timestamp, sequence) order
    unacknowledged = []
    for created in reported:
        acknowledged = any(
            e.entity_id == created.entity_id
            and e.action == AuditAction.UPDATE
            and _details(e).get("acknowledged") is True
            and (e.timestamp, e.sequence) > (created.timestamp, created.sequence)
            for e in incidents
        )
        if not acknowledged:
            unacknowledged.append(created)

    section = ReportSection(
        key="incident_management",
        title="Incident reporting and acknowledgement",
        event_count=len(incidents),
        evidence=_ids(reported),
        summary={"reported": len(reported), "unacknowledged": len(unacknowledged)},
    )
    if unacknowledged:
        section.violations.append(
            Violation(
                code="CQC_INCIDENT_UNACKNOWLEDGED",
                severity=Severity.HIGH,
                description=f"{len(unacknowledged)} incident(s) without a later acknowledgement.",
                event_ids=_ids(unacknowledged),
            )
        )
    return section


# -------------------------------------------------------------------
# HIPAA
# -------------------------------------------------------------------

def hipaa_phi_access(events: Sequence[AuditEvent]) -> ReportSection:
    matched = [e for e in events if e.action == AuditAction.READ and e.resource in PHI_RESOURCES]
    return ReportSection(
        key="phi_access",
        title="PHI access by user",
        event_count=len(matched),
        evidence=_ids(matched),
        summary={"by_user": dict(Counter(e.user_id for e in matched))},
    )


def hipaa_disclosures(events: Sequence[AuditEvent]) -> ReportSection:
    matched = [e for e in events if _details(e).get("disclosedTo")]
    return ReportSection(
        key="disclosures",
        title="Disclosures of PHI",
        event_count=len(matched),
        evidence=_ids(matched),
        summary={"by_recipient": dict(Counter(str(_details(e)["disclosedTo"]) for e in matched))},
    )


def hipaa_bulk_access(events: Sequence[AuditEvent]) -> ReportSection:
    threshold = getattr(settings, "AUDIT_HIPAA_BULK_ACCESS_THRESHOLD", DEFAULT_BULK_ACCESS_THRESHOLD)

    reads_by_user_day: Dict[tuple, List[AuditEvent]] = defaultdict(list)
    for e in events:
        if e.action == AuditAction.READ:
            day = e.timestamp.astimezone(dt_timezone.utc).date().isoformat()
            reads_by_user_day[(e.user_id, day)].append(e)

    section = ReportSection(
        key="bulk_access",
        title="Bulk record access",
        event_count=sum(len(v) for v in reads_by_user_day.values()),
        summary={"threshold": threshold},
    )
    for (user_id, day), reads in sorted(reads_by_user_day.items()):
        if len(reads) > threshold:
            section.evidence.extend(_ids(reads))
            section.violations.append(
                Violation(
                    code="HIPAA_BULK_ACCESS",
                    severity=Severity.MEDIUM,
                    description=f"User {user_id} read {len(reads)} records on {day} (threshold {threshold}).",
                    event_ids=_ids(reads),
                )
            )
    return section


# -------------------------------------------------------------------
# NHS DSPT
# -------------------------------------------------------------------

def dspt_access_audit(events: Sequence[AuditEvent]) -> ReportSection:
    reads = [e for e in events if e.action == AuditAction.READ]
    return ReportSection(
        key="access_audit",
        title="Record access audit",
        event_count=len(reads),
        evidence=_ids(reads),
        summary={"distinct_users": len({e.user_id for e in reads})},
    )


def dspt_configuration_changes(events: Sequence[AuditEvent]) -> ReportSection:
    changes = [e for e in events if e.resource == CONFIGURATION_RESOURCE and e.action in WRITE_ACTIONS]
    return ReportSection(
        key="configuration_changes",
        title="System configuration changes",
        event_count=len(changes),
        evidence=_ids(changes),
    )


def dspt_retention_purges(events: Sequence[AuditEvent]) -> ReportSection:
    purges = [e for e in events if e.resource == RETENTION_RESOURCE]
    return ReportSection(
        key="retention_purges",
        title="Data retention purges",
        event_count=len(purges),
        evidence=_ids(purges),
        summary={"deleted_events": sum(int(_details(e).get("deleted_count") or 0) for e in purges)},
    )


def dspt_traceability(events: Sequence[AuditEvent]) -> ReportSection:
    # the caller never handed over a correlation id, so the event cannot be
    # tied back to the request or job that caused it
    untraceable = [e for e in events if e.correlation_generated or not (e.correlation_id or "").strip()]

    section = ReportSection(
        key="traceability",
        title="Event traceability",
        event_count=len(events),
        evidence=_ids(untraceable),
    )
    if untraceable:
        section.violations.append(
            Violation(
                code="DSPT_UNTRACEABLE_EVENT",
                severity=Severity.LOW,
                description=f"{len(untraceable)} event(s) not linked to a caller-supplied correlation id.",
                event_ids=_ids(untraceable),
            )
        )
    return section


FRAMEWORK_RULES: Dict[str, List[Rule]] = {
    ComplianceFramework.GDPR: [
        gdpr_personal_data_access,
        gdpr_consent_withdrawals,
        gdpr_deletion_justification,
        gdpr_processing_without_consent,
    ],
    ComplianceFramework.CQC: [
        cqc_medication_documentation,
        cqc_care_plan_approval,
        cqc_incident_acknowledgement,
    ],
    ComplianceFramework.HIPAA: [
        hipaa_phi_access,
        hipaa_disclosures,
        hipaa_bulk_access,
    ],
    ComplianceFramework.NHS_DSPT: [
        dspt_access_audit,
        dspt_configuration_changes,
        dspt_retention_purges,
        dspt_traceability,
    ],
}
