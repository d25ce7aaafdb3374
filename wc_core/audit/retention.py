# backend/wc_core/audit/retention.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError, transaction
from django.utils import timezone

from wc_core.audit.exceptions import RetentionPassError
from wc_core.audit.models import AuditAction, canonical_timestamp
from wc_core.audit.selectors import distinct_tenant_ids, tenant_events_qs
from wc_core.audit.services import AuditTrailService
from wc_core.common.context import TenantContext, new_correlation_id

logger = logging.getLogger(__name__)

RETENTION_RESOURCE = "AuditRetention"
RETENTION_JOB = "retention"
DEFAULT_INTERVAL_SECONDS = 24 * 60 * 60


def _days(value, *, name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ImproperlyConfigured(f"{name} must be a positive number of days or None, got {value!r}.")
    return value


@dataclass(frozen=True)
class RetentionPolicy:
    """
    resource category -> retention in days.
    Categories without an entry fall back to default_days (None = keep forever).
    """
    periods: Dict[str, int] = field(default_factory=dict)
    default_days: Optional[int] = None

    @classmethod
    def from_settings(cls) -> "RetentionPolicy":
        raw = getattr(settings, "AUDIT_RETENTION_POLICIES", {}) or {}
        periods = {
            str(category): _days(days, name=f"AUDIT_RETENTION_POLICIES[{category!r}]")
            for category, days in raw.items()
            if days is not None
        }
        default_days = _days(getattr(settings, "AUDIT_RETENTION_DEFAULT_DAYS", None), name="AUDIT_RETENTION_DEFAULT_DAYS")
        return cls(periods=periods, default_days=default_days)

    def days_for(self, category: str) -> Optional[int]:
        return self.periods.get(category, self.default_days)

    def categories_for(self, present: Iterable[str]) -> List[tuple[str, int]]:
        """
        (category, days) pairs to process for one tenant, in a stable order.
        """
        names = set(self.periods)
        if self.default_days is not None:
            names.update(present)
        return [(name, self.days_for(name)) for name in sorted(names) if self.days_for(name) is not None]


@dataclass(frozen=True)
class RetentionUnitResult:
    tenant_id: str
    category: str
    cutoff: datetime
    deleted: int


@dataclass(frozen=True)
class RetentionFailure:
    tenant_id: str
    category: str
    error: str


@dataclass
class RetentionPassResult:
    pass_id: str
    started_at: datetime
    dry_run: bool = False
    units: List[RetentionUnitResult] = field(default_factory=list)
    failures: List[RetentionFailure] = field(default_factory=list)
    completed: bool = True

    @property
    def total_deleted(self) -> int:
        return sum(u.deleted for u in self.units)


class RetentionScheduler:
    """
    Periodic purge of audit events past their category's retention period.

    Each (tenant, category) unit is atomic: every qualifying event goes, and
    the AuditRetention event describing the purge is written in the same
    transaction, or nothing happens. Units with nothing to delete write
    nothing, so back-to-back passes are no-ops.
    """

    def __init__(self, policy: Optional[RetentionPolicy] = None):
        self.policy = policy or RetentionPolicy.from_settings()

    def run_pass(
        self,
        now: Optional[datetime] = None,
        deadline: Optional[datetime] = None,
        tenant_id: Optional[str] = None,
        dry_run: bool = False,
    ) -> RetentionPassResult:
        now = now or timezone.now()
        result = RetentionPassResult(pass_id=new_correlation_id(), started_at=now, dry_run=dry_run)

        tenant_ids = [tenant_id] if tenant_id else distinct_tenant_ids()
        logger.info("Retention pass %s started tenants=%d dry_run=%s", result.pass_id, len(tenant_ids), dry_run)

        for tid in tenant_ids:
            if not result.completed:
                break
            present = (
                tenant_events_qs(tenant_id=tid).order_by("resource").values_list("resource", flat=True).distinct()
            )
            for category, days in self.policy.categories_for(present):
                if deadline is not None and timezone.now() >= deadline:
                    logger.warning("Retention pass %s hit its deadline; remaining units deferred", result.pass_id)
                    result.completed = False
                    break

                cutoff = now - timedelta(days=days)
                try:
                    unit = self._run_unit(
                        tenant_id=tid,
                        category=category,
                        cutoff=cutoff,
                        pass_id=result.pass_id,
                        dry_run=dry_run,
                    )
                except Exception as exc:
                    logger.exception("Retention unit failed tenant=%s category=%s", tid, category)
                    result.failures.append(RetentionFailure(tenant_id=tid, category=category, error=str(exc)))
                    continue

                result.units.append(unit)
                if unit.deleted:
                    logger.info(
                        "Retention %s tenant=%s category=%s cutoff=%s deleted=%d",
                        "would delete" if dry_run else "deleted",
                        tid,
                        category,
                        canonical_timestamp(cutoff),
                        unit.deleted,
                    )

        logger.info(
            "Retention pass %s finished units=%d deleted=%d failures=%d completed=%s",
            result.pass_id,
            len(result.units),
            result.total_deleted,
            len(result.failures),
            result.completed,
        )

        if result.failures:
            raise RetentionPassError(result.failures, result=result)
        return result

    def _run_unit(self, *, tenant_id: str, category: str, cutoff: datetime, pass_id: str, dry_run: bool) -> RetentionUnitResult:
        with transaction.atomic():
            expired = (
                tenant_events_qs(tenant_id=tenant_id)
                .filter(resource=category, timestamp__lt=cutoff)
                .exclude(correlation_id=pass_id)
            )

            if dry_run:
                return RetentionUnitResult(tenant_id=tenant_id, category=category, cutoff=cutoff, deleted=expired.count())

            deleted = expired.purge()
            if deleted:
                context = TenantContext.for_system(tenant_id, RETENTION_JOB, correlation_id=pass_id)
                AuditTrailService.record_for(
                    context,
                    resource=RETENTION_RESOURCE,
                    action=AuditAction.DELETE,
                    entity_id=category,
                    details={
                        "category": category,
                        "cutoff": canonical_timestamp(cutoff),
                        "deleted_count": deleted,
                        "pass_id": pass_id,
                    },
                )

        return RetentionUnitResult(tenant_id=tenant_id, category=category, cutoff=cutoff, deleted=deleted)

    def run_forever(self, interval_seconds: Optional[int] = None, stop_event: Optional[threading.Event] = None) -> None:
        """
        Fixed-interval loop. A failed pass is logged; the next one retries its
        failed units in full.
        """
        interval = interval_seconds or getattr(settings, "AUDIT_RETENTION_INTERVAL_SECONDS", DEFAULT_INTERVAL_SECONDS)
        stop_event = stop_event or threading.Event()

        while not stop_event.is_set():
            try:
                self.run_pass()
            except (RetentionPassError, DatabaseError):
                logger.exception("Retention pass failed; retrying in %ss", interval)
            stop_event.wait(interval)
