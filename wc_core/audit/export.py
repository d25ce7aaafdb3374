# backend/wc_core/audit/export.py
from __future__ import annotations

import csv
import json
import logging
import tempfile
from typing import Callable, Iterable

from django.utils import timezone

from wc_core.audit.models import AuditEvent, canonical_timestamp
from wc_core.audit.records import AuditExport

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("csv", "json")

EXPORT_FIELDS = [
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

CONTENT_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
}


def event_to_dict(event: AuditEvent) -> dict:
    return {
        "id": str(event.id),
        "tenant_id": event.tenant_id,
        "sequence": event.sequence,
        "timestamp": canonical_timestamp(event.timestamp),
        "resource": event.resource,
        "entity_type": event.entity_type,
        "entity_id": event.entity_id,
        "action": event.action,
        "user_id": event.user_id,
        "correlation_id": event.correlation_id,
        "details": event.details,
        "record_hash": event.record_hash,
    }


def _write_csv(events: Iterable[AuditEvent], fh, checkpoint: Callable[[], None]) -> int:
    writer = csv.DictWriter(fh, fieldnames=EXPORT_FIELDS)
    writer.writeheader()

    count = 0
    for event in events:
        checkpoint()
        row = event_to_dict(event)
        row["details"] = json.dumps(row["details"], sort_keys=True)
        writer.writerow(row)
        count += 1
    return count


def _write_json(events: Iterable[AuditEvent], fh, checkpoint: Callable[[], None]) -> int:
    fh.write("[")
    count = 0
    for event in events:
        checkpoint()
        if count:
            fh.write(",")
        fh.write(json.dumps(event_to_dict(event), sort_keys=True))
        count += 1
    fh.write("]")
    return count


WRITERS = {
    "csv": _write_csv,
    "json": _write_json,
}


def build_export(
    events: Iterable[AuditEvent],
    *,
    fmt: str,
    tenant_id: str,
    checkpoint: Callable[[], None],
    spool_max_bytes: int,
) -> AuditExport:
    """
    Serialize events into a spooled buffer and return the finished artifact.
    Anything raised by `checkpoint` discards the partial buffer.
    """
    writer = WRITERS[fmt]

    with tempfile.SpooledTemporaryFile(max_size=spool_max_bytes, mode="w+", encoding="utf-8", newline="") as fh:
        checkpoint()
        count = writer(events, fh, checkpoint)
        fh.seek(0)
        content = fh.read().encode("utf-8")

    stamp = timezone.now().strftime("%Y%m%dT%H%M%SZ")
    logger.info("Audit export built tenant=%s format=%s rows=%d bytes=%d", tenant_id, fmt, count, len(content))

    return AuditExport(
        content=content,
        content_type=CONTENT_TYPES[fmt],
        filename=f"audit-{tenant_id}-{stamp}.{fmt}",
        count=count,
    )
