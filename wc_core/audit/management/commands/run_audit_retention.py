# backend/wc_core/audit/management/commands/run_audit_retention.py
from __future__ import annotations

from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from wc_core.audit.exceptions import RetentionPassError
from wc_core.audit.retention import RetentionScheduler


class Command(BaseCommand):
    help = "Purge audit events past their category retention period. Each (tenant, category) unit is atomic."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Print counts only; do not delete.")
        parser.add_argument("--tenant-id", type=str, default=None, help="Optional tenant filter.")
        parser.add_argument("--timeout", type=int, default=None, help="Stop starting new units after N seconds.")
        parser.add_argument("--loop", action="store_true", help="Keep running one pass per interval.")
        parser.add_argument("--interval-seconds", type=int, default=None, help="Loop interval (default: settings).")

    def handle(self, *args, **opts):
        scheduler = RetentionScheduler()

        if opts["loop"]:
            self.stdout.write("Running retention loop (Ctrl+C to stop).")
            try:
                scheduler.run_forever(interval_seconds=opts["interval_seconds"])
            except KeyboardInterrupt:
                self.stdout.write("Retention loop stopped.")
            return

        deadline = None
        if opts["timeout"]:
            deadline = timezone.now() + timedelta(seconds=opts["timeout"])

        try:
            result = scheduler.run_pass(deadline=deadline, tenant_id=opts["tenant_id"], dry_run=opts["dry_run"])
        except RetentionPassError as exc:
            if exc.result is not None:
                self._write_summary(exc.result)
            for failure in exc.failures:
                self.stderr.write(f"Failed: tenant={failure.tenant_id} category={failure.category} error={failure.error}")
            raise CommandError(str(exc.detail)) from exc

        self._write_summary(result)
        if not result.completed:
            self.stdout.write(self.style.WARNING("Deadline reached; remaining units run on the next pass."))
        self.stdout.write(self.style.SUCCESS("Done."))

    def _write_summary(self, result):
        label = "Events that would be deleted" if result.dry_run else "Events deleted"
        self.stdout.write(f"Pass: {result.pass_id}")
        self.stdout.write(f"Units processed: {len(result.units)}")
        self.stdout.write(f"{label}: {result.total_deleted}")
