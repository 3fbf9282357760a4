"""
Persisted state machine for migration runs.

Every method that touches counters, cursors or status issues exactly one
conditional UPDATE, so any number of workers can call them concurrently
without holding a lock on the run row.
"""
import logging
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.db.models.functions import Greatest
from django.utils import timezone

from .exceptions import RunNotFoundError
from .models import MigrationRun

logger = logging.getLogger(__name__)

Status = MigrationRun.StatusChoices


class RunTracker:
    """Create, load and advance MigrationRun rows."""

    def create_run(self, eligible_count: int, strategy: str = MigrationRun.StrategyChoices.BATCH) -> MigrationRun:
        """Start a new run with its total snapshotted and cursors at zero."""
        run = MigrationRun.objects.create(
            total_emails=eligible_count,
            strategy=strategy,
            status=Status.PENDING,
        )
        logger.info(f'Created migration run {run.pk}: {eligible_count} eligible emails ({strategy})')
        return run

    def find_run(self, run_id) -> Optional[MigrationRun]:
        try:
            return MigrationRun.objects.filter(pk=run_id).first()
        except (ValidationError, ValueError, TypeError):
            # Not a valid UUID
            return None

    def get_run(self, run_id) -> MigrationRun:
        run = self.find_run(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    def latest_run(self) -> Optional[MigrationRun]:
        return MigrationRun.objects.order_by('-created_at').first()

    def lock_run(self, run_id) -> MigrationRun:
        """Row-lock the run until the surrounding transaction ends."""
        run = MigrationRun.objects.select_for_update().filter(pk=run_id).first()
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    def mark_processing(self, run_id) -> bool:
        """
        pending -> processing, or failed -> processing when an operator
        resumes an aborted run. Sets started_at the first time only.
        """
        now = timezone.now()
        MigrationRun.objects.filter(pk=run_id, started_at__isnull=True).update(started_at=now)
        updated = MigrationRun.objects.filter(
            pk=run_id,
            status__in=[Status.PENDING, Status.FAILED],
        ).update(status=Status.PROCESSING, updated_at=now)
        if updated:
            logger.info(f'Run {run_id} is processing')
        return bool(updated)

    def record_dispatch(self, run_id, new_cursor: int, count_added: int) -> None:
        """Add to the dispatched count and move the dispatch cursor forward only."""
        MigrationRun.objects.filter(pk=run_id).update(
            jobs_dispatched=F('jobs_dispatched') + count_added,
            last_dispatched_id=Greatest(F('last_dispatched_id'), new_cursor),
            updated_at=timezone.now(),
        )

    def advance_dispatch_cursor(self, run_id, expected_cursor: int, new_cursor: int, count_added: int) -> bool:
        """
        Compare-and-swap the dispatch cursor.

        Returns:
            False if another dispatcher moved the cursor first
        """
        updated = MigrationRun.objects.filter(
            pk=run_id,
            last_dispatched_id=expected_cursor,
        ).update(
            last_dispatched_id=new_cursor,
            jobs_dispatched=F('jobs_dispatched') + count_added,
            updated_at=timezone.now(),
        )
        return updated == 1

    def record_processed_cursor(self, run_id, new_cursor: int) -> None:
        MigrationRun.objects.filter(
            pk=run_id,
            last_processed_email_id__lt=new_cursor,
        ).update(last_processed_email_id=new_cursor, updated_at=timezone.now())

    def record_outcome(self, run_id, processed_delta: int = 0, failed_delta: int = 0) -> None:
        """Atomic increments; counters are frozen once the run completed."""
        if not processed_delta and not failed_delta:
            return
        MigrationRun.objects.filter(pk=run_id).exclude(status=Status.COMPLETED).update(
            processed_emails=F('processed_emails') + processed_delta,
            failed_emails=F('failed_emails') + failed_delta,
            updated_at=timezone.now(),
        )

    def try_complete(self, run_id) -> bool:
        """
        Complete the run if every email of the snapshot is accounted for.

        Safe to call from any number of workers at once: the check and the
        transition are one UPDATE, so exactly one caller gets True.
        """
        now = timezone.now()
        updated = (
            MigrationRun.objects.filter(
                pk=run_id,
                total_emails__lte=F('processed_emails') + F('failed_emails'),
            )
            .exclude(status=Status.COMPLETED)
            .update(status=Status.COMPLETED, completed_at=now, updated_at=now)
        )
        if updated:
            logger.info(f'Run {run_id} completed')
        return updated == 1

    def complete(self, run_id) -> bool:
        """Complete the run regardless of counts (nothing left to select)."""
        now = timezone.now()
        updated = (
            MigrationRun.objects.filter(pk=run_id)
            .exclude(status=Status.COMPLETED)
            .update(status=Status.COMPLETED, completed_at=now, updated_at=now)
        )
        if updated:
            logger.info(f'Run {run_id} completed')
        return updated == 1

    def mark_failed(self, run_id, message: str) -> bool:
        """Abort the run and append the reason to its error log."""
        with transaction.atomic():
            run = MigrationRun.objects.select_for_update().filter(pk=run_id).first()
            if run is None or run.status == Status.COMPLETED:
                return False
            error_log = list(run.error_log or [])
            error_log.append({'at': timezone.now().isoformat(), 'message': message})
            MigrationRun.objects.filter(pk=run_id).update(
                status=Status.FAILED,
                error_log=error_log,
                updated_at=timezone.now(),
            )
        logger.error(f'Run {run_id} failed: {message}')
        return True
