"""
Hands eligible emails to workers, in ascending id order.

Two strategies:

- BatchDispatcher locks a slice of emails and migrates it in-process.
  The row locks guarantee a slice is claimed by one consumer only.
- FanOutDispatcher scans without locks and publishes one Celery task per
  email. Concurrent dispatchers may publish overlapping pages; the
  migrator's already-migrated short-circuit absorbs the duplicates.
"""
import logging
from typing import Callable, Iterator, Optional

from django.db import transaction

from apps.emails.repositories import EmailRepository

from .conf import MigrationSettings
from .coordinator import CompletionCoordinator
from .exceptions import MigrationNotInitializedError
from .migrator import RecordMigrator
from .models import MigrationRun
from .results import OutcomeStatus, ProcessingResult
from .tracker import RunTracker

logger = logging.getLogger(__name__)

Strategy = MigrationRun.StrategyChoices


class BaseDispatcher:
    strategy: str = ''

    def __init__(
        self,
        migrator: RecordMigrator,
        emails: EmailRepository,
        tracker: RunTracker,
        coordinator: CompletionCoordinator,
        config: MigrationSettings,
    ):
        self.migrator = migrator
        self.emails = emails
        self.tracker = tracker
        self.coordinator = coordinator
        self.config = config
        self.run_id = None

    def start(self) -> MigrationRun:
        """Create a fresh run over the currently eligible emails."""
        run = self.tracker.create_run(self.emails.count_eligible(), strategy=self.strategy)
        self.run_id = run.pk
        return run

    def resume(self, run_id) -> MigrationRun:
        """Continue an existing run from its cursor. Raises RunNotFoundError."""
        run = self.tracker.get_run(run_id)
        self.run_id = run.pk
        logger.info(f'Resuming run {run.pk} from cursor {self.cursor_of(run)}')
        return run

    def get_run(self) -> MigrationRun:
        self._require_run()
        return self.tracker.get_run(self.run_id)

    def cursor_of(self, run: MigrationRun) -> int:
        raise NotImplementedError

    def preview(self, after_id: int = 0, page_size: Optional[int] = None) -> Iterator[list[dict]]:
        """
        Yield pages of what would be migrated, without touching any state.
        """
        page_size = page_size or self.config.dispatch_page_size
        cursor = after_id
        while True:
            email_ids = self.emails.scan_eligible_ids(cursor, page_size)
            if not email_ids:
                return
            emails = self.emails.eligible().filter(pk__in=email_ids).order_by('id')
            yield [plan for plan in (self.migrator.plan(email) for email in emails) if plan]
            cursor = email_ids[-1]

    def _require_run(self):
        if self.run_id is None:
            raise MigrationNotInitializedError()


class BatchDispatcher(BaseDispatcher):
    """Claim a slice under row locks and migrate it synchronously."""

    strategy = Strategy.BATCH

    def cursor_of(self, run: MigrationRun) -> int:
        return run.last_processed_email_id

    def process_batch(self, batch_size: Optional[int] = None) -> ProcessingResult:
        self._require_run()
        batch_size = batch_size or self.config.batch_size
        self.tracker.mark_processing(self.run_id)

        processed = failed = 0
        with transaction.atomic():
            # Concurrent consumers of the same run serialize here
            run = self.tracker.lock_run(self.run_id)
            if run.is_completed:
                return ProcessingResult(is_complete=True)

            emails = self.emails.next_batch_for_update(run.last_processed_email_id, batch_size)
            if not emails:
                self.tracker.complete(run.pk)
                return ProcessingResult(is_complete=True)

            last_id = run.last_processed_email_id
            for email in emails:
                last_id = max(last_id, email.pk)
                outcome = self.migrator.migrate_email(email)
                if outcome.status == OutcomeStatus.MIGRATED:
                    processed += 1
                elif outcome.is_failure:
                    failed += 1

            self.coordinator.record_counts(run.pk, processed, failed)
            self.tracker.record_processed_cursor(run.pk, last_id)

        logger.info(
            f'Run {self.run_id}: batch up to email {last_id} done '
            f'({processed} processed, {failed} failed)'
        )
        return ProcessingResult(
            is_complete=False,
            processed_count=processed,
            failed_count=failed,
        )

    def run(self, on_batch: Optional[Callable[[ProcessingResult], None]] = None) -> MigrationRun:
        """Process batches until nothing eligible is left past the cursor."""
        while True:
            result = self.process_batch()
            if on_batch:
                on_batch(result)
            if result.is_complete:
                return self.get_run()


class FanOutDispatcher(BaseDispatcher):
    """Publish one migrate_email task per eligible email."""

    strategy = Strategy.FANOUT

    def __init__(self, *args, publish: Optional[Callable] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.publish = publish or self._publish_task

    def cursor_of(self, run: MigrationRun) -> int:
        return run.last_dispatched_id

    def _publish_task(self, email_id: int, run_id, countdown: float = 0):
        from .tasks import enqueue_email

        enqueue_email(email_id, run_id, countdown=countdown, queue=self.config.queue)

    def dispatch_page(self, page_size: Optional[int] = None) -> ProcessingResult:
        """
        Publish the next page past the dispatch cursor.

        The page is published before the cursor moves, so a crash in between
        republishes it on resume rather than losing it.
        """
        self._require_run()
        page_size = page_size or self.config.dispatch_page_size
        self.tracker.mark_processing(self.run_id)

        run = self.tracker.get_run(self.run_id)
        cursor = run.last_dispatched_id
        email_ids = self.emails.scan_eligible_ids(cursor, page_size)

        if not email_ids:
            # Covers empty runs and runs whose tasks all finished already
            self.tracker.try_complete(run.pk)
            return ProcessingResult(is_complete=True)

        step = self.config.dispatch_delay_step
        for index, email_id in enumerate(email_ids):
            self.publish(email_id, run.pk, countdown=round(index * step, 3))

        if not self.tracker.advance_dispatch_cursor(run.pk, cursor, email_ids[-1], len(email_ids)):
            logger.warning(
                f'Run {run.pk}: dispatch cursor moved by another dispatcher '
                f'while publishing ids {email_ids[0]}..{email_ids[-1]}'
            )
        else:
            logger.info(
                f'Run {run.pk}: dispatched {len(email_ids)} emails '
                f'({email_ids[0]}..{email_ids[-1]})'
            )

        return ProcessingResult(is_complete=False, dispatched_count=len(email_ids))

    def run(self, on_page: Optional[Callable[[ProcessingResult], None]] = None) -> MigrationRun:
        """Publish pages until a scan finds nothing eligible past the cursor."""
        while True:
            result = self.dispatch_page()
            if on_page:
                on_page(result)
            if result.is_complete:
                return self.get_run()


DISPATCHERS = {
    Strategy.BATCH: BatchDispatcher,
    Strategy.FANOUT: FanOutDispatcher,
}


def get_dispatcher_class(strategy: str):
    try:
        return DISPATCHERS[strategy]
    except KeyError:
        raise ValueError(f'Unknown dispatch strategy: {strategy}') from None
