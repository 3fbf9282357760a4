"""
Celery tasks for the email migration.
"""
import logging

from celery import Task, shared_task
from django.conf import settings
from django.utils import timezone

from .migrator import truncate_error
from .models import MigrationRun, TaskClaim
from .results import OutcomeStatus
from .services import build_migration_service

logger = logging.getLogger(__name__)

PERMANENT_FAILURE_PREFIX = 'Job permanently failed: '


def enqueue_email(email_id: int, run_id=None, countdown: float = 0, queue: str = None):
    """Publish one migrate_email task on the migration queue."""
    return migrate_email.apply_async(
        args=(email_id, str(run_id) if run_id else None),
        queue=queue or getattr(settings, 'MIGRATION_QUEUE', 'email-migration'),
        countdown=countdown or None,
    )


def claim_task(task_id: str, email_id: int, run_id=None) -> TaskClaim:
    run = MigrationRun.objects.filter(pk=run_id).first() if run_id else None
    claim, _ = TaskClaim.objects.update_or_create(
        task_id=task_id,
        defaults={'email_id': email_id, 'run': run, 'claimed_at': timezone.now()},
    )
    return claim


def release_task(task_id: str) -> None:
    TaskClaim.objects.filter(task_id=task_id).delete()


def mark_permanently_failed(email_id: int, run_id, error, service=None) -> bool:
    """
    Terminal hook: stop every further retry of the email and count it
    as failed for its run.

    Returns:
        True if the email was still unmigrated and got exhausted
    """
    service = service or build_migration_service()
    message = truncate_error(f'{PERMANENT_FAILURE_PREFIX}{error}', service.config.error_max_length)

    if not service.emails.force_exhausted(email_id, message):
        return False

    logger.error(f'Email {email_id} permanently failed: {error}')
    service.coordinator.record_failure(run_id)
    return True


class MigrateEmailTask(Task):
    """Runs the terminal hook once the task has spent its retries."""

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        email_id = args[0] if args else kwargs.get('email_id')
        run_id = args[1] if len(args) > 1 else kwargs.get('run_id')
        logger.error(f'Migration task {task_id} for email {email_id} failed: {exc}')

        if email_id is None:
            return
        try:
            mark_permanently_failed(email_id, run_id, exc)
            release_task(task_id)
        except Exception:
            logger.exception(f'Could not record permanent failure of email {email_id}')


@shared_task(
    bind=True,
    base=MigrateEmailTask,
    acks_late=True,
    max_retries=getattr(settings, 'MIGRATION_TASK_MAX_RETRIES', 2),
    default_retry_delay=getattr(settings, 'MIGRATION_TASK_RETRY_DELAY', 300),
)
def migrate_email(self, email_id: int, run_id: str = None):
    """
    Migrate one email to the archive bucket.

    Failed uploads and errors raised along the way (database, broker)
    are retried with a fixed delay. Once MIGRATION_TASK_MAX_RETRIES is
    spent the terminal hook exhausts the email.

    Args:
        email_id: Email primary key
        run_id: MigrationRun the email was dispatched for
    """
    service = build_migration_service()
    max_retries = service.config.task_max_retries
    countdown = service.config.task_retry_delay

    try:
        try:
            claim_task(self.request.id, email_id, run_id)
            outcome = service.migrator.migrate(email_id)
        except Exception as e:
            if self.request.retries >= max_retries:
                raise
            logger.warning(f'Migration task for email {email_id} raised {e!r}, retrying in {countdown}s')
            raise self.retry(exc=e, countdown=countdown, max_retries=max_retries)

        if outcome.should_retry and self.request.retries < max_retries:
            logger.warning(
                f'Email {email_id} failed (attempt {outcome.attempts}), '
                f'retrying in {countdown}s: {outcome.error}'
            )
            raise self.retry(countdown=countdown, max_retries=max_retries)

        if outcome.status == OutcomeStatus.FAILED:
            mark_permanently_failed(email_id, run_id, outcome.error, service=service)
        else:
            service.coordinator.record(run_id, outcome)

        return outcome.as_dict()
    finally:
        release_task(self.request.id)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def dispatch_run(self, run_id: str, page_size: int = None):
    """
    Publish migrate_email tasks for every eligible email of a run.

    Args:
        run_id: MigrationRun to dispatch (fan-out)
        page_size: Optional override of MIGRATION_DISPATCH_PAGE_SIZE
    """
    from .exceptions import RunNotFoundError

    service = build_migration_service()
    if page_size:
        service.config = service.config.with_overrides(dispatch_page_size=page_size)
    dispatcher = service.get_dispatcher(MigrationRun.StrategyChoices.FANOUT)

    try:
        dispatcher.resume(run_id)
    except RunNotFoundError as e:
        logger.error(str(e))
        return {'success': False, 'error': str(e)}

    try:
        run = dispatcher.run()
    except Exception as e:
        logger.exception(f'Dispatch of run {run_id} aborted: {e}')
        service.tracker.mark_failed(run_id, str(e)[:500])
        raise self.retry(exc=e)

    return {
        'success': True,
        'run_id': str(run.pk),
        'jobs_dispatched': run.jobs_dispatched,
        'status': run.status,
    }


@shared_task
def reap_stale_claims(timeout: int = None):
    """Periodic: release claims of presumed-dead tasks and requeue them."""
    from .reaper import StaleClaimReaper

    service = build_migration_service()
    reaper = StaleClaimReaper(
        service.emails,
        service.coordinator,
        service.config,
        publish=enqueue_email,
    )
    result = reaper.reap(timeout=timeout)
    return {
        'found': result.found,
        'released': result.released,
        'requeued': result.requeued,
        'exhausted': result.exhausted,
    }
