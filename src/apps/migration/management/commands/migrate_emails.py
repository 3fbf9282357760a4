"""
Migrate email bodies and attachments to the archive bucket.

Usage:
    python manage.py migrate_emails
    python manage.py migrate_emails --strategy fanout
    python manage.py migrate_emails --resume <run-id>
    python manage.py migrate_emails --dry-run
"""
import os

from django.core.cache import cache
from django.core.management.base import BaseCommand, CommandError

from apps.migration.exceptions import RunNotFoundError
from apps.migration.models import MigrationRun
from apps.migration.services import build_migration_service
from apps.migration.stats import RunStats

from ._output import write_run_stats, write_table

LOCK_KEY = 'email-migration:migrate-emails-lock'
LOCK_TIMEOUT = 6 * 60 * 60


class Command(BaseCommand):
    help = 'Migrate emails and attachments to the archive object store'

    def add_arguments(self, parser):
        parser.add_argument(
            '--strategy', '-s',
            choices=MigrationRun.StrategyChoices.values,
            help='Dispatch strategy (default: MIGRATION_DISPATCH_STRATEGY, or the run\'s own on resume)',
        )
        parser.add_argument(
            '--resume', '-r',
            metavar='RUN_ID',
            help='Resume an existing migration run',
        )
        parser.add_argument(
            '--batch-size', '-b',
            type=int,
            help='Emails per batch (batch strategy)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be migrated without uploading anything',
        )

    def handle(self, *args, **options):
        service = build_migration_service()
        if options['batch_size']:
            service.config = service.config.with_overrides(batch_size=options['batch_size'])

        if options['dry_run']:
            return self.dry_run(service, options['strategy'])

        if not cache.add(LOCK_KEY, os.getpid(), LOCK_TIMEOUT):
            raise CommandError('Another migration is already running (lock held).')

        try:
            self.migrate(service, options)
        finally:
            cache.delete(LOCK_KEY)

    def migrate(self, service, options):
        strategy = options['strategy']

        if options['resume']:
            try:
                run = service.tracker.get_run(options['resume'])
            except RunNotFoundError as e:
                raise CommandError(str(e))
            dispatcher = service.get_dispatcher(strategy or run.strategy)
            run = dispatcher.resume(run.pk)
            self.stdout.write(f'Resuming run {run.pk}')
        else:
            dispatcher = service.get_dispatcher(strategy)
            run = dispatcher.start()
            self.stdout.write(f'Started run {run.pk}')

        write_run_stats(self.stdout, RunStats.for_run(run))

        if run.is_completed:
            self.stdout.write(self.style.WARNING('Run is already completed.'))
            return

        progress = {'processed': 0, 'failed': 0, 'dispatched': 0}

        def report(result):
            progress['processed'] += result.processed_count
            progress['failed'] += result.failed_count
            progress['dispatched'] += result.dispatched_count
            if result.is_complete:
                return
            self.stdout.write(
                f'  processed {progress["processed"]}, failed {progress["failed"]}, '
                f'dispatched {progress["dispatched"]}'
            )

        try:
            run = dispatcher.run(report)
        except Exception as e:
            service.tracker.mark_failed(dispatcher.run_id, str(e)[:service.config.error_max_length])
            raise CommandError(f'Migration aborted: {e}')

        self.stdout.write('')
        write_run_stats(self.stdout, RunStats.for_run(run))

        if run.is_completed:
            self.stdout.write(self.style.SUCCESS(f'Run {run.pk} completed.'))
        else:
            self.stdout.write(self.style.SUCCESS(
                f'Dispatched {run.jobs_dispatched} tasks; workers will complete run {run.pk}.'
            ))
            self.stdout.write(f'Track progress with: python manage.py migration_status --run {run.pk}')

    def dry_run(self, service, strategy):
        dispatcher = service.get_dispatcher(strategy)
        self.stdout.write(self.style.WARNING('DRY RUN - nothing will be uploaded'))

        emails = attachments = malformed = 0
        sample = []
        for page in dispatcher.preview():
            emails += len(page)
            attachments += sum(len(plan['attachment_ids']) for plan in page)
            malformed += sum(1 for plan in page if plan['error'])
            sample.extend(page[:20 - len(sample)])

        if not emails:
            self.stdout.write('No eligible emails.')
            return

        write_table(
            self.stdout,
            ['Email ID', 'Body key', 'Attachments'],
            [
                [plan['email_id'], plan['body_key'], plan['error'] or len(plan['attachment_ids'])]
                for plan in sample
            ],
        )
        if emails > len(sample):
            self.stdout.write(f'... and {emails - len(sample)} more')
        if malformed:
            self.stdout.write(self.style.WARNING(
                f'{malformed} emails have malformed attachment lists and would fail.'
            ))

        self.stdout.write(self.style.SUCCESS(
            f'Would migrate {emails} emails with {attachments} attachments '
            f'using the {dispatcher.strategy} strategy.'
        ))
