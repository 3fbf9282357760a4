"""
Show migration progress.

Usage:
    python manage.py migration_status
    python manage.py migration_status --run <run-id>
    python manage.py migration_status --watch --interval 5
"""
import time

from django.core.management.base import BaseCommand, CommandError

from apps.migration.services import build_migration_service
from apps.migration.stats import QueueStats, RunStats

from ._output import write_queue_stats, write_run_stats, write_table


class Command(BaseCommand):
    help = 'Show email migration status'

    def add_arguments(self, parser):
        parser.add_argument('--run', metavar='RUN_ID', help='Run to show (default: latest)')
        parser.add_argument('--watch', '-w', action='store_true', help='Refresh continuously')
        parser.add_argument('--interval', type=int, default=5, help='Refresh interval in seconds')
        parser.add_argument('--failed-limit', type=int, default=10, help='Failed emails to list')

    def handle(self, *args, **options):
        service = build_migration_service()

        try:
            while True:
                run = self.show(service, options)
                if not options['watch'] or (run and run.is_completed):
                    break
                time.sleep(options['interval'])
                self.stdout.write('')
        except KeyboardInterrupt:
            self.stdout.write('Stopped watching.')

    def show(self, service, options):
        if options['run']:
            run = service.tracker.find_run(options['run'])
            if run is None:
                raise CommandError(f'Migration run not found: {options["run"]}')
        else:
            run = service.tracker.latest_run()

        if run is None:
            self.stdout.write(self.style.WARNING('No migration runs found.'))
        else:
            self.stdout.write(self.style.MIGRATE_HEADING('Migration run'))
            write_run_stats(self.stdout, RunStats.for_run(run))

        self.stdout.write(self.style.MIGRATE_HEADING('Queue'))
        write_queue_stats(self.stdout, QueueStats.collect(service.config, run))

        self.stdout.write(
            f'Eligible emails: {service.emails.count_eligible()}  '
            f'Permanently failed: {service.emails.count_failed()}  '
            f'Pending attachments: {service.attachments.count_unmigrated()}'
        )

        failed = list(service.emails.failed(limit=options['failed_limit']))
        if failed:
            self.stdout.write(self.style.MIGRATE_HEADING('Failed emails'))
            write_table(self.stdout, ['Email ID', 'Attempts', 'Last error'], [
                [email.pk, email.migration_attempts, (email.migration_error or '')[:60]]
                for email in failed
            ])

        if run and run.error_log:
            self.stdout.write(self.style.MIGRATE_HEADING('Run errors'))
            for entry in run.error_log[-5:]:
                self.stdout.write(self.style.ERROR(f'  [{entry.get("at")}] {entry.get("message")}'))

        return run
