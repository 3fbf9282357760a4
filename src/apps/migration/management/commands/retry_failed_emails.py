"""
List or reset emails that exhausted their migration attempts.

Usage:
    python manage.py retry_failed_emails
    python manage.py retry_failed_emails --reset --limit 500
"""
from django.core.management.base import BaseCommand

from apps.migration.services import build_migration_service

from ._output import write_table

SHOWN = 20


class Command(BaseCommand):
    help = 'Retry failed email migrations'

    def add_arguments(self, parser):
        parser.add_argument('--limit', type=int, default=100, help='Number of emails to retry')
        parser.add_argument('--reset', action='store_true', help='Reset attempt counter')
        parser.add_argument('--yes', '-y', action='store_true', help='Do not ask for confirmation')

    def handle(self, *args, **options):
        service = build_migration_service()
        failed = list(service.emails.failed(limit=options['limit']))

        if not failed:
            self.stdout.write(self.style.SUCCESS('No failed emails found.'))
            return

        self.stdout.write(f'Found {len(failed)} failed emails to retry.')

        if not options['reset']:
            self.stdout.write(self.style.WARNING('Run with --reset to reset attempt counters.'))
            write_table(self.stdout, ['Email ID', 'Attempts', 'Last error'], [
                [email.pk, email.migration_attempts, (email.migration_error or '')[:60]]
                for email in failed[:SHOWN]
            ])
            if len(failed) > SHOWN:
                self.stdout.write(f'... and {len(failed) - SHOWN} more')
            return

        if not options['yes']:
            answer = input('This will reset the attempt counter for these emails. Continue? [y/N] ')
            if answer.strip().lower() not in ('y', 'yes'):
                self.stdout.write('Operation cancelled.')
                return

        updated = service.emails.reset_attempts(email.pk for email in failed)
        self.stdout.write(self.style.SUCCESS(f'Reset attempt counters for {updated} emails.'))
        self.stdout.write('Run "python manage.py migrate_emails" to retry the migration.')
