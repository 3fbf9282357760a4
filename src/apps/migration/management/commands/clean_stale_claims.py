"""
Release claims of migration tasks whose worker is presumed dead.

Usage:
    python manage.py clean_stale_claims
    python manage.py clean_stale_claims --timeout 600 --dry-run
"""
from django.core.management.base import BaseCommand

from apps.migration.reaper import StaleClaimReaper
from apps.migration.services import build_migration_service
from apps.migration.tasks import enqueue_email

from ._output import write_table


class Command(BaseCommand):
    help = 'Clean up stale migration task claims'

    def add_arguments(self, parser):
        parser.add_argument('--timeout', type=int, help='Claim age in seconds (default: MIGRATION_CLAIM_TIMEOUT)')
        parser.add_argument('--dry-run', action='store_true', help='Only show stale claims')

    def handle(self, *args, **options):
        service = build_migration_service()
        reaper = StaleClaimReaper(
            service.emails,
            service.coordinator,
            service.config,
            publish=enqueue_email,
        )

        claims = list(reaper.stale_claims(options['timeout']))
        if not claims:
            self.stdout.write(self.style.SUCCESS('No stale claims found.'))
            return

        write_table(self.stdout, ['Task ID', 'Email ID', 'Claimed at'], [
            [claim.task_id, claim.email_id, claim.claimed_at] for claim in claims
        ])

        if options['dry_run']:
            self.stdout.write(self.style.WARNING(f'Would release {len(claims)} stale claims (dry run).'))
            return

        result = reaper.reap(timeout=options['timeout'])
        self.stdout.write(self.style.SUCCESS(
            f'Released {result.released} stale claims: '
            f'{result.requeued} requeued, {result.exhausted} exhausted.'
        ))
