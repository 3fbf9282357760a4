"""
Create the archive bucket if it does not exist.

Usage:
    python manage.py create_bucket
"""
from django.core.management.base import BaseCommand, CommandError

from apps.core.storage import StorageError, get_storage_backend


class Command(BaseCommand):
    help = 'Create the archive storage bucket'

    def handle(self, *args, **options):
        storage = get_storage_backend()

        try:
            created = storage.ensure_bucket()
        except StorageError as e:
            raise CommandError(f'Failed to create bucket {storage.bucket_name}: {e}')

        if created:
            self.stdout.write(self.style.SUCCESS(f'Bucket {storage.bucket_name} created.'))
        else:
            self.stdout.write(f'Bucket {storage.bucket_name} already exists.')
