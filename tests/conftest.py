"""
Pytest configuration and fixtures.
"""
import os
import sys
import uuid
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

import django
import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings_test')
django.setup()

from django.conf import settings  # noqa: E402
from django.utils import timezone  # noqa: E402

from apps.core.storage import StorageBackend, StorageError  # noqa: E402
from apps.emails.models import Attachment, Email  # noqa: E402
from apps.migration.conf import MigrationSettings  # noqa: E402
from apps.migration.services import build_migration_service  # noqa: E402


class InMemoryStorage(StorageBackend):
    """Records every put; keys listed in fail_keys raise StorageError."""

    bucket_name = 'test-archive'

    def __init__(self):
        self.objects = {}
        self.content_types = {}
        self.puts = []
        self.fail_keys = set()
        self.fail_all = False

    def _check(self, key):
        if self.fail_all or key in self.fail_keys:
            raise StorageError(f'Simulated upload failure for {key}', key=key)

    def put_content(self, content, key, content_type='application/octet-stream'):
        self._check(key)
        self.objects[key] = self.to_bytes(content)
        self.content_types[key] = content_type
        self.puts.append(key)
        return key

    def put_file(self, local_path, key, content_type=None):
        self._check(key)
        self.objects[key] = Path(local_path).read_bytes()
        self.content_types[key] = content_type
        self.puts.append(key)
        return key

    def exists(self, key):
        return key in self.objects


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def migration_config():
    return MigrationSettings(dispatch_delay_step=0)


@pytest.fixture
def service(storage, migration_config):
    return build_migration_service(config=migration_config, storage=storage)


@pytest.fixture
def task_storage(storage):
    """Make tasks and commands build their service on the in-memory store."""
    with patch('apps.migration.services.get_storage_backend', return_value=storage):
        yield storage


@pytest.fixture
def make_email():
    def _make_email(**kwargs):
        defaults = {
            'client_id': 1,
            'loan_id': 1,
            'email_template_id': 1,
            'receiver_email': 'client@example.com',
            'sender_email': 'noreply@example.com',
            'subject': 'Your statement',
            'body': '<html><body>Statement</body></html>',
            'file_ids': [],
            'sent_at': timezone.now(),
        }
        defaults.update(kwargs)
        return Email.objects.create(**defaults)
    return _make_email


@pytest.fixture
def make_attachment():
    """Attachment row plus its local file (unless with_file=False)."""
    def _make_attachment(name='statement.pdf', content=b'%PDF-1.4 test', with_file=True, **kwargs):
        attachment = Attachment.objects.create(
            name=name,
            path=kwargs.pop('path', f'test/{uuid.uuid4().hex}/{name}'),
            size=len(content),
            content_type=kwargs.pop('content_type', 'application/pdf'),
            **kwargs,
        )
        if with_file:
            local_path = Path(settings.ATTACHMENT_STORAGE_ROOT) / attachment.path
            local_path.parent.mkdir(parents=True, exist_ok=True)
            local_path.write_bytes(content)
        return attachment
    return _make_attachment


@pytest.fixture
def old_timestamp():
    return timezone.now() - timedelta(hours=1)
