"""
Settings for the test suite: SQLite, in-process cache, eager Celery.
"""
import tempfile
from pathlib import Path

from .settings import *  # noqa: F401,F403

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = False

ARCHIVE_STORAGE_BACKEND = 'local'
ARCHIVE_STORAGE_PATH = tempfile.mkdtemp(prefix='email-archive-')
ATTACHMENT_STORAGE_ROOT = Path(tempfile.mkdtemp(prefix='email-attachments-'))

MIGRATION_DISPATCH_DELAY_STEP = 0

ALLOWED_HOSTS = ['localhost', '127.0.0.1', 'testserver']
