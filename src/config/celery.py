"""
Celery configuration for Email Archive project.
"""
import os

from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('email_archive')

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django apps.
app.autodiscover_tasks()


# Celery Beat Schedule
# These are defaults; the actual schedule is managed via django-celery-beat
# in the database, allowing dynamic changes through Django Admin.
app.conf.beat_schedule = {
    # Release claims of tasks whose worker is presumed dead - every 5 minutes
    'reap-stale-migration-claims': {
        'task': 'apps.migration.tasks.reap_stale_claims',
        'schedule': crontab(minute='*/5'),
        'options': {'queue': 'maintenance'},
    },
}

# Task routing
app.conf.task_routes = {
    'apps.migration.tasks.migrate_email': {'queue': 'email-migration'},
    'apps.migration.tasks.dispatch_run': {'queue': 'dispatch'},
    'apps.migration.tasks.reap_stale_claims': {'queue': 'maintenance'},
}
