"""
Migration knobs read from Django settings.
"""
from dataclasses import dataclass, replace

from django.conf import settings


@dataclass(frozen=True)
class MigrationSettings:
    batch_size: int = 10
    max_attempts: int = 3
    dispatch_strategy: str = 'batch'
    dispatch_page_size: int = 500
    dispatch_delay_step: float = 0.1
    queue: str = 'email-migration'
    task_max_retries: int = 2
    task_retry_delay: int = 300
    claim_timeout: int = 300
    claim_buffer: int = 60
    error_max_length: int = 500
    email_prefix: str = 'emails/'
    attachment_prefix: str = 'attachments/'

    @classmethod
    def from_django(cls) -> 'MigrationSettings':
        defaults = cls()
        return cls(
            batch_size=getattr(settings, 'MIGRATION_BATCH_SIZE', defaults.batch_size),
            max_attempts=getattr(settings, 'MIGRATION_MAX_ATTEMPTS', defaults.max_attempts),
            dispatch_strategy=getattr(settings, 'MIGRATION_DISPATCH_STRATEGY', defaults.dispatch_strategy),
            dispatch_page_size=getattr(settings, 'MIGRATION_DISPATCH_PAGE_SIZE', defaults.dispatch_page_size),
            dispatch_delay_step=getattr(settings, 'MIGRATION_DISPATCH_DELAY_STEP', defaults.dispatch_delay_step),
            queue=getattr(settings, 'MIGRATION_QUEUE', defaults.queue),
            task_max_retries=getattr(settings, 'MIGRATION_TASK_MAX_RETRIES', defaults.task_max_retries),
            task_retry_delay=getattr(settings, 'MIGRATION_TASK_RETRY_DELAY', defaults.task_retry_delay),
            claim_timeout=getattr(settings, 'MIGRATION_CLAIM_TIMEOUT', defaults.claim_timeout),
            claim_buffer=getattr(settings, 'MIGRATION_CLAIM_BUFFER', defaults.claim_buffer),
            error_max_length=getattr(settings, 'MIGRATION_ERROR_MAX_LENGTH', defaults.error_max_length),
            email_prefix=getattr(settings, 'MIGRATION_EMAIL_PREFIX', defaults.email_prefix),
            attachment_prefix=getattr(settings, 'MIGRATION_ATTACHMENT_PREFIX', defaults.attachment_prefix),
        )

    def with_overrides(self, **overrides) -> 'MigrationSettings':
        """Copy with the non-None overrides applied (command-line flags)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def get_migration_settings() -> MigrationSettings:
    return MigrationSettings.from_django()
