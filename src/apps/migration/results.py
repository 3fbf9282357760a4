"""
Value objects returned by the migration engine.
"""
from dataclasses import dataclass
from typing import Optional

from django.db import models


@dataclass(frozen=True)
class ProcessingResult:
    """Outcome of one dispatch unit; drives the caller's loop."""

    is_complete: bool
    processed_count: int = 0
    failed_count: int = 0
    dispatched_count: int = 0

    def as_dict(self) -> dict:
        return {
            'is_complete': self.is_complete,
            'processed_count': self.processed_count,
            'failed_count': self.failed_count,
            'dispatched_count': self.dispatched_count,
        }


class OutcomeStatus(models.TextChoices):
    MIGRATED = 'migrated', 'Migrated'
    ALREADY_MIGRATED = 'already_migrated', 'Already migrated'
    NOT_FOUND = 'not_found', 'Not found'
    EXHAUSTED = 'exhausted', 'Attempts exhausted'
    FAILED = 'failed', 'Failed'


@dataclass(frozen=True)
class MigrationOutcome:
    """What happened to one email during one migration call."""

    status: str
    email_id: int
    attempts: int = 0
    error: Optional[str] = None
    retryable: bool = False
    body_key: Optional[str] = None
    attachment_count: int = 0

    @property
    def is_success(self) -> bool:
        return self.status == OutcomeStatus.MIGRATED

    @property
    def is_failure(self) -> bool:
        return self.status in (OutcomeStatus.FAILED, OutcomeStatus.EXHAUSTED)

    @property
    def should_retry(self) -> bool:
        return self.status == OutcomeStatus.FAILED and self.retryable

    def as_dict(self) -> dict:
        return {
            'status': str(self.status),
            'email_id': self.email_id,
            'attempts': self.attempts,
            'error': self.error,
            'retryable': self.retryable,
            'body_key': self.body_key,
            'attachment_count': self.attachment_count,
        }
