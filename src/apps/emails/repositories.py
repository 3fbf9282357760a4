"""
Data access for emails and attachments.

Every write here is a single UPDATE statement so concurrent workers never
read-modify-write a counter.
"""
import logging
from typing import Iterable, Optional

from django.db.models import F, QuerySet
from django.utils import timezone

from .models import Attachment, Email

logger = logging.getLogger(__name__)


class EmailRepository:
    """Queries and state transitions for Email rows."""

    def __init__(self, max_attempts: int):
        self.max_attempts = max_attempts

    def eligible(self) -> QuerySet:
        """Emails still to migrate: not migrated and below the attempt cap."""
        return Email.objects.filter(
            is_migrated=False,
            migration_attempts__lt=self.max_attempts,
        )

    def count_eligible(self) -> int:
        return self.eligible().count()

    def next_batch_for_update(self, after_id: int, limit: int) -> list[Email]:
        """
        Lock and return the next slice of eligible emails in id order.
        Must be called inside a transaction; the row locks are held until
        it commits.
        """
        return list(
            self.eligible()
            .filter(id__gt=after_id)
            .order_by('id')
            .select_for_update()[:limit]
        )

    def scan_eligible_ids(self, after_id: int, limit: int) -> list[int]:
        """Read-only page of eligible email ids in ascending order."""
        return list(
            self.eligible()
            .filter(id__gt=after_id)
            .order_by('id')
            .values_list('id', flat=True)[:limit]
        )

    def find(self, email_id: int) -> Optional[Email]:
        return Email.objects.filter(pk=email_id).first()

    def mark_migrated(self, email_id: int, body_key: str, attachment_keys: dict) -> int:
        return Email.objects.filter(pk=email_id).update(
            body_remote_key=body_key,
            attachment_remote_keys=attachment_keys,
            is_migrated=True,
            migration_error=None,
            migration_attempted_at=timezone.now(),
        )

    def record_failure(self, email_id: int, message: str) -> int:
        """
        Count one failed attempt and store the error.

        Returns:
            Attempts after the update
        """
        Email.objects.filter(
            pk=email_id,
            is_migrated=False,
            migration_attempts__lt=self.max_attempts,
        ).update(
            migration_attempts=F('migration_attempts') + 1,
            migration_attempted_at=timezone.now(),
            migration_error=message,
        )
        return self.attempts_of(email_id)

    def force_exhausted(self, email_id: int, message: str) -> int:
        """Push an unmigrated email to the attempt cap so nothing retries it."""
        return Email.objects.filter(pk=email_id, is_migrated=False).update(
            migration_attempts=self.max_attempts,
            migration_attempted_at=timezone.now(),
            migration_error=message,
        )

    def attempts_of(self, email_id: int) -> int:
        attempts = (
            Email.objects.filter(pk=email_id)
            .values_list('migration_attempts', flat=True)
            .first()
        )
        return attempts or 0

    def failed(self, limit: Optional[int] = 100) -> QuerySet:
        """Emails that reached the attempt cap without migrating."""
        queryset = Email.objects.filter(
            is_migrated=False,
            migration_attempts__gte=self.max_attempts,
        ).order_by('id')
        if limit:
            queryset = queryset[:limit]
        return queryset

    def count_failed(self) -> int:
        return Email.objects.filter(
            is_migrated=False,
            migration_attempts__gte=self.max_attempts,
        ).count()

    def reset_attempts(self, email_ids: Iterable[int]) -> int:
        """Operator action: make permanently failed emails eligible again."""
        updated = Email.objects.filter(
            pk__in=list(email_ids),
            is_migrated=False,
        ).update(
            migration_attempts=0,
            migration_error=None,
        )
        logger.info(f'Reset migration attempts for {updated} emails')
        return updated


class AttachmentRepository:
    """Queries and state transitions for Attachment rows."""

    def find(self, attachment_id: int) -> Optional[Attachment]:
        return Attachment.objects.filter(pk=attachment_id).first()

    def mark_migrated(self, attachment_id: int, remote_key: str) -> int:
        return Attachment.objects.filter(pk=attachment_id).update(
            remote_key=remote_key,
            is_migrated=True,
        )

    def count_unmigrated(self) -> int:
        return Attachment.objects.filter(is_migrated=False).count()
