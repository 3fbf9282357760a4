"""
Migrates a single email: body and attachments to the archive bucket,
then one atomic update of the email row.
"""
import logging
from typing import Optional

from django.db import transaction

from apps.core.storage import StorageBackend, StorageError
from apps.emails.models import Attachment, Email
from apps.emails.repositories import AttachmentRepository, EmailRepository

from .conf import MigrationSettings
from .exceptions import AttachmentNotFoundError, TransientUploadError
from .results import MigrationOutcome, OutcomeStatus

logger = logging.getLogger(__name__)

SHARD_SIZE = 1000


def email_body_key(email_id: int, prefix: str = 'emails/') -> str:
    """emails/{id div 1000}/{id}.html"""
    return f'{prefix}{email_id // SHARD_SIZE}/{email_id}.html'


def attachment_key(attachment_id: int, name: str, prefix: str = 'attachments/') -> str:
    """attachments/{id div 1000}/{id}/{name}"""
    safe_name = (name or str(attachment_id)).replace('/', '_').replace('\\', '_')
    return f'{prefix}{attachment_id // SHARD_SIZE}/{attachment_id}/{safe_name}'


def truncate_error(error, max_length: int = 500) -> str:
    message = str(error) or error.__class__.__name__
    return message[:max_length]


class RecordMigrator:
    """
    Uploads are repeatable: keys are derived from ids, so a retried email
    overwrites whatever a crashed attempt left behind.
    """

    def __init__(
        self,
        storage: StorageBackend,
        emails: EmailRepository,
        attachments: AttachmentRepository,
        config: MigrationSettings,
    ):
        self.storage = storage
        self.emails = emails
        self.attachments = attachments
        self.config = config

    def migrate(self, email_id: int) -> MigrationOutcome:
        email = self.emails.find(email_id)
        if email is None:
            logger.warning(f'Email {email_id} not found, skipping')
            return MigrationOutcome(status=OutcomeStatus.NOT_FOUND, email_id=email_id)

        return self.migrate_email(email)

    def migrate_email(self, email: Email) -> MigrationOutcome:
        if email.is_migrated:
            logger.info(f'Email {email.pk} already migrated, skipping')
            return MigrationOutcome(
                status=OutcomeStatus.ALREADY_MIGRATED,
                email_id=email.pk,
                attempts=email.migration_attempts,
                body_key=email.body_remote_key,
            )

        if email.migration_attempts >= self.config.max_attempts:
            logger.warning(
                f'Email {email.pk} reached max attempts ({email.migration_attempts}), skipping'
            )
            return MigrationOutcome(
                status=OutcomeStatus.EXHAUSTED,
                email_id=email.pk,
                attempts=email.migration_attempts,
                error=email.migration_error,
            )

        try:
            # One savepoint per email; failure bookkeeping runs after its rollback
            with transaction.atomic():
                body_key = self._upload_body(email)
                attachment_keys = self._upload_attachments(email)
                self.emails.mark_migrated(email.pk, body_key, attachment_keys)

        except Exception as e:
            logger.exception(f'Failed to migrate email {email.pk}: {e}')
            error = truncate_error(e, self.config.error_max_length)
            attempts = self.emails.record_failure(email.pk, error)
            return MigrationOutcome(
                status=OutcomeStatus.FAILED,
                email_id=email.pk,
                attempts=attempts,
                error=error,
                retryable=attempts < self.config.max_attempts,
            )

        logger.info(f'Migrated email {email.pk} ({len(attachment_keys)} attachments)')
        return MigrationOutcome(
            status=OutcomeStatus.MIGRATED,
            email_id=email.pk,
            attempts=email.migration_attempts,
            body_key=body_key,
            attachment_count=len(attachment_keys),
        )

    def _upload_body(self, email: Email) -> str:
        key = email_body_key(email.pk, self.config.email_prefix)
        try:
            return self.storage.put_content(email.body or '', key, content_type='text/html')
        except StorageError as e:
            raise TransientUploadError(str(e), key=key) from e

    def _upload_attachments(self, email: Email) -> dict:
        """
        Returns:
            Map of attachment id (as str, JSON keys) -> archive key
        """
        keys = {}
        for attachment_id in email.attachment_ids:
            attachment = self.attachments.find(attachment_id)
            if attachment is None:
                logger.warning(f'Attachment {attachment_id} of email {email.pk} not found, skipping')
                continue

            keys[str(attachment_id)] = self._upload_attachment(attachment)
        return keys

    def _upload_attachment(self, attachment: Attachment) -> str:
        local_path = attachment.local_path
        if not local_path.is_file():
            raise AttachmentNotFoundError(attachment.pk, str(local_path))

        key = attachment_key(attachment.pk, attachment.name, self.config.attachment_prefix)
        try:
            self.storage.put_file(local_path, key, content_type=attachment.content_type or None)
        except StorageError as e:
            raise TransientUploadError(str(e), key=key) from e

        self.attachments.mark_migrated(attachment.pk, key)
        return key

    def plan(self, email: Email) -> Optional[dict]:
        """What a migration of this email would upload (dry run)."""
        if not email.is_eligible(self.config.max_attempts):
            return None

        try:
            attachment_ids, error = email.attachment_ids, None
        except (TypeError, ValueError) as e:
            # The real run records this as a failed attempt
            attachment_ids, error = [], f'Malformed file_ids: {e}'

        return {
            'email_id': email.pk,
            'body_key': email_body_key(email.pk, self.config.email_prefix),
            'attachment_ids': attachment_ids,
            'error': error,
        }
