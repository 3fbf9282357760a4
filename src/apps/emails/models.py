"""
Email models - the records being archived and their attachments.
"""
import json
from pathlib import Path

from django.conf import settings
from django.db import models

from apps.core.models import TimestampedModel


class Attachment(TimestampedModel):
    """
    A file attached to one or more emails.
    The binary lives on local disk until migrated to the archive bucket.
    """

    name = models.CharField('File name', max_length=255)
    path = models.CharField(
        'Local path',
        max_length=1024,
        help_text='Path relative to ATTACHMENT_STORAGE_ROOT',
    )
    size = models.PositiveBigIntegerField('Size (bytes)', default=0)
    content_type = models.CharField(
        'Content type',
        max_length=128,
        default='application/octet-stream',
    )

    remote_key = models.CharField('Archive key', max_length=1024, null=True, blank=True)
    is_migrated = models.BooleanField('Migrated', default=False, db_index=True)

    class Meta:
        verbose_name = 'Attachment'
        verbose_name_plural = 'Attachments'
        ordering = ['id']

    def __str__(self):
        return f'{self.name} (#{self.pk})'

    @property
    def local_path(self) -> Path:
        root = Path(getattr(settings, 'ATTACHMENT_STORAGE_ROOT', Path.cwd() / 'data' / 'attachments'))
        return root / self.path.lstrip('/')


class Email(TimestampedModel):
    """
    A sent email. The HTML body and attachments are moved to the archive
    bucket; the row keeps the keys they were stored under.
    """

    client_id = models.PositiveBigIntegerField('Client ID', default=0)
    loan_id = models.PositiveBigIntegerField('Loan ID', default=0)
    email_template_id = models.PositiveBigIntegerField('Template ID', default=0)
    receiver_email = models.CharField('Receiver', max_length=255)
    sender_email = models.CharField('Sender', max_length=255)
    subject = models.CharField('Subject', max_length=255)
    body = models.TextField('Body (HTML)')
    file_ids = models.JSONField('Attachment IDs', default=list, blank=True)
    sent_at = models.DateTimeField('Sent at', null=True, blank=True)

    # Archive state
    body_remote_key = models.CharField('Body archive key', max_length=1024, null=True, blank=True)
    attachment_remote_keys = models.JSONField(
        'Attachment archive keys',
        default=dict,
        blank=True,
        help_text='Attachment ID -> archive key',
    )
    is_migrated = models.BooleanField('Migrated', default=False)
    migration_attempts = models.PositiveIntegerField('Migration attempts', default=0)
    migration_error = models.TextField('Last migration error', null=True, blank=True)
    migration_attempted_at = models.DateTimeField('Last attempt at', null=True, blank=True)

    class Meta:
        verbose_name = 'Email'
        verbose_name_plural = 'Emails'
        ordering = ['id']
        indexes = [
            models.Index(fields=['is_migrated', 'id'], name='emails_emai_is_migr_idx'),
            models.Index(fields=['migration_attempts'], name='emails_emai_migrati_idx'),
        ]

    def __str__(self):
        return f'Email #{self.pk}: {self.subject}'

    @property
    def attachment_ids(self) -> list[int]:
        """Attachment IDs in order; tolerates legacy JSON-encoded strings."""
        file_ids = self.file_ids or []
        if isinstance(file_ids, str):
            try:
                file_ids = json.loads(file_ids) or []
            except ValueError:
                file_ids = []
        return [int(file_id) for file_id in file_ids]

    def is_eligible(self, max_attempts: int) -> bool:
        return not self.is_migrated and self.migration_attempts < max_attempts
