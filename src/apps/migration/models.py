"""
Migration models - runs and in-flight task claims.
"""
from django.db import models

from apps.core.models import BaseModel, TimestampedModel


class MigrationRun(BaseModel):
    """
    One end-to-end migration attempt over the eligible emails.

    The counters and cursors are shared by every worker of the run and are
    only ever changed with single-row atomic UPDATEs (see RunTracker).
    """

    class StatusChoices(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PROCESSING = 'processing', 'Processing'
        COMPLETED = 'completed', 'Completed'
        FAILED = 'failed', 'Failed'

    class StrategyChoices(models.TextChoices):
        BATCH = 'batch', 'Batch loop'
        FANOUT = 'fanout', 'Fan-out'

    status = models.CharField(
        'Status',
        max_length=20,
        choices=StatusChoices.choices,
        default=StatusChoices.PENDING,
        db_index=True,
    )
    strategy = models.CharField(
        'Dispatch strategy',
        max_length=20,
        choices=StrategyChoices.choices,
        default=StrategyChoices.BATCH,
    )

    total_emails = models.PositiveBigIntegerField(
        'Total emails',
        default=0,
        help_text='Eligible emails when the run was created',
    )
    jobs_dispatched = models.PositiveBigIntegerField('Jobs dispatched', default=0)
    processed_emails = models.PositiveBigIntegerField('Processed', default=0)
    failed_emails = models.PositiveBigIntegerField('Failed', default=0)

    last_processed_email_id = models.PositiveBigIntegerField('Last processed ID', default=0)
    last_dispatched_id = models.PositiveBigIntegerField('Last dispatched ID', default=0)

    started_at = models.DateTimeField('Started at', null=True, blank=True)
    completed_at = models.DateTimeField('Completed at', null=True, blank=True)
    error_log = models.JSONField('Error log', default=list, blank=True)

    class Meta:
        verbose_name = 'Migration Run'
        verbose_name_plural = 'Migration Runs'
        ordering = ['-created_at']

    def __str__(self):
        return f'Run {self.pk} ({self.status})'

    @property
    def finished_count(self) -> int:
        return self.processed_emails + self.failed_emails

    @property
    def remaining(self) -> int:
        return max(self.total_emails - self.finished_count, 0)

    @property
    def is_completed(self) -> bool:
        return self.status == self.StatusChoices.COMPLETED


class TaskClaim(TimestampedModel):
    """
    A worker's claim on one email task. Exists while the task runs;
    claims older than the configured timeout belong to dead workers.
    """

    task_id = models.CharField('Task ID', max_length=255, unique=True)
    email_id = models.PositiveBigIntegerField('Email ID', db_index=True)
    run = models.ForeignKey(
        MigrationRun,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='claims',
        verbose_name='Run',
    )
    claimed_at = models.DateTimeField('Claimed at', db_index=True)

    class Meta:
        verbose_name = 'Task Claim'
        verbose_name_plural = 'Task Claims'
        ordering = ['claimed_at']

    def __str__(self):
        return f'Claim {self.task_id} on email #{self.email_id}'
