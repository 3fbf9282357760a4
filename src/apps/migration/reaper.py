"""
Releases claims of tasks whose worker is presumed dead.

A claim older than timeout + buffer is deleted, the email is charged one
attempt and, while it is still eligible, its task is published again.
The worker may in fact still be alive; a second upload to the same key
is harmless.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Optional

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from apps.emails.repositories import EmailRepository

from .conf import MigrationSettings
from .coordinator import CompletionCoordinator
from .models import TaskClaim

logger = logging.getLogger(__name__)

STALE_CLAIM_ERROR = 'Task claim expired; worker presumed dead'


@dataclass
class ReapResult:
    found: int = 0
    released: int = 0
    requeued: int = 0
    exhausted: int = 0
    email_ids: list = field(default_factory=list)


class StaleClaimReaper:

    def __init__(
        self,
        emails: EmailRepository,
        coordinator: CompletionCoordinator,
        config: MigrationSettings,
        publish: Optional[Callable] = None,
    ):
        self.emails = emails
        self.coordinator = coordinator
        self.config = config
        self.publish = publish

    def cutoff(self, timeout: Optional[int] = None):
        timeout = self.config.claim_timeout if timeout is None else timeout
        return timezone.now() - timedelta(seconds=timeout + self.config.claim_buffer)

    def stale_claims(self, timeout: Optional[int] = None) -> QuerySet:
        return TaskClaim.objects.filter(claimed_at__lt=self.cutoff(timeout)).order_by('claimed_at')

    def reap(self, timeout: Optional[int] = None, dry_run: bool = False) -> ReapResult:
        claims = list(self.stale_claims(timeout))
        result = ReapResult(found=len(claims), email_ids=[claim.email_id for claim in claims])

        if dry_run or not claims:
            return result

        for claim in claims:
            with transaction.atomic():
                deleted, _ = TaskClaim.objects.filter(pk=claim.pk).delete()
                if not deleted:
                    # Finished in the meantime
                    continue
                attempts = self.emails.record_failure(claim.email_id, STALE_CLAIM_ERROR)

            result.released += 1
            logger.warning(
                f'Released stale claim {claim.task_id} on email {claim.email_id} '
                f'(claimed at {claim.claimed_at}, attempts now {attempts})'
            )

            email = self.emails.find(claim.email_id)
            if email is None or email.is_migrated:
                continue

            if email.is_eligible(self.config.max_attempts):
                if self.publish:
                    self.publish(claim.email_id, claim.run_id)
                    result.requeued += 1
            else:
                result.exhausted += 1
                self.coordinator.record_failure(claim.run_id)

        logger.info(
            f'Reaped {result.released} stale claims: '
            f'{result.requeued} requeued, {result.exhausted} exhausted'
        )
        return result
