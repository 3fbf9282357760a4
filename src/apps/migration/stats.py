"""
Progress figures for a run: used by migration_status, the migrate command
and the JSON status endpoint.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from django.utils import timezone

from apps.emails.repositories import EmailRepository

from .conf import MigrationSettings
from .models import MigrationRun, TaskClaim


@dataclass
class RunStats:
    run_id: str
    status: str
    strategy: str
    total: int
    dispatched: int
    processed: int
    failed: int
    remaining: int
    completion_percent: float
    success_rate: float
    rate_per_minute: float
    elapsed: Optional[timedelta]
    eta: Optional[timedelta]
    started_at: Optional[object] = None
    completed_at: Optional[object] = None

    @classmethod
    def for_run(cls, run: MigrationRun, now=None) -> 'RunStats':
        now = now or timezone.now()
        finished = run.finished_count
        remaining = run.remaining

        if run.total_emails:
            completion = round(finished / run.total_emails * 100, 2)
        else:
            completion = 100.0 if run.is_completed else 0.0

        success_rate = round(run.processed_emails / finished * 100, 2) if finished else 0.0

        elapsed = None
        if run.started_at:
            elapsed = (run.completed_at or now) - run.started_at

        rate = 0.0
        if elapsed and elapsed.total_seconds() > 0:
            rate = round(finished / (elapsed.total_seconds() / 60), 2)

        eta = None
        if rate > 0 and remaining and not run.is_completed:
            eta = timedelta(minutes=remaining / rate)

        return cls(
            run_id=str(run.pk),
            status=run.status,
            strategy=run.strategy,
            total=run.total_emails,
            dispatched=run.jobs_dispatched,
            processed=run.processed_emails,
            failed=run.failed_emails,
            remaining=remaining,
            completion_percent=completion,
            success_rate=success_rate,
            rate_per_minute=rate,
            elapsed=elapsed,
            eta=eta,
            started_at=run.started_at,
            completed_at=run.completed_at,
        )

    def as_dict(self) -> dict:
        return {
            'run_id': self.run_id,
            'status': self.status,
            'strategy': self.strategy,
            'total': self.total,
            'dispatched': self.dispatched,
            'processed': self.processed,
            'failed': self.failed,
            'remaining': self.remaining,
            'completion_percent': self.completion_percent,
            'success_rate': self.success_rate,
            'rate_per_minute': self.rate_per_minute,
            'elapsed_seconds': int(self.elapsed.total_seconds()) if self.elapsed else None,
            'eta_seconds': int(self.eta.total_seconds()) if self.eta else None,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class QueueStats:
    in_flight: int
    stale: int
    active_workers: int
    oldest_claim_at: Optional[object] = None

    @classmethod
    def collect(cls, config: MigrationSettings, run: Optional[MigrationRun] = None) -> 'QueueStats':
        claims = TaskClaim.objects.all()
        if run is not None:
            claims = claims.filter(run=run)

        stale_before = timezone.now() - timedelta(seconds=config.claim_timeout + config.claim_buffer)
        in_flight = claims.count()
        stale = claims.filter(claimed_at__lt=stale_before).count()
        oldest = claims.order_by('claimed_at').values_list('claimed_at', flat=True).first()

        return cls(
            in_flight=in_flight,
            stale=stale,
            # One task per worker process at a time (prefetch multiplier 1)
            active_workers=in_flight - stale,
            oldest_claim_at=oldest,
        )

    def as_dict(self) -> dict:
        return {
            'in_flight': self.in_flight,
            'stale': self.stale,
            'active_workers': self.active_workers,
            'oldest_claim_at': self.oldest_claim_at.isoformat() if self.oldest_claim_at else None,
        }


def format_duration(value: Optional[timedelta]) -> str:
    if value is None:
        return '-'
    seconds = int(value.total_seconds())
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    if hours:
        return f'{hours}h {minutes}m {seconds}s'
    if minutes:
        return f'{minutes}m {seconds}s'
    return f'{seconds}s'


def failed_email_summary(emails: EmailRepository, limit: int = 10) -> list[dict]:
    return [
        {
            'id': email.pk,
            'subject': email.subject,
            'attempts': email.migration_attempts,
            'error': email.migration_error,
            'attempted_at': email.migration_attempted_at.isoformat() if email.migration_attempted_at else None,
        }
        for email in emails.failed(limit=limit)
    ]
