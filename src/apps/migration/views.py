"""
JSON monitoring endpoint for the migration.
"""
from django.http import JsonResponse
from django.views.decorators.http import require_GET

from apps.emails.repositories import AttachmentRepository, EmailRepository

from .conf import get_migration_settings
from .stats import QueueStats, RunStats, failed_email_summary
from .tracker import RunTracker


@require_GET
def migration_status(request):
    """Status of the latest run, or of ?run=<id>."""
    config = get_migration_settings()
    tracker = RunTracker()
    emails = EmailRepository(max_attempts=config.max_attempts)

    run_id = request.GET.get('run')
    run = tracker.find_run(run_id) if run_id else tracker.latest_run()

    if run_id and run is None:
        return JsonResponse({'error': f'Migration run not found: {run_id}'}, status=404)

    return JsonResponse({
        'run': RunStats.for_run(run).as_dict() if run else None,
        'queue': QueueStats.collect(config, run).as_dict(),
        'emails': {
            'eligible': emails.count_eligible(),
            'permanently_failed': emails.count_failed(),
        },
        'attachments': {
            'pending': AttachmentRepository().count_unmigrated(),
        },
        'failed_emails': failed_email_summary(emails, limit=10),
    })
