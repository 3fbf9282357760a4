"""
Infrastructure checks for what the migration workers depend on.
"""
from django.core.cache import cache
from django.db import connection
from django.http import JsonResponse

from apps.core.storage import get_storage_backend


def check_database():
    with connection.cursor() as cursor:
        cursor.execute('SELECT 1')


def check_cache():
    # migrate_emails takes its single-instance lock here
    cache.set('health_check', 'ok', 10)
    if cache.get('health_check') != 'ok':
        raise RuntimeError('cache read failed')


def check_archive_bucket():
    get_storage_backend().check_bucket()


def check_broker():
    from config.celery import app

    with app.connection_for_write() as conn:
        conn.ensure_connection(max_retries=1)


HEALTH_CHECKS = {
    'database': check_database,
    'cache': check_cache,
    'archive_bucket': check_archive_bucket,
    'broker': check_broker,
}

# Workers cannot take tasks without these
READINESS_CHECKS = ('database', 'archive_bucket', 'broker')


def run_checks(names) -> dict:
    results = {}
    for name in names:
        try:
            HEALTH_CHECKS[name]()
            results[name] = 'ok'
        except Exception as e:
            results[name] = str(e) or e.__class__.__name__
    return results


def health_check(request):
    """Health check endpoint for monitoring."""
    checks = run_checks(HEALTH_CHECKS)
    healthy = all(result == 'ok' for result in checks.values())

    return JsonResponse(
        {
            'status': 'ok' if healthy else 'degraded',
            'service': 'email_archive',
            'checks': checks,
        },
        status=200 if healthy else 503,
    )


def ready_check(request):
    """Readiness check for Kubernetes/Docker."""
    checks = run_checks(READINESS_CHECKS)
    failed = {name: result for name, result in checks.items() if result != 'ok'}

    if failed:
        return JsonResponse({'status': 'not_ready', 'errors': failed}, status=503)
    return JsonResponse({'status': 'ready'})
