from django.contrib import admin

from .models import MigrationRun, TaskClaim


@admin.register(MigrationRun)
class MigrationRunAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'status', 'strategy', 'total_emails', 'jobs_dispatched',
        'processed_emails', 'failed_emails', 'started_at', 'completed_at',
    ]
    list_filter = ['status', 'strategy']
    readonly_fields = [
        'total_emails', 'jobs_dispatched', 'processed_emails', 'failed_emails',
        'last_processed_email_id', 'last_dispatched_id',
        'started_at', 'completed_at', 'error_log', 'created_at', 'updated_at',
    ]
    date_hierarchy = 'created_at'


@admin.register(TaskClaim)
class TaskClaimAdmin(admin.ModelAdmin):
    list_display = ['task_id', 'email_id', 'run', 'claimed_at']
    list_filter = ['run']
    search_fields = ['task_id', 'email_id']
    raw_id_fields = ['run']
