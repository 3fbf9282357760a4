from django.contrib import admin

from .models import Attachment, Email


@admin.register(Email)
class EmailAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'subject', 'receiver_email', 'is_migrated',
        'migration_attempts', 'migration_attempted_at', 'sent_at',
    ]
    list_filter = ['is_migrated', 'migration_attempts']
    search_fields = ['subject', 'receiver_email', 'sender_email']
    readonly_fields = [
        'created_at', 'updated_at',
        'body_remote_key', 'attachment_remote_keys',
        'migration_attempted_at',
    ]
    date_hierarchy = 'sent_at'


@admin.register(Attachment)
class AttachmentAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'content_type', 'size', 'is_migrated', 'remote_key']
    list_filter = ['is_migrated', 'content_type']
    search_fields = ['name', 'path']
    readonly_fields = ['created_at', 'updated_at', 'remote_key']
