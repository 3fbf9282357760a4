# Generated migration for Email and Attachment

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Attachment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated')),
                ('name', models.CharField(max_length=255, verbose_name='File name')),
                ('path', models.CharField(help_text='Path relative to ATTACHMENT_STORAGE_ROOT', max_length=1024, verbose_name='Local path')),
                ('size', models.PositiveBigIntegerField(default=0, verbose_name='Size (bytes)')),
                ('content_type', models.CharField(default='application/octet-stream', max_length=128, verbose_name='Content type')),
                ('remote_key', models.CharField(blank=True, max_length=1024, null=True, verbose_name='Archive key')),
                ('is_migrated', models.BooleanField(db_index=True, default=False, verbose_name='Migrated')),
            ],
            options={
                'verbose_name': 'Attachment',
                'verbose_name_plural': 'Attachments',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='Email',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated')),
                ('client_id', models.PositiveBigIntegerField(default=0, verbose_name='Client ID')),
                ('loan_id', models.PositiveBigIntegerField(default=0, verbose_name='Loan ID')),
                ('email_template_id', models.PositiveBigIntegerField(default=0, verbose_name='Template ID')),
                ('receiver_email', models.CharField(max_length=255, verbose_name='Receiver')),
                ('sender_email', models.CharField(max_length=255, verbose_name='Sender')),
                ('subject', models.CharField(max_length=255, verbose_name='Subject')),
                ('body', models.TextField(verbose_name='Body (HTML)')),
                ('file_ids', models.JSONField(blank=True, default=list, verbose_name='Attachment IDs')),
                ('sent_at', models.DateTimeField(blank=True, null=True, verbose_name='Sent at')),
                ('body_remote_key', models.CharField(blank=True, max_length=1024, null=True, verbose_name='Body archive key')),
                ('attachment_remote_keys', models.JSONField(blank=True, default=dict, help_text='Attachment ID -> archive key', verbose_name='Attachment archive keys')),
                ('is_migrated', models.BooleanField(default=False, verbose_name='Migrated')),
                ('migration_attempts', models.PositiveIntegerField(default=0, verbose_name='Migration attempts')),
                ('migration_error', models.TextField(blank=True, null=True, verbose_name='Last migration error')),
                ('migration_attempted_at', models.DateTimeField(blank=True, null=True, verbose_name='Last attempt at')),
            ],
            options={
                'verbose_name': 'Email',
                'verbose_name_plural': 'Emails',
                'ordering': ['id'],
            },
        ),
        migrations.AddIndex(
            model_name='email',
            index=models.Index(fields=['is_migrated', 'id'], name='emails_emai_is_migr_idx'),
        ),
        migrations.AddIndex(
            model_name='email',
            index=models.Index(fields=['migration_attempts'], name='emails_emai_migrati_idx'),
        ),
    ]
