# Generated migration for MigrationRun and TaskClaim

import uuid

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='MigrationRun',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('processing', 'Processing'), ('completed', 'Completed'), ('failed', 'Failed')], db_index=True, default='pending', max_length=20, verbose_name='Status')),
                ('strategy', models.CharField(choices=[('batch', 'Batch loop'), ('fanout', 'Fan-out')], default='batch', max_length=20, verbose_name='Dispatch strategy')),
                ('total_emails', models.PositiveBigIntegerField(default=0, help_text='Eligible emails when the run was created', verbose_name='Total emails')),
                ('jobs_dispatched', models.PositiveBigIntegerField(default=0, verbose_name='Jobs dispatched')),
                ('processed_emails', models.PositiveBigIntegerField(default=0, verbose_name='Processed')),
                ('failed_emails', models.PositiveBigIntegerField(default=0, verbose_name='Failed')),
                ('last_processed_email_id', models.PositiveBigIntegerField(default=0, verbose_name='Last processed ID')),
                ('last_dispatched_id', models.PositiveBigIntegerField(default=0, verbose_name='Last dispatched ID')),
                ('started_at', models.DateTimeField(blank=True, null=True, verbose_name='Started at')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='Completed at')),
                ('error_log', models.JSONField(blank=True, default=list, verbose_name='Error log')),
            ],
            options={
                'verbose_name': 'Migration Run',
                'verbose_name_plural': 'Migration Runs',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='TaskClaim',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated')),
                ('task_id', models.CharField(max_length=255, unique=True, verbose_name='Task ID')),
                ('email_id', models.PositiveBigIntegerField(db_index=True, verbose_name='Email ID')),
                ('claimed_at', models.DateTimeField(db_index=True, verbose_name='Claimed at')),
                ('run', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='claims', to='migration.migrationrun', verbose_name='Run')),
            ],
            options={
                'verbose_name': 'Task Claim',
                'verbose_name_plural': 'Task Claims',
                'ordering': ['claimed_at'],
            },
        ),
    ]
