"""
Unit tests for the record migrator.
"""
import pytest
from unittest.mock import MagicMock

from django.db import DatabaseError, connection, transaction

from apps.emails.models import Email
from apps.migration.conf import MigrationSettings
from apps.migration.migrator import attachment_key, email_body_key, truncate_error
from apps.migration.results import OutcomeStatus


class TestKeys:

    def test_email_body_key_is_sharded(self):
        assert email_body_key(5) == 'emails/0/5.html'
        assert email_body_key(123456) == 'emails/123/123456.html'

    def test_attachment_key(self):
        assert attachment_key(2500, 'invoice.pdf') == 'attachments/2/2500/invoice.pdf'

    def test_attachment_key_strips_separators(self):
        assert attachment_key(1, 'a/b.pdf') == 'attachments/0/1/a_b.pdf'

    def test_custom_prefix(self):
        assert email_body_key(1, prefix='archive/emails/') == 'archive/emails/0/1.html'

    def test_truncate_error(self):
        assert truncate_error(ValueError('x' * 600), 500) == 'x' * 500
        assert truncate_error(ValueError()) == 'ValueError'


@pytest.mark.django_db
class TestRecordMigrator:

    @pytest.fixture
    def migrator(self, service):
        return service.migrator

    def test_migrates_body_and_attachments(self, migrator, storage, make_email, make_attachment):
        first = make_attachment(name='a.pdf', content=b'AAA')
        second = make_attachment(name='b.png', content=b'BBB', content_type='image/png')
        email = make_email(body='<p>Hello</p>', file_ids=[first.pk, second.pk])

        outcome = migrator.migrate(email.pk)

        assert outcome.status == OutcomeStatus.MIGRATED
        assert outcome.attachment_count == 2

        body_key = email_body_key(email.pk)
        assert storage.objects[body_key] == b'<p>Hello</p>'
        assert storage.content_types[body_key] == 'text/html'
        assert storage.objects[attachment_key(first.pk, 'a.pdf')] == b'AAA'
        assert storage.content_types[attachment_key(second.pk, 'b.png')] == 'image/png'

        email.refresh_from_db()
        assert email.is_migrated
        assert email.body_remote_key == body_key
        assert email.attachment_remote_keys == {
            str(first.pk): attachment_key(first.pk, 'a.pdf'),
            str(second.pk): attachment_key(second.pk, 'b.png'),
        }
        assert email.migration_attempts == 0
        assert email.migration_attempted_at is not None

        first.refresh_from_db()
        assert first.is_migrated
        assert first.remote_key == attachment_key(first.pk, 'a.pdf')

    def test_second_call_is_a_no_op(self, migrator, storage, make_email):
        email = make_email()
        migrator.migrate(email.pk)
        storage.puts.clear()
        email.refresh_from_db()
        attempted_at = email.migration_attempted_at

        outcome = migrator.migrate(email.pk)

        assert outcome.status == OutcomeStatus.ALREADY_MIGRATED
        assert storage.puts == []
        email.refresh_from_db()
        assert email.migration_attempted_at == attempted_at

    def test_missing_email(self, migrator, storage):
        outcome = migrator.migrate(987654)

        assert outcome.status == OutcomeStatus.NOT_FOUND
        assert storage.puts == []

    def test_exhausted_email_is_not_uploaded(self, migrator, storage, make_email):
        email = make_email(migration_attempts=3)

        outcome = migrator.migrate(email.pk)

        assert outcome.status == OutcomeStatus.EXHAUSTED
        assert outcome.is_failure
        assert storage.puts == []
        email.refresh_from_db()
        assert email.migration_attempts == 3

    def test_upload_failure_counts_an_attempt(self, migrator, storage, make_email):
        email = make_email()
        storage.fail_all = True

        outcome = migrator.migrate(email.pk)

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.retryable is True
        assert outcome.attempts == 1
        email.refresh_from_db()
        assert not email.is_migrated
        assert email.migration_attempts == 1
        assert 'Simulated upload failure' in email.migration_error
        assert email.body_remote_key is None

    def test_last_attempt_is_not_retryable(self, migrator, storage, make_email):
        email = make_email(migration_attempts=2)
        storage.fail_all = True

        outcome = migrator.migrate(email.pk)

        assert outcome.attempts == 3
        assert outcome.retryable is False

    def test_missing_attachment_file_fails_whole_email(self, migrator, storage, make_email, make_attachment):
        present = make_attachment(name='ok.pdf')
        missing = make_attachment(name='gone.pdf', with_file=False)
        email = make_email(file_ids=[present.pk, missing.pk])

        outcome = migrator.migrate(email.pk)

        assert outcome.status == OutcomeStatus.FAILED
        assert 'Attachment file not found' in outcome.error
        email.refresh_from_db()
        assert not email.is_migrated
        assert email.migration_attempts == 1

    def test_failed_email_rolls_back_attachment_marks(self, migrator, make_email, make_attachment):
        present = make_attachment(name='ok.pdf')
        missing = make_attachment(name='gone.pdf', with_file=False)
        email = make_email(file_ids=[present.pk, missing.pk])

        migrator.migrate(email.pk)

        present.refresh_from_db()
        assert not present.is_migrated
        assert present.remote_key is None

    def test_uploads_run_in_own_savepoint(self, migrator, storage, make_email):
        email = make_email()
        depths = []
        original = storage.put_content

        def put_content(content, key, content_type='application/octet-stream'):
            depths.append(len(connection.savepoint_ids))
            return original(content, key, content_type)

        storage.put_content = put_content
        with transaction.atomic():
            outer = len(connection.savepoint_ids)
            migrator.migrate(email.pk)

        assert depths == [outer + 1]

    def test_database_error_inside_slice_transaction(self, migrator, make_email, make_attachment):
        attachment = make_attachment(name='a.pdf')
        email = make_email(file_ids=[attachment.pk])
        migrator.attachments.find = MagicMock(side_effect=DatabaseError('canceling statement due to statement timeout'))

        with transaction.atomic():
            outcome = migrator.migrate(email.pk)
            assert not connection.needs_rollback
            attempts = Email.objects.get(pk=email.pk).migration_attempts

        assert outcome.status == OutcomeStatus.FAILED
        assert 'statement timeout' in outcome.error
        assert attempts == 1

    def test_unknown_attachment_id_is_skipped(self, migrator, make_email):
        email = make_email(file_ids=[424242])

        outcome = migrator.migrate(email.pk)

        assert outcome.status == OutcomeStatus.MIGRATED
        email.refresh_from_db()
        assert email.attachment_remote_keys == {}

    def test_retry_overwrites_partial_upload(self, migrator, storage, make_email, make_attachment):
        attachment = make_attachment(name='a.pdf')
        email = make_email(file_ids=[attachment.pk])
        storage.fail_keys.add(attachment_key(attachment.pk, 'a.pdf'))

        assert migrator.migrate(email.pk).status == OutcomeStatus.FAILED
        assert email_body_key(email.pk) in storage.objects

        storage.fail_keys.clear()
        assert migrator.migrate(email.pk).status == OutcomeStatus.MIGRATED
        assert storage.puts.count(email_body_key(email.pk)) == 2

    def test_error_is_truncated(self, service, storage, make_email):
        service.migrator.config = MigrationSettings(error_max_length=20)
        email = make_email()
        storage.fail_all = True

        outcome = service.migrator.migrate(email.pk)

        assert len(outcome.error) == 20
        email.refresh_from_db()
        assert len(email.migration_error) == 20

    def test_plan(self, migrator, make_email):
        email = make_email(file_ids=[1, 2])

        assert migrator.plan(email) == {
            'email_id': email.pk,
            'body_key': email_body_key(email.pk),
            'attachment_ids': [1, 2],
            'error': None,
        }
        assert migrator.plan(make_email(is_migrated=True)) is None

    def test_plan_with_malformed_file_ids(self, migrator, make_email):
        email = make_email(file_ids=['x'])

        plan = migrator.plan(email)

        assert plan['attachment_ids'] == []
        assert plan['error'].startswith('Malformed file_ids')
