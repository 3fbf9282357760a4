"""
Unit tests for the batch-loop and fan-out dispatchers.
"""
import pytest

from apps.migration.conf import MigrationSettings
from apps.migration.dispatcher import BatchDispatcher, FanOutDispatcher, get_dispatcher_class
from apps.migration.exceptions import MigrationNotInitializedError, RunNotFoundError
from apps.migration.migrator import email_body_key
from apps.migration.models import MigrationRun

Status = MigrationRun.StatusChoices


class Publisher:
    """Collects published (email_id, run_id, countdown) instead of queueing."""

    def __init__(self):
        self.calls = []

    def __call__(self, email_id, run_id, countdown=0):
        self.calls.append((email_id, run_id, countdown))

    @property
    def email_ids(self):
        return [email_id for email_id, _, _ in self.calls]


def test_get_dispatcher_class():
    assert get_dispatcher_class('batch') is BatchDispatcher
    assert get_dispatcher_class('fanout') is FanOutDispatcher
    with pytest.raises(ValueError):
        get_dispatcher_class('carrier-pigeon')


@pytest.mark.django_db
class TestBatchDispatcher:

    @pytest.fixture
    def dispatcher(self, service):
        return service.get_dispatcher('batch')

    def test_requires_run(self, dispatcher):
        with pytest.raises(MigrationNotInitializedError):
            dispatcher.process_batch()

    def test_start_snapshots_total(self, dispatcher, make_email):
        make_email()
        make_email()
        make_email(is_migrated=True)

        run = dispatcher.start()

        assert run.total_emails == 2
        assert run.strategy == 'batch'

    def test_processes_in_ascending_order(self, dispatcher, make_email):
        ids = [make_email().pk for _ in range(5)]
        seen = []
        original = dispatcher.migrator.migrate_email

        def spy(email):
            seen.append(email.pk)
            return original(email)

        dispatcher.migrator.migrate_email = spy
        dispatcher.start()

        first = dispatcher.process_batch(batch_size=3)
        second = dispatcher.process_batch(batch_size=3)
        last = dispatcher.process_batch(batch_size=3)

        assert seen == ids
        assert (first.processed_count, second.processed_count) == (3, 2)
        assert not first.is_complete and not second.is_complete
        assert last.is_complete

        run = dispatcher.get_run()
        assert run.status == Status.COMPLETED
        assert run.processed_emails == 5
        assert run.last_processed_email_id == ids[-1]

    def test_failure_does_not_stop_the_slice(self, dispatcher, storage, make_email):
        emails = [make_email() for _ in range(3)]
        storage.fail_keys.add(email_body_key(emails[0].pk))
        dispatcher.start()

        result = dispatcher.process_batch()

        assert result.processed_count == 2
        assert result.failed_count == 1
        for email in emails[1:]:
            email.refresh_from_db()
            assert email.is_migrated

    def test_missing_attachment_file_mid_slice(self, dispatcher, make_email, make_attachment):
        first = make_email()
        broken = make_email(file_ids=[make_attachment(name='gone.pdf', with_file=False).pk])
        last = make_email(file_ids=[make_attachment(name='ok.pdf').pk])
        dispatcher.start()

        result = dispatcher.process_batch()

        assert (result.processed_count, result.failed_count) == (2, 1)
        for email in (first, broken, last):
            email.refresh_from_db()
        assert first.is_migrated and last.is_migrated
        assert not broken.is_migrated
        assert broken.migration_attempts == 1
        assert 'Attachment file not found' in broken.migration_error

        run = dispatcher.get_run()
        assert run.last_processed_email_id == last.pk
        assert (run.processed_emails, run.failed_emails) == (2, 1)

    def test_resume_continues_after_cursor(self, service, make_email):
        ids = [make_email().pk for _ in range(4)]
        first = service.get_dispatcher('batch')
        run = first.start()
        first.process_batch(batch_size=2)

        resumed = service.get_dispatcher('batch')
        resumed.resume(run.pk)
        result = resumed.process_batch(batch_size=10)

        assert result.processed_count == 2
        assert resumed.get_run().last_processed_email_id == ids[-1]

    def test_resume_unknown_run(self, dispatcher):
        with pytest.raises(RunNotFoundError):
            dispatcher.resume('00000000-0000-0000-0000-000000000000')

    def test_completed_run_returns_complete(self, dispatcher, make_email):
        dispatcher.start()
        dispatcher.run()
        make_email()

        assert dispatcher.process_batch().is_complete

    def test_run_reports_every_batch(self, service, make_email):
        for _ in range(5):
            make_email()
        dispatcher = service.get_dispatcher('batch')
        dispatcher.config = MigrationSettings(batch_size=2)
        dispatcher.start()
        results = []

        run = dispatcher.run(results.append)

        assert [r.processed_count for r in results] == [2, 2, 1, 0]
        assert run.is_completed

    def test_preview_changes_nothing(self, dispatcher, storage, make_email):
        make_email(file_ids=[1])
        make_email()

        pages = list(dispatcher.preview(page_size=1))

        assert len(pages) == 2
        assert pages[0][0]['attachment_ids'] == [1]
        assert storage.puts == []
        assert MigrationRun.objects.count() == 0


@pytest.mark.django_db
class TestFanOutDispatcher:

    @pytest.fixture
    def publisher(self):
        return Publisher()

    @pytest.fixture
    def dispatcher(self, service, publisher):
        return service.get_dispatcher('fanout', publish=publisher)

    def test_publishes_page_and_advances_cursor(self, dispatcher, publisher, make_email):
        ids = [make_email().pk for _ in range(3)]
        run = dispatcher.start()

        result = dispatcher.dispatch_page(page_size=2)

        assert publisher.email_ids == ids[:2]
        assert all(run_id == run.pk for _, run_id, _ in publisher.calls)
        assert result.dispatched_count == 2
        run.refresh_from_db()
        assert run.last_dispatched_id == ids[1]
        assert run.jobs_dispatched == 2
        assert run.status == Status.PROCESSING

    def test_delay_increases_per_task(self, service, publisher, make_email):
        for _ in range(3):
            make_email()
        dispatcher = service.get_dispatcher('fanout', publish=publisher)
        dispatcher.config = MigrationSettings(dispatch_delay_step=0.5)
        dispatcher.start()

        dispatcher.dispatch_page()

        assert [countdown for _, _, countdown in publisher.calls] == [0, 0.5, 1.0]

    def test_dispatch_does_not_count_outcomes(self, dispatcher, make_email):
        make_email()
        dispatcher.start()

        run = dispatcher.run()

        assert run.jobs_dispatched == 1
        assert run.processed_emails == 0
        assert run.status == Status.PROCESSING

    def test_empty_run_completes(self, dispatcher, publisher):
        dispatcher.start()

        result = dispatcher.dispatch_page()

        assert result.is_complete
        assert publisher.calls == []
        run = dispatcher.get_run()
        assert run.status == Status.COMPLETED
        assert run.completed_at is not None

    def test_lost_cursor_race_continues_from_winner(self, service, publisher, make_email):
        ids = [make_email().pk for _ in range(6)]
        dispatcher = service.get_dispatcher('fanout', publish=publisher)
        run = dispatcher.start()

        def racing_publish(email_id, run_id, countdown=0):
            publisher(email_id, run_id, countdown)
            if len(publisher.calls) == 1:
                # Another dispatcher publishes ids[0..3] and wins the swap
                service.tracker.advance_dispatch_cursor(run_id, 0, ids[3], 4)

        dispatcher.publish = racing_publish
        dispatcher.dispatch_page(page_size=2)
        dispatcher.publish = publisher
        dispatcher.dispatch_page(page_size=2)

        run.refresh_from_db()
        assert run.last_dispatched_id == ids[5]
        assert publisher.email_ids == ids[:2] + ids[4:6]
