"""
Wiring of the migration engine.

Commands and tasks call build_migration_service() once and use the
components it returns; nothing else constructs them.
"""
from dataclasses import dataclass
from typing import Optional

from apps.core.storage import StorageBackend, get_storage_backend
from apps.emails.repositories import AttachmentRepository, EmailRepository

from .conf import MigrationSettings, get_migration_settings
from .coordinator import CompletionCoordinator
from .dispatcher import get_dispatcher_class
from .migrator import RecordMigrator
from .tracker import RunTracker


@dataclass
class MigrationService:
    config: MigrationSettings
    storage: StorageBackend
    emails: EmailRepository
    attachments: AttachmentRepository
    tracker: RunTracker
    coordinator: CompletionCoordinator
    migrator: RecordMigrator

    def get_dispatcher(self, strategy: Optional[str] = None, **kwargs):
        dispatcher_class = get_dispatcher_class(strategy or self.config.dispatch_strategy)
        return dispatcher_class(
            self.migrator,
            self.emails,
            self.tracker,
            self.coordinator,
            self.config,
            **kwargs,
        )


def build_migration_service(
    config: Optional[MigrationSettings] = None,
    storage: Optional[StorageBackend] = None,
) -> MigrationService:
    config = config or get_migration_settings()
    storage = storage or get_storage_backend()

    emails = EmailRepository(max_attempts=config.max_attempts)
    attachments = AttachmentRepository()
    tracker = RunTracker()

    return MigrationService(
        config=config,
        storage=storage,
        emails=emails,
        attachments=attachments,
        tracker=tracker,
        coordinator=CompletionCoordinator(tracker),
        migrator=RecordMigrator(storage, emails, attachments, config),
    )
