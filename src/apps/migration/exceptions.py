"""
Exceptions raised by the migration engine.

Running out of attempts is not an exception: the migrator reports it as
an outcome (see results.OutcomeStatus.EXHAUSTED).
"""
from typing import Optional


class MigrationError(Exception):
    """Base class for migration errors."""


class TransientUploadError(MigrationError):
    """The object store or the network failed while uploading."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class AttachmentNotFoundError(MigrationError):
    """
    The local file behind an attachment is missing.
    Fails the whole email; attachments are never skipped silently.
    """

    def __init__(self, attachment_id: int, path: str):
        super().__init__(f'Attachment file not found: {path} (attachment #{attachment_id})')
        self.attachment_id = attachment_id
        self.path = path


class RunNotFoundError(MigrationError):
    """A run identity given for resume does not exist."""

    def __init__(self, run_id):
        super().__init__(f'Migration run not found: {run_id}')
        self.run_id = run_id


class MigrationNotInitializedError(MigrationError):
    """Batch processing was requested before a run was created or resumed."""

    def __init__(self):
        super().__init__('Migration not initialized. Call start() or resume() first.')
