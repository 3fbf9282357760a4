"""
Aggregates per-email outcomes into the run counters and decides completion.
"""
import logging

from .results import MigrationOutcome, OutcomeStatus
from .tracker import RunTracker

logger = logging.getLogger(__name__)


class CompletionCoordinator:
    """
    Lock-free accounting: increment one counter, then attempt completion.

    Two workers finishing together may both see the total reached; only one
    of them wins the completion UPDATE, the other is a no-op.
    """

    def __init__(self, tracker: RunTracker):
        self.tracker = tracker

    @staticmethod
    def deltas_for(outcome: MigrationOutcome) -> tuple[int, int]:
        """(processed, failed) contribution of a final outcome."""
        if outcome.status == OutcomeStatus.MIGRATED:
            return 1, 0
        if outcome.status in (OutcomeStatus.FAILED, OutcomeStatus.EXHAUSTED):
            return 0, 1
        return 0, 0

    def record(self, run_id, outcome: MigrationOutcome) -> bool:
        """
        Account for a final outcome.

        Returns:
            True if this call transitioned the run to completed
        """
        if run_id is None:
            return False
        processed, failed = self.deltas_for(outcome)
        self.tracker.record_outcome(run_id, processed_delta=processed, failed_delta=failed)
        return self.tracker.try_complete(run_id)

    def record_failure(self, run_id) -> bool:
        """Count one failed email (terminal task hook)."""
        if run_id is None:
            return False
        self.tracker.record_outcome(run_id, failed_delta=1)
        return self.tracker.try_complete(run_id)

    def record_counts(self, run_id, processed: int, failed: int) -> None:
        """Slice totals from the batch loop, which completes the run itself."""
        self.tracker.record_outcome(run_id, processed_delta=processed, failed_delta=failed)
