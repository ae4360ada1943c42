"""
Per-dataset processing status for cross-dataset search runs.

Each dataset in a run owns one DatasetStatusTracker. Trackers of the same run
share a StatusBoard, which serialises callback delivery so that a caller's
callback never runs concurrently with itself.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional

from curtain.shared import DatasetProcessingStatus, ProcessingState

logger = logging.getLogger(__name__)

StatusCallback = Callable[[DatasetProcessingStatus], None]

_ALLOWED_TRANSITIONS = {
    ProcessingState.PENDING: {ProcessingState.LOADING, ProcessingState.FAILED, ProcessingState.CANCELLED},
    ProcessingState.LOADING: {ProcessingState.BUILDING, ProcessingState.SEARCHING, ProcessingState.FAILED},
    ProcessingState.BUILDING: {ProcessingState.SEARCHING, ProcessingState.FAILED},
    ProcessingState.SEARCHING: {ProcessingState.COMPLETED, ProcessingState.FAILED},
    ProcessingState.COMPLETED: set(),
    ProcessingState.FAILED: set(),
    ProcessingState.CANCELLED: set(),
}


class InvalidTransitionError(RuntimeError):
    """Raised when a tracker is asked for a transition its state machine forbids."""


class DatasetStatusTracker:
    """
    State machine for one dataset: pending → loading → [building] → searching → completed | failed.

    Every transition invokes the status callback exactly once, synchronously.
    """

    def __init__(self, link_id: str, dataset_name: str,
                 on_status: Optional[StatusCallback] = None,
                 lock=None):
        self.link_id = link_id
        self.dataset_name = dataset_name
        self._on_status = on_status
        self._lock = lock or threading.RLock()
        self._status = DatasetProcessingStatus(id=link_id, dataset_name=dataset_name)
        self.history: List[ProcessingState] = [ProcessingState.PENDING]

    @property
    def status(self) -> DatasetProcessingStatus:
        return self._status

    @property
    def state(self) -> ProcessingState:
        return self._status.state

    @property
    def is_terminal(self) -> bool:
        return self._status.state.is_terminal

    def transition(self, state: ProcessingState, error: Optional[str] = None) -> DatasetProcessingStatus:
        """Move to *state* and notify the callback."""
        with self._lock:
            current = self._status.state
            if state not in _ALLOWED_TRANSITIONS[current]:
                raise InvalidTransitionError(
                    f"Dataset {self.link_id}: cannot move from {current.value} to {state.value}")

            self._status = DatasetProcessingStatus(
                id=self.link_id,
                dataset_name=self.dataset_name,
                state=state,
                error=error,
            )
            self.history.append(state)
            logger.debug(f"Dataset {self.link_id}: {current.value} -> {state.value}")

            if self._on_status:
                try:
                    self._on_status(self._status)
                except Exception as e:
                    logger.error(f"Status callback raised for {self.link_id}: {e}")
            return self._status

    def loading(self) -> DatasetProcessingStatus:
        return self.transition(ProcessingState.LOADING)

    def building(self) -> DatasetProcessingStatus:
        return self.transition(ProcessingState.BUILDING)

    def searching(self) -> DatasetProcessingStatus:
        return self.transition(ProcessingState.SEARCHING)

    def completed(self) -> DatasetProcessingStatus:
        return self.transition(ProcessingState.COMPLETED)

    def failed(self, error: str) -> DatasetProcessingStatus:
        return self.transition(ProcessingState.FAILED, error=error or "Unknown error")

    def cancelled(self) -> DatasetProcessingStatus:
        return self.transition(ProcessingState.CANCELLED, error="Search cancelled before this dataset started")


class StatusBoard:
    """Trackers of one search run, keyed by dataset link id in selection order."""

    def __init__(self, on_status: Optional[StatusCallback] = None):
        self._on_status = on_status
        self._lock = threading.RLock()
        self.trackers: Dict[str, DatasetStatusTracker] = {}

    def add(self, link_id: str, dataset_name: str) -> DatasetStatusTracker:
        tracker = DatasetStatusTracker(link_id, dataset_name, self._on_status, self._lock)
        self.trackers[link_id] = tracker
        return tracker

    def __getitem__(self, link_id: str) -> DatasetStatusTracker:
        return self.trackers[link_id]

    def snapshot(self) -> Dict[str, DatasetProcessingStatus]:
        with self._lock:
            return {link_id: tracker.status for link_id, tracker in self.trackers.items()}

    def all_terminal(self) -> bool:
        return all(tracker.is_terminal for tracker in self.trackers.values())

    def ids_in_state(self, state: ProcessingState) -> List[str]:
        return [link_id for link_id, tracker in self.trackers.items() if tracker.state == state]
