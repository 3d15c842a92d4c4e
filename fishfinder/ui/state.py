import threading
from collections import deque
from datetime import datetime
from typing import Dict, Optional
from fishfinder.domain.models import ProgressSnapshot

class BatchViewState:
    """Thread-safe view of one batch, built only from the events it publishes."""

    def __init__(self):
        self._lock = threading.RLock()

        # Counters
        self.total = 0
        self.expected_count: Optional[int] = None
        self.queue_length = 0
        self.completed_count = 0
        self.failed_count = 0
        self.skipped_count = 0

        # Current video
        self.current_video: Optional[str] = None
        self.current_index = -1
        self.current_progress: Optional[ProgressSnapshot] = None

        # Outcomes
        self.errors: Dict[str, str] = {}
        self.recent_messages = deque(maxlen=5)

        # Global Status
        self.uploads_complete = False
        self.finished = False
        self.cancelled = False
        self.started_at: Optional[datetime] = None

    @property
    def processed_count(self) -> int:
        with self._lock:
            return self.completed_count + self.failed_count

    @property
    def percent_complete(self) -> float:
        with self._lock:
            if self.total == 0:
                return 0.0
            return 100.0 * self.processed_count / self.total

    def set_last_action(self, message: str):
        with self._lock:
            self.recent_messages.appendleft(message)
