from datetime import datetime
from pathlib import Path
from fishfinder.infrastructure.event_bus import EventBus
from fishfinder.ui.state import BatchViewState
from fishfinder.domain.events import (
    BatchCancelled, BatchCompleted, BatchCreated, BatchProgress, BatchUploadsComplete,
    BatchVideoAdded, BatchVideoCompleted, BatchVideoFailed, BatchVideoProgress,
    BatchVideoSkipped, BatchVideoStarted
)
from fishfinder.domain.models import ProgressSnapshot

class UIManager:
    """Subscribes to one batch's events on the EventBus and updates BatchViewState."""

    def __init__(self, bus: EventBus, state: BatchViewState, batch_id: str):
        self.bus = bus
        self.state = state
        self.batch_id = batch_id
        self._subscriptions = []
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        handlers = [
            (BatchCreated, self.on_batch_created),
            (BatchVideoAdded, self.on_video_added),
            (BatchUploadsComplete, self.on_uploads_complete),
            (BatchVideoStarted, self.on_video_started),
            (BatchVideoProgress, self.on_video_progress),
            (BatchProgress, self.on_batch_progress),
            (BatchVideoCompleted, self.on_video_completed),
            (BatchVideoFailed, self.on_video_failed),
            (BatchVideoSkipped, self.on_video_skipped),
            (BatchCompleted, self.on_batch_completed),
            (BatchCancelled, self.on_batch_cancelled),
        ]
        for event_type, handler in handlers:
            self._subscriptions.append(self.bus.subscribe(event_type, handler, entity_id=self.batch_id))

    def close(self):
        """Drops every subscription; the state stops changing."""
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()

    def on_batch_created(self, event: BatchCreated):
        with self.state._lock:
            self.state.expected_count = event.expected_count
            self.state.started_at = datetime.now()

    def on_video_added(self, event: BatchVideoAdded):
        with self.state._lock:
            self.state.total = event.total
            self.state.queue_length = event.queue_length

    def on_uploads_complete(self, event: BatchUploadsComplete):
        with self.state._lock:
            self.state.uploads_complete = True
            self.state.total = event.total

    def on_video_started(self, event: BatchVideoStarted):
        with self.state._lock:
            if self.state.started_at is None:
                self.state.started_at = datetime.now()
            self.state.total = event.total
            self.state.current_video = event.path
            self.state.current_index = event.index
            self.state.current_progress = None
            self.state.queue_length = max(0, self.state.queue_length - 1)

    def on_video_progress(self, event: BatchVideoProgress):
        with self.state._lock:
            self.state.current_progress = ProgressSnapshot(
                stage=event.stage, percent=event.percent, message=event.message
            )

    def on_batch_progress(self, event: BatchProgress):
        with self.state._lock:
            self.state.total = event.total
            self.state.completed_count = event.completed
            self.state.failed_count = event.failed

    def on_video_completed(self, event: BatchVideoCompleted):
        with self.state._lock:
            self.state.completed_count = event.completed_count
            self.state.current_video = None
            self.state.current_progress = None
        species = len(event.result.identified_species)
        self.state.set_last_action(f"{Path(event.path).name}: {species} species")

    def on_video_failed(self, event: BatchVideoFailed):
        with self.state._lock:
            self.state.failed_count = event.failed_count
            self.state.errors[event.path] = event.error
            self.state.current_video = None
            self.state.current_progress = None
        self.state.set_last_action(f"{Path(event.path).name}: failed ({event.error})")

    def on_video_skipped(self, event: BatchVideoSkipped):
        with self.state._lock:
            self.state.completed_count = event.completed_count
            self.state.skipped_count += 1
            self.state.queue_length = max(0, self.state.queue_length - 1)
        self.state.set_last_action(f"{Path(event.path).name}: skipped ({event.reason})")

    def on_batch_completed(self, event: BatchCompleted):
        with self.state._lock:
            self.state.total = event.total
            self.state.completed_count = len(event.completed)
            self.state.failed_count = len(event.failed)
            self.state.finished = True

    def on_batch_cancelled(self, event: BatchCancelled):
        with self.state._lock:
            self.state.completed_count = len(event.completed)
            self.state.failed_count = len(event.failed)
            self.state.cancelled = True
            self.state.finished = True
        self.state.set_last_action(f"Batch cancelled, {event.remaining} video(s) not processed")
