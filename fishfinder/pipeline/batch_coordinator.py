import logging
import threading
import uuid
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from fishfinder.domain.events import (
    BatchCancelled, BatchCompleted, BatchCreated, BatchProgress, BatchUploadsComplete,
    BatchVideoAdded, BatchVideoCompleted, BatchVideoFailed, BatchVideoProgress,
    BatchVideoSkipped, BatchVideoStarted
)
from fishfinder.domain.models import (
    AnalysisResult, BatchJob, BatchStatus, FailedVideo, ProgressSnapshot, QueuedVideo
)
from fishfinder.infrastructure.event_bus import EventBus
from fishfinder.pipeline.job_registry import JobRegistry

class BatchCoordinator:
    """Owns every batch: its FIFO queue, its single current job and its outcomes.

    All state sits behind one condition variable. Each mutation publishes its
    event while still holding it, so observers of a batch see events in call
    order. Rejected transitions return False; unknown batch ids are treated
    the same way and never raise.

    The queue is only appended to by ``add_video`` and only popped by
    ``next_queued``; one driver per batch is expected to do the popping.
    A path is queued at most once per batch.

    ``current_job_id`` is normally only set while the batch is running. The
    exception is cancellation: a cancelled batch keeps the in-flight job as
    current until its outcome is recorded, then clears it.
    """

    def __init__(self, event_bus: EventBus, job_registry: Optional[JobRegistry] = None):
        self.event_bus = event_bus
        self.job_registry = job_registry
        self.logger = logging.getLogger(__name__)
        self._batches: Dict[str, BatchJob] = {}
        self._lock = threading.Condition(threading.RLock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._batches)

    def __contains__(self, batch_id: str) -> bool:
        with self._lock:
            return batch_id in self._batches

    def _new_batch(self, model: str, fps: float, videos: List[str], uploads_complete: bool,
                   expected_count: Optional[int]) -> BatchJob:
        batch = BatchJob(
            batch_id=str(uuid.uuid4()),
            model=model,
            fps=fps,
            uploads_complete=uploads_complete,
            expected_count=expected_count
        )
        for path in videos:
            name = Path(path).name
            batch.videos.append(path)
            batch.queue.append(QueuedVideo(path=path, original_name=name))
            batch.video_names[path] = name

        with self._lock:
            self._batches[batch.batch_id] = batch
            self.event_bus.publish(BatchCreated(batch_id=batch.batch_id, expected_count=expected_count))
            self.logger.info(
                f"BATCH_CREATE: {batch.batch_id} videos={len(videos)} model={model} fps={fps} "
                f"uploads_complete={uploads_complete}"
            )
            return batch.model_copy(deep=True)

    def create_batch(self, videos: Iterable[str], model: str, fps: float) -> BatchJob:
        """Creates a batch whose full video list is known up front."""
        listed = list(videos)
        videos = list(dict.fromkeys(listed))
        if len(videos) != len(listed):
            self.logger.warning(f"BATCH_DUPLICATE: {len(listed) - len(videos)} duplicate path(s) queued once")
        return self._new_batch(model, fps, videos, uploads_complete=True, expected_count=len(videos))

    def create_empty_batch(self, model: str, fps: float, expected_count: Optional[int] = None) -> BatchJob:
        """Creates a batch that will be filled by add_video while it runs."""
        return self._new_batch(model, fps, [], uploads_complete=False, expected_count=expected_count)

    def get_batch(self, batch_id: str) -> Optional[BatchJob]:
        """Snapshot of the batch, safe to read without the coordinator's lock."""
        with self._lock:
            batch = self._batches.get(batch_id)
            return batch.model_copy(deep=True) if batch else None

    def add_video(self, batch_id: str, path: str, original_name: Optional[str] = None) -> bool:
        with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None or batch.status.is_terminal:
                self.logger.debug(f"BATCH_ADD_REJECTED: {batch_id} {path}")
                return False
            if path in batch.video_names:
                self.logger.warning(f"BATCH_ADD_REJECTED: {batch_id} {path} already in batch")
                return False
            name = original_name or Path(path).name
            batch.videos.append(path)
            batch.queue.append(QueuedVideo(path=path, original_name=name))
            batch.video_names[path] = name
            self.event_bus.publish(BatchVideoAdded(
                batch_id=batch_id,
                path=path,
                original_name=name,
                queue_length=len(batch.queue),
                total=batch.total
            ))
            self._lock.notify_all()
            return True

    def mark_uploads_complete(self, batch_id: str) -> bool:
        """Closes the batch for new videos; the consumer detects the drain from here on."""
        with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None or batch.status.is_terminal:
                return False
            batch.uploads_complete = True
            self.event_bus.publish(BatchUploadsComplete(batch_id=batch_id, total=batch.total))
            self.logger.info(f"BATCH_UPLOADS_COMPLETE: {batch_id} total={batch.total}")
            self._lock.notify_all()
            return True

    def next_queued(self, batch_id: str) -> Optional[QueuedVideo]:
        with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None or batch.status.is_terminal or not batch.queue:
                return None
            return batch.queue.popleft()

    def should_wait(self, batch_id: str) -> bool:
        """True while the queue is empty but more uploads may still arrive."""
        with self._lock:
            batch = self._batches.get(batch_id)
            return batch is not None and not batch.uploads_complete and not batch.queue

    def is_done(self, batch_id: str) -> bool:
        """True once uploads are closed and the queue is drained.

        Does not look at the current job; the driver finalises only after its
        in-flight item has been recorded.
        """
        with self._lock:
            batch = self._batches.get(batch_id)
            return batch is not None and batch.uploads_complete and not batch.queue

    def wait_for_work(self, batch_id: str, timeout: float) -> bool:
        """Blocks up to ``timeout`` seconds until the batch has something for its driver.

        Woken early by add_video, mark_uploads_complete, cancel_batch and purges.
        Returns whether the batch is ready to be looked at again.
        """
        def ready() -> bool:
            batch = self._batches.get(batch_id)
            return batch is None or batch.status.is_terminal or bool(batch.queue) or batch.uploads_complete

        with self._lock:
            return self._lock.wait_for(ready, timeout=timeout)

    def _release(self, batch: BatchJob, path: str):
        """Frees the single-flight slot if ``path`` is the video holding it."""
        if batch.current_path == path:
            batch.current_job_id = None
            batch.current_path = None

    def start_video(self, batch_id: str, path: str, job_id: str) -> bool:
        with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None or batch.status.is_terminal:
                return False
            if batch.current_job_id is not None:
                self.logger.warning(
                    f"BATCH_START_REJECTED: {batch_id} {path} (job {batch.current_job_id} still running)"
                )
                return False
            if self.job_registry is not None and self.job_registry.get(job_id) is None:
                self.logger.warning(f"BATCH_START_REJECTED: {batch_id} {path} (unknown job {job_id})")
                return False
            batch.status = BatchStatus.RUNNING
            batch.current_index = batch.videos.index(path) if path in batch.videos else -1
            batch.current_job_id = job_id
            batch.current_path = path
            self.event_bus.publish(BatchVideoStarted(
                batch_id=batch_id,
                path=path,
                index=batch.current_index,
                total=batch.total
            ))
            return True

    def update_video_progress(self, batch_id: str, path: str, progress: ProgressSnapshot):
        with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None:
                return
            self.event_bus.publish(BatchVideoProgress(
                batch_id=batch_id,
                path=path,
                stage=progress.stage,
                percent=progress.percent,
                message=progress.message
            ))
            self.event_bus.publish(BatchProgress(
                batch_id=batch_id,
                total=batch.total,
                completed=len(batch.completed),
                failed=len(batch.failed),
                current_index=batch.current_index,
                current_video=path,
                current_progress=progress
            ))

    def complete_video(self, batch_id: str, path: str, result: AnalysisResult) -> bool:
        """Records a finished analysis. Still accepted after cancellation."""
        with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None:
                return False
            if batch.has_outcome(path):
                self.logger.warning(f"BATCH_OUTCOME_REJECTED: {batch_id} {path} already recorded")
                self._release(batch, path)
                return False
            batch.completed.append(path)
            batch.results[path] = result
            self._release(batch, path)
            self.event_bus.publish(BatchVideoCompleted(
                batch_id=batch_id,
                path=path,
                result=result,
                completed_count=len(batch.completed),
                total=batch.total
            ))
            return True

    def fail_video(self, batch_id: str, path: str, error: str) -> bool:
        with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None:
                return False
            if batch.has_outcome(path):
                self.logger.warning(f"BATCH_OUTCOME_REJECTED: {batch_id} {path} already recorded")
                self._release(batch, path)
                return False
            batch.failed.append(FailedVideo(path=path, error=error))
            self._release(batch, path)
            self.event_bus.publish(BatchVideoFailed(
                batch_id=batch_id,
                path=path,
                error=error,
                failed_count=len(batch.failed),
                total=batch.total
            ))
            return True

    def skip_video(self, batch_id: str, path: str, reason: str, result: Optional[AnalysisResult] = None) -> bool:
        """Counts a video as completed without analysing it (result already known)."""
        with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None or batch.status.is_terminal or batch.has_outcome(path):
                return False
            if batch.status == BatchStatus.PENDING:
                batch.status = BatchStatus.RUNNING
            batch.completed.append(path)
            if result is not None:
                batch.results[path] = result
            self.event_bus.publish(BatchVideoSkipped(
                batch_id=batch_id,
                path=path,
                reason=reason,
                completed_count=len(batch.completed),
                total=batch.total
            ))
            return True

    def complete_batch(self, batch_id: str) -> bool:
        """Finalises a running batch.

        A batch that drained without ever starting a video (nothing was
        uploaded) may also be completed straight from pending.
        """
        with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None:
                return False
            drained_unstarted = (
                batch.status == BatchStatus.PENDING
                and batch.uploads_complete
                and not batch.queue
                and batch.current_job_id is None
            )
            if batch.status != BatchStatus.RUNNING and not drained_unstarted:
                return False
            batch.status = BatchStatus.COMPLETED
            batch.completed_at = datetime.now()
            batch.current_job_id = None
            batch.current_path = None
            self.event_bus.publish(BatchCompleted(
                batch_id=batch_id,
                completed=list(batch.completed),
                failed=list(batch.failed),
                total=batch.total
            ))
            self.logger.info(
                f"BATCH_COMPLETE: {batch_id} completed={len(batch.completed)} "
                f"failed={len(batch.failed)} total={batch.total}"
            )
            self._lock.notify_all()
            return True

    def cancel_batch(self, batch_id: str) -> bool:
        """Flips a running batch to cancelled; the driver stops before its next item."""
        with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None or batch.status != BatchStatus.RUNNING:
                return False
            batch.status = BatchStatus.CANCELLED
            batch.completed_at = datetime.now()
            self.event_bus.publish(BatchCancelled(
                batch_id=batch_id,
                completed=list(batch.completed),
                failed=list(batch.failed),
                remaining=batch.remaining
            ))
            self.logger.info(f"BATCH_CANCEL: {batch_id} remaining={batch.remaining}")
            self._lock.notify_all()
            return True

    def is_cancelled(self, batch_id: str) -> bool:
        with self._lock:
            batch = self._batches.get(batch_id)
            return batch is not None and batch.status == BatchStatus.CANCELLED

    def purge(self, cutoff: datetime) -> List[str]:
        """Removes every batch started before ``cutoff``, running or not."""
        with self._lock:
            expired = [bid for bid, batch in self._batches.items() if batch.started_at < cutoff]
            for bid in expired:
                del self._batches[bid]
            if expired:
                self._lock.notify_all()
        return expired
