import logging
import threading
from datetime import datetime, timedelta
from typing import Optional, Tuple
from fishfinder.pipeline.batch_coordinator import BatchCoordinator
from fishfinder.pipeline.job_registry import JobRegistry

class GCSweeper:
    """Purges aged jobs and batches on a fixed period in a background thread.

    A record older than the retention window goes regardless of status, even
    mid-run: callers have to fetch results before the window elapses.
    """

    def __init__(
        self,
        job_registry: JobRegistry,
        batch_coordinator: BatchCoordinator,
        interval_seconds: float = 600.0,
        retention_seconds: float = 3600.0
    ):
        self.job_registry = job_registry
        self.batch_coordinator = batch_coordinator
        self.interval_seconds = interval_seconds
        self.retention = timedelta(seconds=retention_seconds)
        self.logger = logging.getLogger(__name__)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None

    def sweep(self, now: Optional[datetime] = None) -> Tuple[int, int]:
        """Runs one purge pass. Returns (jobs_removed, batches_removed)."""
        cutoff = (now or datetime.now()) - self.retention
        jobs = self.job_registry.purge(cutoff)
        batches = self.batch_coordinator.purge(cutoff)
        if jobs or batches:
            self.logger.info(f"GC_SWEEP: removed jobs={len(jobs)} batches={len(batches)}")
        else:
            self.logger.debug("GC_SWEEP: nothing to remove")
        return len(jobs), len(batches)

    def _run(self):
        # Wait first: a fresh process has nothing old enough to purge
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.sweep()
            except Exception as e:
                self.logger.error(f"GC sweep failed: {e}")

    def start(self):
        """Starts the sweeper thread."""
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="gc-sweeper", daemon=True)
        self._thread.start()
        self.logger.info(
            f"GC sweeper started (interval={self.interval_seconds}s, retention={self.retention.total_seconds()}s)"
        )

    def stop(self):
        """Stops the sweeper thread."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None
            self.logger.info("GC sweeper stopped")
