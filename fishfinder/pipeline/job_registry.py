import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional
from fishfinder.domain.events import JobCompleted, JobFailed, JobProgressUpdated
from fishfinder.domain.models import AnalysisResult, Job, JobStatus, ProgressSnapshot
from fishfinder.infrastructure.event_bus import EventBus

class JobRegistry:
    """Tracks single-video jobs independently of any batch.

    Unknown ids are absorbed silently by every mutator: the sweeper may purge a
    job while its analysis is still reporting. Terminal transitions are
    last-write-wins; a repeated complete/fail overwrites and republishes.
    """

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus
        self.logger = logging.getLogger(__name__)
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def create(self, job_id: str) -> Job:
        job = Job(id=job_id)
        with self._lock:
            self._jobs[job_id] = job
        self.logger.debug(f"JOB_CREATE: {job_id}")
        return job

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def update_progress(self, job_id: str, progress: ProgressSnapshot):
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.status = JobStatus.RUNNING
            job.progress = progress
            self.event_bus.publish(JobProgressUpdated(job_id=job_id, progress=progress))

    def complete(self, job_id: str, result: AnalysisResult):
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.status = JobStatus.COMPLETED
            job.result = result
            job.completed_at = datetime.now()
            self.event_bus.publish(JobCompleted(job_id=job_id, result=result))

    def fail(self, job_id: str, error: str):
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.status = JobStatus.FAILED
            job.error = error
            job.completed_at = datetime.now()
            self.event_bus.publish(JobFailed(job_id=job_id, error=error))

    def purge(self, cutoff: datetime) -> List[str]:
        """Removes every job started before ``cutoff``, whatever its status."""
        with self._lock:
            expired = [jid for jid, job in self._jobs.items() if job.started_at < cutoff]
            for jid in expired:
                del self._jobs[jid]
        return expired
