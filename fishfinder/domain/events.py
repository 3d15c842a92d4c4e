from typing import Any, ClassVar, List, Optional
from pydantic import Field
from .models import AnalysisResult, FailedVideo, ProgressSnapshot, ProgressStage, WireModel

class Event(WireModel):
    """Base class for all domain events.

    Every concrete event names its ``kind``; together with the entity it
    concerns (job or batch id) that forms the topic ``"{kind}:{entity_id}"``.
    """
    kind: ClassVar[str] = ""

    @property
    def entity_id(self) -> str:
        raise NotImplementedError

    @property
    def topic(self) -> str:
        return f"{self.kind}:{self.entity_id}"

    def payload(self) -> Any:
        """JSON-ready body delivered to external observers."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

class JobEvent(Event):
    job_id: str = Field(exclude=True)

    @property
    def entity_id(self) -> str:
        return self.job_id

class JobProgressUpdated(JobEvent):
    kind: ClassVar[str] = "progress"
    progress: ProgressSnapshot

    def payload(self) -> Any:
        return self.progress.model_dump(mode="json", by_alias=True)

class JobCompleted(JobEvent):
    kind: ClassVar[str] = "complete"
    result: AnalysisResult

    def payload(self) -> Any:
        return self.result.model_dump(mode="json", by_alias=True, exclude_none=True)

class JobFailed(JobEvent):
    kind: ClassVar[str] = "error"
    error: str

    def payload(self) -> Any:
        return self.error

class BatchEvent(Event):
    batch_id: str = Field(exclude=True)

    @property
    def entity_id(self) -> str:
        return self.batch_id

class BatchCreated(BatchEvent):
    kind: ClassVar[str] = "batch:created"
    expected_count: Optional[int] = None

    def payload(self) -> Any:
        return {"batchId": self.batch_id, **super().payload()}

class BatchVideoAdded(BatchEvent):
    kind: ClassVar[str] = "batch:video_added"
    path: str
    original_name: str
    queue_length: int
    total: int

class BatchUploadsComplete(BatchEvent):
    kind: ClassVar[str] = "batch:uploads_complete"
    total: int

class BatchVideoStarted(BatchEvent):
    kind: ClassVar[str] = "batch:video_start"
    path: str
    index: int
    total: int

class BatchVideoProgress(BatchEvent):
    kind: ClassVar[str] = "batch:video_progress"
    path: str
    stage: ProgressStage
    percent: float
    message: str

class BatchProgress(BatchEvent):
    kind: ClassVar[str] = "batch:progress"
    total: int
    completed: int
    failed: int
    current_index: int
    current_video: str
    current_progress: ProgressSnapshot

class BatchVideoCompleted(BatchEvent):
    kind: ClassVar[str] = "batch:video_complete"
    path: str
    result: AnalysisResult
    completed_count: int
    total: int

class BatchVideoFailed(BatchEvent):
    kind: ClassVar[str] = "batch:video_error"
    path: str
    error: str
    failed_count: int
    total: int

class BatchVideoSkipped(BatchEvent):
    kind: ClassVar[str] = "batch:video_skipped"
    path: str
    reason: str
    completed_count: int
    total: int

class BatchCompleted(BatchEvent):
    kind: ClassVar[str] = "batch:complete"
    completed: List[str]
    failed: List[FailedVideo]
    total: int

class BatchCancelled(BatchEvent):
    kind: ClassVar[str] = "batch:cancelled"
    completed: List[str]
    failed: List[FailedVideo]
    remaining: int

BATCH_EVENT_TYPES = (
    BatchCreated,
    BatchVideoAdded,
    BatchUploadsComplete,
    BatchVideoStarted,
    BatchVideoProgress,
    BatchProgress,
    BatchVideoCompleted,
    BatchVideoFailed,
    BatchVideoSkipped,
    BatchCompleted,
    BatchCancelled,
)

JOB_EVENT_TYPES = (JobProgressUpdated, JobCompleted, JobFailed)
