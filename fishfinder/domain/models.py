from collections import deque
from datetime import datetime
from enum import Enum
from typing import Deque, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

class WireModel(BaseModel):
    """Base for models that travel to observers with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

class BatchStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (BatchStatus.COMPLETED, BatchStatus.CANCELLED)

class ProgressStage(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    ANALYZING = "analyzing"
    EXTRACTING = "extracting"

class ProgressSnapshot(WireModel):
    stage: ProgressStage
    percent: float = Field(ge=0, le=100)
    message: str = ""

class TimeRange(WireModel):
    start: float
    end: float

class SpeciesSighting(BaseModel):
    """Species entry as returned by the analysis service."""
    common_name: str
    scientific_name: str
    confidence: float = Field(ge=0.0, le=1.0)
    timestamps: List[TimeRange] = Field(default_factory=list)
    habitat: str = ""
    description: str = ""

class AnalysisResponse(BaseModel):
    """Raw analysis service response; validation failure means a malformed reply."""
    species: List[SpeciesSighting] = Field(default_factory=list)
    summary: str
    video_duration_seconds: float = Field(ge=0)

class IdentifiedSpecies(WireModel):
    common_name: str
    scientific_name: str
    confidence: float
    timestamps: List[TimeRange] = Field(default_factory=list)
    habitat: str = ""
    description: str = ""
    frame_files: Optional[List[str]] = None

class AnalysisResult(WireModel):
    video: str
    duration: float
    identified_species: List[IdentifiedSpecies] = Field(default_factory=list)
    summary: str
    analyzed_at: str

class Job(BaseModel):
    id: str
    status: JobStatus = JobStatus.PENDING
    progress: Optional[ProgressSnapshot] = None
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

class QueuedVideo(WireModel):
    path: str
    original_name: str

class FailedVideo(WireModel):
    path: str
    error: str

class BatchJob(BaseModel):
    batch_id: str
    videos: List[str] = Field(default_factory=list)
    queue: Deque[QueuedVideo] = Field(default_factory=deque)
    video_names: Dict[str, str] = Field(default_factory=dict)
    model: str
    fps: float
    current_index: int = -1
    current_job_id: Optional[str] = None
    current_path: Optional[str] = None
    completed: List[str] = Field(default_factory=list)
    failed: List[FailedVideo] = Field(default_factory=list)
    results: Dict[str, AnalysisResult] = Field(default_factory=dict)
    status: BatchStatus = BatchStatus.PENDING
    uploads_complete: bool = False
    expected_count: Optional[int] = None
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def total(self) -> int:
        return len(self.videos)

    @property
    def remaining(self) -> int:
        return self.total - len(self.completed) - len(self.failed)

    def has_outcome(self, path: str) -> bool:
        return path in self.completed or any(f.path == path for f in self.failed)
