import logging
from pathlib import Path
from typing import Optional
from fishfinder.config.loader import load_config
from fishfinder.config.models import AppConfig, resolve_model
from fishfinder.domain.models import BatchJob
from fishfinder.infrastructure.event_bus import EventBus
from fishfinder.infrastructure.ffmpeg import FFmpegAdapter
from fishfinder.infrastructure.ffprobe import FFprobeAdapter
from fishfinder.infrastructure.file_scanner import FileScanner
from fishfinder.infrastructure.gc_sweeper import GCSweeper
from fishfinder.infrastructure.logging import setup_logging
from fishfinder.pipeline.analysis import VideoAnalyzer
from fishfinder.pipeline.batch_coordinator import BatchCoordinator
from fishfinder.pipeline.job_registry import JobRegistry
from fishfinder.pipeline.runner import BatchRunner, ResultLookup

class JobManager:
    """Owns the event bus, the job registry, the batch coordinator and the sweeper.

    ``start()`` begins periodic sweeping and ``stop()`` ends it; use it as a
    context manager to scope both.
    """

    def __init__(self, config: Optional[AppConfig] = None, event_bus: Optional[EventBus] = None):
        self.config = config or AppConfig()
        self.event_bus = event_bus or EventBus()
        self.jobs = JobRegistry(self.event_bus)
        self.batches = BatchCoordinator(self.event_bus, job_registry=self.jobs)
        self.sweeper = GCSweeper(
            self.jobs,
            self.batches,
            interval_seconds=self.config.retention.sweep_interval_seconds,
            retention_seconds=self.config.retention.retention_seconds
        )
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config_file(
        cls,
        config_path: Optional[Path] = None,
        log_dir: Optional[Path] = None,
        debug: bool = False
    ) -> "JobManager":
        """Loads YAML config, sets up logging FIRST, then builds the manager."""
        config = load_config(config_path)
        if debug:
            config.general.debug = True

        logger = setup_logging(log_dir, debug=config.general.debug)
        logger.info(f"Fishfinder started: config={config_path or 'default'}, log_dir={log_dir}")
        logger.info(
            f"Config: model={config.general.model}, fps={config.general.fps}, "
            f"extract_frames={config.general.extract_frames}, debug={config.general.debug}"
        )
        return cls(config)

    def start(self):
        self.sweeper.start()

    def stop(self):
        self.sweeper.stop()

    def __enter__(self) -> "JobManager":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def create_runner(
        self,
        analyzer: VideoAnalyzer,
        frame_extractor: Optional[FFmpegAdapter] = None,
        result_lookup: Optional[ResultLookup] = None
    ) -> BatchRunner:
        """Builds a runner; frames are extracted with ffmpeg when extract_frames is configured."""
        if frame_extractor is None and self.config.general.extract_frames is not None:
            frame_extractor = FFmpegAdapter(ffprobe=FFprobeAdapter())
        return BatchRunner(
            self.config,
            self.batches,
            self.jobs,
            analyzer,
            frame_extractor=frame_extractor,
            result_lookup=result_lookup
        )

    def create_batch_from_path(self, input_path: Path, model: Optional[str] = None, fps: Optional[float] = None) -> BatchJob:
        """Creates a pre-populated batch from a video file or a directory of videos."""
        model = model or self.config.general.model
        fps = fps if fps is not None else self.config.general.fps
        resolve_model(model)
        if not 0 < fps <= 60:
            raise ValueError("fps must be a number between 0.1 and 60")

        scanner = FileScanner(self.config.general.extensions)
        videos = scanner.scan(Path(input_path))
        self.logger.info(f"DISCOVERY: {input_path} -> {len(videos)} video(s)")
        return self.batches.create_batch([str(v) for v in videos], model, fps)
