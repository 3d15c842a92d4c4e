import logging
import threading
import time
import uuid
from typing import Callable, Optional, Tuple
from fishfinder.config.models import AppConfig, ModelConfig, resolve_model
from fishfinder.domain.models import AnalysisResult, BatchJob, ProgressSnapshot, ProgressStage, QueuedVideo
from fishfinder.infrastructure.ffmpeg import FFmpegAdapter
from fishfinder.pipeline.analysis import VideoAnalyzer, analyze_video_file
from fishfinder.pipeline.batch_coordinator import BatchCoordinator
from fishfinder.pipeline.job_registry import JobRegistry

ResultLookup = Callable[[str], Optional[AnalysisResult]]

class BatchRunner:
    """Drives one batch: pull the next video, analyse it, record the outcome.

    Videos are processed strictly one at a time. Cancellation is checked
    between videos only; a video already being analysed when the batch is
    cancelled finishes and its outcome is recorded.
    """

    def __init__(
        self,
        config: AppConfig,
        coordinator: BatchCoordinator,
        job_registry: JobRegistry,
        analyzer: VideoAnalyzer,
        frame_extractor: Optional[FFmpegAdapter] = None,
        result_lookup: Optional[ResultLookup] = None
    ):
        self.config = config
        self.coordinator = coordinator
        self.job_registry = job_registry
        self.analyzer = analyzer
        self.frame_extractor = frame_extractor
        self.result_lookup = result_lookup
        self.logger = logging.getLogger(__name__)

    def _batch_model(self, batch_id: str) -> Optional[Tuple[ModelConfig, float]]:
        batch = self.coordinator.get_batch(batch_id)
        if batch is None:
            return None
        return resolve_model(batch.model), batch.fps

    def _process_video(self, batch_id: str, item: QueuedVideo, model: ModelConfig, fps: float):
        """Analyses a single video and records the outcome in the registry and the batch."""
        filename = item.original_name

        if self.result_lookup is not None:
            existing = self.result_lookup(item.path)
            if existing is not None:
                self.coordinator.skip_video(batch_id, item.path, "Result already exists", result=existing)
                self.logger.info(f"VIDEO_SKIP: {filename} (result already exists)")
                return

        job_id = str(uuid.uuid4())
        self.job_registry.create(job_id)
        if not self.coordinator.start_video(batch_id, item.path, job_id):
            error = "Batch refused to start the video"
            self.logger.warning(f"VIDEO_DROPPED: {filename} (batch {batch_id} refused to start it)")
            self.job_registry.fail(job_id, error)
            self.coordinator.fail_video(batch_id, item.path, error)
            return

        def on_progress(progress: ProgressSnapshot):
            self.job_registry.update_progress(job_id, progress)
            self.coordinator.update_video_progress(batch_id, item.path, progress)

        start_time = time.monotonic()
        self.logger.info(f"VIDEO_START: {filename} (job {job_id})")
        on_progress(ProgressSnapshot(stage=ProgressStage.ANALYZING, percent=0, message=f"Analyzing {filename}"))

        try:
            result = analyze_video_file(
                item,
                self.analyzer,
                model,
                fps,
                frame_extractor=self.frame_extractor,
                extract_dir=self.config.general.extract_frames,
                on_progress=on_progress
            )
        except Exception as e:
            error = str(e) or type(e).__name__
            elapsed = time.monotonic() - start_time
            self.logger.error(f"Exception analysing {filename}: {error}")
            self.logger.info(f"VIDEO_END: {filename} status=failed elapsed={elapsed:.2f}s")
            self.job_registry.fail(job_id, error)
            self.coordinator.fail_video(batch_id, item.path, error)
            return

        elapsed = time.monotonic() - start_time
        self.logger.info(
            f"VIDEO_END: {filename} status=completed species={len(result.identified_species)} elapsed={elapsed:.2f}s"
        )
        self.job_registry.complete(job_id, result)
        self.coordinator.complete_video(batch_id, item.path, result)

    def run(self, batch_id: str) -> Optional[BatchJob]:
        """Drains the batch until it is done or cancelled. Returns its final snapshot.

        Raises ValueError when the batch names an unknown model alias.
        """
        resolved = self._batch_model(batch_id)
        if resolved is None:
            self.logger.warning(f"BATCH_MISSING: {batch_id}")
            return None
        model, fps = resolved

        self.logger.info(f"BATCH_RUN: {batch_id} model={model.model} provider={model.provider.value} fps={fps}")
        start_time = time.monotonic()

        while True:
            if batch_id not in self.coordinator:
                self.logger.warning(f"BATCH_GONE: {batch_id} was purged while running")
                return None

            if self.coordinator.is_cancelled(batch_id):
                self.logger.info(f"BATCH_STOP: {batch_id} cancelled")
                break

            item = self.coordinator.next_queued(batch_id)
            if item is None:
                if self.coordinator.should_wait(batch_id):
                    # More uploads expected; sleep until one arrives or the interval lapses
                    self.coordinator.wait_for_work(batch_id, self.config.queue.wait_interval_seconds)
                    continue
                if self.coordinator.is_done(batch_id):
                    self.coordinator.complete_batch(batch_id)
                    break
                snapshot = self.coordinator.get_batch(batch_id)
                if snapshot is None or snapshot.status.is_terminal:
                    break
                continue

            self._process_video(batch_id, item, model, fps)

        elapsed = time.monotonic() - start_time
        final = self.coordinator.get_batch(batch_id)
        if final is not None:
            self.logger.info(
                f"BATCH_END: {batch_id} status={final.status.value} completed={len(final.completed)} "
                f"failed={len(final.failed)} elapsed={elapsed:.2f}s"
            )
        return final

    def _run_thread(self, batch_id: str):
        try:
            self.run(batch_id)
        except Exception as e:
            self.logger.error(f"Batch runner for {batch_id} crashed: {e}")

    def start(self, batch_id: str) -> threading.Thread:
        """Runs the batch in a background thread.

        The model alias is resolved first, so an unknown alias raises
        ValueError here instead of dying inside the thread.
        """
        self._batch_model(batch_id)
        thread = threading.Thread(target=self._run_thread, args=(batch_id,), name=f"batch-{batch_id[:8]}", daemon=True)
        thread.start()
        return thread
