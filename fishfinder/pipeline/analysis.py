"""Single-video analysis: call the analysis service, normalise, grab frames."""

import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
from fishfinder.config.models import ModelConfig
from fishfinder.domain.models import (
    AnalysisResponse, AnalysisResult, IdentifiedSpecies, ProgressSnapshot, ProgressStage, QueuedVideo
)
from fishfinder.infrastructure.ffmpeg import FFmpegAdapter, FrameExtractionError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressSnapshot], None]

class VideoAnalyzer(ABC):
    """Interface of the remote species-analysis service."""

    @abstractmethod
    def analyze(
        self,
        video: QueuedVideo,
        model: ModelConfig,
        fps: float,
        on_progress: Optional[ProgressCallback] = None
    ) -> Union[AnalysisResponse, Dict[str, Any]]:
        """Analyse one video.

        Raises on network or auth errors. A dict response is validated into an
        AnalysisResponse, so a malformed reply surfaces as a ValidationError.
        """
        ...

def extract_species_frames(
    video_path: Path,
    species: List[IdentifiedSpecies],
    extractor: FFmpegAdapter,
    output_dir: Path,
    on_progress: Optional[ProgressCallback] = None
) -> int:
    """Saves one frame per whole second of every sighting interval.

    Fills ``frame_files`` on each species that got at least one frame and
    returns the total number of frames written. A failed frame is skipped.
    """
    if not extractor.is_available():
        logger.warning(
            "ffmpeg not found, skipping frame extraction. "
            "Install with: brew install ffmpeg (macOS) or apt install ffmpeg (Linux)"
        )
        return 0

    output_dir.mkdir(parents=True, exist_ok=True)
    total = 0

    for i, entry in enumerate(species):
        if on_progress:
            on_progress(ProgressSnapshot(
                stage=ProgressStage.EXTRACTING,
                percent=round(100 * i / len(species), 1),
                message=f"Extracting frames for {entry.common_name}"
            ))

        frame_files: List[str] = []
        for interval in entry.timestamps:
            for second in range(math.floor(interval.start), math.floor(interval.end) + 1):
                try:
                    frame = extractor.extract_frame(video_path, second, output_dir, entry.common_name)
                    frame_files.append(str(frame))
                except FrameExtractionError as e:
                    logger.debug(f"Failed to extract frame at {second}s for {entry.common_name}: {e}")

        if frame_files:
            entry.frame_files = frame_files
            total += len(frame_files)
            logger.info(f"Extracted {len(frame_files)} frames for {entry.common_name}")

    return total

def analyze_video_file(
    video: QueuedVideo,
    analyzer: VideoAnalyzer,
    model: ModelConfig,
    fps: float,
    frame_extractor: Optional[FFmpegAdapter] = None,
    extract_dir: Optional[Path] = None,
    on_progress: Optional[ProgressCallback] = None
) -> AnalysisResult:
    raw = analyzer.analyze(video, model, fps, on_progress)
    response = raw if isinstance(raw, AnalysisResponse) else AnalysisResponse.model_validate(raw)

    identified = [
        IdentifiedSpecies(
            common_name=s.common_name,
            scientific_name=s.scientific_name,
            confidence=s.confidence,
            timestamps=s.timestamps,
            habitat=s.habitat,
            description=s.description
        )
        for s in response.species
    ]

    if frame_extractor is not None and extract_dir is not None and identified:
        extract_species_frames(Path(video.path), identified, frame_extractor, Path(extract_dir), on_progress)

    return AnalysisResult(
        video=video.path,
        duration=response.video_duration_seconds,
        identified_species=identified,
        summary=response.summary,
        analyzed_at=datetime.now(timezone.utc).isoformat()
    )
