import logging
import re
import shutil
import subprocess
import threading
from pathlib import Path
from typing import Dict, List, Optional
from fishfinder.infrastructure.ffprobe import FFprobeAdapter

class FrameExtractionError(RuntimeError):
    """ffmpeg missing, timestamp out of range, or ffmpeg failed."""

class FFmpegAdapter:
    """Wrapper around ffmpeg for grabbing single frames out of a video."""

    def __init__(self, ffprobe: Optional[FFprobeAdapter] = None, timeout: float = 30.0):
        self.ffprobe = ffprobe
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)
        self._durations: Dict[str, float] = {}
        self._durations_lock = threading.Lock()

    def is_available(self) -> bool:
        return shutil.which("ffmpeg") is not None

    @staticmethod
    def _slug(label: str) -> str:
        return re.sub(r"[^a-z0-9]+", "_", label.lower()).strip("_") or "frame"

    def frame_path(self, video_path: Path, timestamp_seconds: float, output_dir: Path, label: str) -> Path:
        return output_dir / f"{Path(video_path).stem}_{self._slug(label)}_{timestamp_seconds:g}s.jpg"

    def _build_command(self, video_path: Path, timestamp_seconds: float, output_path: Path) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        return [
            "ffmpeg",
            "-y",  # Overwrite output files
            "-ss", f"{timestamp_seconds:g}",  # Seek before -i: fast keyframe seek
            "-i", str(video_path),
            "-frames:v", "1",
            "-q:v", "2",
            str(output_path)
        ]

    def _duration(self, video_path: Path) -> float:
        key = str(video_path)
        with self._durations_lock:
            if key in self._durations:
                return self._durations[key]
        try:
            duration = self.ffprobe.get_duration(video_path)
        except (RuntimeError, ValueError, OSError) as e:
            raise FrameExtractionError(f"Cannot read duration of {video_path}: {e}") from e
        with self._durations_lock:
            self._durations[key] = duration
        return duration

    def extract_frame(self, video_path: Path, timestamp_seconds: float, output_dir: Path, label: str) -> Path:
        """Saves the frame at ``timestamp_seconds`` as a JPEG and returns its path."""
        if not self.is_available():
            raise FrameExtractionError(
                "ffmpeg not found. Install with: brew install ffmpeg (macOS) or apt install ffmpeg (Linux)"
            )
        if timestamp_seconds < 0:
            raise FrameExtractionError(f"Timestamp {timestamp_seconds}s is negative")
        if self.ffprobe is not None:
            duration = self._duration(Path(video_path))
            if duration and timestamp_seconds > duration:
                raise FrameExtractionError(
                    f"Timestamp {timestamp_seconds}s is beyond the end of {Path(video_path).name} ({duration:.1f}s)"
                )

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = self.frame_path(video_path, timestamp_seconds, output_dir, label)
        cmd = self._build_command(Path(video_path), timestamp_seconds, output_path)

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise FrameExtractionError(f"ffmpeg timed out after {self.timeout}s") from e

        if result.returncode != 0:
            raise FrameExtractionError(f"ffmpeg exited with code {result.returncode}: {result.stderr.strip()[-200:]}")
        if not output_path.exists():
            raise FrameExtractionError(f"ffmpeg produced no frame at {timestamp_seconds}s")

        self.logger.debug(f"FRAME_SAVED: {output_path}")
        return output_path
