import subprocess
import json
from pathlib import Path
from typing import Any, Dict

class FFprobeAdapter:
    """Wrapper around ffprobe to read container information."""

    def get_format_info(self, file_path: Path) -> Dict[str, Any]:
        """Executes ffprobe and parses the JSON format section."""
        cmd = [
            "ffprobe",
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            str(file_path)
        ]

        result = subprocess.run(cmd, capture_output=True, text=True)
        if result.returncode != 0:
            raise RuntimeError(f"ffprobe failed for {file_path}: {result.stderr}")

        data = json.loads(result.stdout)
        return data.get("format", {})

    def get_duration(self, file_path: Path) -> float:
        """Duration in seconds, 0.0 when the container does not report one."""
        try:
            return float(self.get_format_info(file_path).get("duration", 0.0))
        except (TypeError, ValueError):
            return 0.0
