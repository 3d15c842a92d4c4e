from pathlib import Path
from typing import Iterable, List

class FileScanner:
    """Expands a file or directory argument into the video files to analyse."""

    def __init__(self, extensions: Iterable[str]):
        self.extensions = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions}

    def is_video(self, path: Path) -> bool:
        return path.is_file() and path.suffix.lower() in self.extensions

    def scan(self, input_path: Path) -> List[Path]:
        """Sorted video files under ``input_path`` (recursive), or the file itself."""
        input_path = Path(input_path)
        if not input_path.exists():
            raise FileNotFoundError(f"Path not found: {input_path}")
        if input_path.is_file():
            if not self.is_video(input_path):
                raise ValueError(
                    f"Unsupported video format: {input_path.suffix or input_path.name}. "
                    f"Supported: {', '.join(sorted(self.extensions))}"
                )
            return [input_path]
        return sorted(p for p in input_path.rglob("*") if self.is_video(p) and not p.name.startswith("."))
