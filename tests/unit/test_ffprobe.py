import pytest
import json
from pathlib import Path
from unittest.mock import patch
from fishfinder.infrastructure.ffprobe import FFprobeAdapter

def test_ffprobe_parse_format():
    mock_output = {
        "format": {
            "filename": "dive.mp4",
            "format_name": "mov,mp4,m4a,3gp,3g2,mj2",
            "duration": "42.500000"
        }
    }

    with patch("subprocess.run") as mock_run:
        mock_run.return_value.stdout = json.dumps(mock_output)
        mock_run.return_value.returncode = 0

        adapter = FFprobeAdapter()
        info = adapter.get_format_info(Path("dive.mp4"))

        assert info["filename"] == "dive.mp4"
        assert adapter.get_duration(Path("dive.mp4")) == 42.5
        assert "-show_format" in mock_run.call_args[0][0]

def test_ffprobe_missing_duration():
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.stdout = json.dumps({"format": {"duration": "N/A"}})
        mock_run.return_value.returncode = 0

        assert FFprobeAdapter().get_duration(Path("dive.mp4")) == 0.0

def test_ffprobe_error():
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.returncode = 1
        mock_run.return_value.stderr = "error"

        adapter = FFprobeAdapter()
        with pytest.raises(RuntimeError):
            adapter.get_format_info(Path("dive.mp4"))
        with pytest.raises(RuntimeError):
            adapter.get_duration(Path("dive.mp4"))
