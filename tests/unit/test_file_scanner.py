import pytest
from fishfinder.infrastructure.file_scanner import FileScanner

def touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return path

def test_scan_directory_recursive_sorted(tmp_path):
    touch(tmp_path / "b.mp4")
    touch(tmp_path / "a.MOV")
    touch(tmp_path / "sub" / "c.mkv")
    touch(tmp_path / "notes.txt")
    touch(tmp_path / ".hidden.mp4")

    files = FileScanner([".mp4", ".mov", ".mkv"]).scan(tmp_path)

    assert files == [tmp_path / "a.MOV", tmp_path / "b.mp4", tmp_path / "sub" / "c.mkv"]

def test_scan_single_file(tmp_path):
    video = touch(tmp_path / "dive.mp4")
    assert FileScanner(["mp4"]).scan(video) == [video]

def test_scan_unsupported_file(tmp_path):
    doc = touch(tmp_path / "dive.txt")
    with pytest.raises(ValueError, match="Unsupported video format"):
        FileScanner([".mp4"]).scan(doc)

def test_scan_missing_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        FileScanner([".mp4"]).scan(tmp_path / "nope")

def test_scan_empty_directory(tmp_path):
    assert FileScanner([".mp4"]).scan(tmp_path) == []
