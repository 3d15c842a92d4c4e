import logging
import pytest
from unittest.mock import MagicMock
from fishfinder.config.models import AppConfig, GeneralConfig, RetentionConfig
from fishfinder.domain.models import BatchStatus
from fishfinder.infrastructure.event_bus import EventBus
from fishfinder.infrastructure.ffmpeg import FFmpegAdapter
from fishfinder.pipeline.manager import JobManager

def make_videos(root, *names):
    for name in names:
        (root / name).write_bytes(b"")
    return root

def test_manager_wires_components():
    bus = EventBus()
    config = AppConfig(retention=RetentionConfig(sweep_interval_seconds=5, retention_seconds=50))
    manager = JobManager(config, event_bus=bus)

    assert manager.jobs.event_bus is bus
    assert manager.batches.event_bus is bus
    assert manager.batches.job_registry is manager.jobs
    assert manager.sweeper.interval_seconds == 5
    assert manager.sweeper.retention.total_seconds() == 50

def test_manager_context_starts_and_stops_sweeper():
    with JobManager() as manager:
        assert manager.sweeper.running
    assert not manager.sweeper.running

def test_create_batch_from_directory(tmp_path):
    make_videos(tmp_path, "b.mp4", "a.mov", "readme.txt")
    manager = JobManager()

    batch = manager.create_batch_from_path(tmp_path)

    assert batch.videos == [str(tmp_path / "a.mov"), str(tmp_path / "b.mp4")]
    assert batch.model == "3-flash"
    assert batch.fps == 1.0
    assert batch.uploads_complete
    assert batch.status == BatchStatus.PENDING

def test_create_batch_overrides(tmp_path):
    make_videos(tmp_path, "a.mp4")
    batch = JobManager().create_batch_from_path(tmp_path / "a.mp4", model="gpt-5", fps=0.5)

    assert batch.model == "gpt-5"
    assert batch.fps == 0.5

@pytest.mark.parametrize("fps", [0, -2, 61])
def test_create_batch_invalid_fps(tmp_path, fps):
    make_videos(tmp_path, "a.mp4")
    with pytest.raises(ValueError, match="fps must be a number between 0.1 and 60"):
        JobManager().create_batch_from_path(tmp_path, fps=fps)

def test_create_batch_unknown_model(tmp_path):
    make_videos(tmp_path, "a.mp4")
    with pytest.raises(ValueError, match="Unknown model: nope"):
        JobManager().create_batch_from_path(tmp_path, model="nope")

def test_create_runner_builds_frame_extractor(tmp_path):
    config = AppConfig(general=GeneralConfig(extract_frames=tmp_path))
    runner = JobManager(config).create_runner(MagicMock())

    assert isinstance(runner.frame_extractor, FFmpegAdapter)
    assert runner.frame_extractor.ffprobe is not None

def test_create_runner_without_frames():
    runner = JobManager().create_runner(MagicMock())
    assert runner.frame_extractor is None

def test_end_to_end_directory_batch(tmp_path, analyzer_factory):
    make_videos(tmp_path, "a.mp4", "b.mp4")
    manager = JobManager()
    batch = manager.create_batch_from_path(tmp_path)

    final = manager.create_runner(analyzer_factory()).run(batch.batch_id)

    assert final.status == BatchStatus.COMPLETED
    assert len(final.completed) == 2

@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)

def test_from_config_file_sets_up_logging(fishfinder_yaml, tmp_path, restore_logging):
    log_dir = tmp_path / "logs"

    manager = JobManager.from_config_file(fishfinder_yaml, log_dir=log_dir, debug=True)

    assert manager.config.general.model == "gpt-5-mini"
    assert manager.config.general.debug
    assert manager.sweeper.interval_seconds == 60
    assert logging.getLogger().level == logging.DEBUG
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "Config: model=gpt-5-mini" in (log_dir / "fishfinder.log").read_text()

def test_from_config_file_defaults(tmp_path, restore_logging):
    manager = JobManager.from_config_file(tmp_path / "missing.yaml")

    assert manager.config == AppConfig()
    assert logging.getLogger().level == logging.INFO
