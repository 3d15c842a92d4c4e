import threading
import pytest
import yaml
from fishfinder.config.models import AppConfig, GeneralConfig, QueueConfig
from fishfinder.domain.models import ProgressSnapshot, ProgressStage
from fishfinder.infrastructure.event_bus import EventBus
from fishfinder.pipeline.analysis import VideoAnalyzer
from fishfinder.pipeline.batch_coordinator import BatchCoordinator
from fishfinder.pipeline.job_registry import JobRegistry


def make_response(summary="Reef dive", duration=42.0, species=None):
    """Analysis service reply in the shape the remote model returns."""
    if species is None:
        species = [{
            "common_name": "Clownfish",
            "scientific_name": "Amphiprion ocellaris",
            "confidence": 0.95,
            "timestamps": [{"start": 12, "end": 14}],
            "habitat": "Coral reefs",
            "description": "Orange with white bands",
        }]
    return {"species": species, "summary": summary, "video_duration_seconds": duration}


class FakeAnalyzer(VideoAnalyzer):
    """Scriptable stand-in for the remote analysis service.

    ``outcomes`` maps a video path to a response dict or an exception to raise.
    When ``gate`` is set, analyze() blocks on it after signalling ``entered``.
    """

    def __init__(self, outcomes=None, gate=None):
        self.outcomes = outcomes or {}
        self.gate = gate
        self.entered = threading.Event()
        self.calls = []

    def analyze(self, video, model, fps, on_progress=None):
        self.calls.append(video.path)
        if on_progress:
            on_progress(ProgressSnapshot(stage=ProgressStage.ANALYZING, percent=50, message="Halfway"))
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        outcome = self.outcomes.get(video.path, make_response(summary=f"Summary of {video.path}"))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def registry(bus):
    return JobRegistry(bus)


@pytest.fixture
def coordinator(bus, registry):
    return BatchCoordinator(bus, job_registry=registry)


@pytest.fixture
def app_config():
    return AppConfig(general=GeneralConfig(model="3-flash", fps=1), queue=QueueConfig(wait_interval_seconds=0.05))


@pytest.fixture
def analyzer_factory():
    return FakeAnalyzer


@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def recorded(bus):
    """Every event published on the bus, in order, as (topic, payload)."""
    from fishfinder.domain.events import BATCH_EVENT_TYPES, JOB_EVENT_TYPES
    events = []
    for event_type in BATCH_EVENT_TYPES + JOB_EVENT_TYPES:
        bus.subscribe(event_type, lambda e: events.append((e.topic, e.payload())))
    return events


@pytest.fixture
def fishfinder_yaml(tmp_path):
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "fishfinder.yaml"

    content = {
        'general': {
            'model': 'gpt-5-mini',
            'fps': 2,
            'extract_frames': str(tmp_path / "frames"),
            'extensions': ['mp4', 'MOV'],
        },
        'queue': {
            'wait_interval_seconds': 0.5
        },
        'retention': {
            'sweep_interval_seconds': 60,
            'retention_seconds': 120
        }
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file
