import threading
import time
from fishfinder.domain.events import BATCH_EVENT_TYPES
from fishfinder.domain.models import BatchStatus
from fishfinder.pipeline.runner import BatchRunner

def test_producer_and_runner_interleave(app_config, bus, coordinator, registry, analyzer_factory):
    """Uploads trickle in while the runner drains; every video is analysed once, in order."""
    batch = coordinator.create_empty_batch("3-flash", 1, expected_count=20)
    analyzer = analyzer_factory()
    runner = BatchRunner(app_config, coordinator, registry, analyzer)

    thread = runner.start(batch.batch_id)

    def upload():
        for i in range(20):
            coordinator.add_video(batch.batch_id, f"/up/v{i:02d}.mp4", f"v{i:02d}.mp4")
            if i % 5 == 0:
                time.sleep(0.02)
        coordinator.mark_uploads_complete(batch.batch_id)

    producer = threading.Thread(target=upload)
    producer.start()
    producer.join(timeout=5)
    thread.join(timeout=10)

    assert not thread.is_alive()
    final = coordinator.get_batch(batch.batch_id)
    assert final.status == BatchStatus.COMPLETED
    expected = [f"/up/v{i:02d}.mp4" for i in range(20)]
    assert analyzer.calls == expected
    assert final.completed == expected

def test_cancel_during_in_flight_analysis(app_config, bus, coordinator, registry, analyzer_factory):
    """The in-flight video finishes and is recorded; nothing after it starts."""
    gate = threading.Event()
    analyzer = analyzer_factory(gate=gate)
    batch = coordinator.create_batch(["/a.mp4", "/b.mp4", "/c.mp4"], "3-flash", 1)
    runner = BatchRunner(app_config, coordinator, registry, analyzer)

    with bus.listen(BATCH_EVENT_TYPES, entity_id=batch.batch_id) as stream:
        thread = runner.start(batch.batch_id)
        assert analyzer.entered.wait(timeout=5)

        assert coordinator.cancel_batch(batch.batch_id)
        assert not coordinator.cancel_batch(batch.batch_id)
        gate.set()
        thread.join(timeout=5)

        kinds = [event.kind for event in stream.drain()]

    assert not thread.is_alive()
    final = coordinator.get_batch(batch.batch_id)
    assert final.status == BatchStatus.CANCELLED
    assert final.completed == ["/a.mp4"]
    assert analyzer.calls == ["/a.mp4"]
    assert kinds.count("batch:video_start") == 1
    assert kinds.index("batch:cancelled") < kinds.index("batch:video_complete")
    assert "batch:complete" not in kinds

def test_observers_see_batch_events_in_order(app_config, bus, coordinator, registry, analyzer_factory):
    batch = coordinator.create_batch([f"/v{i}.mp4" for i in range(5)], "3-flash", 1)
    runner = BatchRunner(app_config, coordinator, registry, analyzer_factory())
    seen = []

    with bus.listen(BATCH_EVENT_TYPES, entity_id=batch.batch_id) as stream:
        def observe():
            for event in stream:
                seen.append(event)
                if event.kind == "batch:complete":
                    return

        observer = threading.Thread(target=observe)
        observer.start()
        runner.start(batch.batch_id).join(timeout=10)
        observer.join(timeout=5)

    assert not observer.is_alive()
    starts = [e.path for e in seen if e.kind == "batch:video_start"]
    assert starts == [f"/v{i}.mp4" for i in range(5)]
    completed_counts = [e.completed_count for e in seen if e.kind == "batch:video_complete"]
    assert completed_counts == [1, 2, 3, 4, 5]
    assert seen[-1].kind == "batch:complete"

def test_concurrent_batches_are_independent(app_config, bus, coordinator, registry, analyzer_factory):
    batches = [coordinator.create_batch([f"/b{n}/v{i}.mp4" for i in range(4)], "3-flash", 1) for n in range(3)]
    threads = [
        BatchRunner(app_config, coordinator, registry, analyzer_factory()).start(b.batch_id) for b in batches
    ]
    for thread in threads:
        thread.join(timeout=10)

    for n, batch in enumerate(batches):
        final = coordinator.get_batch(batch.batch_id)
        assert final.status == BatchStatus.COMPLETED
        assert final.completed == [f"/b{n}/v{i}.mp4" for i in range(4)]
    assert len(registry) == 12
