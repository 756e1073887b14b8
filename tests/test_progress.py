"""Tests for progress events, the stage tracker and publishers."""

import logging
import uuid

import pytest

from invoice_pipeline.pipeline import (
    CompositeProgressPublisher,
    EventType,
    InMemoryProgressPublisher,
    LoggingProgressPublisher,
    MetricsProgressPublisher,
    PipelineStage,
    ProgressEvent,
    ProgressStatus,
    ProgressTracker,
)

from conftest import FailingPublisher


@pytest.fixture
def key():
    return uuid.uuid4()


def event(stage, key, message="msg", metadata=None):
    return ProgressEvent.for_stage(stage, key, message, metadata)


class TestPipelineStage:

    @pytest.mark.parametrize("stage, event_type, status, progress", [
        (PipelineStage.STARTED, EventType.EXTRACTION_STARTED, ProgressStatus.PROCESSING, 0),
        (PipelineStage.OCR_DONE, EventType.OCR_COMPLETED, ProgressStatus.PROCESSING, 33),
        (PipelineStage.LLM_DONE, EventType.LLM_EXTRACTION_COMPLETED, ProgressStatus.PROCESSING, 66),
        (PipelineStage.PERSISTED, EventType.INVOICE_SAVED, ProgressStatus.PROCESSING, 90),
        (PipelineStage.COMPLETED, EventType.EXTRACTION_COMPLETED, ProgressStatus.SUCCESS, 100),
        (PipelineStage.FAILED, EventType.EXTRACTION_FAILED, ProgressStatus.FAILED, 0),
    ])
    def test_stage_table(self, stage, event_type, status, progress):
        assert stage.event_type is event_type
        assert stage.status is status
        assert stage.progress == progress

    def test_terminal_stages(self):
        assert PipelineStage.COMPLETED.is_terminal
        assert PipelineStage.FAILED.is_terminal
        assert not PipelineStage.PERSISTED.is_terminal


class TestProgressEvent:

    def test_to_dict_uses_wire_keys(self, key):
        data = event(PipelineStage.OCR_DONE, key, "OCR completed", {'pageCount': 2}).to_dict()

        assert set(data) == {
            'type', 'extraction_key', 'status', 'progress', 'message', 'timestamp', 'metadata'
        }
        assert data['type'] == "OCR_COMPLETED"
        assert data['extraction_key'] == str(key)
        assert data['status'] == "PROCESSING"
        assert data['progress'] == 33
        assert data['metadata'] == {'pageCount': 2}

    def test_progress_must_be_in_range(self, key):
        with pytest.raises(ValueError):
            ProgressEvent(EventType.OCR_COMPLETED, key, ProgressStatus.PROCESSING, 101, "bad")

    def test_terminal_flag(self, key):
        assert event(PipelineStage.COMPLETED, key).is_terminal
        assert event(PipelineStage.FAILED, key).is_terminal
        assert not event(PipelineStage.LLM_DONE, key).is_terminal


class TestProgressTracker:

    def test_happy_path_sequence(self, key):
        tracker = ProgressTracker(key)
        for stage in (PipelineStage.OCR_DONE, PipelineStage.LLM_DONE,
                      PipelineStage.PERSISTED, PipelineStage.COMPLETED):
            assert tracker.advance(stage)
        assert tracker.is_finished

    def test_cannot_skip_stages(self, key):
        tracker = ProgressTracker(key)
        assert not tracker.advance(PipelineStage.PERSISTED)
        assert tracker.stage is PipelineStage.STARTED

    def test_cannot_move_backwards(self, key):
        tracker = ProgressTracker(key)
        tracker.advance(PipelineStage.OCR_DONE)
        assert not tracker.advance(PipelineStage.OCR_DONE)
        assert not tracker.advance(PipelineStage.STARTED)

    def test_failure_allowed_from_any_non_terminal_stage(self, key):
        tracker = ProgressTracker(key)
        tracker.advance(PipelineStage.OCR_DONE)
        assert tracker.advance(PipelineStage.FAILED)

    def test_nothing_after_terminal_stage(self, key):
        tracker = ProgressTracker(key)
        assert tracker.advance(PipelineStage.FAILED)
        assert not tracker.advance(PipelineStage.FAILED)
        assert not tracker.advance(PipelineStage.OCR_DONE)


class TestPublishers:

    def test_in_memory_records_per_key(self, key):
        publisher = InMemoryProgressPublisher()
        other = uuid.uuid4()
        publisher.publish(key, event(PipelineStage.STARTED, key))
        publisher.publish(other, event(PipelineStage.STARTED, other))
        publisher.publish(key, event(PipelineStage.OCR_DONE, key))

        assert [e.progress for e in publisher.events_for(key)] == [0, 33]
        assert len(publisher.events_for(other)) == 1
        assert publisher.events_for(uuid.uuid4()) == []

        publisher.clear()
        assert publisher.extraction_keys() == []

    def test_logging_publisher(self, key, caplog, monkeypatch):
        # setup_logger() turns propagation off; caplog listens on the root logger
        monkeypatch.setattr(logging.getLogger("invoice_pipeline"), "propagate", True)
        with caplog.at_level(logging.INFO, logger="invoice_pipeline"):
            LoggingProgressPublisher().publish(key, event(PipelineStage.OCR_DONE, key, "OCR completed"))
            LoggingProgressPublisher().publish(key, event(PipelineStage.FAILED, key, "boom"))

        levels = [r.levelno for r in caplog.records if str(key) in r.getMessage()]
        assert levels == [logging.INFO, logging.ERROR]

    def test_composite_continues_after_failure(self, key):
        failing = FailingPublisher()
        healthy = InMemoryProgressPublisher()
        composite = CompositeProgressPublisher([failing, healthy])

        composite.publish(key, event(PipelineStage.STARTED, key))

        assert len(failing.events_for(key)) == 1
        assert len(healthy.events_for(key)) == 1

    def test_composite_add(self, key):
        composite = CompositeProgressPublisher([])
        recorder = InMemoryProgressPublisher()
        composite.add(recorder)

        composite.publish(key, event(PipelineStage.STARTED, key))

        assert len(recorder.events_for(key)) == 1

    def test_metrics_counts_terminal_events(self, key):
        metrics = MetricsProgressPublisher()
        for _ in range(3):
            metrics.publish(key, event(PipelineStage.STARTED, key))
        metrics.publish(key, event(PipelineStage.OCR_DONE, key))
        metrics.publish(key, event(PipelineStage.COMPLETED, key))
        metrics.publish(key, event(PipelineStage.COMPLETED, key))
        metrics.publish(key, event(PipelineStage.FAILED, key))

        snapshot = metrics.snapshot()
        assert snapshot['started'] == 3
        assert snapshot['completed'] == 2
        assert snapshot['failed'] == 1
        assert snapshot['success_rate'] == pytest.approx(0.6667)

    def test_metrics_without_events(self):
        assert MetricsProgressPublisher().success_rate == 0.0
