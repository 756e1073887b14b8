"""
Progress Publishers.

The orchestrator only knows ``ProgressPublisher.publish``. Transports
(websockets, queues, ...) plug in by subclassing; this module ships the
publishers the pipeline itself needs.

Author: ML Engineering Team
"""

import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, Iterable, List
from uuid import UUID

from invoice_pipeline.utils.logger import get_logger
from .progress import EventType, ProgressEvent

# Initialize module logger
logger = get_logger(__name__)


class ProgressPublisher(ABC):
    """Receives progress events keyed by extraction key."""

    @abstractmethod
    def publish(self, extraction_key: UUID, event: ProgressEvent) -> None:
        """Deliver one event. Implementations may raise; the caller logs it."""


class LoggingProgressPublisher(ProgressPublisher):
    """Writes every event to the application log."""

    def publish(self, extraction_key: UUID, event: ProgressEvent) -> None:
        if event.type is EventType.EXTRACTION_FAILED:
            logger.error(f"[{extraction_key}] {event.progress:3d}% {event.message}")
        else:
            logger.info(f"[{extraction_key}] {event.progress:3d}% {event.message}")


class InMemoryProgressPublisher(ProgressPublisher):
    """Records events per extraction key, in arrival order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: Dict[UUID, List[ProgressEvent]] = defaultdict(list)

    def publish(self, extraction_key: UUID, event: ProgressEvent) -> None:
        with self._lock:
            self._events[extraction_key].append(event)

    def events_for(self, extraction_key: UUID) -> List[ProgressEvent]:
        with self._lock:
            return list(self._events.get(extraction_key, ()))

    def extraction_keys(self) -> List[UUID]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class CompositeProgressPublisher(ProgressPublisher):
    """
    Fans each event out to several publishers.

    A failing publisher is logged and skipped so the others still receive
    the event.
    """

    def __init__(self, publishers: Iterable[ProgressPublisher] = ()) -> None:
        self.publishers: List[ProgressPublisher] = list(publishers)

    def add(self, publisher: ProgressPublisher) -> None:
        self.publishers.append(publisher)

    def publish(self, extraction_key: UUID, event: ProgressEvent) -> None:
        for publisher in self.publishers:
            try:
                publisher.publish(extraction_key, event)
            except Exception as e:
                logger.warning(
                    f"{type(publisher).__name__} failed to publish "
                    f"{event.type.value} for {extraction_key}: {e}"
                )


class MetricsProgressPublisher(ProgressPublisher):
    """
    Counts terminal events and logs the running success rate.

    Example:
        >>> metrics = MetricsProgressPublisher()
        >>> metrics.publish(key, completed_event)
        >>> metrics.success_rate
        1.0
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.started = 0
        self.completed = 0
        self.failed = 0

    def publish(self, extraction_key: UUID, event: ProgressEvent) -> None:
        with self._lock:
            if event.type is EventType.EXTRACTION_STARTED:
                self.started += 1
                return
            if event.type is EventType.EXTRACTION_COMPLETED:
                self.completed += 1
            elif event.type is EventType.EXTRACTION_FAILED:
                self.failed += 1
            else:
                return
            rate = self.success_rate

        logger.info(
            f"Extractions finished: {self.completed} completed, {self.failed} failed "
            f"(success rate {rate:.1%})"
        )

    @property
    def finished(self) -> int:
        return self.completed + self.failed

    @property
    def success_rate(self) -> float:
        return self.completed / self.finished if self.finished else 0.0

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            return {
                'started': self.started,
                'completed': self.completed,
                'failed': self.failed,
                'success_rate': round(self.success_rate, 4),
            }
