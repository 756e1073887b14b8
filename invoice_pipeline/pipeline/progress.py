"""
Progress Event Protocol.

Each extraction moves through a fixed sequence of stages, and one
``ProgressEvent`` is emitted per stage:

    STARTED (0) -> OCR_DONE (33) -> LLM_DONE (66) -> PERSISTED (90) -> COMPLETED (100)

``FAILED`` (0) may follow any non-terminal stage. ``ProgressTracker``
enforces the ordering and guarantees a single terminal event per
extraction key.

Author: ML Engineering Team
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID


class EventType(str, Enum):
    EXTRACTION_STARTED = "EXTRACTION_STARTED"
    OCR_COMPLETED = "OCR_COMPLETED"
    LLM_EXTRACTION_COMPLETED = "LLM_EXTRACTION_COMPLETED"
    INVOICE_SAVED = "INVOICE_SAVED"
    EXTRACTION_COMPLETED = "EXTRACTION_COMPLETED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"


class ProgressStatus(str, Enum):
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class PipelineStage(Enum):
    """Pipeline stages with their event type, status and progress value."""
    STARTED = (EventType.EXTRACTION_STARTED, ProgressStatus.PROCESSING, 0)
    OCR_DONE = (EventType.OCR_COMPLETED, ProgressStatus.PROCESSING, 33)
    LLM_DONE = (EventType.LLM_EXTRACTION_COMPLETED, ProgressStatus.PROCESSING, 66)
    PERSISTED = (EventType.INVOICE_SAVED, ProgressStatus.PROCESSING, 90)
    COMPLETED = (EventType.EXTRACTION_COMPLETED, ProgressStatus.SUCCESS, 100)
    FAILED = (EventType.EXTRACTION_FAILED, ProgressStatus.FAILED, 0)

    def __init__(self, event_type: EventType, status: ProgressStatus, progress: int) -> None:
        self.event_type = event_type
        self.status = status
        self.progress = progress

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineStage.COMPLETED, PipelineStage.FAILED)


# Stages in the order a successful extraction visits them
STAGE_ORDER = (
    PipelineStage.STARTED,
    PipelineStage.OCR_DONE,
    PipelineStage.LLM_DONE,
    PipelineStage.PERSISTED,
    PipelineStage.COMPLETED,
)


@dataclass(frozen=True)
class ProgressEvent:
    """
    One progress notification for an extraction.

    Attributes:
        type: EventType
        extraction_key: Correlates every event of one extraction
        status: PROCESSING, SUCCESS or FAILED
        progress: 0..100
        message: Human-readable description
        timestamp: Emission time
        metadata: Stage-specific values (page count, invoice key, ...)
    """
    type: EventType
    extraction_key: UUID
    status: ProgressStatus
    progress: int
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0 <= self.progress <= 100:
            raise ValueError(f"progress must be in [0, 100], got {self.progress}")

    @property
    def is_terminal(self) -> bool:
        return self.status is not ProgressStatus.PROCESSING

    @classmethod
    def for_stage(
        cls,
        stage: PipelineStage,
        extraction_key: UUID,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> 'ProgressEvent':
        return cls(
            type=stage.event_type,
            extraction_key=extraction_key,
            status=stage.status,
            progress=stage.progress,
            message=message,
            metadata=dict(metadata or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'extraction_key': str(self.extraction_key),
            'status': self.status.value,
            'progress': self.progress,
            'message': self.message,
            'timestamp': self.timestamp.isoformat(),
            'metadata': self.metadata,
        }


class ProgressTracker:
    """
    Stage state machine for one extraction.

    ``advance`` accepts only the next stage in ``STAGE_ORDER`` or
    ``FAILED``; nothing is accepted after a terminal stage.

    Example:
        >>> tracker = ProgressTracker(key)
        >>> tracker.advance(PipelineStage.OCR_DONE)
        True
        >>> tracker.advance(PipelineStage.FAILED)
        True
        >>> tracker.advance(PipelineStage.COMPLETED)
        False
    """

    def __init__(self, extraction_key: UUID) -> None:
        self.extraction_key = extraction_key
        self._stage = PipelineStage.STARTED
        self._lock = threading.Lock()

    @property
    def stage(self) -> PipelineStage:
        return self._stage

    @property
    def is_finished(self) -> bool:
        return self._stage.is_terminal

    def can_advance(self, stage: PipelineStage) -> bool:
        if self._stage.is_terminal:
            return False
        if stage is PipelineStage.FAILED:
            return True
        current = STAGE_ORDER.index(self._stage)
        return current + 1 < len(STAGE_ORDER) and STAGE_ORDER[current + 1] is stage

    def advance(self, stage: PipelineStage) -> bool:
        """Move to ``stage``. Returns False if the transition is not allowed."""
        with self._lock:
            if not self.can_advance(stage):
                return False
            self._stage = stage
            return True
