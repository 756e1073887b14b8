"""
Pipeline Module.

Asynchronous extraction orchestration and progress reporting.

Author: ML Engineering Team
"""

from .progress import EventType, PipelineStage, ProgressEvent, ProgressStatus, ProgressTracker
from .publishers import (
    CompositeProgressPublisher,
    InMemoryProgressPublisher,
    LoggingProgressPublisher,
    MetricsProgressPublisher,
    ProgressPublisher,
)
from .orchestrator import ExtractionOrchestrator, ExtractionOutcome, build_orchestrator

__all__ = [
    'EventType',
    'PipelineStage',
    'ProgressEvent',
    'ProgressStatus',
    'ProgressTracker',
    'ProgressPublisher',
    'LoggingProgressPublisher',
    'InMemoryProgressPublisher',
    'CompositeProgressPublisher',
    'MetricsProgressPublisher',
    'ExtractionOrchestrator',
    'ExtractionOutcome',
    'build_orchestrator',
]
