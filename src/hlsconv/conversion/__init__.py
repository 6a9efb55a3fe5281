"""Conversion job lifecycle.

Module organization:
- models.py: Job records and statuses
- quality.py: Quality label to CRF mapping
- progress.py: Raw engine percentage to client-facing progress
- artifacts.py: Downloads directory management and retention
- registry.py: In-memory job registry with expiry
- reducer.py: Pure engine-event to job-record transitions
- orchestrator.py: Submission and background job execution
- exceptions.py: Conversion error hierarchy
"""

from .artifacts import ArtifactCheck, ArtifactStore, DeleteOutcome, sanitize_filename
from .exceptions import (
    ConversionError,
    EmptyOutputError,
    EngineExecutionError,
    EngineUnavailableError,
    ValidationError,
)
from .models import DownloadDescriptor, Job, JobStatus
from .orchestrator import ConversionOrchestrator, ConversionRequest
from .progress import DEFAULT_CURVE, ProgressCurve, map_progress
from .quality import QUALITY_CRF, resolve_quality
from .registry import JobRegistry

__all__ = [
    "DEFAULT_CURVE",
    "QUALITY_CRF",
    "ArtifactCheck",
    "ArtifactStore",
    "ConversionError",
    "ConversionOrchestrator",
    "ConversionRequest",
    "DeleteOutcome",
    "DownloadDescriptor",
    "EmptyOutputError",
    "EngineExecutionError",
    "EngineUnavailableError",
    "Job",
    "JobRegistry",
    "JobStatus",
    "ProgressCurve",
    "ValidationError",
    "map_progress",
    "resolve_quality",
    "sanitize_filename",
]
