"""
Upload pipeline domain: models, errors, orientation classification and the
orchestrator that ties the stages together.
"""

from .errors import PipelineError
from .models import (
    MediaKind,
    OrientationCategory,
    PipelineRun,
    PipelineState,
    ProbeResult,
    StagedFile,
    StoredObjectRef,
    UploadRequest,
    UploadResult,
    VideoRecord,
)
from .orientation import classify_orientation
from .pipeline import PipelineConfig, RecordStore, UploadPipeline

__all__ = [
    "MediaKind",
    "OrientationCategory",
    "PipelineConfig",
    "PipelineError",
    "PipelineRun",
    "PipelineState",
    "ProbeResult",
    "RecordStore",
    "StagedFile",
    "StoredObjectRef",
    "UploadPipeline",
    "UploadRequest",
    "UploadResult",
    "VideoRecord",
    "classify_orientation",
]
