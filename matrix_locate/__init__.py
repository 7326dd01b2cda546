"""Top-level package interface for matrix_locate.

Expose the main API: locate_candidates / find_barcodes and the detector config.
"""
from .config import CodeKind, DetectorConfig
from .core import (
    BatchResult,
    decode_bytes,
    decode_image,
    find_barcodes,
    locate_batch,
    locate_candidates,
    run_pipeline,
)
from .errors import (
    CandidateMaterializationError,
    ConfigError,
    ImageDecodeError,
    InvalidImageError,
    MatrixLocateError,
    OutputWriteError,
)
from .types import CandidateRegion, PipelineState

__all__ = [
    "BatchResult",
    "CandidateMaterializationError",
    "CandidateRegion",
    "CodeKind",
    "ConfigError",
    "DetectorConfig",
    "ImageDecodeError",
    "InvalidImageError",
    "MatrixLocateError",
    "OutputWriteError",
    "PipelineState",
    "decode_bytes",
    "decode_image",
    "find_barcodes",
    "locate_batch",
    "locate_candidates",
    "run_pipeline",
]
