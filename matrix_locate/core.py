import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import cv2
import numpy as np

from .config import DetectorConfig
from .detect import extract_candidates
from .diagnostics import Diagnostics, NullDiagnostics
from .errors import ImageDecodeError, MatrixLocateError
from .gradient import compute_gradient_field
from .postprocess import normalize_regions
from .preprocess import consolidate_regions, preprocess
from .probability import binarize_probabilities, build_probability_map, orientation_bins
from .types import CandidateRegion, PipelineState

logger = logging.getLogger(__name__)


def decode_image(path: str) -> np.ndarray:
    img = cv2.imread(path, cv2.IMREAD_COLOR)
    if img is None:
        raise ImageDecodeError(f"Cannot read image: {path}")
    return img


def decode_bytes(data: bytes) -> np.ndarray:
    if not data:
        raise ImageDecodeError("Empty image buffer.")
    img = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if img is None:
        raise ImageDecodeError("Could not decode image. Provide a valid JPG/PNG.")
    return img


def run_pipeline(
        image: np.ndarray,
        config: Optional[DetectorConfig] = None,
        diagnostics: Optional[Diagnostics] = None,
    ) -> PipelineState:
    """Run every stage once on image and return the filled-in state."""
    cfg = config or DetectorConfig()
    diag = diagnostics or NullDiagnostics()
    state = PipelineState(original=image)

    # ---- preprocess
    state.scaled, state.scale, state.gray, state.params = preprocess(image, cfg)
    diag.checkpoint("greyscale", state.gray)

    # ---- gradients
    state.gradient = compute_gradient_field(state.gray, cfg.magnitude_floor, cfg.wrap_snap)
    if diag.enabled:
        diag.checkpoint("angles", state.gradient.direction)
        diag.checkpoint("magnitudes_raw", state.gradient.magnitude)
        diag.checkpoint("magnitudes", state.gradient.edge_mask)
        diag.checkpoint(
            "orientation_bins",
            orientation_bins(state.gradient.direction, state.gradient.edge_mask, cfg.bin_width),
        )

    # ---- probability map
    prob_raw = build_probability_map(
        state.gradient.direction, state.gradient.edge_mask, state.params, cfg.bin_width
    )
    diag.checkpoint("probabilities_raw", prob_raw)
    state.probabilities, state.candidate_mask = binarize_probabilities(prob_raw)
    diag.checkpoint("probabilities", state.candidate_mask)

    # ---- merge blobs, drop specks
    state.consolidated = consolidate_regions(state.candidate_mask, cfg.elem_size, cfg.large_elem_size)
    diag.checkpoint("consolidated", state.consolidated)

    # ---- contours -> rotated rectangles
    regions = extract_candidates(
        state.consolidated,
        min_area=state.params.min_area,
        min_rectangularity=cfg.rectangularity,
        scale=state.scale,
    )

    # ---- crops
    pairs = normalize_regions(state.scaled, regions, on_failure=cfg.on_crop_failure)
    state.regions = [r for r, _ in pairs]
    state.crops = [c for _, c in pairs]

    if diag.enabled:
        from .visualize import draw_candidates_on_image
        diag.checkpoint("candidates", draw_candidates_on_image(state.scaled, state.regions))

    logger.info("Found %d candidate region(s)", len(state.regions))
    return state


def locate_candidates(
        image: np.ndarray,
        config: Optional[DetectorConfig] = None,
        diagnostics: Optional[Diagnostics] = None,
    ) -> List[CandidateRegion]:
    return run_pipeline(image, config, diagnostics).regions


def find_barcodes(
        image: np.ndarray,
        config: Optional[DetectorConfig] = None,
        diagnostics: Optional[Diagnostics] = None,
    ) -> List[np.ndarray]:
    """Upright crops of every candidate region, in contour discovery order."""
    return run_pipeline(image, config, diagnostics).crops


@dataclass
class BatchResult:
    index: int
    regions: List[CandidateRegion] = field(default_factory=list)
    crops: List[np.ndarray] = field(default_factory=list)
    error: Optional[MatrixLocateError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _run_one(index: int, image: np.ndarray, cfg: DetectorConfig) -> BatchResult:
    try:
        state = run_pipeline(image, cfg)
    except MatrixLocateError as e:
        logger.error("Image %d failed: %s", index, e)
        return BatchResult(index=index, error=e)
    return BatchResult(index=index, regions=state.regions, crops=state.crops)


def locate_batch(
        images: Sequence[np.ndarray],
        config: Optional[DetectorConfig] = None,
        workers: Optional[int] = None,
    ) -> List[BatchResult]:
    """
    Run independent pipelines over images, one worker per image.
    Results keep input order; a failure is reported on its own result only.
    """
    cfg = config or DetectorConfig()
    if not images:
        return []
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_run_one, i, img, cfg) for i, img in enumerate(images)]
        return [f.result() for f in futures]
