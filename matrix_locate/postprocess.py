import logging
from typing import List, Tuple
import cv2
import numpy as np

from .errors import CandidateMaterializationError
from .types import CandidateRegion

logger = logging.getLogger(__name__)


def normalize_region(img: np.ndarray, region: CandidateRegion) -> np.ndarray:
    """
    Rotate img about the region center so the region is axis aligned,
    then cut out the upright w x h patch.
    """
    w, h = int(round(region.size[0])), int(round(region.size[1]))
    if w <= 0 or h <= 0:
        raise CandidateMaterializationError(f"Region has no extent: size={region.size}")

    cx, cy = region.center
    try:
        M = cv2.getRotationMatrix2D((float(cx), float(cy)), float(region.angle), 1.0)
        # move the region center to the middle of the w x h output
        M[0, 2] += (w - 1) / 2.0 - cx
        M[1, 2] += (h - 1) / 2.0 - cy
        roi = cv2.warpAffine(img, M, (w, h), flags=cv2.INTER_CUBIC, borderMode=cv2.BORDER_REPLICATE)
    except cv2.error as e:
        raise CandidateMaterializationError(f"Cannot crop region at {region.center}: {e}") from e

    if roi is None or roi.size == 0:
        raise CandidateMaterializationError(f"Empty crop for region at {region.center}")
    return roi


def normalize_regions(
    img: np.ndarray,
    regions: List[CandidateRegion],
    on_failure: str = "abort",
) -> List[Tuple[CandidateRegion, np.ndarray]]:
    """
    Crop every region, pairing each crop with its region.
    With on_failure="abort" the first failure propagates; with "skip" the
    failing region is dropped and the rest are kept.
    """
    out: List[Tuple[CandidateRegion, np.ndarray]] = []
    for i, region in enumerate(regions):
        try:
            out.append((region, normalize_region(img, region)))
        except CandidateMaterializationError as e:
            if on_failure != "skip":
                raise
            logger.warning("Skipping candidate %d: %s", i, e)
    return out
