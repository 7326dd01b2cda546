import logging
from typing import List
import numpy as np

from .geometry import find_contours, contour_area, min_area_rect, rect_area, rectangularity
from .types import CandidateRegion

logger = logging.getLogger(__name__)


def extract_candidates(
    mask: np.ndarray,
    *,
    min_area: float,
    min_rectangularity: float = 0.6,
    scale: float = 1.0,
) -> List[CandidateRegion]:
    """
    Turn blobs of the consolidated mask into rotated rectangles.
    Blobs smaller than min_area or not blocky enough are dropped; the rest
    keep contour discovery order.
    """
    out: List[CandidateRegion] = []

    for cnt in find_contours(mask):
        area = contour_area(cnt)
        if area < min_area:
            continue

        rect = min_area_rect(cnt)
        bounding = rect_area(rect)
        ratio = rectangularity(area, bounding)
        if ratio is None or ratio <= min_rectangularity:
            logger.debug("Rejected contour: area=%.1f rectangularity=%s", area, ratio)
            continue

        center, size, angle = rect
        out.append(CandidateRegion(
            center=center,
            size=size,
            angle=angle,
            area=area,
            rect_area=bounding,
            scale=scale,
            contour=cnt,
        ))
    logger.debug("Found %d candidate regions.", len(out))
    return out
