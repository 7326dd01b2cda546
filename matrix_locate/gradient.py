import logging
import cv2
import numpy as np

from .types import GradientField

logger = logging.getLogger(__name__)


def fold_orientation(angles: np.ndarray, wrap_snap: float = 170.0) -> np.ndarray:
    """
    Map directions in [0,360) to undirected orientations in [0,180).
    Anything above wrap_snap after folding is snapped to 0 so that one real
    orientation does not straddle the histogram wrap.
    """
    folded = np.mod(np.asarray(angles, dtype=np.float32), 180.0)
    folded[folded > wrap_snap] = 0.0
    return folded


def binarize_magnitude(magnitude: np.ndarray, floor: int = 50) -> np.ndarray:
    """Normalize to 0..255 and keep pixels above max(Otsu, floor)."""
    mag8 = cv2.normalize(magnitude, None, 0, 255, cv2.NORM_MINMAX, cv2.CV_8U)
    otsu, _ = cv2.threshold(mag8, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)
    thresh = max(float(otsu), float(floor))
    logger.debug("Magnitude threshold: otsu=%.1f floor=%d -> %.1f", otsu, floor, thresh)
    _, mask = cv2.threshold(mag8, thresh, 255, cv2.THRESH_BINARY)
    return mask


def compute_gradient_field(gray: np.ndarray, magnitude_floor: int = 50, wrap_snap: float = 170.0) -> GradientField:
    gx = cv2.Scharr(gray, cv2.CV_32F, 1, 0)
    gy = cv2.Scharr(gray, cv2.CV_32F, 0, 1)

    direction = fold_orientation(cv2.phase(gx, gy, angleInDegrees=True), wrap_snap)
    magnitude = cv2.magnitude(gx, gy)
    edge_mask = binarize_magnitude(magnitude, floor=magnitude_floor)

    logger.debug("Edge pixels: %d of %d", int(np.count_nonzero(edge_mask)), edge_mask.size)
    return GradientField(magnitude=magnitude, direction=direction, edge_mask=edge_mask)
