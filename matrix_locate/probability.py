"""
Sliding-window orientation-histogram probability map.

Matrix barcode texture shows two locally dominant, near-orthogonal gradient
orientations of similar strength. For every edge pixel the orientations in a
window around it are histogrammed and the two highest bins are scored:

    (1 - |d - 90| / 90) * (2 * min(c1, c2) / (c1 + c2))

where c1, c2 are the bin counts and d the angle between the bins.

The full map is computed with one integral image per histogram bin, giving
every window's histogram as four lookups. `probability_at` is the plain
per-window version of the same computation.
"""
import logging
from typing import Tuple
import cv2
import numpy as np

from .types import DerivedParams

logger = logging.getLogger(__name__)

NO_ORIENTATION = -1


def orientation_bins(direction: np.ndarray, edge_mask: np.ndarray, bin_width: int = 15) -> np.ndarray:
    """Histogram bin index per pixel, NO_ORIENTATION where there is no edge."""
    n_bins = 180 // bin_width
    bins = np.floor(direction / float(bin_width)).astype(np.int16)
    np.clip(bins, 0, n_bins - 1, out=bins)
    bins[edge_mask == 0] = NO_ORIENTATION
    return bins


def orientation_histogram(bins: np.ndarray, n_bins: int) -> np.ndarray:
    valid = bins[bins != NO_ORIENTATION]
    return np.bincount(valid.ravel().astype(np.int64), minlength=n_bins)[:n_bins]


def top_two_bins(hist: np.ndarray) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    """((bin, count), (bin, count)) of the two highest bins; ties go to the lower bin."""
    order = np.argsort(-np.asarray(hist), kind="stable")
    first, second = int(order[0]), int(order[1])
    return (first, int(hist[first])), (second, int(hist[second]))


def orientation_probability(c1: float, c2: float, angle_diff: float) -> float:
    total = c1 + c2
    if total <= 0:
        return 0.0
    return (1.0 - abs(angle_diff - 90.0) / 90.0) * (2.0 * min(c1, c2) / total)


def window_probability(bins: np.ndarray, bin_width: int = 15) -> float:
    """Score one window of orientation bins."""
    hist = orientation_histogram(bins, 180 // bin_width)
    (b1, c1), (b2, c2) = top_two_bins(hist)
    return orientation_probability(c1, c2, abs(b1 - b2) * bin_width)


def window_bounds(n: int, half: int) -> Tuple[np.ndarray, np.ndarray]:
    """Start/stop of the window centered on each index, clipped to [0, n]."""
    idx = np.arange(n)
    return np.clip(idx - half, 0, n), np.clip(idx + half + 1, 0, n)


def probability_at(
    bins: np.ndarray,
    edge_mask: np.ndarray,
    row: int,
    col: int,
    params: DerivedParams,
    bin_width: int = 15,
) -> float:
    if edge_mask[row, col] == 0:
        return 0.0
    rows, cols = edge_mask.shape
    hh, hw = params.rect_height // 2, params.rect_width // 2
    r0, r1 = max(row - hh, 0), min(row + hh + 1, rows)
    c0, c1 = max(col - hw, 0), min(col + hw + 1, cols)
    if np.count_nonzero(edge_mask[r0:r1, c0:c1]) < params.density_threshold:
        return 0.0
    return window_probability(bins[r0:r1, c0:c1], bin_width)


def _box_sums(integral: np.ndarray, rows: Tuple[np.ndarray, np.ndarray], cols: Tuple[np.ndarray, np.ndarray]) -> np.ndarray:
    r0, r1 = rows
    c0, c1 = cols
    return (
        integral[np.ix_(r1, c1)]
        - integral[np.ix_(r0, c1)]
        - integral[np.ix_(r1, c0)]
        + integral[np.ix_(r0, c0)]
    )


def window_bin_counts(bins: np.ndarray, n_bins: int, rows, cols) -> np.ndarray:
    """(n_bins, H, W) count of each orientation bin in every pixel's window."""
    counts = np.empty((n_bins,) + bins.shape, dtype=np.int32)
    for k in range(n_bins):
        integral = cv2.integral((bins == k).astype(np.uint8))
        counts[k] = _box_sums(integral, rows, cols)
    return counts


def build_probability_map(
    direction: np.ndarray,
    edge_mask: np.ndarray,
    params: DerivedParams,
    bin_width: int = 15,
) -> np.ndarray:
    """float32 map in [0,1]; zero wherever the window is skipped."""
    n_bins = 180 // bin_width
    height, width = edge_mask.shape
    bins = orientation_bins(direction, edge_mask, bin_width)

    rows = window_bounds(height, params.rect_height // 2)
    cols = window_bounds(width, params.rect_width // 2)

    density = _box_sums(cv2.integral((edge_mask != 0).astype(np.uint8)), rows, cols)
    active = (edge_mask != 0) & (density >= params.density_threshold)
    if not active.any():
        logger.debug("No window reached the edge density threshold")
        return np.zeros((height, width), dtype=np.float32)

    counts = window_bin_counts(bins, n_bins, rows, cols)
    order = np.argsort(-counts, axis=0, kind="stable")[:2]
    top = np.take_along_axis(counts, order, axis=0).astype(np.float64)
    c1, c2 = top[0], top[1]
    d = np.abs(order[0].astype(np.int64) - order[1]) * bin_width

    total = c1 + c2
    balance = np.divide(2.0 * np.minimum(c1, c2), total, out=np.zeros_like(total), where=total > 0)
    prob = (1.0 - np.abs(d - 90.0) / 90.0) * balance

    logger.debug("Scored %d of %d pixels", int(active.sum()), active.size)
    return np.where(active, prob, 0.0).astype(np.float32)


def binarize_probabilities(prob: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Rescale to 0..255 and Otsu-threshold. Returns: (prob_u8, mask)"""
    prob8 = cv2.normalize(prob, None, 0, 255, cv2.NORM_MINMAX, cv2.CV_8U)
    thresh, mask = cv2.threshold(prob8, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)
    logger.debug("Probability threshold is %.1f", thresh)
    return prob8, mask
