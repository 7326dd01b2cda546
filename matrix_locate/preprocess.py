import logging
from typing import Tuple
import cv2
import numpy as np

from .config import DetectorConfig
from .errors import InvalidImageError
from .types import DerivedParams

logger = logging.getLogger(__name__)


def ellipse(size: Tuple[int, int]) -> np.ndarray:
    return cv2.getStructuringElement(cv2.MORPH_ELLIPSE, tuple(size))


def check_image(img: np.ndarray) -> None:
    if not isinstance(img, np.ndarray):
        raise InvalidImageError(f"Expected a numpy array, got {type(img).__name__}")
    if img.ndim not in (2, 3) or img.size == 0 or img.shape[0] == 0 or img.shape[1] == 0:
        raise InvalidImageError(f"Image has no pixels: shape={img.shape}")
    if img.ndim == 3 and img.shape[2] not in (1, 3, 4):
        raise InvalidImageError(f"Unsupported channel count: {img.shape[2]}")
    if img.dtype != np.uint8:
        raise InvalidImageError(f"Expected uint8 pixels, got {img.dtype}")


def maybe_resize(img: np.ndarray, max_rows: int = 300) -> Tuple[np.ndarray, float]:
    """Shrink images taller than max_rows, keeping the aspect ratio."""
    h, w = img.shape[:2]
    if h <= max_rows:
        return img, 1.0
    scale = max_rows / float(h)
    cols = max(1, int(w * scale))
    img = cv2.resize(img, (cols, max_rows), interpolation=cv2.INTER_AREA)
    return img, scale


def to_grayscale(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return img
    if img.shape[2] == 1:
        return img[:, :, 0]
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)


def black_hat(gray: np.ndarray, elem_size: Tuple[int, int] = (10, 10)) -> np.ndarray:
    # closing minus original: small dark structures on lighter background
    return cv2.morphologyEx(gray, cv2.MORPH_BLACKHAT, ellipse(elem_size))


def derive_params(shape: Tuple[int, ...], cfg: DetectorConfig) -> DerivedParams:
    rows, cols = shape[:2]
    rect_height = int(cfg.window_fraction * rows)
    rect_width = int(cfg.window_fraction * cols)
    return DerivedParams(
        min_area=cfg.min_area_fraction * cols * rows,
        rect_height=rect_height,
        rect_width=rect_width,
        density_threshold=rect_height * rect_width * cfg.edge_density,
    )


def preprocess(img: np.ndarray, cfg: DetectorConfig) -> Tuple[np.ndarray, float, np.ndarray, DerivedParams]:
    """
    Downscale, grayscale and black-hat the input.
    Returns: (scaled, scale, enhanced_gray, params)
    """
    check_image(img)
    scaled, scale = maybe_resize(img, max_rows=cfg.row_cap)
    gray = black_hat(to_grayscale(scaled), cfg.elem_size)
    params = derive_params(gray.shape, cfg)
    logger.debug(
        "Preprocessed %dx%d -> %dx%d (scale %.3f), window %dx%d, density >= %.1f, min area %.1f",
        img.shape[1], img.shape[0], gray.shape[1], gray.shape[0], scale,
        params.rect_width, params.rect_height, params.density_threshold, params.min_area,
    )
    return scaled, scale, gray, params


def consolidate_regions(
    mask: np.ndarray,
    elem_size: Tuple[int, int] = (10, 10),
    large_elem_size: Tuple[int, int] = (12, 12),
) -> np.ndarray:
    """
    Close with the small element to merge nearby detections into blobs,
    then open with the large one to drop small spurious blobs.
    """
    small = ellipse(elem_size)
    large = ellipse(large_elem_size)
    out = cv2.dilate(mask, small)
    out = cv2.erode(out, small)
    out = cv2.erode(out, large)
    out = cv2.dilate(out, large)
    return out
