from typing import List, Optional, Tuple
import numpy as np
import cv2


def find_contours(mask: np.ndarray) -> List[np.ndarray]:
    # findContours may modify its input on older OpenCV builds
    contours, _ = cv2.findContours(mask.copy(), cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)
    return list(contours)


def contour_area(cnt: np.ndarray) -> float:
    return float(cv2.contourArea(cnt))


def min_area_rect(cnt: np.ndarray) -> Tuple[Tuple[float, float], Tuple[float, float], float]:
    (cx, cy), (w, h), angle = cv2.minAreaRect(cnt)
    return (float(cx), float(cy)), (float(w), float(h)), float(angle)


def rect_area(rect) -> float:
    _, (w, h), _ = rect
    return float(w) * float(h)


def rectangularity(area: float, bounding_area: float) -> Optional[float]:
    """Contour area over rotated bounding rect area; None for a degenerate rect."""
    if bounding_area <= 0:
        return None
    return area / bounding_area
