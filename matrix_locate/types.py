from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import cv2
import numpy as np


@dataclass
class DerivedParams:
    min_area: float                          # smallest accepted contour area, px^2
    rect_height: int                         # sliding window height
    rect_width: int                          # sliding window width
    density_threshold: float                 # min edge pixels per window


@dataclass
class GradientField:
    magnitude: np.ndarray                    # float32 raw Euclidean norm
    direction: np.ndarray                    # float32 degrees in [0,180)
    edge_mask: np.ndarray                    # uint8 0/255


@dataclass
class CandidateRegion:
    center: Tuple[float, float]              # cx,cy in working resolution
    size: Tuple[float, float]                # w,h of the rotated rectangle
    angle: float                             # degrees, cv2.minAreaRect convention
    area: float                              # contour area
    rect_area: float                         # rotated rectangle area
    scale: float = 1.0                       # working / original resolution
    contour: Optional[np.ndarray] = None

    @property
    def rectangularity(self) -> float:
        return self.area / self.rect_area if self.rect_area > 0 else 0.0

    @property
    def rotated_rect(self):
        return (self.center, self.size, self.angle)

    def box_points(self) -> np.ndarray:
        return cv2.boxPoints(self.rotated_rect)

    def bbox(self) -> Tuple[int, int, int, int]:
        """Axis-aligned x,y,w,h enclosing the rotated rectangle."""
        pts = self.box_points()
        x0, y0 = np.floor(pts.min(axis=0))
        x1, y1 = np.ceil(pts.max(axis=0))
        return int(x0), int(y0), int(x1 - x0), int(y1 - y0)

    def to_original(self) -> "CandidateRegion":
        """Same region expressed in the coordinates of the undownscaled input."""
        if self.scale == 1.0:
            return self
        s = self.scale
        cx, cy = self.center
        w, h = self.size
        contour = None
        if self.contour is not None:
            contour = np.round(self.contour / s).astype(np.int32)
        return CandidateRegion(
            center=(cx / s, cy / s),
            size=(w / s, h / s),
            angle=self.angle,
            area=self.area / (s * s),
            rect_area=self.rect_area / (s * s),
            scale=1.0,
            contour=contour,
        )

    def to_dict(self) -> dict:
        return {
            "center": [float(self.center[0]), float(self.center[1])],
            "size": [float(self.size[0]), float(self.size[1])],
            "angle": float(self.angle),
            "area": float(self.area),
            "rectangularity": float(self.rectangularity),
            "bbox": list(self.bbox()),
        }


@dataclass
class PipelineState:
    """Working buffers of one pipeline run. Never shared between runs."""

    original: np.ndarray
    scaled: Optional[np.ndarray] = None
    scale: float = 1.0
    gray: Optional[np.ndarray] = None
    params: Optional[DerivedParams] = None
    gradient: Optional[GradientField] = None
    probabilities: Optional[np.ndarray] = None
    candidate_mask: Optional[np.ndarray] = None
    consolidated: Optional[np.ndarray] = None
    regions: List[CandidateRegion] = field(default_factory=list)
    crops: List[np.ndarray] = field(default_factory=list)
