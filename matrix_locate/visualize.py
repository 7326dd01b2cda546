from typing import Dict, List, Optional
import matplotlib.pyplot as plt
import numpy as np
import cv2

from .diagnostics import Diagnostics
from .types import CandidateRegion


def visualize_matrices(
    matrices: Dict[str, np.ndarray],
    cols: int = 3,
    figsize: tuple = (12, 8),
    title: str = "Pipeline stages",
):
    names = list(matrices.keys())
    n = len(names)
    rows = (n + cols - 1) // cols

    fig, axes = plt.subplots(rows, cols, figsize=figsize)
    axes = np.array(axes).reshape(-1)

    for ax in axes[n:]:
        ax.axis("off")

    for i, name in enumerate(names):
        ax = axes[i]
        m = matrices[name]
        if m.ndim == 3:
            ax.imshow(cv2.cvtColor(m, cv2.COLOR_BGR2RGB))
        else:
            ax.imshow(m, cmap="gray")
        ax.set_title(name)
        ax.axis("off")

    fig.suptitle(title, fontsize=14)
    plt.tight_layout()
    plt.show()
    return fig


def draw_candidates_on_image(
    image_bgr: np.ndarray,
    regions: List[CandidateRegion],
    color=(0, 255, 0),
    max_boxes: Optional[int] = None,
) -> np.ndarray:
    vis = image_bgr.copy()
    if vis.ndim == 2:
        vis = cv2.cvtColor(vis, cv2.COLOR_GRAY2BGR)
    elif vis.shape[2] == 4:
        vis = cv2.cvtColor(vis, cv2.COLOR_BGRA2BGR)
    items = regions if max_boxes is None else regions[:max_boxes]

    for i, r in enumerate(items):
        box = np.intp(np.round(r.box_points()))
        cv2.drawContours(vis, [box], 0, color, 2)
        x, y, _, _ = r.bbox()
        cv2.putText(
            vis,
            f"#{i}",
            (x, max(0, y - 6)),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.5,
            color,
            1,
            cv2.LINE_AA,
        )
    return vis


class PreviewDiagnostics(Diagnostics):
    """
    Collect checkpoint matrices and show them with matplotlib.
    With grid=True everything is shown together on ``show()``, otherwise
    each checkpoint opens its own figure as it arrives.
    """

    enabled = True

    def __init__(self, grid: bool = True, title: str = "Pipeline stages"):
        self.grid = grid
        self.title = title
        self.matrices: Dict[str, np.ndarray] = {}

    def checkpoint(self, name: str, matrix: np.ndarray) -> None:
        self.matrices[name] = matrix
        if not self.grid:
            visualize_matrices({name: matrix}, cols=1, figsize=(6, 6), title=self.title)

    def show(self):
        if self.grid and self.matrices:
            return visualize_matrices(self.matrices, title=self.title)
        return None
