"""
Diagnostics hooks for the pipeline.

The pipeline calls ``checkpoint(name, matrix)`` at fixed points with an
intermediate matrix. The default does nothing; CsvDiagnostics writes each
matrix as a numeric table, and ``visualize.PreviewDiagnostics`` shows it.
"""
import logging
import os
from typing import Iterable
import numpy as np

logger = logging.getLogger(__name__)

CHECKPOINTS = (
    "greyscale",
    "angles",
    "magnitudes_raw",
    "magnitudes",
    "orientation_bins",
    "probabilities_raw",
    "probabilities",
    "consolidated",
    "candidates",
)


class Diagnostics:
    enabled = False

    def checkpoint(self, name: str, matrix: np.ndarray) -> None:
        pass


class NullDiagnostics(Diagnostics):
    pass


class CsvDiagnostics(Diagnostics):
    """Dump 2D matrices to ``<out_dir>/<prefix><name>.csv``."""

    enabled = True

    def __init__(self, out_dir: str, prefix: str = ""):
        self.out_dir = out_dir
        self.prefix = prefix
        os.makedirs(out_dir, exist_ok=True)

    def checkpoint(self, name: str, matrix: np.ndarray) -> None:
        if matrix.ndim != 2:
            # colour overlays are not tabular
            return
        path = os.path.join(self.out_dir, f"{self.prefix}{name}.csv")
        fmt = "%.6g" if np.issubdtype(matrix.dtype, np.floating) else "%d"
        np.savetxt(path, matrix, fmt=fmt, delimiter=",")
        logger.debug("Wrote %s", path)


class CompositeDiagnostics(Diagnostics):
    def __init__(self, sinks: Iterable[Diagnostics]):
        self.sinks = [s for s in sinks if s is not None]
        self.enabled = any(s.enabled for s in self.sinks)

    def checkpoint(self, name: str, matrix: np.ndarray) -> None:
        for sink in self.sinks:
            sink.checkpoint(name, matrix)
