from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Tuple

import numpy as np

from .errors import ConfigError


class CodeKind(str, Enum):
    MATRIX = "matrix"


CROP_FAILURE_POLICIES = ("abort", "skip")

# Each entry: thresholds for one barcode kind; DetectorConfig fields by name.
KIND_DEFAULTS: Dict[CodeKind, Dict[str, Any]] = {
    CodeKind.MATRIX: {
        "row_cap": 300,             # taller images are scaled down to this many rows
        "rectangularity": 0.6,      # contour area / rotated rect area must exceed this
        "elem_size": (10, 10),      # black-hat and closing ellipse
        "large_elem_size": (12, 12),  # opening ellipse
        "bin_width": 15,            # orientation histogram bin, degrees
        "edge_density": 0.3,        # fraction of window that must be edges
        "min_area_fraction": 0.02,  # of W*H
        "magnitude_floor": 50,      # lower bound on the Otsu magnitude threshold
        "window_fraction": 0.1,     # sliding window size relative to W/H
        "wrap_snap": 170.0,         # folded angles above this become 0
        "on_crop_failure": "abort",
    },
}


_MATRIX = KIND_DEFAULTS[CodeKind.MATRIX]

_INT_FIELDS = ("row_cap", "bin_width", "magnitude_floor")
_FLOAT_FIELDS = ("rectangularity", "edge_density", "min_area_fraction", "window_fraction", "wrap_snap")


def _as_int(name: str, value: Any) -> int:
    """Accept ints and integral floats (15.0); anything else is a ConfigError."""
    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, (float, np.floating)) and not float(value).is_integer():
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    return int(value)


def _as_float(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    value = float(value)
    if not np.isfinite(value):
        raise ConfigError(f"{name} must be finite, got {value!r}")
    return value


@dataclass(frozen=True)
class DetectorConfig:
    kind: CodeKind = CodeKind.MATRIX
    row_cap: int = _MATRIX["row_cap"]
    rectangularity: float = _MATRIX["rectangularity"]
    elem_size: Tuple[int, int] = _MATRIX["elem_size"]
    large_elem_size: Tuple[int, int] = _MATRIX["large_elem_size"]
    bin_width: int = _MATRIX["bin_width"]
    edge_density: float = _MATRIX["edge_density"]
    min_area_fraction: float = _MATRIX["min_area_fraction"]
    magnitude_floor: int = _MATRIX["magnitude_floor"]
    window_fraction: float = _MATRIX["window_fraction"]
    wrap_snap: float = _MATRIX["wrap_snap"]
    on_crop_failure: str = _MATRIX["on_crop_failure"]

    def __post_init__(self):
        if not isinstance(self.kind, CodeKind):
            try:
                object.__setattr__(self, "kind", CodeKind(self.kind))
            except ValueError:
                raise ConfigError(f"Unknown code kind: {self.kind!r}") from None
        for name in _INT_FIELDS:
            object.__setattr__(self, name, _as_int(name, getattr(self, name)))
        for name in _FLOAT_FIELDS:
            object.__setattr__(self, name, _as_float(name, getattr(self, name)))
        if self.row_cap <= 0:
            raise ConfigError(f"row_cap must be positive, got {self.row_cap}")
        if not (0.0 <= self.rectangularity < 1.0):
            raise ConfigError(f"rectangularity must be in [0, 1), got {self.rectangularity}")
        for name in ("elem_size", "large_elem_size"):
            try:
                size = tuple(getattr(self, name))
            except TypeError:
                raise ConfigError(f"{name} must be two positive ints, got {getattr(self, name)!r}") from None
            if len(size) != 2:
                raise ConfigError(f"{name} must be two positive ints, got {size}")
            size = (_as_int(name, size[0]), _as_int(name, size[1]))
            if min(size) <= 0:
                raise ConfigError(f"{name} must be two positive ints, got {size}")
            object.__setattr__(self, name, size)
        if self.bin_width <= 0 or 180 % self.bin_width != 0 or self.bin_width == 180:
            raise ConfigError(f"bin_width must divide 180 into at least two bins, got {self.bin_width}")
        if not (0.0 < self.edge_density <= 1.0):
            raise ConfigError(f"edge_density must be in (0, 1], got {self.edge_density}")
        if not (0.0 <= self.min_area_fraction < 1.0):
            raise ConfigError(f"min_area_fraction must be in [0, 1), got {self.min_area_fraction}")
        if not (0 <= self.magnitude_floor <= 255):
            raise ConfigError(f"magnitude_floor must be in [0, 255], got {self.magnitude_floor}")
        if not (0.0 < self.window_fraction <= 1.0):
            raise ConfigError(f"window_fraction must be in (0, 1], got {self.window_fraction}")
        if not (0.0 < self.wrap_snap <= 180.0):
            raise ConfigError(f"wrap_snap must be in (0, 180], got {self.wrap_snap}")
        if self.on_crop_failure not in CROP_FAILURE_POLICIES:
            raise ConfigError(
                f"on_crop_failure must be one of {CROP_FAILURE_POLICIES}, got {self.on_crop_failure!r}"
            )

    @property
    def n_bins(self) -> int:
        return 180 // self.bin_width

    @classmethod
    def for_kind(cls, kind: CodeKind = CodeKind.MATRIX, **overrides: Any) -> "DetectorConfig":
        """Build a config from the defaults table of ``kind``, with overrides applied."""
        try:
            kind = CodeKind(kind)
        except ValueError:
            raise ConfigError(f"Unknown code kind: {kind!r}") from None
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown config options: {sorted(unknown)}")
        params = dict(KIND_DEFAULTS[kind])
        params.update(overrides)
        return cls(kind=kind, **params)

    def with_overrides(self, **overrides: Any) -> "DetectorConfig":
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **overrides) if overrides else self
