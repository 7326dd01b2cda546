"""Shared fixtures: synthetic scenes and configs for the locator tests."""
import logging

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from matrix_locate.config import DetectorConfig

logging.getLogger("matplotlib").setLevel(logging.WARNING)


def checkerboard(size: int, cell: int) -> np.ndarray:
    yy, xx = np.indices((size, size))
    dark = ((yy // cell) + (xx // cell)) % 2 == 0
    return np.where(dark, 0, 255).astype(np.uint8)


def make_scene(height: int, width: int, patches=(), cell: int = 4) -> np.ndarray:
    """White BGR canvas with square checkerboard patches given as (top, left, size)."""
    img = np.full((height, width, 3), 255, dtype=np.uint8)
    for top, left, size in patches:
        img[top:top + size, left:left + size] = checkerboard(size, cell)[..., None]
    return img


@pytest.fixture
def config():
    return DetectorConfig()


@pytest.fixture
def blank_image():
    return np.full((200, 300, 3), 255, dtype=np.uint8)


@pytest.fixture
def patch_scene():
    """240x240 scene with one 80x80 checkerboard at (80, 80)."""
    return make_scene(240, 240, patches=[(80, 80, 80)])


@pytest.fixture
def two_patch_scene():
    return make_scene(240, 480, patches=[(80, 60, 80), (80, 340, 80)])
