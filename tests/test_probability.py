import numpy as np
import pytest

from matrix_locate.config import DetectorConfig
from matrix_locate.gradient import compute_gradient_field
from matrix_locate.preprocess import black_hat, derive_params
from matrix_locate.probability import (
    NO_ORIENTATION,
    binarize_probabilities,
    build_probability_map,
    orientation_bins,
    orientation_histogram,
    orientation_probability,
    probability_at,
    top_two_bins,
    window_bounds,
    window_probability,
)
from matrix_locate.types import DerivedParams


def test_orthogonal_equal_bins_score_one():
    assert orientation_probability(10, 10, 90) == 1.0
    window = np.array([0] * 10 + [6] * 10, dtype=np.int16)
    assert window_probability(window, bin_width=15) == 1.0


def test_equal_bins_45_degrees_apart_score_half():
    assert orientation_probability(10, 10, 45) == pytest.approx(0.5)
    window = np.array([0] * 10 + [3] * 10, dtype=np.int16)
    assert window_probability(window, bin_width=15) == pytest.approx(0.5)


def test_imbalance_is_penalized():
    assert orientation_probability(30, 10, 90) == pytest.approx(0.5)
    assert orientation_probability(10, 0, 90) == 0.0


def test_histogram_ignores_non_edge_pixels():
    window = np.array([[0, 0, NO_ORIENTATION], [11, NO_ORIENTATION, 6]], dtype=np.int16)
    hist = orientation_histogram(window, 12)
    assert hist.tolist() == [2, 0, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1]


def test_ties_go_to_lowest_bin():
    (b1, c1), (b2, c2) = top_two_bins(np.array([5, 7, 7, 7, 0]))
    assert (b1, c1) == (1, 7)
    assert (b2, c2) == (2, 7)


def test_single_orientation_window_scores_zero():
    window = np.array([4] * 25, dtype=np.int16)
    assert window_probability(window) == 0.0


def test_orientation_bins_edges():
    direction = np.array([[0.0, 14.9, 15.0, 90.0, 170.0]], dtype=np.float32)
    mask = np.array([[255, 255, 255, 255, 0]], dtype=np.uint8)
    assert orientation_bins(direction, mask, 15).tolist() == [[0, 0, 1, 6, NO_ORIENTATION]]


def test_window_bounds_are_clipped():
    start, stop = window_bounds(5, 2)
    assert start.tolist() == [0, 0, 0, 1, 2]
    assert stop.tolist() == [3, 4, 5, 5, 5]


def _naive_map(direction, edge_mask, params, bin_width):
    bins = orientation_bins(direction, edge_mask, bin_width)
    out = np.zeros(edge_mask.shape, dtype=np.float32)
    for i in range(edge_mask.shape[0]):
        for j in range(edge_mask.shape[1]):
            out[i, j] = probability_at(bins, edge_mask, i, j, params, bin_width)
    return out


@pytest.mark.parametrize("seed", [0, 1])
def test_integral_map_matches_naive_windows(seed):
    rng = np.random.default_rng(seed)
    gray = rng.integers(0, 256, size=(40, 50), dtype=np.uint8)
    cfg = DetectorConfig()
    field = compute_gradient_field(black_hat(gray, cfg.elem_size))
    params = derive_params(gray.shape, cfg)

    fast = build_probability_map(field.direction, field.edge_mask, params, cfg.bin_width)
    naive = _naive_map(field.direction, field.edge_mask, params, cfg.bin_width)
    np.testing.assert_array_equal(fast, naive)


def test_sparse_windows_are_skipped():
    direction = np.zeros((20, 20), dtype=np.float32)
    edge_mask = np.zeros((20, 20), dtype=np.uint8)
    edge_mask[10, 10] = 255
    params = DerivedParams(min_area=0, rect_height=4, rect_width=4, density_threshold=5)
    prob = build_probability_map(direction, edge_mask, params)
    assert not prob.any()


def test_map_values_are_probabilities():
    rng = np.random.default_rng(3)
    direction = rng.uniform(0, 170, size=(30, 30)).astype(np.float32)
    edge_mask = np.where(rng.random((30, 30)) > 0.3, 255, 0).astype(np.uint8)
    params = DerivedParams(min_area=0, rect_height=6, rect_width=6, density_threshold=3)
    prob = build_probability_map(direction, edge_mask, params)
    assert prob.dtype == np.float32
    assert prob.min() >= 0.0
    assert prob.max() <= 1.0
    assert not prob[edge_mask == 0].any()


def test_empty_map_binarizes_to_empty_mask():
    prob8, mask = binarize_probabilities(np.zeros((10, 10), dtype=np.float32))
    assert not prob8.any()
    assert not mask.any()
