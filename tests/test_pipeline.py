import cv2
import numpy as np
import pytest

import matrix_locate.postprocess as postprocess
from matrix_locate import (
    CandidateMaterializationError,
    DetectorConfig,
    InvalidImageError,
    find_barcodes,
    locate_batch,
    locate_candidates,
    run_pipeline,
)
from matrix_locate.diagnostics import CsvDiagnostics

from conftest import make_scene


def test_blank_image_yields_no_candidates(blank_image):
    assert locate_candidates(blank_image) == []
    assert find_barcodes(blank_image) == []


def test_single_patch_is_found(patch_scene):
    regions = locate_candidates(patch_scene)
    assert len(regions) == 1

    r = regions[0]
    cx, cy = r.center
    w, h = r.size
    assert cx == pytest.approx(120, abs=4)
    assert cy == pytest.approx(120, abs=4)
    assert w == pytest.approx(80, rel=0.05)
    assert h == pytest.approx(80, rel=0.05)


def test_single_patch_crop_is_upright_patch(patch_scene):
    crops = find_barcodes(patch_scene)
    assert len(crops) == 1
    h, w = crops[0].shape[:2]
    assert w == pytest.approx(80, rel=0.05)
    assert h == pytest.approx(80, rel=0.05)
    assert crops[0].ndim == 3


def test_regions_satisfy_area_and_rectangularity(two_patch_scene, config):
    state = run_pipeline(two_patch_scene, config)
    H, W = state.gray.shape
    assert len(state.regions) == 2
    for r in state.regions:
        assert r.area >= config.min_area_fraction * W * H
        assert r.area / r.rect_area > config.rectangularity


def test_noise_scene_regions_satisfy_filters(config):
    rng = np.random.default_rng(7)
    img = make_scene(300, 400, patches=[(40, 40, 90), (150, 250, 120)], cell=5)
    noise = rng.integers(-30, 30, size=img.shape)
    img = np.clip(img.astype(np.int32) + noise, 0, 255).astype(np.uint8)

    state = run_pipeline(img, config)
    H, W = state.gray.shape
    for r in state.regions:
        assert r.area >= 0.02 * W * H
        assert r.rectangularity > 0.6


def test_pipeline_is_deterministic(two_patch_scene):
    a = run_pipeline(two_patch_scene)
    b = run_pipeline(two_patch_scene)
    assert [r.to_dict() for r in a.regions] == [r.to_dict() for r in b.regions]
    assert len(a.crops) == len(b.crops)
    for x, y in zip(a.crops, b.crops):
        assert x.tobytes() == y.tobytes()
    np.testing.assert_array_equal(a.probabilities, b.probabilities)


def test_input_is_not_modified(patch_scene):
    before = patch_scene.copy()
    run_pipeline(patch_scene)
    np.testing.assert_array_equal(patch_scene, before)


def test_upscaled_scene_gives_scaled_coordinates(patch_scene):
    big = cv2.resize(patch_scene, (480, 480), interpolation=cv2.INTER_NEAREST)

    small_regions = locate_candidates(patch_scene)
    state = run_pipeline(big)
    assert state.scale == pytest.approx(300 / 480)
    assert len(small_regions) == 1
    assert len(state.regions) == 1

    a = small_regions[0].to_original()
    b = state.regions[0].to_original()
    assert b.center[0] == pytest.approx(2 * a.center[0], rel=0.05)
    assert b.center[1] == pytest.approx(2 * a.center[1], rel=0.05)
    assert max(b.size) == pytest.approx(2 * max(a.size), rel=0.1)
    assert min(b.size) == pytest.approx(2 * min(a.size), rel=0.1)


def test_tall_images_are_downscaled(config):
    img = make_scene(600, 450, patches=[(200, 150, 160)], cell=8)
    state = run_pipeline(img, config)
    assert state.gray.shape == (300, 225)
    assert state.params.min_area == pytest.approx(0.02 * 300 * 225)
    assert state.params.rect_height == 30
    assert state.params.rect_width == 22


def test_grayscale_input_is_accepted(patch_scene):
    gray = cv2.cvtColor(patch_scene, cv2.COLOR_BGR2GRAY)
    regions = locate_candidates(gray)
    assert len(regions) == 1
    crops = find_barcodes(gray)
    assert crops[0].ndim == 2


@pytest.mark.parametrize("shape", [(0, 10, 3), (10, 0), (0, 0)])
def test_zero_area_image_is_rejected(shape):
    with pytest.raises(InvalidImageError):
        run_pipeline(np.zeros(shape, dtype=np.uint8))


def test_float_image_is_rejected():
    with pytest.raises(InvalidImageError):
        run_pipeline(np.zeros((20, 20), dtype=np.float32))


def _fail_first(monkeypatch):
    calls = {"n": 0}
    real = postprocess.normalize_region

    def flaky(img, region):
        calls["n"] += 1
        if calls["n"] == 1:
            raise CandidateMaterializationError("boom")
        return real(img, region)

    monkeypatch.setattr(postprocess, "normalize_region", flaky)


def test_crop_failure_aborts_by_default(two_patch_scene, monkeypatch):
    _fail_first(monkeypatch)
    with pytest.raises(CandidateMaterializationError):
        run_pipeline(two_patch_scene)


def test_crop_failure_skip_keeps_other_regions(two_patch_scene, monkeypatch):
    _fail_first(monkeypatch)
    state = run_pipeline(two_patch_scene, DetectorConfig(on_crop_failure="skip"))
    assert len(state.regions) == 1
    assert len(state.crops) == 1


def test_batch_isolates_failures(blank_image, patch_scene):
    results = locate_batch([blank_image, np.zeros((0, 0, 3), dtype=np.uint8), patch_scene], workers=3)
    assert [r.index for r in results] == [0, 1, 2]
    assert results[0].ok and results[0].regions == []
    assert not results[1].ok
    assert isinstance(results[1].error, InvalidImageError)
    assert results[2].ok and len(results[2].regions) == 1


def test_batch_of_nothing():
    assert locate_batch([]) == []


def test_csv_diagnostics_do_not_change_results(patch_scene, tmp_path):
    plain = run_pipeline(patch_scene)
    dumped = run_pipeline(patch_scene, diagnostics=CsvDiagnostics(str(tmp_path)))

    assert [r.to_dict() for r in plain.regions] == [r.to_dict() for r in dumped.regions]
    for name in ("greyscale", "angles", "magnitudes", "orientation_bins", "probabilities_raw", "consolidated"):
        assert (tmp_path / f"{name}.csv").exists()
    # colour overlay is not dumped
    assert not (tmp_path / "candidates.csv").exists()

    grey = np.loadtxt(tmp_path / "greyscale.csv", delimiter=",")
    assert grey.shape == plain.gray.shape


def test_float_valued_config_runs_like_default(patch_scene):
    cfg = DetectorConfig(bin_width=15.0, row_cap=300.0)
    regions = locate_candidates(patch_scene, cfg)
    expected = locate_candidates(patch_scene)
    assert [r.to_dict() for r in regions] == [r.to_dict() for r in expected]
