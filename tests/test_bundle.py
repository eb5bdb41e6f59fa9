"""Tests for bundle persistence, reload and staleness checks.

Test groups:
1. Save / load (file layout, sidecar content, reload fidelity)
2. Fallback encodings on load (8-bit LUT, 16-bit noise, short buffers)
3. Staleness checks (parameter drift, corrupted/missing buffers)
4. Previews
5. Renderer sampling parameters
"""

import numpy as np
import pytest
import yaml
from PIL import Image

from src.film_grain import (
    MissingResourceError,
    StaleBundleError,
    check_bundle,
    ensure_fresh,
    generate_bundle,
    load_bundle,
    sampling_params,
    save_bundle,
    save_previews,
)
from src.film_grain.bundle import BundlePaths
from src.film_grain.errors import BufferSizeError
from src.film_grain.resources import DEFAULT_MAX_STD, DEFAULT_NOISE_DECODE_SCALE
from src.utils import hashing
from src.utils.validators import FilmGrainConfigV1, GrainModelParams, NoiseParams


GRAIN = GrainModelParams(lut_size=32)
NOISE = NoiseParams(noise_size=32, noise_sigma=1.5)


@pytest.fixture(scope="module")
def bundle():
    return generate_bundle(GRAIN, NOISE)


@pytest.fixture
def cfg():
    return FilmGrainConfigV1(grain=GRAIN, noise=NOISE)


@pytest.fixture
def saved(bundle, tmp_path):
    paths = save_bundle(bundle, tmp_path, "Test")
    return tmp_path, paths


# ============================================================================
# SAVE / LOAD
# ============================================================================

def test_save_writes_three_files(saved):
    out_dir, paths = saved
    assert paths == BundlePaths.for_name(out_dir, "Test")
    assert paths.std_lut.name == "Test_StdLut.bytes"
    assert paths.noise.name == "Test_Noise.bytes"
    assert paths.metadata.name == "Test.meta.yaml"

    assert paths.std_lut.stat().st_size == 64
    assert paths.noise.stat().st_size == 32 * 32
    assert not list(out_dir.glob("*.tmp"))


def test_sidecar_content(bundle, saved):
    _, paths = saved
    with open(paths.metadata) as f:
        meta = yaml.safe_load(f)

    assert meta['schema'] == "film_grain_bundle.v1"
    assert meta['name'] == "Test"
    assert meta['lut_size'] == 32
    assert meta['noise_size'] == 32
    assert meta['noise_seed'] == 12345
    assert meta['max_std'] == bundle.std_lut.max_std
    assert meta['noise_decode_scale'] == bundle.noise.noise_decode_scale
    assert meta['std_lut_sha256'] == hashing.sha256_file(paths.std_lut)
    assert meta['noise_sha256'] == hashing.sha256_file(paths.noise)
    assert meta['params_sha256'] == hashing.hash_dict(bundle.generation_params())


def test_load_restores_tables(bundle, saved):
    out_dir, _ = saved
    loaded = load_bundle(out_dir, "Test")

    np.testing.assert_array_equal(loaded.std_lut.values, bundle.std_lut.values)
    np.testing.assert_array_equal(loaded.noise.values, bundle.noise.values)
    assert loaded.std_lut.max_std == bundle.std_lut.max_std
    assert loaded.noise.noise_decode_scale == bundle.noise.noise_decode_scale
    assert loaded.grain == GRAIN
    assert loaded.noise_params == NOISE


def test_load_missing_sidecar_raises(tmp_path):
    with pytest.raises(MissingResourceError):
        load_bundle(tmp_path, "Nothing")


def test_missing_resource_is_file_not_found(saved):
    out_dir, paths = saved
    paths.noise.unlink()
    with pytest.raises(FileNotFoundError, match="Test_Noise.bytes"):
        load_bundle(out_dir, "Test")


# ============================================================================
# FALLBACK ENCODINGS
# ============================================================================

def test_load_widens_8_bit_lut(bundle, saved):
    out_dir, paths = saved
    lut8 = np.arange(32, dtype=np.uint8) * 8
    paths.std_lut.write_bytes(lut8.tobytes())

    loaded = load_bundle(out_dir, "Test")
    np.testing.assert_array_equal(loaded.std_lut.values, lut8.astype(np.uint16) * 257)


def test_load_narrows_16_bit_noise(bundle, saved):
    out_dir, paths = saved
    wide = bundle.noise.values.astype('<u2') * 257
    paths.noise.write_bytes(wide.tobytes())

    loaded = load_bundle(out_dir, "Test")
    np.testing.assert_array_equal(loaded.noise.values, bundle.noise.values)


def test_load_truncated_lut_raises(saved):
    out_dir, paths = saved
    paths.std_lut.write_bytes(b'\x00' * 10)
    with pytest.raises(BufferSizeError):
        load_bundle(out_dir, "Test")


# ============================================================================
# STALENESS
# ============================================================================

def test_fresh_bundle_has_no_reasons(saved, cfg):
    out_dir, _ = saved
    assert check_bundle(out_dir, "Test", cfg) == []
    ensure_fresh(out_dir, "Test", cfg)


def test_parameter_drift_reported(saved):
    out_dir, _ = saved
    changed = FilmGrainConfigV1(
        grain=GrainModelParams(lut_size=32, filter_sigma=2.0),
        noise=NOISE,
    )
    reasons = check_bundle(out_dir, "Test", changed)
    assert reasons == ["filter_sigma changed (1.0 -> 2.0)"]


def test_seed_drift_reported(saved):
    out_dir, _ = saved
    changed = FilmGrainConfigV1(
        grain=GRAIN,
        noise=NoiseParams(noise_size=32, noise_sigma=1.5, seed=7),
    )
    reasons = check_bundle(out_dir, "Test", changed)
    assert any(r.startswith("noise_seed changed") for r in reasons)


def test_corrupted_buffer_reported(saved, cfg):
    out_dir, paths = saved
    raw = bytearray(paths.noise.read_bytes())
    raw[0] ^= 0xFF
    paths.noise.write_bytes(bytes(raw))

    reasons = check_bundle(out_dir, "Test", cfg)
    assert reasons == ["noise buffer hash mismatch: Test_Noise.bytes"]


def test_missing_buffer_reported(saved, cfg):
    out_dir, paths = saved
    paths.std_lut.unlink()
    reasons = check_bundle(out_dir, "Test", cfg)
    assert reasons == ["std LUT buffer missing: Test_StdLut.bytes"]


def test_ensure_fresh_raises_with_reasons(saved, cfg):
    out_dir, paths = saved
    paths.std_lut.unlink()
    with pytest.raises(StaleBundleError) as exc_info:
        ensure_fresh(out_dir, "Test", cfg)
    assert exc_info.value.reasons == ["std LUT buffer missing: Test_StdLut.bytes"]
    assert "Test" in str(exc_info.value)


def test_check_missing_sidecar_raises(tmp_path, cfg):
    with pytest.raises(MissingResourceError):
        check_bundle(tmp_path, "Test", cfg)


# ============================================================================
# PREVIEWS
# ============================================================================

def test_previews_written(bundle, tmp_path):
    noise_png, lut_png = save_previews(bundle, tmp_path, "Test", strip_height=8)

    with Image.open(noise_png) as img:
        assert img.size == (32, 32)
        np.testing.assert_array_equal(np.asarray(img), bundle.noise.values)

    with Image.open(lut_png) as img:
        strip = np.asarray(img)
        assert img.size == (32, 8)
        assert strip.max() == 255
        assert np.all(strip[0] == strip[-1])


# ============================================================================
# SAMPLING PARAMETERS
# ============================================================================

def test_sampling_params_from_metadata(bundle):
    params = sampling_params(bundle.metadata("Test"))
    assert params['lut_size'] == 32
    assert params['noise_size'] == 32
    assert params['noise_sigma'] == 1.5
    assert params['max_std'] == bundle.std_lut.max_std
    assert params['noise_decode_scale'] == bundle.noise.noise_decode_scale


def test_sampling_params_default_without_metadata():
    params = sampling_params(None)
    assert params == {
        'lut_size': 256,
        'noise_size': 256,
        'filter_sigma': 1.0,
        'noise_sigma': 1.0,
        'noise_decode_scale': DEFAULT_NOISE_DECODE_SCALE,
        'max_std': DEFAULT_MAX_STD,
    }


def test_sampling_params_replaces_zero_values(bundle):
    meta = bundle.metadata("Test").model_copy(update={'max_std': 0.0})
    assert sampling_params(meta)['max_std'] == DEFAULT_MAX_STD
