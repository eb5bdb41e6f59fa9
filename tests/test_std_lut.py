"""Tests for the grain std LUT generator.

Test groups:
1. Output layout (byte count, little-endian uint16, quantization)
2. Parameter flooring (never raises)
3. Physical properties (monotonic mid-tones, zero at black, max_std range)
4. Gamma table (degenerate vs. log-normal radius)
5. Determinism

Run:
    pytest tests/test_std_lut.py -v
"""

import math

import numpy as np
import pytest

from src.film_grain.std_lut import (
    StdLut,
    gamma_sample_count,
    generate_std_lut,
    grain_overlap_table,
)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(scope="module")
def default_lut():
    """Default model: mu_r=0.05, sigma_r=0.25, sigma=1, 256 entries."""
    return generate_std_lut(256, 0.05, 0.25, 1.0)


@pytest.fixture(scope="module")
def constant_radius_lut():
    return generate_std_lut(64, 0.05, 0.0, 1.0)


# ============================================================================
# OUTPUT LAYOUT
# ============================================================================

def test_boundary_scenario_sixteen_entries():
    lut = generate_std_lut(16, 0.05, 0.0, 1.0)
    raw = lut.to_bytes()

    assert len(raw) == 32
    values = np.frombuffer(raw, dtype='<u2')
    assert values.min() >= 0 and values.max() <= 65535
    assert 0.0 <= lut.max_std <= 1.0


def test_bytes_are_little_endian(default_lut):
    raw = default_lut.to_bytes()
    assert len(raw) == 2 * 256
    for i in (0, 17, 128, 255):
        v = int(default_lut.values[i])
        assert raw[2 * i] == v & 0xFF
        assert raw[2 * i + 1] == (v >> 8) & 0xFF


def test_quantization_matches_std(default_lut):
    expected = np.round(np.clip(default_lut.std, 0.0, 1.0) * 65535.0).astype(np.uint16)
    np.testing.assert_array_equal(default_lut.values, expected)
    assert default_lut.values.dtype == np.uint16


def test_max_std_is_pre_clamp_maximum(default_lut):
    assert default_lut.max_std == pytest.approx(float(default_lut.std.max()))


def test_quantiles(default_lut):
    q = default_lut.quantiles
    assert q[0] == 0.0
    assert q[-1] == 1.0
    assert q.shape == (256,)


def test_from_bytes_roundtrip_values(default_lut):
    restored = StdLut.from_bytes(default_lut.to_bytes(), default_lut.max_std)
    np.testing.assert_array_equal(restored.values, default_lut.values)
    np.testing.assert_allclose(restored.std, np.clip(default_lut.std, 0, 1), atol=1.0 / 65535)


# ============================================================================
# PARAMETER FLOORING
# ============================================================================

def test_lut_size_floored_to_sixteen():
    assert generate_std_lut(3, 0.05, 0.0, 1.0).lut_size == 16
    assert generate_std_lut(-10, 0.05, 0.0, 1.0).lut_size == 16


def test_nonpositive_inputs_do_not_raise():
    lut = generate_std_lut(16, -1.0, -0.5, 0.0)
    assert lut.lut_size == 16
    assert np.all(np.isfinite(lut.std))
    assert lut.values.dtype == np.uint16


def test_negative_sigma_r_behaves_as_constant_radius():
    a = generate_std_lut(32, 0.05, -1.0, 1.0)
    b = generate_std_lut(32, 0.05, 0.0, 1.0)
    np.testing.assert_array_equal(a.values, b.values)


# ============================================================================
# PHYSICAL PROPERTIES
# ============================================================================

def test_zero_luminance_quantile_has_zero_std(default_lut, constant_radius_lut):
    assert default_lut.std[0] == 0.0
    assert constant_radius_lut.std[0] == 0.0


@pytest.mark.parametrize("lut_name", ["default_lut", "constant_radius_lut"])
def test_std_non_decreasing_through_mid_tones(lut_name, request):
    lut = request.getfixturevalue(lut_name)
    mask = lut.quantiles <= 0.35
    assert np.all(np.diff(lut.std[mask]) >= 0.0)
    assert np.all(np.diff(lut.values[mask].astype(np.int64)) >= 0)


def test_std_falls_back_toward_saturation(default_lut):
    """Grain visibility peaks in the mid-tones and fades at the white end."""
    peak = int(np.argmax(default_lut.std))
    assert 0 < peak < default_lut.lut_size - 1
    assert default_lut.std[-1] < default_lut.max_std


def test_default_max_std_near_reference(default_lut):
    assert 0.08 < default_lut.max_std < 0.12


def test_all_values_finite(default_lut):
    assert np.all(np.isfinite(default_lut.std))


# ============================================================================
# GAMMA TABLE
# ============================================================================

def test_gamma_sample_count_clamped():
    assert gamma_sample_count(16) == 256
    assert gamma_sample_count(256) == 512
    assert gamma_sample_count(4096) == 2048


def test_gamma_degenerate_is_overlap_area():
    d = np.linspace(0.0, 0.2, 41)
    gamma = grain_overlap_table(d, 0.05, 0.0)
    assert gamma[0] == pytest.approx(math.pi * 0.05 ** 2)
    assert np.all(gamma[d >= 0.1] == 0.0)


def test_gamma_lognormal_bounded_by_mean_disc_area():
    mu_r, sigma_r = 0.05, 0.25
    d = np.linspace(0.0, 6.0, 256)
    gamma = grain_overlap_table(d, mu_r, sigma_r)

    assert np.all(gamma >= 0.0)
    assert gamma[0] <= math.pi * (mu_r ** 2 + sigma_r ** 2)
    assert gamma[-1] <= gamma[0]


def test_gamma_zero_beyond_radius_support():
    """Distances past 2·r_max have no overlapping radius."""
    mu_r, sigma_r = 0.05, 0.01
    d = np.array([0.0, 10.0])
    gamma = grain_overlap_table(d, mu_r, sigma_r)
    assert gamma[0] > 0.0
    assert gamma[1] == 0.0


def test_gamma_narrow_lognormal_approaches_constant_radius():
    d = np.linspace(0.0, 0.08, 9)
    narrow = grain_overlap_table(d, 0.05, 1e-4)
    point = grain_overlap_table(d, 0.05, 0.0)
    np.testing.assert_allclose(narrow, point, rtol=0.05, atol=1e-6)


# ============================================================================
# DETERMINISM
# ============================================================================

def test_generation_is_deterministic():
    a = generate_std_lut(64, 0.05, 0.25, 1.0)
    b = generate_std_lut(64, 0.05, 0.25, 1.0)
    assert a.to_bytes() == b.to_bytes()
    assert a.max_std == b.max_std
