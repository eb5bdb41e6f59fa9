"""Grain standard-deviation LUT generator.

Computes, for each luminance quantile, the standard deviation of a Boolean
grain model's pixel output: opaque discs with log-normal radii dropped by a
Poisson process, observed through a Gaussian pixel filter.

Pipeline:
    1. Match log-normal (mu_ln, sigma_ln) to the arithmetic radius moments
    2. Gamma table: expected disc self-overlap area vs. centre distance d,
       integrated over the radius density (256-point trapezoid per d)
    3. Poisson intensity per quantile u: λ = ln(1/(1-u)) / (π E[r²])
    4. Variance = 1/(2σ²) ∫ exp(-d²/4σ²) d (1-u)² (exp(λ γ(d)) - 1) dd
    5. std = sqrt(variance); quantize clamp01(std) to uint16

Invariants:
    - Out-of-range inputs are floored, never rejected
    - Deterministic: same inputs → identical bytes
    - max_std is the maximum *pre-clamp* std (renormalization reference)

Usage:
    from src.film_grain.std_lut import generate_std_lut

    lut = generate_std_lut(256, mu_r=0.05, sigma_r=0.25, sigma=1.0)
    raw = lut.to_bytes()        # 512 bytes, little-endian uint16
    lut.max_std                 # ≈ 0.10 for these defaults
"""

import logging
from dataclasses import dataclass

import numpy as np

from src.utils.profiler import log_sink, timer

from .grain_math import (
    lognormal_params,
    lognormal_pdf,
    lognormal_upper,
    overlap_area,
    trapezoid_weights,
)
from .resources import (
    EXPONENT_CLAMP,
    GAMMA_SAMPLES_MAX,
    GAMMA_SAMPLES_MIN,
    MIN_POSITIVE,
    MIN_TABLE_SIZE,
    QUANTILE_CEIL,
    RADIUS_FLOOR,
    RADIUS_SAMPLES,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StdLut:
    """Per-quantile grain standard deviation table.

    Attributes
    ----------
    values : np.ndarray
        (lut_size,) uint16, ``round(clamp01(std) * 65535)``
    std : np.ndarray
        (lut_size,) float64, pre-clamp standard deviations
    max_std : float
        Maximum of ``std``
    """
    values: np.ndarray
    std: np.ndarray
    max_std: float

    @property
    def lut_size(self) -> int:
        return int(self.values.shape[0])

    @property
    def quantiles(self) -> np.ndarray:
        """Luminance quantile of each entry, ``i / (lut_size - 1)``."""
        return np.arange(self.lut_size, dtype=np.float64) / (self.lut_size - 1)

    def to_bytes(self) -> bytes:
        """Flat little-endian uint16 buffer (2 bytes per entry)."""
        return self.values.astype('<u2').tobytes()

    @classmethod
    def from_bytes(cls, raw: bytes, max_std: float) -> 'StdLut':
        """Rebuild from a persisted buffer; ``std`` is the dequantized values."""
        values = np.frombuffer(raw, dtype='<u2').astype(np.uint16)
        return cls(values=values, std=values.astype(np.float64) / 65535.0, max_std=float(max_std))


def gamma_sample_count(lut_size: int) -> int:
    """Number of distance samples for the gamma table."""
    return int(min(max(2 * lut_size, GAMMA_SAMPLES_MIN), GAMMA_SAMPLES_MAX))


def grain_overlap_table(
    d: np.ndarray,
    mu_r: float,
    sigma_r: float,
) -> np.ndarray:
    """Expected self-overlap area γ(d) of a random grain at each distance.

    Parameters
    ----------
    d : np.ndarray
        (N,) centre distances, ascending from 0
    mu_r, sigma_r : float
        Arithmetic mean and std of the grain radius

    Returns
    -------
    np.ndarray
        (N,) γ values. With ``sigma_r == 0`` this is ``overlap_area(d, mu_r)``;
        otherwise ``∫ overlap_area(d, r) pdf(r) dr`` over
        ``[max(d/2, 1e-6), r_max]`` and 0 where that interval is empty.
    """
    if sigma_r <= 0.0:
        return overlap_area(d, mu_r)

    mu_ln, sigma_ln = lognormal_params(mu_r, sigma_r)
    r_max = lognormal_upper(mu_ln, sigma_ln)

    r_min = np.maximum(0.5 * d, RADIUS_FLOOR)
    valid = r_min < r_max

    dr = np.where(valid, (r_max - r_min) / (RADIUS_SAMPLES - 1), 0.0)
    j = np.arange(RADIUS_SAMPLES, dtype=np.float64)
    r = r_min[:, None] + j[None, :] * dr[:, None]

    integrand = overlap_area(d[:, None], r) * lognormal_pdf(r, mu_ln, sigma_ln)
    gamma = (integrand * trapezoid_weights(RADIUS_SAMPLES)[None, :]).sum(axis=1) * dr

    return np.where(valid, gamma, 0.0)


def generate_std_lut(
    lut_size: int = 256,
    mu_r: float = 0.05,
    sigma_r: float = 0.25,
    sigma: float = 1.0,
) -> StdLut:
    """Generate the grain std LUT.

    Parameters
    ----------
    lut_size : int
        Number of luminance buckets (floored to 16)
    mu_r : float
        Mean grain radius (floored to 1e-4)
    sigma_r : float
        Grain radius std (floored to 0; 0 means constant radius)
    sigma : float
        Gaussian pixel filter sigma (floored to 1e-4)

    Returns
    -------
    StdLut
        Quantized table, float std and max_std
    """
    lut_size = max(MIN_TABLE_SIZE, int(lut_size))
    mu_r = max(MIN_POSITIVE, float(mu_r))
    sigma_r = max(0.0, float(sigma_r))
    sigma = max(MIN_POSITIVE, float(sigma))

    if sigma_r > 0.0:
        r_max = lognormal_upper(*lognormal_params(mu_r, sigma_r))
    else:
        r_max = mu_r

    n_gamma = gamma_sample_count(lut_size)
    x_max = max(6.0 * sigma, 2.0 * r_max)
    dx = x_max / (n_gamma - 1)
    d = np.arange(n_gamma, dtype=np.float64) * dx

    sink = log_sink(logger)
    with timer("gamma_table", sink=sink):
        gamma = grain_overlap_table(d, mu_r, sigma_r)

    with timer("std_integral", sink=sink):
        u = np.arange(lut_size, dtype=np.float64) / (lut_size - 1)
        u = np.where(u >= 1.0, QUANTILE_CEIL, u)
        one_minus_u = 1.0 - u

        mean_r2 = mu_r * mu_r + sigma_r * sigma_r
        lam = np.log(1.0 / one_minus_u) / (np.pi * mean_r2)

        t = np.minimum(lam[:, None] * gamma[None, :], EXPONENT_CLAMP)
        covariance = (one_minus_u * one_minus_u)[:, None] * (np.exp(t) - 1.0)
        filter_weight = np.exp(-(d * d) / (4.0 * sigma * sigma)) * d

        integrand = filter_weight[None, :] * covariance
        integral = (integrand * trapezoid_weights(n_gamma)[None, :]).sum(axis=1) * dx
        variance = integral / (2.0 * sigma * sigma)
        std = np.sqrt(np.maximum(0.0, variance))

    max_std = float(std.max())
    values = np.round(np.clip(std, 0.0, 1.0) * 65535.0).astype(np.uint16)

    if max_std > 1.0:
        logger.warning(f"Std LUT saturates: max_std={max_std:.4f} > 1, entries clamped")

    logger.info(
        f"Std LUT generated: lut_size={lut_size}, mu_r={mu_r}, sigma_r={sigma_r}, "
        f"sigma={sigma}, gamma_samples={n_gamma}, max_std={max_std:.6f}"
    )

    return StdLut(values=values, std=std, max_std=max_std)
