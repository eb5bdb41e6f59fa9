"""Shared numerical primitives for the grain LUT and noise generators.

Provides:
    - overlap_area(): Lens area of two equal discs (grain self-overlap)
    - lognormal_params(): Log-normal (mu, sigma) matching an arithmetic mean/std
    - lognormal_pdf(): Log-normal density, 0 outside its support
    - trapezoid_weights(): Composite trapezoid weights (endpoints halved)
    - gaussian_kernel_1d(): Unit-sum sampled Gaussian with clamped radius
    - box_muller_normals(): Standard normals from a seeded RandomState

All functions accept numpy arrays and broadcast; scalar inputs give Python
floats back where noted. Everything is float64.
"""

import math
from typing import Tuple, Union

import numpy as np

from .resources import KERNEL_RADIUS_MAX, RADIUS_SIGMA_SPAN

ArrayLike = Union[float, np.ndarray]


def overlap_area(d: ArrayLike, r: ArrayLike) -> ArrayLike:
    """Intersection area of two discs of radius ``r`` whose centres are ``d`` apart.

    Parameters
    ----------
    d : float or np.ndarray
        Centre distance (>= 0)
    r : float or np.ndarray
        Disc radius

    Returns
    -------
    float or np.ndarray
        ``2 r² acos(d / 2r) - ½ d sqrt(4r² - d²)`` for ``d < 2r``, else 0.
        At ``d = 0`` this is the full disc area ``π r²``.
    """
    d, r = np.broadcast_arrays(
        np.asarray(d, dtype=np.float64), np.asarray(r, dtype=np.float64)
    )

    with np.errstate(divide='ignore', invalid='ignore'):
        t = np.clip(d / (2.0 * r), -1.0, 1.0)
        area = 2.0 * r * r * np.arccos(t) - 0.5 * d * np.sqrt(np.maximum(0.0, 4.0 * r * r - d * d))

    area = np.where(d >= 2.0 * r, 0.0, area)
    return float(area) if area.ndim == 0 else area


def lognormal_params(mean: float, std: float) -> Tuple[float, float]:
    """Log-normal parameters whose arithmetic moments are ``mean`` and ``std``.

    Returns
    -------
    (mu_ln, sigma_ln) : tuple of float
        ``sigma_ln = sqrt(ln(1 + std²/mean²))``, ``mu_ln = ln(mean) - sigma_ln²/2``.
        For ``std <= 0`` the distribution is a point mass: ``(ln(mean), 0.0)``.
    """
    if std <= 0.0:
        return math.log(mean), 0.0

    sigma_ln = math.sqrt(math.log(1.0 + (std * std) / (mean * mean)))
    mu_ln = math.log(mean) - 0.5 * sigma_ln * sigma_ln
    return mu_ln, sigma_ln


def lognormal_upper(mu_ln: float, sigma_ln: float, k: float = RADIUS_SIGMA_SPAN) -> float:
    """Upper ``k``-sigma quantile of a log-normal distribution."""
    return math.exp(mu_ln + k * sigma_ln)


def lognormal_pdf(r: ArrayLike, mu: float, sigma: float) -> ArrayLike:
    """Log-normal density at ``r``; 0 for ``r <= 0`` or ``sigma <= 0``."""
    r = np.asarray(r, dtype=np.float64)

    if sigma <= 0.0:
        pdf = np.zeros_like(r)
    else:
        positive = r > 0.0
        safe_r = np.where(positive, r, 1.0)
        z = (np.log(safe_r) - mu) / sigma
        density = np.exp(-0.5 * z * z) / (safe_r * sigma * math.sqrt(2.0 * math.pi))
        pdf = np.where(positive, density, 0.0)

    return float(pdf) if pdf.ndim == 0 else pdf


def trapezoid_weights(n: int) -> np.ndarray:
    """Composite trapezoid weights for ``n`` uniform samples (ends weighted ½)."""
    w = np.ones(n, dtype=np.float64)
    w[0] = 0.5
    w[-1] = 0.5
    return w


def kernel_radius(sigma: float) -> int:
    """Gaussian kernel radius ``clamp(ceil(3 sigma), 1, 64)``."""
    return int(min(max(math.ceil(3.0 * sigma), 1), KERNEL_RADIUS_MAX))


def gaussian_kernel_1d(sigma: float) -> np.ndarray:
    """Sampled 1-D Gaussian of length ``2 * kernel_radius(sigma) + 1``, unit sum."""
    radius = kernel_radius(sigma)
    x = np.arange(-radius, radius + 1, dtype=np.float64)
    kernel = np.exp(-(x * x) / (2.0 * sigma * sigma))

    total = kernel.sum()
    if total > 0.0:
        kernel = kernel / total
    return kernel


def box_muller_normals(rng: np.random.RandomState, count: int) -> np.ndarray:
    """Draw ``count`` standard normals with the Box-Muller cosine branch.

    Each sample consumes two consecutive uniforms ``(u1, u2)``, both taken as
    ``1 - uniform()`` so they lie in (0, 1] and ``log(u1)`` stays finite.
    """
    u = 1.0 - rng.random_sample((count, 2))
    return np.sqrt(-2.0 * np.log(u[:, 0])) * np.cos(2.0 * np.pi * u[:, 1])
