"""Tileable correlated noise generator.

Synthesizes a square tile of zero-mean, unit-variance, spatially correlated
noise and encodes it to 8 bits with a measured decode scale.

Pipeline:
    1. RandomState(12345) → size² Box-Muller standard normals
    2. Separable Gaussian filter, horizontal then vertical, wraparound indexing
    3. Subtract mean, divide by population std (skipped if std == 0)
    4. Encode: byte = round(clamp01(v · 0.5/3 + 0.5) · 255)
    5. decode_scale = 1 / std(byte/255 - 0.5)   (1 if that std is 0)

Invariants:
    - Periodic in both axes: the tile repeats without seams
    - Same (size, sigma, seed) → byte-identical output
    - centered(byte/255) · decode_scale has unit variance

Usage:
    from src.film_grain.noise_field import generate_noise_field

    noise = generate_noise_field(256, noise_sigma=1.0)
    raw = noise.to_bytes()            # 65536 bytes, row-major
    noise.noise_decode_scale          # ≈ 6.0 for sigma = 1
"""

import logging
from dataclasses import dataclass

import numpy as np

from src.utils.profiler import log_sink, timer

from .grain_math import box_muller_normals, gaussian_kernel_1d
from .resources import MIN_POSITIVE, MIN_TABLE_SIZE, NOISE_ENCODE_SCALE, NOISE_SEED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoiseField:
    """Encoded noise tile.

    Attributes
    ----------
    values : np.ndarray
        (size, size) uint8, row-major (index ``[y, x]``)
    noise_decode_scale : float
        Multiplier restoring unit variance after centering the dequantized bytes
    """
    values: np.ndarray
    noise_decode_scale: float

    @property
    def size(self) -> int:
        return int(self.values.shape[0])

    def to_bytes(self) -> bytes:
        """Flat row-major uint8 buffer, byte ``y * size + x``."""
        return np.ascontiguousarray(self.values, dtype=np.uint8).tobytes()

    def decode(self) -> np.ndarray:
        """Dequantize to float64 noise with (close to) zero mean and unit variance."""
        return decode_noise_bytes(self.values, self.noise_decode_scale)

    @classmethod
    def from_bytes(cls, raw: bytes, size: int, noise_decode_scale: float) -> 'NoiseField':
        values = np.frombuffer(raw, dtype=np.uint8, count=size * size).reshape(size, size)
        return cls(values=values.copy(), noise_decode_scale=float(noise_decode_scale))


def convolve_periodic(field: np.ndarray, kernel: np.ndarray, axis: int) -> np.ndarray:
    """Correlate ``field`` with an odd-length ``kernel`` along ``axis`` with wraparound.

    ``out[..., x] = Σ_k kernel[k + R] · field[..., (x + k) mod size]`` for
    ``k = -R..R``. Radii larger than the tile wrap more than once.
    """
    radius = (kernel.shape[0] - 1) // 2
    out = np.zeros_like(field, dtype=np.float64)
    for k in range(-radius, radius + 1):
        out += kernel[k + radius] * np.roll(field, -k, axis=axis)
    return out


def filter_separable_periodic(field: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Horizontal then vertical periodic pass with the same 1-D kernel."""
    horizontal = convolve_periodic(field, kernel, axis=1)
    return convolve_periodic(horizontal, kernel, axis=0)


def normalize_unit_variance(field: np.ndarray) -> np.ndarray:
    """Zero mean, unit population variance; constant fields are only centred."""
    centered = field - field.mean()
    std = np.sqrt(np.mean(centered * centered))
    if std > 0.0:
        centered = centered / std
    return centered


def encode_noise(field: np.ndarray) -> np.ndarray:
    """Map unit-variance noise to uint8, hard-clipping beyond ±3 std."""
    encoded = np.clip(field * NOISE_ENCODE_SCALE + 0.5, 0.0, 1.0)
    return np.round(encoded * 255.0).astype(np.uint8)


def measure_decode_scale(values: np.ndarray) -> float:
    """Reciprocal of the realized std of ``values / 255 - 0.5`` (1 if that std is 0)."""
    values = np.asarray(values)
    if values.size == 0 or values.min() == values.max():
        return 1.0
    zero_mean = values.astype(np.float64) / 255.0 - 0.5
    centered = zero_mean - zero_mean.mean()
    std = float(np.sqrt(np.mean(centered * centered)))
    return 1.0 / std if std > 0.0 else 1.0


def decode_noise_bytes(values: np.ndarray, noise_decode_scale: float) -> np.ndarray:
    """Dequantize, centre and rescale encoded noise the way a consumer samples it."""
    zero_mean = values.astype(np.float64) / 255.0 - 0.5
    return (zero_mean - zero_mean.mean()) * noise_decode_scale


def generate_noise_field(
    size: int = 256,
    noise_sigma: float = 1.0,
    seed: int = NOISE_SEED,
) -> NoiseField:
    """Generate the tileable correlated noise texture.

    Parameters
    ----------
    size : int
        Tile edge length (floored to 16)
    noise_sigma : float
        Gaussian correlation sigma in texels (floored to 1e-4)
    seed : int
        White noise seed, default 12345

    Returns
    -------
    NoiseField
        Encoded tile and its decode scale
    """
    size = max(MIN_TABLE_SIZE, int(size))
    noise_sigma = max(MIN_POSITIVE, float(noise_sigma))

    sink = log_sink(logger)
    with timer("white_noise", sink=sink):
        rng = np.random.RandomState(seed)
        white = box_muller_normals(rng, size * size).reshape(size, size)

    kernel = gaussian_kernel_1d(noise_sigma)
    with timer("separable_filter", sink=sink):
        filtered = filter_separable_periodic(white, kernel)

    normalized = normalize_unit_variance(filtered)
    values = encode_noise(normalized)
    decode_scale = measure_decode_scale(values)

    clipped = float(np.mean((values == 0) | (values == 255)))
    logger.info(
        f"Noise field generated: size={size}, sigma={noise_sigma}, seed={seed}, "
        f"kernel_radius={(kernel.shape[0] - 1) // 2}, decode_scale={decode_scale:.5f}, "
        f"clipped={clipped:.4%}"
    )

    return NoiseField(values=values, noise_decode_scale=decode_scale)
