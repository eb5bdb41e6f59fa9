"""Per-frame noise sampling parameters for a grain compositor.

Pure functions deriving, from a frame index, the two noise lookups a
renderer blends each frame: a UV scale shared by both, a random UV offset
and one of 8 axis-aligned orientations per lookup. Decoupled from any
graphics API; a rendering adapter only packs the result into shader vectors.

Seeds are ``hash_u32(frame + 1)`` and ``hash_u32(frame + 2)``; the offset
uses the low 16 bits of the seed (x) and of a rehash of it (y); the
orientation variant is ``seed & 7`` (2 bits rotation, 1 bit mirror).

The noise UV scale ``(noise_sigma / filter_sigma) / (grain_scale · noise_size)``
maps the tile so one noise correlation length spans one filter sigma of
screen pixels scaled by grain_scale.
"""

import math
from dataclasses import dataclass
from typing import Tuple

from .resources import MIN_GRAIN_SCALE, MIN_POSITIVE

Vec2 = Tuple[float, float]
Vec4 = Tuple[float, float, float, float]

_MASK32 = 0xFFFFFFFF
_GOLDEN = 0x9E3779B9

# (basis_x, basis_y) for rotations of 0, 90, 180 and 270 degrees
_ROTATIONS = (
    ((1.0, 0.0), (0.0, 1.0)),
    ((0.0, 1.0), (-1.0, 0.0)),
    ((-1.0, 0.0), (0.0, -1.0)),
    ((0.0, -1.0), (1.0, 0.0)),
)


@dataclass(frozen=True)
class FrameNoiseParams:
    """Noise lookup parameters for one frame."""
    scale: float
    offset_a: Vec2
    offset_b: Vec2
    basis_a: Tuple[Vec2, Vec2]
    basis_b: Tuple[Vec2, Vec2]

    def as_shader_vectors(self, intensity: float, noise_decode_scale: float) -> dict:
        """Pack into the 4-vectors consumed by the grain shader."""
        (ax, ay), (bx, by) = self.basis_a, self.basis_b
        return {
            '_NoiseParamsA': (self.scale, self.scale, self.offset_a[0], self.offset_a[1]),
            '_NoiseParamsB': (self.scale, self.scale, self.offset_b[0], self.offset_b[1]),
            '_NoiseTransformA': (ax[0], ax[1], ay[0], ay[1]),
            '_NoiseTransformB': (bx[0], bx[1], by[0], by[1]),
            '_GrainParams': (float(intensity), float(noise_decode_scale), 0.0, 0.0),
        }


def hash_u32(x: int) -> int:
    """32-bit integer avalanche hash (xor-shift / multiply finalizer)."""
    x &= _MASK32
    x ^= x >> 16
    x = (x * 0x7FEB352D) & _MASK32
    x ^= x >> 15
    x = (x * 0x846CA68B) & _MASK32
    x ^= x >> 16
    return x


def frame_index(time_s: float, noise_speed: float) -> int:
    """Frame counter for temporal variation; constant 0 when speed <= 0."""
    if noise_speed <= 0.0:
        return 0
    return int(math.floor(time_s * noise_speed))


def noise_offset(seed: int) -> Vec2:
    """UV offset in [0, 1)² from the low 16 bits of ``seed`` and of its rehash."""
    seed &= _MASK32
    seed2 = hash_u32(seed ^ _GOLDEN)
    return (seed & 0xFFFF) / 65536.0, (seed2 & 0xFFFF) / 65536.0


def noise_basis(variant: int) -> Tuple[Vec2, Vec2]:
    """One of 8 orientations: rotation ``variant & 3``, X mirrored if ``variant & 4``."""
    basis_x, basis_y = _ROTATIONS[variant & 3]
    if variant & 4:
        basis_x = (-basis_x[0], -basis_x[1])
    return basis_x, basis_y


def noise_scale(
    grain_scale: float,
    noise_size: int,
    filter_sigma: float,
    noise_sigma: float,
) -> float:
    """UV scale of the noise tile in screen pixels."""
    sigma = max(MIN_POSITIVE, filter_sigma)
    n_sigma = max(MIN_POSITIVE, noise_sigma)
    g_scale = max(MIN_GRAIN_SCALE, grain_scale)
    return (n_sigma / sigma) / (g_scale * noise_size)


def derive_frame_noise_params(
    frame: int,
    grain_scale: float,
    noise_size: int,
    filter_sigma: float,
    noise_sigma: float,
) -> FrameNoiseParams:
    """Derive both noise lookups for ``frame``.

    Parameters
    ----------
    frame : int
        Frame index (see frame_index()); wraps modulo 2³²
    grain_scale : float
        Grain size multiplier in screen pixels (floored to 0.01)
    noise_size : int
        Edge length of the noise tile
    filter_sigma, noise_sigma : float
        Generation sigmas of the std LUT and the noise tile

    Returns
    -------
    FrameNoiseParams
    """
    seed_a = hash_u32(frame + 1)
    seed_b = hash_u32(frame + 2)

    return FrameNoiseParams(
        scale=noise_scale(grain_scale, noise_size, filter_sigma, noise_sigma),
        offset_a=noise_offset(seed_a),
        offset_b=noise_offset(seed_b),
        basis_a=noise_basis(seed_a & 7),
        basis_b=noise_basis(seed_b & 7),
    )
