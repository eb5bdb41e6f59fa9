"""Process-wide film grain constants.

Default resource names, table sizes and model parameters shared by the
generators, the bundle I/O layer and the upload adapter. Nothing here is
mutated at runtime.
"""

from dataclasses import dataclass
from typing import Union

from src.utils.validators import MIN_POSITIVE, MIN_TABLE_SIZE

DEFAULT_STD_LUT_PATH = "FilmGrain/FilmGrainStdLut"
DEFAULT_NOISE_PATH = "FilmGrain/FilmGrainNoise"

STD_LUT_SUFFIX = "_StdLut.bytes"
NOISE_SUFFIX = "_Noise.bytes"
METADATA_SUFFIX = ".meta.yaml"

DEFAULT_LUT_SIZE = 256
DEFAULT_NOISE_SIZE = 256

DEFAULT_GRAIN_RADIUS_MEAN = 0.05
DEFAULT_GRAIN_RADIUS_STD = 0.25
DEFAULT_FILTER_SIGMA = 1.0
DEFAULT_NOISE_SIGMA = 1.0
DEFAULT_MAX_STD = 0.101737
DEFAULT_NOISE_DECODE_SCALE = 6.01576

NOISE_SEED = 12345
# Maps ±3 standard deviations onto [0, 1] before 8-bit quantization
NOISE_ENCODE_SCALE = 0.5 / 3.0

MIN_GRAIN_SCALE = 0.01

# Gamma table sample count is clamp(2 * lut_size, GAMMA_MIN, GAMMA_MAX)
GAMMA_SAMPLES_MIN = 256
GAMMA_SAMPLES_MAX = 2048
RADIUS_SAMPLES = 256
RADIUS_SIGMA_SPAN = 3.0
RADIUS_FLOOR = 1e-6
EXPONENT_CLAMP = 50.0
QUANTILE_CEIL = 1.0 - 1e-6

KERNEL_RADIUS_MAX = 64


@dataclass(frozen=True)
class FilmGrainDefaults:
    """Fallback parameters used when a bundle omits or zeroes a value."""

    lut_size: int = DEFAULT_LUT_SIZE
    noise_size: int = DEFAULT_NOISE_SIZE
    grain_radius_mean: float = DEFAULT_GRAIN_RADIUS_MEAN
    grain_radius_std: float = DEFAULT_GRAIN_RADIUS_STD
    filter_sigma: float = DEFAULT_FILTER_SIGMA
    noise_sigma: float = DEFAULT_NOISE_SIGMA
    max_std: float = DEFAULT_MAX_STD
    noise_decode_scale: float = DEFAULT_NOISE_DECODE_SCALE

    def resolve(self, field: str, value) -> Union[int, float]:
        """Return ``value`` when it is positive, else the default for ``field``."""
        if value is None or not value > 0:
            return getattr(self, field)
        return value


DEFAULTS = FilmGrainDefaults()
