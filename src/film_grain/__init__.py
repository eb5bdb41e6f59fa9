"""Film grain std LUT and correlated noise generation.

Provides:
    - Std LUT: luminance quantile → grain standard deviation of a Boolean
      grain model seen through a Gaussian pixel filter (uint16)
    - Noise tile: tileable zero-mean unit-variance correlated noise (uint8)
      with a measured decode scale

Modules:
    - grain_math: overlap area, log-normal density, Gaussian kernel, Box-Muller
    - std_lut: StdLut generator
    - noise_field: NoiseField generator
    - bundle: persistence, staleness checks, previews
    - texture_upload: footprint validation and format fallback
    - frame_params: per-frame noise offsets/orientations for a compositor
    - resources: default names and parameters
    - errors: load/upload failures

Used by:
    - scripts/generate_film_grain.py: build step producing the bundle
    - Rendering adapters: texture_upload + frame_params
"""

from .bundle import (
    BundlePaths,
    ResourceBundle,
    check_bundle,
    ensure_fresh,
    generate_bundle,
    generate_bundle_from_config,
    load_bundle,
    sampling_params,
    save_bundle,
    save_previews,
)
from .errors import BufferSizeError, FilmGrainError, MissingResourceError, StaleBundleError
from .frame_params import FrameNoiseParams, derive_frame_noise_params
from .noise_field import NoiseField, generate_noise_field
from .std_lut import StdLut, generate_std_lut

__all__ = [
    'BundlePaths',
    'ResourceBundle',
    'check_bundle',
    'ensure_fresh',
    'generate_bundle',
    'generate_bundle_from_config',
    'load_bundle',
    'sampling_params',
    'save_bundle',
    'save_previews',
    'BufferSizeError',
    'FilmGrainError',
    'MissingResourceError',
    'StaleBundleError',
    'FrameNoiseParams',
    'derive_frame_noise_params',
    'NoiseField',
    'generate_noise_field',
    'StdLut',
    'generate_std_lut',
]
