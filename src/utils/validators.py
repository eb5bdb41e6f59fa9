"""YAML schema validation and config loading.

Provides centralized validation for configuration and metadata files using
pydantic:
    - Generator config (film_grain.v1.yaml): grain model, noise, output, logging
    - Bundle metadata (<name>.meta.yaml, film_grain_bundle.v1): generation
      parameters, side outputs and buffer hashes persisted next to the tables

Numeric generation parameters are never rejected for being out of range:
they are floored to the smallest usable value (with a warning) so the
generator always produces a usable table. Structural problems (wrong schema
tag, wrong types, unknown keys) still fail fast.

Units:
    - Grain radius and filter sigma: pixels of the film plane model
    - Noise sigma: texels of the noise tile

Usage:
    from src.utils import validators

    cfg = validators.load_film_grain_config("configs/film_grain.v1.yaml")
    meta = validators.load_bundle_metadata("resources/FilmGrain.meta.yaml")
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

# Smallest usable values for floored parameters
MIN_POSITIVE = 1e-4
MIN_TABLE_SIZE = 16

CONFIG_SCHEMA = "film_grain.v1"
BUNDLE_SCHEMA = "film_grain_bundle.v1"


def _floor(value, minimum, name: str):
    if value < minimum:
        logger.warning(f"{name}={value} below minimum, using {minimum}")
        return minimum
    return value


# ============================================================================
# GENERATION PARAMETERS
# ============================================================================

class GrainModelParams(BaseModel):
    """Boolean grain model parameters for the std LUT.

    ``grain_radius_std == 0`` selects a constant grain radius; otherwise the
    radius is log-normal with arithmetic mean ``grain_radius_mean`` and
    standard deviation ``grain_radius_std``.
    """
    model_config = ConfigDict(frozen=True, extra='forbid')

    grain_radius_mean: float = Field(0.05, description="Mean grain radius (mu_r)")
    grain_radius_std: float = Field(0.25, description="Grain radius std (sigma_r)")
    filter_sigma: float = Field(1.0, description="Gaussian pixel filter sigma")
    lut_size: int = Field(256, description="Number of luminance buckets")

    @field_validator('grain_radius_mean', 'filter_sigma')
    @classmethod
    def floor_positive(cls, v: float, info) -> float:
        return _floor(v, MIN_POSITIVE, info.field_name)

    @field_validator('grain_radius_std')
    @classmethod
    def floor_std(cls, v: float) -> float:
        return _floor(v, 0.0, 'grain_radius_std')

    @field_validator('lut_size')
    @classmethod
    def floor_lut_size(cls, v: int) -> int:
        return _floor(v, MIN_TABLE_SIZE, 'lut_size')


class NoiseParams(BaseModel):
    """Correlated noise tile parameters."""
    model_config = ConfigDict(frozen=True, extra='forbid')

    noise_size: int = Field(256, description="Tile edge length in texels")
    noise_sigma: float = Field(1.0, description="Gaussian correlation sigma (texels)")
    seed: int = Field(12345, ge=0, description="White noise seed")

    @field_validator('noise_size')
    @classmethod
    def floor_noise_size(cls, v: int) -> int:
        return _floor(v, MIN_TABLE_SIZE, 'noise_size')

    @field_validator('noise_sigma')
    @classmethod
    def floor_noise_sigma(cls, v: float) -> float:
        return _floor(v, MIN_POSITIVE, 'noise_sigma')


# ============================================================================
# GENERATOR CONFIG (film_grain.v1.yaml)
# ============================================================================

class OutputConfig(BaseModel):
    """Where and under which name the bundle is written."""
    model_config = ConfigDict(extra='forbid')

    directory: str = Field("resources", description="Output directory")
    name: str = Field("FilmGrain", description="Bundle base name")
    previews: bool = Field(False, description="Also write PNG previews")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or any(sep in v for sep in ('/', '\\')):
            raise ValueError(f"Bundle name must be a non-empty file stem, got: {v!r}")
        return v


class LoggingConfig(BaseModel):
    """Keyword arguments forwarded to setup_logging()."""
    model_config = ConfigDict(extra='forbid')

    log_level: str = Field("INFO")
    log_file: Optional[str] = None
    json_logs: bool = False
    color: bool = True

    @field_validator('log_level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}, got {v}")
        return v.upper()


class FilmGrainConfigV1(BaseModel):
    """Generator configuration (film_grain.v1.yaml schema)."""
    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    schema_version: str = Field(CONFIG_SCHEMA, alias="schema")
    grain: GrainModelParams = Field(default_factory=GrainModelParams)
    noise: NoiseParams = Field(default_factory=NoiseParams)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != CONFIG_SCHEMA:
            raise ValueError(f"Expected schema '{CONFIG_SCHEMA}', got '{v}'")
        return v

    def generation_params(self) -> Dict[str, Any]:
        """Parameters that determine the generated bytes (hashed for staleness)."""
        return {
            'grain_radius_mean': self.grain.grain_radius_mean,
            'grain_radius_std': self.grain.grain_radius_std,
            'filter_sigma': self.grain.filter_sigma,
            'lut_size': self.grain.lut_size,
            'noise_size': self.noise.noise_size,
            'noise_sigma': self.noise.noise_sigma,
            'noise_seed': self.noise.seed,
        }


# ============================================================================
# BUNDLE METADATA (<name>.meta.yaml)
# ============================================================================

class BundleMetadataV1(BaseModel):
    """Sidecar persisted next to the std LUT and noise buffers.

    Everything a consumer needs to reconstruct values from the raw bytes
    (``max_std``, ``noise_decode_scale``) plus what a build step needs to
    detect a stale bundle (parameters and SHA-256 hashes).
    """
    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    schema_version: str = Field(BUNDLE_SCHEMA, alias="schema")
    name: str

    grain_radius_mean: float = Field(..., gt=0.0)
    grain_radius_std: float = Field(..., ge=0.0)
    filter_sigma: float = Field(..., gt=0.0)
    lut_size: int = Field(..., ge=MIN_TABLE_SIZE)
    max_std: float = Field(..., ge=0.0)

    noise_size: int = Field(..., ge=MIN_TABLE_SIZE)
    noise_sigma: float = Field(..., gt=0.0)
    noise_seed: int = Field(12345, ge=0)
    noise_decode_scale: float = Field(..., gt=0.0)

    std_lut_file: str
    noise_file: str
    std_lut_sha256: str = Field(..., min_length=64, max_length=64)
    noise_sha256: str = Field(..., min_length=64, max_length=64)
    params_sha256: str = Field(..., min_length=64, max_length=64)
    generated_at: str = Field("", description="ISO-8601 UTC timestamp")

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != BUNDLE_SCHEMA:
            raise ValueError(f"Expected schema '{BUNDLE_SCHEMA}', got '{v}'")
        return v

    def generation_params(self) -> Dict[str, Any]:
        """Same keys as FilmGrainConfigV1.generation_params()."""
        return {
            'grain_radius_mean': self.grain_radius_mean,
            'grain_radius_std': self.grain_radius_std,
            'filter_sigma': self.filter_sigma,
            'lut_size': self.lut_size,
            'noise_size': self.noise_size,
            'noise_sigma': self.noise_sigma,
            'noise_seed': self.noise_seed,
        }


# ============================================================================
# LOADERS
# ============================================================================

def load_film_grain_config(path: Union[str, Path]) -> FilmGrainConfigV1:
    """Load and validate generator config from YAML.

    Parameters
    ----------
    path : str or Path
        Path to film_grain.v1.yaml

    Returns
    -------
    FilmGrainConfigV1
        Validated config model (out-of-range numbers already floored)

    Raises
    ------
    FileNotFoundError
        If file does not exist
    ValueError
        If the structure is invalid (wraps pydantic.ValidationError)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Film grain config not found: {path}")

    cfg = fs.load_yaml(path)
    try:
        return FilmGrainConfigV1(**cfg)
    except (ValidationError, TypeError) as e:
        raise ValueError(f"Film grain config validation failed at {path}: {e}") from e


def load_bundle_metadata(path: Union[str, Path]) -> BundleMetadataV1:
    """Load and validate a bundle metadata sidecar.

    Raises
    ------
    FileNotFoundError
        If file does not exist
    ValueError
        If the sidecar is malformed (wraps pydantic.ValidationError)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Bundle metadata not found: {path}")

    meta = fs.load_yaml(path)
    try:
        return BundleMetadataV1(**meta)
    except (ValidationError, TypeError) as e:
        raise ValueError(f"Bundle metadata validation failed at {path}: {e}") from e
