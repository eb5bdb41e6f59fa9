"""Std LUT + noise tile persisted as one versioned resource bundle.

A bundle is written as three files in one directory:
    <name>_StdLut.bytes   little-endian uint16, lut_size entries
    <name>_Noise.bytes    uint8, noise_size² texels, row-major
    <name>.meta.yaml      film_grain_bundle.v1 sidecar (parameters, max_std,
                          noise_decode_scale, SHA-256 of both buffers and of
                          the generation parameters)

Both tables are always generated and written together; the sidecar is
written last so a reader never sees metadata for buffers that aren't there.

Public API:
    generate_bundle(grain, noise) → ResourceBundle
    generate_bundle_from_config(cfg) → ResourceBundle
    save_bundle(bundle, out_dir, name) → BundlePaths
    load_bundle(out_dir, name) → ResourceBundle
    check_bundle(out_dir, name, cfg) → list of staleness reasons
    ensure_fresh(out_dir, name, cfg)  (raises StaleBundleError)
    save_previews(bundle, out_dir, name) → (noise_png, lut_png)
    sampling_params(meta) → renderer constants with default fallback
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from src.utils import fs, hashing
from src.utils.logging_config import log_context
from src.utils.validators import (
    BundleMetadataV1,
    FilmGrainConfigV1,
    GrainModelParams,
    NoiseParams,
    load_bundle_metadata,
)

from .errors import MissingResourceError, StaleBundleError
from .noise_field import NoiseField, generate_noise_field
from .resources import DEFAULTS, METADATA_SUFFIX, NOISE_SUFFIX, STD_LUT_SUFFIX, FilmGrainDefaults
from .std_lut import StdLut, generate_std_lut
from .texture_upload import TextureFormat, r16_to_r8, select_source_encoding

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class BundlePaths:
    std_lut: Path
    noise: Path
    metadata: Path

    @classmethod
    def for_name(cls, out_dir: PathLike, name: str) -> 'BundlePaths':
        out_dir = Path(out_dir)
        return cls(
            std_lut=out_dir / f"{name}{STD_LUT_SUFFIX}",
            noise=out_dir / f"{name}{NOISE_SUFFIX}",
            metadata=out_dir / f"{name}{METADATA_SUFFIX}",
        )


@dataclass(frozen=True)
class ResourceBundle:
    """Both generated tables plus the parameters that produced them."""
    grain: GrainModelParams
    noise_params: NoiseParams
    std_lut: StdLut
    noise: NoiseField

    def generation_params(self) -> dict:
        return {
            'grain_radius_mean': self.grain.grain_radius_mean,
            'grain_radius_std': self.grain.grain_radius_std,
            'filter_sigma': self.grain.filter_sigma,
            'lut_size': self.grain.lut_size,
            'noise_size': self.noise_params.noise_size,
            'noise_sigma': self.noise_params.noise_sigma,
            'noise_seed': self.noise_params.seed,
        }

    def metadata(self, name: str, paths: Optional[BundlePaths] = None) -> BundleMetadataV1:
        """Build the sidecar model for this bundle."""
        paths = paths or BundlePaths.for_name(".", name)
        params = self.generation_params()
        return BundleMetadataV1(
            name=name,
            max_std=self.std_lut.max_std,
            noise_decode_scale=self.noise.noise_decode_scale,
            std_lut_file=paths.std_lut.name,
            noise_file=paths.noise.name,
            std_lut_sha256=hashing.sha256_bytes(self.std_lut.to_bytes()),
            noise_sha256=hashing.sha256_bytes(self.noise.to_bytes()),
            params_sha256=hashing.hash_dict(params),
            generated_at=datetime.now(timezone.utc).isoformat(timespec='seconds'),
            **params,
        )


def generate_bundle(
    grain: Optional[GrainModelParams] = None,
    noise: Optional[NoiseParams] = None,
) -> ResourceBundle:
    """Run both generators. Parameters default to the schema defaults."""
    grain = grain or GrainModelParams()
    noise = noise or NoiseParams()

    with log_context(table="std_lut"):
        std_lut = generate_std_lut(
            grain.lut_size,
            grain.grain_radius_mean,
            grain.grain_radius_std,
            grain.filter_sigma,
        )
    with log_context(table="noise"):
        noise_field = generate_noise_field(noise.noise_size, noise.noise_sigma, noise.seed)

    return ResourceBundle(grain=grain, noise_params=noise, std_lut=std_lut, noise=noise_field)


def generate_bundle_from_config(cfg: FilmGrainConfigV1) -> ResourceBundle:
    return generate_bundle(cfg.grain, cfg.noise)


def save_bundle(bundle: ResourceBundle, out_dir: PathLike, name: str) -> BundlePaths:
    """Write both buffers, then the sidecar, atomically."""
    paths = BundlePaths.for_name(out_dir, name)

    fs.atomic_write_bytes(paths.std_lut, bundle.std_lut.to_bytes())
    fs.atomic_write_bytes(paths.noise, bundle.noise.to_bytes())

    meta = bundle.metadata(name, paths)
    fs.atomic_yaml_dump(meta.model_dump(by_alias=True), paths.metadata)

    logger.info(
        f"Saved bundle '{name}' to {paths.metadata.parent}: "
        f"max_std={meta.max_std:.6f}, noise_decode_scale={meta.noise_decode_scale:.5f}"
    )
    return paths


def _read_required(path: Path) -> bytes:
    try:
        return fs.read_bytes(path)
    except FileNotFoundError as e:
        raise MissingResourceError(f"Missing film grain resource: {path}") from e


def _load_metadata(paths: BundlePaths) -> BundleMetadataV1:
    try:
        return load_bundle_metadata(paths.metadata)
    except FileNotFoundError as e:
        raise MissingResourceError(f"Missing film grain metadata: {paths.metadata}") from e


def load_bundle(out_dir: PathLike, name: str) -> ResourceBundle:
    """Load a bundle written by save_bundle().

    Raises
    ------
    MissingResourceError
        If the sidecar or either buffer is absent
    BufferSizeError
        If a buffer matches neither the 8-bit nor the 16-bit footprint
    """
    paths = BundlePaths.for_name(out_dir, name)
    meta = _load_metadata(paths)
    out_dir = paths.metadata.parent

    lut_raw = _read_required(out_dir / meta.std_lut_file)
    noise_raw = _read_required(out_dir / meta.noise_file)

    lut_fmt, lut_raw = select_source_encoding(lut_raw, meta.lut_size, 1, f"{name} std LUT")
    if lut_fmt is TextureFormat.R8:
        # 8-bit fallback: widen so 255 maps to 65535
        lut_raw = (np.frombuffer(lut_raw, dtype=np.uint8).astype('<u2') * 257).tobytes()
    std_lut = StdLut.from_bytes(lut_raw, meta.max_std)

    noise_fmt, noise_raw = select_source_encoding(
        noise_raw, meta.noise_size, meta.noise_size, f"{name} noise"
    )
    if noise_fmt is TextureFormat.R16:
        noise_raw = r16_to_r8(noise_raw)
    noise = NoiseField.from_bytes(noise_raw, meta.noise_size, meta.noise_decode_scale)

    grain = GrainModelParams(
        grain_radius_mean=meta.grain_radius_mean,
        grain_radius_std=meta.grain_radius_std,
        filter_sigma=meta.filter_sigma,
        lut_size=meta.lut_size,
    )
    noise_params = NoiseParams(
        noise_size=meta.noise_size,
        noise_sigma=meta.noise_sigma,
        seed=meta.noise_seed,
    )

    logger.debug(f"Loaded bundle '{name}' ({lut_fmt.value} LUT, {noise_fmt.value} noise)")
    return ResourceBundle(grain=grain, noise_params=noise_params, std_lut=std_lut, noise=noise)


def check_bundle(out_dir: PathLike, name: str, cfg: FilmGrainConfigV1) -> List[str]:
    """List the reasons a persisted bundle no longer matches ``cfg``.

    An empty list means the bundle is fresh.

    Raises
    ------
    MissingResourceError
        If the sidecar is absent
    """
    paths = BundlePaths.for_name(out_dir, name)
    meta = _load_metadata(paths)
    reasons = []

    expected = cfg.generation_params()
    stored = meta.generation_params()
    for key, value in expected.items():
        if stored[key] != value:
            reasons.append(f"{key} changed ({stored[key]} -> {value})")

    if meta.params_sha256 != hashing.hash_dict(stored):
        reasons.append("params_sha256 does not match stored parameters")

    out_dir = paths.metadata.parent
    for label, file_name, digest in (
        ('std LUT', meta.std_lut_file, meta.std_lut_sha256),
        ('noise', meta.noise_file, meta.noise_sha256),
    ):
        path = out_dir / file_name
        if not path.exists():
            reasons.append(f"{label} buffer missing: {path.name}")
        elif not hashing.verify_file_hash(path, digest):
            reasons.append(f"{label} buffer hash mismatch: {path.name}")

    return reasons


def ensure_fresh(out_dir: PathLike, name: str, cfg: FilmGrainConfigV1) -> None:
    """Raise StaleBundleError unless check_bundle() finds nothing."""
    reasons = check_bundle(out_dir, name, cfg)
    if reasons:
        raise StaleBundleError(name, reasons)


def save_previews(
    bundle: ResourceBundle,
    out_dir: PathLike,
    name: str,
    strip_height: int = 32,
) -> Tuple[Path, Path]:
    """Write grayscale PNG previews of the noise tile and the std LUT.

    The LUT strip is normalized by max_std so its brightest column is white.
    """
    out_dir = Path(out_dir)
    noise_png = out_dir / f"{name}_Noise.png"
    lut_png = out_dir / f"{name}_StdLut.png"

    fs.atomic_save_image(bundle.noise.values, noise_png)

    max_std = bundle.std_lut.max_std
    row = bundle.std_lut.std / max_std if max_std > 0.0 else np.zeros_like(bundle.std_lut.std)
    fs.atomic_save_image(np.tile(row, (strip_height, 1)), lut_png)

    logger.info(f"Wrote previews {noise_png.name}, {lut_png.name}")
    return noise_png, lut_png


def sampling_params(
    meta: Optional[BundleMetadataV1] = None,
    defaults: FilmGrainDefaults = DEFAULTS,
) -> Dict[str, Union[int, float]]:
    """Constants a renderer needs to sample a bundle's tables.

    Missing metadata, or a non-positive value in it, falls back to the
    built-in defaults so a renderer can still draw with the shipped tables.
    """
    fields = (
        'lut_size',
        'noise_size',
        'filter_sigma',
        'noise_sigma',
        'noise_decode_scale',
        'max_std',
    )
    if meta is None:
        logger.debug("No bundle metadata, using default sampling parameters")
    return {field: defaults.resolve(field, getattr(meta, field, None)) for field in fields}
