"""Filesystem helpers for bundle artifacts.

A bundle is two raw buffers plus a YAML sidecar, optionally with PNG
previews. Anything that watches the output directory (an asset importer,
a second generator run with ``--check``) must never observe a truncated
buffer, so each artifact is staged beside its target, flushed to disk and
then renamed over it.

Usage:
    from src.utils import fs
    fs.atomic_write_bytes(out_dir / "FilmGrain_StdLut.bytes", lut.to_bytes())
    fs.atomic_yaml_dump(meta, out_dir / "FilmGrain.meta.yaml")
    fs.atomic_save_image(noise.values, out_dir / "FilmGrain_Noise.png")
"""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

import numpy as np
import yaml
from PIL import Image

PathLike = Union[str, Path]


def ensure_dir(p: PathLike) -> Path:
    """Create ``p`` (and parents) if missing and return it as a Path."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


@contextmanager
def _staged(target: Path, staging: Path, what: str) -> Iterator[Path]:
    """Yield a staging path; on success rename it over ``target``.

    The staging file is removed when the body raises, and the failure is
    re-raised as RuntimeError naming the target.
    """
    ensure_dir(target.parent)
    try:
        yield staging
        staging.replace(target)
    except Exception as e:
        staging.unlink(missing_ok=True)
        raise RuntimeError(f"Failed to write {what} {target} atomically: {e}") from e


def atomic_write_bytes(path: PathLike, data: bytes, tmp_suffix: str = ".tmp") -> None:
    """Replace ``path`` with ``data`` in one rename.

    Parameters
    ----------
    path : str or Path
        Destination, e.g. ``resources/FilmGrain_Noise.bytes``
    data : bytes
        Full file contents
    tmp_suffix : str
        Appended to the destination name for the staging file

    Raises
    ------
    RuntimeError
        Writing, syncing or renaming failed (no staging file is left behind)
    """
    path = Path(path)
    with _staged(path, path.with_name(path.name + tmp_suffix), "file") as staging:
        with open(staging, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())


def read_bytes(path: PathLike) -> bytes:
    """Contents of a buffer file; FileNotFoundError names the path."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return path.read_bytes()


def _to_uint8(img: np.ndarray) -> np.ndarray:
    img = np.asarray(img)
    if np.issubdtype(img.dtype, np.floating):
        img = np.round(np.clip(img, 0.0, 1.0) * 255.0)
    elif img.dtype != np.uint8:
        img = np.clip(img, 0, 255)
    img = img.astype(np.uint8, copy=False)
    if img.ndim == 3 and img.shape[2] == 1:
        img = img[..., 0]
    return img


def atomic_save_image(
    img: np.ndarray,
    path: PathLike,
    pil_kwargs: Optional[Dict[str, Any]] = None
) -> None:
    """Write a preview image through a staging file.

    Parameters
    ----------
    img : np.ndarray
        (H, W) or (H, W, C). uint8 is written as-is, floats are read as
        [0, 1] intensities, other integer types are clipped to [0, 255].
    path : str or Path
        Destination; its extension selects the PIL encoder
    pil_kwargs : dict, optional
        Forwarded to ``PIL.Image.Image.save``
    """
    path = Path(path)
    pil_img = Image.fromarray(_to_uint8(img))
    # PIL picks the encoder from the last suffix, so stage as name.tmp.png
    with _staged(path, path.with_name(f"{path.stem}.tmp{path.suffix}"), "image") as staging:
        pil_img.save(staging, **(pil_kwargs or {}))


def atomic_yaml_dump(obj: Any, path: PathLike) -> None:
    """Write ``obj`` as block-style YAML, keeping mapping order."""
    text = yaml.safe_dump(obj, default_flow_style=False, sort_keys=False, allow_unicode=True)
    atomic_write_bytes(path, text.encode('utf-8'))


def load_yaml(path: PathLike) -> Dict[str, Any]:
    """Parse a YAML file with ``safe_load``.

    Returns ``{}`` for an empty document.

    Raises
    ------
    FileNotFoundError
        Missing file
    yaml.YAMLError
        Malformed document; the message names the file
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"YAML file not found: {path}")

    text = path.read_text(encoding='utf-8')
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e
    return {} if data is None else data
