"""Provenance digests for generated bundles.

The sidecar records three SHA-256 hex digests: one per raw buffer and one
over the generation parameters. ``--check`` recomputes them to decide
whether the bundle on disk still matches the config.

Usage:
    from src.utils import hashing
    hashing.sha256_bytes(lut.to_bytes())
    hashing.sha256_file("resources/FilmGrain_Noise.bytes")
    hashing.hash_dict(cfg.generation_params())
"""

import hashlib
import json
from pathlib import Path
from typing import Any, Dict, Union


def sha256_bytes(data: bytes) -> str:
    """Hex digest of an in-memory buffer."""
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Union[str, Path], chunk_size: int = 1 << 20) -> str:
    """Hex digest of a file, read ``chunk_size`` bytes at a time.

    Raises
    ------
    FileNotFoundError
        Missing file
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")

    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(chunk_size), b''):
            digest.update(chunk)
    return digest.hexdigest()


def hash_dict(d: Dict[str, Any]) -> str:
    """Digest of a JSON-serializable mapping, independent of key order.

    Floats go through ``json.dumps`` (shortest repr), so any change to a
    parameter value, however small, changes the digest.

    Examples
    --------
    >>> hash_dict({"lut_size": 256, "filter_sigma": 1.0}) == hash_dict({"filter_sigma": 1.0, "lut_size": 256})
    True
    """
    canonical = json.dumps(d, sort_keys=True, separators=(',', ':'))
    return sha256_bytes(canonical.encode('utf-8'))


def verify_file_hash(path: Union[str, Path], expected_hash: str) -> bool:
    """True when the file's digest equals ``expected_hash`` (case-insensitive)."""
    return sha256_file(path) == expected_hash.lower()
