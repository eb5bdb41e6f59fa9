"""Film grain tables: offline generation of grain statistics for a real-time effect.

This package precomputes the two data tables a film grain post-process samples
at runtime, persists them with their decode metadata, and provides the pure
helpers a rendering adapter needs to upload and animate them.

Architecture layers (strict one-way dependency):
    scripts/ → src/film_grain/ → src/utils/

Key invariants:
    - Generation is deterministic: same parameters → byte-identical tables
    - Out-of-range parameters are floored, never rejected
    - Std LUT is little-endian uint16; noise tile is row-major uint8
    - max_std and noise_decode_scale always travel with the buffers
    - YAML-only configs and sidecars
"""

__version__ = "1.0.0"
