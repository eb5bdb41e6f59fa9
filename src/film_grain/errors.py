"""Exceptions for film grain resource handling.

The numerical generators never raise for out-of-range parameters (they floor
them). These exceptions cover the data-integrity failures at the load/upload
boundary only.
"""


class FilmGrainError(Exception):
    """Base class for film grain resource errors."""

    pass


class MissingResourceError(FilmGrainError, FileNotFoundError):
    """A persisted table buffer or metadata sidecar is absent."""

    pass


class BufferSizeError(FilmGrainError, ValueError):
    """A raw buffer matches neither the 8-bit nor the 16-bit footprint."""

    def __init__(self, name: str, expected_r8: int, expected_r16: int, actual: int):
        self.name = name
        self.expected_r8 = expected_r8
        self.expected_r16 = expected_r16
        self.actual = actual
        super().__init__(
            f"Raw texture data size mismatch for {name}: expected {expected_r8} "
            f"or {expected_r16} bytes, got {actual}"
        )


class StaleBundleError(FilmGrainError):
    """Persisted tables no longer match the parameters that should produce them."""

    def __init__(self, name: str, reasons):
        self.name = name
        self.reasons = list(reasons)
        super().__init__(f"Bundle '{name}' is stale: " + "; ".join(self.reasons))
