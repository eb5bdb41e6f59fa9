"""Raw table buffer → texture upload adapter.

Validates persisted buffers against their admissible footprints and converts
them to a pixel format the target device supports. The device is represented
only by a capability query, so this layer is testable without a GPU.

Source encodings (chosen from the buffer length):
    - R16: at least 2·w·h bytes, little-endian uint16 per texel
    - R8:  at least w·h bytes, uint8 per texel
    Surplus bytes are trimmed; anything shorter raises BufferSizeError.

Fallback chain when the device lacks the source format:
    R16 → R8 (``(v·255 + 32767) // 65535``) → RGBA32 (``(v, 0, 0, 255)``)
    R8  → RGBA32

decode_std_lut() / decode_noise() turn an upload back into the float values
a bilinear sampler would read, for previews and validation.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Protocol, Tuple

import numpy as np

from .errors import BufferSizeError

logger = logging.getLogger(__name__)


class TextureFormat(str, Enum):
    R8 = "R8"
    R16 = "R16"
    RGBA32 = "RGBA32"

    @property
    def bytes_per_texel(self) -> int:
        return {TextureFormat.R8: 1, TextureFormat.R16: 2, TextureFormat.RGBA32: 4}[self]


class TextureCapabilities(Protocol):
    """Device capability query."""

    def supports(self, fmt: TextureFormat) -> bool:
        ...


class StaticCapabilities:
    """Capability query backed by a fixed set of supported formats."""

    def __init__(self, formats: Iterable[TextureFormat] = tuple(TextureFormat)):
        self.formats = frozenset(TextureFormat(f) for f in formats)

    def supports(self, fmt: TextureFormat) -> bool:
        return fmt in self.formats

    def __repr__(self) -> str:
        names = ','.join(sorted(f.value for f in self.formats))
        return f"StaticCapabilities({names})"


@dataclass(frozen=True)
class TextureUpload:
    """Texel data ready for upload (linear color space, bilinear filtering)."""
    name: str
    width: int
    height: int
    format: TextureFormat
    data: bytes

    def __post_init__(self):
        expected = self.width * self.height * self.format.bytes_per_texel
        if len(self.data) != expected:
            raise ValueError(
                f"{self.name}: {self.format.value} upload needs {expected} bytes, "
                f"got {len(self.data)}"
            )


def expected_footprints(width: int, height: int) -> Tuple[int, int]:
    """(R8 bytes, R16 bytes) for a ``width × height`` single-channel texture."""
    pixel_count = width * height
    return pixel_count, pixel_count * 2


def select_source_encoding(
    raw: bytes,
    width: int,
    height: int,
    name: str = "texture",
) -> Tuple[TextureFormat, bytes]:
    """Pick the source encoding from the buffer length and trim surplus bytes.

    Raises
    ------
    BufferSizeError
        If ``raw`` is shorter than the R8 footprint
    """
    r8_size, r16_size = expected_footprints(width, height)

    if len(raw) >= r16_size:
        fmt, size = TextureFormat.R16, r16_size
    elif len(raw) >= r8_size:
        fmt, size = TextureFormat.R8, r8_size
    else:
        raise BufferSizeError(name, r8_size, r16_size, len(raw))

    if len(raw) != size:
        logger.warning(
            f"{name}: trimming {len(raw) - size} surplus bytes from {fmt.value} buffer"
        )
        raw = raw[:size]

    return fmt, bytes(raw)


def r16_to_r8(raw: bytes) -> bytes:
    """Requantize little-endian uint16 texels to uint8 with rounding."""
    values = np.frombuffer(raw, dtype='<u2').astype(np.uint32)
    return ((values * 255 + 32767) // 65535).astype(np.uint8).tobytes()


def r8_to_rgba32(raw: bytes) -> bytes:
    """Expand R8 texels to RGBA32 as ``(v, 0, 0, 255)``."""
    values = np.frombuffer(raw, dtype=np.uint8)
    rgba = np.zeros((values.shape[0], 4), dtype=np.uint8)
    rgba[:, 0] = values
    rgba[:, 3] = 255
    return rgba.tobytes()


def prepare_texture_upload(
    raw: bytes,
    width: int,
    height: int,
    caps: TextureCapabilities,
    name: str = "texture",
) -> TextureUpload:
    """Validate ``raw`` and convert it to a format ``caps`` supports.

    Parameters
    ----------
    raw : bytes
        Persisted table buffer (R16 or R8 footprint)
    width, height : int
        Texture dimensions (a std LUT is ``lut_size × 1``)
    caps : TextureCapabilities
        Device capability query
    name : str
        Texture name for messages

    Returns
    -------
    TextureUpload

    Raises
    ------
    BufferSizeError
        If the buffer matches neither footprint
    """
    fmt, data = select_source_encoding(raw, width, height, name)

    if fmt is TextureFormat.R16 and not caps.supports(TextureFormat.R16):
        data = r16_to_r8(data)
        fmt = TextureFormat.R8
        if not caps.supports(TextureFormat.R8):
            data = r8_to_rgba32(data)
            fmt = TextureFormat.RGBA32
        logger.info(f"{name}: R16 unsupported, uploading as {fmt.value}")
    elif fmt is TextureFormat.R8 and not caps.supports(TextureFormat.R8):
        data = r8_to_rgba32(data)
        fmt = TextureFormat.RGBA32
        logger.info(f"{name}: R8 unsupported, uploading as RGBA32")

    return TextureUpload(name=name, width=width, height=height, format=fmt, data=data)


def read_channel(upload: TextureUpload) -> np.ndarray:
    """Red channel of an upload as float64 in [0, 1], shape (height, width)."""
    if upload.format is TextureFormat.R16:
        values = np.frombuffer(upload.data, dtype='<u2').astype(np.float64) / 65535.0
    elif upload.format is TextureFormat.R8:
        values = np.frombuffer(upload.data, dtype=np.uint8).astype(np.float64) / 255.0
    else:
        rgba = np.frombuffer(upload.data, dtype=np.uint8).reshape(-1, 4)
        values = rgba[:, 0].astype(np.float64) / 255.0
    return values.reshape(upload.height, upload.width)


def decode_std_lut(upload: TextureUpload) -> np.ndarray:
    """Std LUT texels as the [0, 1] standard deviation per quantile."""
    return read_channel(upload).reshape(-1)


def decode_noise(upload: TextureUpload, noise_decode_scale: float) -> np.ndarray:
    """Noise texels as centred, unit-variance noise, shape (size, size)."""
    channel = read_channel(upload) - 0.5
    return (channel - channel.mean()) * noise_decode_scale
