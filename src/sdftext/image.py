"""Atlas texture images: RGB uint8 NumPy arrays with PNG encoding via Pillow."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Union

import numpy as np
import PIL.Image
from numpy.typing import NDArray

from sdftext.errors import MalformedCacheFileError


def validate_texture(texture: NDArray[np.uint8]) -> None:
    """Check that `texture` is a non-empty (height, width, 3) uint8 array.

    Raises:
        TypeError: If it is not a NumPy array.
        ValueError: If dtype or shape are wrong.
    """
    if not isinstance(texture, np.ndarray):
        raise TypeError("Texture must be a NumPy array")
    if texture.dtype != np.uint8:
        raise ValueError("Texture array must be of type uint8")
    if texture.ndim != 3 or texture.shape[2] != 3:
        raise ValueError("Texture must have shape (height, width, 3)")
    if texture.shape[0] == 0 or texture.shape[1] == 0:
        raise ValueError("Texture cannot have zero width or height")


def new_texture(width: int, height: int) -> NDArray[np.uint8]:
    """A black RGB texture."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Texture size must be positive, got {width}x{height}")
    return np.zeros((height, width, 3), dtype=np.uint8)


def float_to_rgb8(bitmap: NDArray[np.floating]) -> NDArray[np.uint8]:
    """Convert a float bitmap with values in [0, 1] to uint8, rounding to nearest."""
    return np.clip(np.rint(np.asarray(bitmap, dtype=np.float64) * 255.0), 0, 255).astype(np.uint8)


def encode_png(texture: NDArray[np.uint8]) -> bytes:
    """Encode an RGB texture as PNG bytes."""
    validate_texture(texture)
    buffer = io.BytesIO()
    PIL.Image.fromarray(np.ascontiguousarray(texture)).save(buffer, format="PNG")
    return buffer.getvalue()


def decode_png(data: bytes) -> NDArray[np.uint8]:
    """Decode PNG bytes into an RGB texture.

    Raises:
        MalformedCacheFileError: If the bytes are not a readable image.
    """
    try:
        with PIL.Image.open(io.BytesIO(data)) as image:
            rgb = image.convert("RGB")
            texture = np.array(rgb, dtype=np.uint8)
    except (OSError, ValueError, PIL.Image.DecompressionBombError) as err:
        raise MalformedCacheFileError(f"Cannot decode embedded PNG: {err}") from err
    return texture


def save_texture(texture: NDArray[np.uint8], filename: Union[str, Path]) -> None:
    """Write a texture to an image file, format chosen by suffix."""
    validate_texture(texture)
    PIL.Image.fromarray(np.ascontiguousarray(texture)).save(str(filename))
