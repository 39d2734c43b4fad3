"""Image loading, PNG data-URI encoding and preview output."""

from __future__ import annotations

import base64
import io
from pathlib import Path

import numpy as np
from PIL import Image, ImageOps

_DATA_URI_PREFIX = "data:image/png;base64,"


def load_and_resize(
    path: str | Path,
    width: int,
    height: int,
    normalize: bool = True,
) -> np.ndarray:
    """Load an image and stretch it to exactly *width* x *height*.

    This is the reference preprocessor handed to the quantizer: the aspect
    ratio is not preserved, since the board grid fixes the output extent.

    Returns:
        (height, width, 3) uint8 array.
    """
    img = Image.open(path).convert("RGB")
    img = img.resize((width, height), Image.LANCZOS)
    if normalize:
        img = ImageOps.autocontrast(img)
    return np.array(img, dtype=np.uint8)


def encode_data_uri(array: np.ndarray) -> str:
    """Encode an (H, W, 3) uint8 raster as a ``data:image/png`` URI."""
    buf = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(array[..., :3], dtype=np.uint8)).save(buf, format="PNG")
    return _DATA_URI_PREFIX + base64.b64encode(buf.getvalue()).decode("ascii")


def decode_data_uri(uri: str) -> np.ndarray:
    """Decode a base64 image data URI back to an (H, W, 3) uint8 raster."""
    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:image/") or ";base64" not in header:
        msg = "Expected a base64 'data:image/...' URI"
        raise ValueError(msg)
    img = Image.open(io.BytesIO(base64.b64decode(payload))).convert("RGB")
    return np.array(img, dtype=np.uint8)


def save_upscaled(
    array: np.ndarray,
    path: str | Path,
    pixel_upscale: int = 8,
) -> None:
    """Save a small array as a nearest-neighbour-upscaled image."""
    img = Image.fromarray(array.astype(np.uint8))
    h, w = array.shape[:2]
    img = img.resize((w * pixel_upscale, h * pixel_upscale), Image.NEAREST)
    img.save(path)
