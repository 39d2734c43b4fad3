"""Map every pixel of a pre-sized raster onto the palette and tally usage."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from brick_mosaic.color_utils import nearest_indices
from brick_mosaic.palette import Palette, rgb_to_hex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColorUsage:
    """How many cells use one colour."""

    name: str
    hex: str
    count: int

    def to_dict(self) -> dict[str, str | int]:
        return {"name": self.name, "hex": self.hex, "count": self.count}

    @classmethod
    def from_dict(cls, data: dict) -> ColorUsage:
        return cls(name=str(data["name"]), hex=str(data["hex"]).upper(), count=int(data["count"]))


@dataclass(frozen=True, eq=False)
class QuantizedRaster:
    """Output of :func:`quantize`.

    Attributes:
        pixels:  (H, W, 3) uint8 - every value is a palette RGB.
        indices: (H, W) intp - palette index chosen for each pixel.
        usage:   Colour counts in first-seen (row-major) order.
    """

    pixels: np.ndarray
    indices: np.ndarray
    usage: list[ColorUsage]

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


def check_raster(raster: np.ndarray) -> np.ndarray:
    """Validate an (H, W, 3|4) uint8 raster and return its RGB view."""
    raster = np.asarray(raster)
    if raster.ndim != 3 or raster.shape[2] not in (3, 4):
        msg = f"Raster must have shape (H, W, 3) or (H, W, 4), got {raster.shape}"
        raise ValueError(msg)
    if raster.dtype != np.uint8:
        msg = f"Raster must be uint8, got {raster.dtype}"
        raise ValueError(msg)
    if raster.shape[0] == 0 or raster.shape[1] == 0:
        msg = "Raster must not be empty"
        raise ValueError(msg)
    return raster[..., :3]


def _split_rows(height: int, parts: int) -> list[tuple[int, int]]:
    """Partition *height* into ~*parts* contiguous [start, end) row spans."""
    parts = max(1, int(parts))
    step = (height + parts - 1) // parts
    return [(i, min(i + step, height)) for i in range(0, height, step)]


def tally_usage(pixels: np.ndarray, palette: Palette) -> list[ColorUsage]:
    """Count colours by value in row-major first-seen order.

    Each colour is named after the earliest palette entry with the same
    RGB; colours outside the palette are named by their hex code.
    """
    flat = np.asarray(pixels, dtype=np.uint8).reshape(-1, 3).astype(np.uint32)
    keys = (flat[:, 0] << 16) | (flat[:, 1] << 8) | flat[:, 2]
    uniq, first, counts = np.unique(keys, return_index=True, return_counts=True)

    names: dict[int, str] = {}
    for entry in palette:
        r, g, b = entry.rgb
        names.setdefault((r << 16) | (g << 8) | b, entry.name)

    usage = []
    for k in np.argsort(first, kind="stable"):
        key = int(uniq[k])
        hex_code = rgb_to_hex(((key >> 16) & 0xFF, (key >> 8) & 0xFF, key & 0xFF))
        usage.append(ColorUsage(names.get(key, hex_code), hex_code, int(counts[k])))
    return usage


def quantize(
    raster: np.ndarray,
    palette: Palette,
    chunk_size: int = 4096,
    workers: int = 1,
) -> QuantizedRaster:
    """Replace every pixel with its nearest palette colour.

    Args:
        raster:     (H, W, 3) uint8 source, already sized by the preprocessor.
        palette:    Reference colours.
        chunk_size: Pixels matched per distance-matrix batch.
        workers:    Threads matching row bands in parallel. The assignment
                    is identical for any value.

    Returns:
        The quantized raster, the chosen indices and colour usage.
    """
    rgb = check_raster(raster)
    h, w = rgb.shape[:2]

    logger.info("Quantizing %dx%d raster against %d colours …", w, h, len(palette))
    t0 = time.perf_counter()

    if workers <= 1 or h < 2:
        indices = nearest_indices(rgb, palette, chunk_size)
    else:
        bands = _split_rows(h, workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(nearest_indices, rgb[s:e], palette, chunk_size)
                for s, e in bands
            ]
            indices = np.vstack([f.result() for f in futures])

    pixels = palette.rgb[indices]
    usage = tally_usage(pixels, palette)
    logger.info(
        "Quantization done  (%.2f s, %d colours used)",
        time.perf_counter() - t0, len(usage),
    )
    for u in usage[:10]:
        logger.debug("  %s %s: %d cells", u.name, u.hex, u.count)

    return QuantizedRaster(pixels=pixels, indices=indices, usage=usage)
