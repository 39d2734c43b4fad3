"""Colour-space conversion and nearest-palette matching.

Distances are plain Euclidean (CIE76) in L*a*b*. The conversion uses the
4-digit sRGB matrix and D65 white 95.047 / 100.0 / 108.883 so that every
pixel lands on the same palette entry as the brick reference charts.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np
from scipy.spatial.distance import cdist
from skimage.color import deltaE_cie76

if TYPE_CHECKING:
    from brick_mosaic.palette import NamedColor, Palette

_RGB_TO_XYZ = np.array(
    [
        [0.4124, 0.3576, 0.1805],
        [0.2126, 0.7152, 0.0722],
        [0.0193, 0.1192, 0.9505],
    ],
    dtype=np.float64,
)
_WHITE_D65 = np.array([95.047, 100.0, 108.883], dtype=np.float64)
_LAB_EPSILON = 0.008856


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert (..., 3) uint8 sRGB → (..., 3) float64 CIELAB."""
    c = np.asarray(rgb, dtype=np.float64) / 255.0
    linear = np.where(c > 0.04045, ((c + 0.055) / 1.055) ** 2.4, c / 12.92) * 100.0

    xyz = (linear @ _RGB_TO_XYZ.T) / _WHITE_D65
    f = np.where(
        xyz > _LAB_EPSILON,
        np.power(np.maximum(xyz, 0.0), 1.0 / 3.0),
        7.787 * xyz + 16.0 / 116.0,
    )

    fx, fy, fz = f[..., 0], f[..., 1], f[..., 2]
    return np.stack([116.0 * fy - 16.0, 500.0 * (fx - fy), 200.0 * (fy - fz)], axis=-1)


def color_distance(rgb1: Sequence[int], rgb2: Sequence[int]) -> float:
    """Perceptual distance between two RGB triples (Euclidean in Lab)."""
    lab1 = rgb_to_lab(np.asarray(rgb1, dtype=np.uint8))
    lab2 = rgb_to_lab(np.asarray(rgb2, dtype=np.uint8))
    return float(deltaE_cie76(lab1, lab2))


def compute_distance_matrix(
    lab: np.ndarray,
    palette_lab: np.ndarray,
    chunk_size: int = 4096,
) -> np.ndarray:
    """Pairwise Euclidean distance between sample and palette colours.

    Args:
        lab:         (N, 3) float64 - samples in CIELAB.
        palette_lab: (P, 3) float64 - palette in CIELAB.
        chunk_size:  Samples computed per batch (controls peak RAM).

    Returns:
        (N, P) float64 distance matrix.
    """
    n = len(lab)
    dist = np.empty((n, len(palette_lab)), dtype=np.float64)
    for i in range(0, n, chunk_size):
        j = min(i + chunk_size, n)
        dist[i:j] = cdist(lab[i:j], palette_lab, "euclidean")
    return dist


def nearest_indices(
    rgb: np.ndarray,
    palette: Palette,
    chunk_size: int = 4096,
) -> np.ndarray:
    """Index of the closest palette entry for every pixel.

    Args:
        rgb:        (..., 3) uint8 pixels.
        palette:    Reference colours.
        chunk_size: Pixels matched per batch.

    Returns:
        intp array shaped like *rgb* without its last axis. On equal
        distance the earliest palette entry wins.
    """
    rgb = np.asarray(rgb, dtype=np.uint8)
    flat = rgb.reshape(-1, 3)
    out = np.empty(len(flat), dtype=np.intp)
    for i in range(0, len(flat), chunk_size):
        j = min(i + chunk_size, len(flat))
        dist = compute_distance_matrix(rgb_to_lab(flat[i:j]), palette.lab, chunk_size)
        # argmin returns the first minimum: palette order breaks ties
        out[i:j] = np.argmin(dist, axis=1)
    return out.reshape(rgb.shape[:-1])


def nearest(rgb: Sequence[int], palette: Palette) -> NamedColor:
    """The palette entry perceptually closest to one RGB triple."""
    values = [int(c) for c in rgb]
    if len(values) != 3 or any(c < 0 or c > 255 for c in values):
        msg = f"RGB colour must be three values in 0..255, got {rgb!r}"
        raise ValueError(msg)
    idx = nearest_indices(np.array([values], dtype=np.uint8), palette)[0]
    return palette[int(idx)]
