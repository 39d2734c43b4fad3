"""Centralised configuration via a frozen dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class MosaicConfig:
    """All tuneable parameters for a mosaic run and editing session.

    Attributes:
        tile_size:     Cells per board side (boards are tile_size x tile_size).
        board_layout:  Grid preset name (see boards.BOARD_LAYOUTS).
        board_count:   Board count used when the layout is not a preset.
        normalize:     Stretch the source histogram before quantizing.
        chunk_size:    Pixels matched per distance-matrix batch (controls peak RAM).
        workers:       Threads used to quantize row bands in parallel.
        pixel_upscale: Each cell becomes n x n in the PNG preview.
        cell_px:       On-screen size of one cell at zoom 1.0.
        min_zoom:      Lower zoom bound of the editor view.
        max_zoom:      Upper zoom bound of the editor view.
        zoom_step:     Multiplicative factor for one zoom in/out step.
        output_dir:    Folder for results.
    """

    # Boards
    tile_size: int = 32
    board_layout: str = "2x2"
    board_count: int = 4

    # Preprocessing
    normalize: bool = True

    # Quantization
    chunk_size: int = 4096
    workers: int = 1

    # Output
    pixel_upscale: int = 8
    output_dir: Path = field(default_factory=lambda: Path("output"))

    # Editor view
    cell_px: float = 16.0
    min_zoom: float = 0.25
    max_zoom: float = 8.0
    zoom_step: float = 1.5

    SUPPORTED_EXTENSIONS: frozenset[str] = frozenset({".jpg", ".jpeg", ".png"})
