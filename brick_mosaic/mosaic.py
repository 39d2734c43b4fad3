"""The mosaic result: quantized raster, boards, colour usage and totals."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import numpy as np

from brick_mosaic.boards import Board, assemble_boards, grid_shape, partition
from brick_mosaic.image_io import decode_data_uri, encode_data_uri
from brick_mosaic.palette import Palette
from brick_mosaic.quantizer import ColorUsage, quantize, tally_usage

logger = logging.getLogger(__name__)

# Rough assembly pace used for build estimates
SECONDS_PER_TILE = 7


@dataclass(eq=False)
class MosaicResult:
    """Everything downstream consumers need about one processed image.

    Attributes:
        quantized:   (rows*N, cols*N, 3) uint8 palette-mapped raster.
        color_usage: Cell counts per colour, first-seen order.
        boards:      Boards in assembly order.
        grid_cols:   Boards per row.
        grid_rows:   Boards per column.
        tile_size:   Cells per board side (N).
    """

    quantized: np.ndarray
    color_usage: list[ColorUsage]
    boards: list[Board]
    grid_cols: int
    grid_rows: int
    tile_size: int = 32

    @property
    def total_tiles(self) -> int:
        return self.grid_cols * self.grid_rows * self.tile_size * self.tile_size

    def board_map(self) -> dict[str, Board]:
        return {b.id: b for b in self.boards}

    def validate(self) -> None:
        """Raise ``ValueError`` if the result breaks a structural invariant."""
        n = self.tile_size
        expected = (self.grid_rows * n, self.grid_cols * n)
        if self.quantized.shape[:2] != expected:
            msg = f"Quantized raster is {self.quantized.shape[:2]}, expected {expected}"
            raise ValueError(msg)
        if len(self.boards) != self.grid_cols * self.grid_rows:
            msg = f"Expected {self.grid_cols * self.grid_rows} boards, got {len(self.boards)}"
            raise ValueError(msg)
        if len({b.id for b in self.boards}) != len(self.boards):
            msg = "Board ids must be unique"
            raise ValueError(msg)
        if len({(b.row, b.col) for b in self.boards}) != len(self.boards):
            msg = "Two boards share a grid cell"
            raise ValueError(msg)
        for board in self.boards:
            if not (0 <= board.row < self.grid_rows and 0 <= board.col < self.grid_cols):
                msg = (
                    f"Board {board.id} at row {board.row}, col {board.col} lies outside "
                    f"the {self.grid_cols}x{self.grid_rows} grid"
                )
                raise ValueError(msg)
            if board.pixels.shape != (n, n, 3):
                msg = f"Board {board.id} is {board.pixels.shape}, expected {(n, n, 3)}"
                raise ValueError(msg)
        counted = sum(u.count for u in self.color_usage)
        if counted != self.total_tiles:
            msg = f"Colour usage counts {counted} cells, total is {self.total_tiles}"
            raise ValueError(msg)

    def to_dict(self) -> dict:
        """Serialise with the field names collaborators expect."""
        return {
            "pixelatedImageData": encode_data_uri(self.quantized),
            "colorMap": [u.to_dict() for u in self.color_usage],
            "boards": [b.to_dict() for b in self.boards],
            "totalTiles": self.total_tiles,
        }

    @classmethod
    def from_dict(cls, data: dict) -> MosaicResult:
        """Parse the wire format; raises ``ValueError`` on any broken invariant."""
        boards = [Board.from_dict(b) for b in data["boards"]]
        if len({b.size for b in boards}) > 1:
            msg = f"Boards differ in size: {sorted({b.size for b in boards})}"
            raise ValueError(msg)
        grid_cols, grid_rows = grid_shape(boards)
        tile_size = boards[0].size
        image_data = data.get("pixelatedImageData")
        if image_data:
            quantized = decode_data_uri(image_data)
        else:
            quantized = assemble_boards(boards, grid_cols, grid_rows, tile_size)
        result = cls(
            quantized=quantized,
            color_usage=[ColorUsage.from_dict(u) for u in data["colorMap"]],
            boards=boards,
            grid_cols=grid_cols,
            grid_rows=grid_rows,
            tile_size=tile_size,
        )
        total = data.get("totalTiles")
        if total is not None and int(total) != result.total_tiles:
            msg = f"totalTiles {total} does not match {result.total_tiles} board cells"
            raise ValueError(msg)
        result.validate()
        return result

    @classmethod
    def from_boards(
        cls,
        boards: list[Board],
        palette: Palette,
        grid_cols: int,
        grid_rows: int,
        tile_size: int,
    ) -> MosaicResult:
        """Rebuild raster and colour usage from (possibly edited) boards."""
        quantized = assemble_boards(boards, grid_cols, grid_rows, tile_size)
        return cls(
            quantized=quantized,
            color_usage=tally_usage(quantized, palette),
            boards=[b.copy() for b in boards],
            grid_cols=grid_cols,
            grid_rows=grid_rows,
            tile_size=tile_size,
        )


def build_mosaic(
    raster: np.ndarray,
    palette: Palette,
    grid_cols: int,
    grid_rows: int,
    tile_size: int = 32,
    chunk_size: int = 4096,
    workers: int = 1,
) -> MosaicResult:
    """Quantize a pre-sized raster and cut it into boards.

    Args:
        raster:    (rows*N, cols*N, 3) uint8 from the preprocessor.
        palette:   Reference colours.
        grid_cols: Boards per row.
        grid_rows: Boards per column.
        tile_size: Cells per board side (N).
        chunk_size: Pixels matched per batch.
        workers:   Threads used by the quantizer.

    Returns:
        A validated :class:`MosaicResult`.
    """
    h, w = np.asarray(raster).shape[:2]
    expected = (grid_rows * tile_size, grid_cols * tile_size)
    if (h, w) != expected:
        msg = (
            f"Raster is {w}x{h}, expected {expected[1]}x{expected[0]} "
            f"for a {grid_cols}x{grid_rows} grid of {tile_size}-cell boards"
        )
        raise ValueError(msg)

    q = quantize(raster, palette, chunk_size=chunk_size, workers=workers)

    t0 = time.perf_counter()
    boards = partition(q.pixels, grid_cols, grid_rows, tile_size)
    logger.info(
        "Partitioned into %d boards (%dx%d)  (%.2f s)",
        len(boards), grid_cols, grid_rows, time.perf_counter() - t0,
    )

    result = MosaicResult(
        quantized=q.pixels,
        color_usage=q.usage,
        boards=boards,
        grid_cols=grid_cols,
        grid_rows=grid_rows,
        tile_size=tile_size,
    )
    result.validate()
    return result


def estimated_build_time(total_tiles: int) -> str:
    """Human-readable assembly estimate, e.g. ``"~2h 0m"``."""
    # half-up rounding, not Python's banker's rounding
    minutes = int(total_tiles * SECONDS_PER_TILE / 60 + 0.5)
    if minutes < 60:
        return f"~{minutes} minutes"
    hours, minutes = divmod(minutes, 60)
    return f"~{hours}h {minutes}m"


def difficulty_level(color_count: int, total_tiles: int) -> str:
    if color_count <= 5 and total_tiles <= 1024:
        return "Beginner"
    if color_count <= 15 and total_tiles <= 4096:
        return "Intermediate"
    return "Advanced"
