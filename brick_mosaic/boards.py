"""Slice a quantized raster into fixed-size boards laid out on a grid."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from brick_mosaic.palette import DEFAULT_FILL, RGB, hex_to_rgb, rgb_to_hex

logger = logging.getLogger(__name__)

# Named grid presets: layout -> (cols, rows)
BOARD_LAYOUTS: dict[str, tuple[int, int]] = {
    "1x1": (1, 1),
    "2x2": (2, 2),
    "3x2": (3, 2),
    "3x3": (3, 3),
    "4x2": (4, 2),
}

# Suggested layout for common board counts
_COUNT_LAYOUTS: dict[int, str] = {1: "1x1", 4: "2x2", 6: "3x2", 8: "4x2", 9: "3x3"}


@dataclass(eq=False)
class Board:
    """One physical baseplate.

    Attributes:
        id:     Assembly label, e.g. ``"B2"``.
        row:    Grid row (0-based, top to bottom).
        col:    Grid column (0-based, left to right).
        pixels: (N, N, 3) uint8, indexed ``[y, x]``.
    """

    id: str
    row: int
    col: int
    pixels: np.ndarray

    @property
    def position(self) -> dict[str, int]:
        return {"row": self.row, "col": self.col}

    @property
    def size(self) -> int:
        return int(self.pixels.shape[0])

    def color_at(self, x: int, y: int) -> RGB:
        r, g, b = self.pixels[y, x]
        return int(r), int(g), int(b)

    def copy(self) -> Board:
        return Board(self.id, self.row, self.col, self.pixels.copy())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": self.position,
            "pixels": [[rgb_to_hex(c) for c in row] for row in self.pixels],
        }

    @classmethod
    def from_dict(cls, data: dict) -> Board:
        rows = data["pixels"]
        n = len(rows)
        if n == 0 or any(len(r) != n for r in rows):
            msg = f"Board {data.get('id')!r} pixels must be a square grid"
            raise ValueError(msg)
        pixels = np.array([[hex_to_rgb(c) for c in r] for r in rows], dtype=np.uint8)
        pos = data["position"]
        return cls(id=str(data["id"]), row=int(pos["row"]), col=int(pos["col"]), pixels=pixels)


def resolve_grid(layout: str | None, board_count: int = 0) -> tuple[int, int]:
    """Return ``(cols, rows)`` for a layout preset or a plain board count.

    Unknown layouts fall back to a square ``ceil(sqrt(board_count))`` grid.
    """
    if layout in BOARD_LAYOUTS:
        return BOARD_LAYOUTS[layout]
    if board_count < 1:
        msg = f"Unknown layout {layout!r} and board count {board_count} < 1"
        raise ValueError(msg)
    side = math.ceil(math.sqrt(board_count))
    return side, side


def layout_for_count(board_count: int) -> str:
    """Suggest a ``"<cols>x<rows>"`` layout string for a board count."""
    if board_count < 1:
        msg = f"Board count must be at least 1, got {board_count}"
        raise ValueError(msg)
    if board_count in _COUNT_LAYOUTS:
        return _COUNT_LAYOUTS[board_count]
    cols = math.ceil(math.sqrt(board_count))
    rows = math.ceil(board_count / cols)
    return f"{cols}x{rows}"


def column_letter(col: int) -> str:
    """0 → ``A``, 25 → ``Z``, 26 → ``AA`` (spreadsheet style)."""
    if col < 0:
        msg = f"Column must be non-negative, got {col}"
        raise ValueError(msg)
    letters = ""
    col += 1
    while col:
        col, rem = divmod(col - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def board_label(col: int, row: int) -> str:
    """Assembly label: column letter then 1-based row, e.g. ``(1, 0) → "B1"``."""
    return f"{column_letter(col)}{row + 1}"


def partition(
    raster: np.ndarray,
    grid_cols: int,
    grid_rows: int,
    tile_size: int = 32,
    fill: RGB = DEFAULT_FILL,
) -> list[Board]:
    """Cut *raster* into ``grid_rows x grid_cols`` boards, row by row.

    Cells beyond the raster's extent are set to *fill*.

    Args:
        raster:    (H, W, 3) uint8 quantized raster.
        grid_cols: Boards per row.
        grid_rows: Boards per column.
        tile_size: Cells per board side.
        fill:      Colour for uncovered cells.

    Returns:
        Boards in assembly order (A1, B1, ..., A2, B2, ...).
    """
    if grid_cols < 1 or grid_rows < 1 or tile_size < 1:
        msg = f"Grid {grid_cols}x{grid_rows} with tile size {tile_size} is empty"
        raise ValueError(msg)

    h, w = raster.shape[:2]
    canvas = np.empty((grid_rows * tile_size, grid_cols * tile_size, 3), dtype=np.uint8)
    canvas[:] = fill
    ch, cw = min(h, canvas.shape[0]), min(w, canvas.shape[1])
    canvas[:ch, :cw] = raster[:ch, :cw, :3]
    if (ch, cw) != canvas.shape[:2]:
        logger.debug("Raster %dx%d padded to %dx%d", w, h, canvas.shape[1], canvas.shape[0])

    boards = []
    for board_row in range(grid_rows):
        for board_col in range(grid_cols):
            y0, x0 = board_row * tile_size, board_col * tile_size
            boards.append(Board(
                id=board_label(board_col, board_row),
                row=board_row,
                col=board_col,
                pixels=canvas[y0:y0 + tile_size, x0:x0 + tile_size].copy(),
            ))
    return boards


def assemble_boards(
    boards: list[Board],
    grid_cols: int,
    grid_rows: int,
    tile_size: int = 32,
    fill: RGB = DEFAULT_FILL,
) -> np.ndarray:
    """Stitch boards back into a single (rows*N, cols*N, 3) raster."""
    out = np.empty((grid_rows * tile_size, grid_cols * tile_size, 3), dtype=np.uint8)
    out[:] = fill
    for board in boards:
        y0, x0 = board.row * tile_size, board.col * tile_size
        out[y0:y0 + tile_size, x0:x0 + tile_size] = board.pixels
    return out


def grid_shape(boards: list[Board]) -> tuple[int, int]:
    """``(cols, rows)`` spanned by a set of boards."""
    if not boards:
        msg = "No boards given"
        raise ValueError(msg)
    return max(b.col for b in boards) + 1, max(b.row for b in boards) + 1
