"""
Brick Mosaic
============

Turn any image into a brick mosaic: every pixel is mapped to the nearest
colour of a fixed brick palette (Euclidean distance in CIELAB) and the
result is cut into fixed-size baseplates labelled in assembly order.

Ships a tile editor with batched undo / redo for touching up the boards.
"""

__version__ = "1.0.0"

from brick_mosaic.boards import (
    BOARD_LAYOUTS,
    Board,
    assemble_boards,
    board_label,
    layout_for_count,
    partition,
    resolve_grid,
)
from brick_mosaic.color_utils import color_distance, nearest, rgb_to_lab
from brick_mosaic.config import MosaicConfig
from brick_mosaic.editor import (
    EditBatch,
    EditorState,
    PixelChange,
    TileEditor,
    UndoHistory,
)
from brick_mosaic.mosaic import MosaicResult, build_mosaic
from brick_mosaic.palette import NamedColor, Palette, default_palette
from brick_mosaic.pipeline import MosaicWorker, PipelineOutcome, process_image
from brick_mosaic.quantizer import ColorUsage, QuantizedRaster, quantize
from brick_mosaic.transform import ViewTransform

__all__ = [
    "BOARD_LAYOUTS",
    "Board",
    "ColorUsage",
    "EditBatch",
    "EditorState",
    "MosaicConfig",
    "MosaicResult",
    "MosaicWorker",
    "NamedColor",
    "Palette",
    "PipelineOutcome",
    "PixelChange",
    "QuantizedRaster",
    "TileEditor",
    "UndoHistory",
    "ViewTransform",
    "assemble_boards",
    "board_label",
    "build_mosaic",
    "color_distance",
    "default_palette",
    "layout_for_count",
    "nearest",
    "partition",
    "process_image",
    "quantize",
    "resolve_grid",
    "rgb_to_lab",
]
