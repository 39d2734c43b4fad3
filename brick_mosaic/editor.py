"""Interactive tile editing: hit-testing, batched painting and undo/redo.

The editor owns a private copy of a mosaic's boards for the length of one
session. Pointer gestures drive an explicit state machine::

    IDLE --begin_paint--> PAINTING --end_paint--> IDLE
    IDLE --begin_pan----> PANNING  --end_pan----> IDLE

Every cell touched during one paint gesture is collected into a single
:class:`EditBatch`, which is undone and redone as a unit.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum

from brick_mosaic.boards import Board
from brick_mosaic.config import MosaicConfig
from brick_mosaic.mosaic import MosaicResult
from brick_mosaic.palette import RGB, NamedColor, Palette, default_palette, parse_color, rgb_to_hex
from brick_mosaic.transform import Point, ViewTransform

logger = logging.getLogger(__name__)

Color = str | Sequence[int] | NamedColor
CellKey = tuple[str, int, int]


class EditorState(Enum):
    IDLE = "idle"
    PAINTING = "painting"
    PANNING = "panning"


@dataclass(frozen=True)
class CellHit:
    """A board cell under the pointer."""

    board_id: str
    x: int
    y: int

    @property
    def key(self) -> CellKey:
        return self.board_id, self.x, self.y


@dataclass(frozen=True)
class PixelChange:
    """One cell going from *old_color* to *new_color*."""

    board_id: str
    x: int
    y: int
    old_color: RGB
    new_color: RGB

    @property
    def key(self) -> CellKey:
        return self.board_id, self.x, self.y

    def to_dict(self) -> dict:
        return {
            "boardId": self.board_id,
            "x": self.x,
            "y": self.y,
            "oldColor": rgb_to_hex(self.old_color),
            "newColor": rgb_to_hex(self.new_color),
        }


class EditBatch:
    """Changes from one paint gesture, at most one per cell.

    The first change recorded for a cell wins, so ``old_color`` is always
    the colour from before the gesture started.
    """

    def __init__(self, changes: Iterable[PixelChange] = ()) -> None:
        self._changes: list[PixelChange] = []
        self._keys: set[CellKey] = set()
        for change in changes:
            self.add(change)

    def add(self, change: PixelChange) -> bool:
        if change.key in self._keys:
            return False
        self._keys.add(change.key)
        self._changes.append(change)
        return True

    @property
    def changes(self) -> tuple[PixelChange, ...]:
        return tuple(self._changes)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._changes)

    def __iter__(self) -> Iterator[PixelChange]:
        return iter(self._changes)

    def __repr__(self) -> str:
        return f"EditBatch({len(self._changes)} changes)"


@dataclass
class UndoHistory:
    """Undo and redo stacks for one editing session. Never persisted."""

    undo_stack: list[EditBatch] = field(default_factory=list)
    redo_stack: list[EditBatch] = field(default_factory=list)

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def push(self, batch: EditBatch) -> None:
        """Commit a new batch; this invalidates everything redoable."""
        if not batch:
            msg = "Cannot commit an empty edit batch"
            raise ValueError(msg)
        self.undo_stack.append(batch)
        self.redo_stack.clear()

    def pop_undo(self) -> EditBatch | None:
        if not self.undo_stack:
            return None
        batch = self.undo_stack.pop()
        self.redo_stack.append(batch)
        return batch

    def pop_redo(self) -> EditBatch | None:
        if not self.redo_stack:
            return None
        batch = self.redo_stack.pop()
        self.undo_stack.append(batch)
        return batch

    def clear(self) -> None:
        self.undo_stack.clear()
        self.redo_stack.clear()


class TileEditor:
    """Single-session editor over the boards of one :class:`MosaicResult`.

    Args:
        result:    Mosaic to edit. Its boards are copied; the caller's
                   object is never mutated.
        palette:   Used to name colours when producing new results.
        transform: Pan/zoom state shared with the view.
        history:   Undo history to continue; a fresh one by default.
        cfg:       Supplies the view settings when no *transform* is given.
    """

    def __init__(
        self,
        result: MosaicResult,
        palette: Palette | None = None,
        transform: ViewTransform | None = None,
        history: UndoHistory | None = None,
        cfg: MosaicConfig | None = None,
    ) -> None:
        self.palette = palette or default_palette()
        self.transform = transform or ViewTransform.from_config(cfg or MosaicConfig())
        self.history = history if history is not None else UndoHistory()
        self._state = EditorState.IDLE
        self._batch: EditBatch | None = None
        self._brush: RGB | None = None
        self._last_cell: CellKey | None = None
        self._pan_anchor: Point | None = None
        self._install(result)

    def _install(self, result: MosaicResult) -> None:
        result.validate()
        self._boards: dict[str, Board] = {b.id: b.copy() for b in result.boards}
        self._by_position = {(b.row, b.col): b.id for b in self._boards.values()}
        self._grid_cols = result.grid_cols
        self._grid_rows = result.grid_rows
        self._tile_size = result.tile_size

    # -- session ------------------------------------------------------

    @property
    def state(self) -> EditorState:
        return self._state

    @property
    def tile_size(self) -> int:
        return self._tile_size

    @property
    def boards(self) -> list[Board]:
        """Live boards in assembly order."""
        return sorted(self._boards.values(), key=lambda b: (b.row, b.col))

    def board(self, board_id: str) -> Board:
        return self._boards[board_id]

    def color_at(self, board_id: str, x: int, y: int) -> RGB:
        return self._boards[board_id].color_at(x, y)

    def load(self, result: MosaicResult) -> None:
        """Replace the boards with a freshly processed result.

        The undo history belongs to the old boards and is discarded.
        """
        if self._state is not EditorState.IDLE:
            msg = f"Cannot load a new mosaic while {self._state.value}"
            raise RuntimeError(msg)
        self._install(result)
        self.history = UndoHistory()
        logger.info("Loaded %d boards for editing", len(self._boards))

    def result(self) -> MosaicResult:
        """A new MosaicResult reflecting every committed edit."""
        return MosaicResult.from_boards(
            self.boards, self.palette, self._grid_cols, self._grid_rows, self._tile_size,
        )

    # -- hit testing --------------------------------------------------

    def hit_test(self, point: Point) -> CellHit | None:
        """Board cell under a screen point, or None outside every board."""
        gx, gy = self.transform.screen_to_cell(point)
        if gx < 0 or gy < 0:
            return None
        n = self._tile_size
        board_id = self._by_position.get((gy // n, gx // n))
        if board_id is None:
            return None
        return CellHit(board_id, gx % n, gy % n)

    def _in_board(self, board_id: str, x: int, y: int) -> bool:
        return board_id in self._boards and 0 <= x < self._tile_size and 0 <= y < self._tile_size

    def _write(self, board_id: str, x: int, y: int, color: RGB) -> None:
        self._boards[board_id].pixels[y, x] = color

    # -- painting -----------------------------------------------------

    def _record(self, hit: CellHit) -> PixelChange | None:
        if self._batch is None or self._brush is None:
            msg = "No paint gesture in progress"
            raise RuntimeError(msg)
        if hit.key in self._batch:
            return None
        old = self.color_at(*hit.key)
        if old == self._brush:
            return None
        change = PixelChange(hit.board_id, hit.x, hit.y, old, self._brush)
        self._batch.add(change)
        self._write(hit.board_id, hit.x, hit.y, self._brush)
        return change

    def begin_paint(self, point: Point, color: Color) -> bool:
        """Start a paint gesture; returns False if nothing was started."""
        brush = parse_color(color)
        if self._state is not EditorState.IDLE:
            logger.debug("begin_paint ignored while %s", self._state.value)
            return False
        hit = self.hit_test(point)
        if hit is None:
            return False
        self._state = EditorState.PAINTING
        self._batch = EditBatch()
        self._brush = brush
        self._last_cell = hit.key
        self._record(hit)
        return True

    def continue_paint(self, point: Point) -> PixelChange | None:
        """Extend the current gesture to the cell under *point*."""
        if self._state is not EditorState.PAINTING:
            return None
        hit = self.hit_test(point)
        if hit is None or hit.key == self._last_cell:
            return None
        self._last_cell = hit.key
        return self._record(hit)

    def end_paint(self) -> EditBatch | None:
        """Finish the gesture, committing its batch if it changed anything."""
        if self._state is not EditorState.PAINTING:
            return None
        batch = self._batch
        self._state = EditorState.IDLE
        self._batch = None
        self._brush = None
        self._last_cell = None
        if not batch:
            return None
        self.history.push(batch)
        logger.debug("Committed %r", batch)
        return batch

    def paint_cell(self, board_id: str, x: int, y: int, color: Color) -> EditBatch | None:
        """Change one cell directly, committed as its own batch."""
        new = parse_color(color)
        if self._state is not EditorState.IDLE or not self._in_board(board_id, x, y):
            return None
        old = self.color_at(board_id, x, y)
        if old == new:
            return None
        batch = EditBatch([PixelChange(board_id, x, y, old, new)])
        self._write(board_id, x, y, new)
        self.history.push(batch)
        return batch

    # -- panning ------------------------------------------------------

    def begin_pan(self, point: Point) -> bool:
        if self._state is not EditorState.IDLE:
            logger.debug("begin_pan ignored while %s", self._state.value)
            return False
        self._state = EditorState.PANNING
        self._pan_anchor = point
        return True

    def continue_pan(self, point: Point) -> None:
        if self._state is not EditorState.PANNING or self._pan_anchor is None:
            return
        ax, ay = self._pan_anchor
        self.transform.pan_by(point[0] - ax, point[1] - ay)
        self._pan_anchor = point

    def end_pan(self) -> None:
        if self._state is EditorState.PANNING:
            self._state = EditorState.IDLE
            self._pan_anchor = None

    def release(self) -> EditBatch | None:
        """Pointer up: end whichever gesture is active."""
        if self._state is EditorState.PAINTING:
            return self.end_paint()
        self.end_pan()
        return None

    # -- history ------------------------------------------------------

    def undo(self) -> EditBatch | None:
        """Revert the most recent batch; no-op when there is none."""
        if self._state is not EditorState.IDLE:
            return None
        batch = self.history.pop_undo()
        if batch is None:
            return None
        for change in batch:
            self._write(change.board_id, change.x, change.y, change.old_color)
        return batch

    def redo(self) -> EditBatch | None:
        """Reapply the most recently undone batch; no-op when there is none."""
        if self._state is not EditorState.IDLE:
            return None
        batch = self.history.pop_redo()
        if batch is None:
            return None
        for change in batch:
            self._write(change.board_id, change.x, change.y, change.new_color)
        return batch
