"""Pan/zoom mapping between pointer (screen) space and the board canvas."""

from __future__ import annotations

import math
from dataclasses import dataclass

from brick_mosaic.config import MosaicConfig

Point = tuple[float, float]


@dataclass
class ViewTransform:
    """Screen point = canvas point * zoom + pan.

    Attributes:
        zoom:      Current scale factor.
        pan_x:     Horizontal pan offset in screen pixels.
        pan_y:     Vertical pan offset in screen pixels.
        cell_px:   Canvas pixels per cell at zoom 1.0.
        min_zoom:  Lower zoom bound.
        max_zoom:  Upper zoom bound.
        zoom_step: Factor applied by one zoom in/out step.
    """

    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    cell_px: float = 16.0
    min_zoom: float = 0.25
    max_zoom: float = 8.0
    zoom_step: float = 1.5

    def __post_init__(self) -> None:
        if self.cell_px <= 0:
            msg = f"cell_px must be positive, got {self.cell_px}"
            raise ValueError(msg)
        if not 0 < self.min_zoom <= self.max_zoom:
            msg = f"Invalid zoom bounds {self.min_zoom}..{self.max_zoom}"
            raise ValueError(msg)
        self.zoom = self._clamp(self.zoom)

    @classmethod
    def from_config(cls, cfg: MosaicConfig) -> ViewTransform:
        """Unpanned view at zoom 1.0 with the configured cell size and zoom bounds."""
        return cls(
            cell_px=cfg.cell_px,
            min_zoom=cfg.min_zoom,
            max_zoom=cfg.max_zoom,
            zoom_step=cfg.zoom_step,
        )

    def _clamp(self, zoom: float) -> float:
        return min(max(zoom, self.min_zoom), self.max_zoom)

    def screen_to_canvas(self, point: Point) -> Point:
        sx, sy = point
        return (sx - self.pan_x) / self.zoom, (sy - self.pan_y) / self.zoom

    def canvas_to_screen(self, point: Point) -> Point:
        cx, cy = point
        return cx * self.zoom + self.pan_x, cy * self.zoom + self.pan_y

    def screen_to_cell(self, point: Point) -> tuple[int, int]:
        """Global ``(x, y)`` cell under a screen point; may be negative."""
        cx, cy = self.screen_to_canvas(point)
        return math.floor(cx / self.cell_px), math.floor(cy / self.cell_px)

    def set_zoom(self, zoom: float) -> float:
        self.zoom = self._clamp(zoom)
        return self.zoom

    def zoom_in(self) -> float:
        return self.set_zoom(self.zoom * self.zoom_step)

    def zoom_out(self) -> float:
        return self.set_zoom(self.zoom / self.zoom_step)

    def pan_by(self, dx: float, dy: float) -> None:
        self.pan_x += dx
        self.pan_y += dy

    def reset(self) -> None:
        self.zoom = self._clamp(1.0)
        self.pan_x = 0.0
        self.pan_y = 0.0
