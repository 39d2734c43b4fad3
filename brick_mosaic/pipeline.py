"""Run the full image → mosaic pipeline, inline or on a background worker."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from brick_mosaic.boards import resolve_grid
from brick_mosaic.config import MosaicConfig
from brick_mosaic.image_io import load_and_resize
from brick_mosaic.mosaic import MosaicResult, build_mosaic
from brick_mosaic.palette import Palette, default_palette

logger = logging.getLogger(__name__)

COMPLETED = "completed"
FAILED = "failed"


@dataclass(frozen=True)
class PipelineOutcome:
    """Final state of one pipeline run.

    Attributes:
        status: ``"completed"`` or ``"failed"``.
        result: The mosaic when completed, else None.
        error:  Failure description when failed, else None.
    """

    status: str
    result: MosaicResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == COMPLETED


def process_image(
    source: str | Path,
    cfg: MosaicConfig | None = None,
    palette: Palette | None = None,
) -> PipelineOutcome:
    """Preprocess, quantize and partition one image file.

    Failures are returned as a failed outcome rather than raised; retrying
    is left to the caller.
    """
    cfg = cfg or MosaicConfig()
    palette = palette or default_palette()
    t0 = time.perf_counter()
    try:
        grid_cols, grid_rows = resolve_grid(cfg.board_layout, cfg.board_count)
        width, height = grid_cols * cfg.tile_size, grid_rows * cfg.tile_size
        raster = load_and_resize(source, width, height, normalize=cfg.normalize)
        logger.info("Loaded %s → %dx%d", source, width, height)
        result = build_mosaic(
            raster,
            palette,
            grid_cols,
            grid_rows,
            tile_size=cfg.tile_size,
            chunk_size=cfg.chunk_size,
            workers=cfg.workers,
        )
    except Exception as exc:
        logger.exception("Processing %s failed", source)
        return PipelineOutcome(status=FAILED, error=f"{type(exc).__name__}: {exc}")

    logger.info("Processed %s  (%.2f s)", source, time.perf_counter() - t0)
    return PipelineOutcome(status=COMPLETED, result=result)


class MosaicWorker:
    """Runs :func:`process_image` off the interactive thread.

    One job runs at a time. The returned future resolves to a
    :class:`PipelineOutcome`; only then should its result be handed to an
    editor via ``TileEditor.load``.
    """

    def __init__(self, cfg: MosaicConfig | None = None, palette: Palette | None = None) -> None:
        self.cfg = cfg or MosaicConfig()
        self.palette = palette or default_palette()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mosaic")

    def submit(self, source: str | Path, cfg: MosaicConfig | None = None) -> Future[PipelineOutcome]:
        return self._executor.submit(process_image, source, cfg or self.cfg, self.palette)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> MosaicWorker:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
