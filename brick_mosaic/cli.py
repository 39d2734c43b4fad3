"""Rich command-line interface powered by Typer."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from brick_mosaic.boards import BOARD_LAYOUTS, layout_for_count, resolve_grid
from brick_mosaic.config import MosaicConfig
from brick_mosaic.image_io import save_upscaled
from brick_mosaic.mosaic import difficulty_level, estimated_build_time
from brick_mosaic.palette import default_palette
from brick_mosaic.pipeline import process_image

app = typer.Typer(
    name="brick-mosaic",
    help="Turn an image into a brick mosaic laid out on baseplates.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=True)],
    )


# Defaults come from MosaicConfig - single source of truth
_DEFAULTS = MosaicConfig()


# -- process command ---------------------------------------------------

@app.command()
def process(
    image: Path = typer.Argument(..., help="Source image (.jpg / .png)"),
    output_dir: Path = typer.Option(
        _DEFAULTS.output_dir, "--output", "-o", help="Results folder",
    ),
    layout: str = typer.Option(
        _DEFAULTS.board_layout, "--layout", "-l",
        help=f"Board grid: {', '.join(BOARD_LAYOUTS)} or 'auto'",
    ),
    boards: int = typer.Option(
        _DEFAULTS.board_count, "--boards", "-b",
        help="Board count, used when the layout is not a preset",
    ),
    tile_size: int = typer.Option(
        _DEFAULTS.tile_size, "--tile-size", "-t", help="Cells per board side",
    ),
    normalize: bool = typer.Option(
        _DEFAULTS.normalize, "--normalize/--no-normalize", help="Auto-contrast source",
    ),
    workers: int = typer.Option(
        _DEFAULTS.workers, "--workers", "-w", help="Quantizer threads",
    ),
    upscale: int = typer.Option(
        _DEFAULTS.pixel_upscale, "--upscale", "-u", help="Preview upscale factor",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Quantize IMAGE to the brick palette and split it into boards."""
    _setup_logging(verbose)

    if image.suffix.lower() not in _DEFAULTS.SUPPORTED_EXTENSIONS:
        console.print(f"[red]Unsupported file type {image.suffix!r}[/red]")
        raise typer.Exit(2)

    cfg = MosaicConfig(
        tile_size=tile_size,
        board_layout=layout,
        board_count=boards,
        normalize=normalize,
        workers=workers,
        pixel_upscale=upscale,
        output_dir=output_dir,
    )

    outcome = process_image(image, cfg)
    if not outcome.ok or outcome.result is None:
        console.print(f"[red]✗ Processing failed:[/red] {outcome.error}")
        raise typer.Exit(1)

    result = outcome.result
    output_dir.mkdir(parents=True, exist_ok=True)
    json_path = output_dir / f"{image.stem}_mosaic.json"
    json_path.write_text(json.dumps(result.to_dict()), encoding="utf-8")
    png_path = output_dir / f"{image.stem}_mosaic.png"
    save_upscaled(result.quantized, png_path, upscale)

    table = Table(title="Colour usage", show_lines=False)
    table.add_column("Colour")
    table.add_column("Hex")
    table.add_column("Tiles", justify="right")
    for usage in sorted(result.color_usage, key=lambda u: u.count, reverse=True):
        table.add_row(
            f"[on {usage.hex}]  [/on {usage.hex}] {usage.name}", usage.hex, str(usage.count),
        )
    console.print(table)

    console.print(Panel.fit(
        f"[bold green]DONE[/bold green]  {json_path.name}, {png_path.name}\n"
        f"Boards: {result.grid_cols}x{result.grid_rows}  |  "
        f"Tiles: {result.total_tiles}  |  Colours: {len(result.color_usage)}\n"
        f"Build time: {estimated_build_time(result.total_tiles)}  |  "
        f"Difficulty: {difficulty_level(len(result.color_usage), result.total_tiles)}",
        border_style="green",
    ))


# -- palette command ---------------------------------------------------

@app.command()
def palette(
    as_json: bool = typer.Option(False, "--json", help="Print as JSON"),
) -> None:
    """List the brick palette in matching order."""
    entries = default_palette().to_list()
    if as_json:
        console.print_json(json.dumps(entries))
        return

    table = Table(title=f"Brick palette ({len(entries)} colours)")
    table.add_column("#", justify="right")
    table.add_column("Colour")
    table.add_column("Hex")
    for i, entry in enumerate(entries, 1):
        table.add_row(str(i), f"[on {entry['hex']}]  [/on {entry['hex']}] {entry['name']}", entry["hex"])
    console.print(table)


# -- layout command ----------------------------------------------------

@app.command()
def layout(
    boards: int = typer.Argument(..., help="Number of boards"),
    tile_size: int = typer.Option(_DEFAULTS.tile_size, "--tile-size", "-t"),
) -> None:
    """Suggest a grid for BOARDS baseplates."""
    try:
        suggested = layout_for_count(boards)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(2) from exc

    cols, rows = resolve_grid(suggested, boards)
    total = cols * rows * tile_size * tile_size
    console.print(
        f"[green]✓[/green] {boards} boards → layout [bold]{suggested}[/bold]  "
        f"[dim]grid {cols}x{rows}, image {cols * tile_size}x{rows * tile_size}, "
        f"{total} tiles, {estimated_build_time(total)}[/dim]"
    )


if __name__ == "__main__":
    app()
