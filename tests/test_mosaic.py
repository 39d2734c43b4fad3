"""Tests for matching, quantization, partitioning and the pipeline."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest
from PIL import Image
from typer.testing import CliRunner

from brick_mosaic.boards import (
    Board,
    assemble_boards,
    board_label,
    layout_for_count,
    partition,
    resolve_grid,
)
from brick_mosaic.cli import app
from brick_mosaic.color_utils import (
    color_distance,
    compute_distance_matrix,
    nearest,
    nearest_indices,
    rgb_to_lab,
)
from brick_mosaic.config import MosaicConfig
from brick_mosaic.image_io import decode_data_uri, encode_data_uri, load_and_resize
from brick_mosaic.mosaic import (
    MosaicResult,
    build_mosaic,
    difficulty_level,
    estimated_build_time,
)
from brick_mosaic.palette import Palette, default_palette, hex_to_rgb, rgb_to_hex
from brick_mosaic.pipeline import MosaicWorker, process_image
from brick_mosaic.quantizer import quantize, tally_usage

# -- Fixtures ----------------------------------------------------------

WHITE = (255, 255, 255)


@pytest.fixture
def palette() -> Palette:
    return default_palette()


@pytest.fixture
def bw_palette() -> Palette:
    return Palette.from_hex_pairs([("K", "#000000"), ("W", "#FFFFFF")])


@pytest.fixture
def raster() -> np.ndarray:
    """Synthetic 8x12 source: a 3x2 grid of 4-cell boards."""
    rng = np.random.default_rng(456)
    return rng.integers(0, 256, size=(8, 12, 3), dtype=np.uint8)


@pytest.fixture
def tmp_image(tmp_path: Path) -> Path:
    """Write a small non-square test PNG to disk."""
    rng = np.random.default_rng(7)
    img = Image.fromarray(rng.integers(0, 256, (48, 64, 3), dtype=np.uint8))
    p = tmp_path / "test.png"
    img.save(p)
    return p


# -- Config ------------------------------------------------------------

class TestConfig:
    def test_defaults(self) -> None:
        cfg = MosaicConfig()
        assert cfg.tile_size == 32
        assert cfg.board_layout == "2x2"

    def test_editor_view_defaults(self) -> None:
        cfg = MosaicConfig()
        assert (cfg.cell_px, cfg.min_zoom, cfg.max_zoom, cfg.zoom_step) == (16.0, 0.25, 8.0, 1.5)

    def test_frozen(self) -> None:
        cfg = MosaicConfig()
        with pytest.raises(AttributeError):
            cfg.tile_size = 16  # type: ignore[misc]


# -- Palette -----------------------------------------------------------

class TestPalette:
    def test_reference_palette(self, palette: Palette) -> None:
        entries = palette.to_list()
        assert len(entries) == 39
        assert entries[0] == {"name": "Cactus", "hex": "#000000"}
        assert entries[-1] == {"name": "Crosswords", "hex": "#D88571"}

    def test_empty_palette_rejected(self) -> None:
        with pytest.raises(ValueError):
            Palette(())

    def test_hex_parsing(self) -> None:
        assert hex_to_rgb("#5fa5f5") == (95, 165, 245)
        assert hex_to_rgb("00468C") == (0, 70, 140)
        assert rgb_to_hex((95, 165, 245)) == "#5FA5F5"
        with pytest.raises(ValueError):
            hex_to_rgb("#12345")

    def test_find_returns_earliest(self) -> None:
        p = Palette.from_hex_pairs([("A", "#101010"), ("B", "#101010")])
        found = p.find("#101010")
        assert found is not None
        assert found.name == "A"
        assert p.find((1, 2, 3)) is None


# -- Colour matching ---------------------------------------------------

class TestColorMatcher:
    def test_lab_reference_points(self) -> None:
        lab = rgb_to_lab(np.array([[0, 0, 0], [255, 255, 255]], dtype=np.uint8))
        np.testing.assert_allclose(lab[0], [0.0, 0.0, 0.0], atol=1e-9)
        np.testing.assert_allclose(lab[1], [100.0, 0.0, 0.0], atol=0.05)

    def test_lab_preserves_shape(self) -> None:
        assert rgb_to_lab(np.zeros((4, 5, 3), dtype=np.uint8)).shape == (4, 5, 3)

    def test_distance_symmetric_and_zero(self) -> None:
        assert color_distance((12, 200, 40), (12, 200, 40)) == pytest.approx(0.0)
        assert color_distance((0, 0, 0), (255, 255, 255)) == pytest.approx(
            color_distance((255, 255, 255), (0, 0, 0)),
        )

    def test_known_matches(self, palette: Palette) -> None:
        assert nearest((0, 0, 0), palette).name == "Cactus"
        assert nearest((255, 255, 255), palette).name == "Soccer Ball"
        assert nearest((0x00, 0x46, 0x8C), palette).name == "Usb"

    def test_tie_breaks_to_earliest(self) -> None:
        p = Palette.from_hex_pairs([("X", "#00FF00"), ("First", "#FF0000"), ("Second", "#FF0000")])
        assert nearest((250, 10, 10), p).name == "First"

    def test_nearest_is_minimal(self, palette: Palette, raster: np.ndarray) -> None:
        flat = raster.reshape(-1, 3)
        idx = nearest_indices(flat, palette)
        dist = compute_distance_matrix(rgb_to_lab(flat), palette.lab)
        for i, chosen in enumerate(idx):
            best = dist[i].min()
            assert dist[i, chosen] == best
            assert chosen == int(np.flatnonzero(dist[i] == best)[0])

    def test_nearest_agrees_with_pairwise_distance(self, palette: Palette) -> None:
        for rgb in [(10, 10, 10), (200, 120, 90), (70, 200, 230), (128, 0, 128)]:
            match = nearest(rgb, palette)
            d = color_distance(rgb, match.rgb)
            assert all(d <= color_distance(rgb, c.rgb) + 1e-9 for c in palette)

    def test_invalid_rgb(self, palette: Palette) -> None:
        with pytest.raises(ValueError):
            nearest((0, 0, 300), palette)


# -- Quantizer ---------------------------------------------------------

class TestQuantizer:
    def test_every_pixel_in_palette(self, palette: Palette, raster: np.ndarray) -> None:
        q = quantize(raster, palette)
        palette_set = {c.rgb for c in palette}
        assert {tuple(int(v) for v in p) for p in q.pixels.reshape(-1, 3)} <= palette_set
        assert q.pixels.shape == raster.shape

    def test_usage_totals(self, palette: Palette, raster: np.ndarray) -> None:
        q = quantize(raster, palette)
        assert sum(u.count for u in q.usage) == raster.shape[0] * raster.shape[1]
        assert len({u.hex for u in q.usage}) == len(q.usage)

    def test_usage_first_seen_order(self, bw_palette: Palette) -> None:
        img = np.zeros((2, 3, 3), dtype=np.uint8)
        img[0, 0] = (250, 250, 250)
        q = quantize(img, bw_palette)
        assert [(u.name, u.count) for u in q.usage] == [("W", 1), ("K", 5)]

    def test_workers_do_not_change_result(self, palette: Palette) -> None:
        rng = np.random.default_rng(3)
        img = rng.integers(0, 256, size=(40, 16, 3), dtype=np.uint8)
        single = quantize(img, palette, chunk_size=37)
        threaded = quantize(img, palette, chunk_size=37, workers=3)
        np.testing.assert_array_equal(single.indices, threaded.indices)
        assert single.usage == threaded.usage

    def test_alpha_channel_dropped(self, bw_palette: Palette) -> None:
        img = np.full((2, 2, 4), 255, dtype=np.uint8)
        assert quantize(img, bw_palette).usage[0].name == "W"

    @pytest.mark.parametrize(
        "bad",
        [
            np.zeros((4, 4), dtype=np.uint8),
            np.zeros((4, 4, 3), dtype=np.float32),
            np.zeros((0, 4, 3), dtype=np.uint8),
        ],
    )
    def test_rejects_malformed_raster(self, bw_palette: Palette, bad: np.ndarray) -> None:
        with pytest.raises(ValueError):
            quantize(bad, bw_palette)

    def test_tally_names_unknown_colours_by_hex(self, bw_palette: Palette) -> None:
        img = np.array([[[1, 2, 3], [0, 0, 0]]], dtype=np.uint8)
        usage = tally_usage(img, bw_palette)
        assert [(u.name, u.hex) for u in usage] == [("#010203", "#010203"), ("K", "#000000")]


# -- Board partitioning ------------------------------------------------

class TestBoards:
    def test_labels(self) -> None:
        img = np.zeros((4, 4, 3), dtype=np.uint8)
        boards = partition(img, 2, 2, tile_size=2)
        assert [(b.id, b.row, b.col) for b in boards] == [
            ("A1", 0, 0), ("B1", 0, 1), ("A2", 1, 0), ("B2", 1, 1),
        ]

    def test_label_beyond_z(self) -> None:
        assert board_label(0, 0) == "A1"
        assert board_label(25, 2) == "Z3"
        assert board_label(26, 0) == "AA1"

    def test_reassembly(self, raster: np.ndarray) -> None:
        boards = partition(raster, 3, 2, tile_size=4)
        for board in boards:
            for y in range(4):
                for x in range(4):
                    np.testing.assert_array_equal(
                        board.pixels[y, x], raster[board.row * 4 + y, board.col * 4 + x],
                    )
        np.testing.assert_array_equal(assemble_boards(boards, 3, 2, 4), raster)

    def test_out_of_range_filled_white(self) -> None:
        img = np.zeros((3, 5, 3), dtype=np.uint8)
        boards = {b.id: b for b in partition(img, 2, 2, tile_size=4)}
        assert boards["A1"].color_at(0, 0) == (0, 0, 0)
        assert boards["A1"].color_at(0, 3) == WHITE
        assert boards["B1"].color_at(0, 0) == (0, 0, 0)
        assert boards["B1"].color_at(1, 0) == WHITE
        assert (boards["B2"].pixels == 255).all()

    def test_boards_do_not_alias_raster(self, raster: np.ndarray) -> None:
        before = raster.copy()
        boards = partition(raster, 3, 2, tile_size=4)
        boards[0].pixels[:] = 0
        np.testing.assert_array_equal(raster, before)

    def test_resolve_grid(self) -> None:
        assert resolve_grid("1x1") == (1, 1)
        assert resolve_grid("3x2") == (3, 2)
        assert resolve_grid("4x2") == (4, 2)
        assert resolve_grid("custom", 5) == (3, 3)
        assert resolve_grid(None, 16) == (4, 4)
        with pytest.raises(ValueError):
            resolve_grid("custom", 0)

    def test_layout_for_count(self) -> None:
        assert layout_for_count(1) == "1x1"
        assert layout_for_count(6) == "3x2"
        assert layout_for_count(8) == "4x2"
        assert layout_for_count(2) == "2x1"
        assert layout_for_count(10) == "4x3"

    def test_board_dict(self) -> None:
        board = Board("B1", 0, 1, np.zeros((2, 2, 3), dtype=np.uint8))
        data = board.to_dict()
        assert data == {
            "id": "B1",
            "position": {"row": 0, "col": 1},
            "pixels": [["#000000", "#000000"], ["#000000", "#000000"]],
        }
        parsed = Board.from_dict(data)
        assert (parsed.id, parsed.row, parsed.col) == ("B1", 0, 1)
        np.testing.assert_array_equal(parsed.pixels, board.pixels)


# -- Mosaic result -----------------------------------------------------

class TestMosaicResult:
    def test_reference_example(self, bw_palette: Palette) -> None:
        img = np.full((2, 2, 3), 10, dtype=np.uint8)
        result = build_mosaic(img, bw_palette, 1, 1, tile_size=2)
        data = result.to_dict()
        assert data["colorMap"] == [{"name": "K", "hex": "#000000", "count": 4}]
        assert data["boards"] == [{
            "id": "A1",
            "position": {"row": 0, "col": 0},
            "pixels": [["#000000", "#000000"], ["#000000", "#000000"]],
        }]
        assert data["totalTiles"] == 4
        assert data["pixelatedImageData"].startswith("data:image/png;base64,")

    def test_invariants(self, palette: Palette, raster: np.ndarray) -> None:
        result = build_mosaic(raster, palette, 3, 2, tile_size=4)
        assert result.total_tiles == 3 * 2 * 4 * 4
        assert sum(u.count for u in result.color_usage) == result.total_tiles
        assert [b.id for b in result.boards] == ["A1", "B1", "C1", "A2", "B2", "C2"]
        result.validate()

    def test_wrong_raster_size_rejected(self, palette: Palette, raster: np.ndarray) -> None:
        with pytest.raises(ValueError):
            build_mosaic(raster, palette, 2, 2, tile_size=4)
        with pytest.raises(ValueError):
            build_mosaic(raster[:7], palette, 3, 2, tile_size=4)

    def test_dict_round_trip(self, palette: Palette, raster: np.ndarray) -> None:
        result = build_mosaic(raster, palette, 3, 2, tile_size=4)
        restored = MosaicResult.from_dict(json.loads(json.dumps(result.to_dict())))
        assert (restored.grid_cols, restored.grid_rows, restored.tile_size) == (3, 2, 4)
        assert restored.color_usage == result.color_usage
        np.testing.assert_array_equal(restored.quantized, result.quantized)
        restored.validate()

    def test_total_tiles_mismatch(self, bw_palette: Palette) -> None:
        data = build_mosaic(np.zeros((2, 2, 3), dtype=np.uint8), bw_palette, 1, 1, 2).to_dict()
        data["totalTiles"] = 5
        with pytest.raises(ValueError):
            MosaicResult.from_dict(data)

    def test_round_trip_without_image_data(self, palette: Palette, raster: np.ndarray) -> None:
        result = build_mosaic(raster, palette, 3, 2, tile_size=4)
        data = result.to_dict()
        del data["pixelatedImageData"]
        restored = MosaicResult.from_dict(data)
        np.testing.assert_array_equal(restored.quantized, result.quantized)
        assert restored.color_usage == result.color_usage
        assert [b.id for b in restored.boards] == [b.id for b in result.boards]

    def test_color_map_must_cover_every_cell(self, bw_palette: Palette) -> None:
        data = build_mosaic(np.zeros((4, 8, 3), dtype=np.uint8), bw_palette, 2, 1, 4).to_dict()
        data["colorMap"][0]["count"] = 999
        with pytest.raises(ValueError, match="Colour usage"):
            MosaicResult.from_dict(data)

    def test_mixed_board_sizes_rejected(self, bw_palette: Palette) -> None:
        data = build_mosaic(np.zeros((4, 8, 3), dtype=np.uint8), bw_palette, 2, 1, 4).to_dict()
        data["boards"][1]["pixels"] = [["#000000", "#000000"], ["#000000", "#000000"]]
        with pytest.raises(ValueError, match="differ in size"):
            MosaicResult.from_dict(data)

    def test_boards_must_fill_distinct_grid_cells(self, bw_palette: Palette) -> None:
        data = build_mosaic(np.zeros((4, 8, 3), dtype=np.uint8), bw_palette, 2, 1, 4).to_dict()
        data["boards"][1]["position"] = {"row": 0, "col": 0}
        with pytest.raises(ValueError):
            MosaicResult.from_dict(data)

    def test_validate_rejects_board_outside_grid(self, bw_palette: Palette) -> None:
        result = build_mosaic(np.zeros((4, 8, 3), dtype=np.uint8), bw_palette, 2, 1, 4)
        result.boards[1].row = 3
        with pytest.raises(ValueError, match="outside"):
            result.validate()

    def test_validate_catches_bad_usage(self, bw_palette: Palette) -> None:
        result = build_mosaic(np.zeros((2, 2, 3), dtype=np.uint8), bw_palette, 1, 1, 2)
        result.color_usage = []
        with pytest.raises(ValueError):
            result.validate()

    def test_build_estimates(self) -> None:
        assert estimated_build_time(100) == "~12 minutes"
        assert estimated_build_time(1024) == "~1h 59m"
        assert difficulty_level(5, 1024) == "Beginner"
        assert difficulty_level(12, 4096) == "Intermediate"
        assert difficulty_level(20, 1024) == "Advanced"


# -- Image I/O ---------------------------------------------------------

class TestImageIO:
    def test_load_stretches_to_grid(self, tmp_image: Path) -> None:
        arr = load_and_resize(tmp_image, 32, 64)
        assert arr.shape == (64, 32, 3)
        assert arr.dtype == np.uint8

    def test_data_uri(self, raster: np.ndarray) -> None:
        uri = encode_data_uri(raster)
        np.testing.assert_array_equal(decode_data_uri(uri), raster)
        with pytest.raises(ValueError):
            decode_data_uri("not-a-uri")


# -- Pipeline ----------------------------------------------------------

class TestPipeline:
    def test_process_image(self, tmp_image: Path) -> None:
        cfg = MosaicConfig(tile_size=4, board_layout="3x2")
        outcome = process_image(tmp_image, cfg)
        assert outcome.ok
        assert outcome.result is not None
        assert outcome.result.total_tiles == 96
        assert outcome.error is None

    def test_missing_file_fails(self, tmp_path: Path) -> None:
        outcome = process_image(tmp_path / "nope.png", MosaicConfig(tile_size=4))
        assert outcome.status == "failed"
        assert outcome.result is None
        assert outcome.error

    def test_worker(self, tmp_image: Path) -> None:
        cfg = MosaicConfig(tile_size=4, board_layout="1x1")
        with MosaicWorker(cfg) as worker:
            outcome = worker.submit(tmp_image).result(timeout=60)
        assert outcome.ok
        assert outcome.result is not None
        assert [b.id for b in outcome.result.boards] == ["A1"]


# -- CLI ---------------------------------------------------------------

class TestCli:
    runner = CliRunner()

    def test_palette_json(self) -> None:
        res = self.runner.invoke(app, ["palette", "--json"])
        assert res.exit_code == 0
        assert "Cactus" in res.output

    def test_layout(self) -> None:
        res = self.runner.invoke(app, ["layout", "6"])
        assert res.exit_code == 0
        assert "3x2" in res.output

    def test_process(self, tmp_image: Path, tmp_path: Path) -> None:
        out = tmp_path / "out"
        res = self.runner.invoke(
            app, ["process", str(tmp_image), "-o", str(out), "-t", "4", "-l", "2x2"],
        )
        assert res.exit_code == 0, res.output
        data = json.loads((out / "test_mosaic.json").read_text(encoding="utf-8"))
        assert data["totalTiles"] == 64
        assert (out / "test_mosaic.png").exists()

    def test_process_failure_exit_code(self, tmp_path: Path) -> None:
        res = self.runner.invoke(app, ["process", str(tmp_path / "missing.png")])
        assert res.exit_code == 1
