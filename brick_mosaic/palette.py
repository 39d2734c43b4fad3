"""The fixed brick palette and colour value helpers."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field

import numpy as np

from brick_mosaic.color_utils import rgb_to_lab

RGB = tuple[int, int, int]

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")

# Reference deployment palette, in matching (tie-break) order.
BRICK_COLORS: list[tuple[str, str]] = [
    ("Cactus", "#000000"),
    ("Basketball Court", "#3C3C3C"),
    ("Kite", "#5F5F5F"),
    ("Controller", "#A0A0A0"),
    ("Soccer Ball", "#F5F5F5"),
    ("Hamburger", "#5A1E0A"),
    ("Basketball", "#780000"),
    ("Watermelon", "#AA0000"),
    ("Football", "#E65064"),
    ("Pokercard", "#FFC8E6"),
    ("Finishing Flag", "#C855A0"),
    ("Rocket", "#9B0069"),
    ("Hotdog", "#4B5528"),
    ("Cocktail Glass", "#005032"),
    ("Clapperboard", "#00785A"),
    ("Game Controller", "#00A528"),
    ("French Fries", "#A0C814"),
    ("Popsicle", "#AAFFAA"),
    ("Bread", "#825032"),
    ("Ghost", "#AF9655"),
    ("Fried Egg", "#787355"),
    ("Cupcake", "#648264"),
    ("Biscuit", "#C7925B"),
    ("Sunglasses", "#FFA546"),
    ("Carrot", "#F0876E"),
    ("Pizza", "#FAAA82"),
    ("Guitar", "#FFFC30"),
    ("Crayon", "#F0DC96"),
    ("Lemon", "#FFFF96"),
    ("Backboard", "#FFDCC8"),
    ("Hourglass", "#5A4196"),
    ("Tv", "#2D1473"),
    ("Table Tennis", "#505F78"),
    ("Usb", "#00468C"),
    ("Mouse", "#006EB4"),
    ("Balloon", "#5FA5F5"),
    ("Diskette", "#46D2E6"),
    ("Heart", "#B9FFEB"),
    ("Crosswords", "#D88571"),
]

# Fill for board cells the source raster does not cover.
DEFAULT_FILL: RGB = (255, 255, 255)


def hex_to_rgb(hex_str: str) -> RGB:
    """Parse ``'#RRGGBB'`` (leading ``#`` optional) to an RGB tuple."""
    match = _HEX_RE.match(hex_str.strip())
    if match is None:
        msg = f"Invalid hex colour {hex_str!r}, expected '#RRGGBB'"
        raise ValueError(msg)
    return tuple(int(g, 16) for g in match.groups())  # type: ignore[return-value]


def rgb_to_hex(rgb: Iterable[int]) -> str:
    """Format an RGB triple as upper-case ``'#RRGGBB'``."""
    r, g, b = (int(c) for c in rgb)
    return f"#{r:02X}{g:02X}{b:02X}"


def parse_color(color: str | Sequence[int] | NamedColor) -> RGB:
    """Normalise a hex string, RGB sequence or NamedColor to an RGB tuple."""
    if isinstance(color, NamedColor):
        return color.rgb
    if isinstance(color, str):
        return hex_to_rgb(color)
    values = tuple(int(c) for c in color)
    if len(values) != 3 or any(c < 0 or c > 255 for c in values):
        msg = f"RGB colour must be three values in 0..255, got {color!r}"
        raise ValueError(msg)
    return values  # type: ignore[return-value]


@dataclass(frozen=True)
class NamedColor:
    """One palette entry."""

    name: str
    rgb: RGB

    @property
    def hex(self) -> str:
        return rgb_to_hex(self.rgb)

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "hex": self.hex}


@dataclass(frozen=True)
class Palette:
    """Ordered, non-empty, read-only set of reference colours.

    Order matters: when two entries are equally close to a pixel the
    earlier one wins. Names and RGB values need not be unique.
    """

    colors: tuple[NamedColor, ...]
    rgb: np.ndarray = field(init=False, repr=False, compare=False)
    lab: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.colors:
            msg = "Palette must contain at least one colour"
            raise ValueError(msg)
        rgb = np.array([c.rgb for c in self.colors], dtype=np.uint8)
        rgb.flags.writeable = False
        lab = rgb_to_lab(rgb)
        lab.flags.writeable = False
        object.__setattr__(self, "rgb", rgb)
        object.__setattr__(self, "lab", lab)

    @classmethod
    def from_hex_pairs(cls, pairs: Iterable[tuple[str, str]]) -> Palette:
        """Build a palette from ``(name, "#RRGGBB")`` pairs."""
        return cls(tuple(NamedColor(name, hex_to_rgb(h)) for name, h in pairs))

    @classmethod
    def from_dicts(cls, entries: Iterable[dict[str, str]]) -> Palette:
        """Build a palette from ``[{"name": ..., "hex": ...}, ...]``."""
        return cls.from_hex_pairs((e["name"], e["hex"]) for e in entries)

    def __len__(self) -> int:
        return len(self.colors)

    def __iter__(self) -> Iterator[NamedColor]:
        return iter(self.colors)

    def __getitem__(self, index: int) -> NamedColor:
        return self.colors[index]

    def find(self, color: str | Sequence[int]) -> NamedColor | None:
        """Earliest entry whose RGB equals *color*, or None."""
        rgb = parse_color(color)
        for entry in self.colors:
            if entry.rgb == rgb:
                return entry
        return None

    def to_list(self) -> list[dict[str, str]]:
        """The palette as served to collaborators: ordered ``{name, hex}``."""
        return [c.to_dict() for c in self.colors]


def default_palette() -> Palette:
    """The 39-colour brick palette."""
    return Palette.from_hex_pairs(BRICK_COLORS)
