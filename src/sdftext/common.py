"""Central module containing constants and definitions shared by atlas generation and text layout."""

from __future__ import annotations

from enum import Enum, auto
from typing import Tuple, Union

###############################################################################
# Types
###############################################################################

Vec2 = Tuple[float, float]
IVec2 = Tuple[int, int]
Glyph = int  # glyph id scoped to one font
TextInput = Union[str, bytes]  # str or UTF-8 encoded bytes


###############################################################################
# Enums and Consts
###############################################################################

# Design size the atlas is generated for (32 at 72 DPI). All scale factors
# between cached metrics and the requested font size are relative to it.
NOMINAL_FONT_SIZE: float = 32.0

# Glyph outlines are normalized to this many units per em.
OUTLINE_UNITS_PER_EM: float = 2048.0

# Outline coordinates are stored in 26.6 fixed point by rasterizers, hence /64.
FIXED_POINT_SCALE: float = 64.0

# Width used for "unconstrained" text boxes. Any line fits.
MAX_SIZE: float = 1000000.0

# Grow marker for text box dimensions.
GROW: int = 0

DEFAULT_CHARS: str = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz1234567890().?!,:;'\"&*=+-/\\|@#_[]<>%^"
    "llflfiphridséáèà"
)


class Alignment(Enum):
    """Enum to define horizontal text alignment options."""

    LEFT = auto()
    CENTER = auto()
    RIGHT = auto()


###############################################################################
# Functions
###############################################################################


def to_text(value: TextInput) -> str:
    """Return `value` as str, decoding UTF-8 bytes.

    Invalid byte sequences are replaced so that layout never fails on input.
    """
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def outline_scale(units_per_em: float) -> float:
    """Scale from font units to normalized outline units (2048 per em in 26.6 fixed point)."""
    return OUTLINE_UNITS_PER_EM / float(units_per_em) / FIXED_POINT_SCALE
