"""Handling rectangles in texture and screen space"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

Number = Union[int, float]


###############################################################################
# Rect
###############################################################################
@dataclass
class Rect:
    """
    Represents an axis aligned rectangle given by two corners.

    Texture and screen space share the same convention: the origin is at the
    top-left, x grows to the right and y grows downwards. Hence (x1, y1) is the
    upper-left and (x2, y2) the lower-right corner.

    In contrast to a bounding box the corners are NOT normalized. Clipping
    produces rectangles with x1 >= x2 to signal "nothing left", see `is_empty`.

    Attributes:
        x1 (float): Left coordinate.
        y1 (float): Top coordinate.
        x2 (float): Right coordinate.
        y2 (float): Bottom coordinate.
    """

    _x1: float
    _y1: float
    _x2: float
    _y2: float

    def __init__(self, x1: Number = 0.0, y1: Number = 0.0, x2: Number = 0.0, y2: Number = 0.0):
        """Initialize Rect with corner coordinates.

        Args:
            x1: Left coordinate
            y1: Top coordinate
            x2: Right coordinate
            y2: Bottom coordinate
        """
        self._x1 = float(x1)
        self._y1 = float(y1)
        self._x2 = float(x2)
        self._y2 = float(y2)

    @classmethod
    def from_tuple(cls, values: Sequence[Number]) -> Rect:
        """Create a Rect from a sequence (x1, y1, x2, y2)."""
        if len(values) != 4:
            raise ValueError(f"Rect needs exactly 4 values, got {len(values)}")
        return cls(values[0], values[1], values[2], values[3])

    @property
    def x1(self) -> float:
        """float: Left coordinate."""
        return self._x1

    @property
    def y1(self) -> float:
        """float: Top coordinate."""
        return self._y1

    @property
    def x2(self) -> float:
        """float: Right coordinate."""
        return self._x2

    @property
    def y2(self) -> float:
        """float: Bottom coordinate."""
        return self._y2

    @property
    def width(self) -> float:
        """float: x2 - x1"""
        return self._x2 - self._x1

    @property
    def height(self) -> float:
        """float: y2 - y1"""
        return self._y2 - self._y1

    @property
    def size(self) -> Tuple[float, float]:
        """Tuple (width, height)."""
        return self.width, self.height

    @property
    def upper_left(self) -> Tuple[float, float]:
        """Tuple (x1, y1)."""
        return self._x1, self._y1

    @property
    def is_empty(self) -> bool:
        """True if the rectangle covers no area."""
        return self._x1 >= self._x2 or self._y1 >= self._y2

    def to_tuple(self) -> Tuple[float, float, float, float]:
        """The corners as Tuple (x1, y1, x2, y2)."""
        return self._x1, self._y1, self._x2, self._y2

    def offset(self, dx: Number, dy: Number) -> Rect:
        """Return a new Rect moved by (dx, dy)."""
        return Rect(self._x1 + dx, self._y1 + dy, self._x2 + dx, self._y2 + dy)

    def scale(self, sx: Number, sy: Optional[Number] = None) -> Rect:
        """Return a new Rect with all coordinates scaled.

        The scaling is relative to the origin, not to the upper-left corner.

        Args:
            sx: Scale factor for x coordinates.
            sy: Scale factor for y coordinates. Defaults to `sx`.
        """
        if sy is None:
            sy = sx
        return Rect(self._x1 * sx, self._y1 * sy, self._x2 * sx, self._y2 * sy)

    def include(self, other: Rect) -> Rect:
        """Return the union of this rectangle and `other`."""
        return Rect(
            min(self._x1, other.x1),
            min(self._y1, other.y1),
            max(self._x2, other.x2),
            max(self._y2, other.y2),
        )

    def intersect(self, other: Rect) -> Rect:
        """Return the intersection with `other` (possibly empty)."""
        return Rect(
            max(self._x1, other.x1),
            max(self._y1, other.y1),
            min(self._x2, other.x2),
            min(self._y2, other.y2),
        )

    def contains(self, other: Rect) -> bool:
        """True if `other` lies completely inside this rectangle."""
        return (
            self._x1 <= other.x1 and self._y1 <= other.y1 and other.x2 <= self._x2 and other.y2 <= self._y2
        )

    def to_dict(self) -> dict:
        """Convert the Rect to a dictionary."""
        return {"x1": self._x1, "y1": self._y1, "x2": self._x2, "y2": self._y2}

    def __iter__(self):
        return iter(self.to_tuple())

    def __str__(self) -> str:
        return f"Rect({self._x1:g}, {self._y1:g}, {self._x2:g}, {self._y2:g})"
