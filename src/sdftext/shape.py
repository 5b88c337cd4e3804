"""Normalized glyph shapes: closed contours of line, quadratic and cubic segments.

A shape is what the outline extractor produces and what the distance field
generator consumes. Coordinates are in normalized outline units with y pointing
up (font convention); `Shape.inverse_y_axis` tells the generator to emit rows
top-down.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from enum import IntFlag
from typing import List, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

# Two vectors are parallel enough to not form a corner below this cross product.
_DEGENERATE_EPS: float = 1.0e-12


###############################################################################
# EdgeColor
###############################################################################
class EdgeColor(IntFlag):
    """Channel mask of an edge. Channels which see an edge share its distance."""

    BLACK = 0
    RED = 1
    GREEN = 2
    YELLOW = 3
    BLUE = 4
    MAGENTA = 5
    CYAN = 6
    WHITE = 7


###############################################################################
# Segments
###############################################################################
def _mix(a: NDArray[np.float64], b: NDArray[np.float64], t: float) -> NDArray[np.float64]:
    return a + (b - a) * t


def _solve_quadratic(a: float, b: float, c: float) -> List[float]:
    """Real roots of a*x^2 + b*x + c = 0 (linear fallback for a == 0)."""
    if abs(a) < _DEGENERATE_EPS:
        if abs(b) < _DEGENERATE_EPS:
            return []
        return [-c / b]
    disc = b * b - 4.0 * a * c
    if disc > 0.0:
        root = math.sqrt(disc)
        return [(-b + root) / (2.0 * a), (-b - root) / (2.0 * a)]
    if disc == 0.0:
        return [-b / (2.0 * a)]
    return []


class EdgeSegment(ABC):
    """
    Base class of one contour edge, a Bezier curve of degree 1, 2 or 3.

    The control points are stored as NDArray of shape (degree + 1, 2).
    """

    _points: NDArray[np.float64]
    color: EdgeColor

    def __init__(self, points: Sequence[Sequence[float]], color: EdgeColor = EdgeColor.WHITE):
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        if pts.shape[0] != self.degree + 1:
            raise ValueError(f"{type(self).__name__} needs {self.degree + 1} points, got {pts.shape[0]}")
        self._points = pts
        self.color = color

    @property
    @abstractmethod
    def degree(self) -> int:
        """Degree of the Bezier curve."""

    @property
    def points(self) -> NDArray[np.float64]:
        """Control points, read-only view of shape (degree + 1, 2)."""
        view = self._points.view()
        view.flags.writeable = False
        return view

    @property
    def start(self) -> NDArray[np.float64]:
        """First control point (on curve)."""
        return self._points[0]

    @property
    def end(self) -> NDArray[np.float64]:
        """Last control point (on curve)."""
        return self._points[-1]

    def point(self, t: float) -> NDArray[np.float64]:
        """Evaluate the curve at parameter t using de Casteljau."""
        pts = self._points
        while pts.shape[0] > 1:
            pts = pts[:-1] + (pts[1:] - pts[:-1]) * t
        return pts[0]

    @abstractmethod
    def direction(self, t: float) -> NDArray[np.float64]:
        """Tangent direction (not normalized) at parameter t."""

    @abstractmethod
    def bounds(self) -> Tuple[float, float, float, float]:
        """Exact bounding box (left, bottom, right, top) of the curve."""

    def split(self, t: float) -> Tuple[EdgeSegment, EdgeSegment]:
        """Split at parameter t into two segments of the same degree (de Casteljau)."""
        left = [self._points[0]]
        right = [self._points[-1]]
        pts = self._points
        while pts.shape[0] > 1:
            pts = pts[:-1] + (pts[1:] - pts[:-1]) * t
            left.append(pts[0])
            right.append(pts[-1])
        cls = type(self)
        return cls(np.array(left), self.color), cls(np.array(right[::-1]), self.color)

    def split_in_thirds(self) -> Tuple[EdgeSegment, EdgeSegment, EdgeSegment]:
        """Split into three segments covering t in [0, 1/3], [1/3, 2/3] and [2/3, 1]."""
        first, rest = self.split(1.0 / 3.0)
        second, third = rest.split(0.5)
        return first, second, third

    def polygonize(self, steps: int) -> NDArray[np.float64]:
        """Sample the curve at `steps` + 1 evenly spaced parameters.

        Returns:
            NDArray of shape (steps + 1, 2), first and last row are the end points.
        """
        if self.degree == 1:
            return self._points.copy()
        if steps < 1:
            raise ValueError(f"steps must be >= 1, got {steps}")
        t = np.linspace(0.0, 1.0, steps + 1)[:, np.newaxis]
        u = 1.0 - t
        p = self._points
        if self.degree == 2:
            return u * u * p[0] + 2.0 * u * t * p[1] + t * t * p[2]
        return u * u * u * p[0] + 3.0 * u * u * t * p[1] + 3.0 * u * t * t * p[2] + t * t * t * p[3]

    def _bounds_from(self, params: Sequence[float]) -> Tuple[float, float, float, float]:
        candidates = [self._points[0], self._points[-1]]
        candidates.extend(self.point(t) for t in params if 0.0 < t < 1.0)
        arr = np.array(candidates)
        return (
            float(arr[:, 0].min()),
            float(arr[:, 1].min()),
            float(arr[:, 0].max()),
            float(arr[:, 1].max()),
        )

    def __repr__(self) -> str:
        pts = ", ".join(f"({x:g}, {y:g})" for x, y in self._points)
        return f"{type(self).__name__}({pts}, {self.color.name})"


class LinearSegment(EdgeSegment):
    """Straight line between two points."""

    @property
    def degree(self) -> int:
        return 1

    def direction(self, t: float) -> NDArray[np.float64]:
        return self._points[1] - self._points[0]

    def bounds(self) -> Tuple[float, float, float, float]:
        return self._bounds_from([])


class QuadraticSegment(EdgeSegment):
    """Quadratic Bezier curve with one off-curve control point."""

    @property
    def degree(self) -> int:
        return 2

    def direction(self, t: float) -> NDArray[np.float64]:
        p = self._points
        tangent = _mix(p[1] - p[0], p[2] - p[1], t)
        if not np.any(tangent):
            return p[2] - p[0]
        return tangent

    def bounds(self) -> Tuple[float, float, float, float]:
        p = self._points
        bot = (p[1] - p[0]) - (p[2] - p[1])
        params = [float((p[1][axis] - p[0][axis]) / bot[axis]) for axis in (0, 1) if bot[axis] != 0.0]
        return self._bounds_from(params)


class CubicSegment(EdgeSegment):
    """Cubic Bezier curve with two off-curve control points."""

    @property
    def degree(self) -> int:
        return 3

    def direction(self, t: float) -> NDArray[np.float64]:
        p = self._points
        tangent = _mix(_mix(p[1] - p[0], p[2] - p[1], t), _mix(p[2] - p[1], p[3] - p[2], t), t)
        if not np.any(tangent):
            if t == 0.0:
                return p[2] - p[0]
            if t == 1.0:
                return p[3] - p[1]
        return tangent

    def bounds(self) -> Tuple[float, float, float, float]:
        p = self._points
        a0 = p[1] - p[0]
        a1 = 2.0 * (p[2] - p[1] - a0)
        a2 = p[3] - 3.0 * p[2] + 3.0 * p[1] - p[0]
        params: List[float] = []
        for axis in (0, 1):
            params.extend(_solve_quadratic(float(a2[axis]), float(a1[axis]), float(a0[axis])))
        return self._bounds_from(params)


###############################################################################
# Contour / Shape
###############################################################################
class Contour:
    """A closed loop of edge segments."""

    edges: List[EdgeSegment]

    def __init__(self, edges: Optional[List[EdgeSegment]] = None):
        self.edges = list(edges) if edges else []

    def add_edge(self, edge: EdgeSegment) -> None:
        """Append an edge to the end of the loop."""
        self.edges.append(edge)

    def bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """Exact bounds (left, bottom, right, top) or None for an empty contour."""
        if not self.edges:
            return None
        boxes = np.array([edge.bounds() for edge in self.edges])
        return (
            float(boxes[:, 0].min()),
            float(boxes[:, 1].min()),
            float(boxes[:, 2].max()),
            float(boxes[:, 3].max()),
        )

    def polygonize(self, steps: int = 8) -> NDArray[np.float64]:
        """Polyline through the whole contour, first point repeated at the end."""
        if not self.edges:
            return np.empty((0, 2), dtype=np.float64)
        parts = [self.edges[0].polygonize(steps)]
        parts.extend(edge.polygonize(steps)[1:] for edge in self.edges[1:])
        return np.vstack(parts)

    def winding(self) -> int:
        """Orientation of the contour: +1 counter-clockwise, -1 clockwise, 0 degenerate (y up)."""
        pts = self.polygonize()
        if pts.shape[0] < 3:
            return 0
        x, y = pts[:, 0], pts[:, 1]
        area = float(np.sum(x[:-1] * y[1:] - x[1:] * y[:-1]))
        if area > 0.0:
            return 1
        if area < 0.0:
            return -1
        return 0

    def is_closed(self, tolerance: float = 1.0e-9) -> bool:
        """True if every edge starts where the previous one ended."""
        if not self.edges:
            return True
        corner = self.edges[-1].end
        for edge in self.edges:
            if np.linalg.norm(edge.start - corner) > tolerance:
                return False
            corner = edge.end
        return True


class Shape:
    """
    A glyph outline as a set of closed contours.

    Attributes:
        contours: The contours in outline order.
        inverse_y_axis: If True the distance field rows are emitted top-down.
    """

    contours: List[Contour]
    inverse_y_axis: bool

    def __init__(self, contours: Optional[List[Contour]] = None, inverse_y_axis: bool = False):
        self.contours = list(contours) if contours else []
        self.inverse_y_axis = inverse_y_axis

    def add_contour(self) -> Contour:
        """Append a new empty contour and return it."""
        contour = Contour()
        self.contours.append(contour)
        return contour

    @property
    def edge_count(self) -> int:
        """Total number of edges over all contours."""
        return sum(len(contour.edges) for contour in self.contours)

    def normalize(self) -> None:
        """Split single-edge contours into thirds so that every contour can be colored."""
        for contour in self.contours:
            if len(contour.edges) == 1:
                contour.edges = list(contour.edges[0].split_in_thirds())

    def validate(self) -> bool:
        """True if all contours are closed."""
        return all(contour.is_closed() for contour in self.contours)

    def bounds(self) -> Tuple[float, float, float, float]:
        """
        Bounds (left, bottom, right, top) accumulated from the pen origin.

        The origin (0, 0) is always part of the result, so left and bottom are
        never positive and right and top never negative. An empty shape yields
        (0, 0, 0, 0).
        """
        left = bottom = right = top = 0.0
        for contour in self.contours:
            box = contour.bounds()
            if box is None:
                continue
            left = min(left, box[0])
            bottom = min(bottom, box[1])
            right = max(right, box[2])
            top = max(top, box[3])
        return left, bottom, right, top

    def __repr__(self) -> str:
        return f"Shape({len(self.contours)} contours, {self.edge_count} edges)"


###############################################################################
# Edge coloring
###############################################################################
_START_COLORS = (EdgeColor.CYAN, EdgeColor.MAGENTA, EdgeColor.YELLOW)


def _is_corner(a_dir: NDArray[np.float64], b_dir: NDArray[np.float64], cross_threshold: float) -> bool:
    dot = float(a_dir[0] * b_dir[0] + a_dir[1] * b_dir[1])
    cross = float(a_dir[0] * b_dir[1] - a_dir[1] * b_dir[0])
    return dot <= 0.0 or abs(cross) > cross_threshold


def _normalized(vec: NDArray[np.float64]) -> NDArray[np.float64]:
    length = float(np.hypot(vec[0], vec[1]))
    if length == 0.0:
        return np.array([0.0, 1.0])
    return vec / length


def switch_color(color: EdgeColor, seed: int, banned: EdgeColor = EdgeColor.BLACK) -> Tuple[EdgeColor, int]:
    """Pick the next two-channel color, avoiding `banned`. Returns (color, seed)."""
    combined = EdgeColor(color & banned)
    if combined in (EdgeColor.RED, EdgeColor.GREEN, EdgeColor.BLUE):
        return EdgeColor(combined ^ EdgeColor.WHITE), seed
    if color in (EdgeColor.BLACK, EdgeColor.WHITE):
        return _START_COLORS[seed % 3], seed // 3
    shifted = int(color) << (1 + (seed & 1))
    return EdgeColor((shifted | shifted >> 3) & EdgeColor.WHITE), seed >> 1


def color_edges_simple(shape: Shape, angle_threshold: float, seed: int = 0) -> None:
    """
    Assign edge colors so that corners sharper than `angle_threshold` (radians)
    separate edges of different colors.

    Smooth contours are colored WHITE. A contour with one corner becomes a
    three-colored teardrop. Otherwise the color switches at every corner.
    """
    cross_threshold = math.sin(angle_threshold)
    for contour in shape.contours:
        edges = contour.edges
        corners: List[int] = []
        if edges:
            prev_direction = edges[-1].direction(1.0)
            for index, edge in enumerate(edges):
                if _is_corner(_normalized(prev_direction), _normalized(edge.direction(0.0)), cross_threshold):
                    corners.append(index)
                prev_direction = edge.direction(1.0)

        if not corners:
            for edge in edges:
                edge.color = EdgeColor.WHITE
        elif len(corners) == 1:
            first, seed = switch_color(EdgeColor.WHITE, seed)
            third, seed = switch_color(first, seed)
            colors = (first, EdgeColor.WHITE, third)
            corner = corners[0]
            count = len(edges)
            if count >= 3:
                for i in range(count):
                    slot = int(3 + 2.875 * i / (count - 1) - 1.4375 + 0.5) - 3
                    edges[(corner + i) % count].color = colors[1 + slot]
            else:
                contour.edges = _split_teardrop(edges, corner, colors)
        else:
            corner_count = len(corners)
            spline = 0
            start = corners[0]
            count = len(edges)
            color, seed = switch_color(EdgeColor.WHITE, seed)
            initial_color = color
            for i in range(count):
                index = (start + i) % count
                if spline + 1 < corner_count and corners[spline + 1] == index:
                    spline += 1
                    banned = initial_color if spline == corner_count - 1 else EdgeColor.BLACK
                    color, seed = switch_color(color, seed, banned)
                edges[index].color = color


def _split_teardrop(edges: List[EdgeSegment], corner: int, colors: Sequence[EdgeColor]) -> List[EdgeSegment]:
    # Fewer than three edges for three colors: split every edge in thirds.
    parts: List[Optional[EdgeSegment]] = [None] * 6
    first_thirds = edges[0].split_in_thirds()
    for offset, part in enumerate(first_thirds):
        parts[offset + 3 * corner] = part
    if len(edges) >= 2:
        for offset, part in enumerate(edges[1].split_in_thirds()):
            parts[offset + 3 - 3 * corner] = part
        for index, part in enumerate(parts):
            assert part is not None
            part.color = colors[index // 2]
    else:
        parts = list(first_thirds)
        for index, part in enumerate(parts):
            assert part is not None
            part.color = colors[index]
    return [part for part in parts if part is not None]
