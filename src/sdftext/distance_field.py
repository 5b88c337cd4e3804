"""Distance field generation for glyph shapes.

The atlas packer only talks to the `DistanceFieldGenerator` protocol. The
default implementation measures true distances to the polygonized edges with
shapely and takes the sign from the side of the nearest edge, computed per
color channel. Reversing every contour therefore maps each value v to 1 - v,
which is what the packer relies on for fonts with the opposite winding.
"""

from __future__ import annotations

import logging
from typing import Protocol, Tuple

import numpy as np
import shapely
from numpy.typing import NDArray

from sdftext.fonttools import Winding
from sdftext.shape import EdgeColor, Shape, color_edges_simple

logger = logging.getLogger(__name__)

_CHANNELS = (EdgeColor.RED, EdgeColor.GREEN, EdgeColor.BLUE)


###############################################################################
# Protocol
###############################################################################
class DistanceFieldGenerator(Protocol):
    """Protocol for multi-channel distance field generators."""

    @property
    def expected_winding(self) -> Winding:
        """Outer contour orientation for which the generator's inside test is correct."""

    def color_edges(self, shape: Shape, angle_threshold: float) -> None:
        """Assign edge colors in place, corners sharper than `angle_threshold` (radians) split colors."""

    def generate(
        # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        shape: Shape,
        width: int,
        height: int,
        distance_range: float,
        scale: Tuple[float, float],
        translate: Tuple[float, float],
    ) -> NDArray[np.float32]:
        """Render the distance field.

        Pixel (x, y) samples the shape at ((x + 0.5) / scale - translate). Values
        are 0.5 on the outline, above 0.5 inside, clamped to [0, 1] at
        +-distance_range / 2.

        Returns:
            NDArray of shape (height, width, 3) with float32 values.
        """


###############################################################################
# ShapelyDistanceFieldGenerator
###############################################################################
class ShapelyDistanceFieldGenerator:
    """
    Pseudo multi-channel distance field generator using shapely distance queries.

    Each channel only sees the edges whose color contains that channel, so the
    median of the three channels keeps corners sharp like a true MSDF.
    """

    def __init__(self, polygonize_steps: int = 12, tangent_eps: float = 1.0e-5):
        """
        Initialize the generator.

        Args:
            polygonize_steps: Line segments used per curved edge.
            tangent_eps: Distance along an edge used to estimate its tangent.
        """
        if polygonize_steps < 1:
            raise ValueError(f"polygonize_steps must be >= 1, got {polygonize_steps}")
        self._polygonize_steps = polygonize_steps
        self._tangent_eps = tangent_eps

    @property
    def expected_winding(self) -> Winding:
        return Winding.CLOCKWISE

    def color_edges(self, shape: Shape, angle_threshold: float) -> None:
        color_edges_simple(shape, angle_threshold)

    def _edge_geometry(self, shape: Shape) -> Tuple[NDArray, NDArray[np.int64]]:
        lines = []
        colors = []
        for contour in shape.contours:
            for edge in contour.edges:
                polyline = edge.polygonize(self._polygonize_steps)
                if np.allclose(polyline, polyline[0]):
                    continue
                lines.append(shapely.linestrings(polyline))
                colors.append(int(edge.color))
        return np.array(lines, dtype=object), np.array(colors, dtype=np.int64)

    def generate(
        # pylint: disable=too-many-arguments,too-many-positional-arguments,too-many-locals
        self,
        shape: Shape,
        width: int,
        height: int,
        distance_range: float,
        scale: Tuple[float, float],
        translate: Tuple[float, float],
    ) -> NDArray[np.float32]:
        if width <= 0 or height <= 0:
            raise ValueError(f"Bitmap size must be positive, got {width}x{height}")
        if distance_range <= 0:
            raise ValueError(f"Distance range must be positive, got {distance_range}")

        lines, colors = self._edge_geometry(shape)
        if lines.size == 0:
            return np.zeros((height, width, 3), dtype=np.float32)

        xs = (np.arange(width, dtype=np.float64) + 0.5) / scale[0] - translate[0]
        ys = (np.arange(height, dtype=np.float64) + 0.5) / scale[1] - translate[1]
        grid_x, grid_y = np.meshgrid(xs, ys)
        coords = np.column_stack([grid_x.ravel(), grid_y.ravel()])
        points = shapely.points(coords)

        # (edges, pixels) matrices
        line_col = lines[:, np.newaxis]
        point_row = points[np.newaxis, :]
        distances = shapely.distance(line_col, point_row)
        lengths = shapely.length(lines)[:, np.newaxis]
        position = shapely.line_locate_point(line_col, point_row)
        nearest = shapely.get_coordinates(shapely.line_interpolate_point(line_col, position)).reshape(
            lines.size, -1, 2
        )
        before = shapely.get_coordinates(
            shapely.line_interpolate_point(line_col, np.clip(position - self._tangent_eps, 0.0, lengths))
        ).reshape(lines.size, -1, 2)
        after = shapely.get_coordinates(
            shapely.line_interpolate_point(line_col, np.clip(position + self._tangent_eps, 0.0, lengths))
        ).reshape(lines.size, -1, 2)
        tangent = after - before
        offset = coords[np.newaxis, :, :] - nearest
        cross = tangent[..., 0] * offset[..., 1] - tangent[..., 1] * offset[..., 0]
        # clockwise outlines have their interior on the right hand side
        signed = np.where(cross < 0.0, distances, -distances)

        result = np.empty((height * width, 3), dtype=np.float32)
        pixel_index = np.arange(height * width)
        for channel_index, channel in enumerate(_CHANNELS):
            mask = (colors & int(channel)) != 0
            if not mask.any():
                mask = np.ones_like(mask)
            masked = np.where(mask[:, np.newaxis], distances, np.inf)
            closest = np.argmin(masked, axis=0)
            channel_distance = signed[closest, pixel_index]
            result[:, channel_index] = np.clip(0.5 + channel_distance / distance_range, 0.0, 1.0)

        bitmap = result.reshape(height, width, 3)
        if shape.inverse_y_axis:
            bitmap = bitmap[::-1]
        return np.ascontiguousarray(bitmap)


###############################################################################
# Helpers
###############################################################################
def median_channel(bitmap: NDArray[np.floating]) -> NDArray[np.floating]:
    """Median of the three channels, the value a shader thresholds at 0.5."""
    return np.median(bitmap, axis=-1)


def invert_bitmap(bitmap: NDArray[np.float32]) -> NDArray[np.float32]:
    """Return 1 - bitmap for every channel."""
    return (1.0 - bitmap).astype(np.float32)
