"""Classes related to the FontTools library: outline extraction and winding detection."""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional, Tuple

import numpy as np
from fontTools.pens.pointPen import AbstractPointPen
from fontTools.pens.transformPen import TransformPointPen
from fontTools.ttLib import TTFont

from sdftext.common import outline_scale
from sdftext.errors import GlyphOutlineError
from sdftext.shape import CubicSegment, LinearSegment, QuadraticSegment, Shape


###############################################################################
# Point tags
###############################################################################
class PointTag(Enum):
    """Classification of an outline point."""

    ON = 1  # on-curve point
    CONIC = 2  # quadratic off-curve control point
    CUBIC = 3  # cubic off-curve control point


class Winding(Enum):
    """Orientation of outer contours (y pointing up)."""

    CLOCKWISE = "cw"  # TrueType (glyf) outlines
    COUNTER_CLOCKWISE = "ccw"  # PostScript (CFF/CFF2) outlines


OutlinePoint = Tuple[float, float, PointTag]


###############################################################################
# Pens
###############################################################################
class OutlinePointPen(AbstractPointPen):
    """
    Records a glyph's contours as lists of tagged points.

    The point pen protocol delivers on-curve points with the type of the segment
    ending at them ("line", "qcurve", "curve") and off-curve points without a
    type. Off-curve points are tagged CUBIC when the next on-curve point ends a
    "curve" segment, otherwise CONIC. Components are decomposed.

    Access the result via `.contours` after drawing a glyph with this pen.
    """

    def __init__(self, glyph_set: Any):
        """
        Initialize the OutlinePointPen.

        Args:
            glyph_set: The glyph set used to resolve components.
        """
        self._glyph_set = glyph_set
        self._current: Optional[List[Tuple[float, float, Optional[str]]]] = None
        self.contours: List[List[OutlinePoint]] = []

    # AbstractPointPen callback methods ----------------------------------------
    def beginPath(self, identifier: Optional[str] = None, **kwargs: Any) -> None:
        self._current = []

    def addPoint(
        # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        pt: Tuple[float, float],
        segmentType: Optional[str] = None,
        smooth: bool = False,
        name: Optional[str] = None,
        identifier: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        if self._current is None:
            raise GlyphOutlineError("addPoint called outside of a path")
        self._current.append((float(pt[0]), float(pt[1]), segmentType))

    def endPath(self) -> None:
        if self._current is None:
            raise GlyphOutlineError("endPath called without beginPath")
        points = self._current
        self._current = None
        if not points:
            # degenerate contour, nothing to record
            return
        self.contours.append(self._tag_points(points))

    def addComponent(
        self,
        baseGlyphName: str,
        transformation: Tuple[float, float, float, float, float, float],
        identifier: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        try:
            base_glyph = self._glyph_set[baseGlyphName]
        except KeyError as err:
            raise GlyphOutlineError(f"Component glyph '{baseGlyphName}' not found") from err
        base_glyph.drawPoints(TransformPointPen(self, transformation))

    @staticmethod
    def _tag_points(points: List[Tuple[float, float, Optional[str]]]) -> List[OutlinePoint]:
        count = len(points)
        tagged: List[OutlinePoint] = []
        for index, (x, y, segment_type) in enumerate(points):
            if segment_type is not None:
                tagged.append((x, y, PointTag.ON))
                continue
            tag = PointTag.CONIC
            for step in range(1, count):
                next_type = points[(index + step) % count][2]
                if next_type is not None:
                    if next_type == "curve":
                        tag = PointTag.CUBIC
                    break
            tagged.append((x, y, tag))
        return tagged


###############################################################################
# Outline extraction
###############################################################################
_NONE = 0
_PATH_POINT = 1
_QUADRATIC_POINT = 2
_CUBIC_POINT = 3
_CUBIC_POINT2 = 4

_STATE_OF_TAG = {
    PointTag.ON: _PATH_POINT,
    PointTag.CONIC: _QUADRATIC_POINT,
    PointTag.CUBIC: _CUBIC_POINT,
}


def _build_contour(shape: Shape, points: List[OutlinePoint], scale: float) -> None:
    # pylint: disable=too-many-branches,too-many-statements
    contour = shape.add_contour()
    first = 0
    last = len(points) - 1
    coords = np.array([(x, y) for x, y, _ in points], dtype=np.float64) * scale
    states = [_STATE_OF_TAG[tag] for _, _, tag in points]

    state = _NONE
    first_path_point = -1
    start_point = np.zeros(2)
    control = [np.zeros(2), np.zeros(2)]

    rounds = 0
    index = first
    while rounds == 0:
        if index > last:
            if first_path_point < 0:
                raise GlyphOutlineError("Contour has no on-curve point to start from")
            index = first
        if index == first_path_point:
            rounds += 1

        point = coords[index]
        point_type = states[index]

        if state == _NONE:
            if point_type == _PATH_POINT:
                first_path_point = index
                start_point = point
                state = _PATH_POINT
            elif states[first] == _QUADRATIC_POINT and states[last] == _QUADRATIC_POINT:
                # all-conic start: the implied on-curve point between last and first
                first_path_point = index
                start_point = 0.5 * (coords[first] + coords[last])
                control[0] = point
                state = _QUADRATIC_POINT
        elif state == _PATH_POINT:
            if point_type == _PATH_POINT:
                contour.add_edge(LinearSegment([start_point, point]))
                start_point = point
            else:
                control[0] = point
                state = point_type
        elif state == _QUADRATIC_POINT:
            if point_type == _CUBIC_POINT:
                raise GlyphOutlineError("Cubic control point follows a quadratic control point")
            if point_type == _PATH_POINT:
                contour.add_edge(QuadraticSegment([start_point, control[0], point]))
                start_point = point
                state = _PATH_POINT
            else:
                mid_point = 0.5 * control[0] + 0.5 * point
                contour.add_edge(QuadraticSegment([start_point, control[0], mid_point]))
                start_point = mid_point
                control[0] = point
        elif state == _CUBIC_POINT:
            if point_type != _CUBIC_POINT:
                raise GlyphOutlineError("Cubic control point must be followed by a second one")
            control[1] = point
            state = _CUBIC_POINT2
        elif state == _CUBIC_POINT2:
            if point_type == _QUADRATIC_POINT:
                raise GlyphOutlineError("Quadratic control point follows a cubic control point")
            if point_type == _PATH_POINT:
                contour.add_edge(CubicSegment([start_point, control[0], control[1], point]))
                start_point = point
            else:
                mid_point = 0.5 * control[1] + 0.5 * point
                contour.add_edge(CubicSegment([start_point, control[0], control[1], mid_point]))
                start_point = mid_point
                control[0] = point
            state = point_type

        index += 1


def glyph_name_for_id(ttfont: TTFont, glyph_id: int) -> str:
    """Resolve a glyph id to its glyph name.

    Raises:
        GlyphOutlineError: If the glyph id is out of range.
    """
    if glyph_id < 0:
        raise GlyphOutlineError(f"Invalid glyph id {glyph_id}")
    try:
        return ttfont.getGlyphName(glyph_id)
    except (IndexError, KeyError) as err:
        raise GlyphOutlineError(f"Glyph id {glyph_id} not in font") from err


def extract_points(ttfont: TTFont, glyph_id: int) -> List[List[OutlinePoint]]:
    """Return the tagged outline points of a glyph in font units, one list per contour."""
    glyph_name = glyph_name_for_id(ttfont, glyph_id)
    glyph_set = ttfont.getGlyphSet()
    if glyph_name not in glyph_set:
        raise GlyphOutlineError(f"Glyph '{glyph_name}' ({glyph_id}) has no outline")
    pen = OutlinePointPen(glyph_set)
    glyph_set[glyph_name].drawPoints(pen)
    return pen.contours


def extract_outline(ttfont: TTFont, glyph_id: int) -> Shape:
    """
    Convert the outline of `glyph_id` into a normalized Shape.

    Coordinates are scaled by 2048 / unitsPerEm / 64, i.e. a glyph is measured in
    pixels at the nominal size 32. Consecutive quadratic control points imply an
    on-curve point at their midpoint. The result only depends on (font, glyph id).

    Raises:
        GlyphOutlineError: If the glyph is unknown or its point sequence is illegal.
    """
    contours = extract_points(ttfont, glyph_id)
    return shape_from_points(contours, outline_scale(ttfont["head"].unitsPerEm))


def shape_from_points(contours: List[List[OutlinePoint]], scale: float = 1.0) -> Shape:
    """Build a Shape from tagged point contours, coordinates multiplied by `scale`.

    Raises:
        GlyphOutlineError: If a contour's tag sequence is illegal.
    """
    shape = Shape()
    for points in contours:
        _build_contour(shape, points, scale)
    return shape


###############################################################################
# Winding detection
###############################################################################
def detect_winding(ttfont: TTFont) -> Winding:
    """Winding convention of the font's outlines, derived from its outline table."""
    if "CFF " in ttfont or "CFF2" in ttfont:
        return Winding.COUNTER_CLOCKWISE
    return Winding.CLOCKWISE


def sniff_winding(data: bytes) -> Winding:
    """Winding convention guessed from the sfnt version tag of raw font bytes ("OTTO" = CFF)."""
    if data[:4] == b"OTTO":
        return Winding.COUNTER_CLOCKWISE
    return Winding.CLOCKWISE
