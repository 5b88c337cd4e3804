"""Glyph placement: from pen positions to source and destination rectangles per texture.

Destination rectangles are in screen space (y down) in pixels. Source
rectangles are normalized texture coordinates with the origin at the top-left.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from sdftext.atlas import GlyphInfo, TextureAtlas
from sdftext.common import NOMINAL_FONT_SIZE, Glyph, Vec2
from sdftext.geom import Rect
from sdftext.layout import GlyphMeasure
from sdftext.options import DrawOptions

TexturePlacements = Tuple[int, List["CharPlacement"]]


@dataclass(frozen=True)
class CharPlacement:
    """
    One glyph quad ready for rendering.

    Attributes:
        glyph: The glyph id.
        src_tex_coords: Normalized texture rectangle of the glyph's cell.
        dst_rect: Screen rectangle the cell is drawn into.
    """

    glyph: Glyph
    src_tex_coords: Rect
    dst_rect: Rect


def _glyph_rect(info: GlyphInfo, sdf_scale: Vec2, sdf_padding: Vec2, font_size: float, scale: float) -> Rect:
    """The cell rectangle relative to the pen position, undoing the generator's translation."""
    render_scale = (font_size / (NOMINAL_FONT_SIZE * sdf_scale[0]), font_size / (NOMINAL_FONT_SIZE * sdf_scale[1]))
    origin_scale = font_size / NOMINAL_FONT_SIZE
    width, height = info.tex_coords.size

    rect = Rect(0.0, 0.0, width * scale, height * scale)
    tx = sdf_padding[0]
    ty = abs(info.origin_offset[1]) + sdf_padding[1]
    dx = scale * sdf_scale[0] * -tx + scale * origin_scale * info.origin_offset[0]
    dy = -rect.height + scale * sdf_scale[1] * ty
    return rect.offset(dx, dy).scale(render_scale[0], render_scale[1])


def _clip(placement: CharPlacement, clip: Rect, options: DrawOptions) -> Optional[CharPlacement]:
    dst = placement.dst_rect
    src = placement.src_tex_coords
    x1, y1, x2, y2 = dst.to_tuple()
    if options.clip_horizontal:
        x1 = max(dst.x1, clip.x1)
        x2 = min(dst.x2, clip.x2)
    if options.clip_vertical:
        y1 = max(dst.y1, clip.y1)
        y2 = min(dst.y2, clip.y2)
    clipped = Rect(x1, y1, x2, y2)
    if clipped.is_empty:
        return None

    coord_scale_x = src.width / dst.width
    coord_scale_y = src.height / dst.height
    u1 = src.x1 + (clipped.x1 - dst.x1) * coord_scale_x
    v1 = src.y1 + (clipped.y1 - dst.y1) * coord_scale_y
    src = Rect(u1, v1, u1 + clipped.width * coord_scale_x, v1 + clipped.height * coord_scale_y)
    return CharPlacement(placement.glyph, src, clipped)


def place_chars(
    # pylint: disable=too-many-arguments,too-many-positional-arguments
    atlas: TextureAtlas,
    font_size: float,
    glyph_measures: Sequence[GlyphMeasure],
    baseline: Vec2,
    options: Optional[DrawOptions] = None,
    clip: Optional[Rect] = None,
) -> List[TexturePlacements]:
    """
    Resolve glyph measures to quads grouped by atlas texture.

    Glyphs without atlas entry are skipped. With pixel snapping the baseline is
    floored. With a clip rect quads are cut at its edges (per the clip flags of
    the options), source coordinates shrink proportionally and fully clipped
    glyphs are dropped.

    Args:
        atlas: The atlas holding the glyphs.
        font_size: Point size to render at.
        glyph_measures: (glyph, pen position) pairs from the layout.
        baseline: Pen origin of the first line.
        options: Draw options, defaults if None.
        clip: Optional clip rectangle in screen space.

    Returns:
        List of (texture index, placements), only textures with at least one glyph.
    """
    options = options or DrawOptions()
    scale = options.scale
    if options.pixel_snap:
        baseline = (math.floor(baseline[0]), math.floor(baseline[1]))

    result: List[TexturePlacements] = []
    for texture_index in range(atlas.texture_count):
        placements: List[CharPlacement] = []
        for glyph, position in glyph_measures:
            info = atlas.info(glyph)
            if info is None or info.texture_index != texture_index:
                continue
            src = atlas.area_tex_coords(texture_index, info.tex_coords)
            dst = _glyph_rect(info, atlas.sdf_scale, atlas.sdf_padding, font_size, scale)
            dst = dst.offset(position[0] * scale + baseline[0], position[1] * scale + baseline[1])
            placement: Optional[CharPlacement] = CharPlacement(glyph, src, dst)
            if clip is not None:
                placement = _clip(placement, clip, options)  # type: ignore[arg-type]
                if placement is None:
                    continue
            placements.append(placement)  # type: ignore[arg-type]
        if placements:
            result.append((texture_index, placements))
    return result


def measure_bounds(
    atlas: TextureAtlas,
    font_size: float,
    glyph_measures: Sequence[GlyphMeasure],
    options: Optional[DrawOptions] = None,
) -> Rect:
    """
    Visual bounds of laid out glyphs relative to the baseline.

    Each glyph contributes its outline box (not its padded cell) widened by one
    pixel at the nominal size. An empty measure list gives Rect(0, 0, 0, 0).
    """
    options = options or DrawOptions()
    scale = options.scale
    origin_scale = font_size / NOMINAL_FONT_SIZE
    pad_x, pad_y = atlas.sdf_padding

    result: Optional[Rect] = None
    for glyph, position in glyph_measures:
        info = atlas.info(glyph)
        if info is None:
            continue
        dst = _glyph_rect(info, atlas.sdf_scale, atlas.sdf_padding, font_size, scale)
        dst = dst.offset(position[0] * scale, position[1] * scale)

        x1 = dst.x1 + (pad_x + info.origin_offset[0]) * origin_scale
        y2 = dst.y2 - pad_y * origin_scale
        x2 = x1 + (info.size[0] + 1.0) * origin_scale
        y1 = y2 - (info.size[1] + 1.0) * origin_scale
        half = 0.5 * origin_scale
        bounds = Rect(x1 - half, y1 - half, x2 + half, y2 + half)
        result = bounds if result is None else result.include(bounds)
    return result if result is not None else Rect()
