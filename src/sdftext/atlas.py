"""Texture atlas generation: glyph distance fields packed into fixed size textures.

All glyphs of an atlas share one cell size, derived from the largest glyph.
Cells are assigned in input order, row-major, spilling into further textures
once a texture is full. The layout only depends on (font, format, glyph ids).
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from sdftext.common import IVec2, Vec2
from sdftext.distance_field import DistanceFieldGenerator, ShapelyDistanceFieldGenerator, invert_bitmap
from sdftext.errors import GlyphOutlineError
from sdftext.fonttools import extract_outline
from sdftext.geom import Rect
from sdftext.image import float_to_rgb8, new_texture, validate_texture
from sdftext.shape import Shape

if TYPE_CHECKING:
    from sdftext.font import Font

logger = logging.getLogger(__name__)

CellLayout = List[Tuple[int, IVec2]]  # (glyph, (x, y)) per texture


###############################################################################
# Format
###############################################################################
@dataclass(frozen=True)
class Format:
    """
    Atlas generation parameters.

    Two atlases are interchangeable only if all fields and the character set match.

    Attributes:
        texture_width: Width of every atlas texture in pixels.
        texture_height: Height of every atlas texture in pixels.
        sdf_scale: Scale of the distance field relative to the nominal size 32.
        sdf_padding: Empty border around each glyph in outline units.
        sdf_range: Distance range of the field in outline units.
        sdf_angle: Edge coloring corner threshold in radians.
        tile_spacing: Gap between atlas cells in pixels.
    """

    texture_width: int = 1024
    texture_height: int = 1024
    sdf_scale: Vec2 = (2.0, 2.0)
    sdf_padding: IVec2 = (2, 2)
    sdf_range: float = 4.0
    sdf_angle: float = 3.0
    tile_spacing: IVec2 = (1, 1)

    def __post_init__(self) -> None:
        if self.texture_width <= 0 or self.texture_height <= 0:
            raise ValueError(f"Texture size must be positive, got {self.texture_width}x{self.texture_height}")
        if self.sdf_scale[0] <= 0 or self.sdf_scale[1] <= 0:
            raise ValueError(f"SDF scale must be positive, got {self.sdf_scale}")
        if self.sdf_padding[0] < 0 or self.sdf_padding[1] < 0:
            raise ValueError(f"SDF padding must not be negative, got {self.sdf_padding}")
        if self.tile_spacing[0] < 0 or self.tile_spacing[1] < 0:
            raise ValueError(f"Tile spacing must not be negative, got {self.tile_spacing}")
        if self.sdf_range <= 0:
            raise ValueError(f"SDF range must be positive, got {self.sdf_range}")

    @property
    def texture_size(self) -> IVec2:
        """Tuple (texture_width, texture_height)."""
        return self.texture_width, self.texture_height

    def with_texture_size(self, width: int, height: int) -> Format:
        """Return a copy with a different texture size."""
        return dataclasses.replace(self, texture_width=width, texture_height=height)

    def with_sdf_scale(self, sx: float, sy: Optional[float] = None) -> Format:
        """Return a copy with a different distance field scale."""
        return dataclasses.replace(self, sdf_scale=(float(sx), float(sx if sy is None else sy)))

    def with_sdf_padding(self, px: int, py: Optional[int] = None) -> Format:
        """Return a copy with a different padding."""
        return dataclasses.replace(self, sdf_padding=(int(px), int(px if py is None else py)))

    def with_sdf_range(self, value: float) -> Format:
        """Return a copy with a different distance range."""
        return dataclasses.replace(self, sdf_range=float(value))

    def with_sdf_angle(self, value: float) -> Format:
        """Return a copy with a different edge coloring angle."""
        return dataclasses.replace(self, sdf_angle=float(value))

    def with_tile_spacing(self, sx: int, sy: Optional[int] = None) -> Format:
        """Return a copy with a different tile spacing."""
        return dataclasses.replace(self, tile_spacing=(int(sx), int(sx if sy is None else sy)))

    @classmethod
    def from_dict(cls, data: dict) -> Format:
        """Create a Format from a dictionary, missing keys take the defaults."""
        defaults = cls()
        return cls(
            texture_width=int(data.get("texture_width", defaults.texture_width)),
            texture_height=int(data.get("texture_height", defaults.texture_height)),
            sdf_scale=tuple(data.get("sdf_scale", defaults.sdf_scale)),  # type: ignore[arg-type]
            sdf_padding=tuple(data.get("sdf_padding", defaults.sdf_padding)),  # type: ignore[arg-type]
            sdf_range=float(data.get("sdf_range", defaults.sdf_range)),
            sdf_angle=float(data.get("sdf_angle", defaults.sdf_angle)),
            tile_spacing=tuple(data.get("tile_spacing", defaults.tile_spacing)),  # type: ignore[arg-type]
        )

    def to_dict(self) -> dict:
        """Convert the Format to a dictionary."""
        return {
            "texture_width": self.texture_width,
            "texture_height": self.texture_height,
            "sdf_scale": list(self.sdf_scale),
            "sdf_padding": list(self.sdf_padding),
            "sdf_range": self.sdf_range,
            "sdf_angle": self.sdf_angle,
            "tile_spacing": list(self.tile_spacing),
        }


###############################################################################
# GlyphInfo
###############################################################################
@dataclass(frozen=True)
class GlyphInfo:
    """
    Placement of one glyph inside the atlas.

    Attributes:
        texture_index: Index of the texture holding the glyph.
        tex_coords: Cell rectangle in texture pixels.
        origin_offset: Lower-left corner of the glyph bounds relative to its origin (outline units).
        size: Width and height of the glyph bounds (outline units).
    """

    texture_index: int
    tex_coords: Rect
    origin_offset: Vec2
    size: Vec2

    def to_dict(self) -> dict:
        """Convert the GlyphInfo to a dictionary."""
        return {
            "texture_index": self.texture_index,
            "tex_coords": self.tex_coords.to_dict(),
            "origin_offset": list(self.origin_offset),
            "size": list(self.size),
        }


###############################################################################
# Packing helpers
###############################################################################
def calculate_sdf_bitmap_size(sdf_scale: Vec2, sdf_padding: Sequence[float], max_glyph_size: Vec2) -> IVec2:
    """Cell size shared by all glyphs: scale * (max glyph size + 2 * padding), rounded."""
    return (
        int(sdf_scale[0] * (max_glyph_size[0] + 2.0 * sdf_padding[0]) + 0.5),
        int(sdf_scale[1] * (max_glyph_size[1] + 2.0 * sdf_padding[1]) + 0.5),
    )


def grid_layout(glyph_ids: Sequence[int], bitmap_size: IVec2, texture_size: IVec2, tile_spacing: IVec2) -> List[CellLayout]:
    """
    Assign glyphs to grid cells in input order, row-major, one list per texture.

    Raises:
        ValueError: If not even a single cell fits into a texture.
    """
    columns = texture_size[0] // (bitmap_size[0] + tile_spacing[0])
    rows = texture_size[1] // (bitmap_size[1] + tile_spacing[1])
    per_texture = columns * rows
    if per_texture == 0:
        raise ValueError(f"Glyph cell {bitmap_size} plus spacing {tile_spacing} does not fit texture {texture_size}")

    layouts: List[CellLayout] = []
    current: CellLayout = []
    x = y = 0
    for count, glyph in enumerate(glyph_ids, start=1):
        current.append((glyph, (x, y)))
        x += bitmap_size[0] + tile_spacing[0]
        if len(current) % columns == 0:
            x = 0
            y += bitmap_size[1] + tile_spacing[1]
        if len(current) == per_texture or count == len(glyph_ids):
            layouts.append(current)
            current = []
            x = y = 0
    return layouts


def _unique(glyph_ids: Iterable[int]) -> List[int]:
    seen = set()
    result = []
    for glyph in glyph_ids:
        if glyph not in seen:
            seen.add(glyph)
            result.append(glyph)
    return result


def load_shapes(font: Font, glyph_ids: Iterable[int]) -> Dict[int, Shape]:
    """Extract the outlines of `glyph_ids`, glyphs that fail are logged and left out."""
    shapes: Dict[int, Shape] = {}
    for glyph in glyph_ids:
        try:
            shapes[glyph] = extract_outline(font.ttfont, glyph)
        except GlyphOutlineError as err:
            logger.warning("Skipping glyph %d of '%s': %s", glyph, font.name, err)
    return shapes


def max_glyph_size(shapes: Iterable[Shape]) -> Vec2:
    """Largest width and height over the bounds of `shapes`."""
    max_w = max_h = 0.0
    for shape in shapes:
        left, bottom, right, top = shape.bounds()
        max_w = max(max_w, right - left)
        max_h = max(max_h, top - bottom)
    return max_w, max_h


###############################################################################
# TextureAtlas
###############################################################################
class TextureAtlas:
    """
    The atlas textures plus the placement of every glyph and the parameters used to build them.

    Instances are immutable once built and shared between all text objects using
    the same (font, format, character set).
    """

    def __init__(
        # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        textures: Sequence[NDArray[np.uint8]],
        glyph_info: Dict[int, GlyphInfo],
        sdf_scale: Vec2,
        sdf_padding: Vec2,
        sdf_bitmap_size: IVec2,
        max_glyph_size: Vec2 = (0.0, 0.0),  # pylint: disable=redefined-outer-name
        max_ascent: float = 0.0,
        max_descent: float = 0.0,
    ):
        for texture in textures:
            validate_texture(texture)
            texture.flags.writeable = False
        self._textures: Tuple[NDArray[np.uint8], ...] = tuple(textures)
        self._glyph_info = dict(glyph_info)
        self._sdf_scale = (float(sdf_scale[0]), float(sdf_scale[1]))
        self._sdf_padding = (float(sdf_padding[0]), float(sdf_padding[1]))
        self._sdf_bitmap_size = (int(sdf_bitmap_size[0]), int(sdf_bitmap_size[1]))
        self._max_glyph_size = (float(max_glyph_size[0]), float(max_glyph_size[1]))
        self._max_ascent = float(max_ascent)
        self._max_descent = float(max_descent)

    @classmethod
    def build(
        # pylint: disable=too-many-locals
        cls,
        font: Font,
        format: Format,  # pylint: disable=redefined-builtin
        glyph_ids: Sequence[int],
        generator: Optional[DistanceFieldGenerator] = None,
    ) -> TextureAtlas:
        """
        Render the distance fields of `glyph_ids` into atlas textures.

        Glyphs whose outline cannot be extracted keep their cell but get no
        GlyphInfo. Fonts whose winding differs from the generator's expectation
        get every channel inverted, except for glyphs without contours.
        """
        generator = generator or ShapelyDistanceFieldGenerator()
        glyph_ids = _unique(glyph_ids)
        invert = font.winding != generator.expected_winding

        shapes = load_shapes(font, glyph_ids)
        origin_offsets: Dict[int, Vec2] = {}
        sizes: Dict[int, Vec2] = {}
        max_ascent = 0.0
        max_descent = 0.0
        for glyph, shape in shapes.items():
            left, bottom, right, top = shape.bounds()
            origin_offsets[glyph] = (left, bottom)
            sizes[glyph] = (right - left, top - bottom)
            max_ascent = max(max_ascent, top)
            max_descent = max(max_descent, abs(bottom))
        glyph_size = max_glyph_size(shapes.values())

        bitmap_size = calculate_sdf_bitmap_size(format.sdf_scale, format.sdf_padding, glyph_size)
        layouts = grid_layout(glyph_ids, bitmap_size, format.texture_size, format.tile_spacing)
        logger.debug(
            "Atlas for '%s': %d glyphs, cell %dx%d, %d texture(s), invert=%s",
            font.name,
            len(glyph_ids),
            bitmap_size[0],
            bitmap_size[1],
            len(layouts),
            invert,
        )

        width, height = bitmap_size
        textures: List[NDArray[np.uint8]] = []
        glyph_info: Dict[int, GlyphInfo] = {}
        for texture_index, cells in enumerate(layouts):
            surface = new_texture(format.texture_width, format.texture_height)
            for glyph, (x, y) in cells:
                shape = shapes.get(glyph)
                if shape is None:
                    continue
                shape.inverse_y_axis = True
                shape.normalize()
                generator.color_edges(shape, format.sdf_angle)

                origin_offset = origin_offsets[glyph]
                tx = float(format.sdf_padding[0])
                ty = abs(origin_offset[1]) + format.sdf_padding[1]
                bitmap = generator.generate(shape, width, height, format.sdf_range, format.sdf_scale, (tx, ty))
                if invert and shape.contours:
                    bitmap = invert_bitmap(bitmap)

                surface[y : y + height, x : x + width] = float_to_rgb8(bitmap)
                glyph_info[glyph] = GlyphInfo(
                    texture_index=texture_index,
                    tex_coords=Rect(x, y, x + width, y + height),
                    origin_offset=origin_offset,
                    size=sizes[glyph],
                )
            textures.append(surface)

        return cls(
            textures,
            glyph_info,
            sdf_scale=format.sdf_scale,
            sdf_padding=(float(format.sdf_padding[0]), float(format.sdf_padding[1])),
            sdf_bitmap_size=bitmap_size,
            max_glyph_size=glyph_size,
            max_ascent=max_ascent,
            max_descent=max_descent,
        )

    # Properties ------------------------------------------------------------------
    @property
    def textures(self) -> Tuple[NDArray[np.uint8], ...]:
        """The atlas textures, read-only (height, width, 3) uint8 arrays."""
        return self._textures

    @property
    def texture_count(self) -> int:
        """Number of textures."""
        return len(self._textures)

    @property
    def glyph_info(self) -> Dict[int, GlyphInfo]:
        """Glyph placements, a copy."""
        return dict(self._glyph_info)

    @property
    def sdf_scale(self) -> Vec2:
        """Distance field scale used for generation."""
        return self._sdf_scale

    @property
    def sdf_padding(self) -> Vec2:
        """Padding used for generation (outline units)."""
        return self._sdf_padding

    @property
    def sdf_bitmap_size(self) -> IVec2:
        """Cell size in pixels."""
        return self._sdf_bitmap_size

    @property
    def max_glyph_size(self) -> Vec2:
        """Largest glyph width and height (outline units)."""
        return self._max_glyph_size

    @property
    def max_ascent(self) -> float:
        """Highest glyph top (outline units)."""
        return self._max_ascent

    @property
    def max_descent(self) -> float:
        """Deepest glyph bottom as positive value (outline units)."""
        return self._max_descent

    # Queries ---------------------------------------------------------------------
    def info(self, glyph: int) -> Optional[GlyphInfo]:
        """GlyphInfo of `glyph` or None if the glyph is not renderable."""
        return self._glyph_info.get(glyph)

    def texture(self, index: int) -> NDArray[np.uint8]:
        """Texture number `index`."""
        return self._textures[index]

    def texture_size(self, index: int) -> IVec2:
        """Tuple (width, height) of texture `index`."""
        texture = self._textures[index]
        return texture.shape[1], texture.shape[0]

    def area_tex_coords(self, index: int, area: Rect) -> Rect:
        """Normalize a pixel rectangle of texture `index` to [0, 1] (origin top-left)."""
        width, height = self.texture_size(index)
        return Rect(area.x1 / width, area.y1 / height, area.x2 / width, area.y2 / height)

    def validate(self) -> None:
        """Check the GlyphInfo invariants.

        Raises:
            ValueError: If a texture index is out of range or a cell leaves its texture.
        """
        for glyph, info in self._glyph_info.items():
            if not 0 <= info.texture_index < len(self._textures):
                raise ValueError(f"Glyph {glyph} refers to missing texture {info.texture_index}")
            width, height = self.texture_size(info.texture_index)
            if not Rect(0, 0, width, height).contains(info.tex_coords):
                raise ValueError(f"Glyph {glyph} cell {info.tex_coords} exceeds texture {width}x{height}")

    def __repr__(self) -> str:
        return (
            f"TextureAtlas({len(self._glyph_info)} glyphs, {len(self._textures)} textures, "
            f"cell {self._sdf_bitmap_size[0]}x{self._sdf_bitmap_size[1]})"
        )
