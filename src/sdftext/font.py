"""Font handle: a fontTools face at a given point size plus its normalized metrics."""

from __future__ import annotations

import io
import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple, Union

from fontTools.pens.boundsPen import BoundsPen
from fontTools.ttLib import TTFont, TTLibError

from sdftext.common import FIXED_POINT_SCALE, OUTLINE_UNITS_PER_EM, Vec2, to_text
from sdftext.errors import FaceLoadError
from sdftext.fonttools import Winding, detect_winding

if TYPE_CHECKING:
    from sdftext.catalog import FontCatalog

logger = logging.getLogger(__name__)

_LOAD_ERRORS = (TTLibError, OSError, struct.error, ValueError, KeyError, AssertionError)


###############################################################################
# GlyphMetrics
###############################################################################
@dataclass(frozen=True)
class GlyphMetrics:
    """
    Per glyph layout metrics in pixels at the font size.

    Attributes:
        advance: Pen movement (x, y) after the glyph.
        minimum: Lower-left corner (x, y) of the glyph's bounding box.
        maximum: Upper-right corner (x, y) of the glyph's bounding box.
    """

    advance: Vec2 = (0.0, 0.0)
    minimum: Vec2 = (0.0, 0.0)
    maximum: Vec2 = (0.0, 0.0)

    def scaled(self, factor: float) -> GlyphMetrics:
        """Return a copy with all vectors multiplied by `factor`."""
        return GlyphMetrics(
            advance=(self.advance[0] * factor, self.advance[1] * factor),
            minimum=(self.minimum[0] * factor, self.minimum[1] * factor),
            maximum=(self.maximum[0] * factor, self.maximum[1] * factor),
        )

    def to_dict(self) -> dict:
        """Convert the GlyphMetrics to a dictionary."""
        return {"advance": list(self.advance), "minimum": list(self.minimum), "maximum": list(self.maximum)}


###############################################################################
# FontInfo
###############################################################################
@dataclass(frozen=True)
class FontInfo:
    """
    Font metadata needed for layout. This is all that survives in a cache file.

    The vertical metrics are measured in pixels at the nominal size 32.
    """

    name: str
    size: float
    leading: float
    height: float
    ascent: float
    descent: float

    def with_size(self, size: float) -> FontInfo:
        """Return a copy with a different point size."""
        return FontInfo(self.name, size, self.leading, self.height, self.ascent, self.descent)

    def to_dict(self) -> dict:
        """Convert the FontInfo to a dictionary."""
        return {
            "name": self.name,
            "size": self.size,
            "leading": self.leading,
            "height": self.height,
            "ascent": self.ascent,
            "descent": self.descent,
        }


###############################################################################
# Font
###############################################################################
class Font:
    """
    A font face at a given point size.

    Vertical metrics follow the rasterizer convention: face values in font units
    are converted with `2048 / unitsPerEm / 64`, which yields pixels at the
    nominal size 32 independent of the requested size.
    """

    _ttfont: TTFont
    _size: float
    _name: str

    def __init__(self, ttfont: TTFont, size: float, name: str = ""):
        """Initialize the Font.

        Args:
            ttfont: The loaded face.
            size: Point size, must be > 0.
            name: Display name. Derived from the name table if empty.
        """
        if size <= 0:
            raise ValueError(f"Font size must be > 0, got {size}")
        self._ttfont = ttfont
        self._size = float(size)
        try:
            self._units_per_em = float(ttfont["head"].unitsPerEm)
            self._cmap = ttfont.getBestCmap() or {}
            ascender, descender, line_gap = self._face_metrics(ttfont)
        except _LOAD_ERRORS as err:
            raise FaceLoadError(f"Font face is missing required tables: {err}") from err
        if self._units_per_em <= 0:
            raise FaceLoadError(f"Invalid unitsPerEm {self._units_per_em}")
        self._ascender = ascender
        self._descender = descender
        self._line_gap = line_gap
        self._family_name = self._get_name_safe(ttfont, 1)
        self._style_name = self._get_name_safe(ttfont, 2)
        self._name = name or self._full_name(ttfont)
        self._winding = detect_winding(ttfont)

    @classmethod
    def from_file(cls, path: Union[str, Path], size: float, font_number: int = 0) -> Font:
        """Load a font file (TTF, OTF or collection member).

        Raises:
            FaceLoadError: If the file is missing or not a font.
        """
        try:
            ttfont = TTFont(str(path), fontNumber=font_number)
        except _LOAD_ERRORS as err:
            raise FaceLoadError(f"Cannot load font file '{path}': {err}") from err
        logger.debug("Loaded font file %s", path)
        return cls(ttfont, size)

    @classmethod
    def from_bytes(cls, data: bytes, size: float, name: str = "", font_number: int = 0) -> Font:
        """Load a font from raw bytes.

        Raises:
            FaceLoadError: If the bytes are empty or not a font.
        """
        if not data:
            raise FaceLoadError("Font data is empty")
        try:
            ttfont = TTFont(io.BytesIO(data), fontNumber=font_number)
        except _LOAD_ERRORS as err:
            raise FaceLoadError(f"Cannot load font from data: {err}") from err
        return cls(ttfont, size, name)

    @classmethod
    def from_name(cls, name: str, size: float, catalog: FontCatalog) -> Font:
        """Resolve `name` through a font catalog and load the matching file.

        Raises:
            FontNotFoundError: If no installed font matches.
            FaceLoadError: If the matched file cannot be loaded.
        """
        entry = catalog.resolve(name)
        logger.info("Font name '%s' resolved to '%s' (%s)", name, entry.name, entry.path)
        return cls.from_file(entry.path, size)

    # Names ---------------------------------------------------------------------
    @staticmethod
    def _get_name_safe(ttfont: TTFont, name_id: int) -> str:
        """
        Extract a name string with multiple fallbacks.
        """
        if "name" not in ttfont:
            return ""
        name_table = ttfont["name"]
        name = name_table.getDebugName(name_id)
        if name is not None:
            return name
        for record in name_table.names:
            if record.nameID == name_id:
                try:
                    return record.toUnicode()
                except (UnicodeDecodeError, ValueError, AttributeError):
                    continue
        return ""

    @classmethod
    def _full_name(cls, ttfont: TTFont) -> str:
        full_name = cls._get_name_safe(ttfont, 4)
        if full_name:
            return full_name
        family_name = cls._get_name_safe(ttfont, 1)
        style_name = cls._get_name_safe(ttfont, 2)
        if not family_name:
            return "(Unknown)"
        if style_name:
            return f"{family_name} {style_name}"
        return family_name

    @staticmethod
    def _face_metrics(ttfont: TTFont) -> Tuple[float, float, float]:
        """(ascender, descender, line_gap) in font units, hhea first then OS/2 typo values."""
        if "hhea" in ttfont:
            hhea = ttfont["hhea"]
            if hhea.ascent != 0 or hhea.descent != 0:
                return float(hhea.ascent), float(hhea.descent), float(hhea.lineGap)
        if "OS/2" in ttfont:
            os2 = ttfont["OS/2"]
            return float(os2.sTypoAscender), float(os2.sTypoDescender), float(os2.sTypoLineGap)
        head = ttfont["head"]
        return float(head.yMax), float(head.yMin), 0.0

    # Properties ------------------------------------------------------------------
    @property
    def ttfont(self) -> TTFont:
        """The underlying fontTools face."""
        return self._ttfont

    @property
    def name(self) -> str:
        """Full font name."""
        return self._name

    @property
    def family_name(self) -> str:
        """Family name (name ID 1)."""
        return self._family_name

    @property
    def style_name(self) -> str:
        """Style name (name ID 2)."""
        return self._style_name

    @property
    def size(self) -> float:
        """Point size."""
        return self._size

    @property
    def units_per_em(self) -> float:
        """Font units per em."""
        return self._units_per_em

    @property
    def winding(self) -> Winding:
        """Winding convention of the outlines."""
        return self._winding

    @property
    def _glyph_scale(self) -> float:
        return OUTLINE_UNITS_PER_EM / self._units_per_em

    @property
    def _face_height(self) -> float:
        return self._ascender - self._descender + self._line_gap

    @property
    def height(self) -> float:
        """Line height in pixels at the nominal size."""
        return self._glyph_scale * (self._face_height / FIXED_POINT_SCALE)

    @property
    def leading(self) -> float:
        """Line gap in pixels at the nominal size."""
        extent = abs(self._ascender) + abs(self._descender)
        return self._glyph_scale * (self._face_height - extent) / FIXED_POINT_SCALE

    @property
    def ascent(self) -> float:
        """Ascent in pixels at the nominal size (positive)."""
        return self._glyph_scale * abs(self._ascender / FIXED_POINT_SCALE)

    @property
    def descent(self) -> float:
        """Descent in pixels at the nominal size (positive)."""
        return self._glyph_scale * abs(self._descender / FIXED_POINT_SCALE)

    @property
    def info(self) -> FontInfo:
        """The layout relevant metadata as FontInfo."""
        return FontInfo(self._name, self._size, self.leading, self.height, self.ascent, self.descent)

    # Glyphs ----------------------------------------------------------------------
    @property
    def glyph_count(self) -> int:
        """Number of glyphs in the face."""
        return len(self._ttfont.getGlyphOrder())

    def has_glyph(self, char: str) -> bool:
        """True if the character map has an entry for `char`."""
        return ord(char) in self._cmap

    def glyph_index(self, char: str) -> int:
        """Glyph id of `char`, 0 (.notdef) if the font does not map it."""
        glyph_name = self._cmap.get(ord(char))
        if glyph_name is None:
            return 0
        return self._ttfont.getGlyphID(glyph_name)

    def glyphs(self, chars: Union[str, bytes]) -> List[int]:
        """Glyph ids for every character of `chars` (duplicates kept)."""
        return [self.glyph_index(char) for char in to_text(chars)]

    def glyph_metrics(self, glyph_id: int) -> GlyphMetrics:
        """Advance and bounding box of a glyph in pixels at the font size."""
        glyph_name = self._ttfont.getGlyphName(glyph_id)
        scale = self._size / self._units_per_em
        advance_x = 0.0
        if glyph_name in self._ttfont["hmtx"].metrics:
            advance_x = float(self._ttfont["hmtx"][glyph_name][0])
        if "vmtx" in self._ttfont and glyph_name in self._ttfont["vmtx"].metrics:
            advance_y = float(self._ttfont["vmtx"][glyph_name][0])
        else:
            advance_y = self._face_height

        glyph_set = self._ttfont.getGlyphSet()
        bounds: Optional[Tuple[float, float, float, float]] = None
        if glyph_name in glyph_set:
            pen = BoundsPen(glyph_set)
            glyph_set[glyph_name].draw(pen)
            bounds = pen.bounds
        if bounds is None:
            bounds = (0.0, 0.0, 0.0, 0.0)
        x_min, y_min, x_max, y_max = bounds
        return GlyphMetrics(
            advance=(advance_x * scale, advance_y * scale),
            minimum=(x_min * scale, y_min * scale),
            maximum=(x_max * scale, y_max * scale),
        )

    def __repr__(self) -> str:
        return f"Font({self._name}, {self._size:g}pt, {self._units_per_em:g}upem)"
