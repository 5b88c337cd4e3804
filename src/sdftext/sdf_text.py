"""SdfText: a font's glyph atlas plus the cached metrics needed to lay out and place text."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from sdftext import codec
from sdftext.atlas import Format, TextureAtlas
from sdftext.common import DEFAULT_CHARS, GROW, Glyph, TextInput, Vec2, to_text
from sdftext.font import Font, FontInfo, GlyphMetrics
from sdftext.geom import Rect
from sdftext.layout import GlyphMeasure, TextBox
from sdftext.options import DrawOptions
from sdftext.placement import TexturePlacements, measure_bounds, place_chars
from sdftext.registry import AtlasRegistry

logger = logging.getLogger(__name__)


class SdfText:
    """
    Text object of one font at one size.

    Holds the atlas (shared through an AtlasRegistry), the character to glyph
    map and the glyph metrics at the font size. Layout and measurement only use
    these cached values, so an object loaded from a cache file behaves like a
    freshly created one even though it has no font face.
    """

    def __init__(
        # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        font_info: FontInfo,
        format: Format,  # pylint: disable=redefined-builtin
        atlas: TextureAtlas,
        char_to_glyph: Dict[int, Glyph],
        glyph_metrics: Dict[Glyph, GlyphMetrics],
        font: Optional[Font] = None,
    ):
        self._font_info = font_info
        self._format = format
        self._atlas = atlas
        self._char_to_glyph = dict(char_to_glyph)
        self._glyph_to_char = {glyph: code_point for code_point, glyph in sorted(char_to_glyph.items(), reverse=True)}
        self._glyph_metrics = dict(glyph_metrics)
        self._font = font

    # Construction ----------------------------------------------------------------
    @classmethod
    def create(
        cls,
        font: Font,
        format: Optional[Format] = None,  # pylint: disable=redefined-builtin
        chars: TextInput = DEFAULT_CHARS,
        registry: Optional[AtlasRegistry] = None,
    ) -> SdfText:
        """
        Create a text object, building the atlas unless the registry already has it.

        A space is added to the character set if missing. Characters the font
        does not map are left out of the character map.

        Args:
            font: Font to take glyphs and metrics from.
            format: Atlas parameters, defaults if None.
            chars: Character set to support.
            registry: Atlas registry to share atlases through. A private one if None.
        """
        format = format or Format()
        registry = registry if registry is not None else AtlasRegistry()
        text = to_text(chars)
        supported = text if " " in text else text + " "

        char_to_glyph: Dict[int, Glyph] = {}
        glyph_ids: List[Glyph] = []
        for char in supported:
            if not font.has_glyph(char):
                logger.debug("Font '%s' has no glyph for %r", font.name, char)
                continue
            glyph = font.glyph_index(char)
            char_to_glyph[ord(char)] = glyph
            if glyph not in glyph_ids:
                glyph_ids.append(glyph)

        atlas = registry.get(font, format, text, glyph_ids)
        glyph_metrics = {glyph: font.glyph_metrics(glyph) for glyph in glyph_ids}
        return cls(font.info, format, atlas, char_to_glyph, glyph_metrics, font)

    @classmethod
    def create_cached(
        # pylint: disable=too-many-arguments,too-many-positional-arguments
        cls,
        path: Union[str, Path],
        font: Font,
        format: Optional[Format] = None,  # pylint: disable=redefined-builtin
        chars: TextInput = DEFAULT_CHARS,
        registry: Optional[AtlasRegistry] = None,
    ) -> SdfText:
        """
        Load a text object from `path` or create and save it there first.

        The result is always the loaded object, so the first and all later runs
        see identical data.
        """
        path = Path(path)
        if not path.exists():
            logger.info("No cache at %s, generating atlas for '%s'", path, font.name)
            cls.create(font, format, chars, registry).save(path)
        return cls.load(path, font.size)

    def save(self, target: codec.Target) -> None:
        """Write the text object to a path or binary stream."""
        codec.save(self, target)

    @classmethod
    def load(cls, source: codec.Target, size: Optional[float] = None) -> SdfText:
        """
        Load a text object from a path or binary stream.

        Args:
            source: Path or binary stream.
            size: Size to load at, None keeps the stored size.

        Raises:
            UnsupportedRescaleError: If `size` is <= 0.
            MalformedCacheFileError: If the data is not a valid cache file.
        """
        contents = codec.load(source, size)
        return cls(
            contents.font_info,
            contents.format,
            contents.atlas,
            contents.char_to_glyph,
            contents.glyph_metrics,
        )

    # Queries ---------------------------------------------------------------------
    @property
    def font(self) -> Optional[Font]:
        """The font face, None for loaded objects."""
        return self._font

    @property
    def font_info(self) -> FontInfo:
        return self._font_info

    @property
    def name(self) -> str:
        return self._font_info.name

    @property
    def font_size(self) -> float:
        return self._font_info.size

    @property
    def ascent(self) -> float:
        return self._font_info.ascent

    @property
    def descent(self) -> float:
        return self._font_info.descent

    @property
    def leading(self) -> float:
        return self._font_info.leading

    @property
    def height(self) -> float:
        return self._font_info.height

    @property
    def format(self) -> Format:
        return self._format

    @property
    def atlas(self) -> TextureAtlas:
        return self._atlas

    @property
    def glyph_metrics(self) -> Dict[Glyph, GlyphMetrics]:
        """Glyph metrics at the font size. Shared, do not modify."""
        return self._glyph_metrics

    @property
    def char_to_glyph(self) -> Dict[int, Glyph]:
        """Code point to glyph map. Shared, do not modify."""
        return self._char_to_glyph

    @property
    def glyph_to_char(self) -> Dict[Glyph, int]:
        """Glyph to code point, the lowest code point wins for shared glyphs."""
        return self._glyph_to_char

    @property
    def texture_count(self) -> int:
        return self._atlas.texture_count

    def texture(self, index: int) -> NDArray[np.uint8]:
        return self._atlas.texture(index)

    def supports(self, char: str) -> bool:
        """True if `char` has a glyph in the character map."""
        return ord(char) in self._char_to_glyph

    # Layout ----------------------------------------------------------------------
    def _measure(self, text: TextInput, width: int, height: int, options: Optional[DrawOptions]) -> List[GlyphMeasure]:
        return TextBox(self, text, (width, height)).measure_glyphs(options)

    def glyph_placements(self, text: TextInput, options: Optional[DrawOptions] = None) -> List[GlyphMeasure]:
        """Pen positions of `text` on unconstrained lines."""
        return self._measure(text, GROW, GROW, options)

    def glyph_placements_fit(
        self, text: TextInput, fit_rect: Rect, options: Optional[DrawOptions] = None
    ) -> List[GlyphMeasure]:
        """Pen positions of `text` with the height of `fit_rect`, lines are not wrapped."""
        return self._measure(text, GROW, int(fit_rect.height), options)

    def glyph_placements_wrapped(
        self, text: TextInput, fit_rect: Rect, options: Optional[DrawOptions] = None
    ) -> List[GlyphMeasure]:
        """Pen positions of `text` wrapped to the width of `fit_rect`."""
        return self._measure(text, int(fit_rect.width), int(fit_rect.height), options)

    # Placement -------------------------------------------------------------------
    def place_chars(
        self,
        glyph_measures: List[GlyphMeasure],
        baseline: Vec2,
        options: Optional[DrawOptions] = None,
        clip: Optional[Rect] = None,
    ) -> List[TexturePlacements]:
        """Quads of already measured glyphs, see `placement.place_chars`."""
        return place_chars(self._atlas, self.font_size, glyph_measures, baseline, options, clip)

    def place_string(
        self, text: TextInput, baseline: Vec2, options: Optional[DrawOptions] = None
    ) -> List[TexturePlacements]:
        """Lay out `text` unconstrained and place it at `baseline`."""
        return self.place_chars(self.glyph_placements(text, options), baseline, options)

    def place_string_fit(
        self, text: TextInput, fit_rect: Rect, offset: Vec2 = (0.0, 0.0), options: Optional[DrawOptions] = None
    ) -> List[TexturePlacements]:
        """Lay out `text` unwrapped at the upper-left of `fit_rect` plus `offset`, clipped to `fit_rect`."""
        baseline = (fit_rect.x1 + offset[0], fit_rect.y1 + offset[1])
        return self.place_chars(self.glyph_placements_fit(text, fit_rect, options), baseline, options, fit_rect)

    def place_string_wrapped(
        self, text: TextInput, fit_rect: Rect, offset: Vec2 = (0.0, 0.0), options: Optional[DrawOptions] = None
    ) -> List[TexturePlacements]:
        """Wrap `text` to the width of `fit_rect` and place it at its upper-left plus `offset`."""
        baseline = (fit_rect.x1 + offset[0], fit_rect.y1 + offset[1])
        return self.place_chars(self.glyph_placements_wrapped(text, fit_rect, options), baseline, options)

    # Measurement -----------------------------------------------------------------
    def measure_string_bounds(self, text: TextInput, options: Optional[DrawOptions] = None) -> Rect:
        """Visual bounds of `text` relative to the baseline of the first line."""
        return measure_bounds(self._atlas, self.font_size, self.glyph_placements(text, options), options)

    def measure_string_bounds_wrapped(
        self, text: TextInput, fit_rect: Rect, options: Optional[DrawOptions] = None
    ) -> Rect:
        """Visual bounds of `text` wrapped to the width of `fit_rect`, relative to the first baseline."""
        measures = self.glyph_placements_wrapped(text, fit_rect, options)
        return measure_bounds(self._atlas, self.font_size, measures, options)

    def measure_string(self, text: TextInput, options: Optional[DrawOptions] = None) -> Tuple[float, float]:
        """Tuple (width, height) of `measure_string_bounds`."""
        return self.measure_string_bounds(text, options).size

    def measure_string_wrapped(
        self, text: TextInput, fit_rect: Rect, options: Optional[DrawOptions] = None
    ) -> Tuple[float, float]:
        """Tuple (width, height) of `measure_string_bounds_wrapped`."""
        return self.measure_string_bounds_wrapped(text, fit_rect, options).size

    def __repr__(self) -> str:
        return f"SdfText({self.name}, {self.font_size:g}pt, {len(self._char_to_glyph)} chars, {self._atlas!r})"
