"""Process wide sharing of texture atlases between text objects.

Building an atlas is expensive, so text objects created for the same font,
Format and character set share one. The registry is an explicit object
handed to `SdfText.create`; nothing is global.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from sdftext.atlas import Format, TextureAtlas, calculate_sdf_bitmap_size, load_shapes, max_glyph_size
from sdftext.common import IVec2, TextInput, to_text
from sdftext.distance_field import DistanceFieldGenerator

if TYPE_CHECKING:
    from sdftext.font import Font

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AtlasCacheKey:
    """
    Identity of an atlas. Two keys are equal if all fields are equal, so atlases
    are only shared between requests with the same Format and character set.

    Attributes:
        family_name: Font family name.
        style_name: Font style name.
        chars: Character set as requested.
        texture_size: (width, height) of the atlas textures.
        bitmap_size: Cell size in pixels.
        format: All generation parameters the atlas is built with.
    """

    family_name: str
    style_name: str
    chars: str
    texture_size: IVec2
    bitmap_size: IVec2
    format: Format


def mapped_glyph_ids(font: Font, chars: str) -> List[int]:
    """Glyph ids of the characters of `chars` the font maps, unique in first-seen order."""
    result: List[int] = []
    for char in chars:
        if not font.has_glyph(char):
            continue
        glyph = font.glyph_index(char)
        if glyph not in result:
            result.append(glyph)
    return result


def compute_cache_key(
    font: Font,
    format: Format,  # pylint: disable=redefined-builtin
    chars: TextInput,
    glyph_ids: Optional[Sequence[int]] = None,
) -> AtlasCacheKey:
    """
    Compute the registry key for an atlas request.

    The bitmap size is measured over the glyphs of `chars` plus a space. The
    space is always part of an atlas, so two requests differing only by it
    share the cell size.
    """
    text = to_text(chars)
    if glyph_ids is None:
        measured = text if " " in text else text + " "
        glyph_ids = mapped_glyph_ids(font, measured)
    glyph_size = max_glyph_size(load_shapes(font, glyph_ids).values())
    bitmap_size = calculate_sdf_bitmap_size(format.sdf_scale, format.sdf_padding, glyph_size)
    return AtlasCacheKey(
        family_name=font.family_name,
        style_name=font.style_name,
        chars=text,
        texture_size=format.texture_size,
        bitmap_size=bitmap_size,
        format=format,
    )


class AtlasRegistry:
    """
    Thread safe list of built atlases. Entries are never evicted, call `clear` to drop them.

    Lookup and insertion happen under one lock, so concurrent requests for the
    same key build the atlas once.
    """

    def __init__(self, generator: Optional[DistanceFieldGenerator] = None):
        self._generator = generator
        self._lock = threading.Lock()
        self._entries: List[Tuple[AtlasCacheKey, TextureAtlas]] = []

    def _find(self, key: AtlasCacheKey) -> Optional[TextureAtlas]:
        for entry_key, atlas in self._entries:
            if entry_key == key:
                return atlas
        return None

    def lookup(self, key: AtlasCacheKey) -> Optional[TextureAtlas]:
        """Atlas registered under `key` or None."""
        with self._lock:
            return self._find(key)

    def get(
        self,
        font: Font,
        format: Format,  # pylint: disable=redefined-builtin
        chars: TextInput,
        glyph_ids: Sequence[int],
    ) -> TextureAtlas:
        """
        Return the atlas for (font, format, chars), building and registering it on a miss.

        Args:
            font: Font the glyphs come from.
            format: Atlas generation parameters.
            chars: Character set as requested by the caller.
            glyph_ids: Glyphs to pack, in packing order.
        """
        key = compute_cache_key(font, format, chars, glyph_ids)
        with self._lock:
            atlas = self._find(key)
            if atlas is not None:
                logger.debug("Atlas cache hit for %s %s", key.family_name, key.style_name)
                return atlas
            logger.debug("Atlas cache miss for %s %s, building", key.family_name, key.style_name)
            atlas = TextureAtlas.build(font, format, glyph_ids, self._generator)
            self._entries.append((key, atlas))
            return atlas

    def clear(self) -> None:
        """Drop all atlases."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
