"""Binary cache file format of text objects.

Layout (little-endian)::

    "SDFT" u32 version
    u32 name_len, name (UTF-8)
    f32 size, leading, height, ascent, descent
    "CHGL" u32 count, count * (u32 code point, u32 glyph)
    "GLMT" u32 count, count * (u32 glyph, f32x2 advance, f32x2 min, f32x2 max)
    "TXAT" f32x2 sdf_scale, f32x2 sdf_padding, f32x2 bitmap_size, f32x2 max_glyph_size,
           f32 max_ascent, f32 max_descent,
           u32 count, count * (u32 glyph, u32 texture, f32x4 tex_rect, f32x2 origin_offset, f32x2 size),
           u32 texture_count, texture_count * ("PNGF" u32 length, PNG bytes)

Entries are written sorted by code point and glyph id so equal objects give
byte identical files. The atlas pixels are never rescaled, loading with a
different size only rescales the glyph metrics.
"""

from __future__ import annotations

import io
import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Dict, List, Optional, Tuple, Union

from sdftext.atlas import Format, GlyphInfo, TextureAtlas
from sdftext.common import Glyph
from sdftext.errors import MalformedCacheFileError, UnsupportedRescaleError
from sdftext.font import FontInfo, GlyphMetrics
from sdftext.geom import Rect
from sdftext.image import decode_png, encode_png

if TYPE_CHECKING:
    from sdftext.sdf_text import SdfText

logger = logging.getLogger(__name__)

MAGIC = b"SDFT"
VERSION = 1
CHAR_GLYPH_IDENT = b"CHGL"
GLYPH_METRICS_IDENT = b"GLMT"
TEXTURE_ATLAS_IDENT = b"TXAT"
PNG_IDENT = b"PNGF"

Target = Union[str, Path, BinaryIO]

_U32 = struct.Struct("<I")
_F32 = struct.Struct("<f")
_FONT_INFO = struct.Struct("<5f")
_CHAR_GLYPH = struct.Struct("<II")
_GLYPH_METRICS = struct.Struct("<I6f")
_ATLAS_HEADER = struct.Struct("<10f")
_GLYPH_INFO = struct.Struct("<II8f")


@dataclass
class CacheContents:
    """Everything a cache file holds."""

    font_info: FontInfo
    format: Format
    char_to_glyph: Dict[int, Glyph]
    glyph_metrics: Dict[Glyph, GlyphMetrics]
    atlas: TextureAtlas


###############################################################################
# Writing
###############################################################################
def _write_u32(stream: BinaryIO, value: int) -> None:
    stream.write(_U32.pack(value))


def write_contents(stream: BinaryIO, contents: CacheContents) -> None:
    """Serialize `contents` into a binary stream."""
    info = contents.font_info
    atlas = contents.atlas

    stream.write(MAGIC)
    _write_u32(stream, VERSION)
    name = info.name.encode("utf-8")
    _write_u32(stream, len(name))
    stream.write(name)
    stream.write(_FONT_INFO.pack(info.size, info.leading, info.height, info.ascent, info.descent))

    stream.write(CHAR_GLYPH_IDENT)
    _write_u32(stream, len(contents.char_to_glyph))
    for code_point, glyph in sorted(contents.char_to_glyph.items()):
        stream.write(_CHAR_GLYPH.pack(code_point, glyph))

    stream.write(GLYPH_METRICS_IDENT)
    _write_u32(stream, len(contents.glyph_metrics))
    for glyph, metrics in sorted(contents.glyph_metrics.items()):
        stream.write(_GLYPH_METRICS.pack(glyph, *metrics.advance, *metrics.minimum, *metrics.maximum))

    stream.write(TEXTURE_ATLAS_IDENT)
    stream.write(
        _ATLAS_HEADER.pack(
            *atlas.sdf_scale,
            *atlas.sdf_padding,
            *atlas.sdf_bitmap_size,
            *atlas.max_glyph_size,
            atlas.max_ascent,
            atlas.max_descent,
        )
    )
    glyph_info = atlas.glyph_info
    _write_u32(stream, len(glyph_info))
    for glyph, glyph_entry in sorted(glyph_info.items()):
        stream.write(
            _GLYPH_INFO.pack(
                glyph,
                glyph_entry.texture_index,
                *glyph_entry.tex_coords.to_tuple(),
                *glyph_entry.origin_offset,
                *glyph_entry.size,
            )
        )

    _write_u32(stream, atlas.texture_count)
    for texture in atlas.textures:
        data = encode_png(texture)
        stream.write(PNG_IDENT)
        _write_u32(stream, len(data))
        stream.write(data)


def save(sdf_text: SdfText, target: Target) -> None:
    """
    Write a text object to a file path or a writable binary stream.

    Args:
        sdf_text: The text object to save.
        target: File path or binary stream.
    """
    contents = CacheContents(
        font_info=sdf_text.font_info,
        format=sdf_text.format,
        char_to_glyph=sdf_text.char_to_glyph,
        glyph_metrics=sdf_text.glyph_metrics,
        atlas=sdf_text.atlas,
    )
    if isinstance(target, (str, Path)):
        buffer = io.BytesIO()
        write_contents(buffer, contents)
        Path(target).write_bytes(buffer.getvalue())
        logger.info("Saved '%s' to %s", contents.font_info.name, target)
    else:
        write_contents(target, contents)


###############################################################################
# Reading
###############################################################################
class _Reader:
    """Reads exact byte counts, a short read is a malformed file."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    def read(self, count: int) -> bytes:
        data = self._stream.read(count)
        if data is None or len(data) != count:
            raise MalformedCacheFileError(f"Unexpected end of cache file, wanted {count} bytes")
        return data

    def unpack(self, layout: struct.Struct) -> Tuple:
        return layout.unpack(self.read(layout.size))

    def u32(self) -> int:
        return self.unpack(_U32)[0]

    def expect(self, ident: bytes) -> None:
        found = self.read(len(ident))
        if found != ident:
            raise MalformedCacheFileError(f"Expected {ident!r} block, found {found!r}")


def read_contents(stream: BinaryIO, size: Optional[float] = None) -> CacheContents:
    """
    Deserialize a cache file from a binary stream.

    Args:
        stream: Readable binary stream positioned at the magic.
        size: Font size to load at. None keeps the stored size, otherwise the
            glyph metrics are multiplied by size / stored size.

    Raises:
        UnsupportedRescaleError: If `size` is <= 0. Nothing is read in that case.
        MalformedCacheFileError: On wrong magic, version or block idents and on truncated data.
    """
    # pylint: disable=too-many-locals
    if size is not None and size <= 0:
        raise UnsupportedRescaleError(f"Cannot load cache at size {size}, size must be > 0")

    reader = _Reader(stream)
    reader.expect(MAGIC)
    version = reader.u32()
    if version != VERSION:
        raise MalformedCacheFileError(f"Unsupported cache file version {version}")

    name_bytes = reader.read(reader.u32())
    try:
        name = name_bytes.decode("utf-8")
    except UnicodeDecodeError as err:
        raise MalformedCacheFileError(f"Font name is not valid UTF-8: {err}") from err
    stored_size, leading, height, ascent, descent = reader.unpack(_FONT_INFO)
    if stored_size <= 0:
        raise MalformedCacheFileError(f"Stored font size {stored_size} is not positive")

    reader.expect(CHAR_GLYPH_IDENT)
    char_to_glyph: Dict[int, Glyph] = {}
    for _ in range(reader.u32()):
        code_point, glyph = reader.unpack(_CHAR_GLYPH)
        char_to_glyph[code_point] = glyph

    factor = 1.0 if size is None else size / stored_size
    reader.expect(GLYPH_METRICS_IDENT)
    glyph_metrics: Dict[Glyph, GlyphMetrics] = {}
    for _ in range(reader.u32()):
        glyph, ax, ay, min_x, min_y, max_x, max_y = reader.unpack(_GLYPH_METRICS)
        metrics = GlyphMetrics(advance=(ax, ay), minimum=(min_x, min_y), maximum=(max_x, max_y))
        glyph_metrics[glyph] = metrics.scaled(factor) if factor != 1.0 else metrics

    reader.expect(TEXTURE_ATLAS_IDENT)
    (sx, sy, px, py, bw, bh, gw, gh, max_ascent, max_descent) = reader.unpack(_ATLAS_HEADER)
    glyph_info: Dict[Glyph, GlyphInfo] = {}
    for _ in range(reader.u32()):
        glyph, texture_index, x1, y1, x2, y2, ox, oy, w, h = reader.unpack(_GLYPH_INFO)
        glyph_info[glyph] = GlyphInfo(texture_index, Rect(x1, y1, x2, y2), (ox, oy), (w, h))

    textures: List = []
    for _ in range(reader.u32()):
        reader.expect(PNG_IDENT)
        textures.append(decode_png(reader.read(reader.u32())))

    atlas = TextureAtlas(
        textures,
        glyph_info,
        sdf_scale=(sx, sy),
        sdf_padding=(px, py),
        sdf_bitmap_size=(int(round(bw)), int(round(bh))),
        max_glyph_size=(gw, gh),
        max_ascent=max_ascent,
        max_descent=max_descent,
    )
    try:
        atlas.validate()
    except ValueError as err:
        raise MalformedCacheFileError(f"Inconsistent atlas: {err}") from err

    format_args = {"sdf_scale": (sx, sy), "sdf_padding": (int(round(px)), int(round(py)))}
    if textures:
        format_args["texture_width"] = textures[0].shape[1]
        format_args["texture_height"] = textures[0].shape[0]
    try:
        loaded_format = Format(**format_args)
    except ValueError as err:
        raise MalformedCacheFileError(f"Invalid atlas parameters: {err}") from err

    font_info = FontInfo(name, stored_size if size is None else float(size), leading, height, ascent, descent)
    return CacheContents(font_info, loaded_format, char_to_glyph, glyph_metrics, atlas)


def load(source: Target, size: Optional[float] = None) -> CacheContents:
    """
    Read a cache file from a path or a readable binary stream.

    See `read_contents` for `size` and the raised errors.
    """
    if size is not None and size <= 0:
        raise UnsupportedRescaleError(f"Cannot load cache at size {size}, size must be > 0")
    if isinstance(source, (str, Path)):
        with open(source, "rb") as stream:
            contents = read_contents(stream, size)
        logger.debug("Loaded '%s' from %s", contents.font_info.name, source)
        return contents
    return read_contents(source, size)
