"""Exceptions raised while loading fonts, building atlases and reading cache files."""

from __future__ import annotations


class SdfTextError(Exception):
    """Base exception for all SDF text errors."""


class FaceLoadError(SdfTextError):
    """Raised when font bytes are missing or cannot be parsed into a face."""


class GlyphOutlineError(SdfTextError):
    """Raised when a glyph outline cannot be converted into a shape.

    The atlas packer absorbs this error: the glyph is simply left out of the atlas.
    """


class MalformedCacheFileError(SdfTextError):
    """Raised when a cache file has a bad ident tag or ends prematurely."""


class UnsupportedRescaleError(SdfTextError):
    """Raised when a cache file is loaded with a requested size <= 0."""


class FontNotFoundError(SdfTextError):
    """Raised when a font name cannot be resolved to a font file."""
