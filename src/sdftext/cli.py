"""Command line tools: build a cache file from a font and inspect existing cache files."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence, Tuple

from sdftext.atlas import Format
from sdftext.catalog import default_catalog
from sdftext.common import DEFAULT_CHARS
from sdftext.errors import SdfTextError
from sdftext.font import Font
from sdftext.image import save_texture
from sdftext.sdf_text import SdfText

logger = logging.getLogger(__name__)


def _pair(value: str, cast=float) -> Tuple:
    """Parse "A" or "AxB" into a pair."""
    parts = value.lower().split("x")
    try:
        if len(parts) == 1:
            return cast(parts[0]), cast(parts[0])
        if len(parts) == 2:
            return cast(parts[0]), cast(parts[1])
    except ValueError as err:
        raise argparse.ArgumentTypeError(f"invalid value '{value}'") from err
    raise argparse.ArgumentTypeError(f"expected N or NxM, got '{value}'")


def _int_pair(value: str) -> Tuple[int, int]:
    return _pair(value, int)


def _float_pair(value: str) -> Tuple[float, float]:
    return _pair(value, float)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_font(spec: str, size: float) -> Font:
    """A font file path, or an installed font name resolved through the platform catalog."""
    if Path(spec).is_file():
        return Font.from_file(spec, size)
    return Font.from_name(spec, size, default_catalog())


###############################################################################
# sdftext-build
###############################################################################
def build_parser() -> argparse.ArgumentParser:
    defaults = Format()
    parser = argparse.ArgumentParser(
        prog="sdftext-build",
        description="Generate the distance field atlas of a font and save it as cache file.",
    )
    parser.add_argument("font", help="Font file or installed font name")
    parser.add_argument("output", type=Path, help="Cache file to write")
    parser.add_argument("--size", type=float, default=32.0, help="Font size stored in the cache (default: 32)")
    parser.add_argument("--chars", default=None, help="Characters to include (default: built-in set)")
    parser.add_argument("--chars-file", type=Path, default=None, help="UTF-8 file with the characters to include")
    parser.add_argument(
        "--texture-size",
        type=_int_pair,
        default=defaults.texture_size,
        help="Atlas texture size N or WxH (default: 1024)",
    )
    parser.add_argument("--sdf-scale", type=_float_pair, default=defaults.sdf_scale, help="SDF scale (default: 2)")
    parser.add_argument(
        "--sdf-padding", type=_int_pair, default=defaults.sdf_padding, help="SDF padding (default: 2)"
    )
    parser.add_argument("--sdf-range", type=float, default=defaults.sdf_range, help="SDF range (default: 4)")
    parser.add_argument("--sdf-angle", type=float, default=defaults.sdf_angle, help="Edge coloring angle (default: 3)")
    parser.add_argument("--export-textures", type=Path, default=None, help="Also write the textures as PNG files")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def build_main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point of `sdftext-build`."""
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    chars = args.chars if args.chars is not None else DEFAULT_CHARS
    try:
        if args.chars_file is not None:
            chars = args.chars_file.read_text(encoding="utf-8").replace("\n", "")
        text_format = Format(
            texture_width=args.texture_size[0],
            texture_height=args.texture_size[1],
            sdf_scale=args.sdf_scale,
            sdf_padding=args.sdf_padding,
            sdf_range=args.sdf_range,
            sdf_angle=args.sdf_angle,
        )
        font = _load_font(args.font, args.size)
        sdf_text = SdfText.create(font, text_format, chars)
        sdf_text.save(args.output)
    except (SdfTextError, OSError, ValueError) as err:
        logger.error("Build failed: %s", err)
        return 1

    if args.export_textures is not None:
        args.export_textures.mkdir(parents=True, exist_ok=True)
        for index in range(sdf_text.texture_count):
            save_texture(sdf_text.texture(index), args.export_textures / f"{args.output.stem}_{index}.png")

    logger.info(
        "Wrote %s: %d chars, %d textures, cell %dx%d",
        args.output,
        len(sdf_text.char_to_glyph),
        sdf_text.texture_count,
        *sdf_text.atlas.sdf_bitmap_size,
    )
    return 0


###############################################################################
# sdftext-info
###############################################################################
def info_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sdftext-info", description="Print the contents of a cache file.")
    parser.add_argument("cache", type=Path, help="Cache file to inspect")
    parser.add_argument("--size", type=float, default=None, help="Load at this font size")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def info_main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point of `sdftext-info`."""
    args = info_parser().parse_args(argv)
    _setup_logging(args.verbose)
    try:
        sdf_text = SdfText.load(args.cache, args.size)
    except (SdfTextError, OSError) as err:
        logger.error("Cannot read %s: %s", args.cache, err)
        return 1

    atlas = sdf_text.atlas
    chars = "".join(chr(code_point) for code_point in sorted(sdf_text.char_to_glyph))
    lines = [
        f"name:        {sdf_text.name}",
        f"size:        {sdf_text.font_size:g}",
        f"ascent:      {sdf_text.ascent:g}",
        f"descent:     {sdf_text.descent:g}",
        f"leading:     {sdf_text.leading:g}",
        f"height:      {sdf_text.height:g}",
        f"chars:       {len(sdf_text.char_to_glyph)} {chars!r}",
        f"glyphs:      {len(atlas.glyph_info)}",
        f"textures:    {atlas.texture_count}",
        f"sdf scale:   {atlas.sdf_scale[0]:g}x{atlas.sdf_scale[1]:g}",
        f"sdf padding: {atlas.sdf_padding[0]:g}x{atlas.sdf_padding[1]:g}",
        f"cell:        {atlas.sdf_bitmap_size[0]}x{atlas.sdf_bitmap_size[1]}",
    ]
    sys.stdout.write("\n".join(lines) + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(build_main())
