"""Shared fixtures: small TrueType and CFF fonts built in memory with fontTools."""

import io

import pytest
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.t2CharStringPen import T2CharStringPen
from fontTools.pens.ttGlyphPen import TTGlyphPen

from sdftext.atlas import Format
from sdftext.font import Font
from sdftext.registry import AtlasRegistry
from sdftext.sdf_text import SdfText

# 1000 units per em: at size 32 one font unit is 0.032 pixels, which is also
# the outline scale (2048 / 1000 / 64), so outline units equal pixels at 32.
UNITS_PER_EM = 1000
ASCENT = 800
DESCENT = -200

TTF_CMAP = {
    ord(" "): "space",
    ord("I"): "I",
    ord("L"): "L",
    ord("o"): "o",
    ord("-"): "hyphen",
    ord("J"): "J",
    ord("g"): "g",
}

ADVANCES = {
    ".notdef": 500,
    "space": 250,
    "I": 300,
    "L": 550,
    "o": 500,
    "hyphen": 350,
    "J": 600,
    "g": 500,
}

TEST_CHARS = "IL o-Jg"


def _rect_cw(pen, x0, y0, x1, y1):
    """Clockwise rectangle (TrueType convention)."""
    pen.moveTo((x0, y0))
    pen.lineTo((x0, y1))
    pen.lineTo((x1, y1))
    pen.lineTo((x1, y0))
    pen.closePath()


def _rect_ccw(pen, x0, y0, x1, y1):
    """Counter-clockwise rectangle (PostScript convention)."""
    pen.moveTo((x0, y0))
    pen.lineTo((x1, y0))
    pen.lineTo((x1, y1))
    pen.lineTo((x0, y1))
    pen.closePath()


def _setup_common(builder: FontBuilder, family: str, lsb: dict) -> None:
    builder.setupHorizontalMetrics({name: (ADVANCES[name], lsb.get(name, 0)) for name in ADVANCES})
    builder.setupHorizontalHeader(ascent=ASCENT, descent=DESCENT)
    builder.setupNameTable(
        {
            "familyName": family,
            "styleName": "Regular",
            "fullName": f"{family} Regular",
            "psName": family.replace(" ", "") + "-Regular",
        }
    )
    builder.setupOS2(sTypoAscender=ASCENT, sTypoDescender=DESCENT, usWinAscent=ASCENT, usWinDescent=-DESCENT)
    builder.setupPost()


def build_ttf_bytes() -> bytes:
    """TrueType font with lines, an all off-curve contour, a composite and a descender."""
    builder = FontBuilder(UNITS_PER_EM, isTTF=True)
    builder.setupGlyphOrder(list(ADVANCES))
    builder.setupCharacterMap(TTF_CMAP)

    glyphs = {}
    pen = TTGlyphPen(None)
    _rect_cw(pen, 50, 0, 450, 700)
    glyphs[".notdef"] = pen.glyph()

    glyphs["space"] = TTGlyphPen(None).glyph()

    pen = TTGlyphPen(None)
    _rect_cw(pen, 100, 0, 200, 700)
    glyphs["I"] = pen.glyph()

    pen = TTGlyphPen(None)
    pen.moveTo((100, 0))
    pen.lineTo((100, 700))
    pen.lineTo((200, 700))
    pen.lineTo((200, 100))
    pen.lineTo((500, 100))
    pen.lineTo((500, 0))
    pen.closePath()
    glyphs["L"] = pen.glyph()

    pen = TTGlyphPen(None)
    pen.qCurveTo((50, 0), (50, 500), (450, 500), (450, 0), None)
    pen.closePath()
    glyphs["o"] = pen.glyph()

    pen = TTGlyphPen(None)
    _rect_cw(pen, 50, 250, 300, 330)
    glyphs["hyphen"] = pen.glyph()

    pen = TTGlyphPen(glyphs)
    pen.addComponent("I", (1, 0, 0, 1, 300, 0))
    glyphs["J"] = pen.glyph()

    pen = TTGlyphPen(None)
    _rect_cw(pen, 100, -200, 400, 500)
    glyphs["g"] = pen.glyph()

    builder.setupGlyf(glyphs)
    glyf = builder.font["glyf"]
    lsb = {name: getattr(glyf[name], "xMin", 0) for name in ADVANCES}
    _setup_common(builder, "Test Sans", lsb)

    buffer = io.BytesIO()
    builder.save(buffer)
    return buffer.getvalue()


def build_cff_bytes() -> bytes:
    """CFF (OTTO) font with counter-clockwise outlines and a cubic curve."""
    builder = FontBuilder(UNITS_PER_EM, isTTF=False)
    names = [".notdef", "space", "I", "o"]
    builder.setupGlyphOrder(names)
    builder.setupCharacterMap({ord(" "): "space", ord("I"): "I", ord("o"): "o"})

    char_strings = {}
    pen = T2CharStringPen(ADVANCES[".notdef"], None)
    _rect_ccw(pen, 50, 0, 450, 700)
    char_strings[".notdef"] = pen.getCharString()

    pen = T2CharStringPen(ADVANCES["space"], None)
    char_strings["space"] = pen.getCharString()

    pen = T2CharStringPen(ADVANCES["I"], None)
    _rect_ccw(pen, 100, 0, 200, 700)
    char_strings["I"] = pen.getCharString()

    pen = T2CharStringPen(ADVANCES["o"], None)
    pen.moveTo((250, 0))
    pen.curveTo((400, 0), (450, 100), (450, 250))
    pen.curveTo((450, 400), (400, 500), (250, 500))
    pen.curveTo((100, 500), (50, 400), (50, 250))
    pen.curveTo((50, 100), (100, 0), (250, 0))
    pen.closePath()
    char_strings["o"] = pen.getCharString()

    builder.setupCFF("TestCFF-Regular", {"FullName": "Test CFF Regular"}, char_strings, {})
    lsb = {}
    for name, char_string in char_strings.items():
        bounds = char_string.calcBounds(None)
        lsb[name] = bounds[0] if bounds else 0
    builder.setupHorizontalMetrics({name: (ADVANCES[name], lsb[name]) for name in names})
    builder.setupHorizontalHeader(ascent=ASCENT, descent=DESCENT)
    builder.setupNameTable({"familyName": "Test CFF", "styleName": "Regular", "fullName": "Test CFF Regular"})
    builder.setupOS2(sTypoAscender=ASCENT, sTypoDescender=DESCENT, usWinAscent=ASCENT, usWinDescent=-DESCENT)
    builder.setupPost()

    buffer = io.BytesIO()
    builder.save(buffer)
    return buffer.getvalue()


@pytest.fixture(scope="session")
def ttf_bytes():
    """Raw TrueType font data"""
    return build_ttf_bytes()


@pytest.fixture(scope="session")
def cff_bytes():
    """Raw CFF font data"""
    return build_cff_bytes()


@pytest.fixture
def ttf_font(ttf_bytes):
    """TrueType font at the nominal size 32"""
    return Font.from_bytes(ttf_bytes, 32)


@pytest.fixture
def cff_font(cff_bytes):
    """CFF font at the nominal size 32"""
    return Font.from_bytes(cff_bytes, 32)


@pytest.fixture
def ttf_path(tmp_path, ttf_bytes):
    """TrueType font written to a file"""
    path = tmp_path / "TestSans-Regular.ttf"
    path.write_bytes(ttf_bytes)
    return path


@pytest.fixture(scope="session")
def small_format():
    """Format with small textures so atlases stay cheap to build"""
    return Format(texture_width=256, texture_height=256)


@pytest.fixture(scope="session")
def sdf_text(ttf_bytes, small_format):
    """Text object over the test characters, shared by read-only tests"""
    return SdfText.create(Font.from_bytes(ttf_bytes, 32), small_format, TEST_CHARS, AtlasRegistry())


@pytest.fixture(scope="session")
def chars():
    """Character set of the test fonts"""
    return TEST_CHARS
