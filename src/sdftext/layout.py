"""Text layout: line breaking and pen positions from cached glyph metrics.

Layout never touches the font face or the atlas. Everything it needs is the
character to glyph map and the glyph metrics of a text object, so it works the
same for freshly generated and for loaded text objects.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from sdftext.common import GROW, MAX_SIZE, NOMINAL_FONT_SIZE, Alignment, Glyph, IVec2, TextInput, Vec2, to_text
from sdftext.options import DrawOptions

if TYPE_CHECKING:
    from sdftext.font import GlyphMetrics
    from sdftext.sdf_text import SdfText

GlyphMeasure = Tuple[Glyph, Vec2]  # glyph and its pen position

LINE_TERMINATORS = frozenset("\n\r\x0b\x0c\x85\u2028\u2029")
HYPHENS = frozenset("-\u2010\u2013\u00ad")
NON_BREAKING_SPACES = frozenset("\u00a0\u2007\u202f")
# CJK punctuation that must not start a line
NO_BREAK_BEFORE = frozenset("、。，．：；！？）」』】〕〉》〙〗ー々〻ゝゞヽヾ・")


###############################################################################
# Break opportunities
###############################################################################
class BreakClass(Enum):
    """Break opportunity after a character."""

    NONE = auto()
    ALLOWED = auto()
    MANDATORY = auto()


def _is_space(char: str) -> bool:
    return char not in LINE_TERMINATORS and char not in NON_BREAKING_SPACES and char.isspace()


def _is_wide(char: str) -> bool:
    return unicodedata.east_asian_width(char) in ("W", "F")


def _no_break_before(char: str) -> bool:
    return char in NO_BREAK_BEFORE or unicodedata.category(char) in ("Pe", "Pf")


def _no_break_after(char: str) -> bool:
    return unicodedata.category(char) in ("Ps", "Pi")


def break_opportunities(text: str) -> List[BreakClass]:
    """
    Classify the position after every character of `text`.

    Mandatory breaks follow line terminators (a CR directly followed by LF
    counts once). Breaks are allowed after a run of spaces, after a hyphen
    that is not followed by a space or digit, and around wide (CJK)
    characters unless closing punctuation follows.
    """
    result: List[BreakClass] = []
    count = len(text)
    for index, char in enumerate(text):
        following = text[index + 1] if index + 1 < count else ""
        if char in LINE_TERMINATORS:
            if char == "\r" and following == "\n":
                result.append(BreakClass.NONE)
            else:
                result.append(BreakClass.MANDATORY)
            continue
        if not following or following in LINE_TERMINATORS:
            result.append(BreakClass.NONE)
            continue
        if _is_space(char):
            allowed = not _is_space(following)
        elif char in HYPHENS:
            allowed = not _is_space(following) and not following.isdigit()
        elif _is_wide(char) or _is_wide(following):
            allowed = not _is_space(following) and not _no_break_before(following) and not _no_break_after(char)
        else:
            allowed = False
        result.append(BreakClass.ALLOWED if allowed else BreakClass.NONE)
    return result


###############################################################################
# Line breaking
###############################################################################
@dataclass(frozen=True)
class Line:
    """
    One laid out line.

    Attributes:
        text: Line content without the line terminator, trailing spaces kept.
        ends_paragraph: True for the last line before a mandatory break or the end of the text.
    """

    text: str
    ends_paragraph: bool


def _strip_terminator(text: str) -> str:
    if text.endswith("\r\n"):
        return text[:-2]
    if text and text[-1] in LINE_TERMINATORS:
        return text[:-1]
    return text


def _break_paragraph(paragraph: str, opportunities: List[BreakClass], fits: Callable[[str], bool]) -> List[str]:
    length = len(paragraph)
    # line ends at break opportunities, ascending, the paragraph end last
    ends = [index + 1 for index, opportunity in enumerate(opportunities) if opportunity == BreakClass.ALLOWED]
    ends.append(length)

    lines: List[str] = []
    start = 0
    first = 0
    while start < length:
        while ends[first] <= start:
            first += 1

        end: Optional[int] = None
        candidate = first
        while candidate < len(ends) and fits(paragraph[start : ends[candidate]].rstrip()):
            end = ends[candidate]
            candidate += 1

        if end is None:
            # nothing fits up to the first opportunity, break inside the word
            end = start + 1
            for position in range(start + 2, ends[first] + 1):
                if not fits(paragraph[start:position].rstrip()):
                    break
                end = position

        lines.append(paragraph[start:end])
        start = end
    return lines


def line_break(text: TextInput, fits: Callable[[str], bool]) -> List[Line]:
    """
    Split `text` into lines.

    Each line is the longest run ending at a break opportunity whose content,
    trailing whitespace removed, satisfies `fits`. If not even the first word
    fits it is broken between characters, every line holds at least one
    character. Mandatory breaks always end a line, empty paragraphs give empty
    lines and a trailing terminator does not add an empty line.

    Args:
        text: The text to break.
        fits: Predicate telling whether a candidate line fits the width.

    Returns:
        List[Line]: The lines in order.
    """
    text = to_text(text)
    opportunities = break_opportunities(text)
    lines: List[Line] = []
    start = 0
    for index, opportunity in enumerate(opportunities):
        if opportunity != BreakClass.MANDATORY:
            continue
        lines.extend(_paragraph_lines(text, opportunities, start, index + 1, fits))
        start = index + 1
    if start < len(text):
        lines.extend(_paragraph_lines(text, opportunities, start, len(text), fits))
    return lines


def _paragraph_lines(
    text: str, opportunities: List[BreakClass], start: int, end: int, fits: Callable[[str], bool]
) -> List[Line]:
    paragraph = _strip_terminator(text[start:end])
    if not paragraph:
        return [Line("", True)]
    parts = _break_paragraph(paragraph, opportunities[start : start + len(paragraph)], fits)
    return [Line(part, index == len(parts) - 1) for index, part in enumerate(parts)]


class LineMeasure:
    """Line width predicate summing the horizontal advances of the mapped characters."""

    def __init__(self, max_width: float, glyph_metrics: Dict[Glyph, GlyphMetrics], char_to_glyph: Dict[int, Glyph]):
        self._max_width = max_width
        self._glyph_metrics = glyph_metrics
        self._char_to_glyph = char_to_glyph

    def width(self, line: str) -> float:
        """Sum of the advances of `line`, unmapped characters skipped."""
        total = 0.0
        for char in line:
            glyph = self._char_to_glyph.get(ord(char))
            if glyph is None:
                continue
            metrics = self._glyph_metrics.get(glyph)
            if metrics is None:
                continue
            total += metrics.advance[0]
        return total

    def __call__(self, line: str) -> bool:
        if self._max_width >= MAX_SIZE:
            return True
        return self.width(line) <= self._max_width


###############################################################################
# TextBox
###############################################################################
class TextBox:
    """
    Lays out a text inside a box of a given size.

    A width of GROW (0) means unconstrained, such lines only break at
    mandatory breaks. The height is not used for breaking.
    """

    def __init__(
        self,
        sdf_text: SdfText,
        text: TextInput = "",
        size: IVec2 = (GROW, GROW),
        alignment: Optional[Alignment] = None,
    ):
        """
        Initialize the TextBox.

        Args:
            sdf_text: Provides the char map, glyph metrics and font metrics.
            text: The text, str or UTF-8 bytes.
            size: Box size, GROW for an unconstrained dimension.
            alignment: Overrides the alignment of the draw options if given.
        """
        self._sdf_text = sdf_text
        self._text = to_text(text)
        self._size = size
        self._alignment = alignment

    @property
    def text(self) -> str:
        return self._text

    @text.setter
    def text(self, value: TextInput) -> None:
        self._text = to_text(value)

    def append_text(self, value: TextInput) -> None:
        self._text += to_text(value)

    @property
    def size(self) -> IVec2:
        return self._size

    @size.setter
    def size(self, value: IVec2) -> None:
        self._size = value

    @property
    def alignment(self) -> Optional[Alignment]:
        return self._alignment

    @alignment.setter
    def alignment(self, value: Optional[Alignment]) -> None:
        self._alignment = value

    @property
    def max_width(self) -> float:
        """The line width limit, MAX_SIZE when the width grows."""
        return float(self._size[0]) if self._size[0] > 0 else MAX_SIZE

    def line_measure(self) -> LineMeasure:
        return LineMeasure(self.max_width, self._sdf_text.glyph_metrics, self._sdf_text.char_to_glyph)

    def calculate_line_breaks(self) -> List[Line]:
        """Break the text into lines fitting the box width."""
        return line_break(self._text, self.line_measure())

    def measure_glyphs(self, options: Optional[DrawOptions] = None) -> List[GlyphMeasure]:
        """
        Pen positions of all drawable glyphs.

        Positions are in pixels at the font size, y grows downwards by one line
        height per line. Unmapped characters are left out.

        Returns:
            List[GlyphMeasure]: (glyph, (x, y)) in text order, empty for empty text.
        """
        # pylint: disable=too-many-locals
        options = options or DrawOptions()
        if not self._text:
            return []

        font_size_scale = self._sdf_text.font_size / NOMINAL_FONT_SIZE
        line_height = (
            font_size_scale * options.scale * (self._sdf_text.ascent + self._sdf_text.descent + options.leading)
        )
        alignment = self._alignment or options.alignment
        max_width = self.max_width
        finite = max_width < MAX_SIZE
        char_to_glyph = self._sdf_text.char_to_glyph
        glyph_metrics = self._sdf_text.glyph_metrics

        result: List[GlyphMeasure] = []
        cur_y = 0.0
        for line in self.calculate_line_breaks():
            glyphs: List[Glyph] = []
            xs: List[float] = []
            space_count = 0
            space_glyph: Optional[Glyph] = None
            pen_x = 0.0
            for char in line.text.rstrip():
                glyph = char_to_glyph.get(ord(char))
                if glyph is None:
                    continue
                metrics = glyph_metrics.get(glyph)
                if metrics is None:
                    continue
                if char == " ":
                    space_count += 1
                    space_glyph = glyph
                glyphs.append(glyph)
                xs.append(pen_x)
                pen_x += metrics.advance[0]

            if options.justify and finite and space_count > 0 and not line.ends_paragraph:
                space = max_width - pen_x
                offset = 0.0
                for index, glyph in enumerate(glyphs):
                    xs[index] += offset
                    offset += 0.75 * space / len(glyphs)
                    if glyph == space_glyph:
                        offset += 0.25 * space / space_count
            elif finite and alignment != Alignment.LEFT:
                offset = max_width - pen_x
                if alignment == Alignment.CENTER:
                    offset *= 0.5
                if offset > 0.0:
                    xs = [x + offset for x in xs]

            result.extend((glyph, (x, cur_y)) for glyph, x in zip(glyphs, xs))
            cur_y += line_height
        return result
