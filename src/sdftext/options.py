"""Per draw call parameters for layout, placement and rendering."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass

from sdftext.common import Alignment


@dataclass(frozen=True)
class DrawOptions:
    """
    Options used when laying out, placing and shading text.

    Attributes:
        clip_horizontal: Clip glyph quads at the left and right edge of a clip rect.
        clip_vertical: Clip glyph quads at the top and bottom edge of a clip rect.
        pixel_snap: Floor the baseline to whole pixels.
        ligate: Reserved, ligatures are not substituted.
        scale: Additional scale applied to positions and quads.
        leading: Extra line spacing in pixels at the nominal size.
        alignment: Horizontal alignment of each line.
        justify: Stretch all but the last line of a paragraph to the box width.
        premultiply: Renderer hint, output premultiplied alpha.
        gamma: Renderer hint, gamma used for the coverage ramp.
    """

    clip_horizontal: bool = True
    clip_vertical: bool = True
    pixel_snap: bool = True
    ligate: bool = False
    scale: float = 1.0
    leading: float = 0.0
    alignment: Alignment = Alignment.LEFT
    justify: bool = False
    premultiply: bool = False
    gamma: float = 2.2

    def __post_init__(self) -> None:
        if self.scale <= 0:
            raise ValueError(f"Draw scale must be > 0, got {self.scale}")
        if self.gamma <= 0:
            raise ValueError(f"Gamma must be > 0, got {self.gamma}")

    def replace(self, **changes) -> DrawOptions:
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def with_clip(self, horizontal: bool = True, vertical: bool = True) -> DrawOptions:
        return self.replace(clip_horizontal=horizontal, clip_vertical=vertical)

    def with_alignment(self, alignment: Alignment) -> DrawOptions:
        return self.replace(alignment=alignment)

    def with_justify(self, justify: bool = True) -> DrawOptions:
        return self.replace(justify=justify)

    def with_scale(self, scale: float) -> DrawOptions:
        return self.replace(scale=float(scale))

    def with_leading(self, leading: float) -> DrawOptions:
        return self.replace(leading=float(leading))

    def with_pixel_snap(self, pixel_snap: bool = True) -> DrawOptions:
        return self.replace(pixel_snap=pixel_snap)

    @classmethod
    def from_dict(cls, data: dict) -> DrawOptions:
        """Create DrawOptions from a dictionary, the alignment given by name."""
        values = dict(data)
        if isinstance(values.get("alignment"), str):
            values["alignment"] = Alignment[values["alignment"].upper()]
        return cls(**values)

    def to_dict(self) -> dict:
        """Convert the DrawOptions to a dictionary."""
        values = dataclasses.asdict(self)
        values["alignment"] = self.alignment.name
        return values
