"""Text meshes: runs of text turned into vertex and index arrays per atlas texture.

A TextMesh collects runs, each a text with its own text object, position and
options. `cache()` rebuilds the geometry of all runs into one batch per
(text object, texture). Runs report changes to their mesh through a callback
the mesh installs, a run does not know its mesh.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from sdftext.common import Alignment, TextInput, Vec2, to_text
from sdftext.geom import Rect
from sdftext.options import DrawOptions
from sdftext.placement import CharPlacement, TexturePlacements
from sdftext.sdf_text import SdfText

logger = logging.getLogger(__name__)

VERTEX_COMPONENTS = 6  # x, y, z, w, u, v


class Feature(enum.IntFlag):
    """Run properties, used for feature and dirty masks."""

    NONE = 0x00000000
    TEXT = 0x00000001
    FONTSIZE = 0x00000002
    POSITION = 0x00000004
    ROTATION = 0x00000008
    SCALE = 0x00000010
    BOUNDS = 0x00000020
    ALIGNMENT = 0x00000040
    JUSTIFY = 0x00000080
    ALL = 0x7FFFFFFF


###############################################################################
# Run
###############################################################################
class Run:
    """
    A piece of text drawn with one text object.

    The run is either anchored at a baseline position or, when a fit rect is
    given, wrapped to the rect width and placed at its upper-left plus the
    position as offset.
    """

    def __init__(
        # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        text: TextInput,
        sdf_text: SdfText,
        position: Vec2 = (0.0, 0.0),
        options: Optional[DrawOptions] = None,
        fit_rect: Optional[Rect] = None,
    ):
        self._text = to_text(text)
        self._sdf_text = sdf_text
        self._position = (float(position[0]), float(position[1]))
        self._options = options or DrawOptions()
        self._fit_rect = fit_rect
        self._features = Feature.TEXT
        self._dirty = Feature.NONE
        self._on_dirty: Optional[Callable[[Run, Feature], None]] = None

    # Ownership -------------------------------------------------------------------
    def attach(self, on_dirty: Callable[[Run, Feature], None]) -> None:
        """Install the owner's change callback.

        Raises:
            ValueError: If the run already has an owner.
        """
        if self._on_dirty is not None:
            raise ValueError("Run already belongs to a mesh")
        self._on_dirty = on_dirty

    @property
    def is_attached(self) -> bool:
        return self._on_dirty is not None

    # Features and dirty state ----------------------------------------------------
    @property
    def features(self) -> Feature:
        return self._features

    def enable_feature(self, value: Feature) -> None:
        self._features |= value

    def disable_feature(self, value: Feature) -> None:
        self._features &= ~value

    @property
    def dirty(self) -> Feature:
        return self._dirty

    def set_dirty(self, value: Feature = Feature.TEXT) -> None:
        """Mark `value` as changed and notify the owner."""
        self._dirty |= value
        if self._on_dirty is not None:
            self._on_dirty(self, value)

    def clear_dirty(self) -> None:
        self._dirty = Feature.NONE

    # Properties ------------------------------------------------------------------
    @property
    def sdf_text(self) -> SdfText:
        return self._sdf_text

    @property
    def text(self) -> str:
        return self._text

    @text.setter
    def text(self, value: TextInput) -> None:
        value = to_text(value)
        if value != self._text:
            self._text = value
            self.set_dirty(Feature.TEXT)

    @property
    def position(self) -> Vec2:
        return self._position

    @position.setter
    def position(self, value: Vec2) -> None:
        self._position = (float(value[0]), float(value[1]))
        self.set_dirty(Feature.POSITION)

    @property
    def fit_rect(self) -> Optional[Rect]:
        return self._fit_rect

    @fit_rect.setter
    def fit_rect(self, value: Optional[Rect]) -> None:
        self._fit_rect = value
        self.set_dirty(Feature.BOUNDS)

    @property
    def options(self) -> DrawOptions:
        return self._options

    @property
    def scale(self) -> float:
        return self._options.scale

    @scale.setter
    def scale(self, value: float) -> None:
        self._options = self._options.with_scale(value)
        self.set_dirty(Feature.SCALE)

    @property
    def alignment(self) -> Alignment:
        return self._options.alignment

    @alignment.setter
    def alignment(self, value: Alignment) -> None:
        self._options = self._options.with_alignment(value)
        self.set_dirty(Feature.ALIGNMENT)

    @property
    def justify(self) -> bool:
        return self._options.justify

    @justify.setter
    def justify(self, value: bool) -> None:
        self._options = self._options.with_justify(value)
        self.set_dirty(Feature.JUSTIFY)

    # Geometry --------------------------------------------------------------------
    @property
    def baseline(self) -> Vec2:
        """Pen origin of the first line."""
        if self._fit_rect is None:
            return self._position
        return self._fit_rect.x1 + self._position[0], self._fit_rect.y1 + self._position[1]

    def place(self) -> List[TexturePlacements]:
        """Glyph quads of the run grouped by texture."""
        if self._fit_rect is None:
            return self._sdf_text.place_string(self._text, self._position, self._options)
        return self._sdf_text.place_string_wrapped(self._text, self._fit_rect, self._position, self._options)

    def bounds(self) -> Rect:
        """Visual bounds of the run in screen space."""
        if self._fit_rect is None:
            local = self._sdf_text.measure_string_bounds(self._text, self._options)
        else:
            local = self._sdf_text.measure_string_bounds_wrapped(self._text, self._fit_rect, self._options)
        return local.offset(*self.baseline)

    def __repr__(self) -> str:
        return f"Run({self._text!r}, {self._sdf_text.name}, at {self.baseline})"


###############################################################################
# TextMesh
###############################################################################
@dataclass
class MeshBatch:
    """
    Geometry of all runs of one text object that use one atlas texture.

    Attributes:
        sdf_text: The text object whose atlas the texture belongs to.
        texture_index: Index of the atlas texture.
        vertices: float32 array of shape (n * 4, 6), rows (x, y, z, w, u, v).
        indices: uint32 array of shape (n * 6,), two triangles per quad.
    """

    sdf_text: SdfText
    texture_index: int
    vertices: NDArray[np.float32]
    indices: NDArray[np.uint32]

    @property
    def quad_count(self) -> int:
        return len(self.vertices) // 4


@dataclass(frozen=True)
class RunRange:
    """Quads of a run inside a batch: vertices [vertex_start, vertex_start + vertex_count)."""

    batch_index: int
    vertex_start: int
    vertex_count: int


def quad_vertices(placement: CharPlacement) -> List[Tuple[float, float, float, float, float, float]]:
    """The four vertices of a glyph quad in triangle strip order."""
    dst = placement.dst_rect
    src = placement.src_tex_coords
    return [
        (dst.x2, dst.y1, 0.0, 1.0, src.x2, src.y1),
        (dst.x1, dst.y1, 0.0, 1.0, src.x1, src.y1),
        (dst.x2, dst.y2, 0.0, 1.0, src.x2, src.y2),
        (dst.x1, dst.y2, 0.0, 1.0, src.x1, src.y2),
    ]


class TextMesh:
    """Collection of runs with cached geometry."""

    def __init__(self) -> None:
        self._runs: List[Run] = []
        self._batches: List[MeshBatch] = []
        self._run_ranges: Dict[int, List[RunRange]] = {}
        self._dirty = False

    def _run_changed(self, run: Run, feature: Feature) -> None:
        logger.debug("Run %r changed: %s", run.text, feature)
        self._dirty = True

    # Runs ------------------------------------------------------------------------
    def append_run(self, run: Run) -> Run:
        """Add an existing run.

        Raises:
            ValueError: If the run belongs to another mesh.
        """
        run.attach(self._run_changed)
        self._runs.append(run)
        run.set_dirty(Feature.TEXT)
        return run

    def append_text(
        self, text: TextInput, sdf_text: SdfText, baseline: Vec2 = (0.0, 0.0), options: Optional[DrawOptions] = None
    ) -> Run:
        """Add a run anchored at `baseline`."""
        return self.append_run(Run(text, sdf_text, baseline, options))

    def append_text_wrapped(
        # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        text: TextInput,
        sdf_text: SdfText,
        fit_rect: Rect,
        offset: Vec2 = (0.0, 0.0),
        options: Optional[DrawOptions] = None,
    ) -> Run:
        """Add a run wrapped to the width of `fit_rect`."""
        return self.append_run(Run(text, sdf_text, offset, options, fit_rect))

    def runs(self, sdf_text: Optional[SdfText] = None) -> List[Run]:
        """All runs, or those drawn with `sdf_text`."""
        if sdf_text is None:
            return list(self._runs)
        return [run for run in self._runs if run.sdf_text is sdf_text]

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    # Geometry --------------------------------------------------------------------
    def cache(self) -> None:
        """Rebuild all batches if a run changed since the last call."""
        # pylint: disable=too-many-locals
        if not self._dirty:
            return

        texts: List[SdfText] = []
        for run in self._runs:
            if not any(run.sdf_text is known for known in texts):
                texts.append(run.sdf_text)

        batches: List[MeshBatch] = []
        run_ranges: Dict[int, List[RunRange]] = {id(run): [] for run in self._runs}
        for sdf_text in texts:
            per_texture: Dict[int, List[Tuple[Run, List[CharPlacement]]]] = {}
            for run in self.runs(sdf_text):
                for texture_index, placements in run.place():
                    per_texture.setdefault(texture_index, []).append((run, placements))

            for texture_index in sorted(per_texture):
                rows: List[Tuple[float, float, float, float, float, float]] = []
                indices: List[int] = []
                for run, placements in per_texture[texture_index]:
                    start = len(rows)
                    for placement in placements:
                        base = len(rows)
                        rows.extend(quad_vertices(placement))
                        indices.extend((base, base + 1, base + 2, base + 2, base + 1, base + 3))
                    run_ranges[id(run)].append(RunRange(len(batches), start, len(rows) - start))
                vertices = np.array(rows, dtype=np.float32).reshape(-1, VERTEX_COMPONENTS)
                batches.append(MeshBatch(sdf_text, texture_index, vertices, np.array(indices, dtype=np.uint32)))

        for run in self._runs:
            run.clear_dirty()
        self._batches = batches
        self._run_ranges = run_ranges
        self._dirty = False
        logger.debug("Cached %d runs into %d batches", len(self._runs), len(batches))

    def batches(self) -> List[MeshBatch]:
        """The geometry batches, rebuilt first if needed."""
        self.cache()
        return list(self._batches)

    def run_ranges(self, run: Run) -> List[RunRange]:
        """Where the quads of `run` live in the batches, rebuilt first if needed."""
        self.cache()
        return list(self._run_ranges.get(id(run), []))

    def bounds(self) -> Rect:
        """Union of all run bounds, Rect(0, 0, 0, 0) without runs."""
        result: Optional[Rect] = None
        for run in self._runs:
            run_bounds = run.bounds()
            result = run_bounds if result is None else result.include(run_bounds)
        return result if result is not None else Rect()
