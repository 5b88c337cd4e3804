"""Tests for atlas packing in sdftext.atlas"""

import logging

import numpy as np
import pytest

from sdftext.atlas import (
    Format,
    GlyphInfo,
    TextureAtlas,
    calculate_sdf_bitmap_size,
    grid_layout,
    load_shapes,
    max_glyph_size,
)
from sdftext.font import Font
from sdftext.geom import Rect
from sdftext.image import new_texture
from sdftext.registry import mapped_glyph_ids


def cell_median(atlas, glyph, dx, dy):
    """Median channel value of the pixel (dx, dy) inside the cell of `glyph`"""
    info = atlas.info(glyph)
    x = int(info.tex_coords.x1) + dx
    y = int(info.tex_coords.y1) + dy
    return float(np.median(atlas.texture(info.texture_index)[y, x]))


@pytest.fixture(scope="module")
def ttf_atlas(ttf_bytes, small_format, chars):
    """Atlas over the test characters, built once for the module"""
    font = Font.from_bytes(ttf_bytes, 32)
    return font, TextureAtlas.build(font, small_format, mapped_glyph_ids(font, chars))


class TestFormat:
    """Test cases for the Format value object"""

    def test_defaults(self):
        """Test the default generation parameters"""
        fmt = Format()

        assert fmt.texture_size == (1024, 1024)
        assert fmt.sdf_scale == (2.0, 2.0)
        assert fmt.sdf_padding == (2, 2)
        assert fmt.sdf_range == 4.0
        assert fmt.sdf_angle == 3.0
        assert fmt.tile_spacing == (1, 1)

    def test_with_helpers_return_copies(self):
        """Test that the with_* helpers leave the original untouched"""
        fmt = Format()

        changed = fmt.with_texture_size(512, 256).with_sdf_scale(1.5).with_sdf_range(6).with_tile_spacing(2, 3)

        assert changed.texture_size == (512, 256)
        assert changed.sdf_scale == (1.5, 1.5)
        assert changed.sdf_range == 6.0
        assert changed.tile_spacing == (2, 3)
        assert fmt == Format()

    def test_dict_conversion(self):
        """Test from_dict and to_dict"""
        fmt = Format(512, 512, (1.0, 2.0), (3, 3), 5.0, 2.5, (0, 0))

        assert Format.from_dict(fmt.to_dict()) == fmt
        assert Format.from_dict({"texture_width": 64}).texture_size == (64, 1024)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"texture_width": 0},
            {"sdf_scale": (0.0, 1.0)},
            {"sdf_padding": (-1, 0)},
            {"sdf_range": 0.0},
            {"tile_spacing": (0, -1)},
        ],
    )
    def test_invalid(self, kwargs):
        """Test rejected parameters"""
        with pytest.raises(ValueError):
            Format(**kwargs)


class TestPackingHelpers:
    """Test cases for the cell size and grid layout"""

    def test_bitmap_size(self):
        """Test scale * (size + 2 * padding) rounded"""
        assert calculate_sdf_bitmap_size((2.0, 2.0), (2, 2), (16.0, 22.4)) == (40, 53)
        assert calculate_sdf_bitmap_size((1.0, 1.0), (0, 0), (0.0, 0.0)) == (0, 0)

    def test_grid_layout_row_major_and_spill(self):
        """Test that cells fill rows first and spill into a second texture"""
        layouts = grid_layout([10, 11, 12, 13, 14], (10, 10), (32, 32), (1, 1))

        assert layouts == [
            [(10, (0, 0)), (11, (11, 0)), (12, (0, 11)), (13, (11, 11))],
            [(14, (0, 0))],
        ]

    def test_grid_layout_exact_fit(self):
        """Test that a full texture does not open an empty one"""
        layouts = grid_layout([1, 2], (16, 32), (32, 32), (0, 0))

        assert layouts == [[(1, (0, 0)), (2, (16, 0))]]

    def test_grid_layout_cell_too_large(self):
        """Test cells which do not fit at all"""
        with pytest.raises(ValueError, match="does not fit"):
            grid_layout([1], (40, 40), (32, 32), (1, 1))

    def test_grid_layout_empty(self):
        """Test that no glyphs give no textures"""
        assert grid_layout([], (10, 10), (32, 32), (1, 1)) == []

    def test_max_glyph_size(self, ttf_font, chars):
        """Test the largest bounds over the test glyphs, measured from the origin"""

        shapes = load_shapes(ttf_font, mapped_glyph_ids(ttf_font, chars))

        assert max_glyph_size(shapes.values()) == pytest.approx((16.0, 22.4))


class TestTextureAtlasBuild:
    """Test cases for TextureAtlas.build"""

    def test_cells(self, ttf_atlas):
        """Test cell size, texture count and cell positions"""
        font, atlas = ttf_atlas

        assert atlas.sdf_bitmap_size == (40, 53)
        assert atlas.texture_count == 1
        assert atlas.texture_size(0) == (256, 256)
        assert atlas.info(font.glyph_index("I")).tex_coords == Rect(0, 0, 40, 53)
        assert atlas.info(font.glyph_index("L")).tex_coords == Rect(41, 0, 81, 53)
        # six columns of 41 pixels, the seventh glyph starts the second row
        assert atlas.info(font.glyph_index("g")).tex_coords == Rect(0, 54, 40, 107)

    def test_glyph_bounds(self, ttf_atlas):
        """Test origin offset and size in outline units"""
        font, atlas = ttf_atlas

        info_i = atlas.info(font.glyph_index("I"))
        info_g = atlas.info(font.glyph_index("g"))

        assert info_i.origin_offset == pytest.approx((0.0, 0.0))
        assert info_i.size == pytest.approx((6.4, 22.4))
        assert info_g.origin_offset == pytest.approx((0.0, -6.4))
        assert info_g.size == pytest.approx((12.8, 22.4))
        assert atlas.max_ascent == pytest.approx(22.4)
        assert atlas.max_descent == pytest.approx(6.4)
        assert atlas.max_glyph_size == pytest.approx((16.0, 22.4))

    def test_space_has_info(self, ttf_atlas):
        """Test that empty glyphs keep an (empty) cell"""
        font, atlas = ttf_atlas

        info = atlas.info(font.glyph_index(" "))

        assert info is not None
        assert info.size == (0.0, 0.0)

    def test_distance_field_inside(self, ttf_atlas):
        """Test that the stem of "I" is inside and the cell corner outside"""
        font, atlas = ttf_atlas
        glyph = font.glyph_index("I")

        # x = 13.5 / 2 - 2 = 4.75, y = 11.25 in outline units (rows are top-down)
        assert cell_median(atlas, glyph, 13, 26) > 127
        assert cell_median(atlas, glyph, 0, 0) == 0

    def test_counter_clockwise_font_is_inverted(self, cff_font, small_format):
        """Test that CFF glyphs render inside-bright like TrueType glyphs"""
        glyph = cff_font.glyph_index("I")

        atlas = TextureAtlas.build(cff_font, small_format, [glyph])

        assert cell_median(atlas, glyph, 13, 26) > 127
        assert cell_median(atlas, glyph, 0, 0) == 0

    def test_failed_glyph_keeps_cell(self, ttf_font, small_format, caplog):
        """Test that unknown glyphs are skipped but still occupy their cell"""
        glyph = ttf_font.glyph_index("I")

        with caplog.at_level(logging.WARNING, logger="sdftext.atlas"):
            atlas = TextureAtlas.build(ttf_font, small_format, [9999, glyph])

        assert atlas.info(9999) is None
        assert atlas.info(glyph).tex_coords.x1 == atlas.sdf_bitmap_size[0] + 1
        assert "Skipping glyph 9999" in caplog.text

    def test_duplicates_are_packed_once(self, ttf_font, small_format):
        """Test that repeated glyph ids get one cell"""
        glyph = ttf_font.glyph_index("I")

        atlas = TextureAtlas.build(ttf_font, small_format, [glyph, glyph])

        assert list(atlas.glyph_info) == [glyph]

    def test_build_is_deterministic(self, ttf_atlas, small_format, chars):
        """Test that building the same glyphs twice packs them identically"""
        font, atlas = ttf_atlas

        again = TextureAtlas.build(font, small_format, mapped_glyph_ids(font, chars))

        assert again.glyph_info == atlas.glyph_info
        assert again.sdf_bitmap_size == atlas.sdf_bitmap_size
        assert again.texture_count == atlas.texture_count
        for first, second in zip(atlas.textures, again.textures):
            np.testing.assert_array_equal(first, second)

    def test_textures_are_read_only(self, ttf_atlas):
        """Test that shared textures cannot be modified"""
        _, atlas = ttf_atlas

        with pytest.raises(ValueError):
            atlas.texture(0)[0, 0, 0] = 1

    def test_validate(self, ttf_atlas):
        """Test that a built atlas satisfies the cell invariants"""
        _, atlas = ttf_atlas

        atlas.validate()

    def test_area_tex_coords(self, ttf_atlas):
        """Test normalizing a cell to [0, 1]"""
        _, atlas = ttf_atlas

        assert atlas.area_tex_coords(0, Rect(0, 64, 128, 256)) == Rect(0.0, 0.25, 0.5, 1.0)


class TestTextureAtlasValidate:
    """Test cases for the invariant checks of hand made atlases"""

    def test_missing_texture(self):
        """Test a glyph pointing at a texture that does not exist"""
        info = GlyphInfo(1, Rect(0, 0, 8, 8), (0.0, 0.0), (4.0, 4.0))
        atlas = TextureAtlas([new_texture(16, 16)], {5: info}, (1.0, 1.0), (0.0, 0.0), (8, 8))

        with pytest.raises(ValueError, match="missing texture"):
            atlas.validate()

    def test_cell_outside_texture(self):
        """Test a cell that leaves its texture"""
        info = GlyphInfo(0, Rect(12, 0, 20, 8), (0.0, 0.0), (4.0, 4.0))
        atlas = TextureAtlas([new_texture(16, 16)], {5: info}, (1.0, 1.0), (0.0, 0.0), (8, 8))

        with pytest.raises(ValueError, match="exceeds texture"):
            atlas.validate()

    def test_invalid_texture(self):
        """Test that textures must be RGB uint8"""
        with pytest.raises(ValueError):
            TextureAtlas([np.zeros((4, 4), dtype=np.uint8)], {}, (1.0, 1.0), (0.0, 0.0), (8, 8))
