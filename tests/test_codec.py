"""Tests for the binary cache file format in sdftext.codec"""

import io
import struct

import numpy as np
import pytest

from sdftext import codec
from sdftext.errors import MalformedCacheFileError, UnsupportedRescaleError


@pytest.fixture(scope="module")
def cache_bytes(sdf_text):
    """The shared text object serialized once"""
    buffer = io.BytesIO()
    codec.save(sdf_text, buffer)
    return buffer.getvalue()


def corrupt(data, offset, replacement):
    """Copy of `data` with bytes at `offset` replaced"""
    return data[:offset] + replacement + data[offset + len(replacement) :]


class TestWrite:
    """Test cases for the file layout"""

    def test_header(self, cache_bytes, sdf_text):
        """Test magic, version and the font name"""
        name = sdf_text.name.encode("utf-8")

        assert cache_bytes[:4] == codec.MAGIC
        assert struct.unpack("<I", cache_bytes[4:8]) == (codec.VERSION,)
        assert struct.unpack("<I", cache_bytes[8:12]) == (len(name),)
        assert cache_bytes[12 : 12 + len(name)] == name
        assert cache_bytes[12 + len(name) + 20 : 12 + len(name) + 24] == codec.CHAR_GLYPH_IDENT

    def test_blocks_present(self, cache_bytes):
        """Test that every block ident appears in order"""
        positions = [cache_bytes.index(ident) for ident in (b"CHGL", b"GLMT", b"TXAT", b"PNGF")]

        assert positions == sorted(positions)

    def test_deterministic(self, cache_bytes, sdf_text):
        """Test that saving twice gives identical bytes"""
        buffer = io.BytesIO()
        codec.save(sdf_text, buffer)

        assert buffer.getvalue() == cache_bytes

    def test_save_to_path(self, tmp_path, sdf_text, cache_bytes):
        """Test writing to a file path"""
        path = tmp_path / "font.sdft"

        codec.save(sdf_text, path)

        assert path.read_bytes() == cache_bytes


class TestRead:
    """Test cases for loading"""

    def test_roundtrip_keeps_layout_data(self, cache_bytes, sdf_text):
        """Test that maps, metrics and the atlas survive a save and load"""
        contents = codec.load(io.BytesIO(cache_bytes))

        assert contents.font_info.name == sdf_text.name
        assert contents.font_info.size == sdf_text.font_size
        assert contents.font_info.ascent == pytest.approx(sdf_text.ascent)
        assert contents.char_to_glyph == sdf_text.char_to_glyph
        assert contents.glyph_metrics.keys() == sdf_text.glyph_metrics.keys()
        for glyph, metrics in sdf_text.glyph_metrics.items():
            assert contents.glyph_metrics[glyph].advance == pytest.approx(metrics.advance)
            assert contents.glyph_metrics[glyph].maximum == pytest.approx(metrics.maximum)
        assert contents.atlas.glyph_info.keys() == sdf_text.atlas.glyph_info.keys()
        for glyph, info in sdf_text.atlas.glyph_info.items():
            loaded_info = contents.atlas.glyph_info[glyph]
            # stored as float32
            assert loaded_info.texture_index == info.texture_index
            assert loaded_info.tex_coords.to_tuple() == pytest.approx(info.tex_coords.to_tuple(), abs=1e-5)
            assert loaded_info.origin_offset == pytest.approx(info.origin_offset, abs=1e-5)
            assert loaded_info.size == pytest.approx(info.size, abs=1e-5)
        assert contents.atlas.sdf_bitmap_size == sdf_text.atlas.sdf_bitmap_size
        for loaded, original in zip(contents.atlas.textures, sdf_text.atlas.textures):
            np.testing.assert_array_equal(loaded, original)

    def test_format_from_atlas(self, cache_bytes, sdf_text):
        """Test the format rebuilt from the atlas block and the texture size"""
        contents = codec.load(io.BytesIO(cache_bytes))

        assert contents.format.texture_size == sdf_text.format.texture_size
        assert contents.format.sdf_scale == sdf_text.format.sdf_scale
        assert contents.format.sdf_padding == sdf_text.format.sdf_padding

    def test_resave_is_identical(self, cache_bytes):
        """Test that a loaded object saves back to the same bytes"""
        contents = codec.load(io.BytesIO(cache_bytes))
        buffer = io.BytesIO()

        codec.write_contents(buffer, contents)

        assert buffer.getvalue() == cache_bytes

    def test_load_from_path(self, tmp_path, cache_bytes):
        """Test reading a file path"""
        path = tmp_path / "font.sdft"
        path.write_bytes(cache_bytes)

        assert codec.load(str(path)).font_info.name == "Test Sans Regular"

    def test_rescale(self, cache_bytes, sdf_text):
        """Test that another size rescales glyph metrics but not the vertical metrics"""
        contents = codec.load(io.BytesIO(cache_bytes), 64)
        glyph = sdf_text.char_to_glyph[ord("I")]

        assert contents.font_info.size == 64
        assert contents.glyph_metrics[glyph].advance[0] == pytest.approx(2 * sdf_text.glyph_metrics[glyph].advance[0])
        assert contents.font_info.height == pytest.approx(sdf_text.height)

    @pytest.mark.parametrize("size", [0, -12.0])
    def test_invalid_size_reads_nothing(self, cache_bytes, size):
        """Test that sizes <= 0 raise before the stream is touched"""
        stream = io.BytesIO(cache_bytes)

        with pytest.raises(UnsupportedRescaleError):
            codec.load(stream, size)

        assert stream.tell() == 0

    def test_bad_magic(self, cache_bytes):
        """Test that a foreign file is rejected"""
        with pytest.raises(MalformedCacheFileError, match="SDFT"):
            codec.load(io.BytesIO(corrupt(cache_bytes, 0, b"XXXX")))

    def test_bad_version(self, cache_bytes):
        """Test that other versions are rejected"""
        with pytest.raises(MalformedCacheFileError, match="version"):
            codec.load(io.BytesIO(corrupt(cache_bytes, 4, struct.pack("<I", 99))))

    def test_bad_block_ident(self, cache_bytes):
        """Test that a damaged block ident is rejected"""
        offset = cache_bytes.index(codec.GLYPH_METRICS_IDENT)

        with pytest.raises(MalformedCacheFileError, match="GLMT"):
            codec.load(io.BytesIO(corrupt(cache_bytes, offset, b"GLMX")))

    @pytest.mark.parametrize("length", [0, 3, 10, 40, -20])
    def test_truncated(self, cache_bytes, length):
        """Test that a short file is rejected wherever it ends"""
        data = cache_bytes[:length]

        with pytest.raises(MalformedCacheFileError):
            codec.load(io.BytesIO(data))

    def test_cell_outside_texture(self, cache_bytes):
        """Test that glyph cells must lie inside their texture"""
        offset = cache_bytes.index(codec.TEXTURE_ATLAS_IDENT) + 4 + 40 + 4
        # move the first cell far to the right
        glyph_entry = bytearray(cache_bytes[offset : offset + 40])
        glyph_entry[8:12] = struct.pack("<f", 10000.0)
        glyph_entry[16:20] = struct.pack("<f", 10040.0)

        with pytest.raises(MalformedCacheFileError, match="Inconsistent atlas"):
            codec.load(io.BytesIO(corrupt(cache_bytes, offset, bytes(glyph_entry))))
