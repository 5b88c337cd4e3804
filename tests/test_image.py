"""Test module for sdftext.image

These tests cover texture validation, float to uint8 conversion and PNG
round trips through Pillow.
"""

import numpy as np
import pytest

from sdftext.errors import MalformedCacheFileError
from sdftext.image import decode_png, encode_png, float_to_rgb8, new_texture, save_texture, validate_texture


class TestTextures:
    """Test class for texture helpers"""

    def test_new_texture(self):
        """Test that a new texture is black with rows first"""
        texture = new_texture(4, 2)

        assert texture.shape == (2, 4, 3)
        assert texture.dtype == np.uint8
        assert not texture.any()

    def test_new_texture_invalid_size(self):
        """Test that empty textures are rejected"""
        with pytest.raises(ValueError):
            new_texture(0, 2)

    def test_validate_wrong_type(self):
        """Test validation of non arrays"""
        with pytest.raises(TypeError, match="NumPy array"):
            validate_texture([[0, 0, 0]])

    def test_validate_wrong_dtype(self):
        """Test validation of the element type"""
        with pytest.raises(ValueError, match="uint8"):
            validate_texture(np.zeros((2, 2, 3), dtype=np.float32))

    def test_validate_wrong_shape(self):
        """Test validation of the channel count"""
        with pytest.raises(ValueError, match="shape"):
            validate_texture(np.zeros((2, 2), dtype=np.uint8))

    def test_float_to_rgb8(self):
        """Test rounding and clamping"""
        values = np.array([[[0.0, 0.5, 1.0]], [[-0.2, 1.2, 0.1]]])

        converted = float_to_rgb8(values)

        assert converted.tolist() == [[[0, 128, 255]], [[0, 255, 26]]]


class TestPng:
    """Test class for PNG encoding"""

    def test_lossless_roundtrip(self):
        """Test that PNG keeps every byte"""
        texture = np.arange(2 * 3 * 3, dtype=np.uint8).reshape(2, 3, 3)

        decoded = decode_png(encode_png(texture))

        np.testing.assert_array_equal(decoded, texture)

    def test_png_signature(self):
        """Test that the encoded bytes are a PNG"""
        assert encode_png(new_texture(2, 2))[:8] == b"\x89PNG\r\n\x1a\n"

    def test_decode_garbage(self):
        """Test that unreadable data raises the cache file error"""
        with pytest.raises(MalformedCacheFileError):
            decode_png(b"not a png")

    def test_save_texture(self, tmp_path):
        """Test writing an image file"""
        path = tmp_path / "atlas.png"

        save_texture(new_texture(8, 4), path)

        assert decode_png(path.read_bytes()).shape == (4, 8, 3)
