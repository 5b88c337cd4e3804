"""Tests for the shapely based distance field generator in sdftext.distance_field"""

import numpy as np
import pytest

from sdftext.distance_field import ShapelyDistanceFieldGenerator, invert_bitmap, median_channel
from sdftext.fonttools import Winding
from sdftext.shape import Contour, EdgeColor, LinearSegment, Shape


def square(corners):
    """Shape with one contour through `corners`, all edges white"""
    edges = [LinearSegment([start, corners[(index + 1) % len(corners)]]) for index, start in enumerate(corners)]
    return Shape([Contour(edges)])


CLOCKWISE_SQUARE = [(2.0, 2.0), (2.0, 14.0), (14.0, 14.0), (14.0, 2.0)]


@pytest.fixture
def generator():
    """Generator with default settings"""
    return ShapelyDistanceFieldGenerator()


class TestShapelyDistanceFieldGenerator:
    """Test cases for generate"""

    def test_expected_winding(self, generator):
        """Test the generator expects TrueType orientation"""
        assert generator.expected_winding == Winding.CLOCKWISE

    def test_inside_and_outside(self, generator):
        """Test that values are above 0.5 inside and below outside"""
        bitmap = generator.generate(square(CLOCKWISE_SQUARE), 16, 16, 4.0, (1.0, 1.0), (0.0, 0.0))

        assert bitmap.shape == (16, 16, 3)
        assert bitmap.dtype == np.float32
        median = median_channel(bitmap)
        assert median[8, 8] == pytest.approx(1.0)
        assert median[0, 0] == pytest.approx(0.0)
        assert median[8, 2] > 0.5
        assert median[8, 1] < 0.5

    def test_linear_ramp(self, generator):
        """Test the value at half a pixel from the outline"""
        bitmap = generator.generate(square(CLOCKWISE_SQUARE), 16, 16, 4.0, (1.0, 1.0), (0.0, 0.0))

        # pixel center x = 2.5 is 0.5 units inside the left edge
        assert bitmap[8, 2, 0] == pytest.approx(0.5 + 0.5 / 4.0, abs=1e-4)
        assert bitmap[8, 1, 0] == pytest.approx(0.5 - 0.5 / 4.0, abs=1e-4)

    def test_scale_and_translate(self, generator):
        """Test that pixels sample the shape at (p + 0.5) / scale - translate"""
        bitmap = generator.generate(square(CLOCKWISE_SQUARE), 8, 8, 4.0, (0.5, 0.5), (0.0, 0.0))

        # pixel 4 samples x = 9, the center of the square
        assert median_channel(bitmap)[4, 4] == pytest.approx(1.0)

    def test_reversed_contour_inverts(self, generator):
        """Test that reversing the winding maps every value v to 1 - v"""
        clockwise = generator.generate(square(CLOCKWISE_SQUARE), 16, 16, 4.0, (1.0, 1.0), (0.0, 0.0))
        counter_clockwise = generator.generate(
            square(list(reversed(CLOCKWISE_SQUARE))), 16, 16, 4.0, (1.0, 1.0), (0.0, 0.0)
        )

        np.testing.assert_allclose(invert_bitmap(clockwise), counter_clockwise, atol=1e-5)

    def test_empty_shape(self, generator):
        """Test that a shape without edges renders all zeros"""
        bitmap = generator.generate(Shape(), 4, 3, 4.0, (1.0, 1.0), (0.0, 0.0))

        assert bitmap.shape == (3, 4, 3)
        assert not bitmap.any()

    def test_inverse_y_axis(self, generator):
        """Test that rows are flipped for inverse y shapes"""
        corners = [(0.0, 0.0), (0.0, 4.0), (8.0, 4.0), (8.0, 0.0)]
        upright = generator.generate(square(corners), 8, 8, 2.0, (1.0, 1.0), (0.0, 0.0))
        flipped_shape = square(corners)
        flipped_shape.inverse_y_axis = True

        flipped = generator.generate(flipped_shape, 8, 8, 2.0, (1.0, 1.0), (0.0, 0.0))

        np.testing.assert_allclose(flipped, upright[::-1])

    def test_channels_follow_edge_colors(self, generator):
        """Test that a channel only sees the edges of its color"""
        shape = square(CLOCKWISE_SQUARE)
        generator.color_edges(shape, 3.0)
        colors = {edge.color for edge in shape.contours[0].edges}

        bitmap = generator.generate(shape, 16, 16, 4.0, (1.0, 1.0), (0.0, 0.0))

        assert EdgeColor.WHITE not in colors
        assert median_channel(bitmap)[8, 8] > 0.5

    @pytest.mark.parametrize("width, height, distance_range", [(0, 4, 4.0), (4, -1, 4.0), (4, 4, 0.0)])
    def test_invalid_arguments(self, generator, width, height, distance_range):
        """Test rejected sizes and ranges"""
        with pytest.raises(ValueError):
            generator.generate(Shape(), width, height, distance_range, (1.0, 1.0), (0.0, 0.0))

    def test_invalid_polygonize_steps(self):
        """Test rejected constructor arguments"""
        with pytest.raises(ValueError):
            ShapelyDistanceFieldGenerator(polygonize_steps=0)
