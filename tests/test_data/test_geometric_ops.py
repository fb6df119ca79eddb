"""
Tests for geometric operations.

This module tests crop, resize, mirror and expansion on pixel grids, and
the normalized box arithmetic they rely on.
"""

import pytest
import torch

from detaug.data.sample import NormalizedBox
from detaug.data.transforms.geometric import (
    center_offsets,
    crop,
    expand,
    mirror,
    resize,
    shorter_side_size,
)
from detaug.errors import InvalidArgument, OutOfRange


class TestNormalizedBox:
    """Tests for NormalizedBox arithmetic."""

    def test_from_pixels_round_trip(self):
        """Pixel offsets survive a trip through normalized coordinates."""
        box = NormalizedBox.from_pixels(5, 10, 224, 224, 240, 300)

        assert box.to_pixels(240, 300) == (5, 10, 224, 224)

    def test_compose_then_project_is_identity(self):
        """Projecting a composed box returns the inner box."""
        outer = NormalizedBox(0.2, 0.1, 0.8, 0.7)
        inner = NormalizedBox(0.25, 0.5, 0.75, 1.0)

        restored = outer.project(outer.compose(inner))

        assert restored.xmin == pytest.approx(inner.xmin)
        assert restored.ymin == pytest.approx(inner.ymin)
        assert restored.xmax == pytest.approx(inner.xmax)
        assert restored.ymax == pytest.approx(inner.ymax)

    def test_reframe_of_placement(self):
        """A centered half-size placement sees the canvas as [-0.5, 1.5]."""
        placement = NormalizedBox(0.25, 0.25, 0.75, 0.75)

        canvas = placement.reframe()

        assert canvas.xmin == pytest.approx(-0.5)
        assert canvas.ymin == pytest.approx(-0.5)
        assert canvas.xmax == pytest.approx(1.5)
        assert canvas.ymax == pytest.approx(1.5)

    def test_area_of_inverted_box_is_zero(self):
        assert NormalizedBox(0.5, 0.5, 0.4, 0.9).area == 0.0

    def test_intersect_disjoint(self):
        a = NormalizedBox(0.0, 0.0, 0.2, 0.2)
        b = NormalizedBox(0.5, 0.5, 0.9, 0.9)

        assert a.intersect(b) is None


class TestCrop:
    """Tests for crop."""

    def test_crop_matches_slice(self, make_image):
        """Crop extracts exactly the addressed pixels."""
        image = make_image(3, 100, 100)
        box = NormalizedBox.from_pixels(10, 20, 30, 40, 100, 100)

        cropped = crop(image, box)

        assert cropped.shape == (3, 30, 40)
        assert torch.equal(cropped, image[:, 10:40, 20:60])

    def test_crop_outside_image_raises(self, make_image):
        """Boxes extending past the image are rejected."""
        image = make_image(3, 100, 100)

        with pytest.raises(OutOfRange):
            crop(image, NormalizedBox(0.5, 0.5, 1.2, 1.0))

    def test_empty_crop_raises(self, make_image):
        image = make_image(3, 100, 100)

        with pytest.raises(OutOfRange):
            crop(image, NormalizedBox(0.5, 0.5, 0.5, 0.8))

    def test_out_of_range_is_index_error(self, make_image):
        """OutOfRange can be caught as a builtin IndexError."""
        with pytest.raises(IndexError):
            crop(make_image(1, 10, 10), NormalizedBox(-0.5, 0.0, 0.5, 1.0))

    def test_center_offsets(self):
        assert center_offsets(240, 300, 224, 224) == (8, 38)


class TestMirror:
    """Tests for mirror."""

    def test_mirror_is_involution(self, dummy_image):
        """Mirroring twice returns the original grid."""
        assert torch.equal(mirror(mirror(dummy_image)), dummy_image)

    def test_mirror_flips_columns(self, make_image):
        image = make_image(3, 8, 12)

        flipped = mirror(image)

        assert torch.equal(flipped[:, :, 0], image[:, :, -1])
        assert torch.equal(flipped[:, :, -1], image[:, :, 0])

    def test_mirror_float_grid(self):
        image = torch.rand(1, 5, 7) * 255

        assert torch.equal(mirror(mirror(image)), image)


class TestResize:
    """Tests for resize and shorter-side sizing."""

    def test_shorter_side_landscape(self):
        assert shorter_side_size(200, 300, 100) == (100, 150)

    def test_shorter_side_portrait(self):
        assert shorter_side_size(300, 200, 100) == (150, 100)

    def test_shorter_side_square(self):
        assert shorter_side_size(64, 64, 32) == (32, 32)

    def test_resize_shape_and_channels(self, dummy_image):
        resized = resize(dummy_image, 120, 150)

        assert resized.shape == (3, 120, 150)
        assert resized.dtype == dummy_image.dtype

    def test_resize_to_same_size_is_identity(self, dummy_image):
        assert resize(dummy_image, 240, 300) is dummy_image

    def test_resize_is_deterministic(self, dummy_image):
        assert torch.equal(resize(dummy_image, 97, 131), resize(dummy_image, 97, 131))

    def test_nearest_keeps_label_values(self):
        """Nearest interpolation never invents new label values."""
        from torchvision.transforms import InterpolationMode

        labels = torch.randint(0, 4, (1, 40, 60), dtype=torch.uint8)

        resized = resize(labels, 23, 37, InterpolationMode.NEAREST)

        assert set(resized.unique().tolist()) <= set(labels.unique().tolist())

    def test_invalid_target_raises(self, dummy_image):
        with pytest.raises(InvalidArgument):
            resize(dummy_image, 0, 10)


class TestExpand:
    """Tests for canvas expansion."""

    def test_canvas_shape_and_placement(self, make_image):
        image = make_image(3, 10, 20)

        canvas, placement = expand(image, 2.0, fill_value=(1, 2, 3), top=4, left=6)

        assert canvas.shape == (3, 20, 40)
        assert torch.equal(canvas[:, 4:14, 6:26], image)
        assert placement == NormalizedBox.from_pixels(4, 6, 10, 20, 20, 40)

    def test_canvas_filled_with_fill_value(self, make_image):
        image = make_image(3, 10, 20)

        canvas, _ = expand(image, 2.0, fill_value=(1, 2, 3), top=0, left=0)

        assert torch.all(canvas[0, 15:, :] == 1)
        assert torch.all(canvas[1, 15:, :] == 2)
        assert torch.all(canvas[2, :, 30:] == 3)

    def test_default_placement_is_centered(self, make_image):
        image = make_image(1, 10, 10)

        _, placement = expand(image, 3.0)

        assert placement == NormalizedBox.from_pixels(10, 10, 10, 10, 30, 30)

    def test_uint8_fill_is_rounded(self, make_image):
        canvas, _ = expand(make_image(1, 4, 4), 2.0, fill_value=104.6, top=0, left=0)

        assert canvas.dtype == torch.uint8
        assert canvas[0, -1, -1].item() == 105

    def test_ratio_below_one_raises(self, make_image):
        with pytest.raises(InvalidArgument):
            expand(make_image(), 0.5)

    def test_placement_outside_canvas_raises(self, make_image):
        with pytest.raises(InvalidArgument):
            expand(make_image(1, 10, 10), 2.0, top=15, left=0)
