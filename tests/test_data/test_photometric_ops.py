"""
Tests for photometric (color) distortion.
"""

import pytest
import torch
import torchvision.transforms.functional as F

from detaug.data.transforms.params import DistortionParams
from detaug.data.transforms.photometric import COLOR_ORDER, ColorDraw, color_factors, distort_color
from detaug.data.transforms.random_stream import RandomStream

ALWAYS = (0.0, 0.0, 0.0, 0.0)


@pytest.fixture
def full_params() -> DistortionParams:
    """Every perturbation enabled with probability 1."""
    return DistortionParams(
        brightness_prob=1.0,
        brightness=(0.5, 1.5),
        contrast_prob=1.0,
        contrast=(0.5, 1.5),
        saturation_prob=1.0,
        saturation=(0.5, 1.5),
        hue_prob=1.0,
        hue=0.1,
    )


class TestColorFactors:
    """Tests for resolving draws into factors."""

    def test_default_draw_applies_nothing(self):
        """The default draw gates every perturbation off."""
        factors = color_factors(ColorDraw(), DistortionParams(brightness_prob=0.5))

        assert [f for _, f in factors] == [None, None, None, None]

    def test_factor_order(self, full_params):
        factors = color_factors(ColorDraw(gates=ALWAYS), full_params)

        assert tuple(name for name, _ in factors) == COLOR_ORDER

    def test_factor_interpolates_range(self, full_params):
        draw = ColorDraw(gates=ALWAYS, values=(0.0, 1.0, 0.25, 0.75))

        factors = dict(color_factors(draw, full_params))

        assert factors["brightness"] == pytest.approx(0.5)
        assert factors["contrast"] == pytest.approx(1.5)
        assert factors["saturation"] == pytest.approx(0.75)
        assert factors["hue"] == pytest.approx(0.05)

    def test_gate_against_probability(self):
        params = DistortionParams(brightness_prob=0.3, brightness=(0.8, 1.2))

        on = dict(color_factors(ColorDraw(gates=(0.2, 1, 1, 1)), params))
        off = dict(color_factors(ColorDraw(gates=(0.3, 1, 1, 1)), params))

        assert on["brightness"] is not None
        assert off["brightness"] is None

    def test_neutral_range_applies_nothing(self):
        """Gated-on perturbations with no-op ranges resolve to None."""
        params = DistortionParams(brightness_prob=1.0, contrast_prob=1.0, saturation_prob=1.0, hue_prob=1.0)

        factors = color_factors(ColorDraw(gates=ALWAYS, values=(0.1, 0.4, 0.6, 0.9)), params)

        assert [f for _, f in factors] == [None, None, None, None]

    def test_neutral_value_inside_range(self, full_params):
        draw = ColorDraw(gates=ALWAYS, values=(0.5, 0.5, 0.5, 0.5))

        factors = dict(color_factors(draw, full_params))

        assert factors == {"brightness": None, "contrast": None, "saturation": None, "hue": None}


class TestDistortColor:
    """Tests for distort_color."""

    def test_no_factors_is_identity(self, dummy_image):
        out = distort_color(dummy_image, ColorDraw(), DistortionParams())

        assert torch.equal(out, dummy_image)

    def test_neutral_factors_leave_float_input_untouched(self, dummy_image):
        image = dummy_image.float() * 0.7 + 0.3
        params = DistortionParams(brightness_prob=1.0, contrast_prob=1.0, saturation_prob=1.0, hue_prob=1.0)

        out = distort_color(image, ColorDraw(gates=ALWAYS), params)

        assert torch.equal(out, image)

    def test_brightness_matches_torchvision(self, dummy_image):
        params = DistortionParams(brightness_prob=1.0, brightness=(0.5, 1.5))
        draw = ColorDraw(gates=(0.0, 1.0, 1.0, 1.0), values=(0.75, 0.5, 0.5, 0.5))

        out = distort_color(dummy_image, draw, params)

        assert torch.equal(out, F.adjust_brightness(dummy_image, 1.25))

    def test_fixed_order(self, dummy_image, full_params):
        """Perturbations are applied brightness, contrast, saturation, hue."""
        draw = ColorDraw(gates=ALWAYS, values=(0.2, 0.9, 0.3, 0.8))
        factors = dict(color_factors(draw, full_params))

        expected = F.adjust_brightness(dummy_image, factors["brightness"])
        expected = F.adjust_contrast(expected, factors["contrast"])
        expected = F.adjust_saturation(expected, factors["saturation"])
        expected = F.adjust_hue(expected, factors["hue"])

        assert torch.equal(distort_color(dummy_image, draw, full_params), expected)

    def test_preserves_dtype_and_shape(self, dummy_image, full_params):
        draw = ColorDraw(gates=ALWAYS, values=(0.1, 0.2, 0.3, 0.4))

        out = distort_color(dummy_image, draw, full_params)

        assert out.dtype == torch.uint8
        assert out.shape == dummy_image.shape

    def test_float_input_stays_on_255_scale(self, dummy_image):
        params = DistortionParams(brightness_prob=1.0, brightness=(2.0, 2.0))
        image = dummy_image.float() / 4.0

        out = distort_color(image, ColorDraw(gates=ALWAYS), params)

        assert out.dtype == torch.float32
        assert torch.allclose(out, (image * 2.0).clamp(max=255.0), atol=1e-3)

    def test_grayscale_skips_saturation_and_hue(self, make_image, full_params):
        image = make_image(1, 32, 32)
        draw = ColorDraw(gates=ALWAYS, values=(0.2, 0.9, 0.3, 0.8))
        factors = dict(color_factors(draw, full_params))

        out = distort_color(image, draw, full_params)

        expected = F.adjust_contrast(F.adjust_brightness(image, factors["brightness"]), factors["contrast"])
        assert torch.equal(out, expected)

    def test_four_channels_only_brightness(self, make_image, full_params):
        image = make_image(4, 16, 16)
        draw = ColorDraw(gates=ALWAYS, values=(0.2, 0.9, 0.3, 0.8))
        factors = dict(color_factors(draw, full_params))

        out = distort_color(image, draw, full_params)

        assert torch.equal(out, F.adjust_brightness(image, factors["brightness"]))


class TestColorDraw:
    """Tests for sampling color draws."""

    def test_sample_is_deterministic(self):
        assert ColorDraw.sample(RandomStream(4)) == ColorDraw.sample(RandomStream(4))

    def test_sample_ranges(self):
        stream = RandomStream(4)

        for _ in range(20):
            draw = ColorDraw.sample(stream)
            assert all(0.0 <= g < 1.0 for g in draw.gates)
            assert all(0.0 <= v <= 1.0 for v in draw.values)
