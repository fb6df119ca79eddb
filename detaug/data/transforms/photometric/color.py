"""Color distortion for the transform engine.

The four perturbations always run in the order brightness, contrast,
saturation, hue. A ``ColorDraw`` holds the unit random values consumed by
one call, so the same draw reproduces the same distortion everywhere.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from torch import Tensor
import torchvision.transforms.functional as F

from detaug.data.transforms.params import DistortionParams
from detaug.data.transforms.random_stream import RAND_RANGE

logger = logging.getLogger("detaug.transforms")

COLOR_ORDER = ("brightness", "contrast", "saturation", "hue")
NEUTRAL_FACTORS = {"brightness": 1.0, "contrast": 1.0, "saturation": 1.0, "hue": 0.0}


@dataclass(frozen=True)
class ColorDraw:
    """Unit random values for one distortion call.

    Args:
        gates: Per-perturbation values in [0, 1); a perturbation is applied
            when its gate is below the configured probability.
        values: Per-perturbation positions in [0, 1] inside the configured
            factor range.
    """

    gates: Tuple[float, float, float, float] = (1.0, 1.0, 1.0, 1.0)
    values: Tuple[float, float, float, float] = (0.5, 0.5, 0.5, 0.5)

    @classmethod
    def sample(cls, stream) -> "ColorDraw":
        """Take eight fresh values from a ``RandomStream``."""
        gates = tuple(stream.next() / RAND_RANGE for _ in COLOR_ORDER)
        values = tuple(stream.next() / (RAND_RANGE - 1) for _ in COLOR_ORDER)
        return cls(gates, values)


def color_factors(draw: ColorDraw, params: DistortionParams) -> List[Tuple[str, Optional[float]]]:
    """Resolve a draw against configured ranges.

    Returns:
        ``(name, factor)`` pairs in application order; ``factor`` is None
        for perturbations that are not applied or resolve to a no-op
        (a factor of 1 for brightness, contrast and saturation, 0 for hue).
    """
    ranges = {
        "brightness": (params.brightness_prob, params.brightness),
        "contrast": (params.contrast_prob, params.contrast),
        "saturation": (params.saturation_prob, params.saturation),
        "hue": (params.hue_prob, (-params.hue, params.hue)),
    }
    factors = []
    for name, gate, value in zip(COLOR_ORDER, draw.gates, draw.values):
        prob, (lower, upper) = ranges[name]
        factor = lower + value * (upper - lower) if gate < prob else None
        if factor == NEUTRAL_FACTORS[name]:
            factor = None
        factors.append((name, factor))
    return factors


def distort_color(pixels: Tensor, draw: ColorDraw, params: DistortionParams) -> Tensor:
    """Apply brightness, contrast, saturation and hue perturbations.

    Args:
        pixels: Pixel grid of shape (C, H, W), ``uint8`` or floating point
            on the 0..255 scale.
        draw: Random values for this call.
        params: Configured probabilities and ranges.

    Returns:
        Distorted grid with the input dtype. The input itself is returned
        when no perturbation applies.
    """
    factors = [(name, factor) for name, factor in color_factors(draw, params) if factor is not None]
    if not factors:
        return pixels

    channels = pixels.shape[0]
    scaled = pixels.is_floating_point()
    image = pixels / 255.0 if scaled else pixels

    for name, factor in factors:
        if name == "brightness":
            image = F.adjust_brightness(image, factor)
        elif channels not in (1, 3):
            logger.debug(f"Skipping {name} for a {channels}-channel image")
        elif name == "contrast":
            image = F.adjust_contrast(image, factor)
        elif channels != 3:
            logger.debug(f"Skipping {name} for a {channels}-channel image")
        elif name == "saturation":
            image = F.adjust_saturation(image, factor)
        else:
            image = F.adjust_hue(image, factor)

    return image * 255.0 if scaled else image
