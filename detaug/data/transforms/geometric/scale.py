"""Resize operations on (C, H, W) pixel grids."""

from typing import Tuple

from torch import Tensor
import torchvision.transforms.functional as F
from torchvision.transforms import InterpolationMode

from detaug.errors import InvalidArgument


def shorter_side_size(img_h: int, img_w: int, side: int) -> Tuple[int, int]:
    """Size ``(h, w)`` whose shorter side equals ``side``, aspect ratio kept.

    Args:
        img_h: Original height.
        img_w: Original width.
        side: Target length of the shorter side.
    """
    if img_h <= img_w:
        return side, int(img_w * side / img_h + 0.5)
    return int(img_h * side / img_w + 0.5), side


def resize(
    pixels: Tensor,
    height: int,
    width: int,
    interpolation: InterpolationMode = InterpolationMode.BILINEAR,
) -> Tensor:
    """Resize a pixel grid to ``height x width``; channels are preserved.

    Args:
        pixels: Pixel grid of shape (C, H, W).
        height: Target height.
        width: Target width.
        interpolation: Bilinear for images, nearest for label maps.
    """
    if height <= 0 or width <= 0:
        raise InvalidArgument(f"Resize target must be positive, got {height}x{width}")
    if pixels.shape[-2:] == (height, width):
        return pixels
    antialias = interpolation != InterpolationMode.NEAREST
    return F.resize(pixels, [height, width], interpolation=interpolation, antialias=antialias)
