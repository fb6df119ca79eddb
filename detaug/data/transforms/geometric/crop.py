"""Crop operations on (C, H, W) pixel grids."""

from typing import Tuple

from torch import Tensor

from detaug.data.sample import NormalizedBox
from detaug.errors import OutOfRange


def crop(pixels: Tensor, box: NormalizedBox) -> Tensor:
    """Extract the region described by a normalized box.

    Args:
        pixels: Pixel grid of shape (C, H, W).
        box: Region in coordinates normalized to the grid size.

    Returns:
        Cropped grid of shape (C, crop_h, crop_w).

    Raises:
        OutOfRange: If the region is empty or not fully inside the grid.
    """
    _, img_h, img_w = pixels.shape
    top, left, crop_h, crop_w = box.to_pixels(img_h, img_w)

    if crop_h <= 0 or crop_w <= 0:
        raise OutOfRange(f"Crop region {box} is empty for a {img_h}x{img_w} image")
    if top < 0 or left < 0 or top + crop_h > img_h or left + crop_w > img_w:
        raise OutOfRange(
            f"Crop region (top={top}, left={left}, h={crop_h}, w={crop_w}) "
            f"exceeds a {img_h}x{img_w} image"
        )

    return pixels[:, top:top + crop_h, left:left + crop_w]


def center_offsets(img_h: int, img_w: int, crop_h: int, crop_w: int) -> Tuple[int, int]:
    """Offsets ``(top, left)`` of a centered crop."""
    return (img_h - crop_h) // 2, (img_w - crop_w) // 2
