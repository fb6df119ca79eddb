"""Canvas expansion for zoom-out augmentation."""

from typing import Optional, Sequence, Tuple, Union

import torch
from torch import Tensor

from detaug.data.sample import NormalizedBox
from detaug.errors import InvalidArgument


def expanded_size(img_h: int, img_w: int, ratio: float) -> Tuple[int, int]:
    """Canvas size for an expansion ratio."""
    return int(img_h * ratio), int(img_w * ratio)


def expand(
    pixels: Tensor,
    ratio: float,
    fill_value: Union[float, Sequence[float]] = 0.0,
    top: Optional[int] = None,
    left: Optional[int] = None,
) -> Tuple[Tensor, NormalizedBox]:
    """Place a pixel grid on a larger canvas.

    Args:
        pixels: Pixel grid of shape (C, H, W).
        ratio: Canvas/image size ratio, at least 1.
        fill_value: Canvas value, one per channel or shared.
        top: Vertical placement offset. Defaults to centered.
        left: Horizontal placement offset. Defaults to centered.

    Returns:
        Canvas of shape (C, H * ratio, W * ratio) and the placement of the
        original grid, normalized to the canvas.
    """
    if ratio < 1.0:
        raise InvalidArgument(f"Expansion ratio must be >= 1, got {ratio}")

    channels, img_h, img_w = pixels.shape
    canvas_h, canvas_w = expanded_size(img_h, img_w, ratio)
    if top is None:
        top = (canvas_h - img_h) // 2
    if left is None:
        left = (canvas_w - img_w) // 2
    if not (0 <= top <= canvas_h - img_h and 0 <= left <= canvas_w - img_w):
        raise InvalidArgument(
            f"Placement (top={top}, left={left}) does not fit a {canvas_h}x{canvas_w} canvas"
        )

    fill = torch.as_tensor(fill_value, dtype=torch.float32).flatten()
    if fill.numel() not in (1, channels):
        raise InvalidArgument(f"Expected 1 or {channels} fill values, got {fill.numel()}")
    fill = fill.expand(channels)
    if not pixels.is_floating_point():
        fill = fill.round()

    canvas = fill.to(device=pixels.device, dtype=pixels.dtype).view(channels, 1, 1)
    canvas = canvas.expand(channels, canvas_h, canvas_w).clone()
    canvas[:, top:top + img_h, left:left + img_w] = pixels

    placement = NormalizedBox.from_pixels(top, left, img_h, img_w, canvas_h, canvas_w)
    return canvas, placement
