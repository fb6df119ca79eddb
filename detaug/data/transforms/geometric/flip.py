"""Mirror operation on (C, H, W) pixel grids."""

from torch import Tensor
import torchvision.transforms.functional as F


def mirror(pixels: Tensor) -> Tensor:
    """Flip a pixel grid horizontally. Applying it twice is the identity."""
    return F.hflip(pixels)
