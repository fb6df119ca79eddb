"""Image codec adapter.

Converts encoded image bytes to (C, H, W) ``uint8`` pixel grids and back
with Pillow. The transform engine itself never decodes; callers use these
helpers before and after a pipeline run.
"""

import io
from typing import List, Optional

import torch
from torch import Tensor
from PIL import Image, UnidentifiedImageError
import torchvision.transforms.functional as F

from detaug.data.sample import Annotation, Sample
from detaug.errors import InvalidArgument


def decode(data: bytes, mode: Optional[str] = None) -> Tensor:
    """Decode image bytes into a (C, H, W) ``uint8`` tensor.

    Args:
        data: Encoded image (any format Pillow reads).
        mode: Pillow mode to convert to, e.g. ``"RGB"`` or ``"L"``.
            Defaults to ``"L"`` for grayscale inputs and ``"RGB"`` otherwise.
    """
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidArgument(f"Cannot decode image: {e}") from e

    if mode is None:
        mode = "L" if image.mode in ("L", "1") else "RGB"
    if image.mode != mode:
        image = image.convert(mode)
    return F.pil_to_tensor(image)


def encode(pixels: Tensor, format: str = "PNG") -> bytes:
    """Encode a (C, H, W) ``uint8`` tensor with 1 or 3 channels."""
    if pixels.dtype != torch.uint8:
        raise InvalidArgument(f"Only uint8 pixel grids can be encoded, got {pixels.dtype}")
    if pixels.dim() != 3 or pixels.shape[0] not in (1, 3):
        raise InvalidArgument(f"Expected a (1|3, H, W) tensor, got {tuple(pixels.shape)}")

    buffer = io.BytesIO()
    F.to_pil_image(pixels.cpu()).save(buffer, format=format)
    return buffer.getvalue()


def sample_from_bytes(
    data: bytes,
    annotations: Optional[List[Annotation]] = None,
    label: Optional[int] = None,
    mode: Optional[str] = None,
) -> Sample:
    """Decode image bytes into a ``Sample``."""
    return Sample(decode(data, mode), list(annotations or []), label)
