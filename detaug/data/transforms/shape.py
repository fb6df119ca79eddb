"""Output shape inference.

The destination tensor is allocated before any pixel is touched, so the
shape of a (descriptor, config) pair is computed by folding every step's
shape rule over per-dimension ``(min, max)`` bounds. A crop always fixes
the size it produces, which is why it wins over any earlier resize.
"""

from typing import Optional, Sequence, Union

import torch

from detaug.data.sample import ImageDescriptor, Sample
from detaug.data.transforms.params import TransformConfig
from detaug.data.transforms.steps import (
    NormalizeStep,
    ShapeRange,
    StepKind,
    TransformStep,
    build_steps,
)
from detaug.errors import InvalidShape


def infer_shape(
    descriptor: Union[ImageDescriptor, Sample],
    config: TransformConfig,
    steps: Optional[Sequence[TransformStep]] = None,
) -> torch.Size:
    """Compute the output shape ``[1, C, H, W]`` without running transforms.

    Args:
        descriptor: Image dimensions, or a sample to take them from.
        config: Resolved transform configuration.
        steps: Pre-built steps for ``config``; built on demand otherwise.

    Returns:
        Output tensor shape.

    Raises:
        InvalidShape: If a crop exceeds the guaranteed image size, the
            final size is not fixed, or a mean image does not fit.
        InvalidConfiguration: If the mean values do not match the channels.
    """
    if isinstance(descriptor, Sample):
        descriptor = descriptor.descriptor
    if steps is None:
        steps = build_steps(config)

    shape = ShapeRange.exact(descriptor.channels, descriptor.height, descriptor.width)
    pre_crop = shape
    for step in steps:
        if step.kind is StepKind.CROP:
            pre_crop = shape
        shape = step.infer_shape(shape)

    if not shape.is_exact:
        raise InvalidShape(
            f"Output size is not fixed for a {descriptor.height}x{descriptor.width} image: "
            f"height in {shape.height}, width in {shape.width}"
        )

    NormalizeStep(config).check_channels(shape.channels)
    if config.mean_image is not None:
        mean_shape = tuple(config.mean_image.shape)
        source = pre_crop if config.crop_size else shape
        if not source.is_exact or mean_shape != (
            source.channels,
            source.height[0],
            source.width[0],
        ):
            raise InvalidShape(
                f"Mean image {mean_shape} does not match the image size "
                f"({source.channels}, {source.height}, {source.width})"
            )

    return torch.Size([1, shape.channels, shape.height[0], shape.width[0]])
