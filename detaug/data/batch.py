"""Batch adapters around ``TransformPipeline``.

Every adapter converts its input representation into ``Sample`` objects
and calls ``TransformPipeline.transform`` once per sample, so batched and
single-sample execution produce identical values. All samples share the
pipeline's configuration; each one receives its own random draw unless a
shared draw is passed explicitly.

Example:
    >>> adapter = BatchAdapter(pipeline)
    >>> batch = adapter.transform([sample_a, sample_b])
    >>> batch.tensor.shape
    torch.Size([2, 3, 224, 224])
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import torch
from torch import Tensor

from detaug.data.sample import Annotation, NormalizedBox, RandomDraw, Sample
from detaug.data.transforms.pipeline import TransformPipeline, check_destination
from detaug.errors import InvalidArgument, ShapeMismatch


@dataclass
class BatchResult:
    """Output of a batch transform.

    Attributes:
        tensor: Transformed batch, shape (N, C, H, W).
        annotations: Adjusted annotations per sample.
        mirrors: Mirror flag per sample.
        crop_boxes: Visible region per sample, in source coordinates.
        draws: Random draw consumed per sample.
    """

    tensor: Tensor
    annotations: List[List[Annotation]]
    mirrors: List[bool]
    crop_boxes: List[NormalizedBox]
    draws: List[RandomDraw]


class BatchAdapter:
    """Drive a pipeline over batches.

    Args:
        pipeline: Pipeline applied to every sample.
    """

    def __init__(self, pipeline: TransformPipeline) -> None:
        self.pipeline = pipeline

    def infer_shape(self, samples: Sequence[Sample]) -> torch.Size:
        """Batch shape ``[N, C, H, W]``; every sample must agree."""
        if len(samples) == 0:
            raise InvalidArgument("Cannot infer the shape of an empty batch")
        shape = self.pipeline.infer_shape(samples[0])
        for i, sample in enumerate(samples[1:], start=1):
            other = self.pipeline.infer_shape(sample)
            if other != shape:
                raise ShapeMismatch(
                    f"Sample {i} transforms to {tuple(other)}, expected {tuple(shape)}"
                )
        return torch.Size([len(samples), *shape[1:]])

    def transform(
        self,
        samples: Sequence[Sample],
        out: Optional[Tensor] = None,
        draw: Optional[RandomDraw] = None,
    ) -> BatchResult:
        """Transform a list of samples into one batch tensor.

        Args:
            samples: Samples to transform.
            out: Destination of the inferred batch shape. Allocated when
                omitted.
            draw: Draw shared by every sample; per-sample draws otherwise.
        """
        shape = self.infer_shape(samples)
        if out is None:
            out = torch.empty(shape, dtype=torch.float32, device=self.pipeline.device)
        else:
            check_destination(out, shape)

        annotations, mirrors, crop_boxes, draws = [], [], [], []
        for i, sample in enumerate(samples):
            result = self.pipeline.transform(sample, out=out[i:i + 1], draw=draw)
            annotations.append(result.annotations)
            mirrors.append(result.mirror)
            crop_boxes.append(result.crop_box)
            draws.append(result.draw)

        return BatchResult(out, annotations, mirrors, crop_boxes, draws)

    def transform_stacked(
        self,
        images: Tensor,
        out: Optional[Tensor] = None,
        draw: Optional[RandomDraw] = None,
    ) -> Tensor:
        """Transform a pre-stacked (N, C, H, W) tensor."""
        if images.dim() != 4:
            raise InvalidArgument(f"Expected an (N, C, H, W) tensor, got {tuple(images.shape)}")
        samples = [Sample(image) for image in images]
        return self.transform(samples, out=out, draw=draw).tensor

    def transform_pair(
        self,
        image: Tensor,
        label_map: Tensor,
        draw: Optional[RandomDraw] = None,
    ) -> Tuple[Tensor, Tensor]:
        """Transform an image and its label map with the same geometry.

        The label map replays the crops, resizes, expansion and mirror
        resolved for the image, without distortion or normalization.

        Returns:
            Image tensor (1, C, H, W) and label tensor (1, C_label, H, W).
        """
        sample = Sample(image)
        if label_map.shape[-2:] != sample.image.shape[-2:]:
            raise ShapeMismatch(
                f"Label map {tuple(label_map.shape)} does not match image "
                f"{tuple(sample.image.shape)}"
            )
        result = self.pipeline.transform(sample, draw=draw)
        label = self.pipeline.replay(result, label_map)
        return result.tensor, label
