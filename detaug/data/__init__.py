"""Data types, codec adapters and batch adapters for detaug.

Modules:
    sample: Sample, Annotation, NormalizedBox, RandomDraw and Phase
    codec: Pillow-backed decode/encode of pixel grids
    transforms: The transform engine
    batch: Batch, stacked-tensor and paired image/label adapters

Example:
    >>> from detaug.data import BatchAdapter, Sample, TransformConfig, TransformPipeline
    >>> pipeline = TransformPipeline(TransformConfig(crop_size=224), phase="test")
    >>> batch = BatchAdapter(pipeline).transform([Sample(image)])
"""

from .sample import Annotation, ImageDescriptor, NormalizedBox, Phase, RandomDraw, Sample
from .codec import decode, encode, sample_from_bytes
from .transforms import (
    TransformConfig,
    TransformPipeline,
    TransformResult,
    infer_shape,
)
from .batch import BatchAdapter, BatchResult

__all__ = [
    # Types
    "Annotation",
    "ImageDescriptor",
    "NormalizedBox",
    "Phase",
    "RandomDraw",
    "Sample",
    # Codec
    "decode",
    "encode",
    "sample_from_bytes",
    # Transforms
    "TransformConfig",
    "TransformPipeline",
    "TransformResult",
    "infer_shape",
    # Batching
    "BatchAdapter",
    "BatchResult",
]
