"""Transform engine for detection samples.

This package turns a sample (pixel grid + annotations) into a fixed-shape
tensor while keeping annotations consistent with the pixels.

Structure:
    params: Immutable ``TransformConfig`` and its parameter groups
    random_stream: Seeded per-pipeline random stream
    geometric/: Crop, resize, mirror and expansion operations
    photometric/: Color distortion
    annotation: Bounding-box adjustment under geometric transforms
    steps: Tagged steps forming the transform chain
    shape: Output shape inference
    pipeline: ``TransformPipeline`` orchestrating one sample

Example:
    >>> from detaug.data.transforms import TransformConfig, TransformPipeline
    >>> pipeline = TransformPipeline(TransformConfig(crop_size=224, mirror=True), seed=0)
    >>> result = pipeline.transform(sample)
    >>> result.tensor.shape
    torch.Size([1, 3, 224, 224])
"""

from .params import (
    TransformConfig,
    ResizeParams,
    DistortionParams,
    ExpansionParams,
    EmitConstraint,
)
from .random_stream import RandomStream, derive_seed
from .geometric import crop, resize, mirror, expand
from .photometric import ColorDraw, distort_color
from .annotation import AnnotationAdjuster
from .steps import StepKind, build_steps
from .shape import infer_shape
from .pipeline import PipelineState, TransformPipeline, TransformResult

__all__ = [
    # Configuration
    "TransformConfig",
    "ResizeParams",
    "DistortionParams",
    "ExpansionParams",
    "EmitConstraint",
    # Randomness
    "RandomStream",
    "derive_seed",
    # Operations
    "crop",
    "resize",
    "mirror",
    "expand",
    "ColorDraw",
    "distort_color",
    "AnnotationAdjuster",
    # Pipeline
    "StepKind",
    "build_steps",
    "infer_shape",
    "PipelineState",
    "TransformPipeline",
    "TransformResult",
]
