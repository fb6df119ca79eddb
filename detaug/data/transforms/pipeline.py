"""Transform pipeline: one sample in, one fixed-shape tensor out.

A pipeline owns its configuration, its step chain and (lazily) its random
stream. Each invocation runs to completion on the calling thread and moves
through ``CONFIGURED -> SHAPE_RESOLVED -> TRANSFORMED -> DONE``, or to
``FAILED`` when any stage raises. After a failure the destination tensor
contents are invalid.

Example:
    >>> config = TransformConfig(crop_size=224, mirror=True)
    >>> pipeline = TransformPipeline(config, phase="train", seed=42)
    >>> shape = pipeline.infer_shape(sample)
    >>> out = torch.empty(shape)
    >>> result = pipeline.transform(sample, out=out)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple, Union

import torch
from torch import Tensor

from detaug.data.sample import Annotation, ImageDescriptor, NormalizedBox, Phase, RandomDraw, Sample
from detaug.data.transforms.annotation import AnnotationAdjuster
from detaug.data.transforms.params import TransformConfig
from detaug.data.transforms.random_stream import RandomStream, derive_seed
from detaug.data.transforms.shape import infer_shape
from detaug.data.transforms.steps import Frame, StepContext, TransformStep, build_steps
from detaug.errors import InvalidArgument, InvalidConfiguration, ShapeMismatch, TransformError

logger = logging.getLogger("detaug.pipeline")


def check_destination(out: Tensor, shape: torch.Size) -> None:
    """Reject a destination tensor of the wrong shape or dtype."""
    if out.shape != shape:
        raise ShapeMismatch(f"Destination shape {tuple(out.shape)} does not match {tuple(shape)}")
    if out.dtype != torch.float32:
        raise ShapeMismatch(f"Destination dtype {out.dtype} is not torch.float32")


class PipelineState(str, Enum):
    CONFIGURED = "configured"
    SHAPE_RESOLVED = "shape_resolved"
    TRANSFORMED = "transformed"
    DONE = "done"
    FAILED = "failed"


@dataclass
class TransformResult:
    """Output of one invocation.

    Attributes:
        tensor: Transformed data, shape (1, C, H, W), float32.
        annotations: Adjusted annotations.
        mirror: Whether the pixels were mirrored.
        crop_box: Visible region in source-normalized coordinates.
        draw: Random draw consumed by the invocation.
        trace: Geometric steps with their resolved parameters.
    """

    tensor: Tensor
    annotations: List[Annotation]
    mirror: bool
    crop_box: NormalizedBox
    draw: RandomDraw
    trace: List[Tuple[TransformStep, Any]] = field(default_factory=list, repr=False)


class TransformPipeline:
    """Apply a ``TransformConfig`` to samples.

    Args:
        config: Transform configuration, shared read-only.
        phase: ``"train"`` enables stochastic transforms; ``"test"`` uses
            center crops and no mirroring, distortion or expansion.
        seed: Seed for the random stream. ``None`` seeds from entropy.
        device: Device to run on; defaults to the sample's device.
    """

    def __init__(
        self,
        config: TransformConfig,
        phase: Union[Phase, str] = Phase.TRAIN,
        seed: Optional[int] = None,
        device: Optional[Union[str, torch.device]] = None,
    ) -> None:
        self.config = config
        self.phase = Phase(phase)
        self.seed = seed
        self.device = torch.device(device) if device is not None else None
        self.steps = build_steps(config)
        self.adjuster = AnnotationAdjuster(config.emit_constraint)
        self.state = PipelineState.CONFIGURED
        self._rng: Optional[RandomStream] = None

        logger.info(
            f"Transform pipeline ({self.phase.value}): "
            f"crop_size={config.crop_size}, mirror={config.mirror}, "
            f"var_sized={config.var_sized_transforms_enabled}, "
            f"distortion={config.distortion.enabled}, expansion={config.expansion.enabled}"
        )

    @classmethod
    def from_config(cls, cfg, worker_id: Optional[int] = None) -> "TransformPipeline":
        """Build a pipeline from a loaded ``Config``.

        The seed is derived from ``cfg.seed`` and the worker index so every
        worker gets its own stream.
        """
        from detaug.configs import build_transform_config

        seed = cfg.get("seed")
        if seed is not None:
            seed = derive_seed(int(seed), worker_id)
        return cls(
            build_transform_config(cfg),
            phase=cfg.get("phase", Phase.TRAIN.value),
            seed=seed,
            device=cfg.get("device"),
        )

    @property
    def needs_random(self) -> bool:
        """Whether this pipeline ever consumes its random stream."""
        return self.phase == Phase.TRAIN and self.config.has_stochastic_transforms

    @property
    def rng(self) -> RandomStream:
        """The pipeline's random stream, created on first use."""
        if self._rng is None:
            self._rng = RandomStream(self.seed)
            logger.debug(f"Created random stream for {self.phase.value} pipeline")
        return self._rng

    @property
    def has_rng(self) -> bool:
        return self._rng is not None

    def next_draw(self) -> RandomDraw:
        """Fresh crop/mirror draw; all zeros when no randomness is needed."""
        if not self.needs_random:
            return RandomDraw()
        return RandomDraw.from_stream(self.rng)

    def infer_shape(self, descriptor: Union[ImageDescriptor, Sample]) -> torch.Size:
        """Output shape ``[1, C, H, W]`` for a sample or image descriptor."""
        return infer_shape(descriptor, self.config, self.steps)

    def transform(
        self,
        sample: Sample,
        out: Optional[Tensor] = None,
        draw: Optional[RandomDraw] = None,
    ) -> TransformResult:
        """Transform one sample.

        Args:
            sample: Input sample.
            out: Destination tensor of the inferred shape, written in place.
                Allocated when omitted.
            draw: Explicit random draw, e.g. shared with a paired label map.
                Drives the fixed-crop offsets and mirror in both phases.

        Returns:
            Transformed tensor, adjusted annotations and transform metadata.

        Raises:
            ShapeMismatch: If ``out`` does not match the inferred shape or
                is not float32.
            InvalidShape: If the configuration cannot produce a fixed shape.
            OutOfRange: If a crop falls outside the image.
        """
        self.state = PipelineState.CONFIGURED
        try:
            shape = self.infer_shape(sample.descriptor)
            if out is not None:
                check_destination(out, shape)
            self.state = PipelineState.SHAPE_RESOLVED

            explicit = draw is not None
            if draw is None:
                draw = self.next_draw()
            ctx = StepContext(self.phase, draw, explicit, lambda: self.rng)

            pixels = sample.image
            if self.device is not None:
                pixels = pixels.to(self.device)
            frame = Frame(pixels)
            for step in self.steps:
                frame = step(frame, ctx)
            self.state = PipelineState.TRANSFORMED

            tensor = frame.pixels.unsqueeze(0)
            if tensor.shape != shape:
                raise ShapeMismatch(
                    f"Produced shape {tuple(tensor.shape)} differs from inferred {tuple(shape)}"
                )
            if out is None:
                out = tensor.contiguous()
            else:
                out.copy_(tensor)

            annotations = self.adjuster.adjust(sample.annotations, frame.view, frame.mirrored)
        except TransformError as e:
            self.state = PipelineState.FAILED
            logger.warning(f"Transform failed: {e}")
            raise
        except Exception:
            self.state = PipelineState.FAILED
            raise

        self.state = PipelineState.DONE
        return TransformResult(
            tensor=out,
            annotations=annotations,
            mirror=frame.mirrored,
            crop_box=frame.view,
            draw=draw,
            trace=frame.trace,
        )

    def replay(self, result: TransformResult, pixels: Tensor) -> Tensor:
        """Apply the geometry of a previous invocation to a label map.

        Resizes use nearest-neighbour interpolation, expansion fills with 0,
        and no distortion or normalization is applied.

        Args:
            result: Result whose geometry is replayed.
            pixels: Label map of shape (H, W) or (C, H, W) with the same
                spatial size as the transformed image.

        Returns:
            Label map of shape (1, C, H', W') in its original dtype.
        """
        if pixels.dim() == 2:
            pixels = pixels.unsqueeze(0)
        if self.device is not None:
            pixels = pixels.to(self.device)
        for step, params in result.trace:
            pixels = step.apply(pixels, params, label=True)
        return pixels.unsqueeze(0).contiguous()

    def copy(self, sample: Sample) -> Tuple[Tensor, Optional[int]]:
        """Copy a sample into a float tensor (1, C, H, W) without transforming it."""
        device = self.device if self.device is not None else sample.image.device
        tensor = sample.image.to(device=device, dtype=torch.float32, copy=True)
        return tensor.unsqueeze(0), sample.label

    def transform_inv(self, tensor: Tensor) -> Tensor:
        """Undo scale and mean subtraction back to a ``uint8`` pixel grid.

        Args:
            tensor: Output of ``transform``, (C, H, W) or (N, C, H, W).

        Raises:
            InvalidConfiguration: If a mean image was used or scale is 0.
        """
        if self.config.mean_image is not None:
            raise InvalidConfiguration("Cannot invert normalization with a mean image")
        if self.config.scale == 0:
            raise InvalidConfiguration("Cannot invert a zero scale")
        if tensor.dim() not in (3, 4):
            raise InvalidArgument(f"Expected a (C, H, W) or (N, C, H, W) tensor, got {tuple(tensor.shape)}")

        pixels = tensor.to(torch.float32) / self.config.scale
        if self.config.mean_values:
            channels = tensor.shape[-3]
            mean = torch.tensor(self.config.mean_values, dtype=torch.float32, device=tensor.device)
            pixels = pixels + mean.expand(channels).view(-1, 1, 1)
        return pixels.round().clamp(0, 255).to(torch.uint8)

    def __repr__(self) -> str:
        steps = ", ".join(step.kind.value for step in self.steps if step.enabled)
        return f"{self.__class__.__name__}(phase={self.phase.value}, steps=[{steps}])"
