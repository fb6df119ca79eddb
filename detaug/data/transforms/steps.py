"""Tagged transform steps composing a pipeline.

Every pipeline iterates the same fixed sequence of steps; a step disabled
by configuration is an identity rather than absent. Each step owns both
its pixel function and its shape rule, so shape inference and execution
walk the same chain.

Order:
    1. variable-sized chain: random resize, random crop, center crop
    2. expansion, then fixed-size crop
    3. mirror
    4. color distortion
    5. mean subtraction and scale
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

import torch
from torch import Tensor
from torchvision.transforms import InterpolationMode

from detaug.data.sample import NormalizedBox, Phase, RandomDraw
from detaug.data.transforms.geometric import (
    center_offsets,
    crop,
    expand,
    expanded_size,
    mirror,
    resize,
    shorter_side_size,
)
from detaug.data.transforms.params import TransformConfig
from detaug.data.transforms.photometric import ColorDraw, distort_color
from detaug.data.transforms.random_stream import RandomStream
from detaug.errors import InvalidConfiguration, InvalidShape, ShapeMismatch


class StepKind(str, Enum):
    RESIZE = "resize"
    RANDOM_CROP = "random_crop"
    CENTER_CROP = "center_crop"
    EXPAND = "expand"
    CROP = "crop"
    MIRROR = "mirror"
    DISTORT = "distort"
    NORMALIZE = "normalize"


@dataclass(frozen=True)
class ShapeRange:
    """Per-dimension ``(min, max)`` bounds of an image shape."""

    channels: int
    height: Tuple[int, int]
    width: Tuple[int, int]

    @classmethod
    def exact(cls, channels: int, height: int, width: int) -> "ShapeRange":
        return cls(channels, (height, height), (width, width))

    @property
    def is_exact(self) -> bool:
        return self.height[0] == self.height[1] and self.width[0] == self.width[1]


@dataclass
class Frame:
    """Working state threaded through the steps of one invocation.

    Attributes:
        pixels: Current pixel grid (C, H, W).
        view: Visible region in source-normalized coordinates.
        mirrored: Whether the mirror step flipped the pixels.
        crop_box: Box used by the fixed crop, relative to its input.
        trace: Geometric steps applied with their resolved parameters.
    """

    pixels: Tensor
    view: NormalizedBox = field(default_factory=NormalizedBox.full)
    mirrored: bool = False
    crop_box: Optional[NormalizedBox] = None
    trace: List[Tuple["TransformStep", Any]] = field(default_factory=list)


@dataclass
class StepContext:
    """Per-invocation inputs shared by all steps.

    Args:
        phase: Train or test phase.
        draw: Crop-offset and mirror values for this invocation.
        explicit_draw: Whether the caller supplied ``draw``.
        stream: Accessor for the pipeline's lazily created random stream.
    """

    phase: Phase
    draw: RandomDraw
    explicit_draw: bool
    stream: Callable[[], RandomStream]

    @property
    def randomized(self) -> bool:
        return self.phase == Phase.TRAIN

    @property
    def draw_driven(self) -> bool:
        return self.phase == Phase.TRAIN or self.explicit_draw


def _check_crop_fits(name: str, size: int, shape: ShapeRange) -> None:
    if size > shape.height[0] or size > shape.width[0]:
        raise InvalidShape(
            f"{name} {size} exceeds the guaranteed image size "
            f"{shape.height[0]}x{shape.width[0]}"
        )


def _mean_fill(config: TransformConfig) -> Tuple[float, ...]:
    return config.mean_values or (0.0,)


class TransformStep(ABC):
    """One stage of the chain.

    Subclasses resolve their parameters in ``get_params`` (returning None
    to leave the frame untouched) and apply them in ``apply``. Geometric
    steps record themselves in the frame trace so a paired label map can
    replay the same geometry.
    """

    kind: StepKind
    geometric = True

    def __init__(self, config: TransformConfig) -> None:
        self.config = config

    @property
    @abstractmethod
    def enabled(self) -> bool:
        ...

    def infer_shape(self, shape: ShapeRange) -> ShapeRange:
        return shape

    @abstractmethod
    def get_params(self, frame: Frame, ctx: StepContext) -> Any:
        ...

    @abstractmethod
    def apply(self, pixels: Tensor, params: Any, label: bool = False) -> Tensor:
        ...

    def update(self, frame: Frame, params: Any) -> None:
        """Record bookkeeping for annotations after ``apply``."""

    def __call__(self, frame: Frame, ctx: StepContext) -> Frame:
        if not self.enabled:
            return frame
        params = self.get_params(frame, ctx)
        if params is None:
            return frame
        frame.pixels = self.apply(frame.pixels, params)
        self.update(frame, params)
        if self.geometric:
            frame.trace.append((self, params))
        return frame

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(enabled={self.enabled})"


class ResizeStep(TransformStep):
    """Resize the shorter side to a value in the configured range.

    Train draws the side uniformly; test uses the midpoint of the range.
    """

    kind = StepKind.RESIZE

    @property
    def enabled(self) -> bool:
        return self.config.random_resize.enabled

    def infer_shape(self, shape: ShapeRange) -> ShapeRange:
        if not self.enabled:
            return shape
        params = self.config.random_resize
        min_h, min_w = shorter_side_size(shape.height[0], shape.width[0], params.lower)
        max_h, max_w = shorter_side_size(shape.height[1], shape.width[1], params.upper)
        return ShapeRange(shape.channels, (min_h, max_h), (min_w, max_w))

    def get_params(self, frame: Frame, ctx: StepContext) -> Tuple[int, int]:
        params = self.config.random_resize
        if not params.is_random:
            side = params.lower
        elif ctx.randomized:
            side = params.lower + ctx.stream().next_bounded(params.upper - params.lower + 1)
        else:
            side = (params.lower + params.upper) // 2
        _, img_h, img_w = frame.pixels.shape
        return shorter_side_size(img_h, img_w, side)

    def apply(self, pixels: Tensor, params: Tuple[int, int], label: bool = False) -> Tensor:
        interpolation = InterpolationMode.NEAREST if label else InterpolationMode.BILINEAR
        return resize(pixels, params[0], params[1], interpolation)


class _CropStep(TransformStep):
    """Shared shape rule and bookkeeping of the crop steps."""

    name = "crop"

    @property
    def size(self) -> int:
        raise NotImplementedError

    @property
    def enabled(self) -> bool:
        return self.size > 0

    def infer_shape(self, shape: ShapeRange) -> ShapeRange:
        if not self.enabled:
            return shape
        _check_crop_fits(self.name, self.size, shape)
        return ShapeRange.exact(shape.channels, self.size, self.size)

    def offsets(self, img_h: int, img_w: int, ctx: StepContext) -> Tuple[int, int]:
        return center_offsets(img_h, img_w, self.size, self.size)

    def get_params(self, frame: Frame, ctx: StepContext) -> NormalizedBox:
        _, img_h, img_w = frame.pixels.shape
        _check_crop_fits(self.name, self.size, ShapeRange.exact(0, img_h, img_w))
        top, left = self.offsets(img_h, img_w, ctx)
        return NormalizedBox.from_pixels(top, left, self.size, self.size, img_h, img_w)

    def apply(self, pixels: Tensor, params: NormalizedBox, label: bool = False) -> Tensor:
        return crop(pixels, params)

    def update(self, frame: Frame, params: NormalizedBox) -> None:
        frame.view = frame.view.compose(params)


class RandomCropStep(_CropStep):
    """Variable-sized crop at a random offset; centered in the test phase."""

    kind = StepKind.RANDOM_CROP
    name = "random_crop_size"

    @property
    def size(self) -> int:
        return self.config.random_crop_size

    def offsets(self, img_h: int, img_w: int, ctx: StepContext) -> Tuple[int, int]:
        if not ctx.randomized:
            return super().offsets(img_h, img_w, ctx)
        stream = ctx.stream()
        top = stream.next_bounded(img_h - self.size + 1)
        left = stream.next_bounded(img_w - self.size + 1)
        return top, left


class CenterCropStep(_CropStep):
    """Variable-sized center crop."""

    kind = StepKind.CENTER_CROP
    name = "center_crop_size"

    @property
    def size(self) -> int:
        return self.config.center_crop_size


@dataclass(frozen=True)
class ExpandParams:
    ratio: float
    top: int
    left: int
    placement: NormalizedBox


class ExpandStep(TransformStep):
    """Place the image on a mean-filled canvas (train phase only)."""

    kind = StepKind.EXPAND

    @property
    def enabled(self) -> bool:
        return self.config.expansion.enabled

    def infer_shape(self, shape: ShapeRange) -> ShapeRange:
        if not self.enabled:
            return shape
        ratio = self.config.expansion.max_ratio
        max_h, max_w = expanded_size(shape.height[1], shape.width[1], ratio)
        return ShapeRange(shape.channels, (shape.height[0], max_h), (shape.width[0], max_w))

    def get_params(self, frame: Frame, ctx: StepContext) -> Optional[ExpandParams]:
        if not ctx.randomized:
            return None
        stream = ctx.stream()
        if not stream.bernoulli(self.config.expansion.prob):
            return None
        ratio = stream.uniform(*self.config.expansion.ratio_range)
        _, img_h, img_w = frame.pixels.shape
        canvas_h, canvas_w = expanded_size(img_h, img_w, ratio)
        top = int(math.floor(stream.uniform(0, canvas_h - img_h)))
        left = int(math.floor(stream.uniform(0, canvas_w - img_w)))
        placement = NormalizedBox.from_pixels(top, left, img_h, img_w, canvas_h, canvas_w)
        return ExpandParams(ratio, top, left, placement)

    def apply(self, pixels: Tensor, params: ExpandParams, label: bool = False) -> Tensor:
        fill = 0.0 if label else _mean_fill(self.config)
        canvas, _ = expand(pixels, params.ratio, fill, params.top, params.left)
        return canvas

    def update(self, frame: Frame, params: ExpandParams) -> None:
        frame.view = frame.view.compose(params.placement.reframe())


class FixedCropStep(_CropStep):
    """Fixed-size crop at the draw's offsets; centered without a draw."""

    kind = StepKind.CROP
    name = "crop_size"

    @property
    def size(self) -> int:
        return self.config.crop_size

    def offsets(self, img_h: int, img_w: int, ctx: StepContext) -> Tuple[int, int]:
        if not ctx.draw_driven:
            return super().offsets(img_h, img_w, ctx)
        return ctx.draw.offsets(img_h, img_w, self.size, self.size)

    def update(self, frame: Frame, params: NormalizedBox) -> None:
        super().update(frame, params)
        frame.crop_box = params


class MirrorStep(TransformStep):
    """Horizontal flip decided by the draw's mirror bit."""

    kind = StepKind.MIRROR

    @property
    def enabled(self) -> bool:
        return self.config.mirror

    def get_params(self, frame: Frame, ctx: StepContext) -> Optional[bool]:
        if ctx.draw_driven and ctx.draw.mirror_bit:
            return True
        return None

    def apply(self, pixels: Tensor, params: bool, label: bool = False) -> Tensor:
        return mirror(pixels)

    def update(self, frame: Frame, params: bool) -> None:
        frame.mirrored = True


class DistortStep(TransformStep):
    """Color distortion (train phase only)."""

    kind = StepKind.DISTORT
    geometric = False

    @property
    def enabled(self) -> bool:
        return self.config.distortion.enabled

    def get_params(self, frame: Frame, ctx: StepContext) -> Optional[ColorDraw]:
        if not ctx.randomized:
            return None
        return ColorDraw.sample(ctx.stream())

    def apply(self, pixels: Tensor, params: ColorDraw, label: bool = False) -> Tensor:
        return distort_color(pixels, params, self.config.distortion)


class NormalizeStep(TransformStep):
    """Mean subtraction and scaling into a float32 tensor: (x - mean) * scale."""

    kind = StepKind.NORMALIZE
    geometric = False

    @property
    def enabled(self) -> bool:
        return True

    def check_channels(self, channels: int) -> None:
        count = len(self.config.mean_values)
        if count not in (0, 1, channels):
            raise InvalidConfiguration(
                f"Expected 1 or {channels} mean values, got {count}"
            )

    def get_params(self, frame: Frame, ctx: StepContext) -> Optional[Tensor]:
        pixels = frame.pixels
        self.check_channels(pixels.shape[0])
        if self.config.mean_image is not None:
            mean = self.config.mean_image.to(pixels.device)
            if frame.crop_box is not None:
                mean = crop(mean, frame.crop_box)
            if mean.shape != pixels.shape:
                raise ShapeMismatch(
                    f"Mean image {tuple(mean.shape)} does not match image {tuple(pixels.shape)}"
                )
            if frame.mirrored:
                mean = mirror(mean)
            return mean
        if self.config.mean_values:
            values = torch.tensor(self.config.mean_values, dtype=torch.float32, device=pixels.device)
            return values.expand(pixels.shape[0]).view(-1, 1, 1)
        return None

    def apply(self, pixels: Tensor, params: Optional[Tensor], label: bool = False) -> Tensor:
        # Never alias the caller's image
        out = pixels.to(torch.float32, copy=True)
        if params is not None:
            out = out - params
        if self.config.scale != 1.0:
            out = out * self.config.scale
        return out

    def __call__(self, frame: Frame, ctx: StepContext) -> Frame:
        frame.pixels = self.apply(frame.pixels, self.get_params(frame, ctx))
        return frame


STEP_ORDER = (
    ResizeStep,
    RandomCropStep,
    CenterCropStep,
    ExpandStep,
    FixedCropStep,
    MirrorStep,
    DistortStep,
    NormalizeStep,
)


def build_steps(config: TransformConfig) -> List[TransformStep]:
    """Instantiate every step of the chain, in order, for one config."""
    return [step_cls(config) for step_cls in STEP_ORDER]
