"""Value types shared by every stage of the transform engine.

Samples and annotations are read-only inputs created by the data source.
Boxes are kept in normalized ``[0, 1]`` coordinates so they stay valid
under whole-frame resizes; only crops, expansion and mirroring move them.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple

from torch import Tensor

from detaug.errors import InvalidArgument


class Phase(str, Enum):
    """Training enables stochastic transforms, test disables them."""

    TRAIN = "train"
    TEST = "test"


@dataclass(frozen=True)
class NormalizedBox:
    """Box expressed as fractions of a frame's width and height.

    Args:
        xmin: Left edge.
        ymin: Top edge.
        xmax: Right edge.
        ymax: Bottom edge.
    """

    xmin: float = 0.0
    ymin: float = 0.0
    xmax: float = 1.0
    ymax: float = 1.0

    @classmethod
    def full(cls) -> "NormalizedBox":
        """Box covering the whole frame."""
        return cls(0.0, 0.0, 1.0, 1.0)

    @classmethod
    def from_pixels(
        cls, top: int, left: int, height: int, width: int, frame_h: int, frame_w: int
    ) -> "NormalizedBox":
        """Build a box from pixel offsets inside a ``frame_h x frame_w`` frame."""
        return cls(
            left / frame_w,
            top / frame_h,
            (left + width) / frame_w,
            (top + height) / frame_h,
        )

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    @property
    def area(self) -> float:
        if self.width <= 0 or self.height <= 0:
            return 0.0
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.xmin + self.xmax) / 2, (self.ymin + self.ymax) / 2

    def clip(self) -> "NormalizedBox":
        """Clamp every coordinate into [0, 1]."""
        return NormalizedBox(
            min(max(self.xmin, 0.0), 1.0),
            min(max(self.ymin, 0.0), 1.0),
            min(max(self.xmax, 0.0), 1.0),
            min(max(self.ymax, 0.0), 1.0),
        )

    def intersect(self, other: "NormalizedBox") -> Optional["NormalizedBox"]:
        """Overlap of two boxes, or None when they are disjoint."""
        if (
            other.xmin > self.xmax
            or other.xmax < self.xmin
            or other.ymin > self.ymax
            or other.ymax < self.ymin
        ):
            return None
        return NormalizedBox(
            max(self.xmin, other.xmin),
            max(self.ymin, other.ymin),
            min(self.xmax, other.xmax),
            min(self.ymax, other.ymax),
        )

    def compose(self, inner: "NormalizedBox") -> "NormalizedBox":
        """Re-express ``inner`` (given relative to this box) in the parent frame.

        Example:
            >>> NormalizedBox(0.5, 0.5, 1.0, 1.0).compose(NormalizedBox(0, 0, 0.5, 0.5))
            NormalizedBox(xmin=0.5, ymin=0.5, xmax=0.75, ymax=0.75)
        """
        return NormalizedBox(
            self.xmin + inner.xmin * self.width,
            self.ymin + inner.ymin * self.height,
            self.xmin + inner.xmax * self.width,
            self.ymin + inner.ymax * self.height,
        )

    def project(self, box: "NormalizedBox") -> "NormalizedBox":
        """Re-express ``box`` (given in the parent frame) relative to this box.

        The result is not clipped; coordinates outside [0, 1] mean the box
        extends past this region.
        """
        return NormalizedBox(
            (box.xmin - self.xmin) / self.width,
            (box.ymin - self.ymin) / self.height,
            (box.xmax - self.xmin) / self.width,
            (box.ymax - self.ymin) / self.height,
        )

    def reframe(self) -> "NormalizedBox":
        """The parent frame expressed relative to this box.

        Expansion places the source image at this box inside a larger
        canvas; the canvas seen from the source is ``reframe()``.
        """
        return self.project(NormalizedBox.full())

    def to_pixels(self, frame_h: int, frame_w: int) -> Tuple[int, int, int, int]:
        """Pixel region ``(top, left, height, width)`` inside a frame."""
        left = int(round(self.xmin * frame_w))
        top = int(round(self.ymin * frame_h))
        right = int(round(self.xmax * frame_w))
        bottom = int(round(self.ymax * frame_h))
        return top, left, bottom - top, right - left


@dataclass(frozen=True)
class Annotation:
    """Labeled bounding box in normalized coordinates.

    Coordinates outside [0, 1] are clamped. A box with ``xmin > xmax`` or
    ``ymin > ymax`` is rejected.

    Args:
        xmin: Left edge.
        ymin: Top edge.
        xmax: Right edge.
        ymax: Bottom edge.
        label: Group/class identifier.
        difficult: Difficulty/ignore flag.
        instance_id: Instance identifier within the group.
    """

    xmin: float
    ymin: float
    xmax: float
    ymax: float
    label: int = 0
    difficult: bool = False
    instance_id: int = 0

    def __post_init__(self) -> None:
        if self.xmin > self.xmax or self.ymin > self.ymax:
            raise InvalidArgument(
                f"Annotation corners are inverted: "
                f"({self.xmin}, {self.ymin}, {self.xmax}, {self.ymax})"
            )
        for name in ("xmin", "ymin", "xmax", "ymax"):
            value = float(getattr(self, name))
            object.__setattr__(self, name, min(max(value, 0.0), 1.0))

    @property
    def box(self) -> NormalizedBox:
        return NormalizedBox(self.xmin, self.ymin, self.xmax, self.ymax)

    def with_box(self, box: NormalizedBox) -> "Annotation":
        """Copy with new coordinates; label and flags are kept."""
        return replace(self, xmin=box.xmin, ymin=box.ymin, xmax=box.xmax, ymax=box.ymax)


@dataclass(frozen=True)
class ImageDescriptor:
    """Image dimensions, enough to infer an output shape."""

    channels: int
    height: int
    width: int

    def __post_init__(self) -> None:
        if self.channels <= 0 or self.height <= 0 or self.width <= 0:
            raise InvalidArgument(
                f"Image dimensions must be positive, got "
                f"({self.channels}, {self.height}, {self.width})"
            )


@dataclass
class Sample:
    """One input unit: a pixel grid plus optional label and annotations.

    Args:
        image: Pixel grid of shape (C, H, W) or (H, W). ``uint8`` or a
            floating point tensor on the 0..255 scale.
        annotations: Bounding boxes belonging to the image.
        label: Optional scalar label passed through untouched.
    """

    image: Tensor
    annotations: List[Annotation] = field(default_factory=list)
    label: Optional[int] = None

    def __post_init__(self) -> None:
        if not isinstance(self.image, Tensor):
            raise InvalidArgument(f"Sample image must be a tensor, got {type(self.image)}")
        if self.image.dim() == 2:
            self.image = self.image.unsqueeze(0)
        if self.image.dim() != 3:
            raise InvalidArgument(
                f"Sample image must have shape (C, H, W), got {tuple(self.image.shape)}"
            )
        if self.image.numel() == 0:
            raise InvalidArgument(f"Sample image is empty: {tuple(self.image.shape)}")

    @property
    def descriptor(self) -> ImageDescriptor:
        c, h, w = self.image.shape
        return ImageDescriptor(c, h, w)


@dataclass(frozen=True)
class RandomDraw:
    """Random values consumed by one transform invocation.

    Args:
        x: Horizontal crop offset source.
        y: Vertical crop offset source.
        mirror: Mirror decision source; only its lowest bit is used.
    """

    x: int = 0
    y: int = 0
    mirror: int = 0

    def __post_init__(self) -> None:
        if min(self.x, self.y, self.mirror) < 0:
            raise InvalidArgument(f"RandomDraw values must be unsigned, got {self}")

    @classmethod
    def from_stream(cls, stream) -> "RandomDraw":
        """Take three fresh values from a ``RandomStream``."""
        return cls(stream.next(), stream.next(), stream.next())

    @property
    def mirror_bit(self) -> bool:
        return self.mirror % 2 == 1

    def offsets(self, height: int, width: int, crop_h: int, crop_w: int) -> Tuple[int, int]:
        """Crop offsets ``(top, left)`` for a crop of ``crop_h x crop_w``."""
        return self.y % (height - crop_h + 1), self.x % (width - crop_w + 1)


__all__ = [
    "Phase",
    "NormalizedBox",
    "Annotation",
    "ImageDescriptor",
    "Sample",
    "RandomDraw",
]
