"""Immutable transform configuration.

A ``TransformConfig`` is resolved once per pipeline and shared read-only
by every worker. All validation that does not depend on a particular
image happens here, at construction time.

Example:
    >>> config = TransformConfig(crop_size=224, mirror=True, mean_values=(104, 117, 123))
    >>> config = TransformConfig.from_dict({"crop_size": 224, "mirror": True})
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import torch
from torch import Tensor

from detaug.errors import InvalidConfiguration

EMIT_CENTER = "center"
EMIT_MIN_OVERLAP = "min_overlap"


def _check_prob(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise InvalidConfiguration(f"{name} must be in [0, 1], got {value}")


def _check_range(name: str, value: Tuple[float, float], lower_bound: float = 0.0) -> None:
    if len(value) != 2:
        raise InvalidConfiguration(f"{name} must be a (lower, upper) pair, got {value}")
    if value[0] < lower_bound or value[0] > value[1]:
        raise InvalidConfiguration(f"{name} must satisfy {lower_bound} <= lower <= upper, got {value}")


@dataclass(frozen=True)
class ResizeParams:
    """Random resize of the shorter image side, aspect ratio preserved.

    Args:
        lower: Smallest target for the shorter side.
        upper: Largest target for the shorter side. 0 disables the resize.
    """

    lower: int = 0
    upper: int = 0

    def __post_init__(self) -> None:
        if not self.enabled:
            return
        if self.lower <= 0 or self.lower > self.upper:
            raise InvalidConfiguration(
                f"random_resize needs 0 < lower <= upper, got ({self.lower}, {self.upper})"
            )

    @property
    def enabled(self) -> bool:
        return self.upper > 0

    @property
    def is_random(self) -> bool:
        return self.enabled and self.lower != self.upper


@dataclass(frozen=True)
class DistortionParams:
    """Photometric distortion applied in the order brightness, contrast,
    saturation, hue.

    Factor ranges are multiplicative (1.0 is identity). ``hue`` is the
    maximum absolute hue shift, in [0, 0.5].
    """

    brightness_prob: float = 0.0
    brightness: Tuple[float, float] = (1.0, 1.0)
    contrast_prob: float = 0.0
    contrast: Tuple[float, float] = (1.0, 1.0)
    saturation_prob: float = 0.0
    saturation: Tuple[float, float] = (1.0, 1.0)
    hue_prob: float = 0.0
    hue: float = 0.0

    def __post_init__(self) -> None:
        for name in ("brightness", "contrast", "saturation"):
            _check_prob(f"distortion.{name}_prob", getattr(self, f"{name}_prob"))
            value = tuple(float(v) for v in getattr(self, name))
            _check_range(f"distortion.{name}", value)
            object.__setattr__(self, name, value)
        _check_prob("distortion.hue_prob", self.hue_prob)
        if not 0.0 <= self.hue <= 0.5:
            raise InvalidConfiguration(f"distortion.hue must be in [0, 0.5], got {self.hue}")

    @property
    def enabled(self) -> bool:
        return max(self.brightness_prob, self.contrast_prob, self.saturation_prob, self.hue_prob) > 0


@dataclass(frozen=True)
class ExpansionParams:
    """Place the image on a larger mean-filled canvas.

    Args:
        prob: Probability of expanding a sample.
        max_ratio: Largest canvas/image size ratio; ratios are drawn from
            ``[1, max_ratio]``.
    """

    prob: float = 0.0
    max_ratio: float = 1.0

    def __post_init__(self) -> None:
        _check_prob("expansion.prob", self.prob)
        if self.max_ratio < 1.0:
            raise InvalidConfiguration(f"expansion.max_ratio must be >= 1, got {self.max_ratio}")

    @property
    def enabled(self) -> bool:
        return self.prob > 0 and self.max_ratio > 1.0

    @property
    def ratio_range(self) -> Tuple[float, float]:
        return 1.0, float(self.max_ratio)


@dataclass(frozen=True)
class EmitConstraint:
    """Rule deciding whether an annotation survives a crop.

    Args:
        kind: ``"center"`` keeps boxes whose center lies in the crop;
            ``"min_overlap"`` keeps boxes with at least ``min_overlap`` of
            their area inside the crop.
        min_overlap: Threshold for ``"min_overlap"``.
    """

    kind: str = EMIT_CENTER
    min_overlap: float = 0.0

    def __post_init__(self) -> None:
        if self.kind not in (EMIT_CENTER, EMIT_MIN_OVERLAP):
            raise InvalidConfiguration(f"Unknown emit constraint: {self.kind}")
        _check_prob("emit_constraint.min_overlap", self.min_overlap)


@dataclass(frozen=True)
class TransformConfig:
    """Complete, validated transform configuration.

    Args:
        crop_size: Fixed output height and width. 0 disables the crop.
        mirror: Enable random horizontal mirroring (train phase).
        mean_values: One value for all channels or one per channel.
        mean_image: Full (C, H, W) mean image; exclusive with ``mean_values``.
        scale: Multiplier applied after mean subtraction.
        random_resize: Variable-sized random resize.
        random_crop_size: Variable-sized random crop. 0 disables it.
        center_crop_size: Variable-sized center crop. 0 disables it.
        distortion: Photometric distortion parameters.
        expansion: Canvas expansion parameters.
        emit_constraint: Optional rule for dropping cropped-out annotations.
    """

    crop_size: int = 0
    mirror: bool = False
    mean_values: Tuple[float, ...] = ()
    mean_image: Optional[Tensor] = field(default=None, compare=False, repr=False)
    scale: float = 1.0
    random_resize: ResizeParams = field(default_factory=ResizeParams)
    random_crop_size: int = 0
    center_crop_size: int = 0
    distortion: DistortionParams = field(default_factory=DistortionParams)
    expansion: ExpansionParams = field(default_factory=ExpansionParams)
    emit_constraint: Optional[EmitConstraint] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "mean_values", tuple(float(v) for v in self.mean_values))
        for name in ("crop_size", "random_crop_size", "center_crop_size"):
            if getattr(self, name) < 0:
                raise InvalidConfiguration(f"{name} must be >= 0, got {getattr(self, name)}")

        if self.mean_image is not None:
            if self.mean_values:
                raise InvalidConfiguration("Specify either mean_image or mean_values, not both")
            if self.mean_image.dim() != 3:
                raise InvalidConfiguration(
                    f"mean_image must have shape (C, H, W), got {tuple(self.mean_image.shape)}"
                )
            object.__setattr__(self, "mean_image", self.mean_image.detach().clone().float())

        if self.random_resize.is_random and not (
            self.random_crop_size or self.center_crop_size or self.crop_size
        ):
            raise InvalidConfiguration(
                "A random resize range must be followed by a crop, "
                "otherwise the output shape cannot be inferred"
            )
        if self.expansion.enabled:
            if not self.crop_size:
                raise InvalidConfiguration(
                    "Expansion changes the image size at random and needs crop_size"
                )
            if self.mean_image is not None:
                raise InvalidConfiguration("Expansion cannot be combined with mean_image")

    @property
    def var_sized_transforms_enabled(self) -> bool:
        return bool(self.random_resize.enabled or self.random_crop_size or self.center_crop_size)

    @property
    def has_stochastic_transforms(self) -> bool:
        """Whether any transform consumes randomness in the train phase."""
        return bool(
            self.crop_size
            or self.mirror
            or self.random_crop_size
            or self.random_resize.is_random
            or self.distortion.enabled
            or self.expansion.enabled
        )

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any]) -> "TransformConfig":
        """Build a config from a plain (e.g. YAML-loaded) dictionary.

        Raises:
            InvalidConfiguration: On unknown keys or invalid values.
        """
        cfg = dict(cfg)
        unknown = set(cfg) - _RECOGNIZED_KEYS
        if unknown:
            raise InvalidConfiguration(f"Unknown transform options: {sorted(unknown)}")

        mean_image = cfg.get("mean_image")
        if mean_image is not None and not isinstance(mean_image, Tensor):
            mean_image = torch.as_tensor(mean_image, dtype=torch.float32)

        emit = cfg.get("emit_constraint")
        try:
            return cls(
                crop_size=int(cfg.get("crop_size", 0)),
                mirror=bool(cfg.get("mirror", False)),
                mean_values=_as_tuple(cfg.get("mean_values", ())),
                mean_image=mean_image,
                scale=float(cfg.get("scale", 1.0)),
                random_resize=ResizeParams(**dict(cfg.get("random_resize") or {})),
                random_crop_size=int(cfg.get("random_crop_size", 0)),
                center_crop_size=int(cfg.get("center_crop_size", 0)),
                distortion=DistortionParams(**dict(cfg.get("distortion") or {})),
                expansion=ExpansionParams(**dict(cfg.get("expansion") or {})),
                emit_constraint=EmitConstraint(**dict(emit)) if emit else None,
            )
        except TypeError as e:
            raise InvalidConfiguration(f"Invalid transform options: {e}") from e


_RECOGNIZED_KEYS = {
    "crop_size",
    "mirror",
    "mean_values",
    "mean_image",
    "scale",
    "random_resize",
    "random_crop_size",
    "center_crop_size",
    "distortion",
    "expansion",
    "emit_constraint",
}


def _as_tuple(value: Any) -> Tuple[float, ...]:
    if value is None:
        return ()
    if isinstance(value, (int, float)):
        return (float(value),)
    return tuple(float(v) for v in value)
