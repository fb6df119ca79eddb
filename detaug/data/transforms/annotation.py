"""Bounding-box bookkeeping for geometric transforms.

Annotations are re-expressed under exactly the geometric chain applied to
the pixels: the visible crop box re-bases origin and scale, mirroring
flips the x axis, and a resize ratio rescales. The crop box and mirror
flag come from the pipeline run that moved the pixels; they are never
recomputed here.

Example:
    >>> adjuster = AnnotationAdjuster()
    >>> crop_box = NormalizedBox(0.0, 0.0, 0.8, 0.8)
    >>> adjuster.adjust([Annotation(0.1, 0.1, 0.5, 0.5)], crop_box)
    [Annotation(xmin=0.125, ymin=0.125, xmax=0.625, ymax=0.625, ...)]
"""

from typing import List, Optional, Sequence, Tuple, Union

from detaug.data.sample import Annotation, NormalizedBox
from detaug.data.transforms.params import EMIT_CENTER, EmitConstraint

# Boxes narrower or shorter than this (normalized) are dropped
MIN_BOX_SIZE = 1e-6


def project_box(crop_box: NormalizedBox, box: NormalizedBox) -> Optional[NormalizedBox]:
    """Re-express ``box`` relative to ``crop_box``, clipped to the crop.

    Returns:
        The projected box, or None when nothing of it remains visible.
    """
    if (
        box.xmin >= crop_box.xmax
        or box.xmax <= crop_box.xmin
        or box.ymin >= crop_box.ymax
        or box.ymax <= crop_box.ymin
    ):
        return None
    projected = crop_box.project(box).clip()
    if projected.width <= MIN_BOX_SIZE or projected.height <= MIN_BOX_SIZE:
        return None
    return projected


def meets_emit_constraint(
    crop_box: NormalizedBox, box: NormalizedBox, constraint: EmitConstraint
) -> bool:
    """Check whether a source box may be emitted after cropping."""
    if constraint.kind == EMIT_CENTER:
        cx, cy = box.center
        return crop_box.xmin <= cx <= crop_box.xmax and crop_box.ymin <= cy <= crop_box.ymax

    if box.area <= 0:
        return False
    overlap = crop_box.intersect(box)
    coverage = overlap.area / box.area if overlap is not None else 0.0
    return coverage >= constraint.min_overlap


def mirror_box(box: NormalizedBox) -> NormalizedBox:
    """Flip a normalized box around the vertical center line."""
    return NormalizedBox(1.0 - box.xmax, box.ymin, 1.0 - box.xmin, box.ymax)


class AnnotationAdjuster:
    """Re-express annotations under the geometric transform of a sample.

    Args:
        emit_constraint: Optional rule dropping boxes that are mostly
            outside the crop. Without one every visible box is kept.
    """

    def __init__(self, emit_constraint: Optional[EmitConstraint] = None) -> None:
        self.emit_constraint = emit_constraint

    def adjust(
        self,
        annotations: Sequence[Annotation],
        crop_box: NormalizedBox,
        mirror_flag: bool = False,
        resize_ratio: Union[float, Tuple[float, float]] = 1.0,
    ) -> List[Annotation]:
        """Apply crop, then mirror, then resize to every annotation.

        Args:
            annotations: Source annotations.
            crop_box: Visible region in source coordinates. Regions larger
                than the source (expansion) are allowed.
            mirror_flag: Whether the pixels were mirrored after cropping.
            resize_ratio: Fraction ``(x, y)`` of the output frame covered by
                the resized content; 1.0 for a whole-frame resize.

        Returns:
            Adjusted annotations; degenerate and dropped boxes are removed.
            Labels and flags are unchanged.
        """
        if isinstance(resize_ratio, (int, float)):
            ratio_x = ratio_y = float(resize_ratio)
        else:
            ratio_x, ratio_y = resize_ratio

        adjusted = []
        for anno in annotations:
            box = anno.box
            if self.emit_constraint is not None and not meets_emit_constraint(
                crop_box, box, self.emit_constraint
            ):
                continue

            projected = project_box(crop_box, box)
            if projected is None:
                continue
            if mirror_flag:
                projected = mirror_box(projected)
            if ratio_x != 1.0 or ratio_y != 1.0:
                projected = NormalizedBox(
                    projected.xmin * ratio_x,
                    projected.ymin * ratio_y,
                    projected.xmax * ratio_x,
                    projected.ymax * ratio_y,
                ).clip()
                if projected.width <= MIN_BOX_SIZE or projected.height <= MIN_BOX_SIZE:
                    continue

            adjusted.append(anno.with_box(projected))
        return adjusted

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(emit_constraint={self.emit_constraint})"
