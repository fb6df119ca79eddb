"""detaug: deterministic image and annotation augmentation.

This package turns labeled samples (pixel grid + bounding boxes) into
fixed-shape tensors with inferable output shapes, consistent annotations
and per-pipeline seeded randomness.
"""

__version__ = "0.1.0"
__author__ = "detaug Team"
