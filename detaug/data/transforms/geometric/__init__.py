"""Geometric operations for the transform engine.

Pure functions on (C, H, W) pixel grids; they hold no state and can be
called concurrently.
"""

from .crop import crop, center_offsets
from .flip import mirror
from .scale import resize, shorter_side_size
from .expand import expand, expanded_size

__all__ = [
    "crop",
    "center_offsets",
    "mirror",
    "resize",
    "shorter_side_size",
    "expand",
    "expanded_size",
]
