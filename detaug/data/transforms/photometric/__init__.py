"""Photometric operations for the transform engine."""

from .color import COLOR_ORDER, ColorDraw, color_factors, distort_color

__all__ = [
    "COLOR_ORDER",
    "ColorDraw",
    "color_factors",
    "distort_color",
]
