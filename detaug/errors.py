"""Error kinds raised by the transform engine.

All errors are local and synchronous: they are raised at the call that
triggered them and are never retried internally. Each class also derives
from the closest builtin so callers catching ``ValueError`` or
``IndexError`` keep working.
"""


class TransformError(Exception):
    """Base class for every error raised by detaug."""


class InvalidConfiguration(TransformError, ValueError):
    """Contradictory or unachievable transform configuration."""


class InvalidShape(InvalidConfiguration):
    """Output shape cannot be guaranteed for the given image size."""


class InvalidArgument(TransformError, ValueError):
    """Bad argument such as a non-positive random bound or an empty image."""


class OutOfRange(TransformError, IndexError):
    """Requested crop region falls outside the image."""


class ShapeMismatch(TransformError, ValueError):
    """Destination tensor does not match the inferred output shape."""


__all__ = [
    "TransformError",
    "InvalidConfiguration",
    "InvalidShape",
    "InvalidArgument",
    "OutOfRange",
    "ShapeMismatch",
]
