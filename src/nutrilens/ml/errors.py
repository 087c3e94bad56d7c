"""Error taxonomy for the classification pipeline.

Every stage raises its own type and lets it propagate; the API layer maps
each type to an HTTP status.
"""

from __future__ import annotations


class ClassificationError(Exception):
    """Base class for all classification pipeline failures."""


class DecodeError(ClassificationError):
    """Image bytes are empty, truncated, or not a supported format."""


class InvalidDimensionsError(ClassificationError):
    """A raster or tensor does not have the shape the next stage requires.

    This is an internal contract violation and indicates a bug.
    """


class ModelUnavailableError(ClassificationError):
    """The model asset is missing, corrupt, or has unexpected metadata."""


class InferenceError(ClassificationError):
    """The runtime failed or returned empty / malformed output."""


class InvalidArgumentError(ClassificationError, ValueError):
    """A caller passed an out-of-range argument (e.g. top_k)."""


class InferenceTimeoutError(ClassificationError, TimeoutError):
    """Model loading or inference did not finish within the allotted time."""
