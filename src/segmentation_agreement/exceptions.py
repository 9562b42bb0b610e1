"""
Exception types for segmentation agreement measures.

Construction-time problems with spans, texts and studies are reported as
``ValueError`` (or a subclass of it below). Situations in which a measure is
mathematically undefined for the given data are reported as
``InsufficientDataError`` so callers can tell them apart from bad input.
"""

from __future__ import annotations


class AgreementError(Exception):
    """Base class for all errors raised by this package."""


class InsufficientDataError(AgreementError):
    """The study does not contain enough data to compute the measure."""


class OverlappingUnitsError(AgreementError, ValueError):
    """Two units of the same rater overlap where a segmentation is required."""


class ReservedCharacterError(AgreementError, ValueError):
    """A raw text contains one of the reserved alignment marker characters."""
