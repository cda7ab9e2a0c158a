"""
Error types raised by the Image Filter Advisor core.
"""


class FilterAdvisorError(Exception):
    """Base class for all recoverable advisor errors."""


class UnsupportedMediaError(FilterAdvisorError):
    """The upload is not an accepted image type (JPEG or PNG)."""


class ExtractionError(FilterAdvisorError):
    """Image metrics could not be computed, usually because the bytes do not decode."""


class ApplicationError(FilterAdvisorError):
    """A filter could not be applied to the image."""
