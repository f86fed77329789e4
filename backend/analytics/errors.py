"""
Analytics exception hierarchy.

Field and record level problems never raise: they degrade to defaults or
land in the validation error log. These errors cover the failures the
pipeline cannot recover from on its own.
"""


class AnalyticsError(Exception):
    """Base exception for all analytics failures."""


class AnalyticsConfigError(AnalyticsError):
    """Raised for invalid detection thresholds or runtime settings."""


class SourceReadError(AnalyticsError):
    """Raised when the loader cannot produce any rows from a source."""


class UnsupportedFormatError(AnalyticsError, ValueError):
    """Raised for file types the loader does not handle."""
