"""Custom exceptions for loading story scripts."""


class DataError(Exception):
    """Base exception for the data layer."""


class DataLoadError(DataError):
    """Raised when script files are missing or unreadable."""
