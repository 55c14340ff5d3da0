"""
Exceptions raised by sheafy.
"""


class SheafyError(Exception):
    """Base exception for sheafy errors."""


class InvalidRootError(SheafyError):
    """Raised when the export root or start directory is invalid."""


class ConfigFileError(SheafyError):
    """Raised when sheafy.toml cannot be read, parsed or written."""


class OutputError(SheafyError):
    """Raised when a bundle cannot be delivered to a destination."""


class ExportCancelled(SheafyError):
    """Raised when an export run is cancelled."""
