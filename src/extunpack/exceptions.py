from __future__ import annotations


class ExtunpackError(Exception):
    """Base class for all extunpack domain errors."""


class InvalidIdentifierError(ValueError, ExtunpackError):
    """Raised when an extension identifier is malformed or escapes the extensions root."""


class FilesystemError(OSError, ExtunpackError):
    """Raised when creating, removing or writing a filesystem entry fails."""


class UnsafeArchivePathError(ValueError, ExtunpackError):
    """Raised when an archive entry would be written outside the install root."""


class PackageReloadError(RuntimeError, ExtunpackError):
    """Raised when the package registry could not be refreshed after an install."""
