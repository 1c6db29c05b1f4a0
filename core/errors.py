"""Exception hierarchy shared by the core and infrastructure layers.

Every exception carries a short human-readable message; command callers
surface `str(exc)` unchanged.
"""

from __future__ import annotations


class FilmVaultError(Exception):
    """Base class for all library errors."""


class ValidationError(FilmVaultError, ValueError):
    """Input rejected before any side effect (bad date, bad rating, ...)."""


class SourceNotFoundError(ValidationError):
    """Import source directory does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Source path does not exist: {path}")
        self.path = path


class NotReadyError(FilmVaultError):
    """Shared store was not initialized within the bounded wait."""


class NotFoundError(FilmVaultError, LookupError):
    """Roll or photo id does not exist in the store."""


class NoImagesFoundError(FilmVaultError):
    """Source directory contains no supported image files."""


class ImportFailedError(FilmVaultError):
    """Every candidate file of an import failed to process."""

    def __init__(self, message: str, failures: list[tuple[str, str]] | None = None) -> None:
        super().__init__(message)
        self.failures = list(failures or [])


class RollDirectoryExistsError(FilmVaultError, FileExistsError):
    """Allocated roll directory already exists (double import)."""


class ImageProcessingError(FilmVaultError, OSError):
    """Decode, unsupported format, zero dimension or encode failure."""


class ExifToolError(FilmVaultError):
    """External metadata tool missing, failed, or produced unparsable output."""
