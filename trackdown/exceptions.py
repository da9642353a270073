"""
Custom exceptions for the trackdown index.
"""

from pathlib import Path
from typing import Optional


class TrackdownError(Exception):
    """Base exception for all trackdown errors."""
    pass


class NotFoundError(TrackdownError):
    """Raised when a requested item is not found."""
    pass


class StorageError(TrackdownError):
    """Raised when the index, config or an item directory cannot be read or written."""
    pass


class ProjectRootError(StorageError):
    """Raised when the indexed project root does not exist or is not a directory."""
    pass


class DocumentError(TrackdownError):
    """Raised when a single item document cannot be found, parsed or accepted.

    Carries the offending path so callers can report it and move on.
    """

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)
