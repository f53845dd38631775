"""Page cache exception hierarchy."""

from pathlib import Path
from typing import Optional, Union


class PageCacheError(Exception):
    """Base exception for all page-cache errors."""


class ConfigUnavailable(PageCacheError):
    """Cache configuration could not be loaded.

    Never fatal: the config store answers it with caching disabled.
    """


class FileSystemError(PageCacheError):
    """Unexpected I/O failure while writing or rewriting a file."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = str(path) if path is not None else None
        super().__init__(f"{message}: {self.path}" if self.path else message)


class ActivationError(FileSystemError):
    """Host config or dropin could not be found, read or written."""
