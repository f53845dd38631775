"""Best-effort removal of cached page renderings from disk."""

import errno
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from core.logging import get_logger, log_purge_operation
from services.page_cache.models import InvalidationAction, PurgeAll, PurgePaths
from services.page_cache.paths import PathResolver

logger = get_logger(__name__)

# Renderings the page pipeline writes for one page
ARTIFACT_NAMES: Tuple[str, ...] = ("index.html", "index.gzip.html")


@dataclass
class PurgeResult:
    """Counts of what a purge removed and what it failed to remove."""
    removed: int = 0
    failed: int = 0

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def count(self, outcome: Optional[bool]) -> None:
        """Record one unlink outcome; an already-missing file counts as neither."""
        if outcome:
            self.removed += 1
        elif outcome is False:
            self.failed += 1

    def __add__(self, other: "PurgeResult") -> "PurgeResult":
        return PurgeResult(self.removed + other.removed, self.failed + other.failed)


class CachePurger:
    """Deletes cache artifacts, treating already-missing files as success.

    Unexpected I/O errors are logged and counted, never raised: a stale or
    missing cache entry heals itself on the next render.
    """

    def __init__(self, cache_root: Path, path_resolver: Optional[PathResolver] = None):
        self.cache_root = Path(cache_root)
        self.path_resolver = path_resolver or PathResolver()

    def purge(self, path: Union[str, Path]) -> PurgeResult:
        """Delete the renderings of one page directory."""
        path = Path(path)
        if not self.path_resolver.is_within(path, self.cache_root):
            logger.warning("Refusing to purge outside cache root",
                           path=str(path), cache_root=str(self.cache_root))
            return PurgeResult()

        result = PurgeResult()
        for name in ARTIFACT_NAMES:
            result.count(_unlink(path / name))

        log_purge_operation(logger, "purge", path,
                            removed=result.removed, failed=result.failed)
        return result

    def purge_all(self, cache_root: Optional[Union[str, Path]] = None) -> PurgeResult:
        """Delete the whole cache tree, root directory included."""
        root = Path(cache_root) if cache_root is not None else self.cache_root
        result = remove_tree(root)
        logger.info("Cache store purged", cache_root=str(root),
                    removed=result.removed, failed=result.failed)
        return result

    def apply(self, action: InvalidationAction) -> PurgeResult:
        """Carry out a policy decision."""
        if isinstance(action, PurgeAll):
            return self.purge_all(action.cache_root)
        if isinstance(action, PurgePaths):
            result = PurgeResult()
            for path in sorted(action.paths):
                result += self.purge(path)
            return result
        return PurgeResult()


def remove_tree(root: Path) -> PurgeResult:
    """Remove a directory tree bottom-up, continuing past failures."""
    result = PurgeResult()
    if root.is_symlink():
        result.count(_unlink(root))
        return result
    if not root.is_dir():
        return result

    for dirpath, dirnames, filenames in os.walk(root, topdown=False):
        for name in filenames:
            result.count(_unlink(Path(dirpath) / name))
        for name in dirnames:
            sub = Path(dirpath) / name
            if sub.is_symlink():
                result.count(_unlink(sub))
            elif _rmdir(sub) is False:
                result.failed += 1

    if _rmdir(root) is False:
        result.failed += 1
    return result


def _unlink(path: Path) -> Optional[bool]:
    """Unlink a file: True if removed, None if already gone, False on error."""
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        log_purge_operation(logger, "unlink", path, missing=True)
        return None
    except OSError as e:
        logger.error("Cache file removal failed", path=str(path), error=str(e))
        return False


def _rmdir(path: Path) -> Optional[bool]:
    """Remove an empty directory: True if gone, None if still populated."""
    try:
        path.rmdir()
        return True
    except FileNotFoundError:
        return True
    except OSError as e:
        # Left populated by a file failure that was already counted
        if e.errno in (errno.ENOTEMPTY, errno.EEXIST):
            return None
        logger.error("Cache directory removal failed", path=str(path), error=str(e))
        return False
