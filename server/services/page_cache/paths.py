"""Cache path derivation from content permalinks."""

import os
import re
from pathlib import Path
from typing import Union

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def strip_scheme(permalink: str) -> str:
    """Remove a leading http:// or https:// from a permalink."""
    return _SCHEME_RE.sub("", permalink.strip(), count=1)


class PathResolver:
    """Maps a permalink to the directory holding its cached renderings.

    Query strings and fragments are kept verbatim, matching the layout the
    rendering pipeline writes.
    """

    def resolve(self, permalink: str, cache_root: Union[str, Path]) -> Path:
        root = str(cache_root).rstrip("/")
        return Path(f"{root}/{strip_scheme(permalink)}".rstrip("/"))

    def is_within(self, path: Union[str, Path], cache_root: Union[str, Path]) -> bool:
        """Check, without touching the disk, that path lies below cache_root."""
        root = Path(os.path.normpath(cache_root))
        target = Path(os.path.normpath(path))
        return root in target.parents
