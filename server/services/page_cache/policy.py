"""Decides which cached pages a content change invalidates.

Any post mutation purges the whole store: listing, archive and feed pages
embed post data too, and without tracking which pages embed which post the
only safe answer is all of them. Comments only show on their own post, so a
comment change purges that single page.
"""

from pathlib import Path
from typing import Any, Optional, Protocol

from core.logging import get_logger
from services.page_cache.config_store import ConfigStore
from services.page_cache.models import (
    InvalidationAction,
    NoAction,
    PurgeAll,
    PurgePaths,
    is_approved_flag,
)
from services.page_cache.paths import PathResolver

logger = get_logger(__name__)

REVISION_POST_TYPE = "revision"


class ContentLookup(Protocol):
    """Host content queries used when an event lacks the permalink."""

    def comment_post_id(self, comment_id: int) -> Optional[int]:
        ...

    def permalink(self, post_id: int) -> Optional[str]:
        ...


class InvalidationPolicy:
    """Pure decision logic mapping content events to purge actions."""

    def __init__(
        self,
        config_store: ConfigStore,
        path_resolver: PathResolver,
        cache_root: Path,
        content: Optional[ContentLookup] = None,
    ):
        self.config_store = config_store
        self.path_resolver = path_resolver
        self.cache_root = Path(cache_root)
        self.content = content

    def on_post_mutated(
        self,
        post_id: int,
        post_type: str,
        is_autosave: bool,
        viewer_can_edit: bool,
        is_cron_context: bool,
    ) -> InvalidationAction:
        if is_autosave or post_type == REVISION_POST_TYPE:
            return NoAction()
        if not viewer_can_edit and not is_cron_context:
            logger.debug("Ignoring post mutation by non-editor", post_id=post_id)
            return NoAction()
        if not self.config_store.is_file_based_only():
            return NoAction()
        return PurgeAll(self.cache_root)

    def on_comment_status_changed(
        self,
        comment_id: int,
        approved_state: Any,
        post_id: Optional[int] = None,
        permalink: Optional[str] = None,
    ) -> InvalidationAction:
        # Any transition can add or remove a visible comment, so the state
        # itself does not matter.
        if not self.config_store.is_file_based_only():
            return NoAction()

        if permalink is None:
            if post_id is None:
                post_id = self._comment_post_id(comment_id)
            permalink = self._permalink(post_id)
        return self._purge_permalink(permalink, comment_id=comment_id)

    def on_comment_posted(
        self,
        comment_id: int,
        approved_flag: Any,
        post_id: int,
        permalink: Optional[str] = None,
    ) -> InvalidationAction:
        if not is_approved_flag(approved_flag):
            return NoAction()
        if not self.config_store.is_file_based_only():
            return NoAction()

        if permalink is None:
            permalink = self._permalink(post_id)
        return self._purge_permalink(permalink, comment_id=comment_id)

    def _purge_permalink(self, permalink: Optional[str], **context) -> InvalidationAction:
        if not permalink:
            logger.warning("No permalink for comment's post, nothing purged", **context)
            return NoAction()
        path = self.path_resolver.resolve(permalink, self.cache_root)
        return PurgePaths(frozenset([path]))

    def _comment_post_id(self, comment_id: int) -> Optional[int]:
        if self.content is None:
            return None
        return self.content.comment_post_id(comment_id)

    def _permalink(self, post_id: Optional[int]) -> Optional[str]:
        if self.content is None or post_id is None:
            return None
        return self.content.permalink(post_id)
