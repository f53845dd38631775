"""Binds host content events to invalidation and purging."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from core.config import Settings
from core.logging import get_logger
from services.page_cache.config_store import ConfigStore
from services.page_cache.hooks import HookRegistry
from services.page_cache.models import (
    CommentCookie,
    CommentPosted,
    CommentStatusChanged,
    EventEnvelope,
    InvalidationAction,
    PostTrashed,
    PostUpdated,
    RequestContext,
)
from services.page_cache.policy import InvalidationPolicy
from services.page_cache.purger import CachePurger

logger = get_logger(__name__)

COMMENT_COOKIE_PREFIX = "sc_commented_posts"


def hook_names(event) -> List[str]:
    """Host actions fired for an event, in firing order."""
    if isinstance(event, PostUpdated):
        return ["pre_post_update" if event.phase == "pre" else "save_post"]
    if isinstance(event, PostTrashed):
        return ["wp_trash_post"]
    if isinstance(event, CommentStatusChanged):
        return ["wp_set_comment_status"]
    if isinstance(event, CommentPosted):
        return ["comment_post", "set_comment_cookies"]
    raise ValueError(f"Unknown content event: {type(event).__name__}")


def build_comment_cookie(post_id: int, permalink: str, days: int,
                         now: Optional[datetime] = None) -> CommentCookie:
    now = now or datetime.now(timezone.utc)
    max_age = days * 24 * 3600
    return CommentCookie(
        name=f"{COMMENT_COOKIE_PREFIX}[{post_id}]",
        value=urlsplit(permalink).path or "/",
        max_age=max_age,
        expires=now + timedelta(seconds=max_age),
    )


class EventSubscriber:
    """Host hook callbacks for cache invalidation."""

    def __init__(
        self,
        settings: Settings,
        config_store: ConfigStore,
        policy: InvalidationPolicy,
        purger: CachePurger,
    ):
        self.settings = settings
        self.config_store = config_store
        self.policy = policy
        self.purger = purger
        self._hooks: Optional[HookRegistry] = None

    def setup(self, hooks: HookRegistry) -> None:
        """Register callbacks on the host's actions, once per registry."""
        if self._hooks is hooks:
            return
        self._hooks = hooks
        hooks.add_action("pre_post_update", self.purge_post_on_update)
        hooks.add_action("save_post", self.purge_post_on_update)
        hooks.add_action("wp_trash_post", self.purge_post_on_update)
        hooks.add_action("wp_set_comment_status", self.purge_post_on_comment_status_change)
        hooks.add_action("comment_post", self.purge_post_on_comment)
        hooks.add_action("set_comment_cookies", self.set_comment_cookie_exceptions)

    def dispatch(self, hooks: HookRegistry, envelope: EventEnvelope) -> Dict[str, Any]:
        """Fire the actions for an inbound event and gather their outcomes."""
        actions: List[InvalidationAction] = []
        cookies: List[CommentCookie] = []
        for name in hook_names(envelope.event):
            if not hooks.has_action(name):
                logger.warning("No callbacks bound to action", action=name)
                continue
            for outcome in hooks.do_action(name, envelope.event, envelope.context):
                if isinstance(outcome, CommentCookie):
                    cookies.append(outcome)
                elif outcome is not None:
                    actions.append(outcome)
        return {"actions": actions, "cookies": cookies}

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def purge_post_on_update(self, event, context: RequestContext) -> InvalidationAction:
        action = self.policy.on_post_mutated(
            event.post_id,
            event.post_type,
            context.is_autosave,
            context.viewer_can_edit,
            context.is_cron,
        )
        self.purger.apply(action)
        return action

    def purge_post_on_comment_status_change(self, event: CommentStatusChanged,
                                            context: RequestContext) -> InvalidationAction:
        action = self.policy.on_comment_status_changed(
            event.comment_id,
            event.status,
            post_id=event.post_id,
            permalink=event.permalink,
        )
        self.purger.apply(action)
        return action

    def purge_post_on_comment(self, event: CommentPosted,
                              context: RequestContext) -> InvalidationAction:
        action = self.policy.on_comment_posted(
            event.comment_id,
            event.approved,
            event.post_id,
            permalink=event.permalink,
        )
        self.purger.apply(action)
        return action

    def set_comment_cookie_exceptions(self, event: CommentPosted,
                                      context: RequestContext) -> Optional[CommentCookie]:
        """Keep the commenter's browser off the cached copy of the post."""
        if not self.config_store.is_file_based_only():
            return None

        permalink = event.permalink
        if permalink is None and self.policy.content is not None:
            permalink = self.policy.content.permalink(event.post_id)
        if not permalink:
            logger.warning("No permalink for commented post, cookie skipped", post_id=event.post_id)
            return None

        return build_comment_cookie(event.post_id, permalink, self.settings.comment_cookie_days)
