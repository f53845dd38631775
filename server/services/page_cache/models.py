"""Domain models for page cache invalidation and activation."""

from dataclasses import dataclass
from datetime import datetime
from email.utils import format_datetime
from pathlib import Path
from typing import Annotated, Any, Dict, FrozenSet, List, Literal, Optional, Union
from urllib.parse import quote
from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# CONFIGURATION
# =============================================================================

class CacheConfig(BaseModel):
    """Page caching switches persisted by the host's settings screen.

    Read-only here. Only the switches this service acts on are modelled;
    every other stored option is ignored, so a bad value in one of them
    never disables caching.
    """
    model_config = ConfigDict(extra="ignore", frozen=True)

    enable_page_caching: bool = False
    enable_in_memory_object_caching: bool = False
    advanced_mode: bool = False


# =============================================================================
# CONTENT EVENTS
# =============================================================================

class PostUpdated(BaseModel):
    """A post is about to be saved (phase=pre) or was saved (phase=post)."""
    type: Literal["post_updated"] = "post_updated"
    post_id: int
    post_type: str = "post"
    phase: Literal["pre", "post"] = "post"
    permalink: Optional[str] = None


class PostTrashed(BaseModel):
    """A post was moved to the trash."""
    type: Literal["post_trashed"] = "post_trashed"
    post_id: int
    post_type: str = "post"
    permalink: Optional[str] = None


class CommentStatusChanged(BaseModel):
    """A moderator changed a comment's status (approve, hold, spam, trash)."""
    type: Literal["comment_status_changed"] = "comment_status_changed"
    comment_id: int
    status: str
    post_id: Optional[int] = None
    permalink: Optional[str] = None


class CommentPosted(BaseModel):
    """A visitor submitted a comment.

    ``approved`` mirrors the host's raw value: 1/0, or "spam"/"trash".
    """
    type: Literal["comment_posted"] = "comment_posted"
    comment_id: int
    post_id: int
    approved: Union[bool, int, str] = 0
    permalink: Optional[str] = None


ContentEvent = Annotated[
    Union[PostUpdated, PostTrashed, CommentStatusChanged, CommentPosted],
    Field(discriminator="type"),
]


class RequestContext(BaseModel):
    """State of the host request that raised an event."""
    is_autosave: bool = False
    viewer_can_edit: bool = True
    is_cron: bool = False


class EventEnvelope(BaseModel):
    """An event as delivered by the host, with its request context."""
    event: ContentEvent
    context: RequestContext = Field(default_factory=RequestContext)


# Raw approval values of comments that are not shown on the page
UNAPPROVED_STATES = ("", "0", "spam", "trash")


def is_approved_flag(value: Any) -> bool:
    """Anything but an empty, zero, spam or trash value counts as approved."""
    if isinstance(value, str):
        return value.strip().lower() not in UNAPPROVED_STATES
    return bool(value)


# =============================================================================
# INVALIDATION ACTIONS
# =============================================================================

@dataclass(frozen=True)
class NoAction:
    """Nothing to purge."""

    def to_dict(self) -> Dict[str, Any]:
        return {"action": "none"}


@dataclass(frozen=True)
class PurgePaths:
    """Purge the cached artifacts of specific pages."""
    paths: FrozenSet[Path]

    def to_dict(self) -> Dict[str, Any]:
        return {"action": "purge_paths", "paths": sorted(str(p) for p in self.paths)}


@dataclass(frozen=True)
class PurgeAll:
    """Purge every cached page under the cache root."""
    cache_root: Path

    def to_dict(self) -> Dict[str, Any]:
        return {"action": "purge_all", "cache_root": str(self.cache_root)}


InvalidationAction = Union[NoAction, PurgePaths, PurgeAll]


# =============================================================================
# OUTBOUND SIDE EFFECTS AND STATE
# =============================================================================

@dataclass(frozen=True)
class CommentCookie:
    """Cookie that keeps a commenter's browser off the cached copy of a post."""
    name: str
    value: str
    max_age: int
    expires: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "max_age": self.max_age,
            "expires": self.expires.isoformat(),
        }

    def header_value(self, path: str = "/") -> str:
        """Render as a Set-Cookie header value."""
        return (
            f"{self.name}={quote(self.value, safe='/')}; "
            f"expires={format_datetime(self.expires, usegmt=True)}; "
            f"Max-Age={self.max_age}; Path={path}"
        )


class ActivationState(BaseModel):
    """Boot flag and dropin state of the host install."""
    page_caching_enabled: bool
    boot_flag_enabled: Optional[bool] = None  # None when the host config is missing
    dropin_present: bool = False
    dropin_valid: bool = False
    problems: List[str] = Field(default_factory=list)
