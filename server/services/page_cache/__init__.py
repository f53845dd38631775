"""Page cache invalidation and activation for a WordPress-style host.

Decides which file-based page caches a content change invalidates, purges
them, and switches page caching on or off by managing the host's
advanced-cache dropin and WP_CACHE boot flag.
"""

from services.page_cache.activation import ActivationManager
from services.page_cache.config_store import ConfigStore, JsonSettingsProvider
from services.page_cache.exceptions import (
    ActivationError,
    ConfigUnavailable,
    FileSystemError,
    PageCacheError,
)
from services.page_cache.hooks import HookRegistry
from services.page_cache.paths import PathResolver
from services.page_cache.policy import InvalidationPolicy
from services.page_cache.purger import CachePurger
from services.page_cache.subscriber import EventSubscriber

__all__ = [
    "ActivationManager",
    "ConfigStore",
    "JsonSettingsProvider",
    "ActivationError",
    "ConfigUnavailable",
    "FileSystemError",
    "PageCacheError",
    "HookRegistry",
    "PathResolver",
    "InvalidationPolicy",
    "CachePurger",
    "EventSubscriber",
]
