"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import Settings
from services.page_cache.activation import ActivationManager
from services.page_cache.config_store import ConfigStore, JsonSettingsProvider
from services.page_cache.hooks import HookRegistry
from services.page_cache.paths import PathResolver
from services.page_cache.policy import InvalidationPolicy
from services.page_cache.purger import CachePurger
from services.page_cache.subscriber import EventSubscriber


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Persisted cache options, owned by the host's settings screen
    settings_provider = providers.Singleton(
        JsonSettingsProvider,
        settings_dir=settings.provided.settings_dir,
        site_host=settings.provided.site_host
    )

    # Loaded once per process
    config_store = providers.Singleton(
        ConfigStore,
        provider=settings_provider
    )

    path_resolver = providers.Singleton(
        PathResolver
    )

    purger = providers.Singleton(
        CachePurger,
        cache_root=settings.provided.cache_root,
        path_resolver=path_resolver
    )

    # No content lookup: the host sends permalinks with its events
    policy = providers.Singleton(
        InvalidationPolicy,
        config_store=config_store,
        path_resolver=path_resolver,
        cache_root=settings.provided.cache_root
    )

    activation = providers.Singleton(
        ActivationManager,
        settings=settings,
        config_store=config_store,
        purger=purger
    )

    hooks = providers.Singleton(
        HookRegistry
    )

    subscriber = providers.Singleton(
        EventSubscriber,
        settings=settings,
        config_store=config_store,
        policy=policy,
        purger=purger
    )


# Global container instance
container = Container()
