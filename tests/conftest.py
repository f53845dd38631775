"""Shared fixtures: a throwaway host install on disk and services wired to it.

Each test gets its own host tree under ``tmp_path``:

    site/
      wp-config.php
      wp-content/
        cache/simple-cache/
        plugins/simple-cache/
        sc-config/config-example.org.json
"""

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import pytest

from core.config import Settings
from services.page_cache.activation import ActivationManager
from services.page_cache.config_store import ConfigStore, JsonSettingsProvider
from services.page_cache.exceptions import ConfigUnavailable
from services.page_cache.paths import PathResolver
from services.page_cache.policy import InvalidationPolicy
from services.page_cache.purger import ARTIFACT_NAMES, CachePurger

SITE_HOST = "example.org"

WP_CONFIG = """<?php
/**
 * The base configuration for the site.
 */

// ** Database settings ** //
define( 'DB_NAME', 'wordpress' );
define( 'DB_USER', 'wp' );

$table_prefix = 'wp_';

/* That's all, stop editing! Happy publishing. */
if ( ! defined( 'ABSPATH' ) ) {
	define( 'ABSPATH', __DIR__ . '/' );
}
require_once ABSPATH . 'wp-settings.php';
"""

FILE_BASED = {"enable_page_caching": True, "enable_in_memory_object_caching": False}

_ENV_VARS = (
    "HOST", "PORT", "DEBUG", "HOST_ROOT", "CONTENT_DIR", "PLUGIN_DIR",
    "SETTINGS_DIR", "SITE_HOST", "CACHE_NAMESPACE", "HOST_CONFIG_FILENAME",
    "BOOT_FLAG_SYMBOL", "COMMENT_COOKIE_DAYS", "LOG_LEVEL", "LOG_FORMAT", "LOG_FILE",
)


class StaticSettingsProvider:
    """Settings provider returning a fixed mapping, counting loads."""

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        self.data = data
        self.calls = 0

    def get(self) -> Mapping[str, Any]:
        self.calls += 1
        if self.data is None:
            raise ConfigUnavailable("no settings saved")
        return self.data


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of Settings."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def host_root(tmp_path) -> Path:
    root = tmp_path / "site"
    (root / "wp-content" / "plugins" / "simple-cache" / "dropins").mkdir(parents=True)
    (root / "wp-content" / "sc-config").mkdir(parents=True)
    (root / "wp-config.php").write_text(WP_CONFIG, encoding="utf-8")
    return root


@pytest.fixture
def settings(host_root) -> Settings:
    return Settings(host_root=host_root, site_host=SITE_HOST)


@pytest.fixture
def save_cache_config(settings):
    """Persist cache options the way the host's settings screen does."""

    def save(options: Dict[str, Any]) -> Path:
        path = settings.settings_dir / f"config-{SITE_HOST}.json"
        path.write_text(json.dumps(options), encoding="utf-8")
        return path

    return save


@pytest.fixture
def make_store():
    def make(data: Optional[Mapping[str, Any]] = None) -> ConfigStore:
        return ConfigStore(StaticSettingsProvider(data))

    return make


@pytest.fixture
def file_based_store(make_store) -> ConfigStore:
    return make_store(FILE_BASED)


@pytest.fixture
def purger(settings) -> CachePurger:
    return CachePurger(settings.cache_root, PathResolver())


@pytest.fixture
def json_store(settings) -> ConfigStore:
    return ConfigStore(JsonSettingsProvider(settings.settings_dir, SITE_HOST))


@pytest.fixture
def activation(settings, json_store, purger) -> ActivationManager:
    return ActivationManager(settings, json_store, purger)


@pytest.fixture
def policy_for(settings):
    def make(store: ConfigStore, content=None) -> InvalidationPolicy:
        return InvalidationPolicy(store, PathResolver(), settings.cache_root, content)

    return make


@pytest.fixture
def cached_page(settings):
    """Write the renderings of one cached page and return its directory."""

    def write(relative: str) -> Path:
        page_dir = settings.cache_root / relative
        page_dir.mkdir(parents=True, exist_ok=True)
        for name in ARTIFACT_NAMES:
            (page_dir / name).write_text(f"<html>{relative}</html>", encoding="utf-8")
        return page_dir

    return write
