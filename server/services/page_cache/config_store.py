"""Lazily loaded, read-only page caching configuration."""

import json
import threading
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol

from pydantic import ValidationError

from core.logging import get_logger
from services.page_cache.exceptions import ConfigUnavailable
from services.page_cache.models import CacheConfig

logger = get_logger(__name__)


class SettingsProvider(Protocol):
    """Source of the persisted settings, owned by the host's settings screen."""

    def get(self) -> Mapping[str, Any]:
        """Return the raw settings mapping or raise ConfigUnavailable."""


class JsonSettingsProvider:
    """Reads ``config-<site_host>.json`` from the settings directory.

    Falls back to ``config.json`` when no per-site file exists.
    """

    def __init__(self, settings_dir: Path, site_host: str = ""):
        self.settings_dir = Path(settings_dir)
        self.site_host = site_host

    def candidates(self):
        if self.site_host:
            yield self.settings_dir / f"config-{self.site_host}.json"
        yield self.settings_dir / "config.json"

    def get(self) -> Mapping[str, Any]:
        for path in self.candidates():
            if not path.is_file():
                continue
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                raise ConfigUnavailable(f"Cannot read settings file {path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigUnavailable(f"Settings file {path} is not a JSON object")
            return data
        raise ConfigUnavailable(f"No settings file in {self.settings_dir}")


class ConfigStore:
    """Process-wide configuration, loaded once on first access.

    Loading is serialized so concurrent first readers see a single load;
    reads after that take no lock since the loaded config is immutable.
    """

    def __init__(self, provider: SettingsProvider):
        self.provider = provider
        self._config: Optional[CacheConfig] = None
        self._lock = threading.Lock()

    def get(self) -> CacheConfig:
        config = self._config
        if config is None:
            with self._lock:
                if self._config is None:
                    self._config = self._load()
                config = self._config
        return config

    def reload(self) -> CacheConfig:
        """Load the config again; called after the settings screen saves."""
        with self._lock:
            self._config = self._load()
            return self._config

    def is_page_caching_enabled(self) -> bool:
        return self.get().enable_page_caching

    def is_file_based_only(self) -> bool:
        """Page caching on disk with no in-memory object cache backend."""
        config = self.get()
        return config.enable_page_caching and not config.enable_in_memory_object_caching

    def _load(self) -> CacheConfig:
        try:
            raw = self.provider.get()
            config = CacheConfig.model_validate(dict(raw or {}))
        except ConfigUnavailable as e:
            logger.warning("Cache config unavailable, caching disabled", error=str(e))
            return CacheConfig()
        except ValidationError as e:
            logger.warning("Cache config invalid, caching disabled",
                           errors=e.error_count())
            return CacheConfig()

        logger.info("Cache config loaded",
                    page_caching=config.enable_page_caching,
                    object_caching=config.enable_in_memory_object_caching,
                    advanced_mode=config.advanced_mode)
        return config
