"""Environment-driven configuration with Pydantic v2."""

from typing import Literal, Optional
from pathlib import Path
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Service settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="127.0.0.1", env="HOST")
    port: int = Field(default=8765, env="PORT", ge=1024, le=65535)
    debug: bool = Field(default=False, env="DEBUG")

    # Host install layout
    host_root: Path = Field(default=Path("."), env="HOST_ROOT")
    content_dir: Optional[Path] = Field(default=None, env="CONTENT_DIR")
    plugin_dir: Optional[Path] = Field(default=None, env="PLUGIN_DIR")
    settings_dir: Optional[Path] = Field(default=None, env="SETTINGS_DIR")
    site_host: str = Field(default="", env="SITE_HOST")

    # Page cache
    cache_namespace: str = Field(default="simple-cache", env="CACHE_NAMESPACE", min_length=1)
    host_config_filename: str = Field(default="wp-config.php", env="HOST_CONFIG_FILENAME")
    boot_flag_symbol: str = Field(default="WP_CACHE", env="BOOT_FLAG_SYMBOL", pattern=r"^[A-Z_]+$")
    comment_cookie_days: int = Field(default=30, env="COMMENT_COOKIE_DAYS", ge=1)

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: Literal["json", "console"] = Field(default="console", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    @model_validator(mode="after")
    def fill_host_paths(self):
        """Derive the content, plugin and settings dirs from the host root."""
        if self.content_dir is None:
            self.content_dir = self.host_root / "wp-content"
        if self.plugin_dir is None:
            self.plugin_dir = self.content_dir / "plugins" / self.cache_namespace
        if self.settings_dir is None:
            self.settings_dir = self.content_dir / "sc-config"
        return self

    @property
    def cache_root(self) -> Path:
        """Directory holding every cached page rendering."""
        return self.content_dir / "cache" / self.cache_namespace

    @property
    def dropin_path(self) -> Path:
        """Dropin the host includes at its earliest bootstrap phase."""
        return self.content_dir / "advanced-cache.php"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
