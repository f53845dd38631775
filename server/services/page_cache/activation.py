"""Activation of page caching in the host install.

Two artifacts switch caching on for the host:

- the dropin (``advanced-cache.php``), which the host includes before its
  own initialization and which loads one cache backend, and
- the boot flag, a ``define( 'WP_CACHE', true );`` statement in the host's
  primary config file telling the host to include the dropin at all.

Disabling keeps the dropin in place with empty content: the host's early
bootstrap may still reference it and an empty file is a valid no-op.
Both files are published with a single atomic replace, so an interrupted
write leaves the previous content intact.
"""

import errno
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from core.config import Settings
from core.logging import get_logger
from services.page_cache.config_store import ConfigStore
from services.page_cache.exceptions import ActivationError
from services.page_cache.models import ActivationState, CacheConfig
from services.page_cache.purger import CachePurger

logger = get_logger(__name__)

ACTIVATION_MARKER = "SC_ADVANCED_CACHE"
DEFAULT_BACKEND = "file-based-page-cache.php"
ADVANCED_BACKEND = "batcache.php"
BOOT_FLAG_COMMENT = "// Simple Cache"

# Parent directories searched above the host root for its config file
CONFIG_SEARCH_DEPTH = 2

_DEFINE_RE = re.compile(
    r"""^(?P<head>\s*define\(\s*(?P<quote>['"])(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?P=quote)\s*,)(?P<rest>.*)$"""
)
# A bare literal value closing the statement on the same line
_LITERAL_RE = re.compile(
    r"""^(?P<lead>\s*)(?P<value>true|false|1|0)(?P<tail>\s*\)\s*;.*)$""", re.IGNORECASE
)
_STATEMENT_END_RE = re.compile(r"""\)\s*;\s*(?://.*|#.*)?$""")
_MARKER_RE = re.compile(
    r"""define\(\s*['"]""" + ACTIVATION_MARKER + r"""['"]\s*,\s*true\s*\)"""
)


def php_quote(value: str) -> str:
    """Escape a value for a single-quoted PHP string literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def select_backend(config: CacheConfig) -> str:
    """Pick the dropin backend; the advanced one needs object caching too."""
    if config.enable_in_memory_object_caching and config.advanced_mode:
        return ADVANCED_BACKEND
    return DEFAULT_BACKEND


def render_dropin(config: CacheConfig, plugin_dir: Path) -> str:
    """Build the dropin source, or an empty string when caching is off."""
    if not config.enable_page_caching:
        return ""

    plugin_dir = str(plugin_dir).rstrip("/")
    functions_file = php_quote(f"{plugin_dir}/pre-wp-functions.php")
    backend_file = php_quote(f"{plugin_dir}/dropins/{select_backend(config)}")

    lines = [
        "<?php",
        "defined( 'ABSPATH' ) || exit;",
        f"define( '{ACTIVATION_MARKER}', true );",
        "if ( is_admin() ) { return; }",
        f"include_once( '{functions_file}' );",
        "$GLOBALS['sc_config'] = sc_load_config();",
        "if ( empty( $GLOBALS['sc_config'] ) || empty( $GLOBALS['sc_config']['enable_page_caching'] ) ) { return; }",
        f"if ( @file_exists( '{backend_file}' ) ) {{ include_once( '{backend_file}' ); }}",
    ]
    return "\n".join(lines) + "\n"


def is_dropin_valid(content: str) -> bool:
    """An active dropin must define the activation marker."""
    return bool(_MARKER_RE.search(content))


def find_boot_flag(lines: List[str], symbol: str) -> List[Tuple[int, "re.Match"]]:
    """Locate every line defining ``symbol``; the name match is case-sensitive."""
    found = []
    for index, line in enumerate(lines):
        match = _DEFINE_RE.match(line.rstrip("\r\n"))
        if match and match.group("name") == symbol:
            found.append((index, match))
    return found


def parse_boot_flag(match: "re.Match") -> bool:
    """Flag state of a definition; anything but a true literal reads as off."""
    literal = _LITERAL_RE.match(match.group("rest"))
    return literal is not None and literal.group("value").lower() in ("true", "1")


def _is_single_statement(match: "re.Match") -> bool:
    """True when the definition ends on its own line with balanced parentheses."""
    rest = match.group("rest")
    end = _STATEMENT_END_RE.search(rest)
    if end is None:
        return False
    value = rest[:end.start()]
    return value.count("(") == value.count(")")


def _set_definition(line: str, match: "re.Match", symbol: str, literal: str) -> str:
    ending = line[len(line.rstrip("\r\n")):]
    value = _LITERAL_RE.match(match.group("rest"))
    if value is not None:
        return f"{match.group('head')}{value.group('lead')}{literal}{value.group('tail')}{ending}"
    # Expression values are replaced by a plain definition, whole line
    head = match.group("head")
    indent = head[:len(head) - len(head.lstrip())]
    return f"{indent}define( '{symbol}', {literal} ); {BOOT_FLAG_COMMENT}{ending}"


def rewrite_boot_flag(text: str, symbol: str, enabled: bool) -> Tuple[str, bool]:
    """Return the config text with the boot flag set, and whether it changed.

    Only the definition statement is touched. A bare literal value is
    replaced in place; a definition with any other value expression is
    replaced as a whole line. Later duplicate definitions are dropped.
    Without a definition, one is inserted right after the opening tag. All
    other lines keep their exact content and order.

    Raises:
        ValueError: a definition that has to change spans several lines,
            so no line-level edit can keep the file valid.
    """
    lines = text.splitlines(keepends=True)
    newline = "\r\n" if "\r\n" in text else "\n"
    literal = "true" if enabled else "false"
    found = find_boot_flag(lines, symbol)

    if found:
        index, match = found[0]
        is_literal = _LITERAL_RE.match(match.group("rest")) is not None
        if is_literal and parse_boot_flag(match) == enabled and len(found) == 1:
            return text, False
        # Whole-line edits are only safe on single-line statements
        whole_lines = found[1:] if is_literal else found
        for line_index, definition in whole_lines:
            if not _is_single_statement(definition):
                raise ValueError(
                    f"Definition of {symbol} on line {line_index + 1} spans several lines"
                )
        lines[index] = _set_definition(lines[index], match, symbol, literal)
        for duplicate, _ in reversed(found[1:]):
            del lines[duplicate]
        return "".join(lines), True

    if not enabled:
        return text, False

    definition = f"define( '{symbol}', {literal} ); {BOOT_FLAG_COMMENT}{newline}"
    tag_index = _opening_tag_index(lines)
    if tag_index is None:
        lines.insert(0, f"<?php{newline}{definition}?>{newline}")
    else:
        if not lines[tag_index].endswith(("\n", "\r")):
            lines[tag_index] += newline
        lines.insert(tag_index + 1, definition)
    return "".join(lines), True


def _opening_tag_index(lines: List[str]) -> Optional[int]:
    for index, line in enumerate(lines):
        stripped = line.strip().lstrip("\ufeff")
        if not stripped:
            continue
        if stripped == "<?php":
            return index
        return None
    return None


def atomic_write(path: Path, content: str, mode: int = 0o644) -> None:
    """Replace ``path`` with ``content`` in one step, keeping its permissions.

    The owner and group of the replaced file are copied as well where the
    process is allowed to; otherwise the new file belongs to this process.
    """
    if path.exists() and not os.access(path, os.W_OK):
        raise PermissionError(errno.EACCES, "Permission denied", str(path))
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        try:
            current = path.stat()
        except FileNotFoundError:
            os.chmod(tmp_name, mode)
        else:
            os.chmod(tmp_name, current.st_mode & 0o7777)
            _copy_owner(tmp_name, path, current)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def _copy_owner(tmp_name: str, path: Path, current: os.stat_result) -> None:
    try:
        os.chown(tmp_name, current.st_uid, current.st_gid)
    except PermissionError as e:
        logger.warning("Owner not preserved on rewrite",
                       path=str(path), uid=current.st_uid, gid=current.st_gid, error=str(e))
class ActivationManager:
    """Writes the dropin and toggles the boot flag in the host config.

    Rewrites of the host config are serialized within the process only;
    two processes toggling at once race and the last writer wins.
    """

    def __init__(self, settings: Settings, config_store: ConfigStore, purger: CachePurger):
        self.settings = settings
        self.config_store = config_store
        self.purger = purger
        self._rewrite_lock = threading.Lock()

    @property
    def dropin_path(self) -> Path:
        return self.settings.dropin_path

    # =========================================================================
    # DROPIN
    # =========================================================================

    def write(self, config: Optional[CacheConfig] = None) -> Path:
        """Write the dropin for ``config``, by default the current configuration.

        Raises:
            ActivationError: the dropin location is not writable.
        """
        if config is None:
            config = self.config_store.get()
        content = render_dropin(config, self.settings.plugin_dir)
        path = self.dropin_path
        try:
            atomic_write(path, content)
        except OSError as e:
            logger.error("Dropin write failed", path=str(path), error=str(e))
            raise ActivationError(f"Cannot write dropin ({e.strerror or e})", path) from e

        logger.info("Dropin written",
                    path=str(path),
                    active=bool(content),
                    backend=select_backend(config) if content else None)
        return path

    # =========================================================================
    # BOOT FLAG
    # =========================================================================

    def find_host_config(self) -> Path:
        """Search the host root and up to two parents for the host config.

        Raises:
            ActivationError: no config file was found.
        """
        directory = Path(self.settings.host_root).resolve()
        for _ in range(CONFIG_SEARCH_DEPTH + 1):
            candidate = directory / self.settings.host_config_filename
            if candidate.is_file():
                return candidate
            directory = directory.parent
        raise ActivationError(
            f"{self.settings.host_config_filename} not found", self.settings.host_root
        )

    def read_host_config(self, path: Path) -> str:
        try:
            with open(path, encoding="utf-8", errors="surrogateescape", newline="") as f:
                text = f.read()
        except OSError as e:
            raise ActivationError(f"Cannot read host config ({e.strerror or e})", path) from e
        if not text.strip():
            raise ActivationError("Host config is empty", path)
        return text

    def read_boot_flag(self) -> bool:
        """Current boot flag value; an absent definition means off."""
        path = self.find_host_config()
        lines = self.read_host_config(path).splitlines(keepends=True)
        found = find_boot_flag(lines, self.settings.boot_flag_symbol)
        return bool(found) and parse_boot_flag(found[0][1])

    def toggle_caching(self, enabled: bool) -> bool:
        """Set the boot flag in the host config.

        Returns:
            True if the file was rewritten, False if the flag already matched.

        Raises:
            ActivationError: the host config is missing, unreadable,
                unwritable, or defines the flag in a way that cannot be
                edited line by line. The file is left as it was.
        """
        with self._rewrite_lock:
            path = self.find_host_config()
            text = self.read_host_config(path)
            try:
                new_text, changed = rewrite_boot_flag(text, self.settings.boot_flag_symbol, enabled)
            except ValueError as e:
                raise ActivationError(str(e), path) from e
            if not changed:
                logger.debug("Boot flag unchanged", path=str(path), enabled=enabled)
                return False

            try:
                atomic_write(path, new_text)
            except OSError as e:
                logger.error("Host config rewrite failed", path=str(path), error=str(e))
                raise ActivationError(f"Cannot write host config ({e.strerror or e})", path) from e

        logger.info("Boot flag rewritten",
                    path=str(path),
                    symbol=self.settings.boot_flag_symbol,
                    enabled=enabled)
        return True

    def activate(self, enabled: bool) -> bool:
        """Switch page caching on or off, dropin and boot flag together.

        ``enabled`` overrides the stored page caching switch; the backend is
        still chosen from the stored options. Returns whether the host
        config was rewritten.
        """
        config = self.config_store.get().model_copy(update={"enable_page_caching": enabled})
        self.write(config)
        return self.toggle_caching(enabled)

    def apply(self) -> bool:
        """Bring both artifacts in line with the current configuration."""
        return self.activate(self.config_store.is_page_caching_enabled())

    # =========================================================================
    # TEARDOWN AND STATUS
    # =========================================================================

    def clean_up(self) -> bool:
        """Delete the dropin and the cache directory tree.

        Both deletions are always attempted; already-absent targets count
        as deleted.
        """
        dropin_ok = True
        try:
            self.dropin_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Dropin removal failed", path=str(self.dropin_path), error=str(e))
            dropin_ok = False

        cache_ok = self.purger.purge_all(self.settings.cache_root).ok

        logger.info("Page cache cleaned up", dropin_removed=dropin_ok, cache_removed=cache_ok)
        return dropin_ok and cache_ok

    def status(self) -> ActivationState:
        """Report whether the boot flag and dropin match the configuration."""
        config = self.config_store.get()

        try:
            boot_flag = self.read_boot_flag()
        except ActivationError as e:
            logger.warning("Boot flag unreadable", error=str(e))
            boot_flag = None

        dropin_present = self.dropin_path.is_file()
        dropin_valid = False
        if dropin_present:
            try:
                dropin_valid = is_dropin_valid(self.dropin_path.read_text(encoding="utf-8", errors="replace"))
            except OSError as e:
                logger.warning("Dropin unreadable", path=str(self.dropin_path), error=str(e))

        problems = []
        if config.enable_page_caching:
            if not boot_flag:
                problems.append(
                    f'define("{self.settings.boot_flag_symbol}", true); '
                    f"is not in {self.settings.host_config_filename}."
                )
            if not dropin_valid:
                problems.append(f"{self.dropin_path.name} was edited or deleted.")

        return ActivationState(
            page_caching_enabled=config.enable_page_caching,
            boot_flag_enabled=boot_flag,
            dropin_present=dropin_present,
            dropin_valid=dropin_valid,
            problems=problems,
        )
