"""Configuration management using TOML + environment variables."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[no-redef]

import tomli_w

CONFIG_DIR = Path.home() / ".unified-history"
CONFIG_FILE = CONFIG_DIR / "config.toml"
LOG_FILE = CONFIG_DIR / "uhist.log"

DEFAULT_RETENTION = 10000
DEFAULT_MAX_RESULTS = 10
DEFAULT_CONTEXT_LINES = 3


@dataclass
class StoreConfig:
    path: str = "~/.unified_history"
    backup_dir: str = ""
    fallback_path: str = "~/.bash_history"
    retention: int = DEFAULT_RETENTION

    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()

    def resolved_backup_dir(self) -> Path | None:
        if not self.backup_dir:
            return None
        return Path(self.backup_dir).expanduser()

    def resolved_fallback_path(self) -> Path:
        return Path(self.fallback_path).expanduser()


@dataclass
class SearchConfig:
    max_results: int = DEFAULT_MAX_RESULTS
    context_lines: int = DEFAULT_CONTEXT_LINES
    engine: str = "auto"


@dataclass
class DisplayConfig:
    time_format: str = "compact"


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    file: str = str(LOG_FILE)


@dataclass
class AppConfig:
    store: StoreConfig = field(default_factory=StoreConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def ensure_config_dir() -> None:
    """Create config directory with secure permissions."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    os.chmod(CONFIG_DIR, 0o700)


def load_config() -> AppConfig:
    """Load configuration from TOML file with env var overrides."""
    config = AppConfig()

    if CONFIG_FILE.exists():
        with open(CONFIG_FILE, "rb") as f:
            data = tomllib.load(f)

        store = data.get("store", {})
        config.store.path = store.get("path", config.store.path)
        config.store.backup_dir = store.get("backup_dir", config.store.backup_dir)
        config.store.fallback_path = store.get("fallback_path", config.store.fallback_path)
        config.store.retention = store.get("retention", config.store.retention)

        search = data.get("search", {})
        config.search.max_results = search.get("max_results", config.search.max_results)
        config.search.context_lines = search.get("context_lines", config.search.context_lines)
        config.search.engine = search.get("engine", config.search.engine)

        display = data.get("display", {})
        config.display.time_format = display.get("time_format", config.display.time_format)

        logging_cfg = data.get("logging", {})
        config.logging.level = logging_cfg.get("level", config.logging.level)
        config.logging.file = logging_cfg.get("file", config.logging.file)

    # Environment variable overrides
    if env_path := os.environ.get("UHIST_STORE_PATH"):
        config.store.path = env_path
    if env_backup := os.environ.get("UHIST_BACKUP_DIR"):
        config.store.backup_dir = env_backup
    if env_fallback := os.environ.get("UHIST_FALLBACK_PATH"):
        config.store.fallback_path = env_fallback
    if env_retention := os.environ.get("UHIST_RETENTION"):
        config.store.retention = int(env_retention)
    if env_max := os.environ.get("UHIST_MAX_RESULTS"):
        config.search.max_results = int(env_max)
    if env_context := os.environ.get("UHIST_CONTEXT_LINES"):
        config.search.context_lines = int(env_context)
    if env_engine := os.environ.get("UHIST_ENGINE"):
        config.search.engine = env_engine
    if env_format := os.environ.get("UHIST_TIME_FORMAT"):
        config.display.time_format = env_format
    if env_log_level := os.environ.get("UHIST_LOG_LEVEL"):
        config.logging.level = env_log_level
    if env_log_file := os.environ.get("UHIST_LOG_FILE"):
        config.logging.file = env_log_file

    return config


def save_config(config: AppConfig) -> None:
    """Save configuration to TOML file."""
    ensure_config_dir()

    data = {
        "store": {
            "path": config.store.path,
            "backup_dir": config.store.backup_dir,
            "fallback_path": config.store.fallback_path,
            "retention": config.store.retention,
        },
        "search": {
            "max_results": config.search.max_results,
            "context_lines": config.search.context_lines,
            "engine": config.search.engine,
        },
        "display": {
            "time_format": config.display.time_format,
        },
        "logging": {
            "level": config.logging.level,
            "file": config.logging.file,
        },
    }

    with open(CONFIG_FILE, "wb") as f:
        tomli_w.dump(data, f)

    os.chmod(CONFIG_FILE, 0o600)
