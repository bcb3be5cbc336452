"""Shared test fixtures."""

from __future__ import annotations

import pytest

from unified_history.config import AppConfig, DisplayConfig, LoggingConfig, SearchConfig, StoreConfig
from unified_history.storage.store import HistoryStore

UHIST_ENV_VARS = (
    "UHIST_STORE_PATH",
    "UHIST_BACKUP_DIR",
    "UHIST_FALLBACK_PATH",
    "UHIST_RETENTION",
    "UHIST_MAX_RESULTS",
    "UHIST_CONTEXT_LINES",
    "UHIST_ENGINE",
    "UHIST_TIME_FORMAT",
    "UHIST_LOG_LEVEL",
    "UHIST_LOG_FILE",
)


@pytest.fixture
def app_config(tmp_path):
    """Create a test configuration."""
    return AppConfig(
        store=StoreConfig(
            path=str(tmp_path / "shared" / "history"),
            fallback_path=str(tmp_path / "bash_history"),
            retention=100,
        ),
        search=SearchConfig(max_results=10, context_lines=3, engine="auto"),
        display=DisplayConfig(time_format="epoch"),
        logging=LoggingConfig(level="DEBUG", file=str(tmp_path / "test.log")),
    )


@pytest.fixture
def store(tmp_path):
    """An empty (not yet created) store."""
    return HistoryStore(tmp_path / "shared" / "history")


@pytest.fixture
def make_store(store):
    """Write raw store content and return the store."""

    def _make(content: str) -> HistoryStore:
        store.path.parent.mkdir(parents=True, exist_ok=True)
        store.path.write_text(content)
        return store

    return _make


@pytest.fixture
def clean_env(monkeypatch):
    """Remove UHIST_* overrides inherited from the environment."""
    for name in UHIST_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def cli_env(tmp_path, monkeypatch, clean_env):
    """Point the CLI at a temporary store, fallback, config and log file."""
    import unified_history.config as cfg_module

    monkeypatch.setattr(cfg_module, "CONFIG_DIR", tmp_path / "config")
    monkeypatch.setattr(cfg_module, "CONFIG_FILE", tmp_path / "config" / "config.toml")

    store_path = tmp_path / "shared" / "history"
    monkeypatch.setenv("UHIST_STORE_PATH", str(store_path))
    monkeypatch.setenv("UHIST_FALLBACK_PATH", str(tmp_path / "bash_history"))
    monkeypatch.setenv("UHIST_LOG_FILE", str(tmp_path / "uhist.log"))
    monkeypatch.setenv("UHIST_TIME_FORMAT", "epoch")
    return store_path
