"""
Configuration management for content vault stores.

The configuration is stored as a TOML file in the store directory.
It names the snapshot file and the defaults used by the front-ends.
"""

import logging
import os
import tempfile
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import tomli_w

from .item_store import DEFAULT_RECENT_DAYS, SNAPSHOT_FILENAME
from .types import utc_now

logger = logging.getLogger(__name__)


CONFIG_FILENAME = "vault.toml"
CONFIG_VERSION = 1
STORE_DIRNAME = ".content-vault"


@dataclass
class StoreConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=utc_now)
    snapshot: str = SNAPSHOT_FILENAME
    recent_days: int = DEFAULT_RECENT_DAYS

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def _env_truthy(name: str) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return False
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def get_default_store_path() -> Path:
    """
    Resolve the store directory for this environment.

    Priority:
    1. VAULT_STORE_PATH environment variable
    2. <tempdir>/.content-vault when VAULT_EPHEMERAL is set (hosts whose
       only writable storage is a scratch directory)
    3. ~/.content-vault
    """
    store = os.environ.get("VAULT_STORE_PATH")
    if store:
        return Path(store).expanduser()
    if _env_truthy("VAULT_EPHEMERAL"):
        return Path(tempfile.gettempdir()) / STORE_DIRNAME
    return Path.home() / STORE_DIRNAME


def load_config(store_path: Path) -> StoreConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    store = data.get("store", {})
    version = store.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    snapshot = store.get("snapshot", SNAPSHOT_FILENAME)
    if not isinstance(snapshot, str) or not snapshot or Path(snapshot).name != snapshot:
        raise ValueError(f"Invalid snapshot file name in {config_path}: {snapshot!r}")

    recent_days = data.get("recent", {}).get("days", DEFAULT_RECENT_DAYS)
    if not isinstance(recent_days, int) or recent_days <= 0:
        raise ValueError(f"Invalid [recent] days in {config_path}: {recent_days!r}")

    return StoreConfig(
        path=store_path,
        version=version,
        created=store.get("created", ""),
        snapshot=snapshot,
        recent_days=recent_days,
    )


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
            "snapshot": config.snapshot,
        },
        "recent": {
            "days": config.recent_days,
        },
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Path) -> StoreConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management. Writing the new
    config is best-effort; on a read-only filesystem the defaults are
    returned without being saved.
    """
    config_path = store_path / CONFIG_FILENAME

    if config_path.exists():
        return load_config(store_path)

    config = StoreConfig(path=store_path)
    try:
        save_config(config)
    except OSError as e:
        logger.warning("Cannot write config %s (using defaults): %s", config_path, e)
    return config
