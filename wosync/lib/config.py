"""
Configuration loader for wosync.

Loads settings from a wosync.env file. Every key is optional; a missing
file means all defaults.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from . import envparse
from . import validate
from .constants import CONFIG_FILENAME, REMOTE_CACHE_FILENAME, STACK_FILENAME

logger = logging.getLogger(__name__)

DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0
DEFAULT_DUPLICATE_TOLERANCE_DAYS = 1
DEFAULT_LOCK_TIMEOUT = 30


@dataclass
class Config:
    """Settings from wosync.env, with paths already resolved."""
    data_dir: Path
    work_orders_dir: Path
    tables_dir: Path
    database_path: Path | None
    channel_factory: str | None  # "module:callable"
    retry_attempts: int
    retry_delay_seconds: float
    duplicate_tolerance_days: int
    lock_timeout: int

    @property
    def stack_path(self) -> Path:
        return self.data_dir / STACK_FILENAME

    @property
    def remote_cache_path(self) -> Path:
        return self.data_dir / REMOTE_CACHE_FILENAME

    def notes_path(self, work_order_number: str) -> Path:
        """Path to the note file for a work order."""
        return self.work_orders_dir / work_order_number / f"{work_order_number}_notes.md"


def _resolve(base_dir: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path


def config_from_env(env: dict[str, str], base_dir: Path) -> Config:
    """Build Config from parsed env values.

    Raises:
        ValidationError: if values don't match the config schema
    """
    validate.validate(env, "config")

    database = env.get("DATABASE_PATH", "").strip()
    factory = env.get("CHANNEL_FACTORY", "").strip()

    return Config(
        data_dir=_resolve(base_dir, env.get("DATA_DIR", "data")),
        work_orders_dir=_resolve(base_dir, env.get("WORK_ORDERS_DIR", "work_orders")),
        tables_dir=_resolve(base_dir, env.get("TABLES_DIR", "tables")),
        database_path=_resolve(base_dir, database) if database else None,
        channel_factory=factory or None,
        retry_attempts=int(env.get("RETRY_ATTEMPTS", DEFAULT_RETRY_ATTEMPTS)),
        retry_delay_seconds=float(env.get("RETRY_DELAY_SECONDS", DEFAULT_RETRY_DELAY_SECONDS)),
        duplicate_tolerance_days=int(env.get("DUPLICATE_TOLERANCE_DAYS", DEFAULT_DUPLICATE_TOLERANCE_DAYS)),
        lock_timeout=int(env.get("LOCK_TIMEOUT", DEFAULT_LOCK_TIMEOUT)),
    )


def load_config(config_path: Path | None = None) -> Config:
    """Load wosync.env and return Config.

    With no explicit path, looks for wosync.env in the current directory.
    Relative paths inside the file resolve against the file's directory.
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME
        if not config_path.exists():
            logger.debug(f"No {CONFIG_FILENAME} in {Path.cwd()}, using defaults")
            return config_from_env({}, Path.cwd())

    env = envparse.load_env(config_path)
    return config_from_env(env, config_path.resolve().parent)
