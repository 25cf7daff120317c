"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a YAML
configuration file (~/.asyncutils/config.yaml). The coordination components
never read configuration themselves; the CLI composition root passes these
values in.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from asyncutils.domain.models.policies import BackoffStrategy, RetryPolicy

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".asyncutils"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "ASYNCUTILS_"

DEFAULTS: Dict[str, Any] = {
    "queue.concurrency": 4,
    "retry.max_attempts": 3,
    "retry.delay": 0.5,
    "retry.strategy": BackoffStrategy.FIXED.value,
    "retry.factor": 2.0,
    "retry.max_delay": None,
    "memo.ttl": 60.0,
    "logging.level": "INFO",
    "logging.file": None,
    "logging.format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

# --- Module-level Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys ({'a': {'b': 1}} -> {'a.b': 1})."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def env_var_name(key: str) -> str:
    """Maps a dotted key to its environment variable (retry.delay -> ASYNCUTILS_RETRY_DELAY)."""
    return f"{ENV_PREFIX}{key.upper().replace('.', '_')}"


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None, force: bool = False) -> None:
    """Loads configuration from a YAML file and a .env file.

    Priority order (highest to lowest):
    1. Test overrides
    2. Environment variables (including those loaded from .env)
    3. YAML configuration file
    4. DEFAULTS

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        force: Reload even if configuration was already loaded.
    """
    global _config, _loaded
    if _loaded and not force:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    config_file = Path(config_file)
    if config_file.is_file():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a mapping.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above the current directory.")

    _loaded = True


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def _coerce(value: str) -> Any:
    lowered = value.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered in ("none", "null", ""):
        return None
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def get_config(key: str, default: Any = None) -> Any:
    """Gets a configuration value by dotted key.

    Args:
        key: The configuration key (e.g., 'retry.delay').
        default: Returned when no layer defines the key. Falls back to DEFAULTS.

    Returns:
        The configuration value.
    """
    if key in _test_config:
        return _test_config[key]

    if not _loaded:
        load_configuration()

    env_key = env_var_name(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    if default is None:
        default = DEFAULTS.get(key)
    logger.debug(f"Config key '{key}' not set. Returning default: {default}")
    return default


def effective_config() -> Dict[str, Any]:
    """Every known key with its resolved value."""
    keys = list(DEFAULTS) + [k for k in _config if k not in DEFAULTS]
    return {key: get_config(key) for key in keys}


# --- Convenience Functions ---

def get_default_concurrency() -> int:
    value = int(get_config("queue.concurrency"))
    if value < 1:
        logger.warning(f"Invalid queue.concurrency {value}; using 1.")
        return 1
    return value


def get_retry_policy() -> RetryPolicy:
    """Builds the retry policy from the retry.* keys."""
    strategy_name = str(get_config("retry.strategy")).lower()
    try:
        strategy = BackoffStrategy(strategy_name)
    except ValueError:
        logger.warning(f"Unknown retry.strategy '{strategy_name}'; using fixed.")
        strategy = BackoffStrategy.FIXED
    max_delay = get_config("retry.max_delay")
    return RetryPolicy(
        max_attempts=int(get_config("retry.max_attempts")),
        delay=float(get_config("retry.delay")),
        strategy=strategy,
        factor=float(get_config("retry.factor")),
        max_delay=float(max_delay) if max_delay is not None else None,
    )


def get_memo_ttl() -> float:
    return float(get_config("memo.ttl"))


def get_log_level() -> int:
    level_name = str(get_config("logging.level")).upper()
    return getattr(logging, level_name, logging.INFO)


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Overrides configuration values; highest priority until cleared."""
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
