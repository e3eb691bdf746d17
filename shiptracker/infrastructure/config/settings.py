"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.shiptracker/config.yaml).
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional, Dict

from dotenv import load_dotenv
import yaml

from shiptracker.domain.models.common import BackoffPolicy

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".shiptracker"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_API_BASE_URL = "https://api.github.com"
DEFAULT_GRAPH_BASE_URL = "https://ghchart.rshah.org"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False

def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Nested YAML mappings are flattened to dotted keys, so
    ``retry: {max_retries: 5}`` is read with ``get_config('retry.max_retries')``.

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: ENV VARS take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug(".env file not found at or above current directory.")

    # 3. Environment Variables (Highest priority) are handled in get_config

    _loaded = True
    logger.debug("Configuration loading process completed.")

def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{full_key}."))
        else:
            flat[full_key] = value
    return flat

def _coerce(value: str) -> Any:
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value

def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (key upper-cased, dots replaced by underscores)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace('.', '_')
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    return default

def set_config(key: str, value: Any) -> None:
    """Sets a configuration value for the running process.

    Args:
        key: Configuration key (e.g., 'logging.level')
        value: Value to set
    """
    logger.debug(f"Setting config: {key} = {value}")
    _config[key] = value

def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None

# --- Convenience Functions ---

def get_github_token() -> Optional[str]:
    """Convenience function to get the GitHub token.

    Checks GITHUB_TOKEN, then NEXT_PUBLIC_GITHUB_TOKEN, then yaml github.token.
    """
    key = (
        get_config('GITHUB_TOKEN')
        or get_config('NEXT_PUBLIC_GITHUB_TOKEN')
        or get_config('github.token')
    )
    return str(key) if key else None

def get_api_base_url() -> str:
    return str(get_config('github.api_url', DEFAULT_API_BASE_URL)).rstrip('/')

def get_graph_base_url() -> str:
    """Base URL of the contribution graph image service."""
    return str(get_config('graph.base_url', DEFAULT_GRAPH_BASE_URL)).rstrip('/')

def get_retry_policy() -> BackoffPolicy:
    return BackoffPolicy(
        max_retries=int(get_config('retry.max_retries', 3)),
        initial_delay=float(get_config('retry.initial_delay_seconds', 1.0)),
        factor=float(get_config('retry.backoff_factor', 2.0)),
    )

def get_cache_ttl() -> float:
    return float(get_config('cache.ttl_seconds', 300))

def get_batch_size() -> int:
    return int(get_config('orchestration.batch_size', 5))

def get_batch_pause() -> float:
    return float(get_config('orchestration.batch_pause_seconds', 1.0))

def get_request_delay() -> float:
    """Pause between users when adding them one at a time."""
    return float(get_config('orchestration.request_delay_seconds', 0.5))

def get_sample_commit_size() -> bool:
    flag = get_config('stats.sample_commit_size', True)
    if isinstance(flag, str):
        return flag.lower() not in ('false', '0', 'no')
    return bool(flag)

def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")

def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
