"""Settings for ledgerfeed: API and RPC endpoints, cache location, share host.

Values come from ~/.ledgerfeed/config.yaml, a .env file found at or above the
working directory, and the process environment. Keys are dotted
('api.base_url'); the matching environment variables are LEDGERFEED_API_BASE_URL
and API_BASE_URL.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from ledgerfeed.domain.models.share import HostKind

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".ledgerfeed"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
DEFAULT_CACHE_DIR = Path.home() / ".ledgerfeed_cache"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "LEDGERFEED_"

DEFAULT_API_BASE_URL = "http://localhost:3000"
DEFAULT_RPC_URL = "https://mainnet.base.org"
DEFAULT_GATEWAY_TIMEOUT_SECONDS = 15.0

_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _read_yaml_file(config_file: Path) -> Dict[str, Any]:
    """Returns the mapping stored in config_file, or {} when absent or unusable."""
    if not config_file.exists():
        logger.debug(f"No settings file at {config_file}")
        return {}
    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            document = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Could not read settings file {config_file}: {e}")
        return {}
    if document is None:
        return {}
    if not isinstance(document, dict):
        logger.warning(f"Ignoring {config_file}: top level is {type(document).__name__}, expected a mapping.")
        return {}
    logger.info(f"Settings read from {config_file}")
    return document

def find_dotenv_path() -> Optional[Path]:
    """Nearest .env file walking up from the working directory."""
    try:
        start = Path.cwd()
        for directory in (start, *start.parents):
            candidate = directory / ENV_FILE_NAME
            if candidate.is_file():
                return candidate
    except OSError as e:
        logger.warning(f"Could not look for {ENV_FILE_NAME}: {e}")
    return None

def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Reads the settings file and the .env file once per process.

    The .env file never overrides variables already set in the environment,
    and the environment always wins over the settings file (see get_config).

    Args:
        config_file: YAML settings file.
        env_file: Explicit .env path; searched for when None.
    """
    global _config, _loaded
    if _loaded:
        return

    _config = _read_yaml_file(config_file)

    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path is None:
        logger.debug("No .env file found.")
    elif load_dotenv(dotenv_path=dotenv_path, override=False):
        logger.info(f"Environment extended from {dotenv_path}")

    _loaded = True

def _coerce(value: str) -> Any:
    """Environment strings to bool, int or float where they look like one."""
    lowered = value.lower()
    if lowered in ('true', 'false'):
        return lowered == 'true'
    try:
        return float(value) if '.' in value else int(value)
    except ValueError:
        return value

def _lookup_yaml(key: str) -> Any:
    """A dotted key, stored either flat ('api.base_url') or as nested sections."""
    if key in _config:
        return _config[key]
    node: Any = _config
    for part in key.split('.'):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node

def env_var_names(key: str) -> Tuple[str, str]:
    """('LEDGERFEED_API_BASE_URL', 'API_BASE_URL') for 'api.base_url'."""
    plain = key.upper().replace('.', '_')
    return (f"{ENV_PREFIX}{plain}", plain)

def get_config(key: str, default: Any = None) -> Any:
    """Looks up a setting.

    Test overrides win, then the prefixed and plain environment variables,
    then the settings file, then default.
    """
    if key in _test_config:
        return _test_config[key]

    for name in env_var_names(key):
        raw = os.environ.get(name)
        if raw is not None:
            return _coerce(raw)

    value = _lookup_yaml(key)
    return default if value is None else value

def get_api_base_url() -> str:
    """Base URL of the identity and gallery endpoints."""
    return str(get_config('api.base_url', DEFAULT_API_BASE_URL)).rstrip('/')

def get_rpc_url() -> str:
    return str(get_config('ledger.rpc_url', DEFAULT_RPC_URL))

def get_cache_dir() -> Path:
    """Parent directory of the durable and session stores."""
    return Path(str(get_config('cache.dir', DEFAULT_CACHE_DIR))).expanduser()

def get_gateway_timeout() -> float:
    """Seconds allowed for each metadata gateway attempt."""
    value = get_config('gateway.timeout', DEFAULT_GATEWAY_TIMEOUT_SECONDS)
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"gateway.timeout '{value}' is not a number, using {DEFAULT_GATEWAY_TIMEOUT_SECONDS}s.")
        return DEFAULT_GATEWAY_TIMEOUT_SECONDS

def get_host_kind() -> HostKind:
    """Where share links will be opened: mini_app, mobile or desktop."""
    value = get_config('share.host_kind', HostKind.DESKTOP.value)
    try:
        return HostKind(str(value).lower())
    except ValueError:
        logger.warning(f"share.host_kind '{value}' is not recognised, assuming desktop.")
        return HostKind.DESKTOP

def get_share_base_url() -> str:
    """Public site that item page links point at. Falls back to the API base URL."""
    return str(get_config('share.base_url', get_api_base_url())).rstrip('/')

def set_config(key: str, value: Any) -> None:
    """Overrides a setting for the rest of this process and its children."""
    _config[key] = value
    name = env_var_names(key)[0]
    os.environ[name] = str(value)
    logger.debug(f"{key} set to {value!r} ({name})")

def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Installs overrides that beat every other source until clear_test_config()."""
    _test_config.update(config_dict)

def clear_test_config() -> None:
    _test_config.clear()


load_configuration()
