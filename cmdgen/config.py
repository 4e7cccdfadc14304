"""Configuration loading for cmdgen.

Settings live in ``~/.cmdgen/config.yaml``.  The file is optional and
may be partial: whatever it contains is merged over
:data:`DEFAULT_CONFIG`.  A ``.env`` file in the working directory is
loaded first so that the upstream credentials can be kept out of the
YAML file, and the ``CMDGEN_*`` environment variables override both.
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "relay": {
        "host": "127.0.0.1",
        "port": 3003,
    },
    "upstream": {
        "base_url": "https://api.openai.com/v1",
        "api_key": None,
        "model": "gpt-4o-mini",
        "timeout": 120.0,
    },
    "client": {
        "timeout": 180.0,
    },
    "safe_mode": True,
}

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "CMDGEN_API_KEY": ("upstream", "api_key"),
    "CMDGEN_API_BASE": ("upstream", "base_url"),
    "CMDGEN_MODEL": ("upstream", "model"),
}


def config_dir() -> Path:
    """Return the configuration directory (``~/.cmdgen`` by default)."""
    override = os.environ.get("CMDGEN_CONFIG_DIR")
    return Path(override).expanduser() if override else Path.home() / ".cmdgen"


def config_file() -> Path:
    return config_dir() / "config.yaml"


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def read_config_file(path: Optional[Path] = None) -> Dict[str, Any]:
    """Return the raw contents of the YAML file, or an empty dict."""
    cfg_path = path or config_file()
    if not cfg_path.exists():
        return {}
    try:
        with cfg_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", cfg_path, exc)
        return {}
    if isinstance(data, dict):
        return data
    if data is not None:
        logger.warning("Ignoring %s: top level is not a mapping", cfg_path)
    return {}


def load_config(path: Optional[Path] = None, env_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load YAML configuration merged over the defaults.

    Missing or malformed files yield the defaults; environment
    overrides are applied last.
    """
    load_dotenv(env_file or Path.cwd() / ".env", override=False)
    config = _merge(DEFAULT_CONFIG, read_config_file(path))
    for variable, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(variable)
        if value:
            config.setdefault(section, {})[key] = value
    return config


def save_config(config: Dict[str, Any], path: Optional[Path] = None) -> Path:
    """Persist configuration to disk and return the file written."""
    cfg_path = path or config_file()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    with cfg_path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(config, f, default_flow_style=False)
    return cfg_path


def relay_url(config: Dict[str, Any]) -> str:
    relay = config.get("relay", {})
    return f"http://{relay.get('host', '127.0.0.1')}:{int(relay.get('port', 3003))}"
