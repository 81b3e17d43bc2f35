"""Persisted CLI configuration (~/.config/truelist/config.yaml) and API key lookup."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

API_KEY_ENV = "TRUELIST_API_KEY"
BASE_URL_ENV = "TRUELIST_BASE_URL"


@dataclass
class Config:
    api_key: str = ""


def config_dir() -> Path:
    return Path.home() / ".config" / "truelist"


def config_path() -> Path:
    return config_dir() / "config.yaml"


def load(path: Optional[Path] = None) -> Config:
    """Read the config file, falling back to the environment for the API key.

    A missing or malformed file counts as empty.
    """
    path = path or config_path()
    cfg = Config()
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if isinstance(data, dict):
            cfg.api_key = str(data.get("api_key") or "")
    except FileNotFoundError:
        pass
    except (OSError, yaml.YAMLError) as e:
        logger.debug("ignoring unreadable config %s: %s", path, e)

    if not cfg.api_key:
        cfg.api_key = os.getenv(API_KEY_ENV, "")
    return cfg


def save(cfg: Config, path: Optional[Path] = None) -> Path:
    """Write ``cfg`` to disk with owner-only permissions; return the file path."""
    path = path or config_path()
    try:
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"api_key": cfg.api_key}, f, default_flow_style=False)
        os.chmod(path, 0o600)
    except OSError as e:
        raise ConfigError(f"could not write config file: {e}") from e
    return path


def get_api_key(path: Optional[Path] = None) -> str:
    cfg = load(path)
    if not cfg.api_key:
        raise ConfigError(
            "no API key configured — run `truelist config set api-key <key>` "
            f"or set {API_KEY_ENV}"
        )
    return cfg.api_key
