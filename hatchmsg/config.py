"""Service configuration from defaults, a YAML file and the environment."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

PASSWORD = "password"
CONFIG_NAME = "hms-config"
_CONFIG_EXTENSIONS = (".yaml", ".yml")
_SUPPORTED_EXTENSIONS = (".yaml", ".yml", ".json")

_DEFAULTS: dict[str, str] = {
    "listen_address": ":8080",
    "db.host": "localhost",
    "db.port": "5432",
    "db.user": "messaging_user",
    "db.password": PASSWORD,
    "db.name": "messaging_service",
}


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings for the message database."""

    host: str = "localhost"
    port: str = "5432"
    user: str = "messaging_user"
    password: str = PASSWORD
    name: str = "messaging_service"


@dataclass(frozen=True)
class Config:
    """Top-level service configuration."""

    listen_address: str = ":8080"
    database: DatabaseSettings = field(default_factory=DatabaseSettings)


class _ConfigNotFound(Exception):
    pass


def _find_config(environ: Mapping[str, str]) -> Path:
    search_dirs = []
    home = environ.get("HOME")
    if home:
        search_dirs.append(Path(home))
    search_dirs.append(Path("."))
    for directory in search_dirs:
        for extension in _CONFIG_EXTENSIONS:
            candidate = directory / f"{CONFIG_NAME}{extension}"
            if candidate.is_file():
                return candidate
    searched = ", ".join(str(d) for d in search_dirs)
    raise _ConfigNotFound(f'Config File "{CONFIG_NAME}" Not Found in [{searched}]')


def _flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in data.items():
        name = f"{prefix}{str(key).lower()}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, f"{name}."))
        else:
            flat[name] = value
    return flat


def _read_file(path: Path) -> dict[str, Any]:
    if path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ValueError(f'Unsupported Config Type "{path.suffix.lstrip(".")}"')
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError("config file does not hold a mapping")
    return _flatten(data)


def _as_setting(key: str, value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (list, tuple, Mapping)):
        logger.error("unable to unmarshal config into struct, %s cannot hold %r", key, value)
        return None
    return str(value)


def load_config(cfg_file: str = "", environ: Mapping[str, str] | None = None) -> Config:
    """Build the configuration; environment beats file, file beats defaults."""
    env = os.environ if environ is None else environ
    file_values: dict[str, Any] = {}

    try:
        path = Path(cfg_file) if cfg_file else _find_config(env)
        file_values = _read_file(path)
    except _ConfigNotFound as exc:
        logger.warning("Config file not found; ignore error if desired: %s", exc)
    except (OSError, yaml.YAMLError, ValueError) as exc:
        logger.error("Config file was found but another error was produced: %s", exc)

    db_section = file_values.get("db")
    if db_section is not None:
        logger.error("unable to unmarshal config into struct, db is %r", db_section)

    settings: dict[str, str] = {}
    for key, default in _DEFAULTS.items():
        env_value = env.get(key.replace(".", "_").upper())
        if env_value:
            settings[key] = env_value
            continue
        file_value = _as_setting(key, file_values.get(key))
        settings[key] = default if file_value is None else file_value

    return Config(
        listen_address=settings["listen_address"],
        database=DatabaseSettings(
            host=settings["db.host"],
            port=settings["db.port"],
            user=settings["db.user"],
            password=settings["db.password"],
            name=settings["db.name"],
        ),
    )