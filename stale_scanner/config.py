# stale_scanner/config.py
import os
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional, Union

import yaml
from platformdirs import user_config_path

from .enrichment import MAX_WORKERS
from .registry_client import CONNECT_TIMEOUT, NPM_REGISTRY_URL, READ_TIMEOUT, RUBYGEMS_VERSIONS_URL

logger = logging.getLogger(__name__)

APP_NAME = "stalescan"
PROJECT_CONFIG_FILENAME = "stalescan.yaml"
USER_CONFIG_FILENAME = "config.yaml"
CONFIG_ENV_VAR = "STALESCAN_CONFIG"


@dataclass(frozen=True)
class Settings:
    connect_timeout: float = CONNECT_TIMEOUT
    read_timeout: float = READ_TIMEOUT
    max_workers: int = MAX_WORKERS
    rubygems_url: str = RUBYGEMS_VERSIONS_URL
    npm_registry_url: str = NPM_REGISTRY_URL
    sort_by: str = "time-behind"
    sort_desc: bool = True


POSITIVE_NUMBERS = {"connect_timeout": float, "read_timeout": float, "max_workers": int}
BOOLEAN_STRINGS = {"true": True, "yes": True, "1": True, "false": False, "no": False, "0": False}


def find_config_file(explicit_path: Optional[Union[str, Path]] = None, project_path: Union[str, Path] = ".") -> Optional[Path]:
    candidates = []
    if explicit_path:
        if not Path(explicit_path).is_file():
            logger.warning(f"Config file '{explicit_path}' not found.")
        candidates.append(Path(explicit_path))
    if os.environ.get(CONFIG_ENV_VAR):
        candidates.append(Path(os.environ[CONFIG_ENV_VAR]))
    candidates.append(Path(project_path) / PROJECT_CONFIG_FILENAME)
    candidates.append(user_config_path(appname=APP_NAME) / USER_CONFIG_FILENAME)
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def load_config(config_path: Optional[Union[str, Path]]) -> dict:
    config = {}
    if config_path is None:
        return config
    path = Path(config_path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            loaded_yaml = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.warning(f"Error parsing YAML configuration file '{path.resolve()}': {e}")
        return config
    except OSError as e:
        logger.warning(f"Could not read configuration file '{path.resolve()}': {e}")
        return config
    if isinstance(loaded_yaml, dict):
        config = loaded_yaml
        logger.debug(f"Loaded configuration from {path.resolve()}")
    elif loaded_yaml is not None:
        logger.warning(f"Config file '{path.resolve()}' does not contain a valid dictionary structure.")
    return config


def parse_bool(value) -> Optional[bool]:
    """Real booleans, 0/1 and true/false/yes/no strings; None for anything else."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        return BOOLEAN_STRINGS.get(value.strip().lower())
    return None


def settings_from_config(config: dict) -> Settings:
    settings = Settings()
    known = {f.name for f in fields(Settings)}
    overrides = {}
    for key, value in config.items():
        if key not in known:
            logger.debug(f"Ignoring unknown config key '{key}'")
            continue
        if key in POSITIVE_NUMBERS:
            try:
                value = POSITIVE_NUMBERS[key](value)
            except (TypeError, ValueError):
                logger.warning(f"Invalid value for '{key}': {value!r}. Keeping default {getattr(settings, key)}.")
                continue
            if value <= 0:
                logger.warning(f"'{key}' must be positive, got {value}. Keeping default {getattr(settings, key)}.")
                continue
            if key == "max_workers" and value > MAX_WORKERS:
                logger.warning(f"'max_workers' is capped at {MAX_WORKERS}, got {value}.")
                value = MAX_WORKERS
        elif key == "sort_desc":
            value = parse_bool(value)
            if value is None:
                logger.warning(f"Invalid value for 'sort_desc': {config[key]!r}. Keeping default {settings.sort_desc}.")
                continue
        else:
            value = str(value)
        overrides[key] = value
    return replace(settings, **overrides)


def load_settings(explicit_path: Optional[Union[str, Path]] = None, project_path: Union[str, Path] = ".") -> Settings:
    return settings_from_config(load_config(find_config_file(explicit_path, project_path)))
