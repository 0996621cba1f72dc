"""Config I/O for cockpit.yaml with environment overrides.

Precedence: environment > cockpit.yaml > schema defaults.
"""

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from . import conventions
from .schema import CockpitConfig

logger = logging.getLogger(__name__)

# env var -> (section, field); section None means top level
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "COCKPIT_STORAGE_PATH": ("storage", "path"),
    "COCKPIT_GENERATOR_URL": ("generator", "base_url"),
    "COCKPIT_GENERATOR_MODE": ("generator", "mode"),
    "COCKPIT_REPLY_LANGUAGE": ("compose", "reply_language"),
    "COCKPIT_TONE": ("compose", "tone"),
    "COCKPIT_SIMULATOR": (None, "simulator"),
}


def cockpit_home() -> Path:
    return Path(conventions.COCKPIT_HOME).expanduser()


def config_path() -> Path:
    """Return the path to ~/.inbox-cockpit/cockpit.yaml, expanded."""
    return cockpit_home() / conventions.CONFIG_FILENAME


def _env_bool(value: str) -> bool:
    return value.lower() in ("1", "true", "yes")


def apply_env_overrides(config: CockpitConfig) -> CockpitConfig:
    """Return a copy of *config* with COCKPIT_* environment variables applied."""
    data = config.model_dump()
    for env_key, (section, name) in ENV_OVERRIDES.items():
        value = os.environ.get(env_key, "")
        if not value:
            continue
        target = data if section is None else data[section]
        target[name] = _env_bool(value) if name == "simulator" else value
    return CockpitConfig(**data)


def _read_file(path: Path) -> CockpitConfig:
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s; using defaults", path, exc_info=True)
        return CockpitConfig()
    if not data:
        return CockpitConfig()
    if not isinstance(data, dict):
        logger.warning("Invalid cockpit.yaml at %s: not a mapping. Using defaults.", path)
        return CockpitConfig()

    try:
        return CockpitConfig(**data)
    except ValidationError as exc:
        logger.warning("Invalid cockpit.yaml at %s: %s. Using defaults.", path, exc)
        return CockpitConfig()


def load_config(path: Path | None = None) -> CockpitConfig:
    """Load cockpit.yaml (defaults if missing or invalid), then apply env."""
    path = path or config_path()
    config = _read_file(path) if path.exists() else CockpitConfig()
    try:
        return apply_env_overrides(config)
    except ValidationError as exc:
        logger.warning("Ignoring invalid COCKPIT_* environment overrides: %s", exc)
        return config


def save_config(config: CockpitConfig, path: Path | None = None) -> Path:
    """Write config as YAML. Returns the path written."""
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump()
    text = yaml.dump(data, default_flow_style=False, sort_keys=False)
    path.write_text(text)
    return path


def storage_path(config: CockpitConfig) -> Path:
    return Path(config.storage.path).expanduser()
