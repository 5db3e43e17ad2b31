"""Configuration — where the rules tree lives and where components land.

Values are resolved in precedence order:
    CLI flags  >  HANDS_* env vars  >  YAML config file  >  defaults

The YAML file is optional. ``hands.yaml`` in the working directory is
picked up automatically; ``--config`` points at any other file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

from hands.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE = "hands.yaml"

ENV_RULES_DIR = "HANDS_RULES_DIR"
ENV_TARGET_DIR = "HANDS_TARGET_DIR"
ENV_LOG_LEVEL = "HANDS_LOG_LEVEL"
ENV_LOG_FILE = "HANDS_LOG_FILE"


@dataclass
class HandsConfig:
    """Resolved configuration for a single run."""

    rules_dir: str = "rules"
    target_dir: str = "."
    metadata_file: str = ".claude/.hands-meta.json"
    settings_file: str = ".claude/settings.json"
    endpoint_file: str = ".claude/config.json"
    backup_suffix: str = ".local"
    log_level: str = "WARNING"
    log_file: str | None = None
    assume_yes: bool = False

    @property
    def rules_path(self) -> Path:
        return Path(self.rules_dir)

    @property
    def target_path(self) -> Path:
        return Path(self.target_dir)

    @property
    def metadata_path(self) -> Path:
        return self.target_path / self.metadata_file

    @property
    def settings_path(self) -> Path:
        return self.target_path / self.settings_file

    @property
    def endpoint_path(self) -> Path:
        return self.target_path / self.endpoint_file


def load_config(path: str | Path | None = None, **overrides) -> HandsConfig:
    """Build a HandsConfig from file, environment and explicit overrides.

    Args:
        path: Explicit YAML config path. If None, ``hands.yaml`` in the
            working directory is used when present.
        **overrides: Field values from the command line. ``None`` values
            are ignored so unset flags do not mask lower layers.

    Raises:
        ConfigError: If an explicit path is missing or a file is not a mapping.
    """
    config = HandsConfig()

    if path is not None:
        path = Path(path)
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
    elif Path(CONFIG_FILE).is_file():
        path = Path(CONFIG_FILE)

    if path is not None:
        _apply(config, _read_yaml(path))

    env_values = {
        "rules_dir": os.environ.get(ENV_RULES_DIR),
        "target_dir": os.environ.get(ENV_TARGET_DIR),
        "log_level": os.environ.get(ENV_LOG_LEVEL),
        "log_file": os.environ.get(ENV_LOG_FILE),
    }
    _apply(config, {k: v for k, v in env_values.items() if v})
    _apply(config, {k: v for k, v in overrides.items() if v is not None})

    return config


def _read_yaml(path: Path) -> dict:
    logger.debug("Loading config from %s", path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def _apply(config: HandsConfig, values: dict) -> None:
    known = {f.name for f in fields(config)}
    for key, value in values.items():
        if key not in known:
            logger.debug("Ignoring unknown config key: %s", key)
            continue
        setattr(config, key, value)
