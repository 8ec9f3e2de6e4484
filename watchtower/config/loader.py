"""
Configuration Loader.

Reads the watchtower YAML configuration:

    config/config.yaml              base settings
    config/config.<env>.yaml        optional overlay, deep-merged on top
    .env                            loaded into os.environ before expansion

`${VAR}` / `${VAR:default}` references are expanded after merging, so an
overlay can replace a reference with a literal and vice versa.
"""

from copy import deepcopy
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from watchtower.core import get_logger

from .exceptions import (
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigValidationError,
)
from .models import AppConfig
from .models.base import expand_env_tree

logger = get_logger(__name__)


class ConfigLoader:
    """
    Builds an AppConfig from YAML files.

    Example:
        >>> config = ConfigLoader().load("config/config.yaml", env="dev")
        >>> config.retry.max_retries
        5
    """

    def __init__(self, env_file: Optional[str | Path] = None):
        """
        Initialize ConfigLoader.

        Args:
            env_file: Explicit .env file. Without one, the first .env found
                next to the config file, one level up, or in the working
                directory is used.
        """
        self._env_file = Path(env_file) if env_file else None
        self._dotenv_loaded = False

    def load(self, path: str | Path, env: Optional[str] = None) -> AppConfig:
        """
        Load, merge, expand and validate.

        Args:
            path: Base configuration file
            env: Overlay name; config.<env>.yaml is skipped if absent

        Raises:
            ConfigFileNotFoundError: Base file missing
            ConfigParseError: Invalid YAML
            ConfigValidationError: Values rejected by the models
        """
        path = Path(path)
        self._load_dotenv(path.parent)

        raw = self.load_yaml(path)

        if env:
            overlay_path = path.with_name(f"{path.stem}.{env}{path.suffix}")
            if overlay_path.exists():
                logger.debug(f"Applying configuration overlay {overlay_path}")
                raw = self.merge_configs(raw, self.load_yaml(overlay_path))

        try:
            return AppConfig.model_validate(expand_env_tree(raw))
        except ValidationError as e:
            raise ConfigValidationError.from_pydantic(e) from e

    def load_yaml(self, path: str | Path) -> dict[str, Any]:
        """Parse one YAML file; an empty file yields {}."""
        path = Path(path)
        if not path.is_file():
            raise ConfigFileNotFoundError(str(path))

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigParseError(str(path), str(e)) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigParseError(str(path), "top level must be a mapping")
        return data

    def merge_configs(self, base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
        """Deep merge; overlay wins, nested mappings merge key by key."""
        merged = deepcopy(base)
        for key, value in overlay.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                merged[key] = self.merge_configs(current, value)
            else:
                merged[key] = deepcopy(value)
        return merged

    def _load_dotenv(self, config_dir: Path) -> None:
        if self._dotenv_loaded:
            return

        if self._env_file:
            candidates = [self._env_file]
        else:
            candidates = [config_dir / ".env", config_dir.parent / ".env", Path.cwd() / ".env"]

        found = next((candidate for candidate in candidates if candidate.is_file()), None)
        if found is not None:
            load_dotenv(found)
            logger.debug(f"Loaded environment from {found}")
        self._dotenv_loaded = True
