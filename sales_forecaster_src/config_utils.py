# sales_forecaster_src/config_utils.py

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "default.yaml"

# Initialize the global configuration manager
config_manager = None


class ConfigManager:
    """
    Dotted-key access to a YAML configuration file.

    Parameters
    ----------
    data : dict
        Parsed configuration mapping
    source : Optional[Path]
        File the configuration was read from (for log messages)
    """

    REQUIRED_SECTIONS = ["data", "split", "models", "deployment"]

    def __init__(self, data: Optional[Dict[str, Any]] = None, source: Optional[Path] = None):
        self.data = data or {}
        self.source = source

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ConfigManager":
        """
        Load a YAML configuration file.

        Raises
        ------
        ConfigurationError
            If the file is missing, unreadable or does not hold a mapping
        """
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"Configuration file not found: {path}")
        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {path}")
        return cls(data, source=path)

    def get(self, key_path: str, default=None):
        """Return the value at a dotted key path such as 'split.test_periods'."""
        node: Any = self.data
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def validate_configuration(self) -> List[str]:
        """Return a list of human-readable validation warnings (empty when clean)."""
        warnings_found = []
        for section in self.REQUIRED_SECTIONS:
            if section not in self.data:
                warnings_found.append(f"missing section '{section}'")
        period = self.get("data.seasonal_period", 12)
        if not isinstance(period, int) or period < 2:
            warnings_found.append(f"data.seasonal_period must be an integer >= 2, got {period!r}")
        horizon = self.get("deployment.horizon", 12)
        if not isinstance(horizon, int) or horizon < 1:
            warnings_found.append(f"deployment.horizon must be a positive integer, got {horizon!r}")
        return warnings_found


def initialize_config(config_path: Optional[Union[str, Path]] = None) -> Optional[ConfigManager]:
    """
    Initializes the global configuration manager.

    Loads `config_path` (or the packaged config/default.yaml). If the file is
    missing the error is logged and defaults are used; an explicitly requested
    file that cannot be parsed raises ConfigurationError.
    """
    global config_manager
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    try:
        config_manager = ConfigManager.from_file(path)
    except ConfigurationError as e:
        if config_path:
            raise
        logger.warning("Configuration NOT loaded: %s - using defaults", e)
        config_manager = None
        return None

    validation_errors = config_manager.validate_configuration()
    if validation_errors:
        logger.warning("Configuration validation warnings: %s", validation_errors)
    logger.info("Loaded configuration from %s", path)
    return config_manager


def get_config_value(key_path: str, default=None, args=None, cli_param=None):
    """
    Retrieves a configuration value, providing support for command-line overrides.
    The function prioritizes values in the following order:
    1. CLI argument (if provided)
    2. Configuration file
    3. Default value
    """
    # First priority: CLI argument
    if args and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    # Second priority: Configuration file
    if config_manager:
        config_value = config_manager.get(key_path, default)
        if config_value is not None:
            return config_value

    # Third priority: Default value
    return default
