"""Loading of the engine configuration.

The packaged `config/defaults.yaml` holds every default value. A deployment can
point `MPC_CONFIG_PATH` to another YAML file whose sections are merged over the
defaults, and `MODEL_SAVE_DIR` overrides the directory of the model store.
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict

import yaml

from electrolyzer_mpc.util.errors import ConfigurationError
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "defaults.yaml"


def load_config(path: str | Path | None = None) -> Dict[str, Any]:
    """Loads the engine configuration.

    Args:
        path: Optional YAML file merged over the packaged defaults. When omitted,
              the `MPC_CONFIG_PATH` environment variable is consulted.

    Returns:
        The merged configuration dictionary.

    Raises:
        ConfigurationError: If the override file does not exist or is not a mapping.
    """
    with open(DEFAULT_CONFIG_PATH, "r") as file:
        config = yaml.safe_load(file)

    override_path = path or os.getenv("MPC_CONFIG_PATH")
    if override_path:
        try:
            with open(override_path, "r") as file:
                override = yaml.safe_load(file) or {}
        except FileNotFoundError as e:
            raise ConfigurationError(f"configuration file not found: {override_path}") from e
        if not isinstance(override, dict):
            raise ConfigurationError(f"configuration file {override_path} must contain a mapping")
        logger.info("Merging configuration overrides from %s", override_path)
        config = merge_config(config, override)

    model_dir = os.getenv("MODEL_SAVE_DIR")
    if model_dir:
        config["model_store"]["directory"] = model_dir

    return config


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merges `override` into a copy of `base`."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged
