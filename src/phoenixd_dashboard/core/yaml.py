"""YAML configuration loading.

Service and store configuration files are parsed with ``yaml.safe_load`` so a
config file can only ever produce plain strings, numbers, lists and dicts.
The result is handed to a Pydantic model for validation, e.g.
[DashboardConfig][phoenixd_dashboard.services.dashboard.DashboardConfig].

Examples:
    ```python
    from phoenixd_dashboard.core.yaml import load_yaml

    config = load_yaml("config/services/dashboard.yaml")
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str) -> dict[str, Any]:
    """Read a YAML mapping from disk.

    Args:
        config_path: Path to the YAML file.

    Returns:
        The parsed mapping; an empty dict for an empty file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file is not valid YAML or its top level
            is not a mapping.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"{config_path} must contain a mapping, got {type(data).__name__}"
        )
    return data
