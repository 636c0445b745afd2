from __future__ import annotations

import os
from typing import Any

import yaml

from .models import Settings

# Default path to the configuration file.
# Can be overridden with the "HOG_CONFIG" environment variable.
DEFAULT_CONFIG: str = "playwright-hog.yaml"


def load_settings(path: str | None = None) -> Settings:
    """
    Load capture settings from a YAML configuration file.

    Args:
        path (str | None): Optional path to the configuration file.
                           If not provided, HOG_CONFIG or DEFAULT_CONFIG is used.

    Returns:
        Settings: Settings initialized from the file, with environment overrides applied.
                  If the file does not exist or is empty, defaults are returned.
    """
    file_path: str = path or os.getenv("HOG_CONFIG") or DEFAULT_CONFIG
    data: dict[str, Any] = {}

    if os.path.exists(file_path):
        with open(file_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
            if isinstance(loaded, dict):
                data = loaded

    return Settings(**data)
