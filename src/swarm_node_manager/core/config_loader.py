"""
config_loader.py
- Loads and previews the YAML configuration file read before argument parsing.
- A missing file is normal (all values have defaults); a broken one is reported.
"""

import os
import yaml
from loguru import logger


def load_yaml(path):
    """Safely load a YAML file and return a parsed dict. Returns {} on failure."""
    # runs before logging is configured; preview_yaml reports a missing file under --debug
    if not path or not os.path.exists(path):
        return {}
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"[config] Failed to load {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.error(f"[config] Ignoring {path}: expected a mapping, got {type(data).__name__}")
        return {}
    return data


def preview_yaml(path, name=None):
    """
    Log a human-readable preview of the YAML file contents for debugging.
    Used with --debug to verify which overrides were picked up.
    """
    if not os.path.exists(path):
        logger.debug(f"[config] File not found: {path}")
        return

    try:
        with open(path, "r") as f:
            contents = f.read()
        logger.debug(f"[config] Loaded {name or path}:\n" + "\n".join(f"│ {line}" for line in contents.strip().splitlines()))
    except OSError as e:
        logger.error(f"[config] Could not preview {path}: {e}")
