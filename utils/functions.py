import json
import os
from typing import Any, Dict, Optional

from loguru import logger


def write_json_file(data: Any, path: str):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w") as f:
        json.dump(data, f, indent=4, ensure_ascii=False)
    os.replace(tmp_path, path)


def read_json_file(file_path: str) -> Optional[Any]:
    if not os.path.exists(file_path):
        logger.debug(f"JSON file {file_path} does not exist.")
        return None

    with open(file_path, "r") as file:
        try:
            return json.load(file)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to read JSON file {file_path}: {e}")
            return None


def deep_update(target: Dict, update: Dict) -> Dict:
    """
    Recursively update a nested dictionary with values from another dictionary.
    Modifies target in-place.
    """
    for key, value in update.items():
        if isinstance(value, dict) and key in target and isinstance(target[key], dict):
            deep_update(target[key], value)
        else:
            target[key] = value
    return target


def is_local_path(plugin: str) -> bool:
    """
    Check if a plugin identity points at a file instead of a package name.

    Args:
        plugin: Plugin identity

    Returns:
        True if the identity contains a path separator
    """
    return os.sep in plugin or "/" in plugin
