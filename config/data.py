import copy
import os

import toml
from loguru import logger

from utils.functions import deep_update

APP_NAME = "spotter"
APP_NAME_CAP = "Spotter"


def parse_timeout_string(timeout_str):
    """
    Parse timeout string in format like '200ms', '5s', '10m' etc.
    Returns timeout in milliseconds.
    """
    if isinstance(timeout_str, (int, float)):
        return int(timeout_str)

    if not timeout_str or not isinstance(timeout_str, str):
        return 5000

    timeout_str = timeout_str.strip().lower()

    if timeout_str.endswith("ms"):
        try:
            return int(timeout_str[:-2])
        except ValueError:
            return 5000
    elif timeout_str.endswith("s"):
        try:
            seconds = int(timeout_str[:-1])
            return seconds * 1000
        except ValueError:
            return 5000
    elif timeout_str.endswith("m"):
        try:
            minutes = int(timeout_str[:-1])
            return minutes * 60 * 1000
        except ValueError:
            return 5000
    else:
        try:
            seconds = int(timeout_str)
            return seconds * 1000
        except ValueError:
            return 5000


HOME_DIR = os.path.expanduser("~")

CONFIG_DIR = os.path.join(
    os.environ.get("XDG_CONFIG_HOME", os.path.join(HOME_DIR, ".config")), APP_NAME
)
CACHE_DIR = os.path.join(
    os.environ.get("XDG_CACHE_HOME", os.path.join(HOME_DIR, ".cache")), APP_NAME
)

CONFIG_FILE = os.path.join(CONFIG_DIR, "config.toml")
STORAGE_FILE = os.path.join(CACHE_DIR, "storage.json")

HOTKEY_IDENTIFIER = APP_NAME

DEFAULT_CONFIG = {
    "hotkey": "super+space",
    # Installed once, on the very first run
    "bootstrap_plugins": [],
    "launcher": {
        "debounce": "200ms",
        "reveal_delay": "500ms",
        "plugin_timeout": "5s",
    },
    "shell": {
        "path_prefix": 'export PATH="$HOME/.local/bin:/usr/local/bin:$PATH"',
        "local_runtime": "python3",
    },
    "installer": {
        "install_command": "pipx install {package}",
        "uninstall_command": "pipx uninstall {package}",
        "runtime_probe": "pipx --version",
        "runtime_install": "python3 -m pip install --user pipx",
    },
}


def load_config(config_path: str = CONFIG_FILE) -> dict:
    """Load config.toml merged over the defaults."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    if os.path.exists(config_path):
        try:
            with open(config_path, "r") as f:
                deep_update(config, toml.load(f))
        except toml.TomlDecodeError as e:
            logger.warning(f"Could not decode TOML from {config_path}, using defaults: {e}")
        except OSError as e:
            logger.warning(f"Error reading config {config_path}: {e}")

    return config
