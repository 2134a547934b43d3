from typing import Dict, List, Optional

from loguru import logger


class Settings:
    """
    User settings persisted in the key-value store: the launcher hotkey,
    the installed external plugins and per-option hotkeys.
    """

    STORAGE_KEY = "settings"

    def __init__(self, storage, config: dict):
        self.storage = storage
        self.hotkey: Optional[str] = config.get("hotkey")
        self.plugins: List[str] = []
        # plugin -> option title -> binding
        self.plugin_hotkeys: Dict[str, Dict[str, str]] = {}
        self.first_run = True

    async def load(self):
        try:
            stored = await self.storage.get_item(self.STORAGE_KEY)
        except Exception as e:
            logger.warning(f"Failed to read settings, using defaults: {e}")
            stored = None

        if not isinstance(stored, dict):
            return

        self.first_run = False
        self.hotkey = stored.get("hotkey", self.hotkey)
        self.plugins = [p for p in stored.get("plugins", []) if isinstance(p, str)]
        hotkeys = stored.get("pluginHotkeys", {})
        if isinstance(hotkeys, dict):
            self.plugin_hotkeys = {
                plugin: dict(options)
                for plugin, options in hotkeys.items()
                if isinstance(options, dict)
            }

    async def save(self):
        try:
            await self.storage.set_item(self.STORAGE_KEY, self.to_dict())
        except Exception as e:
            logger.warning(f"Failed to persist settings: {e}")
        self.first_run = False

    def to_dict(self) -> dict:
        return {
            "hotkey": self.hotkey,
            "plugins": list(self.plugins),
            "pluginHotkeys": {p: dict(o) for p, o in self.plugin_hotkeys.items()},
        }
