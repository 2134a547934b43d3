import copy
from typing import Any, Dict, Optional

from loguru import logger

from utils.functions import read_json_file, write_json_file


class MemoryStorage:
    """Key-value store kept in memory."""

    def __init__(self, items: Optional[Dict[str, Any]] = None):
        self._items: Dict[str, Any] = dict(items or {})

    async def get_item(self, key: str) -> Optional[Any]:
        value = self._items.get(key)
        return copy.deepcopy(value)

    async def set_item(self, key: str, value: Any):
        self._items[key] = copy.deepcopy(value)


class JsonStorage(MemoryStorage):
    """Key-value store persisted to a single JSON document."""

    def __init__(self, path: str):
        self.path = path
        items = read_json_file(path)
        if not isinstance(items, dict):
            if items is not None:
                logger.warning(f"Ignoring malformed storage file {path}")
            items = {}
        super().__init__(items)

    async def set_item(self, key: str, value: Any):
        await super().set_item(key, value)
        write_json_file(self._items, self.path)
