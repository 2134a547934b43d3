from typing import Dict, Optional, Tuple

from loguru import logger

from modules.launcher.option import Identity, Option

HistoryKey = Tuple[Optional[Identity], Identity]


def history_key(option: Option, anchor: Optional[Option] = None) -> HistoryKey:
    """Usage key of an option, scoped by the drill-down anchor it was picked under."""
    return (anchor.identity if anchor is not None else None, option.identity)


def _identity_from_json(value) -> Identity:
    plugin, title, action = value
    return (str(plugin), str(title), action if action is None else str(action))


class History:
    """
    Usage counts of submitted and drilled-into options.
    Counts only grow, nothing is ever removed.
    """

    STORAGE_KEY = "history"

    def __init__(self, storage):
        self.storage = storage
        self._counts: Dict[HistoryKey, int] = {}

    async def load(self):
        try:
            entries = await self.storage.get_item(self.STORAGE_KEY) or []
        except Exception as e:
            logger.warning(f"Failed to read history, starting empty: {e}")
            entries = []

        counts = {}
        for entry in entries:
            try:
                anchor = entry["anchor"]
                key = (
                    _identity_from_json(anchor) if anchor is not None else None,
                    _identity_from_json(entry["option"]),
                )
                counts[key] = int(entry["count"])
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed history entry {entry!r}: {e}")
        self._counts = counts

    def count(self, option: Option, anchor: Optional[Option] = None) -> int:
        return self._counts.get(history_key(option, anchor), 0)

    async def increment(self, option: Option, anchor: Optional[Option] = None) -> int:
        key = history_key(option, anchor)
        self._counts[key] = self._counts.get(key, 0) + 1
        await self._save()
        return self._counts[key]

    async def _save(self):
        entries = [
            {
                "anchor": list(anchor) if anchor is not None else None,
                "option": list(identity),
                "count": count,
            }
            for (anchor, identity), count in self._counts.items()
        ]
        try:
            await self.storage.set_item(self.STORAGE_KEY, entries)
        except Exception as e:
            logger.warning(f"Failed to persist history: {e}")
