import asyncio
import inspect
from typing import Callable, Dict, List, Optional, Set

from loguru import logger


class GlobalHotkeys:
    """
    Registry of global key bindings.

    The OS-level backend grabs the bindings listed in `bindings` and calls
    `press(identifier)` when one fires.
    """

    def __init__(self):
        self.bindings: Dict[str, str] = {}
        self._handlers: List[Callable] = []
        # Running async handlers, referenced until done
        self._tasks: Set[asyncio.Future] = set()

    def register(self, binding: Optional[str], identifier: str):
        if not binding:
            return
        # One binding per identifier
        self.bindings[identifier] = binding
        logger.debug(f"Registered hotkey {binding} for {identifier}")

    def unregister(self, identifier: str):
        self.bindings.pop(identifier, None)

    def on_press(self, handler: Callable):
        self._handlers.append(handler)

    def press(self, identifier: str):
        for handler in self._handlers:
            try:
                result = handler(identifier)
            except Exception as e:
                logger.warning(f"Hotkey handler failed for {identifier}: {e}")
                continue

            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(lambda t, i=identifier: self._on_task_done(t, i))

    def _on_task_done(self, task: asyncio.Future, identifier: str):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Hotkey handler failed for {identifier}: {error}")

    async def wait(self):
        """Wait for every handler started by a press to finish."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
