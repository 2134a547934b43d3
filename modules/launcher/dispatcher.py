import asyncio
from typing import Awaitable, Callable, List, Optional

from loguru import logger

from modules.launcher.protocol import OnQuery, OutputCommand

BatchCallback = Callable[[str, List[OutputCommand]], Awaitable[None]]


class Debouncer:
    """
    Single-slot cancellable timer. Arming again cancels the pending call.
    """

    def __init__(self, delay: float):
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def arm(self, callback: Callable[[], Awaitable[None]]):
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, callback)

    def cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, callback):
        self._handle = None
        self._task = asyncio.ensure_future(callback())

    async def wait(self):
        """Wait for the call that fired last, if it is still running."""
        if self._task is not None and not self._task.done():
            await self._task

    async def settle(self):
        """Wait until no call is pending or running."""
        while self._handle is not None:
            await asyncio.sleep(self.delay)
        await self.wait()


def matches_prefix(query: str, prefix: str) -> bool:
    return bool(prefix) and query.lower().startswith(prefix.lower())


class PrefixDispatcher:
    """
    Queries the plugins whose registered prefix starts the current query,
    once the query has settled.
    """

    def __init__(self, manager, debounce: float = 0.2):
        self.manager = manager
        self.debouncer = Debouncer(debounce)

    def match(self, query: str) -> List[str]:
        """Plugins with at least one prefix that is a leading substring of the query."""
        if not query:
            return []

        return [
            plugin
            for plugin, prefixes in self.manager.registered_prefixes().items()
            if any(matches_prefix(query, prefix) for prefix in prefixes)
        ]

    def schedule(self, query: str, callback: BatchCallback) -> bool:
        """
        Arm the debounce timer for this query.

        Returns:
            True if any plugin matched and a dispatch is pending
        """
        plugins = self.match(query)
        if not plugins:
            self.cancel()
            return False

        async def fire():
            try:
                commands = await self.dispatch(query, plugins)
                await callback(query, commands)
            except Exception:
                logger.exception(f"Prefix dispatch for '{query}' failed")

        self.debouncer.arm(fire)
        return True

    def cancel(self):
        self.debouncer.cancel()

    async def dispatch(self, query: str, plugins: List[str]) -> List[OutputCommand]:
        """Query every plugin concurrently, results flattened in plugin order."""
        logger.debug(f"Dispatching '{query}' to {', '.join(plugins)}")
        batches = await asyncio.gather(
            *(
                self.manager.run(plugin, lambda storage: OnQuery(query=query, storage=storage))
                for plugin in plugins
            )
        )
        return [command for batch in batches for command in batch]
