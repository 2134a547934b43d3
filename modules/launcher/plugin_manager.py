import asyncio
from typing import Callable, Dict, List, Optional

from loguru import logger

from modules.launcher.invoker import PluginInvoker
from modules.launcher.option import Option
from modules.launcher.protocol import InputCommand, OnInit, OnQuery, OutputCommand
from modules.launcher.reducer import CommandDelta, reduce_commands
from modules.launcher.settings import Settings
from services.installer import InstallationError, PackageInstaller
from utils.functions import is_local_path

CommandBuilder = Callable[[dict], InputCommand]


class PluginManager:
    """
    Owns the installed plugins, their registered options and prefixes and
    their persisted storage.
    """

    STORAGE_PREFIX = "storage:"

    def __init__(
        self,
        invoker: PluginInvoker,
        storage,
        installer: PackageInstaller,
        settings: Settings,
        notifications=None,
    ):
        self.invoker = invoker
        self.storage = storage
        self.installer = installer
        self.settings = settings
        self.notifications = notifications

        self._registered_options: Dict[str, List[Option]] = {}
        self._registered_prefixes: Dict[str, List[str]] = {}
        # One in-flight request per plugin
        self._locks: Dict[str, asyncio.Lock] = {}

    def get_plugin_names(self) -> List[str]:
        """Internal plugins first, then installed external plugins."""
        return list(self.invoker.internal_plugins) + [
            p for p in self.settings.plugins if not self.invoker.is_internal(p)
        ]

    def is_registered(self, plugin: str) -> bool:
        return self.invoker.is_internal(plugin) or plugin in self.settings.plugins

    def registered_options(self) -> Dict[str, List[Option]]:
        return {plugin: list(options) for plugin, options in self._registered_options.items()}

    def registered_prefixes(self) -> Dict[str, List[str]]:
        return {plugin: list(prefixes) for plugin, prefixes in self._registered_prefixes.items()}

    def find_option(self, plugin: str, title: str) -> Optional[Option]:
        for option in self._registered_options.get(plugin, []):
            if option.title == title:
                return option
        return None

    # Storage

    def _storage_key(self, plugin: str) -> str:
        return f"{self.STORAGE_PREFIX}{plugin}"

    async def read_storage(self, plugin: str) -> dict:
        try:
            value = await self.storage.get_item(self._storage_key(plugin))
        except Exception as e:
            logger.warning(f"Failed to read storage of {plugin}: {e}")
            return {}
        return value if isinstance(value, dict) else {}

    async def write_storage(self, plugin: str, value: dict):
        try:
            await self.storage.set_item(self._storage_key(plugin), value)
        except Exception as e:
            logger.warning(f"Failed to write storage of {plugin}: {e}")

    # Invocation

    async def run(self, plugin: str, build: CommandBuilder) -> List[OutputCommand]:
        """
        Invoke a plugin with its current storage and persist its storage patch.

        Args:
            plugin: Plugin identity
            build: Builds the input command from the storage snapshot

        Returns:
            The plugin's output commands
        """
        lock = self._locks.setdefault(plugin, asyncio.Lock())
        async with lock:
            storage = await self.read_storage(plugin)
            commands = await self.invoker.invoke(plugin, build(storage))

            patch = reduce_commands(commands).storage.get(plugin)
            if patch:
                await self.write_storage(plugin, {**storage, **patch})

        return commands

    def apply(self, delta: CommandDelta):
        """Merge registrations from a reduced batch and emit its log lines."""
        for plugin, options in delta.register_options.items():
            self._registered_options[plugin] = list(options)
        for plugin, prefixes in delta.register_prefixes.items():
            self._registered_prefixes[plugin] = list(prefixes)
        self.log(delta)

    def log(self, delta: CommandDelta):
        for plugin, message in delta.logs:
            logger.info(f"[{plugin}] {message}")
        for plugin, message in delta.errors:
            logger.error(f"[{plugin}] {message}")

    def clear(self, plugin: str):
        self._registered_options.pop(plugin, None)
        self._registered_prefixes.pop(plugin, None)

    # Lifecycle

    async def init_all(self) -> CommandDelta:
        """Run onInit for every plugin and fold all output in one batch."""
        plugins = self.get_plugin_names()
        batches = await asyncio.gather(
            *(self.run(plugin, lambda storage: OnInit(storage=storage)) for plugin in plugins)
        )
        delta = reduce_commands(command for batch in batches for command in batch)
        self.apply(delta)
        logger.info(f"Initialized {len(plugins)} plugins")
        return delta

    async def preinstall(self, plugins: List[str]) -> List[str]:
        """Install plugins and add them to settings without initializing them."""
        installed = []
        for plugin in plugins:
            if self.is_registered(plugin):
                continue
            try:
                if not is_local_path(plugin):
                    await self.installer.install(plugin)
            except InstallationError as e:
                await self.alert(f"Failed to install {plugin}", e.message)
                continue
            self.settings.plugins.append(plugin)
            installed.append(plugin)

        if installed:
            await self.settings.save()
        return installed

    async def register(self, plugin: str) -> Optional[CommandDelta]:
        """
        Install and initialize a plugin.

        Returns:
            The reduced onInit and prefix probe output, None if nothing was registered
        """
        if self.is_registered(plugin):
            return None

        if not is_local_path(plugin):
            try:
                await self.installer.install(plugin)
            except InstallationError as e:
                await self.alert(f"Failed to install {plugin}", e.message)
                return None

        self.settings.plugins.append(plugin)
        await self.settings.save()

        commands = await self.run(plugin, lambda storage: OnInit(storage={}))
        commands += await self.run(plugin, lambda storage: OnQuery(query="", storage=storage))
        delta = reduce_commands(commands)
        self.apply(delta)

        logger.info(f"Registered plugin {plugin}")
        return delta

    async def unregister(self, plugin: str) -> bool:
        if plugin not in self.settings.plugins:
            return False

        if not is_local_path(plugin):
            try:
                await self.installer.uninstall(plugin)
            except InstallationError as e:
                await self.alert(f"Failed to remove {plugin}", e.message)
                return False

        self.settings.plugins.remove(plugin)
        self.settings.plugin_hotkeys.pop(plugin, None)
        await self.settings.save()
        self.clear(plugin)

        logger.info(f"Unregistered plugin {plugin}")
        return True

    async def alert(self, title: str, message: str):
        logger.error(f"{title}: {message}")
        if self.notifications is not None:
            await self.notifications.show(title, message)
