"""
Launcher session: the query, the options on screen and the drill-down state.
"""

import asyncio
import copy
from enum import Enum
from typing import List, Optional

from loguru import logger

from config.data import DEFAULT_CONFIG, HOTKEY_IDENTIFIER, parse_timeout_string
from modules.launcher.dispatcher import PrefixDispatcher
from modules.launcher.history import History
from modules.launcher.invoker import PluginInvoker
from modules.launcher.option import Option, error_option
from modules.launcher.plugin_manager import PluginManager
from modules.launcher.plugins import default_plugins
from modules.launcher.protocol import OnAction, OnQuery, OutputCommand
from modules.launcher.ranking import filter_registered, force_replace, rank
from modules.launcher.reducer import CommandDelta, reduce_commands
from modules.launcher.settings import Settings
from services.installer import InstallationError, PackageInstaller


class LauncherState(str, Enum):
    IDLE = "idle"
    QUERYING = "querying"
    DRILL_DOWN = "drill_down"


class Launcher:
    """
    Turns queries and key events into the list of options to display.

    Root queries are matched against registered options right away and sent
    to prefix plugins once the query settles. In drill-down every query goes
    to the plugin of the selected option only.
    """

    def __init__(
        self,
        shell,
        storage,
        panel,
        hotkeys,
        notifications=None,
        config: Optional[dict] = None,
        internal_plugins=None,
    ):
        self.config = config if config is not None else copy.deepcopy(DEFAULT_CONFIG)
        launcher_config = self.config["launcher"]
        shell_config = self.config["shell"]

        self.shell = shell
        self.panel = panel
        self.hotkeys = hotkeys
        self.reveal_delay = parse_timeout_string(launcher_config["reveal_delay"]) / 1000

        self.settings = Settings(storage, self.config)
        self.history = History(storage)

        if internal_plugins is None:
            internal_plugins = default_plugins(self)

        self.invoker = PluginInvoker(
            shell,
            internal_plugins,
            local_runtime=shell_config.get("local_runtime", ""),
            path_prefix=shell_config.get("path_prefix", ""),
            timeout=parse_timeout_string(launcher_config["plugin_timeout"]) / 1000 or None,
        )
        self.plugin_manager = PluginManager(
            self.invoker,
            storage,
            PackageInstaller.from_config(shell, self.config),
            self.settings,
            notifications,
        )
        self.dispatcher = PrefixDispatcher(
            self.plugin_manager,
            debounce=parse_timeout_string(launcher_config["debounce"]) / 1000,
        )

        # Session state
        self.query = ""
        self.options: List[Option] = []
        self.hovered_index = 0
        self.selected_option: Optional[Option] = None
        self.loading = False
        self.should_show_options = False
        self.waiting_for: Optional[str] = None
        self.hint: Optional[str] = None

        # Bumped on every query and reset, results of older batches are dropped
        self._sequence = 0
        self._reveal_handle: Optional[asyncio.TimerHandle] = None
        self._callbacks = []

    @property
    def state(self) -> LauncherState:
        if self.selected_option is not None:
            return LauncherState.DRILL_DOWN
        if self.query:
            return LauncherState.QUERYING
        return LauncherState.IDLE

    @property
    def hovered_option(self) -> Optional[Option]:
        if 0 <= self.hovered_index < len(self.options):
            return self.options[self.hovered_index]
        return None

    # Change notification

    def add_callback(self, callback):
        """Add a callback function to be notified of session changes"""
        self._callbacks.append(callback)

    def remove_callback(self, callback):
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self):
        for callback in self._callbacks:
            try:
                callback(self)
            except Exception as e:
                logger.warning(f"Error in launcher callback: {e}")

    # Startup

    async def start(self):
        """Load settings, install what is missing and initialize every plugin."""
        self._set_waiting_for("Loading settings")
        await self.settings.load()
        first_run = self.settings.first_run

        self._set_waiting_for("Checking plugin runtime")
        try:
            await self.plugin_manager.installer.ensure_runtime()
        except InstallationError as e:
            await self.plugin_manager.alert("Failed to install plugin runtime", e.message)

        self._register_hotkeys()

        if first_run:
            self._set_waiting_for("Installing plugins")
            await self.plugin_manager.preinstall(self.config.get("bootstrap_plugins", []))
            await self.settings.save()

        self._set_waiting_for("Initializing plugins")
        await self.plugin_manager.init_all()
        await self.history.load()

        self._set_waiting_for(None)

    def _set_waiting_for(self, message: Optional[str]):
        self.waiting_for = message
        if message:
            logger.info(f"{message}...")
        self._notify_callbacks()

    def _register_hotkeys(self):
        self.hotkeys.register(self.settings.hotkey, HOTKEY_IDENTIFIER)

        for plugin, options in self.settings.plugin_hotkeys.items():
            for title, binding in options.items():
                self.hotkeys.register(binding, f"{plugin}#{title}")

        self.hotkeys.on_press(self.on_hotkey)

    async def on_hotkey(self, identifier: str):
        if identifier == HOTKEY_IDENTIFIER:
            self.panel.open()
            return

        plugin, _, title = identifier.partition("#")
        option = self.plugin_manager.find_option(plugin, title)
        if option is None:
            logger.warning(f"No registered option for hotkey {identifier}")
            return

        if option.is_drill_down:
            self.reset()
            self.panel.open()
            await self._enter_drill_down(option)
            return

        await self._activate(option)

    # Query

    async def on_query(self, query: str):
        self.query = query
        self.hovered_index = 0
        self._sequence += 1
        sequence = self._sequence

        if self.selected_option is not None:
            await self._query_drill_down(query, sequence)
            return

        if query == "":
            self.reset()
            return

        self._set_options(filter_registered(query, self.plugin_manager.registered_options()))

        async def on_batch(settled_query: str, commands: List[OutputCommand]):
            await self._on_prefix_batch(sequence, settled_query, commands)

        self.loading = self.dispatcher.schedule(query, on_batch)
        self._notify_callbacks()

    async def _on_prefix_batch(self, sequence: int, query: str, commands: List[OutputCommand]):
        delta = reduce_commands(commands)
        # Registrations are kept even when the displayed results are stale
        self.plugin_manager.apply(delta)

        if sequence != self._sequence:
            logger.debug(f"Dropping stale results for '{query}'")
            return

        base = filter_registered(query, self.plugin_manager.registered_options())
        self._apply_delta(delta, base)
        self.loading = False
        self._notify_callbacks()

    async def _query_drill_down(self, query: str, sequence: int):
        anchor = self.selected_option
        self.loading = True
        self._notify_callbacks()

        commands = await self.plugin_manager.run(
            anchor.plugin,
            lambda storage: OnQuery(query=query, action=anchor.query_action, storage=storage),
        )

        if sequence != self._sequence or self.selected_option is not anchor:
            logger.debug(f"Dropping stale drill-down results for '{query}'")
            return

        delta = reduce_commands(commands)
        # Registrations only change through root queries and lifecycle
        self.plugin_manager.log(delta)
        self._apply_delta(delta, [])
        self.loading = False
        self._notify_callbacks()

    def _apply_delta(self, delta: CommandDelta, base: List[Option]):
        fresh = delta.set_options + [error_option(p, m) for p, m in delta.errors]
        self._set_options(force_replace(base, fresh))

        if delta.query is not None:
            self.query = delta.query
        if delta.hint is not None:
            self.hint = delta.hint

    def _set_options(self, options: List[Option]):
        self.options = rank(options, self.history, self.selected_option)
        if self.hovered_index >= len(self.options):
            self.hovered_index = 0

        if self.options and not self.should_show_options and self._reveal_handle is None:
            loop = asyncio.get_running_loop()
            self._reveal_handle = loop.call_later(self.reveal_delay, self._reveal)

    def _reveal(self):
        self._reveal_handle = None
        self.should_show_options = True
        self._notify_callbacks()

    # Navigation

    def on_arrow_up(self):
        if not self.options:
            return
        self.hovered_index = (self.hovered_index - 1) % len(self.options)
        self._notify_callbacks()

    def on_arrow_down(self):
        if not self.options:
            return
        self.hovered_index = (self.hovered_index + 1) % len(self.options)
        self._notify_callbacks()

    async def on_tab(self):
        option = self.hovered_option
        if option is None or not option.is_drill_down:
            return
        await self._enter_drill_down(option)

    async def _enter_drill_down(self, option: Option):
        self.dispatcher.cancel()
        await self.history.increment(option, self.selected_option)

        self.selected_option = option
        self.options = []
        await self.on_query("")

    # Submit

    async def on_submit(self, index: Optional[int] = None):
        if index is not None:
            if not 0 <= index < len(self.options):
                return
            self.hovered_index = index

        option = self.hovered_option
        if option is None:
            return

        if option.is_drill_down:
            await self._enter_drill_down(option)
            return

        await self._activate(option)

    async def _activate(self, option: Option):
        await self.history.increment(option, self.selected_option)

        if option.internal:
            try:
                await option.activate()
            except Exception as e:
                logger.error(f"Activating '{option.title}' failed: {e}")
            self._close()
            return

        self.loading = True
        self._notify_callbacks()

        query = self.query
        commands = await self.plugin_manager.run(
            option.plugin,
            lambda storage: OnAction(
                action=option.action or "",
                query=query,
                arguments=list(option.arguments),
                storage=storage,
            ),
        )
        delta = reduce_commands(commands)
        self.plugin_manager.apply(delta)

        if delta.set_options or delta.errors:
            # The action answered with new options, keep the panel open
            self._sequence += 1
            self.dispatcher.cancel()
            self.hovered_index = 0
            self._apply_delta(delta, [])
            self.loading = False
            self._notify_callbacks()
            return

        self._close()

    # Exit

    def on_escape(self):
        self._close()

    def on_backspace(self) -> bool:
        """
        Leave drill-down when backspace is pressed on an empty query.

        Returns:
            True if the key was handled
        """
        if self.selected_option is not None and self.query == "":
            self.reset()
            return True
        return False

    def _close(self):
        self.reset()
        self.panel.close()

    def reset(self):
        self.dispatcher.cancel()
        if self._reveal_handle is not None:
            self._reveal_handle.cancel()
            self._reveal_handle = None
        self._sequence += 1

        self.query = ""
        self.options = []
        self.hovered_index = 0
        self.selected_option = None
        self.loading = False
        self.should_show_options = False
        self.hint = None
        self._notify_callbacks()

    # Lifecycle

    async def register_plugin(self, plugin: str) -> bool:
        delta = await self.plugin_manager.register(plugin)
        return delta is not None

    async def unregister_plugin(self, plugin: str) -> bool:
        removed = await self.plugin_manager.unregister(plugin)
        if removed:
            for identifier in list(self.hotkeys.bindings):
                if identifier.startswith(f"{plugin}#"):
                    self.hotkeys.unregister(identifier)
            self.reset()
        return removed
