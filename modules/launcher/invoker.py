import dataclasses
import shlex
from typing import Dict, Iterable, List, Optional

from loguru import logger

from modules.launcher.option import error_option
from modules.launcher.plugin_base import PluginBase
from modules.launcher.protocol import (
    InputCommand,
    OnAction,
    OnInit,
    OnQuery,
    OutputCommand,
    ProtocolDecodeError,
    SetOptions,
    decode_output,
    encode_command,
)
from services.shell import ProcessExecutionError, Shell
from utils.functions import is_local_path


class PluginInvoker:
    """
    Runs one plugin with one input command.

    Internal plugins are awaited in-process, external plugins are spawned
    through the shell. Failures of either kind come back as a single error
    option instead of an exception.
    """

    def __init__(
        self,
        shell: Shell,
        internal_plugins: Iterable[PluginBase] = (),
        local_runtime: str = "python3",
        path_prefix: str = "",
        timeout: Optional[float] = None,
    ):
        self.shell = shell
        self.internal_plugins: Dict[str, PluginBase] = {p.name: p for p in internal_plugins}
        self.local_runtime = local_runtime
        self.path_prefix = path_prefix
        self.timeout = timeout

    def is_internal(self, plugin: str) -> bool:
        return plugin in self.internal_plugins

    def build_command_line(self, plugin: str, command: InputCommand) -> str:
        target = plugin
        if is_local_path(plugin) and self.local_runtime:
            target = f"{self.local_runtime} {shlex.quote(plugin)}"

        command_line = f"{target} {shlex.quote(encode_command(command))}"
        if self.path_prefix:
            command_line = f"{self.path_prefix} && {command_line}"
        return command_line

    async def invoke(self, plugin: str, command: InputCommand) -> List[OutputCommand]:
        internal = self.internal_plugins.get(plugin)

        try:
            if internal is not None:
                return await self._invoke_internal(internal, command)

            output = await self.shell.execute(
                self.build_command_line(plugin, command), timeout=self.timeout
            )
            return decode_output(plugin, output)

        except ProcessExecutionError as e:
            logger.warning(f"Plugin {plugin} failed on {command.type}: {e.message}")
            return [self._error(plugin, e.message)]
        except ProtocolDecodeError as e:
            logger.warning(f"Plugin {plugin} answered {command.type} with bad output: {e}")
            return [self._error(plugin, str(e))]
        except Exception as e:
            logger.exception(f"Internal plugin {plugin} raised on {command.type}")
            return [self._error(plugin, str(e))]

    async def _invoke_internal(self, plugin: PluginBase, command: InputCommand) -> List[OutputCommand]:
        if isinstance(command, OnInit):
            commands = await plugin.on_init(command)
        elif isinstance(command, OnQuery):
            commands = await plugin.on_query(command)
        elif isinstance(command, OnAction):
            commands = await plugin.on_action(command)
        else:
            raise TypeError(f"Unknown input command {command!r}")

        return [
            c if c.plugin == plugin.name else dataclasses.replace(c, plugin=plugin.name)
            for c in commands or []
        ]

    @staticmethod
    def _error(plugin: str, message: str) -> SetOptions:
        return SetOptions(plugin, [error_option(plugin, message)])
