import asyncio
import copy
import json
import shlex

import pytest

from config.data import DEFAULT_CONFIG
from modules.launcher.main import Launcher
from services import GlobalHotkeys, MemoryStorage, Notifications, Panel
from services.shell import ProcessExecutionError


class FakeShell:
    """
    Scripted shell executor.

    Plugin invocations are recognized by their JSON argument and answered
    from `responses[plugin]`: a string, an exception or a callable taking
    the decoded input command, after an optional `delays[plugin]`. Any other
    command line succeeds with "" unless listed in `failures`.
    """

    def __init__(self):
        self.responses = {}
        self.failures = {}
        self.command_lines = []
        self.invocations = []
        self.delays = {}

    async def execute(self, command_line, timeout=None):
        self.command_lines.append(command_line)

        parts = shlex.split(command_line.split(" && ")[-1])
        if len(parts) >= 2 and parts[-1].startswith("{"):
            plugin = parts[-2]
            command = json.loads(parts[-1])
            self.invocations.append((plugin, command))
            await asyncio.sleep(self.delays.get(plugin, 0))

            response = self.responses.get(plugin, "")
            if isinstance(response, Exception):
                raise response
            if callable(response):
                response = response(command)
            return response

        for needle, message in self.failures.items():
            if needle in command_line:
                raise ProcessExecutionError(command_line, message, 1)
        return ""

    def queries_to(self, plugin):
        return [
            command["query"]
            for name, command in self.invocations
            if name == plugin and command["type"] == "onQuery"
        ]


def lines(*commands):
    return "\n".join(json.dumps(c) for c in commands) + "\n"


def make_config(**launcher):
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["launcher"].update(
        {"debounce": "50ms", "reveal_delay": "10ms", "plugin_timeout": "5s"}
    )
    config["launcher"].update(launcher)
    config["shell"]["path_prefix"] = ""
    return config


@pytest.fixture
def shell():
    return FakeShell()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def make_launcher(shell, storage):
    def factory(internal_plugins=(), config=None, **launcher_config):
        return Launcher(
            shell,
            storage,
            Panel(),
            GlobalHotkeys(),
            notifications=Notifications(shell),
            config=config or make_config(**launcher_config),
            internal_plugins=list(internal_plugins) if internal_plugins is not None else None,
        )

    return factory


@pytest.fixture
def output():
    """Build plugin stdout from output command dicts."""
    return lines


@pytest.fixture
def installed(storage):
    """Seed stored settings as if the given plugins were installed earlier."""

    def seed(*plugins, hotkeys=None):
        settings = {"hotkey": "super+space", "plugins": list(plugins), "pluginHotkeys": hotkeys or {}}
        asyncio.run(storage.set_item("settings", settings))

    return seed
