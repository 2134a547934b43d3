"""
Base class for in-process launcher plugins.
"""

from abc import ABC, abstractmethod
from typing import List

from modules.launcher.option import Option
from modules.launcher.protocol import (
    OnAction,
    OnInit,
    OnQuery,
    OutputCommand,
    RegisterOptions,
    RegisterPrefixes,
    SetOptions,
)


class PluginBase(ABC):
    """
    Abstract base class for internal plugins.

    Internal plugins answer the same three commands as external plugin
    executables and return the same output commands, so the launcher
    treats both kinds alike.
    """

    def __init__(self):
        self.name = self.__class__.__name__.lower()
        self._prefixes: List[str] = []

    @abstractmethod
    async def on_init(self, command: OnInit) -> List[OutputCommand]:
        """
        Initialize the plugin.
        Called once at startup with the persisted storage.
        """

    async def on_query(self, command: OnQuery) -> List[OutputCommand]:
        """
        Process a query.

        Args:
            command: The query command, `command.action` is set in drill-down

        Returns:
            List of output commands
        """
        return []

    async def on_action(self, command: OnAction) -> List[OutputCommand]:
        """Handle the submit of one of this plugin's options."""
        return []

    def set_prefixes(self, prefixes: List[str]):
        """
        Set the prefix strings for this plugin.
        If the query starts with any of these, this plugin is queried.
        """
        self._prefixes = prefixes

    def register_options(self, options: List[Option]) -> RegisterOptions:
        for option in options:
            option.plugin = self.name
        return RegisterOptions(self.name, options)

    def set_options(self, options: List[Option]) -> SetOptions:
        for option in options:
            option.plugin = self.name
        return SetOptions(self.name, options)

    def register_prefixes(self) -> RegisterPrefixes:
        return RegisterPrefixes(self.name, list(self._prefixes))

    def __str__(self):
        return f"Plugin({self.name})"

    def __repr__(self):
        return self.__str__()
