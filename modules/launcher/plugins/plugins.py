from typing import List

from modules.launcher.option import InternalOption
from modules.launcher.plugin_base import PluginBase
from modules.launcher.protocol import OnInit, OnQuery, OutputCommand

QUERY_ACTION = "plugins"


class PluginsPlugin(PluginBase):
    """
    Install and remove external plugins from inside the launcher.

    Registers a single "Plugins" drill-down option. Inside it the query is
    matched against installed plugins, submitting one removes it, and
    "Install <query>" installs the typed package or path.
    """

    def __init__(self, launcher):
        super().__init__()
        self.name = "spotter-plugins"
        self.launcher = launcher

    async def on_init(self, command: OnInit) -> List[OutputCommand]:
        return [
            self.register_options(
                [
                    InternalOption(
                        title="Plugins",
                        subtitle="Install and remove plugins",
                        query_action=QUERY_ACTION,
                    )
                ]
            )
        ]

    async def on_query(self, command: OnQuery) -> List[OutputCommand]:
        if command.action != QUERY_ACTION:
            return []

        query = command.query.strip()
        options = [
            InternalOption(
                title=plugin,
                subtitle="Remove plugin",
                callback=lambda p=plugin: self.launcher.unregister_plugin(p),
            )
            for plugin in self.launcher.settings.plugins
            if query.lower() in plugin.lower()
        ]

        if query and query not in self.launcher.settings.plugins:
            options.append(
                InternalOption(
                    title=f"Install {query}",
                    subtitle="Install plugin",
                    callback=lambda: self.launcher.register_plugin(query),
                )
            )

        return [self.set_options(options)]
