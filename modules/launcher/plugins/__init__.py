"""
Internal plugins shipped with the launcher.
They answer the same commands as external plugin executables.
"""

from typing import List

from modules.launcher.plugin_base import PluginBase

from .applications import ApplicationsPlugin
from .plugins import PluginsPlugin


def default_plugins(launcher) -> List[PluginBase]:
    return [
        ApplicationsPlugin(launcher.shell),
        PluginsPlugin(launcher),
    ]
