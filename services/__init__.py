"""
Spotter services package.
Capabilities the launcher engine consumes: shell, installer, storage, panel, hotkeys, notifications.
"""

from .hotkeys import GlobalHotkeys
from .installer import InstallationError, PackageInstaller
from .notifications import Notifications
from .panel import Panel
from .shell import ProcessExecutionError, Shell
from .storage import JsonStorage, MemoryStorage
