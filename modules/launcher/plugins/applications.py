import re
import shlex
from typing import List

from fabric.utils import DesktopApp
from fabric.utils.helpers import get_desktop_applications
from loguru import logger

from modules.launcher.option import InternalOption
from modules.launcher.plugin_base import PluginBase
from modules.launcher.protocol import OnInit, OutputCommand
from services.shell import ProcessExecutionError


class ApplicationsPlugin(PluginBase):
    """
    Registers every desktop application as an option that launches it.
    """

    def __init__(self, shell):
        super().__init__()
        self.name = "spotter-applications"
        self.shell = shell

    async def on_init(self, command: OnInit) -> List[OutputCommand]:
        try:
            applications = get_desktop_applications(include_hidden=False)
        except Exception as e:
            logger.warning(f"Failed to load applications: {e}")
            applications = []
        logger.debug(f"Found {len(applications)} desktop applications")

        options = []
        for app in applications:
            # Truncate description
            description = app.description or app.generic_name or ""
            if len(description) > 80:
                description = description[:70] + "..."

            options.append(
                InternalOption(
                    title=app.display_name or app.name,
                    subtitle=description,
                    icon=app.icon_name,
                    callback=lambda a=app: self._launch_application(a),
                )
            )

        return [self.register_options(options)]

    async def _launch_application(self, app: DesktopApp):
        # Remove ALL % codes (e.g., %u, %U, %f, %F, %i, %c, etc.)
        cleaned_command = re.sub(r"%\w+", "", app.command_line or "").strip()
        if not cleaned_command:
            logger.warning(f"{app.name} has no command line to launch")
            return

        try:
            await self.shell.execute(
                f"nohup sh -c {shlex.quote(cleaned_command)} >/dev/null 2>&1 &"
            )
        except ProcessExecutionError as e:
            logger.warning(f"Failed to launch {app.name}: {e.message}")
