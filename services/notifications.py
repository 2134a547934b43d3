import shlex

from loguru import logger

from config.data import APP_NAME_CAP
from services.shell import ProcessExecutionError, Shell


class Notifications:
    """Desktop alerts through notify-send."""

    def __init__(self, shell: Shell):
        self.shell = shell

    async def show(self, title: str, subtitle: str = ""):
        command = f"notify-send -a {shlex.quote(APP_NAME_CAP)} {shlex.quote(title)}"
        if subtitle:
            command += f" {shlex.quote(subtitle)}"

        try:
            await self.shell.execute(command)
        except ProcessExecutionError as e:
            logger.warning(f"Failed to show notification '{title}': {e}")
