import shlex

from loguru import logger

from services.shell import ProcessExecutionError, Shell


class InstallationError(Exception):
    """Installing or removing a plugin package failed."""

    def __init__(self, package: str, message: str):
        super().__init__(f"{package}: {message}")
        self.package = package
        self.message = message


class PackageInstaller:
    """
    Installs plugin packages globally through the shell.
    """

    def __init__(
        self,
        shell: Shell,
        install_command: str,
        uninstall_command: str,
        runtime_probe: str = "",
        runtime_install: str = "",
        path_prefix: str = "",
    ):
        self.shell = shell
        self.install_command = install_command
        self.uninstall_command = uninstall_command
        self.runtime_probe = runtime_probe
        self.runtime_install = runtime_install
        self.path_prefix = path_prefix

    @classmethod
    def from_config(cls, shell: Shell, config: dict) -> "PackageInstaller":
        installer = config["installer"]
        return cls(
            shell,
            install_command=installer["install_command"],
            uninstall_command=installer["uninstall_command"],
            runtime_probe=installer.get("runtime_probe", ""),
            runtime_install=installer.get("runtime_install", ""),
            path_prefix=config["shell"].get("path_prefix", ""),
        )

    def _with_path(self, command_line: str) -> str:
        if self.path_prefix:
            return f"{self.path_prefix} && {command_line}"
        return command_line

    async def _run(self, template: str, package: str) -> str:
        command_line = self._with_path(template.format(package=shlex.quote(package)))
        try:
            return await self.shell.execute(command_line)
        except ProcessExecutionError as e:
            raise InstallationError(package, e.message) from e

    async def install(self, package: str):
        logger.info(f"Installing plugin package {package}")
        await self._run(self.install_command, package)

    async def uninstall(self, package: str):
        logger.info(f"Uninstalling plugin package {package}")
        await self._run(self.uninstall_command, package)

    async def ensure_runtime(self) -> bool:
        """
        Probe the plugin runtime and install it when the probe fails.

        Returns:
            True if the runtime had to be installed
        """
        if not self.runtime_probe:
            return False

        try:
            await self.shell.execute(self._with_path(self.runtime_probe))
            return False
        except ProcessExecutionError as e:
            logger.info(f"Plugin runtime missing ({e.message}), installing")

        if not self.runtime_install:
            raise InstallationError("runtime", "probe failed and no install command is set")

        try:
            await self.shell.execute(self._with_path(self.runtime_install))
        except ProcessExecutionError as e:
            raise InstallationError("runtime", e.message) from e
        return True
