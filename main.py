import argparse
import asyncio
import sys

import setproctitle
from loguru import logger

from config.data import APP_NAME, CONFIG_FILE, STORAGE_FILE, load_config
from modules.launcher.main import Launcher
from services import GlobalHotkeys, JsonStorage, Notifications, Panel, Shell

NOISY_LOGGERS = [
    "services.shell",
    "modules.launcher.dispatcher",
]

for log in NOISY_LOGGERS:
    logger.disable(log)


def print_options(launcher: Launcher):
    if launcher.selected_option is not None:
        print(f"[{launcher.selected_option.title}] {launcher.query}")
    if launcher.hint:
        print(f"  hint: {launcher.hint}")
    for index, option in enumerate(launcher.options):
        marker = ">" if index == launcher.hovered_index else " "
        subtitle = f"  ({option.subtitle})" if option.subtitle else ""
        print(f"{marker} {index}: {option.title}{subtitle}")


async def handle_line(launcher: Launcher, line: str) -> bool:
    """Feed one stdin line to the launcher. Returns False to quit."""
    if line == ":quit":
        return False
    elif line == ":up":
        launcher.on_arrow_up()
    elif line == ":down":
        launcher.on_arrow_down()
    elif line == ":tab":
        await launcher.on_tab()
    elif line.startswith(":submit"):
        _, _, index = line.partition(" ")
        await launcher.on_submit(int(index) if index.strip().isdigit() else None)
    elif line == ":esc":
        launcher.on_escape()
    elif line == ":back":
        launcher.on_backspace()
    else:
        await launcher.on_query(line)
        await launcher.dispatcher.debouncer.settle()
    return True


async def run(config: dict):
    shell = Shell()
    launcher = Launcher(
        shell,
        JsonStorage(STORAGE_FILE),
        Panel(),
        GlobalHotkeys(),
        Notifications(shell),
        config,
    )
    await launcher.start()

    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            break
        if not await handle_line(launcher, line.rstrip("\n")):
            break
        print_options(launcher)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Query-driven command launcher")
    parser.add_argument("--config", default=CONFIG_FILE, help="Path to config.toml")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    setproctitle.setproctitle(APP_NAME)

    logger.remove()
    if args.debug:
        for log in NOISY_LOGGERS:
            logger.enable(log)
        logger.add(sys.stderr, level="DEBUG")
    else:
        logger.add(sys.stderr, level="INFO")

    asyncio.run(run(load_config(args.config)))
