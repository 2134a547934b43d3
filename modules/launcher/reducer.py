from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from modules.launcher.option import Option
from modules.launcher.protocol import (
    Error,
    Log,
    OutputCommand,
    RegisterOptions,
    RegisterPrefixes,
    SetHint,
    SetOptions,
    SetQuery,
    SetStorage,
)


@dataclass
class CommandDelta:
    """Everything one batch of output commands asks the launcher to change."""

    register_options: Dict[str, List[Option]] = field(default_factory=dict)
    register_prefixes: Dict[str, List[str]] = field(default_factory=dict)
    set_options: List[Option] = field(default_factory=list)
    storage: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    query: Optional[str] = None
    hint: Optional[str] = None
    logs: List[Tuple[str, str]] = field(default_factory=list)
    errors: List[Tuple[str, str]] = field(default_factory=list)


def reduce_commands(commands: Iterable[OutputCommand]) -> CommandDelta:
    """
    Fold output commands, in emission order, into one delta.

    setQuery and setHint keep the last value, setStorage is shallow merged
    per plugin, everything else accumulates.
    """
    delta = CommandDelta()

    for command in commands:
        if isinstance(command, RegisterOptions):
            delta.register_options.setdefault(command.plugin, []).extend(command.value)
        elif isinstance(command, RegisterPrefixes):
            prefixes = delta.register_prefixes.setdefault(command.plugin, [])
            for prefix in command.value:
                if prefix not in prefixes:
                    prefixes.append(prefix)
        elif isinstance(command, SetOptions):
            delta.set_options.extend(command.value)
        elif isinstance(command, SetStorage):
            delta.storage.setdefault(command.plugin, {}).update(command.value)
        elif isinstance(command, SetQuery):
            delta.query = command.value
        elif isinstance(command, SetHint):
            delta.hint = command.value
        elif isinstance(command, Log):
            delta.logs.append((command.plugin, command.value))
        elif isinstance(command, Error):
            delta.errors.append((command.plugin, command.value))
        else:
            raise TypeError(f"Unknown output command {command!r}")

    return delta
