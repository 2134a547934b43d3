"""
Wire protocol between the launcher and its plugins.

A plugin receives one JSON encoded input command as its only argument and
answers with zero or more JSON encoded output commands, one per stdout line.
"""

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Union

from modules.launcher.option import Option


class ProtocolDecodeError(Exception):
    """A plugin wrote a line that is not a recognized output command."""


# Input commands


@dataclass(frozen=True)
class OnInit:
    storage: Dict[str, Any] = field(default_factory=dict)

    type: ClassVar[str] = "onInit"


@dataclass(frozen=True)
class OnQuery:
    query: str
    storage: Dict[str, Any] = field(default_factory=dict)
    # The anchor's queryAction while in drill-down
    action: Optional[str] = None

    type: ClassVar[str] = "onQuery"


@dataclass(frozen=True)
class OnAction:
    action: str
    query: str = ""
    arguments: List[str] = field(default_factory=list)
    storage: Dict[str, Any] = field(default_factory=dict)

    type: ClassVar[str] = "onAction"


InputCommand = Union[OnInit, OnQuery, OnAction]


def encode_command(command: InputCommand) -> str:
    """Serialize an input command to a single line of JSON."""
    payload: Dict[str, Any] = {"type": command.type}

    if isinstance(command, OnQuery):
        payload["query"] = command.query
        if command.action is not None:
            payload["action"] = command.action
    elif isinstance(command, OnAction):
        payload["action"] = command.action
        payload["query"] = command.query
        payload["arguments"] = list(command.arguments)

    payload["storage"] = command.storage
    return json.dumps(payload, separators=(",", ":"))


# Output commands


@dataclass(frozen=True)
class RegisterOptions:
    plugin: str
    value: List[Option]

    type: ClassVar[str] = "registerOptions"


@dataclass(frozen=True)
class SetOptions:
    plugin: str
    value: List[Option]

    type: ClassVar[str] = "setOptions"


@dataclass(frozen=True)
class SetQuery:
    plugin: str
    value: str

    type: ClassVar[str] = "setQuery"


@dataclass(frozen=True)
class SetStorage:
    plugin: str
    value: Dict[str, Any]

    type: ClassVar[str] = "setStorage"


@dataclass(frozen=True)
class SetHint:
    plugin: str
    value: str

    type: ClassVar[str] = "setHint"


@dataclass(frozen=True)
class Log:
    plugin: str
    value: str

    type: ClassVar[str] = "log"


@dataclass(frozen=True)
class RegisterPrefixes:
    plugin: str
    value: List[str]

    type: ClassVar[str] = "registerPrefixes"


@dataclass(frozen=True)
class Error:
    plugin: str
    value: str

    type: ClassVar[str] = "error"


OutputCommand = Union[
    RegisterOptions, SetOptions, SetQuery, SetStorage, SetHint, Log, RegisterPrefixes, Error
]

OUTPUT_COMMANDS = {
    command.type: command
    for command in (
        RegisterOptions,
        SetOptions,
        SetQuery,
        SetStorage,
        SetHint,
        Log,
        RegisterPrefixes,
        Error,
    )
}

_TEXT_COMMANDS = (SetQuery, SetHint, Log, Error)

# Optional option fields, null or a string when present
_OPTION_TEXT_FIELDS = ("subtitle", "action", "queryAction", "icon")


def _parse_options(plugin: str, value: Any) -> List[Option]:
    if not isinstance(value, list):
        raise ProtocolDecodeError(f"expected a list of options, got {type(value).__name__}")

    options = []
    for item in value:
        if not isinstance(item, dict) or not isinstance(item.get("title"), str):
            raise ProtocolDecodeError(f"option without a string title: {item!r}")
        arguments = item.get("arguments")
        if arguments is not None and not isinstance(arguments, list):
            raise ProtocolDecodeError(f"option arguments must be a list: {item!r}")
        for key in _OPTION_TEXT_FIELDS:
            if item.get(key) is not None and not isinstance(item[key], str):
                raise ProtocolDecodeError(f"option {key} must be a string: {item!r}")
        options.append(Option.from_payload(plugin, item))
    return options


def parse_output_command(plugin: str, raw: Any) -> OutputCommand:
    """
    Validate one decoded JSON object and build the matching output command.

    Raises:
        ProtocolDecodeError: if the object is not a recognized command shape
    """
    if not isinstance(raw, dict):
        raise ProtocolDecodeError(f"expected an object, got {type(raw).__name__}")

    command_class = OUTPUT_COMMANDS.get(raw.get("type"))
    if command_class is None:
        raise ProtocolDecodeError(f"unknown command type {raw.get('type')!r}")

    value = raw.get("value")

    if command_class in (RegisterOptions, SetOptions):
        return command_class(plugin, _parse_options(plugin, value))

    if command_class in _TEXT_COMMANDS:
        if not isinstance(value, str):
            raise ProtocolDecodeError(f"{command_class.type} expects a string value")
        return command_class(plugin, value)

    if command_class is SetStorage:
        if not isinstance(value, dict):
            raise ProtocolDecodeError("setStorage expects an object value")
        return SetStorage(plugin, value)

    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
        raise ProtocolDecodeError("registerPrefixes expects a list of strings")
    return RegisterPrefixes(plugin, value)


def decode_output(plugin: str, text: str) -> List[OutputCommand]:
    """
    Decode the captured output of one plugin invocation.

    Args:
        plugin: Identity of the invoked plugin, attached to every command
        text: Captured stdout

    Returns:
        Commands in emission order, empty for empty output
    """
    commands = []
    for line in (text or "").split("\n"):
        line = line.strip()
        if not line:
            continue

        try:
            raw = json.loads(line)
        except json.JSONDecodeError as e:
            raise ProtocolDecodeError(f"invalid JSON line {line!r}: {e}") from e

        commands.append(parse_output_command(plugin, raw))
    return commands
