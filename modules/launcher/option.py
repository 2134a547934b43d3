"""
Option classes representing selectable entries produced by plugins.
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, List, Optional, Tuple

Identity = Tuple[str, str, Optional[str]]


@dataclass
class Option:
    """
    An entry that can be displayed and submitted.
    Submitting an external option sends `onAction` with `action` to its plugin.
    """

    title: str
    plugin: str = ""
    subtitle: str = ""
    action: Optional[str] = None
    # Marks the option as a drill-down trigger
    query_action: Optional[str] = None
    arguments: List[str] = field(default_factory=list)
    icon: Optional[str] = None

    internal: ClassVar[bool] = False

    @property
    def identity(self) -> Identity:
        return (self.plugin, self.title, self.action)

    @property
    def is_drill_down(self) -> bool:
        return not self.action and bool(self.query_action)

    @classmethod
    def from_payload(cls, plugin: str, payload: dict) -> "Option":
        """Build an option from a decoded plugin payload."""
        arguments = payload.get("arguments") or []
        return cls(
            title=payload["title"],
            plugin=plugin,
            subtitle=payload.get("subtitle") or "",
            action=payload.get("action") or None,
            query_action=payload.get("queryAction") or None,
            arguments=[str(argument) for argument in arguments],
            icon=payload.get("icon"),
        )

    def __str__(self):
        return f"Option(title='{self.title}', plugin='{self.plugin}')"


@dataclass
class InternalOption(Option):
    """
    An option whose submit runs an in-process callback.
    """

    callback: Optional[Callable[[], Any]] = None

    internal: ClassVar[bool] = True

    async def activate(self):
        """Activate this option (execute its callback)."""
        if self.callback is None:
            raise NotImplementedError("No callback defined for this option")

        result = self.callback()
        if inspect.isawaitable(result):
            result = await result
        return result


def error_option(plugin: str, message: str) -> Option:
    return Option(title=f"Error in {plugin}: {message}", plugin=plugin)
