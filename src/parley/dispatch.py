"""Tool dispatch: resolve a requested tool name to a callable and run it."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from parley.errors import ToolNotFoundError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

logger = logging.getLogger(__name__)

NOTHING_RETURNED = "Function executed successfully, nothing to return."


class ToolDispatcher:
    """Run tools from an explicit ``name -> callable`` registry."""

    def __init__(self, registry: Mapping[str, Callable[..., Any]] | None = None) -> None:
        self._registry: dict[str, Callable[..., Any]] = dict(registry or {})

    def register(self, name: str, func: Callable[..., Any]) -> None:
        self._registry[name] = func

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def execute(
        self,
        name: str,
        args_by_name: Mapping[str, Any],
        ordered_param_names: Sequence[str],
    ) -> str:
        """Call tool *name* positionally and return its result as a string.

        Arguments are reordered to match *ordered_param_names*. Missing
        trailing arguments are omitted so the callable's defaults apply;
        missing interior ones are passed as ``None``.

        Raises:
            ToolNotFoundError: No callable is registered under *name*.
        """
        func = self._registry.get(name)
        if func is None:
            raise ToolNotFoundError(
                name, hint="Register it with Chat.add_tool(descriptor, func)."
            )

        unknown = set(args_by_name) - set(ordered_param_names)
        if unknown:
            logger.debug("Ignoring undeclared arguments for %s: %s", name, sorted(unknown))

        positional = [args_by_name.get(p) for p in ordered_param_names]
        provided = [p in args_by_name for p in ordered_param_names]
        while positional and not provided[-1]:
            positional.pop()
            provided.pop()

        logger.debug("Executing tool %s with %d argument(s)", name, len(positional))
        return stringify_result(func(*positional))


def stringify_result(value: Any) -> str:
    """Normalize a tool's return value into a non-empty string."""
    if value is None or value == "":
        return NOTHING_RETURNED
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)
