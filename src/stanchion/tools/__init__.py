"""
Tool registry for Stanchion.

This module provides a registry to look tools up by name, a decorator to register them, and the
JSON-schema definitions handed to backends.  Tools are plain functions or coroutines called with
keyword arguments; their return value is turned into a string by the caller.

A tool that declares a ``context`` parameter receives the
:class:`~stanchion.core.schema.MessageContext` of the message being served.
"""

import asyncio
import inspect
import logging
import types
import typing
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    TypedDict,
    get_type_hints,
)

from stanchion.core.schema import MessageContext

logger = logging.getLogger(__name__)

CONTEXT_PARAM = "context"

_JSON_TYPES: Dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
}


class ToolExecutionError(RuntimeError):
    """Raised when a requested tool cannot run or fails."""


class ToolDefinition(TypedDict):
    """
    Definition of a tool as handed to backends
    """

    name: str
    description: str
    input_schema: Mapping[str, Any]


def _json_type(annotation: Any) -> str:
    origin = typing.get_origin(annotation)
    if origin in (typing.Union, types.UnionType):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        return _json_type(args[0]) if len(args) == 1 else "string"
    return _JSON_TYPES.get(origin or annotation, "string")


def _input_schema(fn: Callable) -> Dict[str, Any]:
    sig = inspect.signature(fn)
    type_hints = get_type_hints(fn)
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for param_name, param in sig.parameters.items():
        if param_name == CONTEXT_PARAM:
            continue
        properties[param_name] = {"type": _json_type(type_hints.get(param_name, str))}
        if param.default is inspect.Parameter.empty:
            required.append(param_name)
    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


class ToolRegistry:
    """Name -> callable map with schema extraction and isolated execution."""

    def __init__(self) -> None:
        self._tools: Dict[str, Callable] = {}
        self._descriptions: Dict[str, str] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> List[str]:
        """Registered tool names, in registration order."""
        return list(self._tools)

    def add(self, name: str, fn: Callable, description: str | None = None) -> None:
        """
        Register *fn* under *name*.

        Raises
        ------
        ValueError
            If a tool with the same name is already registered.
        """
        if name in self._tools:
            raise ValueError(f"Tool '{name}' is already registered.")
        logger.debug("Registering tool '%s'", name)
        self._tools[name] = fn
        self._descriptions[name] = description or inspect.getdoc(fn) or ""

    def register(self, name: str, description: str | None = None) -> Callable:
        """
        Register a tool function with the given name.

        The function is registered as a decorator, so it can be used like this:
            @registry.register("my_tool")
            def my_tool_function(arg1: str, arg2: int = 3) -> str:
                ...
        """

        def wrapper(fn: Callable) -> Callable:
            self.add(name, fn, description)
            return fn

        return wrapper

    def definitions(self) -> List[ToolDefinition]:
        """Extract ``{name, description, input_schema}`` for every registered tool."""
        return [
            ToolDefinition(
                name=name, description=self._descriptions[name], input_schema=_input_schema(fn)
            )
            for name, fn in self._tools.items()
        ]

    async def execute(
        self,
        name: str,
        args: Dict[str, Any] | None = None,
        context: MessageContext | None = None,
    ) -> Any:
        """
        Look up *name* and invoke it with *args*.

        Coroutine functions are awaited; plain functions run in a worker thread so a slow tool
        never blocks the event loop.

        Raises
        ------
        ToolExecutionError
            If the tool is missing or its invocation raises an exception.
        """
        kwargs = dict(args or {})
        tool_fn = self._tools.get(name)
        if tool_fn is None:
            raise ToolExecutionError(f"Tool '{name}' is not registered.")
        if CONTEXT_PARAM in inspect.signature(tool_fn).parameters:
            kwargs[CONTEXT_PARAM] = context

        try:
            logger.debug("Executing tool '%s' with args=%s", name, args)
            if inspect.iscoroutinefunction(tool_fn):
                return await tool_fn(**kwargs)
            return await asyncio.to_thread(tool_fn, **kwargs)
        except TypeError as exc:
            # Argument mismatch - give the caller a clean exception.
            logger.warning("Argument error while executing tool '%s': %s", name, exc)
            raise ToolExecutionError(f"Invalid arguments for tool '{name}': {exc}") from exc
        except Exception as exc:  # noqa: BLE001
            logger.warning("Unhandled error in tool '%s': %s", name, exc)
            raise ToolExecutionError(f"Tool '{name}' raised an error: {exc}") from exc

