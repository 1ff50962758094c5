"""
Tool registry for Nexus.

This module provides a decorator to register tools and derives the declarations handed to models
from the registered functions' signatures.  Tools are coroutine functions whose first parameter is
the router they may use for their own model calls; the remaining keyword arguments come from the
model's tool call.
"""

import inspect
import logging
import types
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from nexus.core.schema import ToolDeclaration

logger = logging.getLogger(__name__)

TOOL_REGISTRY: Dict[str, Callable] = {}
"""Global registry of tool functions."""

_PARAM_DESCRIPTIONS: Dict[str, Mapping[str, str]] = {}

_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
}


def register_tool(name: str, params: Mapping[str, str] | None = None) -> Callable:
    """
    Register a tool function with the given name.

    The function is registered as a decorator, so it can be used like this:
        @register_tool("my_tool", params={"query": "What to look for"})
        async def my_tool_function(router, query):
            ...
            return result

    Parameters
    ----------
    name: str
        The name of the tool.  This must be unique and is what models call it by.
    params: Mapping[str, str] | None
        Optional per-parameter descriptions included in the declaration.
    Returns
    -------
    Callable
        A decorator that registers the function with the given name.
    Raises
    ------
    ValueError
        If a function with the same name is already registered.
    """
    if name in TOOL_REGISTRY:
        raise ValueError(f"Tool '{name}' is already registered.")
    logger.debug("Registering tool '%s'", name)

    def wrapper(fn: Callable) -> Callable:
        TOOL_REGISTRY[name] = fn
        _PARAM_DESCRIPTIONS[name] = dict(params or {})
        return fn

    return wrapper


def _json_type(annotation: Any) -> str:
    origin = get_origin(annotation)
    if origin in (Union, types.UnionType):
        # Optional[X] / X | None collapse to X
        inner = [arg for arg in get_args(annotation) if arg is not type(None)]
        return _json_type(inner[0]) if len(inner) == 1 else "string"
    return _JSON_TYPES.get(origin or annotation, "string")


def _declaration(name: str, func: Callable) -> ToolDeclaration:
    sig = inspect.signature(func)
    type_hints = get_type_hints(func)
    descriptions = _PARAM_DESCRIPTIONS.get(name, {})

    properties: Dict[str, Dict[str, Any]] = {}
    required: List[str] = []
    for index, (param_name, param) in enumerate(sig.parameters.items()):
        if index == 0:
            continue  # the router
        prop: Dict[str, Any] = {"type": _json_type(type_hints.get(param_name, str))}
        if param_name in descriptions:
            prop["description"] = descriptions[param_name]
        properties[param_name] = prop
        if param.default is inspect.Parameter.empty:
            required.append(param_name)

    parameters: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        parameters["required"] = required
    return ToolDeclaration(
        name=name, description=inspect.getdoc(func) or "", parameters=parameters
    )


def get_tool_declarations(names: Iterable[str] | None = None) -> List[ToolDeclaration]:
    """
    Build declarations for the registered tools in *names* (all tools when None).

    Unknown names are skipped with a warning.
    """
    selected = list(TOOL_REGISTRY) if names is None else list(names)
    declarations: List[ToolDeclaration] = []
    for name in selected:
        func = TOOL_REGISTRY.get(name)
        if func is None:
            logger.warning("No tool registered under '%s'", name)
            continue
        declarations.append(_declaration(name, func))
    return declarations


# Register the built-in tools
from nexus.tools import builtin  # noqa: E402,F401  pylint: disable=wrong-import-position
