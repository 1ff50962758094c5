"""Runs a model-requested tool call against the ``nexus.tools`` registry."""

import inspect
import logging
from typing import (
    Any,
    Mapping,
)

from nexus.core.router import Router
from nexus.tools import TOOL_REGISTRY

logger = logging.getLogger(__name__)


class ToolExecutionError(RuntimeError):
    """Raised when a requested tool is unknown, gets bad arguments, or fails."""


async def execute_tool(
    name: str, args: Mapping[str, Any] | None = None, *, router: Router
) -> Any:
    """
    Await the tool registered as *name* with the model-supplied *args*.

    Parameters
    ----------
    name:
        Tool name as the model called it.
    args:
        Decoded call arguments; missing means no arguments.
    router:
        Passed to the tool first, for tools that make model calls of their own.

    Raises
    ------
    ToolExecutionError
        If *name* is not registered, *args* do not fit the tool's signature, or the tool raises.
    """
    tool_fn = TOOL_REGISTRY.get(name)
    if tool_fn is None:
        raise ToolExecutionError(f"Tool '{name}' is not registered.")

    kwargs = dict(args or {})
    # Check the arguments up front so a TypeError inside the tool is reported as a failure
    try:
        inspect.signature(tool_fn).bind(router, **kwargs)
    except TypeError as exc:
        logger.warning("Rejected arguments for tool '%s': %s", name, kwargs)
        raise ToolExecutionError(f"Invalid arguments for tool '{name}': {exc}") from exc

    logger.debug("Running tool '%s' with %s", name, kwargs)
    try:
        return await tool_fn(router, **kwargs)
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Tool '%s' failed", name)
        raise ToolExecutionError(f"Tool '{name}' raised an error: {exc}") from exc
