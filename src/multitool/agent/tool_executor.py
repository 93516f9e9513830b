"""Dispatches tool calls to the handlers registered in a ``ToolRegistry`` and wraps errors."""

import asyncio
import json
import logging
from typing import (
    Any,
    Dict,
)

from multitool.core.errors import (
    ArgumentParseError,
    SchemaViolation,
    ToolError,
)
from multitool.core.schema import (
    ToolCall,
    ToolResult,
    ToolSpec,
)
from multitool.tools import ToolRegistry

logger = logging.getLogger(__name__)

# JSON-schema type name -> accepted Python types
_TYPE_CHECKS: Dict[str, tuple] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list,),
}


def parse_arguments(call: ToolCall) -> Dict[str, Any]:
    """
    Decode the JSON-encoded arguments of *call*.

    An empty string is read as "no arguments".

    Raises
    ------
    ArgumentParseError
        If the payload is not valid JSON or not a JSON object.
    """
    raw = call.arguments.strip()
    if not raw:
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ArgumentParseError(
            f"Arguments for tool '{call.name}' are not valid JSON: {exc}"
        ) from exc
    if not isinstance(args, dict):
        raise ArgumentParseError(
            f"Arguments for tool '{call.name}' must be a JSON object, got {type(args).__name__}"
        )
    return args


def validate_arguments(spec: ToolSpec, args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check *args* against *spec* and return the keyword arguments to pass to the handler.

    Unknown keys and explicit ``null`` values for optional parameters are dropped.

    Raises
    ------
    SchemaViolation
        If a required parameter is missing or a value has the wrong type.
    """
    declared = {p.name: p for p in spec.parameters}

    missing = [name for name in spec.required_parameters() if args.get(name) is None]
    if missing:
        raise SchemaViolation(
            f"Missing required argument(s) for tool '{spec.name}': {', '.join(missing)}"
        )

    cleaned: Dict[str, Any] = {}
    for key, value in args.items():
        param = declared.get(key)
        if param is None:
            logger.debug("Dropping undeclared argument '%s' for tool '%s'", key, spec.name)
            continue
        if value is None:
            continue
        accepted = _TYPE_CHECKS.get(param.type)
        # bool is an int subclass; only accept it where a boolean is declared
        wrong_bool = isinstance(value, bool) and param.type != "boolean"
        if accepted is not None and (wrong_bool or not isinstance(value, accepted)):
            raise SchemaViolation(
                f"Argument '{key}' for tool '{spec.name}' must be of type {param.type}, "
                f"got {type(value).__name__}"
            )
        cleaned[key] = value
    return cleaned


class ToolExecutor:
    """
    Executes tool calls against a registry.

    :meth:`execute` is total: every outcome, including unknown tools, malformed arguments, handler
    exceptions and timeouts, comes back as a :class:`ToolResult`.  Only task cancellation
    propagates.
    """

    def __init__(self, registry: ToolRegistry, timeout: float | None = None):
        self.registry = registry
        self.timeout = timeout

    async def execute(self, call: ToolCall) -> ToolResult:
        """Look up ``call.name`` in the registry and invoke it with the parsed arguments."""
        try:
            tool = self.registry.get(call.name)
            args = validate_arguments(tool.spec, parse_arguments(call))
            logger.debug("Executing tool '%s' with args=%s", call.name, args)
            result = await asyncio.wait_for(tool.execute(args), self.timeout)
        except ToolError as exc:
            logger.warning("Tool call %s (%s) rejected: %s", call.id, call.name, exc)
            return ToolResult.failure(str(exc), kind=exc.kind)
        except asyncio.TimeoutError:
            logger.warning("Tool '%s' timed out after %ss", call.name, self.timeout)
            return ToolResult.failure(
                f"Tool '{call.name}' timed out after {self.timeout}s", kind="TransportError"
            )
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unhandled error in tool '%s'", call.name)
            return ToolResult.failure(
                f"Tool '{call.name}' raised an error: {exc}", kind="EvaluationFault"
            )

        if not isinstance(result, ToolResult):
            result = ToolResult.success(result)
        if result.is_error:
            logger.warning("Tool '%s' failed: %s", call.name, result.error)
            return result

        # The payload is rendered here so a bad return value stays a failure of this call
        try:
            content = result.content
        except (TypeError, ValueError) as exc:
            logger.warning("Tool '%s' returned an unserialisable payload: %s", call.name, exc)
            return ToolResult.failure(
                f"Tool '{call.name}' returned a payload that is not JSON serialisable: {exc}",
                kind="EvaluationFault",
            )
        logger.info("Tool '%s' succeeded (%d chars)", call.name, len(content))
        return result
