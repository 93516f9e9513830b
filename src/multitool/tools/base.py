"""
Base classes for tools.

A tool pairs a static :class:`~multitool.core.schema.ToolSpec` with an async ``execute`` method that
receives already-validated keyword arguments and returns a
:class:`~multitool.core.schema.ToolResult`.
"""

import inspect
from abc import (
    ABC,
    abstractmethod,
)
from contextlib import asynccontextmanager
from typing import (
    Any,
    AsyncIterator,
    Callable,
    ClassVar,
    Dict,
    get_type_hints,
)

import httpx

from multitool.core.schema import (
    ParameterSpec,
    ToolResult,
    ToolSpec,
)

# Python annotation -> JSON-schema type name
_JSON_TYPES: Dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    dict: "object",
    list: "array",
}


class BaseTool(ABC):
    """Abstract tool: a spec plus a handler."""

    spec: ClassVar[ToolSpec]

    @property
    def name(self) -> str:
        return self.spec.name

    @abstractmethod
    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        """Run the tool with validated *args*."""


class FunctionTool(BaseTool):
    """Adapts a plain (sync or async) function into a tool; the spec is read from its signature."""

    def __init__(self, fn: Callable[..., Any], spec: ToolSpec):
        self._fn = fn
        self.spec = spec  # type: ignore[misc]

    @classmethod
    def from_function(
        cls, fn: Callable[..., Any], name: str | None = None, description: str | None = None
    ) -> "FunctionTool":
        """Derive parameter information from *fn*'s signature and type hints."""
        sig = inspect.signature(fn)
        type_hints = get_type_hints(fn)
        params = []
        for param_name, param in sig.parameters.items():
            param_type = type_hints.get(param_name, str)
            params.append(
                ParameterSpec(
                    name=param_name,
                    type=_JSON_TYPES.get(param_type, "string"),
                    required=param.default is inspect.Parameter.empty,
                )
            )
        spec = ToolSpec(
            name=name or fn.__name__,
            description=description or inspect.getdoc(fn) or "",
            parameters=tuple(params),
        )
        return cls(fn, spec)

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        value = self._fn(**args)
        if inspect.isawaitable(value):
            value = await value
        if isinstance(value, ToolResult):
            return value
        return ToolResult.success(value)


class HttpTool(BaseTool):
    """Base for tools that call a remote HTTP provider."""

    def __init__(self, http_client: httpx.AsyncClient | None = None, timeout: float = 30.0):
        self._http_client = http_client
        self._timeout = timeout

    @asynccontextmanager
    async def client(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the shared client if one was injected, else a short-lived one."""
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client


def provider_error_message(response: httpx.Response) -> str:
    """Best-effort extraction of the provider's own error message from a failed response."""
    try:
        body = response.json()
    except ValueError:
        return f"{response.status_code} {response.reason_phrase}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return f"{response.status_code} {error['message']}"
    if isinstance(error, str):
        return f"{response.status_code} {error}"
    return f"{response.status_code} {response.reason_phrase}"
