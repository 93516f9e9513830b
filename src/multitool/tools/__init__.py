"""
Tool registry for multitool.

The registry holds the ordered set of tools offered to the model.  Each entry couples a
:class:`~multitool.core.schema.ToolSpec` with its handler, so dispatch is a dictionary lookup
rather than a branch per tool name.

Tools can be added as instances::

    registry.register(SearchTool(...))

or from plain functions with the decorator::

    @registry.tool("add")
    def add(a: int, b: int) -> int:
        '''Add two integers.'''
        return a + b
"""

import logging
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
)

import httpx

from multitool.core.errors import UnknownTool
from multitool.core.schema import ToolSpec
from multitool.tools.base import (
    BaseTool,
    FunctionTool,
)

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Ordered, name-keyed collection of tools.  Populated at start-up, read-only afterwards."""

    def __init__(self, tools: Iterable[BaseTool] = ()):
        self._tools: Dict[str, BaseTool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: BaseTool) -> BaseTool:
        """
        Add *tool* to the registry.

        Raises
        ------
        ValueError
            If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered.")
        logger.debug("Registering tool '%s'", tool.name)
        self._tools[tool.name] = tool
        return tool

    def tool(self, name: str | None = None, description: str | None = None) -> Callable:
        """Decorator registering a plain function as a tool."""

        def wrapper(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.register(FunctionTool.from_function(fn, name=name, description=description))
            return fn

        return wrapper

    def get(self, name: str) -> BaseTool:
        """Return the tool called *name*, raising :class:`UnknownTool` if there is none."""
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownTool(name)
        return tool

    def specs(self) -> List[ToolSpec]:
        """Tool specs in registration order."""
        return [tool.spec for tool in self._tools.values()]

    def names(self) -> List[str]:
        return list(self._tools)

    def to_openai_tools(self) -> List[Dict[str, Any]]:
        return [spec.to_openai_tool() for spec in self.specs()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[BaseTool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)


def build_default_registry(
    config: Any | None = None, http_client: httpx.AsyncClient | None = None
) -> ToolRegistry:
    """
    Build the registry with the three built-in tools: ``search_web``, ``ai_pipe`` and
    ``execute_python``.

    Parameters
    ----------
    config:
        Settings object providing the tool API keys (defaults to :data:`multitool.config.settings`).
    http_client:
        Shared client for the network-backed tools.  When omitted each call opens its own.
    """
    # Imported here so that the submodules can import ``multitool.tools.base`` freely
    from multitool.config import settings  # pylint: disable=import-outside-toplevel
    from multitool.tools.evaluate import EvaluateTool  # pylint: disable=import-outside-toplevel
    from multitool.tools.pipe import PipeTool  # pylint: disable=import-outside-toplevel
    from multitool.tools.search import SearchTool  # pylint: disable=import-outside-toplevel

    cfg = config or settings
    return ToolRegistry(
        [
            SearchTool(
                api_key=cfg.GOOGLE_API_KEY,
                cse_id=cfg.GOOGLE_CSE_ID,
                num_results=cfg.SEARCH_RESULTS,
                http_client=http_client,
            ),
            PipeTool(
                base_url=cfg.AIPIPE_BASE_URL,
                token=cfg.AIPIPE_TOKEN,
                model=cfg.AIPIPE_MODEL,
                http_client=http_client,
            ),
            EvaluateTool(),
        ]
    )
