"""``search_web`` tool backed by the Google Custom Search JSON API."""

import logging
from typing import (
    Any,
    Dict,
    List,
)

import httpx

from multitool.core.schema import (
    ParameterSpec,
    ToolResult,
    ToolSpec,
)
from multitool.tools.base import (
    HttpTool,
    provider_error_message,
)

logger = logging.getLogger(__name__)

GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"


class SearchTool(HttpTool):
    """Query a search provider and return a ranked textual summary."""

    spec = ToolSpec(
        name="search_web",
        description=(
            "Search the web using Google Custom Search API to find current information"
        ),
        parameters=(
            ParameterSpec(
                name="query",
                type="string",
                description="The search query to find relevant web content",
            ),
        ),
    )

    def __init__(
        self,
        api_key: str | None,
        cse_id: str | None,
        num_results: int = 5,
        endpoint: str = GOOGLE_SEARCH_URL,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(http_client=http_client)
        self._api_key = api_key
        self._cse_id = cse_id
        self._num_results = max(1, min(num_results, 10))  # API caps num at 10
        self._endpoint = endpoint

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        query = args["query"]
        if not self._api_key or not self._cse_id:
            return ToolResult.failure(
                "Search provider is not configured (set GOOGLE_API_KEY and GOOGLE_CSE_ID)",
                kind="ConfigurationError",
            )

        params = {"key": self._api_key, "cx": self._cse_id, "q": query, "num": self._num_results}
        try:
            async with self.client() as client:
                resp = await client.get(self._endpoint, params=params)
            if resp.is_error:
                return ToolResult.failure(
                    f"Search provider error: {provider_error_message(resp)}",
                    kind="TransportError",
                )
            data = resp.json()
        except httpx.HTTPError as exc:
            logger.warning("Search request failed: %s", exc)
            return ToolResult.failure(f"Search request failed: {exc}", kind="TransportError")
        except ValueError as exc:
            return ToolResult.failure(
                f"Search provider returned malformed JSON: {exc}", kind="ProtocolError"
            )

        items = data.get("items", []) if isinstance(data, dict) else None
        if not isinstance(items, list):
            return ToolResult.failure(
                "Search provider returned an unexpected payload", kind="ProtocolError"
            )
        return ToolResult.success(format_results(query, items))


def format_results(query: str, items: List[Dict[str, Any]]) -> str:
    """Render search hits as a numbered markdown list, best match first."""
    if not items:
        return f'No results found for "{query}".'

    lines = [f'Search results for "{query}":', ""]
    for rank, item in enumerate(items, start=1):
        lines.append(f"{rank}. **{item.get('title', '(untitled)')}**")
        snippet = (item.get("snippet") or "").replace("\n", " ").strip()
        if snippet:
            lines.append(f"   {snippet}")
        if item.get("link"):
            lines.append(f"   {item['link']}")
        lines.append("")
    return "\n".join(lines).rstrip()
