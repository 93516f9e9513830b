"""Tests for the network-backed tools (search_web, ai_pipe) against a mocked transport."""

import json
from typing import (
    Callable,
    List,
)

import httpx

from multitool.tools.pipe import PipeTool
from multitool.tools.search import (
    SearchTool,
    format_results,
)


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# search_web
# ---------------------------------------------------------------------------
async def test_search_returns_ranked_summary() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "items": [
                    {"title": "Python", "link": "https://python.org", "snippet": "Official site"},
                    {"title": "Docs", "link": "https://docs.python.org", "snippet": "Reference"},
                ]
            },
        )

    tool = SearchTool(api_key="k", cse_id="cx", num_results=2, http_client=_client(handler))
    result = await tool.execute({"query": "python"})

    assert result.ok
    assert result.payload.splitlines()[0] == 'Search results for "python":'
    assert result.payload.index("1. **Python**") < result.payload.index("2. **Docs**")
    params = seen[0].url.params
    assert params["q"] == "python"
    assert params["cx"] == "cx"
    assert params["num"] == "2"


async def test_search_provider_error_message_is_surfaced() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"code": 429, "message": "Quota exceeded"}})

    tool = SearchTool(api_key="k", cse_id="cx", http_client=_client(handler))
    result = await tool.execute({"query": "python"})

    assert result.is_error
    assert "Quota exceeded" in result.error


async def test_search_network_failure_is_a_failure_result() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    tool = SearchTool(api_key="k", cse_id="cx", http_client=_client(handler))
    result = await tool.execute({"query": "python"})

    assert result.error_kind == "TransportError"


async def test_search_malformed_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>")

    tool = SearchTool(api_key="k", cse_id="cx", http_client=_client(handler))
    result = await tool.execute({"query": "python"})

    assert result.error_kind == "ProtocolError"


async def test_search_without_credentials() -> None:
    result = await SearchTool(api_key=None, cse_id=None).execute({"query": "python"})

    assert result.is_error
    assert "GOOGLE_API_KEY" in result.error


def test_format_results_without_hits() -> None:
    assert format_results("nothing", []) == 'No results found for "nothing".'


# ---------------------------------------------------------------------------
# ai_pipe
# ---------------------------------------------------------------------------
async def test_pipe_forwards_workflow_and_returns_output() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"content": "3 rows"}}]})

    tool = PipeTool(
        base_url="https://aipipe.test/openai/v1/", token="tok", http_client=_client(handler)
    )
    result = await tool.execute({"workflow": "count rows", "data": "a\nb\nc"})

    assert result.ok
    assert result.payload == "3 rows"
    request = seen[0]
    assert str(request.url) == "https://aipipe.test/openai/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer tok"
    body = json.loads(request.content)
    assert "count rows" in body["messages"][-1]["content"]
    assert "a\nb\nc" in body["messages"][-1]["content"]


async def test_pipe_without_data_says_so() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

    tool = PipeTool(base_url="https://aipipe.test", token="tok", http_client=_client(handler))
    await tool.execute({"workflow": "summarise"})

    assert "None provided" in json.loads(seen[0].content)["messages"][-1]["content"]


async def test_pipe_http_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "invalid token"}})

    tool = PipeTool(base_url="https://aipipe.test", token="bad", http_client=_client(handler))
    result = await tool.execute({"workflow": "x"})

    assert result.is_error
    assert "invalid token" in result.error


async def test_pipe_malformed_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"unexpected": True})

    tool = PipeTool(base_url="https://aipipe.test", token="tok", http_client=_client(handler))
    result = await tool.execute({"workflow": "x"})

    assert result.error_kind == "ProtocolError"


async def test_pipe_without_token() -> None:
    result = await PipeTool(base_url="https://aipipe.test", token=None).execute({"workflow": "x"})

    assert result.is_error
    assert "AIPIPE_TOKEN" in result.error
