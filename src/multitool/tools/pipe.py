"""``ai_pipe`` tool: forwards a workflow description to the AI Pipe proxy."""

import logging
from typing import (
    Any,
    Dict,
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

WORKFLOW_PROMPT = (
    "You are a data-processing workflow engine. Carry out the workflow described by the user on "
    "the supplied input data and reply with the result only."
)


class PipeTool(HttpTool):
    """
    Run a free-form AI workflow through the AI Pipe proxy.

    AI Pipe exposes an OpenAI-compatible ``/chat/completions`` endpoint authenticated with a bearer
    token, so the workflow becomes one chat request and the first choice's content is returned.
    """

    spec = ToolSpec(
        name="ai_pipe",
        description="Use AI Pipe proxy for flexible AI workflows and data processing",
        parameters=(
            ParameterSpec(
                name="workflow",
                type="string",
                description="Description of the AI workflow or task to execute",
            ),
            ParameterSpec(
                name="data",
                type="string",
                description="Input data for the AI workflow (optional)",
                required=False,
            ),
        ),
    )

    def __init__(
        self,
        base_url: str,
        token: str | None,
        model: str = "gpt-4o-mini",
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(http_client=http_client)
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._token = token
        self._model = model

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        workflow = args["workflow"]
        data = args.get("data") or ""
        if not self._token:
            return ToolResult.failure(
                "AI Pipe is not configured (set AIPIPE_TOKEN)", kind="ConfigurationError"
            )

        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": WORKFLOW_PROMPT},
                {
                    "role": "user",
                    "content": f"Workflow: {workflow}\n\nInput data:\n{data or 'None provided'}",
                },
            ],
        }
        headers = {"Authorization": f"Bearer {self._token}"}

        try:
            async with self.client() as client:
                resp = await client.post(self._url, json=payload, headers=headers)
            if resp.is_error:
                return ToolResult.failure(
                    f"AI Pipe error: {provider_error_message(resp)}", kind="TransportError"
                )
            body = resp.json()
            output = body["choices"][0]["message"]["content"]
        except httpx.HTTPError as exc:
            logger.warning("AI Pipe request failed: %s", exc)
            return ToolResult.failure(f"AI Pipe request failed: {exc}", kind="TransportError")
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            return ToolResult.failure(
                f"AI Pipe returned a malformed response: {exc!r}", kind="ProtocolError"
            )

        if output is None:
            return ToolResult.failure("AI Pipe returned an empty response", kind="ProtocolError")
        return ToolResult.success(output)
