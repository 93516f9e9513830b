"""
Model client interface for multitool.

This module is the only place that *directly* calls an LLM.  Everything else (agent loop, tools,
sessions) stays model-agnostic.

Every back-end speaks the OpenAI-compatible chat-completions protocol with function calling, so the
request payload and the response parsing are shared; the back-ends differ only in transport:

1. **openai** - the official ``openai`` SDK pointed at the configured base URL.
2. **http** - a plain ``httpx`` POST to ``{base_url}/chat/completions``.

Additional back-ends can be added by subclassing :class:`BaseModelClient` and registering via
:func:`register_model_client`.
"""

import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
)

import httpx
from pydantic import (
    BaseModel,
    Field,
    ValidationError,
)

from multitool.core.errors import (
    ProtocolError,
    TransportError,
)
from multitool.core.schema import (
    ModelConfig,
    ModelResponse,
    ToolCall,
    ToolSpec,
    Turn,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic models for response validation
# ---------------------------------------------------------------------------
class _WireFunction(BaseModel):
    name: str
    arguments: str | Dict[str, Any] = ""


class _WireToolCall(BaseModel):
    id: str
    function: _WireFunction


class _WireMessage(BaseModel):
    content: Optional[str] = None
    tool_calls: Optional[List[_WireToolCall]] = None


class _WireChoice(BaseModel):
    message: _WireMessage


class ChatCompletion(BaseModel):
    """The subset of a chat-completions response the agent relies on."""

    choices: List[_WireChoice] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_CLIENT_REGISTRY: dict[str, Type["BaseModelClient"]] = {}


def register_model_client(name: str) -> Callable:
    """Decorator to register a model client class under *name*."""

    def wrapper(cls: Type["BaseModelClient"]) -> Type["BaseModelClient"]:
        _CLIENT_REGISTRY[name] = cls
        return cls

    return wrapper


def load_model_client(
    config: ModelConfig, name: str | None = None, **kwargs: Any
) -> "BaseModelClient":
    """
    Factory that returns an instantiated model client.

    Fallback order:
    1. *name* arg
    2. ``settings.LLM_CLIENT`` env option
    3. default: ``"openai"``
    """
    from multitool.config import settings  # pylint: disable=import-outside-toplevel

    target = name or getattr(settings, "LLM_CLIENT", "openai")
    cls = _CLIENT_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Model client '{target}' is not registered.")
    return cls(config, **kwargs)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseModelClient(ABC):
    """Abstract client that turns a conversation + tool specs into one ModelResponse."""

    def __init__(self, config: ModelConfig, timeout: float = 60.0):
        self.config = config
        self.timeout = timeout

    def build_payload(
        self, turns: Sequence[Turn], tool_specs: Sequence[ToolSpec]
    ) -> Dict[str, Any]:
        """
        Build the chat-completions request body.

        Keys are emitted in the fixed order ``model, messages, tools, tool_choice, max_tokens,
        temperature``.  ``tools`` and ``tool_choice: "auto"`` are always sent together, and only
        when at least one tool is registered: an empty ``tools`` list alongside ``tool_choice`` is
        rejected by OpenAI-compatible backends, so a registry without tools yields a plain chat
        request.
        """
        payload: Dict[str, Any] = {
            "model": self.config.model,
            "messages": [turn.to_message() for turn in turns],
        }
        if tool_specs:
            payload["tools"] = [spec.to_openai_tool() for spec in tool_specs]
            payload["tool_choice"] = "auto"
        payload["max_tokens"] = self.config.max_tokens
        payload["temperature"] = self.config.temperature
        return payload

    @staticmethod
    def parse_response(data: Mapping[str, Any]) -> ModelResponse:
        """
        Validate a decoded chat-completions body and convert its first choice.

        Raises
        ------
        ProtocolError
            If expected fields are missing or tool call IDs are not unique.
        """
        try:
            parsed = ChatCompletion.model_validate(data)
        except ValidationError as exc:
            raise ProtocolError(f"Malformed chat completion response: {exc}") from exc

        message = parsed.choices[0].message
        calls: List[ToolCall] = []
        for wire in message.tool_calls or []:
            arguments = wire.function.arguments
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            calls.append(ToolCall(id=wire.id, name=wire.function.name, arguments=arguments))

        ids = [call.id for call in calls]
        if any(not call_id for call_id in ids):
            raise ProtocolError("Tool call without an id in model response")
        if len(set(ids)) != len(ids):
            raise ProtocolError(f"Duplicate tool call ids in model response: {ids}")

        return ModelResponse(text=message.content or None, tool_calls=tuple(calls))

    @abstractmethod
    async def complete(
        self, turns: Sequence[Turn], tool_specs: Sequence[ToolSpec]
    ) -> ModelResponse:
        """Send the conversation and return exactly one ModelResponse."""


# ---------------------------------------------------------------------------
# Concrete clients
# ---------------------------------------------------------------------------
@register_model_client("http")
class HttpModelClient(BaseModelClient):
    """Chat-completions client over a raw httpx connection."""

    def __init__(
        self,
        config: ModelConfig,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(config, timeout=timeout)
        self._http_client = http_client

    async def complete(
        self, turns: Sequence[Turn], tool_specs: Sequence[ToolSpec]
    ) -> ModelResponse:
        url = f"{self.config.base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        payload = self.build_payload(turns, tool_specs)

        try:
            if self._http_client is not None:
                resp = await self._http_client.post(url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("LLM request error: %s", exc)
            raise TransportError(f"LLM request failed: {exc}") from exc

        if resp.is_error:
            raise TransportError(f"LLM API error: {resp.status_code} {resp.reason_phrase}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise ProtocolError(f"LLM API returned invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ProtocolError("LLM API returned a non-object JSON body")

        logger.debug("LLM response: %s", data)
        return self.parse_response(data)


@register_model_client("openai")
class OpenAIModelClient(BaseModelClient):
    """Chat-completions client using the official OpenAI SDK (any compatible base URL)."""

    def __init__(
        self,
        config: ModelConfig,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(config, timeout=timeout)
        import openai  # pylint: disable=import-outside-toplevel

        self._openai = openai
        # Retries are a caller policy; the SDK must not retry behind our back
        self._client = openai.AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )

    async def complete(
        self, turns: Sequence[Turn], tool_specs: Sequence[ToolSpec]
    ) -> ModelResponse:
        openai = self._openai
        payload = self.build_payload(turns, tool_specs)
        try:
            resp = await self._client.chat.completions.create(**payload)
        except openai.APIResponseValidationError as exc:
            raise ProtocolError(f"Malformed chat completion response: {exc}") from exc
        except openai.APIStatusError as exc:
            logger.error("OpenAI API error: %s", exc)
            raise TransportError(f"LLM API error: {exc.status_code} {exc.message}") from exc
        except openai.APIConnectionError as exc:
            logger.error("OpenAI connection error: %s", exc)
            raise TransportError(f"LLM request failed: {exc}") from exc
        except openai.APIError as exc:
            logger.error("OpenAI error: %s", exc)
            raise ProtocolError(f"LLM API error: {exc}") from exc

        data = resp.model_dump() if hasattr(resp, "model_dump") else resp
        if not isinstance(data, dict):
            raise ProtocolError("OpenAI SDK returned an unexpected response object")
        logger.debug("OpenAI response: %s", data)
        return self.parse_response(data)
