"""Ollama provider - direct HTTP calls to the Ollama chat API."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import httpx

from lloms.exceptions import LLMAPIError, LLMError
from lloms.logging import get_logger

log = get_logger(__name__)


OLLAMA_NATIVE_BASE_URL = "http://127.0.0.1:11434"

ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLES = frozenset({ROLE_SYSTEM, ROLE_USER, ROLE_ASSISTANT})


@dataclass(frozen=True)
class Message:
    """A message in the conversation."""

    role: str  # "system", "user", "assistant"
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ToolCall:
    """A tool call proposed by the LLM."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMResponse:
    """Response from the LLM."""

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    model: str = ""


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of a tool for the LLM."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)  # JSON Schema


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    model: str = ""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        options: dict[str, Any] | None = None,
        response_format: str | None = None,
    ) -> LLMResponse:
        pass

    @abstractmethod
    async def complete_streaming(
        self,
        messages: list[Message],
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[str]:
        pass

    async def close(self) -> None:
        """Release transport resources."""
        return None


class OllamaProvider(LLMProvider):
    """Direct Ollama API provider."""

    def __init__(
        self,
        model: str,
        base_url: str = OLLAMA_NATIVE_BASE_URL,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize Ollama provider.

        Args:
            model: Ollama model name (e.g., 'qwen2.5:3b')
            base_url: Ollama API base URL
            timeout: Per-request timeout in seconds
            client: Shared HTTP client; created (and owned) when omitted
        """
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
        )

    @staticmethod
    def _convert_messages(messages: list[Message]) -> list[dict[str, Any]]:
        """Convert messages to Ollama format."""
        return [msg.to_dict() for msg in messages]

    @staticmethod
    def _convert_tools(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        """Convert tools to Ollama format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description or "",
                    "parameters": tool.parameters or {},
                },
            }
            for tool in tools
            if tool.name
        ]

    @staticmethod
    def _parse_tool_calls(message: dict[str, Any]) -> list[ToolCall]:
        tool_calls = []
        for tc in message.get("tool_calls") or []:
            function = tc.get("function", {})
            arguments = function.get("arguments") or {}
            if isinstance(arguments, str):
                # Some models return the arguments JSON-encoded.
                arguments = json.loads(arguments) if arguments.strip() else {}
            if not isinstance(arguments, dict):
                raise LLMError(
                    f"Tool call arguments for '{function.get('name', '')}' must be a JSON object, "
                    f"got {arguments!r}"
                )
            tool_calls.append(ToolCall(name=function.get("name", ""), arguments=arguments))
        return tool_calls

    @staticmethod
    def _parse_stream_chunk(chunk: Any) -> tuple[str, bool]:
        """Return the content fragment and done flag of one stream line."""
        if not isinstance(chunk, dict):
            raise LLMError(f"Ollama stream decode error: unexpected line {chunk!r}")
        if chunk.get("error"):
            raise LLMAPIError(f"Ollama stream error: {chunk['error']}")
        message = chunk.get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if content is not None and not isinstance(content, str):
            raise LLMError(f"Ollama stream decode error: unexpected content {content!r}")
        return content or "", bool(chunk.get("done"))

    def _body(
        self,
        messages: list[Message],
        stream: bool,
        tools: list[ToolDefinition] | None = None,
        options: dict[str, Any] | None = None,
        response_format: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": self._convert_messages(messages),
            "stream": stream,
        }
        if options:
            body["options"] = dict(options)
        if tools:
            body["tools"] = self._convert_tools(tools)
        if response_format:
            body["format"] = response_format
        return body

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        options: dict[str, Any] | None = None,
        response_format: str | None = None,
    ) -> LLMResponse:
        """Generate a non-streaming completion."""
        url = f"{self.base_url}/api/chat"
        body = self._body(messages, False, tools, options, response_format)

        try:
            log.debug("Calling Ollama", model=self.model, url=url, msg_count=len(messages))

            response = await self.client.post(url, json=body)

            log.debug("Ollama response status", status=response.status_code)

            if not response.is_success:
                raise LLMAPIError(
                    f"Ollama API error {response.status_code}: {response.text}",
                    status_code=response.status_code,
                )

            data = response.json()
            message = data.get("message", {})

            return LLMResponse(
                content=message.get("content", ""),
                tool_calls=self._parse_tool_calls(message),
                model=data.get("model", self.model),
            )

        except LLMError:
            raise
        except httpx.HTTPError as e:
            raise LLMAPIError(f"Ollama HTTP error: {e}") from e
        except (json.JSONDecodeError, AttributeError, TypeError) as e:
            raise LLMError(f"Ollama response decode error: {e}") from e

    async def complete_streaming(
        self,
        messages: list[Message],
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[str]:
        """Stream a completion, yielding content fragments in arrival order."""
        url = f"{self.base_url}/api/chat"
        body = self._body(messages, True, options=options)

        try:
            async with self.client.stream("POST", url, json=body) as response:
                if not response.is_success:
                    await response.aread()
                    raise LLMAPIError(
                        f"Ollama API error {response.status_code}: {response.text}",
                        status_code=response.status_code,
                    )

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        chunk = json.loads(line)
                    except json.JSONDecodeError:
                        log.debug("Skipping undecodable stream line", line=line[:200])
                        continue
                    content, done = self._parse_stream_chunk(chunk)
                    if content:
                        yield content
                    if done:
                        break

        except LLMError:
            raise
        except httpx.HTTPError as e:
            raise LLMAPIError(f"Ollama streaming error: {e}") from e

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client:
            await self.client.aclose()


def create_provider(
    model: str = "qwen2.5:3b",
    base_url: str | None = None,
    timeout: float = 120.0,
    client: httpx.AsyncClient | None = None,
) -> LLMProvider:
    """Create an Ollama chat provider.

    Args:
        model: Model name
        base_url: Optional base URL
        timeout: Per-request timeout in seconds
        client: Optional shared HTTP client

    Returns:
        Configured LLMProvider instance
    """
    return OllamaProvider(
        model=model,
        base_url=base_url or OLLAMA_NATIVE_BASE_URL,
        timeout=timeout,
        client=client,
    )
