"""Stdio MCP server client used as the session tool transport."""

import json
from contextlib import AsyncExitStack
from typing import Any

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from lloms.config import MCPServerConfig
from lloms.exceptions import ToolError, ToolExecutionError
from lloms.llm import ToolDefinition
from lloms.logging import get_logger
from lloms.tools.registry import ToolResult

log = get_logger(__name__)


def _content_to_text(content: list[Any]) -> str:
    """Join the text items of an MCP tool result."""
    parts: list[str] = []
    for item in content or []:
        text = getattr(item, "text", None)
        if text is not None:
            parts.append(text)
        elif hasattr(item, "model_dump"):
            parts.append(json.dumps(item.model_dump(mode="json"), ensure_ascii=False))
        else:
            parts.append(str(item))
    return "\n".join(parts)


def _schema_to_dict(schema: Any) -> dict[str, Any]:
    if schema is None:
        return {}
    if isinstance(schema, dict):
        return schema
    if hasattr(schema, "model_dump"):
        return schema.model_dump()
    return json.loads(schema)


class MCPToolClient:
    """One MCP server process held for the lifetime of a chat session."""

    def __init__(self, server: MCPServerConfig):
        self.server = server
        self.exit_stack = AsyncExitStack()
        self.session: ClientSession | None = None

    @property
    def name(self) -> str:
        return self.server.name

    async def start(self) -> None:
        """Spawn the server and run the MCP handshake.

        Raises:
            ToolError: the process could not be started or initialized.
        """
        params = StdioServerParameters(
            command=self.server.command,
            args=list(self.server.args),
            env=self.server.env,
        )
        try:
            read, write = await self.exit_stack.enter_async_context(stdio_client(params))
            self.session = await self.exit_stack.enter_async_context(ClientSession(read, write))
            await self.session.initialize()
        except Exception as e:
            await self.close()
            raise ToolError(f"Failed to start MCP server '{self.name}': {e}") from e
        log.info("MCP server initialized", server=self.name, command=self.server.command)

    def _require_session(self) -> ClientSession:
        if self.session is None:
            raise ToolError(f"MCP server '{self.name}' is not initialized")
        return self.session

    async def list_tools(self) -> list[ToolDefinition]:
        """List the tools exposed by the server."""
        session = self._require_session()
        try:
            result = await session.list_tools()
        except Exception as e:
            raise ToolError(f"Failed to list tools of MCP server '{self.name}': {e}") from e
        return [
            ToolDefinition(
                name=tool.name,
                description=tool.description or "",
                parameters=_schema_to_dict(getattr(tool, "inputSchema", None)),
            )
            for tool in result.tools
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Invoke `name` and return its textual result.

        Raises:
            ToolExecutionError: transport failure or an error result.
        """
        session = self._require_session()
        try:
            result = await session.call_tool(name, arguments=arguments)
        except Exception as e:
            raise ToolExecutionError(name, str(e)) from e

        text = _content_to_text(getattr(result, "content", []))
        if getattr(result, "isError", False):
            raise ToolExecutionError(name, text or "tool reported an error")
        return ToolResult(success=True, content=text)

    async def close(self) -> None:
        """Terminate the server process."""
        self.session = None
        await self.exit_stack.aclose()
