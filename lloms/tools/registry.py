"""Session tool set and tool result types."""

from collections.abc import Iterable, Iterator
from typing import Any, Protocol

from pydantic import BaseModel

from lloms.exceptions import ToolNotFoundError
from lloms.llm import ToolDefinition


class ToolResult(BaseModel):
    """Result of one tool invocation."""

    success: bool
    content: str


class ToolInvoker(Protocol):
    """Anything that can run a named tool (the MCP client, or a test double)."""

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult: ...


class ToolSet:
    """Immutable set of tools discovered at session start.

    Iteration keeps discovery order; lookups are by tool name.
    """

    def __init__(self, tools: Iterable[ToolDefinition] = ()):
        self._tools: tuple[ToolDefinition, ...] = tuple(tools)
        self._by_name = {tool.name: tool for tool in self._tools}

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __bool__(self) -> bool:
        return bool(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    @property
    def names(self) -> list[str]:
        return [tool.name for tool in self._tools]

    def get(self, name: str) -> ToolDefinition:
        """Return the tool called `name`.

        Raises:
            ToolNotFoundError: no tool with that name was discovered.
        """
        try:
            return self._by_name[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    def definitions(self) -> list[ToolDefinition]:
        return list(self._tools)
