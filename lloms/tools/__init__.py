"""Tool support: the session tool set and the MCP transport."""

from lloms.tools.mcp import MCPToolClient
from lloms.tools.registry import ToolResult, ToolSet

__all__ = ["MCPToolClient", "ToolResult", "ToolSet"]
