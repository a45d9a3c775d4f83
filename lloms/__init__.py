"""LLoms - a minimal command-line chat client for Ollama with MCP tools."""

__version__ = "0.1.0"

from lloms.config import Config
from lloms.main import main

__all__ = ["Config", "main", "__version__"]
