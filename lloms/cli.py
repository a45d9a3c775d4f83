"""Terminal UI for LLoms."""

import os
import sys
from typing import Any, TextIO

from lloms.logging import get_logger

log = get_logger(__name__)

RESET = "\033[0m"
STYLES = {
    "user": "\033[1;36m",
    "assistant": "\033[1;32m",
    "system": "\033[33m",
    "tool": "\033[35m",
    "error": "\033[1;31m",
}

SEPARATOR = "-----------------------------------------------"


class TerminalUI:
    """Line-oriented terminal session with optional ANSI colors."""

    def __init__(
        self,
        input_stream: TextIO | None = None,
        output_stream: TextIO | None = None,
        colors: bool | None = None,
    ):
        self.input = input_stream or sys.stdin
        self.output = output_stream or sys.stdout
        if colors is None:
            colors = self._isatty(self.output) and not bool(os.environ.get("NO_COLOR"))
        self._colors_enabled = colors
        self._interactive = self.input is sys.stdin and self._isatty(self.input)
        self._assistant_output_active = False
        self._readline = None
        if self._interactive:
            self._setup_readline()

    @staticmethod
    def _isatty(stream: TextIO) -> bool:
        isatty = getattr(stream, "isatty", None)
        return bool(isatty and isatty())

    def _setup_readline(self) -> None:
        """Enable line editing and in-session history for interactive input."""
        try:
            import readline  # type: ignore
        except ImportError:
            log.debug("readline unavailable, plain input only")
            return
        self._readline = readline
        readline.set_history_length(1000)

    def _style(self, kind: str, text: str) -> str:
        if not self._colors_enabled:
            return text
        return f"{STYLES.get(kind, '')}{text}{RESET}"

    def _write(self, text: str, end: str = "\n") -> None:
        self.output.write(text + end)
        self.output.flush()

    def print_system(self, text: str) -> None:
        """Print a system/status line."""
        self._write(self._style("system", text))

    def print_tool(self, text: str) -> None:
        """Print a tool activity line."""
        self._write(self._style("tool", text))

    def print_warning(self, warning: str) -> None:
        """Print a warning message."""
        self._write(self._style("system", f"Warning: {warning}"))

    def print_error(self, error: str) -> None:
        """Print an error message."""
        self._write(self._style("error", f"Error: {error}"))

    def print_welcome(self, model: str) -> None:
        """Print welcome banner."""
        self.print_system(f"Using model: {model}")
        self.print_system("Type your message and press Enter to chat.")
        self.print_system("Type 'exit' or 'quit' to end the conversation.")
        self.print_system(SEPARATOR)
        self.print_system("🤖 LLoms chat")
        self.print_system(SEPARATOR)

    def print_tools(self, server_name: str, tool_names: list[str]) -> None:
        """Print the tools discovered on an MCP server."""
        self.print_tool(f"[{server_name}] tools loaded successfully:")
        for i, name in enumerate(tool_names, start=1):
            self.print_tool(f"  {i}. {name}")

    def print_tool_call(self, tool_name: str, arguments: dict[str, Any]) -> None:
        """Print tool call."""
        self.print_tool(f"🛠️ Calling tool: {tool_name} with args: {arguments}")

    def print_tool_result(self, tool_name: str, result: str) -> None:
        """Print tool result, shortened for display."""
        result_text = result[:200] + "..." if len(result) > 200 else result
        self.print_tool(f"🛠️ Tool result ({tool_name}): {result_text}")

    def print_goodbye(self) -> None:
        self.print_system("Goodbye!")

    def prompt(self, prompt_text: str = "You: ") -> str | None:
        """Read one line of input; None at end of input."""
        styled = self._style("user", prompt_text)
        if self._interactive:
            try:
                value = input(styled)
            except EOFError:
                return None
            if self._readline and value.strip():
                self._readline.add_history(value)
            return value

        self.output.write(styled)
        self.output.flush()
        line = self.input.readline()
        if line == "":
            return None
        return line.rstrip("\r\n")

    def begin_assistant_stream(self) -> None:
        """Start assistant streaming in the output area."""
        self._assistant_output_active = True
        self._write(self._style("assistant", "LLoms: "), end="")

    def print_streaming(self, chunk: str) -> None:
        """Print streaming response chunk."""
        self._write(chunk, end="")

    def end_assistant_stream(self) -> None:
        """Finish the assistant line."""
        if not self._assistant_output_active:
            return
        self._assistant_output_active = False
        self._write("")
