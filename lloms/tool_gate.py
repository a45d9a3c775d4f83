"""Single tool call ahead of the chat turn."""

from typing import Any

from lloms.cli import TerminalUI
from lloms.exceptions import LLMError, ToolError, ToolNotFoundError
from lloms.history import ConversationStore
from lloms.llm import ROLE_ASSISTANT, ROLE_USER, LLMProvider, Message
from lloms.logging import get_logger
from lloms.tools.registry import ToolInvoker, ToolSet

log = get_logger(__name__)

TOOLS_RESPONSE_FORMAT = "json"


def tool_acknowledgment(tool_name: str) -> str:
    return f"I used {tool_name} and got this result:"


class ToolGate:
    """Ask the tools model for a tool call and fold its result into the window.

    At most one tool is invoked per user turn. Every failure on this path is
    reported and the turn goes on with the window it was given.
    """

    def __init__(
        self,
        provider: LLMProvider,
        invoker: ToolInvoker,
        tools: ToolSet,
        options: dict[str, Any],
        ui: TerminalUI,
    ):
        self.provider = provider
        self.invoker = invoker
        self.tools = tools
        self.options = options
        self.ui = ui

    def _warn(self, message: str, **context: Any) -> None:
        log.warning(message, **context)
        self.ui.print_warning(message)

    async def run(self, window: list[Message], store: ConversationStore) -> list[Message]:
        """Return the window to use for the chat turn.

        On a successful tool call the returned list is `window` plus the
        acknowledgment and tool output messages, which are also saved to
        `store`. Otherwise `window` comes back unchanged.
        """
        try:
            response = await self.provider.complete(
                window,
                tools=self.tools.definitions(),
                options=self.options,
                response_format=TOOLS_RESPONSE_FORMAT,
            )
        except LLMError as e:
            self._warn(f"Tools check failed: {e}", model=self.provider.model)
            self.ui.print_system("Continuing with standard chat...")
            return window

        if not response.tool_calls:
            log.debug("No tool call proposed", model=self.provider.model)
            return window

        if len(response.tool_calls) > 1:
            log.debug(
                "Ignoring extra tool calls",
                proposed=[call.name for call in response.tool_calls],
            )
        tool_call = response.tool_calls[0]

        try:
            self.tools.get(tool_call.name)
        except ToolNotFoundError:
            self._warn(
                f"Tool '{tool_call.name}' does not exist. Continuing with standard chat...",
                tool=tool_call.name,
            )
            return window

        self.ui.print_tool_call(tool_call.name, tool_call.arguments)
        try:
            result = await self.invoker.call_tool(tool_call.name, tool_call.arguments)
        except ToolError as e:
            self._warn(f"Tool call failed: {e}", tool=tool_call.name)
            return window

        self.ui.print_tool_result(tool_call.name, result.content)
        log.info("Tool call succeeded", tool=tool_call.name, chars=len(result.content))

        acknowledgment = Message(role=ROLE_ASSISTANT, content=tool_acknowledgment(tool_call.name))
        tool_output = Message(role=ROLE_USER, content=result.content)
        store.save(acknowledgment)
        store.save(tool_output)
        return [*window, acknowledgment, tool_output]
