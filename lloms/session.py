"""Interactive chat session: startup, the input loop and teardown."""

import asyncio
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx

from lloms.chat_turn import ChatTurnExecutor
from lloms.cli import TerminalUI
from lloms.config import Config, MCPServerConfig
from lloms.exceptions import LLMError, ToolError
from lloms.history import ConversationStore, select_window
from lloms.llm import ROLE_SYSTEM, ROLE_USER, LLMProvider, Message, create_provider
from lloms.logging import get_logger
from lloms.tool_gate import ToolGate
from lloms.tools.mcp import MCPToolClient
from lloms.tools.registry import ToolSet

log = get_logger(__name__)

EXIT_COMMANDS = frozenset({"exit", "quit"})


async def read_input(prompt: Callable[[], str | None]) -> str | None:
    """Run a blocking `prompt` on a daemon thread and await its result.

    A daemon thread does not hold up interpreter shutdown, so Ctrl-C at the
    prompt closes the session without waiting for Enter.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str | None] = loop.create_future()

    def deliver(result: str | None, error: Exception | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def worker() -> None:
        result: str | None = None
        error: Exception | None = None
        try:
            result = prompt()
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(deliver, result, error)
        except RuntimeError:
            # The loop closed while the prompt was blocked.
            log.debug("Input arrived after shutdown")

    threading.Thread(target=worker, name="lloms-input", daemon=True).start()
    return await future


@dataclass
class SessionContext:
    """Everything one chat session works with, built once at startup."""

    config: Config
    ui: TerminalUI
    chat_provider: LLMProvider
    tools_provider: LLMProvider
    store: ConversationStore = field(default_factory=ConversationStore)
    tool_client: MCPToolClient | None = None
    tools: ToolSet = field(default_factory=ToolSet)
    http_client: httpx.AsyncClient | None = None

    @classmethod
    async def open(
        cls,
        config: Config,
        ui: TerminalUI,
        client_factory: Callable[[MCPServerConfig], MCPToolClient] = MCPToolClient,
    ) -> "SessionContext":
        """Create providers and connect the MCP server, if one is configured."""
        http_client = httpx.AsyncClient(timeout=config.request_timeout, follow_redirects=True)
        chat_provider = create_provider(
            model=config.chat_model,
            base_url=config.ollama_url,
            timeout=config.request_timeout,
            client=http_client,
        )
        tools_provider = create_provider(
            model=config.tools_model,
            base_url=config.ollama_url,
            timeout=config.request_timeout,
            client=http_client,
        )
        context = cls(
            config=config,
            ui=ui,
            chat_provider=chat_provider,
            tools_provider=tools_provider,
            http_client=http_client,
        )
        context.tool_client, context.tools = await connect_tools(config, ui, client_factory)
        return context

    async def aclose(self) -> None:
        """Stop the MCP server and release HTTP resources."""
        if self.tool_client is not None:
            try:
                await self.tool_client.close()
            except Exception as e:
                log.warning("Failed to stop MCP server", server=self.tool_client.name, error=str(e))
            self.tool_client = None
        await self.chat_provider.close()
        await self.tools_provider.close()
        if self.http_client is not None:
            await self.http_client.aclose()


async def connect_tools(
    config: Config,
    ui: TerminalUI,
    client_factory: Callable[[MCPServerConfig], MCPToolClient] = MCPToolClient,
) -> tuple[MCPToolClient | None, ToolSet]:
    """Start the first configured MCP server and discover its tools.

    Any failure leaves the session without tools.
    """
    if not config.enable_mcp:
        return None, ToolSet()

    server = config.first_mcp_server()
    if server is None:
        ui.print_system(
            "MCP enabled but no servers specified in config. Continuing without MCP tools support."
        )
        return None, ToolSet()
    if len(config.mcp.servers) > 1:
        log.info(
            "Only the first MCP server is used",
            used=server.name,
            ignored=[s.name for s in config.mcp.servers[1:]],
        )

    ui.print_system("Initializing MCP client...")
    ui.print_system(f"Using MCP server: {server.name}")

    client = client_factory(server)
    try:
        await client.start()
    except ToolError as e:
        log.warning("MCP startup failed", server=server.name, error=str(e))
        ui.print_warning(f"Failed to initialize MCP client: {e}")
        ui.print_system("Continuing without MCP tools support.")
        return None, ToolSet()

    try:
        tools = ToolSet(await client.list_tools())
    except ToolError as e:
        log.warning("MCP tool listing failed", server=server.name, error=str(e))
        ui.print_warning(f"Failed to get MCP tools: {e}")
        await client.close()
        return None, ToolSet()

    ui.print_tools(server.name, tools.names)
    return client, tools


class ChatSession:
    """Read a line, run a turn, repeat until exit or end of input."""

    def __init__(self, context: SessionContext):
        self.context = context
        self.store = context.store
        self.ui = context.ui
        config = context.config
        self.executor = ChatTurnExecutor(context.chat_provider, config.chat.to_options(), context.ui)
        self.gate: ToolGate | None = None
        if context.tool_client is not None and context.tools:
            self.gate = ToolGate(
                provider=context.tools_provider,
                invoker=context.tool_client,
                tools=context.tools,
                options=config.tools.to_options(),
                ui=context.ui,
            )

    def seed(self) -> None:
        """Store the configured system prompt as the first log entry."""
        self.store.save(Message(role=ROLE_SYSTEM, content=self.context.config.system_prompt))

    async def run(self) -> None:
        """Run the input loop until `exit`, `quit` or end of input."""
        while True:
            user_input = await read_input(self.ui.prompt)
            if user_input is None or user_input in EXIT_COMMANDS:
                break
            if not user_input.strip():
                continue
            await self.process_turn(user_input)
        self.ui.print_goodbye()

    async def process_turn(self, user_input: str) -> None:
        """Save the user message, run the tool gate and the chat turn.

        Chat transport errors end only this turn; storage errors propagate.
        """
        config = self.context.config
        self.store.save(Message(role=ROLE_USER, content=user_input))
        # The window always opens with the current prompt, so stored system
        # entries are not repeated.
        conversation = [m for m in self.store.all() if m.role != ROLE_SYSTEM]
        window = select_window(conversation, config.system_prompt, config.history_limit)

        if self.gate is not None:
            window = await self.gate.run(window, self.store)

        try:
            await self.executor.run(window, self.store)
        except LLMError as e:
            log.error("Chat turn failed", model=self.context.chat_provider.model, error=str(e))
            self.ui.print_error(f"Failed to get response from LLM: {e}")


async def run_chat(
    config: Config,
    ui: TerminalUI,
    client_factory: Callable[[MCPServerConfig], MCPToolClient] = MCPToolClient,
) -> None:
    """Open a session, run it to completion and tear it down."""
    context = await SessionContext.open(config, ui, client_factory)
    try:
        session = ChatSession(context)
        session.seed()
        ui.print_welcome(config.chat_model)
        await session.run()
    finally:
        await context.aclose()
