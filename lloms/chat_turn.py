"""Streaming chat turn against the primary chat model."""

from typing import Any

from lloms.cli import TerminalUI
from lloms.history import ConversationStore
from lloms.llm import ROLE_ASSISTANT, LLMProvider, Message
from lloms.logging import get_logger

log = get_logger(__name__)


class ChatTurnExecutor:
    """Stream one response to the terminal and store it as an assistant message."""

    def __init__(self, provider: LLMProvider, options: dict[str, Any], ui: TerminalUI):
        self.provider = provider
        self.options = options
        self.ui = ui

    async def run(self, window: list[Message], store: ConversationStore) -> str:
        """Send `window`, echo fragments as they arrive, save the full text.

        Transport errors propagate before anything is saved, so a failed turn
        leaves the store untouched.
        """
        log.debug("Starting chat turn", model=self.provider.model, msg_count=len(window))
        parts: list[str] = []
        self.ui.begin_assistant_stream()
        try:
            async for fragment in self.provider.complete_streaming(window, options=self.options):
                self.ui.print_streaming(fragment)
                parts.append(fragment)
        finally:
            self.ui.end_assistant_stream()

        response_text = "".join(parts)
        store.save(Message(role=ROLE_ASSISTANT, content=response_text))
        log.debug("Chat turn finished", chars=len(response_text), fragments=len(parts))
        return response_text
