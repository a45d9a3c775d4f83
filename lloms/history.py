"""In-memory conversation log and history window selection."""

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Sequence

from lloms.exceptions import StorageError
from lloms.llm import ROLE_SYSTEM, Message


def _utcnow_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class MessageRecord:
    """A stored message with its storage identifier."""

    id: str
    message: Message
    created_at: str = field(default_factory=_utcnow_iso)


class ConversationStore:
    """Append-only conversation log.

    Messages are kept in a list so retrieval order is insertion order; the
    id index only serves lookups by identifier.
    """

    def __init__(self) -> None:
        self._records: list[MessageRecord] = []
        self._index: dict[str, int] = {}
        self._last_ns = 0

    def _next_id(self) -> str:
        # Nanosecond clock, bumped when two saves land on the same tick.
        now = time.time_ns()
        if now <= self._last_ns:
            now = self._last_ns + 1
        self._last_ns = now
        return str(now)

    def save(self, message: Message, message_id: str | None = None) -> str:
        """Append `message` and return its identifier.

        Raises:
            StorageError: the identifier is already in use.
        """
        if message_id is None:
            message_id = self._next_id()
        if message_id in self._index:
            raise StorageError(f"Message id already exists: {message_id}")
        self._index[message_id] = len(self._records)
        self._records.append(MessageRecord(id=message_id, message=message))
        return message_id

    def get(self, message_id: str) -> Message:
        try:
            return self._records[self._index[message_id]].message
        except (KeyError, IndexError):
            raise StorageError(f"Message not found: {message_id}") from None

    def records(self) -> list[MessageRecord]:
        return list(self._records)

    def all(self) -> list[Message]:
        """Every stored message in insertion order."""
        if len(self._index) != len(self._records):
            raise StorageError(
                f"Conversation log index is inconsistent: "
                f"{len(self._index)} ids for {len(self._records)} records"
            )
        return [record.message for record in self._records]

    def __len__(self) -> int:
        return len(self._records)


def select_window(all_messages: Sequence[Message], system_prompt: str, limit: int) -> list[Message]:
    """Build the bounded window sent to the model.

    A fresh system message from `system_prompt` comes first, followed by the
    last `limit` messages in their original order. A negative limit keeps the
    whole history.
    """
    window = [Message(role=ROLE_SYSTEM, content=system_prompt)]
    if limit < 0 or len(all_messages) <= limit:
        window.extend(all_messages)
    elif limit > 0:
        window.extend(all_messages[-limit:])
    return window
