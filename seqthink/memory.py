"""Conversation memory used to seed each run with prior turns."""

from __future__ import annotations

from abc import ABC, abstractmethod

from seqthink.llm import Message
from seqthink.logging import get_logger

log = get_logger(__name__)


class ChatMemory(ABC):
    """Source of prior turns and sink for finished exchanges."""

    @abstractmethod
    def load_history(self) -> list[Message]:
        """Prior turns, oldest first (user/assistant alternating)."""

    @abstractmethod
    def save_context(self, user_message: str, assistant_message: str) -> None:
        """Record one finished exchange."""

    @abstractmethod
    def clear(self) -> None:
        pass


class InMemoryChatMemory(ChatMemory):
    """Process-local window of the most recent exchanges."""

    def __init__(self, max_turns: int = 10):
        self.max_turns = max(1, int(max_turns))
        self._turns: list[tuple[str, str]] = []

    def load_history(self) -> list[Message]:
        messages: list[Message] = []
        for user_text, assistant_text in self._turns:
            messages.append(Message(role="user", content=user_text))
            messages.append(Message(role="assistant", content=assistant_text))
        return messages

    def save_context(self, user_message: str, assistant_message: str) -> None:
        self._turns.append((user_message, assistant_message))
        if len(self._turns) > self.max_turns:
            dropped = len(self._turns) - self.max_turns
            self._turns = self._turns[dropped:]
            log.debug("Chat memory trimmed", dropped=dropped, kept=len(self._turns))

    def clear(self) -> None:
        self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)
