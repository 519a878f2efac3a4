"""
ragroute - Conversation Memory
===============================
Bounded sliding window over the most recent conversation turns.

One ``ConversationMemory`` belongs to one assistant session and is only
touched by that session's sequential ask loop, so it carries no lock.
Nothing is persisted: the window lives and dies with the process.
"""

from __future__ import annotations

from collections import deque

from ragroute.config.settings import settings
from ragroute.src.core.errors import InvalidParameterError
from ragroute.src.core.models import ConversationTurn
from ragroute.src.utils.observer import PipelineObserver, default_observer


class ConversationMemory:
    """
    FIFO window of at most ``max_messages`` turns.

    Appending to a full window evicts the oldest turn first.
    """

    __slots__ = ("max_messages", "_turns", "_observer")

    def __init__(self, max_messages: int | None = None, observer: PipelineObserver | None = None) -> None:
        self.max_messages = max_messages if max_messages is not None else settings.MEMORY_MAX_MESSAGES
        if self.max_messages < 1:
            raise InvalidParameterError(f"max_messages must be >= 1, got {self.max_messages}")
        self._turns: deque[ConversationTurn] = deque(maxlen=self.max_messages)
        self._observer = observer or default_observer()

    def append(self, turn: ConversationTurn) -> None:
        if len(self._turns) == self.max_messages:
            evicted = self._turns[0]
            self._observer.emit("memory.evicted", role=evicted.role, chars=len(evicted.text), window=self.max_messages)
        self._turns.append(turn)

    def add_exchange(self, question: str, answer: str) -> None:
        self.append(ConversationTurn.user(question))
        self.append(ConversationTurn.assistant(answer))

    def as_ordered_turns(self) -> tuple[ConversationTurn, ...]:
        """Oldest first."""
        return tuple(self._turns)

    def recent(self, n: int) -> tuple[ConversationTurn, ...]:
        if n <= 0:
            return ()
        return tuple(self._turns)[-n:]

    def clear(self) -> None:
        self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)

    def __repr__(self) -> str:
        return f"ConversationMemory(turns={len(self._turns)}, max_messages={self.max_messages})"
