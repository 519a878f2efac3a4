"""Tests for the bounded conversation window."""

import pytest

from ragroute.src.core.errors import InvalidParameterError
from ragroute.src.core.memory import ConversationMemory
from ragroute.src.core.models import ConversationTurn


class TestConversationMemory:
    """FIFO eviction at ``max_messages``."""

    def test_keeps_only_most_recent_turns(self) -> None:
        # Arrange
        memory = ConversationMemory(max_messages=2)
        a, b, c = ConversationTurn.user("A"), ConversationTurn.assistant("B"), ConversationTurn.user("C")

        # Act
        for turn in (a, b, c):
            memory.append(turn)

        # Assert
        assert memory.as_ordered_turns() == (b, c)
        assert len(memory) == 2

    def test_eviction_is_reported(self, observer) -> None:
        memory = ConversationMemory(max_messages=1, observer=observer)

        memory.append(ConversationTurn.user("first"))
        memory.append(ConversationTurn.user("second"))

        (event,) = observer.named("memory.evicted")
        assert event.fields["role"] == "user"
        assert event.fields["window"] == 1

    def test_add_exchange_appends_question_then_answer(self) -> None:
        memory = ConversationMemory(max_messages=10)

        memory.add_exchange("What is RAG?", "Retrieval plus generation.")

        assert [(t.role, t.text) for t in memory.as_ordered_turns()] == [("user", "What is RAG?"), ("assistant", "Retrieval plus generation.")]

    def test_recent_and_clear(self) -> None:
        memory = ConversationMemory(max_messages=5)
        for text in ("1", "2", "3"):
            memory.append(ConversationTurn.user(text))

        assert [t.text for t in memory.recent(2)] == ["2", "3"]
        assert memory.recent(0) == ()

        memory.clear()
        assert memory.as_ordered_turns() == ()

    def test_invalid_window_rejected(self) -> None:
        with pytest.raises(InvalidParameterError):
            ConversationMemory(max_messages=0)

    def test_turn_role_is_validated(self) -> None:
        with pytest.raises(ValueError):
            ConversationTurn("system", "not allowed")  # type: ignore[arg-type]
