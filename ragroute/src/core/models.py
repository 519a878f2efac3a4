"""
ragroute - Core Data Model
===========================
Immutable value types shared by every stage of the pipeline.

``Document`` → ``Segment`` (ingestion) → ``RetrievedPassage`` (query time)
→ ``AugmentedPrompt`` (sent to the model client).  ``ConversationTurn``
is what the conversation memory stores, and ``RoutingDecision`` is what
the router hands to the augmentor.

Segments keep only the *source id* of their document rather than a
reference to the ``Document`` object: provenance is for display and the
segment never mutates or owns its document.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from ragroute.config.prompt_templates import EVIDENCE_BLOCK_TEMPLATE, HISTORY_BLOCK_TEMPLATE, PASSAGE_TEMPLATE

Role = Literal["user", "assistant"]
EmbeddingVector = list[float]

_ROLE_LABELS: dict[str, str] = {"user": "User", "assistant": "Assistant"}


@dataclass(frozen=True, slots=True)
class Document:
    """Raw extracted text plus the path or URL it came from."""

    text: str
    source_id: str


@dataclass(frozen=True, slots=True)
class Segment:
    """
    Contiguous slice ``[start, end)`` of a document's text.

    Two segments are the same segment when source, offsets and text are
    all equal; the augmentor relies on this for de-duplication.
    """

    text: str
    source_id: str
    start: int
    end: int
    index: int = 0

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True, slots=True)
class RetrievedPassage:
    """A segment returned for one query, with its score and the source that produced it."""

    segment: Segment
    score: float
    source_name: str


@dataclass(frozen=True, slots=True)
class ConversationTurn:
    role: Role
    text: str

    def __post_init__(self) -> None:
        if self.role not in _ROLE_LABELS:
            raise ValueError(f"role must be 'user' or 'assistant', got {self.role!r}")

    @classmethod
    def user(cls, text: str) -> ConversationTurn:
        return cls("user", text)

    @classmethod
    def assistant(cls, text: str) -> ConversationTurn:
        return cls("assistant", text)


@dataclass(frozen=True, slots=True)
class RoutingDecision:
    """
    Source names selected for one query, in source-registration order.

    An empty decision means "answer without retrieval".
    """

    source_names: tuple[str, ...] = ()
    strategy: str = ""
    reason: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.source_names

    def __contains__(self, source_name: object) -> bool:
        return source_name in self.source_names


@dataclass(frozen=True, slots=True)
class AugmentedPrompt:
    """
    Everything the model client needs for one answer.

    ``render()`` lays the parts out in a fixed order: system instructions,
    evidence (only when present), prior turns, then the query verbatim.
    """

    query: str
    system_instructions: str = ""
    evidence: tuple[RetrievedPassage, ...] = ()
    history: tuple[ConversationTurn, ...] = ()
    failed_sources: tuple[str, ...] = ()
    degraded: bool = False
    routed_sources: tuple[str, ...] = ()

    @property
    def has_evidence(self) -> bool:
        return bool(self.evidence)

    def evidence_block(self) -> str:
        if not self.evidence:
            return ""
        passages = "\n\n".join(
            PASSAGE_TEMPLATE.format(rank=rank, source=p.source_name, score=p.score, text=p.segment.text)
            for rank, p in enumerate(self.evidence, 1)
        )
        return EVIDENCE_BLOCK_TEMPLATE.format(passages=passages)

    def history_block(self) -> str:
        if not self.history:
            return ""
        return HISTORY_BLOCK_TEMPLATE.format(turns=format_turns(self.history))

    def render(self) -> str:
        parts = [self.system_instructions, self.evidence_block(), self.history_block(), self.query]
        return "\n\n".join(part for part in parts if part)


def format_turns(turns: tuple[ConversationTurn, ...] | list[ConversationTurn]) -> str:
    """``User: …`` / ``Assistant: …`` lines, oldest first."""
    return "\n".join(f"{_ROLE_LABELS[t.role]}: {t.text}" for t in turns)
