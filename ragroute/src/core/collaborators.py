"""
ragroute - Collaborator Protocols
==================================
Structural types for the services the retrieval core consumes but does
not implement.  Concrete adapters live in ``ragroute.src.adapters``;
tests substitute in-memory fakes.

``Embedder``
    LangChain ``Embeddings`` shape: ``embed_query`` / ``embed_documents``
    (order-preserving, one vector per text).
``ModelClient``
    Prompt text in, response text out.  Used for answer generation and
    for LLM-classified routing.
``WebSearcher``
    Query text in, scored ``SearchHit`` list out.
``DocumentLoader``
    Path or URL in, ``Document`` out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ragroute.src.core.models import Document


@runtime_checkable
class Embedder(Protocol):
    """Structural type for any LangChain-compatible embedding model."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...


@runtime_checkable
class ModelClient(Protocol):
    def generate(self, prompt_text: str) -> str: ...


@dataclass(frozen=True, slots=True)
class SearchHit:
    """One result from an external search service."""

    text: str
    score: float
    url: str = ""
    title: str = ""


@runtime_checkable
class WebSearcher(Protocol):
    def search(self, query_text: str) -> list[SearchHit]: ...


@runtime_checkable
class DocumentLoader(Protocol):
    def load(self, location: str) -> Document: ...
