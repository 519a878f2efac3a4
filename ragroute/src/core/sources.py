"""
ragroute - Content Sources
===========================
Uniform ``retrieve(query_text) → ranked passages`` contract over the two
kinds of evidence the assistant can consult.

``IndexBackedSource``
    Embeds the query with the injected embedder and searches one
    ``EmbeddingIndex`` with a fixed ``(k, min_score)``.  Query embeddings
    are memoised per source, so the threshold router's probe and the
    retrieval that follows it cost a single embedding call.

``ExternalSearchSource``
    Delegates to a web/search collaborator.  Its scores are whatever the
    search service reports and are **not** comparable with index scores.

Each source carries a ``description`` that the LLM-classified router
shows to the model.  Both variants raise ``SourceUnavailableError`` when
their collaborator fails; the augmentor turns that into zero passages.
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import lru_cache
from typing import Protocol, runtime_checkable

from ragroute.config.settings import settings
from ragroute.src.core.collaborators import Embedder, SearchHit, WebSearcher
from ragroute.src.core.errors import DimensionMismatchError, InvalidParameterError, SourceUnavailableError
from ragroute.src.core.models import RetrievedPassage, Segment
from ragroute.src.database.embedding_index import EmbeddingIndex
from ragroute.src.utils.logger import get_logger
from ragroute.src.utils.text_utils import preview

logger = get_logger(__name__)

_QUERY_EMBED_CACHE_SIZE = 64


# ══════════════════════════════════════════════════════════════════════
#  SOURCE CONTRACT
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class ContentSource(Protocol):
    """What the router and the augmentor need from a source."""

    name: str
    description: str

    def retrieve(self, query_text: str) -> list[RetrievedPassage]: ...


# ══════════════════════════════════════════════════════════════════════
#  INDEX-BACKED SOURCE
# ══════════════════════════════════════════════════════════════════════


class IndexBackedSource:
    """
    Content source over one ``EmbeddingIndex``.

    Parameters
    ----------
    name
        Unique source name used in routing decisions.
    description
        What the indexed documents are about (shown to the routing model).
    index
        The index to search.  Borrowed, never modified.
    embedder
        ``Embedder`` used for the query vector.
    k, min_score
        Maximum passages per query and minimum relevance score.
    """

    __slots__ = ("name", "description", "index", "k", "min_score", "_embedder", "_embed_query")

    def __init__(self, name: str, description: str, index: EmbeddingIndex, embedder: Embedder, k: int | None = None, min_score: float | None = None) -> None:
        self.name = name
        self.description = description
        self.index = index
        self.k = k if k is not None else settings.RETRIEVAL_MAX_RESULTS
        self.min_score = min_score if min_score is not None else settings.RETRIEVAL_MIN_SCORE
        if self.k < 1:
            raise InvalidParameterError(f"k must be >= 1, got {self.k}")
        if not 0.0 <= self.min_score <= 1.0:
            raise InvalidParameterError(f"min_score must be within [0, 1], got {self.min_score}")

        self._embedder = embedder
        self._embed_query = lru_cache(maxsize=_QUERY_EMBED_CACHE_SIZE)(self._embed_uncached)

    def _embed_uncached(self, query_text: str) -> tuple[float, ...]:
        return tuple(self._embedder.embed_query(query_text))

    def _query_vector(self, query_text: str) -> tuple[float, ...]:
        try:
            return self._embed_query(query_text)
        except Exception as exc:
            raise SourceUnavailableError(self.name, f"embedding failed: {exc}") from exc

    def retrieve(self, query_text: str) -> list[RetrievedPassage]:
        vector = self._query_vector(query_text)
        try:
            hits = self.index.query(vector, k=self.k, min_score=self.min_score)
        except DimensionMismatchError as exc:
            raise SourceUnavailableError(self.name, str(exc)) from exc

        logger.debug("Source '%s': %d passage(s) for '%s'.", self.name, len(hits), preview(query_text, 40))
        return [RetrievedPassage(segment=p.segment, score=p.score, source_name=self.name) for p in hits]

    def best_score(self, query_text: str) -> float | None:
        """Cheap relevance probe: score of the closest segment, ignoring ``min_score``."""
        vector = self._query_vector(query_text)
        try:
            return self.index.best_score(vector)
        except DimensionMismatchError as exc:
            raise SourceUnavailableError(self.name, str(exc)) from exc

    def __repr__(self) -> str:
        return f"IndexBackedSource(name='{self.name}', index={self.index!r}, k={self.k}, min_score={self.min_score})"


# ══════════════════════════════════════════════════════════════════════
#  EXTERNAL SEARCH SOURCE
# ══════════════════════════════════════════════════════════════════════


class ExternalSearchSource:
    """
    Content source backed by a ``WebSearcher``.

    Each hit becomes a one-segment passage whose ``source_id`` is the hit
    URL (or the source name when the service gives none).  Hits keep the
    service's ranking; at most ``max_results`` are returned.
    """

    __slots__ = ("name", "description", "max_results", "_searcher")

    def __init__(self, name: str, description: str, searcher: WebSearcher, max_results: int | None = None) -> None:
        self.name = name
        self.description = description
        self.max_results = max_results if max_results is not None else settings.WEB_SEARCH_MAX_RESULTS
        if self.max_results < 1:
            raise InvalidParameterError(f"max_results must be >= 1, got {self.max_results}")
        self._searcher = searcher

    def retrieve(self, query_text: str) -> list[RetrievedPassage]:
        try:
            hits: Sequence[SearchHit] = self._searcher.search(query_text)
        except Exception as exc:
            raise SourceUnavailableError(self.name, f"search failed: {exc}") from exc

        passages: list[RetrievedPassage] = []
        for position, hit in enumerate(hits[: self.max_results]):
            if not hit.text.strip():
                continue
            segment = Segment(text=hit.text, source_id=hit.url or self.name, start=0, end=len(hit.text), index=position)
            passages.append(RetrievedPassage(segment=segment, score=float(hit.score), source_name=self.name))

        logger.debug("Source '%s': %d web result(s) for '%s'.", self.name, len(passages), preview(query_text, 40))
        return passages

    def __repr__(self) -> str:
        return f"ExternalSearchSource(name='{self.name}', max_results={self.max_results})"
