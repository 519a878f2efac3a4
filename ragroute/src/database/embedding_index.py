"""
ragroute - EmbeddingIndex
==========================
In-memory vector index mapping segments to embedding vectors, with
cosine-similarity nearest-neighbour search.

Design decisions:
  • **Portable scores** — cosine similarity is mapped to ``[0, 1]`` with
    ``(cos + 1) / 2`` so that ``min_score`` thresholds mean the same thing
    for every index.  Zero vectors have cosine 0 with everything (score 0.5).
  • **Fixed dimensionality** — established by the first ``insert_all`` and
    enforced afterwards; a batch is validated completely before any row is
    stored, so a failed insert leaves the index unchanged.
  • **Read-mostly** — ingestion writes once; afterwards the normalised
    vector matrix is only read, so concurrent queries need no lock.
    Concurrent *writers* are not supported.
  • **No implicit dedup** — inserting the same (segment, vector) pair twice
    stores two rows and both come back from ``query``.

Usage:
    index = EmbeddingIndex("support_rag.pdf")
    index.insert_all(segments, embedder.embed_documents([s.text for s in segments]))
    passages = index.query(embedder.embed_query("what is RAG?"), k=2, min_score=0.5)
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from ragroute.src.core.errors import DimensionMismatchError, InvalidParameterError
from ragroute.src.core.models import RetrievedPassage, Segment
from ragroute.src.utils.logger import get_logger

logger = get_logger(__name__)


def similarity_to_score(cosine: np.ndarray) -> np.ndarray:
    """Map cosine similarity in ``[-1, 1]`` to a relevance score in ``[0, 1]``."""
    return np.clip((cosine + 1.0) / 2.0, 0.0, 1.0)


def _normalise_rows(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0.0] = 1.0
    return matrix / norms


class EmbeddingIndex:
    """
    Insertion-ordered store of ``(segment id, Segment, vector)`` rows.

    Parameters
    ----------
    name
        Human-readable identifier (usually the document source id).
        Passages returned by ``query`` carry it as their ``source_name``.
    """

    __slots__ = ("name", "_ids", "_segments", "_matrix", "_dimension")

    def __init__(self, name: str) -> None:
        self.name = name
        self._ids: list[str] = []
        self._segments: list[Segment] = []
        self._matrix: np.ndarray | None = None
        self._dimension: int | None = None

    # ── Properties ─────────────────────────────────────────────────────

    @property
    def dimension(self) -> int | None:
        """Vector length, or ``None`` until the first insert."""
        return self._dimension

    @property
    def segments(self) -> tuple[Segment, ...]:
        return tuple(self._segments)

    def __len__(self) -> int:
        return len(self._ids)

    # ── Writes ─────────────────────────────────────────────────────────

    def insert_all(self, segments: Sequence[Segment], vectors: Sequence[Sequence[float]]) -> list[str]:
        """
        Store ``segments[i]`` with ``vectors[i]`` for every *i*.

        Returns
        -------
        list[str]
            Internal ids of the new rows, in input order.

        Raises
        ------
        DimensionMismatchError
            If the two sequences differ in length, if the vectors in the
            batch do not all have the same length, or if that length
            differs from the dimensionality established by an earlier insert.
        """
        if len(segments) != len(vectors):
            raise DimensionMismatchError(f"Length mismatch: {len(segments)} segments vs {len(vectors)} vectors.")
        if not segments:
            return []

        lengths = {len(v) for v in vectors}
        if len(lengths) != 1:
            raise DimensionMismatchError(f"Inconsistent vector lengths in batch: {sorted(lengths)}")
        (dimension,) = lengths
        if dimension == 0:
            raise DimensionMismatchError("Embedding vectors must not be empty.")
        if self._dimension is not None and dimension != self._dimension:
            raise DimensionMismatchError(f"Index '{self.name}' holds {self._dimension}-d vectors, got {dimension}-d.")

        batch = _normalise_rows(np.asarray(vectors, dtype=np.float64))

        first = len(self._ids)
        new_ids = [f"{self.name}:{first + offset}" for offset in range(len(segments))]
        self._ids.extend(new_ids)
        self._segments.extend(segments)

        # Matrix last: every row a reader can see already has its segment.
        self._matrix = batch if self._matrix is None else np.vstack([self._matrix, batch])
        self._dimension = dimension

        logger.debug("Index '%s': +%d row(s), %d total, dim=%d.", self.name, len(new_ids), len(self._ids), dimension)
        return new_ids

    # ── Reads ──────────────────────────────────────────────────────────

    def query(self, vector: Sequence[float], k: int, min_score: float = 0.0) -> list[RetrievedPassage]:
        """
        Return up to *k* passages with ``score >= min_score``, best first.

        Equal scores keep insertion order.

        Raises
        ------
        InvalidParameterError
            If ``k < 1``.
        DimensionMismatchError
            If *vector* does not match the index dimensionality.
        """
        if k < 1:
            raise InvalidParameterError(f"k must be >= 1, got {k}")

        # Snapshot the matrix: a reader never sees a half-applied insert.
        matrix = self._matrix
        if matrix is None:
            return []

        query_vec = np.asarray(vector, dtype=np.float64)
        if query_vec.ndim != 1 or query_vec.shape[0] != matrix.shape[1]:
            raise DimensionMismatchError(f"Query vector has length {query_vec.size}, index '{self.name}' expects {matrix.shape[1]}.")

        norm = np.linalg.norm(query_vec)
        if norm > 0.0:
            query_vec = query_vec / norm

        scores = similarity_to_score(matrix @ query_vec)
        order = np.argsort(-scores, kind="stable")

        passages: list[RetrievedPassage] = []
        for row in order:
            score = float(scores[row])
            if score < min_score:
                break
            passages.append(RetrievedPassage(segment=self._segments[row], score=score, source_name=self.name))
            if len(passages) == k:
                break
        return passages

    def best_score(self, vector: Sequence[float]) -> float | None:
        """Score of the single closest row, or ``None`` for an empty index."""
        top = self.query(vector, k=1)
        return top[0].score if top else None

    def __repr__(self) -> str:
        return f"EmbeddingIndex(name='{self.name}', rows={len(self)}, dim={self._dimension})"
