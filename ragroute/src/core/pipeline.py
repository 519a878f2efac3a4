"""
ragroute - RAG Assistant
=========================
Pipeline driver exposed to applications and the CLI.

Architecture
------------
``RAGAssistant`` owns every ``EmbeddingIndex`` it builds, one
``ConversationMemory`` and, once ``configure_routing`` has been called,
one ``QueryRouter``.  It is a single-session object: ``ask`` is meant to
be called sequentially.

Ingestion (one-shot, per document):
    1. Load   → ``DocumentLoader.load(path)``
    2. Clean  → ``clean_text`` (NFC, control chars, whitespace)
    3. Chunk  → ``Chunker`` (size / overlap from ``ChunkConfig``)
    4. Embed  → ``embed_documents`` in batches of ``EMBED_BATCH_SIZE``
    5. Store  → ``EmbeddingIndex.insert_all``

Query flow (``ask``):
    1. History  → ``memory.as_ordered_turns()``
    2. Route    → ``QueryRouter.route``
    3. Augment  → ``Augmentor.augment`` (parallel retrieval, merge, dedup)
    4. Generate → ``ModelClient.generate`` with a timeout
    5. Remember → question + answer appended to memory

Usage:
    assistant = RAGAssistant(embedder, model_client, loader=FileSystemLoader())
    index = assistant.ingest("docs/rag.pdf")
    assistant.configure_routing(RouterConfig.single_source("docs"), [assistant.source_for(index, "RAG notes", name="docs")])
    answer = assistant.ask("What is retrieval-augmented generation?")
"""

from __future__ import annotations

import threading
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from functools import partial

from ragroute.config.prompt_templates import GENERATION_FAILED_RESPONSE
from ragroute.config.settings import settings
from ragroute.src.core.augmentor import Augmentor
from ragroute.src.core.chunker import ChunkConfig, Chunker
from ragroute.src.core.collaborators import DocumentLoader, Embedder, ModelClient
from ragroute.src.core.errors import DimensionMismatchError, InvalidParameterError
from ragroute.src.core.memory import ConversationMemory
from ragroute.src.core.models import Document, Segment
from ragroute.src.core.router import QueryRouter, RouterConfig
from ragroute.src.core.sources import ContentSource, IndexBackedSource
from ragroute.src.database.embedding_index import EmbeddingIndex
from ragroute.src.utils.concurrency import call_with_timeout
from ragroute.src.utils.logger import get_logger
from ragroute.src.utils.observer import PipelineObserver, default_observer
from ragroute.src.utils.text_utils import clean_text, preview

logger = get_logger(__name__)


class RAGAssistant:
    """
    Ingest → route → augment → generate, with bounded conversation memory.

    Parameters
    ----------
    embedder
        ``Embedder`` used for segments at ingestion and for queries.
    model_client
        ``ModelClient`` for answer generation (and LLM-classified routing).
    loader
        ``DocumentLoader`` used by ``ingest``.  Not needed when documents
        are passed to ``ingest_document`` directly.
    memory, augmentor
        Injected collaborators; built from ``settings`` when omitted.
    observer
        Shared by every component the assistant builds.
    max_workers
        Thread pool size for ``ingest_many``.
    embed_batch_size, generation_timeout, embedding_timeout
        Override the corresponding ``settings`` values.
    """

    def __init__(
        self,
        embedder: Embedder,
        model_client: ModelClient,
        loader: DocumentLoader | None = None,
        memory: ConversationMemory | None = None,
        augmentor: Augmentor | None = None,
        observer: PipelineObserver | None = None,
        max_workers: int | None = None,
        embed_batch_size: int | None = None,
        generation_timeout: float | None = None,
        embedding_timeout: float | None = None,
    ) -> None:
        self._embedder = embedder
        self._model = model_client
        self._loader = loader
        self._observer = observer or default_observer()
        self._max_workers = max_workers or settings.MAX_WORKERS
        self._memory = memory or ConversationMemory(observer=self._observer)
        self._augmentor = augmentor or Augmentor(observer=self._observer)
        self._embed_batch_size = embed_batch_size or settings.EMBED_BATCH_SIZE
        self._generation_timeout = generation_timeout or settings.LLM_TIMEOUT_SECONDS
        self._embedding_timeout = embedding_timeout or settings.EMBEDDING_TIMEOUT_SECONDS
        self._router: QueryRouter | None = None
        self._indexes: dict[str, EmbeddingIndex] = {}
        self._documents: dict[str, Document] = {}
        self._lock = threading.Lock()

        if self._embed_batch_size < 1:
            raise InvalidParameterError(f"embed_batch_size must be >= 1, got {self._embed_batch_size}")

    # ── Accessors ──────────────────────────────────────────────────────

    @property
    def memory(self) -> ConversationMemory:
        return self._memory

    @property
    def router(self) -> QueryRouter | None:
        return self._router

    @property
    def indexes(self) -> dict[str, EmbeddingIndex]:
        """Indexes built so far, keyed by document source id."""
        return dict(self._indexes)

    @property
    def documents(self) -> dict[str, Document]:
        """Cleaned documents behind each index; segment offsets point into their text."""
        return dict(self._documents)

    # ══════════════════════════════════════════════════════════════════
    #  INGESTION
    # ══════════════════════════════════════════════════════════════════

    def ingest(self, path: str, chunk_config: ChunkConfig | None = None) -> EmbeddingIndex:
        """Load *path* with the configured loader and index it."""
        if self._loader is None:
            raise InvalidParameterError("ingest(path) needs a DocumentLoader; pass loader= or use ingest_document().")
        document = self._loader.load(path)
        return self.ingest_document(document, chunk_config)

    def ingest_document(self, document: Document, chunk_config: ChunkConfig | None = None) -> EmbeddingIndex:
        """
        Clean, chunk, embed and index one document.

        Returns
        -------
        EmbeddingIndex
            A fresh index named after ``document.source_id`` holding every
            segment of the cleaned document, which is kept in ``documents``.

        Raises
        ------
        InvalidParameterError
            For an invalid chunk configuration, or when an index for
            ``document.source_id`` already exists.
        DimensionMismatchError
            If the embedder returns the wrong number of vectors or vectors
            of inconsistent length.
        """
        chunker = Chunker(chunk_config)
        self._check_new_source(document.source_id)
        t_start = time.perf_counter()

        cleaned = Document(text=clean_text(document.text), source_id=document.source_id)
        if not cleaned.text:
            logger.warning("Document '%s' is empty after cleaning.", document.source_id)

        t_chunk = time.perf_counter()
        segments = chunker.split(cleaned)
        chunk_ms = (time.perf_counter() - t_chunk) * 1000

        t_embed = time.perf_counter()
        vectors = self._embed_segments(segments)
        embed_ms = (time.perf_counter() - t_embed) * 1000

        index = EmbeddingIndex(document.source_id)
        index.insert_all(segments, vectors)
        with self._lock:
            self._check_new_source(document.source_id)
            self._indexes[document.source_id] = index
            self._documents[document.source_id] = cleaned

        elapsed_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[TIMING] '%s': chunking %.1fms, embedding %.1fms, total %.1fms.", document.source_id, chunk_ms, embed_ms, elapsed_ms)
        self._observer.emit("ingest.completed", source_id=document.source_id, segments=len(segments), dimension=index.dimension, elapsed_ms=round(elapsed_ms, 1))
        return index

    def ingest_many(self, paths: Sequence[str], chunk_config: ChunkConfig | None = None) -> dict[str, EmbeddingIndex]:
        """
        Ingest several documents in parallel, one index per document.

        A document that fails is logged (and reported as ``ingest.failed``)
        without stopping the others.  Returns the successful indexes keyed
        by the path they were loaded from, in input order.
        """
        t_start = time.perf_counter()
        built: dict[str, EmbeddingIndex] = {}

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            future_to_path = {pool.submit(self.ingest, path, chunk_config): path for path in paths}

            for future in as_completed(future_to_path):
                path = future_to_path[future]
                try:
                    built[path] = future.result()
                except Exception as exc:
                    logger.exception("Failed to ingest document: %s", path)
                    self._observer.emit("ingest.failed", path=path, error=f"{type(exc).__name__}: {exc}")

        elapsed = time.perf_counter() - t_start
        logger.info("Ingestion complete — %d/%d document(s) indexed in %.2fs.", len(built), len(paths), elapsed)
        return {path: built[path] for path in paths if path in built}

    def _check_new_source(self, source_id: str) -> None:
        if source_id in self._indexes:
            raise InvalidParameterError(f"An index for '{source_id}' already exists.")

    def _embed_segments(self, segments: list[Segment]) -> list[list[float]]:
        vectors: list[list[float]] = []
        size = self._embed_batch_size
        for offset in range(0, len(segments), size):
            texts = [s.text for s in segments[offset: offset + size]]
            batch = call_with_timeout(partial(self._embedder.embed_documents, texts), self._embedding_timeout, label="embed-batch")
            if len(batch) != len(texts):
                raise DimensionMismatchError(f"Embedder returned {len(batch)} vector(s) for {len(texts)} segment(s).")
            vectors.extend(batch)
        return vectors

    # ══════════════════════════════════════════════════════════════════
    #  ROUTING CONFIGURATION
    # ══════════════════════════════════════════════════════════════════

    def source_for(self, index: EmbeddingIndex, description: str, name: str | None = None, k: int | None = None, min_score: float | None = None) -> IndexBackedSource:
        """Wrap *index* in an ``IndexBackedSource`` that shares this assistant's embedder."""
        return IndexBackedSource(name or index.name, description, index, self._embedder, k=k, min_score=min_score)

    def configure_routing(self, config: RouterConfig, sources: Sequence[ContentSource]) -> QueryRouter:
        """Install the routing strategy and the sources it chooses from.  Replaces any previous router."""
        self._router = QueryRouter(config, sources, model_client=self._model, observer=self._observer)
        logger.info("Routing configured: %r", self._router)
        return self._router

    # ══════════════════════════════════════════════════════════════════
    #  QUERY
    # ══════════════════════════════════════════════════════════════════

    def ask(self, query_text: str) -> str:
        """
        Answer *query_text* using the configured routing.

        Retrieval problems degrade the prompt, never the call.  If the
        model client itself fails, a fixed apology is returned and the
        exchange is not stored in memory.
        """
        if not query_text or not query_text.strip():
            raise InvalidParameterError("query_text must not be empty.")
        if self._router is None:
            raise InvalidParameterError("configure_routing() must be called before ask().")

        t_start = time.perf_counter()
        history = self._memory.as_ordered_turns()

        t_route = time.perf_counter()
        decision = self._router.route(query_text, history)
        route_ms = (time.perf_counter() - t_route) * 1000

        t_augment = time.perf_counter()
        prompt = self._augmentor.augment(query_text, decision, self._router.sources, history)
        augment_ms = (time.perf_counter() - t_augment) * 1000

        t_llm = time.perf_counter()
        try:
            answer = call_with_timeout(partial(self._model.generate, prompt.render()), self._generation_timeout, label="generate")
        except Exception as exc:
            logger.exception("Answer generation failed for '%s'.", preview(query_text, 40))
            self._observer.emit("ask.generation_failed", error=f"{type(exc).__name__}: {exc}")
            return GENERATION_FAILED_RESPONSE
        llm_ms = (time.perf_counter() - t_llm) * 1000

        self._memory.add_exchange(query_text, answer)

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[TIMING] route: %.1fms | augment: %.1fms | llm: %.1fms | total: %.1fms", route_ms, augment_ms, llm_ms, total_ms)
        self._observer.emit(
            "ask.completed",
            sources=list(decision.source_names),
            passages=len(prompt.evidence),
            degraded=prompt.degraded,
            route_ms=round(route_ms, 1),
            augment_ms=round(augment_ms, 1),
            llm_ms=round(llm_ms, 1),
            total_ms=round(total_ms, 1),
        )
        return answer

    def reset_conversation(self) -> None:
        self._memory.clear()

    def __repr__(self) -> str:
        return f"RAGAssistant(indexes={list(self._indexes)}, router={self._router!r}, memory={self._memory!r})"
