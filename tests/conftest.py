"""
Shared test fixtures and in-memory collaborators.

Provides: keyword-count embedder, scripted model client, canned web searcher,
failing / slow content sources, recording observer.
No test touches the network or the Gemini / Tavily clients.
"""

import re
import time

import pytest

from ragroute.src.core.collaborators import SearchHit
from ragroute.src.core.errors import SourceUnavailableError
from ragroute.src.core.models import Document, RetrievedPassage, Segment
from ragroute.src.utils.observer import RecordingObserver

VOCABULARY = ("rag", "retrieval", "embedding", "chunk", "cat", "dog", "weather", "python")

_WORD_RE = re.compile(r"\w+")


class FakeEmbedder:
    """Vector = occurrence count of each vocabulary word (deterministic, order-preserving)."""

    def __init__(self, vocabulary=VOCABULARY, error=None, delay=0.0, wrong_count=False):
        self.vocabulary = vocabulary
        self.error = error
        self.delay = delay
        self.wrong_count = wrong_count
        self.document_calls = []
        self.query_calls = []

    def vector(self, text):
        words = _WORD_RE.findall(text.lower())
        return [float(words.count(term)) for term in self.vocabulary]

    def embed_documents(self, texts):
        self.document_calls.append(list(texts))
        self._maybe_fail()
        vectors = [self.vector(t) for t in texts]
        return vectors[:-1] if self.wrong_count else vectors

    def embed_query(self, text):
        self.query_calls.append(text)
        self._maybe_fail()
        return self.vector(text)

    def _maybe_fail(self):
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error


class MappingEmbedder:
    """Looks texts up in a fixed ``{text: vector}`` table."""

    def __init__(self, table):
        self.table = dict(table)

    def embed_documents(self, texts):
        return [list(self.table[t]) for t in texts]

    def embed_query(self, text):
        return list(self.table[text])


class FakeModelClient:
    """Returns scripted replies in order, then ``default``; records every prompt."""

    def __init__(self, replies=(), default="OK", error=None, delay=0.0):
        self.replies = list(replies)
        self.default = default
        self.error = error
        self.delay = delay
        self.prompts = []

    def generate(self, prompt_text):
        self.prompts.append(prompt_text)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.replies:
            return self.replies.pop(0)
        return self.default


class FakeSearcher:
    def __init__(self, hits=(), error=None):
        self.hits = list(hits)
        self.error = error
        self.queries = []

    def search(self, query_text):
        self.queries.append(query_text)
        if self.error is not None:
            raise self.error
        return list(self.hits)


class StaticSource:
    """Content source returning fixed passages (or failing / stalling)."""

    def __init__(self, name, passages=(), description="", error=None, delay=0.0):
        self.name = name
        self.description = description or f"{name} documents"
        self.passages = list(passages)
        self.error = error
        self.delay = delay
        self.calls = 0

    def retrieve(self, query_text):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.passages)


def make_passage(text, source_name="docs", score=0.9, start=0, source_id=None):
    segment = Segment(text=text, source_id=source_id or f"{source_name}.txt", start=start, end=start + len(text))
    return RetrievedPassage(segment=segment, score=score, source_name=source_name)


def failing_source(name):
    return StaticSource(name, error=SourceUnavailableError(name, "connection refused"))


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def searcher():
    return FakeSearcher(hits=[
        SearchHit(text="Sunny in Paris today.", score=0.8, url="https://weather.example/paris", title="Paris"),
        SearchHit(text="Rain expected tomorrow.", score=0.6, url="https://weather.example/tomorrow"),
    ])


@pytest.fixture
def rag_document():
    """Three paragraphs, each about one topic."""
    return Document(
        text=(
            "RAG combines retrieval with generation. Retrieval finds passages.\n\n"
            "An embedding is a vector. Every chunk gets an embedding.\n\n"
            "The cat sat near the dog. The dog ignored the cat."
        ),
        source_id="rag.txt",
    )
