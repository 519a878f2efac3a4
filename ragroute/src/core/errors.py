"""
ragroute - Error Taxonomy
==========================
Configuration-time errors (``InvalidParameterError``,
``DimensionMismatchError``) abort the calling operation.  Query-time
errors (``SourceUnavailableError``, ``ClassificationAmbiguousError``,
``AllSourcesFailedError``) are recovered inside the router and the
augmentor so that a flaky source never blocks the conversation.
"""

from __future__ import annotations


class RagRouteError(Exception):
    """Base class for every error raised by ragroute."""


class InvalidParameterError(RagRouteError, ValueError):
    """Bad chunking, retrieval or routing configuration."""


class DimensionMismatchError(RagRouteError, ValueError):
    """Embedding vectors inconsistent with each other or with the index."""


class SourceUnavailableError(RagRouteError):
    """A content source's underlying call failed or timed out."""

    def __init__(self, source_name: str, reason: str) -> None:
        super().__init__(f"Source '{source_name}' unavailable: {reason}")
        self.source_name = source_name
        self.reason = reason


class ClassificationAmbiguousError(RagRouteError):
    """The routing model's answer could not be mapped to a decision."""

    def __init__(self, response: str) -> None:
        super().__init__(f"Could not parse routing decision from: {response!r}")
        self.response = response


class AllSourcesFailedError(RagRouteError):
    """Every selected source failed; reported, never raised to ``augment`` callers."""

    def __init__(self, source_names: tuple[str, ...]) -> None:
        super().__init__(f"All selected sources failed: {', '.join(source_names)}")
        self.source_names = source_names


class DocumentNotFoundError(RagRouteError, FileNotFoundError):
    """The document path or URL does not exist."""


class UnsupportedFormatError(RagRouteError, ValueError):
    """The document loader cannot read this file type or content type."""
