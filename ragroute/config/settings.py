"""
ragroute - Centralized Configuration
=====================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` and ``TAVILY_API_KEY`` are typed as ``SecretStr``.
  They are optional at import time so that the retrieval core can be used
  (and tested) with injected collaborators; the Gemini / Tavily adapters
  refuse to build without them.  The raw value is never exposed in repr,
  logs, or tracebacks.

Defaults
--------
Chunking (300 / 30), retrieval (2 results, min score 0.5), the 10-message
memory window and the Gemini model name mirror the reference assistant
configuration.  Every core class takes these knobs as constructor
arguments; ``settings`` only supplies the defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).

    Attributes
    ----------
    ENV : Literal["dev", "prod"]
        Environment mode controlling logging verbosity.
    LOG_LEVEL : str | None
        Explicit level name (``"INFO"``, ``"DEBUG"`` …) overriding ``ENV``.
    GOOGLE_API_KEY : SecretStr | None
        API key for Google AI Studio (Gemini chat + embeddings).
    TAVILY_API_KEY : SecretStr | None
        API key for the Tavily web search service.
    CHUNK_SIZE / CHUNK_OVERLAP : int
        Default segment size and overlap (characters) for ingestion.
    RETRIEVAL_MAX_RESULTS / RETRIEVAL_MIN_SCORE
        Default ``k`` and ``min_score`` for index-backed sources.
    ROUTING_THRESHOLD : float
        Default bound for the threshold-similarity routing strategy.
    AMBIGUOUS_ROUTING_POLICY : Literal["include", "exclude"]
        What the LLM-classified router does with an unclear answer.
    MEMORY_MAX_MESSAGES : int
        Conversation window size.
    MAX_WORKERS : int
        Thread pool size for parallel ingestion.
    """

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    LOG_LEVEL: str | None = None

    # ── API Keys (checked by the adapters) ─────────────────────────────
    GOOGLE_API_KEY: SecretStr | None = None
    TAVILY_API_KEY: SecretStr | None = None

    # ── Model Configuration ────────────────────────────────────────────
    LLM_MODEL: str = "gemini-2.5-flash"
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_OUTPUT_TOKENS: int = 1024
    LLM_TIMEOUT_SECONDS: float = 120.0
    EMBEDDING_MODEL: str = "models/gemini-embedding-001"
    EMBEDDING_TIMEOUT_SECONDS: float = 30.0
    EMBED_BATCH_SIZE: int = 64

    # ── Ingestion Parameters ───────────────────────────────────────────
    CHUNK_SIZE: int = 300
    CHUNK_OVERLAP: int = 30

    # ── Retrieval & Routing ────────────────────────────────────────────
    RETRIEVAL_MAX_RESULTS: int = 2
    RETRIEVAL_MIN_SCORE: float = 0.5
    RETRIEVAL_TIMEOUT_SECONDS: float = 15.0
    CLASSIFICATION_TIMEOUT_SECONDS: float = 20.0
    ROUTING_THRESHOLD: float = 0.75
    AMBIGUOUS_ROUTING_POLICY: Literal["include", "exclude"] = "include"

    # ── Web Search ─────────────────────────────────────────────────────
    WEB_SEARCH_MAX_RESULTS: int = 5
    WEB_SEARCH_TIMEOUT_SECONDS: float = 10.0

    # ── Conversation Memory ────────────────────────────────────────────
    MEMORY_MAX_MESSAGES: int = 10

    # ── Concurrency ────────────────────────────────────────────────────
    MAX_WORKERS: int = 4

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("CHUNK_SIZE", "RETRIEVAL_MAX_RESULTS", "MEMORY_MAX_MESSAGES", "EMBED_BATCH_SIZE", "WEB_SEARCH_MAX_RESULTS")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"must be > 0, got {v}")
        return v

    @field_validator("RETRIEVAL_MIN_SCORE", "ROUTING_THRESHOLD")
    @classmethod
    def _unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"must be within [0, 1], got {v}")
        return v

    @field_validator("MAX_WORKERS")
    @classmethod
    def _workers_range(cls, v: int) -> int:
        if not 1 <= v <= 16:
            raise ValueError(f"MAX_WORKERS must be 1–16, got {v}")
        return v

    @model_validator(mode="after")
    def _overlap_below_size(self) -> "Settings":
        if not 0 <= self.CHUNK_OVERLAP < self.CHUNK_SIZE:
            raise ValueError(f"CHUNK_OVERLAP must be in [0, CHUNK_SIZE), got {self.CHUNK_OVERLAP} (CHUNK_SIZE={self.CHUNK_SIZE})")
        return self

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from ragroute.config.settings import settings
settings = Settings()
