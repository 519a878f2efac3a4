"""
ragroute - Interactive Assistant
=================================
CLI entry point that orchestrates:
    1. Validate that ``GOOGLE_API_KEY`` is set (fail-fast).
    2. Initialise the Gemini embedder and chat model.
    3. Ingest every document given on the command line (in parallel).
    4. Register one source per document (plus Tavily web search with ``--web``).
    5. Answer ``--question`` once, or run a question/answer loop.

Documents are given as ``path[=description]``; the description is what
the LLM-classified router sees.  Without one, the document path is used.

Strategies:
    single     Always the first document.
    threshold  Documents whose best segment score exceeds ``--threshold``.
    llm        Let the model pick (yes/no/maybe or numbered selection).
    fanout     Every source, including web search.

Usage:
    python -m ragroute.scripts.chat docs/rag.pdf="Retrieval-augmented generation"
    python -m ragroute.scripts.chat a.md b.md --strategy llm --web
    python -m ragroute.scripts.chat notes.txt --question "What is a chunk?"
"""

from __future__ import annotations

import argparse
import sys
import time
from collections.abc import Callable
from pathlib import Path

# ── Ensure project root is importable when run directly ────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

STRATEGIES = ("single", "threshold", "llm", "fanout")
EXIT_COMMANDS = frozenset({"exit", "quit", "quitter"})
WEB_SOURCE_NAME = "web"
WEB_SOURCE_DESCRIPTION = "Live web search for recent events and anything not covered by the documents"


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="chat", description="ragroute — Ask questions about your documents with routed retrieval.")
    parser.add_argument("documents", nargs="+", help="Document paths or URLs, optionally as path=description.")
    parser.add_argument("--strategy", choices=STRATEGIES, default="single", help="Routing strategy (default: single).")
    parser.add_argument("--web", action="store_true", default=False, help="Add Tavily web search as an extra source.")
    parser.add_argument("--threshold", type=float, default=None, help="Score bound for the threshold strategy.")
    parser.add_argument("--chunk-size", type=int, default=None, help="Segment size in characters.")
    parser.add_argument("--overlap", type=int, default=None, help="Segment overlap in characters.")
    parser.add_argument("--question", "-q", default=None, help="Ask one question and exit.")
    return parser.parse_args(argv)


def parse_document_arg(arg: str) -> tuple[str, str | None]:
    """Split ``path=description``.  URLs with a query string are never split."""
    path, sep, description = arg.partition("=")
    if not sep or (arg.startswith(("http://", "https://")) and "?" in path):
        return arg, None
    return path, description.strip() or None


# ── Question / answer loop ─────────────────────────────────────────────

def run_loop(ask: Callable[[str], str], read: Callable[[str], str] = input, write: Callable[[str], None] = print) -> int:
    """
    Read questions until an exit command or end of input.

    Blank lines are skipped.  Returns the number of questions answered.
    """
    answered = 0
    while True:
        try:
            line = read("\nYou: ")
        except (EOFError, KeyboardInterrupt):
            write("")
            break

        question = line.strip()
        if not question:
            continue
        if question.lower() in EXIT_COMMANDS:
            break

        write(f"\nAssistant: {ask(question)}")
        answered += 1
    return answered


# ── Main Orchestration ─────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from ragroute.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        sys.exit(1)
    settings_ms = (time.perf_counter() - t_settings) * 1000

    from ragroute.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Settings loaded in %.1fms", settings_ms)

    if settings.GOOGLE_API_KEY is None or not settings.GOOGLE_API_KEY.get_secret_value():
        print("\n[FATAL] GOOGLE_API_KEY is not set.\n")
        sys.exit(1)

    _print_header(settings, args)

    from ragroute.src.adapters.gemini import GeminiModelClient, build_gemini_embedder
    from ragroute.src.adapters.loader import FileSystemLoader
    from ragroute.src.core.chunker import ChunkConfig
    from ragroute.src.core.errors import RagRouteError
    from ragroute.src.core.pipeline import RAGAssistant

    # ── 1. Initialise Gemini clients (timed) ───────────────────────────
    t_models = time.perf_counter()
    try:
        embedder = build_gemini_embedder()
        model_client = GeminiModelClient()
    except Exception:
        logger.exception("Failed to initialise Gemini clients.")
        sys.exit(1)
    models_ms = (time.perf_counter() - t_models) * 1000

    assistant = RAGAssistant(embedder, model_client, loader=FileSystemLoader())

    # ── 2. Ingest documents ────────────────────────────────────────────
    try:
        chunk_config = ChunkConfig(
            max_chunk_size=args.chunk_size or settings.CHUNK_SIZE,
            overlap=args.overlap if args.overlap is not None else settings.CHUNK_OVERLAP,
        )
    except RagRouteError as exc:
        print(f"\n[FATAL] {exc}\n")
        sys.exit(2)

    described = [parse_document_arg(arg) for arg in args.documents]
    t_ingest = time.perf_counter()
    indexes = assistant.ingest_many([path for path, _ in described], chunk_config)
    ingest_s = time.perf_counter() - t_ingest

    sources = []
    for path, description in described:
        index = indexes.get(path)
        if index is None:
            continue
        sources.append(assistant.source_for(index, description or index.name))
    if not sources:
        print("\n[FATAL] No document could be ingested.\n")
        sys.exit(1)

    # ── 3. Web search (optional) ───────────────────────────────────────
    if args.web:
        from ragroute.src.adapters.tavily import TavilySearcher
        from ragroute.src.core.sources import ExternalSearchSource

        try:
            sources.append(ExternalSearchSource(WEB_SOURCE_NAME, WEB_SOURCE_DESCRIPTION, TavilySearcher()))
        except RagRouteError as exc:
            logger.warning("Web search disabled: %s", exc)

    # ── 4. Routing ─────────────────────────────────────────────────────
    try:
        assistant.configure_routing(_router_config(args, sources[0].name), sources)
    except RagRouteError as exc:
        print(f"\n[FATAL] {exc}\n")
        sys.exit(2)

    _print_footer(len(described), len(indexes), sum(len(i) for i in indexes.values()), [s.name for s in sources], settings_ms, models_ms, ingest_s, time.perf_counter() - t_start)

    # ── 5. Ask ─────────────────────────────────────────────────────────
    if args.question:
        print(assistant.ask(args.question))
        return
    print("Type your question ('exit' to quit).")
    run_loop(assistant.ask)


def _router_config(args: argparse.Namespace, first_source: str) -> object:
    from ragroute.src.core.router import RouterConfig

    if args.strategy == "single":
        return RouterConfig.single_source(first_source)
    if args.strategy == "threshold":
        return RouterConfig.threshold_similarity(threshold=args.threshold)
    if args.strategy == "llm":
        return RouterConfig.llm_classified()
    return RouterConfig.multi_source_fan_out()


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object, args: argparse.Namespace) -> None:
    api_key_val = settings.GOOGLE_API_KEY.get_secret_value()  # type: ignore[attr-defined]
    masked = f"****{api_key_val[-4:]}" if len(api_key_val) > 4 else "****"

    print()
    print("=" * 60)
    print("  RAGROUTE — Routed Retrieval Assistant")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                   # type: ignore[attr-defined]
    print(f"  LLM          : {settings.LLM_MODEL}")             # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_MODEL}")       # type: ignore[attr-defined]
    print(f"  Strategy     : {args.strategy}{' + web' if args.web else ''}")
    print(f"  Documents    : {len(args.documents)}")
    print(f"  Workers      : {settings.MAX_WORKERS}")           # type: ignore[attr-defined]
    print(f"  API Key      : {masked}")
    print("=" * 60)
    print()


def _print_footer(requested: int, ingested: int, segments: int, source_names: list[str], settings_ms: float, models_ms: float, ingest_s: float, elapsed: float) -> None:
    print()
    print("=" * 60)
    print("  INGESTION SUMMARY")
    print("-" * 60)
    print(f"  Documents requested  : {requested}")
    print(f"  Documents indexed    : {ingested}")
    print(f"  Segments stored      : {segments}")
    print(f"  Sources              : {', '.join(source_names)}")
    print("-" * 60)
    print("  TIMING BREAKDOWN")
    print("-" * 60)
    print(f"  Settings + .env load : {settings_ms:>8.1f}ms")
    print(f"  Gemini clients init  : {models_ms:>8.1f}ms")
    print(f"  Ingestion            : {ingest_s:>8.2f}s")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
