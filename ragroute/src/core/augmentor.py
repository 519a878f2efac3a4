"""
ragroute - Augmentor
=====================
Turns a routing decision into the prompt that goes to the model client.

Flow:
    1. Call ``retrieve`` on every routed source *concurrently*, with one
       shared timeout.
    2. A source that raises or overruns contributes zero passages.
    3. Merge: source-registration order first, then each source's own
       ranking.  No cross-source re-ranking, since scores from different
       sources are not comparable.
    4. Drop passages whose segment was already seen (exact identity only).
    5. Build an ``AugmentedPrompt``: system instructions, evidence (only
       if any survived), prior turns, then the query verbatim.

If every routed source fails the result is still a usable pass-through
prompt, flagged ``degraded=True``; ``augment`` never raises for
query-time retrieval failures.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from functools import partial

from ragroute.config.prompt_templates import SYSTEM_PROMPT
from ragroute.config.settings import settings
from ragroute.src.core.errors import AllSourcesFailedError, InvalidParameterError, SourceUnavailableError
from ragroute.src.core.models import AugmentedPrompt, ConversationTurn, RetrievedPassage, RoutingDecision, Segment
from ragroute.src.core.sources import ContentSource
from ragroute.src.utils.concurrency import fan_out
from ragroute.src.utils.logger import get_logger
from ragroute.src.utils.observer import PipelineObserver, default_observer

logger = get_logger(__name__)


def merge_passages(ordered_results: Sequence[Sequence[RetrievedPassage]]) -> list[RetrievedPassage]:
    """
    Concatenate per-source rankings and drop repeated segments.

    The first occurrence of a segment wins, so a segment found by two
    sources is credited to the earlier-registered one.
    """
    seen: set[Segment] = set()
    merged: list[RetrievedPassage] = []
    for passages in ordered_results:
        for passage in passages:
            if passage.segment in seen:
                continue
            seen.add(passage.segment)
            merged.append(passage)
    return merged


class Augmentor:
    """
    Parallel retrieval + merge + prompt assembly.

    Parameters
    ----------
    system_prompt
        Instructions placed first in every prompt.
    retrieval_timeout
        Seconds to wait for all routed sources together.
    observer
        Receives ``source.failed``, ``retrieval.all_failed`` and
        ``augment.completed`` events.
    """

    __slots__ = ("system_prompt", "retrieval_timeout", "_observer")

    def __init__(self, system_prompt: str = SYSTEM_PROMPT, retrieval_timeout: float | None = None, observer: PipelineObserver | None = None) -> None:
        self.system_prompt = system_prompt
        self.retrieval_timeout = retrieval_timeout if retrieval_timeout is not None else settings.RETRIEVAL_TIMEOUT_SECONDS
        if self.retrieval_timeout <= 0:
            raise InvalidParameterError(f"retrieval_timeout must be > 0, got {self.retrieval_timeout}")
        self._observer = observer or default_observer()

    def augment(self, query: str, decision: RoutingDecision, sources: Sequence[ContentSource], history: Sequence[ConversationTurn] = ()) -> AugmentedPrompt:
        """
        Retrieve from the sources named in *decision* and build the prompt.

        *sources* is the full registered list; its order is the merge order.
        Names in the decision that match no source are ignored.
        """
        t_start = time.perf_counter()
        selected = [s for s in sources if s.name in decision]
        unknown = [name for name in decision.source_names if name not in {s.name for s in sources}]
        if unknown:
            logger.warning("Routing decision names unregistered source(s): %s", unknown)

        calls = {source.name: partial(source.retrieve, query) for source in selected}
        outcome = fan_out(calls, timeout=self.retrieval_timeout)

        for name, exc in outcome.failures.items():
            error = exc if isinstance(exc, SourceUnavailableError) else SourceUnavailableError(name, f"{type(exc).__name__}: {exc}")
            self._observer.emit("source.failed", source=name, error=str(error))

        failed = tuple(name for name in calls if name in outcome.failures)
        degraded = outcome.all_failed
        if degraded:
            err = AllSourcesFailedError(failed)
            self._observer.emit("retrieval.all_failed", sources=list(failed), error=str(err))

        evidence = merge_passages([outcome.results[name] for name in calls if name in outcome.results])

        prompt = AugmentedPrompt(
            query=query,
            system_instructions=self.system_prompt,
            evidence=tuple(evidence),
            history=tuple(history),
            failed_sources=failed,
            degraded=degraded,
            routed_sources=tuple(calls),
        )

        elapsed_ms = (time.perf_counter() - t_start) * 1000
        self._observer.emit("augment.completed", routed=list(calls), passages=len(evidence), failed=list(failed), elapsed_ms=round(elapsed_ms, 1))
        return prompt

    def __repr__(self) -> str:
        return f"Augmentor(retrieval_timeout={self.retrieval_timeout})"
