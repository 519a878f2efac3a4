"""
ragroute - Query Router
========================
Decides, per query, which content sources (if any) to consult.

Strategies
----------
The strategy is a tagged variant chosen once per assistant configuration
(``RouterConfig.strategy``) and dispatched in ``QueryRouter.route``:

``SINGLE_SOURCE``
    Always the one configured source.
``THRESHOLD_SIMILARITY``
    Probe every index-backed source concurrently with the query (best
    segment score) and keep the sources whose best score exceeds the
    threshold (a score equal to it does not pass).  Sources without a probe (web search) are skipped, and so
    are sources whose probe fails or times out.  No survivor → no retrieval.
``LLM_CLASSIFIED``
    One model call.  With a single registered source the model answers a
    yes / no / maybe topic gate; with several it picks sources by number
    or name, or says "none".  Answers are parsed forgivingly
    (case-insensitive keyword search anywhere in the reply).  An unclear
    answer is resolved by ``RouterConfig.ambiguity_policy``; a failed or
    timed-out call always yields an empty decision.
``MULTI_SOURCE_FAN_OUT``
    Every registered source, for complementary sources such as a local
    corpus plus live web search.

The router is stateless across queries; conversation turns are passed in
by the caller.  Decisions list source names in registration order.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import partial

from ragroute.config.prompt_templates import EXCLUDE_KEYWORDS, HISTORY_HINT_TEMPLATE, INCLUDE_KEYWORDS, NONE_KEYWORDS, SOURCE_OPTION_TEMPLATE, SOURCE_SELECTION_PROMPT, TOPIC_GATE_PROMPT, UNSURE_KEYWORDS
from ragroute.config.settings import settings
from ragroute.src.core.collaborators import ModelClient
from ragroute.src.core.errors import ClassificationAmbiguousError, InvalidParameterError
from ragroute.src.core.models import ConversationTurn, RoutingDecision, format_turns
from ragroute.src.core.sources import ContentSource
from ragroute.src.utils.concurrency import call_with_timeout, fan_out
from ragroute.src.utils.logger import get_logger
from ragroute.src.utils.observer import PipelineObserver, default_observer
from ragroute.src.utils.text_utils import preview

logger = get_logger(__name__)


class RoutingStrategy(str, Enum):
    SINGLE_SOURCE = "single_source"
    THRESHOLD_SIMILARITY = "threshold_similarity"
    LLM_CLASSIFIED = "llm_classified"
    MULTI_SOURCE_FAN_OUT = "multi_source_fan_out"


class AmbiguityPolicy(str, Enum):
    """What an unclear classification answer means."""

    INCLUDE = "include"  # consult every candidate source
    EXCLUDE = "exclude"  # answer without retrieval


@dataclass(frozen=True, slots=True)
class RouterConfig:
    """
    Routing strategy plus the knobs that strategy reads.

    Prefer the named constructors (``RouterConfig.single_source("docs")``
    etc.) over filling fields by hand.
    """

    strategy: RoutingStrategy
    source_name: str | None = None
    threshold: float = field(default_factory=lambda: settings.ROUTING_THRESHOLD)
    ambiguity_policy: AmbiguityPolicy = field(default_factory=lambda: AmbiguityPolicy(settings.AMBIGUOUS_ROUTING_POLICY))
    classification_timeout: float = field(default_factory=lambda: settings.CLASSIFICATION_TIMEOUT_SECONDS)
    probe_timeout: float = field(default_factory=lambda: settings.RETRIEVAL_TIMEOUT_SECONDS)
    history_turns: int = 4

    @classmethod
    def single_source(cls, source_name: str) -> RouterConfig:
        return cls(RoutingStrategy.SINGLE_SOURCE, source_name=source_name)

    @classmethod
    def threshold_similarity(cls, threshold: float | None = None, probe_timeout: float | None = None) -> RouterConfig:
        config = cls(RoutingStrategy.THRESHOLD_SIMILARITY)
        overrides = {"threshold": threshold, "probe_timeout": probe_timeout}
        return replace(config, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def llm_classified(cls, ambiguity_policy: AmbiguityPolicy | str | None = None, timeout: float | None = None, history_turns: int = 4) -> RouterConfig:
        config = cls(RoutingStrategy.LLM_CLASSIFIED, history_turns=history_turns)
        if ambiguity_policy is not None:
            config = replace(config, ambiguity_policy=AmbiguityPolicy(ambiguity_policy))
        if timeout is not None:
            config = replace(config, classification_timeout=timeout)
        return config

    @classmethod
    def multi_source_fan_out(cls) -> RouterConfig:
        return cls(RoutingStrategy.MULTI_SOURCE_FAN_OUT)


# ══════════════════════════════════════════════════════════════════════
#  FORGIVING ANSWER PARSING
# ══════════════════════════════════════════════════════════════════════


def _keyword_pattern(words: Sequence[str]) -> re.Pattern[str]:
    alternatives = "|".join(rf"(?<!\w){re.escape(w)}(?!\w)" for w in words)
    return re.compile(alternatives, re.IGNORECASE)


_INCLUDE_RE = _keyword_pattern(INCLUDE_KEYWORDS)
_EXCLUDE_RE = _keyword_pattern(EXCLUDE_KEYWORDS)
_UNSURE_RE = _keyword_pattern(UNSURE_KEYWORDS)
_NONE_RE = _keyword_pattern(NONE_KEYWORDS)
_NUMBER_RE = re.compile(r"(?<!\w)(\d{1,3})(?!\w)")


def parse_gate_answer(answer: str) -> bool:
    """
    Map a yes / no / maybe reply to include (``True``) or exclude (``False``).

    Raises ``ClassificationAmbiguousError`` for "maybe", for replies that
    contain both a yes and a no, and for replies with neither.
    """
    says_yes = bool(_INCLUDE_RE.search(answer))
    says_no = bool(_EXCLUDE_RE.search(answer))
    if _UNSURE_RE.search(answer) or says_yes == says_no:
        raise ClassificationAmbiguousError(answer)
    return says_yes


def parse_selection_answer(answer: str, source_names: Sequence[str]) -> tuple[str, ...]:
    """
    Extract the selected sources from a free-form reply.

    Accepts 1-based option numbers and source names (case-insensitive) in
    any mix.  "none" / "no" with no selection means an empty decision.
    Raises ``ClassificationAmbiguousError`` when nothing can be extracted.
    """
    selected: set[str] = set()
    remainder = answer
    for name in sorted(source_names, key=len, reverse=True):
        pattern = _keyword_pattern([name])
        if pattern.search(remainder):
            selected.add(name)
            remainder = pattern.sub(" ", remainder)
    # digits inside a matched name are not option numbers
    for match in _NUMBER_RE.finditer(remainder):
        number = int(match.group(1))
        if 1 <= number <= len(source_names):
            selected.add(source_names[number - 1])

    if selected:
        return tuple(name for name in source_names if name in selected)
    if _NONE_RE.search(answer) or _EXCLUDE_RE.search(answer):
        return ()
    raise ClassificationAmbiguousError(answer)


# ══════════════════════════════════════════════════════════════════════
#  QUERY ROUTER
# ══════════════════════════════════════════════════════════════════════


class QueryRouter:
    """
    Polymorphic over ``RoutingStrategy``; one instance per assistant configuration.

    Parameters
    ----------
    config
        Strategy and its knobs.  Validated here, at configuration time.
    sources
        Registered sources, in registration order.  Names must be unique.
    model_client
        Required by ``LLM_CLASSIFIED``.
    observer
        Receives ``route.*`` events.
    """

    __slots__ = ("config", "_sources", "_model", "_observer")

    def __init__(self, config: RouterConfig, sources: Sequence[ContentSource], model_client: ModelClient | None = None, observer: PipelineObserver | None = None) -> None:
        names = [s.name for s in sources]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise InvalidParameterError(f"Duplicate source names: {duplicates}")

        strategy = config.strategy
        if strategy is RoutingStrategy.SINGLE_SOURCE and config.source_name not in names:
            raise InvalidParameterError(f"SINGLE_SOURCE needs a registered source_name, got {config.source_name!r} (registered: {names})")
        if strategy is RoutingStrategy.THRESHOLD_SIMILARITY and not 0.0 <= config.threshold <= 1.0:
            raise InvalidParameterError(f"threshold must be within [0, 1], got {config.threshold}")
        if strategy is RoutingStrategy.LLM_CLASSIFIED and model_client is None:
            raise InvalidParameterError("LLM_CLASSIFIED routing needs a model_client.")
        if config.classification_timeout <= 0 or config.probe_timeout <= 0:
            raise InvalidParameterError("Routing timeouts must be > 0.")

        self.config = config
        self._sources: tuple[ContentSource, ...] = tuple(sources)
        self._model = model_client
        self._observer = observer or default_observer()

    @property
    def sources(self) -> tuple[ContentSource, ...]:
        return self._sources

    @property
    def source_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self._sources)

    def route(self, query: str, history: Sequence[ConversationTurn] = ()) -> RoutingDecision:
        """Return the routing decision for *query*.  Never raises for query-time failures."""
        t_start = time.perf_counter()
        strategy = self.config.strategy

        if strategy is RoutingStrategy.SINGLE_SOURCE:
            decision = RoutingDecision((self.config.source_name,), strategy.value, "fixed source")  # type: ignore[arg-type]
        elif strategy is RoutingStrategy.THRESHOLD_SIMILARITY:
            decision = self._route_by_threshold(query)
        elif strategy is RoutingStrategy.LLM_CLASSIFIED:
            decision = self._route_by_classification(query, history)
        elif strategy is RoutingStrategy.MULTI_SOURCE_FAN_OUT:
            decision = RoutingDecision(self.source_names, strategy.value, "all sources")
        else:
            raise InvalidParameterError(f"Unknown routing strategy: {strategy!r}")

        elapsed_ms = (time.perf_counter() - t_start) * 1000
        self._observer.emit("route.decided", strategy=strategy.value, sources=list(decision.source_names), reason=decision.reason, elapsed_ms=round(elapsed_ms, 1))
        return decision

    # ── THRESHOLD_SIMILARITY ───────────────────────────────────────────

    def _route_by_threshold(self, query: str) -> RoutingDecision:
        strategy = RoutingStrategy.THRESHOLD_SIMILARITY.value
        probes: dict[str, Callable[[], float | None]] = {}
        for source in self._sources:
            probe = getattr(source, "best_score", None)
            if callable(probe):
                probes[source.name] = partial(probe, query)
            else:
                logger.debug("Source '%s' has no similarity probe — skipped by threshold routing.", source.name)

        outcome = fan_out(probes, timeout=self.config.probe_timeout)
        for name, exc in outcome.failures.items():
            self._observer.emit("route.probe_failed", source=name, error=str(exc))

        threshold = self.config.threshold
        selected = tuple(name for name, score in outcome.results.items() if score is not None and score > threshold)
        scores = ", ".join(f"{name}={score:.3f}" if score is not None else f"{name}=empty" for name, score in outcome.results.items())
        return RoutingDecision(selected, strategy, f"threshold {threshold:.2f}; best scores: {scores or 'none'}")

    # ── LLM_CLASSIFIED ─────────────────────────────────────────────────

    def _route_by_classification(self, query: str, history: Sequence[ConversationTurn]) -> RoutingDecision:
        strategy = RoutingStrategy.LLM_CLASSIFIED.value
        names = self.source_names
        if not names:
            return RoutingDecision((), strategy, "no sources registered")

        prompt = self._classification_prompt(query, history)
        try:
            answer = call_with_timeout(partial(self._model.generate, prompt), self.config.classification_timeout, label="route-classify")  # type: ignore[union-attr]
        except Exception as exc:
            self._observer.emit("route.classification_failed", error=f"{type(exc).__name__}: {exc}")
            return RoutingDecision((), strategy, "classification failed; answering without retrieval")

        logger.debug("Routing model answered '%s' for '%s'.", preview(answer), preview(query, 40))
        try:
            if len(names) == 1:
                selected = names if parse_gate_answer(answer) else ()
            else:
                selected = parse_selection_answer(answer, names)
        except ClassificationAmbiguousError:
            policy = self.config.ambiguity_policy
            self._observer.emit("route.classification_ambiguous", answer=preview(answer, 80), policy=policy.value)
            selected = names if policy is AmbiguityPolicy.INCLUDE else ()
            return RoutingDecision(selected, strategy, f"ambiguous answer; policy={policy.value}")

        return RoutingDecision(selected, strategy, f"model answered {preview(answer, 40)!r}")

    def _classification_prompt(self, query: str, history: Sequence[ConversationTurn]) -> str:
        recent = list(history)[-self.config.history_turns:] if self.config.history_turns > 0 else []
        history_hint = HISTORY_HINT_TEMPLATE.format(turns=format_turns(recent)) if recent else ""

        if len(self._sources) == 1:
            return TOPIC_GATE_PROMPT.format(history_hint=history_hint, query=query, description=self._sources[0].description)

        options = "\n".join(SOURCE_OPTION_TEMPLATE.format(number=number, name=source.name, description=source.description) for number, source in enumerate(self._sources, 1))
        return SOURCE_SELECTION_PROMPT.format(history_hint=history_hint, options=options, query=query)

    def __repr__(self) -> str:
        return f"QueryRouter(strategy={self.config.strategy.value}, sources={list(self.source_names)})"
