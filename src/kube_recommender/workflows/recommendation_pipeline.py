"""RecommendationPipeline: intent to ranked, deployable solution candidates."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from kube_recommender.errors import RecommendTimeout
from kube_recommender.nodes.retrieval.pattern_matcher import (
    FUZZY_MIN_THRESHOLD,
    pattern_adjustments,
)
from kube_recommender.nodes.retrieval.solution_ranker import SolutionRanker
from kube_recommender.workflows.models import RecommendationResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from kube_recommender.entities.resources import ComplexityTier
    from kube_recommender.entities.solutions import OrganizationalPattern, SolutionCandidate
    from kube_recommender.nodes.retrieval.models import SearchHit
    from kube_recommender.nodes.retrieval.semantic_retriever import SemanticRetriever
    from kube_recommender.workflows.dependency_resolver import DependencyResolver

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5


class RecommendationPipeline:
    """Coordinates retrieval, dependency resolution and ranking.

    Only the retriever call blocks; resolution and ranking are in-memory.
    With a ``timeout`` the retriever call runs on a throwaway worker thread
    and is abandoned on expiry, so a slow store surfaces as
    :class:`RecommendTimeout` rather than a late or partial answer.
    """

    def __init__(
        self,
        retriever: SemanticRetriever,
        resolver: DependencyResolver,
        ranker: SolutionRanker | None = None,
        patterns: Iterable[OrganizationalPattern] = (),
        pattern_threshold: float = FUZZY_MIN_THRESHOLD,
    ) -> None:
        self._retriever = retriever
        self._resolver = resolver
        self._ranker = ranker or SolutionRanker()
        self._patterns = list(patterns)
        self._pattern_threshold = pattern_threshold

    def recommend(
        self,
        intent: str,
        top_k: int = DEFAULT_TOP_K,
        timeout: float | None = None,
        complexity: ComplexityTier | None = None,
        providers: Iterable[str] | None = None,
    ) -> list[SolutionCandidate]:
        """Ranked candidates for *intent*; ``[]`` when nothing is relevant.

        Raises:
            VectorStoreUnavailable: The capability index cannot be queried.
            RecommendTimeout: *timeout* seconds elapsed first.
        """
        return self.recommend_detailed(intent, top_k, timeout, complexity, providers).candidates

    def recommend_detailed(
        self,
        intent: str,
        top_k: int = DEFAULT_TOP_K,
        timeout: float | None = None,
        complexity: ComplexityTier | None = None,
        providers: Iterable[str] | None = None,
    ) -> RecommendationResult:
        """Like :meth:`recommend`, also returning hits and latency."""
        start = time.perf_counter()
        deadline = start + timeout if timeout is not None else None
        if timeout is not None and timeout <= 0:
            raise RecommendTimeout(timeout)

        provider_list = list(providers) if providers is not None else None
        hits = self._search(intent, top_k, timeout, complexity, provider_list)
        self._check_deadline(deadline, timeout)

        candidates = [
            self._resolver.resolve(hit.record.resource, similarity=hit.score) for hit in hits
        ]
        adjustments = (
            pattern_adjustments(intent, self._patterns, self._pattern_threshold)
            if self._patterns and candidates
            else {}
        )
        self._check_deadline(deadline, timeout)
        ranked = self._ranker.rank(candidates, adjustments)

        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Recommended %d candidates for %r in %.1f ms", len(ranked), intent, latency_ms
        )
        applied: list[str] = []
        for candidate in ranked:
            for name in candidate.applied_patterns:
                if name not in applied:
                    applied.append(name)
        return RecommendationResult(
            candidates=ranked,
            hits=hits,
            latency_ms=latency_ms,
            embedding_model_version=self._retriever.model_version,
            applied_patterns=applied,
        )

    def _search(
        self,
        intent: str,
        top_k: int,
        timeout: float | None,
        complexity: ComplexityTier | None,
        providers: list[str] | None,
    ) -> list[SearchHit]:
        if timeout is None:
            return self._retriever.search(intent, top_k, complexity, providers)

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recommend-search")
        try:
            future = pool.submit(self._retriever.search, intent, top_k, complexity, providers)
            try:
                return future.result(timeout=timeout)
            except TimeoutError:
                future.cancel()
                logger.warning("Capability search exceeded %.3fs, abandoning", timeout)
                raise RecommendTimeout(timeout) from None
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _check_deadline(deadline: float | None, timeout: float | None) -> None:
        if deadline is not None and timeout is not None and time.perf_counter() > deadline:
            raise RecommendTimeout(timeout)

