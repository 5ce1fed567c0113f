"""Solution ranker: completeness-dominant scoring of solution candidates."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from kube_recommender.config import RANKING_CONFIG, RankingConfig
from kube_recommender.entities.resources import ResourceTypeRef
from kube_recommender.entities.solutions import PatternAdjustment, SolutionCandidate
from kube_recommender.nodes.retrieval.rationale import candidate_rationale

logger = logging.getLogger(__name__)

# Scores are rounded before comparison so float noise cannot reorder ties
_SCORE_PRECISION = 9


def clamp(value: float, bound: float) -> float:
    return max(-bound, min(bound, value))


class SolutionRanker:
    """Scores candidates and returns them best first.

    ``score = similarity - unsatisfiable * penalty + bonus(complete)
    + clamp(sum of pattern deltas over primary and required, max_adjust)``

    Ties go to the simpler solution (fewer resources), then to the
    primary's kind, group and version.
    """

    def __init__(self, config: RankingConfig | None = None) -> None:
        self._config = config or RANKING_CONFIG

    @property
    def config(self) -> RankingConfig:
        return self._config

    def rank(
        self,
        candidates: Iterable[SolutionCandidate],
        pattern_adjustments: Mapping[ResourceTypeRef, PatternAdjustment] | None = None,
    ) -> list[SolutionCandidate]:
        """Return new, scored candidates sorted by descending score.

        The input candidates are left untouched.
        """
        by_group_kind = self._index_adjustments(pattern_adjustments or {})
        scored = [self._score(c, by_group_kind) for c in candidates]
        scored.sort(key=self._sort_key)
        logger.debug("Ranked %d solution candidates", len(scored))
        return scored

    @staticmethod
    def _index_adjustments(
        adjustments: Mapping[ResourceTypeRef, PatternAdjustment],
    ) -> dict[tuple[str, str], tuple[ResourceTypeRef, PatternAdjustment]]:
        """Key adjustments by version-independent identity."""
        indexed: dict[tuple[str, str], tuple[ResourceTypeRef, PatternAdjustment]] = {}
        for ref in sorted(adjustments, key=lambda r: r.sort_key):
            adjustment = adjustments[ref]
            existing = indexed.get(ref.group_kind)
            if existing is not None:
                prior = existing[1]
                adjustment = PatternAdjustment(
                    delta=prior.delta + adjustment.delta,
                    rationale="; ".join(r for r in (prior.rationale, adjustment.rationale) if r),
                    patterns=prior.patterns + adjustment.patterns,
                )
                ref = existing[0]
            indexed[ref.group_kind] = (ref, adjustment)
        return indexed

    def _score(
        self,
        candidate: SolutionCandidate,
        adjustments: dict[tuple[str, str], tuple[ResourceTypeRef, PatternAdjustment]],
    ) -> SolutionCandidate:
        config = self._config
        unsatisfiable_count = len(candidate.unsatisfiable)

        applied: list[tuple[ResourceTypeRef, PatternAdjustment]] = []
        for ref in [candidate.primary, *candidate.sorted_required()]:
            entry = adjustments.get(ref.group_kind)
            if entry is not None:
                applied.append(entry)
        raw_adjustment = sum(adj.delta for _ref, adj in applied)
        clamped = clamp(raw_adjustment, config.max_adjust)

        score = candidate.similarity - unsatisfiable_count * config.unsatisfiable_penalty
        if unsatisfiable_count == 0:
            score += config.completeness_bonus
        score += clamped

        pattern_names: list[str] = []
        for _ref, adj in applied:
            for name in adj.patterns:
                if name not in pattern_names:
                    pattern_names.append(name)

        return candidate.model_copy(
            update={
                "score": score,
                "rationale": candidate_rationale(
                    candidate, config, applied, raw_adjustment, clamped
                ),
                "applied_patterns": pattern_names,
            }
        )

    @staticmethod
    def _sort_key(candidate: SolutionCandidate) -> tuple[float, int, str, str, str]:
        primary = candidate.primary
        return (
            -round(candidate.score, _SCORE_PRECISION),
            candidate.total_resources,
            primary.kind,
            primary.api_group,
            primary.api_version,
        )
