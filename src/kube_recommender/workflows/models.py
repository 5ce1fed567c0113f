"""Result models for the scan and recommendation workflows."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kube_recommender.entities.resources import ResourceTypeRef
    from kube_recommender.entities.solutions import SolutionCandidate
    from kube_recommender.nodes.retrieval.models import SearchHit


class ScanFailureReason(StrEnum):
    """Why a resource type was not indexed during a scan."""

    SCHEMA_UNAVAILABLE = "schema_unavailable"
    AI_FAILED = "ai_failed"  # Only when AI inference is required
    INFERENCE_ERROR = "inference_error"
    INDEX_FAILED = "index_failed"


@dataclass(frozen=True)
class ScanFailure:
    """One resource type that failed during a scan."""

    resource: ResourceTypeRef
    reason: ScanFailureReason
    message: str = ""


@dataclass
class ScanSummary:
    """Batch outcome of a scan.

    ``degraded`` counts types that were indexed from deterministic signals
    because the AI step failed or was partially invalid; they are also
    counted in ``succeeded``. With the default ``require_ai=False`` this is
    where AI failures show up: one failing type out of fifty reports
    ``succeeded=50, failed=0, degraded=1``. Set ``ScanConfig.require_ai`` to
    count the same type as failed instead (``succeeded=49, failed=1``).
    """

    succeeded: int = 0
    failed: int = 0
    degraded: int = 0
    failures: list[ScanFailure] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def total(self) -> int:
        return self.succeeded + self.failed


@dataclass
class RecommendationResult:
    """Ranked candidates plus the retrieval details behind them."""

    candidates: list[SolutionCandidate]
    hits: list[SearchHit]
    latency_ms: float
    embedding_model_version: str = ""
    applied_patterns: list[str] = field(default_factory=list)

    @property
    def stale_hits(self) -> list[SearchHit]:
        """Hits whose records were embedded with a different model."""
        return [h for h in self.hits if not h.matches_model(self.embedding_model_version)]
