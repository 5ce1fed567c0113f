"""Recommendation engine error types."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kube_recommender.entities.resources import ResourceTypeRef


class RecommenderError(Exception):
    """Base error for the recommendation engine."""

    pass


class SchemaUnavailable(RecommenderError):
    """Schema could not be fetched for a resource type (non-fatal per type)."""

    def __init__(self, resource: ResourceTypeRef, detail: str = "") -> None:
        message = f"Schema unavailable for {resource}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.resource = resource


class AIInferenceFailed(RecommenderError):
    """AI collaborator call failed or timed out."""

    pass


class AIResponseInvalid(RecommenderError):
    """AI collaborator returned a response that could not be parsed."""

    def __init__(self, detail: str, raw: str = "") -> None:
        super().__init__(f"Invalid AI response: {detail}")
        self.raw = raw[:200]


class VectorStoreUnavailable(RecommenderError):
    """Vector store (or the embedding step in front of it) failed."""

    pass


class RecommendTimeout(RecommenderError):
    """Recommend deadline expired before a complete answer was produced."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Recommendation exceeded deadline of {timeout:.3f}s")
        self.timeout = timeout
