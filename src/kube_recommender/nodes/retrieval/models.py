"""Data models for semantic retrieval results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel

from kube_recommender.entities.resources import CapabilityRecord  # noqa: TC001
from kube_recommender.entities.solutions import OrganizationalPattern  # noqa: TC001


class MatchType(StrEnum):
    """How a hit was found."""

    SEMANTIC = "semantic"  # Cosine similarity only
    HYBRID = "hybrid"  # Cosine similarity plus an intent keyword naming its kind or tag


class SearchHit(BaseModel):
    """A capability record with its score against an intent."""

    record: CapabilityRecord
    score: float
    rank: int
    embedding_model_version: str = ""
    match_type: MatchType = MatchType.SEMANTIC

    def matches_model(self, model_version: str) -> bool:
        """Whether the record was embedded with *model_version*."""
        return self.embedding_model_version == model_version


@dataclass(frozen=True)
class PatternMatch:
    """An organizational pattern whose trigger fuzzy-matched an intent."""

    pattern: OrganizationalPattern
    trigger: str
    score: float
