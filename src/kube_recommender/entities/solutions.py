"""Solution candidates and the organizational patterns that adjust their ranking."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from kube_recommender.entities.resources import ResourceTypeRef


def _sorted_refs(refs: frozenset[ResourceTypeRef]) -> list[ResourceTypeRef]:
    return sorted(refs, key=lambda r: r.sort_key)


class SolutionCandidate(BaseModel):
    """One deployable option: a primary resource type plus its resolved closure.

    Built per request and never persisted. ``score`` and ``rationale`` are
    filled in by the ranker.
    """

    model_config = ConfigDict(frozen=True)

    primary: ResourceTypeRef
    required: frozenset[ResourceTypeRef] = frozenset()
    optional: frozenset[ResourceTypeRef] = frozenset()
    unsatisfiable: frozenset[ResourceTypeRef] = frozenset()
    similarity: float = 0.0
    score: float = 0.0
    rationale: list[str] = Field(default_factory=list)
    applied_patterns: list[str] = Field(default_factory=list)

    @field_serializer("required", "optional", "unsatisfiable")
    def serialize_refs(self, v: frozenset[ResourceTypeRef]) -> list[ResourceTypeRef]:
        return _sorted_refs(v)

    @property
    def is_complete(self) -> bool:
        return not self.unsatisfiable

    @property
    def total_resources(self) -> int:
        """Resources a user would deploy: primary plus required and optional."""
        return 1 + len(self.required) + len(self.optional)

    def sorted_required(self) -> list[ResourceTypeRef]:
        return _sorted_refs(self.required)

    def sorted_optional(self) -> list[ResourceTypeRef]:
        return _sorted_refs(self.optional)

    def sorted_unsatisfiable(self) -> list[ResourceTypeRef]:
        return _sorted_refs(self.unsatisfiable)


class PatternAdjustment(BaseModel):
    """Ranking nudge for one resource type, with the reason shown to users."""

    model_config = ConfigDict(frozen=True)

    delta: float
    rationale: str = ""
    patterns: tuple[str, ...] = ()


class OrganizationalPattern(BaseModel):
    """Platform-team knowledge: for intents like *triggers*, prefer these resources."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    triggers: list[str] = Field(default_factory=list)
    suggested_resources: list[ResourceTypeRef] = Field(default_factory=list)
    rationale: str = ""
    delta: float = Field(default=0.05, description="Adjustment applied per suggested resource")
