"""Domain models for dependency relationships between resource types."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from kube_recommender.entities.resources import ResourceTypeRef  # noqa: TC001


class RelationKind(StrEnum):
    """How strongly a dependent needs its dependency."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    ENHANCES = "enhances"


class DependencyEdge(BaseModel):
    """A directed edge ``dependent -> dependency`` discovered from a schema.

    Identity is ``(dependent, dependency, field)``; re-scanning overwrites by
    that key. Cycles across edges are expected.
    """

    model_config = ConfigDict(frozen=True)

    dependent: ResourceTypeRef
    dependency: ResourceTypeRef
    relation_kind: RelationKind
    field: str
    evidence: str = ""
    reason: str = ""
    confidence: float = Field(ge=0.0, le=1.0)
    discovered_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    # Type whose schema produced the edge when it is not the dependent
    discovered_from: ResourceTypeRef | None = None

    @property
    def key(self) -> tuple[ResourceTypeRef, ResourceTypeRef, str]:
        return (self.dependent, self.dependency, self.field)

    @property
    def origin(self) -> ResourceTypeRef:
        """The resource type whose schema scan owns this edge."""
        return self.discovered_from or self.dependent
