"""Entity models for the recommendation engine domain layer."""

from kube_recommender.entities.graph import DependencyEdge, RelationKind
from kube_recommender.entities.resources import (
    CapabilityRecord,
    ComplexityTier,
    ResourceTypeRef,
)
from kube_recommender.entities.solutions import (
    OrganizationalPattern,
    PatternAdjustment,
    SolutionCandidate,
)
from kube_recommender.entities.vocabulary import CAPABILITY_VOCABULARY, KNOWN_PROVIDERS

__all__ = [
    "CAPABILITY_VOCABULARY",
    "KNOWN_PROVIDERS",
    "CapabilityRecord",
    "ComplexityTier",
    "DependencyEdge",
    "OrganizationalPattern",
    "PatternAdjustment",
    "RelationKind",
    "ResourceTypeRef",
    "SolutionCandidate",
]
