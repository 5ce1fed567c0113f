"""Memory package."""

from kube_recommender.memory.capability_store import CapabilityStore, FAISSCapabilityStore
from kube_recommender.memory.edge_store import DependencyEdgeStore, NetworkXEdgeStore

__all__ = [
    "CapabilityStore",
    "DependencyEdgeStore",
    "FAISSCapabilityStore",
    "NetworkXEdgeStore",
]
