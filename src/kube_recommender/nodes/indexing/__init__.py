"""Indexing nodes for embedding capability records."""

from __future__ import annotations

from kube_recommender.nodes.indexing.capability_indexer import (
    CapabilityIndexer,
    capability_search_text,
)
from kube_recommender.nodes.indexing.embedder import Embedder, FastEmbedEmbedder

__all__ = [
    "CapabilityIndexer",
    "Embedder",
    "FastEmbedEmbedder",
    "capability_search_text",
]
