"""Retrieval nodes: semantic search, pattern matching and ranking."""

from __future__ import annotations

from kube_recommender.nodes.retrieval.models import MatchType, PatternMatch, SearchHit
from kube_recommender.nodes.retrieval.pattern_matcher import (
    load_patterns,
    match_patterns,
    pattern_adjustments,
)
from kube_recommender.nodes.retrieval.semantic_retriever import SemanticRetriever
from kube_recommender.nodes.retrieval.solution_ranker import SolutionRanker, clamp

__all__ = [
    "MatchType",
    "PatternMatch",
    "SearchHit",
    "SemanticRetriever",
    "SolutionRanker",
    "clamp",
    "load_patterns",
    "match_patterns",
    "pattern_adjustments",
]
