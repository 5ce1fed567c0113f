#!/usr/bin/env python3
"""Recommend deployable resource combinations for a natural-language intent.

Usage:
    python scripts/recommend.py "I need a PostgreSQL database" [--data-dir DIR]
        [--top-k N] [--timeout SECONDS] [--patterns FILE]
        [--complexity low|medium|high] [--provider NAME ...] [--keyword-boost B] [--json]

Reads the index written by scripts/scan_schemas.py. The served type catalog
is the set of types that scan saw.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from kube_recommender.cluster import KnownTypeCatalog
from kube_recommender.config import RetrievalConfig
from kube_recommender.entities import ComplexityTier, ResourceTypeRef
from kube_recommender.errors import RecommenderError
from kube_recommender.memory import FAISSCapabilityStore, NetworkXEdgeStore
from kube_recommender.nodes.indexing import FastEmbedEmbedder
from kube_recommender.nodes.retrieval import SemanticRetriever, load_patterns
from kube_recommender.workflows import DependencyResolver, RecommendationPipeline

DEFAULT_DATA_DIR = Path.home() / ".kube-recommender" / "data"
GRAPH_FILENAME = "dependency_graph.json"
KNOWN_TYPES_FILENAME = "known_types.json"

logger = logging.getLogger("recommend")


def main() -> None:
    parser = argparse.ArgumentParser(description="Recommend Kubernetes resource solutions")
    parser.add_argument("intent", help="What you want to build")
    parser.add_argument("--data-dir", default=str(DEFAULT_DATA_DIR), help="Index directory")
    parser.add_argument("--top-k", type=int, default=5, help="Number of candidates")
    parser.add_argument("--timeout", type=float, default=None, help="Deadline in seconds")
    parser.add_argument("--patterns", default=None, help="Organizational patterns YAML")
    parser.add_argument(
        "--complexity", choices=[t.value for t in ComplexityTier], default=None
    )
    parser.add_argument("--provider", action="append", default=None, help="Provider filter")
    parser.add_argument(
        "--keyword-boost", type=float, default=0.0, help="Score boost for kind/tag words"
    )
    parser.add_argument("--json", action="store_true", help="Print JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    data_dir = Path(args.data_dir)
    known_path = data_dir / KNOWN_TYPES_FILENAME
    if not known_path.exists():
        print(f"ERROR: {known_path} not found, run scripts/scan_schemas.py first")
        sys.exit(1)

    try:
        store = FAISSCapabilityStore()
        store.load(data_dir)
        edge_store = NetworkXEdgeStore()
        edge_store.load(data_dir / GRAPH_FILENAME)
        catalog = KnownTypeCatalog(
            ResourceTypeRef.model_validate(r)
            for r in json.loads(known_path.read_text(encoding="utf-8"))
        )
        patterns = load_patterns(args.patterns) if args.patterns else []
        retrieval_config = RetrievalConfig(keyword_boost=args.keyword_boost)
    except (OSError, ValueError, RecommenderError) as e:
        logger.error("Cannot load index: %s", e)
        sys.exit(1)

    pipeline = RecommendationPipeline(
        retriever=SemanticRetriever(store, FastEmbedEmbedder(), retrieval_config),
        resolver=DependencyResolver(edge_store, catalog),
        patterns=patterns,
    )
    try:
        result = pipeline.recommend_detailed(
            args.intent,
            top_k=args.top_k,
            timeout=args.timeout,
            complexity=ComplexityTier(args.complexity) if args.complexity else None,
            providers=args.provider,
        )
    except RecommenderError as e:
        logger.error("%s", e)
        sys.exit(1)

    if args.json:
        print(json.dumps([c.model_dump(mode="json") for c in result.candidates], indent=2))
        return

    if not result.candidates:
        print("No relevant resource types found.")
        return
    for rank, candidate in enumerate(result.candidates, start=1):
        print(f"{rank}. {candidate.primary.key}  score={candidate.score:.3f}")
        for line in candidate.rationale:
            print(f"     - {line}")
    print(f"\n({result.latency_ms:.0f} ms)")


if __name__ == "__main__":
    main()
