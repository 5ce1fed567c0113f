#!/usr/bin/env python3
"""Scan a directory of resource schemas into the capability index and edge graph.

Usage:
    python scripts/scan_schemas.py SCHEMA_DIR [--data-dir DIR] [--concurrency N]
        [--require-ai] [--no-ai] [--verbose]

SCHEMA_DIR holds one schema per file: CRD manifests, bare openAPIV3Schema
documents or saved ``kubectl explain --recursive`` output. Existing index
data in --data-dir is loaded first, so re-running only replaces what the
schemas describe. AI-assisted inference is used when ANTHROPIC_API_KEY is set.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from kube_recommender.cluster import DirectorySchemaSource
from kube_recommender.config import ScanConfig
from kube_recommender.errors import VectorStoreUnavailable
from kube_recommender.memory import FAISSCapabilityStore, NetworkXEdgeStore
from kube_recommender.nodes.indexing import CapabilityIndexer, FastEmbedEmbedder
from kube_recommender.nodes.inference import (
    AnthropicInferenceClient,
    CapabilityInferenceEngine,
    DependencyInferenceEngine,
)
from kube_recommender.workflows import ScanPipeline, run_scan

DEFAULT_DATA_DIR = Path.home() / ".kube-recommender" / "data"
GRAPH_FILENAME = "dependency_graph.json"
KNOWN_TYPES_FILENAME = "known_types.json"

logger = logging.getLogger("scan_schemas")


def main() -> None:
    parser = argparse.ArgumentParser(description="Build the capability index from schemas")
    parser.add_argument("schema_dir", help="Directory of schema files")
    parser.add_argument("--data-dir", default=str(DEFAULT_DATA_DIR), help="Index directory")
    parser.add_argument("--concurrency", type=int, default=8, help="Parallel inference workers")
    parser.add_argument(
        "--require-ai", action="store_true", help="Fail types whose AI inference fails"
    )
    parser.add_argument("--no-ai", action="store_true", help="Deterministic inference only")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    data_dir = Path(args.data_dir)
    store = FAISSCapabilityStore()
    edge_store = NetworkXEdgeStore()
    if (data_dir / GRAPH_FILENAME).exists():
        try:
            store.load(data_dir)
        except VectorStoreUnavailable as e:
            logger.error("%s", e)
            sys.exit(1)
        edge_store.load(data_dir / GRAPH_FILENAME)

    ai_client = None
    if not args.no_ai:
        client = AnthropicInferenceClient()
        ai_client = client if client.is_available else None
    if args.require_ai and ai_client is None:
        logger.error("--require-ai needs ANTHROPIC_API_KEY")
        sys.exit(1)

    source = DirectorySchemaSource(args.schema_dir)
    known_types = source.list_known_resource_types()
    pipeline = ScanPipeline(
        schema_source=source,
        capability_engine=CapabilityInferenceEngine(ai_client=ai_client),
        dependency_engine=DependencyInferenceEngine(),
        indexer=CapabilityIndexer(store, FastEmbedEmbedder()),
        edge_store=edge_store,
        config=ScanConfig(max_concurrency=args.concurrency, require_ai=args.require_ai),
    )
    summary = run_scan(pipeline, known_types)

    data_dir.mkdir(parents=True, exist_ok=True)
    store.save(data_dir)
    edge_store.save(data_dir / GRAPH_FILENAME)
    (data_dir / KNOWN_TYPES_FILENAME).write_text(
        json.dumps([ref.model_dump() for ref in known_types], indent=2), encoding="utf-8"
    )

    print(
        f"Scanned {summary.total} types: {summary.succeeded} succeeded "
        f"({summary.degraded} degraded), {summary.failed} failed "
        f"in {summary.duration_seconds:.1f}s"
    )
    for failure in summary.failures:
        print(f"  FAILED {failure.resource.key} [{failure.reason}] {failure.message}")
    if summary.failed and not summary.succeeded:
        sys.exit(1)


if __name__ == "__main__":
    main()
