"""Offline scan pipeline: schemas in, capability index and edge graph out."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kube_recommender.cluster.catalog import KnownTypeCatalog
from kube_recommender.config import SCAN_CONFIG, ScanConfig
from kube_recommender.errors import SchemaUnavailable, VectorStoreUnavailable
from kube_recommender.nodes.inference.capability_inference import AIStatus
from kube_recommender.workflows.models import ScanFailure, ScanFailureReason, ScanSummary

if TYPE_CHECKING:
    from kube_recommender.cluster.schema_source import SchemaSource
    from kube_recommender.entities.graph import DependencyEdge
    from kube_recommender.entities.resources import ResourceTypeRef
    from kube_recommender.memory.edge_store import DependencyEdgeStore
    from kube_recommender.nodes.indexing.capability_indexer import CapabilityIndexer
    from kube_recommender.nodes.inference.capability_inference import (
        CapabilityInference,
        CapabilityInferenceEngine,
    )
    from kube_recommender.nodes.inference.dependency_inference import DependencyInferenceEngine

logger = logging.getLogger(__name__)


@dataclass
class _TypeOutcome:
    """Phase 1 result for one resource type."""

    ref: ResourceTypeRef
    inference: CapabilityInference | None = None
    edges: list[DependencyEdge] = field(default_factory=list)
    failure: ScanFailure | None = None


class ScanPipeline:
    """Runs capability and dependency inference over every known type.

    Phase 1 fetches schemas and runs inference in worker threads, at most
    ``max_concurrency`` at a time. Phase 2 writes index points and edges
    from the event loop thread, one type at a time. A failing type is
    recorded in the summary and never aborts the scan.
    """

    def __init__(
        self,
        schema_source: SchemaSource,
        capability_engine: CapabilityInferenceEngine,
        dependency_engine: DependencyInferenceEngine,
        indexer: CapabilityIndexer,
        edge_store: DependencyEdgeStore,
        config: ScanConfig | None = None,
    ) -> None:
        self._source = schema_source
        self._capabilities = capability_engine
        self._dependencies = dependency_engine
        self._indexer = indexer
        self._edges = edge_store
        self._config = config or SCAN_CONFIG

    async def scan_and_index(
        self, known_types: Iterable[ResourceTypeRef] | None = None
    ) -> ScanSummary:
        """Scan *known_types* (default: everything the source lists)."""
        start = time.perf_counter()
        if known_types is None:
            known_types = await asyncio.to_thread(self._source.list_known_resource_types)
        catalog = KnownTypeCatalog(known_types)
        refs = list(catalog)

        logger.info("Phase 1: Analyzing %d resource types...", len(refs))
        semaphore = asyncio.Semaphore(self._config.max_concurrency)

        async def analyze(ref: ResourceTypeRef) -> _TypeOutcome:
            async with semaphore:
                return await asyncio.to_thread(self._analyze, ref, catalog)

        outcomes = await asyncio.gather(*(analyze(ref) for ref in refs))

        logger.info("Phase 2: Writing index and dependency graph...")
        summary = ScanSummary()
        for outcome in outcomes:
            failure = outcome.failure or self._write(outcome)
            if failure is not None:
                summary.failed += 1
                summary.failures.append(failure)
                continue
            summary.succeeded += 1
            if outcome.inference is not None and outcome.inference.degraded:
                summary.degraded += 1

        summary.duration_seconds = time.perf_counter() - start
        logger.info(
            "Scan complete: %d succeeded (%d degraded), %d failed in %.2fs",
            summary.succeeded,
            summary.degraded,
            summary.failed,
            summary.duration_seconds,
        )
        return summary

    def _analyze(self, ref: ResourceTypeRef, catalog: KnownTypeCatalog) -> _TypeOutcome:
        """Fetch and infer for one type; runs in a worker thread."""
        try:
            schema_text = self._source.get_resource_schema(ref)
        except SchemaUnavailable as e:
            logger.warning("Skipping %s: %s", ref, e)
            return _TypeOutcome(
                ref, failure=ScanFailure(ref, ScanFailureReason.SCHEMA_UNAVAILABLE, str(e))
            )

        try:
            inference = self._capabilities.infer_with_report(ref, schema_text)
            if self._config.require_ai and inference.ai_status == AIStatus.FAILED:
                logger.warning("Skipping %s: AI inference required but failed", ref)
                return _TypeOutcome(
                    ref,
                    failure=ScanFailure(ref, ScanFailureReason.AI_FAILED, inference.ai_error),
                )
            edges = self._dependencies.infer(ref, schema_text, catalog)
        except Exception as e:
            logger.warning("Inference failed for %s: %s", ref, e)
            return _TypeOutcome(
                ref, failure=ScanFailure(ref, ScanFailureReason.INFERENCE_ERROR, str(e))
            )
        return _TypeOutcome(ref, inference=inference, edges=edges)

    def _write(self, outcome: _TypeOutcome) -> ScanFailure | None:
        if outcome.inference is None:
            return ScanFailure(
                outcome.ref, ScanFailureReason.INFERENCE_ERROR, "no inference result"
            )
        try:
            self._indexer.index(outcome.inference.record)
        except VectorStoreUnavailable as e:
            logger.warning("Indexing failed for %s: %s", outcome.ref, e)
            return ScanFailure(outcome.ref, ScanFailureReason.INDEX_FAILED, str(e))
        self._edges.replace_for_source(outcome.ref, outcome.edges)
        return None


def run_scan(
    pipeline: ScanPipeline, known_types: Iterable[ResourceTypeRef] | None = None
) -> ScanSummary:
    """Convenience function to run a scan from synchronous code."""
    return asyncio.run(pipeline.scan_and_index(known_types))
