"""Embedding indexer: capability records in, vector store points out."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from kube_recommender.entities.resources import CapabilityRecord, ResourceTypeRef
from kube_recommender.errors import VectorStoreUnavailable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from kube_recommender.memory.capability_store import CapabilityStore, PayloadFilter
    from kube_recommender.nodes.indexing.embedder import Embedder

logger = logging.getLogger(__name__)


def capability_search_text(record: CapabilityRecord) -> str:
    """Text embedded for a record: identity, tags, prose and tier."""
    ref = record.resource
    parts = [
        f"{ref.kind} {ref.api_group}".strip(),
        f"capabilities: {', '.join(sorted(record.capabilities))}",
        f"providers: {', '.join(sorted(record.providers))}",
        f"abstractions: {', '.join(sorted(record.abstractions))}",
        record.description,
        record.use_case,
        f"complexity: {record.complexity_tier}",
    ]
    return " | ".join(p for p in parts if p)


class CapabilityIndexer:
    """Embeds capability records and upserts them under ``ref.point_id``.

    Upserting by a deterministic id keeps exactly one point per resource
    type however often it is re-indexed.
    """

    def __init__(self, store: CapabilityStore, embedder: Embedder) -> None:
        self._store = store
        self._embedder = embedder

    @property
    def embedder(self) -> Embedder:
        return self._embedder

    def index(self, record: CapabilityRecord) -> CapabilityRecord:
        """Embed and store *record*; returns it with embedding fields set."""
        return self.index_many([record])[0]

    def index_many(self, records: Sequence[CapabilityRecord]) -> list[CapabilityRecord]:
        if not records:
            return []
        try:
            vectors = self._embedder.embed([capability_search_text(r) for r in records])
        except Exception as e:
            raise VectorStoreUnavailable(f"Embedding failed: {e}") from e
        indexed: list[CapabilityRecord] = []
        for record, vector in zip(records, vectors, strict=True):
            stored = record.model_copy(
                update={
                    "embedding": [float(x) for x in vector],
                    "embedding_model_version": self._embedder.model_version,
                }
            )
            self._store.upsert(record.resource.point_id, vector, stored.to_payload())
            indexed.append(stored)
        logger.debug("Indexed %d capability records", len(indexed))
        return indexed

    def get(self, ref: ResourceTypeRef) -> CapabilityRecord | None:
        payload = self._store.get(ref.point_id)
        return CapabilityRecord.from_payload(payload) if payload is not None else None

    def delete(self, ref: ResourceTypeRef) -> bool:
        return self._store.delete(ref.point_id)

    def list_records(self, payload_filter: PayloadFilter | None = None) -> list[CapabilityRecord]:
        records = [CapabilityRecord.from_payload(p) for p in self._store.list_all(payload_filter)]
        records.sort(key=lambda r: r.resource.sort_key)
        return records

    def count(self) -> int:
        return self._store.count
