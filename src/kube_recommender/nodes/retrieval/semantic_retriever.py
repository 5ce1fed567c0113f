"""Semantic retriever: intent text to ranked capability records."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from kube_recommender.config import RETRIEVAL_CONFIG, RetrievalConfig
from kube_recommender.entities.resources import CapabilityRecord, ComplexityTier
from kube_recommender.errors import VectorStoreUnavailable
from kube_recommender.nodes.retrieval.models import MatchType, SearchHit

if TYPE_CHECKING:
    from kube_recommender.memory.capability_store import CapabilityStore, PayloadFilter
    from kube_recommender.nodes.indexing.embedder import Embedder

logger = logging.getLogger(__name__)

# Over-fetch factor when post-filtering by complexity or provider
FILTER_OVERFETCH = 3

_WORD = re.compile(r"[a-z0-9]+")


def _payload_filter(
    complexity: ComplexityTier | None, providers: Iterable[str] | None
) -> PayloadFilter | None:
    wanted_providers = frozenset(p.lower() for p in providers) if providers else frozenset()
    if complexity is None and not wanted_providers:
        return None

    def accept(payload: dict[str, Any]) -> bool:
        if complexity is not None and payload.get("complexity_tier") != complexity.value:
            return False
        if wanted_providers and not wanted_providers.intersection(payload.get("providers", ())):
            return False
        return True

    return accept


def keyword_hit(record: CapabilityRecord, intent: str) -> bool:
    """Whether *intent* names the record's kind or one of its capability tags."""
    text = f" {' '.join(_WORD.findall(intent.lower()))} "
    terms = {record.resource.kind.lower(), *(t.replace("-", " ") for t in record.capabilities)}
    return any(f" {term} " in text for term in terms)


class SemanticRetriever:
    """Embeds an intent with the index-time embedder and queries the store."""

    def __init__(
        self,
        store: CapabilityStore,
        embedder: Embedder,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._config = config or RETRIEVAL_CONFIG

    @property
    def model_version(self) -> str:
        return self._embedder.model_version

    def search(
        self,
        intent: str,
        top_k: int = 10,
        complexity: ComplexityTier | None = None,
        providers: Iterable[str] | None = None,
    ) -> list[SearchHit]:
        """Return up to *top_k* hits ordered by descending score.

        The score is the cosine similarity, plus ``keyword_boost`` (capped at
        1.0) for hits whose kind or capability tag the intent names.
        Filtering and boosting happen AFTER vector retrieval;
        3x top_k candidates are fetched when either is active. An empty
        index or blank intent yields ``[]``. Store and embedding failures
        raise :class:`VectorStoreUnavailable`.
        """
        if not intent.strip() or top_k <= 0:
            return []

        payload_filter = _payload_filter(complexity, providers)
        boost = self._config.keyword_boost
        widen = payload_filter is not None or boost > 0
        fetch_count = top_k * FILTER_OVERFETCH if widen else top_k
        try:
            if self._store.count == 0:
                return []
            query_vector = self._embedder.embed([intent])[0]
            results = self._store.search(query_vector, fetch_count, payload_filter)
        except VectorStoreUnavailable:
            raise
        except Exception as e:
            raise VectorStoreUnavailable(f"Capability search failed: {e}") from e

        scored: list[tuple[CapabilityRecord, float, MatchType]] = []
        for payload, score in results:
            record = CapabilityRecord.from_payload(payload)
            if boost > 0 and keyword_hit(record, intent):
                scored.append((record, min(1.0, score + boost), MatchType.HYBRID))
            else:
                scored.append((record, score, MatchType.SEMANTIC))
        scored.sort(key=lambda item: (-item[1], item[0].resource.sort_key))

        hits = [
            SearchHit(
                record=record,
                score=score,
                rank=rank,
                embedding_model_version=record.embedding_model_version,
                match_type=match_type,
            )
            for rank, (record, score, match_type) in enumerate(scored[:top_k], start=1)
        ]
        stale = sum(1 for h in hits if not h.matches_model(self.model_version))
        if stale:
            logger.debug("%d of %d hits were embedded with another model", stale, len(hits))
        return hits

    def get_by_kind(
        self, kind: str, api_version: str | None = None, api_group: str | None = None
    ) -> CapabilityRecord | None:
        """Exact lookup of an indexed record by kind (and optionally version/group)."""

        def accept(payload: dict[str, Any]) -> bool:
            resource = payload.get("resource", {})
            if str(resource.get("kind", "")).lower() != kind.lower():
                return False
            if api_version is not None and resource.get("api_version") != api_version.lower():
                return False
            return api_group is None or resource.get("api_group") == api_group.lower()

        try:
            payloads = self._store.list_all(accept)
        except VectorStoreUnavailable:
            raise
        except Exception as e:
            raise VectorStoreUnavailable(f"Capability lookup failed: {e}") from e
        if not payloads:
            return None
        records = sorted(
            (CapabilityRecord.from_payload(p) for p in payloads),
            key=lambda r: r.resource.sort_key,
        )
        return records[0]
