"""Capability store protocol and FAISS implementation with JSON payloads."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import faiss  # pyright: ignore[reportMissingTypeStubs]
import numpy as np

from kube_recommender.config import EMBEDDING_CONFIG
from kube_recommender.errors import VectorStoreUnavailable

logger = logging.getLogger(__name__)

_INDEX_FILENAME = "capability_index.bin"
_MAPPING_FILENAME = "capability_payloads.json"

PayloadFilter = Callable[[dict[str, Any]], bool]


@runtime_checkable
class CapabilityStore(Protocol):
    """Protocol for vector store backends holding capability payloads.

    Points are addressed by string id; upserting an existing id replaces
    both its vector and its payload (last write wins).
    """

    def upsert(self, point_id: str, vector: np.ndarray, payload: dict[str, Any]) -> None: ...

    def search(
        self,
        vector: np.ndarray,
        top_k: int,
        payload_filter: PayloadFilter | None = None,
    ) -> list[tuple[dict[str, Any], float]]: ...

    def list_all(self, payload_filter: PayloadFilter | None = None) -> list[dict[str, Any]]: ...

    def get(self, point_id: str) -> dict[str, Any] | None: ...

    def delete(self, point_id: str) -> bool: ...

    @property
    def count(self) -> int: ...


class FAISSCapabilityStore:
    """Capability store using FAISS IndexFlatIP with string-to-int ID mapping.

    Vectors are L2-normalized before insertion so that inner-product
    scores equal cosine similarity. Payloads live beside the index in a
    plain dict and are persisted as JSON.
    """

    def __init__(self, dimensions: int | None = None) -> None:
        dim = dimensions if dimensions is not None else EMBEDDING_CONFIG.dimensions
        self._index: faiss.IndexIDMap = faiss.IndexIDMap(faiss.IndexFlatIP(dim))
        self._id_to_int: dict[str, int] = {}
        self._int_to_id: dict[int, str] = {}
        self._payloads: dict[str, dict[str, Any]] = {}
        self._next_id: int = 0
        self._dimensions: int = dim

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _prepare(self, vector: np.ndarray) -> np.ndarray:
        vec = np.asarray(vector, dtype=np.float32).reshape(1, -1)
        if vec.shape[1] != self._dimensions:
            msg = f"Vector has {vec.shape[1]} dimensions, store expects {self._dimensions}"
            raise VectorStoreUnavailable(msg)
        faiss.normalize_L2(vec)  # pyright: ignore[reportUnknownMemberType]
        return vec

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def upsert(self, point_id: str, vector: np.ndarray, payload: dict[str, Any]) -> None:
        """Insert or replace the point stored under *point_id*."""
        vec = self._prepare(vector)
        if point_id in self._id_to_int:
            self._remove_vector(point_id)

        int_id = self._next_id
        self._next_id += 1
        try:
            self._index.add_with_ids(vec, np.array([int_id], dtype=np.int64))  # pyright: ignore[reportUnknownMemberType, reportCallIssue]
        except RuntimeError as e:
            raise VectorStoreUnavailable(f"FAISS add failed: {e}") from e
        self._id_to_int[point_id] = int_id
        self._int_to_id[int_id] = point_id
        self._payloads[point_id] = dict(payload)

    def delete(self, point_id: str) -> bool:
        """Remove a point; returns False when it was not stored."""
        if point_id not in self._id_to_int:
            return False
        self._remove_vector(point_id)
        self._payloads.pop(point_id, None)
        return True

    def _remove_vector(self, point_id: str) -> None:
        int_id = self._id_to_int.pop(point_id)
        del self._int_to_id[int_id]
        self._index.remove_ids(np.array([int_id], dtype=np.int64))  # pyright: ignore[reportUnknownMemberType]

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def search(
        self,
        vector: np.ndarray,
        top_k: int,
        payload_filter: PayloadFilter | None = None,
    ) -> list[tuple[dict[str, Any], float]]:
        """Return up to *top_k* ``(payload, cosine)`` pairs, best first.

        With a filter every stored vector is scored, so matches ranked
        below unfiltered neighbours are still found.
        """
        if top_k <= 0 or self.count == 0:
            return []
        vec = self._prepare(vector)
        fetch = self.count if payload_filter is not None else min(top_k, self.count)
        try:
            distances, indices = self._index.search(vec, fetch)  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType, reportCallIssue]
        except RuntimeError as e:
            raise VectorStoreUnavailable(f"FAISS search failed: {e}") from e

        results: list[tuple[dict[str, Any], float]] = []
        for idx, dist in zip(indices[0], distances[0], strict=True):  # pyright: ignore[reportUnknownArgumentType, reportUnknownVariableType]
            if idx == -1:
                continue
            point_id = self._int_to_id[int(idx)]  # pyright: ignore[reportUnknownArgumentType]
            payload = self._payloads[point_id]
            if payload_filter is not None and not payload_filter(payload):
                continue
            results.append((dict(payload), float(dist)))  # pyright: ignore[reportUnknownArgumentType]
            if len(results) >= top_k:
                break
        return results

    def list_all(self, payload_filter: PayloadFilter | None = None) -> list[dict[str, Any]]:
        """All payloads in point-id order, optionally filtered."""
        return [
            dict(self._payloads[pid])
            for pid in sorted(self._payloads)
            if payload_filter is None or payload_filter(self._payloads[pid])
        ]

    def get(self, point_id: str) -> dict[str, Any] | None:
        payload = self._payloads.get(point_id)
        return dict(payload) if payload is not None else None

    def contains(self, point_id: str) -> bool:
        return point_id in self._id_to_int

    @property
    def count(self) -> int:
        """Number of points currently stored."""
        return int(self._index.ntotal)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, directory: str | Path) -> None:
        """Write FAISS index, ID mapping and payloads to *directory*."""
        dirpath = Path(directory)
        dirpath.mkdir(parents=True, exist_ok=True)

        faiss.write_index(self._index, str(dirpath / _INDEX_FILENAME))  # pyright: ignore[reportUnknownMemberType]

        mapping = {
            "dimensions": self._dimensions,
            "id_to_int": self._id_to_int,
            "next_id": self._next_id,
            "payloads": self._payloads,
        }
        (dirpath / _MAPPING_FILENAME).write_text(json.dumps(mapping), encoding="utf-8")
        logger.info("Saved %d capability points to %s", self.count, dirpath)

    def load(self, directory: str | Path) -> None:
        """Restore FAISS index, ID mapping and payloads from *directory*."""
        dirpath = Path(directory)
        try:
            index = faiss.read_index(str(dirpath / _INDEX_FILENAME))  # pyright: ignore[reportUnknownMemberType]
            raw = json.loads((dirpath / _MAPPING_FILENAME).read_text(encoding="utf-8"))
        except (OSError, RuntimeError, ValueError) as e:
            raise VectorStoreUnavailable(f"Cannot load capability index from {dirpath}: {e}") from e

        self._index = index
        self._dimensions = int(raw["dimensions"])
        self._id_to_int = {k: int(v) for k, v in raw["id_to_int"].items()}
        self._int_to_id = {v: k for k, v in self._id_to_int.items()}
        self._next_id = int(raw["next_id"])
        self._payloads = raw["payloads"]
        logger.info("Loaded %d capability points from %s", self.count, dirpath)
