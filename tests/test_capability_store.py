"""Tests for FAISSCapabilityStore."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from kube_recommender.errors import VectorStoreUnavailable
from kube_recommender.memory import CapabilityStore, FAISSCapabilityStore

DIM = 16


def _axis(i: int, scale: float = 1.0) -> np.ndarray:
    vec = np.zeros(DIM, dtype=np.float32)
    vec[i] = scale
    return vec


def _payload(name: str, tier: str = "medium") -> dict:
    return {"name": name, "complexity_tier": tier, "providers": ["azure"]}


def test_implements_protocol() -> None:
    assert isinstance(FAISSCapabilityStore(dimensions=DIM), CapabilityStore)


def test_upsert_and_count() -> None:
    store = FAISSCapabilityStore(dimensions=DIM)
    for i in range(3):
        store.upsert(f"p-{i}", _axis(i), _payload(f"r{i}"))
    assert store.count == 3


def test_upsert_same_id_replaces_vector_and_payload() -> None:
    store = FAISSCapabilityStore(dimensions=DIM)
    store.upsert("p-1", _axis(0), _payload("old"))
    store.upsert("p-1", _axis(1), _payload("new"))

    assert store.count == 1
    assert store.get("p-1") == _payload("new")
    results = store.search(_axis(1), top_k=1)
    assert results[0][0]["name"] == "new"
    assert results[0][1] > 0.99


def test_search_returns_cosine_scores_best_first() -> None:
    store = FAISSCapabilityStore(dimensions=DIM)
    store.upsert("parallel", _axis(0, 5.0), _payload("parallel"))
    mixed = _axis(0) + _axis(1)
    store.upsert("mixed", mixed, _payload("mixed"))
    store.upsert("orthogonal", _axis(2), _payload("orthogonal"))

    results = store.search(_axis(0), top_k=3)
    names = [p["name"] for p, _ in results]
    assert names == ["parallel", "mixed", "orthogonal"]
    assert results[0][1] == pytest.approx(1.0, abs=1e-5)
    assert results[1][1] == pytest.approx(1 / np.sqrt(2), abs=1e-5)
    assert abs(results[2][1]) < 1e-5


def test_search_with_filter_scans_past_unfiltered_neighbours() -> None:
    store = FAISSCapabilityStore(dimensions=DIM)
    for i in range(5):
        store.upsert(f"near-{i}", _axis(0) + _axis(i + 1, 0.1), _payload(f"near{i}", "high"))
    store.upsert("far", _axis(7), _payload("far", "low"))

    results = store.search(
        _axis(0), top_k=1, payload_filter=lambda p: p["complexity_tier"] == "low"
    )
    assert [p["name"] for p, _ in results] == ["far"]


def test_search_empty_store_and_zero_top_k() -> None:
    store = FAISSCapabilityStore(dimensions=DIM)
    assert store.search(_axis(0), top_k=5) == []
    store.upsert("p", _axis(0), _payload("p"))
    assert store.search(_axis(0), top_k=0) == []


def test_dimension_mismatch_raises() -> None:
    store = FAISSCapabilityStore(dimensions=DIM)
    with pytest.raises(VectorStoreUnavailable, match="dimensions"):
        store.upsert("p", np.ones(DIM + 1, dtype=np.float32), _payload("p"))


def test_delete() -> None:
    store = FAISSCapabilityStore(dimensions=DIM)
    store.upsert("p", _axis(0), _payload("p"))
    assert store.delete("p")
    assert not store.delete("p")
    assert store.count == 0
    assert store.get("p") is None
    assert not store.contains("p")


def test_list_all_sorted_by_point_id_and_filtered() -> None:
    store = FAISSCapabilityStore(dimensions=DIM)
    store.upsert("b", _axis(0), _payload("b", "low"))
    store.upsert("a", _axis(1), _payload("a", "high"))
    assert [p["name"] for p in store.list_all()] == ["a", "b"]
    assert [p["name"] for p in store.list_all(lambda p: p["complexity_tier"] == "low")] == ["b"]


def test_returned_payloads_are_copies() -> None:
    store = FAISSCapabilityStore(dimensions=DIM)
    store.upsert("p", _axis(0), _payload("p"))
    store.get("p")["name"] = "mutated"  # type: ignore[index]
    assert store.get("p") == _payload("p")


def test_save_and_load(tmp_path: Path) -> None:
    store = FAISSCapabilityStore(dimensions=DIM)
    store.upsert("p-0", _axis(0), _payload("zero"))
    store.upsert("p-1", _axis(1), _payload("one"))
    store.save(tmp_path)

    loaded = FAISSCapabilityStore()
    loaded.load(tmp_path)
    assert loaded.count == 2
    assert loaded.dimensions == DIM
    assert loaded.search(_axis(1), top_k=1)[0][0]["name"] == "one"

    loaded.upsert("p-2", _axis(2), _payload("two"))
    assert loaded.count == 3


def test_load_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(VectorStoreUnavailable):
        FAISSCapabilityStore(dimensions=DIM).load(tmp_path / "missing")
