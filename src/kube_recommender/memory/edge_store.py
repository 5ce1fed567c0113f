"""Dependency edge store protocol and NetworkX implementation."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import networkx as nx

from kube_recommender.entities.graph import DependencyEdge, RelationKind
from kube_recommender.entities.resources import ResourceTypeRef

logger = logging.getLogger(__name__)

_REF_ATTRS = ("kind", "api_group", "api_version")


@runtime_checkable
class DependencyEdgeStore(Protocol):
    """Protocol for dependency edge storage backends."""

    def upsert(self, edge: DependencyEdge) -> None: ...

    def replace_for_source(
        self, source: ResourceTypeRef, edges: Iterable[DependencyEdge]
    ) -> None: ...

    def edges_from(
        self,
        ref: ResourceTypeRef,
        kinds: Iterable[RelationKind] | None = None,
    ) -> list[DependencyEdge]: ...

    def all_edges(self) -> list[DependencyEdge]: ...

    def edge_count(self) -> int: ...


class NetworkXEdgeStore:
    """NetworkX multigraph of resource types keyed by the referencing field.

    Nodes are ``ref.key`` strings; parallel edges between the same two
    types are distinguished by field, so ``(dependent, dependency, field)``
    identifies exactly one edge.
    """

    def __init__(self) -> None:
        self._graph: nx.MultiDiGraph[str] = nx.MultiDiGraph()

    def _ensure_node(self, ref: ResourceTypeRef) -> str:
        node_id = ref.key
        if node_id not in self._graph:
            self._graph.add_node(
                node_id, kind=ref.kind, api_group=ref.api_group, api_version=ref.api_version
            )
        return node_id

    def _node_ref(self, node_id: str) -> ResourceTypeRef:
        data: dict[str, Any] = dict(self._graph.nodes[node_id])
        return ResourceTypeRef(**{k: data[k] for k in _REF_ATTRS})

    def upsert(self, edge: DependencyEdge) -> None:
        """Add or overwrite the edge identified by ``edge.key``."""
        source = self._ensure_node(edge.dependent)
        target = self._ensure_node(edge.dependency)
        attrs = edge.model_dump(mode="json", exclude={"dependent", "dependency", "field"})
        if self._graph.has_edge(source, target, key=edge.field):
            self._graph.remove_edge(source, target, key=edge.field)
        self._graph.add_edge(source, target, key=edge.field, **attrs)

    def replace_for_source(
        self, source: ResourceTypeRef, edges: Iterable[DependencyEdge]
    ) -> None:
        """Swap every edge discovered from *source*'s schema for *edges*.

        Used on re-scan so edges the schema no longer implies disappear,
        while edges owned by other types' schemas stay untouched.
        """
        new_edges = list(edges)
        for edge in new_edges:
            if edge.origin != source:
                msg = f"Edge {edge.key} was not discovered from {source}"
                raise ValueError(msg)
        self._ensure_node(source)
        source_key = source.key
        out: Any = self._graph.edges(keys=True, data=True)
        stale = [
            (u, v, k)
            for u, v, k, data in out
            if self._origin_key(u, data) == source_key
        ]
        self._graph.remove_edges_from(stale)
        for edge in new_edges:
            self.upsert(edge)

    @staticmethod
    def _origin_key(dependent_node: str, data: dict[str, Any]) -> str:
        discovered_from = data.get("discovered_from")
        if not discovered_from:
            return dependent_node
        return ResourceTypeRef(**discovered_from).key

    def edges_from(
        self,
        ref: ResourceTypeRef,
        kinds: Iterable[RelationKind] | None = None,
    ) -> list[DependencyEdge]:
        """Outgoing edges of *ref*, sorted by dependency then field."""
        node_id = ref.key
        if node_id not in self._graph:
            return []
        wanted = set(kinds) if kinds is not None else None
        out: Any = self._graph.out_edges(node_id, keys=True, data=True)
        edges = [
            self._to_edge(source, target, key, data)
            for source, target, key, data in out
            if wanted is None or RelationKind(data["relation_kind"]) in wanted
        ]
        edges.sort(key=lambda e: (e.dependency.sort_key, e.field))
        return edges

    def all_edges(self) -> list[DependencyEdge]:
        out: Any = self._graph.edges(keys=True, data=True)
        edges = [self._to_edge(s, t, k, d) for s, t, k, d in out]
        edges.sort(key=lambda e: (e.dependent.sort_key, e.dependency.sort_key, e.field))
        return edges

    def edge_keys(self) -> set[tuple[ResourceTypeRef, ResourceTypeRef, str]]:
        return {e.key for e in self.all_edges()}

    def _to_edge(self, source: str, target: str, key: str, data: dict[str, Any]) -> DependencyEdge:
        return DependencyEdge(
            dependent=self._node_ref(source),
            dependency=self._node_ref(target),
            field=key,
            **data,
        )

    def node_count(self) -> int:
        return int(self._graph.number_of_nodes())

    def edge_count(self) -> int:
        return int(self._graph.number_of_edges())

    def save(self, path: str | Path) -> None:
        """Serialize graph to JSON file using node-link format."""
        data: dict[str, Any] = nx.node_link_data(self._graph)  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        logger.info("Saved %d dependency edges to %s", self.edge_count(), path)

    def load(self, path: str | Path) -> None:
        """Deserialize graph from JSON file using node-link format."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        self._graph = nx.node_link_graph(data, directed=True, multigraph=True)  # pyright: ignore[reportUnknownMemberType]
        logger.info("Loaded %d dependency edges from %s", self.edge_count(), path)
