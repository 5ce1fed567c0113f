"""Dependency resolution: expand a primary type into a solution candidate."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from kube_recommender.config import RESOLVER_CONFIG, ResolverConfig
from kube_recommender.entities.graph import RelationKind
from kube_recommender.entities.solutions import SolutionCandidate

if TYPE_CHECKING:
    from kube_recommender.cluster.catalog import KnownTypeCatalog
    from kube_recommender.entities.resources import ResourceTypeRef
    from kube_recommender.memory.edge_store import DependencyEdgeStore

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Breadth-first closure over required edges with a visited set.

    Termination holds on cyclic graphs twice over: a type already placed
    (including the primary) is never expanded again, and traversal stops
    after ``max_depth`` hops. Required targets the live catalog does not
    serve are reported as unsatisfiable and not expanded. Optional edges
    are collected one hop out from the primary and its required set only.
    """

    def __init__(
        self,
        edge_store: DependencyEdgeStore,
        catalog: KnownTypeCatalog,
        config: ResolverConfig | None = None,
    ) -> None:
        self._edges = edge_store
        self._catalog = catalog
        self._config = config or RESOLVER_CONFIG

    @property
    def catalog(self) -> KnownTypeCatalog:
        return self._catalog

    def resolve(self, primary: ResourceTypeRef, similarity: float = 0.0) -> SolutionCandidate:
        """Build the unscored candidate for *primary*."""
        visited: set[tuple[str, str]] = {primary.group_kind}
        required: list[ResourceTypeRef] = []
        unsatisfiable: list[ResourceTypeRef] = []

        frontier = [primary]
        depth = 0
        while frontier and depth < self._config.max_depth:
            depth += 1
            next_frontier: list[ResourceTypeRef] = []
            for node in frontier:
                for edge in self._edges.edges_from(node, [RelationKind.REQUIRED]):
                    target = edge.dependency
                    if target.group_kind in visited:
                        logger.debug(
                            "Skipping visited %s reached from %s via %s", target, node, edge.field
                        )
                        continue
                    visited.add(target.group_kind)
                    served = self._catalog.resolve(target)
                    if served is None:
                        logger.debug("Required %s of %s is not served by the cluster", target, node)
                        unsatisfiable.append(target)
                        continue
                    required.append(served)
                    next_frontier.append(served)
            frontier = next_frontier

        if frontier:
            logger.debug(
                "Depth bound %d reached for %s with %d types unexpanded",
                self._config.max_depth,
                primary,
                len(frontier),
            )

        optional = self._collect_optional([primary, *required], visited)
        return SolutionCandidate(
            primary=primary,
            required=frozenset(required),
            optional=frozenset(optional),
            unsatisfiable=frozenset(unsatisfiable),
            similarity=similarity,
        )

    def _collect_optional(
        self, placed: list[ResourceTypeRef], visited: set[tuple[str, str]]
    ) -> list[ResourceTypeRef]:
        seen = set(visited)
        optional: list[ResourceTypeRef] = []
        for node in placed:
            for edge in self._edges.edges_from(node, [RelationKind.OPTIONAL]):
                target = edge.dependency
                if target.group_kind in seen:
                    continue
                served = self._catalog.resolve(target)
                if served is None:
                    continue
                seen.add(target.group_kind)
                optional.append(served)
        return optional
