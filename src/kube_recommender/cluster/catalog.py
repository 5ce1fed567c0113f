"""Snapshot of the resource types a live cluster serves."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from kube_recommender.entities.resources import ResourceTypeRef


class KnownTypeCatalog:
    """Immutable set of resource types available in the target cluster.

    Membership is version-independent (``kind`` + ``group``): a required
    dependency on ``ResourceGroup.azure.upbound.io/v1beta2`` is satisfiable
    when the cluster serves ``v1beta1`` of the same kind.
    """

    def __init__(self, refs: Iterable[ResourceTypeRef] = ()) -> None:
        self._refs: tuple[ResourceTypeRef, ...] = tuple(
            sorted(set(refs), key=lambda r: r.sort_key)
        )
        self._group_kinds: frozenset[tuple[str, str]] = frozenset(
            r.group_kind for r in self._refs
        )

    def __contains__(self, ref: object) -> bool:
        if not isinstance(ref, ResourceTypeRef):
            return False
        return ref.group_kind in self._group_kinds

    def __iter__(self) -> Iterator[ResourceTypeRef]:
        return iter(self._refs)

    def __len__(self) -> int:
        return len(self._refs)

    def find_kind(self, kind: str) -> list[ResourceTypeRef]:
        """All served types whose kind matches case-insensitively."""
        kind_lower = kind.lower()
        return [r for r in self._refs if r.kind.lower() == kind_lower]

    def resolve(self, ref: ResourceTypeRef) -> ResourceTypeRef | None:
        """Return the served version of *ref*'s kind+group, if any."""
        for candidate in self._refs:
            if candidate.group_kind == ref.group_kind:
                return candidate
        return None
