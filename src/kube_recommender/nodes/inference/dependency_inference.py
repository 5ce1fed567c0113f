"""Dependency inference: which other resource types a type needs.

Schema fields are matched against a table of reference-field patterns.
Each pattern either names a well-known fixed target (``Secret``,
``ConfigMap`` ...) or strips a suffix (``resourceGroupNameRef`` ->
``ResourceGroup``) and looks the remainder up among the known types of the
same or a related API group. A provider heuristic adds the foundational
resource (Azure ``ResourceGroup``) every resource of that provider lives in.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from enum import StrEnum

from pydantic import BaseModel

from kube_recommender.cluster.catalog import KnownTypeCatalog
from kube_recommender.entities.graph import DependencyEdge, RelationKind
from kube_recommender.entities.resources import ResourceTypeRef
from kube_recommender.nodes.inference.lexicon import (
    PROVIDER_DOMAINS,
    foundational_domain_for,
)
from kube_recommender.nodes.inference.schema_text import (
    ParsedSchema,
    SchemaField,
    parse_schema,
)

logger = logging.getLogger(__name__)

WELL_KNOWN_CONFIDENCE = 0.95
LOOKUP_CONFIDENCE = 0.9
AMBIGUOUS_CONFIDENCE = 0.6
PROVIDER_HEURISTIC_CONFIDENCE = 0.75
COMPANION_CONFIDENCE = 0.7

# Output-only or plumbing fields that never express a dependency
EXCLUDED_FIELDS = frozenset(
    {
        "writeConnectionSecretToRef",
        "publishConnectionDetailsTo",
        "matchControllerRef",
        "matchLabels",
        "providerRef",
        "ownerReferences",
    }
)


class TargetRule(StrEnum):
    """How a matched field is turned into a target resource type."""

    FIXED = "fixed"  # target_kind/target_group as given
    PROVIDER_ROOT = "provider_root"  # target_kind in the provider's root group
    LOOKUP = "lookup"  # strip suffix, look up among known types
    NAME_LOOKUP = "name_lookup"  # like LOOKUP but only unique, related-group matches


class ReferencePattern(BaseModel):
    """A reference-field pattern from the dependency table."""

    name: str
    field_pattern: str  # Regex on the field name; LOOKUP rules capture ``target``
    type_pattern: str | None = None  # Regex on the type annotation
    target: TargetRule
    target_kind: str = ""
    target_group: str = ""
    target_version: str = "v1"
    relation: RelationKind | None = None  # None: required iff the schema says so
    requires_child: str | None = None  # Child field that must exist

    def match(self, schema_field: SchemaField) -> re.Match[str] | None:
        if self.type_pattern and not re.search(self.type_pattern, schema_field.type, re.IGNORECASE):
            return None
        return re.match(self.field_pattern, schema_field.name)


REFERENCE_PATTERNS: list[ReferencePattern] = [
    ReferencePattern(
        name="secret",
        field_pattern=r"^(?:\w*[sS]ecret(?:Key)?Ref|\w*[sS]ecretName|imagePullSecrets)$",
        target=TargetRule.FIXED,
        target_kind="Secret",
    ),
    ReferencePattern(
        name="config_map",
        field_pattern=r"^(?:\w*[cC]onfigMap(?:Key)?Ref|\w*[cC]onfigMapName)$",
        target=TargetRule.FIXED,
        target_kind="ConfigMap",
    ),
    ReferencePattern(
        name="service_account",
        field_pattern=r"^serviceAccount(?:Name|Ref)?$",
        target=TargetRule.FIXED,
        target_kind="ServiceAccount",
    ),
    ReferencePattern(
        name="storage_class",
        field_pattern=r"^storageClassName$",
        target=TargetRule.FIXED,
        target_kind="StorageClass",
        target_group="storage.k8s.io",
        relation=RelationKind.ENHANCES,
    ),
    ReferencePattern(
        name="persistent_volume_claim",
        field_pattern=r"^claimName$",
        target=TargetRule.FIXED,
        target_kind="PersistentVolumeClaim",
    ),
    ReferencePattern(
        name="provider_config",
        field_pattern=r"^providerConfigRef$",
        target=TargetRule.PROVIDER_ROOT,
        target_kind="ProviderConfig",
    ),
    ReferencePattern(
        name="reference",
        field_pattern=r"^(?P<target>[a-z][A-Za-z0-9]*?)(?:Id|Name|Arn)?Refs?$",
        target=TargetRule.LOOKUP,
    ),
    ReferencePattern(
        name="selector",
        field_pattern=r"^(?P<target>[a-z][A-Za-z0-9]*?)(?:Id|Name|Arn)?Selector$",
        target=TargetRule.LOOKUP,
        requires_child="matchControllerRef",
    ),
    ReferencePattern(
        name="name_field",
        field_pattern=r"^(?P<target>[a-z][A-Za-z0-9]*?)Name$",
        type_pattern=r"^string$",
        target=TargetRule.NAME_LOOKUP,
    ),
]


def provider_family(group: str) -> str:
    """Provider owning *group* (first match wins), else the group itself."""
    for domain in PROVIDER_DOMAINS:
        if domain.owns(group):
            return domain.provider
    return group


def _provider_root_group(group: str) -> str:
    for domain in PROVIDER_DOMAINS:
        root = domain.root_domain_of(group)
        if root is not None:
            return root
    return group


class DependencyInferenceEngine:
    """Derives :class:`DependencyEdge` lists from resource schemas."""

    def __init__(self, patterns: list[ReferencePattern] | None = None) -> None:
        self._patterns = patterns or REFERENCE_PATTERNS

    def infer(
        self,
        ref: ResourceTypeRef,
        schema_text: str,
        known_types: Iterable[ResourceTypeRef] | KnownTypeCatalog,
    ) -> list[DependencyEdge]:
        """Edges discovered from *ref*'s schema, deduplicated and sorted."""
        catalog = (
            known_types
            if isinstance(known_types, KnownTypeCatalog)
            else KnownTypeCatalog(known_types)
        )
        parsed = parse_schema(schema_text)
        edges: dict[tuple[ResourceTypeRef, ResourceTypeRef, str], DependencyEdge] = {}

        def keep(edge: DependencyEdge) -> None:
            existing = edges.get(edge.key)
            if existing is None or edge.confidence > existing.confidence:
                edges[edge.key] = edge

        for edge in self._schema_edges(ref, parsed, catalog):
            keep(edge)
        heuristic = self._provider_heuristic(ref, catalog)
        if heuristic is not None:
            keep(heuristic)
        for edge in list(edges.values()):
            companion = self._companion(ref, edge)
            if companion is not None:
                keep(companion)

        result = sorted(
            edges.values(),
            key=lambda e: (e.dependent.sort_key, e.dependency.sort_key, e.field),
        )
        logger.debug("Inferred %d dependency edges for %s", len(result), ref)
        return result

    # ------------------------------------------------------------------
    # Schema-derived edges
    # ------------------------------------------------------------------

    def _schema_edges(
        self, ref: ResourceTypeRef, parsed: ParsedSchema, catalog: KnownTypeCatalog
    ) -> list[DependencyEdge]:
        by_path = {f.path: f for f in parsed.fields}
        edges: list[DependencyEdge] = []
        for schema_field in parsed.fields:
            if schema_field.is_boilerplate:
                continue
            if any(part in EXCLUDED_FIELDS for part in schema_field.path.split(".")):
                continue
            for pattern in self._patterns:
                match = pattern.match(schema_field)
                if match is None:
                    continue
                child_path = f"{schema_field.path}.{pattern.requires_child}"
                if pattern.requires_child and child_path not in by_path:
                    continue
                if pattern.name == "selector" and self._has_ref_sibling(schema_field, by_path):
                    break
                edges.extend(self._edges_for(ref, schema_field, pattern, match, catalog))
                break
        return edges

    @staticmethod
    def _has_ref_sibling(schema_field: SchemaField, by_path: dict[str, SchemaField]) -> bool:
        base = schema_field.path[: -len("Selector")]
        return f"{base}Ref" in by_path or f"{base}Refs" in by_path

    def _edges_for(
        self,
        ref: ResourceTypeRef,
        schema_field: SchemaField,
        pattern: ReferencePattern,
        match: re.Match[str],
        catalog: KnownTypeCatalog,
    ) -> list[DependencyEdge]:
        if pattern.relation is not None:
            relation = pattern.relation
        elif schema_field.effectively_required:
            relation = RelationKind.REQUIRED
        else:
            relation = RelationKind.OPTIONAL
        evidence = f"{schema_field.path} <{schema_field.type}>"

        if pattern.target in (TargetRule.FIXED, TargetRule.PROVIDER_ROOT):
            group = (
                _provider_root_group(ref.api_group)
                if pattern.target == TargetRule.PROVIDER_ROOT
                else pattern.target_group
            )
            wanted = ResourceTypeRef(
                kind=pattern.target_kind, api_group=group, api_version=pattern.target_version
            )
            target = catalog.resolve(wanted) or wanted
            if target.group_kind == ref.group_kind:
                return []
            return [
                DependencyEdge(
                    dependent=ref,
                    dependency=target,
                    relation_kind=relation,
                    field=schema_field.path,
                    evidence=evidence,
                    reason=f"{pattern.name.replace('_', ' ')} reference",
                    confidence=WELL_KNOWN_CONFIDENCE,
                )
            ]

        target_name = match.group("target")
        candidates = self._lookup(ref, target_name, catalog)
        if not candidates:
            return []
        if pattern.target == TargetRule.NAME_LOOKUP and len(candidates) != 1:
            return []
        confidence = LOOKUP_CONFIDENCE if len(candidates) == 1 else AMBIGUOUS_CONFIDENCE
        if len(candidates) > 1:
            logger.debug(
                "Ambiguous reference %s on %s: %s",
                schema_field.path,
                ref,
                ", ".join(str(c) for c in candidates),
            )
        return [
            DependencyEdge(
                dependent=ref,
                dependency=candidate,
                relation_kind=relation,
                field=schema_field.path,
                evidence=evidence,
                reason=f"{schema_field.name} refers to a {candidate.kind}",
                confidence=confidence,
            )
            for candidate in candidates
        ]

    @staticmethod
    def _lookup(
        ref: ResourceTypeRef, target_name: str, catalog: KnownTypeCatalog
    ) -> list[ResourceTypeRef]:
        """Known types named *target_name* in the same group, else a related one."""
        if not target_name:
            return []
        candidates: list[ResourceTypeRef] = []
        seen = {ref.group_kind}
        for candidate in catalog.find_kind(target_name):
            if candidate.group_kind not in seen:
                seen.add(candidate.group_kind)
                candidates.append(candidate)
        same_group = [c for c in candidates if c.api_group == ref.api_group]
        if same_group:
            return same_group
        family = provider_family(ref.api_group)
        return [c for c in candidates if provider_family(c.api_group) == family]

    # ------------------------------------------------------------------
    # Heuristics
    # ------------------------------------------------------------------

    def _provider_heuristic(
        self, ref: ResourceTypeRef, catalog: KnownTypeCatalog
    ) -> DependencyEdge | None:
        domain = foundational_domain_for(ref.api_group)
        if domain is None or domain.foundational_kind is None:
            return None
        if ref.kind in domain.exempt_kinds:
            return None

        root = domain.root_domain_of(ref.api_group) or ref.api_group
        owned = [c for c in catalog.find_kind(domain.foundational_kind) if domain.owns(c.api_group)]
        preferred = [c for c in owned if domain.root_domain_of(c.api_group) == root]
        if preferred or owned:
            target = (preferred or owned)[0]
        else:
            target = ResourceTypeRef(
                kind=domain.foundational_kind, api_group=root, api_version=ref.api_version
            )
        return DependencyEdge(
            dependent=ref,
            dependency=target,
            relation_kind=RelationKind.REQUIRED,
            field="apiGroup",
            evidence=f"apiGroup {ref.api_group}",
            reason=f"{domain.provider} resources are created inside a {domain.foundational_kind}",
            confidence=PROVIDER_HEURISTIC_CONFIDENCE,
        )

    @staticmethod
    def _companion(ref: ResourceTypeRef, edge: DependencyEdge) -> DependencyEdge | None:
        """Reverse optional edge: a parent may be deployed with children that attach to it.

        Only unambiguous references within one API group qualify, and never
        towards a provider's foundational resource.
        """
        if edge.dependent != ref or edge.confidence != LOOKUP_CONFIDENCE:
            return None
        parent = edge.dependency
        if parent.api_group != ref.api_group or not ref.api_group:
            return None
        domain = foundational_domain_for(parent.api_group)
        if domain is not None and parent.kind == domain.foundational_kind:
            return None
        return DependencyEdge(
            dependent=parent,
            dependency=ref,
            relation_kind=RelationKind.OPTIONAL,
            field=f"{ref}:{edge.field}",
            evidence=edge.evidence,
            reason=f"{ref.kind} attaches to {parent.kind} through {edge.field}",
            confidence=COMPANION_CONFIDENCE,
            discovered_from=ref,
        )
