"""Tests for dependency inference from reference fields and provider heuristics."""

from __future__ import annotations

import pytest
from conftest import (
    FIREWALL_RULE,
    FIREWALL_RULE_SCHEMA,
    MALFORMED_SCHEMAS,
    RESOURCE_GROUP,
    RESOURCE_GROUP_SCHEMA,
    SERVER,
    SERVER_SCHEMA,
    crd_yaml,
)

from kube_recommender.cluster import KnownTypeCatalog
from kube_recommender.entities import RelationKind, ResourceTypeRef
from kube_recommender.nodes.inference import DependencyInferenceEngine
from kube_recommender.nodes.inference.dependency_inference import (
    AMBIGUOUS_CONFIDENCE,
    COMPANION_CONFIDENCE,
    LOOKUP_CONFIDENCE,
    PROVIDER_HEURISTIC_CONFIDENCE,
    WELL_KNOWN_CONFIDENCE,
    provider_family,
)

SECRET = ResourceTypeRef(kind="Secret")
CONFIG_MAP = ResourceTypeRef(kind="ConfigMap")
STORAGE_CLASS = ResourceTypeRef(kind="StorageClass", api_group="storage.k8s.io")


@pytest.fixture
def engine() -> DependencyInferenceEngine:
    return DependencyInferenceEngine()


@pytest.fixture
def catalog() -> KnownTypeCatalog:
    return KnownTypeCatalog([SERVER, FIREWALL_RULE, RESOURCE_GROUP, SECRET, CONFIG_MAP])


def _by_field(edges: list) -> dict:
    return {e.field: e for e in edges}


class TestProviderHeuristic:
    """Foundational resource edges for Azure."""

    def test_server_requires_resource_group(
        self, engine: DependencyInferenceEngine, catalog: KnownTypeCatalog
    ) -> None:
        edges = _by_field(engine.infer(SERVER, SERVER_SCHEMA, catalog))
        heuristic = edges["apiGroup"]
        assert heuristic.dependency == RESOURCE_GROUP
        assert heuristic.relation_kind == RelationKind.REQUIRED
        assert heuristic.confidence == PROVIDER_HEURISTIC_CONFIDENCE

    def test_resource_group_is_exempt(
        self, engine: DependencyInferenceEngine, catalog: KnownTypeCatalog
    ) -> None:
        assert engine.infer(RESOURCE_GROUP, RESOURCE_GROUP_SCHEMA, catalog) == []

    def test_heuristic_target_built_when_catalog_lacks_it(
        self, engine: DependencyInferenceEngine
    ) -> None:
        edges = _by_field(engine.infer(SERVER, SERVER_SCHEMA, [SERVER]))
        target = edges["apiGroup"].dependency
        assert target.kind == "ResourceGroup"
        assert target.api_group == "azure.upbound.io"

    def test_non_azure_types_get_no_heuristic(self, engine: DependencyInferenceEngine) -> None:
        ref = ResourceTypeRef(kind="Bucket", api_group="s3.aws.upbound.io", api_version="v1beta1")
        assert "apiGroup" not in _by_field(engine.infer(ref, "", [ref]))


class TestReferenceFields:
    """Suffix lookups among known types."""

    def test_resource_group_name_ref(
        self, engine: DependencyInferenceEngine, catalog: KnownTypeCatalog
    ) -> None:
        edges = _by_field(engine.infer(SERVER, SERVER_SCHEMA, catalog))
        ref_edge = edges["spec.forProvider.resourceGroupNameRef"]
        assert ref_edge.dependency == RESOURCE_GROUP
        assert ref_edge.relation_kind == RelationKind.OPTIONAL
        assert ref_edge.confidence == LOOKUP_CONFIDENCE
        assert ref_edge.evidence == "spec.forProvider.resourceGroupNameRef <object>"

    def test_selector_with_ref_sibling_adds_nothing(
        self, engine: DependencyInferenceEngine, catalog: KnownTypeCatalog
    ) -> None:
        fields = {e.field for e in engine.infer(SERVER, SERVER_SCHEMA, catalog)}
        assert "spec.forProvider.resourceGroupNameSelector" not in fields
        assert not any("matchControllerRef" in f for f in fields)

    def test_connection_secret_is_not_a_dependency(
        self, engine: DependencyInferenceEngine, catalog: KnownTypeCatalog
    ) -> None:
        edges = engine.infer(SERVER, SERVER_SCHEMA, catalog)
        assert not any("writeConnectionSecretToRef" in e.field for e in edges)
        assert SECRET not in {e.dependency for e in edges}

    def test_reference_beside_required_scalar_stays_optional(
        self, engine: DependencyInferenceEngine
    ) -> None:
        child = ResourceTypeRef(
            kind="Subnet", api_group="network.azure.upbound.io", api_version="v1beta1"
        )
        parent = ResourceTypeRef(
            kind="VirtualNetwork", api_group="network.azure.upbound.io", api_version="v1beta1"
        )
        schema = crd_yaml(
            child,
            {
                "virtualNetworkName": {"type": "string"},
                "virtualNetworkNameRef": {
                    "type": "object",
                    "properties": {"name": {"type": "string"}},
                },
            },
            cel_required=["spec.forProvider.virtualNetworkName"],
        )
        edges = _by_field(engine.infer(child, schema, [child, parent, RESOURCE_GROUP]))
        ref_edge = edges["spec.forProvider.virtualNetworkNameRef"]
        assert ref_edge.relation_kind == RelationKind.OPTIONAL
        assert edges["spec.forProvider.virtualNetworkName"].relation_kind == RelationKind.REQUIRED

    def test_declared_required_reference_is_required(
        self, engine: DependencyInferenceEngine
    ) -> None:
        ref = ResourceTypeRef(kind="App", api_group="net.example.com", api_version="v1")
        network = ResourceTypeRef(kind="Network", api_group="net.example.com", api_version="v1")
        schema = crd_yaml(
            ref,
            {"network": {"type": "string"}, "networkRef": {"type": "object"}},
            cel_required=["spec.forProvider.networkRef"],
        )
        edges = _by_field(engine.infer(ref, schema, [ref, network]))
        assert edges["spec.forProvider.networkRef"].relation_kind == RelationKind.REQUIRED

    def test_lookup_collapses_versions_and_stays_in_family(
        self, engine: DependencyInferenceEngine
    ) -> None:
        ref = ResourceTypeRef(kind="Attachment", api_group="net.example.com", api_version="v1")
        gateway_a = ResourceTypeRef(kind="Gateway", api_group="net.example.com", api_version="v1")
        gateway_b = ResourceTypeRef(kind="Gateway", api_group="net.example.com", api_version="v2")
        schema = crd_yaml(ref, {"gatewayRef": {"type": "object"}})
        edges = engine.infer(ref, schema, [ref, gateway_a, gateway_b])
        # Two served versions of one kind are a single candidate
        assert [e.confidence for e in edges if e.field == "spec.forProvider.gatewayRef"] == [
            LOOKUP_CONFIDENCE
        ]

        other = ResourceTypeRef(kind="Gateway", api_group="mesh.example.com", api_version="v1")
        family_ref = ResourceTypeRef(
            kind="Attachment", api_group="edge.example.com", api_version="v1"
        )
        schema = crd_yaml(family_ref, {"gatewayRef": {"type": "object"}})
        edges = engine.infer(family_ref, schema, [family_ref, gateway_a, other])
        assert edges == []

    def test_ambiguous_family_candidates_lower_confidence(
        self, engine: DependencyInferenceEngine
    ) -> None:
        ref = ResourceTypeRef(kind="Listener", api_group="lb.aws.upbound.io", api_version="v1beta1")
        a = ResourceTypeRef(kind="Target", api_group="elbv2.aws.upbound.io", api_version="v1beta1")
        b = ResourceTypeRef(kind="Target", api_group="ec2.aws.upbound.io", api_version="v1beta1")
        schema = crd_yaml(ref, {"targetRef": {"type": "object"}})
        edges = engine.infer(ref, schema, [ref, a, b])
        assert {e.dependency for e in edges} == {a, b}
        assert {e.confidence for e in edges} == {AMBIGUOUS_CONFIDENCE}

    def test_self_reference_ignored(self, engine: DependencyInferenceEngine) -> None:
        ref = ResourceTypeRef(kind="Node", api_group="graph.example.com", api_version="v1")
        schema = crd_yaml(ref, {"nodeRef": {"type": "object"}})
        assert engine.infer(ref, schema, [ref]) == []


class TestWellKnownTargets:
    """Fixed targets such as Secret, ConfigMap and StorageClass."""

    def test_secret_and_config_map(self, engine: DependencyInferenceEngine) -> None:
        ref = ResourceTypeRef(kind="App", api_group="apps.example.com", api_version="v1")
        schema = crd_yaml(
            ref,
            {
                "passwordSecretRef": {"type": "object"},
                "settingsConfigMapName": {"type": "string"},
            },
            cel_required=["spec.forProvider.passwordSecretRef"],
        )
        edges = _by_field(engine.infer(ref, schema, [ref, SECRET, CONFIG_MAP]))
        secret = edges["spec.forProvider.passwordSecretRef"]
        assert secret.dependency == SECRET
        assert secret.relation_kind == RelationKind.REQUIRED
        assert secret.confidence == WELL_KNOWN_CONFIDENCE
        config_map = edges["spec.forProvider.settingsConfigMapName"]
        assert config_map.dependency == CONFIG_MAP
        assert config_map.relation_kind == RelationKind.OPTIONAL

    def test_storage_class_enhances(self, engine: DependencyInferenceEngine) -> None:
        ref = ResourceTypeRef(kind="Cluster", api_group="postgresql.cnpg.io", api_version="v1")
        schema = crd_yaml(ref, {"storageClassName": {"type": "string"}})
        edges = _by_field(engine.infer(ref, schema, [ref, STORAGE_CLASS]))
        edge = edges["spec.forProvider.storageClassName"]
        assert edge.dependency == STORAGE_CLASS
        assert edge.relation_kind == RelationKind.ENHANCES


class TestCompanionEdges:
    """Reverse optional edges from children to their parent."""

    def test_firewall_rule_adds_companion_to_server(
        self, engine: DependencyInferenceEngine, catalog: KnownTypeCatalog
    ) -> None:
        edges = engine.infer(FIREWALL_RULE, FIREWALL_RULE_SCHEMA, catalog)
        companions = [e for e in edges if e.dependent == SERVER]
        assert len(companions) == 1
        companion = companions[0]
        assert companion.dependency == FIREWALL_RULE
        assert companion.relation_kind == RelationKind.OPTIONAL
        assert companion.confidence == COMPANION_CONFIDENCE
        assert companion.origin == FIREWALL_RULE

        forward = _by_field(edges)["spec.forProvider.serverIdRef"]
        assert forward.dependency == SERVER
        assert forward.relation_kind == RelationKind.OPTIONAL

    def test_no_companion_towards_foundational_resource(
        self, engine: DependencyInferenceEngine, catalog: KnownTypeCatalog
    ) -> None:
        edges = engine.infer(SERVER, SERVER_SCHEMA, catalog)
        assert all(e.dependent == SERVER for e in edges)


class TestDeterminism:
    """Output order and deduplication."""

    def test_output_sorted_and_stable(
        self, engine: DependencyInferenceEngine, catalog: KnownTypeCatalog
    ) -> None:
        first = engine.infer(FIREWALL_RULE, FIREWALL_RULE_SCHEMA, catalog)
        second = engine.infer(FIREWALL_RULE, FIREWALL_RULE_SCHEMA, list(reversed(list(catalog))))
        assert [e.key for e in first] == [e.key for e in second]
        keys = [(e.dependent.sort_key, e.dependency.sort_key, e.field) for e in first]
        assert keys == sorted(keys)
        assert len({e.key for e in first}) == len(first)


def test_provider_family() -> None:
    assert provider_family("dbforpostgresql.azure.upbound.io") == "azure"
    assert provider_family("s3.aws.upbound.io") == "aws"
    assert provider_family("apps") == "kubernetes"
    assert provider_family("example.com") == "example.com"


@pytest.mark.parametrize("text", list(MALFORMED_SCHEMAS.values()), ids=list(MALFORMED_SCHEMAS))
def test_malformed_schema_keeps_provider_heuristic(
    engine: DependencyInferenceEngine, text: str
) -> None:
    edges = engine.infer(SERVER, text, [SERVER, RESOURCE_GROUP])
    assert [(e.field, e.dependency) for e in edges] == [("apiGroup", RESOURCE_GROUP)]
