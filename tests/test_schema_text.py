"""Tests for schema text parsing (CRD documents and kubectl explain output)."""

from __future__ import annotations

import json

import pytest
from conftest import (
    MALFORMED_SCHEMAS,
    RESOURCE_GROUP,
    RESOURCE_GROUP_SCHEMA,
    SERVER,
    SERVER_SCHEMA,
)

from kube_recommender.entities import ResourceTypeRef
from kube_recommender.nodes.inference.schema_text import identify_resource, parse_schema

EXPLAIN_DEPLOYMENT = """\
GROUP:      apps
KIND:       Deployment
VERSION:    v1

DESCRIPTION:
    Deployment enables declarative updates for Pods and ReplicaSets.

FIELDS:
  apiVersion\t<string>
  kind\t<string>
  metadata\t<ObjectMeta>
    name\t<string>
  spec\t<DeploymentSpec>
    replicas\t<integer>
    selector\t<LabelSelector> -required-
      matchLabels\t<map[string]string>
    template\t<PodTemplateSpec> -required-
      spec\t<PodSpec>
        containers\t<[]Container> -required-
          image\t<string>
          name\t<string> -required-
        serviceAccountName\t<string>
  status\t<DeploymentStatus>
    replicas\t<integer>
"""


class TestCRDParsing:
    """CustomResourceDefinition manifests."""

    def test_identity_from_crd(self) -> None:
        parsed = parse_schema(SERVER_SCHEMA)
        assert parsed.format == "openapi"
        assert parsed.resource == SERVER
        assert parsed.description.startswith("Server is the Schema")

    def test_cel_required_parameters_are_effectively_required(self) -> None:
        parsed = parse_schema(SERVER_SCHEMA)
        required = {f.path for f in parsed.required_without_default()}
        assert required == {
            "spec.forProvider.location",
            "spec.forProvider.skuName",
            "spec.forProvider.version",
        }

    def test_defaults_and_optional_fields(self) -> None:
        parsed = parse_schema(SERVER_SCHEMA)
        by_path = {f.path: f for f in parsed.fields}
        assert by_path["spec.forProvider.storageMb"].has_default
        assert not by_path["spec.forProvider.resourceGroupNameRef"].effectively_required
        # Declared required by its parent, but the parent itself is optional
        assert by_path["spec.forProvider.resourceGroupNameRef.name"].required
        assert not by_path["spec.forProvider.resourceGroupNameRef.name"].effectively_required
        assert by_path["spec.forProvider"].effectively_required

    def test_boilerplate_fields_flagged(self) -> None:
        parsed = parse_schema(SERVER_SCHEMA)
        boilerplate = {f.path for f in parsed.fields if f.is_boilerplate}
        assert {"apiVersion", "kind", "metadata", "status"} <= boilerplate
        assert "spec" not in boilerplate

    def test_bare_openapi_schema_has_fields_but_no_identity(self) -> None:
        doc = {
            "openAPIV3Schema": {
                "type": "object",
                "properties": {
                    "spec": {
                        "type": "object",
                        "properties": {"size": {"type": "integer"}},
                        "required": ["size"],
                    }
                },
            }
        }
        parsed = parse_schema(json.dumps(doc))
        assert parsed.resource is None
        assert [f.path for f in parsed.required_without_default()] == ["spec.size"]

    def test_openapi_definition_with_gvk(self) -> None:
        doc = {
            "description": "Secret holds secret data of a certain type.",
            "properties": {
                "data": {"type": "object"},
                "type": {"type": "string"},
            },
            "x-kubernetes-group-version-kind": [{"group": "", "kind": "Secret", "version": "v1"}],
        }
        parsed = parse_schema(json.dumps(doc))
        assert parsed.resource == ResourceTypeRef.parse("Secret")
        assert {f.path for f in parsed.fields} == {"data", "type"}


class TestExplainParsing:
    """kubectl explain --recursive output."""

    def test_headers_and_description(self) -> None:
        parsed = parse_schema(EXPLAIN_DEPLOYMENT)
        assert parsed.format == "explain"
        assert parsed.resource == ResourceTypeRef(
            kind="Deployment", api_group="apps", api_version="v1"
        )
        assert parsed.description.startswith("Deployment enables declarative updates")

    def test_nesting_and_required_markers(self) -> None:
        parsed = parse_schema(EXPLAIN_DEPLOYMENT)
        by_path = {f.path: f for f in parsed.fields}
        assert by_path["spec.selector"].effectively_required
        assert by_path["spec.template"].effectively_required
        assert not by_path["spec.replicas"].effectively_required
        assert by_path["spec.template.spec.serviceAccountName"].type == "string"

    def test_required_under_optional_parent_is_not_effective(self) -> None:
        parsed = parse_schema(EXPLAIN_DEPLOYMENT)
        name = {f.path: f for f in parsed.fields}["spec.template.spec.containers.name"]
        assert name.required
        assert not name.effectively_required

    def test_required_without_default_uses_leaves_only(self) -> None:
        text = (
            "KIND:     Widget\nGROUP:    example.com\nVERSION:  v1\n\nFIELDS:\n"
            "  spec\t<Object>\n"
            "    size\t<integer> -required-\n"
            "    storage\t<Object> -required-\n"
            "      class\t<string> -required-\n"
            "    tier\t<string>\n"
        )
        parsed = parse_schema(text)
        required = {f.path for f in parsed.required_without_default()}
        assert required == {"spec.size", "spec.storage.class"}

    def test_version_with_group_prefix(self) -> None:
        text = "KIND:     Certificate\nVERSION:  cert-manager.io/v1\n\nFIELDS:\n  spec\t<Object>\n"
        parsed = parse_schema(text)
        assert parsed.resource == ResourceTypeRef(
            kind="Certificate", api_group="cert-manager.io", api_version="v1"
        )


class TestUnknownText:
    """Text that is neither YAML nor explain output."""

    def test_unparseable_text_keeps_raw(self) -> None:
        text = "this: is: not: valid: yaml: ["
        parsed = parse_schema(text)
        assert parsed.fields == []
        assert parsed.raw_text == text
        assert parsed.resource is None

    def test_empty_text(self) -> None:
        parsed = parse_schema("")
        assert parsed.fields == []

    def test_identify_resource(self) -> None:
        assert identify_resource(SERVER_SCHEMA) == SERVER
        assert identify_resource("just prose") is None

    def test_excerpt_is_bounded(self) -> None:
        parsed = parse_schema(SERVER_SCHEMA)
        excerpt = parsed.excerpt(120)
        assert 0 < len(excerpt) <= 120
        assert "metadata" not in excerpt


def test_resource_group_single_required_field() -> None:
    parsed = parse_schema(RESOURCE_GROUP_SCHEMA)
    assert parsed.resource == RESOURCE_GROUP
    assert [f.path for f in parsed.required_without_default()] == ["spec.forProvider.location"]


class TestMalformedDocuments:
    """Parseable YAML in shapes a real CRD never has."""

    @pytest.mark.parametrize("text", list(MALFORMED_SCHEMAS.values()), ids=list(MALFORMED_SCHEMAS))
    def test_never_raises(self, text: str) -> None:
        parsed = parse_schema(text)
        assert parsed.raw_text == text
        assert all(isinstance(f.path, str) for f in parsed.fields)

    def test_unusable_crd_schemas_parse_to_no_fields(self) -> None:
        for name in ("version_schema_not_mapping", "validation_not_mapping"):
            assert parse_schema(MALFORMED_SCHEMAS[name]).fields == []

    def test_non_string_required_entries_are_skipped(self) -> None:
        parsed = parse_schema(MALFORMED_SCHEMAS["non_string_required_entries"])
        assert [f.path for f in parsed.required_without_default()] == ["spec.size"]

    def test_non_string_property_keys_are_skipped(self) -> None:
        parsed = parse_schema(MALFORMED_SCHEMAS["mixed_property_keys"])
        assert [f.path for f in parsed.fields] == ["spec", "spec.size"]
        assert [f.path for f in parsed.required_without_default()] == ["spec.size"]
