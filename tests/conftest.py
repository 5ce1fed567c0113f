"""Shared test fixtures for kube-recommender."""

from __future__ import annotations

import hashlib
import re
import threading
from typing import Any

import numpy as np
import pytest
import yaml

from kube_recommender.cluster import InMemorySchemaSource, KnownTypeCatalog
from kube_recommender.entities import ResourceTypeRef
from kube_recommender.errors import AIInferenceFailed
from kube_recommender.memory import FAISSCapabilityStore, NetworkXEdgeStore

DIM = 384

SERVER = ResourceTypeRef(
    kind="Server", api_group="dbforpostgresql.azure.upbound.io", api_version="v1beta1"
)
FIREWALL_RULE = ResourceTypeRef(
    kind="FirewallRule", api_group="dbforpostgresql.azure.upbound.io", api_version="v1beta1"
)
RESOURCE_GROUP = ResourceTypeRef(
    kind="ResourceGroup", api_group="azure.upbound.io", api_version="v1beta1"
)

_TOKEN = re.compile(r"[a-z0-9]+")


# ------------------------------------------------------------------
# Fakes
# ------------------------------------------------------------------


class HashingEmbedder:
    """Deterministic bag-of-words embedder: each token hashes to one signed axis."""

    def __init__(self, dimensions: int = DIM) -> None:
        self._dimensions = dimensions
        self.calls = 0

    @property
    def model_version(self) -> str:
        return f"hashing-test@{self._dimensions}"

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, texts: list[str]) -> np.ndarray:
        self.calls += 1
        vectors = np.zeros((len(texts), self._dimensions), dtype=np.float32)
        for row, text in enumerate(texts):
            for token in _TOKEN.findall(text.lower()):
                digest = int(hashlib.blake2b(token.encode(), digest_size=8).hexdigest(), 16)
                sign = 1.0 if digest & 1 else -1.0
                vectors[row, (digest >> 1) % self._dimensions] += sign
            norm = np.linalg.norm(vectors[row])
            if norm > 0:
                vectors[row] /= norm
        return vectors


class ScriptedAIClient:
    """AI client returning canned replies, failing for chosen kinds."""

    def __init__(
        self,
        replies: dict[str, dict[str, Any]] | None = None,
        default: dict[str, Any] | None = None,
        fail_kinds: set[str] | None = None,
    ) -> None:
        self._replies = replies or {}
        self._default = default if default is not None else {}
        self._fail_kinds = fail_kinds or set()
        self._lock = threading.Lock()
        self.prompts: list[str] = []

    def infer(self, prompt: str, response_schema: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            self.prompts.append(prompt)
        match = re.search(r"^Kind: (\S+)$", prompt, re.MULTILINE)
        kind = match.group(1) if match else ""
        if kind in self._fail_kinds:
            msg = f"scripted failure for {kind}"
            raise AIInferenceFailed(msg)
        return dict(self._replies.get(kind, self._default))


# ------------------------------------------------------------------
# Schema builders
# ------------------------------------------------------------------


def crd_yaml(
    ref: ResourceTypeRef,
    for_provider: dict[str, Any],
    cel_required: list[str] | None = None,
    description: str = "",
    spec_extra: dict[str, Any] | None = None,
) -> str:
    """A CustomResourceDefinition in the Upbound provider layout."""
    spec_properties: dict[str, Any] = {
        "forProvider": {"type": "object", "properties": for_provider},
        "writeConnectionSecretToRef": {
            "type": "object",
            "properties": {"name": {"type": "string"}, "namespace": {"type": "string"}},
            "required": ["name", "namespace"],
        },
    }
    spec_properties.update(spec_extra or {})
    schema = {
        "description": description,
        "type": "object",
        "properties": {
            "apiVersion": {"type": "string"},
            "kind": {"type": "string"},
            "metadata": {"type": "object"},
            "spec": {
                "type": "object",
                "properties": spec_properties,
                "required": ["forProvider"],
            },
            "status": {"type": "object", "properties": {"atProvider": {"type": "object"}}},
        },
        "required": ["spec"],
        "x-kubernetes-validations": [
            {
                "rule": f"has(self.forProvider.{path.rsplit('.', 1)[-1]})",
                "message": f"{path} is a required parameter",
            }
            for path in (cel_required or [])
        ],
    }
    plural = f"{ref.kind.lower()}s"
    doc = {
        "apiVersion": "apiextensions.k8s.io/v1",
        "kind": "CustomResourceDefinition",
        "metadata": {"name": f"{plural}.{ref.api_group}"},
        "spec": {
            "group": ref.api_group,
            "names": {"kind": ref.kind, "plural": plural},
            "scope": "Cluster",
            "versions": [
                {
                    "name": ref.api_version,
                    "served": True,
                    "storage": True,
                    "schema": {"openAPIV3Schema": schema},
                }
            ],
        },
    }
    return yaml.safe_dump(doc, sort_keys=False)


def _ref_field() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"name": {"type": "string"}},
        "required": ["name"],
    }


def _selector_field() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "matchControllerRef": {"type": "boolean"},
            "matchLabels": {"type": "object", "additionalProperties": {"type": "string"}},
        },
    }


SERVER_SCHEMA = crd_yaml(
    SERVER,
    {
        "administratorLogin": {"type": "string"},
        "backupRetentionDays": {"type": "number"},
        "highAvailability": {
            "type": "object",
            "properties": {"mode": {"type": "string"}},
        },
        "location": {"type": "string"},
        "resourceGroupName": {"type": "string"},
        "resourceGroupNameRef": _ref_field(),
        "resourceGroupNameSelector": _selector_field(),
        "skuName": {"type": "string"},
        "storageMb": {"type": "number", "default": 32768},
        "version": {"type": "string"},
    },
    cel_required=[
        "spec.forProvider.location",
        "spec.forProvider.skuName",
        "spec.forProvider.version",
    ],
    description=(
        "Server is the Schema for the Servers API. "
        "Manages a PostgreSQL Flexible Server."
    ),
)

FIREWALL_RULE_SCHEMA = crd_yaml(
    FIREWALL_RULE,
    {
        "endIpAddress": {"type": "string"},
        "serverId": {"type": "string"},
        "serverIdRef": _ref_field(),
        "serverIdSelector": _selector_field(),
        "startIpAddress": {"type": "string"},
    },
    cel_required=["spec.forProvider.endIpAddress", "spec.forProvider.startIpAddress"],
    description=(
        "FirewallRule is the Schema for the FirewallRules API. "
        "Manages a firewall rule for a PostgreSQL server."
    ),
)

RESOURCE_GROUP_SCHEMA = crd_yaml(
    RESOURCE_GROUP,
    {
        "location": {"type": "string"},
        "tags": {"type": "object", "additionalProperties": {"type": "string"}},
    },
    cel_required=["spec.forProvider.location"],
    description=(
        "ResourceGroup is the Schema for the ResourceGroups API. "
        "Manages an Azure Resource Group."
    ),
)


def _crd_spec(**spec: Any) -> str:
    doc = {
        "apiVersion": "apiextensions.k8s.io/v1",
        "kind": "CustomResourceDefinition",
        "spec": {"group": SERVER.api_group, "names": {"kind": SERVER.kind}, **spec},
    }
    return yaml.safe_dump(doc, sort_keys=False)


def _bare_schema(spec: dict[str, Any]) -> str:
    doc = {"openAPIV3Schema": {"type": "object", "properties": {"spec": spec}}}
    return yaml.safe_dump(doc, sort_keys=False)


# Parseable YAML with shapes no well-formed CRD has; each keeps a ``spec.size`` field
# where a schema can be found at all.
MALFORMED_SCHEMAS = {
    "version_schema_not_mapping": _crd_spec(
        versions=[{"name": "v1beta1", "storage": True, "schema": "openAPIV3Schema"}]
    ),
    "validation_not_mapping": _crd_spec(version="v1beta1", validation=["openAPIV3Schema"]),
    "non_string_required_entries": _bare_schema(
        {
            "type": "object",
            "properties": {"size": {"type": "integer"}},
            "required": [{"name": "size"}, 7, "size"],
        }
    ),
    "mixed_property_keys": _bare_schema(
        {
            "type": "object",
            "properties": {1: {"type": "string"}, "size": {"type": "integer"}},
            "required": ["size"],
        }
    ),
}


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def capability_store() -> FAISSCapabilityStore:
    return FAISSCapabilityStore(dimensions=DIM)


@pytest.fixture
def edge_store() -> NetworkXEdgeStore:
    return NetworkXEdgeStore()


@pytest.fixture
def azure_source() -> InMemorySchemaSource:
    """Schema source serving the Azure PostgreSQL example types."""
    return InMemorySchemaSource(
        {
            SERVER: SERVER_SCHEMA,
            FIREWALL_RULE: FIREWALL_RULE_SCHEMA,
            RESOURCE_GROUP: RESOURCE_GROUP_SCHEMA,
        }
    )


@pytest.fixture
def azure_catalog() -> KnownTypeCatalog:
    return KnownTypeCatalog([SERVER, FIREWALL_RULE, RESOURCE_GROUP])
