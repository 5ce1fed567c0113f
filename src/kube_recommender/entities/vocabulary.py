"""Controlled vocabularies for capability and provider tags.

Capability tags are the coordinates of the embedding space: every stored
record draws from this fixed set, so an unreliable model cannot drift it.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

CAPABILITY_VOCABULARY: frozenset[str] = frozenset({
    # Data stores
    "database", "postgresql", "mysql", "mariadb", "sql-server", "mongodb",
    "cassandra", "redis", "cache", "elasticsearch", "search", "data-warehouse",
    # Messaging
    "message-queue", "kafka", "rabbitmq", "event-streaming", "pub-sub",
    # Storage
    "object-storage", "block-storage", "file-storage", "persistent-storage",
    "backup",
    # Networking
    "networking", "virtual-network", "subnet", "load-balancer", "ingress",
    "dns", "firewall", "api-gateway", "service-mesh", "cdn", "vpn",
    # Security and identity
    "certificate", "secret-management", "identity", "rbac", "encryption",
    "policy",
    # Compute and workloads
    "workload", "container", "serverless", "batch", "scheduling",
    "autoscaling", "kubernetes-cluster", "virtual-machine",
    # Operations
    "monitoring", "logging", "tracing", "alerting", "gitops", "ci-cd",
    # Platform traits
    "high-availability", "multi-cloud", "resource-grouping", "managed-service",
    "configuration", "machine-learning",
})

KNOWN_PROVIDERS: frozenset[str] = frozenset({
    "azure", "aws", "gcp", "kubernetes", "crossplane", "cnpg", "argo",
    "flux", "istio", "cert-manager", "prometheus", "knative", "keda",
    "strimzi", "external-secrets", "kyverno", "velero",
})

_NON_TAG_CHARS = re.compile(r"[^a-z0-9]+")


def normalize_tag(value: str) -> str:
    """Lower-kebab-case a free-text tag (``"High Availability"`` -> ``high-availability``)."""
    return _NON_TAG_CHARS.sub("-", value.strip().lower()).strip("-")


def filter_capabilities(values: Iterable[str]) -> tuple[frozenset[str], frozenset[str]]:
    """Split tags into ``(accepted, dropped)`` against the capability vocabulary."""
    accepted: set[str] = set()
    dropped: set[str] = set()
    for value in values:
        if not isinstance(value, str):
            continue
        tag = normalize_tag(value)
        if tag in CAPABILITY_VOCABULARY:
            accepted.add(tag)
        elif tag:
            dropped.add(tag)
    return frozenset(accepted), frozenset(dropped)


def filter_providers(values: Iterable[str]) -> frozenset[str]:
    """Keep only recognised provider names."""
    return frozenset(
        tag
        for tag in (normalize_tag(v) for v in values if isinstance(v, str))
        if tag in KNOWN_PROVIDERS
    )
