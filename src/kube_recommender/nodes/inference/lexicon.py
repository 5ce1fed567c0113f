"""Keyword lexicon and provider domains used for deterministic inference.

Each :class:`KeywordRule` is a case-insensitive regex that contributes
capability, provider and abstraction tags when it matches a signal of one
of its scopes (kind name, API group labels, field names, descriptions).
"""

from __future__ import annotations

import re
from enum import StrEnum
from functools import lru_cache

from pydantic import BaseModel, Field


class SignalScope(StrEnum):
    """Where a piece of schema text came from."""

    KIND = "kind"
    GROUP = "group"
    FIELD = "field"
    DESCRIPTION = "description"


_ALL_SCOPES = frozenset(SignalScope)
_NAME_SCOPES = frozenset({SignalScope.KIND, SignalScope.GROUP})


class KeywordRule(BaseModel):
    """A lexicon entry mapping a regex to capability tags."""

    name: str
    pattern: str  # Regex, matched case-insensitively
    capabilities: list[str] = Field(default_factory=list)
    providers: list[str] = Field(default_factory=list)
    abstractions: list[str] = Field(default_factory=list)
    scopes: frozenset[SignalScope] = _ALL_SCOPES

    def matches(self, text: str, scope: SignalScope) -> bool:
        return scope in self.scopes and _compiled(self.pattern).search(text) is not None


class ProviderDomain(BaseModel):
    """API group suffixes owned by one provider.

    ``foundational_kind`` names the resource every other resource of the
    provider must live in (Azure's ``ResourceGroup``); ``exempt_kinds`` are
    provider plumbing types that do not.
    """

    provider: str
    domains: list[str] = Field(default_factory=list)
    exact_groups: list[str] = Field(default_factory=list)
    foundational_kind: str | None = None
    exempt_kinds: frozenset[str] = frozenset()

    def owns(self, group: str) -> bool:
        group = group.lower()
        if group in self.exact_groups:
            return True
        return any(group == d or group.endswith(f".{d}") for d in self.domains)

    def root_domain_of(self, group: str) -> str | None:
        """The longest owned domain that *group* falls under."""
        group = group.lower()
        owned = [d for d in self.domains if group == d or group.endswith(f".{d}")]
        return max(owned, key=len) if owned else None


@lru_cache(maxsize=256)
def _compiled(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


KEYWORD_RULES: list[KeywordRule] = [
    # Databases
    KeywordRule(
        name="postgresql",
        pattern=r"postgres|\bpsql\b|cnpg",
        capabilities=["database", "postgresql"],
        abstractions=["relational-database"],
    ),
    KeywordRule(
        name="mysql",
        pattern=r"mysql",
        capabilities=["database", "mysql"],
        abstractions=["relational-database"],
    ),
    KeywordRule(
        name="mariadb",
        pattern=r"mariadb",
        capabilities=["database", "mariadb"],
        abstractions=["relational-database"],
    ),
    KeywordRule(
        name="sql_server",
        pattern=r"sql[\s_-]?server|\bmssql\b|\bsql\s+database",
        capabilities=["database", "sql-server"],
        abstractions=["relational-database"],
    ),
    KeywordRule(
        name="mongodb",
        pattern=r"mongo|cosmos\s*db|documentdb",
        capabilities=["database", "mongodb"],
        abstractions=["document-database"],
    ),
    KeywordRule(
        name="cassandra",
        pattern=r"cassandra|keyspace",
        capabilities=["database", "cassandra"],
        abstractions=["wide-column-database"],
    ),
    KeywordRule(
        name="redis",
        pattern=r"redis",
        capabilities=["cache", "redis"],
        abstractions=["in-memory-store"],
    ),
    KeywordRule(
        name="cache",
        pattern=r"memcache|elasticache|\bcache\b",
        capabilities=["cache"],
    ),
    KeywordRule(
        name="search",
        pattern=r"elasticsearch|opensearch|\bsearch\s+(service|index)",
        capabilities=["search", "elasticsearch"],
    ),
    KeywordRule(
        name="data_warehouse",
        pattern=r"warehouse|bigquery|redshift|synapse|snowflake",
        capabilities=["data-warehouse"],
    ),
    # Messaging
    KeywordRule(
        name="kafka",
        pattern=r"kafka",
        capabilities=["kafka", "message-queue", "event-streaming"],
    ),
    KeywordRule(
        name="rabbitmq",
        pattern=r"rabbitmq|amqp",
        capabilities=["rabbitmq", "message-queue"],
    ),
    KeywordRule(
        name="queue",
        pattern=r"service\s*bus|\bsqs\b|queue",
        capabilities=["message-queue"],
        scopes=_NAME_SCOPES,
    ),
    KeywordRule(
        name="pub_sub",
        pattern=r"pub\s*sub|\bsns\b|event\s*hub|event\s*grid|topic",
        capabilities=["pub-sub", "event-streaming"],
        scopes=_NAME_SCOPES,
    ),
    # Storage
    KeywordRule(
        name="object_storage",
        pattern=r"bucket|\bblob|\bs3\b|storage\s*account|object\s+storage",
        capabilities=["object-storage"],
    ),
    KeywordRule(
        name="block_storage",
        pattern=r"\bdisk|\bebs\b|persistent\s*volume",
        capabilities=["block-storage", "persistent-storage"],
        scopes=_NAME_SCOPES,
    ),
    KeywordRule(
        name="file_storage",
        pattern=r"file\s*share|\bnfs\b|\befs\b|filestore|file\s*system",
        capabilities=["file-storage", "persistent-storage"],
    ),
    KeywordRule(
        name="backup",
        pattern=r"backup|snapshot|point[\s-]in[\s-]time\s+restore",
        capabilities=["backup"],
    ),
    # Networking
    KeywordRule(
        name="virtual_network",
        pattern=r"virtual\s*network|\bvnet|\bvpc\b|network\b",
        capabilities=["networking", "virtual-network"],
        scopes=_NAME_SCOPES,
    ),
    KeywordRule(
        name="subnet",
        pattern=r"subnet",
        capabilities=["networking", "subnet"],
        scopes=_NAME_SCOPES,
    ),
    KeywordRule(
        name="load_balancer",
        pattern=r"load\s*balancer|\blb\b",
        capabilities=["networking", "load-balancer"],
    ),
    KeywordRule(
        name="ingress",
        pattern=r"ingress|gateway\s*class|httproute|virtual\s*service",
        capabilities=["networking", "ingress"],
        scopes=_NAME_SCOPES,
    ),
    KeywordRule(
        name="dns",
        pattern=r"\bdns|zone\b|record\s*set",
        capabilities=["networking", "dns"],
        scopes=_NAME_SCOPES,
    ),
    KeywordRule(
        name="firewall",
        pattern=r"firewall|security\s*group|network\s*policy|ip\s*(allow|range)",
        capabilities=["networking", "firewall"],
    ),
    KeywordRule(
        name="api_gateway",
        pattern=r"api\s*gateway|api\s*management|\bapim\b",
        capabilities=["api-gateway"],
    ),
    KeywordRule(
        name="service_mesh",
        pattern=r"service\s*mesh|istio|linkerd|destination\s*rule|sidecar",
        capabilities=["service-mesh"],
        scopes=_NAME_SCOPES,
    ),
    KeywordRule(
        name="cdn",
        pattern=r"\bcdn\b|front\s*door|cloud\s*front",
        capabilities=["cdn"],
    ),
    KeywordRule(
        name="vpn",
        pattern=r"\bvpn|vpn\s*gateway|private\s*link",
        capabilities=["vpn", "networking"],
    ),
    # Security and identity
    KeywordRule(
        name="certificate",
        pattern=r"certificate|\btls\b|\bacme\b|issuer",
        capabilities=["certificate"],
    ),
    KeywordRule(
        name="secret_management",
        pattern=r"key\s*vault|secrets?\s*manager|secret\s*store|external\s*secret",
        capabilities=["secret-management"],
    ),
    KeywordRule(
        name="identity",
        pattern=(
            r"managed\s*identity|service\s*principal|\biam\b"
            r"|service\s*account|workload\s*identity"
        ),
        capabilities=["identity"],
    ),
    KeywordRule(
        name="rbac",
        pattern=r"role\s*binding|role\s*assignment|cluster\s*role|\brbac\b",
        capabilities=["rbac", "identity"],
        scopes=_NAME_SCOPES,
    ),
    KeywordRule(
        name="encryption",
        pattern=r"encrypt|\bkms\b|customer[\s-]managed\s+key",
        capabilities=["encryption"],
    ),
    KeywordRule(
        name="policy",
        pattern=r"\bpolic(y|ies)\b|admission|kyverno|gatekeeper",
        capabilities=["policy"],
        scopes=_NAME_SCOPES,
    ),
    # Compute
    KeywordRule(
        name="workload",
        pattern=r"deployment|stateful\s*set|daemon\s*set|replica\s*set",
        capabilities=["workload", "container"],
        scopes=frozenset({SignalScope.KIND}),
    ),
    KeywordRule(
        name="container",
        pattern=r"container|\bpod\b",
        capabilities=["container"],
        scopes=_NAME_SCOPES,
    ),
    KeywordRule(
        name="serverless",
        pattern=r"function\s*app|lambda|knative|cloud\s*run|serverless",
        capabilities=["serverless"],
    ),
    KeywordRule(
        name="batch",
        pattern=r"cron|\bjob\b|batch",
        capabilities=["batch", "scheduling"],
        scopes=_NAME_SCOPES,
    ),
    KeywordRule(
        name="autoscaling",
        pattern=r"autoscal|\bhpa\b|scaled\s*object",
        capabilities=["autoscaling"],
    ),
    KeywordRule(
        name="kubernetes_cluster",
        pattern=r"kubernetes\s*cluster|managed\s*cluster|\baks\b|\beks\b|\bgke\b",
        capabilities=["kubernetes-cluster", "managed-service"],
    ),
    KeywordRule(
        name="virtual_machine",
        pattern=r"virtual\s*machine|\bvm\b|\bec2\b|compute\s*instance",
        capabilities=["virtual-machine"],
    ),
    # Operations
    KeywordRule(
        name="monitoring",
        pattern=r"monitor|metric|prometheus|grafana",
        capabilities=["monitoring"],
    ),
    KeywordRule(
        name="logging",
        pattern=r"log\s*analytics|\blogging\b|\blogs\b|fluent",
        capabilities=["logging"],
    ),
    KeywordRule(
        name="tracing",
        pattern=r"tracing|jaeger|opentelemetry|\botel\b",
        capabilities=["tracing"],
    ),
    KeywordRule(
        name="alerting",
        pattern=r"alert",
        capabilities=["alerting", "monitoring"],
    ),
    KeywordRule(
        name="gitops",
        pattern=r"gitops|kustomization|helm\s*release|argocd|application\s*set",
        capabilities=["gitops"],
    ),
    KeywordRule(
        name="ci_cd",
        pattern=r"pipeline\s*run|\btekton\b|workflow\s*template",
        capabilities=["ci-cd"],
        scopes=_NAME_SCOPES,
    ),
    KeywordRule(
        name="high_availability",
        pattern=r"high\s*availability|zone[\s-]*redundan|geo[\s-]*redundan|failover|standby",
        capabilities=["high-availability"],
    ),
    KeywordRule(
        name="resource_group",
        pattern=r"^resource\s*group$",
        capabilities=["resource-grouping"],
        providers=["azure"],
        scopes=frozenset({SignalScope.KIND}),
    ),
    KeywordRule(
        name="managed_service",
        pattern=r"flexible\s*server|managed\s+(database|instance|service)|\brds\b|cloud\s*sql",
        capabilities=["managed-service"],
    ),
    KeywordRule(
        name="configuration",
        pattern=r"config\s*map|app\s*configuration",
        capabilities=["configuration"],
        scopes=_NAME_SCOPES,
    ),
    KeywordRule(
        name="machine_learning",
        pattern=r"machine\s*learning|sagemaker|vertex\s*ai|\bml\s+workspace",
        capabilities=["machine-learning"],
    ),
    # Provider-only hints carried by field names
    KeywordRule(
        name="azure_fields",
        pattern=r"^(resourceGroupName|subscriptionId|tenantId)(Ref|Selector)?$",
        providers=["azure"],
        scopes=frozenset({SignalScope.FIELD}),
    ),
    KeywordRule(
        name="aws_fields",
        pattern=r"^(arn|roleArn|kmsKeyId|region)$",
        providers=["aws"],
        scopes=frozenset({SignalScope.FIELD}),
    ),
    KeywordRule(
        name="gcp_fields",
        pattern=r"^(project|projectId)(Ref|Selector)?$",
        providers=["gcp"],
        scopes=frozenset({SignalScope.FIELD}),
    ),
]


_CROSSPLANE_PLUMBING = frozenset({"ProviderConfig", "ProviderConfigUsage", "StoreConfig"})

PROVIDER_DOMAINS: list[ProviderDomain] = [
    ProviderDomain(
        provider="azure",
        domains=["azure", "azure.com", "azure.upbound.io", "azure.crossplane.io"],
        foundational_kind="ResourceGroup",
        exempt_kinds=_CROSSPLANE_PLUMBING | {"ResourceGroup"},
    ),
    ProviderDomain(
        provider="aws",
        domains=["aws", "aws.upbound.io", "aws.crossplane.io", "services.k8s.aws"],
    ),
    ProviderDomain(
        provider="gcp",
        domains=["gcp", "gcp.upbound.io", "gcp.crossplane.io", "cnrm.cloud.google.com"],
    ),
    ProviderDomain(provider="crossplane", domains=["crossplane.io", "upbound.io"]),
    ProviderDomain(
        provider="kubernetes",
        domains=["k8s.io"],
        exact_groups=["", "apps", "batch", "policy", "autoscaling"],
    ),
    ProviderDomain(provider="cnpg", domains=["cnpg.io"]),
    ProviderDomain(provider="argo", domains=["argoproj.io"]),
    ProviderDomain(provider="flux", domains=["fluxcd.io"]),
    ProviderDomain(provider="istio", domains=["istio.io"]),
    ProviderDomain(provider="cert-manager", domains=["cert-manager.io"]),
    ProviderDomain(provider="prometheus", domains=["monitoring.coreos.com"]),
    ProviderDomain(provider="knative", domains=["knative.dev"]),
    ProviderDomain(provider="keda", domains=["keda.sh"]),
    ProviderDomain(provider="strimzi", domains=["strimzi.io"]),
    ProviderDomain(provider="external-secrets", domains=["external-secrets.io"]),
    ProviderDomain(provider="kyverno", domains=["kyverno.io"]),
    ProviderDomain(provider="velero", domains=["velero.io"]),
]


def match_rules(
    text: str, scope: SignalScope, rules: list[KeywordRule] | None = None
) -> list[KeywordRule]:
    """Rules from *rules* (default lexicon) matching *text* in *scope*."""
    if not text:
        return []
    return [rule for rule in (rules or KEYWORD_RULES) if rule.matches(text, scope)]


def providers_for_group(group: str) -> frozenset[str]:
    """Provider tags implied by an API group."""
    return frozenset(d.provider for d in PROVIDER_DOMAINS if d.owns(group))


def foundational_domain_for(group: str) -> ProviderDomain | None:
    """The provider domain with a foundational resource owning *group*, if any."""
    for domain in PROVIDER_DOMAINS:
        if domain.foundational_kind and domain.owns(group):
            return domain
    return None


def group_labels(group: str) -> str:
    """Space-joined DNS labels of a group for keyword matching."""
    return " ".join(label for label in group.split(".") if label)
