"""Inference nodes: schema parsing, capability and dependency inference."""

from __future__ import annotations

from kube_recommender.nodes.inference.ai_client import (
    AIInferenceClient,
    AnthropicInferenceClient,
)
from kube_recommender.nodes.inference.capability_inference import (
    AIStatus,
    CapabilityInference,
    CapabilityInferenceEngine,
)
from kube_recommender.nodes.inference.dependency_inference import (
    REFERENCE_PATTERNS,
    DependencyInferenceEngine,
    ReferencePattern,
)
from kube_recommender.nodes.inference.lexicon import (
    KEYWORD_RULES,
    PROVIDER_DOMAINS,
    KeywordRule,
    ProviderDomain,
)
from kube_recommender.nodes.inference.schema_text import (
    ParsedSchema,
    SchemaField,
    parse_schema,
)

__all__ = [
    "AIInferenceClient",
    "AIStatus",
    "AnthropicInferenceClient",
    "CapabilityInference",
    "CapabilityInferenceEngine",
    "DependencyInferenceEngine",
    "KEYWORD_RULES",
    "KeywordRule",
    "PROVIDER_DOMAINS",
    "ParsedSchema",
    "ProviderDomain",
    "REFERENCE_PATTERNS",
    "ReferencePattern",
    "SchemaField",
    "parse_schema",
]
