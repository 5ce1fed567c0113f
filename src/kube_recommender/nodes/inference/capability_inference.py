"""Capability inference: what a resource type lets a user build.

Deterministic signals (keyword lexicon over kind, group labels, field names
and the resource description, plus provider domains) are always computed.
An optional AI collaborator adds tags, a tier suggestion and free text;
every AI field is validated on its own so one bad field never discards the
rest, and a failed call degrades to the deterministic result.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from kube_recommender.config import INFERENCE_CONFIG, InferenceConfig
from kube_recommender.entities.resources import (
    CapabilityRecord,
    ComplexityTier,
    ResourceTypeRef,
    schema_fingerprint,
)
from kube_recommender.entities.vocabulary import (
    CAPABILITY_VOCABULARY,
    KNOWN_PROVIDERS,
    filter_capabilities,
    filter_providers,
    normalize_tag,
)
from kube_recommender.errors import AIInferenceFailed, AIResponseInvalid
from kube_recommender.nodes.inference.lexicon import (
    SignalScope,
    group_labels,
    match_rules,
    providers_for_group,
)
from kube_recommender.nodes.inference.schema_text import ParsedSchema, parse_schema

if TYPE_CHECKING:
    from kube_recommender.nodes.inference.ai_client import AIInferenceClient
    from kube_recommender.nodes.inference.lexicon import KeywordRule

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

CAPABILITY_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "capabilities": {
            "type": "array",
            "items": {"type": "string", "enum": sorted(CAPABILITY_VOCABULARY)},
        },
        "providers": {
            "type": "array",
            "items": {"type": "string", "enum": sorted(KNOWN_PROVIDERS)},
        },
        "abstractions": {"type": "array", "items": {"type": "string"}},
        "complexity_tier": {"type": "string", "enum": [t.value for t in ComplexityTier]},
        "description": {"type": "string"},
        "use_case": {"type": "string"},
    },
    "required": ["capabilities", "complexity_tier", "description", "use_case"],
}


class AIStatus(StrEnum):
    """Outcome of the AI-assisted step for one resource type."""

    DISABLED = "disabled"  # No AI client configured
    OK = "ok"  # Every returned field validated
    PARTIAL = "partial"  # Some fields dropped as invalid
    FAILED = "failed"  # Call failed or reply unusable


@dataclass(frozen=True)
class CapabilityInference:
    """A capability record plus how the AI step went while building it."""

    record: CapabilityRecord
    ai_status: AIStatus = AIStatus.DISABLED
    ai_error: str = ""
    invalid_fields: tuple[str, ...] = ()

    @property
    def degraded(self) -> bool:
        return self.ai_status in (AIStatus.FAILED, AIStatus.PARTIAL)


@dataclass
class _Signals:
    capabilities: set[str] = field(default_factory=set)
    providers: set[str] = field(default_factory=set)
    abstractions: list[str] = field(default_factory=list)
    matched_rules: set[str] = field(default_factory=set)

    def add(self, rules: list[KeywordRule]) -> None:
        for rule in rules:
            self.matched_rules.add(rule.name)
            self.capabilities.update(rule.capabilities)
            self.providers.update(rule.providers)
            for abstraction in rule.abstractions:
                if abstraction not in self.abstractions:
                    self.abstractions.append(abstraction)


@dataclass
class _AIFields:
    capabilities: frozenset[str] = frozenset()
    providers: frozenset[str] = frozenset()
    abstractions: list[str] = field(default_factory=list)
    tier: ComplexityTier | None = None
    description: str = ""
    use_case: str = ""
    invalid: list[str] = field(default_factory=list)


def split_camel(name: str) -> str:
    """``FlexibleServer`` -> ``Flexible Server``."""
    return _CAMEL_BOUNDARY.sub(" ", name)


class CapabilityInferenceEngine:
    """Builds a :class:`CapabilityRecord` from a resource type's schema text."""

    def __init__(
        self,
        ai_client: AIInferenceClient | None = None,
        config: InferenceConfig | None = None,
        rules: list[KeywordRule] | None = None,
    ) -> None:
        self._ai = ai_client
        self._config = config or INFERENCE_CONFIG
        self._rules = rules

    def infer(self, ref: ResourceTypeRef, schema_text: str) -> CapabilityRecord:
        return self.infer_with_report(ref, schema_text).record

    def infer_with_report(self, ref: ResourceTypeRef, schema_text: str) -> CapabilityInference:
        parsed = parse_schema(schema_text)
        signals = self.deterministic_signals(ref, parsed)
        rule_tier = self.rule_tier(parsed)

        status = AIStatus.DISABLED
        error = ""
        ai = _AIFields()
        if self._ai is not None:
            prompt = self._build_prompt(ref, parsed, signals, rule_tier)
            try:
                data = self._ai.infer(prompt, CAPABILITY_RESPONSE_SCHEMA)
            except (AIInferenceFailed, AIResponseInvalid) as e:
                status = AIStatus.FAILED
                error = str(e)
                logger.warning(
                    "AI inference failed for %s, using deterministic signals: %s", ref, e
                )
            except Exception as e:
                status = AIStatus.FAILED
                error = f"{type(e).__name__}: {e}"
                logger.exception("AI client raised for %s, using deterministic signals", ref)
            else:
                ai = self._validate_ai(data)
                status = AIStatus.PARTIAL if ai.invalid else AIStatus.OK
                if ai.invalid:
                    logger.warning(
                        "Dropped invalid AI fields for %s: %s", ref, ", ".join(ai.invalid)
                    )

        capabilities = frozenset(signals.capabilities) | ai.capabilities
        providers = filter_providers(signals.providers) | ai.providers
        abstractions = self._merge_abstractions(signals.abstractions, ai.abstractions)
        tier = self.resolve_tier(rule_tier, ai.tier)
        description = ai.description or self._default_description(ref, parsed)
        use_case = ai.use_case or self._default_use_case(ref, capabilities)

        record = CapabilityRecord(
            resource=ref,
            capabilities=capabilities,
            providers=providers,
            abstractions=abstractions,
            complexity_tier=tier,
            description=description,
            use_case=use_case,
            schema_version=schema_fingerprint(schema_text),
            ai_assisted=status in (AIStatus.OK, AIStatus.PARTIAL),
        )
        return CapabilityInference(
            record=record,
            ai_status=status,
            ai_error=error,
            invalid_fields=tuple(ai.invalid),
        )

    # ------------------------------------------------------------------
    # Deterministic signals
    # ------------------------------------------------------------------

    def deterministic_signals(self, ref: ResourceTypeRef, parsed: ParsedSchema) -> _Signals:
        """Keyword and structural tags, independent of any AI collaborator."""
        signals = _Signals()
        for kind_text in {ref.kind, split_camel(ref.kind)}:
            signals.add(match_rules(kind_text, SignalScope.KIND, self._rules))

        signals.providers.update(providers_for_group(ref.api_group))
        signals.add(match_rules(group_labels(ref.api_group), SignalScope.GROUP, self._rules))

        seen_names: set[str] = set()
        for schema_field in parsed.fields:
            if schema_field.is_boilerplate or schema_field.name in seen_names:
                continue
            seen_names.add(schema_field.name)
            signals.add(match_rules(schema_field.name, SignalScope.FIELD, self._rules))

        signals.add(match_rules(parsed.description, SignalScope.DESCRIPTION, self._rules))
        logger.debug("Deterministic rules for %s: %s", ref, sorted(signals.matched_rules))
        return signals

    def rule_tier(self, parsed: ParsedSchema) -> ComplexityTier:
        """Tier from the count of required fields lacking defaults."""
        if not parsed.fields:
            return ComplexityTier.MEDIUM
        required = len(parsed.required_without_default())
        if required <= self._config.low_tier_max_required:
            return ComplexityTier.LOW
        if required <= self._config.medium_tier_max_required:
            return ComplexityTier.MEDIUM
        return ComplexityTier.HIGH

    @staticmethod
    def resolve_tier(rule_tier: ComplexityTier, ai_tier: ComplexityTier | None) -> ComplexityTier:
        """Accept the AI tier when within one level of the rule tier."""
        if ai_tier is not None and abs(ai_tier.level - rule_tier.level) <= 1:
            return ai_tier
        return rule_tier

    def _merge_abstractions(self, keyword: list[str], ai: list[str]) -> list[str]:
        merged: list[str] = []
        for tag in (*keyword, *ai):
            if tag and tag not in merged:
                merged.append(tag)
        return merged[: self._config.max_abstractions]

    @staticmethod
    def _default_description(ref: ResourceTypeRef, parsed: ParsedSchema) -> str:
        if parsed.description:
            first = parsed.description.split(". ", 1)[0].strip().rstrip(".")
            return f"{first}."[:300]
        group = ref.api_group or "core"
        return f"{ref.kind} resource from the {group} API group."

    @staticmethod
    def _default_use_case(ref: ResourceTypeRef, capabilities: frozenset[str]) -> str:
        if capabilities:
            return f"Use {ref.kind} when you need {', '.join(sorted(capabilities))}."
        return f"Use {ref.kind} to manage {split_camel(ref.kind).lower()} resources."

    # ------------------------------------------------------------------
    # AI boundary
    # ------------------------------------------------------------------

    def _build_prompt(
        self,
        ref: ResourceTypeRef,
        parsed: ParsedSchema,
        signals: _Signals,
        rule_tier: ComplexityTier,
    ) -> str:
        return f"""Classify this Kubernetes resource type.

Kind: {ref.kind}
API group: {ref.api_group or "(core)"}
API version: {ref.api_version}
Description: {parsed.description or "No description provided"}

Signals already detected:
- capabilities: {", ".join(sorted(signals.capabilities)) or "none"}
- providers: {", ".join(sorted(signals.providers)) or "none"}
- required inputs suggest tier: {rule_tier}

Allowed capability tags: {", ".join(sorted(CAPABILITY_VOCABULARY))}
Allowed providers: {", ".join(sorted(KNOWN_PROVIDERS))}

## Schema excerpt

{parsed.excerpt(self._config.schema_excerpt_chars)}"""

    def _validate_ai(self, data: dict[str, Any]) -> _AIFields:
        fields = _AIFields()

        capabilities = data.get("capabilities")
        if isinstance(capabilities, list):
            accepted, dropped = filter_capabilities(capabilities)
            if dropped:
                logger.debug("AI proposed out-of-vocabulary tags: %s", sorted(dropped))
            fields.capabilities = accepted
        elif capabilities is not None:
            fields.invalid.append("capabilities")

        providers = data.get("providers")
        if isinstance(providers, list):
            fields.providers = filter_providers(providers)
        elif providers is not None:
            fields.invalid.append("providers")

        abstractions = data.get("abstractions")
        if isinstance(abstractions, list):
            for value in abstractions:
                tag = normalize_tag(value) if isinstance(value, str) else ""
                if tag and tag not in fields.abstractions:
                    fields.abstractions.append(tag)
        elif abstractions is not None:
            fields.invalid.append("abstractions")

        tier = data.get("complexity_tier")
        if tier is not None:
            try:
                fields.tier = ComplexityTier(str(tier).strip().lower())
            except ValueError:
                fields.invalid.append("complexity_tier")

        for name in ("description", "use_case"):
            value = data.get(name)
            if isinstance(value, str):
                setattr(fields, name, value.strip())
            elif value is not None:
                fields.invalid.append(name)

        return fields
