"""Domain models for Kubernetes resource types and their inferred capabilities."""

from __future__ import annotations

import hashlib
import logging
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from kube_recommender.entities.vocabulary import filter_capabilities, normalize_tag

logger = logging.getLogger(__name__)


class ResourceTypeRef(BaseModel):
    """Immutable ``(kind, apiGroup, apiVersion)`` identity of a resource type.

    Core API types use the empty group. ``apiVersion`` holds the version part
    only (``v1beta1``); :attr:`group_version` rebuilds the manifest form.
    """

    model_config = ConfigDict(frozen=True)

    kind: str
    api_group: str = ""
    api_version: str = "v1"

    @field_validator("kind")
    @classmethod
    def kind_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "kind must not be empty"
            raise ValueError(msg)
        return v

    @field_validator("api_group", "api_version")
    @classmethod
    def strip_lower(cls, v: str) -> str:
        return v.strip().lower()

    @classmethod
    def parse(cls, text: str) -> ResourceTypeRef:
        """Parse ``Kind.group/version``, ``Kind/version``, ``Kind.group`` or ``Kind``."""
        name, _, version = text.strip().partition("/")
        kind, _, group = name.partition(".")
        return cls(kind=kind, api_group=group, api_version=version or "v1")

    @property
    def group_version(self) -> str:
        """The manifest ``apiVersion`` string (``group/version`` or ``version``)."""
        return f"{self.api_group}/{self.api_version}" if self.api_group else self.api_version

    @property
    def group_kind(self) -> tuple[str, str]:
        """Version-independent identity used for catalog membership."""
        return (self.kind, self.api_group)

    @property
    def key(self) -> str:
        """Stable string key: ``Kind.group/version``."""
        return f"{self}/{self.api_version}"

    @property
    def sort_key(self) -> tuple[str, str, str]:
        return (self.kind, self.api_group, self.api_version)

    @property
    def point_id(self) -> str:
        """Deterministic UUID-shaped id for vector store upserts."""
        digest = hashlib.sha256(f"capability-{self.key}".encode()).hexdigest()
        return (
            f"{digest[:8]}-{digest[8:12]}-{digest[12:16]}-"
            f"{digest[16:20]}-{digest[20:32]}"
        )

    def __str__(self) -> str:
        return f"{self.kind}.{self.api_group}" if self.api_group else self.kind


class ComplexityTier(StrEnum):
    """How much a user has to know to deploy the resource type."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def level(self) -> int:
        return _TIER_LEVELS[self]


_TIER_LEVELS: dict[ComplexityTier, int] = {
    ComplexityTier.LOW: 0,
    ComplexityTier.MEDIUM: 1,
    ComplexityTier.HIGH: 2,
}


class CapabilityRecord(BaseModel):
    """What a resource type enables, as stored in the capability index.

    Exactly one record exists per :class:`ResourceTypeRef`. ``capabilities``
    is validated against the controlled vocabulary on construction, so no
    record (whether built by inference or loaded from a payload) can carry
    an out-of-vocabulary tag.
    """

    model_config = ConfigDict(frozen=True)

    resource: ResourceTypeRef
    capabilities: frozenset[str] = frozenset()
    providers: frozenset[str] = frozenset()
    abstractions: frozenset[str] = frozenset()
    complexity_tier: ComplexityTier = ComplexityTier.MEDIUM
    description: str = ""
    use_case: str = ""
    embedding: list[float] | None = Field(default=None, repr=False)
    embedding_model_version: str = ""
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    schema_version: str = ""
    ai_assisted: bool = False

    @field_validator("capabilities", mode="before")
    @classmethod
    def restrict_to_vocabulary(cls, v: Any) -> frozenset[str]:
        accepted, dropped = filter_capabilities(v or ())
        if dropped:
            logger.debug("Dropping out-of-vocabulary capabilities: %s", sorted(dropped))
        return accepted

    @field_validator("providers", "abstractions", mode="before")
    @classmethod
    def normalize_tags(cls, v: Any) -> frozenset[str]:
        return frozenset(
            tag for tag in (normalize_tag(t) for t in (v or ()) if isinstance(t, str)) if tag
        )

    @field_serializer("capabilities", "providers", "abstractions")
    def sorted_tags(self, v: frozenset[str]) -> list[str]:
        return sorted(v)

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe payload for the vector store (the vector travels separately)."""
        return self.model_dump(mode="json", exclude={"embedding"})

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> CapabilityRecord:
        return cls.model_validate(payload)


def schema_fingerprint(schema_text: str) -> str:
    """Short content hash recorded as ``schema_version``."""
    return hashlib.sha256(schema_text.encode()).hexdigest()[:12]
