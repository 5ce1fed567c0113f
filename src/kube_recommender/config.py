"""Pinned embedding model and tunable engine configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class EmbeddingConfig(BaseModel):
    """Pinned embedding model configuration."""

    model_name: str = Field(default="BAAI/bge-small-en-v1.5")
    dimensions: int = Field(default=384)
    cache_dir: str | None = Field(default=None)

    @property
    def model_version(self) -> str:
        """Version tag stored on every indexed capability record."""
        return f"{self.model_name}@{self.dimensions}"


class InferenceConfig(BaseModel):
    """Capability inference settings (AI collaborator and complexity rule)."""

    ai_model: str = Field(default="claude-sonnet-4-20250514")
    ai_max_tokens: int = Field(default=1500)
    ai_timeout_seconds: float = Field(default=30.0, description="Per-call AI timeout")
    schema_excerpt_chars: int = Field(
        default=6000, description="Schema text budget sent to the AI collaborator"
    )
    # Complexity rule: count of required fields lacking defaults
    low_tier_max_required: int = Field(default=2)
    medium_tier_max_required: int = Field(default=7)
    max_abstractions: int = Field(default=8)


class ResolverConfig(BaseModel):
    """Dependency closure settings."""

    max_depth: int = Field(default=5, ge=1, description="Hard bound on required-edge hops")


class RankingConfig(BaseModel):
    """Named, overridable ranking constants.

    Completeness must dominate pattern adjustments: two candidates identical
    except for missing requirements can never swap order because of a
    clipped adjustment.
    """

    unsatisfiable_penalty: float = Field(default=0.3, ge=0.0)
    completeness_bonus: float = Field(default=0.1, ge=0.0)
    max_adjust: float = Field(default=0.05, ge=0.0)

    @model_validator(mode="after")
    def check_adjustment_bound(self) -> RankingConfig:
        if 2 * self.max_adjust >= self.unsatisfiable_penalty + self.completeness_bonus:
            msg = (
                "max_adjust too large: 2 * max_adjust must stay below "
                "unsatisfiable_penalty + completeness_bonus"
            )
            raise ValueError(msg)
        return self


class RetrievalConfig(BaseModel):
    """Semantic retrieval settings."""

    keyword_boost: float = Field(
        default=0.0,
        ge=0.0,
        le=0.2,
        description="Added to the cosine score when the intent names a hit's kind or tag",
    )


class ScanConfig(BaseModel):
    """Offline scan pipeline settings."""

    max_concurrency: int = Field(default=8, ge=1, description="Worker pool size")
    require_ai: bool = Field(
        default=False,
        description="Count a type as failed when AI inference fails instead of degrading",
    )


EMBEDDING_CONFIG = EmbeddingConfig()
INFERENCE_CONFIG = InferenceConfig()
RESOLVER_CONFIG = ResolverConfig()
RANKING_CONFIG = RankingConfig()
RETRIEVAL_CONFIG = RetrievalConfig()
SCAN_CONFIG = ScanConfig()
