"""Human-readable rationale lines for ranked solution candidates."""

from __future__ import annotations

from typing import TYPE_CHECKING

from kube_recommender.entities.graph import RelationKind

if TYPE_CHECKING:
    from kube_recommender.config import RankingConfig
    from kube_recommender.entities.resources import ResourceTypeRef
    from kube_recommender.entities.solutions import PatternAdjustment, SolutionCandidate

# Human-readable descriptions for relation kinds
RELATION_DESCRIPTIONS: dict[RelationKind, str] = {
    RelationKind.REQUIRED: "requires",
    RelationKind.OPTIONAL: "can be combined with",
    RelationKind.ENHANCES: "is enhanced by",
}


def _join(refs: list[ResourceTypeRef]) -> str:
    return ", ".join(str(r) for r in refs)


def candidate_rationale(
    candidate: SolutionCandidate,
    config: RankingConfig,
    applied: list[tuple[ResourceTypeRef, PatternAdjustment]],
    raw_adjustment: float,
    clamped_adjustment: float,
) -> list[str]:
    """Ordered explanation of how *candidate* was scored.

    Lines follow the score formula: similarity, dependencies, completeness,
    then organizational patterns.
    """
    primary = candidate.primary
    lines = [f"Semantic match for {primary} (similarity {candidate.similarity:.2f})"]

    required = candidate.sorted_required()
    if required:
        verb = RELATION_DESCRIPTIONS[RelationKind.REQUIRED]
        lines.append(f"{primary.kind} {verb} {_join(required)}")
    else:
        lines.append(f"{primary.kind} has no required dependencies")

    optional = candidate.sorted_optional()
    if optional:
        verb = RELATION_DESCRIPTIONS[RelationKind.OPTIONAL]
        lines.append(f"{primary.kind} {verb} {_join(optional)}")

    unsatisfiable = candidate.sorted_unsatisfiable()
    if unsatisfiable:
        penalty = len(unsatisfiable) * config.unsatisfiable_penalty
        lines.append(
            f"Not available in this cluster: {_join(unsatisfiable)} (-{penalty:.2f})"
        )
    else:
        lines.append(
            f"All required resource types are available (+{config.completeness_bonus:.2f})"
        )

    for ref, adjustment in applied:
        reason = f": {adjustment.rationale}" if adjustment.rationale else ""
        names = ", ".join(adjustment.patterns) or "organizational pattern"
        lines.append(f"{names} for {ref}{reason} ({adjustment.delta:+.2f})")
    if applied and clamped_adjustment != raw_adjustment:
        lines.append(
            f"Pattern adjustment capped at {clamped_adjustment:+.2f} (was {raw_adjustment:+.2f})"
        )
    return lines
