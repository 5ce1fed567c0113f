"""Organizational pattern matching against an intent."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import yaml
from pydantic import ValidationError
from rapidfuzz import fuzz, process

from kube_recommender.entities.resources import ResourceTypeRef
from kube_recommender.entities.solutions import OrganizationalPattern, PatternAdjustment
from kube_recommender.nodes.retrieval.models import PatternMatch

logger = logging.getLogger(__name__)

FUZZY_MIN_THRESHOLD = 80  # Minimum trigger score for a pattern to apply


def match_patterns(
    intent: str,
    patterns: Iterable[OrganizationalPattern],
    threshold: float = FUZZY_MIN_THRESHOLD,
) -> list[PatternMatch]:
    """Patterns with a trigger scoring at least *threshold* against *intent*.

    Triggers are compared with ``partial_ratio`` so a short trigger such as
    ``"postgres"`` matches a longer intent containing it.
    """
    intent_lower = intent.strip().lower()
    if not intent_lower:
        return []

    matches: list[PatternMatch] = []
    for pattern in patterns:
        triggers = [t.lower() for t in pattern.triggers if t.strip()]
        if not triggers:
            continue
        best = process.extractOne(intent_lower, triggers, scorer=fuzz.partial_ratio)
        if best is None:
            continue
        trigger, score, _index = best
        if score >= threshold:
            matches.append(PatternMatch(pattern=pattern, trigger=trigger, score=float(score)))

    matches.sort(key=lambda m: (-m.score, m.pattern.name))
    logger.debug("Intent %r matched %d organizational patterns", intent, len(matches))
    return matches


def pattern_adjustments(
    intent: str,
    patterns: Iterable[OrganizationalPattern],
    threshold: float = FUZZY_MIN_THRESHOLD,
) -> dict[ResourceTypeRef, PatternAdjustment]:
    """Per-resource ranking adjustments from the patterns matching *intent*.

    A resource suggested by several matching patterns accumulates their
    deltas; the ranker clamps the total.
    """
    deltas: dict[ResourceTypeRef, float] = {}
    reasons: dict[ResourceTypeRef, list[str]] = {}
    names: dict[ResourceTypeRef, list[str]] = {}

    for match in match_patterns(intent, patterns, threshold):
        pattern = match.pattern
        for ref in pattern.suggested_resources:
            deltas[ref] = deltas.get(ref, 0.0) + pattern.delta
            reason = pattern.rationale or pattern.description or pattern.name
            reasons.setdefault(ref, []).append(reason)
            names.setdefault(ref, []).append(pattern.name)

    return {
        ref: PatternAdjustment(
            delta=deltas[ref],
            rationale="; ".join(reasons[ref]),
            patterns=tuple(names[ref]),
        )
        for ref in sorted(deltas, key=lambda r: r.sort_key)
    }


def load_patterns(path: str | Path) -> list[OrganizationalPattern]:
    """Read organizational patterns from a YAML file.

    The file holds either a list of patterns or a mapping with a
    ``patterns`` list. Resources may be written as ``Kind.group/version``
    strings or as ``{kind, api_group, api_version}`` mappings.

    Raises:
        ValueError: The file is not valid YAML or a pattern is malformed.
    """
    with open(path, encoding="utf-8") as f:
        try:
            doc = yaml.safe_load(f)
        except yaml.YAMLError as e:
            msg = f"Invalid pattern file {path}: {e}"
            raise ValueError(msg) from e

    entries = doc.get("patterns", []) if isinstance(doc, dict) else doc
    if not isinstance(entries, list):
        msg = f"Pattern file {path} must contain a list of patterns"
        raise ValueError(msg)

    patterns: list[OrganizationalPattern] = []
    for entry in entries:
        if not isinstance(entry, dict):
            msg = f"Pattern entries must be mappings, got {type(entry).__name__}"
            raise ValueError(msg)
        resources = [
            ResourceTypeRef.parse(r) if isinstance(r, str) else r
            for r in entry.get("suggested_resources", [])
        ]
        try:
            patterns.append(
                OrganizationalPattern.model_validate({**entry, "suggested_resources": resources})
            )
        except ValidationError as e:
            msg = f"Invalid pattern {entry.get('name', '?')!r} in {path}: {e}"
            raise ValueError(msg) from e
    logger.info("Loaded %d organizational patterns from %s", len(patterns), path)
    return patterns
