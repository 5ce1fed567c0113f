"""Workflows package."""

from kube_recommender.workflows.dependency_resolver import DependencyResolver
from kube_recommender.workflows.models import (
    RecommendationResult,
    ScanFailure,
    ScanFailureReason,
    ScanSummary,
)
from kube_recommender.workflows.recommendation_pipeline import RecommendationPipeline
from kube_recommender.workflows.scan_pipeline import ScanPipeline, run_scan

__all__ = [
    "DependencyResolver",
    "RecommendationPipeline",
    "RecommendationResult",
    "ScanFailure",
    "ScanFailureReason",
    "ScanPipeline",
    "ScanSummary",
    "run_scan",
]
