"""Capability and dependency-aware recommendations for Kubernetes resource types."""

__version__ = "0.1.0"
