"""Cluster-facing collaborators: the served type catalog and schema sources."""

from kube_recommender.cluster.catalog import KnownTypeCatalog
from kube_recommender.cluster.schema_source import (
    DirectorySchemaSource,
    InMemorySchemaSource,
    SchemaSource,
)

__all__ = [
    "DirectorySchemaSource",
    "InMemorySchemaSource",
    "KnownTypeCatalog",
    "SchemaSource",
]
