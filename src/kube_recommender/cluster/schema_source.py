"""Schema source protocol and offline implementations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from kube_recommender.entities.resources import ResourceTypeRef
from kube_recommender.errors import SchemaUnavailable
from kube_recommender.nodes.inference.schema_text import identify_resource

logger = logging.getLogger(__name__)

SCHEMA_SUFFIXES = (".yaml", ".yml", ".json", ".txt")


@runtime_checkable
class SchemaSource(Protocol):
    """What the scan pipeline needs from the cluster schema service."""

    def get_resource_schema(self, ref: ResourceTypeRef) -> str: ...

    def list_known_resource_types(self) -> list[ResourceTypeRef]: ...


class InMemorySchemaSource:
    """Schema source backed by a ``{ref: schema_text}`` mapping."""

    def __init__(self, schemas: dict[ResourceTypeRef, str] | None = None) -> None:
        self._schemas: dict[ResourceTypeRef, str] = dict(schemas or {})

    def add(self, ref: ResourceTypeRef, schema_text: str) -> None:
        self._schemas[ref] = schema_text

    def get_resource_schema(self, ref: ResourceTypeRef) -> str:
        try:
            return self._schemas[ref]
        except KeyError:
            raise SchemaUnavailable(ref, "not present in source") from None

    def list_known_resource_types(self) -> list[ResourceTypeRef]:
        return sorted(self._schemas, key=lambda r: r.sort_key)


class DirectorySchemaSource:
    """Schema source reading one schema document per file from a directory.

    Files may hold a CRD manifest, a bare ``openAPIV3Schema`` or saved
    ``kubectl explain --recursive`` output. The resource identity comes from
    the document itself; files that do not declare one are skipped.
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)
        self._paths: dict[ResourceTypeRef, Path] | None = None

    def _discover(self) -> dict[ResourceTypeRef, Path]:
        if self._paths is not None:
            return self._paths
        paths: dict[ResourceTypeRef, Path] = {}
        if not self._directory.is_dir():
            logger.warning("Schema directory does not exist: %s", self._directory)
            self._paths = paths
            return paths
        for path in sorted(self._directory.rglob("*")):
            if not path.is_file() or path.suffix.lower() not in SCHEMA_SUFFIXES:
                continue
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Cannot read schema file %s: %s", path, e)
                continue
            ref = identify_resource(text)
            if ref is None:
                logger.debug("No resource identity in %s, skipping", path)
                continue
            if ref in paths:
                logger.warning("Duplicate schema for %s in %s, keeping %s", ref, path, paths[ref])
                continue
            paths[ref] = path
        logger.info("Discovered %d schema files under %s", len(paths), self._directory)
        self._paths = paths
        return paths

    def get_resource_schema(self, ref: ResourceTypeRef) -> str:
        path = self._discover().get(ref)
        if path is None:
            raise SchemaUnavailable(ref, f"no schema file under {self._directory}")
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise SchemaUnavailable(ref, str(e)) from e

    def list_known_resource_types(self) -> list[ResourceTypeRef]:
        return sorted(self._discover(), key=lambda r: r.sort_key)
