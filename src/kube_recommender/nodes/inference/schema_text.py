"""Parse raw schema text into a flat list of typed, required-aware fields.

Two shapes are understood:

* YAML/JSON: a full ``CustomResourceDefinition``, a bare ``openAPIV3Schema``
  or an OpenAPI definition with ``x-kubernetes-group-version-kind``.
* ``kubectl explain --recursive`` text with ``KIND:``/``GROUP:``/``VERSION:``
  headers, ``<type>`` annotations and ``-required-`` markers.

Anything else parses to an empty field list with the raw text kept, so that
keyword matching still has something to work with. Parsing never raises.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

import yaml

from kube_recommender.entities.resources import ResourceTypeRef

logger = logging.getLogger(__name__)

# Top-level paths that never count towards user-facing complexity
_BOILERPLATE_ROOTS = ("apiVersion", "kind", "metadata", "status")

_EXPLAIN_FIELD = re.compile(
    r"^(?P<indent>\s*)(?P<name>[A-Za-z_$][\w$-]*)\s+<(?P<type>[^>]+)>\s*(?P<req>-required-)?\s*$"
)
_EXPLAIN_HEADER = re.compile(r"^(KIND|GROUP|VERSION|RESOURCE):\s*(.*)$")
_CEL_REQUIRED = re.compile(r"(spec(?:\.[\w-]+)+) is a required parameter")


@dataclass(frozen=True)
class SchemaField:
    """One field of a resource schema, addressed by dotted path."""

    path: str
    type: str = ""
    description: str = ""
    required: bool = False  # declared required by its parent
    effectively_required: bool = False  # required along the whole path
    has_default: bool = False

    @property
    def name(self) -> str:
        return self.path.rsplit(".", 1)[-1]

    @property
    def is_boilerplate(self) -> bool:
        return self.path.split(".", 1)[0] in _BOILERPLATE_ROOTS


@dataclass
class ParsedSchema:
    """Structured view of a schema document."""

    kind: str = ""
    group: str = ""
    version: str = ""
    description: str = ""
    fields: list[SchemaField] = field(default_factory=lambda: [])
    format: str = "unknown"
    raw_text: str = ""

    @property
    def resource(self) -> ResourceTypeRef | None:
        """Resource identity declared by the document itself, if any."""
        if not self.kind:
            return None
        return ResourceTypeRef(
            kind=self.kind, api_group=self.group, api_version=self.version or "v1"
        )

    def leaf_fields(self) -> list[SchemaField]:
        """Fields with no nested fields of their own."""
        parents = {f.path.rsplit(".", 1)[0] for f in self.fields if "." in f.path}
        return [f for f in self.fields if f.path not in parents]

    def required_without_default(self) -> list[SchemaField]:
        """Leaf fields a user must fill in: effectively required, no default."""
        return [
            f
            for f in self.leaf_fields()
            if f.effectively_required and not f.has_default and not f.is_boilerplate
        ]

    def excerpt(self, max_chars: int) -> str:
        """Compact text rendition bounded to *max_chars* for prompts."""
        if not self.fields:
            return self.raw_text[:max_chars]
        lines: list[str] = []
        used = 0
        for f in self.fields:
            if f.is_boilerplate:
                continue
            marker = " (required)" if f.effectively_required else ""
            desc = f" - {f.description[:120]}" if f.description else ""
            line = f"{f.path} <{f.type}>{marker}{desc}"
            if used + len(line) + 1 > max_chars:
                break
            lines.append(line)
            used += len(line) + 1
        return "\n".join(lines)


def parse_schema(schema_text: str) -> ParsedSchema:
    """Parse *schema_text* in whichever supported shape it is in."""
    text = schema_text or ""
    if re.search(r"^FIELDS:", text, re.MULTILINE):
        return _parse_explain(text)

    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        logger.debug("Schema text is neither explain output nor YAML: %s", e)
        return ParsedSchema(raw_text=text)

    if isinstance(doc, dict):
        parsed = _parse_openapi_document(doc)
        if parsed is not None:
            parsed.raw_text = text
            return parsed
    return ParsedSchema(raw_text=text)


# ------------------------------------------------------------------
# OpenAPI / CRD documents
# ------------------------------------------------------------------


def _parse_openapi_document(doc: dict[str, Any]) -> ParsedSchema | None:
    kind = group = version = ""
    schema: Any = None

    if doc.get("kind") == "CustomResourceDefinition" and isinstance(doc.get("spec"), dict):
        spec = doc["spec"]
        group = str(spec.get("group", ""))
        names = spec.get("names") or {}
        kind = str(names.get("kind", "")) if isinstance(names, dict) else ""
        version, schema = _pick_crd_version(spec)
    elif isinstance(doc.get("openAPIV3Schema"), dict):
        schema = doc["openAPIV3Schema"]
    elif isinstance(doc.get("properties"), dict):
        schema = doc
        gvks = doc.get("x-kubernetes-group-version-kind")
        if isinstance(gvks, list) and gvks and isinstance(gvks[0], dict):
            kind = str(gvks[0].get("kind", ""))
            group = str(gvks[0].get("group", ""))
            version = str(gvks[0].get("version", ""))

    if not isinstance(schema, dict):
        return None

    cel_required: set[str] = set()
    _collect_cel_required(schema, cel_required)

    fields: list[SchemaField] = []
    _walk_properties(schema, "", True, cel_required, fields)
    return ParsedSchema(
        kind=kind,
        group=group,
        version=version,
        description=str(schema.get("description", "")).strip(),
        fields=fields,
        format="openapi",
    )


def _pick_crd_version(spec: dict[str, Any]) -> tuple[str, Any]:
    """Return ``(version, openAPIV3Schema)`` preferring the storage version."""
    versions = spec.get("versions")
    if isinstance(versions, list) and versions:
        entries = [v for v in versions if isinstance(v, dict)]
        chosen = next((v for v in entries if v.get("storage")), entries[0] if entries else {})
        schema = _mapping(chosen.get("schema")).get("openAPIV3Schema")
        if schema is None:
            schema = _mapping(spec.get("validation")).get("openAPIV3Schema")
        return str(chosen.get("name", "")), schema
    # apiextensions.k8s.io/v1beta1 layout
    return str(spec.get("version", "")), _mapping(spec.get("validation")).get("openAPIV3Schema")


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _collect_cel_required(node: Any, out: set[str]) -> None:
    if isinstance(node, dict):
        rules = node.get("x-kubernetes-validations")
        if isinstance(rules, list):
            for rule in rules:
                if isinstance(rule, dict):
                    out.update(_CEL_REQUIRED.findall(str(rule.get("message", ""))))
        for value in node.values():
            _collect_cel_required(value, out)
    elif isinstance(node, list):
        for item in node:
            _collect_cel_required(item, out)


def _openapi_type(node: dict[str, Any]) -> str:
    node_type = node.get("type")
    if node_type == "array":
        items = node.get("items")
        item_type = _openapi_type(items) if isinstance(items, dict) else "object"
        return f"[]{item_type}"
    if node.get("x-kubernetes-int-or-string"):
        return "int-or-string"
    if not node_type and isinstance(node.get("$ref"), str):
        return node["$ref"].rsplit("/", 1)[-1].rsplit(".", 1)[-1]
    return str(node_type or "object")


def _walk_properties(
    node: dict[str, Any],
    prefix: str,
    parent_effective: bool,
    cel_required: set[str],
    out: list[SchemaField],
) -> None:
    properties = node.get("properties")
    if not isinstance(properties, dict):
        return
    declared_required = node.get("required")
    required_names = (
        {n for n in declared_required if isinstance(n, str)}
        if isinstance(declared_required, list)
        else set()
    )

    # YAML allows non-string keys; they cannot name a field
    for name in sorted(k for k in properties if isinstance(k, str)):
        child = properties[name]
        if not isinstance(child, dict):
            continue
        path = f"{prefix}.{name}" if prefix else name
        declared = name in required_names or path in cel_required
        effective = (declared and parent_effective) or path in cel_required
        out.append(
            SchemaField(
                path=path,
                type=_openapi_type(child),
                description=str(child.get("description", "")).strip(),
                required=declared,
                effectively_required=effective,
                has_default="default" in child,
            )
        )
        # The resource's own spec is required even when CRDs omit it from the root list
        child_parent_effective = effective or (not prefix and name == "spec")
        nested = child
        if child.get("type") == "array" and isinstance(child.get("items"), dict):
            nested = child["items"]
        _walk_properties(nested, path, child_parent_effective, cel_required, out)


# ------------------------------------------------------------------
# kubectl explain output
# ------------------------------------------------------------------


def _parse_explain(text: str) -> ParsedSchema:
    parsed = ParsedSchema(format="explain", raw_text=text)
    description_lines: list[str] = []
    section = ""
    # (indent, path, effective_for_children)
    stack: list[tuple[int, str, bool]] = []
    last_field_index: int | None = None

    for line in text.splitlines():
        header = _EXPLAIN_HEADER.match(line)
        if header and section != "fields":
            key, value = header.group(1), header.group(2).strip()
            if key == "KIND":
                parsed.kind = value
            elif key == "GROUP":
                parsed.group = value
            elif key == "VERSION":
                group, _, version = value.rpartition("/")
                parsed.version = version
                if group and not parsed.group:
                    parsed.group = group
            continue
        if line.startswith("DESCRIPTION:"):
            section = "description"
            rest = line[len("DESCRIPTION:"):].strip()
            if rest:
                description_lines.append(rest)
            continue
        if line.startswith("FIELDS:"):
            section = "fields"
            continue

        if section == "description":
            if line.strip():
                description_lines.append(line.strip())
            continue
        if section != "fields":
            continue

        match = _EXPLAIN_FIELD.match(line)
        if match is None:
            # Non-recursive explain prints field descriptions under each field
            if last_field_index is not None and line.strip():
                current = parsed.fields[last_field_index]
                text_so_far = f"{current.description} {line.strip()}".strip()
                parsed.fields[last_field_index] = SchemaField(
                    path=current.path,
                    type=current.type,
                    description=text_so_far,
                    required=current.required,
                    effectively_required=current.effectively_required,
                    has_default=current.has_default or "default" in line.lower(),
                )
            continue

        indent = len(match.group("indent").expandtabs(4))
        while stack and stack[-1][0] >= indent:
            stack.pop()
        parent_path = stack[-1][1] if stack else ""
        parent_effective = stack[-1][2] if stack else True
        name = match.group("name")
        path = f"{parent_path}.{name}" if parent_path else name
        declared = match.group("req") is not None
        effective = declared and parent_effective

        parsed.fields.append(
            SchemaField(
                path=path,
                type=match.group("type").strip(),
                required=declared,
                effectively_required=effective,
            )
        )
        last_field_index = len(parsed.fields) - 1
        stack.append((indent, path, effective or (not parent_path and name == "spec")))

    parsed.description = " ".join(description_lines)
    return parsed


def identify_resource(schema_text: str) -> ResourceTypeRef | None:
    """Resource identity declared inside *schema_text*, or None."""
    return parse_schema(schema_text).resource
