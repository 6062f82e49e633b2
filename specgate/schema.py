"""
schema.py

Responsibility: Check a classified spec against the required fields and sections of its type.

Schemas are data (`schemas.yaml`, shipped with the package) and can be overridden per type
from the project config. Validation reports every failure; it never stops at the first one.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from specgate.classifier import DocumentType
from specgate.documents import Document
from specgate.issues import IssueKind, ValidationIssue
from specgate.sections import normalize_heading, section_index

SCHEMAS_PATH = Path(__file__).with_name("schemas.yaml")
FIELD_KINDS = ("string", "list")


class SchemaDefinitionError(ValueError):
    pass


@dataclass(frozen=True)
class FieldRule:
    name: str
    kind: str

    def accepts(self, value: Any) -> bool:
        if self.kind == "list":
            return isinstance(value, list)
        return isinstance(value, str) and bool(value.strip())


@dataclass(frozen=True)
class SchemaRule:
    """Required fields and sections for one spec type."""

    fields: tuple[FieldRule, ...] = ()
    sections: tuple[str, ...] = ()


def _parse_rule(type_name: str, raw: Any, base: SchemaRule | None = None) -> SchemaRule:
    if not isinstance(raw, dict):
        raise SchemaDefinitionError(f"Schema for `{type_name}` must be a mapping.")
    base = base or SchemaRule()

    fields = base.fields
    if "fields" in raw:
        fields_raw = raw["fields"] or {}
        if not isinstance(fields_raw, dict):
            raise SchemaDefinitionError(f"`{type_name}.fields` must map field names to a kind.")
        parsed: list[FieldRule] = []
        for name, kind in fields_raw.items():
            if kind not in FIELD_KINDS:
                raise SchemaDefinitionError(
                    f"`{type_name}.fields.{name}` has kind {kind!r}; expected one of {', '.join(FIELD_KINDS)}."
                )
            parsed.append(FieldRule(name=str(name), kind=kind))
        fields = tuple(parsed)

    sections = base.sections
    if "sections" in raw:
        sections_raw = raw["sections"] or []
        if not isinstance(sections_raw, list):
            raise SchemaDefinitionError(f"`{type_name}.sections` must be a list of headings.")
        sections = tuple(str(s) for s in sections_raw)

    return SchemaRule(fields=fields, sections=sections)


def _document_type(name: Any) -> DocumentType:
    try:
        doc_type = DocumentType(name)
    except ValueError:
        doc_type = DocumentType.UNKNOWN
    if doc_type is DocumentType.UNKNOWN:
        raise SchemaDefinitionError(f"Unknown spec type in schema definitions: {name!r}")
    return doc_type


def load_schemas(overrides: Mapping[str, Any] | None = None) -> dict[DocumentType, SchemaRule]:
    """
    Load the built-in schemas and apply per-type overrides.

    An override replaces `fields` and/or `sections` of that type as a whole; keys it
    leaves out keep their built-in value.
    """
    raw = yaml.safe_load(SCHEMAS_PATH.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise SchemaDefinitionError(f"{SCHEMAS_PATH.name} must be a mapping at the top level.")

    schemas = {_document_type(name): _parse_rule(name, rule) for name, rule in raw.items()}
    for name, rule in (overrides or {}).items():
        doc_type = _document_type(name)
        schemas[doc_type] = _parse_rule(name, rule, base=schemas.get(doc_type))
    return schemas


def contract_ids(metadata: Mapping[str, Any]) -> list[str]:
    """
    Contract ids referenced by a spec, from plain entries and `{id: ...}` records.
    Order is preserved; repeats are dropped.
    """
    raw = metadata.get("contracts")
    if not isinstance(raw, list):
        return []
    ids: list[str] = []
    for entry in raw:
        value = entry.get("id") if isinstance(entry, dict) else entry
        if isinstance(value, str) and value.strip() and value not in ids:
            ids.append(value)
    return ids


def _entry_issues(document: Document) -> list[ValidationIssue]:
    """
    Dependency and contract entries that cannot be resolved to an id.
    """
    issues: list[ValidationIssue] = []
    dependencies = document.metadata.get("dependencies")
    if isinstance(dependencies, list):
        for number, entry in enumerate(dependencies, start=1):
            if not (isinstance(entry, str) and entry.strip()):
                issues.append(
                    ValidationIssue(
                        document.path, f"dependency entry #{number} must be a workstream id", IssueKind.SCHEMA
                    )
                )
    contracts = document.metadata.get("contracts")
    if isinstance(contracts, list):
        for number, entry in enumerate(contracts, start=1):
            value = entry.get("id") if isinstance(entry, dict) else entry
            if not (isinstance(value, str) and value.strip()):
                issues.append(
                    ValidationIssue(document.path, f"contract entry #{number} has no `id`", IssueKind.SCHEMA)
                )
    return issues


def validate_document(
    document: Document,
    doc_type: DocumentType,
    schemas: Mapping[DocumentType, SchemaRule],
    registry_ids: frozenset[str] | set[str] | None = None,
) -> list[ValidationIssue]:
    if doc_type is DocumentType.UNKNOWN or doc_type not in schemas:
        return [ValidationIssue(document.path, "unknown spec type", IssueKind.SCHEMA)]

    rule = schemas[doc_type]
    issues: list[ValidationIssue] = []

    for field_rule in rule.fields:
        if field_rule.name not in document.metadata:
            issues.append(
                ValidationIssue(document.path, f"missing required field `{field_rule.name}`", IssueKind.SCHEMA)
            )
        elif not field_rule.accepts(document.metadata[field_rule.name]):
            expected = "a list" if field_rule.kind == "list" else "a non-empty string"
            issues.append(
                ValidationIssue(document.path, f"field `{field_rule.name}` must be {expected}", IssueKind.SCHEMA)
            )

    present = section_index(document.body)
    for section in rule.sections:
        if normalize_heading(section) not in present:
            issues.append(ValidationIssue(document.path, f"missing required section `{section}`", IssueKind.SCHEMA))

    if doc_type is DocumentType.WORKSTREAM:
        issues.extend(_entry_issues(document))

    if doc_type is DocumentType.WORKSTREAM and registry_ids is not None:
        for contract_id in contract_ids(document.metadata):
            if contract_id not in registry_ids:
                issues.append(
                    ValidationIssue(
                        document.path,
                        f"contract `{contract_id}` is not in the contract registry",
                        IssueKind.REGISTRY,
                    )
                )

    return issues
