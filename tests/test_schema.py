from __future__ import annotations

import pytest

from specgate.classifier import DocumentType
from specgate.documents import Document, parse_document
from specgate.issues import IssueKind
from specgate.schema import SchemaDefinitionError, contract_ids, load_schemas, validate_document
from tests.spec_helpers import workstream_text


@pytest.fixture
def schemas():
    return load_schemas()


def test_builtin_schemas_cover_every_known_type(schemas) -> None:
    assert set(schemas) == {DocumentType.WORKSTREAM, DocumentType.PROBLEM, DocumentType.MASTER}
    assert "Decision & Work Log" in schemas[DocumentType.WORKSTREAM].sections


def test_complete_workstream_has_no_issues(schemas) -> None:
    document, parse_issues = parse_document("ws-a.md", workstream_text("ws-a"))

    assert parse_issues == []
    assert validate_document(document, DocumentType.WORKSTREAM, schemas) == []


def test_every_missing_field_and_section_is_reported(schemas) -> None:
    document = Document(path="ws.md", metadata={"id": "ws", "dependencies": "ws-b"}, body="## Scope\n")

    issues = validate_document(document, DocumentType.WORKSTREAM, schemas)
    messages = [i.message for i in issues]

    assert "missing required field `owner`" in messages
    assert "field `dependencies` must be a list" in messages
    assert "missing required section `Context`" in messages
    assert "missing required section `Scope`" not in messages
    # title, owner, scope, status, contracts + dependencies type + 5 sections
    assert len(issues) == 11
    assert all(i.kind is IssueKind.SCHEMA for i in issues)


def test_validation_is_monotonic(schemas) -> None:
    metadata = {"id": "ws"}
    body = ""
    document = Document(path="ws.md", metadata=dict(metadata), body=body)
    previous = len(validate_document(document, DocumentType.WORKSTREAM, schemas))

    for name, value in [("title", "T"), ("owner", "o"), ("contracts", []), ("status", "draft")]:
        metadata[name] = value
        current = len(validate_document(Document("ws.md", dict(metadata), body), DocumentType.WORKSTREAM, schemas))
        assert current < previous
        previous = current

    for heading in ["Context", "Decision and work-log"]:
        body += f"\n## {heading}\n"
        current = len(validate_document(Document("ws.md", dict(metadata), body), DocumentType.WORKSTREAM, schemas))
        assert current < previous
        previous = current


def test_unknown_type_yields_single_issue(schemas) -> None:
    document = Document(path="notes.md", metadata={}, body="", has_metadata_block=False)

    issues = validate_document(document, DocumentType.UNKNOWN, schemas)

    assert [i.message for i in issues] == ["unknown spec type"]


def test_contracts_are_checked_against_registry(schemas) -> None:
    document, _ = parse_document(
        "ws-a.md",
        workstream_text("ws-a", contracts=["known-api", "missing-api", "missing-api"]),
    )

    issues = validate_document(document, DocumentType.WORKSTREAM, schemas, registry_ids={"known-api"})

    assert [(i.kind, i.message) for i in issues] == [
        (IssueKind.REGISTRY, "contract `missing-api` is not in the contract registry"),
    ]


def test_registry_is_not_consulted_without_ids(schemas) -> None:
    document, _ = parse_document("ws-a.md", workstream_text("ws-a", contracts=["missing-api"]))

    assert validate_document(document, DocumentType.WORKSTREAM, schemas) == []


def test_contract_ids_accepts_strings_and_records() -> None:
    metadata = {"contracts": ["a", {"id": "b", "version": "1"}, {"version": "2"}, "a", ""]}

    assert contract_ids(metadata) == ["a", "b"]
    assert contract_ids({"contracts": "a"}) == []


def test_unresolvable_dependency_and_contract_entries_are_reported(schemas) -> None:
    text = (
        workstream_text("ws-a", dependencies=["ws-b"], contracts=["api"])
        .replace("  - ws-b\n", "  - id: ws-missing\n  - ws-b\n")
        .replace("  - api\n", "  - version: 2\n  - api\n")
    )
    document, parse_issues = parse_document("ws-a.md", text)

    issues = validate_document(document, DocumentType.WORKSTREAM, schemas, frozenset({"api"}))

    assert parse_issues == []
    assert [(i.kind, i.message) for i in issues] == [
        (IssueKind.SCHEMA, "dependency entry #1 must be a workstream id"),
        (IssueKind.SCHEMA, "contract entry #1 has no `id`"),
    ]


def test_overrides_replace_fields_or_sections() -> None:
    schemas = load_schemas({"problem": {"sections": ["Problem"]}})

    rule = schemas[DocumentType.PROBLEM]
    assert rule.sections == ("Problem",)
    assert [f.name for f in rule.fields] == ["id", "title", "summary", "status", "success_criteria"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"unknown": {"sections": []}},
        {"problem": {"fields": {"id": "number"}}},
        {"problem": {"sections": "Problem"}},
        {"problem": "nope"},
    ],
)
def test_invalid_overrides_raise(overrides: dict) -> None:
    with pytest.raises(SchemaDefinitionError):
        load_schemas(overrides)
