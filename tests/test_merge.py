from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from specgate.classifier import DocumentType, classify
from specgate.documents import parse_document
from specgate.engine import merge_batch, write_merge_outputs
from specgate.issues import IssueKind, ValidationIssue
from specgate.merge import (
    WorkstreamSummary,
    default_master_id,
    default_title,
    summarize_workstream,
    synthesize,
)
from specgate.renderer import RenderError, render_gate_report, render_master_spec
from specgate.schema import load_schemas, validate_document
from tests.spec_helpers import registry_text, workstream_text

NOW = datetime(2026, 1, 2, tzinfo=timezone.utc)


def _summary(ws_id: str, contracts: tuple[str, ...] = ()) -> WorkstreamSummary:
    return WorkstreamSummary(
        id=ws_id, owner="team", scope="backend", dependencies=(), contracts=contracts, source=f"{ws_id}.md"
    )


@pytest.fixture
def three_workstreams(write):
    paths = [
        write("specs/task/workstreams/ws-a.md", workstream_text("ws-a", contracts=["contract-y"])),
        write("specs/task/workstreams/ws-b.md", workstream_text("ws-b", dependencies=["ws-a"])),
        write(
            "specs/task/workstreams/ws-c.md",
            workstream_text("ws-c", dependencies=["ws-b"], contracts=["contract-x", "contract-y"]),
        ),
    ]
    registry = write("contracts/registry.yaml", registry_text("contract-y"))
    return [str(p) for p in paths], registry


def test_merge_scenario_with_missing_contract(three_workstreams) -> None:
    paths, registry = three_workstreams

    result = merge_batch(
        paths, registry_path=registry, schemas=load_schemas(), master_id="master-task", title="Task", now=NOW
    )

    assert result.merged.workstream_ids == ["ws-a", "ws-b", "ws-c"]
    assert result.merged.contracts == ("contract-y", "contract-x")
    assert result.report.status == "fail"
    assert len(result.report.issues) == 1
    issue = result.report.issues[0]
    assert "contract-x" in issue.message
    assert issue.kind is IssueKind.REGISTRY
    assert issue.file.endswith("ws-c.md")
    assert result.report.workstream_count == 3
    assert result.report.contract_count == 2


def test_merge_passes_when_everything_resolves(write) -> None:
    paths = [
        str(write("ws/workstreams/ws-a.md", workstream_text("ws-a", contracts=["api"]))),
        str(write("ws/workstreams/ws-b.md", workstream_text("ws-b", dependencies=["ws-a"]))),
    ]
    registry = write("registry.yaml", registry_text("api"))

    result = merge_batch(paths, registry_path=registry, schemas=load_schemas(), master_id="m", title="M", now=NOW)

    assert result.report.status == "pass"
    assert result.report.issues == ()


def test_merge_collects_graph_identity_and_type_issues(write) -> None:
    paths = [
        str(write("w/workstreams/ws-a.md", workstream_text("ws-a", dependencies=["ws-b"]))),
        str(write("w/workstreams/ws-b.md", workstream_text("ws-b", dependencies=["ws-a", "ws-z"]))),
        str(write("w/workstreams/ws-b-copy.md", workstream_text("ws-dup"))),
        str(write("w/workstreams/ws-dup.md", workstream_text("ws-dup"))),
        str(write("w/notes.md", "# no metadata\n")),
    ]
    registry = write("registry.yaml", registry_text())

    result = merge_batch(paths, registry_path=registry, schemas=load_schemas(), master_id="m", title="M", now=NOW)
    messages = [i.message for i in result.report.issues]

    assert "dependency cycle detected: ws-a -> ws-b -> ws-a" in messages
    assert "dependency `ws-z` of `ws-b` is not in this batch" in messages
    assert sum("duplicate document id `ws-dup`" in m for m in messages) == 2
    assert "not a workstream spec (classified as unknown)" in messages
    assert "missing metadata block" in messages
    # Duplicated ids are listed once, at their first occurrence.
    assert result.merged.workstream_ids == ["ws-a", "ws-b", "ws-dup"]


def test_record_shaped_dependency_fails_the_gate(write) -> None:
    text = workstream_text("ws-a", dependencies=["ws-b"]).replace("  - ws-b\n", "  - id: ws-missing\n")
    paths = [str(write("w/workstreams/ws-a.md", text))]
    registry = write("registry.yaml", registry_text())

    result = merge_batch(paths, registry_path=registry, schemas=load_schemas(), master_id="m", title="M", now=NOW)

    assert result.report.status == "fail"
    assert [(i.kind, i.message) for i in result.report.issues] == [
        (IssueKind.SCHEMA, "dependency entry #1 must be a workstream id"),
    ]


def test_missing_registry_flags_every_contract(write, tmp_path) -> None:
    paths = [str(write("w/workstreams/ws-a.md", workstream_text("ws-a", contracts=["one", "two"])))]

    result = merge_batch(
        paths, registry_path=tmp_path / "nope.yaml", schemas=load_schemas(), master_id="m", title="M"
    )
    messages = [i.message for i in result.report.issues]

    assert "registry not found" in messages
    assert sum("is not in the contract registry" in m for m in messages) == 2


@pytest.mark.parametrize(
    "issues",
    [
        [],
        [ValidationIssue("a.md", "missing required field `owner`", IssueKind.SCHEMA)],
        [ValidationIssue("r.yaml", "registry not found", IssueKind.REGISTRY)],
    ],
)
def test_status_fails_iff_issues(issues) -> None:
    report = synthesize([_summary("ws-a")], issues, master_id="m", title="M", now=NOW).report

    assert (report.status == "fail") == bool(issues)
    assert report.passed == (not issues)


def test_synthesize_unions_contracts_in_first_seen_order() -> None:
    merged = synthesize(
        [_summary("a", ("x", "y")), _summary("b", ("y", "z"))], [], master_id="m", title="M", now=NOW
    ).merged

    assert merged.contracts == ("x", "y", "z")
    assert merged.metadata() == {
        "id": "m",
        "title": "M",
        "workstreams": ["a", "b"],
        "contracts": ["x", "y", "z"],
        "gates": ["spec_complete"],
        "status": "draft",
    }


def test_summarize_workstream_defaults() -> None:
    document, _ = parse_document("ws.md", "---\nid: ws\ncontracts:\n  - id: api\n---\n")

    summary = summarize_workstream(document)

    assert summary.owner == "unknown"
    assert summary.scope == ""
    assert summary.contracts == ("api",)


def test_default_id_and_title() -> None:
    assert default_master_id("agents/specs/task-42/master-spec.md") == "master-task-42"
    assert default_title("agents/specs/task-42/master-spec.md") == "MasterSpec for task-42"
    assert default_master_id("master-spec.md") == "master-spec"
    assert default_title("master-spec.md") == "MasterSpec"


def test_default_id_uses_the_task_directory_under_agents_specs() -> None:
    assert default_master_id("agents/specs/task/sub/master.md") == "master-task"
    assert default_title("/repo/agents/specs/task/sub/master.md") == "MasterSpec for task"
    assert default_master_id("out/nested/master.md") == "master-nested"


def test_rendered_master_spec_validates_as_master() -> None:
    merged = synthesize(
        [_summary("ws-a", ("api",)), _summary("ws-b")], [], master_id="master-task", title="Task", now=NOW
    ).merged

    document, issues = parse_document("master-spec.md", render_master_spec(merged))

    assert issues == []
    assert document.metadata == merged.metadata()
    doc_type = classify(document.path, document.metadata, document.has_metadata_block)
    assert doc_type is DocumentType.MASTER
    assert validate_document(document, doc_type, load_schemas()) == []
    assert "- `ws-a`: team - backend" in document.body


def test_gate_report_formats() -> None:
    issue = ValidationIssue("ws-c.md", "contract `contract-x` is not in the contract registry", IssueKind.REGISTRY)
    report = synthesize([_summary("ws-c", ("contract-x",))], [issue], master_id="m", title="M", now=NOW).report

    markdown = render_gate_report(report)
    assert markdown.startswith("# Gate Report\n")
    assert "- status: fail\n" in markdown
    assert "- generated_at: 2026-01-02T00:00:00.000Z\n" in markdown
    assert "- ws-c.md: contract `contract-x` is not in the contract registry\n" in markdown

    data = json.loads(render_gate_report(report, "json"))
    assert data == {
        "status": "fail",
        "generatedAt": "2026-01-02T00:00:00.000Z",
        "workstreamCount": 1,
        "contractCount": 1,
        "issues": [
            {"file": "ws-c.md", "message": "contract `contract-x` is not in the contract registry", "kind": "registry"}
        ],
    }

    with pytest.raises(RenderError):
        render_gate_report(report, "xml")


def test_passing_report_lists_no_issues() -> None:
    report = synthesize([_summary("a")], [], master_id="m", title="M", now=NOW).report

    assert render_gate_report(report).endswith("## Issues\n\n- none\n")


def test_outputs_are_written_even_on_failure_and_overwritten(three_workstreams, tmp_path) -> None:
    paths, registry = three_workstreams
    output = tmp_path / "out" / "master-spec.md"
    report_path = tmp_path / "out" / "gate-report.json"
    output.parent.mkdir()
    output.write_text("stale content that must disappear\n", encoding="utf-8")

    result = merge_batch(paths, registry_path=registry, schemas=load_schemas(), master_id="m", title="M", now=NOW)
    write_merge_outputs(result, output, report_path)

    assert "stale content" not in output.read_text(encoding="utf-8")
    assert json.loads(report_path.read_text(encoding="utf-8"))["status"] == "fail"
