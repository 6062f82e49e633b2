"""
merge.py

Responsibility: Synthesize the MasterSpec and the gate report from validated workstreams.

This module is pure: it takes summaries and the accumulated issue list and returns values.
Rendering and writing live in `renderer.py`; orchestration lives in `engine.py`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Sequence

from specgate.documents import Document
from specgate.issues import ValidationIssue
from specgate.schema import contract_ids

DEFAULT_GATES = ("spec_complete",)
DRAFT_STATUS = "draft"


@dataclass(frozen=True)
class WorkstreamSummary:
    id: str
    owner: str
    scope: str
    dependencies: tuple[str, ...]
    contracts: tuple[str, ...]
    source: str


@dataclass(frozen=True)
class MergedDocument:
    id: str
    title: str
    workstreams: tuple[WorkstreamSummary, ...]
    contracts: tuple[str, ...]
    gates: tuple[str, ...] = DEFAULT_GATES
    status: str = DRAFT_STATUS

    @property
    def workstream_ids(self) -> list[str]:
        return [ws.id for ws in self.workstreams]

    def metadata(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "workstreams": self.workstream_ids,
            "contracts": list(self.contracts),
            "gates": list(self.gates),
            "status": self.status,
        }


@dataclass(frozen=True)
class GateReport:
    status: str
    generated_at: str
    workstream_count: int
    contract_count: int
    issues: tuple[ValidationIssue, ...]

    @property
    def passed(self) -> bool:
        return self.status == "pass"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "generatedAt": self.generated_at,
            "workstreamCount": self.workstream_count,
            "contractCount": self.contract_count,
            "issues": [
                {"file": issue.file, "message": issue.message, "kind": issue.kind.value} for issue in self.issues
            ],
        }


@dataclass(frozen=True)
class MergeResult:
    merged: MergedDocument
    report: GateReport


def _string_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(v for v in value if isinstance(v, str) and v.strip())


def summarize_workstream(document: Document) -> WorkstreamSummary:
    meta = document.metadata
    owner = meta.get("owner")
    scope = meta.get("scope")
    return WorkstreamSummary(
        id=document.id or "",
        owner=owner if isinstance(owner, str) and owner else "unknown",
        scope=scope if isinstance(scope, str) else "",
        dependencies=_string_list(meta.get("dependencies")),
        contracts=tuple(contract_ids(meta)),
        source=document.path,
    )


def _task_segment(output: str | Path) -> str:
    """
    First directory under `agents/specs/` when the output lives there, else its parent's name.
    """
    parts = PurePosixPath(str(output).replace("\\", "/")).parts
    for index in range(len(parts) - 2):
        if parts[index : index + 2] == ("agents", "specs") and index + 3 < len(parts):
            return parts[index + 2]
    return parts[-2] if len(parts) > 1 and parts[-2] not in ("/", ".") else ""


def default_master_id(output: str | Path) -> str:
    segment = _task_segment(output)
    return f"master-{segment}" if segment else "master-spec"


def default_title(output: str | Path) -> str:
    segment = _task_segment(output)
    return f"MasterSpec for {segment}" if segment else "MasterSpec"


def utc_timestamp(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def synthesize(
    workstreams: Sequence[WorkstreamSummary],
    issues: Sequence[ValidationIssue],
    *,
    master_id: str,
    title: str,
    now: datetime | None = None,
) -> MergeResult:
    """
    Combine workstreams (input order preserved) and derive the gate status from `issues`.
    """
    contracts: list[str] = []
    for ws in workstreams:
        for contract_id in ws.contracts:
            if contract_id not in contracts:
                contracts.append(contract_id)

    merged = MergedDocument(
        id=master_id,
        title=title,
        workstreams=tuple(workstreams),
        contracts=tuple(contracts),
    )
    report = GateReport(
        status="fail" if issues else "pass",
        generated_at=utc_timestamp(now),
        workstream_count=len(workstreams),
        contract_count=len(contracts),
        issues=tuple(issues),
    )
    return MergeResult(merged=merged, report=report)
