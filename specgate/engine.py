"""
engine.py

Responsibility: Run a batch of specs through the pipeline and collect every issue.

Validate:  load -> classify -> schema (+ registry cross-check for workstreams) -> identity
Merge:     load -> classify -> schema (+ registry) -> identity -> graph -> synthesize

Every stage returns its issues; nothing here aborts early, so one run surfaces the
complete issue set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from specgate.classifier import DocumentType, classify
from specgate.documents import DEFAULT_EXCLUDE_DIRS, Document, discover_specs, load_document
from specgate.graph import GraphNode, build_graph, cycle_issues, find_dangling, find_duplicate_ids
from specgate.issues import IssueKind, ValidationIssue
from specgate.merge import MergeResult, WorkstreamSummary, summarize_workstream, synthesize
from specgate.registry import RegistryResult, load_registry
from specgate.renderer import render_gate_report, render_master_spec, report_format_for, write_text
from specgate.schema import SchemaRule, validate_document

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedDocument:
    document: Document
    doc_type: DocumentType


@dataclass(frozen=True)
class BatchResult:
    documents: tuple[LoadedDocument, ...]
    issues: tuple[ValidationIssue, ...]

    @property
    def ok(self) -> bool:
        return not self.issues


def load_batch(paths: Iterable[str]) -> tuple[list[LoadedDocument], list[ValidationIssue]]:
    loaded: list[LoadedDocument] = []
    issues: list[ValidationIssue] = []
    for path in paths:
        document, load_issues = load_document(path)
        issues.extend(load_issues)
        if document is None:
            continue
        doc_type = classify(document.path, document.metadata, document.has_metadata_block)
        logger.debug("Classified %s as %s", document.path, doc_type.value)
        loaded.append(LoadedDocument(document, doc_type))
    return loaded, issues


def _graph_nodes(documents: Iterable[Document]) -> list[GraphNode]:
    nodes: list[GraphNode] = []
    for document in documents:
        if document.id is None:
            continue
        deps = document.metadata.get("dependencies")
        dependencies = tuple(d for d in deps if isinstance(d, str)) if isinstance(deps, list) else ()
        nodes.append(GraphNode(id=document.id, source=document.path, dependencies=dependencies))
    return nodes


def validate_batch(
    paths: Sequence[str],
    *,
    registry_path: str | Path,
    schemas: Mapping[DocumentType, SchemaRule],
) -> BatchResult:
    loaded, issues = load_batch(paths)

    registry: RegistryResult | None = None
    if any(item.doc_type is DocumentType.WORKSTREAM for item in loaded):
        registry = load_registry(registry_path)

    for item in loaded:
        issues.extend(
            validate_document(item.document, item.doc_type, schemas, registry.ids if registry is not None else None)
        )

    identity_issues, _duplicated = find_duplicate_ids(_graph_nodes(item.document for item in loaded))
    issues.extend(identity_issues)
    if registry is not None:
        issues.extend(registry.issues)

    logger.info("Validated %d spec(s): %d issue(s)", len(loaded), len(issues))
    return BatchResult(documents=tuple(loaded), issues=tuple(issues))


def discover_workstreams(root: str | Path, exclude_dirs: Iterable[str] = DEFAULT_EXCLUDE_DIRS) -> list[str]:
    """
    Specs under `root` that live in a `workstreams/` directory or classify as workstreams.
    """
    found: list[str] = []
    for path in discover_specs(root, exclude_dirs):
        if "workstreams" in Path(path).parts[:-1]:
            found.append(path)
            continue
        document, _issues = load_document(path)
        if document is None:
            continue
        if classify(document.path, document.metadata, document.has_metadata_block) is DocumentType.WORKSTREAM:
            found.append(path)
    return found


def merge_batch(
    paths: Sequence[str],
    *,
    registry_path: str | Path,
    schemas: Mapping[DocumentType, SchemaRule],
    master_id: str,
    title: str,
    now: datetime | None = None,
) -> MergeResult:
    registry = load_registry(registry_path)
    loaded, issues = load_batch(paths)

    workstreams: list[Document] = []
    for item in loaded:
        if item.doc_type is not DocumentType.WORKSTREAM:
            issues.append(
                ValidationIssue(
                    item.document.path,
                    f"not a workstream spec (classified as {item.doc_type.value})",
                    IssueKind.SCHEMA,
                )
            )
            continue
        issues.extend(validate_document(item.document, item.doc_type, schemas, registry.ids))
        if item.document.id is not None:
            workstreams.append(item.document)

    nodes = _graph_nodes(workstreams)
    identity_issues, duplicated = find_duplicate_ids(nodes)
    graph = build_graph(nodes, excluded_ids=duplicated)
    issues.extend(identity_issues)
    issues.extend(find_dangling(graph))
    issues.extend(cycle_issues(graph))
    issues.extend(registry.issues)

    summaries: list[WorkstreamSummary] = []
    seen: set[str] = set()
    for document in workstreams:
        if document.id in seen:
            continue
        seen.add(document.id)
        summaries.append(summarize_workstream(document))

    logger.info("Merging %d workstream(s): %d issue(s)", len(summaries), len(issues))
    return synthesize(summaries, issues, master_id=master_id, title=title, now=now)


def write_merge_outputs(result: MergeResult, output: str | Path, report_path: str | Path) -> None:
    """
    Write the MasterSpec and the gate report. Both are always written, even on failure.
    """
    write_text(output, render_master_spec(result.merged))
    write_text(report_path, render_gate_report(result.report, report_format_for(report_path)))
    logger.info("Wrote %s and %s", output, report_path)
