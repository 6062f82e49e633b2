"""
documents.py

Responsibility: Read spec files into immutable `Document` values and discover specs on disk.

Read failures and metadata syntax errors are returned as issues, never raised.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from specgate.issues import IssueKind, ValidationIssue
from specgate.metadata import parse_metadata

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_DIRS = ("templates", "schema", "schemas", "fixtures")


@dataclass(frozen=True)
class Document:
    path: str
    metadata: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    has_metadata_block: bool = True

    @property
    def id(self) -> str | None:
        value = self.metadata.get("id")
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None


def to_display_path(path: str | Path) -> str:
    return str(path).replace(os.sep, "/")


def parse_document(path: str, text: str) -> tuple[Document, list[ValidationIssue]]:
    parsed = parse_metadata(text)
    document = Document(path=path, metadata=parsed.data, body=parsed.body, has_metadata_block=parsed.has_block)
    issues = [ValidationIssue(path, message, IssueKind.PARSE) for message in parsed.errors]
    return document, issues


def load_document(path: str | Path) -> tuple[Document | None, list[ValidationIssue]]:
    display = to_display_path(path)
    p = Path(path)
    if not p.is_file():
        return None, [ValidationIssue(display, "spec not found", IssueKind.PARSE)]
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return None, [ValidationIssue(display, f"spec could not be read: {e}", IssueKind.PARSE)]
    logger.debug("Loaded %s (%d bytes)", display, len(text))
    return parse_document(display, text)


def discover_specs(root: str | Path, exclude_dirs: Iterable[str] = DEFAULT_EXCLUDE_DIRS) -> list[str]:
    """
    Return all markdown files under `root`, recursively, in deterministic order.

    Any file with a path segment (below `root`) in `exclude_dirs` is skipped.
    """
    root_path = Path(root)
    if not root_path.is_dir():
        logger.debug("Spec root %s does not exist", root_path)
        return []
    excluded = set(exclude_dirs)
    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root_path):
        dirnames[:] = [d for d in dirnames if d not in excluded]
        for name in filenames:
            if name.endswith(".md"):
                files.append(to_display_path(Path(dirpath) / name))
    files.sort()
    return files


def parse_path_list(values: Iterable[str]) -> list[str]:
    """
    Flatten repeated / comma-separated CLI values: ["a.md,b.md", "c.md"] -> ["a.md", "b.md", "c.md"].
    """
    out: list[str] = []
    for value in values:
        out.extend(entry.strip() for entry in value.split(",") if entry.strip())
    return out
