"""
classifier.py

Responsibility: Assign each spec one type from a closed set.

Structural signals in the metadata win over path conventions; the path is only a fallback.
A document without a metadata block is always `unknown`.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Mapping


class DocumentType(str, Enum):
    WORKSTREAM = "workstream"
    PROBLEM = "problem"
    MASTER = "master"
    UNKNOWN = "unknown"


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_list(value: Any) -> bool:
    return isinstance(value, list)


def _classify_by_path(path: str) -> DocumentType:
    p = PurePosixPath(path.replace("\\", "/"))
    name = p.name.lower()
    if "workstreams" in p.parts[:-1]:
        return DocumentType.WORKSTREAM
    if name.endswith(".md") and name.startswith("master"):
        return DocumentType.MASTER
    if name.endswith(".md") and name.startswith("problem"):
        return DocumentType.PROBLEM
    return DocumentType.UNKNOWN


def classify(path: str, metadata: Mapping[str, Any], has_metadata_block: bool = True) -> DocumentType:
    if not has_metadata_block:
        return DocumentType.UNKNOWN
    if _is_list(metadata.get("workstreams")) and _is_list(metadata.get("gates")):
        return DocumentType.MASTER
    if _is_text(metadata.get("summary")) and _is_list(metadata.get("success_criteria")):
        return DocumentType.PROBLEM
    if _is_text(metadata.get("owner")) and _is_text(metadata.get("scope")):
        return DocumentType.WORKSTREAM
    return _classify_by_path(path)
