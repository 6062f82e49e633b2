"""
issues.py

Responsibility: the single value type every pipeline stage reports findings with.

Stages never raise for a validation finding; they return a list of
`ValidationIssue` values and the caller concatenates them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class IssueKind(str, Enum):
    PARSE = "parse"
    SCHEMA = "schema"
    REGISTRY = "registry"
    GRAPH = "graph"
    IDENTITY = "identity"


@dataclass(frozen=True)
class ValidationIssue:
    file: str
    message: str
    kind: IssueKind = IssueKind.SCHEMA

    def __str__(self) -> str:
        return f"{self.file}: {self.message}"
