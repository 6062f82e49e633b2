"""
registry.py

Responsibility: Load the shared contract registry into `RegistryEntry` values.

The registry uses the same block syntax as spec metadata. It is either a top-level
list of records, or a `contracts:` list of records, optionally wrapped in `---` lines:

    contracts:
      - id: auth-api
        type: openapi
        path: contracts/auth.yaml
        owner: platform
        version: 1.2.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from specgate.documents import to_display_path
from specgate.issues import IssueKind, ValidationIssue
from specgate.metadata import Mapping, Record, Sequence, parse_block, split_metadata_block, to_data

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("id", "type", "path", "owner", "version")
ENTRIES_KEY = "contracts"


@dataclass(frozen=True)
class RegistryEntry:
    id: str
    type: str
    path: str
    owner: str
    version: str


@dataclass(frozen=True)
class RegistryResult:
    entries: tuple[RegistryEntry, ...] = ()
    ids: frozenset[str] = frozenset()
    issues: tuple[ValidationIssue, ...] = field(default_factory=tuple)


def _entries_node(root: Mapping | Sequence) -> Sequence | None:
    if isinstance(root, Sequence):
        return root
    for f in root.fields:
        if f.key == ENTRIES_KEY and isinstance(f.value, Sequence):
            return f.value
    return None


def parse_registry(path: str, text: str) -> RegistryResult:
    def issue(message: str) -> ValidationIssue:
        return ValidationIssue(path, message, IssueKind.REGISTRY)

    block, _body, first_line_no = split_metadata_block(text)
    lines = block if block is not None else text.splitlines()
    root, errors = parse_block(lines, first_line_no if block is not None else 1)
    issues = [issue(message) for message in errors]

    node = _entries_node(root)
    if node is None:
        if isinstance(root, Mapping) and root.fields:
            issues.append(issue(f"registry must be a list of entries (top-level or under `{ENTRIES_KEY}:`)"))
        return RegistryResult(ids=frozenset(), issues=tuple(issues))

    entries: list[RegistryEntry] = []
    ids: set[str] = set()
    for index, item in enumerate(node.items, start=1):
        if not isinstance(item, Record):
            issues.append(issue(f"line {item.line}: registry entry #{index} is not a record"))
            continue
        data = to_data(item)
        entry_id = (data.get("id") or "").strip()
        label = f"`{entry_id}`" if entry_id else f"#{index}"
        missing = [name for name in REQUIRED_FIELDS if not (data.get(name) or "").strip()]
        if missing:
            issues.append(issue(f"line {item.line}: registry entry {label} missing fields: {', '.join(missing)}"))
        if not entry_id:
            continue
        if entry_id in ids:
            issues.append(issue(f"line {item.line}: duplicate registry id `{entry_id}`"))
            continue
        ids.add(entry_id)
        if not missing:
            entries.append(RegistryEntry(**{name: data[name].strip() for name in REQUIRED_FIELDS}))

    return RegistryResult(entries=tuple(entries), ids=frozenset(ids), issues=tuple(issues))


def load_registry(registry_path: str | Path) -> RegistryResult:
    display = to_display_path(registry_path)
    p = Path(registry_path)
    if not p.is_file():
        return RegistryResult(issues=(ValidationIssue(display, "registry not found", IssueKind.REGISTRY),))
    result = parse_registry(display, p.read_text(encoding="utf-8"))
    logger.info("Loaded contract registry %s: %d id(s), %d issue(s)", display, len(result.ids), len(result.issues))
    return result
