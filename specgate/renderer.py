"""
renderer.py

Responsibility: Deterministically render the merge artifacts and write them to disk.

Rules:
- The MasterSpec and the markdown gate report are rendered from the packaged Jinja2 templates.
- Front matter is produced by `metadata.dump_metadata`, so the MasterSpec parses back cleanly.
- Outputs are written as UTF-8 with `\\n` newlines and fully replace any previous file.

This module intentionally does NOT know about validation, the graph, or CLI parsing.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from specgate.merge import GateReport, MergedDocument
from specgate.metadata import dump_metadata

TEMPLATES_DIR = Path(__file__).with_name("templates")
MASTER_SPEC_TEMPLATE = "master_spec.md.j2"
GATE_REPORT_TEMPLATE = "gate_report.md.j2"
REPORT_FORMATS = ("markdown", "json")


class RenderError(RuntimeError):
    pass


def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


def _render(template_name: str, context: dict[str, Any]) -> str:
    try:
        template = _environment().get_template(template_name)
        return template.render(**context)
    except TemplateError as e:
        raise RenderError(f"Failed rendering template: {template_name}") from e


def render_master_spec(merged: MergedDocument) -> str:
    return _render(MASTER_SPEC_TEMPLATE, {"merged": merged, "front_matter": dump_metadata(merged.metadata())})


def report_format_for(path: str | Path) -> str:
    return "json" if Path(path).suffix.lower() == ".json" else "markdown"


def render_gate_report(report: GateReport, fmt: str = "markdown") -> str:
    if fmt not in REPORT_FORMATS:
        raise RenderError(f"Unknown report format: {fmt} (expected one of {', '.join(REPORT_FORMATS)})")
    if fmt == "json":
        return json.dumps(report.to_dict(), indent=2) + "\n"
    return _render(GATE_REPORT_TEMPLATE, {"report": report})


def write_text(path: str | Path, text: str) -> Path:
    """
    Write `text` to `path`, creating parent directories and replacing any existing file.
    """
    dst = Path(path)
    dst.parent.mkdir(parents=True, exist_ok=True)
    dst.write_text(text, encoding="utf-8", newline="\n")
    return dst
