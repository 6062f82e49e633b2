"""
cli.py

Responsibility: CLI entrypoint for specgate.

Commands:
1) `validate`: load specs (explicit list or discovered under a root), validate, print issues
2) `merge`: validate workstream specs, check the dependency graph, write MasterSpec + gate report

Exit codes: 0 when no issues were found, 1 when any issue was found, 2 for usage/config errors.

This module should orchestrate behavior but keep concerns isolated:
- Pipeline stages: `engine.py`
- Rendering / writing: `renderer.py`
- Configuration: `config.py`
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable

from specgate.config import DEFAULT_SPECS_ROOT, Config, ConfigError, load_config
from specgate.documents import discover_specs, parse_path_list
from specgate.engine import discover_workstreams, merge_batch, validate_batch, write_merge_outputs
from specgate.issues import ValidationIssue
from specgate.merge import default_master_id, default_title
from specgate.renderer import RenderError
from specgate.schema import SchemaDefinitionError, load_schemas

DEFAULT_REPORT_NAME = "gate-report.md"


class CLIError(RuntimeError):
    pass


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _print_issues(issues: Iterable[ValidationIssue]) -> None:
    for issue in issues:
        print(str(issue), file=sys.stderr)


def _load_settings(args: argparse.Namespace) -> tuple[Config, str]:
    config = load_config(args.config)
    registry = args.registry or config.registry
    return config, registry


def validate_cmd(args: argparse.Namespace) -> int:
    config, registry = _load_settings(args)
    schemas = load_schemas(config.schemas)

    specs = parse_path_list(args.specs)
    if not specs:
        specs = discover_specs(args.root or DEFAULT_SPECS_ROOT, config.exclude_dirs)

    if not specs:
        if args.allow_empty:
            return 0
        print("error: no specs provided or found", file=sys.stderr)
        return 1

    result = validate_batch(specs, registry_path=registry, schemas=schemas)
    if result.issues:
        _print_issues(result.issues)
        return 1
    print(f"Validated {len(result.documents)} spec(s): no issues")
    return 0


def merge_cmd(args: argparse.Namespace) -> int:
    config, registry = _load_settings(args)
    schemas = load_schemas(config.schemas)

    specs = parse_path_list(args.specs)
    if not specs and args.root:
        specs = discover_workstreams(args.root, config.exclude_dirs)
    if not specs:
        raise CLIError("No workstream specs provided or found (use --specs or --root)")

    output = Path(args.output)
    report_path = Path(args.report) if args.report else output.parent / DEFAULT_REPORT_NAME

    result = merge_batch(
        specs,
        registry_path=registry,
        schemas=schemas,
        master_id=args.id or default_master_id(output),
        title=args.title or default_title(output),
    )
    write_merge_outputs(result, output, report_path)

    if not result.report.passed:
        print("merge completed with issues:", file=sys.stderr)
        _print_issues(result.report.issues)
        return 1

    print(f"MasterSpec written to {output}")
    print(f"Gate report written to {report_path}")
    return 0


def _add_common_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--specs",
        action="append",
        default=[],
        help="Comma-separated spec paths (may be repeated)",
    )
    p.add_argument("--root", default=None, help="Root directory to scan for specs")
    p.add_argument("--registry", default=None, help="Contract registry path (default: from config, else agents/contracts/registry.yaml)")
    p.add_argument("--config", default=None, help="Config file (default: .specgate.yaml if present)")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging on stderr")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="specgate", description="specgate - spec validation and merge engine")
    sub = p.add_subparsers(dest="command", required=True)

    v = sub.add_parser("validate", help="Validate specs against their schemas and the contract registry")
    _add_common_arguments(v)
    v.add_argument(
        "--allow-empty",
        action="store_true",
        help="Treat zero discovered specs as success",
    )
    v.set_defaults(func=validate_cmd)

    m = sub.add_parser("merge", help="Merge workstream specs into a MasterSpec and write a gate report")
    _add_common_arguments(m)
    m.add_argument("--output", required=True, help="Output path for the MasterSpec")
    m.add_argument("--report", default=None, help=f"Gate report path (default: <output-dir>/{DEFAULT_REPORT_NAME}; .json for JSON)")
    m.add_argument("--id", default=None, help="MasterSpec id override")
    m.add_argument("--title", default=None, help="MasterSpec title override")
    m.set_defaults(func=merge_cmd)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(bool(args.verbose))
    try:
        return int(args.func(args))
    except (ConfigError, SchemaDefinitionError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except (CLIError, RenderError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
