"""
specgate package

This package implements the spec validation and merge engine as a CLI-first utility.

Key responsibilities are split across modules:
- `metadata.py`: tokenize and parse the metadata block at the top of a spec
- `classifier.py`: infer a spec's type (workstream / problem / master)
- `sections.py`: index the body's headings for presence checks
- `schema.py`: required fields and sections per spec type
- `registry.py`: load the shared contract registry
- `graph.py`: dependency graph, dangling references and cycle detection
- `merge.py`: synthesize the MasterSpec and the gate report
- `engine.py`: batch orchestration (load -> validate -> graph -> merge)
- `renderer.py`: deterministic rendering of the output artifacts
- `cli.py`: CLI entrypoint (`validate` and `merge`)
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
