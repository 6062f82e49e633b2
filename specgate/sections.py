"""
sections.py

Responsibility: Index the headings of a spec body as canonical keys for presence checks.

Only membership matters here; heading order and nesting are ignored.
"""

from __future__ import annotations

import re

_HEADING_RE = re.compile(r"^ {0,3}#{1,6}[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$")
_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_NON_WORD_RE = re.compile(r"[\W_]+")


def normalize_heading(text: str) -> str:
    """
    Canonical form of a heading: "Decision & Work-Log" -> "decision and work log".
    """
    text = text.casefold().replace("&", " and ")
    return _NON_WORD_RE.sub(" ", text).strip()


def section_index(body: str) -> frozenset[str]:
    keys: set[str] = set()
    fence: str | None = None
    for line in body.splitlines():
        m = _FENCE_RE.match(line)
        if m:
            marker = m.group(1)
            if fence is None:
                fence = marker
            elif marker[0] == fence[0] and len(marker) >= len(fence):
                fence = None
            continue
        if fence is not None:
            continue
        m = _HEADING_RE.match(line)
        if m:
            key = normalize_heading(m.group(1))
            if key:
                keys.add(key)
    return frozenset(keys)
