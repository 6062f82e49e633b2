"""
metadata.py

Responsibility: Parse the metadata block at the top of a spec into a typed AST and plain data.

A metadata block is delimited by standalone `---` lines:

    ---
    id: ws-auth
    dependencies:
      - ws-core
    contracts:
      - id: auth-api
        version: 1.0.0
    ---

Parsing happens in two steps:
- `tokenize()` turns each meaningful line into a `Token` (indentation + line shape)
- `_Parser` is a recursive-descent parser over those tokens that builds the AST

Malformed lines never abort the parse. Each one produces a single error message
(prefixed with its line number) and the parser resumes on the next line, so the
partial metadata is still available to downstream validation.

Scalars are always strings; nothing is coerced to numbers or booleans.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping as MappingABC, Union

SEPARATOR = "---"
MISSING_BLOCK = "missing metadata block"
UNCLOSED_BLOCK = "missing metadata block (opening '---' is never closed)"

_KEY = r"[A-Za-z0-9_][A-Za-z0-9_.-]*"
_KEY_VALUE_RE = re.compile(rf"^({_KEY})[ \t]*:[ \t]+(\S.*)$")
_KEY_OPEN_RE = re.compile(rf"^({_KEY})[ \t]*:$")
_KEY_NAME_RE = re.compile(rf"^{_KEY}$")
_QUOTES = ("\"", "'")


class MetadataSyntaxError(ValueError):
    """Raised by `dump_metadata` for values the block syntax cannot represent."""


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Scalar:
    value: str
    line: int


@dataclass(frozen=True)
class Field:
    key: str
    value: "Node"
    line: int


@dataclass(frozen=True)
class Record:
    """A list item made of one or more `key: value` fields."""

    fields: tuple[Field, ...]
    line: int


@dataclass(frozen=True)
class Sequence:
    items: tuple[Union[Scalar, Record], ...]
    line: int


@dataclass(frozen=True)
class Mapping:
    fields: tuple[Field, ...]


Node = Union[Scalar, Record, Sequence, Mapping]


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


class TokenKind(Enum):
    KEY_VALUE = "key_value"
    KEY_OPEN = "key_open"
    ITEM_SCALAR = "item_scalar"
    ITEM_FIELD = "item_field"
    INVALID = "invalid"


_ITEM_KINDS = (TokenKind.ITEM_SCALAR, TokenKind.ITEM_FIELD)


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    line: int
    indent: int
    key: str = ""
    value: str = ""
    # Column where an item's content starts (after "- "); record fields align to it.
    content_indent: int = 0
    message: str = ""


def _classify_line(text: str, line_no: int, indent: int) -> Token:
    if text.startswith("-") and (text == "-" or text[1] in " \t"):
        after_dash = text[1:]
        content = after_dash.strip()
        content_indent = indent + 1 + (len(after_dash) - len(after_dash.lstrip(" \t")))
        if not content:
            return Token(TokenKind.INVALID, line_no, indent, message="empty list item")
        m = _KEY_VALUE_RE.match(content)
        if m:
            return Token(
                TokenKind.ITEM_FIELD,
                line_no,
                indent,
                key=m.group(1),
                value=m.group(2).strip(),
                content_indent=content_indent,
            )
        if _KEY_OPEN_RE.match(content):
            return Token(
                TokenKind.INVALID,
                line_no,
                indent,
                message="nested lists inside list records are not supported",
            )
        return Token(TokenKind.ITEM_SCALAR, line_no, indent, value=content, content_indent=content_indent)

    m = _KEY_VALUE_RE.match(text)
    if m:
        return Token(TokenKind.KEY_VALUE, line_no, indent, key=m.group(1), value=m.group(2).strip())
    m = _KEY_OPEN_RE.match(text)
    if m:
        return Token(TokenKind.KEY_OPEN, line_no, indent, key=m.group(1))
    return Token(TokenKind.INVALID, line_no, indent, message=f"unrecognized metadata line: {text!r}")


def tokenize(lines: Iterable[str], first_line_no: int = 1) -> list[Token]:
    """
    Turn block lines into tokens. Blank lines and `#` comment lines are skipped.
    """
    tokens: list[Token] = []
    for offset, raw in enumerate(lines):
        line_no = first_line_no + offset
        line = raw.rstrip("\r\n").rstrip()
        text = line.strip()
        if not text or text.startswith("#"):
            continue
        leading = line[: len(line) - len(line.lstrip())]
        indent = len(leading)
        if "\t" in leading:
            tokens.append(
                Token(TokenKind.INVALID, line_no, indent, message="tab characters are not allowed in indentation")
            )
            continue
        tokens.append(_classify_line(text, line_no, indent))
    return tokens


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _is_quoted(raw: str) -> bool:
    return len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in _QUOTES


def _unquote(raw: str) -> str:
    return raw[1:-1] if _is_quoted(raw) else raw


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0
        self.errors: list[str] = []

    def _peek(self) -> Token | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        self._pos += 1
        return tok

    def _error(self, tok: Token, message: str) -> None:
        self.errors.append(f"line {tok.line}: {message}")

    def parse_block(self, list_root: bool = True) -> Union[Mapping, Sequence]:
        # Leading malformed lines are reported but never decide the root shape or indent.
        while (tok := self._peek()) is not None and tok.kind is TokenKind.INVALID:
            self._advance()
            self._error(tok, tok.message)
        first = self._peek()
        if first is None:
            return Mapping(())
        if first.kind not in _ITEM_KINDS:
            return self._parse_mapping(first.indent)

        key_indents = [
            tok.indent
            for tok in self._tokens[self._pos :]
            if tok.kind in (TokenKind.KEY_VALUE, TokenKind.KEY_OPEN) and tok.indent <= first.indent
        ]
        if not list_root and key_indents:
            return self._parse_mapping(min(key_indents))

        root = self._parse_sequence(first.indent)
        while self._peek() is not None:
            tok = self._advance()
            self._error(tok, tok.message or "unexpected line after top-level list")
        return root

    def _parse_mapping(self, indent: int) -> Mapping:
        fields: list[Field] = []
        seen: set[str] = set()
        while (tok := self._peek()) is not None:
            self._advance()
            if tok.kind is TokenKind.INVALID:
                self._error(tok, tok.message)
                continue
            if tok.kind in _ITEM_KINDS:
                self._error(tok, "list item without an open list")
                continue
            if tok.indent != indent:
                self._error(tok, f"unexpected indentation for key {tok.key!r}")
                continue

            value: Union[Scalar, Sequence, None]
            if tok.kind is TokenKind.KEY_OPEN:
                value = self._parse_open_list(tok)
            else:
                value = self._parse_value(tok)
            if value is None:
                continue
            if tok.key in seen:
                self._error(tok, f"duplicate key {tok.key!r}")
                continue
            seen.add(tok.key)
            fields.append(Field(tok.key, value, tok.line))
        return Mapping(tuple(fields))

    def _parse_open_list(self, key_tok: Token) -> Sequence:
        tok = self._peek()
        if tok is None or tok.kind not in _ITEM_KINDS or tok.indent < key_tok.indent:
            return Sequence((), key_tok.line)
        return self._parse_sequence(tok.indent)

    def _parse_sequence(self, indent: int) -> Sequence:
        items: list[Union[Scalar, Record]] = []
        line = self._tokens[self._pos].line
        while (tok := self._peek()) is not None:
            if tok.indent < indent or (tok.indent == indent and tok.kind not in _ITEM_KINDS):
                break
            self._advance()
            if tok.indent > indent:
                self._error(tok, tok.message or "unexpected indentation inside list")
                continue
            if tok.kind is TokenKind.ITEM_FIELD:
                items.append(self._parse_record(tok))
                continue
            scalar = self._parse_item_scalar(tok, tok.value)
            if scalar is not None:
                items.append(scalar)
        return Sequence(tuple(items), line)

    def _parse_record(self, item: Token) -> Record:
        first = self._parse_item_scalar(item, item.value)
        fields: list[Field] = []
        seen: set[str] = set()
        if first is not None:
            fields.append(Field(item.key, first, item.line))
            seen.add(item.key)
        while (tok := self._peek()) is not None and tok.indent > item.indent:
            self._advance()
            if tok.kind is TokenKind.INVALID:
                self._error(tok, tok.message)
                continue
            if tok.kind is TokenKind.KEY_OPEN or tok.kind in _ITEM_KINDS:
                self._error(tok, "nested lists inside list records are not supported")
                continue
            if tok.indent != item.content_indent:
                self._error(tok, f"record field {tok.key!r} is not aligned with {item.key!r}")
                continue
            scalar = self._parse_item_scalar(tok, tok.value)
            if scalar is None:
                continue
            if tok.key in seen:
                self._error(tok, f"duplicate key {tok.key!r} in list record")
                continue
            seen.add(tok.key)
            fields.append(Field(tok.key, scalar, tok.line))
        return Record(tuple(fields), item.line)

    def _parse_item_scalar(self, tok: Token, raw: str) -> Scalar | None:
        if _is_quoted(raw):
            return Scalar(raw[1:-1], tok.line)
        if raw.startswith("["):
            self._error(tok, "nested lists are not supported inside lists")
            return None
        return Scalar(raw, tok.line)

    def _parse_value(self, tok: Token) -> Union[Scalar, Sequence, None]:
        raw = tok.value
        if _is_quoted(raw):
            return Scalar(raw[1:-1], tok.line)
        if not raw.startswith("["):
            return Scalar(raw, tok.line)
        if not raw.endswith("]"):
            self._error(tok, f"unterminated inline list for key {tok.key!r}")
            return None
        inner = raw[1:-1].strip()
        if not inner:
            return Sequence((), tok.line)
        parts = [p.strip() for p in inner.split(",")]
        if any(not p for p in parts):
            self._error(tok, f"empty element in inline list for key {tok.key!r}")
            return None
        return Sequence(tuple(Scalar(_unquote(p), tok.line) for p in parts), tok.line)


def parse_block(
    lines: Iterable[str], first_line_no: int = 1, *, list_root: bool = True
) -> tuple[Union[Mapping, Sequence], list[str]]:
    """
    Parse block-structured lines (no separators) into an AST root plus error messages.

    With `list_root=False` a block that starts with a list item but also carries
    top-level keys is parsed as a mapping; the stray items are reported.
    """
    parser = _Parser(tokenize(lines, first_line_no))
    root = parser.parse_block(list_root)
    return root, parser.errors


def to_data(node: Node) -> Any:
    """Convert an AST node to plain Python data (dict / list / str)."""
    if isinstance(node, Scalar):
        return node.value
    if isinstance(node, Sequence):
        return [to_data(item) for item in node.items]
    # Mapping and Record both carry fields.
    return {f.key: to_data(f.value) for f in node.fields}


# ---------------------------------------------------------------------------
# Document-level API
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParsedMetadata:
    data: dict[str, Any]
    body: str
    errors: tuple[str, ...]
    has_block: bool


def split_metadata_block(text: str) -> tuple[list[str] | None, str, int]:
    """
    Split raw text into (block_lines, body, first_block_line_no).

    `block_lines` is None when the text does not open with a `---` line, or when the
    opening separator is never closed; the body is then the whole text.
    """
    text = text.lstrip("\ufeff")
    lines = text.splitlines(keepends=True)
    start = 0
    while start < len(lines) and not lines[start].strip():
        start += 1
    if start >= len(lines) or lines[start].strip() != SEPARATOR:
        return None, text, 0
    for end in range(start + 1, len(lines)):
        if lines[end].strip() == SEPARATOR:
            block = [ln.rstrip("\r\n") for ln in lines[start + 1 : end]]
            return block, "".join(lines[end + 1 :]), start + 2
    return None, text, 0


def _opens_block(text: str) -> bool:
    stripped = text.lstrip("\ufeff").lstrip()
    first = stripped.splitlines()[0] if stripped else ""
    return first.strip() == SEPARATOR


def parse_metadata(text: str) -> ParsedMetadata:
    block, body, first_line_no = split_metadata_block(text)
    if block is None:
        message = UNCLOSED_BLOCK if _opens_block(text) else MISSING_BLOCK
        return ParsedMetadata(data={}, body=body, errors=(message,), has_block=False)

    root, errors = parse_block(block, first_line_no, list_root=False)
    if isinstance(root, Sequence):
        errors = [f"line {root.line}: metadata block must be a set of 'key: value' fields, not a list", *errors]
        return ParsedMetadata(data={}, body=body, errors=tuple(errors), has_block=True)
    return ParsedMetadata(data=to_data(root), body=body, errors=tuple(errors), has_block=True)


# ---------------------------------------------------------------------------
# Serializer
# ---------------------------------------------------------------------------


def _looks_like_field(value: str) -> bool:
    return bool(_KEY_VALUE_RE.match(value) or _KEY_OPEN_RE.match(value))


def _format_scalar(value: Any, *, in_list: bool) -> str:
    text = str(value)
    if "\n" in text or "\r" in text:
        raise MetadataSyntaxError(f"multi-line values are not supported: {text!r}")
    needs_quotes = (
        not text
        or text != text.strip()
        or text[0] in ("\"", "'", "[", "#")
        or (in_list and _looks_like_field(text))
    )
    return f'"{text}"' if needs_quotes else text


def _check_key(key: Any) -> str:
    if not isinstance(key, str) or not _KEY_NAME_RE.match(key):
        raise MetadataSyntaxError(f"invalid metadata key: {key!r}")
    return key


def dump_metadata(data: MappingABC[str, Any]) -> str:
    """
    Serialize a metadata mapping to block lines (without the `---` separators).

    Lists are always written in block style, with `key: []` for empty lists.
    Quotes are only added where the plain form would parse differently.
    """
    out: list[str] = []
    for key, value in data.items():
        key = _check_key(key)
        if isinstance(value, (list, tuple)):
            if not value:
                out.append(f"{key}: []")
                continue
            out.append(f"{key}:")
            for item in value:
                if isinstance(item, MappingABC):
                    if not item:
                        raise MetadataSyntaxError(f"empty record in list {key!r}")
                    prefix = "  - "
                    for sub_key, sub_value in item.items():
                        sub_key = _check_key(sub_key)
                        out.append(f"{prefix}{sub_key}: {_format_scalar(sub_value, in_list=True)}")
                        prefix = "    "
                elif isinstance(item, (list, tuple)):
                    raise MetadataSyntaxError(f"nested lists are not supported (key {key!r})")
                else:
                    out.append(f"  - {_format_scalar(item, in_list=True)}")
        elif isinstance(value, MappingABC):
            raise MetadataSyntaxError(f"nested mappings are not supported (key {key!r})")
        else:
            out.append(f"{key}: {_format_scalar(value, in_list=False)}")
    return "\n".join(out) + "\n" if out else ""
