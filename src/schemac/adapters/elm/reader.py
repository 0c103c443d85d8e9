"""Type expression reader for Elm declarations.

Turns the right-hand side of a ``type alias`` / ``type`` declaration (or one
field type) into a :data:`~schemac.core.models.TypeExpr` tree. The reader is a
pure function over text: it never looks at other declarations and never
decides what a wrapper means.

Splitting of field lists and variant lists is depth-tracked so that commas and
pipes nested inside ``( )``, ``{ }`` or ``[ ]`` never break a top-level item.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from schemac.core.models import (
    AppliedType,
    ListType,
    PrimitiveType,
    RecordFieldExpr,
    RecordType,
    TupleType,
    TypeExpr,
)

PRIMARY_MARKER = "@primary"

_OPENERS = {"(": ")", "{": "}", "[": "]"}
_CLOSERS = {v: k for k, v in _OPENERS.items()}

_TOKEN = re.compile(
    r"""
    (?P<space>\s+)
  | (?P<arrow>->)
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)
  | (?P<number>-?\d+(?:\.\d+)?)
  | (?P<punct>[(){}\[\],:|])
    """,
    re.VERBOSE,
)


class ParseError(Exception):
    """Malformed type expression or declaration."""

    def __init__(
        self,
        reason: str,
        file: str | None = None,
        declaration: str | None = None,
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.file = file
        self.declaration = declaration

    def __str__(self) -> str:
        where = ":".join(p for p in (self.file, self.declaration) if p)
        return f"{where}: {self.reason}" if where else self.reason


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int


def strip_comments(source: str) -> str:
    """Remove ``--`` line comments and ``{- -}`` block comments.

    Newlines inside removed comments are kept so line-based declaration
    splitting still sees the original layout. A doc comment carrying
    ``@primary`` is replaced by the bare marker at column 0.
    """
    out: list[str] = []
    i = 0
    n = len(source)
    in_string = False
    while i < n:
        ch = source[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(source[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
            continue
        if source.startswith("{-", i):
            end, body = _block_comment_end(source, i)
            if PRIMARY_MARKER in body:
                out.append(PRIMARY_MARKER)
            out.append("\n" * body.count("\n"))
            i = end
            continue
        if source.startswith("--", i):
            newline = source.find("\n", i)
            i = n if newline == -1 else newline
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _block_comment_end(source: str, start: int) -> tuple[int, str]:
    """Find the end of a (possibly nested) block comment starting at ``start``."""
    depth = 0
    i = start
    while i < len(source):
        if source.startswith("{-", i):
            depth += 1
            i += 2
        elif source.startswith("-}", i):
            depth -= 1
            i += 2
            if depth == 0:
                return i, source[start:i]
        else:
            i += 1
    raise ParseError("unterminated block comment")


def split_top_level(text: str, separator: str) -> list[str]:
    """Split ``text`` on ``separator`` occurring outside any bracket pair.

    Raises:
        ParseError: If brackets are unbalanced.
    """
    parts: list[str] = []
    stack: list[str] = []
    current: list[str] = []
    for ch in text:
        if ch in _OPENERS:
            stack.append(ch)
        elif ch in _CLOSERS:
            if not stack or stack[-1] != _CLOSERS[ch]:
                raise ParseError(f"unbalanced '{ch}'")
            stack.pop()
        if ch == separator and not stack:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    if stack:
        raise ParseError(f"unclosed '{stack[-1]}'")
    parts.append("".join(current).strip())
    return parts


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN.match(text, pos)
        if match is None:
            raise ParseError(f"unexpected character {text[pos]!r} at offset {pos}")
        kind = match.lastgroup or ""
        if kind != "space":
            tokens.append(Token(kind, match.group(), pos))
        pos = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._index = 0

    def peek(self) -> Token | None:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def at_end(self) -> bool:
        return self._index >= len(self._tokens)

    def advance(self) -> Token:
        token = self.peek()
        if token is None:
            raise ParseError("unexpected end of type expression")
        self._index += 1
        return token

    def expect(self, text: str) -> Token:
        token = self.advance()
        if token.text != text:
            raise ParseError(f"expected '{text}' but found '{token.text}'")
        return token

    def parse_type(self) -> TypeExpr:
        expr = self.parse_application()
        token = self.peek()
        if token is not None and token.kind == "arrow":
            raise ParseError("function types cannot be stored or serialized")
        return expr

    def parse_application(self) -> TypeExpr:
        head = self.parse_atom()
        args: list[TypeExpr] = []
        while self._starts_atom():
            args.append(self.parse_atom())
        if not args:
            return head
        if not isinstance(head, PrimitiveType) or not head.name[:1].isupper():
            raise ParseError(f"cannot apply '{head.to_source()}' to arguments")
        if head.name == "List" and len(args) == 1:
            return ListType(inner=args[0])
        return AppliedType(wrapper=head.name, args=args)

    def _starts_atom(self) -> bool:
        token = self.peek()
        if token is None:
            return False
        return token.kind in ("name", "number") or token.text in ("(", "{")

    def parse_atom(self) -> TypeExpr:
        token = self.advance()
        if token.kind in ("name", "number"):
            return PrimitiveType(name=token.text)
        if token.text == "(":
            return self._parse_parenthesized()
        if token.text == "{":
            return self._parse_record()
        raise ParseError(f"unexpected '{token.text}'")

    def _parse_parenthesized(self) -> TypeExpr:
        token = self.peek()
        if token is not None and token.text == ")":
            self.advance()
            return PrimitiveType(name="()")
        items = [self.parse_type()]
        while True:
            token = self.advance()
            if token.text == ")":
                break
            if token.text != ",":
                raise ParseError(f"expected ',' or ')' but found '{token.text}'")
            items.append(self.parse_type())
        if len(items) == 1:
            return items[0]
        return TupleType(items=items)

    def _parse_record(self) -> RecordType:
        token = self.peek()
        if token is not None and token.text == "}":
            self.advance()
            return RecordType()
        extends: str | None = None
        if (
            token is not None
            and token.kind == "name"
            and self._index + 1 < len(self._tokens)
            and self._tokens[self._index + 1].text == "|"
        ):
            extends = self.advance().text
            self.advance()
        fields: list[RecordFieldExpr] = []
        while True:
            name = self.advance()
            if name.kind != "name" or not name.text[:1].islower():
                raise ParseError(f"invalid field name '{name.text}'")
            self.expect(":")
            fields.append(RecordFieldExpr(name=name.text, type_expr=self.parse_type()))
            token = self.advance()
            if token.text == "}":
                break
            if token.text != ",":
                raise ParseError(f"expected ',' or '}}' but found '{token.text}'")
        return RecordType(fields=fields, extends=extends)


def parse_type_expr(text: str) -> TypeExpr:
    """Parse one complete type expression.

    Raises:
        ParseError: If the text is not a well-formed type expression.
    """
    stripped = text.strip()
    if not stripped:
        raise ParseError("empty type expression")
    parser = _Parser(tokenize(stripped))
    expr = parser.parse_type()
    if not parser.at_end():
        extra = parser.peek()
        raise ParseError(f"unexpected '{extra.text if extra else ''}' after type expression")
    return expr


def parse_variant(text: str) -> tuple[str, list[TypeExpr]]:
    """Parse one union variant ``Name arg1 arg2`` into its name and argument types."""
    parser = _Parser(tokenize(text.strip()))
    name = parser.advance()
    if name.kind != "name" or not name.text[:1].isupper() or "." in name.text:
        raise ParseError(f"invalid variant name '{name.text}'")
    args: list[TypeExpr] = []
    while not parser.at_end():
        if not parser._starts_atom():
            extra = parser.peek()
            raise ParseError(f"unexpected '{extra.text if extra else ''}' in variant")
        args.append(parser.parse_atom())
    return name.text, args


def parse_record_body(text: str) -> list[tuple[str, str]]:
    """Split a record literal into ``(field_name, type_text)`` pairs.

    Only the top-level structure is checked here; each type text is parsed
    separately so one malformed field does not hide its siblings.

    Raises:
        ParseError: If the braces are unbalanced or a field lacks ``name : type``.
    """
    body = text.strip()
    if not (body.startswith("{") and body.endswith("}")):
        raise ParseError("record body must be enclosed in braces")
    split_top_level(body, ",")
    inner = body[1:-1].strip()
    if not inner:
        return []
    head = split_top_level(inner, "|")
    if len(head) == 2 and re.fullmatch(r"[a-z][A-Za-z0-9_]*", head[0]):
        inner = head[1]
    pairs: list[tuple[str, str]] = []
    for item in split_top_level(inner, ","):
        name, sep, type_text = item.partition(":")
        name = name.strip()
        if not sep or not re.fullmatch(r"[a-z_][A-Za-z0-9_]*", name):
            raise ParseError(f"malformed record field '{item}'")
        pairs.append((name, type_text.strip()))
    return pairs
