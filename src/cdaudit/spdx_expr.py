# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

r"""SPDX license expressions: tokenizer, parser and evaluator.

Implements the expression syntax of SPDX 3.0.1 Annex B, which is what
crates.io and ClearlyDefined use for declared licenses::

    expression  = term *( ("AND" / "OR") term )
    term        = primary [ "WITH" exception-id ]
    primary     = "(" expression ")" / license-id ["+"] / license-ref
    license-ref = ["DocumentRef-" idstring ":"] "LicenseRef-" idstring

Binding strength, weakest first: ``OR``, ``AND``, ``WITH``, ``+``.
Operators are upper case; lax mode also accepts them in lower case.

Parse modes::

    ┌────────┬──────────────────────────────────────────────────────────┐
    │ Mode   │ Accepts                                                  │
    ├────────┼──────────────────────────────────────────────────────────┤
    │ strict │ Annex B only.  With a resolver, identifiers must be      │
    │        │ exact SPDX IDs.                                          │
    ├────────┼──────────────────────────────────────────────────────────┤
    │ lax    │ ``/`` as ``OR`` (``MIT/Apache-2.0``) and lower-case      │
    │        │ operators.  The resolver may also map aliases and        │
    │        │ wrong-case IDs to canonical IDs.                         │
    └────────┴──────────────────────────────────────────────────────────┘

Evaluation against a leaf predicate::

    A OR B     any side true
    A AND B    both sides true
    A WITH e   A (an exception only relaxes terms)
    A+         A, with ``or_later`` set on the leaf

Usage::

    from cdaudit.spdx_expr import LicenseId, parse

    expr = parse('MIT OR (Apache-2.0 AND BSD-3-Clause)')
    str(expr)  # 'MIT OR (Apache-2.0 AND BSD-3-Clause)'
    expr.evaluate(lambda leaf: isinstance(leaf, LicenseId) and leaf.id == 'MIT')  # True

    parse('MIT/Apache-2.0', lax=True)
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import NamedTuple

__all__ = [
    'MAX_NESTING',
    'And',
    'ExprNode',
    'Expression',
    'LicenseId',
    'LicenseRef',
    'Or',
    'ParseError',
    'Resolver',
    'With',
    'evaluate',
    'license_ids',
    'parse',
]


# ── Syntax tree ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class LicenseId:
    """An SPDX license identifier such as ``MIT``.

    Attributes:
        id: The identifier, canonical when a resolver was used.
        or_later: The expression had a trailing ``+``.
    """

    id: str
    or_later: bool = False

    def __str__(self) -> str:
        return self.id + ('+' if self.or_later else '')


@dataclass(frozen=True)
class LicenseRef:
    """A ``LicenseRef-`` (or ``AdditionRef-``) outside the SPDX list.

    Attributes:
        ref: The ``LicenseRef-...`` part.
        document_ref: The ``DocumentRef-...`` prefix, if any.
    """

    ref: str
    document_ref: str = ''

    def __str__(self) -> str:
        return f'{self.document_ref}:{self.ref}' if self.document_ref else self.ref


@dataclass(frozen=True)
class With:
    """``license WITH exception``."""

    license: LicenseId | LicenseRef
    exception: str

    def __str__(self) -> str:
        return f'{self.license} WITH {self.exception}'


@dataclass(frozen=True)
class And:
    """Both operands apply."""

    left: ExprNode
    right: ExprNode

    def __str__(self) -> str:
        return _render(self)


@dataclass(frozen=True)
class Or:
    """Either operand may be chosen."""

    left: ExprNode
    right: ExprNode

    def __str__(self) -> str:
        return _render(self)


def _operands(node: ExprNode) -> tuple[ExprNode | str, ...]:
    # OR binds weaker than AND, so an OR operand of AND needs parentheses.
    if isinstance(node, Or):
        return ('(', node, ')')
    return (node,)


def _render(node: ExprNode) -> str:
    """Return *node* as expression text without recursing."""
    parts: list[str] = []
    pending: list[ExprNode | str] = [node]
    while pending:
        item = pending.pop()
        if isinstance(item, And):
            pending.extend(reversed((*_operands(item.left), ' AND ', *_operands(item.right))))
        elif isinstance(item, Or):
            pending.extend((item.right, ' OR ', item.left))
        else:
            parts.append(str(item))
    return ''.join(parts)


ExprNode = LicenseId | LicenseRef | With | And | Or

#: Leaf predicate used by :func:`evaluate`.
Predicate = Callable[[LicenseId | LicenseRef], bool]

#: Maps ``(identifier, lax)`` to a canonical SPDX ID, or ``None`` if unknown.
Resolver = Callable[[str, bool], str | None]


class ParseError(ValueError):
    """An SPDX expression could not be parsed.

    Attributes:
        expression: The text being parsed.
        position: Offset of the offending character or token.
        detail: What was wrong, without the position.
    """

    def __init__(self, expression: str, position: int, detail: str) -> None:
        self.expression = expression
        self.position = position
        self.detail = detail
        pointer = ' ' * position + '^'
        super().__init__(f'SPDX parse error at position {position}: {detail}\n  {expression}\n  {pointer}')


# ── Tokens ───────────────────────────────────────────────────────────────

_AND = 'AND'
_OR = 'OR'
_WITH = 'WITH'
_LPAREN = '('
_RPAREN = ')'
_ID = 'ID'
_END = 'END'

# An operator word must not run into idstring characters, so that
# "ANDROID-1.0" and "or-later" stay identifiers.
_TOKEN_RE = re.compile(
    r"""
      (?P<op>AND|OR|WITH|and|or|with)(?![A-Za-z0-9.+\-])
    | (?P<paren>[()])
    | (?P<slash>/)
    | (?P<id>(?:DocumentRef-[A-Za-z0-9.\-]+:)?(?:LicenseRef-|AdditionRef-)?[A-Za-z0-9.\-]+)(?P<plus>\+)?
    """,
    re.VERBOSE,
)


class _Token(NamedTuple):
    kind: str
    text: str
    pos: int
    or_later: bool = False


def _tokenize(text: str, *, lax: bool) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise ParseError(text, pos, f'unexpected character {text[pos]!r}')
        if m['op']:
            if not lax and m['op'].islower():
                raise ParseError(text, pos, f'operator {m["op"]!r} must be upper case (or use lax mode)')
            tokens.append(_Token(m['op'].upper(), m['op'], pos))
        elif m['paren']:
            tokens.append(_Token(m['paren'], m['paren'], pos))
        elif m['slash']:
            if not lax:
                raise ParseError(text, pos, "unexpected character '/' (use OR, or lax mode)")
            tokens.append(_Token(_OR, '/', pos))
        else:
            tokens.append(_Token(_ID, m['id'], pos, or_later=m['plus'] is not None))
        pos = m.end()
    tokens.append(_Token(_END, '', len(text)))
    return tokens


def _describe(tok: _Token) -> str:
    return 'end of expression' if tok.kind == _END else repr(tok.text)


# ── Parser ───────────────────────────────────────────────────────────────

#: Deepest parenthesis nesting :func:`parse` accepts.  Operator chains
#: are parsed in a loop and have no limit.
MAX_NESTING = 64

# Binary operators: kind → (binding power, node type).
_BINARY: dict[str, tuple[int, type[And] | type[Or]]] = {
    _OR: (1, Or),
    _AND: (2, And),
}


class _Parser:
    """Precedence-climbing parser over a token list."""

    def __init__(self, text: str, tokens: list[_Token], *, lax: bool, resolve: Resolver | None) -> None:
        self.text = text
        self.tokens = tokens
        self.index = 0
        self.depth = 0
        self.lax = lax
        self.resolve = resolve

    def peek(self) -> _Token:
        return self.tokens[self.index]

    def take(self) -> _Token:
        tok = self.tokens[self.index]
        if tok.kind != _END:
            self.index += 1
        return tok

    def fail(self, tok: _Token, detail: str) -> ParseError:
        return ParseError(self.text, tok.pos, detail)

    def expression(self, min_power: int = 1) -> ExprNode:
        left = self.term()
        while True:
            entry = _BINARY.get(self.peek().kind)
            if entry is None or entry[0] < min_power:
                return left
            power, node_type = entry
            self.take()
            # power + 1 on the right makes chains left-associative.
            left = node_type(left, self.expression(power + 1))

    def term(self) -> ExprNode:
        node = self.primary()
        if self.peek().kind != _WITH:
            return node
        with_tok = self.take()
        exception = self.take()
        if exception.kind != _ID:
            raise self.fail(exception, f'expected an exception identifier after WITH, got {_describe(exception)}')
        if not isinstance(node, (LicenseId, LicenseRef)):
            raise self.fail(with_tok, 'WITH needs a single license on its left')
        return With(license=node, exception=exception.text)

    def primary(self) -> ExprNode:
        tok = self.take()
        if tok.kind == _LPAREN:
            if self.depth == MAX_NESTING:
                raise self.fail(tok, f'parentheses nested deeper than {MAX_NESTING} levels')
            self.depth += 1
            node = self.expression()
            close = self.take()
            if close.kind != _RPAREN:
                raise self.fail(close, f'expected ")", got {_describe(close)}')
            self.depth -= 1
            return node
        if tok.kind == _ID:
            return self.leaf(tok)
        raise self.fail(tok, f'expected a license identifier or "(", got {_describe(tok)}')

    def leaf(self, tok: _Token) -> LicenseId | LicenseRef:
        if 'LicenseRef-' in tok.text or 'AdditionRef-' in tok.text:
            document, _, ref = tok.text.rpartition(':')
            return LicenseRef(ref=ref, document_ref=document)
        spdx_id = tok.text
        if self.resolve is not None:
            canonical = self.resolve(spdx_id, self.lax)
            if canonical is None:
                raise self.fail(tok, f'unknown license identifier {spdx_id!r}')
            spdx_id = canonical
        return LicenseId(id=spdx_id, or_later=tok.or_later)


# ── Public API ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Expression:
    """A parsed expression together with its source text.

    Attributes:
        raw: The expression as given, surrounding whitespace removed.
        root: Root of the syntax tree.
    """

    raw: str
    root: ExprNode

    def __str__(self) -> str:
        return self.raw

    def evaluate(self, predicate: Predicate) -> bool:
        """Evaluate the tree with *predicate* applied to every leaf."""
        return evaluate(self.root, predicate)


def parse(
    expression: str,
    *,
    lax: bool = False,
    resolve: Resolver | None = None,
) -> Expression:
    """Parse an SPDX license expression.

    Args:
        expression: Text such as ``"MIT OR Apache-2.0"``.
        lax: Accept ``/`` as ``OR``; also passed through to *resolve*.
        resolve: Optional identifier resolver.  Each license ID is
            replaced by what it returns, and ``None`` is a parse error.

    Returns:
        The parsed :class:`Expression`.

    Raises:
        ParseError: If the text is not a valid expression in the
            requested mode.

    Examples::

        >>> parse('MIT').root
        LicenseId(id='MIT', or_later=False)

        >>> parse('GPL-2.0-or-later WITH Classpath-exception-2.0').root
        With(license=LicenseId(id='GPL-2.0-or-later', or_later=False),
             exception='Classpath-exception-2.0')
    """
    text = expression.strip()
    if not text:
        raise ParseError(expression, 0, 'empty expression')
    parser = _Parser(text, _tokenize(text, lax=lax), lax=lax, resolve=resolve)
    root = parser.expression()
    trailing = parser.peek()
    if trailing.kind != _END:
        raise parser.fail(trailing, f'unexpected {_describe(trailing)} after a complete expression')
    return Expression(raw=text, root=root)


def evaluate(node: ExprNode, predicate: Predicate) -> bool:
    """Evaluate a syntax tree against a per-leaf predicate.

    ``OR`` is true if any branch is, ``AND`` only if all are, and
    ``WITH`` evaluates its license.  Leaves are passed to *predicate*
    unchanged, so it may inspect ``or_later``.  Branches that cannot
    change the result are skipped.
    """
    # Operators whose left side is done; the flag is set once the right
    # side is being evaluated.
    stack: list[tuple[And | Or, bool]] = []
    current = node
    while True:
        while isinstance(current, (And, Or)):
            stack.append((current, False))
            current = current.left
        value = predicate(current.license if isinstance(current, With) else current)
        while stack:
            op, right_done = stack.pop()
            if right_done or value == isinstance(op, Or):
                continue
            stack.append((op, True))
            current = op.right
            break
        else:
            return value


def license_ids(node: ExprNode) -> set[str]:
    """Return every identifier in the tree.

    ``+`` suffixes are dropped, exceptions are not included, and
    ``LicenseRef-`` leaves appear as written.

    Examples::

        >>> license_ids(parse('MIT OR Apache-2.0').root)
        {'MIT', 'Apache-2.0'}
    """
    ids: set[str] = set()
    pending = [node]
    while pending:
        current = pending.pop()
        if isinstance(current, With):
            current = current.license
        if isinstance(current, LicenseId):
            ids.add(current.id)
        elif isinstance(current, LicenseRef):
            ids.add(str(current))
        else:
            pending.extend((current.left, current.right))
    return ids
