"""
Parser for field visibility and computed-value expressions.

Expressions are a small closed language over the form's value context:
literals, field references, arithmetic, comparisons and boolean logic.
Source text is tokenized, parsed by recursive descent into an immutable
AST and cached; nothing is ever executed as Python code.

Grammar (lowest precedence first):

    expr        := or
    or          := and (("||" | "or") and)*
    and         := not (("&&" | "and") not)*
    not         := ("!" | "not") not | comparison
    comparison  := additive (("==" | "!=" | "===" | "!==" | "<" | "<=" | ">" | ">=") additive)*
    additive    := term (("+" | "-") term)*
    term        := unary (("*" | "/" | "%") unary)*
    unary       := ("-" | "+") unary | primary
    primary     := NUMBER | STRING | "true" | "false" | "null"
                 | IDENT | "values" "." IDENT | "values" "[" STRING "]"
                 | "(" expr ")"
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, List, Optional, Tuple, Union

from .config_loader import get_config_value
from .schema_exceptions import ExpressionSyntaxError

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 1000
DEFAULT_MAX_DEPTH = 64

KEYWORDS = {'and', 'or', 'not', 'true', 'false', 'null'}

COMPARISON_OPERATORS = ('===', '!==', '==', '!=', '<=', '>=', '<', '>')

_TOKEN_PATTERN = re.compile(r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<ident>[A-Za-z_$][A-Za-z0-9_$]*)
  | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||[<>!+\-*/%().\[\]])
""", re.VERBOSE)

_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '\\': '\\', '"': '"', "'": "'"}


@dataclass(frozen=True)
class Token:
    kind: str  # number, string, ident, keyword, op, end
    value: Any
    position: int


# ----------------------------------------------------------------------
# AST
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class FieldRef:
    key: str


@dataclass(frozen=True)
class UnaryOp:
    op: str  # "-", "+" or "not"
    operand: "Node"


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Concat:
    """String concatenation of a '+' chain with at least one string operand."""
    parts: Tuple["Node", ...]


@dataclass(frozen=True)
class Logical:
    """Short-circuit 'and' / 'or'."""
    op: str
    left: "Node"
    right: "Node"


Node = Union[Literal, FieldRef, UnaryOp, BinaryOp, Concat, Logical]


# ----------------------------------------------------------------------
# Tokenizer
# ----------------------------------------------------------------------

def _unescape(body: str) -> str:
    out = []
    i = 0
    while i < len(body):
        char = body[i]
        if char == '\\' and i + 1 < len(body):
            out.append(_ESCAPES.get(body[i + 1], body[i + 1]))
            i += 2
        else:
            out.append(char)
            i += 1
    return ''.join(out)


def tokenize(source: str) -> List[Token]:
    """
    Split expression source into tokens.

    Raises:
        ExpressionSyntaxError: On a character that starts no token
    """
    tokens: List[Token] = []
    position = 0
    while position < len(source):
        match = _TOKEN_PATTERN.match(source, position)
        if match is None:
            raise ExpressionSyntaxError(
                f"Unexpected character {source[position]!r} at position {position}",
                source, position
            )
        kind = match.lastgroup
        text = match.group()
        if kind == 'number':
            value = float(text) if any(c in text for c in '.eE') else int(text)
            tokens.append(Token('number', value, position))
        elif kind == 'string':
            tokens.append(Token('string', _unescape(text[1:-1]), position))
        elif kind == 'ident':
            tokens.append(Token('keyword' if text in KEYWORDS else 'ident', text, position))
        elif kind == 'op':
            tokens.append(Token('op', text, position))
        position = match.end()
    tokens.append(Token('end', None, len(source)))
    return tokens


# ----------------------------------------------------------------------
# Parser
# ----------------------------------------------------------------------

class Parser:
    """Recursive-descent parser producing an AST from a token list."""

    def __init__(self, source: str, max_depth: int = DEFAULT_MAX_DEPTH):
        self.source = source
        self.tokens = tokenize(source)
        self.index = 0
        self.depth = 0
        self.max_depth = max_depth

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        if token.kind != 'end':
            self.index += 1
        return token

    def _match(self, *values: str) -> Optional[Token]:
        token = self.current
        if token.kind in ('op', 'keyword') and token.value in values:
            return self._advance()
        return None

    def _expect(self, value: str) -> Token:
        token = self._match(value)
        if token is None:
            raise self._error(f"Expected '{value}'")
        return token

    def _error(self, message: str) -> ExpressionSyntaxError:
        token = self.current
        found = "end of expression" if token.kind == 'end' else repr(token.value)
        return ExpressionSyntaxError(
            f"{message} at position {token.position}, found {found}",
            self.source, token.position
        )

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > self.max_depth:
            raise self._error(f"Expression nested deeper than {self.max_depth} levels")

    def _leave(self) -> None:
        self.depth -= 1

    def parse(self) -> Node:
        node = self._parse_or()
        if self.current.kind != 'end':
            raise self._error("Unexpected token")
        return node

    def _parse_or(self) -> Node:
        node = self._parse_and()
        while self._match('||', 'or'):
            node = Logical('or', node, self._parse_and())
        return node

    def _parse_and(self) -> Node:
        node = self._parse_not()
        while self._match('&&', 'and'):
            node = Logical('and', node, self._parse_not())
        return node

    def _parse_not(self) -> Node:
        if self._match('!', 'not'):
            self._enter()
            try:
                return UnaryOp('not', self._parse_not())
            finally:
                self._leave()
        return self._parse_comparison()

    def _parse_comparison(self) -> Node:
        node = self._parse_additive()
        while True:
            token = self._match(*COMPARISON_OPERATORS)
            if token is None:
                return node
            node = BinaryOp(token.value, node, self._parse_additive())

    def _parse_additive(self) -> Node:
        node = self._parse_term()
        while True:
            token = self._match('+', '-')
            if token is None:
                return node
            right = self._parse_term()
            if token.value == '+' and (isinstance(node, Concat) or _is_string(node) or _is_string(right)):
                parts = node.parts if isinstance(node, Concat) else (node,)
                node = Concat(parts + (right,))
            else:
                node = BinaryOp(token.value, node, right)

    def _parse_term(self) -> Node:
        node = self._parse_unary()
        while True:
            token = self._match('*', '/', '%')
            if token is None:
                return node
            node = BinaryOp(token.value, node, self._parse_unary())

    def _parse_unary(self) -> Node:
        token = self._match('-', '+')
        if token is not None:
            self._enter()
            try:
                return UnaryOp(token.value, self._parse_unary())
            finally:
                self._leave()
        return self._parse_primary()

    def _parse_primary(self) -> Node:
        token = self.current

        if token.kind in ('number', 'string'):
            self._advance()
            return Literal(token.value)

        if token.kind == 'keyword':
            if token.value in ('true', 'false', 'null'):
                self._advance()
                return Literal({'true': True, 'false': False, 'null': None}[token.value])
            raise self._error("Unexpected keyword")

        if token.kind == 'ident':
            self._advance()
            if token.value == 'values':
                if self._match('.'):
                    name = self.current
                    if name.kind not in ('ident', 'keyword'):
                        raise self._error("Expected a field key after 'values.'")
                    self._advance()
                    return FieldRef(name.value)
                if self._match('['):
                    key = self.current
                    if key.kind != 'string':
                        raise self._error("Expected a quoted field key inside 'values[...]'")
                    self._advance()
                    self._expect(']')
                    return FieldRef(key.value)
            return FieldRef(token.value)

        if self._match('('):
            self._enter()
            try:
                node = self._parse_or()
            finally:
                self._leave()
            self._expect(')')
            return node

        raise self._error("Expected a value")


def _is_string(node: Node) -> bool:
    return isinstance(node, Literal) and isinstance(node.value, str)


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def expression_limits() -> Tuple[int, int]:
    """Configured (max_length, max_depth) for expressions."""
    return (
        get_config_value('expressions', 'max_length', DEFAULT_MAX_LENGTH),
        get_config_value('expressions', 'max_depth', DEFAULT_MAX_DEPTH),
    )


@lru_cache(maxsize=512)
def _compile(source: str, max_length: int, max_depth: int) -> Node:
    if len(source) > max_length:
        raise ExpressionSyntaxError(
            f"Expression is longer than {max_length} characters", source
        )
    return Parser(source, max_depth).parse()


def compile_expression(source: Optional[str], max_length: Optional[int] = None,
                       max_depth: Optional[int] = None) -> Optional[Node]:
    """
    Parse expression source into an AST, using a shared cache.

    Args:
        source: Expression text; None or blank means "no expression"
        max_length: Maximum source length (configured limit when omitted)
        max_depth: Maximum nesting depth (configured limit when omitted)

    Returns:
        AST root node, or None for a blank expression

    Raises:
        ExpressionSyntaxError: If the expression is malformed or too large
    """
    if source is None:
        return None
    if not isinstance(source, str):
        raise ExpressionSyntaxError(f"Expression must be text, got {type(source).__name__}")
    if not source.strip():
        return None

    default_length, default_depth = expression_limits()
    return _compile(
        source.strip(),
        max_length if max_length is not None else default_length,
        max_depth if max_depth is not None else default_depth,
    )


def check_expression(source: Optional[str]) -> Optional[str]:
    """
    Syntax check for editing surfaces.

    Returns:
        None if the expression is blank or well formed, otherwise the error message
    """
    try:
        compile_expression(source)
    except ExpressionSyntaxError as e:
        return e.message
    return None


def _walk(node: Node) -> List[Node]:
    nodes = [node]
    if isinstance(node, UnaryOp):
        nodes.extend(_walk(node.operand))
    elif isinstance(node, (BinaryOp, Logical)):
        nodes.extend(_walk(node.left))
        nodes.extend(_walk(node.right))
    elif isinstance(node, Concat):
        for part in node.parts:
            nodes.extend(_walk(part))
    return nodes


def referenced_keys(source: Optional[str]) -> List[str]:
    """
    Field keys an expression reads, in first-use order.

    Raises:
        ExpressionSyntaxError: If the expression is malformed
    """
    node = compile_expression(source)
    if node is None:
        return []
    keys: List[str] = []
    for item in _walk(node):
        if isinstance(item, FieldRef) and item.key not in keys:
            keys.append(item.key)
    return keys


def clear_cache() -> None:
    _compile.cache_clear()
