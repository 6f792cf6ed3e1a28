"""Reader for the AIR S-expression notation.

Turns log text (as written by ``air.logger``) back into ``Command`` objects,
so a recorded session can be replayed into a fresh ``Context``.
Comments (``;``) and blank lines are skipped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Union

from air.ast_nodes import (
    intern, BOOL, INT, Typ, NamedTyp,
    Expr, BoolConst, IntConst, Var, Apply, Unary, Binary, Multi, LabeledAssertion,
    UnaryOp, BinaryOp, MultiOp,
    Stmt, Assume, Assert, Assign, Block,
    Declaration, SortDecl, ConstDecl, FunDecl, VarDecl, AxiomDecl,
    Query, Command, Push, Pop, SetOption, Global, CheckValid,
)
from air.errors import UsageError, syntax_error


class TokenType(Enum):
    LPAREN = auto()
    RPAREN = auto()
    STRING = auto()
    SYMBOL = auto()
    EOF = auto()


@dataclass
class Token:
    type: TokenType
    value: str
    line: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, line {self.line})"


_DELIMITERS = set("()\";")
_DIGITS_RE = re.compile(r"[0-9]+")


class Lexer:
    """Tokenizer for S-expression text."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1

    def _peek(self) -> Optional[str]:
        if self.pos < len(self.source):
            return self.source[self.pos]
        return None

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == "\n":
            self.line += 1
        return ch

    def _skip_whitespace_and_comments(self) -> None:
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch.isspace():
                self._advance()
            elif ch == ";":
                while self.pos < len(self.source) and self.source[self.pos] != "\n":
                    self._advance()
            else:
                break

    def _read_string(self) -> Token:
        line = self.line
        self._advance()  # opening quote
        value = ""
        while self.pos < len(self.source):
            ch = self._advance()
            if ch == '"':
                return Token(TokenType.STRING, value, line)
            if ch == "\\" and self.pos < len(self.source):
                value += self._advance()
            else:
                value += ch
        raise UsageError(syntax_error("Unterminated string literal", line))

    def _read_symbol(self) -> Token:
        line = self.line
        value = ""
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch.isspace() or ch in _DELIMITERS:
                break
            value += self._advance()
        return Token(TokenType.SYMBOL, value, line)

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        while True:
            self._skip_whitespace_and_comments()
            ch = self._peek()
            if ch is None:
                break
            if ch == "(":
                tokens.append(Token(TokenType.LPAREN, "(", self.line))
                self._advance()
            elif ch == ")":
                tokens.append(Token(TokenType.RPAREN, ")", self.line))
                self._advance()
            elif ch == '"':
                tokens.append(self._read_string())
            else:
                tokens.append(self._read_symbol())
        tokens.append(Token(TokenType.EOF, "", self.line))
        return tokens


# A node is either an atom token or a parenthesized list of nodes.
Node = Union[Token, "SList"]


@dataclass
class SList:
    items: list[Node]
    line: int


def _error(message: str, line: Optional[int] = None) -> UsageError:
    return UsageError(syntax_error(message, line))


def _line_of(node: Node) -> int:
    return node.line


def read_nodes(source: str) -> list[Node]:
    """Read every top-level S-expression in ``source``."""
    tokens = Lexer(source).tokenize()
    pos = 0
    stack: list[SList] = []
    top: list[Node] = []
    while tokens[pos].type != TokenType.EOF:
        tok = tokens[pos]
        pos += 1
        if tok.type == TokenType.LPAREN:
            stack.append(SList([], tok.line))
            continue
        if tok.type == TokenType.RPAREN:
            if not stack:
                raise _error("Unexpected ')'", tok.line)
            node: Node = stack.pop()
        else:
            node = tok
        if stack:
            stack[-1].items.append(node)
        else:
            top.append(node)
    if stack:
        raise _error("Unclosed '('", stack[-1].line)
    return top


# ---------------------------------------------------------------------------
# Nodes -> AIR
# ---------------------------------------------------------------------------

_UNARY = {op.value: op for op in UnaryOp}
_BINARY = {op.value: op for op in BinaryOp}
_MULTI = {op.value: op for op in MultiOp}

_DECL_HEADS = ("declare-sort", "declare-const", "declare-fun", "declare-var", "axiom")


def _symbol(node: Node, what: str) -> str:
    if isinstance(node, Token) and node.type == TokenType.SYMBOL:
        return node.value
    raise _error(f"Expected {what}", _line_of(node))


def _head(node: Node) -> Optional[str]:
    if isinstance(node, SList) and node.items:
        first = node.items[0]
        if isinstance(first, Token) and first.type == TokenType.SYMBOL:
            return first.value
    return None


def _expect_len(node: SList, n: int, form: str) -> None:
    if len(node.items) != n:
        raise _error(f"'{form}' expects {n - 1} argument(s), got {len(node.items) - 1}", node.line)


def node_to_typ(node: Node) -> Typ:
    name = _symbol(node, "a type")
    if name == "Bool":
        return BOOL
    if name == "Int":
        return INT
    return NamedTyp(intern(name))


def node_to_expr(node: Node) -> Expr:
    if isinstance(node, Token):
        if node.type != TokenType.SYMBOL:
            raise _error(f"Unexpected {node.type.name.lower()} in expression", node.line)
        if node.value == "true":
            return BoolConst(True)
        if node.value == "false":
            return BoolConst(False)
        if _DIGITS_RE.fullmatch(node.value):
            return IntConst(int(node.value))
        return Var(intern(node.value))

    head = _head(node)
    if head is None:
        raise _error("Expected an operator or function name", node.line)
    args = node.items[1:]
    if head == "label":
        _expect_len(node, 3, head)
        label_node = args[0]
        if isinstance(label_node, Token) and label_node.type == TokenType.STRING:
            label: Optional[str] = label_node.value
        elif isinstance(label_node, Token) and label_node.value == "_":
            label = None
        else:
            raise _error("Expected a label string", node.line)
        return LabeledAssertion(label, node_to_expr(args[1]))
    if head in _UNARY:
        _expect_len(node, 2, head)
        return Unary(_UNARY[head], node_to_expr(args[0]))
    if head in _BINARY:
        _expect_len(node, 3, head)
        return Binary(_BINARY[head], node_to_expr(args[0]), node_to_expr(args[1]))
    # printed form of a negative literal
    if head == "-" and len(args) == 1 and isinstance(args[0], Token) and _DIGITS_RE.fullmatch(args[0].value):
        return IntConst(-int(args[0].value))
    if head in _MULTI:
        return Multi(_MULTI[head], tuple(node_to_expr(a) for a in args))
    return Apply(intern(head), tuple(node_to_expr(a) for a in args))


def node_to_stmt(node: Node) -> Stmt:
    head = _head(node)
    if head == "assume":
        _expect_len(node, 2, head)
        return Assume(node_to_expr(node.items[1]))
    if head == "assert":
        items = node.items
        if len(items) == 2:
            return Assert(None, node_to_expr(items[1]))
        if len(items) == 3 and isinstance(items[1], Token) and items[1].type == TokenType.STRING:
            return Assert(items[1].value, node_to_expr(items[2]))
        raise _error("'assert' expects an optional label and an expression", node.line)
    if head == "assign":
        _expect_len(node, 3, head)
        return Assign(intern(_symbol(node.items[1], "a variable name")), node_to_expr(node.items[2]))
    if head == "block":
        return Block(tuple(node_to_stmt(s) for s in node.items[1:]))
    raise _error(f"Expected a statement, got '{head}'", _line_of(node))


def node_to_decl(node: Node) -> Declaration:
    head = _head(node)
    items = node.items if isinstance(node, SList) else []
    if head == "declare-sort":
        _expect_len(node, 2, head)
        return SortDecl(intern(_symbol(items[1], "a sort name")))
    if head == "declare-const":
        _expect_len(node, 3, head)
        return ConstDecl(intern(_symbol(items[1], "a constant name")), node_to_typ(items[2]))
    if head == "declare-var":
        _expect_len(node, 3, head)
        return VarDecl(intern(_symbol(items[1], "a variable name")), node_to_typ(items[2]))
    if head == "declare-fun":
        _expect_len(node, 4, head)
        params = items[2]
        if not isinstance(params, SList):
            raise _error("Expected a parameter type list", node.line)
        return FunDecl(
            intern(_symbol(items[1], "a function name")),
            tuple(node_to_typ(t) for t in params.items),
            node_to_typ(items[3]),
        )
    if head == "axiom":
        _expect_len(node, 2, head)
        return AxiomDecl(node_to_expr(items[1]))
    raise _error(f"Expected a declaration, got '{head}'", _line_of(node))


def node_to_query(node: SList) -> Query:
    body = node.items[1:]
    if not body:
        raise _error("'check-valid' needs a statement", node.line)
    decls = tuple(node_to_decl(d) for d in body[:-1])
    return Query(decls, node_to_stmt(body[-1]))


def node_to_command(node: Node) -> Command:
    head = _head(node)
    if head == "push":
        _expect_len(node, 1, head)
        return Push()
    if head == "pop":
        _expect_len(node, 1, head)
        return Pop()
    if head == "set-option":
        _expect_len(node, 3, head)
        name = _symbol(node.items[1], "an option keyword")
        if not name.startswith(":"):
            raise _error("Option names start with ':'", node.line)
        return SetOption(name[1:], _symbol(node.items[2], "an option value"))
    if head in _DECL_HEADS:
        return Global(node_to_decl(node))
    if head == "check-valid":
        return CheckValid(node_to_query(node))
    raise _error(f"Unknown command '{head}'", _line_of(node))


def parse_commands(source: str) -> list[Command]:
    """Parse AIR log text into a list of commands."""
    return [node_to_command(n) for n in read_nodes(source)]


def parse_expr(source: str) -> Expr:
    nodes = read_nodes(source)
    if len(nodes) != 1:
        raise _error("Expected exactly one expression")
    return node_to_expr(nodes[0])
