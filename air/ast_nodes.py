"""AIR node definitions.

Types, expressions, statements, declarations, queries and commands.
Every node is a frozen dataclass with tuple children, so trees are
immutable and subtrees can be shared freely between rewrites.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


Ident = str


def intern(name: str) -> Ident:
    return sys.intern(name)


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Typ:
    """Base class for types."""

    def __str__(self) -> str:
        from air.printer import typ_to_sexpr
        return typ_to_sexpr(self)


@dataclass(frozen=True)
class BoolTyp(Typ):
    pass


@dataclass(frozen=True)
class IntTyp(Typ):
    pass


@dataclass(frozen=True)
class NamedTyp(Typ):
    """An uninterpreted sort introduced by a SortDecl."""
    name: Ident


BOOL = BoolTyp()
INT = IntTyp()


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------

class UnaryOp(Enum):
    NOT = "not"


class BinaryOp(Enum):
    IMPLIES = "=>"
    EQ = "="
    LE = "<="
    GE = ">="
    LT = "<"
    GT = ">"
    EUC_DIV = "div"
    EUC_MOD = "mod"


class MultiOp(Enum):
    AND = "and"
    OR = "or"
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DISTINCT = "distinct"


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Expr:

    def __str__(self) -> str:
        from air.printer import expr_to_sexpr
        return expr_to_sexpr(self)


@dataclass(frozen=True)
class BoolConst(Expr):
    value: bool


@dataclass(frozen=True)
class IntConst(Expr):
    value: int


Const = Union[BoolConst, IntConst]


@dataclass(frozen=True)
class Var(Expr):
    name: Ident


@dataclass(frozen=True)
class Apply(Expr):
    """Application of a declared uninterpreted function."""
    fun: Ident
    args: tuple[Expr, ...] = ()


@dataclass(frozen=True)
class Unary(Expr):
    op: UnaryOp
    arg: Expr


@dataclass(frozen=True)
class Binary(Expr):
    op: BinaryOp
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Multi(Expr):
    op: MultiOp
    args: tuple[Expr, ...] = ()


@dataclass(frozen=True)
class LabeledAssertion(Expr):
    """Marks a proof obligation so a failure can be traced back to its label."""
    label: Optional[str]
    expr: Expr


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Stmt:

    def __str__(self) -> str:
        from air.printer import stmt_to_sexpr
        return stmt_to_sexpr(self)


@dataclass(frozen=True)
class Assume(Stmt):
    expr: Expr


@dataclass(frozen=True)
class Assert(Stmt):
    label: Optional[str]
    expr: Expr


@dataclass(frozen=True)
class Assign(Stmt):
    var: Ident
    expr: Expr


@dataclass(frozen=True)
class Block(Stmt):
    stmts: tuple[Stmt, ...] = ()


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Declaration:

    def __str__(self) -> str:
        from air.printer import decl_to_sexpr
        return decl_to_sexpr(self)


@dataclass(frozen=True)
class SortDecl(Declaration):
    name: Ident


@dataclass(frozen=True)
class ConstDecl(Declaration):
    name: Ident
    typ: Typ


@dataclass(frozen=True)
class FunDecl(Declaration):
    name: Ident
    params: tuple[Typ, ...]
    ret: Typ


@dataclass(frozen=True)
class VarDecl(Declaration):
    """A mutable variable. Only valid among a query's local declarations."""
    name: Ident
    typ: Typ


@dataclass(frozen=True)
class AxiomDecl(Declaration):
    expr: Expr


# ---------------------------------------------------------------------------
# Queries and commands
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Query:
    declarations: tuple[Declaration, ...]
    assertion: Stmt


@dataclass(frozen=True)
class Command:
    pass


@dataclass(frozen=True)
class Push(Command):
    pass


@dataclass(frozen=True)
class Pop(Command):
    pass


@dataclass(frozen=True)
class SetOption(Command):
    name: str
    value: str


@dataclass(frozen=True)
class Global(Command):
    decl: Declaration


@dataclass(frozen=True)
class CheckValid(Command):
    query: Query


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class ValidityResult:

    @property
    def is_valid(self) -> bool:
        return isinstance(self, Valid)


@dataclass
class Valid(ValidityResult):
    pass


@dataclass
class Invalid(ValidityResult):
    """The obligations do not hold.

    ``labels`` lists the labeled assertions that fail in the counterexample;
    ``model`` holds the constant valuation when one was requested.
    """
    labels: tuple[Optional[str], ...] = ()
    model: Optional[dict[str, str]] = None


@dataclass
class SolverError(ValidityResult):
    """The prover gave no definite answer (unknown, resource limit hit)."""
    reason: str = ""


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------

def mk_true() -> Expr:
    return BoolConst(True)


def mk_false() -> Expr:
    return BoolConst(False)


def mk_bool(value: bool) -> Expr:
    return BoolConst(value)


def mk_int(value: int) -> Expr:
    return IntConst(value)


def mk_var(name: str) -> Expr:
    return Var(intern(name))


def mk_apply(fun: str, *args: Expr) -> Expr:
    return Apply(intern(fun), tuple(args))


def mk_not(e: Expr) -> Expr:
    return Unary(UnaryOp.NOT, e)


def mk_and(*children: Expr) -> Expr:
    flat: list[Expr] = []
    for c in children:
        if c == BoolConst(True):
            continue
        if isinstance(c, Multi) and c.op == MultiOp.AND:
            flat.extend(c.args)
        else:
            flat.append(c)
    if not flat:
        return mk_true()
    if len(flat) == 1:
        return flat[0]
    return Multi(MultiOp.AND, tuple(flat))


def mk_or(*children: Expr) -> Expr:
    return Multi(MultiOp.OR, tuple(children))


def mk_implies(lhs: Expr, rhs: Expr) -> Expr:
    if lhs == BoolConst(True):
        return rhs
    return Binary(BinaryOp.IMPLIES, lhs, rhs)


def mk_eq(lhs: Expr, rhs: Expr) -> Expr:
    return Binary(BinaryOp.EQ, lhs, rhs)


def mk_binary(op: BinaryOp, lhs: Expr, rhs: Expr) -> Expr:
    return Binary(op, lhs, rhs)


def mk_multi(op: MultiOp, *args: Expr) -> Expr:
    return Multi(op, tuple(args))


def mk_block(*stmts: Stmt) -> Stmt:
    return Block(tuple(stmts))


def mk_query(*items: Any) -> Query:
    """Build a query from declarations followed by a final statement."""
    *decls, stmt = items
    return Query(tuple(decls), stmt)
