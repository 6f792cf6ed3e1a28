"""Bottom-up rewriting over AIR expressions and statements.

All walks are post-order: every child is rewritten before its parent is
handed to the callback. A node whose children come back unchanged is
passed to the callback as-is, so untouched subtrees stay shared.
"""

from __future__ import annotations

from typing import Callable

from air.ast_nodes import (
    Expr, BoolConst, IntConst, Var, Apply, Unary, Binary, Multi, LabeledAssertion,
    Stmt, Assume, Assert, Assign, Block,
)


ExprFn = Callable[[Expr], Expr]
StmtFn = Callable[[Stmt], Stmt]


def _same(old: tuple, new: list) -> bool:
    return all(a is b for a, b in zip(old, new))


def map_expr_visitor(expr: Expr, f: ExprFn) -> Expr:
    """Rewrite ``expr`` bottom-up with ``f``."""
    if isinstance(expr, (BoolConst, IntConst, Var)):
        return f(expr)
    if isinstance(expr, Apply):
        args = [map_expr_visitor(a, f) for a in expr.args]
        if not _same(expr.args, args):
            expr = Apply(expr.fun, tuple(args))
        return f(expr)
    if isinstance(expr, Unary):
        arg = map_expr_visitor(expr.arg, f)
        if arg is not expr.arg:
            expr = Unary(expr.op, arg)
        return f(expr)
    if isinstance(expr, Binary):
        left = map_expr_visitor(expr.left, f)
        right = map_expr_visitor(expr.right, f)
        if left is not expr.left or right is not expr.right:
            expr = Binary(expr.op, left, right)
        return f(expr)
    if isinstance(expr, Multi):
        args = [map_expr_visitor(a, f) for a in expr.args]
        if not _same(expr.args, args):
            expr = Multi(expr.op, tuple(args))
        return f(expr)
    if isinstance(expr, LabeledAssertion):
        inner = map_expr_visitor(expr.expr, f)
        if inner is not expr.expr:
            expr = LabeledAssertion(expr.label, inner)
        return f(expr)
    raise TypeError(f"not an AIR expression: {expr!r}")


def map_stmt_expr_visitor(stmt: Stmt, f: ExprFn) -> Stmt:
    """Rewrite the expressions held directly by ``stmt``.

    Blocks are returned unchanged; combine with ``map_stmt_visitor`` to
    reach nested statements.
    """
    if isinstance(stmt, Assume):
        expr = map_expr_visitor(stmt.expr, f)
        return stmt if expr is stmt.expr else Assume(expr)
    if isinstance(stmt, Assert):
        expr = map_expr_visitor(stmt.expr, f)
        return stmt if expr is stmt.expr else Assert(stmt.label, expr)
    if isinstance(stmt, Assign):
        expr = map_expr_visitor(stmt.expr, f)
        return stmt if expr is stmt.expr else Assign(stmt.var, expr)
    if isinstance(stmt, Block):
        return stmt
    raise TypeError(f"not an AIR statement: {stmt!r}")


def map_stmt_visitor(stmt: Stmt, f: StmtFn) -> Stmt:
    """Rewrite ``stmt`` bottom-up with ``f``."""
    if isinstance(stmt, (Assume, Assert, Assign)):
        return f(stmt)
    if isinstance(stmt, Block):
        stmts = [map_stmt_visitor(s, f) for s in stmt.stmts]
        if not _same(stmt.stmts, stmts):
            stmt = Block(tuple(stmts))
        return f(stmt)
    raise TypeError(f"not an AIR statement: {stmt!r}")


def free_vars(expr: Expr) -> set[str]:
    """Names referenced by ``expr``, including applied functions."""
    names: set[str] = set()

    def collect(e: Expr) -> Expr:
        if isinstance(e, Var):
            names.add(e.name)
        elif isinstance(e, Apply):
            names.add(e.fun)
        return e

    map_expr_visitor(expr, collect)
    return names
