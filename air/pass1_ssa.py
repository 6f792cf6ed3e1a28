"""AIR Pass 1 — Assignment elimination.

Manual static single assignment: every mutable variable ``x`` is split into
immutable generations ``x@0``, ``x@1``, ... and each ``assign x := e``
becomes ``assume x@n == e'`` where ``e'`` reads the generations current at
that point. Block exit restores the generation map it saw on entry, so a
renaming made inside a block never reaches the statements after it.

The output query declares one constant per generation and contains no
``Assign``.
"""

from __future__ import annotations

import logging

from air.ast_nodes import (
    Typ, Expr, Var, mk_eq,
    Stmt, Assume, Assert, Assign, Block,
    Declaration, ConstDecl, VarDecl, AxiomDecl, SortDecl, FunDecl,
    Query, intern,
)
from air.errors import UsageError, assign_error, name_error
from air.visitor import map_expr_visitor, map_stmt_expr_visitor

logger = logging.getLogger(__name__)

GENERATION_SEPARATOR = "@"


def generation_name(name: str, generation: int) -> str:
    return intern(f"{name}{GENERATION_SEPARATOR}{generation}")


def _decl_name(decl: Declaration) -> str | None:
    if isinstance(decl, (SortDecl, ConstDecl, FunDecl, VarDecl)):
        return decl.name
    return None


class SsaRenamer:
    """Tracks the current generation of every mutable variable of one query."""

    def __init__(self, mutable: dict[str, Typ]):
        self.mutable = mutable
        self.current: dict[str, int] = {x: 0 for x in mutable}
        self._next: dict[str, int] = {x: 1 for x in mutable}
        self.allocated: dict[str, list[int]] = {x: [0] for x in mutable}

    def fresh(self, name: str) -> int:
        generation = self._next[name]
        self._next[name] = generation + 1
        self.allocated[name].append(generation)
        self.current[name] = generation
        return generation

    def _rename(self, expr: Expr) -> Expr:
        if isinstance(expr, Var) and expr.name in self.mutable:
            return Var(generation_name(expr.name, self.current[expr.name]))
        return expr

    def rename_expr(self, expr: Expr) -> Expr:
        return map_expr_visitor(expr, self._rename)

    def lower_stmt(self, stmt: Stmt) -> Stmt:
        if isinstance(stmt, (Assume, Assert)):
            return map_stmt_expr_visitor(stmt, self._rename)
        if isinstance(stmt, Assign):
            if stmt.var not in self.mutable:
                raise UsageError(assign_error(stmt.var))
            value = self.rename_expr(stmt.expr)
            generation = self.fresh(stmt.var)
            return Assume(mk_eq(Var(generation_name(stmt.var, generation)), value))
        if isinstance(stmt, Block):
            saved = dict(self.current)
            stmts = tuple(self.lower_stmt(s) for s in stmt.stmts)
            self.current = saved
            return Block(stmts)
        raise TypeError(f"not an AIR statement: {stmt!r}")


def lower_query(query: Query) -> Query:
    """Remove every ``assign`` from ``query``."""
    mutable: dict[str, Typ] = {}
    declared: set[str] = set()
    for decl in query.declarations:
        name = _decl_name(decl)
        if name is None:
            continue
        if name in declared:
            raise UsageError(name_error(name, "redeclared"))
        declared.add(name)
        if isinstance(decl, VarDecl):
            mutable[name] = decl.typ

    renamer = SsaRenamer(mutable)
    assertion = renamer.lower_stmt(query.assertion)

    decls: list[Declaration] = []
    for decl in query.declarations:
        if isinstance(decl, VarDecl):
            for generation in renamer.allocated[decl.name]:
                const_name = generation_name(decl.name, generation)
                if const_name in declared:
                    raise UsageError(name_error(const_name, "redeclared"))
                decls.append(ConstDecl(const_name, decl.typ))
        elif isinstance(decl, AxiomDecl) and mutable:
            # axioms describe the initial state
            initial = SsaRenamer(mutable)
            decls.append(AxiomDecl(initial.rename_expr(decl.expr)))
        else:
            decls.append(decl)

    if mutable:
        logger.debug(
            "ssa: %s",
            ", ".join(f"{x}: {len(gens)} generation(s)" for x, gens in renamer.allocated.items()),
        )
    return Query(tuple(decls), assertion)
