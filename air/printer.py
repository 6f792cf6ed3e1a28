"""S-expression rendering of AIR nodes.

This is the notation used by the session logs and read back by
``air.parser``. Labels are printed as quoted strings.
"""

from __future__ import annotations

from typing import Optional

from air.ast_nodes import (
    Typ, BoolTyp, IntTyp, NamedTyp,
    Expr, BoolConst, IntConst, Var, Apply, Unary, Binary, Multi, LabeledAssertion,
    Stmt, Assume, Assert, Assign, Block,
    Declaration, SortDecl, ConstDecl, FunDecl, VarDecl, AxiomDecl,
    Query,
)


def quote(label: str) -> str:
    escaped = label.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def typ_to_sexpr(typ: Typ) -> str:
    if isinstance(typ, BoolTyp):
        return "Bool"
    if isinstance(typ, IntTyp):
        return "Int"
    if isinstance(typ, NamedTyp):
        return typ.name
    raise TypeError(f"not an AIR type: {typ!r}")


def expr_to_sexpr(expr: Expr) -> str:
    if isinstance(expr, BoolConst):
        return "true" if expr.value else "false"
    if isinstance(expr, IntConst):
        if expr.value < 0:
            return f"(- {-expr.value})"
        return str(expr.value)
    if isinstance(expr, Var):
        return expr.name
    if isinstance(expr, Apply):
        if not expr.args:
            return f"({expr.fun})"
        args = " ".join(expr_to_sexpr(a) for a in expr.args)
        return f"({expr.fun} {args})"
    if isinstance(expr, Unary):
        return f"({expr.op.value} {expr_to_sexpr(expr.arg)})"
    if isinstance(expr, Binary):
        return f"({expr.op.value} {expr_to_sexpr(expr.left)} {expr_to_sexpr(expr.right)})"
    if isinstance(expr, Multi):
        if not expr.args:
            return f"({expr.op.value})"
        args = " ".join(expr_to_sexpr(a) for a in expr.args)
        return f"({expr.op.value} {args})"
    if isinstance(expr, LabeledAssertion):
        return f"(label {_label_text(expr.label)} {expr_to_sexpr(expr.expr)})"
    raise TypeError(f"not an AIR expression: {expr!r}")


def _label_text(label: Optional[str]) -> str:
    return quote(label) if label is not None else "_"


def stmt_to_sexpr(stmt: Stmt, indent: int = 0) -> str:
    pad = "    " * indent
    if isinstance(stmt, Assume):
        return f"{pad}(assume {expr_to_sexpr(stmt.expr)})"
    if isinstance(stmt, Assert):
        if stmt.label is None:
            return f"{pad}(assert {expr_to_sexpr(stmt.expr)})"
        return f"{pad}(assert {quote(stmt.label)} {expr_to_sexpr(stmt.expr)})"
    if isinstance(stmt, Assign):
        return f"{pad}(assign {stmt.var} {expr_to_sexpr(stmt.expr)})"
    if isinstance(stmt, Block):
        if not stmt.stmts:
            return f"{pad}(block)"
        inner = "\n".join(stmt_to_sexpr(s, indent + 1) for s in stmt.stmts)
        return f"{pad}(block\n{inner}\n{pad})"
    raise TypeError(f"not an AIR statement: {stmt!r}")


def decl_to_sexpr(decl: Declaration) -> str:
    if isinstance(decl, SortDecl):
        return f"(declare-sort {decl.name})"
    if isinstance(decl, ConstDecl):
        return f"(declare-const {decl.name} {typ_to_sexpr(decl.typ)})"
    if isinstance(decl, FunDecl):
        params = " ".join(typ_to_sexpr(t) for t in decl.params)
        return f"(declare-fun {decl.name} ({params}) {typ_to_sexpr(decl.ret)})"
    if isinstance(decl, VarDecl):
        return f"(declare-var {decl.name} {typ_to_sexpr(decl.typ)})"
    if isinstance(decl, AxiomDecl):
        return f"(axiom {expr_to_sexpr(decl.expr)})"
    raise TypeError(f"not an AIR declaration: {decl!r}")


def query_to_sexpr(query: Query) -> str:
    lines = ["(check-valid"]
    for decl in query.declarations:
        lines.append("    " + decl_to_sexpr(decl))
    lines.append(stmt_to_sexpr(query.assertion, 1))
    lines.append(")")
    return "\n".join(lines)
