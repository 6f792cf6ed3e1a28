"""Translation of AIR to Z3 and discharge of lowered queries.

The translation is done against a ``SymbolTable`` of visible sorts,
constants and functions. Translating a query never touches the solver:
``prepare_query`` resolves every name and builds every term first, so a
usage error surfaces before anything is pushed or logged as sent.
"""

from __future__ import annotations

import functools
import logging
import operator
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import z3

from air.ast_nodes import (
    Typ, BoolTyp, IntTyp, NamedTyp,
    Expr, BoolConst, IntConst, Var, Apply, Unary, Binary, Multi, LabeledAssertion,
    UnaryOp, BinaryOp, MultiOp,
    Assert, Declaration, SortDecl, ConstDecl, FunDecl, VarDecl, AxiomDecl,
    Query, ValidityResult, Valid, Invalid, SolverError,
)
from air.errors import UsageError, name_error, type_error, usage_error
from air.logger import Logger
from air.pass2_flatten import labeled_obligations
from air.printer import expr_to_sexpr

logger = logging.getLogger(__name__)

COMBINED = "combined"
PER_LABEL = "per_label"
CHECK_STRATEGIES = (COMBINED, PER_LABEL)


# ---------------------------------------------------------------------------
# Symbol table
# ---------------------------------------------------------------------------

@dataclass
class SymbolTable:
    """Sorts, constants and functions visible at one point of a session."""
    ctx: z3.Context
    sorts: Dict[str, z3.SortRef] = field(default_factory=dict)
    consts: Dict[str, z3.ExprRef] = field(default_factory=dict)
    funs: Dict[str, z3.FuncDeclRef] = field(default_factory=dict)

    def copy(self) -> SymbolTable:
        return SymbolTable(self.ctx, dict(self.sorts), dict(self.consts), dict(self.funs))

    def has_term(self, name: str) -> bool:
        return name in self.consts or name in self.funs


def translate_typ(table: SymbolTable, typ: Typ) -> z3.SortRef:
    if isinstance(typ, BoolTyp):
        return z3.BoolSort(table.ctx)
    if isinstance(typ, IntTyp):
        return z3.IntSort(table.ctx)
    if isinstance(typ, NamedTyp):
        sort = table.sorts.get(typ.name)
        if sort is None:
            raise UsageError(name_error(typ.name))
        return sort
    raise TypeError(f"not an AIR type: {typ!r}")


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

def _require_arith(term: Any, expr: Expr) -> Any:
    if not z3.is_arith(term):
        raise UsageError(type_error(expr_to_sexpr(expr), "integer operand expected"))
    return term


def _translate(table: SymbolTable, expr: Expr) -> Any:
    if isinstance(expr, BoolConst):
        return z3.BoolVal(expr.value, table.ctx)
    if isinstance(expr, IntConst):
        return z3.IntVal(expr.value, table.ctx)
    if isinstance(expr, Var):
        if expr.name in table.consts:
            return table.consts[expr.name]
        fun = table.funs.get(expr.name)
        if fun is not None and fun.arity() == 0:
            return fun()
        raise UsageError(name_error(expr.name))
    if isinstance(expr, Apply):
        fun = table.funs.get(expr.fun)
        if fun is None:
            raise UsageError(name_error(expr.fun))
        if fun.arity() != len(expr.args):
            raise UsageError(type_error(
                expr_to_sexpr(expr), f"'{expr.fun}' takes {fun.arity()} argument(s)"))
        return fun(*[_translate(table, a) for a in expr.args])
    if isinstance(expr, Unary):
        arg = _translate(table, expr.arg)
        if expr.op == UnaryOp.NOT:
            return z3.Not(arg)
    if isinstance(expr, Binary):
        lhs = _translate(table, expr.left)
        rhs = _translate(table, expr.right)
        if expr.op == BinaryOp.IMPLIES:
            return z3.Implies(lhs, rhs)
        if expr.op == BinaryOp.EQ:
            return lhs == rhs
        lhs = _require_arith(lhs, expr)
        rhs = _require_arith(rhs, expr)
        ops = {
            BinaryOp.LE: operator.le,
            BinaryOp.GE: operator.ge,
            BinaryOp.LT: operator.lt,
            BinaryOp.GT: operator.gt,
            BinaryOp.EUC_DIV: operator.truediv,
            BinaryOp.EUC_MOD: operator.mod,
        }
        return ops[expr.op](lhs, rhs)
    if isinstance(expr, Multi):
        args = [_translate(table, a) for a in expr.args]
        if expr.op == MultiOp.AND:
            return z3.And(*args) if args else z3.BoolVal(True, table.ctx)
        if expr.op == MultiOp.OR:
            return z3.Or(*args) if args else z3.BoolVal(False, table.ctx)
        if expr.op == MultiOp.DISTINCT:
            return z3.Distinct(*args) if len(args) > 1 else z3.BoolVal(True, table.ctx)
        args = [_require_arith(a, expr) for a in args]
        if expr.op == MultiOp.ADD:
            return functools.reduce(operator.add, args) if args else z3.IntVal(0, table.ctx)
        if expr.op == MultiOp.MUL:
            return functools.reduce(operator.mul, args) if args else z3.IntVal(1, table.ctx)
        if expr.op == MultiOp.SUB:
            if not args:
                raise UsageError(type_error(expr_to_sexpr(expr), "'-' needs an operand"))
            if len(args) == 1:
                return -args[0]
            return functools.reduce(operator.sub, args)
    if isinstance(expr, LabeledAssertion):
        return _translate(table, expr.expr)
    raise TypeError(f"not an AIR expression: {expr!r}")


def translate_expr(table: SymbolTable, expr: Expr) -> Any:
    """Build the Z3 term for ``expr``; ill-sorted terms raise UsageError."""
    try:
        return _translate(table, expr)
    except z3.Z3Exception as e:
        raise UsageError(type_error(expr_to_sexpr(expr), str(e))) from e


def translate_bool(table: SymbolTable, expr: Expr) -> Any:
    term = translate_expr(table, expr)
    if not z3.is_bool(term):
        raise UsageError(type_error(expr_to_sexpr(expr), "boolean expected"))
    return term


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------

def smt_add_decl(table: SymbolTable, decl: Declaration) -> Tuple[str, Optional[Any]]:
    """Register ``decl`` in ``table``.

    Returns the SMT-LIB text of the declaration and, for an axiom, the term
    the caller must assert.
    """
    if isinstance(decl, SortDecl):
        if decl.name in table.sorts:
            raise UsageError(name_error(decl.name, "redeclared"))
        table.sorts[decl.name] = z3.DeclareSort(decl.name, table.ctx)
        return f"(declare-sort {decl.name} 0)", None
    if isinstance(decl, ConstDecl):
        if table.has_term(decl.name):
            raise UsageError(name_error(decl.name, "redeclared"))
        sort = translate_typ(table, decl.typ)
        table.consts[decl.name] = z3.Const(decl.name, sort)
        return f"(declare-const {decl.name} {sort.sexpr()})", None
    if isinstance(decl, FunDecl):
        if table.has_term(decl.name):
            raise UsageError(name_error(decl.name, "redeclared"))
        domain = [translate_typ(table, t) for t in decl.params]
        ret = translate_typ(table, decl.ret)
        table.funs[decl.name] = z3.Function(decl.name, *domain, ret)
        params = " ".join(s.sexpr() for s in domain)
        return f"(declare-fun {decl.name} ({params}) {ret.sexpr()})", None
    if isinstance(decl, AxiomDecl):
        term = translate_bool(table, decl.expr)
        return f"(assert {term.sexpr()})", term
    if isinstance(decl, VarDecl):
        raise UsageError(usage_error(
            f"mutable variable '{decl.name}' can only be declared inside a query",
            variable=decl.name,
        ))
    raise TypeError(f"not an AIR declaration: {decl!r}")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

@dataclass
class PreparedQuery:
    """A lowered query with every term already built."""
    decl_texts: List[str]
    axioms: List[Any]
    obligations: List[Tuple[Optional[str], Any]]
    local_consts: Dict[str, Any]


def prepare_query(table: SymbolTable, query: Query) -> PreparedQuery:
    """Translate a lowered query against a private copy of ``table``."""
    local = table.copy()
    decl_texts: List[str] = []
    axioms: List[Any] = []
    local_consts: Dict[str, Any] = {}
    for decl in query.declarations:
        text, axiom = smt_add_decl(local, decl)
        if axiom is not None:
            axioms.append(axiom)
        else:
            decl_texts.append(text)
        if isinstance(decl, ConstDecl):
            local_consts[decl.name] = local.consts[decl.name]

    if not isinstance(query.assertion, Assert):
        raise UsageError(usage_error("query has not been flattened"))
    obligations = [
        (ob.label, translate_bool(local, ob))
        for ob in labeled_obligations(query.assertion.expr)
    ]
    return PreparedQuery(decl_texts, axioms, obligations, local_consts)


def _read_model(model: z3.ModelRef, consts: Dict[str, Any]) -> Dict[str, str]:
    return {name: str(model.eval(c, model_completion=True)) for name, c in consts.items()}


def _failing_labels(model: z3.ModelRef, obligations: List[Tuple[Optional[str], Any]]) -> List[Optional[str]]:
    return [
        label for label, term in obligations
        if not z3.is_true(model.eval(term, model_completion=True))
    ]


def _check_goal(
    solver: Any,
    smt_log: Logger,
    prepared: PreparedQuery,
    goal: Any,
    rlimit: int,
) -> Tuple[Any, Optional[Any], str]:
    """One discharge: push, assume facts, assert the negated goal, check, pop."""
    smt_log.log_push()
    solver.push()
    try:
        smt_log.log_set_option("rlimit", str(rlimit))
        solver.set("rlimit", rlimit)
        for text in prepared.decl_texts:
            smt_log.write(text)
        for axiom in prepared.axioms:
            smt_log.write(f"(assert {axiom.sexpr()})")
            solver.add(axiom)
        negated = z3.Not(goal)
        smt_log.write(f"(assert {negated.sexpr()})")
        solver.add(negated)
        smt_log.write("(check-sat)")
        answer = solver.check()
        model = solver.model() if answer == z3.sat else None
        reason = solver.reason_unknown() if answer == z3.unknown else ""
    finally:
        smt_log.log_pop()
        solver.pop()
    return answer, model, reason


def smt_check_query(
    solver: Any,
    smt_log: Logger,
    prepared: PreparedQuery,
    rlimit: int = 0,
    strategy: str = COMBINED,
    report_model: bool = False,
) -> ValidityResult:
    """Discharge a prepared query and interpret the prover's answer."""
    if not prepared.obligations:
        return Valid()

    if strategy == COMBINED:
        terms = [t for _, t in prepared.obligations]
        goals = [(None, z3.And(*terms) if len(terms) > 1 else terms[0])]
    elif strategy == PER_LABEL:
        goals = [(label, term) for label, term in prepared.obligations]
    else:
        raise UsageError(usage_error(f"unknown check strategy '{strategy}'"))

    failing: List[Optional[str]] = []
    first_model: Optional[Dict[str, str]] = None
    unknown_reason: Optional[str] = None
    for label, goal in goals:
        answer, model, reason = _check_goal(solver, smt_log, prepared, goal, rlimit)
        logger.debug("check-sat -> %s", answer)
        if answer == z3.unsat:
            continue
        if answer == z3.sat:
            if strategy == COMBINED:
                failing.extend(
                    _failing_labels(model, prepared.obligations)
                    or [label for label, _ in prepared.obligations]
                )
            else:
                failing.append(label)
            if report_model and first_model is None:
                first_model = _read_model(model, prepared.local_consts)
        elif unknown_reason is None:
            unknown_reason = reason or "unknown"

    if failing:
        return Invalid(tuple(failing), first_model)
    if unknown_reason is not None:
        return SolverError(unknown_reason)
    return Valid()
