"""AIR Pass 2 — Flatten.

Lowers an assign-free statement tree to labeled implications. Statements are
walked left to right with the list of assumptions seen so far:

    assume e        appends e
    assert l: e     emits  label l: (and assumptions...) => e,  then appends e
    block { ... }   walks its statements starting from the current list

A checked assertion is available as a fact to the code after it. Whether a
block's own additions survive past the block depends on ``scoped_blocks``.

The lowered query holds a single ``assert`` of the conjunction of the
labeled implications; ``labeled_obligations`` recovers them.
"""

from __future__ import annotations

import logging
from typing import Optional

from air.ast_nodes import (
    Expr, Multi, MultiOp, LabeledAssertion,
    mk_and, mk_implies, mk_true,
    Stmt, Assume, Assert, Assign, Block, Query,
)
from air.errors import UsageError, label_error, usage_error

logger = logging.getLogger(__name__)

Assumptions = tuple[Expr, ...]


class Flattener:
    """Collects the labeled implications of one statement tree."""

    def __init__(self, scoped_blocks: bool = False):
        self.scoped_blocks = scoped_blocks
        self.obligations: list[LabeledAssertion] = []
        self._labels: set[str] = set()

    def _check_label(self, label: Optional[str]) -> None:
        if label is None:
            return
        if label in self._labels:
            raise UsageError(label_error(label))
        self._labels.add(label)

    def flatten(self, stmt: Stmt, assumptions: Assumptions) -> Assumptions:
        """Lower ``stmt``; returns the assumptions visible after it."""
        if isinstance(stmt, Assume):
            return assumptions + (stmt.expr,)
        if isinstance(stmt, Assert):
            self._check_label(stmt.label)
            implication = mk_implies(mk_and(*assumptions), stmt.expr)
            self.obligations.append(LabeledAssertion(stmt.label, implication))
            return assumptions + (stmt.expr,)
        if isinstance(stmt, Assign):
            raise UsageError(usage_error(
                f"assignment to '{stmt.var}' reached flattening; run assignment elimination first",
                variable=stmt.var,
            ))
        if isinstance(stmt, Block):
            inner = assumptions
            for s in stmt.stmts:
                inner = self.flatten(s, inner)
            return assumptions if self.scoped_blocks else inner
        raise TypeError(f"not an AIR statement: {stmt!r}")


def lower_query(query: Query, scoped_blocks: bool = False) -> Query:
    """Turn the statement of an assign-free query into labeled implications."""
    flattener = Flattener(scoped_blocks=scoped_blocks)
    flattener.flatten(query.assertion, ())
    logger.debug("flatten: %d labeled implication(s)", len(flattener.obligations))
    return Query(query.declarations, Assert(None, mk_and(*flattener.obligations)))


def labeled_obligations(expr: Expr) -> list[LabeledAssertion]:
    """The labeled implications of a flattened assertion, in order."""
    if isinstance(expr, LabeledAssertion):
        return [expr]
    if isinstance(expr, Multi) and expr.op == MultiOp.AND:
        found: list[LabeledAssertion] = []
        for arg in expr.args:
            found.extend(labeled_obligations(arg))
        return found
    if expr == mk_true():
        return []
    # an unlabeled goal, e.g. a hand-written lowered query read from a log
    return [LabeledAssertion(None, expr)]
