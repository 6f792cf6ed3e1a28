"""AIR verification session.

A ``Context`` owns one Z3 solver and drives it with AIR commands:

    push / pop          open and close a scope of declarations and axioms
    set_option          tune the prover (rlimit and air_recommended_options
                        are handled by the session itself)
    global_decl         declare a sort, constant, function or axiom in the
                        current scope
    check_valid         lower a query (assignment elimination, then
                        flattening) and ask the prover whether it is valid

Every operation is written to the logs before it is applied, in the order
it is applied. Three logs are kept: the initial AIR log (commands as
submitted), the final AIR log (queries after lowering) and the SMT log
(what the solver was actually given). Replaying the initial log into a
fresh session reproduces the same sequence of prover interactions.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List, Optional, TextIO, Union

import z3

from air.ast_nodes import (
    Declaration, Query, ValidityResult, Valid, Invalid, SolverError,
    Command, Push, Pop, SetOption, Global, CheckValid,
)
from air.config import AirConfig
from air.errors import UsageError, option_error, usage_error
from air.logger import Logger
from air.parser import parse_commands
from air.smt_verify import (
    SymbolTable, COMBINED, CHECK_STRATEGIES,
    smt_add_decl, prepare_query, smt_check_query,
)
from air import pass1_ssa, pass2_flatten

logger = logging.getLogger(__name__)

OptionValue = Union[bool, int, float]

RECOMMENDED_OPTIONS_NAME = "air_recommended_options"
RLIMIT_NAME = "rlimit"

# Expanded in this order when air_recommended_options is set to true.
RECOMMENDED_OPTIONS: tuple[tuple[str, OptionValue], ...] = (
    ("auto_config", False),
    ("smt.mbqi", False),
    ("smt.case_split", 3),
    ("smt.qi.eager_threshold", 100.0),
    ("smt.delay_units", True),
    ("smt.arith.solver", 2),
    ("smt.arith.nl", False),
)

SMT_PREFIX = "smt."

_KIND_NAMES = {
    z3.Z3_PK_BOOL: "true or false",
    z3.Z3_PK_UINT: "an unsigned integer",
    z3.Z3_PK_DOUBLE: "a number",
}

_UINT_RE = re.compile(r"^[0-9]+$")
_FLOAT_RE = re.compile(r"^[0-9]+\.[0-9]*$|^[0-9]*\.[0-9]+$")
_UINT_MAX = 2 ** 32 - 1


def parse_option_value(option: str, value: Any) -> OptionValue:
    """Normalize an option value to bool, unsigned int or float."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if not 0 <= value <= _UINT_MAX:
            raise UsageError(option_error(option, value, "expected an unsigned 32-bit integer"))
        return value
    if isinstance(value, float):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text == "true":
            return True
        if text == "false":
            return False
        if _UINT_RE.match(text):
            return parse_option_value(option, int(text))
        if _FLOAT_RE.match(text):
            return float(text)
    raise UsageError(option_error(option, value, "expected true, false, an integer or a float"))


def format_option_value(value: OptionValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        text = repr(value)
        return text if "." in text else text + ".0"
    return str(value)


class Context:
    """One verification session: a solver, its scopes, and three logs."""

    def __init__(
        self,
        solver: Optional[Any] = None,
        check_strategy: str = COMBINED,
        block_assumptions: str = "sequential",
        report_model: bool = False,
        air_initial_log: Optional[TextIO] = None,
        air_final_log: Optional[TextIO] = None,
        smt_log: Optional[TextIO] = None,
    ):
        if check_strategy not in CHECK_STRATEGIES:
            raise UsageError(usage_error(f"unknown check strategy '{check_strategy}'"))
        if block_assumptions not in ("sequential", "scoped"):
            raise UsageError(usage_error(f"unknown block assumption mode '{block_assumptions}'"))
        if solver is None:
            self.z3_ctx = z3.Context()
            solver = z3.Solver(ctx=self.z3_ctx)
        else:
            self.z3_ctx = getattr(solver, "ctx", None) or z3.main_ctx()
        self.solver = solver
        self.check_strategy = check_strategy
        self.scoped_blocks = block_assumptions == "scoped"
        self.report_model = report_model
        self.table = SymbolTable(self.z3_ctx)
        self._scopes: List[SymbolTable] = []
        self.rlimit = 0
        self.closed = False
        self.air_initial_log = Logger(air_initial_log)
        self.air_final_log = Logger(air_final_log)
        self.smt_log = Logger(smt_log)

    @classmethod
    def from_config(cls, config: AirConfig, solver: Optional[Any] = None) -> Context:
        """Open a session with the settings, options and log files of ``config``."""
        ctx = cls(
            solver=solver,
            check_strategy=config.check_strategy,
            block_assumptions=config.block_assumptions,
            report_model=config.report_model,
        )
        try:
            if config.air_initial_log:
                ctx.air_initial_log = Logger.to_path(config.air_initial_log)
            if config.air_final_log:
                ctx.air_final_log = Logger.to_path(config.air_final_log)
            if config.smt_log:
                ctx.smt_log = Logger.to_path(config.smt_log)
            if config.recommended_options:
                ctx.set_option(RECOMMENDED_OPTIONS_NAME, True)
            if config.rlimit:
                ctx.set_option(RLIMIT_NAME, config.rlimit)
            for name, value in config.options.items():
                ctx.set_option(name, value)
        except Exception:
            ctx.close()
            raise
        return ctx

    # -- lifecycle ---------------------------------------------------------

    def _ensure_open(self) -> None:
        if self.closed:
            raise UsageError(usage_error("session is closed"))

    def close(self) -> None:
        """End the session; closes any log files it opened."""
        if self.closed:
            return
        self.closed = True
        for log in (self.air_initial_log, self.air_final_log, self.smt_log):
            log.close()
        logger.debug("session closed with %d open scope(s)", len(self._scopes))

    def __enter__(self) -> Context:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def depth(self) -> int:
        return len(self._scopes)

    # -- logs --------------------------------------------------------------

    def set_air_initial_log(self, writer: TextIO) -> None:
        self.air_initial_log = Logger(writer)

    def set_air_final_log(self, writer: TextIO) -> None:
        self.air_final_log = Logger(writer)

    def set_smt_log(self, writer: TextIO) -> None:
        self.smt_log = Logger(writer)

    def _logs(self) -> tuple[Logger, Logger, Logger]:
        return (self.air_initial_log, self.air_final_log, self.smt_log)

    def blank_line(self) -> None:
        for log in self._logs():
            log.blank_line()

    def comment(self, text: str) -> None:
        for log in self._logs():
            log.comment(text)

    # -- options -----------------------------------------------------------

    def set_option(self, option: str, value: Any) -> None:
        """Set a prover option. Accepts Python values or their log text."""
        self._ensure_open()
        parsed = parse_option_value(option, value)
        if option == RECOMMENDED_OPTIONS_NAME:
            if not isinstance(parsed, bool):
                raise UsageError(option_error(option, value, "expected true or false"))
            if parsed:
                checked = [(name, self._check_solver_option(name, bundled))
                           for name, bundled in RECOMMENDED_OPTIONS]
                for name, bundled in checked:
                    self._apply_solver_option(name, bundled)
            return
        if option == RLIMIT_NAME:
            if isinstance(parsed, bool) or not isinstance(parsed, int):
                raise UsageError(option_error(option, value, "expected an unsigned integer"))
            self.set_rlimit(parsed)
            return
        self._set_solver_option(option, parsed)

    def set_rlimit(self, rlimit: int) -> None:
        """Update the resource limit applied at every discharge."""
        self._ensure_open()
        self.air_initial_log.log_set_option(RLIMIT_NAME, str(rlimit))
        self.air_final_log.log_set_option(RLIMIT_NAME, str(rlimit))
        self.rlimit = rlimit

    def _param_kind(self, option: str) -> int:
        descrs = self.solver.param_descrs()
        names = [option]
        if option.startswith(SMT_PREFIX):
            names.append(option[len(SMT_PREFIX):])
        for name in names:
            try:
                kind = descrs.get_kind(name)
            except z3.Z3Exception:
                continue
            if kind != z3.Z3_PK_INVALID:
                return kind
        return z3.Z3_PK_INVALID

    def _check_solver_option(self, option: str, value: OptionValue) -> OptionValue:
        """Match ``value`` to the parameter kind the solver declares for ``option``."""
        kind = self._param_kind(option)
        if kind == z3.Z3_PK_INVALID:
            raise UsageError(option_error(option, value, "unknown prover option"))
        if kind == z3.Z3_PK_BOOL and isinstance(value, bool):
            return value
        if kind == z3.Z3_PK_UINT and isinstance(value, int) and not isinstance(value, bool):
            return value
        if kind == z3.Z3_PK_DOUBLE and not isinstance(value, bool):
            return float(value)
        expected = _KIND_NAMES.get(kind, "a value of another kind")
        raise UsageError(option_error(option, value, f"expected {expected}"))

    def _set_solver_option(self, option: str, value: OptionValue) -> None:
        self._apply_solver_option(option, self._check_solver_option(option, value))

    def _apply_solver_option(self, option: str, value: OptionValue) -> None:
        text = format_option_value(value)
        for log in self._logs():
            log.log_set_option(option, text)
        self.solver.set(option, value)

    # -- scopes ------------------------------------------------------------

    def push(self) -> None:
        self._ensure_open()
        for log in self._logs():
            log.log_push()
        self._scopes.append(self.table.copy())
        self.solver.push()
        logger.debug("push -> depth %d", len(self._scopes))

    def pop(self) -> None:
        self._ensure_open()
        if not self._scopes:
            raise UsageError(usage_error("pop without a matching push"))
        for log in self._logs():
            log.log_pop()
        self.table = self._scopes.pop()
        self.solver.pop()
        logger.debug("pop -> depth %d", len(self._scopes))

    # -- declarations and queries -----------------------------------------

    def global_decl(self, decl: Declaration) -> None:
        """Declare ``decl`` in the current scope, visible to every later query."""
        self._ensure_open()
        table = self.table.copy()
        smt_text, axiom = smt_add_decl(table, decl)
        self.air_initial_log.log_decl(decl)
        self.air_final_log.log_decl(decl)
        self.smt_log.write(smt_text)
        self.table = table
        if axiom is not None:
            self.solver.add(axiom)

    def check_valid(self, query: Query) -> ValidityResult:
        """Lower ``query`` and discharge it."""
        self._ensure_open()
        self.air_initial_log.log_query(query)
        lowered = pass1_ssa.lower_query(query)
        lowered = pass2_flatten.lower_query(lowered, scoped_blocks=self.scoped_blocks)
        prepared = prepare_query(self.table, lowered)
        self.air_final_log.log_query(lowered)

        result = smt_check_query(
            self.solver,
            self.smt_log,
            prepared,
            rlimit=self.rlimit,
            strategy=self.check_strategy,
            report_model=self.report_model,
        )
        if isinstance(result, Invalid):
            logger.info("check-valid: invalid, failing labels %s", list(result.labels))
        elif isinstance(result, SolverError):
            logger.warning("check-valid: no answer from prover (%s)", result.reason)
        else:
            logger.debug("check-valid: valid")
        return result

    # -- command stream ----------------------------------------------------

    def command(self, command: Command) -> ValidityResult:
        if isinstance(command, Push):
            self.push()
            return Valid()
        if isinstance(command, Pop):
            self.pop()
            return Valid()
        if isinstance(command, SetOption):
            self.set_option(command.name, command.value)
            return Valid()
        if isinstance(command, Global):
            self.global_decl(command.decl)
            return Valid()
        if isinstance(command, CheckValid):
            return self.check_valid(command.query)
        raise TypeError(f"not an AIR command: {command!r}")

    def run_commands(self, commands: Iterable[Command]) -> List[ValidityResult]:
        return [self.command(c) for c in commands]

    def replay(self, log_text: str) -> List[ValidityResult]:
        """Run every command recorded in AIR log text."""
        return self.run_commands(parse_commands(log_text))
