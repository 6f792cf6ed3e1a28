"""AIR Log Format Tests — AIR-030 through AIR-034.

Printer output, the Logger record layout, and reading log text back.
"""

import io

import pytest

from air.ast_nodes import (
    INT, BOOL, NamedTyp,
    IntConst, Var, LabeledAssertion, Multi, MultiOp,
    Assume, Assert, Assign, Block, Query,
    SortDecl, ConstDecl, FunDecl, VarDecl, AxiomDecl,
    Push, Pop, SetOption, Global, CheckValid,
    mk_var, mk_int, mk_eq, mk_not, mk_and, mk_implies, mk_apply, mk_block,
)
from air.errors import UsageError, ErrorKind
from air.logger import Logger
from air.parser import parse_commands, parse_expr, Lexer, TokenType
from air.printer import expr_to_sexpr, stmt_to_sexpr, decl_to_sexpr, query_to_sexpr


class TestPrinter:
    """AIR-030: S-expression rendering."""

    def test_expressions(self):
        e = mk_implies(mk_and(mk_var("a"), mk_not(mk_var("b"))), mk_eq(mk_apply("f", mk_int(1)), mk_int(2)))
        assert expr_to_sexpr(e) == "(=> (and a (not b)) (= (f 1) 2))"

    def test_negative_int(self):
        assert expr_to_sexpr(IntConst(-3)) == "(- 3)"

    def test_labels(self):
        assert expr_to_sexpr(LabeledAssertion("pos", mk_var("p"))) == '(label "pos" p)'
        assert expr_to_sexpr(LabeledAssertion(None, mk_var("p"))) == "(label _ p)"

    def test_label_quoting(self):
        assert stmt_to_sexpr(Assert('say "hi"', mk_var("p"))) == '(assert "say \\"hi\\"" p)'

    def test_declarations(self):
        assert decl_to_sexpr(SortDecl("T")) == "(declare-sort T)"
        assert decl_to_sexpr(ConstDecl("x", INT)) == "(declare-const x Int)"
        assert decl_to_sexpr(FunDecl("f", (INT, NamedTyp("T")), BOOL)) == "(declare-fun f (Int T) Bool)"
        assert decl_to_sexpr(VarDecl("v", BOOL)) == "(declare-var v Bool)"
        assert decl_to_sexpr(AxiomDecl(mk_var("p"))) == "(axiom p)"

    def test_block_indentation(self):
        s = mk_block(Assume(mk_var("a")), mk_block(Assign("x", mk_int(1))))
        assert stmt_to_sexpr(s) == (
            "(block\n"
            "    (assume a)\n"
            "    (block\n"
            "        (assign x 1)\n"
            "    )\n"
            ")"
        )

    def test_query(self):
        q = Query((ConstDecl("x", INT),), Assert(None, mk_eq(mk_var("x"), mk_var("x"))))
        assert query_to_sexpr(q) == (
            "(check-valid\n"
            "    (declare-const x Int)\n"
            "    (assert (= x x))\n"
            ")"
        )


class TestLogger:
    """AIR-031: one record per operation."""

    def test_records(self):
        buf = io.StringIO()
        log = Logger(buf)
        log.log_push()
        log.log_set_option("smt.mbqi", "false")
        log.log_decl(ConstDecl("x", INT))
        log.log_pop()
        assert buf.getvalue() == (
            "(push)\n"
            "(set-option :smt.mbqi false)\n"
            "(declare-const x Int)\n"
            "(pop)\n"
        )

    def test_comment_lines(self):
        buf = io.StringIO()
        log = Logger(buf)
        log.comment("first\nsecond")
        log.blank_line()
        assert buf.getvalue() == ";; first\n;; second\n\n"

    def test_disabled_logger_accepts_everything(self):
        log = Logger()
        assert not log.enabled
        log.log_push()
        log.comment("ignored")
        log.close()

    def test_to_path_owns_file(self, tmp_path):
        path = tmp_path / "out.air"
        log = Logger.to_path(str(path))
        log.log_push()
        log.close()
        assert path.read_text(encoding="utf-8") == "(push)\n"
        assert not log.enabled

    def test_close_leaves_borrowed_writer_open(self):
        buf = io.StringIO()
        log = Logger(buf)
        log.close()
        assert not buf.closed


class TestLexer:
    """AIR-032: tokens and comments."""

    def test_tokens(self):
        tokens = Lexer('(assert "l" x@1) ; trailing').tokenize()
        assert [t.type for t in tokens] == [
            TokenType.LPAREN, TokenType.SYMBOL, TokenType.STRING,
            TokenType.SYMBOL, TokenType.RPAREN, TokenType.EOF,
        ]
        assert tokens[3].value == "x@1"

    def test_line_numbers(self):
        tokens = Lexer("(push)\n\n(pop)").tokenize()
        assert tokens[3].line == 3


class TestReader:
    """AIR-033: log text back into commands."""

    def test_commands(self):
        cmds = parse_commands("""
            ;; session start
            (push)
            (set-option :rlimit 100)
            (declare-const k Int)

            (check-valid
                (declare-var x Int)
                (block (assign x k) (assert "eq" (= x k)))
            )
            (pop)
        """)
        assert cmds == [
            Push(),
            SetOption("rlimit", "100"),
            Global(ConstDecl("k", INT)),
            CheckValid(Query(
                (VarDecl("x", INT),),
                Block((Assign("x", Var("k")), Assert("eq", mk_eq(Var("x"), Var("k"))))),
            )),
            Pop(),
        ]

    def test_operators(self):
        e = parse_expr("(and (<= 0 x) (distinct x y) (= (mod x 2) (- 1)))")
        assert isinstance(e, Multi) and e.op == MultiOp.AND
        assert e.args[2].right == IntConst(-1)

    def test_subtraction_is_not_a_literal(self):
        e = parse_expr("(- x 1)")
        assert e == Multi(MultiOp.SUB, (Var("x"), IntConst(1)))

    def test_only_ascii_digits_are_literals(self):
        assert parse_expr("²") == Var("²")
        assert parse_expr("(- ²)") == Multi(MultiOp.SUB, (Var("²"),))
        assert parse_expr("042") == IntConst(42)

    def test_printed_query_reads_back(self):
        q = Query(
            (SortDecl("T"), FunDecl("f", (NamedTyp("T"),), INT), VarDecl("x", INT),
             AxiomDecl(mk_eq(mk_var("x"), IntConst(-2)))),
            mk_block(
                Assume(LabeledAssertion(None, mk_var("p"))),
                mk_block(Assign("x", mk_int(4))),
                Assert("done", mk_not(mk_eq(mk_var("x"), mk_int(0)))),
            ),
        )
        assert parse_commands(query_to_sexpr(q)) == [CheckValid(q)]

    def test_unbalanced(self):
        with pytest.raises(UsageError) as excinfo:
            parse_commands("(push")
        assert excinfo.value.kind == ErrorKind.SYNTAX_ERROR

    def test_unexpected_close(self):
        with pytest.raises(UsageError) as excinfo:
            parse_commands("(pop))")
        assert excinfo.value.errors[0].details["line"] == 1

    def test_unknown_command(self):
        with pytest.raises(UsageError) as excinfo:
            parse_commands("(frobnicate)")
        assert excinfo.value.kind == ErrorKind.SYNTAX_ERROR

    def test_option_needs_colon(self):
        with pytest.raises(UsageError):
            parse_commands("(set-option rlimit 5)")

    def test_unterminated_label(self):
        with pytest.raises(UsageError):
            parse_commands('(check-valid (assert "oops x))')

    def test_wrong_arity(self):
        with pytest.raises(UsageError):
            parse_expr("(not a b)")
