"""
Tests for the treelox parser.
"""

import textwrap

import pytest

from treelox import tokenize, parse, Parser, DiagnosticCollector, format_ast
from treelox.ast import (
    Literal, Variable, Assign, Call, Get, Set, Super, This, BinaryOp,
    ExpressionStatement, PrintStatement, VarDecl, Block, IfStatement,
    WhileStatement, BreakStatement, FunctionDef, ReturnStatement, ClassDef,
)


def parse_source(source, max_errors=20):
    """Parse source, returning (statements, diagnostics)."""
    source = textwrap.dedent(source)
    diagnostics = DiagnosticCollector(max_errors=max_errors)
    parser = Parser(tokenize(source), source, diagnostics=diagnostics)
    return parser.parse(), diagnostics


def parse_ok(source):
    """Parse source that must be free of errors."""
    statements, diagnostics = parse_source(source)
    assert not diagnostics.has_errors, diagnostics.format_all()
    return statements


def formatted(source):
    return [format_ast(stmt) for stmt in parse_ok(source)]


class TestExpressionParsing:
    """Test expression precedence and associativity."""

    def test_factor_binds_tighter_than_term(self):
        """'*' binds tighter than '+'."""
        assert formatted("print 1 + 2 * 3;") == ["(print (+ 1.0 (* 2.0 3.0)))"]

    def test_left_associative(self):
        """Binary operators associate to the left."""
        assert formatted("1 - 2 - 3;") == ["(expression (- (- 1.0 2.0) 3.0))"]

    def test_grouping(self):
        """Parentheses override precedence."""
        assert formatted("(1 + 2) * 3;") == ["(expression (* (group (+ 1.0 2.0)) 3.0))"]

    def test_unary(self):
        """Unary operators nest to the right."""
        assert formatted("!-x;") == ["(expression (! (- x)))"]

    def test_comparison_binds_tighter_than_equality(self):
        """'<' binds tighter than '=='."""
        assert formatted("a == b < c;") == ["(expression (== a (< b c)))"]

    def test_and_binds_tighter_than_or(self):
        """'and' binds tighter than 'or'."""
        assert formatted("a or b and c;") == ["(expression (or a (and b c)))"]

    def test_equality_binds_tighter_than_and(self):
        assert formatted("a == 1 and b;") == ["(expression (and (== a 1.0) b))"]

    def test_assignment_is_right_associative(self):
        """a = b = 1 assigns b first."""
        assert formatted("a = b = 1;") == ["(expression (assign a (assign b 1.0)))"]

    def test_property_assignment(self):
        """A property access on the left of '=' becomes a Set."""
        stmt = parse_ok("a.b.c = 1;")[0]
        assert isinstance(stmt.expression, Set)
        assert stmt.expression.name.lexeme == "c"
        assert isinstance(stmt.expression.object, Get)
        assert format_ast(stmt) == "(expression (set (get a b) c 1.0))"

    def test_call_and_property_chain(self):
        """Calls and property accesses chain left to right."""
        assert formatted("f(1, 2).x;") == ["(expression (get (call f 1.0 2.0) x))"]

    def test_call_without_arguments(self):
        call = parse_ok("f()();")[0].expression
        assert isinstance(call, Call)
        assert isinstance(call.callee, Call)
        assert call.arguments == []
        assert call.paren.lexeme == ")"

    def test_literals(self):
        """Literal values."""
        assert formatted('print "hi"; print true; print nil;') == [
            '(print "hi")', "(print true)", "(print nil)",
        ]

    def test_this_and_super(self):
        """'this' and 'super.method' expressions."""
        statements = parse_ok("class A < B { m() { return super.m(this); } }")
        ret = statements[0].methods[0].body[0]
        assert isinstance(ret.value, Call)
        assert isinstance(ret.value.callee, Super)
        assert ret.value.callee.method.lexeme == "m"
        assert isinstance(ret.value.arguments[0], This)


class TestStatementParsing:
    """Test statements and declarations."""

    def test_var_declaration(self):
        """Variable declarations with and without initializer."""
        assert formatted("var a = 1; var b;") == ["(vardecl a 1.0)", "(vardecl b)"]

    def test_block(self):
        statements = parse_ok("{ var a; print a; }")
        assert isinstance(statements[0], Block)
        assert len(statements[0].statements) == 2

    def test_if_else(self):
        """The else binds to the nearest if."""
        stmt = parse_ok("if (a) if (b) print 1; else print 2;")[0]
        assert isinstance(stmt, IfStatement)
        assert stmt.else_branch is None
        assert isinstance(stmt.then_branch, IfStatement)
        assert isinstance(stmt.then_branch.else_branch, PrintStatement)

    def test_while(self):
        stmt = parse_ok("while (x < 3) x = x + 1;")[0]
        assert isinstance(stmt, WhileStatement)
        assert isinstance(stmt.condition, BinaryOp)

    def test_for_desugars_to_while(self):
        """A full for loop becomes { init; while (cond) { body; incr; } }."""
        assert formatted("for (var i = 0; i < 3; i = i + 1) print i;") == [
            "(block (vardecl i 0.0) (while (< i 3.0) "
            "(block (print i) (expression (assign i (+ i 1.0))))))"
        ]

    def test_for_without_clauses(self):
        """An empty condition loops forever; no wrapper blocks are added."""
        stmt = parse_ok("for (;;) break;")[0]
        assert isinstance(stmt, WhileStatement)
        assert isinstance(stmt.condition, Literal)
        assert stmt.condition.value is True
        assert isinstance(stmt.body, BreakStatement)

    def test_for_with_expression_initializer(self):
        stmt = parse_ok("for (i = 0; i < 3;) print i;")[0]
        assert isinstance(stmt, Block)
        assert isinstance(stmt.statements[0], ExpressionStatement)
        assert isinstance(stmt.statements[1], WhileStatement)
        assert isinstance(stmt.statements[1].body, PrintStatement)

    def test_function_declaration(self):
        """Functions have a name, parameters and a body."""
        fn = parse_ok("fun add(a, b) { return a + b; }")[0]
        assert isinstance(fn, FunctionDef)
        assert fn.name.lexeme == "add"
        assert [p.lexeme for p in fn.params] == ["a", "b"]
        assert isinstance(fn.body[0], ReturnStatement)

    def test_return_without_value(self):
        fn = parse_ok("fun f() { return; }")[0]
        assert fn.body[0].value is None

    def test_class_declaration(self):
        """Classes with superclass and methods."""
        cls = parse_ok("""
            class B < A {
                init(x) { this.x = x; }
                get() { return this.x; }
            }
        """)[0]
        assert isinstance(cls, ClassDef)
        assert cls.name.lexeme == "B"
        assert isinstance(cls.superclass, Variable)
        assert cls.superclass.name.lexeme == "A"
        assert [m.name.lexeme for m in cls.methods] == ["init", "get"]

    def test_class_without_superclass(self):
        cls = parse_ok("class A {}")[0]
        assert cls.superclass is None
        assert cls.methods == []

    def test_break_inside_loop(self):
        """break is legal anywhere inside a loop body."""
        parse_ok("while (true) { if (x) break; }")
        parse_ok("for (;;) { { break; } }")

    def test_nodes_are_distinct(self):
        """Identical expressions at different places are different nodes."""
        stmts = parse_ok("a; a;")
        assert stmts[0].expression is not stmts[1].expression
        assert stmts[0].expression != stmts[1].expression
        assert len({stmts[0].expression, stmts[1].expression}) == 2


class TestParserErrors:
    """Test syntax error reporting and recovery."""

    def test_missing_semicolon_at_end(self):
        """Errors at end of input use E102."""
        statements, diagnostics = parse_source("print 1")
        assert statements == []
        diag = diagnostics.diagnostics[0]
        assert diag.code == "E102"
        assert diag.message == "Error at end: Expect ';' after value."

    def test_error_at_token(self):
        """Errors at a token quote its lexeme."""
        _, diagnostics = parse_source("var 1 = 2;")
        diag = diagnostics.diagnostics[0]
        assert diag.code == "E101"
        assert diag.message == "Error at '1': Expect variable name."

    def test_invalid_assignment_target(self):
        """Invalid targets are reported without dropping the statement."""
        statements, diagnostics = parse_source("1 = 2;")
        assert len(statements) == 1
        assert diagnostics.diagnostics[0].code == "E103"
        assert "Invalid assignment target." in diagnostics.diagnostics[0].message

    def test_grouped_assignment_target_is_invalid(self):
        _, diagnostics = parse_source("(a) = 1;")
        assert diagnostics.diagnostics[0].code == "E103"

    def test_break_outside_loop(self):
        _, diagnostics = parse_source("break;")
        assert diagnostics.diagnostics[0].code == "E105"
        assert "Must be inside a loop to use 'break'." in diagnostics.diagnostics[0].message

    def test_break_in_function_inside_loop(self):
        """A function body does not inherit the enclosing loop."""
        _, diagnostics = parse_source("while (true) { fun f() { break; } }")
        assert [d.code for d in diagnostics.diagnostics] == ["E105"]

    def test_break_after_loop(self):
        """Loop depth is restored once the loop body is parsed."""
        _, diagnostics = parse_source("while (false) print 1; break;")
        assert [d.code for d in diagnostics.diagnostics] == ["E105"]

    def test_too_many_arguments(self):
        """More than 255 arguments is reported once, parsing continues."""
        args = ", ".join(["1"] * 256)
        statements, diagnostics = parse_source(f"f({args});")
        assert len(statements) == 1
        assert len(statements[0].expression.arguments) == 256
        assert [d.code for d in diagnostics.diagnostics] == ["E104"]
        assert "Can't have more than 255 arguments." in diagnostics.diagnostics[0].message

    def test_255_arguments_allowed(self):
        args = ", ".join(["1"] * 255)
        parse_ok(f"f({args});")

    def test_too_many_parameters(self):
        params = ", ".join(f"p{i}" for i in range(256))
        _, diagnostics = parse_source(f"fun f({params}) {{}}")
        assert [d.code for d in diagnostics.diagnostics] == ["E104"]
        assert "parameters" in diagnostics.diagnostics[0].message

    def test_recovery_reports_multiple_errors(self):
        """The parser synchronizes at statement boundaries."""
        statements, diagnostics = parse_source("""
            var = 1;
            print 2;
            var x = ;
            print 3;
        """)
        assert diagnostics.error_count == 2
        assert [format_ast(s) for s in statements] == ["(print 2.0)", "(print 3.0)"]

    def test_recovery_inside_block(self):
        """Errors inside a block do not discard the rest of the block."""
        statements, diagnostics = parse_source("{ print ; print 1; }")
        assert diagnostics.error_count == 1
        assert len(statements) == 1
        assert len(statements[0].statements) == 1

    def test_error_line(self):
        """Diagnostics carry the line of the offending token."""
        _, diagnostics = parse_source("print 1;\nprint 2\nprint 3;")
        assert diagnostics.diagnostics[0].line == 3

    def test_stops_at_max_errors(self):
        """Parsing stops once the error limit is reached."""
        _, diagnostics = parse_source("print; " * 5, max_errors=2)
        assert diagnostics.error_count == 2

    def test_parse_function_never_raises(self):
        """The convenience function discards diagnostics."""
        assert parse(tokenize("print ;")) == []

    def test_nesting_too_deep(self):
        """Nesting past the recursion limit is reported and parsing resumes."""
        depth = 100000
        source = "print " + "(" * depth + "1" + ")" * depth + ";\nprint 2;"
        statements, diagnostics = parse_source(source)
        assert [d.code for d in diagnostics.diagnostics] == ["E106"]
        assert "Expression nesting too deep." in diagnostics.diagnostics[0].message
        assert [format_ast(s) for s in statements] == ["(print 2.0)"]
