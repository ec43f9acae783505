"""
Tree-walking interpreter for treelox.

Evaluates resolved statements directly over the AST. Statements return a
``Completion``; expressions return plain Python values (see ``values``).
Runtime faults are ``LoxRuntimeError`` exceptions and are caught only at the
top level of ``Interpreter.interpret``.
"""

import logging
import math
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TextIO

from .values import (
    LoxCallable, LoxFunction, LoxClass, LoxInstance, NativeFunctionError,
    is_number, is_truthy, is_equal, stringify,
)
from .context import (
    Environment, ExecutionContext, Completion, CompletionKind, NORMAL, BREAK,
)
from .builtins import get_builtin_registry

from ..ast import (
    Expr, Literal, Grouping, UnaryOp, BinaryOp, LogicalOp, Variable, Assign,
    Call, Get, Set, This, Super,
    Stmt, ExpressionStatement, PrintStatement, VarDecl, Block, IfStatement,
    WhileStatement, BreakStatement, FunctionDef, ReturnStatement, ClassDef,
    first_token,
)
from ..config import Settings
from ..errors import DiagnosticCollector, LoxRuntimeError
from ..lexer import Lexer
from ..parser import Parser
from ..resolver import Resolver
from ..tokens import Token, TokenType

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    """Result of scanning, parsing and resolving one compilation unit."""
    statements: List[Stmt]
    locals: Dict[Expr, int]
    diagnostics: DiagnosticCollector

    @property
    def has_errors(self) -> bool:
        return self.diagnostics.has_errors


@dataclass
class RunResult:
    """Result of running one compilation unit."""
    had_static_error: bool = False
    had_runtime_error: bool = False
    value: Optional[str] = None     # REPL mode: display form of the last bare expression
    diagnostics: DiagnosticCollector = field(default_factory=DiagnosticCollector)

    @property
    def success(self) -> bool:
        return not (self.had_static_error or self.had_runtime_error)


class Interpreter:
    """
    Tree-walking interpreter for treelox.

    One interpreter owns one global environment; running several compilation
    units through the same interpreter (as the REPL does) shares globals
    between them.
    """

    def __init__(self, settings: Optional[Settings] = None, stdout: Optional[TextIO] = None):
        """
        Initialize the interpreter.

        Args:
            settings: Run options (REPL mode, diagnostics); defaults if omitted
            stdout: Stream for print output; the current sys.stdout if omitted
        """
        self.settings = settings or Settings()
        _raise_recursion_limit(self.settings.recursion_limit)
        self.globals = Environment()
        for native in get_builtin_registry():
            self.globals.define(native.name, native)
        self.ctx = ExecutionContext(
            globals=self.globals,
            settings=self.settings,
            output=stdout,
        )

    def interpret(
        self,
        statements: List[Stmt],
        locals: Optional[Dict[Expr, int]] = None,
        diagnostics: Optional[DiagnosticCollector] = None,
        source: str = "",
    ) -> RunResult:
        """
        Execute resolved top-level statements in order.

        Args:
            statements: Statements free of static errors
            locals: Distance map from the resolver for these statements
            diagnostics: Collector to record a runtime fault in
            source: Original source code for error messages

        Returns:
            RunResult; a runtime fault stops execution and sets had_runtime_error
        """
        result = RunResult(diagnostics=diagnostics or DiagnosticCollector())

        # Earlier units' nodes stay resolved for closures created by them
        self.ctx.locals.update(locals or {})
        self.ctx.source_lines = source.splitlines()

        try:
            for stmt in statements:
                try:
                    if self.settings.repl_mode and isinstance(stmt, ExpressionStatement):
                        result.value = stringify(self._evaluate(stmt.expression))
                    else:
                        self._execute(stmt)
                except RecursionError:
                    # Nesting too deep outside any call
                    raise LoxRuntimeError(first_token(stmt), "Stack overflow.", code="E410")
        except LoxRuntimeError as e:
            e.diagnostic.source_line = self.ctx.get_source_line(e.token.line)
            result.diagnostics.add_error(e)
            result.had_runtime_error = True
            logger.debug("runtime fault at line %d: %s", e.token.line, e.diagnostic.message)
        return result

    # =========================================================================
    # Statements
    # =========================================================================

    def execute_block(self, statements: List[Stmt], environment: Environment) -> Completion:
        """Run statements in ``environment``, stopping at the first non-normal completion."""
        with self.ctx.new_scope(environment):
            for stmt in statements:
                completion = self._execute(stmt)
                if completion.kind != CompletionKind.NORMAL:
                    return completion
        return NORMAL

    def _execute(self, stmt: Stmt) -> Completion:
        """Execute a single statement."""
        if isinstance(stmt, ExpressionStatement):
            self._evaluate(stmt.expression)
            return NORMAL
        elif isinstance(stmt, PrintStatement):
            return self._execute_print(stmt)
        elif isinstance(stmt, VarDecl):
            return self._execute_var(stmt)
        elif isinstance(stmt, Block):
            return self.execute_block(stmt.statements, Environment(enclosing=self.ctx.environment))
        elif isinstance(stmt, IfStatement):
            return self._execute_if(stmt)
        elif isinstance(stmt, WhileStatement):
            return self._execute_while(stmt)
        elif isinstance(stmt, BreakStatement):
            return BREAK
        elif isinstance(stmt, FunctionDef):
            function = LoxFunction(stmt, self.ctx.environment)
            self.ctx.environment.define(stmt.name.lexeme, function)
            return NORMAL
        elif isinstance(stmt, ReturnStatement):
            value = self._evaluate(stmt.value) if stmt.value is not None else None
            return Completion(CompletionKind.RETURN, value)
        elif isinstance(stmt, ClassDef):
            return self._execute_class(stmt)
        else:
            raise TypeError(f"Unknown statement type: {type(stmt).__name__}")

    def _execute_print(self, stmt: PrintStatement) -> Completion:
        value = self._evaluate(stmt.expression)
        self.ctx.stdout.write(stringify(value) + "\n")
        return NORMAL

    def _execute_var(self, stmt: VarDecl) -> Completion:
        value = None
        if stmt.initializer is not None:
            value = self._evaluate(stmt.initializer)
        self.ctx.environment.define(stmt.name.lexeme, value)
        return NORMAL

    def _execute_if(self, stmt: IfStatement) -> Completion:
        if is_truthy(self._evaluate(stmt.condition)):
            return self._execute(stmt.then_branch)
        if stmt.else_branch is not None:
            return self._execute(stmt.else_branch)
        return NORMAL

    def _execute_while(self, stmt: WhileStatement) -> Completion:
        while is_truthy(self._evaluate(stmt.condition)):
            completion = self._execute(stmt.body)
            if completion.kind == CompletionKind.BREAK:
                break
            if completion.kind == CompletionKind.RETURN:
                return completion
        return NORMAL

    def _execute_class(self, stmt: ClassDef) -> Completion:
        superclass = None
        if stmt.superclass is not None:
            superclass = self._evaluate(stmt.superclass)
            if not isinstance(superclass, LoxClass):
                raise LoxRuntimeError(stmt.superclass.name, "Superclass must be a class.", code="E408")

        self.ctx.environment.define(stmt.name.lexeme, None)

        # Methods of a subclass close over an extra scope holding 'super'
        method_scope = self.ctx.environment
        if superclass is not None:
            method_scope = Environment(enclosing=self.ctx.environment)
            method_scope.define("super", superclass)

        methods: Dict[str, LoxFunction] = {}
        for method in stmt.methods:
            methods[method.name.lexeme] = LoxFunction(
                method, method_scope, is_initializer=method.name.lexeme == "init"
            )

        klass = LoxClass(stmt.name.lexeme, superclass, methods)
        self.ctx.environment.assign(stmt.name, klass)
        return NORMAL

    # =========================================================================
    # Expressions
    # =========================================================================

    def _evaluate(self, expr: Expr) -> Any:
        """Evaluate an expression to a value."""
        if isinstance(expr, Literal):
            return expr.value
        elif isinstance(expr, Grouping):
            return self._evaluate(expr.expression)
        elif isinstance(expr, UnaryOp):
            return self._eval_unary_op(expr)
        elif isinstance(expr, BinaryOp):
            return self._eval_binary_op(expr)
        elif isinstance(expr, LogicalOp):
            return self._eval_logical_op(expr)
        elif isinstance(expr, Variable):
            return self.ctx.lookup_variable(expr.name, expr)
        elif isinstance(expr, Assign):
            value = self._evaluate(expr.value)
            self.ctx.assign_variable(expr.name, expr, value)
            return value
        elif isinstance(expr, Call):
            return self._eval_call(expr)
        elif isinstance(expr, Get):
            return self._eval_get(expr)
        elif isinstance(expr, Set):
            return self._eval_set(expr)
        elif isinstance(expr, This):
            return self.ctx.lookup_variable(expr.keyword, expr)
        elif isinstance(expr, Super):
            return self._eval_super(expr)
        else:
            raise TypeError(f"Unknown expression type: {type(expr).__name__}")

    def _eval_unary_op(self, op: UnaryOp) -> Any:
        right = self._evaluate(op.right)

        if op.operator.type == TokenType.MINUS:
            _check_number_operand(op.operator, right)
            return -right
        elif op.operator.type == TokenType.BANG:
            return not is_truthy(right)
        else:
            raise TypeError(f"Unknown unary operator: {op.operator.lexeme}")

    def _eval_binary_op(self, op: BinaryOp) -> Any:
        left = self._evaluate(op.left)
        right = self._evaluate(op.right)
        operator = op.operator
        kind = operator.type

        if kind == TokenType.PLUS:
            if is_number(left) and is_number(right):
                return left + right
            if isinstance(left, str) and isinstance(right, str):
                return left + right
            # Only string + number converts; number + string is a fault
            if isinstance(left, str) and is_number(right):
                return left + stringify(right)
            raise LoxRuntimeError(operator, "Operands must be two numbers or two strings.", code="E402")

        if kind == TokenType.EQUAL_EQUAL:
            return is_equal(left, right)
        if kind == TokenType.BANG_EQUAL:
            return not is_equal(left, right)

        _check_number_operands(operator, left, right)

        if kind == TokenType.MINUS:
            return left - right
        elif kind == TokenType.STAR:
            return left * right
        elif kind == TokenType.SLASH:
            return _divide(left, right)
        elif kind == TokenType.GREATER:
            return left > right
        elif kind == TokenType.GREATER_EQUAL:
            return left >= right
        elif kind == TokenType.LESS:
            return left < right
        elif kind == TokenType.LESS_EQUAL:
            return left <= right
        else:
            raise TypeError(f"Unknown binary operator: {operator.lexeme}")

    def _eval_logical_op(self, op: LogicalOp) -> Any:
        """Short-circuit; the result is the deciding operand itself."""
        left = self._evaluate(op.left)

        if op.operator.type == TokenType.OR:
            if is_truthy(left):
                return left
        elif not is_truthy(left):
            return left

        return self._evaluate(op.right)

    def _eval_call(self, call: Call) -> Any:
        callee = self._evaluate(call.callee)
        arguments = [self._evaluate(argument) for argument in call.arguments]

        if not isinstance(callee, LoxCallable):
            raise LoxRuntimeError(call.paren, "Can only call functions and classes.", code="E403")

        if len(arguments) != callee.arity():
            raise LoxRuntimeError(
                call.paren,
                f"Expected {callee.arity()} arguments but got {len(arguments)}.",
                code="E404",
            )

        try:
            return callee.call(self, arguments)
        except NativeFunctionError as e:
            raise LoxRuntimeError(call.paren, str(e), code="E409")
        except RecursionError:
            raise LoxRuntimeError(call.paren, "Stack overflow.", code="E410")

    def _eval_get(self, get: Get) -> Any:
        obj = self._evaluate(get.object)
        if isinstance(obj, LoxInstance):
            return obj.get(get.name)
        raise LoxRuntimeError(get.name, "Only instances have properties.", code="E405")

    def _eval_set(self, set_expr: Set) -> Any:
        obj = self._evaluate(set_expr.object)
        if not isinstance(obj, LoxInstance):
            raise LoxRuntimeError(set_expr.name, "Only instances have fields.", code="E405")

        value = self._evaluate(set_expr.value)
        obj.set(set_expr.name, value)
        return value

    def _eval_super(self, expr: Super) -> Any:
        """Find the method one class above the class that lexically encloses the call."""
        distance = self.ctx.locals[expr]
        superclass = self.ctx.environment.get_at(distance, "super")
        # 'this' lives in the scope just inside the one holding 'super'
        instance = self.ctx.environment.get_at(distance - 1, "this")

        method = superclass.find_method(expr.method.lexeme)
        if method is None:
            raise LoxRuntimeError(
                expr.method, f"Undefined property '{expr.method.lexeme}'.", code="E406"
            )
        return method.bind(instance)


def _check_number_operand(operator: Token, operand: Any) -> None:
    if is_number(operand):
        return
    raise LoxRuntimeError(operator, "Operand must be a number.", code="E401")


def _check_number_operands(operator: Token, left: Any, right: Any) -> None:
    if is_number(left) and is_number(right):
        return
    raise LoxRuntimeError(operator, "Operands must be numbers.", code="E402")


def _raise_recursion_limit(limit: int) -> None:
    """Raise Python's recursion limit to at least ``limit`` frames; never lower it."""
    if sys.getrecursionlimit() < limit:
        sys.setrecursionlimit(limit)


def _divide(left: float, right: float) -> float:
    """IEEE-754 division: x/0 is a signed infinity, 0/0 is NaN."""
    if right != 0:
        return left / right
    if left == 0 or math.isnan(left):
        return math.nan
    return math.copysign(math.inf, left) * math.copysign(1.0, right)


# Convenience functions for one-call use

def check(source: str, filename: Optional[str] = None,
          settings: Optional[Settings] = None) -> CheckResult:
    """
    Scan, parse and resolve source without running it.

    Diagnostics from all three stages are collected together.
    """
    settings = settings or Settings()
    _raise_recursion_limit(settings.recursion_limit)
    diagnostics = DiagnosticCollector(max_errors=settings.max_errors)

    tokens = Lexer(source, filename, diagnostics=diagnostics).tokenize()
    statements = Parser(tokens, source, diagnostics=diagnostics).parse()
    locals_map = Resolver(source, diagnostics=diagnostics).resolve(statements)

    return CheckResult(statements=statements, locals=locals_map, diagnostics=diagnostics)


def run(
    source: str,
    settings: Optional[Settings] = None,
    interpreter: Optional[Interpreter] = None,
    stdout: Optional[TextIO] = None,
    filename: Optional[str] = None,
) -> RunResult:
    """
    High-level API to scan, parse, resolve and interpret source in one call:

        from treelox import run

        result = run('print "hello";')
        if not result.success:
            print(result.diagnostics.format_all())

    Args:
        source: treelox source code
        settings: Run options; taken from ``interpreter`` when one is passed
        interpreter: Existing interpreter whose globals persist across calls
        stdout: Output stream for a newly created interpreter
        filename: Optional filename for diagnostics

    Returns:
        RunResult; nothing is evaluated when any static error was found
    """
    if settings is None:
        settings = interpreter.settings if interpreter is not None else Settings()

    checked = check(source, filename, settings)
    if checked.has_errors:
        return RunResult(had_static_error=True, diagnostics=checked.diagnostics)

    if interpreter is None:
        interpreter = Interpreter(settings, stdout)
    return interpreter.interpret(checked.statements, checked.locals, checked.diagnostics, source)
