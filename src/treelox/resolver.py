"""
Static resolution pass for treelox.

Walks the AST once before evaluation and records, for every local variable
use, how many scopes separate the use from the scope that declared the
name. The interpreter uses the resulting distance map to look variables up
in exactly the environment the program text refers to, regardless of what
has been declared in between at run time.

Uses that are not found in any local scope get no entry and are looked up
in the global environment.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional

from .tokens import Token
from .ast import (
    Expr, Literal, Grouping, UnaryOp, BinaryOp, LogicalOp, Variable, Assign,
    Call, Get, Set, This, Super,
    Stmt, ExpressionStatement, PrintStatement, VarDecl, Block, IfStatement,
    WhileStatement, BreakStatement, FunctionDef, ReturnStatement, ClassDef,
    first_token,
)
from .errors import DiagnosticCollector, error_resolution

logger = logging.getLogger(__name__)


class FunctionKind(Enum):
    """What kind of function body is being resolved."""
    NONE = auto()
    FUNCTION = auto()
    METHOD = auto()
    INITIALIZER = auto()


class ClassKind(Enum):
    """What kind of class body is being resolved."""
    NONE = auto()
    CLASS = auto()
    SUBCLASS = auto()


@dataclass
class Scope:
    """
    One simulated local scope.

    Maps each declared name to whether its initializer has finished
    (``False`` while the declaration is still being resolved).
    """
    names: Dict[str, bool] = field(default_factory=dict)
    name: str = "block"  # For debugging

    def declare(self, name: str) -> None:
        self.names[name] = False

    def define(self, name: str) -> None:
        self.names[name] = True

    def __contains__(self, name: str) -> bool:
        return name in self.names


class Resolver:
    """
    Computes the scope distance of every local variable reference.

    Usage:
        resolver = Resolver()
        locals_map = resolver.resolve(statements)
        if resolver.diagnostics.has_errors:
            ...

    The pass is pure: it never modifies the AST, and resolving the same
    statements twice yields equal maps.
    """

    def __init__(self, source: Optional[str] = None,
                 diagnostics: Optional[DiagnosticCollector] = None):
        self.scopes: List[Scope] = []
        self.locals: Dict[Expr, int] = {}
        self.current_function = FunctionKind.NONE
        self.current_class = ClassKind.NONE
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticCollector()
        self._lines = source.splitlines() if source else []

    def resolve(self, statements: List[Stmt]) -> Dict[Expr, int]:
        """Resolve a whole program and return the distance map."""
        self.locals = {}
        for stmt in statements:
            try:
                self._resolve_statement(stmt)
            except RecursionError:
                self._error("E307", first_token(stmt), "Expression nesting too deep.")
        logger.debug("resolved %d local reference(s), %d error(s)",
                     len(self.locals), self.diagnostics.error_count)
        return self.locals

    # =========================================================================
    # Scope Management
    # =========================================================================

    def _begin_scope(self, name: str = "block") -> None:
        self.scopes.append(Scope(name=name))

    def _end_scope(self) -> None:
        self.scopes.pop()

    def _declare(self, name: Token) -> None:
        if not self.scopes:
            return

        scope = self.scopes[-1]
        if name.lexeme in scope:
            self._error("E302", name, "Already a variable with this name in this scope.")
        scope.declare(name.lexeme)

    def _define(self, name: Token) -> None:
        if not self.scopes:
            return
        self.scopes[-1].define(name.lexeme)

    def _resolve_local(self, expr: Expr, name: Token) -> None:
        """Record the hop count from the innermost scope declaring ``name``."""
        for distance, scope in enumerate(reversed(self.scopes)):
            if name.lexeme in scope:
                self.locals[expr] = distance
                return
        # Not found locally: global

    def _error(self, code: str, token: Token, message: str) -> None:
        line = token.line
        source_line = self._lines[line - 1] if 1 <= line <= len(self._lines) else None
        self.diagnostics.add_error(error_resolution(code, token, message, source_line))

    # =========================================================================
    # Statements
    # =========================================================================

    def _resolve_statements(self, statements: List[Stmt]) -> None:
        for stmt in statements:
            self._resolve_statement(stmt)

    def _resolve_statement(self, stmt: Stmt) -> None:
        """Resolve a single statement."""
        if isinstance(stmt, Block):
            self._begin_scope()
            try:
                self._resolve_statements(stmt.statements)
            finally:
                self._end_scope()
        elif isinstance(stmt, VarDecl):
            self._declare(stmt.name)
            if stmt.initializer is not None:
                self._resolve_expression(stmt.initializer)
            self._define(stmt.name)
        elif isinstance(stmt, FunctionDef):
            # Defined eagerly so the function can refer to itself
            self._declare(stmt.name)
            self._define(stmt.name)
            self._resolve_function(stmt, FunctionKind.FUNCTION)
        elif isinstance(stmt, ClassDef):
            self._resolve_class(stmt)
        elif isinstance(stmt, ExpressionStatement):
            self._resolve_expression(stmt.expression)
        elif isinstance(stmt, PrintStatement):
            self._resolve_expression(stmt.expression)
        elif isinstance(stmt, IfStatement):
            self._resolve_expression(stmt.condition)
            self._resolve_statement(stmt.then_branch)
            if stmt.else_branch is not None:
                self._resolve_statement(stmt.else_branch)
        elif isinstance(stmt, WhileStatement):
            self._resolve_expression(stmt.condition)
            self._resolve_statement(stmt.body)
        elif isinstance(stmt, ReturnStatement):
            if self.current_function == FunctionKind.NONE:
                self._error("E303", stmt.keyword, "Can't return from top-level code.")
            if stmt.value is not None:
                self._resolve_expression(stmt.value)
        elif isinstance(stmt, BreakStatement):
            pass
        else:
            raise TypeError(f"Unknown statement type: {type(stmt).__name__}")

    def _resolve_function(self, function: FunctionDef, kind: FunctionKind) -> None:
        """Resolve a function body; parameters and body share one scope."""
        enclosing_function = self.current_function
        self.current_function = kind

        self._begin_scope(function.name.lexeme)
        try:
            for param in function.params:
                self._declare(param)
                self._define(param)
            self._resolve_statements(function.body)
        finally:
            self._end_scope()
            self.current_function = enclosing_function

    def _resolve_class(self, stmt: ClassDef) -> None:
        enclosing_class = self.current_class
        self.current_class = ClassKind.CLASS

        self._declare(stmt.name)
        self._define(stmt.name)

        opened = 0
        try:
            if stmt.superclass is not None:
                if stmt.superclass.name.lexeme == stmt.name.lexeme:
                    self._error("E306", stmt.superclass.name, "A class can't inherit from itself.")
                self.current_class = ClassKind.SUBCLASS
                self._resolve_expression(stmt.superclass)

                self._begin_scope("super")
                opened += 1
                self.scopes[-1].define("super")

            self._begin_scope("this")
            opened += 1
            self.scopes[-1].define("this")

            for method in stmt.methods:
                kind = FunctionKind.METHOD
                if method.name.lexeme == "init":
                    kind = FunctionKind.INITIALIZER
                self._resolve_function(method, kind)
        finally:
            for _ in range(opened):
                self._end_scope()
            self.current_class = enclosing_class

    # =========================================================================
    # Expressions
    # =========================================================================

    def _resolve_expression(self, expr: Expr) -> None:
        """Resolve a single expression."""
        if isinstance(expr, Variable):
            if self.scopes and self.scopes[-1].names.get(expr.name.lexeme) is False:
                self._error("E301", expr.name,
                            "Can't read local variable in its own initializer.")
            self._resolve_local(expr, expr.name)
        elif isinstance(expr, Assign):
            self._resolve_expression(expr.value)
            self._resolve_local(expr, expr.name)
        elif isinstance(expr, (BinaryOp, LogicalOp)):
            self._resolve_expression(expr.left)
            self._resolve_expression(expr.right)
        elif isinstance(expr, UnaryOp):
            self._resolve_expression(expr.right)
        elif isinstance(expr, Grouping):
            self._resolve_expression(expr.expression)
        elif isinstance(expr, Call):
            self._resolve_expression(expr.callee)
            for argument in expr.arguments:
                self._resolve_expression(argument)
        elif isinstance(expr, Get):
            self._resolve_expression(expr.object)
        elif isinstance(expr, Set):
            self._resolve_expression(expr.value)
            self._resolve_expression(expr.object)
        elif isinstance(expr, This):
            if self.current_class == ClassKind.NONE:
                self._error("E304", expr.keyword, "Can't use 'this' outside of a class.")
                return
            self._resolve_local(expr, expr.keyword)
        elif isinstance(expr, Super):
            if self.current_class == ClassKind.NONE:
                self._error("E305", expr.keyword, "Can't use 'super' outside of a class.")
            elif self.current_class != ClassKind.SUBCLASS:
                self._error("E305", expr.keyword,
                            "Can't use 'super' in a class with no superclass.")
            self._resolve_local(expr, expr.keyword)
        elif isinstance(expr, Literal):
            pass
        else:
            raise TypeError(f"Unknown expression type: {type(expr).__name__}")


def resolve(statements: List[Stmt]) -> Dict[Expr, int]:
    """
    Convenience function to resolve statements.

    Diagnostics are discarded; use ``Resolver`` directly to inspect them.
    """
    return Resolver().resolve(statements)
