"""
Execution context for the treelox interpreter.

Holds the environment chain, the resolver's distance map, and the output
stream, and defines the ``Completion`` record that statements return to
signal ``return`` and ``break`` without exceptions.
"""

import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Iterator, List, Optional, TextIO

from ..ast import Expr
from ..config import Settings
from ..errors import LoxRuntimeError
from ..tokens import Token


class Environment:
    """
    A single scope of variable bindings.

    Environments form a chain via ``enclosing`` for lexical scoping. A closure
    keeps its defining environment alive for as long as the closure exists.
    """

    def __init__(self, enclosing: Optional["Environment"] = None):
        self.values: Dict[str, Any] = {}
        self.enclosing = enclosing

    def define(self, name: str, value: Any) -> None:
        """Bind a name in this scope, replacing any existing binding."""
        self.values[name] = value

    def get(self, name: Token) -> Any:
        """Look a name up in this scope or enclosing scopes."""
        environment: Optional[Environment] = self
        while environment is not None:
            if name.lexeme in environment.values:
                return environment.values[name.lexeme]
            environment = environment.enclosing
        raise LoxRuntimeError(name, f"Undefined variable '{name.lexeme}'.", code="E407")

    def assign(self, name: Token, value: Any) -> None:
        """Update an existing binding in the nearest scope that has it."""
        environment: Optional[Environment] = self
        while environment is not None:
            if name.lexeme in environment.values:
                environment.values[name.lexeme] = value
                return
            environment = environment.enclosing
        raise LoxRuntimeError(name, f"Undefined variable '{name.lexeme}'.", code="E407")

    def ancestor(self, distance: int) -> "Environment":
        environment = self
        for _ in range(distance):
            environment = environment.enclosing
        return environment

    def get_at(self, distance: int, name: str) -> Any:
        """Read a name from the scope exactly ``distance`` hops out."""
        return self.ancestor(distance).values[name]

    def assign_at(self, distance: int, name: Token, value: Any) -> None:
        self.ancestor(distance).values[name.lexeme] = value

    def __repr__(self) -> str:
        depth = 0
        environment = self.enclosing
        while environment is not None:
            depth += 1
            environment = environment.enclosing
        return f"Environment(names={sorted(self.values)}, depth={depth})"


class CompletionKind(Enum):
    """How a statement finished executing."""
    NORMAL = auto()
    RETURN = auto()
    BREAK = auto()


@dataclass(frozen=True)
class Completion:
    """
    Result of executing a statement.

    Blocks stop at the first non-normal completion and pass it outward;
    loops consume BREAK, function calls consume RETURN.
    """
    kind: CompletionKind = CompletionKind.NORMAL
    value: Any = None


NORMAL = Completion()
BREAK = Completion(CompletionKind.BREAK)


@dataclass
class ExecutionContext:
    """
    The full execution state of one interpreter.

    Tracks:
    - The global environment and the current environment
    - The distance map produced by the resolver
    - Where print output goes
    - Source lines for runtime error messages
    """
    globals: Environment = field(default_factory=Environment)
    environment: Optional[Environment] = None
    locals: Dict[Expr, int] = field(default_factory=dict)
    settings: Settings = field(default_factory=Settings)
    output: Optional[TextIO] = None
    source_lines: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.environment is None:
            self.environment = self.globals

    @property
    def stdout(self) -> TextIO:
        """The output stream; resolved per write so redirected stdout is honoured."""
        return self.output if self.output is not None else sys.stdout

    @contextmanager
    def new_scope(self, environment: Environment) -> Iterator[Environment]:
        """
        Make ``environment`` current for the duration of the block.

        Usage:
            with ctx.new_scope(Environment(enclosing=ctx.environment)):
                ...

        The previous environment is restored however the block exits.
        """
        previous = self.environment
        self.environment = environment
        try:
            yield environment
        finally:
            self.environment = previous

    def lookup_variable(self, name: Token, expr: Expr) -> Any:
        """Read a variable using its resolved distance, or globally if unresolved."""
        distance = self.locals.get(expr)
        if distance is not None:
            return self.environment.get_at(distance, name.lexeme)
        return self.globals.get(name)

    def assign_variable(self, name: Token, expr: Expr, value: Any) -> None:
        distance = self.locals.get(expr)
        if distance is not None:
            self.environment.assign_at(distance, name, value)
        else:
            self.globals.assign(name, value)

    def get_source_line(self, line_num: int) -> Optional[str]:
        """Get a source line for error messages."""
        if 1 <= line_num <= len(self.source_lines):
            return self.source_lines[line_num - 1]
        return None
