"""
Diagnostics and exceptions for the treelox front end and runtime.

Error code ranges:
- E0xx: Lexer errors
- E1xx: Parser errors
- E3xx: Resolver errors
- E4xx: Runtime errors

Static errors (E0xx-E3xx) are collected and reported together; any static
error prevents evaluation. Runtime errors unwind to the top-level interpret
loop and stop the run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List
from .tokens import SourceSpan, Token, TokenType


class ErrorSeverity(Enum):
    """Severity levels for diagnostics."""
    ERROR = "error"
    WARNING = "warning"


@dataclass
class Diagnostic:
    """A single diagnostic message."""
    code: str                       # E001, E101, etc.
    message: str                    # Human-readable message
    severity: ErrorSeverity
    span: SourceSpan
    source_line: Optional[str] = None   # The actual line of source code
    hints: List[str] = field(default_factory=list)

    @property
    def line(self) -> int:
        return self.span.start.line

    def format(self, show_source: bool = True) -> str:
        """Format the diagnostic for display."""
        parts = []

        # Header: location: severity[code]: message
        loc = f"{self.span.start}"
        parts.append(f"{loc}: {self.severity.value}[{self.code}]: {self.message}")

        # Source line with caret
        if show_source and self.source_line is not None:
            parts.append("  |")
            line_num = str(self.span.start.line)
            parts.append(f"{line_num:>3} | {self.source_line}")

            col = self.span.start.column
            end_col = self.span.end.column if self.span.start.line == self.span.end.line else len(self.source_line) + 1
            underline_len = max(1, end_col - col)
            parts.append(f"    | {' ' * (col - 1)}{'^' * underline_len}")

        for hint in self.hints:
            parts.append(f"    = hint: {hint}")

        return "\n".join(parts)

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict for tooling integration."""
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "range": {
                "start": {
                    "line": self.span.start.line,
                    "column": self.span.start.column,
                    "offset": self.span.start.offset,
                },
                "end": {
                    "line": self.span.end.line,
                    "column": self.span.end.column,
                    "offset": self.span.end.offset,
                },
            },
            "hints": self.hints,
        }


class LoxError(Exception):
    """Base exception for treelox errors."""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(diagnostic.message)

    def __str__(self) -> str:
        return self.diagnostic.format()


class LexerError(LoxError):
    """Error during lexical analysis (E0xx)."""
    pass


class ParserError(LoxError):
    """Error during parsing (E1xx)."""
    pass


class ResolverError(LoxError):
    """Error during static resolution (E3xx)."""
    pass


class LoxRuntimeError(LoxError):
    """Error during evaluation (E4xx). Carries the offending token."""

    def __init__(self, token: Token, message: str, code: str = "E400"):
        diag = Diagnostic(
            code=code,
            message=message,
            severity=ErrorSeverity.ERROR,
            span=token.span,
        )
        self.token = token
        super().__init__(diag)


def _where(token: Token) -> str:
    if token.type == TokenType.EOF:
        return "at end"
    return f"at '{token.lexeme}'"


# --- Lexer error codes ---

def error_unexpected_character(char: str, span: SourceSpan, source_line: str = None) -> LexerError:
    """E001: Unexpected character."""
    diag = Diagnostic(
        code="E001",
        message=f"Unexpected character '{char}'.",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return LexerError(diag)


def error_unterminated_string(span: SourceSpan, source_line: str = None) -> LexerError:
    """E002: Unterminated string literal."""
    diag = Diagnostic(
        code="E002",
        message="Unterminated string.",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
        hints=["string literals must be closed with '\"' on the same line"],
    )
    return LexerError(diag)


def error_unterminated_comment(span: SourceSpan, source_line: str = None) -> LexerError:
    """E004: Unterminated block comment."""
    diag = Diagnostic(
        code="E004",
        message="Unterminated block comment (expected closing */).",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return LexerError(diag)


# --- Parser error codes ---

def error_unexpected_token(token: Token, message: str, source_line: str = None) -> ParserError:
    """E101 (E102 at end of input): Syntax error at a token."""
    diag = Diagnostic(
        code="E102" if token.type == TokenType.EOF else "E101",
        message=f"Error {_where(token)}: {message}",
        severity=ErrorSeverity.ERROR,
        span=token.span,
        source_line=source_line,
    )
    return ParserError(diag)


def error_invalid_assignment_target(token: Token, source_line: str = None) -> ParserError:
    """E103: Left-hand side of '=' is not assignable."""
    diag = Diagnostic(
        code="E103",
        message=f"Error {_where(token)}: Invalid assignment target.",
        severity=ErrorSeverity.ERROR,
        span=token.span,
        source_line=source_line,
        hints=["only variables and instance fields can be assigned"],
    )
    return ParserError(diag)


def error_too_many(token: Token, what: str, source_line: str = None) -> ParserError:
    """E104: More than 255 parameters or arguments."""
    diag = Diagnostic(
        code="E104",
        message=f"Error {_where(token)}: Can't have more than 255 {what}.",
        severity=ErrorSeverity.ERROR,
        span=token.span,
        source_line=source_line,
    )
    return ParserError(diag)


def error_break_outside_loop(token: Token, source_line: str = None) -> ParserError:
    """E105: 'break' used outside a loop body."""
    diag = Diagnostic(
        code="E105",
        message=f"Error {_where(token)}: Must be inside a loop to use 'break'.",
        severity=ErrorSeverity.ERROR,
        span=token.span,
        source_line=source_line,
    )
    return ParserError(diag)


def error_nesting_too_deep(token: Token, source_line: str = None) -> ParserError:
    """E106: Nesting exceeds what the recursive-descent parser can follow."""
    diag = Diagnostic(
        code="E106",
        message=f"Error {_where(token)}: Expression nesting too deep.",
        severity=ErrorSeverity.ERROR,
        span=token.span,
        source_line=source_line,
    )
    return ParserError(diag)


# --- Resolver error codes ---

def error_resolution(code: str, token: Token, message: str, source_line: str = None) -> ResolverError:
    """E3xx: Static scoping error."""
    diag = Diagnostic(
        code=code,
        message=f"Error {_where(token)}: {message}",
        severity=ErrorSeverity.ERROR,
        span=token.span,
        source_line=source_line,
    )
    return ResolverError(diag)


class DiagnosticCollector:
    """Collects diagnostics during compilation and execution."""

    def __init__(self, max_errors: int = 20):
        self.diagnostics: List[Diagnostic] = []
        self.max_errors = max_errors
        self._error_count = 0

    def add(self, diagnostic: Diagnostic) -> None:
        """Add a diagnostic."""
        self.diagnostics.append(diagnostic)
        if diagnostic.severity == ErrorSeverity.ERROR:
            self._error_count += 1

    def add_error(self, error: LoxError) -> None:
        """Add an error exception as a diagnostic."""
        self.add(error.diagnostic)

    def extend(self, other: "DiagnosticCollector") -> None:
        """Merge diagnostics collected by another stage."""
        for diagnostic in other.diagnostics:
            self.add(diagnostic)

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def warning_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity == ErrorSeverity.WARNING)

    @property
    def has_errors(self) -> bool:
        return self._error_count > 0

    @property
    def should_stop(self) -> bool:
        """Check if we've hit the max error limit."""
        return self._error_count >= self.max_errors

    def format_all(self, show_source: bool = True) -> str:
        """Format all diagnostics for display."""
        parts = [d.format(show_source) for d in self.diagnostics]
        if self._error_count > 0:
            parts.append(f"{self._error_count} error(s), {self.warning_count} warning(s)")
        elif self.warning_count > 0:
            parts.append(f"{self.warning_count} warning(s)")
        return "\n\n".join(parts)

    def to_json(self) -> dict:
        """Convert all diagnostics to JSON format."""
        return {
            "diagnostics": [d.to_json() for d in self.diagnostics],
            "error_count": self._error_count,
            "warning_count": self.warning_count,
        }
