"""
Abstract Syntax Tree (AST) node definitions for treelox.

Two closed families of nodes are produced by the parser: expressions and
statements. Nodes are plain dataclasses declared with ``eq=False`` so that
equality and hashing are by identity; the resolver keys its distance map on
individual expression nodes, and two structurally identical ``Variable``
nodes at different places in the program must stay distinct.

Nodes are never copied or rewritten after parsing.
"""

from dataclasses import dataclass, field, fields
from typing import Any, List, Optional, Union

from .tokens import SourceLocation, SourceSpan, Token, TokenType


# =============================================================================
# Base Classes
# =============================================================================

@dataclass(eq=False)
class AstNode:
    """Base class for all AST nodes."""


@dataclass(eq=False)
class Expr(AstNode):
    """Base class for all expressions."""


@dataclass(eq=False)
class Stmt(AstNode):
    """Base class for all statements."""


# =============================================================================
# Expression Nodes
# =============================================================================

@dataclass(eq=False)
class Literal(Expr):
    """A literal value: number (float), string, true/false, or nil (None)."""
    value: Any


@dataclass(eq=False)
class Grouping(Expr):
    """A parenthesized expression."""
    expression: Expr


@dataclass(eq=False)
class UnaryOp(Expr):
    """A unary operation (e.g., !x, -n)."""
    operator: Token
    right: Expr


@dataclass(eq=False)
class BinaryOp(Expr):
    """An arithmetic, comparison or equality operation (e.g., a + b)."""
    left: Expr
    operator: Token
    right: Expr


@dataclass(eq=False)
class LogicalOp(Expr):
    """A short-circuiting 'and' / 'or'."""
    left: Expr
    operator: Token
    right: Expr


@dataclass(eq=False)
class Variable(Expr):
    """A variable reference."""
    name: Token


@dataclass(eq=False)
class Assign(Expr):
    """Assignment to a variable (e.g., x = 5)."""
    name: Token
    value: Expr


@dataclass(eq=False)
class Call(Expr):
    """A call (e.g., f(1, 2)). ``paren`` is the closing ')' for error lines."""
    callee: Expr
    paren: Token
    arguments: List[Expr] = field(default_factory=list)


@dataclass(eq=False)
class Get(Expr):
    """Property access (e.g., point.x)."""
    object: Expr
    name: Token


@dataclass(eq=False)
class Set(Expr):
    """Property assignment (e.g., point.x = 1)."""
    object: Expr
    name: Token
    value: Expr


@dataclass(eq=False)
class This(Expr):
    """The 'this' keyword inside a method."""
    keyword: Token


@dataclass(eq=False)
class Super(Expr):
    """A superclass method reference (e.g., super.greet)."""
    keyword: Token
    method: Token


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass(eq=False)
class ExpressionStatement(Stmt):
    """An expression evaluated for its side effects."""
    expression: Expr


@dataclass(eq=False)
class PrintStatement(Stmt):
    """print <expr>;"""
    expression: Expr


@dataclass(eq=False)
class VarDecl(Stmt):
    """A variable declaration: var name (= initializer)?;"""
    name: Token
    initializer: Optional[Expr] = None


@dataclass(eq=False)
class Block(Stmt):
    """A braced block of statements with its own scope."""
    statements: List[Stmt] = field(default_factory=list)


@dataclass(eq=False)
class IfStatement(Stmt):
    """if (condition) then_branch (else else_branch)?"""
    condition: Expr
    then_branch: Stmt
    else_branch: Optional[Stmt] = None


@dataclass(eq=False)
class WhileStatement(Stmt):
    """while (condition) body. 'for' loops are desugared into this."""
    condition: Expr
    body: Stmt


@dataclass(eq=False)
class BreakStatement(Stmt):
    """break; (only valid inside a loop body)"""
    keyword: Token


@dataclass(eq=False)
class FunctionDef(Stmt):
    """A function or method declaration.

    Parameters and body statements share a single scope at call time.
    """
    name: Token
    params: List[Token]
    body: List[Stmt]


@dataclass(eq=False)
class ReturnStatement(Stmt):
    """return (value)?;"""
    keyword: Token
    value: Optional[Expr] = None


@dataclass(eq=False)
class ClassDef(Stmt):
    """A class declaration with an optional superclass."""
    name: Token
    superclass: Optional[Variable]
    methods: List[FunctionDef] = field(default_factory=list)


Expression = Union[
    Literal, Grouping, UnaryOp, BinaryOp, LogicalOp, Variable, Assign,
    Call, Get, Set, This, Super,
]

Statement = Union[
    ExpressionStatement, PrintStatement, VarDecl, Block, IfStatement,
    WhileStatement, BreakStatement, FunctionDef, ReturnStatement, ClassDef,
]


def first_token(node: AstNode) -> Token:
    """
    Find a token to report a problem with ``node`` at.

    Searches breadth-first without recursion, so it works on trees too deep
    to walk recursively. Trees made only of literals and groupings carry no
    tokens; those report at the start of the source.
    """
    pending = [node]
    while pending:
        current = pending.pop(0)
        for f in fields(current):
            value = getattr(current, f.name)
            if isinstance(value, Token):
                return value
            if isinstance(value, AstNode):
                pending.append(value)
            elif isinstance(value, list):
                pending.extend(item for item in value if isinstance(item, AstNode))
    start = SourceLocation(1, 1, 0)
    return Token(TokenType.EOF, "", None, SourceSpan(start, start))


# =============================================================================
# Debug Formatting
# =============================================================================

# Tokens kept only for error locations
_UNPRINTED_FIELDS = ("keyword", "paren")


def _format_literal(value: Any) -> str:
    if value is None:
        return "nil"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, str):
        return f'"{value}"'
    return repr(value)


def format_ast(node: Any) -> str:
    """Render a node as a parenthesized prefix form for debugging.

    Expressions with an operator use the operator lexeme as the head, e.g.
    ``(+ 1.0 (* 2.0 3.0))``; other nodes use a lower-case node name.
    """
    if isinstance(node, list):
        return " ".join(format_ast(item) for item in node)
    if isinstance(node, Token):
        return node.lexeme
    if isinstance(node, Literal):
        return _format_literal(node.value)
    if isinstance(node, (UnaryOp, BinaryOp, LogicalOp)):
        operands = [node.right] if isinstance(node, UnaryOp) else [node.left, node.right]
        return f"({node.operator.lexeme} {format_ast(operands)})"
    if isinstance(node, Grouping):
        return f"(group {format_ast(node.expression)})"
    if isinstance(node, Variable):
        return node.name.lexeme
    if isinstance(node, This):
        return "this"
    if isinstance(node, Super):
        return f"(super {node.method.lexeme})"
    if isinstance(node, AstNode):
        parts = [type(node).__name__.lower().removesuffix("statement")]
        for f in fields(node):
            value = getattr(node, f.name)
            if f.name in _UNPRINTED_FIELDS or value is None or value == []:
                continue
            parts.append(format_ast(value))
        return f"({' '.join(parts)})"
    return repr(node)
