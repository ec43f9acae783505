"""
treelox - a tree-walking interpreter for a small Lox-style scripting language.

This package provides:
- Lexer: Tokenizes source code
- Parser: Builds the AST from tokens
- Resolver: Computes the scope distance of every local variable use
- Interpreter: Evaluates the resolved AST

Usage:
    from treelox import run

    result = run('''
    class Greeter {
        init(name) { this.name = name; }
        greet() { print "hello " + this.name; }
    }
    Greeter("world").greet();
    ''')
    if not result.success:
        print(result.diagnostics.format_all())

Or stage by stage:
    from treelox import Lexer, Parser, Resolver, Interpreter

    lexer = Lexer(source)
    tokens = lexer.tokenize()
    statements = Parser(tokens, source).parse()
    locals_map = Resolver(source).resolve(statements)
    Interpreter().interpret(statements, locals_map)
"""

from .tokens import (
    Token,
    TokenType,
    SourceLocation,
    SourceSpan,
    KEYWORDS,
)

from .lexer import (
    Lexer,
    tokenize,
)

from .parser import (
    Parser,
    parse,
)

from .ast import (
    AstNode,
    Expr,
    Stmt,
    format_ast,
)

from .resolver import (
    Resolver,
    resolve,
)

from .errors import (
    ErrorSeverity,
    Diagnostic,
    DiagnosticCollector,
    LoxError,
    LexerError,
    ParserError,
    ResolverError,
    LoxRuntimeError,
)

from .config import (
    Settings,
    load_settings,
)

from .runtime import (
    Interpreter,
    CheckResult,
    RunResult,
    check,
    run,
    stringify,
)

__version__ = "0.1.0"

__all__ = [
    # Tokens
    "Token",
    "TokenType",
    "SourceLocation",
    "SourceSpan",
    "KEYWORDS",
    # Lexer
    "Lexer",
    "tokenize",
    # Parser
    "Parser",
    "parse",
    # AST
    "AstNode",
    "Expr",
    "Stmt",
    "format_ast",
    # Resolver
    "Resolver",
    "resolve",
    # Errors
    "ErrorSeverity",
    "Diagnostic",
    "DiagnosticCollector",
    "LoxError",
    "LexerError",
    "ParserError",
    "ResolverError",
    "LoxRuntimeError",
    # Config
    "Settings",
    "load_settings",
    # Runtime
    "Interpreter",
    "CheckResult",
    "RunResult",
    "check",
    "run",
    "stringify",
]
