"""
Recursive descent parser for treelox.

Converts a token list into a list of statements.

The parser is tolerant: a syntax error inside a declaration is recorded in
``Parser.diagnostics`` and the parser discards tokens up to the next
statement boundary before continuing, so a single malformed statement does
not hide errors in the rest of the program.
"""

import logging
from typing import List, Optional

from .tokens import Token, TokenType, STATEMENT_STARTS
from .ast import (
    # Expressions
    Expr, Literal, Grouping, UnaryOp, BinaryOp, LogicalOp, Variable, Assign,
    Call, Get, Set, This, Super,
    # Statements
    Stmt, ExpressionStatement, PrintStatement, VarDecl, Block, IfStatement,
    WhileStatement, BreakStatement, FunctionDef, ReturnStatement, ClassDef,
)
from .errors import (
    ParserError,
    DiagnosticCollector,
    error_unexpected_token,
    error_invalid_assignment_target,
    error_too_many,
    error_break_outside_loop,
    error_nesting_too_deep,
)

logger = logging.getLogger(__name__)

# Maximum number of parameters or call arguments
MAX_ARGUMENTS = 255


class Parser:
    """
    Recursive descent parser for treelox.

    Usage:
        parser = Parser(tokens)
        statements = parser.parse()
        if parser.diagnostics.has_errors:
            ...

    Expression precedence, lowest to highest:
        Lowest:  assignment (right-associative)
                 or
                 and
                 == !=
                 < <= > >=
                 + -
                 * /
                 unary (! -)
        Highest: call, property access
    """

    EQUALITY_OPERATORS = (TokenType.BANG_EQUAL, TokenType.EQUAL_EQUAL)
    COMPARISON_OPERATORS = (
        TokenType.GREATER, TokenType.GREATER_EQUAL,
        TokenType.LESS, TokenType.LESS_EQUAL,
    )
    TERM_OPERATORS = (TokenType.MINUS, TokenType.PLUS)
    FACTOR_OPERATORS = (TokenType.SLASH, TokenType.STAR)

    def __init__(self, tokens: List[Token], source: Optional[str] = None,
                 diagnostics: Optional[DiagnosticCollector] = None):
        self.tokens = tokens
        self.source = source  # Original source code for diagnostics
        self.pos = 0
        self.loop_depth = 0
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticCollector()
        self._lines = source.splitlines() if source else []

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _current(self) -> Token:
        """Get current token."""
        if self.pos >= len(self.tokens):
            return self.tokens[-1]  # EOF
        return self.tokens[self.pos]

    def _previous(self) -> Token:
        """Get the most recently consumed token."""
        return self.tokens[self.pos - 1]

    def _is_at_end(self) -> bool:
        """Check if at end of tokens."""
        return self._current().type == TokenType.EOF

    def _check(self, token_type: TokenType) -> bool:
        """Check if current token is of given type."""
        return self._current().type == token_type

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        if not self._is_at_end():
            self.pos += 1
        return token

    def _match(self, *token_types: TokenType) -> Optional[Token]:
        """Consume token if it matches any of the given types."""
        if self._current().type in token_types:
            return self._advance()
        return None

    def _consume(self, token_type: TokenType, message: str) -> Token:
        """Consume token of expected type, or raise error."""
        if self._check(token_type):
            return self._advance()
        raise self._error(self._current(), message)

    def _source_line(self, token: Token) -> Optional[str]:
        line = token.line
        if 1 <= line <= len(self._lines):
            return self._lines[line - 1]
        return None

    def _error(self, token: Token, message: str) -> ParserError:
        """Build a parser error at a token (caller decides whether to raise)."""
        return error_unexpected_token(token, message, self._source_line(token))

    def _report(self, error: ParserError) -> None:
        """Record an error without unwinding the current declaration."""
        self.diagnostics.add_error(error)

    def _synchronize(self) -> None:
        """Discard tokens until the start of the next statement."""
        self._advance()

        while not self._is_at_end():
            if self._previous().type == TokenType.SEMICOLON:
                return
            if self._current().type in STATEMENT_STARTS:
                return
            self._advance()

    # =========================================================================
    # Declarations
    # =========================================================================

    def parse(self) -> List[Stmt]:
        """Parse the whole token list into statements."""
        statements = []
        while not self._is_at_end():
            if self.diagnostics.should_stop:
                break
            stmt = self._parse_declaration()
            if stmt is not None:
                statements.append(stmt)
        logger.debug("parsed %d top-level statement(s), %d error(s)",
                     len(statements), self.diagnostics.error_count)
        return statements

    def _parse_declaration(self) -> Optional[Stmt]:
        """Parse a declaration, recovering from syntax errors."""
        try:
            if self._match(TokenType.CLASS):
                return self._parse_class_declaration()
            if self._match(TokenType.FUN):
                return self._parse_function("function")
            if self._match(TokenType.VAR):
                return self._parse_var_declaration()
            return self._parse_statement()
        except ParserError as e:
            self.diagnostics.add_error(e)
            self._synchronize()
            return None
        except RecursionError:
            token = self._current()
            self.diagnostics.add_error(error_nesting_too_deep(token, self._source_line(token)))
            logger.debug("nesting limit reached at line %d", token.line)
            self._synchronize()
            return None

    def _parse_class_declaration(self) -> ClassDef:
        """Parse: class Name (< Superclass)? { method* }"""
        name = self._consume(TokenType.IDENTIFIER, "Expect class name.")

        superclass = None
        if self._match(TokenType.LESS):
            self._consume(TokenType.IDENTIFIER, "Expect superclass name after '<'.")
            superclass = Variable(self._previous())

        self._consume(TokenType.LEFT_BRACE, "Expect '{' before class body.")

        methods = []
        while not self._check(TokenType.RIGHT_BRACE) and not self._is_at_end():
            methods.append(self._parse_function("method"))

        self._consume(TokenType.RIGHT_BRACE, "Expect '}' after class body.")
        return ClassDef(name=name, superclass=superclass, methods=methods)

    def _parse_function(self, kind: str) -> FunctionDef:
        """Parse a function or method after 'fun' (methods have no keyword)."""
        name = self._consume(TokenType.IDENTIFIER, f"Expect {kind} name.")
        self._consume(TokenType.LEFT_PAREN, f"Expect '(' after {kind} name.")

        params: List[Token] = []
        if not self._check(TokenType.RIGHT_PAREN):
            while True:
                if len(params) >= MAX_ARGUMENTS:
                    self._report(error_too_many(
                        self._current(), "parameters", self._source_line(self._current())
                    ))
                params.append(self._consume(TokenType.IDENTIFIER, "Expect parameter name."))
                if not self._match(TokenType.COMMA):
                    break
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after parameters.")

        self._consume(TokenType.LEFT_BRACE, f"Expect '{{' before {kind} body.")

        # A loop around a function declaration does not make 'break' legal inside it
        enclosing_loop_depth = self.loop_depth
        self.loop_depth = 0
        try:
            body = self._parse_block()
        finally:
            self.loop_depth = enclosing_loop_depth

        return FunctionDef(name=name, params=params, body=body)

    def _parse_var_declaration(self) -> VarDecl:
        """Parse: var name (= initializer)? ;"""
        name = self._consume(TokenType.IDENTIFIER, "Expect variable name.")

        initializer = None
        if self._match(TokenType.EQUAL):
            initializer = self._parse_expression()

        self._consume(TokenType.SEMICOLON, "Expect ';' after variable declaration.")
        return VarDecl(name=name, initializer=initializer)

    # =========================================================================
    # Statements
    # =========================================================================

    def _parse_statement(self) -> Stmt:
        """Parse a statement."""
        if self._match(TokenType.PRINT):
            return self._parse_print_statement()
        if self._match(TokenType.RETURN):
            return self._parse_return_statement()
        if self._match(TokenType.WHILE):
            return self._parse_while_statement()
        if self._match(TokenType.FOR):
            return self._parse_for_statement()
        if self._match(TokenType.IF):
            return self._parse_if_statement()
        if self._match(TokenType.BREAK):
            return self._parse_break_statement()
        if self._match(TokenType.LEFT_BRACE):
            return Block(statements=self._parse_block())
        return self._parse_expression_statement()

    def _parse_print_statement(self) -> PrintStatement:
        value = self._parse_expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after value.")
        return PrintStatement(expression=value)

    def _parse_return_statement(self) -> ReturnStatement:
        keyword = self._previous()
        value = None
        if not self._check(TokenType.SEMICOLON):
            value = self._parse_expression()

        self._consume(TokenType.SEMICOLON, "Expect ';' after return value.")
        return ReturnStatement(keyword=keyword, value=value)

    def _parse_break_statement(self) -> BreakStatement:
        keyword = self._previous()
        if self.loop_depth == 0:
            self._report(error_break_outside_loop(keyword, self._source_line(keyword)))
        self._consume(TokenType.SEMICOLON, "Expect ';' after 'break'.")
        return BreakStatement(keyword=keyword)

    def _parse_while_statement(self) -> WhileStatement:
        self._consume(TokenType.LEFT_PAREN, "Expect '(' after 'while'.")
        condition = self._parse_expression()
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after condition.")

        self.loop_depth += 1
        try:
            body = self._parse_statement()
        finally:
            self.loop_depth -= 1

        return WhileStatement(condition=condition, body=body)

    def _parse_for_statement(self) -> Stmt:
        """Parse a for loop and desugar it into a while loop.

        for (init; cond; incr) body
        becomes
        { init; while (cond) { body; incr; } }
        """
        self._consume(TokenType.LEFT_PAREN, "Expect '(' after 'for'.")

        initializer: Optional[Stmt]
        if self._match(TokenType.SEMICOLON):
            initializer = None
        elif self._match(TokenType.VAR):
            initializer = self._parse_var_declaration()
        else:
            initializer = self._parse_expression_statement()

        condition = None
        if not self._check(TokenType.SEMICOLON):
            condition = self._parse_expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after loop condition.")

        increment = None
        if not self._check(TokenType.RIGHT_PAREN):
            increment = self._parse_expression()
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after for clauses.")

        self.loop_depth += 1
        try:
            body = self._parse_statement()
        finally:
            self.loop_depth -= 1

        if increment is not None:
            body = Block(statements=[body, ExpressionStatement(expression=increment)])

        if condition is None:
            condition = Literal(True)
        loop: Stmt = WhileStatement(condition=condition, body=body)

        if initializer is not None:
            loop = Block(statements=[initializer, loop])

        return loop

    def _parse_if_statement(self) -> IfStatement:
        self._consume(TokenType.LEFT_PAREN, "Expect '(' after 'if'.")
        condition = self._parse_expression()
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after if condition.")

        then_branch = self._parse_statement()
        else_branch = None
        if self._match(TokenType.ELSE):
            else_branch = self._parse_statement()

        return IfStatement(condition=condition, then_branch=then_branch, else_branch=else_branch)

    def _parse_block(self) -> List[Stmt]:
        """Parse declarations up to the closing '}' (opening already consumed)."""
        statements = []
        while not self._check(TokenType.RIGHT_BRACE) and not self._is_at_end():
            stmt = self._parse_declaration()
            if stmt is not None:
                statements.append(stmt)

        self._consume(TokenType.RIGHT_BRACE, "Expect '}' after block.")
        return statements

    def _parse_expression_statement(self) -> ExpressionStatement:
        expr = self._parse_expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after expression.")
        return ExpressionStatement(expression=expr)

    # =========================================================================
    # Expressions
    # =========================================================================

    def _parse_expression(self) -> Expr:
        return self._parse_assignment()

    def _parse_assignment(self) -> Expr:
        """Parse an assignment.

        The target is parsed as an ordinary expression first, so receiver
        sub-expressions like the call in ``f().x = v`` keep their normal
        evaluation rules, then reinterpreted as an assignment target.
        """
        expr = self._parse_or()

        if self._match(TokenType.EQUAL):
            equals = self._previous()
            value = self._parse_assignment()

            if isinstance(expr, Variable):
                return Assign(name=expr.name, value=value)
            if isinstance(expr, Get):
                return Set(object=expr.object, name=expr.name, value=value)

            self._report(error_invalid_assignment_target(equals, self._source_line(equals)))

        return expr

    def _parse_or(self) -> Expr:
        expr = self._parse_and()
        while self._match(TokenType.OR):
            operator = self._previous()
            right = self._parse_and()
            expr = LogicalOp(left=expr, operator=operator, right=right)
        return expr

    def _parse_and(self) -> Expr:
        expr = self._parse_binary_level(0)
        while self._match(TokenType.AND):
            operator = self._previous()
            right = self._parse_binary_level(0)
            expr = LogicalOp(left=expr, operator=operator, right=right)
        return expr

    def _parse_binary_level(self, level: int) -> Expr:
        """Parse one left-associative binary precedence level.

        Level 0 is equality; each following level binds tighter. Past the
        last level, operands are unary expressions.
        """
        levels = (
            self.EQUALITY_OPERATORS,
            self.COMPARISON_OPERATORS,
            self.TERM_OPERATORS,
            self.FACTOR_OPERATORS,
        )
        if level >= len(levels):
            return self._parse_unary()

        expr = self._parse_binary_level(level + 1)
        while self._match(*levels[level]):
            operator = self._previous()
            right = self._parse_binary_level(level + 1)
            expr = BinaryOp(left=expr, operator=operator, right=right)
        return expr

    def _parse_unary(self) -> Expr:
        """Parse unary expressions (!, -)."""
        if self._match(TokenType.BANG, TokenType.MINUS):
            operator = self._previous()
            right = self._parse_unary()
            return UnaryOp(operator=operator, right=right)
        return self._parse_call()

    def _parse_call(self) -> Expr:
        """Parse postfix expressions (calls, property access)."""
        expr = self._parse_primary()

        while True:
            if self._match(TokenType.LEFT_PAREN):
                expr = self._finish_call(expr)
            elif self._match(TokenType.DOT):
                name = self._consume(TokenType.IDENTIFIER, "Expect property name after '.'.")
                expr = Get(object=expr, name=name)
            else:
                break

        return expr

    def _finish_call(self, callee: Expr) -> Call:
        """Parse call arguments (opening '(' already consumed)."""
        arguments: List[Expr] = []
        if not self._check(TokenType.RIGHT_PAREN):
            while True:
                if len(arguments) >= MAX_ARGUMENTS:
                    self._report(error_too_many(
                        self._current(), "arguments", self._source_line(self._current())
                    ))
                arguments.append(self._parse_expression())
                if not self._match(TokenType.COMMA):
                    break

        paren = self._consume(TokenType.RIGHT_PAREN, "Expect ')' after arguments.")
        return Call(callee=callee, paren=paren, arguments=arguments)

    def _parse_primary(self) -> Expr:
        """Parse primary expressions (literals, names, grouping, this, super)."""
        token = self._current()

        if self._match(TokenType.FALSE, TokenType.TRUE, TokenType.NIL,
                       TokenType.NUMBER, TokenType.STRING):
            return Literal(token.literal)

        if self._match(TokenType.SUPER):
            self._consume(TokenType.DOT, "Expect '.' after 'super'.")
            method = self._consume(TokenType.IDENTIFIER, "Expect superclass method name.")
            return Super(keyword=token, method=method)

        if self._match(TokenType.THIS):
            return This(keyword=token)

        if self._match(TokenType.IDENTIFIER):
            return Variable(token)

        if self._match(TokenType.LEFT_PAREN):
            expr = self._parse_expression()
            self._consume(TokenType.RIGHT_PAREN, "Expect ')' after expression.")
            return Grouping(expression=expr)

        raise self._error(token, "Expect expression.")


def parse(tokens: List[Token], source: Optional[str] = None) -> List[Stmt]:
    """
    Convenience function to parse tokens into statements.

    Diagnostics are discarded; use ``Parser`` directly to inspect them.

    Args:
        tokens: List of tokens from the lexer
        source: Optional original source code for diagnostics

    Returns:
        The successfully parsed statements
    """
    return Parser(tokens, source).parse()
