"""
Tests for the treelox lexer.
"""

import pytest

from treelox import tokenize, Lexer, TokenType, Token


def types(source):
    """Token types of source, without the trailing EOF."""
    return [t.type for t in tokenize(source)][:-1]


class TestLexerBasics:
    """Test basic lexer functionality."""

    def test_empty_source(self):
        """Empty source yields exactly one EOF token."""
        tokens = tokenize("")
        assert len(tokens) == 1
        assert tokens[0].type == TokenType.EOF

    def test_whitespace_only(self):
        """Whitespace is skipped."""
        tokens = tokenize("   \t\r\n  ")
        assert [t.type for t in tokens] == [TokenType.EOF]

    def test_single_eof_at_end(self):
        """The token list always ends in exactly one EOF."""
        tokens = tokenize("print 1;")
        assert tokens[-1].type == TokenType.EOF
        assert sum(1 for t in tokens if t.type == TokenType.EOF) == 1

    def test_token_is_immutable(self):
        """Tokens are frozen dataclasses."""
        token = tokenize("x")[0]
        with pytest.raises(AttributeError):
            token.lexeme = "y"

    def test_line_tracking(self):
        """Tokens record the line they start on."""
        tokens = tokenize("a\nb\n\nc")
        assert [t.line for t in tokens[:3]] == [1, 2, 4]

    def test_column_tracking(self):
        """Spans record 1-indexed columns."""
        tokens = tokenize("print x;")
        assert tokens[1].span.start.column == 7
        assert tokens[1].span.end.column == 8


class TestOperators:
    """Test punctuation and operators."""

    def test_single_character_tokens(self):
        """Single-character punctuation."""
        assert types("(){},.-+;*/") == [
            TokenType.LEFT_PAREN, TokenType.RIGHT_PAREN,
            TokenType.LEFT_BRACE, TokenType.RIGHT_BRACE,
            TokenType.COMMA, TokenType.DOT, TokenType.MINUS, TokenType.PLUS,
            TokenType.SEMICOLON, TokenType.STAR, TokenType.SLASH,
        ]

    def test_one_or_two_character_tokens(self):
        """Operators that may take a trailing '='."""
        assert types("! != = == < <= > >=") == [
            TokenType.BANG, TokenType.BANG_EQUAL,
            TokenType.EQUAL, TokenType.EQUAL_EQUAL,
            TokenType.LESS, TokenType.LESS_EQUAL,
            TokenType.GREATER, TokenType.GREATER_EQUAL,
        ]

    def test_operators_without_spaces(self):
        """Two-character operators are matched greedily."""
        assert types("a<=b") == [TokenType.IDENTIFIER, TokenType.LESS_EQUAL, TokenType.IDENTIFIER]
        assert types("!!=") == [TokenType.BANG, TokenType.BANG_EQUAL]


class TestNumericLiterals:
    """Test number literals."""

    def test_integer(self):
        """Integers produce float literals."""
        token = tokenize("123")[0]
        assert token.type == TokenType.NUMBER
        assert token.literal == 123.0
        assert isinstance(token.literal, float)

    def test_decimal(self):
        """Decimal numbers."""
        token = tokenize("12.5")[0]
        assert token.literal == 12.5
        assert token.lexeme == "12.5"

    def test_trailing_dot_is_separate(self):
        """A '.' without a following digit is not part of the number."""
        tokens = tokenize("12.")
        assert tokens[0].literal == 12.0
        assert tokens[1].type == TokenType.DOT

    def test_leading_minus_is_separate(self):
        """Negative numbers are a MINUS token followed by a NUMBER."""
        assert types("-3") == [TokenType.MINUS, TokenType.NUMBER]

    def test_method_call_on_number(self):
        """'1.abs' scans as number, dot, identifier."""
        assert types("1.abs") == [TokenType.NUMBER, TokenType.DOT, TokenType.IDENTIFIER]


class TestStringLiterals:
    """Test string literals."""

    def test_simple_string(self):
        """The literal excludes the quotes; the lexeme includes them."""
        token = tokenize('"hello"')[0]
        assert token.type == TokenType.STRING
        assert token.literal == "hello"
        assert token.lexeme == '"hello"'

    def test_empty_string(self):
        """Empty string literal."""
        assert tokenize('""')[0].literal == ""

    def test_no_escape_sequences(self):
        """Backslashes are kept verbatim."""
        assert tokenize(r'"a\nb"')[0].literal == "a\\nb"

    def test_unterminated_string(self):
        """Unterminated strings are reported, not raised."""
        lexer = Lexer('"abc')
        tokens = lexer.tokenize()
        assert [t.type for t in tokens] == [TokenType.EOF]
        assert lexer.diagnostics.error_count == 1
        assert lexer.diagnostics.diagnostics[0].code == "E002"
        assert "Unterminated string" in lexer.diagnostics.diagnostics[0].message

    def test_unterminated_string_abandons_rest_of_line(self):
        """Scanning resumes on the line after an unterminated string."""
        lexer = Lexer('"abc + 1\nprint 2;')
        tokens = lexer.tokenize()
        assert [t.type for t in tokens] == [
            TokenType.PRINT, TokenType.NUMBER, TokenType.SEMICOLON, TokenType.EOF,
        ]
        assert tokens[0].line == 2
        assert lexer.diagnostics.error_count == 1


class TestKeywords:
    """Test keywords and identifiers."""

    def test_all_keywords(self):
        """Every reserved word has its own token type."""
        source = "and break class else false for fun if nil or print return super this true var while"
        assert types(source) == [
            TokenType.AND, TokenType.BREAK, TokenType.CLASS, TokenType.ELSE,
            TokenType.FALSE, TokenType.FOR, TokenType.FUN, TokenType.IF,
            TokenType.NIL, TokenType.OR, TokenType.PRINT, TokenType.RETURN,
            TokenType.SUPER, TokenType.THIS, TokenType.TRUE, TokenType.VAR,
            TokenType.WHILE,
        ]

    def test_identifiers(self):
        """Identifiers may contain letters, digits and underscores."""
        tokens = tokenize("fooBar _x1 a_b_c")
        assert [t.type for t in tokens[:3]] == [TokenType.IDENTIFIER] * 3
        assert [t.lexeme for t in tokens[:3]] == ["fooBar", "_x1", "a_b_c"]

    def test_maximal_munch(self):
        """Keywords are only recognized as whole identifiers."""
        assert types("orchid classy fun_") == [TokenType.IDENTIFIER] * 3

    def test_keyword_literals(self):
        """true, false and nil carry their values."""
        tokens = tokenize("true false nil")
        assert tokens[0].literal is True
        assert tokens[1].literal is False
        assert tokens[2].literal is None


class TestComments:
    """Test comment handling."""

    def test_line_comment(self):
        """Line comments run to end of line."""
        tokens = tokenize("// comment\n1")
        assert tokens[0].type == TokenType.NUMBER
        assert tokens[0].line == 2

    def test_line_comment_at_end(self):
        """A comment at the end of input."""
        assert types("1 // trailing") == [TokenType.NUMBER]

    def test_block_comment(self):
        """Block comments may span lines."""
        tokens = tokenize("/* a \n b */ 2")
        assert tokens[0].type == TokenType.NUMBER
        assert tokens[0].line == 2

    def test_block_comments_do_not_nest(self):
        """The first '*/' closes the comment."""
        assert types("/* /* */ 1 */") == [TokenType.NUMBER, TokenType.STAR, TokenType.SLASH]

    def test_unterminated_block_comment(self):
        """An unclosed block comment is reported."""
        lexer = Lexer("1 /* never closed")
        tokens = lexer.tokenize()
        assert [t.type for t in tokens] == [TokenType.NUMBER, TokenType.EOF]
        assert lexer.diagnostics.diagnostics[0].code == "E004"


class TestErrorMessages:
    """Test error reporting."""

    def test_unexpected_character(self):
        """Unexpected characters are skipped and reported."""
        lexer = Lexer("1 @ 2")
        tokens = lexer.tokenize()
        assert [t.type for t in tokens] == [TokenType.NUMBER, TokenType.NUMBER, TokenType.EOF]
        diag = lexer.diagnostics.diagnostics[0]
        assert diag.code == "E001"
        assert diag.message == "Unexpected character '@'."
        assert diag.line == 1

    def test_multiple_errors_collected(self):
        """Scanning continues after each error."""
        lexer = Lexer("@\n#\n$")
        lexer.tokenize()
        assert lexer.diagnostics.error_count == 3
        assert [d.line for d in lexer.diagnostics.diagnostics] == [1, 2, 3]

    def test_diagnostic_format_includes_source(self):
        """Formatted diagnostics show the source line with a caret."""
        lexer = Lexer("var a = @;", filename="test.lox")
        lexer.tokenize()
        text = lexer.diagnostics.diagnostics[0].format()
        assert "test.lox:1:9" in text
        assert "var a = @;" in text
        assert "^" in text


class TestLexerIterator:
    """Test streaming iteration."""

    def test_iterate_tokens(self):
        """The lexer can be iterated directly."""
        tokens = list(Lexer("var x;"))
        assert all(isinstance(t, Token) for t in tokens)
        assert [t.type for t in tokens] == [
            TokenType.VAR, TokenType.IDENTIFIER, TokenType.SEMICOLON, TokenType.EOF,
        ]
