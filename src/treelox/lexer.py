"""
Lexer for treelox.

Converts source text into a flat list of tokens for the parser.
Supports:
- Single and two-character operators (!= == <= >=)
- Line comments (//) and block comments (/* */, not nestable)
- String literals (no escape sequences, single line only)
- Number literals (integer or decimal, always a float value)
- Identifiers and reserved words

The lexer never raises. Unexpected characters, unterminated strings and
unterminated block comments are recorded in ``Lexer.diagnostics`` and
scanning continues, so the result is always a token list ending in EOF.
"""

import logging
from typing import List, Optional, Iterator

from .tokens import (
    Token, TokenType, SourceLocation, SourceSpan, KEYWORDS, KEYWORD_LITERALS,
)
from .errors import (
    DiagnosticCollector,
    error_unexpected_character,
    error_unterminated_string,
    error_unterminated_comment,
)

logger = logging.getLogger(__name__)


class Lexer:
    """
    Tokenizer for treelox source.

    Usage:
        lexer = Lexer(source_code)
        tokens = lexer.tokenize()
        if lexer.diagnostics.has_errors:
            ...

    Or for streaming:
        for token in Lexer(source_code):
            process(token)
    """

    # Single-character tokens that never start a longer operator
    SINGLE_CHAR_TOKENS = {
        '(': TokenType.LEFT_PAREN,
        ')': TokenType.RIGHT_PAREN,
        '{': TokenType.LEFT_BRACE,
        '}': TokenType.RIGHT_BRACE,
        ',': TokenType.COMMA,
        '.': TokenType.DOT,
        '-': TokenType.MINUS,
        '+': TokenType.PLUS,
        ';': TokenType.SEMICOLON,
        '*': TokenType.STAR,
    }

    # Characters that may be followed by '=' to form a two-character operator
    EQUAL_PAIRS = {
        '!': (TokenType.BANG, TokenType.BANG_EQUAL),
        '=': (TokenType.EQUAL, TokenType.EQUAL_EQUAL),
        '<': (TokenType.LESS, TokenType.LESS_EQUAL),
        '>': (TokenType.GREATER, TokenType.GREATER_EQUAL),
    }

    def __init__(self, source: str, filename: Optional[str] = None,
                 diagnostics: Optional[DiagnosticCollector] = None):
        self.source = source
        self.filename = filename
        self.pos = 0            # Current position in source
        self.line = 1           # Current line (1-indexed)
        self.column = 1         # Current column (1-indexed)
        self._lines: Optional[List[str]] = None  # Cached line list
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticCollector()

    @property
    def lines(self) -> List[str]:
        """Lazy-load line list for error reporting."""
        if self._lines is None:
            self._lines = self.source.splitlines()
        return self._lines

    def get_source_line(self, line_num: int) -> Optional[str]:
        """Get a specific line of source (1-indexed)."""
        if 1 <= line_num <= len(self.lines):
            return self.lines[line_num - 1]
        return None

    def _location(self) -> SourceLocation:
        """Get current source location."""
        return SourceLocation(self.line, self.column, self.pos, self.filename)

    def _span(self, start: SourceLocation) -> SourceSpan:
        """Create a span from start to current position."""
        return SourceSpan(start, self._location())

    def _peek(self, offset: int = 0) -> str:
        """Look at character at current position + offset without consuming."""
        idx = self.pos + offset
        if idx >= len(self.source):
            return '\0'
        return self.source[idx]

    def _advance(self) -> str:
        """Consume and return current character."""
        if self.pos >= len(self.source):
            return '\0'
        ch = self.source[self.pos]
        self.pos += 1
        if ch == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return ch

    def _match(self, expected: str) -> bool:
        """Consume character if it matches expected."""
        if not self._is_at_end() and self._peek() == expected:
            self._advance()
            return True
        return False

    def _is_at_end(self) -> bool:
        """Check if we've reached end of source."""
        return self.pos >= len(self.source)

    def _skip_line_comment(self) -> None:
        """Skip a // comment up to (not including) the newline."""
        while self._peek() != '\n' and not self._is_at_end():
            self._advance()

    def _skip_block_comment(self, start: SourceLocation) -> None:
        """Skip the rest of a /* ... */ comment (opening already consumed)."""
        while not self._is_at_end():
            if self._peek() == '*' and self._peek(1) == '/':
                self._advance()
                self._advance()
                return
            self._advance()

        self.diagnostics.add_error(error_unterminated_comment(
            self._span(start), self.get_source_line(start.line)
        ))

    def _make_token(self, token_type: TokenType, literal, start: SourceLocation) -> Token:
        """Create a token spanning from start to the current position."""
        lexeme = self.source[start.offset:self.pos]
        return Token(token_type, lexeme, literal, self._span(start))

    def _scan_string(self, start: SourceLocation) -> Optional[Token]:
        """Scan a string literal (opening quote already consumed)."""
        while not self._is_at_end() and self._peek() != '"':
            if self._peek() == '\n':
                break
            self._advance()

        if self._peek() != '"':
            # The rest of the line is abandoned; scanning resumes at the newline.
            self.diagnostics.add_error(error_unterminated_string(
                self._span(start), self.get_source_line(start.line)
            ))
            return None

        self._advance()  # consume closing quote
        value = self.source[start.offset + 1:self.pos - 1]
        return self._make_token(TokenType.STRING, value, start)

    def _scan_number(self, start: SourceLocation) -> Token:
        """Scan a numeric literal (first digit already consumed)."""
        while _is_digit(self._peek()):
            self._advance()

        # Fractional part needs a digit after the '.'
        if self._peek() == '.' and _is_digit(self._peek(1)):
            self._advance()  # consume '.'
            while _is_digit(self._peek()):
                self._advance()

        lexeme = self.source[start.offset:self.pos]
        return self._make_token(TokenType.NUMBER, float(lexeme), start)

    def _scan_identifier_or_keyword(self, start: SourceLocation) -> Token:
        """Scan an identifier or keyword (first character already consumed)."""
        while _is_alnum(self._peek()):
            self._advance()

        lexeme = self.source[start.offset:self.pos]
        token_type = KEYWORDS.get(lexeme, TokenType.IDENTIFIER)
        return self._make_token(token_type, KEYWORD_LITERALS.get(token_type), start)

    def _scan_token(self) -> Optional[Token]:
        """Scan from the current position. Returns None for skipped input."""
        start = self._location()
        ch = self._advance()

        if ch in ' \r\t\n':
            return None

        if ch in self.SINGLE_CHAR_TOKENS:
            return self._make_token(self.SINGLE_CHAR_TOKENS[ch], None, start)

        if ch in self.EQUAL_PAIRS:
            single, double = self.EQUAL_PAIRS[ch]
            return self._make_token(double if self._match('=') else single, None, start)

        if ch == '/':
            if self._match('/'):
                self._skip_line_comment()
                return None
            if self._match('*'):
                self._skip_block_comment(start)
                return None
            return self._make_token(TokenType.SLASH, None, start)

        if ch == '"':
            return self._scan_string(start)

        if _is_digit(ch):
            return self._scan_number(start)

        if _is_alpha(ch):
            return self._scan_identifier_or_keyword(start)

        self.diagnostics.add_error(error_unexpected_character(
            ch, self._span(start), self.get_source_line(start.line)
        ))
        return None

    def __iter__(self) -> Iterator[Token]:
        """Iterate over tokens, ending with EOF."""
        while not self._is_at_end():
            token = self._scan_token()
            if token is not None:
                yield token
        location = self._location()
        yield Token(TokenType.EOF, "", None, SourceSpan(location, location))

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source, returning a list of tokens."""
        tokens = list(self)
        logger.debug("scanned %d token(s), %d error(s)",
                     len(tokens), self.diagnostics.error_count)
        return tokens


def _is_digit(ch: str) -> bool:
    return '0' <= ch <= '9'


def _is_alpha(ch: str) -> bool:
    return ('a' <= ch <= 'z') or ('A' <= ch <= 'Z') or ch == '_'


def _is_alnum(ch: str) -> bool:
    return _is_alpha(ch) or _is_digit(ch)


def tokenize(source: str, filename: Optional[str] = None) -> List[Token]:
    """
    Convenience function to tokenize source code.

    Diagnostics are discarded; use ``Lexer`` directly to inspect them.

    Args:
        source: The source code to tokenize
        filename: Optional filename for error messages

    Returns:
        List of tokens, always terminated by EOF
    """
    return Lexer(source, filename).tokenize()
