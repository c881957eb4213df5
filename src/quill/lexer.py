"""
Lexer for Quill.

Converts source text into a stream of tokens for the parser.
Supports:
- Free-form whitespace (space, tab, carriage return, newline)
- Integer and float literals
- String literals (escapes are kept verbatim and decoded by the parser)
- External variable references ($name)
- All keywords, punctuation and operators

The lexer never raises on malformed input. Unrecognised text comes back
as an INVALID token and the parser decides how to report it.
"""

from typing import List, Optional, Iterator, Union
from .tokens import (
    Token, TokenType, SourceLocation, SourceSpan,
    KEYWORDS, SINGLE_CHAR_TOKENS, DOUBLE_CHAR_TOKENS, is_keyword,
)
from .errors import error_invalid_utf8

WHITESPACE = ' \t\r\n'


def _is_digit(ch: str) -> bool:
    return '0' <= ch <= '9'


def _is_name_start(ch: str) -> bool:
    return ch.isascii() and (ch.isalpha() or ch == '_')


def _is_name_char(ch: str) -> bool:
    return _is_name_start(ch) or _is_digit(ch)


def decode_source(source: Union[str, bytes]) -> str:
    """Return source as text, decoding bytes as UTF-8."""
    if isinstance(source, bytes):
        try:
            return source.decode('utf-8')
        except UnicodeDecodeError as e:
            raise error_invalid_utf8(str(e)) from e
    return source


class Lexer:
    """
    Tokenizer for Quill source.

    Usage:
        lexer = Lexer(source_code)
        tokens = lexer.tokenize()

    Or for streaming (the parser pulls one token at a time):
        lexer = Lexer(source_code)
        token = lexer.next_token()
    """

    def __init__(self, source: Union[str, bytes], filename: Optional[str] = None):
        self.source = decode_source(source)
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1
        self._lines: Optional[List[str]] = None

    @property
    def lines(self) -> List[str]:
        """Source split into lines, built on first use."""
        if self._lines is None:
            self._lines = self.source.splitlines()
        return self._lines

    def get_source_line(self, line_num: int) -> Optional[str]:
        """Return line `line_num` (1-based), or None past either end."""
        if 1 <= line_num <= len(self.lines):
            return self.lines[line_num - 1]
        return None

    def _location(self) -> SourceLocation:
        return SourceLocation(self.line, self.column, self.pos, self.filename)

    def _span(self, start: SourceLocation) -> SourceSpan:
        return SourceSpan(start, self._location())

    def _peek(self, offset: int = 0) -> str:
        """Character `offset` places ahead, NUL past the end."""
        idx = self.pos + offset
        if idx >= len(self.source):
            return '\0'
        return self.source[idx]

    def _advance(self) -> str:
        """Consume one character, keeping line and column in step."""
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

    def _is_at_end(self) -> bool:
        return self.pos >= len(self.source)

    def _skip_whitespace(self) -> None:
        while not self._is_at_end() and self._peek() in WHITESPACE:
            self._advance()

    def _make_token(self, token_type: TokenType, start: SourceLocation) -> Token:
        """Create a token spanning from start to the current position."""
        lexeme = self.source[start.offset:self.pos]
        return Token(token_type, lexeme, self._span(start))

    def _scan_external(self) -> Token:
        """Scan a $name external reference."""
        start = self._location()
        self._advance()  # consume '$'

        if not _is_name_start(self._peek()):
            return self._make_token(TokenType.INVALID, start)

        while _is_name_char(self._peek()):
            self._advance()

        if is_keyword(self.source[start.offset + 1:self.pos]):
            return self._make_token(TokenType.INVALID, start)
        return self._make_token(TokenType.EXTERNAL_IDENTIFIER, start)

    def _scan_number(self) -> Token:
        """Scan digits, promoting to FLOAT on a dot followed by a digit."""
        start = self._location()

        while _is_digit(self._peek()):
            self._advance()

        # A '.' only belongs to the number when a digit follows it
        if self._peek() == '.' and _is_digit(self._peek(1)):
            self._advance()  # consume '.'
            while _is_digit(self._peek()):
                self._advance()
            return self._make_token(TokenType.FLOAT, start)

        return self._make_token(TokenType.INTEGER, start)

    def _scan_identifier_or_keyword(self) -> Token:
        """Scan an identifier or keyword."""
        start = self._location()

        while _is_name_char(self._peek()):
            self._advance()

        lexeme = self.source[start.offset:self.pos]
        return self._make_token(KEYWORDS.get(lexeme, TokenType.IDENTIFIER), start)

    def _scan_string(self) -> Token:
        """Scan a string literal up to the next unescaped quote."""
        start = self._location()
        self._advance()  # consume opening quote

        escaped = False
        while not self._is_at_end():
            ch = self._advance()
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                return self._make_token(TokenType.STRING, start)

        return self._make_token(TokenType.INVALID, start)

    def next_token(self) -> Token:
        """Scan the next token. Returns EOF repeatedly once input is exhausted."""
        self._skip_whitespace()

        start = self._location()
        if self._is_at_end():
            return Token(TokenType.EOF, "", self._span(start))

        ch = self._peek()

        if ch == '$':
            return self._scan_external()

        if _is_digit(ch):
            return self._scan_number()

        if _is_name_start(ch):
            return self._scan_identifier_or_keyword()

        if ch == '"':
            return self._scan_string()

        # Two-character operators
        pair = ch + self._peek(1)
        if pair in DOUBLE_CHAR_TOKENS:
            self._advance()
            self._advance()
            return self._make_token(DOUBLE_CHAR_TOKENS[pair], start)

        self._advance()
        if ch in SINGLE_CHAR_TOKENS:
            return self._make_token(SINGLE_CHAR_TOKENS[ch], start)

        # Lone '&' or '|' and anything else
        return self._make_token(TokenType.INVALID, start)

    def tokenize(self) -> List[Token]:
        """All remaining tokens, ending with EOF."""
        return list(self)

    def __iter__(self) -> Iterator[Token]:
        """Iterate over tokens, ending with EOF."""
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                break


def tokenize(source: Union[str, bytes], filename: Optional[str] = None) -> List[Token]:
    """
    Convenience function to tokenize source code.

    Args:
        source: The source code to tokenize
        filename: Optional filename for error messages

    Returns:
        List of tokens, INVALID tokens included, ending with EOF
    """
    lexer = Lexer(source, filename)
    return lexer.tokenize()
