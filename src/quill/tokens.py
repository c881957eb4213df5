"""
Token types for the Quill lexer.

Error code ranges:
- E0xx: Lexer errors
- E1xx: Parser errors
- E4xx: Runtime errors
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Optional


class TokenType(Enum):
    """All token types recognized by the lexer."""

    # --- Special ---
    EOF = auto()                # end of input
    INVALID = auto()            # unrecognised input, reported by the parser

    # --- Identifiers ---
    IDENTIFIER = auto()         # user-defined names
    EXTERNAL_IDENTIFIER = auto()  # $name, resolved in the host table

    # --- Keywords ---
    NULL = auto()               # null
    TRUE = auto()               # true
    FALSE = auto()              # false
    LET = auto()                # let
    FN = auto()                 # fn
    IF = auto()                 # if
    ELSE = auto()               # else
    FOR = auto()                # for
    BREAK = auto()              # break
    CONTINUE = auto()           # continue
    RETURN = auto()             # return

    # --- Literals ---
    INTEGER = auto()            # 42
    FLOAT = auto()              # 3.14
    STRING = auto()             # "hello"

    # --- Punctuation ---
    COMMA = auto()              # ,
    SEMICOLON = auto()          # ;
    COLON = auto()              # :
    DOT = auto()                # .
    LPAREN = auto()             # (
    RPAREN = auto()             # )
    LBRACE = auto()             # {
    RBRACE = auto()             # }
    LBRACKET = auto()           # [
    RBRACKET = auto()           # ]

    # --- Arithmetic operators ---
    PLUS = auto()               # +
    MINUS = auto()              # -
    STAR = auto()               # *
    SLASH = auto()              # /
    PERCENT = auto()            # %

    # --- Comparison operators ---
    EQ = auto()                 # ==
    NE = auto()                 # !=
    LT = auto()                 # <
    LE = auto()                 # <=
    GT = auto()                 # >
    GE = auto()                 # >=

    # --- Logical operators ---
    AND = auto()                # &&
    OR = auto()                 # ||
    BANG = auto()               # !

    # --- Assignment and update ---
    ASSIGN = auto()             # =
    INCREMENT = auto()          # ++
    DECREMENT = auto()          # --


@dataclass(frozen=True)
class SourceLocation:
    """Represents a position in source code."""
    line: int           # 1-indexed line number
    column: int         # 1-indexed column number
    offset: int         # 0-indexed character offset from start
    filename: Optional[str] = None

    def __str__(self) -> str:
        if self.filename:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class SourceSpan:
    """Represents a range in source code."""
    start: SourceLocation
    end: SourceLocation

    def __str__(self) -> str:
        if self.start.filename:
            return f"{self.start.filename}:{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"
        return f"{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"


@dataclass(frozen=True)
class Token:
    """A single token from the lexer."""
    type: TokenType
    lexeme: str             # The exact source slice
    span: SourceSpan        # Location in source

    def __str__(self) -> str:
        if self.type in (TokenType.INTEGER, TokenType.FLOAT, TokenType.STRING,
                         TokenType.IDENTIFIER, TokenType.EXTERNAL_IDENTIFIER,
                         TokenType.INVALID):
            return f"{self.type.name}({self.lexeme!r})"
        return self.type.name


# Keyword mapping - maps string to token type
KEYWORDS: dict[str, TokenType] = {
    "null": TokenType.NULL,
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
    "let": TokenType.LET,
    "fn": TokenType.FN,
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "for": TokenType.FOR,
    "break": TokenType.BREAK,
    "continue": TokenType.CONTINUE,
    "return": TokenType.RETURN,
}

# Single-character punctuation and operators
SINGLE_CHAR_TOKENS: dict[str, TokenType] = {
    ',': TokenType.COMMA,
    ';': TokenType.SEMICOLON,
    ':': TokenType.COLON,
    '.': TokenType.DOT,
    '(': TokenType.LPAREN,
    ')': TokenType.RPAREN,
    '{': TokenType.LBRACE,
    '}': TokenType.RBRACE,
    '[': TokenType.LBRACKET,
    ']': TokenType.RBRACKET,
    '+': TokenType.PLUS,
    '-': TokenType.MINUS,
    '*': TokenType.STAR,
    '/': TokenType.SLASH,
    '%': TokenType.PERCENT,
    '<': TokenType.LT,
    '>': TokenType.GT,
    '=': TokenType.ASSIGN,
    '!': TokenType.BANG,
}

# Two-character operators, tried before the single-character table
DOUBLE_CHAR_TOKENS: dict[str, TokenType] = {
    '==': TokenType.EQ,
    '!=': TokenType.NE,
    '<=': TokenType.LE,
    '>=': TokenType.GE,
    '&&': TokenType.AND,
    '||': TokenType.OR,
    '++': TokenType.INCREMENT,
    '--': TokenType.DECREMENT,
}


def is_keyword(name: str) -> bool:
    """Check if a name is reserved."""
    return name in KEYWORDS
