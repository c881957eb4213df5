"""
Quill exceptions and error handling.

Error code ranges:
- E0xx: Lexer errors
- E1xx: Parser errors
- E4xx: Runtime errors
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Sequence
from .tokens import SourceSpan


class ErrorSeverity(Enum):
    """Severity levels for diagnostics."""
    ERROR = "error"
    WARNING = "warning"


@dataclass
class Diagnostic:
    """A single diagnostic message (error, warning, etc.)."""
    code: str                       # E001, E101, etc.
    message: str                    # Human-readable message
    severity: ErrorSeverity = ErrorSeverity.ERROR
    span: Optional[SourceSpan] = None   # Unknown for errors raised outside the evaluator
    source_line: Optional[str] = None   # The actual line of source code
    hints: List[str] = field(default_factory=list)

    def format(self, show_source: bool = True) -> str:
        """Format the diagnostic for display."""
        parts = []

        # Header: location: severity[code]: message
        header = f"{self.severity.value}[{self.code}]: {self.message}"
        if self.span is not None:
            header = f"{self.span.start}: {header}"
        parts.append(header)

        # Source line with caret
        if show_source and self.span is not None and self.source_line is not None:
            parts.append("  |")
            line_num = str(self.span.start.line)
            parts.append(f"{line_num:>3} | {self.source_line}")

            col = self.span.start.column
            if self.span.start.line == self.span.end.line:
                end_col = self.span.end.column
            else:
                end_col = len(self.source_line) + 1
            underline_len = max(1, end_col - col)
            parts.append(f"    | {' ' * (col - 1)}{'^' * underline_len}")

        for hint in self.hints:
            parts.append(f"    = hint: {hint}")

        return "\n".join(parts)

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict for tooling integration."""
        result = {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "range": None,
            "hints": self.hints,
        }
        if self.span is not None:
            result["range"] = {
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
            }
        return result


class QuillError(Exception):
    """Base exception for Quill errors."""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(diagnostic.message)

    @property
    def code(self) -> str:
        return self.diagnostic.code

    @property
    def span(self) -> Optional[SourceSpan]:
        return self.diagnostic.span

    def locate(self, span: Optional[SourceSpan], source_line: Optional[str] = None) -> "QuillError":
        """Attach a source location if the error does not carry one yet."""
        if self.diagnostic.span is None and span is not None:
            self.diagnostic.span = span
            self.diagnostic.source_line = source_line
        return self

    def __str__(self) -> str:
        return self.diagnostic.format()


class LexerError(QuillError):
    """Error during lexical analysis (E0xx)."""
    pass


class ParserError(QuillError):
    """Error during parsing (E1xx)."""
    pass


class EvalError(QuillError):
    """Error during evaluation (E4xx)."""
    pass


class InvalidOperation(EvalError):
    """An operation is not defined for the given operand kinds."""

    def __init__(self, diagnostic: Diagnostic, operation: str = "",
                 kinds: Sequence[str] = ()):
        super().__init__(diagnostic)
        self.operation = operation
        self.kinds = tuple(kinds)


class DivisionByZero(InvalidOperation):
    """Integer division or modulo by zero."""
    pass


class NameError(EvalError):
    """A name is not bound in any visible scope."""

    def __init__(self, diagnostic: Diagnostic, name: str = ""):
        super().__init__(diagnostic)
        self.name = name


class ArityError(EvalError):
    """A function was called with the wrong number of arguments."""

    def __init__(self, diagnostic: Diagnostic, expected: int = 0, found: int = 0):
        super().__init__(diagnostic)
        self.expected = expected
        self.found = found


class CallDepthError(EvalError):
    """Too many nested function calls."""
    pass


class NativeError(EvalError):
    """A host-provided native function raised."""
    pass


# --- Lexer error codes ---

def error_invalid_token(lexeme: str, span: SourceSpan, source_line: str = None) -> LexerError:
    """E001: Invalid token."""
    diag = Diagnostic(
        code="E001",
        message=f"invalid token '{lexeme}'",
        span=span,
        source_line=source_line,
    )
    return LexerError(diag)


def error_unterminated_string(span: SourceSpan, source_line: str = None) -> LexerError:
    """E002: Unterminated string literal."""
    diag = Diagnostic(
        code="E002",
        message="unterminated string literal",
        span=span,
        source_line=source_line,
        hints=["string literals must be closed with a matching '\"'"],
    )
    return LexerError(diag)


def error_invalid_utf8(reason: str) -> LexerError:
    """E003: Source is not valid UTF-8."""
    diag = Diagnostic(
        code="E003",
        message=f"source is not valid UTF-8: {reason}",
    )
    return LexerError(diag)


def error_invalid_external_name(lexeme: str, span: SourceSpan, source_line: str = None) -> LexerError:
    """E004: Invalid external variable name."""
    diag = Diagnostic(
        code="E004",
        message=f"invalid external variable name '{lexeme}'",
        span=span,
        source_line=source_line,
        hints=["'$' must be followed by a letter or '_' and the name must not be a keyword"],
    )
    return LexerError(diag)


# --- Parser error codes ---

def error_unexpected_token(expected: str, found: str, span: SourceSpan,
                           source_line: str = None) -> ParserError:
    """E101: Unexpected token."""
    diag = Diagnostic(
        code="E101",
        message=f"expected {expected}, found {found}",
        span=span,
        source_line=source_line,
    )
    return ParserError(diag)


def error_unexpected_eof(expected: str, span: SourceSpan) -> ParserError:
    """E102: Unexpected end of input."""
    diag = Diagnostic(
        code="E102",
        message=f"unexpected end of input, expected {expected}",
        span=span,
    )
    return ParserError(diag)


def error_invalid_expression(found: str, span: SourceSpan, source_line: str = None) -> ParserError:
    """E103: Token cannot start an expression."""
    diag = Diagnostic(
        code="E103",
        message=f"invalid expression, found {found}",
        span=span,
        source_line=source_line,
    )
    return ParserError(diag)


def error_invalid_operator(found: str, span: SourceSpan, source_line: str = None) -> ParserError:
    """E104: Token is not a binary operator."""
    diag = Diagnostic(
        code="E104",
        message=f"invalid binary operator {found}",
        span=span,
        source_line=source_line,
        hints=["two operands cannot follow each other without an operator"],
    )
    return ParserError(diag)


def error_unterminated_list(closing: str, span: SourceSpan) -> ParserError:
    """E105: List reached end of input."""
    diag = Diagnostic(
        code="E105",
        message=f"unterminated list, expected '{closing}'",
        span=span,
    )
    return ParserError(diag)


def error_integer_out_of_range(lexeme: str, span: SourceSpan, source_line: str = None) -> ParserError:
    """E106: Integer literal does not fit in 64 bits."""
    diag = Diagnostic(
        code="E106",
        message=f"integer literal '{lexeme}' is out of range",
        span=span,
        source_line=source_line,
        hints=["integers are signed 64-bit values"],
    )
    return ParserError(diag)


def error_float_out_of_range(lexeme: str, span: SourceSpan, source_line: str = None) -> ParserError:
    """E106: Float literal overflows to infinity."""
    diag = Diagnostic(
        code="E106",
        message=f"float literal '{lexeme}' is out of range",
        span=span,
        source_line=source_line,
        hints=["floats are IEEE-754 doubles"],
    )
    return ParserError(diag)


def error_invalid_else(found: str, span: SourceSpan, source_line: str = None) -> ParserError:
    """E107: Else is not followed by a block or if."""
    diag = Diagnostic(
        code="E107",
        message=f"expected '{{' or 'if' after 'else', found {found}",
        span=span,
        source_line=source_line,
    )
    return ParserError(diag)


def error_parse_too_deep() -> ParserError:
    """E108: Source nests deeper than the parser can follow."""
    diag = Diagnostic(
        code="E108",
        message="expression nesting too deep",
    )
    return ParserError(diag)


# --- Runtime error codes ---

def error_invalid_operation(operation: str, *kinds: str) -> InvalidOperation:
    """E401: Operation not defined for the operand kinds."""
    if kinds:
        message = f"invalid {operation} operation for {' with '.join(kinds)}"
    else:
        message = f"invalid {operation} operation"
    diag = Diagnostic(code="E401", message=message)
    return InvalidOperation(diag, operation, kinds)


def error_non_boolean_condition(statement: str, kind: str) -> InvalidOperation:
    """E401: Loop or branch condition is not a Boolean."""
    diag = Diagnostic(
        code="E401",
        message=f"{statement} condition must be Boolean, found {kind}",
    )
    return InvalidOperation(diag, "condition", (kind,))


def error_index_out_of_range(kind: str, index: int, length: int) -> InvalidOperation:
    """E401: Index outside the bounds of an Array or String."""
    diag = Diagnostic(
        code="E401",
        message=f"index {index} out of range for {kind} of length {length}",
    )
    return InvalidOperation(diag, "index", (kind, "Integer"))


def error_division_by_zero(operation: str) -> DivisionByZero:
    """E402: Integer division or modulo by zero."""
    diag = Diagnostic(code="E402", message=f"integer {operation} by zero")
    return DivisionByZero(diag, operation, ("Integer", "Integer"))


def error_undefined_name(name: str, external: bool = False) -> NameError:
    """E403: Name not found."""
    shown = f"${name}" if external else name
    diag = Diagnostic(code="E403", message=f"undefined name '{shown}'")
    return NameError(diag, name)


def error_arity(name: str, expected: int, found: int) -> ArityError:
    """E404: Wrong number of arguments."""
    diag = Diagnostic(
        code="E404",
        message=f"function '{name}' expects {expected} argument(s), got {found}",
    )
    return ArityError(diag, expected, found)


def error_call_depth(limit: int) -> CallDepthError:
    """E405: Maximum call depth exceeded."""
    diag = Diagnostic(
        code="E405",
        message=f"maximum call depth of {limit} exceeded",
        hints=["raise max_call_depth on the execution context for deeper recursion"],
    )
    return CallDepthError(diag)


def error_native(name: str, exc: Exception) -> NativeError:
    """E406: Native function raised."""
    diag = Diagnostic(
        code="E406",
        message=f"native function '{name}' failed: {exc}",
    )
    return NativeError(diag)


def error_eval_too_deep() -> EvalError:
    """E407: Program nests deeper than the evaluator can follow."""
    diag = Diagnostic(
        code="E407",
        message="expression nesting too deep",
        hints=["split long operator chains across several statements"],
    )
    return EvalError(diag)
