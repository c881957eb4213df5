"""
Precedence-climbing parser for Quill.

Pulls tokens from the lexer one at a time and builds an Abstract Syntax
Tree (AST). Any structurally unexpected token is fatal: there is no
error recovery and no partial tree.
"""

import logging
from typing import List, Optional, Callable, TypeVar, Union

import numpy as np

from .tokens import Token, TokenType, SourceSpan
from .lexer import Lexer
from .ast import (
    Operator, Precedence, LiteralKind,
    # Expressions
    Expression, Literal, Variable, ExternalVariable, ArrayLiteral,
    IndexExpression, CallExpression, BinaryExpression,
    PrefixExpression, PostfixExpression,
    # Statements
    Statement, EmptyStatement, LetStatement, Block, IfStatement,
    ForStatement, ReturnStatement, BreakStatement, ContinueStatement,
    ExpressionStatement, FnStatement,
    Program,
)
from .errors import (
    LexerError,
    error_invalid_token,
    error_unterminated_string,
    error_invalid_external_name,
    error_unexpected_token,
    error_unexpected_eof,
    error_invalid_expression,
    error_invalid_operator,
    error_unterminated_list,
    error_integer_out_of_range,
    error_float_out_of_range,
    error_invalid_else,
    error_parse_too_deep,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

INT64_MAX = int(np.iinfo(np.int64).max)

ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    '\\': '\\',
    '"': '"',
}

# Operand tokens bind tighter than any operator, so two operands in a
# row are reported as an invalid binary operator.
OPERAND_TOKENS = {
    TokenType.INTEGER,
    TokenType.FLOAT,
    TokenType.STRING,
    TokenType.IDENTIFIER,
    TokenType.EXTERNAL_IDENTIFIER,
    TokenType.TRUE,
    TokenType.FALSE,
    TokenType.NULL,
}


def decode_string(lexeme: str) -> str:
    """Decode a quoted string lexeme, resolving backslash escapes.

    Unknown escapes keep both the backslash and the character.
    """
    body = lexeme[1:-1]
    chars = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == '\\' and i + 1 < len(body):
            nxt = body[i + 1]
            chars.append(ESCAPES.get(nxt, '\\' + nxt))
            i += 2
        else:
            chars.append(ch)
            i += 1
    return ''.join(chars)


class Parser:
    """
    Precedence-climbing parser for Quill.

    Usage:
        parser = Parser(source)
        program = parser.parse()

    Expressions use precedence climbing over (lowest to highest):
        =                       (left-associative)
        ||
        &&
        == !=
        < <= > >=
        + -
        * / %
        prefix ! -              (operand extends as far as possible)
        postfix ++ --
        call (), index [], access .
    """

    # Operator precedence levels (higher = tighter binding)
    PRECEDENCE = {
        TokenType.ASSIGN: Precedence.ASSIGN,
        TokenType.OR: Precedence.LOGIC_OR,
        TokenType.AND: Precedence.LOGIC_AND,
        TokenType.EQ: Precedence.EQUALITY,
        TokenType.NE: Precedence.EQUALITY,
        TokenType.LT: Precedence.COMPARISON,
        TokenType.LE: Precedence.COMPARISON,
        TokenType.GT: Precedence.COMPARISON,
        TokenType.GE: Precedence.COMPARISON,
        TokenType.PLUS: Precedence.TERM,
        TokenType.MINUS: Precedence.TERM,
        TokenType.STAR: Precedence.FACTOR,
        TokenType.SLASH: Precedence.FACTOR,
        TokenType.PERCENT: Precedence.FACTOR,
        TokenType.INCREMENT: Precedence.POSTFIX,
        TokenType.DECREMENT: Precedence.POSTFIX,
        TokenType.LPAREN: Precedence.CALL,
        TokenType.LBRACKET: Precedence.INDEX,
        TokenType.DOT: Precedence.ACCESS,
        **{t: Precedence.PRIMARY for t in OPERAND_TOKENS},
    }

    BINARY_OPERATORS = {
        TokenType.ASSIGN: Operator.ASSIGN,
        TokenType.OR: Operator.OR,
        TokenType.AND: Operator.AND,
        TokenType.EQ: Operator.EQ,
        TokenType.NE: Operator.NE,
        TokenType.LT: Operator.LT,
        TokenType.LE: Operator.LE,
        TokenType.GT: Operator.GT,
        TokenType.GE: Operator.GE,
        TokenType.PLUS: Operator.PLUS,
        TokenType.MINUS: Operator.MINUS,
        TokenType.STAR: Operator.STAR,
        TokenType.SLASH: Operator.SLASH,
        TokenType.PERCENT: Operator.PERCENT,
        TokenType.DOT: Operator.DOT,
    }

    PREFIX_OPERATORS = {
        TokenType.BANG: Operator.BANG,
        TokenType.MINUS: Operator.MINUS,
    }

    POSTFIX_OPERATORS = {
        TokenType.INCREMENT: Operator.INCREMENT,
        TokenType.DECREMENT: Operator.DECREMENT,
    }

    def __init__(self, source: Union[str, bytes], filename: Optional[str] = None):
        self.lexer = Lexer(source, filename)
        self.filename = filename
        self.functions: dict[str, FnStatement] = {}
        self._token: Optional[Token] = None      # One token of look-ahead
        self._previous: Optional[Token] = None   # Last consumed token

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _current(self) -> Token:
        """Get the look-ahead token, pulling it from the lexer if needed."""
        if self._token is None:
            token = self.lexer.next_token()
            if token.type == TokenType.INVALID:
                raise self._invalid_token(token)
            self._token = token
        return self._token

    def _invalid_token(self, token: Token) -> LexerError:
        source_line = self._source_line(token)
        if token.lexeme.startswith('"'):
            return error_unterminated_string(token.span, source_line)
        if token.lexeme.startswith('$'):
            return error_invalid_external_name(token.lexeme, token.span, source_line)
        return error_invalid_token(token.lexeme, token.span, source_line)

    def _source_line(self, token: Token) -> Optional[str]:
        return self.lexer.get_source_line(token.span.start.line)

    def _is_at_end(self) -> bool:
        return self._current().type == TokenType.EOF

    def _check(self, token_type: TokenType) -> bool:
        """Check if current token is of given type."""
        return self._current().type == token_type

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        self._previous = token
        if token.type != TokenType.EOF:
            self._token = None
        return token

    def _consume(self, token_type: TokenType, expected: str) -> Token:
        """Consume token of expected type, or raise error."""
        if self._check(token_type):
            return self._advance()
        self._error(expected)

    def _match(self, *token_types: TokenType) -> Optional[Token]:
        """Consume token if it matches any of the given types."""
        if self._current().type in token_types:
            return self._advance()
        return None

    @staticmethod
    def _describe(token: Token) -> str:
        if token.type == TokenType.EOF:
            return "end of input"
        return f"'{token.lexeme}'"

    def _error(self, expected: str) -> None:
        """Raise a parser error."""
        token = self._current()
        if token.type == TokenType.EOF:
            raise error_unexpected_eof(expected, token.span)
        raise error_unexpected_token(expected, self._describe(token), token.span,
                                     self._source_line(token))

    def _span_from(self, start: Union[Token, Expression]) -> SourceSpan:
        """Create a span from a start token or node to the last consumed token."""
        return SourceSpan(start.span.start, self._previous.span.end)

    def _precedence(self, token: Token) -> Precedence:
        return self.PRECEDENCE.get(token.type, Precedence.LOWEST)

    def _parse_list(self, end: TokenType, closing: str,
                    parse_item: Callable[[], T]) -> List[T]:
        """Parse comma-separated items up to `end`; a trailing comma is allowed.

        The opening token must already be consumed.
        """
        items = []
        while True:
            if self._match(end):
                return items
            if self._is_at_end():
                raise error_unterminated_list(closing, self._current().span)
            items.append(parse_item())
            if self._match(TokenType.COMMA) or self._check(end):
                continue
            if self._is_at_end():
                raise error_unterminated_list(closing, self._current().span)
            self._error(f"',' or '{closing}'")

    # =========================================================================
    # Expression Parsing
    # =========================================================================

    def parse_expression(self) -> Expression:
        """Parse one expression at the lowest precedence."""
        return self._parse_expression(Precedence.LOWEST)

    def parse_expression_only(self) -> Expression:
        """Parse one expression that must make up the whole input."""
        try:
            expr = self.parse_expression()
        except RecursionError as e:
            raise error_parse_too_deep() from e
        self._consume(TokenType.EOF, "end of input")
        return expr

    def _parse_expression(self, min_precedence: Precedence) -> Expression:
        """Precedence climbing: extend `left` while the next operator binds tighter."""
        left = self._parse_prefix()
        while self._precedence(self._current()) > min_precedence:
            left = self._parse_infix(left)
        return left

    def _parse_infix(self, left: Expression) -> Expression:
        """Parse the operator after `left` together with its right-hand side."""
        token = self._current()

        if token.type in OPERAND_TOKENS:
            raise error_invalid_operator(self._describe(token), token.span,
                                         self._source_line(token))

        if token.type == TokenType.LPAREN:
            self._advance()
            arguments = self._parse_list(TokenType.RPAREN, ")", self.parse_expression)
            return CallExpression(left, arguments, span=self._span_from(left))

        if token.type == TokenType.LBRACKET:
            self._advance()
            index = self.parse_expression()
            self._consume(TokenType.RBRACKET, "']'")
            return IndexExpression(left, index, span=self._span_from(left))

        if token.type in self.POSTFIX_OPERATORS:
            self._advance()
            return PostfixExpression(self.POSTFIX_OPERATORS[token.type], left,
                                     span=self._span_from(left))

        operator = self.BINARY_OPERATORS[token.type]
        self._advance()
        right = self._parse_expression(self.PRECEDENCE[token.type])
        return BinaryExpression(operator, left, right, span=self._span_from(left))

    def _parse_prefix(self) -> Expression:
        """Parse a primary expression or a prefix operation."""
        token = self._current()
        t = token.type

        if t == TokenType.INTEGER:
            self._advance()
            value = int(token.lexeme)
            if value > INT64_MAX:
                raise error_integer_out_of_range(token.lexeme, token.span,
                                                 self._source_line(token))
            return Literal(LiteralKind.INTEGER, value, span=token.span)

        if t == TokenType.FLOAT:
            self._advance()
            value = float(token.lexeme)
            if not np.isfinite(value):
                raise error_float_out_of_range(token.lexeme, token.span,
                                               self._source_line(token))
            return Literal(LiteralKind.FLOAT, value, span=token.span)

        if t == TokenType.STRING:
            self._advance()
            return Literal(LiteralKind.STRING, decode_string(token.lexeme), span=token.span)

        if t in (TokenType.TRUE, TokenType.FALSE):
            self._advance()
            return Literal(LiteralKind.BOOLEAN, t == TokenType.TRUE, span=token.span)

        if t == TokenType.NULL:
            self._advance()
            return Literal(LiteralKind.NULL, None, span=token.span)

        if t == TokenType.IDENTIFIER:
            self._advance()
            return Variable(token.lexeme, span=token.span)

        if t == TokenType.EXTERNAL_IDENTIFIER:
            self._advance()
            return ExternalVariable(token.lexeme[1:], span=token.span)

        if t == TokenType.LPAREN:
            self._advance()
            expr = self.parse_expression()
            self._consume(TokenType.RPAREN, "')'")
            return expr

        if t == TokenType.LBRACKET:
            self._advance()
            elements = self._parse_list(TokenType.RBRACKET, "]", self.parse_expression)
            return ArrayLiteral(elements, span=self._span_from(token))

        if t in self.PREFIX_OPERATORS:
            self._advance()
            operand = self.parse_expression()
            return PrefixExpression(self.PREFIX_OPERATORS[t], operand,
                                    span=self._span_from(token))

        if t == TokenType.EOF:
            raise error_unexpected_eof("expression", token.span)
        raise error_invalid_expression(self._describe(token), token.span,
                                       self._source_line(token))

    # =========================================================================
    # Statement Parsing
    # =========================================================================

    def parse_statement(self) -> Statement:
        """Parse a single statement."""
        t = self._current().type

        if t == TokenType.FN:
            return self._parse_fn_statement()
        if t == TokenType.LET:
            return self._parse_let_statement()
        if t == TokenType.IF:
            return self._parse_if_statement()
        if t == TokenType.FOR:
            return self._parse_for_statement()
        if t == TokenType.RETURN:
            return self._parse_return_statement()
        if t == TokenType.BREAK:
            start = self._advance()
            self._consume(TokenType.SEMICOLON, "';'")
            return BreakStatement(span=self._span_from(start))
        if t == TokenType.CONTINUE:
            start = self._advance()
            self._consume(TokenType.SEMICOLON, "';'")
            return ContinueStatement(span=self._span_from(start))
        if t == TokenType.SEMICOLON:
            start = self._advance()
            return EmptyStatement(span=start.span)
        if t == TokenType.LBRACE:
            return self._parse_block()
        return self._parse_expression_statement()

    def _parse_expression_statement(self) -> ExpressionStatement:
        start = self._current()
        expr = self.parse_expression()
        self._consume(TokenType.SEMICOLON, "';'")
        return ExpressionStatement(expr, span=self._span_from(start))

    def _parse_let_statement(self) -> LetStatement:
        """Parse `let name [= value];`."""
        start = self._advance()  # consume 'let'
        name = self._consume(TokenType.IDENTIFIER, "variable name").lexeme

        value = None
        if self._match(TokenType.ASSIGN):
            value = self.parse_expression()

        self._consume(TokenType.SEMICOLON, "';'")
        return LetStatement(name, value, span=self._span_from(start))

    def _parse_return_statement(self) -> ReturnStatement:
        start = self._advance()  # consume 'return'
        value = None
        if not self._check(TokenType.SEMICOLON):
            value = self.parse_expression()
        self._consume(TokenType.SEMICOLON, "';'")
        return ReturnStatement(value, span=self._span_from(start))

    def _parse_if_statement(self) -> IfStatement:
        """Parse `if cond { ... } [else { ... } | else if ...]`."""
        start = self._advance()  # consume 'if'
        condition = self.parse_expression()
        then_branch = self._parse_block()

        else_branch = None
        if self._match(TokenType.ELSE):
            if self._check(TokenType.LBRACE):
                else_branch = self._parse_block()
            elif self._check(TokenType.IF):
                else_branch = self._parse_if_statement()
            else:
                token = self._current()
                raise error_invalid_else(self._describe(token), token.span,
                                         self._source_line(token))

        return IfStatement(condition, then_branch, else_branch, span=self._span_from(start))

    def _parse_for_statement(self) -> ForStatement:
        """Parse a for loop.

        Two header forms are accepted:
            for (init; cond; incr) statement
            for init; cond; incr { ... }

        A leading '(' always selects the first form, so a paren-less
        header cannot open its initializer with a parenthesized group.
        """
        start = self._advance()  # consume 'for'
        parenthesized = self._match(TokenType.LPAREN) is not None

        # Initializer consumes its own ';'
        initializer = None
        if self._check(TokenType.LET):
            initializer = self._parse_let_statement()
        elif not self._match(TokenType.SEMICOLON):
            initializer = self._parse_expression_statement()

        condition = None
        if not self._check(TokenType.SEMICOLON):
            condition = self.parse_expression()
        self._consume(TokenType.SEMICOLON, "';'")

        closing = TokenType.RPAREN if parenthesized else TokenType.LBRACE
        increment = None
        if not self._check(closing):
            increment = self.parse_expression()

        if parenthesized:
            self._consume(TokenType.RPAREN, "')'")
            body = self.parse_statement()
        else:
            body = self._parse_block()

        return ForStatement(initializer, condition, increment, body,
                            span=self._span_from(start))

    def _parse_block(self) -> Block:
        """Parse a brace-delimited block."""
        start = self._consume(TokenType.LBRACE, "'{'")
        statements = []

        while not self._check(TokenType.RBRACE):
            if self._is_at_end():
                self._error("'}'")
            statements.append(self.parse_statement())

        self._consume(TokenType.RBRACE, "'}'")
        return Block(statements, span=self._span_from(start))

    def _parse_parameter(self) -> str:
        return self._consume(TokenType.IDENTIFIER, "parameter name").lexeme

    def _parse_fn_statement(self) -> FnStatement:
        """Parse a function declaration and register it in the function table."""
        start = self._advance()  # consume 'fn'
        name = self._consume(TokenType.IDENTIFIER, "function name").lexeme

        self._consume(TokenType.LPAREN, "'('")
        parameters = self._parse_list(TokenType.RPAREN, ")", self._parse_parameter)
        body = self._parse_block()

        fn = FnStatement(name, parameters, body, span=self._span_from(start))
        if name in self.functions:
            logger.warning("function '%s' at %s replaces an earlier declaration",
                           name, fn.span.start)
        else:
            logger.debug("hoisted function '%s' with %d parameter(s)", name, len(parameters))
        self.functions[name] = fn
        return fn

    # =========================================================================
    # Program Parsing
    # =========================================================================

    def parse(self) -> Program:
        """Parse a complete program.

        Top-level function declarations are moved into the function
        table; all other statements are kept in order.
        """
        start = self._current()
        statements = []

        try:
            while not self._is_at_end():
                stmt = self.parse_statement()
                if not isinstance(stmt, FnStatement):
                    statements.append(stmt)
        except RecursionError as e:
            raise error_parse_too_deep() from e

        end = self._current()
        return Program(statements, dict(self.functions),
                       span=SourceSpan(start.span.start, end.span.end))


def parse(source: Union[str, bytes], filename: Optional[str] = None) -> Program:
    """
    Convenience function to parse source code into a program.

    Args:
        source: The source code to parse
        filename: Optional filename for error messages

    Returns:
        Parsed Program AST

    Raises:
        LexerError: If the source contains an invalid token
        ParserError: If parsing fails
    """
    return Parser(source, filename).parse()


def parse_expression(source: Union[str, bytes], filename: Optional[str] = None) -> Expression:
    """Parse source holding exactly one expression."""
    parser = Parser(source, filename)
    return parser.parse_expression_only()
