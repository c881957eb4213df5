"""
Quill - a small imperative scripting language.

This package provides:
- Lexer: Tokenizes source code on demand
- Parser: Builds an AST by precedence climbing
- Printer: Renders an AST back to source
- Evaluator: Walks the AST against an execution context

Usage:
    from quill import parse, evaluate, run

    program = parse('''
        fn fib(n) {
            if n < 2 { return n; }
            return fib(n - 1) + fib(n - 2);
        }
        return fib($n);
    ''')
    result = evaluate(program, bindings={"n": 10})
    print(result)   # 55

    # Or in one step
    run('return $greeting + ", world";', bindings={"greeting": "hello"})
"""

import logging

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
    parse_expression,
)

from .ast import (
    # Base
    AstNode,
    AstVisitor,
    Operator,
    Precedence,
    LiteralKind,
    # Expressions
    Expression,
    Literal,
    Variable,
    ExternalVariable,
    ArrayLiteral,
    IndexExpression,
    CallExpression,
    BinaryExpression,
    PrefixExpression,
    PostfixExpression,
    # Statements
    Statement,
    EmptyStatement,
    LetStatement,
    Block,
    IfStatement,
    ForStatement,
    ReturnStatement,
    BreakStatement,
    ContinueStatement,
    ExpressionStatement,
    FnStatement,
    Program,
    # Helpers
    PrintVisitor,
    print_ast,
)

from .printer import render

from .errors import (
    ErrorSeverity,
    Diagnostic,
    QuillError,
    LexerError,
    ParserError,
    EvalError,
    InvalidOperation,
    DivisionByZero,
    NameError,
    ArityError,
    CallDepthError,
    NativeError,
)

from .runtime import (
    # Evaluator
    Evaluator,
    Signal,
    ControlFlow,
    evaluate,
    run,
    # Values
    Value,
    ValueKind,
    Comparison,
    wrap_value,
    unwrap_value,
    inspect,
    # Context
    Frame,
    ExecutionContext,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Tokens
    'Token',
    'TokenType',
    'SourceLocation',
    'SourceSpan',
    'KEYWORDS',

    # Lexer
    'Lexer',
    'tokenize',

    # Parser
    'Parser',
    'parse',
    'parse_expression',

    # AST nodes
    'AstNode',
    'AstVisitor',
    'Operator',
    'Precedence',
    'LiteralKind',
    'Expression',
    'Literal',
    'Variable',
    'ExternalVariable',
    'ArrayLiteral',
    'IndexExpression',
    'CallExpression',
    'BinaryExpression',
    'PrefixExpression',
    'PostfixExpression',
    'Statement',
    'EmptyStatement',
    'LetStatement',
    'Block',
    'IfStatement',
    'ForStatement',
    'ReturnStatement',
    'BreakStatement',
    'ContinueStatement',
    'ExpressionStatement',
    'FnStatement',
    'Program',
    'PrintVisitor',
    'print_ast',

    # Printer
    'render',

    # Errors
    'ErrorSeverity',
    'Diagnostic',
    'QuillError',
    'LexerError',
    'ParserError',
    'EvalError',
    'InvalidOperation',
    'DivisionByZero',
    'NameError',
    'ArityError',
    'CallDepthError',
    'NativeError',

    # Runtime
    'Evaluator',
    'Signal',
    'ControlFlow',
    'evaluate',
    'run',
    'Value',
    'ValueKind',
    'Comparison',
    'wrap_value',
    'unwrap_value',
    'inspect',
    'Frame',
    'ExecutionContext',
]
