"""
Abstract Syntax Tree (AST) node definitions for Quill.

The AST represents the structure of a parsed program, which the
evaluator walks directly. Nodes are plain dataclasses: each node owns
its children, and equality is deep and structural. Source spans are
carried for error reporting but never take part in equality.
"""

from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from typing import Optional, List, Dict, Union, Any
from abc import ABC
from .tokens import SourceSpan


# =============================================================================
# Base Classes
# =============================================================================

@dataclass
class AstNode(ABC):
    """Base class for all AST nodes."""
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False, kw_only=True)

    def accept(self, visitor: "AstVisitor") -> Any:
        """Accept a visitor for traversal."""
        method_name = f"visit_{self.__class__.__name__}"
        method = getattr(visitor, method_name, visitor.generic_visit)
        return method(self)


class AstVisitor(ABC):
    """Base class for AST visitors."""

    def generic_visit(self, node: AstNode) -> Any:
        """Default visit method."""
        raise NotImplementedError(f"No visitor for {node.__class__.__name__}")


# =============================================================================
# Operators
# =============================================================================

class Operator(Enum):
    """Operators, valued by their source spelling."""
    ASSIGN = "="
    OR = "||"
    AND = "&&"
    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    PLUS = "+"
    MINUS = "-"         # binary subtraction and prefix negation
    STAR = "*"
    SLASH = "/"
    PERCENT = "%"
    DOT = "."
    BANG = "!"
    INCREMENT = "++"
    DECREMENT = "--"

    def __str__(self) -> str:
        return self.value


class Precedence(IntEnum):
    """Binding strength, lowest to highest."""
    LOWEST = 0
    ASSIGN = 1
    LOGIC_OR = 2
    LOGIC_AND = 3
    EQUALITY = 4
    COMPARISON = 5
    TERM = 6
    FACTOR = 7
    PREFIX = 8
    POSTFIX = 9
    CALL = 10
    INDEX = 11
    ACCESS = 12
    PRIMARY = 13


class LiteralKind(Enum):
    """Kinds of literal written in source."""
    NULL = "Null"
    BOOLEAN = "Boolean"
    INTEGER = "Integer"
    FLOAT = "Float"
    STRING = "String"


# =============================================================================
# Expression Nodes
# =============================================================================

@dataclass
class Expression(AstNode):
    """Base class for all expressions."""
    pass


@dataclass
class Literal(Expression):
    """A literal value (null, bool, int, float, string)."""
    kind: LiteralKind
    value: Union[None, bool, int, float, str] = None


@dataclass
class Variable(Expression):
    """A reference to a declared variable or function."""
    name: str


@dataclass
class ExternalVariable(Expression):
    """A $name reference, resolved only in the host table."""
    name: str


@dataclass
class ArrayLiteral(Expression):
    """An array literal (e.g., [1, 2, 3])."""
    elements: List[Expression] = field(default_factory=list)


@dataclass
class IndexExpression(Expression):
    """Index access (e.g., items[0])."""
    object: Expression
    index: Expression


@dataclass
class CallExpression(Expression):
    """A function call (e.g., add(1, 2))."""
    callee: Expression
    arguments: List[Expression] = field(default_factory=list)


@dataclass
class BinaryExpression(Expression):
    """A binary operation, assignment and member access included."""
    operator: Operator
    left: Expression
    right: Expression


@dataclass
class PrefixExpression(Expression):
    """A prefix operation (e.g., -n, !flag)."""
    operator: Operator
    operand: Expression


@dataclass
class PostfixExpression(Expression):
    """A postfix update (e.g., i++)."""
    operator: Operator
    operand: Expression


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass
class Statement(AstNode):
    """Base class for all statements."""
    pass


@dataclass
class EmptyStatement(Statement):
    """A lone ';'."""
    pass


@dataclass
class LetStatement(Statement):
    """A variable declaration (e.g., let x = 1;)."""
    name: str
    value: Optional[Expression] = None


@dataclass
class Block(Statement):
    """A brace-delimited sequence of statements with its own scope."""
    statements: List[Statement] = field(default_factory=list)


@dataclass
class IfStatement(Statement):
    """An if statement with an optional else block or chained if."""
    condition: Expression
    then_branch: Block
    else_branch: Optional[Union[Block, "IfStatement"]] = None


@dataclass
class ForStatement(Statement):
    """A C-style for loop; every header clause is optional."""
    initializer: Optional[Statement]
    condition: Optional[Expression]
    increment: Optional[Expression]
    body: Statement


@dataclass
class ReturnStatement(Statement):
    """A return statement."""
    value: Optional[Expression] = None


@dataclass
class BreakStatement(Statement):
    pass


@dataclass
class ContinueStatement(Statement):
    pass


@dataclass
class ExpressionStatement(Statement):
    """An expression evaluated for its side effects."""
    expression: Expression


@dataclass
class FnStatement(Statement):
    """A function declaration.

    Syntax:
        fn name(a, b) {
            return a + b;
        }
    """
    name: str
    parameters: List[str]
    body: Block


# =============================================================================
# Program
# =============================================================================

@dataclass
class Program(AstNode):
    """A complete parsed program.

    Top-level function declarations live only in `functions`; every
    other top-level statement stays in `statements`, in source order.
    """
    statements: List[Statement] = field(default_factory=list)
    functions: Dict[str, FnStatement] = field(default_factory=dict)

    @classmethod
    def from_expression(cls, expr: Expression) -> "Program":
        """Wrap a single expression as `return expr;`."""
        return cls(statements=[ReturnStatement(expr, span=expr.span)], span=expr.span)


# =============================================================================
# Visitor Helpers
# =============================================================================

class PrintVisitor(AstVisitor):
    """Debug visitor that prints the AST structure."""

    def __init__(self, indent: int = 0, out=None):
        self.indent = indent
        self.out = out

    def _print(self, text: str) -> None:
        print("  " * self.indent + text, file=self.out)

    def _child(self, node: AstNode) -> None:
        PrintVisitor(self.indent + 2, self.out).generic_visit(node)

    def generic_visit(self, node: AstNode) -> None:
        self._print(f"{node.__class__.__name__}")
        for f in fields(node):
            if f.name == "span":
                continue
            value = getattr(node, f.name)
            if isinstance(value, AstNode):
                self._print(f"  {f.name}:")
                self._child(value)
            elif isinstance(value, list):
                self._print(f"  {f.name}: [")
                for item in value:
                    if isinstance(item, AstNode):
                        self._child(item)
                    else:
                        self._print(f"    {item!r}")
                self._print("  ]")
            elif isinstance(value, dict):
                self._print(f"  {f.name}: {{")
                for item in value.values():
                    self._child(item)
                self._print("  }")
            elif isinstance(value, Enum):
                self._print(f"  {f.name}: {value.name}")
            else:
                self._print(f"  {f.name}: {value!r}")


def print_ast(node: AstNode, out=None) -> None:
    """Print an AST node for debugging."""
    PrintVisitor(out=out).generic_visit(node)
