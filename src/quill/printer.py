"""
Render an AST back to Quill source.

Binary and prefix operations are always parenthesised, so the output
parses back to an equal tree without any knowledge of precedence.
"""

from decimal import Decimal

from .ast import (
    AstNode, AstVisitor, LiteralKind,
    Literal, Variable, ExternalVariable, ArrayLiteral, IndexExpression,
    CallExpression, BinaryExpression, PrefixExpression, PostfixExpression,
    EmptyStatement, LetStatement, Block, IfStatement, ForStatement,
    ReturnStatement, BreakStatement, ContinueStatement,
    ExpressionStatement, FnStatement, Program,
)

INDENT = "    "

STRING_ESCAPES = {
    '\\': '\\\\',
    '"': '\\"',
    '\n': '\\n',
    '\t': '\\t',
    '\r': '\\r',
}


def format_float(value: float) -> str:
    """Positional notation that always lexes as a float literal."""
    text = format(Decimal(repr(value)), 'f')
    if '.' not in text:
        text += '.0'
    return text


def quote_string(value: str) -> str:
    return '"' + ''.join(STRING_ESCAPES.get(ch, ch) for ch in value) + '"'


class SourceRenderer(AstVisitor):
    """Visitor producing source text for any node."""

    def __init__(self):
        self.level = 0

    def _indent(self) -> str:
        return INDENT * self.level

    def _list(self, nodes) -> str:
        return ", ".join(n.accept(self) for n in nodes)

    # --- Expressions ---

    def visit_Literal(self, node: Literal) -> str:
        if node.kind == LiteralKind.NULL:
            return "null"
        if node.kind == LiteralKind.BOOLEAN:
            return "true" if node.value else "false"
        if node.kind == LiteralKind.INTEGER:
            return str(node.value)
        if node.kind == LiteralKind.FLOAT:
            return format_float(node.value)
        return quote_string(node.value)

    def visit_Variable(self, node: Variable) -> str:
        return node.name

    def visit_ExternalVariable(self, node: ExternalVariable) -> str:
        return f"${node.name}"

    def visit_ArrayLiteral(self, node: ArrayLiteral) -> str:
        return f"[{self._list(node.elements)}]"

    def visit_IndexExpression(self, node: IndexExpression) -> str:
        return f"{node.object.accept(self)}[{node.index.accept(self)}]"

    def visit_CallExpression(self, node: CallExpression) -> str:
        return f"{node.callee.accept(self)}({self._list(node.arguments)})"

    def visit_BinaryExpression(self, node: BinaryExpression) -> str:
        return f"({node.left.accept(self)} {node.operator} {node.right.accept(self)})"

    def visit_PrefixExpression(self, node: PrefixExpression) -> str:
        return f"({node.operator}{node.operand.accept(self)})"

    def visit_PostfixExpression(self, node: PostfixExpression) -> str:
        return f"{node.operand.accept(self)}{node.operator}"

    # --- Statements ---

    def visit_EmptyStatement(self, node: EmptyStatement) -> str:
        return ";"

    def visit_LetStatement(self, node: LetStatement) -> str:
        if node.value is None:
            return f"let {node.name};"
        return f"let {node.name} = {node.value.accept(self)};"

    def visit_Block(self, node: Block) -> str:
        if not node.statements:
            return "{}"
        self.level += 1
        lines = [self._indent() + stmt.accept(self) for stmt in node.statements]
        self.level -= 1
        return "{\n" + "\n".join(lines) + "\n" + self._indent() + "}"

    def visit_IfStatement(self, node: IfStatement) -> str:
        text = f"if {node.condition.accept(self)} {node.then_branch.accept(self)}"
        if node.else_branch is not None:
            text += f" else {node.else_branch.accept(self)}"
        return text

    def visit_ForStatement(self, node: ForStatement) -> str:
        init = node.initializer.accept(self) if node.initializer is not None else ";"
        cond = node.condition.accept(self) if node.condition is not None else ""
        incr = node.increment.accept(self) if node.increment is not None else ""
        return f"for ({init} {cond}; {incr}) {node.body.accept(self)}"

    def visit_ReturnStatement(self, node: ReturnStatement) -> str:
        if node.value is None:
            return "return;"
        return f"return {node.value.accept(self)};"

    def visit_BreakStatement(self, node: BreakStatement) -> str:
        return "break;"

    def visit_ContinueStatement(self, node: ContinueStatement) -> str:
        return "continue;"

    def visit_ExpressionStatement(self, node: ExpressionStatement) -> str:
        return f"{node.expression.accept(self)};"

    def visit_FnStatement(self, node: FnStatement) -> str:
        params = ", ".join(node.parameters)
        return f"fn {node.name}({params}) {node.body.accept(self)}"

    def visit_Program(self, node: Program) -> str:
        parts = [fn.accept(self) for fn in node.functions.values()]
        parts.extend(stmt.accept(self) for stmt in node.statements)
        return "\n".join(parts) + "\n" if parts else ""


def render(node: AstNode) -> str:
    """Render a program, statement or expression as source text."""
    return node.accept(SourceRenderer())
