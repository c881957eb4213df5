"""
Tree-walking evaluator for Quill programs.

Statements produce a ControlFlow signal, expressions produce a Value.
Break, continue and return travel up as signals rather than exceptions;
exceptions are reserved for errors.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional, Union

from .values import (
    Value, ValueKind, Comparison,
    null_val, bool_val, int_val, float_val, string_val, array_val, wrap_value,
    add, sub, mul, div, mod, compare, index,
    negate, increment, decrement,
    logical_not, logical_and, logical_or,
)
from .context import ExecutionContext, DEFAULT_MAX_CALL_DEPTH

from ..ast import (
    Program, Operator, LiteralKind,
    Statement, EmptyStatement, LetStatement, Block, IfStatement,
    ForStatement, ReturnStatement, BreakStatement, ContinueStatement,
    ExpressionStatement, FnStatement,
    Expression, Literal, Variable, ExternalVariable, ArrayLiteral,
    IndexExpression, CallExpression, BinaryExpression,
    PrefixExpression, PostfixExpression,
)
from ..errors import (
    QuillError,
    EvalError,
    error_invalid_operation,
    error_non_boolean_condition,
    error_arity,
    error_native,
    error_eval_too_deep,
)

logger = logging.getLogger(__name__)


class Signal(Enum):
    """How a statement finished."""
    NONE = "none"
    BREAK = "break"
    CONTINUE = "continue"
    RETURN = "return"


@dataclass(frozen=True)
class ControlFlow:
    """A statement outcome; `value` is only set for RETURN."""
    signal: Signal
    value: Optional[Value] = None


NORMAL = ControlFlow(Signal.NONE)
BREAK = ControlFlow(Signal.BREAK)
CONTINUE = ControlFlow(Signal.CONTINUE)


ARITHMETIC = {
    Operator.PLUS: add,
    Operator.MINUS: sub,
    Operator.STAR: mul,
    Operator.SLASH: div,
    Operator.PERCENT: mod,
    Operator.AND: logical_and,
    Operator.OR: logical_or,
}

COMPARISONS = {
    Operator.EQ: (Comparison.EQUAL,),
    Operator.NE: (Comparison.LESS, Comparison.GREATER, Comparison.UNORDERED),
    Operator.LT: (Comparison.LESS,),
    Operator.LE: (Comparison.LESS, Comparison.EQUAL),
    Operator.GT: (Comparison.GREATER,),
    Operator.GE: (Comparison.GREATER, Comparison.EQUAL),
}


class Evaluator:
    """
    Tree-walking evaluator.

    Evaluates AST nodes by dispatching to node-specific methods against a
    single ExecutionContext.
    """

    def __init__(self, context: ExecutionContext):
        self.context = context

    # =========================================================================
    # Program
    # =========================================================================

    def run(self) -> Value:
        """Run the program's top-level statements in the global frame.

        The first return ends the run with its value; otherwise the
        result is null. A stray break or continue also ends the run.
        """
        try:
            for stmt in self.context.program.statements:
                flow = self.execute(stmt)
                if flow.signal == Signal.RETURN:
                    return flow.value
                if flow.signal != Signal.NONE:
                    break
        except RecursionError as e:
            raise error_eval_too_deep() from e
        return null_val()

    # =========================================================================
    # Statements
    # =========================================================================

    def execute(self, stmt: Statement) -> ControlFlow:
        """Execute a statement."""
        if isinstance(stmt, ExpressionStatement):
            self.evaluate(stmt.expression)
            return NORMAL
        elif isinstance(stmt, LetStatement):
            return self._execute_let(stmt)
        elif isinstance(stmt, Block):
            return self._execute_block(stmt)
        elif isinstance(stmt, IfStatement):
            return self._execute_if(stmt)
        elif isinstance(stmt, ForStatement):
            return self._execute_for(stmt)
        elif isinstance(stmt, ReturnStatement):
            return self._execute_return(stmt)
        elif isinstance(stmt, BreakStatement):
            return BREAK
        elif isinstance(stmt, ContinueStatement):
            return CONTINUE
        elif isinstance(stmt, (EmptyStatement, FnStatement)):
            # Declarations were hoisted by the parser
            return NORMAL
        raise error_invalid_operation(f"{type(stmt).__name__} execute")

    def _execute_let(self, stmt: LetStatement) -> ControlFlow:
        value = self.evaluate(stmt.value) if stmt.value is not None else null_val()
        self.context.declare(stmt.name, value)
        return NORMAL

    def _execute_block(self, block: Block) -> ControlFlow:
        """Execute a block in its own frame, stopping at the first signal."""
        with self.context.new_scope("block"):
            for stmt in block.statements:
                flow = self.execute(stmt)
                if flow.signal != Signal.NONE:
                    return flow
        return NORMAL

    def _execute_if(self, stmt: IfStatement) -> ControlFlow:
        if self._condition(stmt.condition, "if"):
            return self._execute_block(stmt.then_branch)
        if stmt.else_branch is not None:
            return self.execute(stmt.else_branch)
        return NORMAL

    def _execute_for(self, stmt: ForStatement) -> ControlFlow:
        """Execute a for loop; the initializer binds in the enclosing scope."""
        if stmt.initializer is not None:
            self.execute(stmt.initializer)

        while True:
            if stmt.condition is not None and not self._condition(stmt.condition, "for"):
                break
            flow = self.execute(stmt.body)
            if flow.signal == Signal.BREAK:
                break
            if flow.signal == Signal.RETURN:
                return flow
            if stmt.increment is not None:
                self.evaluate(stmt.increment)
        return NORMAL

    def _execute_return(self, stmt: ReturnStatement) -> ControlFlow:
        value = self.evaluate(stmt.value) if stmt.value is not None else null_val()
        return ControlFlow(Signal.RETURN, value)

    def _condition(self, expr: Expression, statement: str) -> bool:
        value = self.evaluate(expr)
        if value.kind != ValueKind.BOOLEAN:
            raise error_non_boolean_condition(statement, value.kind.value).locate(
                expr.span, self.context.source_line(expr.span))
        return value.data

    # =========================================================================
    # Expressions
    # =========================================================================

    def evaluate(self, expr: Expression) -> Value:
        """Evaluate an expression; runtime errors pick up the node's location."""
        try:
            return self._dispatch(expr)
        except EvalError as exc:
            exc.locate(expr.span, self.context.source_line(expr.span))
            raise

    def _dispatch(self, expr: Expression) -> Value:
        if isinstance(expr, Literal):
            return self._eval_literal(expr)
        elif isinstance(expr, Variable):
            return self.context.lookup(expr.name)
        elif isinstance(expr, ExternalVariable):
            return self.context.lookup_external(expr.name)
        elif isinstance(expr, ArrayLiteral):
            return array_val([self.evaluate(e) for e in expr.elements])
        elif isinstance(expr, IndexExpression):
            return index(self.evaluate(expr.object), self.evaluate(expr.index))
        elif isinstance(expr, CallExpression):
            return self._eval_call(expr)
        elif isinstance(expr, BinaryExpression):
            return self._eval_binary(expr)
        elif isinstance(expr, PrefixExpression):
            return self._eval_prefix(expr)
        elif isinstance(expr, PostfixExpression):
            return self._eval_postfix(expr)
        raise error_invalid_operation(f"{type(expr).__name__} evaluate")

    def _eval_literal(self, lit: Literal) -> Value:
        if lit.kind == LiteralKind.NULL:
            return null_val()
        elif lit.kind == LiteralKind.BOOLEAN:
            return bool_val(lit.value)
        elif lit.kind == LiteralKind.INTEGER:
            return int_val(lit.value)
        elif lit.kind == LiteralKind.FLOAT:
            return float_val(lit.value)
        return string_val(lit.value)

    def _eval_binary(self, op: BinaryExpression) -> Value:
        if op.operator == Operator.ASSIGN:
            return self._eval_assign(op)
        if op.operator == Operator.DOT:
            raise error_invalid_operation("access")

        # Both operands are always evaluated, && and || included
        left = self.evaluate(op.left)
        right = self.evaluate(op.right)

        if op.operator in ARITHMETIC:
            return ARITHMETIC[op.operator](left, right)
        return bool_val(compare(left, right) in COMPARISONS[op.operator])

    def _eval_assign(self, op: BinaryExpression) -> Value:
        """Rebind a variable; only a bare name is an assignable target."""
        if not isinstance(op.left, Variable):
            raise error_invalid_operation("assign")
        value = self.evaluate(op.right)
        self.context.assign(op.left.name, value)
        return value

    def _eval_prefix(self, op: PrefixExpression) -> Value:
        operand = self.evaluate(op.operand)
        if op.operator == Operator.MINUS:
            return negate(operand)
        return logical_not(operand)

    def _eval_postfix(self, op: PostfixExpression) -> Value:
        """`x++` / `x--` rebind x to a new value and yield it."""
        update = increment if op.operator == Operator.INCREMENT else decrement
        if not isinstance(op.operand, Variable):
            raise error_invalid_operation(update.__name__)
        value = update(self.context.lookup(op.operand.name))
        self.context.assign(op.operand.name, value)
        return value

    # =========================================================================
    # Calls
    # =========================================================================

    def _eval_call(self, call: CallExpression) -> Value:
        callee = self.evaluate(call.callee)

        if callee.kind == ValueKind.USER_FUNCTION:
            args = [self.evaluate(arg) for arg in call.arguments]
            return self._call_user_function(callee.data, args)

        if callee.kind == ValueKind.NATIVE_FUNCTION:
            args = [self.evaluate(arg) for arg in call.arguments]
            return self._call_native_function(callee, args)

        raise error_invalid_operation("call", callee.kind.value)

    def _call_user_function(self, fn: FnStatement, args: List[Value]) -> Value:
        if len(args) != len(fn.parameters):
            raise error_arity(fn.name, len(fn.parameters), len(args))

        logger.debug("calling '%s' at depth %d", fn.name, self.context.call_depth + 1)
        with self.context.call_scope(fn.name, dict(zip(fn.parameters, args))):
            flow = self._execute_block(fn.body)

        if flow.signal == Signal.RETURN:
            return flow.value
        return null_val()

    def _call_native_function(self, callee: Value, args: List[Value]) -> Value:
        """Call a host function; plain Python results are wrapped."""
        native = callee.data
        logger.debug("calling native '%s' with %d argument(s)", native.name, len(args))
        try:
            return wrap_value(native(*args))
        except QuillError:
            raise
        except Exception as e:
            raise error_native(native.name, e) from e


# Convenience functions

def evaluate(program: Program,
             bindings: Optional[Mapping[str, Any]] = None,
             max_call_depth: int = DEFAULT_MAX_CALL_DEPTH,
             source: str = "") -> Value:
    """
    Evaluate a parsed program.

    This is a convenience wrapper around Evaluator.run().
    """
    ctx = ExecutionContext(
        program=program,
        bindings=bindings or {},
        max_call_depth=max_call_depth,
        source_lines=source.splitlines(),
    )
    return Evaluator(ctx).run()


def run(source: Union[str, bytes],
        bindings: Optional[Mapping[str, Any]] = None,
        max_call_depth: int = DEFAULT_MAX_CALL_DEPTH,
        filename: Optional[str] = None) -> Value:
    """
    Parse and evaluate source code in one call.

        from quill import run

        result = run('''
            fn add(a, b) { return a + b; }
            return add($x, 2);
        ''', bindings={"x": 1})

    Args:
        source: Program text
        bindings: Host values visible to the script (raw Python or Values)
        max_call_depth: Limit on nested user function calls
        filename: Optional filename for error messages

    Returns:
        The value of the first top-level return, or null

    Raises:
        LexerError, ParserError: If the source does not parse
        EvalError: If evaluation fails
    """
    from ..parser import parse
    from ..lexer import decode_source

    text = decode_source(source)
    program = parse(text, filename)
    return evaluate(program, bindings, max_call_depth, text)
