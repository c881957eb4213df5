"""
Runtime values for the Quill evaluator.

A Value is a small tagged handle: `kind` selects one of a closed set of
runtime kinds and `data` holds the Python representation. Operations
dispatch on the operand kinds and raise InvalidOperation for any
combination they do not define.

Integers are signed 64-bit and wrap on overflow; floats follow IEEE-754.
Both are computed with numpy scalars so the fixed-width behaviour comes
from the hardware types rather than from Python's unbounded ints.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List

import numpy as np

from ..ast import FnStatement
from ..errors import (
    error_invalid_operation,
    error_division_by_zero,
    error_index_out_of_range,
)
from ..printer import quote_string

INT64_MIN = int(np.iinfo(np.int64).min)
INT64_MAX = int(np.iinfo(np.int64).max)


class ValueKind(Enum):
    """Runtime kinds, valued by their display name."""
    NULL = "Null"
    BOOLEAN = "Boolean"
    INTEGER = "Integer"
    FLOAT = "Float"
    STRING = "String"
    ARRAY = "Array"
    USER_FUNCTION = "UserFunction"
    NATIVE_FUNCTION = "NativeFunction"

    def __str__(self) -> str:
        return self.value


class Comparison(Enum):
    """Outcome of a three-way comparison."""
    EQUAL = "equal"
    LESS = "less"
    GREATER = "greater"
    UNORDERED = "unordered"     # a NaN was involved


@dataclass(frozen=True)
class NativeFunction:
    """A host callable exposed to scripts. Receives and returns Values."""
    name: str
    func: Callable[..., Any]

    def __call__(self, *args: "Value") -> Any:
        return self.func(*args)


@dataclass
class Value:
    """
    A runtime value.

    `data` by kind:
        NULL             None
        BOOLEAN          bool
        INTEGER          int within the signed 64-bit range
        FLOAT            float
        STRING           str
        ARRAY            list of Value (shared between handles)
        USER_FUNCTION    FnStatement
        NATIVE_FUNCTION  NativeFunction
    """
    kind: ValueKind
    data: Any = None

    def __repr__(self) -> str:
        return f"Value({self.kind.name}, {self.data!r})"

    def __str__(self) -> str:
        return inspect(self)


# Convenience constructors

def null_val() -> Value:
    """Create the null value."""
    return Value(ValueKind.NULL, None)


def bool_val(b: bool) -> Value:
    """Create a boolean value."""
    return Value(ValueKind.BOOLEAN, bool(b))


def int_val(n: int) -> Value:
    """Create an integer value; `n` must fit in 64 bits."""
    n = int(n)
    if not INT64_MIN <= n <= INT64_MAX:
        raise ValueError(f"integer {n} does not fit in 64 bits")
    return Value(ValueKind.INTEGER, n)


def float_val(x: float) -> Value:
    """Create a float value."""
    return Value(ValueKind.FLOAT, float(x))


def string_val(s: str) -> Value:
    """Create a string value."""
    return Value(ValueKind.STRING, str(s))


def array_val(items: List[Value]) -> Value:
    """Create an array value holding the given Values."""
    return Value(ValueKind.ARRAY, list(items))


def function_val(fn: FnStatement) -> Value:
    """Create a user function value from its declaration."""
    return Value(ValueKind.USER_FUNCTION, fn)


def native_val(name: str, func: Callable[..., Any]) -> Value:
    """Create a native function value."""
    return Value(ValueKind.NATIVE_FUNCTION, NativeFunction(name, func))


# Host conversion

def wrap_value(data: Any) -> Value:
    """Wrap a raw Python object as a Value, inferring its kind."""
    if isinstance(data, Value):
        return data
    if data is None:
        return null_val()
    if isinstance(data, (bool, np.bool_)):
        return bool_val(data)
    if isinstance(data, (int, np.integer)):
        return int_val(data)
    if isinstance(data, (float, np.floating)):
        return float_val(data)
    if isinstance(data, str):
        return string_val(data)
    if isinstance(data, (list, tuple)):
        return array_val([wrap_value(item) for item in data])
    if isinstance(data, FnStatement):
        return function_val(data)
    if isinstance(data, NativeFunction):
        return Value(ValueKind.NATIVE_FUNCTION, data)
    if callable(data):
        return native_val(getattr(data, "__name__", "native"), data)
    raise TypeError(f"cannot convert {type(data).__name__} to a Quill value")


def unwrap_value(v: Value) -> Any:
    """Extract the raw Python data from a Value (arrays recursively)."""
    if v.kind == ValueKind.ARRAY:
        return [unwrap_value(item) for item in v.data]
    if v.kind == ValueKind.NATIVE_FUNCTION:
        return v.data.func
    return v.data


def inspect(v: Value) -> str:
    """Render a value for display."""
    if v.kind == ValueKind.NULL:
        return "null"
    if v.kind == ValueKind.BOOLEAN:
        return "true" if v.data else "false"
    if v.kind == ValueKind.INTEGER:
        return str(v.data)
    if v.kind == ValueKind.FLOAT:
        return repr(v.data)
    if v.kind == ValueKind.STRING:
        return quote_string(v.data)
    if v.kind == ValueKind.ARRAY:
        return "[" + ", ".join(inspect(item) for item in v.data) + "]"
    if v.kind == ValueKind.USER_FUNCTION:
        return f"<fn {v.data.name}>"
    return f"<native fn {v.data.name}>"


# Arithmetic

def _invalid(operation: str, *values: Value):
    return error_invalid_operation(operation, *(v.kind.value for v in values))


def _is_numeric(v: Value) -> bool:
    return v.kind in (ValueKind.INTEGER, ValueKind.FLOAT)


def _int_op(op: Callable, a: int, b: int) -> Value:
    with np.errstate(over="ignore"):
        return int_val(op(np.int64(a), np.int64(b)))


def _float_op(op: Callable, a: float, b: float) -> Value:
    with np.errstate(all="ignore"):
        return float_val(op(np.float64(a), np.float64(b)))


def _numeric(operation: str, int_op: Callable, float_op: Callable,
             left: Value, right: Value) -> Value:
    if left.kind == ValueKind.INTEGER and right.kind == ValueKind.INTEGER:
        return int_op(left.data, right.data)
    if _is_numeric(left) and _is_numeric(right):
        return _float_op(float_op, float(left.data), float(right.data))
    raise _invalid(operation, left, right)


def add(left: Value, right: Value) -> Value:
    if left.kind == ValueKind.STRING and right.kind == ValueKind.STRING:
        return string_val(left.data + right.data)
    return _numeric("add", lambda a, b: _int_op(np.add, a, b), np.add, left, right)


def sub(left: Value, right: Value) -> Value:
    return _numeric("sub", lambda a, b: _int_op(np.subtract, a, b), np.subtract, left, right)


def mul(left: Value, right: Value) -> Value:
    return _numeric("mul", lambda a, b: _int_op(np.multiply, a, b), np.multiply, left, right)


def _int_div(a: int, b: int) -> Value:
    """Integer division truncating toward zero."""
    if b == 0:
        raise error_division_by_zero("div")
    if b == -1:
        return _int_op(np.subtract, 0, a)
    remainder = int(np.fmod(np.int64(a), np.int64(b)))
    return int_val((a - remainder) // b)


def _int_mod(a: int, b: int) -> Value:
    """Remainder with the sign of the dividend."""
    if b == 0:
        raise error_division_by_zero("mod")
    if b == -1:
        return int_val(0)
    return int_val(np.fmod(np.int64(a), np.int64(b)))


def div(left: Value, right: Value) -> Value:
    return _numeric("div", _int_div, np.divide, left, right)


def mod(left: Value, right: Value) -> Value:
    if left.kind == ValueKind.INTEGER and right.kind == ValueKind.INTEGER:
        return _int_mod(left.data, right.data)
    raise _invalid("mod", left, right)


def negate(operand: Value) -> Value:
    if operand.kind == ValueKind.INTEGER:
        return _int_op(np.subtract, 0, operand.data)
    if operand.kind == ValueKind.FLOAT:
        return float_val(-operand.data)
    raise _invalid("neg", operand)


def increment(operand: Value) -> Value:
    if operand.kind == ValueKind.INTEGER:
        return _int_op(np.add, operand.data, 1)
    raise _invalid("increment", operand)


def decrement(operand: Value) -> Value:
    if operand.kind == ValueKind.INTEGER:
        return _int_op(np.subtract, operand.data, 1)
    raise _invalid("decrement", operand)


# Logic

def logical_not(operand: Value) -> Value:
    if operand.kind == ValueKind.BOOLEAN:
        return bool_val(not operand.data)
    raise _invalid("not", operand)


def logical_and(left: Value, right: Value) -> Value:
    if left.kind == ValueKind.BOOLEAN and right.kind == ValueKind.BOOLEAN:
        return bool_val(left.data and right.data)
    raise _invalid("and", left, right)


def logical_or(left: Value, right: Value) -> Value:
    if left.kind == ValueKind.BOOLEAN and right.kind == ValueKind.BOOLEAN:
        return bool_val(left.data or right.data)
    raise _invalid("or", left, right)


# Comparison

def _three_way(a: Any, b: Any) -> Comparison:
    if a < b:
        return Comparison.LESS
    if a > b:
        return Comparison.GREATER
    if a == b:
        return Comparison.EQUAL
    return Comparison.UNORDERED


def compare(left: Value, right: Value) -> Comparison:
    """Three-way comparison. Integers and floats compare across kinds."""
    if _is_numeric(left) and _is_numeric(right):
        return _three_way(left.data, right.data)
    if left.kind != right.kind:
        raise _invalid("compare", left, right)
    if left.kind == ValueKind.NULL:
        return Comparison.EQUAL
    if left.kind in (ValueKind.BOOLEAN, ValueKind.STRING):
        return _three_way(left.data, right.data)
    raise _invalid("compare", left, right)


# Indexing

def index(obj: Value, idx: Value) -> Value:
    """Array[Integer] yields the element, String[Integer] a one-character String."""
    if obj.kind not in (ValueKind.ARRAY, ValueKind.STRING) or idx.kind != ValueKind.INTEGER:
        raise _invalid("index", obj, idx)
    i = idx.data
    if not 0 <= i < len(obj.data):
        raise error_index_out_of_range(obj.kind.value, i, len(obj.data))
    if obj.kind == ValueKind.ARRAY:
        return obj.data[i]
    return string_val(obj.data[i])
