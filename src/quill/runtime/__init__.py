"""
Quill runtime - Tree-walking evaluator.

This module provides:
- Evaluator: Executes parsed programs
- Value: Runtime values and their per-kind operations
- ExecutionContext: Frame stack, host bindings and call depth
"""

from .values import (
    Value,
    ValueKind,
    Comparison,
    NativeFunction,
    null_val,
    bool_val,
    int_val,
    float_val,
    string_val,
    array_val,
    function_val,
    native_val,
    wrap_value,
    unwrap_value,
    inspect,
    add,
    sub,
    mul,
    div,
    mod,
    compare,
    index,
    negate,
    increment,
    decrement,
    logical_not,
    logical_and,
    logical_or,
)

from .context import (
    Frame,
    ExecutionContext,
    DEFAULT_MAX_CALL_DEPTH,
)

from .interpreter import (
    Evaluator,
    Signal,
    ControlFlow,
    evaluate,
    run,
)

__all__ = [
    # Values
    "Value",
    "ValueKind",
    "Comparison",
    "NativeFunction",
    "null_val",
    "bool_val",
    "int_val",
    "float_val",
    "string_val",
    "array_val",
    "function_val",
    "native_val",
    "wrap_value",
    "unwrap_value",
    "inspect",
    "add",
    "sub",
    "mul",
    "div",
    "mod",
    "compare",
    "index",
    "negate",
    "increment",
    "decrement",
    "logical_not",
    "logical_and",
    "logical_or",
    # Context
    "Frame",
    "ExecutionContext",
    "DEFAULT_MAX_CALL_DEPTH",
    # Evaluator
    "Evaluator",
    "Signal",
    "ControlFlow",
    "evaluate",
    "run",
]
