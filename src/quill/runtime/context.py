"""
Execution context for the Quill evaluator.

Manages the frame stack, the host binding table and the call depth.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional
from contextlib import contextmanager

from .values import Value, function_val, native_val, wrap_value
from ..ast import FnStatement, Program
from ..errors import error_undefined_name, error_call_depth
from ..tokens import SourceSpan

logger = logging.getLogger(__name__)

DEFAULT_MAX_CALL_DEPTH = 64


@dataclass
class Frame:
    """A single scope containing variable bindings."""
    name: str = "block"  # For debugging
    variables: Dict[str, Value] = field(default_factory=dict)

    def get(self, name: str) -> Optional[Value]:
        return self.variables.get(name)

    def set(self, name: str, value: Value) -> None:
        self.variables[name] = value

    def contains(self, name: str) -> bool:
        return name in self.variables


@dataclass
class ExecutionContext:
    """
    Everything a running program can see.

    Tracks:
    - The parsed program and its function table
    - The frame stack (innermost last); frame 0 is the global frame
    - Host bindings, consulted after every frame and read-only to scripts
    - Current user call depth
    """
    program: Program = field(default_factory=Program)
    bindings: Mapping[str, Any] = field(default_factory=dict)
    max_call_depth: int = DEFAULT_MAX_CALL_DEPTH

    # Source tracking for error messages
    source_lines: List[str] = field(default_factory=list)

    frames: List[Frame] = field(init=False)
    call_depth: int = field(init=False, default=0)

    def __post_init__(self):
        self._host: Dict[str, Value] = {}
        for name, value in self.bindings.items():
            self.define(name, value)
        self.frames = [self._global_frame()]

    def _global_frame(self) -> Frame:
        frame = Frame(name="global")
        for name, fn in self.program.functions.items():
            frame.set(name, function_val(fn))
        return frame

    @property
    def functions(self) -> Dict[str, FnStatement]:
        return self.program.functions

    @property
    def host(self) -> Mapping[str, Value]:
        """Read-only view of the host bindings."""
        return MappingProxyType(self._host)

    # --- Host API ---

    def define(self, name: str, value: Any) -> None:
        """Bind a host value, wrapping plain Python objects."""
        self._host[name] = wrap_value(value)
        logger.debug("defined host value '%s' (%s)", name, self._host[name].kind)

    def define_native(self, name: str, func: Callable[..., Any]) -> None:
        """Bind a host callable. It receives Values and may return raw Python data."""
        self._host[name] = native_val(name, func)
        logger.debug("defined native function '%s'", name)

    # --- Variable access ---

    def lookup(self, name: str) -> Value:
        """Resolve a bare name: frames innermost first, then host bindings."""
        for frame in reversed(self.frames):
            value = frame.get(name)
            if value is not None:
                return value
        if name in self._host:
            return self._host[name]
        raise error_undefined_name(name)

    def lookup_external(self, name: str) -> Value:
        """Resolve a $name, which only ever refers to host bindings."""
        if name in self._host:
            return self._host[name]
        raise error_undefined_name(name, external=True)

    def declare(self, name: str, value: Value) -> None:
        """Bind a name in the innermost frame, replacing any binding there."""
        self.frames[-1].set(name, value)

    def assign(self, name: str, value: Value) -> None:
        """Rebind the innermost existing declaration of `name`."""
        for frame in reversed(self.frames):
            if frame.contains(name):
                frame.set(name, value)
                return
        raise error_undefined_name(name)

    @contextmanager
    def new_scope(self, name: str = "block"):
        """
        Context manager pushing a frame for the duration of a block.

        Usage:
            with ctx.new_scope("for-body"):
                ctx.declare("i", int_val(0))
        """
        frame = Frame(name=name)
        self.frames.append(frame)
        try:
            yield frame
        finally:
            self.frames.pop()

    @contextmanager
    def call_scope(self, name: str, arguments: Dict[str, Value]):
        """
        Context manager running a user function on its own frame stack.

        The callee sees the global frame and a fresh parameter frame,
        never the caller's locals.
        """
        if self.call_depth >= self.max_call_depth:
            raise error_call_depth(self.max_call_depth)

        saved = self.frames
        self.frames = [saved[0], Frame(name=name, variables=dict(arguments))]
        self.call_depth += 1
        try:
            yield self.frames[-1]
        finally:
            self.call_depth -= 1
            self.frames = saved

    def source_line(self, span: Optional[SourceSpan]) -> Optional[str]:
        """Get a source line for error messages."""
        if span is None:
            return None
        line_num = span.start.line
        if 1 <= line_num <= len(self.source_lines):
            return self.source_lines[line_num - 1]
        return None
