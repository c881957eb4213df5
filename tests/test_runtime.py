"""
Tests for the Quill evaluator and execution context.
"""

import textwrap

import pytest
from quill import (
    parse, parse_expression, run, evaluate,
    Program, Evaluator, ExecutionContext, Value, ValueKind, wrap_value, inspect,
    InvalidOperation, DivisionByZero, NameError, ArityError, CallDepthError,
    NativeError, EvalError,
)
from quill.runtime.values import int_val, string_val


def run_source(source: str, **bindings) -> Value:
    """Helper to run dedented source with keyword host bindings."""
    return run(textwrap.dedent(source), bindings=bindings)


def eval_expr(source: str) -> Value:
    """Evaluate a standalone expression."""
    return evaluate(Program.from_expression(parse_expression(source)))


class TestLiterals:
    """Literals evaluate to their intrinsic value."""

    @pytest.mark.parametrize("source,raw,kind", [
        ("null", None, ValueKind.NULL),
        ("true", True, ValueKind.BOOLEAN),
        ("false", False, ValueKind.BOOLEAN),
        ("9223372036854775807", 9223372036854775807, ValueKind.INTEGER),
        ("0.125", 0.125, ValueKind.FLOAT),
        (r'"tab\there"', "tab\there", ValueKind.STRING),
    ])
    def test_literal(self, source, raw, kind):
        result = eval_expr(source)
        assert result.kind == kind
        assert result.data == raw

    def test_array_literal(self):
        result = eval_expr('[1, "two", [3.0]]')
        assert result.kind == ValueKind.ARRAY
        assert inspect(result) == '[1, "two", [3.0]]'


class TestExpressions:
    """Test expression evaluation."""

    @pytest.mark.parametrize("source,expected", [
        ("2 + 3 * 5", 17),
        ("(2 + 3) * 5", 25),
        ("4 * (6 - (2 + 1))", 12),
        ("7 / 2", 3),
        ("-7 % 3", -1),
        ("10 - 4 - 3", 3),
    ])
    def test_arithmetic(self, source, expected):
        assert eval_expr(source) == int_val(expected)

    def test_prefix_minus_is_greedy(self):
        """A leading minus negates everything that follows."""
        assert eval_expr("-1 + 2") == int_val(-3)

    def test_mixed_arithmetic(self):
        assert eval_expr("1 + 0.5").data == 1.5

    def test_string_concatenation(self):
        assert eval_expr('"foo" + "bar"') == string_val("foobar")

    @pytest.mark.parametrize("source,expected", [
        ("1 < 2", True),
        ("2 <= 2", True),
        ("3 > 4", False),
        ("1 == 1.0", True),
        ("1 != 2", True),
        ('"a" < "b"', True),
        ("null == null", True),
        ("false < true", True),
        ("0.0 / 0.0 != 0.0 / 0.0", True),
        ("0.0 / 0.0 == 0.0 / 0.0", False),
    ])
    def test_comparison(self, source, expected):
        assert eval_expr(source).data is expected

    def test_logic_operators(self):
        assert eval_expr("true && !false").data is True
        assert eval_expr("false || false").data is False

    def test_logic_evaluates_both_sides(self):
        """&& and || do not short-circuit."""
        with pytest.raises(NameError):
            run("return false && missing;")

    def test_index(self):
        assert run('let xs = [10, 20]; return xs[1];') == int_val(20)
        assert run('return "abc"[2];') == string_val("c")

    def test_index_out_of_range(self):
        with pytest.raises(InvalidOperation) as exc_info:
            run("return [1, 2][2];")
        assert "out of range" in str(exc_info.value)

    def test_member_access_unsupported(self):
        with pytest.raises(InvalidOperation) as exc_info:
            run("let a = 1; return a.b;")
        assert exc_info.value.operation == "access"

    def test_type_error_names_operation_and_kinds(self):
        with pytest.raises(InvalidOperation) as exc_info:
            eval_expr("true + 1")
        message = str(exc_info.value)
        assert "add" in message
        assert "Boolean" in message
        assert "Integer" in message

    def test_integer_division_by_zero(self):
        with pytest.raises(DivisionByZero):
            run("let z = 0; return 1 / z;")

    def test_float_division_by_zero(self):
        assert inspect(eval_expr("1.0 / 0")) == "inf"


class TestVariables:
    """Test declaration, assignment and postfix updates."""

    def test_let_and_return(self):
        assert run("let x = 4; return x * x;") == int_val(16)

    def test_let_without_value_is_null(self):
        assert run("let x; return x;").kind == ValueKind.NULL

    def test_assignment_yields_value(self):
        assert run("let x = 1; let y = x = 5; return y;") == int_val(5)

    def test_assignment_requires_declaration(self):
        with pytest.raises(NameError) as exc_info:
            run("y = 2;")
        assert exc_info.value.name == "y"

    def test_assignment_target_must_be_name(self):
        with pytest.raises(InvalidOperation) as exc_info:
            run("let xs = [1]; xs[0] = 2;")
        assert exc_info.value.operation == "assign"

    def test_postfix_rebinds_and_yields_new_value(self):
        assert run("let i = 1; let j = i++; return [i, j];") == wrap_value([2, 2])
        assert run("let i = 1; i--; return i;") == int_val(0)

    def test_postfix_does_not_alias(self):
        """Incrementing a variable leaves copies of its old value alone."""
        assert run("let a = 1; let b = a; a++; return b;") == int_val(1)

    def test_undefined_name(self):
        with pytest.raises(NameError) as exc_info:
            run("return nope;")
        assert "undefined name 'nope'" in str(exc_info.value)

    def test_redeclaration_in_same_scope(self):
        assert run("let x = 1; let x = 2; return x;") == int_val(2)

    def test_block_scope_shadowing(self):
        result = run_source("""
            let x = 1;
            { let x = 2; x = 3; }
            return x;
        """)
        assert result == int_val(1)

    def test_block_assigns_outer(self):
        assert run("let x = 1; { x = 5; } return x;") == int_val(5)

    def test_block_locals_do_not_escape(self):
        with pytest.raises(NameError):
            run("{ let inner = 1; } return inner;")

    def test_array_rebinding(self):
        """Binding an array to a second name keeps its elements."""
        result = run_source("""
            let a = [1, 2];
            let b = a;
            return b;
        """)
        assert result == wrap_value([1, 2])


class TestControlFlow:
    """Test if/else and for loops."""

    def test_if_else(self):
        assert run("if 1 < 2 { return 1; } else { return 2; }") == int_val(1)
        assert run("if 1 > 2 { return 1; } else { return 2; }") == int_val(2)

    def test_else_if(self):
        source = "let n = 0; if n < 0 { return -1; } else if n == 0 { return 0; } else { return 1; }"
        assert run(source) == int_val(0)

    def test_no_branch_taken(self):
        assert run("if false { return 1; }").kind == ValueKind.NULL

    def test_condition_must_be_boolean(self):
        with pytest.raises(InvalidOperation) as exc_info:
            run("if 1 { }")
        assert "if condition must be Boolean, found Integer" in str(exc_info.value)

    def test_loop_condition_must_be_boolean(self):
        with pytest.raises(InvalidOperation):
            run("for ; null; { }")

    def test_loop_variable_survives(self):
        assert run("let i; for i = 0; i < 10; i++ { } return i;") == int_val(10)

    def test_break(self):
        source = "let i; for i = 0; i < 5; i++ { if i == 3 { break; } } return i;"
        assert run(source) == int_val(3)

    def test_let_initializer_visible_after_loop(self):
        assert run("for (let i = 0; i < 4; i++) { } return i;") == int_val(4)

    def test_continue_skips_rest_of_body(self):
        result = run_source("""
            let count = 0;
            for (let i = 0; i < 8; i++) {
                if i % 2 == 0 { continue; }
                count++;
            }
            return count;
        """)
        assert result == int_val(4)

    def test_sum(self):
        result = run_source("""
            let total = 0;
            for let i = 1; i <= 5; i++ {
                total = total + i;
            }
            return total;
        """)
        assert result == int_val(15)

    def test_body_gets_fresh_frame(self):
        """Each iteration's block starts without the previous iteration's locals."""
        result = run_source("""
            let seen = 0;
            for (let i = 0; i < 3; i++) {
                let fresh = 1;
                seen = seen + fresh;
            }
            return seen;
        """)
        assert result == int_val(3)

    def test_return_from_loop(self):
        assert run("for ;; { return 7; }") == int_val(7)

    def test_nested_loops_break_inner_only(self):
        result = run_source("""
            let hits = 0;
            for (let i = 0; i < 3; i++) {
                for (let j = 0; j < 10; j++) {
                    if j == 2 { break; }
                    hits++;
                }
            }
            return hits;
        """)
        assert result == int_val(6)

    def test_first_return_ends_run(self):
        assert run("return 1; return 2;") == int_val(1)

    def test_no_return_is_null(self):
        assert run("let x = 1;").kind == ValueKind.NULL

    def test_stray_break_ends_run(self):
        assert run("let x = 1; break; return x;").kind == ValueKind.NULL


class TestFunctions:
    """Test user-defined functions."""

    def test_fibonacci(self):
        source = (
            "fn fib(n) { if n <= 1 { return n; } else { return fib(n - 1) + fib(n - 2); } } "
            "return fib(10);"
        )
        assert run(source) == int_val(55)

    def test_call_before_declaration(self):
        assert run("return add(1, 2); fn add(a, b) { return a + b; }") == int_val(3)

    def test_implicit_null_return(self):
        assert run("fn f() { let x = 1; } return f();").kind == ValueKind.NULL

    def test_bare_return(self):
        assert run("fn f() { return; } return f();").kind == ValueKind.NULL

    def test_arity_mismatch(self):
        with pytest.raises(ArityError) as exc_info:
            run("fn f(a, b) { return a; } return f(1);")
        err = exc_info.value
        assert err.expected == 2
        assert err.found == 1
        assert "function 'f' expects 2 argument(s), got 1" in str(err)

    def test_undeclared_function(self):
        with pytest.raises(NameError):
            run("return g(1);")

    def test_calling_non_function(self):
        with pytest.raises(InvalidOperation) as exc_info:
            run("let x = 3; return x(1);")
        assert exc_info.value.operation == "call"
        assert exc_info.value.kinds == ("Integer",)

    def test_callee_cannot_see_caller_locals(self):
        """Calls run against the global frame and their parameters only."""
        source = "fn peek() { return secret; } { let secret = 1; return peek(); }"
        with pytest.raises(NameError):
            run(source)

    def test_callee_sees_globals(self):
        assert run("let g = 10; fn f() { return g; } return f();") == int_val(10)

    def test_callee_can_assign_globals(self):
        assert run("let g = 1; fn bump() { g = g + 1; } bump(); bump(); return g;") == int_val(3)

    def test_parameters_shadow_globals(self):
        assert run("let x = 1; fn f(x) { return x; } return f(2);") == int_val(2)

    def test_arguments_evaluated_in_caller_scope(self):
        assert run("fn id(v) { return v; } { let local = 4; return id(local); }") == int_val(4)

    def test_functions_are_values(self):
        assert run("fn one() { return 1; } let f = one; return f();") == int_val(1)
        assert inspect(run("fn one() { return 1; } return one;")) == "<fn one>"

    def test_duplicate_declaration_last_wins(self):
        assert run("fn f() { return 1; } fn f() { return 2; } return f();") == int_val(2)

    def test_nested_declaration_is_hoisted(self):
        assert run("fn outer() { fn inner() { return 5; } return 0; } return inner();") == int_val(5)

    def test_break_inside_function_stays_local(self):
        """A break ends the loop inside the function only; the caller's loop runs on."""
        result = run_source("""
            fn first_over(limit) {
                let found = 0;
                for (let i = 0; ; i++) {
                    if i > limit { found = i; break; }
                }
                return found * 10;
            }
            let total = 0;
            for (let k = 0; k < 2; k++) {
                total = total + first_over(k);
            }
            return total;
        """)
        assert result == int_val(30)

    def test_long_operator_chain_too_deep(self):
        with pytest.raises(EvalError) as exc_info:
            run("return " + " + ".join(["1"] * 5000) + ";")
        assert exc_info.value.code == "E407"
        assert isinstance(exc_info.value.__cause__, RecursionError)

    def test_moderate_operator_chain(self):
        assert run("return " + " + ".join(["1"] * 100) + ";") == int_val(100)

    def test_call_depth_limit(self):
        with pytest.raises(CallDepthError) as exc_info:
            program = parse("fn down(n) { return down(n + 1); } return down(0);")
            evaluate(program, max_call_depth=20)
        assert exc_info.value.code == "E405"

    def test_recursion_within_limit(self):
        source = "fn count(n) { if n == 0 { return 0; } return 1 + count(n - 1); } return count(30);"
        assert run(source) == int_val(30)


class TestHostBindings:
    """Test host-injected values and native functions."""

    def test_external_variable(self):
        assert run("return $a + 1;", bindings={"a": 1}) == int_val(2)

    def test_bare_name_falls_back_to_host(self):
        assert run("return a + 1;", bindings={"a": 1}) == int_val(2)

    def test_local_shadows_host_for_bare_names(self):
        assert run("let a = 10; return a;", bindings={"a": 1}) == int_val(10)

    def test_external_ignores_locals(self):
        """$name always reads the host table."""
        assert run("let a = 10; return $a;", bindings={"a": 1}) == int_val(1)

    def test_missing_external(self):
        with pytest.raises(NameError) as exc_info:
            run("return $missing;")
        assert "'$missing'" in str(exc_info.value)

    def test_host_values_are_read_only(self):
        """Assigning to a host-only name is an undeclared assignment."""
        with pytest.raises(NameError):
            run("a = 2;", bindings={"a": 1})

    def test_host_view_is_immutable(self):
        ctx = ExecutionContext(bindings={"a": 1})
        with pytest.raises(TypeError):
            ctx.host["a"] = int_val(2)

    def test_host_visible_inside_functions(self):
        assert run("fn f() { return $n * 2; } return f();", bindings={"n": 21}) == int_val(42)

    def test_wrapped_bindings(self):
        result = run_source("""
            let total = 0;
            for (let i = 0; i < 3; i++) { total = total + $xs[i]; }
            return total;
        """, xs=[1, 2, 3])
        assert result == int_val(6)

    def test_native_function(self):
        def shout(text):
            return text.data.upper()

        assert run('return shout("hi");', bindings={"shout": shout}) == string_val("HI")

    def test_define_native(self):
        program = parse("return $twice(4);")
        ctx = ExecutionContext(program=program)
        ctx.define_native("twice", lambda v: v.data * 2)
        assert Evaluator(ctx).run() == int_val(8)

    def test_native_failure_is_wrapped(self):
        def boom():
            raise RuntimeError("kaput")

        with pytest.raises(NativeError) as exc_info:
            run("return boom();", bindings={"boom": boom})
        assert "kaput" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_native_may_raise_quill_errors(self):
        from quill.runtime.values import add

        def plus(a, b):
            return add(a, b)

        with pytest.raises(InvalidOperation):
            run('return plus(1, "x");', bindings={"plus": plus})


class TestErrorLocations:
    """Runtime errors carry the location of the failing expression."""

    def test_location_and_source_line(self):
        source = "let a = 1;\nlet b = a + true;\n"
        with pytest.raises(InvalidOperation) as exc_info:
            run(source, filename="calc.ql")
        err = exc_info.value
        assert err.span.start.line == 2
        assert err.span.start.column == 9
        text = str(err)
        assert text.startswith("calc.ql:2:9: error[E401]")
        assert "let b = a + true;" in text

    def test_innermost_location_kept(self):
        with pytest.raises(NameError) as exc_info:
            run("return 1 + (2 * missing);")
        assert exc_info.value.span.start.column == 17

    def test_all_runtime_errors_share_base(self):
        with pytest.raises(EvalError):
            run("return [] + [];")
