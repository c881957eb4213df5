#!/usr/bin/env python3
"""
CLI for the Quill interpreter.

Usage:
    python -m quill run FILE [-D NAME=VALUE ...] [--bindings FILE.yaml] [--env] [--max-depth N]
    python -m quill eval EXPR [-D NAME=VALUE ...]
    python -m quill check FILE
    python -m quill tokens FILE
    python -m quill ast FILE [--source]

Examples:
    # Run a script with host values available as $name
    python -m quill run fib.ql -D n=20

    # Host values from a YAML mapping
    python -m quill run report.ql --bindings values.yaml

    # Evaluate a single expression
    python -m quill eval '2 + 3 * 5'

    # Show how a file parses, with every operation parenthesised
    python -m quill ast fib.ql --source
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import QuillError

# Python frames used per nested user function call, with headroom
FRAMES_PER_CALL = 50


def parse_define(define_str: str) -> tuple:
    """Parse a definition string like 'name=value' into (name, typed_value)."""
    if '=' not in define_str:
        raise ValueError(f"Invalid definition format: {define_str} (expected name=value)")

    name, value_str = define_str.split('=', 1)
    name = name.strip()
    value_str = value_str.strip()

    # Try to parse as null, bool, int, float, or string
    if value_str == 'null':
        return (name, None)
    if value_str.lower() == 'true':
        return (name, True)
    elif value_str.lower() == 'false':
        return (name, False)

    try:
        return (name, int(value_str))
    except ValueError:
        pass

    try:
        return (name, float(value_str))
    except ValueError:
        pass

    # Strip quotes if present
    if (value_str.startswith('"') and value_str.endswith('"')) or \
       (value_str.startswith("'") and value_str.endswith("'")):
        value_str = value_str[1:-1]

    return (name, value_str)


def load_bindings_file(path: Path) -> Dict[str, Any]:
    """Read host bindings from a YAML mapping."""
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: bindings file must contain a mapping")
    return {str(k): v for k, v in data.items()}


def collect_bindings(args) -> Dict[str, Any]:
    """Merge host bindings; --define wins over --env, which wins over --bindings."""
    bindings: Dict[str, Any] = {}
    if getattr(args, 'bindings', None):
        bindings.update(load_bindings_file(Path(args.bindings)))
    if getattr(args, 'env', False):
        bindings.update(os.environ)
    for define_str in getattr(args, 'define', None) or []:
        name, value = parse_define(define_str)
        bindings[name] = value
    return bindings


def read_source(path_str: str) -> Optional[bytes]:
    source_path = Path(path_str)
    if not source_path.exists():
        print(f"Error: File not found: {source_path}", file=sys.stderr)
        return None
    return source_path.read_bytes()


def _context(program, args, source: str):
    from .runtime import ExecutionContext

    max_depth = args.max_depth
    needed = max_depth * FRAMES_PER_CALL + 1000
    if needed > sys.getrecursionlimit():
        sys.setrecursionlimit(needed)

    return ExecutionContext(
        program=program,
        bindings=collect_bindings(args),
        max_call_depth=max_depth,
        source_lines=source.splitlines(),
    )


def cmd_run(args):
    """Run a script and print its result."""
    from .lexer import decode_source
    from .parser import parse
    from .runtime import Evaluator, inspect

    raw = read_source(args.file)
    if raw is None:
        return 1

    try:
        source = decode_source(raw)
        program = parse(source, args.file)
        ctx = _context(program, args, source)
        result = Evaluator(ctx).run()
    except QuillError as e:
        print(e, file=sys.stderr)
        return 1
    except (ValueError, TypeError, OSError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(inspect(result))
    return 0


def cmd_eval(args):
    """Evaluate a single expression."""
    from .ast import Program
    from .parser import parse_expression
    from .runtime import Evaluator, inspect

    try:
        program = Program.from_expression(parse_expression(args.expression, "<expr>"))
        ctx = _context(program, args, args.expression)
        result = Evaluator(ctx).run()
    except QuillError as e:
        print(e, file=sys.stderr)
        return 1
    except (ValueError, TypeError, OSError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(inspect(result))
    return 0


def cmd_check(args):
    """Check a file for syntax errors."""
    from .parser import parse

    raw = read_source(args.file)
    if raw is None:
        return 1

    try:
        program = parse(raw, args.file)
    except QuillError as e:
        print(e, file=sys.stderr)
        return 1

    print(f"OK: {args.file} - {len(program.functions)} function(s), "
          f"{len(program.statements)} top-level statement(s)")
    for name, fn in sorted(program.functions.items()):
        print(f"  fn {name}({', '.join(fn.parameters)})")
    return 0


def cmd_tokens(args):
    """Print the token stream."""
    from .lexer import Lexer
    from .tokens import TokenType

    raw = read_source(args.file)
    if raw is None:
        return 1

    try:
        lexer = Lexer(raw, args.file)
    except QuillError as e:
        print(e, file=sys.stderr)
        return 1

    status = 0
    for token in lexer:
        start = token.span.start
        print(f"{start.line:>4}:{start.column:<4} {token}")
        if token.type == TokenType.INVALID:
            status = 1
    return status


def cmd_ast(args):
    """Print the parsed tree, or the source it renders back to."""
    from .ast import print_ast
    from .parser import parse
    from .printer import render

    raw = read_source(args.file)
    if raw is None:
        return 1

    try:
        program = parse(raw, args.file)
    except QuillError as e:
        print(e, file=sys.stderr)
        return 1

    if args.source:
        print(render(program), end="")
    else:
        print_ast(program)
    return 0


def _add_runtime_options(parser):
    parser.add_argument('-D', '--define', action='append', metavar='NAME=VALUE',
                        help='Host value visible as $NAME (can be repeated)')
    parser.add_argument('--bindings', metavar='FILE',
                        help='YAML mapping of host values')
    parser.add_argument('--env', action='store_true',
                        help='Expose environment variables as host values')
    parser.add_argument('--max-depth', type=int, default=64, metavar='N',
                        help='Maximum nested function calls (default: 64)')


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog='python -m quill',
        description='Quill interpreter',
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log parser and evaluator activity')

    subparsers = parser.add_subparsers(dest='action', required=True)

    # run command
    run_parser = subparsers.add_parser('run', help='Run a script')
    run_parser.add_argument('file', help='Source file')
    _add_runtime_options(run_parser)

    # eval command
    eval_parser = subparsers.add_parser('eval', help='Evaluate one expression')
    eval_parser.add_argument('expression', help='Expression text')
    _add_runtime_options(eval_parser)

    # check command
    check_parser = subparsers.add_parser('check', help='Check a file for syntax errors')
    check_parser.add_argument('file', help='Source file')

    # tokens command
    tokens_parser = subparsers.add_parser('tokens', help='Print the token stream')
    tokens_parser.add_argument('file', help='Source file')

    # ast command
    ast_parser = subparsers.add_parser('ast', help='Print the syntax tree')
    ast_parser.add_argument('file', help='Source file')
    ast_parser.add_argument('--source', action='store_true',
                            help='Render the tree back to source instead')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    if args.action == 'run':
        return cmd_run(args)
    elif args.action == 'eval':
        return cmd_eval(args)
    elif args.action == 'check':
        return cmd_check(args)
    elif args.action == 'tokens':
        return cmd_tokens(args)
    elif args.action == 'ast':
        return cmd_ast(args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
