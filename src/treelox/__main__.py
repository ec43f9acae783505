#!/usr/bin/env python3
"""
CLI for the treelox interpreter.

Usage:
    python -m treelox [--config FILE] [-v] run FILE.lox
    python -m treelox [--config FILE] [-v] check FILE.lox [--json]
    python -m treelox tokens FILE.lox
    python -m treelox repl

Exit codes follow sysexits.h:
    0   success
    65  static (scan, parse or resolve) errors
    66  source file could not be read
    70  runtime fault
    78  invalid configuration

Examples:
    # Run a script
    python -m treelox run script.lox

    # Report static errors as JSON for an editor integration
    python -m treelox check --json script.lox
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

EXIT_OK = 0
EXIT_STATIC_ERROR = 65
EXIT_NO_INPUT = 66
EXIT_RUNTIME_ERROR = 70
EXIT_CONFIG = 78


def _read_source(path_str: str) -> Optional[str]:
    source_path = Path(path_str)
    try:
        return source_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: cannot read {source_path}: {e}", file=sys.stderr)
        return None


def cmd_run(args, settings):
    """Run a script file."""
    from . import run

    source = _read_source(args.file)
    if source is None:
        return EXIT_NO_INPUT

    result = run(source, settings, filename=args.file)

    if result.diagnostics.diagnostics:
        print(result.diagnostics.format_all(settings.show_source), file=sys.stderr)

    if result.had_static_error:
        return EXIT_STATIC_ERROR
    if result.had_runtime_error:
        return EXIT_RUNTIME_ERROR
    return EXIT_OK


def cmd_check(args, settings):
    """Check a script for static errors without running it."""
    from . import check

    source = _read_source(args.file)
    if source is None:
        return EXIT_NO_INPUT

    result = check(source, args.file, settings)

    if args.json:
        print(json.dumps(result.diagnostics.to_json(), indent=2))
    elif result.has_errors:
        print(result.diagnostics.format_all(settings.show_source), file=sys.stderr)
    else:
        print(f"OK: {args.file}: {len(result.statements)} statement(s)")

    return EXIT_STATIC_ERROR if result.has_errors else EXIT_OK


def cmd_tokens(args, settings):
    """Print the token stream of a script."""
    from . import Lexer

    source = _read_source(args.file)
    if source is None:
        return EXIT_NO_INPUT

    lexer = Lexer(source, args.file)
    for token in lexer.tokenize():
        start = token.span.start
        print(f"{start.line:>4}:{start.column:<4} {token}")

    if lexer.diagnostics.has_errors:
        print(lexer.diagnostics.format_all(settings.show_source), file=sys.stderr)
        return EXIT_STATIC_ERROR
    return EXIT_OK


def cmd_repl(args, settings):
    """Read lines from stdin and run each one, keeping globals between lines."""
    from dataclasses import replace
    from . import Interpreter, run

    interpreter = Interpreter(replace(settings, repl_mode=True))
    prompt = "> " if sys.stdin.isatty() else ""

    while True:
        try:
            line = input(prompt)
        except EOFError:
            break
        except KeyboardInterrupt:
            print()
            continue

        result = run(line, interpreter=interpreter, filename="<stdin>")
        if result.diagnostics.diagnostics:
            print(result.diagnostics.format_all(settings.show_source), file=sys.stderr)
        elif result.value is not None:
            print(result.value)

    return EXIT_OK


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog='python -m treelox',
        description='treelox tree-walking interpreter',
    )
    parser.add_argument('--config', metavar='FILE',
                        help='YAML settings file (default: $TREELOX_CONFIG or ./treelox.yaml)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log pipeline stages at DEBUG level')

    subparsers = parser.add_subparsers(dest='action', required=True)

    # run command
    run_parser = subparsers.add_parser('run', help='Run a script')
    run_parser.add_argument('file', help='Script source file')

    # check command
    check_parser = subparsers.add_parser('check', help='Check a script for static errors')
    check_parser.add_argument('file', help='Script source file')
    check_parser.add_argument('--json', action='store_true',
                              help='Print diagnostics as JSON')

    # tokens command
    tokens_parser = subparsers.add_parser('tokens', help='Print the token stream')
    tokens_parser.add_argument('file', help='Script source file')

    # repl command
    subparsers.add_parser('repl', help='Interactive prompt')

    args = parser.parse_args(argv)

    from .config import load_settings

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return EXIT_CONFIG

    level = logging.DEBUG if args.verbose else settings.log_level
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')

    if args.action == 'run':
        return cmd_run(args, settings)
    elif args.action == 'check':
        return cmd_check(args, settings)
    elif args.action == 'tokens':
        return cmd_tokens(args, settings)
    elif args.action == 'repl':
        return cmd_repl(args, settings)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
