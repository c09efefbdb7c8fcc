"""
iRule Validator CLI Entrypoint.

This module provides the command-line interface for validating F5 iRules.

Features:
    - Read source from a file or an inline string.
    - Lex and parse the source, collecting every diagnostic.
    - Optionally print the diagnostics, one per line.
    - Launch the interactive REPL when no source is given.

Example usage:
    irule-validator rule.irule
    irule-validator -p rule.irule
    irule-validator -s 'when HTTP_REQUEST { pool web }' -p
    irule-validator --strict -d rule.irule

Exit status:
    0 when the iRule has no diagnostics, 1 on any diagnostic or read failure.

Functions:
    run_validator(source: str, is_string: bool = False, print_errors: bool = False,
                  strict_variables: bool = False) -> int:
        Runs the validation pipeline and returns the exit code.

    main() -> None:
        Parses CLI arguments and invokes the appropriate action (REPL or validation).
"""

from __future__ import annotations

import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError, version

from irule.irule_lexer import CharacterStream, Lexer
from irule.irule_parser import Parser

logger = logging.getLogger(__name__)


def package_version() -> str:
    try:
        return version("irule-validator")
    except PackageNotFoundError:
        return "0.0.0+unknown"


def run_validator(
    source: str,
    is_string: bool = False,
    print_errors: bool = False,
    strict_variables: bool = False,
) -> int:
    """
    Run the validator: read, lex, parse and report.

    Args:
        source (str): Path to an iRule file, or the iRule text itself with `is_string`.
        is_string (bool): If True, treats `source` as raw code instead of a file path.
        print_errors (bool): If True, prints each diagnostic to stdout.
        strict_variables (bool): If True, reports references to undeclared variables.

    Returns:
        int: 0 if the iRule is valid, otherwise 1.

    Side Effects:
        - Prints diagnostics to stdout (with `print_errors`) and read failures to stderr.
    """
    # 1. Read source
    if not is_string:
        try:
            with open(source, encoding="utf-8") as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            print(f"Error reading file {source}: {e}", file=sys.stderr)
            return 1
    else:
        text = source

    # 2. Lexing and parsing
    logger.debug("validating %d characters", len(text))
    lexer = Lexer(CharacterStream(text, 0, 1, 1))
    parser = Parser(lexer, strict_variables=strict_variables)
    parser.parse_program()
    errors = parser.errors()

    # 3. Report
    if print_errors:
        for message in errors:
            print(message)
    logger.debug("%d diagnostic(s)", len(errors))
    return 1 if errors else 0


def main() -> None:
    """
    Entry point for the iRule validator CLI.

    Parses command-line arguments and dispatches to the appropriate mode:
    - Launches the REPL if no source is given.
    - Otherwise validates the source and exits with the validator's status.

    Supported flags:
        - `-s`, `--string`: Interpret source as a raw string instead of a file path.
        - `-d`, `--debug`: Enable debug logging on stderr.
        - `-p`, `--print-errors`: Print the diagnostics.
        - `--strict`: Report references to undeclared variables.
        - `-v`, `--version`: Print the version and exit.
    """
    parser = argparse.ArgumentParser(
        prog="irule-validator", description="Static syntax validator for F5 iRules"
    )
    parser.add_argument("source", nargs="?", help="iRule file, or raw source (with -s)")
    parser.add_argument(
        "-s", "--string", action="store_true", help="Interpret source as literal string"
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "-p", "--print-errors", action="store_true", help="Print validation errors"
    )
    parser.add_argument(
        "--strict", action="store_true", help="Report references to undeclared variables"
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"%(prog)s {package_version()}"
    )

    args = parser.parse_args()

    if args.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(levelname)s %(name)s: %(message)s",
        )

    if args.source is None:
        from irule.irule_repl import start_repl

        start_repl(debug=args.debug)
        return

    sys.exit(
        run_validator(
            source=args.source,
            is_string=args.string,
            print_errors=args.print_errors,
            strict_variables=args.strict,
        )
    )


if __name__ == "__main__" and not any("pytest" in arg for arg in sys.argv):
    main()
