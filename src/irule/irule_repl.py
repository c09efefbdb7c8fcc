"""
Interactive iRule validator shell.

Reads iRule fragments line by line, continuing with a `... ` prompt while braces
are open, and prints either the diagnostics or the canonical form of the parsed
program.

Commands:
    exit, quit     Leave the REPL.
    eval-mode      Toggle evaluation with the toy evaluator.
    debug-mode     Toggle DEBUG logging.
"""

from __future__ import annotations

import logging

from irule.irule_eval import EvaluationError, Evaluator, display
from irule.irule_lexer import CharacterStream, Lexer
from irule.irule_parser import Parser

logger = logging.getLogger(__name__)


def read_source() -> str:
    """Reads one logical input, continuing while braces are unbalanced."""
    src_lines: list[str] = []
    depth = 0
    while True:
        prompt = ">> " if not src_lines else "... "
        line = input(prompt)
        src_lines.append(line)
        depth += line.count("{") - line.count("}")
        if depth <= 0:
            break
    return "\n".join(src_lines).strip()


def set_debug(enabled: bool) -> None:
    root = logging.getLogger()
    if enabled and not root.handlers:
        logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger("irule").setLevel(logging.DEBUG if enabled else logging.WARNING)


def start_repl(debug: bool = False, eval_mode: bool = False) -> None:
    print("iRule validator REPL. Type 'exit' or 'quit' to leave.")
    evaluator = Evaluator()
    set_debug(debug)

    while True:
        try:
            src = read_source()
        except (KeyboardInterrupt, EOFError):
            print("\nExiting iRule REPL.")
            return

        if not src or src.startswith("#"):
            continue
        if src in ("exit", "quit"):
            print("Exiting iRule REPL.")
            return
        if src == "eval-mode":
            eval_mode = not eval_mode
            print(f"[mode] >>> Eval mode {'ON' if eval_mode else 'OFF'}")
            continue
        if src == "debug-mode":
            debug = not debug
            set_debug(debug)
            print(f"[mode] >>> Debug mode {'ON' if debug else 'OFF'}")
            continue

        lexer = Lexer(CharacterStream(src, 0, 1, 1))
        parser = Parser(lexer, declared_variables=set(evaluator.env))
        program = parser.parse_program()
        errors = parser.errors()
        if errors:
            print("[error] >>>")
            for message in errors:
                print(message)
            continue

        if not eval_mode:
            print(program)
            continue
        try:
            result = evaluator.evaluate(program)
        except EvaluationError as e:
            print(f"[error] >>> {e}")
            continue
        print(display(result))
