from __future__ import annotations

import logging
import os
import sys
import traceback
from pathlib import Path
from typing import List, Optional

from .evaluator import run_program
from .lexer_rd import LexError
from .parser_rd import ParseError, parse_source
from .runtime import Frame, StlValue, StelRuntimeError, init_stdlib
from .utils import debug_py_trace_enabled

logger = logging.getLogger(__name__)

# deep but bounded recursion in user code
_RECURSION_LIMIT = 5000

def run(src: str, path: Optional[str]=None, frame: Optional[Frame]=None) -> StlValue:
    """
    Parse and evaluate `src`, returning the program's final value.

    A fresh root frame (with built-ins bound) is used unless one is passed in.
    """
    init_stdlib()

    if sys.getrecursionlimit() < _RECURSION_LIMIT:
        sys.setrecursionlimit(_RECURSION_LIMIT)

    # ints print and parse at any length
    if hasattr(sys, "set_int_max_str_digits"):
        sys.set_int_max_str_digits(0)

    logger.debug("parsing %s (%d chars)", path or "<source>", len(src))
    ast = parse_source(src)

    if frame is None:
        frame = Frame(source=src, path=path)

    return run_program(ast, frame)

def run_file(path: str) -> StlValue:
    resolved = os.path.abspath(path)
    source = Path(resolved).read_text(encoding="utf-8")
    return run(source, path=resolved)

def repl_eval(src: str, frame: Frame) -> StlValue:
    """Evaluate one REPL entry in the persistent session frame."""
    frame.source = src
    return run(src, frame=frame)

def error_kind(exc: Exception) -> str:
    match exc:
        case StelRuntimeError(kind=kind):
            return kind
        case ParseError():
            return "ParseError"
        case LexError():
            return "LexError"
        case _:
            return type(exc).__name__

def _load_source(arg: Optional[str]) -> str:
    """
    Resolve CLI input into source text.
    - None or "-" => read stdin.
    - Otherwise the argument is a file path.
    """

    if arg is None or arg == "-":
        return sys.stdin.read()

    candidate = Path(arg)
    if not candidate.exists():
        raise SystemExit(f"No such file: {arg}")

    return candidate.read_text(encoding="utf-8")

def _configure_logging(verbose: bool) -> None:
    if verbose:
        level = logging.DEBUG
    else:
        name = os.getenv("STEL_LOG_LEVEL", "WARNING").upper()
        level = getattr(logging, name, logging.WARNING)

    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")

def _report(exc: Exception) -> None:
    print(f"{error_kind(exc)}: {exc}", file=sys.stderr)

    if debug_py_trace_enabled() and isinstance(exc, StelRuntimeError):
        print("\nPython traceback:", file=sys.stderr)
        print("".join(traceback.format_tb(exc.__traceback__)), file=sys.stderr, end="")

def main(argv: Optional[List[str]]=None) -> int:
    args = sys.argv[1:] if argv is None else argv
    verbose = False
    literal: Optional[str] = None
    arg: Optional[str] = None
    it = iter(args)

    for token in it:
        if token in ("-v", "--verbose"):
            verbose = True
            continue

        if token == "-e":
            try:
                literal = next(it)
            except StopIteration:
                raise SystemExit("-e flag requires source text") from None
            continue

        if arg is None:
            arg = token
        else:
            raise SystemExit(f"Unexpected argument: {token}")

    _configure_logging(verbose)

    if literal is None and arg is None:
        from .repl import repl

        repl()
        return 0

    try:
        if literal is not None:
            run(literal)
        elif arg == "-":
            run(_load_source(arg))
        else:
            path = os.path.abspath(arg)
            run(_load_source(path), path=path)
    except (LexError, ParseError, StelRuntimeError) as exc:
        _report(exc)
        return 1

    return 0

if __name__ == "__main__":
    sys.exit(main())
