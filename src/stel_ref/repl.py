"""Interactive REPL for StelLang, powered by prompt_toolkit."""

from __future__ import annotations

import logging
import os
import re
import sys
import traceback
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings

from .lexer_rd import LexError, tokenize
from .parser_rd import ParseError
from .runner import repl_eval
from .runtime import Frame, StlNull, StelRuntimeError, init_stdlib
from .token_types import TT
from .utils import debug_py_trace_enabled, stringify

logger = logging.getLogger(__name__)

# Zero-width and invisible characters to strip from input.
_INVISIBLE_RE = re.compile("[\u200b\u200c\u200d\ufeff\u00a0\r]")

# Slash commands: name => (description, argument_hint).
_SLASH_CMDS = {
    "/py-traceback": ("Toggle Python traceback on errors", "[on|off]"),
    "/reset": ("Reset the REPL environment", ""),
}

_DEPTH_OPEN = {TT.LPAR, TT.LSQB, TT.LBRACE}
_DEPTH_CLOSE = {TT.RPAR, TT.RSQB, TT.RBRACE}

def _open_depth(text: str) -> int:
    """Net count of unclosed brackets; an unterminated string counts as open."""
    try:
        tokens = tokenize(text)
    except LexError as exc:
        return 1 if "Unterminated" in exc.message else 0

    depth = 0

    for tok in tokens:
        if tok.type in _DEPTH_OPEN:
            depth += 1
        elif tok.type in _DEPTH_CLOSE:
            depth -= 1

    return depth

def _needs_more(text: str) -> bool:
    return _open_depth(text) > 0

class _SlashCompleter(Completer):
    """Autocomplete slash commands on the primary prompt."""

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        if not text.startswith("/"):
            return

        for cmd, (desc, _hint) in _SLASH_CMDS.items():
            if cmd.startswith(text):
                yield Completion(
                    cmd,
                    start_position=-len(text),
                    display_meta=desc,
                )

def _handle_slash(line: str, frame_box: list[Frame]) -> bool:
    """Handle slash commands. Returns True if the line was a command."""
    stripped = line.strip()
    if not stripped.startswith("/"):
        return False

    parts = stripped.split(None, 1)
    cmd = parts[0]
    arg = parts[1] if len(parts) > 1 else ""

    if cmd == "/py-traceback":
        if arg.lower() in ("on", "1", "true", "yes"):
            os.environ["STEL_DEBUG_PY_TRACE"] = "1"
        elif arg.lower() in ("off", "0", "false", "no"):
            os.environ.pop("STEL_DEBUG_PY_TRACE", None)
        elif arg == "":
            if debug_py_trace_enabled():
                os.environ.pop("STEL_DEBUG_PY_TRACE", None)
            else:
                os.environ["STEL_DEBUG_PY_TRACE"] = "1"
        else:
            print("Usage: /py-traceback [on|off]", file=sys.stderr)
            return True

        state = "on" if debug_py_trace_enabled() else "off"
        print(f"Python traceback: {state}")
        return True

    if cmd == "/reset":
        init_stdlib()
        frame_box[0] = Frame(source="")
        logger.debug("repl environment reset")
        print("Environment reset.")
        return True

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return True

def _normalize(text: str) -> str:
    """Strip invisible characters from input."""
    return _INVISIBLE_RE.sub("", text)

def _report(exc: Exception) -> None:
    print(f"Error: {exc}", file=sys.stderr)

    if debug_py_trace_enabled() and isinstance(exc, StelRuntimeError):
        print("\nPython traceback:", file=sys.stderr)
        print("".join(traceback.format_tb(exc.__traceback__)), file=sys.stderr, end="")

def repl() -> None:
    """Interactive read-eval-print loop with prompt_toolkit."""
    init_stdlib()
    # Mutable box so /reset can swap the frame.
    frame_box: list[Frame] = [Frame(source="")]

    bindings = KeyBindings()

    @bindings.add("enter")
    def _enter(event):
        buf = event.app.current_buffer

        if _needs_more(buf.text):
            buf.insert_text("\n")
            return

        buf.validate_and_handle()

    session: PromptSession[str] = PromptSession(
        history=InMemoryHistory(),
        completer=_SlashCompleter(),
        complete_while_typing=True,
        key_bindings=bindings,
        multiline=True,
        prompt_continuation="... ",
    )

    print("stel repl - Ctrl-D to exit, / for commands")

    while True:
        try:
            text = session.prompt(">>> ")
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print("KeyboardInterrupt")
            continue

        text = _normalize(text)
        if not text.strip():
            continue

        if _handle_slash(text, frame_box):
            continue

        try:
            result = repl_eval(text, frame_box[0])
        except (ParseError, LexError, StelRuntimeError) as exc:
            _report(exc)
            continue

        if not isinstance(result, StlNull):
            print(stringify(result))
