from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from ..runtime import Break, Continue, Frame, Return, Signal, StlNull, StelThrow, Throw
from .common import EvalFunc, ident_token_value

logger = logging.getLogger(__name__)

BlockFunc = Callable[[Any, Frame], Optional[Signal]]

def exec_return_stmt(children: list[Any], frame: Frame, eval_func: EvalFunc) -> Signal:
    expr = children[0] if children else None
    value = eval_func(expr, frame) if expr is not None else StlNull()

    return Return(value)

def exec_throw_stmt(children: list[Any], frame: Frame, eval_func: EvalFunc) -> Signal:
    value = eval_func(children[0], frame)

    return Throw(StelThrow(value))

def exec_break_stmt(_children: list[Any], _frame: Frame) -> Signal:
    return Break()

def exec_continue_stmt(_children: list[Any], _frame: Frame) -> Signal:
    return Continue()

def exec_try_stmt(children: list[Any], frame: Frame, run_block: BlockFunc) -> Optional[Signal]:
    """
    try { body } catch [name] { handler }

    Only Throw is intercepted; Return/Break/Continue pass through untouched.
    The handler runs in a fresh child of the try statement's frame.
    """
    body, binder, handler = children
    signal = run_block(body, frame)

    if not isinstance(signal, Throw):
        return signal

    logger.debug("caught %s: %s", signal.error.kind, signal.error.message)

    catch_frame = Frame(parent=frame)
    name = ident_token_value(binder)

    if name is not None:
        catch_frame.define(name, signal.value)

    return run_block(handler, catch_frame)
