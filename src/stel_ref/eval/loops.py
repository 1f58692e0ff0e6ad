from __future__ import annotations

from typing import Any, Optional

from ..runtime import Break, Continue, Frame, Signal, StlList, StlValue
from ..tree import tree_label
from ..utils import iter_values
from .common import EvalFunc, ExecFunc
from .control import BlockFunc
from .destructure import bind_target
from .helpers import is_truthy

def exec_if_stmt(children: list[Any], frame: Frame, eval_func: EvalFunc, run_block: BlockFunc, exec_func: ExecFunc) -> Optional[Signal]:
    cond, body, else_branch = children

    if is_truthy(eval_func(cond, frame)):
        return run_block(body, frame)

    if else_branch is None:
        return None

    if tree_label(else_branch) == 'ifstmt':
        return exec_func(else_branch, frame)

    return run_block(else_branch, frame)

def _loop_outcome(signal: Optional[Signal]) -> tuple[bool, Optional[Signal]]:
    """Map a body signal to (stop looping, signal to propagate)."""
    match signal:
        case None | Continue():
            return False, None
        case Break():
            return True, None
        case _:
            return True, signal

def exec_while_stmt(children: list[Any], frame: Frame, eval_func: EvalFunc, run_block: BlockFunc) -> Optional[Signal]:
    cond, body = children

    while is_truthy(eval_func(cond, frame)):
        stop, outward = _loop_outcome(run_block(body, frame))

        if stop:
            return outward

    return None

def exec_for_stmt(children: list[Any], frame: Frame, eval_func: EvalFunc, run_block: BlockFunc) -> Optional[Signal]:
    """
    for target in iterable { body }

    The iterable is evaluated once and snapshotted; each iteration binds the
    target in its own child frame so closures capture that iteration's value.
    """
    target, iterable_node, body = children
    items = iter_values(eval_func(iterable_node, frame))

    for item in items:
        iter_frame = Frame(parent=frame)
        bind_target(target, item, iter_frame.define)
        stop, outward = _loop_outcome(run_block(body, iter_frame))

        if stop:
            return outward

    return None

def eval_listcomp(children: list[Any], frame: Frame, eval_func: EvalFunc) -> StlList:
    element, target, iterable_node, cond = children
    results: list[StlValue] = []

    for item in iter_values(eval_func(iterable_node, frame)):
        iter_frame = Frame(parent=frame)
        bind_target(target, item, iter_frame.define)

        if cond is not None and not is_truthy(eval_func(cond, iter_frame)):
            continue

        results.append(eval_func(element, iter_frame))

    return StlList(results)
