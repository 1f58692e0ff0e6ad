from __future__ import annotations

from typing import Any, Callable, List

from ..runtime import Frame, StlNull, StlValue
from ..tree import tree_children, tree_label
from .common import BodyResult, ExecFunc

ExprStmtFunc = Callable[[Any, Frame], BodyResult]

_BINDING_STMTS = {'letstmt', 'conststmt'}

def declares_bindings(block: Any) -> bool:
    """True when the block directly introduces let/const bindings."""
    return any(tree_label(stmt) in _BINDING_STMTS for stmt in tree_children(block))

def exec_statements(stmts: List[Any], frame: Frame, exec_func: ExecFunc, expr_func: ExprStmtFunc) -> BodyResult:
    """
    Run statements in order until one yields a signal.

    Returns (signal, value) where value is the result of the last expression
    statement that ran, or null.
    """
    result: StlValue = StlNull()

    for stmt in stmts:
        if tree_label(stmt) == 'exprstmt':
            signal, result = expr_func(stmt, frame)
        else:
            signal = exec_func(stmt, frame)

        if signal is not None:
            return signal, result

    return None, result

def block_frame(block: Any, frame: Frame) -> Frame:
    if declares_bindings(block):
        return Frame(parent=frame)

    return frame

def exec_block_body(block: Any, frame: Frame, exec_func: ExecFunc, expr_func: ExprStmtFunc, scoped: bool=True) -> BodyResult:
    target = block_frame(block, frame) if scoped else frame
    return exec_statements(tree_children(block), target, exec_func, expr_func)
