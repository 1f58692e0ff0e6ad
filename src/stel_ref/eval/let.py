from __future__ import annotations

from typing import Any

from ..runtime import Frame, StlNull
from .common import EvalFunc, expect_ident_token
from .destructure import bind_target

def exec_let_stmt(children: list[Any], frame: Frame, eval_func: EvalFunc) -> None:
    """let name[: T] [= expr] binds in the current frame; no initializer binds null."""
    target, _typeann, value_node = children
    value = eval_func(value_node, frame) if value_node is not None else StlNull()

    bind_target(target, value, frame.define)

def exec_const_stmt(children: list[Any], frame: Frame, eval_func: EvalFunc) -> None:
    target, _typeann, value_node = children
    name = expect_ident_token(target, "const binding")
    value = eval_func(value_node, frame)

    frame.define(name, value, const=True)
