from __future__ import annotations

from typing import Any, List

from ..runtime import (
    Frame,
    StdlibFunction,
    StlFn,
    StlMap,
    StlStruct,
    StlValue,
    call_builtin_method,
    call_value,
)
from ..tree import tree_children
from .common import EvalFunc, expect_ident_token
from .mutation import get_field_value, index_value

def eval_args_node(args_node: Any, frame: Frame, eval_func: EvalFunc) -> List[StlValue]:
    """Arguments are evaluated left to right."""
    return [eval_func(arg, frame) for arg in tree_children(args_node)]

def eval_call(children: list[Any], frame: Frame, eval_func: EvalFunc) -> StlValue:
    callee_node, args_node = children
    callee = eval_func(callee_node, frame)
    args = eval_args_node(args_node, frame, eval_func)

    return call_value(callee, args, frame)

def eval_index(children: list[Any], frame: Frame, eval_func: EvalFunc) -> StlValue:
    recv = eval_func(children[0], frame)
    idx = eval_func(children[1], frame)

    return index_value(recv, idx)

def eval_field(children: list[Any], frame: Frame, eval_func: EvalFunc) -> StlValue:
    recv = eval_func(children[0], frame)
    name = expect_ident_token(children[1], "Field access")

    return get_field_value(recv, name)

def eval_method(children: list[Any], frame: Frame, eval_func: EvalFunc) -> StlValue:
    """
    recv.name(args)

    A struct field or map entry holding a function is called directly;
    everything else goes to the built-in method tables.
    """
    recv_node, name_node, args_node = children
    recv = eval_func(recv_node, frame)
    name = expect_ident_token(name_node, "Method call")
    args = eval_args_node(args_node, frame, eval_func)

    match recv:
        case StlStruct(fields=slots) | StlMap(entries=slots) if isinstance(slots.get(name), (StlFn, StdlibFunction)):
            return call_value(slots[name], args, frame)

    return call_builtin_method(recv, name, args, frame)
