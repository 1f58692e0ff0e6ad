from __future__ import annotations

from typing import Any, Callable, List

from ..runtime import Frame, StlList, StlTuple, StlValue, StelRuntimeError, StelTypeError, StelValueError, type_name_of
from ..tree import tree_children, tree_label
from .common import EvalFunc, ident_token_value

Binder = Callable[[str, StlValue], None]

def unpack_values(value: StlValue, expected: int) -> List[StlValue]:
    if not isinstance(value, (StlTuple, StlList)):
        raise StelTypeError(f"Cannot destructure value of type {type_name_of(value)}")

    items = list(value.items)

    if len(items) != expected:
        raise StelValueError(f"Destructure arity mismatch: expected {expected} values, got {len(items)}")

    return items

def bind_target(target: Any, value: StlValue, bind: Binder) -> None:
    """Bind a name or a (possibly nested) tupletarget through `bind`."""
    name = ident_token_value(target)

    if name is not None:
        bind(name, value)
        return

    if tree_label(target) != 'tupletarget':
        raise StelRuntimeError(f"Unsupported binding target {tree_label(target)}")

    parts = tree_children(target)
    items = unpack_values(value, len(parts))

    for part, item in zip(parts, items):
        bind_target(part, item, bind)

def exec_destructure(children: list[Any], frame: Frame, eval_func: EvalFunc) -> None:
    """(a, b) = expr assigns each name with normal assignment rules."""
    target, value_node = children
    value = eval_func(value_node, frame)

    bind_target(target, value, frame.assign)
