from __future__ import annotations

from typing import Any

from ..runtime import (
    Frame,
    StlInt,
    StlList,
    StlMap,
    StlString,
    StlStruct,
    StlTuple,
    StlValue,
    StelIndexError,
    StelKeyError,
    StelRuntimeError,
    StelTypeError,
    type_name_of,
)
from ..tree import tree_children, tree_label
from ..utils import map_key
from .common import EvalFunc, expect_ident_token, ident_token_value
from .expr import apply_binary_operator

_COMPOUND_OPS = {
    'PLUSEQ': 'PLUS',
    'MINUSEQ': 'MINUS',
    'STAREQ': 'STAR',
    'SLASHEQ': 'SLASH',
    'MODEQ': 'MOD',
}

def _normalize_index(idx: StlValue, length: int) -> int:
    if not isinstance(idx, StlInt):
        raise StelTypeError(f"Indices must be ints, got {type_name_of(idx)}")

    pos = idx.value + length if idx.value < 0 else idx.value

    if pos < 0 or pos >= length:
        raise StelIndexError(f"Index {idx.value} out of range for length {length}")

    return pos

def index_value(recv: StlValue, idx: StlValue) -> StlValue:
    match recv:
        case StlList(items=items) | StlTuple(items=items):
            return items[_normalize_index(idx, len(items))]
        case StlString(value=s):
            return StlString(s[_normalize_index(idx, len(s))])
        case StlMap(entries=entries):
            key = map_key(idx)

            if key not in entries:
                raise StelKeyError(key)

            return entries[key]
        case _:
            raise StelTypeError(f"Value of type {type_name_of(recv)} is not indexable")

def set_index_value(recv: StlValue, idx: StlValue, value: StlValue) -> None:
    match recv:
        case StlList(items=items):
            items[_normalize_index(idx, len(items))] = value
        case StlMap(entries=entries):
            entries[map_key(idx)] = value
        case _:
            raise StelTypeError(f"Value of type {type_name_of(recv)} does not support item assignment")

def get_field_value(recv: StlValue, name: str) -> StlValue:
    match recv:
        case StlStruct(type_name=type_name, fields=fields):
            if name not in fields:
                raise StelTypeError(f"Struct '{type_name}' has no field '{name}'")
            return fields[name]
        case StlMap(entries=entries):
            if name not in entries:
                raise StelKeyError(name)
            return entries[name]
        case _:
            raise StelTypeError(f"Value of type {type_name_of(recv)} has no field '{name}'")

def set_field_value(recv: StlValue, name: str, value: StlValue) -> None:
    match recv:
        case StlStruct(type_name=type_name, fields=fields):
            if name not in fields:
                raise StelTypeError(f"Struct '{type_name}' has no field '{name}'")
            fields[name] = value
        case StlMap(entries=entries):
            entries[name] = value
        case _:
            raise StelTypeError(f"Cannot set field '{name}' on value of type {type_name_of(recv)}")

def exec_assign(children: list[Any], frame: Frame, eval_func: EvalFunc) -> None:
    """
    target = expr | target op= expr

    Targets are a name, obj[index] or obj.field. Receiver and index are
    evaluated before the right-hand side.
    """
    target, op, value_node = children
    base_op = _COMPOUND_OPS.get(str(op.type))
    name = ident_token_value(target)

    if name is not None:
        if base_op is None:
            frame.assign(name, eval_func(value_node, frame))
            return

        current = frame.get(name)
        frame.set(name, apply_binary_operator(base_op, current, eval_func(value_node, frame)))
        return

    label = tree_label(target)
    obj_node, key_node = tree_children(target)
    recv = eval_func(obj_node, frame)

    if label == 'index':
        idx = eval_func(key_node, frame)
        value = eval_func(value_node, frame)

        if base_op is not None:
            value = apply_binary_operator(base_op, index_value(recv, idx), value)

        set_index_value(recv, idx, value)
        return

    if label == 'field':
        field = expect_ident_token(key_node, "Field name")
        value = eval_func(value_node, frame)

        if base_op is not None:
            value = apply_binary_operator(base_op, get_field_value(recv, field), value)

        set_field_value(recv, field, value)
        return

    raise StelRuntimeError(f"Invalid assignment target {label}")
