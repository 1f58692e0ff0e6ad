"""
Pattern matching for `match` expressions and statements.

Arms are tried in declaration order and the first match wins:
- `_` matches anything
- literals compare with structural equality
- `lo..hi` is an inclusive numeric range
- a bare name matches anything and binds it for the arm body
- tuple, enum variant and struct patterns match their shape recursively
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Tuple

from ..runtime import (
    Break,
    Continue,
    Frame,
    Return,
    Signal,
    StlBool,
    StlEnumVariant,
    StlFloat,
    StlFn,
    StlInt,
    StlList,
    StlNull,
    StlString,
    StlStruct,
    StlTuple,
    StlValue,
    StdlibFunction,
    StelMatchError,
    StelNameError,
    StelRuntimeError,
    StelTypeError,
    Throw,
)
from ..tree import is_tree, tree_children, tree_label
from ..utils import is_numeric, stl_equals
from .common import BodyResult, EvalFunc, expect_ident_token, token_kind

BodyFunc = Callable[[Any, Frame], BodyResult]
Bindings = Dict[str, StlValue]

def literal_pattern_value(tok: Any) -> StlValue:
    match token_kind(tok):
        case 'INT':
            return StlInt(int(tok.value))
        case 'FLOAT':
            return StlFloat(float(tok.value))
        case 'STRING':
            return StlString(str(tok.value))
        case 'TRUE':
            return StlBool(True)
        case 'FALSE':
            return StlBool(False)
        case 'NULL':
            return StlNull()
        case kind:
            raise StelRuntimeError(f"Unsupported literal pattern {kind}")

def match_pattern(pattern: Any, value: StlValue, bindings: Bindings, frame: Frame) -> bool:
    label = tree_label(pattern)
    kids = tree_children(pattern)

    match label:
        case 'wildcard':
            return True
        case 'bindpat':
            bindings[expect_ident_token(kids[0], "Pattern binding")] = value
            return True
        case 'litpat':
            if isinstance(value, (StlFn, StdlibFunction)):
                return False
            return stl_equals(literal_pattern_value(kids[0]), value)
        case 'rangepat':
            lo = literal_pattern_value(kids[0])
            hi = literal_pattern_value(kids[1])

            if not (is_numeric(lo) and is_numeric(hi)):
                raise StelTypeError("Range pattern bounds must be numbers")

            return is_numeric(value) and lo.value <= value.value <= hi.value
        case 'tuplepat':
            if not isinstance(value, (StlTuple, StlList)) or len(value.items) != len(kids):
                return False
            return all(match_pattern(p, v, bindings, frame) for p, v in zip(kids, value.items))
        case 'enumpat':
            return _match_enum(kids, value, bindings, frame)
        case 'structpat':
            return _match_struct(kids, value, bindings, frame)
        case _:
            raise StelRuntimeError(f"Unknown pattern {label}")

def _match_enum(kids: list[Any], value: StlValue, bindings: Bindings, frame: Frame) -> bool:
    type_tok, variant_tok, subpats = kids
    type_name = expect_ident_token(type_tok, "Enum pattern type")
    tag = expect_ident_token(variant_tok, "Enum pattern variant")
    desc = frame.session.types.enum(type_name)

    if desc.arity(tag) is None:
        raise StelNameError(f"Enum '{type_name}' has no variant '{tag}'")

    if not isinstance(value, StlEnumVariant) or value.type_name != type_name or value.tag != tag:
        return False

    if subpats is None:
        return True

    parts = tree_children(subpats)
    if len(parts) != len(value.payload):
        return False

    return all(match_pattern(p, v, bindings, frame) for p, v in zip(parts, value.payload))

def _match_struct(kids: list[Any], value: StlValue, bindings: Bindings, frame: Frame) -> bool:
    type_name = expect_ident_token(kids[0], "Struct pattern type")
    desc = frame.session.types.struct(type_name)

    for fieldpat in kids[1:]:
        field = expect_ident_token(fieldpat.children[0], "Struct pattern field")
        if field not in desc.fields:
            raise StelTypeError(f"Struct '{type_name}' has no field '{field}'")

    if not isinstance(value, StlStruct) or value.type_name != type_name:
        return False

    for fieldpat in kids[1:]:
        field_tok, sub = fieldpat.children
        if not match_pattern(sub, value.fields[str(field_tok.value)], bindings, frame):
            return False

    return True

def select_arm(children: list[Any], frame: Frame, eval_func: EvalFunc) -> Tuple[Any, Frame]:
    """Evaluate the subject once and return (arm body, arm frame) for the first match."""
    subject_node, *arms = children
    subject = eval_func(subject_node, frame)

    for arm in arms:
        pattern, body = arm.children
        bindings: Bindings = {}

        if match_pattern(pattern, subject, bindings, frame):
            if not bindings:
                return body, frame

            # pattern bindings are local to the arm
            arm_frame = Frame(parent=frame)

            for name, bound in bindings.items():
                arm_frame.define(name, bound)

            return body, arm_frame

    raise StelMatchError(f"No match arm matched value {subject!r}")

def _is_block(body: Any) -> bool:
    return is_tree(body) and tree_label(body) == 'block'

def exec_match_stmt(children: list[Any], frame: Frame, eval_func: EvalFunc, run_body: BodyFunc) -> BodyResult:
    """match as a statement: signals from block arms propagate outward."""
    body, arm_frame = select_arm(children, frame, eval_func)

    if _is_block(body):
        return run_body(body, arm_frame)

    return None, eval_func(body, arm_frame)

def eval_match_expr(children: list[Any], frame: Frame, eval_func: EvalFunc, run_body: BodyFunc) -> StlValue:
    """match as an expression: a block arm yields its last expression statement."""
    body, arm_frame = select_arm(children, frame, eval_func)

    if not _is_block(body):
        return eval_func(body, arm_frame)

    signal, value = run_body(body, arm_frame)
    _reject_signal(signal)

    return value

def _reject_signal(signal: Optional[Signal]) -> None:
    match signal:
        case None:
            return
        case Throw(error=error):
            raise error
        case Return():
            raise StelRuntimeError("'return' inside a match expression arm; use match as a statement")
        case Break() | Continue():
            raise StelRuntimeError("'break'/'continue' inside a match expression arm; use match as a statement")
