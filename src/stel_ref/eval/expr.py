from __future__ import annotations

import math
from typing import List

from lark import Token

from ..runtime import (
    Frame,
    StlBool,
    StlFloat,
    StlInt,
    StlList,
    StlMap,
    StlNull,
    StlString,
    StlTuple,
    StlValue,
    StelRuntimeError,
    StelTypeError,
    StelValueError,
    StelZeroDivisionError,
    type_name_of,
)
from ..tree import Node
from ..utils import is_numeric, stl_equals, value_in_list
from .common import EvalFunc
from .helpers import is_truthy

_OP_SYMBOLS = {
    'PLUS': '+', 'MINUS': '-', 'STAR': '*', 'SLASH': '/', 'FLOORDIV': '//',
    'MOD': '%', 'POW': '**', 'AMP': '&', 'PIPE': '|', 'CARET': '^',
    'LSHIFT': '<<', 'RSHIFT': '>>', 'EQ': '==', 'NEQ': '!=', 'LT': '<',
    'LTE': '<=', 'GT': '>', 'GTE': '>=', 'IN': 'in', 'NOTIN': 'not in',
    'IS': 'is', 'ISNOT': 'is not',
}

_PRIMITIVES = (StlNull, StlInt, StlFloat, StlString, StlBool)

def eval_unary(op: Token, operand: Node, frame: Frame, eval_func: EvalFunc) -> StlValue:
    val = eval_func(operand, frame)

    match (op.type, val):
        case ('MINUS', StlInt(value=v)):
            return StlInt(-v)
        case ('MINUS', StlFloat(value=v)):
            return StlFloat(-v)
        case ('PLUS', StlInt() | StlFloat()):
            return val
        case ('TILDE', StlInt(value=v)):
            return StlInt(~v)
        case _:
            raise StelTypeError(f"Bad operand type for unary {op.value}: {type_name_of(val)}")

def eval_not(children: List[Node], frame: Frame, eval_func: EvalFunc) -> StlBool:
    return StlBool(not is_truthy(eval_func(children[0], frame)))

def eval_logical(kind: str, children: List[Node], frame: Frame, eval_func: EvalFunc) -> StlBool:
    """Short-circuit and/or; operands after the deciding one are never evaluated."""
    for child in children:
        truthy = is_truthy(eval_func(child, frame))

        if kind == 'and' and not truthy:
            return StlBool(False)
        if kind == 'or' and truthy:
            return StlBool(True)

    return StlBool(kind == 'and')

def eval_binop(children: List[Node], frame: Frame, eval_func: EvalFunc) -> StlValue:
    lhs_node, op, rhs_node = children
    lhs = eval_func(lhs_node, frame)
    rhs = eval_func(rhs_node, frame)

    return apply_binary_operator(str(op.type), lhs, rhs)

def eval_range_expr(children: List[Node], frame: Frame, eval_func: EvalFunc) -> StlList:
    lo = eval_func(children[0], frame)
    hi = eval_func(children[1], frame)

    if not isinstance(lo, StlInt) or not isinstance(hi, StlInt):
        raise StelTypeError(f"Range bounds must be ints, got {type_name_of(lo)} and {type_name_of(hi)}")

    return StlList([StlInt(i) for i in range(lo.value, hi.value)])

def apply_binary_operator(op: str, lhs: StlValue, rhs: StlValue) -> StlValue:
    try:
        return _apply(op, lhs, rhs)
    except OverflowError:
        # int too large for float promotion or true division
        symbol = _OP_SYMBOLS.get(op, op)
        raise StelValueError(f"Numeric result out of range for {symbol}") from None

def _apply(op: str, lhs: StlValue, rhs: StlValue) -> StlValue:
    match op:
        case 'PLUS':
            return _add(lhs, rhs)
        case 'MINUS':
            return _arith(op, lhs, rhs, lambda a, b: a - b)
        case 'STAR':
            return _mul(lhs, rhs)
        case 'SLASH':
            _require_numbers(op, lhs, rhs)
            _check_divisor(rhs)
            return StlFloat(lhs.value / rhs.value)
        case 'FLOORDIV':
            _require_numbers(op, lhs, rhs)
            _check_divisor(rhs)
            return _arith(op, lhs, rhs, lambda a, b: a // b)
        case 'MOD':
            _require_numbers(op, lhs, rhs)
            _check_divisor(rhs)
            return _arith(op, lhs, rhs, lambda a, b: a % b)
        case 'POW':
            return _pow(lhs, rhs)
        case 'AMP' | 'PIPE' | 'CARET' | 'LSHIFT' | 'RSHIFT':
            return _bitwise(op, lhs, rhs)
        case 'EQ':
            return StlBool(stl_equals(lhs, rhs))
        case 'NEQ':
            return StlBool(not stl_equals(lhs, rhs))
        case 'LT' | 'LTE' | 'GT' | 'GTE':
            return StlBool(_compare(op, lhs, rhs))
        case 'IN':
            return StlBool(_contains(rhs, lhs))
        case 'NOTIN':
            return StlBool(not _contains(rhs, lhs))
        case 'IS':
            return StlBool(_identical(lhs, rhs))
        case 'ISNOT':
            return StlBool(not _identical(lhs, rhs))
        case _:
            raise StelRuntimeError(f"Unknown operator {op}")

def _operand_error(op: str, lhs: StlValue, rhs: StlValue) -> StelTypeError:
    symbol = _OP_SYMBOLS.get(op, op)
    return StelTypeError(
        f"Unsupported operand types for {symbol}: {type_name_of(lhs)} and {type_name_of(rhs)}"
    )

def _require_numbers(op: str, lhs: StlValue, rhs: StlValue) -> None:
    if not (is_numeric(lhs) and is_numeric(rhs)):
        raise _operand_error(op, lhs, rhs)

def _check_divisor(rhs: StlValue) -> None:
    if rhs.value == 0:
        raise StelZeroDivisionError("Division by zero")

def _arith(op: str, lhs: StlValue, rhs: StlValue, fn) -> StlValue:
    _require_numbers(op, lhs, rhs)

    if isinstance(lhs, StlInt) and isinstance(rhs, StlInt):
        return StlInt(fn(lhs.value, rhs.value))

    return StlFloat(float(fn(lhs.value, rhs.value)))

def _add(lhs: StlValue, rhs: StlValue) -> StlValue:
    if isinstance(lhs, StlString) and isinstance(rhs, StlString):
        return StlString(lhs.value + rhs.value)

    return _arith('PLUS', lhs, rhs, lambda a, b: a + b)

def _repeat_count(count: int) -> int:
    if count < 0:
        raise StelValueError("Repetition count must be non-negative")
    return count

def _mul(lhs: StlValue, rhs: StlValue) -> StlValue:
    match (lhs, rhs):
        case (StlString(value=s), StlInt(value=n)) | (StlInt(value=n), StlString(value=s)):
            return StlString(s * _repeat_count(n))
        case (StlList(items=items), StlInt(value=n)) | (StlInt(value=n), StlList(items=items)):
            return StlList(list(items) * _repeat_count(n))
        case _:
            return _arith('STAR', lhs, rhs, lambda a, b: a * b)

def _pow(lhs: StlValue, rhs: StlValue) -> StlFloat:
    _require_numbers('POW', lhs, rhs)

    try:
        return StlFloat(math.pow(lhs.value, rhs.value))
    except ZeroDivisionError:
        raise StelZeroDivisionError("Zero cannot be raised to a negative power") from None
    except (OverflowError, ValueError) as exc:
        raise StelValueError(f"Invalid power: {exc}") from None

def _bitwise(op: str, lhs: StlValue, rhs: StlValue) -> StlInt:
    if not (isinstance(lhs, StlInt) and isinstance(rhs, StlInt)):
        raise _operand_error(op, lhs, rhs)

    a, b = lhs.value, rhs.value

    match op:
        case 'AMP':
            return StlInt(a & b)
        case 'PIPE':
            return StlInt(a | b)
        case 'CARET':
            return StlInt(a ^ b)

    if b < 0:
        raise StelValueError("Negative shift count")

    return StlInt(a << b if op == 'LSHIFT' else a >> b)

def _compare(op: str, lhs: StlValue, rhs: StlValue) -> bool:
    if is_numeric(lhs) and is_numeric(rhs):
        a, b = lhs.value, rhs.value
    elif isinstance(lhs, StlString) and isinstance(rhs, StlString):
        a, b = lhs.value, rhs.value
    else:
        raise _operand_error(op, lhs, rhs)

    match op:
        case 'LT':
            return a < b
        case 'LTE':
            return a <= b
        case 'GT':
            return a > b
        case _:
            return a >= b

def _contains(container: StlValue, item: StlValue) -> bool:
    match container:
        case StlList(items=items) | StlTuple(items=items):
            return value_in_list(list(items), item)
        case StlMap(entries=entries):
            return isinstance(item, StlString) and item.value in entries
        case StlString(value=s):
            if not isinstance(item, StlString):
                raise StelTypeError(f"'in <str>' requires a string operand, got {type_name_of(item)}")
            return item.value in s
        case _:
            raise StelTypeError(f"Argument of type {type_name_of(container)} does not support 'in'")

def _identical(lhs: StlValue, rhs: StlValue) -> bool:
    if isinstance(lhs, _PRIMITIVES) and isinstance(rhs, _PRIMITIVES):
        return type(lhs) is type(rhs) and stl_equals(lhs, rhs)

    return lhs is rhs
