"""Built-in functions and string methods, registered via stel_ref.runtime."""

from __future__ import annotations

import math
import re
from typing import List, Optional

from .runtime import (
    Frame,
    StlBool,
    StlFloat,
    StlFn,
    StlInt,
    StlList,
    StlMap,
    StlNull,
    StlString,
    StlTuple,
    StlValue,
    StdlibFunction,
    StelArityError,
    StelIndexError,
    StelTypeError,
    StelValueError,
    call_value,
    register_list,
    register_map,
    register_stdlib,
    register_string,
    type_name_of,
)
from .eval.helpers import is_truthy
from .utils import is_numeric, iter_values, stl_equals, stringify, value_in_list

# ---------- argument helpers ----------

def _expect_args(name: str, args: List[StlValue], lo: int, hi: Optional[int] = None) -> None:
    hi = lo if hi is None else hi

    if lo <= len(args) <= hi:
        return

    expected = str(lo) if lo == hi else f"{lo} to {hi}"
    raise StelArityError(f"{name}() expects {expected} argument(s); got {len(args)}")

def _number(name: str, value: StlValue) -> float | int:
    if is_numeric(value):
        return value.value

    raise StelTypeError(f"{name}() expects a number, got {type_name_of(value)}")

def _int(name: str, value: StlValue) -> int:
    if isinstance(value, StlInt):
        return value.value

    raise StelTypeError(f"{name}() expects an int, got {type_name_of(value)}")

def _string(name: str, value: StlValue) -> str:
    if isinstance(value, StlString):
        return value.value

    raise StelTypeError(f"{name}() expects a string, got {type_name_of(value)}")

def _list(name: str, value: StlValue) -> List[StlValue]:
    if isinstance(value, StlList):
        return value.items

    raise StelTypeError(f"{name}() expects a list, got {type_name_of(value)}")

def _sequence(name: str, value: StlValue) -> List[StlValue]:
    if isinstance(value, (StlList, StlTuple)):
        return list(value.items)

    raise StelTypeError(f"{name}() expects a list, got {type_name_of(value)}")

def _map(name: str, value: StlValue) -> StlMap:
    if isinstance(value, StlMap):
        return value

    raise StelTypeError(f"{name}() expects a map, got {type_name_of(value)}")

def _callable(name: str, value: StlValue) -> StlValue:
    if isinstance(value, (StlFn, StdlibFunction)):
        return value

    raise StelTypeError(f"{name}() expects a function, got {type_name_of(value)}")

def _numeric_result(value: float | int) -> StlValue:
    return StlInt(value) if isinstance(value, int) else StlFloat(value)

def _sort_key(name: str, items: List[StlValue]):
    """Items must be all numbers or all strings to be ordered."""
    if all(is_numeric(x) for x in items) or all(isinstance(x, StlString) for x in items):
        return lambda x: x.value

    kinds = sorted({type_name_of(x) for x in items})
    raise StelTypeError(f"{name}() cannot order values of types {', '.join(kinds)}")

# ---------- I/O ----------

@register_stdlib("print")
def std_print(_frame: Frame, args: List[StlValue]) -> StlNull:
    rendered = [stringify(arg) for arg in args]
    print(*rendered)
    return StlNull()

@register_stdlib("input")
def std_input(_frame: Frame, args: List[StlValue]) -> StlValue:
    _expect_args("input", args, 0, 1)
    prompt = stringify(args[0]) if args else ""

    try:
        return StlString(input(prompt))
    except EOFError:
        return StlNull()

# ---------- math ----------

@register_stdlib("sqrt", arity=1)
def std_sqrt(_frame: Frame, args: List[StlValue]) -> StlFloat:
    x = _number("sqrt", args[0])

    if x < 0:
        raise StelValueError("sqrt() of a negative number")

    return StlFloat(math.sqrt(x))

@register_stdlib("abs", arity=1)
def std_abs(_frame: Frame, args: List[StlValue]) -> StlValue:
    return _numeric_result(abs(_number("abs", args[0])))

@register_stdlib("pow", arity=2)
def std_pow(_frame: Frame, args: List[StlValue]) -> StlFloat:
    base = _number("pow", args[0])
    exp = _number("pow", args[1])

    try:
        return StlFloat(math.pow(base, exp))
    except (OverflowError, ValueError) as exc:
        raise StelValueError(f"pow(): {exc}") from None

@register_stdlib("sin", arity=1)
def std_sin(_frame: Frame, args: List[StlValue]) -> StlFloat:
    return StlFloat(math.sin(_number("sin", args[0])))

@register_stdlib("cos", arity=1)
def std_cos(_frame: Frame, args: List[StlValue]) -> StlFloat:
    return StlFloat(math.cos(_number("cos", args[0])))

def _extreme(name: str, args: List[StlValue], pick) -> StlValue:
    if not args:
        raise StelArityError(f"{name}() expects at least 1 argument")

    items = _sequence(name, args[0]) if len(args) == 1 else list(args)

    if not items:
        raise StelValueError(f"{name}() of an empty list")

    return pick(items, key=_sort_key(name, items))

@register_stdlib("min")
def std_min(_frame: Frame, args: List[StlValue]) -> StlValue:
    return _extreme("min", args, min)

@register_stdlib("max")
def std_max(_frame: Frame, args: List[StlValue]) -> StlValue:
    return _extreme("max", args, max)

@register_stdlib("sum")
def std_sum(_frame: Frame, args: List[StlValue]) -> StlValue:
    _expect_args("sum", args, 1, 2)
    total: float | int = _number("sum", args[1]) if len(args) == 2 else 0

    for item in _sequence("sum", args[0]):
        total += _number("sum", item)

    return _numeric_result(total)

# ---------- sequences ----------

@register_stdlib("range")
def std_range(_frame: Frame, args: List[StlValue]) -> StlList:
    _expect_args("range", args, 1, 3)
    bounds = [_int("range", a) for a in args]

    if len(bounds) == 1:
        start, stop, step = 0, bounds[0], 1
    else:
        start, stop = bounds[0], bounds[1]
        step = bounds[2] if len(bounds) == 3 else 1

    if step == 0:
        raise StelValueError("range() step must not be zero")

    return StlList([StlInt(i) for i in range(start, stop, step)])

@register_stdlib("len", arity=1)
def std_len(_frame: Frame, args: List[StlValue]) -> StlInt:
    match args[0]:
        case StlString(value=s):
            return StlInt(len(s))
        case StlList(items=items) | StlTuple(items=items):
            return StlInt(len(items))
        case StlMap(entries=entries):
            return StlInt(len(entries))
        case other:
            raise StelTypeError(f"len() of unsized value of type {type_name_of(other)}")

@register_stdlib("reverse", arity=1)
def std_reverse(_frame: Frame, args: List[StlValue]) -> StlValue:
    match args[0]:
        case StlString(value=s):
            return StlString(s[::-1])
        case StlTuple(items=items):
            return StlTuple(tuple(reversed(items)))
        case StlList(items=items):
            return StlList(list(reversed(items)))
        case other:
            raise StelTypeError(f"reverse() expects a list or string, got {type_name_of(other)}")

@register_stdlib("sort", arity=1)
def std_sort(_frame: Frame, args: List[StlValue]) -> StlList:
    """Returns a sorted copy; the argument is left untouched."""
    items = _sequence("sort", args[0])
    return StlList(sorted(items, key=_sort_key("sort", items)))

@register_stdlib("join")
def std_join(_frame: Frame, args: List[StlValue]) -> StlString:
    _expect_args("join", args, 1, 2)
    sep = _string("join", args[1]) if len(args) == 2 else ""
    return StlString(sep.join(stringify(x) for x in _sequence("join", args[0])))

@register_stdlib("split")
def std_split(_frame: Frame, args: List[StlValue]) -> StlList:
    _expect_args("split", args, 1, 2)
    return StlList([StlString(p) for p in _split_parts("split", args)])

def _split_parts(name: str, args: List[StlValue]) -> List[str]:
    text = _string(name, args[0])

    if len(args) == 1:
        return text.split()

    sep = _string(name, args[1])
    if not sep:
        raise StelValueError(f"{name}() separator must not be empty")

    return text.split(sep)

@register_stdlib("zip")
def std_zip(_frame: Frame, args: List[StlValue]) -> StlList:
    if len(args) < 2:
        raise StelArityError(f"zip() expects at least 2 arguments; got {len(args)}")

    columns = [_sequence("zip", a) for a in args]
    return StlList([StlTuple(tuple(row)) for row in zip(*columns)])

@register_stdlib("enumerate", arity=1)
def std_enumerate(_frame: Frame, args: List[StlValue]) -> StlList:
    items = iter_values(args[0])
    return StlList([StlTuple((StlInt(i), x)) for i, x in enumerate(items)])

@register_stdlib("flatten", arity=1)
def std_flatten(_frame: Frame, args: List[StlValue]) -> StlList:
    out: List[StlValue] = []

    for item in _sequence("flatten", args[0]):
        if isinstance(item, (StlList, StlTuple)):
            out.extend(item.items)
        else:
            out.append(item)

    return StlList(out)

@register_stdlib("unique", arity=1)
def std_unique(_frame: Frame, args: List[StlValue]) -> StlList:
    out: List[StlValue] = []

    for item in _sequence("unique", args[0]):
        if not value_in_list(out, item):
            out.append(item)

    return StlList(out)

@register_stdlib("count", arity=2)
def std_count(_frame: Frame, args: List[StlValue]) -> StlInt:
    haystack, needle = args

    if isinstance(haystack, StlString):
        return StlInt(haystack.value.count(_string("count", needle)))

    return StlInt(sum(1 for x in _sequence("count", haystack) if stl_equals(x, needle)))

@register_stdlib("repeat", arity=2)
def std_repeat(_frame: Frame, args: List[StlValue]) -> StlValue:
    value, count = args
    n = _int("repeat", count)

    if n < 0:
        raise StelValueError("repeat() count must be non-negative")

    if isinstance(value, StlString):
        return StlString(value.value * n)

    return StlList([value] * n)

@register_stdlib("push", arity=2)
def std_push(_frame: Frame, args: List[StlValue]) -> StlNull:
    """Appends in place."""
    _list("push", args[0]).append(args[1])
    return StlNull()

@register_stdlib("pop")
def std_pop(_frame: Frame, args: List[StlValue]) -> StlValue:
    """Removes in place and returns the removed item (last by default)."""
    _expect_args("pop", args, 1, 2)
    items = _list("pop", args[0])

    if not items:
        raise StelIndexError("pop() from an empty list")

    idx = _int("pop", args[1]) if len(args) == 2 else -1
    if not -len(items) <= idx < len(items):
        raise StelIndexError(f"pop() index {idx} out of range")

    return items.pop(idx)

# ---------- higher-order (collection first) ----------

@register_stdlib("map", arity=2)
def std_map(frame: Frame, args: List[StlValue]) -> StlList:
    items, fn = iter_values(args[0]), _callable("map", args[1])
    return StlList([call_value(fn, [x], frame) for x in items])

@register_stdlib("filter", arity=2)
def std_filter(frame: Frame, args: List[StlValue]) -> StlList:
    items, fn = iter_values(args[0]), _callable("filter", args[1])
    return StlList([x for x in items if is_truthy(call_value(fn, [x], frame))])

@register_stdlib("find", arity=2)
def std_find(frame: Frame, args: List[StlValue]) -> StlValue:
    items, fn = iter_values(args[0]), _callable("find", args[1])

    for x in items:
        if is_truthy(call_value(fn, [x], frame)):
            return x

    return StlNull()

@register_stdlib("reduce")
def std_reduce(frame: Frame, args: List[StlValue]) -> StlValue:
    _expect_args("reduce", args, 2, 3)
    items, fn = iter_values(args[0]), _callable("reduce", args[1])

    if len(args) == 3:
        acc = args[2]
    elif items:
        acc, items = items[0], items[1:]
    else:
        raise StelValueError("reduce() of an empty list with no initial value")

    for x in items:
        acc = call_value(fn, [acc, x], frame)

    return acc

@register_stdlib("all")
def std_all(frame: Frame, args: List[StlValue]) -> StlBool:
    _expect_args("all", args, 1, 2)
    pred = _callable("all", args[1]) if len(args) == 2 else None

    for val in iter_values(args[0]):
        test = call_value(pred, [val], frame) if pred is not None else val
        if not is_truthy(test):
            return StlBool(False)

    return StlBool(True)

@register_stdlib("any")
def std_any(frame: Frame, args: List[StlValue]) -> StlBool:
    _expect_args("any", args, 1, 2)
    pred = _callable("any", args[1]) if len(args) == 2 else None

    for val in iter_values(args[0]):
        test = call_value(pred, [val], frame) if pred is not None else val
        if is_truthy(test):
            return StlBool(True)

    return StlBool(False)

# ---------- maps and lookups ----------

@register_stdlib("map_keys", arity=1)
def std_map_keys(_frame: Frame, args: List[StlValue]) -> StlList:
    return StlList([StlString(k) for k in _map("map_keys", args[0]).entries])

@register_stdlib("map_values", arity=1)
def std_map_values(_frame: Frame, args: List[StlValue]) -> StlList:
    return StlList(list(_map("map_values", args[0]).entries.values()))

@register_stdlib("array_contains", arity=2)
def std_array_contains(_frame: Frame, args: List[StlValue]) -> StlBool:
    return StlBool(value_in_list(_sequence("array_contains", args[0]), args[1]))

@register_stdlib("array_index_of", arity=2)
def std_array_index_of(_frame: Frame, args: List[StlValue]) -> StlInt:
    for idx, item in enumerate(_sequence("array_index_of", args[0])):
        if stl_equals(item, args[1]):
            return StlInt(idx)

    return StlInt(-1)

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")

@register_stdlib("interp", arity=2)
def std_interp(_frame: Frame, args: List[StlValue]) -> StlString:
    """Substitute {name} placeholders; unknown names are left as written."""
    template = _string("interp", args[0])
    values = _map("interp", args[1]).entries

    def substitute(m: re.Match) -> str:
        key = m.group(1)
        return stringify(values[key]) if key in values else m.group(0)

    return StlString(_PLACEHOLDER.sub(substitute, template))

# ---------- introspection ----------

@register_stdlib("type_of", arity=1)
def std_type_of(_frame: Frame, args: List[StlValue]) -> StlString:
    return StlString(type_name_of(args[0]))

@register_stdlib("to_string", arity=1)
def std_to_string(_frame: Frame, args: List[StlValue]) -> StlString:
    return StlString(stringify(args[0]))

# ---------- methods ----------

def _method_arity(method: str, args: List[StlValue], lo: int, hi: Optional[int] = None) -> None:
    hi = lo if hi is None else hi

    if not lo <= len(args) <= hi:
        expected = str(lo) if lo == hi else f"{lo} to {hi}"
        raise StelArityError(f"str.{method} expects {expected} argument(s); got {len(args)}")

def _method_string(method: str, arg: StlValue) -> str:
    if isinstance(arg, StlString):
        return arg.value

    raise StelTypeError(f"str.{method} expects a string argument")

@register_string("len")
def _string_len(_frame: Frame, recv: StlString, args: List[StlValue]) -> StlInt:
    _method_arity("len", args, 0)
    return StlInt(len(recv.value))

@register_string("upper")
def _string_upper(_frame: Frame, recv: StlString, args: List[StlValue]) -> StlString:
    _method_arity("upper", args, 0)
    return StlString(recv.value.upper())

@register_string("lower")
def _string_lower(_frame: Frame, recv: StlString, args: List[StlValue]) -> StlString:
    _method_arity("lower", args, 0)
    return StlString(recv.value.lower())

@register_string("strip")
def _string_strip(_frame: Frame, recv: StlString, args: List[StlValue]) -> StlString:
    _method_arity("strip", args, 0)
    return StlString(recv.value.strip())

@register_string("split")
def _string_split(_frame: Frame, recv: StlString, args: List[StlValue]) -> StlList:
    _method_arity("split", args, 0, 1)
    return StlList([StlString(p) for p in _split_parts("split", [recv, *args])])

@register_string("join")
def _string_join(_frame: Frame, recv: StlString, args: List[StlValue]) -> StlString:
    _method_arity("join", args, 1)
    return StlString(recv.value.join(stringify(x) for x in _sequence("join", args[0])))

@register_string("replace")
def _string_replace(_frame: Frame, recv: StlString, args: List[StlValue]) -> StlString:
    _method_arity("replace", args, 2, 3)
    old = _method_string("replace", args[0])
    new = _method_string("replace", args[1])
    count = _int("replace", args[2]) if len(args) == 3 else -1

    return StlString(recv.value.replace(old, new, count))

@register_string("find")
def _string_find(_frame: Frame, recv: StlString, args: List[StlValue]) -> StlInt:
    _method_arity("find", args, 1)
    return StlInt(recv.value.find(_method_string("find", args[0])))

@register_string("count")
def _string_count(_frame: Frame, recv: StlString, args: List[StlValue]) -> StlInt:
    _method_arity("count", args, 1)
    return StlInt(recv.value.count(_method_string("count", args[0])))

@register_string("startswith")
def _string_startswith(_frame: Frame, recv: StlString, args: List[StlValue]) -> StlBool:
    _method_arity("startswith", args, 1)
    return StlBool(recv.value.startswith(_method_string("startswith", args[0])))

@register_string("endswith")
def _string_endswith(_frame: Frame, recv: StlString, args: List[StlValue]) -> StlBool:
    _method_arity("endswith", args, 1)
    return StlBool(recv.value.endswith(_method_string("endswith", args[0])))

def _register_predicate(name: str) -> None:
    # str.isalnum and friends map one-to-one onto Python's str methods
    def method(_frame: Frame, recv: StlString, args: List[StlValue]) -> StlBool:
        _method_arity(name, args, 0)
        return StlBool(getattr(recv.value, name)())

    register_string(name)(method)

for _name in ("isalnum", "isalpha", "isdigit", "islower", "isupper", "isspace", "istitle"):
    _register_predicate(_name)

@register_list("len")
def _list_len(_frame: Frame, recv: StlList, args: List[StlValue]) -> StlInt:
    if args:
        raise StelArityError(f"list.len expects 0 argument(s); got {len(args)}")
    return StlInt(len(recv.items))

@register_map("len")
def _map_len(_frame: Frame, recv: StlMap, args: List[StlValue]) -> StlInt:
    if args:
        raise StelArityError(f"map.len expects 0 argument(s); got {len(args)}")
    return StlInt(len(recv.entries))
