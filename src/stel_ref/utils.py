from __future__ import annotations

import os
from typing import List, Optional

from .types import (
    StlValue,
    StlNull,
    StlInt,
    StlFloat,
    StlString,
    StlBool,
    StlList,
    StlMap,
    StlTuple,
    StlStruct,
    StlEnumVariant,
    StlFn,
    StdlibFunction,
    StelTypeError,
    type_name_of,
)


def value_in_list(seq: List[StlValue], value: StlValue) -> bool:
    for existing in seq:
        if stl_equals(existing, value):
            return True

    return False


def stl_equals(lhs: StlValue, rhs: StlValue) -> bool:
    match (lhs, rhs):
        case (StlNull(), StlNull()):
            return True
        case (StlInt(value=a) | StlFloat(value=a), StlInt(value=b) | StlFloat(value=b)):
            return a == b
        case (StlString(value=a), StlString(value=b)):
            return a == b
        case (StlBool(value=a), StlBool(value=b)):
            return a == b
        case (StlList(items=items_a), StlList(items=items_b)) | (StlTuple(items=items_a), StlTuple(items=items_b)):
            return len(items_a) == len(items_b) and all(
                stl_equals(a, b) for a, b in zip(items_a, items_b)
            )
        case (StlMap(entries=a), StlMap(entries=b)):
            return a.keys() == b.keys() and all(stl_equals(a[k], b[k]) for k in a)
        case (StlStruct(type_name=ta, fields=fa), StlStruct(type_name=tb, fields=fb)):
            # field order matters for display only
            return ta == tb and fa.keys() == fb.keys() and all(
                stl_equals(fa[k], fb[k]) for k in fa
            )
        case (StlEnumVariant() as a, StlEnumVariant() as b):
            return (
                a.type_name == b.type_name
                and a.tag == b.tag
                and len(a.payload) == len(b.payload)
                and all(stl_equals(x, y) for x, y in zip(a.payload, b.payload))
            )
        case (StlFn() | StdlibFunction(), _) | (_, StlFn() | StdlibFunction()):
            raise StelTypeError("Function values are not comparable")
        case _:
            return False


def is_numeric(value: StlValue) -> bool:
    return isinstance(value, (StlInt, StlFloat))


def iter_values(value: StlValue) -> List[StlValue]:
    """Items visited by for-in loops, comprehensions and higher-order built-ins."""
    match value:
        case StlList(items=items):
            return list(items)
        case StlTuple(items=items):
            return list(items)
        case StlMap(entries=entries):
            return [StlString(k) for k in entries]
        case StlString(value=s):
            return [StlString(ch) for ch in s]
        case _:
            raise StelTypeError(f"Value of type {type_name_of(value)} is not iterable")


def map_key(value: StlValue) -> str:
    if isinstance(value, StlString):
        return value.value

    raise StelTypeError(f"Map keys must be strings, got {type_name_of(value)}")


def stringify(value: Optional[StlValue]) -> str:
    """Top-level display: strings raw, everything else in literal form."""
    if isinstance(value, StlString):
        return value.value

    if isinstance(value, StlNull) or value is None:
        return "null"

    return repr(value)


def debug_py_trace_enabled() -> bool:
    return os.getenv("STEL_DEBUG_PY_TRACE", "").lower() in ("1", "true", "yes", "on")
