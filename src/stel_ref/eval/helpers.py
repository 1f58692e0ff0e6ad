from __future__ import annotations

from ..runtime import StlBool, StlFloat, StlInt, StlList, StlMap, StlNull, StlString, StlValue

def is_truthy(val: StlValue) -> bool:
    match val:
        case StlBool(value=b):
            return b
        case StlNull():
            return False
        case StlInt(value=num) | StlFloat(value=num):
            return num != 0
        case StlString(value=s):
            return bool(s)
        case StlList(items=items):
            return bool(items)
        case StlMap(entries=entries):
            return bool(entries)
        case _:
            return True
