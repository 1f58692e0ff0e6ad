from __future__ import annotations

import importlib
import logging
from typing import Callable, Dict, List, Optional

from .types import (
    StlNull, StlInt, StlFloat, StlString, StlBool, StlList, StlMap, StlTuple,
    StlStruct, StlEnumVariant, StlFn, StdlibFunction, Param,
    StlValue, Frame, Session, TypeRegistry, StructDescriptor, EnumDescriptor,
    Return, Break, Continue, Throw, Signal,
    StelRuntimeError, StelNameError, StelTypeError, StelArityError, StelMatchError,
    StelImportError, StelZeroDivisionError, StelValueError, StelIndexError,
    StelKeyError, StelThrow,
    Method, MethodRegistry, Builtins,
    is_stl_value, type_name_of, StdlibFn,
)

logger = logging.getLogger(__name__)

_STDLIB_INITIALIZED = False

def init_stdlib() -> None:
    """Load stdlib modules (idempotent) so register_stdlib hooks run."""
    global _STDLIB_INITIALIZED

    if _STDLIB_INITIALIZED:
        return

    importlib.import_module("stel_ref.stdlib")
    _STDLIB_INITIALIZED = True
    logger.debug("stdlib loaded: %d functions, %d string methods",
                 len(Builtins.stdlib_functions), len(Builtins.string_methods))

def register_method(registry: MethodRegistry, name: str):
    def dec(fn: Callable[..., StlValue]):
        registry[name] = fn
        return fn

    return dec

def register_string(name: str):
    return register_method(Builtins.string_methods, name)

def register_list(name: str):
    return register_method(Builtins.list_methods, name)

def register_map(name: str):
    return register_method(Builtins.map_methods, name)

def register_stdlib(name: str, *, arity: Optional[int] = None):
    def dec(fn: StdlibFn):
        Builtins.stdlib_functions[name] = StdlibFunction(fn=fn, arity=arity, name=name)
        return fn

    return dec

def call_builtin_method(recv: StlValue, name: str, args: List[StlValue], frame: Frame) -> StlValue:
    registry_by_type: Dict[type, MethodRegistry] = {
        StlString: Builtins.string_methods,
        StlList: Builtins.list_methods,
        StlMap: Builtins.map_methods,
    }

    registry = registry_by_type.get(type(recv))
    if registry:
        handler = registry.get(name)
        if handler is not None:
            return handler(frame, recv, args)

    raise StelTypeError(f"{type_name_of(recv)} has no method '{name}'")

def call_value(callee: StlValue, args: List[StlValue], frame: Frame) -> StlValue:
    match callee:
        case StlFn():
            return call_stlfn(callee, args)
        case StdlibFunction(fn=fn, arity=arity, name=name):
            if arity is not None and len(args) != arity:
                raise StelArityError(f"{name}() expects {arity} argument(s); got {len(args)}")
            try:
                return fn(frame, args)
            except OverflowError:
                raise StelValueError(f"{name}(): numeric result out of range") from None
        case _:
            raise StelTypeError(f"Value of type {type_name_of(callee)} is not callable")

def call_stlfn(fn: StlFn, positional: List[StlValue]) -> StlValue:
    """
    Call a user function:
    - bind positionals in order; trailing defaults fill the rest
    - defaults are evaluated per call in the callee frame
    - the callee frame's parent is the closure frame, never the caller's
    """
    from .evaluator import eval_node, exec_block  # local import to avoid cycle

    params = fn.params
    required = sum(1 for p in params if p.default is None)
    label = fn.name or "anonymous function"

    if len(positional) < required or len(positional) > len(params):
        if required == len(params):
            expected = str(required)
        else:
            expected = f"{required} to {len(params)}"
        raise StelArityError(f"{label}() expects {expected} argument(s); got {len(positional)}")

    callee_frame = Frame(parent=fn.frame)

    for idx, param in enumerate(params):
        if idx < len(positional):
            value = positional[idx]
        else:
            value = eval_node(param.default, callee_frame)
        callee_frame.define(param.name, value)

    try:
        signal = exec_block(fn.body, callee_frame, scoped=False)
    except RecursionError:
        raise StelRuntimeError("Maximum recursion depth exceeded") from None

    match signal:
        case None:
            return StlNull()
        case Return(value=value):
            return value
        case Throw(error=error):
            raise error
        case Break():
            raise StelRuntimeError("'break' outside of a loop")
        case Continue():
            raise StelRuntimeError("'continue' outside of a loop")

    raise StelRuntimeError(f"Unexpected signal {signal!r}")
