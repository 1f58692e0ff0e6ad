from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple, TypeVar
from typing_extensions import Protocol, TypeAlias, TypeGuard
from .tree import Node

# ---------- Value Model ----------

@dataclass
class StlNull:
    def __repr__(self) -> str:
        return "null"

@dataclass
class StlInt:
    value: int
    def __repr__(self) -> str:
        return str(self.value)

@dataclass
class StlFloat:
    value: float
    def __repr__(self) -> str:
        return repr(self.value)

@dataclass
class StlString:
    value: str
    def __repr__(self) -> str:
        escaped = self.value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
        return f'"{escaped}"'

@dataclass
class StlBool:
    value: bool
    def __repr__(self) -> str:
        return "true" if self.value else "false"

@dataclass
class StlList:
    items: List['StlValue']
    def __repr__(self) -> str:
        return "[" + ", ".join(repr(x) for x in self.items) + "]"

@dataclass
class StlMap:
    entries: Dict[str, 'StlValue']
    def __repr__(self) -> str:
        pairs = []

        for k, v in self.entries.items():
            pairs.append(f"{StlString(k)!r}: {v!r}")

        return "{" + ", ".join(pairs) + "}"

@dataclass
class StlTuple:
    items: Tuple['StlValue', ...]
    def __repr__(self) -> str:
        if len(self.items) == 1:
            return f"({self.items[0]!r},)"
        return "(" + ", ".join(repr(x) for x in self.items) + ")"

@dataclass
class StlStruct:
    type_name: str
    fields: Dict[str, 'StlValue']
    def __repr__(self) -> str:
        if not self.fields:
            return f"{self.type_name} {{}}"

        pairs = ", ".join(f"{k}: {v!r}" for k, v in self.fields.items())
        return f"{self.type_name} {{ {pairs} }}"

@dataclass
class StlEnumVariant:
    type_name: str
    tag: str
    payload: Tuple['StlValue', ...] = ()
    def __repr__(self) -> str:
        base = f"{self.type_name}::{self.tag}"

        if not self.payload:
            return base

        return base + "(" + ", ".join(repr(x) for x in self.payload) + ")"

@dataclass
class Param:
    name: str
    default: Optional[Node] = None
    annotation: Optional[str] = None

@dataclass(eq=False)
class StlFn:
    name: Optional[str]
    params: List[Param]
    body: Node                  # block AST node
    frame: 'Frame'              # closure frame, shared by reference
    is_async: bool = False
    return_annotation: Optional[str] = None
    def __repr__(self) -> str:
        return f"<fn {self.name or 'anonymous'}>"

StdlibFn = Callable[['Frame', List['StlValue']], 'StlValue']

@dataclass(frozen=True)
class StdlibFunction:
    fn: StdlibFn
    arity: Optional[int] = None
    name: str = ""
    def __repr__(self) -> str:
        return f"<builtin {self.name}>"

StlValue: TypeAlias = (
    StlNull
    | StlInt
    | StlFloat
    | StlString
    | StlBool
    | StlList
    | StlMap
    | StlTuple
    | StlStruct
    | StlEnumVariant
    | StlFn
    | StdlibFunction
)

_STL_VALUE_TYPES: Tuple[type, ...] = (
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
)

def is_stl_value(value: object) -> TypeGuard[StlValue]:
    return isinstance(value, _STL_VALUE_TYPES)

def type_name_of(value: StlValue) -> str:
    """Language-visible type name, used by type_of() and error messages."""
    match value:
        case StlNull():
            return "null"
        case StlInt():
            return "int"
        case StlFloat():
            return "float"
        case StlString():
            return "str"
        case StlBool():
            return "bool"
        case StlList():
            return "list"
        case StlMap():
            return "map"
        case StlTuple():
            return "tuple"
        case StlStruct(type_name=name) | StlEnumVariant(type_name=name):
            return name
        case StlFn() | StdlibFunction():
            return "function"
        case _:
            return type(value).__name__

# ---------- Control signals ----------
# Statement execution returns one of these (or None for "carry on").

@dataclass
class Return:
    value: StlValue

@dataclass
class Break:
    pass

@dataclass
class Continue:
    pass

@dataclass
class Throw:
    error: 'StelRuntimeError'

    @property
    def value(self) -> StlValue:
        return self.error.catch_value()

Signal: TypeAlias = Return | Break | Continue | Throw

# ---------- Struct/Enum registry ----------

@dataclass(frozen=True)
class StructDescriptor:
    name: str
    fields: Tuple[str, ...]

@dataclass(frozen=True)
class EnumDescriptor:
    name: str
    variants: Tuple[Tuple[str, int], ...]

    def arity(self, tag: str) -> Optional[int]:
        for name, count in self.variants:
            if name == tag:
                return count
        return None

TypeDescriptor: TypeAlias = StructDescriptor | EnumDescriptor

class TypeRegistry:
    """Append-only table of declared struct and enum shapes."""

    def __init__(self) -> None:
        self.types: Dict[str, TypeDescriptor] = {}

    def declare(self, desc: TypeDescriptor) -> None:
        existing = self.types.get(desc.name)

        if existing is None:
            self.types[desc.name] = desc
            return

        if existing != desc:
            raise StelTypeError(f"Type '{desc.name}' is already declared with a different shape")

    def struct(self, name: str) -> StructDescriptor:
        desc = self.types.get(name)

        if isinstance(desc, StructDescriptor):
            return desc

        if desc is None:
            raise StelNameError(f"Unknown struct type '{name}'")

        raise StelTypeError(f"'{name}' is not a struct type")

    def enum(self, name: str) -> EnumDescriptor:
        desc = self.types.get(name)

        if isinstance(desc, EnumDescriptor):
            return desc

        if desc is None:
            raise StelNameError(f"Unknown enum type '{name}'")

        raise StelTypeError(f"'{name}' is not an enum type")

@dataclass
class Session:
    """Interpreter-wide state shared by the root frame and every imported file."""
    types: TypeRegistry = field(default_factory=TypeRegistry)
    modules: Dict[str, 'Frame'] = field(default_factory=dict)
    loading: List[str] = field(default_factory=list)

# ---------- Environment ----------

class Frame:
    def __init__(
        self,
        parent: Optional['Frame']=None,
        source: Optional[str]=None,
        path: Optional[str]=None,
        session: Optional[Session]=None,
    ):
        self.parent = parent
        self.vars: Dict[str, StlValue] = {}
        self.consts: Set[str] = set()
        self.source: Optional[str]
        self.path: Optional[str]

        if parent is None:
            self.session = session if session is not None else Session()

            for name, std in Builtins.stdlib_functions.items():
                self.vars[name] = std
        else:
            self.session = parent.session

        if source is not None:
            self.source = source
        elif parent is not None:
            self.source = parent.source
        else:
            self.source = None

        if path is not None:
            self.path = path
        elif parent is not None:
            self.path = parent.path
        else:
            self.path = None

    def define(self, name: str, val: StlValue, const: bool=False) -> None:
        if name in self.consts:
            raise StelNameError(f"Cannot redefine immutable binding '{name}'")

        self.vars[name] = val

        if const:
            self.consts.add(name)

    def get(self, name: str) -> StlValue:
        if name in self.vars:
            return self.vars[name]

        if self.parent is not None:
            return self.parent.get(name)

        raise StelNameError(f"Name '{name}' is not defined")

    def set(self, name: str, val: StlValue) -> None:
        owner = self.owner(name)

        if owner is None:
            raise StelNameError(f"Name '{name}' is not defined")

        if name in owner.consts:
            raise StelNameError(f"Cannot assign to immutable binding '{name}'")

        owner.vars[name] = val

    def assign(self, name: str, val: StlValue) -> None:
        """Update the nearest binding, or define one here when unbound."""
        if self.owner(name) is None:
            self.define(name, val)
            return

        self.set(name, val)

    def owner(self, name: str) -> Optional['Frame']:
        cur: Optional[Frame] = self

        while cur is not None:
            if name in cur.vars:
                return cur
            cur = cur.parent

        return None

# ---------- Exceptions ----------

class StelRuntimeError(Exception):
    """Runtime failure; catchable by try/catch inside the language."""
    kind: str = "RuntimeError"
    stl_payload: Optional[StlValue]
    stl_meta: Optional[object]

    def __init__(self, message: str, payload: Optional[StlValue]=None):
        super().__init__(message)
        self.message = message
        self.stl_payload = payload
        self.stl_meta = None

    @property
    def payload(self) -> Optional[StlValue]:
        return self.stl_payload

    @property
    def line(self) -> Optional[int]:
        return getattr(self.stl_meta, "line", None)

    @property
    def column(self) -> Optional[int]:
        return getattr(self.stl_meta, "column", None)

    def catch_value(self) -> StlValue:
        """Value bound by `catch name` for this error."""
        if self.stl_payload is not None:
            return self.stl_payload

        return StlMap({"type": StlString(self.kind), "message": StlString(self.message)})

    def __str__(self) -> str:
        msg = super().__str__()

        line = self.line
        col = self.column

        if line is None:
            return msg

        if col is None:
            return f"{msg} (line {line})"

        return f"{msg} (line {line}, col {col})"

class StelNameError(StelRuntimeError):
    kind = "NameError"

class StelTypeError(StelRuntimeError):
    kind = "TypeError"

class StelArityError(StelRuntimeError):
    kind = "ArityError"

class StelMatchError(StelRuntimeError):
    kind = "NonExhaustiveMatchError"

class StelImportError(StelRuntimeError):
    kind = "ImportError"

class StelZeroDivisionError(StelRuntimeError):
    kind = "ZeroDivisionError"

class StelValueError(StelRuntimeError):
    kind = "ValueError"

class StelIndexError(StelRuntimeError):
    kind = "IndexError"
    def __init__(self, message: str = "Index out of bounds"):
        super().__init__(message)

class StelKeyError(StelRuntimeError):
    kind = "KeyError"
    def __init__(self, key: str):
        super().__init__(f"Key '{key}' not found")
        self.key = key

class StelThrow(StelRuntimeError):
    """User-level `throw`; the payload is bound unchanged by catch."""
    def __init__(self, payload: StlValue):
        from .utils import stringify
        super().__init__(stringify(payload), payload)

# ---------- Built-in registries ----------

R_contra = TypeVar("R_contra", bound="StlValue", contravariant=True)

class Method(Protocol[R_contra]):
    def __call__(self, frame: 'Frame', recv: R_contra, args: List['StlValue']) -> 'StlValue': ...

MethodRegistry = Dict[str, Method[StlValue]]

class Builtins:
    string_methods: MethodRegistry = {}
    list_methods: MethodRegistry = {}
    map_methods: MethodRegistry = {}
    stdlib_functions: Dict[str, StdlibFunction] = {}
