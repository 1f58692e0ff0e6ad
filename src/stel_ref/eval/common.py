from __future__ import annotations

from typing import Any, Callable, Optional, Tuple

from lark import Token

from ..runtime import Frame, Signal, StlFloat, StlInt, StlString, StlValue, StelRuntimeError
from ..tree import is_token, token_kind, tree_children, tree_label

EvalFunc = Callable[[Any, Frame], StlValue]
ExecFunc = Callable[[Any, Frame], Optional[Signal]]
BodyResult = Tuple[Optional[Signal], StlValue]

def expect_ident_token(node: Any, context: str) -> str:
    if is_token(node) and token_kind(node) == 'IDENT':
        return str(node.value)

    raise StelRuntimeError(f"{context} must be an identifier")

def ident_token_value(node: Any) -> Optional[str]:
    if is_token(node) and token_kind(node) == 'IDENT':
        return str(node.value)

    return None

def annotation_text(node: Any) -> Optional[str]:
    """Text of a `typeann` node; annotations are advisory metadata only."""
    if tree_label(node) != 'typeann':
        return None

    kids = tree_children(node)
    return str(kids[0].value) if kids else None

def token_int(token: Token, _: Any) -> StlInt:
    return StlInt(int(token.value))

def token_float(token: Token, _: Any) -> StlFloat:
    return StlFloat(float(token.value))

def token_string(token: Token, _: Any) -> StlString:
    return StlString(str(token.value))
