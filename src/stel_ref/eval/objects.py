from __future__ import annotations

import logging
from typing import Any, Dict

from ..runtime import (
    EnumDescriptor,
    Frame,
    StelArityError,
    StelNameError,
    StelTypeError,
    StlEnumVariant,
    StlMap,
    StlStruct,
    StlValue,
    StructDescriptor,
)
from ..tree import tree_children
from ..utils import map_key
from .chains import eval_args_node
from .common import EvalFunc, expect_ident_token

logger = logging.getLogger(__name__)

def exec_struct_def(children: list[Any], frame: Frame) -> None:
    name_tok, fieldlist = children
    name = expect_ident_token(name_tok, "Struct name")
    fields = []

    for decl in tree_children(fieldlist):
        field = expect_ident_token(decl.children[0], "Struct field")

        if field in fields:
            raise StelTypeError(f"Duplicate field '{field}' in struct '{name}'")
        fields.append(field)

    frame.session.types.declare(StructDescriptor(name=name, fields=tuple(fields)))
    logger.debug("declared struct %s%r", name, tuple(fields))

def exec_enum_def(children: list[Any], frame: Frame) -> None:
    name_tok, variantlist = children
    name = expect_ident_token(name_tok, "Enum name")
    variants = []
    seen = set()

    for variant in tree_children(variantlist):
        tag_tok, payload = variant.children
        tag = expect_ident_token(tag_tok, "Enum variant")

        if tag in seen:
            raise StelTypeError(f"Duplicate variant '{tag}' in enum '{name}'")
        seen.add(tag)

        variants.append((tag, len(tree_children(payload)) if payload is not None else 0))

    frame.session.types.declare(EnumDescriptor(name=name, variants=tuple(variants)))
    logger.debug("declared enum %s%r", name, tuple(variants))

def eval_struct_literal(children: list[Any], frame: Frame, eval_func: EvalFunc) -> StlStruct:
    """
    Name { field: expr, ... }

    Exactly the declared fields must be supplied; fields are stored in
    declaration order.
    """
    name_tok, *inits = children
    name = expect_ident_token(name_tok, "Struct name")
    desc = frame.session.types.struct(name)
    supplied: Dict[str, StlValue] = {}

    for init in inits:
        field_tok, value_node = init.children
        field = expect_ident_token(field_tok, "Struct field")

        if field not in desc.fields:
            raise StelTypeError(f"Struct '{name}' has no field '{field}'")
        if field in supplied:
            raise StelTypeError(f"Field '{field}' given twice in '{name}' literal")

        supplied[field] = eval_func(value_node, frame)

    for field in desc.fields:
        if field not in supplied:
            raise StelTypeError(f"Missing field '{field}' in '{name}' literal")

    return StlStruct(type_name=name, fields={f: supplied[f] for f in desc.fields})

def eval_enum_ref(children: list[Any], frame: Frame, eval_func: EvalFunc) -> StlEnumVariant:
    type_tok, variant_tok, args_node = children
    type_name = expect_ident_token(type_tok, "Enum name")
    tag = expect_ident_token(variant_tok, "Enum variant")
    desc = frame.session.types.enum(type_name)
    arity = desc.arity(tag)

    if arity is None:
        raise StelNameError(f"Enum '{type_name}' has no variant '{tag}'")

    if args_node is None:
        if arity:
            raise StelTypeError(f"Variant {type_name}::{tag} requires {arity} payload value(s)")
        return StlEnumVariant(type_name=type_name, tag=tag)

    args = eval_args_node(args_node, frame, eval_func)

    if len(args) != arity:
        raise StelArityError(f"Variant {type_name}::{tag} expects {arity} payload value(s); got {len(args)}")

    return StlEnumVariant(type_name=type_name, tag=tag, payload=tuple(args))

def eval_map_literal(children: list[Any], frame: Frame, eval_func: EvalFunc) -> StlMap:
    entries: Dict[str, StlValue] = {}

    for pair in children:
        key_node, value_node = pair.children
        key = map_key(eval_func(key_node, frame))
        entries[key] = eval_func(value_node, frame)

    return StlMap(entries)
