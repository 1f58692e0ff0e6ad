from __future__ import annotations

from typing import Any, List

from ..runtime import Frame, Param, StlFn, StlValue, StelRuntimeError, call_value
from ..tree import tree_children, tree_label
from .common import EvalFunc, annotation_text, expect_ident_token

def extract_params(params_node: Any) -> List[Param]:
    params: List[Param] = []
    seen = set()

    for p in tree_children(params_node):
        if tree_label(p) != 'param':
            raise StelRuntimeError(f"Unsupported parameter node {tree_label(p)}")

        name_tok, typeann, default = p.children
        name = expect_ident_token(name_tok, "Parameter name")

        if name in seen:
            raise StelRuntimeError(f"Duplicate parameter '{name}'")
        seen.add(name)

        params.append(Param(name=name, default=default, annotation=annotation_text(typeann)))

    return params

def exec_fn_def(children: list[Any], frame: Frame, eval_func: EvalFunc) -> None:
    """
    [@decorator]* [async] fn name(params) [-> T] { body }

    The name is bound before decorators run so the body can recurse; each
    decorator (innermost first) is called with the function and the binding
    is replaced by its result.
    """
    name_tok, params_node, rettype, body, decorators, async_flag = children
    name = expect_ident_token(name_tok, "Function name")

    value: StlValue = StlFn(
        name=name,
        params=extract_params(params_node),
        body=body,
        frame=frame,
        is_async=async_flag is not None,
        return_annotation=annotation_text(rettype),
    )
    frame.define(name, value)

    if decorators is None:
        return

    for entry in reversed(tree_children(decorators)):
        decorator = eval_func(entry.children[0], frame)
        value = call_value(decorator, [value], frame)

    frame.define(name, value)

def eval_anonymous_fn(children: list[Any], frame: Frame) -> StlFn:
    params_node, rettype, body = children

    return StlFn(
        name=None,
        params=extract_params(params_node),
        body=body,
        frame=frame,
        return_annotation=annotation_text(rettype),
    )

def eval_await(children: list[Any], frame: Frame, eval_func: EvalFunc) -> StlValue:
    """await has no scheduler behind it: the operand is evaluated immediately."""
    return eval_func(children[0], frame)
