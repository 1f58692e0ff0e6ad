from __future__ import annotations

import logging
from typing import Callable, Optional

from lark import Token

from .runtime import (
    Break,
    Continue,
    Frame,
    Return,
    Signal,
    StlBool,
    StlList,
    StlNull,
    StlTuple,
    StlValue,
    StelRuntimeError,
    Throw,
    init_stdlib,
)
from .tree import Node, Tree, is_token, node_meta, tree_label

from .eval.blocks import exec_block_body, exec_statements
from .eval.chains import eval_call, eval_field, eval_index, eval_method
from .eval.common import BodyResult, token_float, token_int, token_string
from .eval.control import (
    exec_break_stmt,
    exec_continue_stmt,
    exec_return_stmt,
    exec_throw_stmt,
    exec_try_stmt,
)
from .eval.destructure import exec_destructure
from .eval.expr import eval_binop, eval_logical, eval_not, eval_range_expr, eval_unary
from .eval.fn import eval_anonymous_fn, eval_await, exec_fn_def
from .eval.imports import exec_import_stmt
from .eval.let import exec_const_stmt, exec_let_stmt
from .eval.loops import eval_listcomp, exec_for_stmt, exec_if_stmt, exec_while_stmt
from .eval.match import eval_match_expr, exec_match_stmt
from .eval.mutation import exec_assign
from .eval.objects import (
    eval_enum_ref,
    eval_map_literal,
    eval_struct_literal,
    exec_enum_def,
    exec_struct_def,
)

logger = logging.getLogger(__name__)

EvalFunc = Callable[[Node, Frame], StlValue]

def _maybe_attach_location(exc: StelRuntimeError, node: Node) -> None:
    # innermost node wins; outer handlers see the flag and leave it alone
    if getattr(exc, "_augmented", False):
        return

    meta = node_meta(node)

    if meta is not None and getattr(meta, "line", None) is not None:
        exc.stl_meta = meta
        exc._augmented = True  # type: ignore[attr-defined]

# ---------------- Public API ----------------

def run_program(ast: Tree, frame: Frame) -> StlValue:
    """
    Execute a parsed program in `frame`.

    Returns the value of the last top-level expression statement (or the
    value of a top-level `return`). An uncaught Throw re-raises its error.
    """
    init_stdlib()
    logger.debug("evaluating %d top-level statements (%s)", len(ast.children), frame.path or "<source>")
    signal, value = exec_statements(ast.children, frame, exec_stmt, exec_expr_stmt)

    match signal:
        case None:
            return value
        case Return(value=returned):
            return returned
        case Throw(error=error):
            raise error
        case Break():
            raise StelRuntimeError("'break' outside of a loop")
        case Continue():
            raise StelRuntimeError("'continue' outside of a loop")

    raise StelRuntimeError(f"Unexpected signal {signal!r}")

def run_source(source: str, frame: Frame) -> StlValue:
    from .parser_rd import parse_source

    return run_program(parse_source(source), frame)

# ---------------- Statements ----------------

def exec_stmt(n: Tree, frame: Frame) -> Optional[Signal]:
    """Execute one statement; runtime failures become a Throw signal here."""
    try:
        signal = _exec_stmt_inner(n, frame)
    except StelRuntimeError as e:
        _maybe_attach_location(e, n)
        return Throw(e)

    if isinstance(signal, Throw):
        _maybe_attach_location(signal.error, n)

    return signal

def _exec_stmt_inner(n: Tree, frame: Frame) -> Optional[Signal]:
    handler = _STMT_DISPATCH.get(n.data)

    if handler is None:
        raise StelRuntimeError(f"Unknown statement: {n.data}")

    return handler(n, frame)

def exec_expr_stmt(n: Tree, frame: Frame) -> BodyResult:
    expr = n.children[0]

    try:
        if tree_label(expr) == 'matchexpr':
            return exec_match_stmt(expr.children, frame, eval_node, _run_body)

        return None, eval_node(expr, frame)
    except StelRuntimeError as e:
        _maybe_attach_location(e, n)
        return Throw(e), StlNull()

def exec_block(block: Tree, frame: Frame, scoped: bool=True) -> Optional[Signal]:
    signal, _ = exec_block_body(block, frame, exec_stmt, exec_expr_stmt, scoped=scoped)
    return signal

def _run_body(block: Tree, frame: Frame) -> BodyResult:
    return exec_block_body(block, frame, exec_stmt, exec_expr_stmt)

# ---------------- Expressions ----------------

def eval_node(n: Node, frame: Frame) -> StlValue:
    try:
        return _eval_node_inner(n, frame)
    except StelRuntimeError as e:
        _maybe_attach_location(e, n)
        raise

def _eval_node_inner(n: Node, frame: Frame) -> StlValue:
    if is_token(n):
        return _eval_token(n, frame)

    d = n.data
    handler = _NODE_DISPATCH.get(d)
    if handler is not None:
        return handler(n, frame)

    match d:
        case 'list':
            return StlList([eval_node(c, frame) for c in n.children])
        case 'tuple':
            return StlTuple(tuple(eval_node(c, frame) for c in n.children))
        case 'and' | 'or':
            return eval_logical(d, n.children, frame, eval_node)
        case 'not':
            return eval_not(n.children, frame, eval_node)
        case 'unary':
            op, operand = n.children
            return eval_unary(op, operand, frame, eval_node)
        case _:
            raise StelRuntimeError(f"Unknown node: {d}")

def _eval_token(t: Token, frame: Frame) -> StlValue:
    handler = _TOKEN_DISPATCH.get(t.type)
    if handler:
        return handler(t, frame)

    if t.type == 'IDENT':
        return frame.get(t.value)

    raise StelRuntimeError(f"Unhandled token {t.type}:{t.value}")

# ---------------- Dispatch tables ----------------

_STMT_DISPATCH: dict[str, Callable[[Tree, Frame], Optional[Signal]]] = {
    'exprstmt': lambda n, frame: exec_expr_stmt(n, frame)[0],
    'letstmt': lambda n, frame: exec_let_stmt(n.children, frame, eval_node),
    'conststmt': lambda n, frame: exec_const_stmt(n.children, frame, eval_node),
    'assign': lambda n, frame: exec_assign(n.children, frame, eval_node),
    'destructure': lambda n, frame: exec_destructure(n.children, frame, eval_node),
    'block': lambda n, frame: exec_block(n, frame),
    'ifstmt': lambda n, frame: exec_if_stmt(n.children, frame, eval_node, exec_block, exec_stmt),
    'whilestmt': lambda n, frame: exec_while_stmt(n.children, frame, eval_node, exec_block),
    'forstmt': lambda n, frame: exec_for_stmt(n.children, frame, eval_node, exec_block),
    'breakstmt': lambda n, frame: exec_break_stmt(n.children, frame),
    'continuestmt': lambda n, frame: exec_continue_stmt(n.children, frame),
    'returnstmt': lambda n, frame: exec_return_stmt(n.children, frame, eval_node),
    'throwstmt': lambda n, frame: exec_throw_stmt(n.children, frame, eval_node),
    'trystmt': lambda n, frame: exec_try_stmt(n.children, frame, exec_block),
    'fndef': lambda n, frame: exec_fn_def(n.children, frame, eval_node),
    'structdef': lambda n, frame: exec_struct_def(n.children, frame),
    'enumdef': lambda n, frame: exec_enum_def(n.children, frame),
    'importstmt': lambda n, frame: exec_import_stmt(n.children, frame, run_source),
}

_NODE_DISPATCH: dict[str, Callable[[Tree, Frame], StlValue]] = {
    'binop': lambda n, frame: eval_binop(n.children, frame, eval_node),
    'rangeexpr': lambda n, frame: eval_range_expr(n.children, frame, eval_node),
    'call': lambda n, frame: eval_call(n.children, frame, eval_node),
    'index': lambda n, frame: eval_index(n.children, frame, eval_node),
    'field': lambda n, frame: eval_field(n.children, frame, eval_node),
    'method': lambda n, frame: eval_method(n.children, frame, eval_node),
    'map': lambda n, frame: eval_map_literal(n.children, frame, eval_node),
    'listcomp': lambda n, frame: eval_listcomp(n.children, frame, eval_node),
    'structlit': lambda n, frame: eval_struct_literal(n.children, frame, eval_node),
    'enumref': lambda n, frame: eval_enum_ref(n.children, frame, eval_node),
    'anonfn': lambda n, frame: eval_anonymous_fn(n.children, frame),
    'await': lambda n, frame: eval_await(n.children, frame, eval_node),
    'matchexpr': lambda n, frame: eval_match_expr(n.children, frame, eval_node, _run_body),
}

_TOKEN_DISPATCH: dict[str, Callable[[Token, Frame], StlValue]] = {
    'INT': token_int,
    'FLOAT': token_float,
    'STRING': token_string,
    'TRUE': lambda _, __: StlBool(True),
    'FALSE': lambda _, __: StlBool(False),
    'NULL': lambda _, __: StlNull(),
}
