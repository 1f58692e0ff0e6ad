"""Shared helpers for working with lark Tree/Token nodes used across the project."""
from __future__ import annotations

from typing import List, Optional

from lark import Token, Tree
from lark.tree import Meta
from typing_extensions import TypeAlias, TypeGuard

Node: TypeAlias = Tree | Token


def make_meta(line: int, column: int) -> Meta:
    meta = Meta()
    meta.empty = False
    meta.line = line
    meta.column = column
    return meta

def is_tree(node: object) -> TypeGuard[Tree]:
    return isinstance(node, Tree)

def is_token(node: object) -> TypeGuard[Token]:
    return isinstance(node, Token)

def tree_label(node: object) -> Optional[str]:
    return node.data if is_tree(node) else None

def token_kind(node: object) -> Optional[str]:
    return str(node.type) if is_token(node) else None

def tree_children(node: object) -> List[Node]:
    if not is_tree(node):
        return []

    return list(node.children)

def node_meta(node: object) -> Optional[Meta]:
    if is_token(node):
        if getattr(node, "line", None) is None:
            return None
        return make_meta(node.line, node.column)

    if not is_tree(node):
        return None

    meta = node.meta
    if getattr(meta, "empty", True):
        return None

    return meta
