"""Evaluator helper modules for the StelLang runtime."""

__all__ = [
    "blocks",
    "chains",
    "common",
    "control",
    "destructure",
    "expr",
    "fn",
    "helpers",
    "imports",
    "let",
    "loops",
    "match",
    "mutation",
    "objects",
]
