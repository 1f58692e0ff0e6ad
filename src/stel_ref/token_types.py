"""
Token Types for the StelLang parser

Shared between lexer and parser to avoid circular dependencies.
"""

from typing import Any
from dataclasses import dataclass
from enum import Enum, auto


class TT(Enum):
    """Token Types - one per lexical category"""

    # Literals
    INT = auto()
    FLOAT = auto()
    STRING = auto()
    IDENT = auto()

    # Keywords
    LET = auto()
    CONST = auto()
    FN = auto()
    ASYNC = auto()
    AWAIT = auto()
    IF = auto()
    ELSE = auto()
    WHILE = auto()
    FOR = auto()
    IN = auto()
    BREAK = auto()
    CONTINUE = auto()
    RETURN = auto()
    MATCH = auto()
    STRUCT = auto()
    ENUM = auto()
    TRY = auto()
    CATCH = auto()
    THROW = auto()
    IMPORT = auto()
    AND = auto()
    OR = auto()
    NOT = auto()
    IS = auto()
    TRUE = auto()
    FALSE = auto()
    NULL = auto()

    # Arithmetic
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    FLOORDIV = auto()
    MOD = auto()
    POW = auto()

    # Bitwise
    AMP = auto()
    PIPE = auto()
    CARET = auto()
    TILDE = auto()
    LSHIFT = auto()
    RSHIFT = auto()

    # Comparison
    EQ = auto()
    NEQ = auto()
    LT = auto()
    LTE = auto()
    GT = auto()
    GTE = auto()

    # Assignment
    ASSIGN = auto()
    PLUSEQ = auto()
    MINUSEQ = auto()
    STAREQ = auto()
    SLASHEQ = auto()
    MODEQ = auto()

    # Structural
    RANGE = auto()      # ..
    PATHSEP = auto()    # ::
    FATARROW = auto()   # =>
    ARROW = auto()      # ->
    AT = auto()
    DOT = auto()

    # Punctuation
    LPAR = auto()
    RPAR = auto()
    LSQB = auto()
    RSQB = auto()
    LBRACE = auto()
    RBRACE = auto()
    COMMA = auto()
    COLON = auto()
    SEMI = auto()

    # Special
    NEWLINE = auto()
    EOF = auto()


@dataclass(frozen=True)
class Tok:
    """Token with position info"""

    type: TT
    value: Any
    line: int = 0
    column: int = 0

    def __repr__(self):
        return f"Tok({self.type.name}, {self.value!r}, {self.line}:{self.column})"
