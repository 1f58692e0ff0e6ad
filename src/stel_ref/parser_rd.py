"""
Recursive Descent Parser for StelLang

Structure:
- Lexer: Token stream from source (lexer_rd)
- Parser: leading-keyword dispatch for statements, precedence climbing for
  expressions
- AST: lark Tree/Token nodes; every statement carries line/column meta

The parser performs no error recovery: the first token that cannot extend the
current production raises ParseError and no partial tree is returned.
"""

from typing import List, Optional

from lark import Tree, Token

from .token_types import TT, Tok
from .tree import make_meta

# ============================================================================
# Parser
# ============================================================================

class ParseError(Exception):
    """Parse error with position info"""
    def __init__(self, message: str, token: Optional[Tok] = None):
        self.message = message
        self.token = token
        self.line = token.line if token else None
        self.column = token.column if token else None
        super().__init__(
            f"{message} at line {token.line}, col {token.column}" if token else message
        )

_LITERAL_TOKENS = {
    TT.INT: 'INT',
    TT.FLOAT: 'FLOAT',
    TT.STRING: 'STRING',
    TT.TRUE: 'TRUE',
    TT.FALSE: 'FALSE',
    TT.NULL: 'NULL',
}

_ASSIGN_OPS = (TT.ASSIGN, TT.PLUSEQ, TT.MINUSEQ, TT.STAREQ, TT.SLASHEQ, TT.MODEQ)

class Parser:
    """
    Recursive descent parser for StelLang.

    Expression precedence (lowest to highest):
    1. or
    2. and
    3. not (prefix)
    4. equality / membership / identity (==, !=, in, not in, is, is not)
    5. relational (<, <=, >, >=)
    6. range (..)
    7. bitwise or, xor, and (|, ^, &)
    8. shifts (<<, >>)
    9. additive (+, -)
    10. multiplicative (*, /, //, %)
    11. unary (-, +, ~, not, await)
    12. power (**, right associative)
    13. postfix (call, index, field, method)
    14. primary (literals, identifiers, groups, collections, struct/enum refs)
    """

    def __init__(self, tokens: List[Tok]):
        self.tokens = tokens
        self.pos = 0
        self.current = tokens[0] if tokens else Tok(TT.EOF, None, 0, 0)
        # struct literals are disabled in if/while/for/match heads
        self.no_struct = False

    # ========================================================================
    # Token Navigation
    # ========================================================================

    def peek(self, offset: int = 0) -> Tok:
        """Look ahead at token"""
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1] if self.tokens else Tok(TT.EOF, None, 0, 0)

    def advance(self) -> Tok:
        """Consume current token and move to next"""
        prev = self.current
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        self.current = self.tokens[self.pos] if self.tokens else prev
        return prev

    def check(self, *types: TT) -> bool:
        """Check if current token matches any of the given types"""
        return self.current.type in types

    def match(self, *types: TT) -> bool:
        """Check and consume if current token matches"""
        if self.check(*types):
            self.advance()
            return True
        return False

    def expect(self, token_type: TT, message: Optional[str] = None) -> Tok:
        """Consume token of expected type or raise error"""
        if not self.check(token_type):
            msg = message or f"Expected {token_type.name}, got {self.describe(self.current)}"
            raise ParseError(msg, self.current)
        return self.advance()

    def skip_newlines(self) -> None:
        while self.match(TT.NEWLINE):
            pass

    def peek_past_newlines(self) -> Tok:
        offset = 0
        while self.peek(offset).type == TT.NEWLINE:
            offset += 1
        return self.peek(offset)

    def describe(self, tok: Tok) -> str:
        if tok.type == TT.EOF:
            return "end of input"
        if tok.type == TT.NEWLINE:
            return "newline"
        return f"{tok.type.name} {tok.value!r}"

    def unexpected(self, context: str = "") -> ParseError:
        suffix = f" in {context}" if context else ""
        return ParseError(f"Unexpected token {self.describe(self.current)}{suffix}", self.current)

    def node(self, label: str, children: list, tok: Tok) -> Tree:
        return Tree(label, children, make_meta(tok.line, tok.column))

    def token(self, kind: str, tok: Tok, value: Optional[str] = None) -> Token:
        return Token(kind, tok.value if value is None else value, line=tok.line, column=tok.column)

    # ========================================================================
    # Top-Level Parsing
    # ========================================================================

    def parse(self) -> Tree:
        """Parse entire program into a single 'program' block"""
        start = self.current
        stmts = self.parse_statements(TT.EOF)
        self.expect(TT.EOF)
        return self.node('program', stmts, start)

    def parse_statements(self, terminator: TT) -> List[Tree]:
        stmts: List[Tree] = []

        while True:
            while self.match(TT.NEWLINE, TT.SEMI):
                pass

            if self.check(terminator, TT.EOF):
                return stmts

            stmts.append(self.parse_statement())

    def parse_block(self) -> Tree:
        """Parse block: { stmt* }"""
        start = self.expect(TT.LBRACE, f"Expected '{{' to open block, got {self.describe(self.current)}")
        saved = self.no_struct
        self.no_struct = False

        try:
            stmts = self.parse_statements(TT.RBRACE)
        finally:
            self.no_struct = saved

        self.expect(TT.RBRACE, f"Expected '}}' to close block, got {self.describe(self.current)}")
        return self.node('block', stmts, start)

    # ========================================================================
    # Statements
    # ========================================================================

    def parse_statement(self) -> Tree:
        """Parse a single statement by its leading keyword"""
        tok = self.current

        match tok.type:
            case TT.LET:
                return self.parse_let_stmt()
            case TT.CONST:
                return self.parse_const_stmt()
            case TT.IF:
                return self.parse_if_stmt()
            case TT.WHILE:
                return self.parse_while_stmt()
            case TT.FOR:
                return self.parse_for_stmt()
            case TT.BREAK:
                self.advance()
                return self.node('breakstmt', [], tok)
            case TT.CONTINUE:
                self.advance()
                return self.node('continuestmt', [], tok)
            case TT.RETURN:
                return self.parse_return_stmt()
            case TT.THROW:
                self.advance()
                return self.node('throwstmt', [self.parse_expr()], tok)
            case TT.TRY:
                return self.parse_try_stmt()
            case TT.STRUCT:
                return self.parse_struct_def()
            case TT.ENUM:
                return self.parse_enum_def()
            case TT.IMPORT:
                return self.parse_import_stmt()
            case TT.AT | TT.ASYNC:
                return self.parse_fn_def()
            case TT.FN if self.peek(1).type == TT.IDENT:
                return self.parse_fn_def()
            case TT.LBRACE:
                return self.parse_block()

        return self.parse_expr_statement()

    def parse_let_stmt(self) -> Tree:
        """Parse let binding: let name[: type] [= expr] | let (a, b) = expr"""
        let_tok = self.expect(TT.LET)

        if self.check(TT.LPAR):
            target = self.parse_tuple_target()
            typeann = self.parse_type_annotation()
            self.expect(TT.ASSIGN, "Destructuring let requires an initializer")
            self.skip_newlines()
            return self.node('letstmt', [target, typeann, self.parse_expr()], let_tok)

        name = self.expect(TT.IDENT, f"Expected name after 'let', got {self.describe(self.current)}")
        typeann = self.parse_type_annotation()
        value = None

        if self.match(TT.ASSIGN):
            self.skip_newlines()
            value = self.parse_expr()

        return self.node('letstmt', [self.token('IDENT', name), typeann, value], let_tok)

    def parse_const_stmt(self) -> Tree:
        """Parse const binding: const name[: type] = expr"""
        const_tok = self.expect(TT.CONST)
        name = self.expect(TT.IDENT, f"Expected name after 'const', got {self.describe(self.current)}")
        typeann = self.parse_type_annotation()
        self.expect(TT.ASSIGN, "const requires an initializer")
        self.skip_newlines()
        value = self.parse_expr()
        return self.node('conststmt', [self.token('IDENT', name), typeann, value], const_tok)

    def parse_if_stmt(self) -> Tree:
        """
        Parse if statement:
        if expr { body } [else if expr { body }]* [else { body }]
        """
        if_tok = self.expect(TT.IF)
        cond = self.parse_head_expr()
        then_body = self.parse_block()
        else_branch = None

        if self.peek_past_newlines().type == TT.ELSE:
            self.skip_newlines()
            self.advance()

            if self.check(TT.IF):
                else_branch = self.parse_if_stmt()
            else:
                else_branch = self.parse_block()

        return self.node('ifstmt', [cond, then_body, else_branch], if_tok)

    def parse_while_stmt(self) -> Tree:
        """Parse while loop: while expr { body }"""
        while_tok = self.expect(TT.WHILE)
        cond = self.parse_head_expr()
        body = self.parse_block()
        return self.node('whilestmt', [cond, body], while_tok)

    def parse_for_stmt(self) -> Tree:
        """Parse for loop: for x in expr { body } | for (k, v) in expr { body }"""
        for_tok = self.expect(TT.FOR)

        if self.check(TT.LPAR):
            target = self.parse_tuple_target()
        else:
            target = self.token('IDENT', self.expect(TT.IDENT, "Expected loop variable"))

        self.expect(TT.IN, f"Expected 'in' in for loop, got {self.describe(self.current)}")
        iterable = self.parse_head_expr()
        body = self.parse_block()
        return self.node('forstmt', [target, iterable, body], for_tok)

    def parse_return_stmt(self) -> Tree:
        """Parse return statement: return [expr]"""
        ret_tok = self.expect(TT.RETURN)

        if self.check(TT.NEWLINE, TT.EOF, TT.SEMI, TT.RBRACE):
            return self.node('returnstmt', [None], ret_tok)

        return self.node('returnstmt', [self.parse_expr()], ret_tok)

    def parse_try_stmt(self) -> Tree:
        """Parse try statement: try { body } catch [name] { body }"""
        try_tok = self.expect(TT.TRY)
        body = self.parse_block()

        if self.peek_past_newlines().type != TT.CATCH:
            self.skip_newlines()
            raise ParseError("try requires a catch clause", self.current)

        self.skip_newlines()
        self.expect(TT.CATCH)
        binder = None

        if self.match(TT.LPAR):
            binder = self.token('IDENT', self.expect(TT.IDENT, "Expected catch binding name"))
            self.expect(TT.RPAR)
        elif self.check(TT.IDENT):
            binder = self.token('IDENT', self.advance())

        handler = self.parse_block()
        return self.node('trystmt', [body, binder, handler], try_tok)

    def parse_fn_def(self) -> Tree:
        """
        Parse function declaration (possibly with decorators):
        [@decorator_expr]*
        [async] fn name(params) [-> type] { body }
        """
        start = self.current
        decorators = []

        while self.check(TT.AT):
            at_tok = self.advance()
            decorators.append(self.node('decorator', [self.parse_postfix_expr()], at_tok))
            self.skip_newlines()

        async_flag = None
        if self.check(TT.ASYNC):
            async_flag = self.token('ASYNC', self.advance())

        self.expect(TT.FN, f"Expected 'fn', got {self.describe(self.current)}")
        name = self.expect(TT.IDENT, f"Expected function name, got {self.describe(self.current)}")
        params = self.parse_param_list()
        rettype = self.parse_return_type()
        body = self.parse_block()
        decorator_list = Tree('decorator_list', decorators) if decorators else None

        return self.node(
            'fndef',
            [self.token('IDENT', name), params, rettype, body, decorator_list, async_flag],
            start,
        )

    def parse_struct_def(self) -> Tree:
        """Parse struct declaration: struct Name { field[: type], ... }"""
        struct_tok = self.expect(TT.STRUCT)
        name = self.expect(TT.IDENT, f"Expected struct name, got {self.describe(self.current)}")
        self.expect(TT.LBRACE)
        fields = []

        self.skip_newlines()
        while not self.check(TT.RBRACE):
            field_tok = self.expect(TT.IDENT, f"Expected field name, got {self.describe(self.current)}")
            typeann = self.parse_type_annotation()
            fields.append(self.node('fielddecl', [self.token('IDENT', field_tok), typeann], field_tok))
            self.skip_newlines()

            if not self.match(TT.COMMA, TT.SEMI):
                self.skip_newlines()
                break
            self.skip_newlines()

        self.expect(TT.RBRACE, f"Expected '}}' to close struct, got {self.describe(self.current)}")
        return self.node('structdef', [self.token('IDENT', name), Tree('fieldlist', fields)], struct_tok)

    def parse_enum_def(self) -> Tree:
        """Parse enum declaration: enum Name { V1, V2(a, b), ... }"""
        enum_tok = self.expect(TT.ENUM)
        name = self.expect(TT.IDENT, f"Expected enum name, got {self.describe(self.current)}")
        self.expect(TT.LBRACE)
        variants = []

        self.skip_newlines()
        while not self.check(TT.RBRACE):
            var_tok = self.expect(TT.IDENT, f"Expected variant name, got {self.describe(self.current)}")
            payload = None

            if self.match(TT.LPAR):
                slots = []
                while not self.check(TT.RPAR):
                    slot = self.expect(TT.IDENT, f"Expected payload name, got {self.describe(self.current)}")
                    self.parse_type_annotation()
                    slots.append(self.token('IDENT', slot))
                    if not self.match(TT.COMMA):
                        break
                self.expect(TT.RPAR)
                payload = Tree('payload', slots)

            variants.append(self.node('variant', [self.token('IDENT', var_tok), payload], var_tok))
            self.skip_newlines()

            if not self.match(TT.COMMA, TT.SEMI):
                self.skip_newlines()
                break
            self.skip_newlines()

        self.expect(TT.RBRACE, f"Expected '}}' to close enum, got {self.describe(self.current)}")
        return self.node('enumdef', [self.token('IDENT', name), Tree('variantlist', variants)], enum_tok)

    def parse_import_stmt(self) -> Tree:
        """Parse import statement: import "path.stl" """
        import_tok = self.expect(TT.IMPORT)
        path = self.expect(TT.STRING, f"Expected a path string after 'import', got {self.describe(self.current)}")
        return self.node('importstmt', [self.token('STRING', path)], import_tok)

    def parse_expr_statement(self) -> Tree:
        """Parse expression, assignment, or destructuring assignment"""
        start = self.current
        expr = self.parse_expr()

        if self.check(*_ASSIGN_OPS):
            op_tok = self.advance()
            self.skip_newlines()
            value = self.parse_expr()

            if isinstance(expr, Tree) and expr.data == 'tuple':
                if op_tok.type != TT.ASSIGN:
                    raise ParseError("Compound assignment cannot destructure", op_tok)
                return self.node('destructure', [self.expr_to_tuple_target(expr, op_tok), value], start)

            target = self.expr_to_lvalue(expr, op_tok)
            return self.node('assign', [target, self.token(op_tok.type.name, op_tok), value], start)

        return self.node('exprstmt', [expr], start)

    def expr_to_lvalue(self, expr, op_tok: Tok):
        if isinstance(expr, Token) and expr.type == 'IDENT':
            return expr

        if isinstance(expr, Tree) and expr.data in ('index', 'field'):
            return expr

        raise ParseError("Invalid assignment target", op_tok)

    def expr_to_tuple_target(self, expr, op_tok: Tok) -> Tree:
        targets = []

        for item in expr.children:
            if isinstance(item, Token) and item.type == 'IDENT':
                targets.append(item)
            elif isinstance(item, Tree) and item.data == 'tuple':
                targets.append(self.expr_to_tuple_target(item, op_tok))
            else:
                raise ParseError("Destructuring targets must be names", op_tok)

        return Tree('tupletarget', targets, expr.meta)

    def parse_tuple_target(self) -> Tree:
        """Parse (a, (b, c)) binding target"""
        lpar = self.expect(TT.LPAR)
        targets = []

        while not self.check(TT.RPAR):
            if self.check(TT.LPAR):
                targets.append(self.parse_tuple_target())
            else:
                targets.append(self.token('IDENT', self.expect(TT.IDENT, "Expected name in destructuring target")))

            if not self.match(TT.COMMA):
                break

        self.expect(TT.RPAR)
        return self.node('tupletarget', targets, lpar)

    def parse_type_annotation(self) -> Optional[Tree]:
        """Parse optional `: type` annotation (advisory only)"""
        if not self.check(TT.COLON):
            return None

        colon = self.advance()
        return self.node('typeann', [Token('TYPE', self.parse_type_text())], colon)

    def parse_return_type(self) -> Optional[Tree]:
        if not self.check(TT.ARROW):
            return None

        arrow = self.advance()
        return self.node('typeann', [Token('TYPE', self.parse_type_text())], arrow)

    def parse_type_text(self) -> str:
        if self.check(TT.NULL, TT.FN):
            text = str(self.advance().value)
        else:
            text = str(self.expect(TT.IDENT, f"Expected type name, got {self.describe(self.current)}").value)

        if self.match(TT.LSQB):
            inner = [self.parse_type_text()]
            while self.match(TT.COMMA):
                inner.append(self.parse_type_text())
            self.expect(TT.RSQB)
            text += "[" + ", ".join(inner) + "]"

        return text

    # ========================================================================
    # Expressions
    # ========================================================================

    def parse_head_expr(self) -> Tree:
        """Parse the head expression of if/while/for/match (no struct literals)"""
        saved = self.no_struct
        self.no_struct = True

        try:
            return self.parse_expr()
        finally:
            self.no_struct = saved

    def parse_expr(self) -> Tree:
        return self.parse_or_expr()

    def parse_or_expr(self) -> Tree:
        """Parse logical OR: expr or expr"""
        start = self.current
        left = self.parse_and_expr()

        if not self.check(TT.OR):
            return left

        operands = [left]
        while self.match(TT.OR):
            self.skip_newlines()
            operands.append(self.parse_and_expr())

        return self.node('or', operands, start)

    def parse_and_expr(self) -> Tree:
        """Parse logical AND: expr and expr"""
        start = self.current
        left = self.parse_not_expr()

        if not self.check(TT.AND):
            return left

        operands = [left]
        while self.match(TT.AND):
            self.skip_newlines()
            operands.append(self.parse_not_expr())

        return self.node('and', operands, start)

    def parse_not_expr(self) -> Tree:
        """Parse prefix not, which binds looser than comparisons"""
        if self.check(TT.NOT):
            not_tok = self.advance()
            return self.node('not', [self.parse_not_expr()], not_tok)

        return self.parse_equality_expr()

    def parse_equality_expr(self) -> Tree:
        """Parse ==, !=, in, not in, is, is not"""
        left = self.parse_relational_expr()

        while True:
            tok = self.current

            if self.check(TT.EQ, TT.NEQ, TT.IN):
                op = self.token(tok.type.name, self.advance())
            elif self.check(TT.NOT) and self.peek(1).type == TT.IN:
                self.advance()
                self.advance()
                op = Token('NOTIN', 'not in', line=tok.line, column=tok.column)
            elif self.check(TT.IS):
                self.advance()
                if self.match(TT.NOT):
                    op = Token('ISNOT', 'is not', line=tok.line, column=tok.column)
                else:
                    op = Token('IS', 'is', line=tok.line, column=tok.column)
            else:
                return left

            self.skip_newlines()
            right = self.parse_relational_expr()
            left = self.node('binop', [left, op, right], tok)

    def parse_relational_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_range_expr, (TT.LT, TT.LTE, TT.GT, TT.GTE))

    def parse_range_expr(self) -> Tree:
        """Parse half-open range expression: lo..hi"""
        left = self.parse_bitor_expr()

        if self.check(TT.RANGE):
            tok = self.advance()
            right = self.parse_bitor_expr()
            return self.node('rangeexpr', [left, right], tok)

        return left

    def parse_bitor_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_bitxor_expr, (TT.PIPE,))

    def parse_bitxor_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_bitand_expr, (TT.CARET,))

    def parse_bitand_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_shift_expr, (TT.AMP,))

    def parse_shift_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_additive_expr, (TT.LSHIFT, TT.RSHIFT))

    def parse_additive_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_multiplicative_expr, (TT.PLUS, TT.MINUS))

    def parse_multiplicative_expr(self) -> Tree:
        return self.parse_binary_level(self.parse_unary_expr, (TT.STAR, TT.SLASH, TT.FLOORDIV, TT.MOD))

    def parse_binary_level(self, operand, ops) -> Tree:
        """Left-associative binary level built as nested binop trees"""
        left = operand()

        while self.check(*ops):
            op_tok = self.advance()
            self.skip_newlines()
            right = operand()
            left = self.node('binop', [left, self.token(op_tok.type.name, op_tok), right], op_tok)

        return left

    def parse_unary_expr(self) -> Tree:
        """Parse unary operators: -expr, +expr, ~expr, not expr, await expr"""
        tok = self.current

        if self.check(TT.MINUS, TT.PLUS, TT.TILDE):
            self.advance()
            operand = self.parse_unary_expr()
            return self.node('unary', [self.token(tok.type.name, tok), operand], tok)

        if self.check(TT.NOT):
            self.advance()
            return self.node('not', [self.parse_unary_expr()], tok)

        if self.check(TT.AWAIT):
            self.advance()
            return self.node('await', [self.parse_unary_expr()], tok)

        return self.parse_power_expr()

    def parse_power_expr(self) -> Tree:
        """Parse exponentiation: expr ** expr (right associative)"""
        base = self.parse_postfix_expr()

        if self.check(TT.POW):
            op_tok = self.advance()
            self.skip_newlines()
            exp = self.parse_unary_expr()
            return self.node('binop', [base, self.token('POW', op_tok), exp], op_tok)

        return base

    def parse_postfix_expr(self) -> Tree:
        """
        Parse postfix expressions:
        - calls: expr(args)
        - indexing: expr[index]
        - field access: expr.field
        - method calls: expr.name(args)
        """
        expr = self.parse_primary_expr()

        while True:
            tok = self.current

            if self.match(TT.LPAR):
                args = self.parse_arg_list()
                self.expect(TT.RPAR, f"Expected ')' after arguments, got {self.describe(self.current)}")
                expr = self.node('call', [expr, args], tok)
            elif self.match(TT.LSQB):
                index = self.parse_nested(self.parse_expr)
                self.expect(TT.RSQB, f"Expected ']' after index, got {self.describe(self.current)}")
                expr = self.node('index', [expr, index], tok)
            elif self.match(TT.DOT):
                name = self.expect(TT.IDENT, f"Expected field name after '.', got {self.describe(self.current)}")

                if self.match(TT.LPAR):
                    args = self.parse_arg_list()
                    self.expect(TT.RPAR, f"Expected ')' after arguments, got {self.describe(self.current)}")
                    expr = self.node('method', [expr, self.token('IDENT', name), args], tok)
                else:
                    expr = self.node('field', [expr, self.token('IDENT', name)], tok)
            else:
                return expr

    def parse_primary_expr(self) -> Tree:
        """
        Parse primary expressions:
        - Literals (numbers, strings, true, false, null)
        - Identifiers, struct literals, enum references
        - Parenthesized expressions and tuples
        - Lists, list comprehensions, maps
        - Anonymous functions and match expressions
        """
        tok = self.current

        if tok.type in _LITERAL_TOKENS:
            self.advance()
            return self.token(_LITERAL_TOKENS[tok.type], tok)

        if tok.type == TT.IDENT:
            if self.peek(1).type == TT.PATHSEP:
                return self.parse_enum_ref()

            if self.peek(1).type == TT.LBRACE and not self.no_struct and self.looks_like_struct_literal():
                return self.parse_struct_literal()

            self.advance()
            return self.token('IDENT', tok)

        if tok.type == TT.LPAR:
            return self.parse_paren_expr()

        if tok.type == TT.LSQB:
            return self.parse_list_expr()

        if tok.type == TT.LBRACE:
            return self.parse_map_expr()

        if tok.type == TT.FN and self.peek(1).type == TT.LPAR:
            return self.parse_anonymous_fn()

        if tok.type == TT.MATCH:
            return self.parse_match_expr()

        raise self.unexpected("expression")

    def parse_nested(self, inner):
        """Run a sub-parser with struct literals re-enabled (inside brackets)"""
        saved = self.no_struct
        self.no_struct = False

        try:
            return inner()
        finally:
            self.no_struct = saved

    def parse_paren_expr(self) -> Tree:
        """Parse (expr), (), (a,), (a, b, ...)"""
        lpar = self.expect(TT.LPAR)

        if self.match(TT.RPAR):
            return self.node('tuple', [], lpar)

        first = self.parse_nested(self.parse_expr)

        if not self.check(TT.COMMA):
            self.expect(TT.RPAR, f"Expected ')', got {self.describe(self.current)}")
            return first

        items = [first]
        while self.match(TT.COMMA):
            if self.check(TT.RPAR):
                break
            items.append(self.parse_nested(self.parse_expr))

        self.expect(TT.RPAR, f"Expected ')' to close tuple, got {self.describe(self.current)}")
        return self.node('tuple', items, lpar)

    def parse_list_expr(self) -> Tree:
        """Parse [a, b, ...] or [expr for x in xs if cond]"""
        lsqb = self.expect(TT.LSQB)

        if self.match(TT.RSQB):
            return self.node('list', [], lsqb)

        first = self.parse_nested(self.parse_expr)

        if self.check(TT.FOR):
            return self.parse_list_comprehension(first, lsqb)

        items = [first]
        while self.match(TT.COMMA):
            if self.check(TT.RSQB):
                break
            items.append(self.parse_nested(self.parse_expr))

        self.expect(TT.RSQB, f"Expected ']' to close list, got {self.describe(self.current)}")
        return self.node('list', items, lsqb)

    def parse_list_comprehension(self, element: Tree, lsqb: Tok) -> Tree:
        self.expect(TT.FOR)

        if self.check(TT.LPAR):
            target = self.parse_tuple_target()
        else:
            target = self.token('IDENT', self.expect(TT.IDENT, "Expected comprehension variable"))

        self.expect(TT.IN, f"Expected 'in' in comprehension, got {self.describe(self.current)}")
        iterable = self.parse_nested(self.parse_or_without_if)
        cond = None

        if self.match(TT.IF):
            cond = self.parse_nested(self.parse_expr)

        self.expect(TT.RSQB, f"Expected ']' to close comprehension, got {self.describe(self.current)}")
        return self.node('listcomp', [element, target, iterable, cond], lsqb)

    def parse_or_without_if(self) -> Tree:
        return self.parse_or_expr()

    def parse_map_expr(self) -> Tree:
        """Parse map literal: { key: value, ... }"""
        lbrace = self.expect(TT.LBRACE)
        pairs = []

        self.skip_newlines()
        while not self.check(TT.RBRACE):
            key = self.parse_nested(self.parse_expr)
            self.expect(TT.COLON, f"Expected ':' in map literal, got {self.describe(self.current)}")
            self.skip_newlines()
            value = self.parse_nested(self.parse_expr)
            pairs.append(Tree('pair', [key, value]))
            self.skip_newlines()

            if not self.match(TT.COMMA):
                break
            self.skip_newlines()

        self.expect(TT.RBRACE, f"Expected '}}' to close map, got {self.describe(self.current)}")
        return self.node('map', pairs, lbrace)

    def looks_like_struct_literal(self) -> bool:
        """IDENT { } or IDENT { field: ... } (newlines allowed after the brace)"""
        offset = 2
        while self.peek(offset).type == TT.NEWLINE:
            offset += 1

        nxt = self.peek(offset)
        if nxt.type == TT.RBRACE:
            return True

        return nxt.type == TT.IDENT and self.peek(offset + 1).type == TT.COLON

    def parse_struct_literal(self) -> Tree:
        """Parse struct literal: Name { field: expr, ... }"""
        name = self.expect(TT.IDENT)
        self.expect(TT.LBRACE)
        inits = []

        self.skip_newlines()
        while not self.check(TT.RBRACE):
            field_tok = self.expect(TT.IDENT, f"Expected field name, got {self.describe(self.current)}")
            self.expect(TT.COLON, f"Expected ':' after field name, got {self.describe(self.current)}")
            self.skip_newlines()
            value = self.parse_nested(self.parse_expr)
            inits.append(self.node('fieldinit', [self.token('IDENT', field_tok), value], field_tok))
            self.skip_newlines()

            if not self.match(TT.COMMA):
                break
            self.skip_newlines()

        self.expect(TT.RBRACE, f"Expected '}}' to close struct literal, got {self.describe(self.current)}")
        return self.node('structlit', [self.token('IDENT', name)] + inits, name)

    def parse_enum_ref(self) -> Tree:
        """Parse enum reference: Name::Variant or Name::Variant(args)"""
        type_tok = self.expect(TT.IDENT)
        self.expect(TT.PATHSEP)
        variant_tok = self.expect(TT.IDENT, f"Expected variant name after '::', got {self.describe(self.current)}")
        args = None

        if self.match(TT.LPAR):
            args = self.parse_arg_list()
            self.expect(TT.RPAR, f"Expected ')' after variant payload, got {self.describe(self.current)}")

        return self.node('enumref', [self.token('IDENT', type_tok), self.token('IDENT', variant_tok), args], type_tok)

    def parse_anonymous_fn(self) -> Tree:
        """Parse anonymous function: fn(params) [-> type] { body }"""
        fn_tok = self.expect(TT.FN)
        params = self.parse_param_list()
        rettype = self.parse_return_type()
        body = self.parse_block()
        return self.node('anonfn', [params, rettype, body], fn_tok)

    def parse_match_expr(self) -> Tree:
        """
        Parse match expression:
        match subject { pattern => body, ... }
        Arms are separated by commas and/or newlines; order is preserved.
        """
        match_tok = self.expect(TT.MATCH)
        subject = self.parse_head_expr()
        self.expect(TT.LBRACE, f"Expected '{{' after match subject, got {self.describe(self.current)}")
        arms = []

        saved = self.no_struct
        self.no_struct = False

        try:
            while True:
                while self.match(TT.NEWLINE, TT.COMMA):
                    pass

                if self.check(TT.RBRACE):
                    break

                arm_tok = self.current
                pattern = self.parse_pattern()
                self.expect(TT.FATARROW, f"Expected '=>' after match pattern, got {self.describe(self.current)}")
                self.skip_newlines()

                if self.check(TT.LBRACE):
                    body = self.parse_block()
                else:
                    body = self.parse_expr()

                arms.append(self.node('arm', [pattern, body], arm_tok))

                if not self.check(TT.COMMA, TT.NEWLINE, TT.RBRACE):
                    raise self.unexpected("match arm list")
        finally:
            self.no_struct = saved

        self.expect(TT.RBRACE, f"Expected '}}' to close match, got {self.describe(self.current)}")
        return self.node('matchexpr', [subject] + arms, match_tok)

    # ========================================================================
    # Patterns
    # ========================================================================

    def parse_pattern(self) -> Tree:
        """
        Parse match pattern:
        _ | literal | lo..hi | name | (p, ...) | Enum::V[(p, ...)] | Struct { f: p, g }
        """
        tok = self.current

        if tok.type == TT.IDENT and tok.value == '_':
            self.advance()
            return self.node('wildcard', [], tok)

        if tok.type in _LITERAL_TOKENS or tok.type == TT.MINUS:
            literal = self.parse_pattern_literal()

            if self.check(TT.RANGE):
                self.advance()
                upper = self.parse_pattern_literal()
                return self.node('rangepat', [literal, upper], tok)

            return self.node('litpat', [literal], tok)

        if tok.type == TT.LPAR:
            self.advance()
            items = []

            while not self.check(TT.RPAR):
                items.append(self.parse_pattern())
                if not self.match(TT.COMMA):
                    break

            self.expect(TT.RPAR, f"Expected ')' to close tuple pattern, got {self.describe(self.current)}")

            if len(items) == 1:
                return items[0]

            return self.node('tuplepat', items, tok)

        if tok.type == TT.IDENT:
            if self.peek(1).type == TT.PATHSEP:
                return self.parse_enum_pattern()

            if self.peek(1).type == TT.LBRACE:
                return self.parse_struct_pattern()

            self.advance()
            return self.node('bindpat', [self.token('IDENT', tok)], tok)

        raise self.unexpected("pattern")

    def parse_pattern_literal(self) -> Token:
        tok = self.current

        if self.match(TT.MINUS):
            num = self.current
            if num.type not in (TT.INT, TT.FLOAT):
                raise self.unexpected("negative literal pattern")
            self.advance()
            return Token(_LITERAL_TOKENS[num.type], '-' + num.value, line=tok.line, column=tok.column)

        if tok.type not in _LITERAL_TOKENS:
            raise self.unexpected("literal pattern")

        self.advance()
        return self.token(_LITERAL_TOKENS[tok.type], tok)

    def parse_enum_pattern(self) -> Tree:
        type_tok = self.expect(TT.IDENT)
        self.expect(TT.PATHSEP)
        variant_tok = self.expect(TT.IDENT, f"Expected variant name after '::', got {self.describe(self.current)}")
        subpats = None

        if self.match(TT.LPAR):
            items = []
            while not self.check(TT.RPAR):
                items.append(self.parse_pattern())
                if not self.match(TT.COMMA):
                    break
            self.expect(TT.RPAR, f"Expected ')' after variant patterns, got {self.describe(self.current)}")
            subpats = Tree('subpats', items)

        return self.node('enumpat', [self.token('IDENT', type_tok), self.token('IDENT', variant_tok), subpats], type_tok)

    def parse_struct_pattern(self) -> Tree:
        name = self.expect(TT.IDENT)
        self.expect(TT.LBRACE)
        fields = []

        self.skip_newlines()
        while not self.check(TT.RBRACE):
            field_tok = self.expect(TT.IDENT, f"Expected field name in struct pattern, got {self.describe(self.current)}")
            field = self.token('IDENT', field_tok)

            if self.match(TT.COLON):
                sub = self.parse_pattern()
            else:
                sub = self.node('bindpat', [field], field_tok)

            fields.append(Tree('fieldpat', [field, sub]))
            self.skip_newlines()

            if not self.match(TT.COMMA):
                break
            self.skip_newlines()

        self.expect(TT.RBRACE, f"Expected '}}' to close struct pattern, got {self.describe(self.current)}")
        return self.node('structpat', [self.token('IDENT', name)] + fields, name)

    # ========================================================================
    # Parameters and arguments
    # ========================================================================

    def parse_param_list(self) -> Tree:
        """Parse (name[: type] [= default], ...)"""
        self.expect(TT.LPAR, f"Expected '(' to open parameter list, got {self.describe(self.current)}")
        params = []
        seen_default = False

        while not self.check(TT.RPAR, TT.EOF):
            param = self.expect(TT.IDENT, f"Expected parameter name, got {self.describe(self.current)}")
            typeann = self.parse_type_annotation()
            default = None

            if self.match(TT.ASSIGN):
                default = self.parse_nested(self.parse_expr)
                seen_default = True
            elif seen_default:
                raise ParseError("Parameter without default follows parameter with default", param)

            params.append(self.node('param', [self.token('IDENT', param), typeann, default], param))

            if not self.match(TT.COMMA):
                break

        self.expect(TT.RPAR, f"Expected ')' to close parameter list, got {self.describe(self.current)}")
        return Tree('paramlist', params)

    def parse_arg_list(self) -> Tree:
        """Parse call arguments up to (not including) the closing paren"""
        args = []

        while not self.check(TT.RPAR, TT.EOF):
            args.append(self.parse_nested(self.parse_expr))

            if not self.match(TT.COMMA):
                break

        return Tree('args', args)

# ============================================================================
# Entry points
# ============================================================================

def parse_source(source: str) -> Tree:
    """
    Parse StelLang source code to AST.

    Returns a 'program' Tree whose children are statements.
    """
    from .lexer_rd import tokenize

    tokens = tokenize(source)
    parser = Parser(tokens)
    return parser.parse()
