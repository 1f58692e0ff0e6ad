"""
Lexer for StelLang - Recursive Descent Parser front end

Tokenizes StelLang source code into a stream of tokens.

Features:
- Single-pass tokenization, restartable from scratch
- Position tracking (line, column of each token's first character)
- Newlines are statement separators outside of (...) and [...]
- Double- and single-quoted strings with basic escapes
"""

from typing import List, Optional

from .token_types import TT, Tok

def _is_digit(ch: str) -> bool:
    # str.isdigit() also accepts superscripts and other Unicode digits
    return '0' <= ch <= '9'

# ============================================================================
# Lexer Implementation
# ============================================================================

class LexError(Exception):
    """Lexical analysis error carrying the offending character and position"""

    def __init__(self, message: str, char: Optional[str] = None, line: int = 0, column: int = 0):
        self.message = message
        self.char = char
        self.line = line
        self.column = column
        super().__init__(f"{message} at line {line}, col {column}")


class Lexer:
    """
    StelLang lexer.

    Brackets are tracked on a stack so that a newline inside a call argument
    list or list literal does not end the enclosing statement, while a newline
    inside a brace block still separates statements.
    """

    # Keyword mapping
    KEYWORDS = {
        'let': TT.LET,
        'const': TT.CONST,
        'fn': TT.FN,
        'def': TT.FN,
        'async': TT.ASYNC,
        'await': TT.AWAIT,
        'if': TT.IF,
        'else': TT.ELSE,
        'while': TT.WHILE,
        'for': TT.FOR,
        'in': TT.IN,
        'break': TT.BREAK,
        'continue': TT.CONTINUE,
        'return': TT.RETURN,
        'match': TT.MATCH,
        'struct': TT.STRUCT,
        'enum': TT.ENUM,
        'try': TT.TRY,
        'catch': TT.CATCH,
        'throw': TT.THROW,
        'import': TT.IMPORT,
        'and': TT.AND,
        'or': TT.OR,
        'not': TT.NOT,
        'is': TT.IS,
        'true': TT.TRUE,
        'false': TT.FALSE,
        'null': TT.NULL,
    }

    # Operator mapping: longest matches first to handle prefixes correctly
    OPERATORS = [
        # Two-character operators
        ('==', TT.EQ),
        ('!=', TT.NEQ),
        ('<=', TT.LTE),
        ('>=', TT.GTE),
        ('<<', TT.LSHIFT),
        ('>>', TT.RSHIFT),
        ('&&', TT.AND),
        ('||', TT.OR),
        ('+=', TT.PLUSEQ),
        ('-=', TT.MINUSEQ),
        ('*=', TT.STAREQ),
        ('/=', TT.SLASHEQ),
        ('%=', TT.MODEQ),
        ('//', TT.FLOORDIV),
        ('**', TT.POW),
        ('..', TT.RANGE),
        ('::', TT.PATHSEP),
        ('=>', TT.FATARROW),
        ('->', TT.ARROW),

        # Single-character operators
        ('+', TT.PLUS),
        ('-', TT.MINUS),
        ('*', TT.STAR),
        ('/', TT.SLASH),
        ('%', TT.MOD),
        ('&', TT.AMP),
        ('|', TT.PIPE),
        ('^', TT.CARET),
        ('~', TT.TILDE),
        ('!', TT.NOT),
        ('<', TT.LT),
        ('>', TT.GT),
        ('=', TT.ASSIGN),
        ('(', TT.LPAR),
        (')', TT.RPAR),
        ('[', TT.LSQB),
        (']', TT.RSQB),
        ('{', TT.LBRACE),
        ('}', TT.RBRACE),
        ('.', TT.DOT),
        (',', TT.COMMA),
        (':', TT.COLON),
        (';', TT.SEMI),
        ('@', TT.AT),
    ]

    ESCAPES = {
        'n': '\n',
        't': '\t',
        'r': '\r',
        '0': '\0',
        '\\': '\\',
        '"': '"',
        "'": "'",
    }

    _OPENERS = {TT.LPAR: TT.RPAR, TT.LSQB: TT.RSQB, TT.LBRACE: TT.RBRACE}
    _CLOSERS = {TT.RPAR, TT.RSQB, TT.RBRACE}

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Tok] = []
        self.brackets: List[TT] = []
        self.start_line = 1
        self.start_column = 1

    # ========================================================================
    # Main Tokenization
    # ========================================================================

    def tokenize(self) -> List[Tok]:
        """Tokenize entire source, return token list ending with EOF"""
        while self.pos < len(self.source):
            self.scan_token()

        self.start_line = self.line
        self.start_column = self.column
        self.emit(TT.EOF, None)
        return self.tokens

    def scan_token(self):
        """Scan next token"""
        self.start_line = self.line
        self.start_column = self.column
        ch = self.peek()

        if ch in (' ', '\t', '\f', '\v'):
            self.advance()
            return

        if ch == '#':
            self.skip_comment()
            return

        if ch in ('\n', '\r'):
            self.scan_newline()
            return

        if ch in ('"', "'"):
            self.scan_string()
            return

        if _is_digit(ch):
            self.scan_number()
            return

        if ch.isalpha() or ch == '_':
            self.scan_identifier()
            return

        self.scan_operator()

    # ========================================================================
    # Token Scanners
    # ========================================================================

    def scan_newline(self):
        """Scan newline; only significant outside of parens and brackets"""
        if self.peek() == '\r' and self.peek(1) == '\n':
            self.advance(2)
        else:
            self.advance()

        if not self.brackets or self.brackets[-1] == TT.LBRACE:
            # collapse runs of blank lines into one separator
            if not self.tokens or self.tokens[-1].type != TT.NEWLINE:
                self.emit(TT.NEWLINE, '\n')

        self.line += 1
        self.column = 1

    def scan_string(self):
        """Scan string literal: "..." or '...', decoding escapes"""
        quote = self.advance()
        chars: List[str] = []

        while self.pos < len(self.source) and self.peek() != quote:
            ch = self.peek()

            if ch == '\n':
                break

            if ch == '\\':
                self.advance()
                if self.pos >= len(self.source):
                    break
                esc = self.advance()
                chars.append(self.ESCAPES.get(esc, '\\' + esc))
                continue

            chars.append(self.advance())

        if self.pos >= len(self.source) or self.peek() != quote:
            raise LexError("Unterminated string", quote, self.start_line, self.start_column)

        self.advance()  # closing quote
        self.emit(TT.STRING, ''.join(chars))

    def scan_number(self):
        """Scan number literal: digits with optional fractional part"""
        value = ''

        while _is_digit(self.peek()) or (self.peek() == '_' and _is_digit(self.peek(1))):
            ch = self.advance()
            if ch != '_':
                value += ch

        # `1..5` is a range, not a float
        if self.peek() == '.' and _is_digit(self.peek(1)):
            value += self.advance()
            while _is_digit(self.peek()):
                value += self.advance()

            if self.peek() in ('e', 'E') and (_is_digit(self.peek(1)) or (self.peek(1) in '+-' and _is_digit(self.peek(2)))):
                value += self.advance()
                if self.peek() in ('+', '-'):
                    value += self.advance()
                while _is_digit(self.peek()):
                    value += self.advance()

            self.emit(TT.FLOAT, value)
            return

        self.emit(TT.INT, value)

    def scan_identifier(self):
        """Scan identifier or keyword"""
        value = ''

        while self.peek().isalnum() or self.peek() == '_':
            value += self.advance()

        token_type = self.KEYWORDS.get(value, TT.IDENT)
        self.emit(token_type, value)

    def scan_operator(self):
        """Scan operators and punctuation"""
        for op_str, op_type in self.OPERATORS:
            if self.source.startswith(op_str, self.pos):
                self.advance(len(op_str))
                self.track_bracket(op_type)
                self.emit(op_type, op_str)
                return

        ch = self.peek()
        raise LexError(f"Unexpected character '{ch}'", ch, self.line, self.column)

    def track_bracket(self, op_type: TT):
        if op_type in self._OPENERS:
            self.brackets.append(op_type)
        elif op_type in self._CLOSERS and self.brackets:
            # mismatches are reported by the parser
            if self._OPENERS[self.brackets[-1]] == op_type:
                self.brackets.pop()

    # ========================================================================
    # Utilities
    # ========================================================================

    def peek(self, offset: int = 0) -> str:
        """Look ahead at character"""
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def advance(self, n: int = 1) -> str:
        """Consume n characters and return them as a string"""
        result = self.source[self.pos:self.pos + n]
        self.pos += n
        self.column += n
        return result

    def skip_comment(self):
        """Skip comment until end of line"""
        while self.peek() not in ('\n', '\r', '\0'):
            self.advance()

    def emit(self, token_type: TT, value):
        """Emit a token positioned at the start of its lexeme"""
        tok = Tok(
            type=token_type,
            value=value,
            line=self.start_line,
            column=self.start_column,
        )
        self.tokens.append(tok)


def tokenize(source: str) -> List[Tok]:
    """Convenience function to tokenize source"""
    lexer = Lexer(source)
    return lexer.tokenize()
