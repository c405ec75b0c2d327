"""
Lexer for the expression language
Token grammar built from pyparsing elements, scanned lazily with source spans
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, List, NamedTuple, Optional

from pyparsing import MatchFirst, QuotedString, Regex, one_of

from error_handling import LexError


class TokenKind(Enum):
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    NUMBER = "number"
    STRING = "string"
    OPERATOR = "operator"
    PUNCTUATION = "punctuation"
    NEWLINE = "newline"
    END_OF_INPUT = "end of input"


class OperatorClass(Enum):
    """Fixed arity class of an operator token"""
    INFIX = "infix"
    PREFIX_CAPABLE = "prefix-capable"
    CUSTOM_INFIX = "custom infix"
    LAMBDA = "lambda"


RESERVED_WORDS = frozenset({
    'if', 'else', 'repeat', 'while', 'function', 'for', 'in', 'next', 'break',
    'TRUE', 'FALSE', 'NULL', 'Inf', 'NaN',
})

# Starts with a letter, or a dot not followed by a digit
IDENTIFIER_PATTERN = r'(?:[^\W\d_]|\.(?![0-9]))[\w.]*'
NUMBER_PATTERN = r'(?:0[xX][0-9a-fA-F]+|(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)L?'

PREFIX_CAPABLE_OPERATORS = frozenset({'+', '-', '!', '~'})
OPERATOR_TEXTS = sorted([
    '<<-', '->>', ':::',
    '<-', '->', '<=', '>=', '==', '!=', '&&', '||', '::',
    '+', '-', '*', '/', '^', '<', '>', '!', '&', '|', '~', '=', ':', '$', '@', '\\',
], key=len, reverse=True)
PUNCTUATION_TEXTS = ['(', ')', '{', '}', '[', ']', ',', ';']

_IDENTIFIER_RE = re.compile(IDENTIFIER_PATTERN)

ESCAPE_MAP = {
    'n': '\n', 't': '\t', 'r': '\r', '\\': '\\', '"': '"', "'": "'", '`': '`',
    '0': '\0', 'a': '\a', 'b': '\b', 'f': '\f', 'v': '\v'
}


def is_syntactic_name(name: str) -> bool:
    """True when name can be written bare (identifier grammar, not reserved)"""
    return bool(_IDENTIFIER_RE.fullmatch(name)) and name not in RESERVED_WORDS


def process_escapes(s: str) -> str:
    """Process backslash escape sequences in string literals and quoted names"""
    result = []
    i = 0
    while i < len(s):
        if s[i] == '\\' and i + 1 < len(s):
            next_char = s[i + 1]
            if next_char in ESCAPE_MAP:
                result.append(ESCAPE_MAP[next_char])
                i += 2
            else:
                # Unknown escape, keep as-is
                result.append(s[i])
                i += 1
        else:
            result.append(s[i])
            i += 1

    return ''.join(result)


def parse_number(text: str):
    """Convert a number literal to int or float"""
    integer_suffix = text.endswith('L')
    if integer_suffix:
        text = text[:-1]
    if text[:2] in ('0x', '0X'):
        return int(text, 16)
    if any(c in text for c in '.eE'):
        value = float(text)
        if integer_suffix:
            if not value.is_integer():
                raise ValueError(f"integer literal {text}L is not a whole number")
            return int(value)
        return value
    return int(text)


@dataclass(frozen=True)
class SourceSpan:
    """Source location of a token: offsets plus 1-based line/column of the start"""
    filename: str
    start: int
    end: int
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"


@dataclass(frozen=True)
class Token:
    """Token with source information"""
    kind: TokenKind
    text: str
    value: Any
    span: SourceSpan
    op_class: Optional[OperatorClass] = None
    quoted: bool = False

    def is_punct(self, text: str) -> bool:
        return self.kind is TokenKind.PUNCTUATION and self.text == text

    def is_keyword(self, text: str) -> bool:
        return self.kind is TokenKind.KEYWORD and self.text == text

    def __str__(self) -> str:
        return f"{self.kind.name}({self.text!r})"


# ============================================================================
# TOKEN GRAMMAR
# ============================================================================

class _Lexeme(NamedTuple):
    kind: str
    text: str


def _tagged(kind: str, element):
    return element.leave_whitespace().set_parse_action(lambda t: _Lexeme(kind, t[0]))


def _build_token_grammar():
    """Build the alternation of token elements, tried in priority order"""
    alternatives = [
        _tagged('space', Regex(r'[ \t\r\f\v]+')),
        _tagged('newline', Regex(r'\n')),
        _tagged('comment', Regex(r'#[^\n]*')),
        _tagged('string', QuotedString('"', esc_char='\\', multiline=True, unquote_results=False)),
        _tagged('string', QuotedString("'", esc_char='\\', multiline=True, unquote_results=False)),
        _tagged('quoted_name', QuotedString('`', esc_char='\\', unquote_results=False)),
        _tagged('custom_operator', Regex(r'%[^%\n]*%')),
        _tagged('number', Regex(NUMBER_PATTERN)),
        _tagged('name', Regex(IDENTIFIER_PATTERN)),
        _tagged('operator', one_of(OPERATOR_TEXTS)),
        _tagged('punctuation', one_of(PUNCTUATION_TEXTS)),
        # Anything else is reported by the lexer
        _tagged('error', Regex(r'[^\n]')),
    ]
    grammar = MatchFirst(alternatives).leave_whitespace().parse_with_tabs()
    grammar.streamline()
    return grammar


_TOKEN_GRAMMAR = _build_token_grammar()

_UNTERMINATED = {
    '"': "unterminated string literal",
    "'": "unterminated string literal",
    '`': "unterminated quoted name",
    '%': "unterminated custom operator",
}


class TokenSequence:
    """Lazy, finite, restartable token sequence: each iteration rescans the text"""

    def __init__(self, lexer: 'Lexer', text: str):
        self._lexer = lexer
        self.text = text

    def __iter__(self) -> Iterator[Token]:
        return self._lexer._generate(self.text)


class Lexer:
    """Tokenizer producing significant tokens (whitespace and comments dropped)"""

    def __init__(self, filename: str = "<input>"):
        self.filename = filename

    def scan(self, text: str) -> TokenSequence:
        return TokenSequence(self, text)

    def tokenize(self, text: str) -> List[Token]:
        """Tokenize source text eagerly"""
        return list(self._generate(text))

    def _generate(self, text: str) -> Iterator[Token]:
        line = 1
        line_start = 0
        for tokens, start, end in _TOKEN_GRAMMAR.scan_string(text, always_skip_whitespace=False):
            lexeme = tokens[0]
            span = SourceSpan(self.filename, start, end, line, start - line_start + 1)

            newlines = lexeme.text.count('\n')
            if newlines:
                line += newlines
                line_start = start + lexeme.text.rindex('\n') + 1

            if lexeme.kind in ('space', 'comment'):
                continue
            if lexeme.kind == 'error':
                char = lexeme.text
                message = _UNTERMINATED.get(char, f"unrecognized character {char!r}")
                raise LexError(message, start, char, span, source_text=text)
            try:
                token = self._make_token(lexeme, span)
            except ValueError as e:
                raise LexError(str(e), start, lexeme.text, span, source_text=text) from e
            yield token

        end = len(text)
        yield Token(
            TokenKind.END_OF_INPUT, "", None,
            SourceSpan(self.filename, end, end, line, end - line_start + 1)
        )

    def _make_token(self, lexeme: _Lexeme, span: SourceSpan) -> Token:
        kind, text = lexeme.kind, lexeme.text

        if kind == 'newline':
            return Token(TokenKind.NEWLINE, text, None, span)
        if kind == 'string':
            return Token(TokenKind.STRING, text, process_escapes(text[1:-1]), span)
        if kind == 'quoted_name':
            return Token(TokenKind.IDENTIFIER, text, process_escapes(text[1:-1]), span, quoted=True)
        if kind == 'number':
            return Token(TokenKind.NUMBER, text, parse_number(text), span)
        if kind == 'name':
            token_kind = TokenKind.KEYWORD if text in RESERVED_WORDS else TokenKind.IDENTIFIER
            return Token(token_kind, text, text, span)
        if kind == 'custom_operator':
            return Token(TokenKind.OPERATOR, text, text, span, OperatorClass.CUSTOM_INFIX)
        if kind == 'operator':
            if text in PREFIX_CAPABLE_OPERATORS:
                op_class = OperatorClass.PREFIX_CAPABLE
            elif text == '\\':
                op_class = OperatorClass.LAMBDA
            else:
                op_class = OperatorClass.INFIX
            return Token(TokenKind.OPERATOR, text, text, span, op_class)
        return Token(TokenKind.PUNCTUATION, text, text, span)


# Factory functions
def create_lexer(filename: str = "<input>") -> Lexer:
    """Create a lexer"""
    return Lexer(filename)


def tokenize(text: str, filename: str = "<input>") -> List[Token]:
    """Tokenize source text into a list ending with END_OF_INPUT"""
    return Lexer(filename).tokenize(text)
