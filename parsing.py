"""
Expression language parser
Precedence-climbing parser turning the token stream into expression trees
"""

import logging
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from error_handling import ParseError, describe_token, get_context_lines
from lexing import Lexer, OperatorClass, Token, TokenKind
from nodes import (
    Argument, Call, Constant, ConstantKind, Formal, FormalList, MISSING_ARG, Node, Symbol,
)

logger = logging.getLogger(__name__)


# ============================================================================
# OPERATOR TABLES
# ============================================================================

class Assoc(Enum):
    LEFT = "left"
    RIGHT = "right"
    NONE = "non-associative"


@dataclass(frozen=True)
class OperatorInfo:
    """Binding of an operator: head symbol name, precedence level, associativity"""
    name: str
    precedence: int
    assoc: Assoc
    spaced: bool = True
    swap: bool = False


PREC_ASSIGN_EQ = 1
PREC_ASSIGN = 2
PREC_RIGHT_ASSIGN = 3
PREC_TILDE = 4
PREC_OR = 5
PREC_AND = 6
PREC_COMPARE = 7
PREC_SUM = 8
PREC_PRODUCT = 9
PREC_SPECIAL = 10
PREC_RANGE = 11
PREC_UNARY = 12
PREC_POWER = 13
PREC_DOLLAR = 14
PREC_POSTFIX = 15
PREC_NAMESPACE = 16
PREC_ATOM = 100


def _ops(names: Iterable[str], precedence: int, assoc: Assoc, spaced: bool = True) -> Dict[str, OperatorInfo]:
    return {name: OperatorInfo(name, precedence, assoc, spaced) for name in names}


# Keyed by token text; `->` and `->>` build `<-` / `<<-` calls with operands swapped
INFIX_OPERATORS: Dict[str, OperatorInfo] = {
    **_ops(['='], PREC_ASSIGN_EQ, Assoc.RIGHT),
    **_ops(['<-', '<<-'], PREC_ASSIGN, Assoc.RIGHT),
    '->': OperatorInfo('<-', PREC_RIGHT_ASSIGN, Assoc.LEFT, swap=True),
    '->>': OperatorInfo('<<-', PREC_RIGHT_ASSIGN, Assoc.LEFT, swap=True),
    **_ops(['~'], PREC_TILDE, Assoc.LEFT),
    **_ops(['||', '|'], PREC_OR, Assoc.LEFT),
    **_ops(['&&', '&'], PREC_AND, Assoc.LEFT),
    **_ops(['==', '!=', '<', '>', '<=', '>='], PREC_COMPARE, Assoc.NONE),
    **_ops(['+', '-'], PREC_SUM, Assoc.LEFT),
    **_ops(['*', '/'], PREC_PRODUCT, Assoc.LEFT),
    **_ops([':'], PREC_RANGE, Assoc.LEFT, spaced=False),
    **_ops(['^'], PREC_POWER, Assoc.RIGHT, spaced=False),
}

# Operators whose right operand is a bare name or string
ACCESS_OPERATORS: Dict[str, OperatorInfo] = {
    **_ops(['$', '@'], PREC_DOLLAR, Assoc.LEFT, spaced=False),
    **_ops(['::', ':::'], PREC_NAMESPACE, Assoc.LEFT, spaced=False),
}

PREFIX_OPERATORS: Dict[str, int] = {
    '-': PREC_UNARY,
    '+': PREC_UNARY,
    '!': PREC_UNARY,
    '~': PREC_TILDE,
}

KEYWORD_CONSTANTS = {
    'TRUE': True,
    'FALSE': False,
    'NULL': None,
    'Inf': float('inf'),
    'NaN': float('nan'),
}

# Surface forms introduced by a keyword; rendered without call syntax
KEYWORD_FORMS = frozenset({'function', 'if', 'for', 'while', 'repeat', 'break', 'next'})


def binary_operator(name: str) -> Optional[OperatorInfo]:
    """Look up the infix rendering of a head symbol name (custom %op% included)"""
    if name in ACCESS_OPERATORS:
        return ACCESS_OPERATORS[name]
    info = INFIX_OPERATORS.get(name)
    if info is not None and not info.swap:
        return info
    if is_custom_operator(name):
        return OperatorInfo(name, PREC_SPECIAL, Assoc.LEFT)
    return None


def is_custom_operator(name: str) -> bool:
    return len(name) >= 2 and name[0] == '%' and name[-1] == '%' and '\n' not in name and '%' not in name[1:-1]


# ============================================================================
# TOKEN STREAM
# ============================================================================

class TokenStream:
    """Buffered view over a lazy token iterator with bounded lookahead"""

    def __init__(self, tokens: Iterator[Token]):
        self._tokens = tokens
        self._buffer = deque()
        self._end: Optional[Token] = None

    def _fill(self, count: int) -> None:
        while len(self._buffer) < count:
            if self._end is not None:
                self._buffer.append(self._end)
                continue
            token = next(self._tokens)
            if token.kind is TokenKind.END_OF_INPUT:
                self._end = token
            self._buffer.append(token)

    def peek(self, offset: int = 0, skip_newlines: bool = False) -> Token:
        index = 0
        while True:
            self._fill(index + 1)
            token = self._buffer[index]
            if skip_newlines and token.kind is TokenKind.NEWLINE:
                index += 1
                continue
            if offset == 0:
                return token
            offset -= 1
            index += 1

    def advance(self, skip_newlines: bool = False) -> Token:
        while True:
            self._fill(1)
            token = self._buffer[0]
            if token.kind is TokenKind.END_OF_INPUT:
                return token
            self._buffer.popleft()
            if skip_newlines and token.kind is TokenKind.NEWLINE:
                continue
            return token


# ============================================================================
# PRECEDENCE-CLIMBING PARSER
# ============================================================================

class ExpressionParser:
    """Parser over one token stream; yields top-level units lazily"""

    def __init__(self, tokens: Iterable[Token], source_text: str = ""):
        self._stream = TokenStream(iter(tokens))
        self._source_text = source_text
        # True while newlines are insignificant (inside parentheses/brackets)
        self._newline_modes: List[bool] = [False]

    # ------------------------------------------------------------------
    # token helpers
    # ------------------------------------------------------------------

    @property
    def _ignoring_newlines(self) -> bool:
        return self._newline_modes[-1]

    @contextmanager
    def _newline_mode(self, ignore: bool):
        self._newline_modes.append(ignore)
        try:
            yield
        finally:
            self._newline_modes.pop()

    def _peek(self, offset: int = 0) -> Token:
        return self._stream.peek(offset, skip_newlines=self._ignoring_newlines)

    def _advance(self) -> Token:
        return self._stream.advance(skip_newlines=self._ignoring_newlines)

    def _skip_newlines(self) -> None:
        while self._stream.peek().kind is TokenKind.NEWLINE:
            self._stream.advance()

    def _skip_separators(self) -> None:
        while True:
            token = self._stream.peek()
            if token.kind is TokenKind.NEWLINE or token.is_punct(';'):
                self._stream.advance()
            else:
                return

    def _error(self, message: str, token: Token, expected: Optional[List[str]] = None) -> ParseError:
        context = None
        if self._source_text:
            context = get_context_lines(self._source_text, token.span.line, token.span.column)
        return ParseError(message, token.span, expected, describe_token(token), context)

    def _expect_punct(self, text: str, expected: Optional[List[str]] = None) -> Token:
        token = self._advance()
        if not token.is_punct(text):
            raise self._error(f"expected '{text}'", token, expected or [f"'{text}'"])
        return token

    # ------------------------------------------------------------------
    # statements
    # ------------------------------------------------------------------

    def iter_units(self) -> Iterator[Node]:
        """Yield top-level statements until the input is exhausted"""
        while True:
            self._skip_separators()
            if self._peek().kind is TokenKind.END_OF_INPUT:
                return
            node = self.parse_expression()
            token = self._peek()
            if not (token.kind in (TokenKind.NEWLINE, TokenKind.END_OF_INPUT) or token.is_punct(';')):
                raise self._error(
                    f"unexpected {describe_token(token)}", token,
                    ["end of line", "';'"]
                )
            yield node

    # ------------------------------------------------------------------
    # expressions
    # ------------------------------------------------------------------

    def parse_expression(self, min_precedence: int = 0) -> Node:
        left = self._parse_prefix()
        # Precedence of a non-associative operator applied at this level
        chained: Optional[int] = None

        while True:
            token = self._peek()

            if token.kind is TokenKind.PUNCTUATION and token.text in ('(', '['):
                if PREC_POSTFIX <= min_precedence:
                    break
                left = self._parse_call(left) if token.text == '(' else self._parse_index(left)
                chained = None
                continue

            if token.kind is not TokenKind.OPERATOR:
                break

            if token.text in ACCESS_OPERATORS:
                info = ACCESS_OPERATORS[token.text]
                if info.precedence <= min_precedence:
                    break
                left = self._parse_access(left, info)
                chained = None
                continue

            if token.op_class is OperatorClass.CUSTOM_INFIX:
                info = OperatorInfo(token.text, PREC_SPECIAL, Assoc.LEFT)
            else:
                info = INFIX_OPERATORS.get(token.text)
            if info is None or info.precedence <= min_precedence:
                break
            if info.assoc is Assoc.NONE and chained == info.precedence:
                raise self._error(
                    f"comparison operators cannot be chained; parenthesize the left comparison before '{token.text}'",
                    token
                )

            self._advance()
            self._skip_newlines()
            if info.assoc is Assoc.RIGHT:
                right = self.parse_expression(info.precedence - 1)
            else:
                right = self.parse_expression(info.precedence)

            operands = (right, left) if info.swap else (left, right)
            left = Call(Symbol(info.name), tuple(Argument(operand) for operand in operands))
            chained = info.precedence if info.assoc is Assoc.NONE else None

        return left

    def _parse_prefix(self) -> Node:
        token = self._advance()
        kind = token.kind

        if kind in (TokenKind.NUMBER, TokenKind.STRING):
            return Constant(token.value)

        if kind is TokenKind.IDENTIFIER:
            return Symbol(token.value)

        if kind is TokenKind.KEYWORD:
            return self._parse_keyword(token)

        if kind is TokenKind.OPERATOR:
            if token.op_class is OperatorClass.PREFIX_CAPABLE:
                self._skip_newlines()
                operand = self.parse_expression(PREFIX_OPERATORS[token.text])
                return Call(Symbol(token.text), (Argument(operand),))
            if token.op_class is OperatorClass.LAMBDA:
                return self._parse_function()
            raise self._error(f"operator '{token.text}' requires a left operand", token, ["an expression"])

        if token.is_punct('('):
            with self._newline_mode(True):
                inner = self.parse_expression()
                self._expect_punct(')')
            return inner

        if token.is_punct('{'):
            return self._parse_block()

        raise self._error(f"expected an expression, got {describe_token(token)}", token, ["an expression"])

    def _parse_keyword(self, token: Token) -> Node:
        word = token.text
        if word in KEYWORD_CONSTANTS:
            return Constant(KEYWORD_CONSTANTS[word])
        if word == 'function':
            return self._parse_function()
        if word == 'if':
            return self._parse_if()
        if word == 'for':
            return self._parse_for()
        if word == 'while':
            return self._parse_while()
        if word == 'repeat':
            self._skip_newlines()
            return Call(Symbol('repeat'), (Argument(self.parse_expression()),))
        if word in ('break', 'next'):
            return Call(Symbol(word))
        raise self._error(f"unexpected keyword '{word}'", token, ["an expression"])

    def _parse_block(self) -> Node:
        statements = []
        with self._newline_mode(False):
            while True:
                self._skip_separators()
                if self._peek().is_punct('}'):
                    self._advance()
                    break
                statements.append(self.parse_expression())
                token = self._peek()
                if not (token.kind is TokenKind.NEWLINE or token.is_punct(';') or token.is_punct('}')):
                    raise self._error(
                        f"unexpected {describe_token(token)}", token,
                        ["end of line", "';'", "'}'"]
                    )
        return Call(Symbol('{'), tuple(Argument(statement) for statement in statements))

    def _parse_condition(self) -> Node:
        self._expect_punct('(')
        with self._newline_mode(True):
            condition = self.parse_expression()
            self._expect_punct(')')
        self._skip_newlines()
        return condition

    def _parse_if(self) -> Node:
        condition = self._parse_condition()
        consequent = self.parse_expression()
        args = [Argument(condition), Argument(consequent)]

        # Inside braces `else` may start the next line
        in_block = len(self._newline_modes) > 1 and not self._ignoring_newlines
        if in_block:
            lookahead = self._stream.peek(skip_newlines=True)
        else:
            lookahead = self._peek()
        if lookahead.is_keyword('else'):
            if in_block:
                self._skip_newlines()
            self._advance()
            self._skip_newlines()
            args.append(Argument(self.parse_expression()))
        return Call(Symbol('if'), tuple(args))

    def _parse_for(self) -> Node:
        self._expect_punct('(')
        with self._newline_mode(True):
            token = self._advance()
            if token.kind is not TokenKind.IDENTIFIER:
                raise self._error("expected a loop variable name", token, ["identifier"])
            in_token = self._advance()
            if not in_token.is_keyword('in'):
                raise self._error("expected 'in'", in_token, ["'in'"])
            sequence = self.parse_expression()
            self._expect_punct(')')
        self._skip_newlines()
        body = self.parse_expression()
        return Call(Symbol('for'), (Argument(Symbol(token.value)), Argument(sequence), Argument(body)))

    def _parse_while(self) -> Node:
        condition = self._parse_condition()
        body = self.parse_expression()
        return Call(Symbol('while'), (Argument(condition), Argument(body)))

    def _parse_function(self) -> Node:
        self._expect_punct('(')
        with self._newline_mode(True):
            formals = self._parse_formals()
        self._skip_newlines()
        body = self.parse_expression()
        return Call(Symbol('function'), (Argument(FormalList(tuple(formals))), Argument(body)))

    def _parse_formals(self) -> List[Formal]:
        formals: List[Formal] = []
        if self._peek().is_punct(')'):
            self._advance()
            return formals

        while True:
            token = self._advance()
            if token.kind is not TokenKind.IDENTIFIER:
                raise self._error("expected a parameter name", token, ["identifier"])
            name = token.value
            if not name:
                raise self._error("argument names must be non-empty", token, ["identifier"])
            if any(formal.name == name for formal in formals):
                raise self._error(f"repeated formal argument '{name}'", token)

            if self._is_assign_eq(self._peek()):
                self._advance()
                if self._peek().is_punct(',') or self._peek().is_punct(')'):
                    formals.append(Formal(name, MISSING_ARG, empty_default=True))
                else:
                    formals.append(Formal(name, self.parse_expression(PREC_ASSIGN_EQ)))
            else:
                formals.append(Formal(name))

            token = self._advance()
            if token.is_punct(')'):
                return formals
            if not token.is_punct(','):
                raise self._error("expected ',' or ')' in parameter list", token, ["','", "')'"])

    # ------------------------------------------------------------------
    # postfix forms
    # ------------------------------------------------------------------

    def _parse_call(self, head: Node) -> Node:
        open_token = self._advance()
        if isinstance(head, Constant):
            if head.kind is not ConstantKind.CHARACTER:
                raise self._error("attempt to call a constant", open_token)
            head = Symbol(head.value)
        args = self._parse_arguments(')')
        return Call(head, tuple(args))

    def _parse_index(self, target: Node) -> Node:
        open_token = self._advance()
        following = self._stream.peek()
        double = following.is_punct('[') and following.span.start == open_token.span.end
        if double:
            self._advance()
        args = self._parse_arguments(']')
        if double:
            self._expect_punct(']', ["']]'"])
        name = '[[' if double else '['
        return Call(Symbol(name), (Argument(target),) + tuple(args))

    def _parse_access(self, left: Node, info: OperatorInfo) -> Node:
        operator_token = self._advance()
        if info.precedence == PREC_NAMESPACE and not (
                isinstance(left, Symbol) or
                (isinstance(left, Constant) and left.kind is ConstantKind.CHARACTER)):
            raise self._error(f"'{info.name}' needs a package name on its left", operator_token)
        token = self._advance()
        if token.kind is TokenKind.IDENTIFIER:
            right: Node = Symbol(token.value)
        elif token.kind is TokenKind.STRING:
            right = Constant(token.value)
        else:
            raise self._error(f"expected a name after '{info.name}'", token, ["identifier", "string"])
        return Call(Symbol(info.name), (Argument(left), Argument(right)))

    def _parse_arguments(self, closer: str) -> List[Argument]:
        args: List[Argument] = []
        with self._newline_mode(True):
            if self._peek().is_punct(closer):
                self._advance()
                return args

            while True:
                token = self._peek()
                if token.is_punct(',') or token.is_punct(closer):
                    args.append(Argument(MISSING_ARG))
                else:
                    args.append(self._parse_argument(closer))

                token = self._advance()
                if token.is_punct(closer):
                    return args
                if not token.is_punct(','):
                    raise self._error(
                        f"expected ',' or '{closer}', got {describe_token(token)}", token,
                        ["','", f"'{closer}'"]
                    )

    def _parse_argument(self, closer: str) -> Argument:
        token = self._peek()
        if token.kind in (TokenKind.IDENTIFIER, TokenKind.STRING) and self._is_assign_eq(self._peek(1)):
            if not token.value:
                raise self._error("argument names must be non-empty", token, ["identifier"])
            self._advance()
            self._advance()
            following = self._peek()
            if following.is_punct(',') or following.is_punct(closer):
                return Argument(MISSING_ARG, token.value)
            return Argument(self.parse_expression(PREC_ASSIGN_EQ), token.value)

        value = self.parse_expression(PREC_ASSIGN_EQ)
        following = self._peek()
        if self._is_assign_eq(following):
            raise self._error(
                "argument names must be identifiers or strings", following,
                ["','", f"'{closer}'"]
            )
        return Argument(value)

    @staticmethod
    def _is_assign_eq(token: Token) -> bool:
        return token.kind is TokenKind.OPERATOR and token.text == '='


# ============================================================================
# PARSER FACADE
# ============================================================================

class Parser:
    """Main parser combining the lexer and the precedence-climbing parser"""

    def __init__(self, debug: bool = False, filename: str = "<input>"):
        self.debug = debug
        self.filename = filename
        self.lexer = Lexer(filename)

    def iter_units(self, text: str) -> Iterator[Node]:
        """Lazily parse top-level statements; errors surface when reached"""
        tokens: Iterable[Token] = self.lexer.scan(text)
        if self.debug:
            tokens = self._traced(tokens)
        for index, unit in enumerate(ExpressionParser(tokens, text).iter_units(), 1):
            if self.debug:
                logger.debug("%s: parsed unit %d: %r", self.filename, index, unit)
            yield unit

    def parse_string(self, text: str) -> List[Node]:
        """Parse source text into one node per top-level statement"""
        return list(self.iter_units(text))

    def parse_expression(self, text: str) -> Node:
        """Parse text holding exactly one statement"""
        units = self.iter_units(text)
        first = next(units, None)
        if first is None:
            raise ParseError("expected an expression, got end of input",
                             expected=["an expression"], found="end of input")
        if next(units, None) is not None:
            raise ParseError("expected a single expression, got several statements")
        return first

    def tokenize(self, text: str) -> List[Token]:
        return self.lexer.tokenize(text)

    def _traced(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            logger.debug("%s token %s", token.span, token)
            yield token


# Factory functions for creating parsers
def create_parser(debug: bool = False, filename: str = "<input>") -> Parser:
    """Create a parser"""
    return Parser(debug=debug, filename=filename)


def create_debug_parser(filename: str = "<input>") -> Parser:
    """Create a parser that logs tokens and parsed units at DEBUG level"""
    return Parser(debug=True, filename=filename)


def parse(text: str, filename: str = "<input>") -> List[Node]:
    """Parse source text into a list of top-level nodes"""
    return Parser(filename=filename).parse_string(text)


def parse_expr(text: str, filename: str = "<input>") -> Node:
    """Parse source text holding exactly one expression"""
    return Parser(filename=filename).parse_expression(text)
