"""
Deparser for expression trees
Renders nodes back to canonical source text, parenthesizing only where needed
"""

import math
from typing import List, NamedTuple, Optional, Tuple

from error_handling import StructuralError
from nodes import Argument, Call, Constant, ConstantKind, FormalList, Node, Symbol, is_missing
from parsing import (
    ACCESS_OPERATORS, PREC_ASSIGN_EQ, PREC_ATOM, PREC_DOLLAR, PREC_NAMESPACE, PREC_UNARY,
    PREFIX_OPERATORS, Assoc, OperatorInfo, binary_operator,
)

INDENT = "    "

_STRING_ESCAPES = {
    '\\': '\\\\', '"': '\\"', '\n': '\\n', '\t': '\\t', '\r': '\\r',
    '\0': '\\0', '\a': '\\a', '\b': '\\b', '\f': '\\f', '\v': '\\v',
}
_NAME_ESCAPES = {**{k: v for k, v in _STRING_ESCAPES.items() if k != '"'}, '`': '\\`'}


def quote_string(text: str) -> str:
    """Render a string literal with double quotes and backslash escapes"""
    return '"' + ''.join(_STRING_ESCAPES.get(c, c) for c in text) + '"'


def quote_name(name: str) -> str:
    """Wrap a non-syntactic name in backticks"""
    return '`' + ''.join(_NAME_ESCAPES.get(c, c) for c in name) + '`'


def render_symbol(symbol: Symbol) -> str:
    if is_missing(symbol):
        return ""
    return quote_name(symbol.name) if symbol.needs_quoting else symbol.name


def render_name(name: str) -> str:
    return render_symbol(Symbol(name))


def render_constant(constant: Constant) -> str:
    value = constant.value
    kind = constant.kind
    if kind is ConstantKind.NULL:
        return "NULL"
    if kind is ConstantKind.LOGICAL:
        return "TRUE" if value else "FALSE"
    if kind is ConstantKind.INTEGER:
        return str(value)
    if kind is ConstantKind.DOUBLE:
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Inf" if value > 0 else "-Inf"
        return repr(value)
    return quote_string(value)


# ============================================================================
# RENDERING FORMS
# ============================================================================

class Form(NamedTuple):
    """How a node renders, as seen by its parent"""
    kind: str  # 'atom', 'infix', 'prefix' or 'keyword'
    precedence: int = PREC_ATOM
    assoc: Optional[Assoc] = None


_ATOM = Form('atom')
_KEYWORD = Form('keyword')


def _unnamed_values(call: Call) -> Optional[List[Node]]:
    """Argument values when every argument is unnamed and present"""
    if any(arg.name is not None or is_missing(arg.value) for arg in call.args):
        return None
    return [arg.value for arg in call.args]


def call_style(call: Call) -> Tuple[str, Optional[OperatorInfo]]:
    """Classify a call into the surface syntax it renders with"""
    if not all(isinstance(arg, Argument) for arg in call.args):
        return 'call', None
    name = call.head_name
    if name is None or is_missing(call.head):
        return 'call', None
    values = _unnamed_values(call)
    count = len(call.args)

    if name in ('[', '[['):
        first = call.args[0] if call.args else None
        if first is not None and first.name is None and not is_missing(first.value):
            return 'index', None
        return 'call', None

    if values is None:
        return 'call', None

    if name == '{':
        return 'block', None
    if name == 'function':
        if count == 2 and isinstance(values[0], FormalList) and not isinstance(values[1], FormalList):
            return 'function', None
        return 'call', None
    if any(isinstance(value, FormalList) for value in values):
        return 'call', None
    if name == 'if' and count in (2, 3):
        return 'if', None
    if name == 'for' and count == 3 and isinstance(values[0], Symbol):
        return 'for', None
    if name == 'while' and count == 2:
        return 'while', None
    if name == 'repeat' and count == 1:
        return 'repeat', None
    if name in ('break', 'next') and count == 0:
        return name, None

    if count == 2:
        info = binary_operator(name)
        if info is not None and _fits_operator(info, values):
            return 'infix', info
    if count == 1 and name in PREFIX_OPERATORS:
        return 'prefix', None
    return 'call', None


def _fits_operator(info: OperatorInfo, values: List[Node]) -> bool:
    if info.name not in ACCESS_OPERATORS:
        return True
    lhs, rhs = values
    if not _is_name_operand(rhs):
        return False
    if info.precedence == PREC_NAMESPACE:
        return _is_name_operand(lhs)
    return True


def _is_name_operand(node: Node) -> bool:
    if isinstance(node, Symbol):
        return not is_missing(node)
    return isinstance(node, Constant) and node.kind is ConstantKind.CHARACTER


def form_of(node: Node) -> Form:
    if isinstance(node, Constant):
        value = node.value
        if node.kind is ConstantKind.INTEGER and value < 0:
            return Form('prefix', PREC_UNARY)
        if node.kind is ConstantKind.DOUBLE and not math.isnan(value) and math.copysign(1.0, value) < 0:
            return Form('prefix', PREC_UNARY)
        return _ATOM
    if isinstance(node, Call):
        style, info = call_style(node)
        if style == 'infix':
            return Form('infix', info.precedence, info.assoc)
        if style == 'prefix':
            return Form('prefix', PREFIX_OPERATORS[node.head_name])
        if style in ('function', 'if', 'for', 'while', 'repeat'):
            return _KEYWORD
    return _ATOM


def _is_operator_form(form: Form) -> bool:
    return form.kind in ('infix', 'prefix')


# ============================================================================
# DEPARSER
# ============================================================================

class Deparser:
    """Converts expression trees to source text

    tail_open tells a node whether nothing follows it in the enclosing
    construct; keyword forms (function, if, loops) extend as far right as
    they can and get parenthesized when text follows them.
    """

    def __init__(self, indent: str = INDENT):
        self.indent = indent

    def deparse(self, node: Node) -> str:
        return self._render(node, (), True, 0)

    def deparse_lines(self, node: Node) -> List[str]:
        return self.deparse(node).split('\n')

    # ------------------------------------------------------------------

    def _render(self, node, path: Tuple[int, ...], tail_open: bool, level: int) -> str:
        if isinstance(node, Constant):
            return render_constant(node)
        if isinstance(node, Symbol):
            return render_symbol(node)
        if isinstance(node, Call):
            self._check_call(node, path)
            return self._render_call(node, path, tail_open, level)
        if isinstance(node, FormalList):
            return self._render_formals(node, path, level)
        raise StructuralError(f"expected a node, got {type(node).__name__}", path)

    def _check_call(self, call: Call, path: Tuple[int, ...]) -> None:
        if not isinstance(call.head, (Symbol, Call)) or is_missing(call.head):
            raise StructuralError("call without a valid head", path + (0,))
        for index, arg in enumerate(call.args, 1):
            if not isinstance(arg, Argument) or not isinstance(arg.value, Node):
                raise StructuralError(f"corrupt argument {arg!r}", path + (index,))

    def _operand(self, node: Node, path, parenthesize: bool, tail_open: bool, level: int) -> str:
        if parenthesize:
            return '(' + self._render(node, path, True, level) + ')'
        return self._render(node, path, tail_open, level)

    def _render_call(self, call: Call, path, tail_open: bool, level: int) -> str:
        style, info = call_style(call)

        if style == 'infix':
            return self._render_infix(call, info, path, tail_open, level)
        if style == 'prefix':
            return self._render_prefix(call, path, tail_open, level)
        if style == 'index':
            return self._render_index(call, path, level)
        if style == 'block':
            return self._render_block(call, path, level)
        if style in ('break', 'next'):
            return style
        if style == 'call':
            return self._render_head(call.head, path + (0,), level) + '(' + self._render_args(call.args, path, level) + ')'

        # Keyword forms swallow trailing text, so close them off when something follows
        text = self._render_keyword_form(style, call, path, level)
        return text if tail_open else '(' + text + ')'

    def _render_infix(self, call: Call, info: OperatorInfo, path, tail_open: bool, level: int) -> str:
        lhs, rhs = call.args[0].value, call.args[1].value
        precedence = info.precedence

        left_form = form_of(lhs)
        parenthesize_left = _is_operator_form(left_form) and (
            left_form.precedence < precedence or
            (left_form.precedence == precedence and info.assoc is not Assoc.LEFT)
        )
        left = self._operand(lhs, path + (1,), parenthesize_left, False, level)

        if info.name in ACCESS_OPERATORS:
            right = self._render(rhs, path + (2,), True, level)
        else:
            right_form = form_of(rhs)
            parenthesize_right = _is_operator_form(right_form) and (
                right_form.precedence < precedence or
                (right_form.precedence == precedence and info.assoc is not Assoc.RIGHT)
            )
            right = self._operand(rhs, path + (2,), parenthesize_right, tail_open, level)

        operator = info.name
        if info.spaced:
            return f"{left} {operator} {right}"
        return f"{left}{operator}{right}"

    def _render_prefix(self, call: Call, path, tail_open: bool, level: int) -> str:
        operator = call.head_name
        operand = call.args[0].value
        precedence = PREFIX_OPERATORS[operator]
        form = form_of(operand)
        parenthesize = _is_operator_form(form) and (
            form.precedence < precedence or
            (form.precedence == precedence and form.kind == 'infix')
        )
        return operator + self._operand(operand, path + (1,), parenthesize, tail_open, level)

    def _render_head(self, head: Node, path, level: int) -> str:
        form = form_of(head)
        parenthesize = _is_operator_form(form) and form.precedence < PREC_DOLLAR
        return self._operand(head, path, parenthesize, False, level)

    def _render_index(self, call: Call, path, level: int) -> str:
        target = self._render_head(call.args[0].value, path + (1,), level)
        args = self._render_args(call.args[1:], path, level, offset=1)
        if call.head_name == '[[':
            return f"{target}[[{args}]]"
        return f"{target}[{args}]"

    def _render_block(self, call: Call, path, level: int) -> str:
        if not call.args:
            return "{\n" + self.indent * level + "}"
        inner = self.indent * (level + 1)
        lines = [
            inner + self._render(arg.value, path + (index,), True, level + 1)
            for index, arg in enumerate(call.args, 1)
        ]
        return "{\n" + "\n".join(lines) + "\n" + self.indent * level + "}"

    def _render_keyword_form(self, style: str, call: Call, path, level: int) -> str:
        values = [arg.value for arg in call.args]

        if style == 'function':
            formals = self._render_formals(values[0], path + (1,), level)
            body = self._render(values[1], path + (2,), True, level)
            return f"function({formals}) {body}"

        if style == 'if':
            condition = self._render(values[0], path + (1,), True, level)
            has_else = len(values) == 3
            consequent = self._render(values[1], path + (2,), not has_else, level)
            text = f"if ({condition}) {consequent}"
            if has_else:
                alternative = self._render(values[2], path + (3,), True, level)
                text += f" else {alternative}"
            return text

        if style == 'for':
            variable = render_symbol(values[0])
            sequence = self._render(values[1], path + (2,), True, level)
            body = self._render(values[2], path + (3,), True, level)
            return f"for ({variable} in {sequence}) {body}"

        if style == 'while':
            condition = self._render(values[0], path + (1,), True, level)
            body = self._render(values[1], path + (2,), True, level)
            return f"while ({condition}) {body}"

        body = self._render(values[0], path + (1,), True, level)
        return f"repeat {body}"

    def _render_value(self, node: Node, path, level: int) -> str:
        """Argument or default value; an `=` call would read as a name binding"""
        form = form_of(node)
        parenthesize = form.kind == 'infix' and form.precedence == PREC_ASSIGN_EQ
        return self._operand(node, path, parenthesize, True, level)

    def _render_args(self, args, path, level: int, offset: int = 0) -> str:
        parts = []
        for index, arg in enumerate(args, offset + 1):
            if not isinstance(arg, Argument) or not isinstance(arg.value, Node):
                raise StructuralError(f"corrupt argument {arg!r}", path + (index,))
            value = "" if is_missing(arg.value) else self._render_value(arg.value, path + (index,), level)
            if arg.name is not None:
                parts.append(f"{render_name(arg.name)} = {value}")
            else:
                parts.append(value)
        return ", ".join(parts)

    def _render_formals(self, formals, path, level: int) -> str:
        if not isinstance(formals, FormalList):
            raise StructuralError(f"expected a formal list, got {type(formals).__name__}", path)
        parts = []
        for index, formal in enumerate(formals.formals):
            name = render_name(formal.name)
            if formal.empty_default:
                parts.append(f"{name} = ")
            elif formal.has_default:
                parts.append(f"{name} = {self._render_value(formal.default, path + (index,), level)}")
            else:
                parts.append(name)
        return ", ".join(parts)


_DEFAULT_DEPARSER = Deparser()


def deparse(node: Node) -> str:
    """Render a tree as canonical source text"""
    return _DEFAULT_DEPARSER.deparse(node)


def deparse_lines(node: Node) -> List[str]:
    """Render a tree as a list of source lines"""
    return _DEFAULT_DEPARSER.deparse_lines(node)
