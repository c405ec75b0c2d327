"""
Error taxonomy and diagnostics for the expression engine
Exceptions carry enough context to rebuild a diagnostic without re-parsing
"""

from typing import List, Optional, Dict, Tuple, Any
from pyparsing import lineno, col


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_parse_error(
    message: str,
    location: int,
    line: int,
    column: int,
    expected: Optional[List[str]] = None,
    got: Optional[str] = None,
    context: Optional[str] = None,
    filename: str = "<input>"
) -> Dict:
    """Create an immutable parse error structure"""
    return {
        'message': message,
        'location': location,
        'line': line,
        'column': column,
        'expected': expected or [],
        'got': got,
        'context': context,
        'filename': filename,
    }


def format_parse_error(error: Dict, kind: str = "Parse") -> str:
    """Format a parse/lex error dict as a multi-line diagnostic"""
    error_msg = (
        f"{kind} error at {error['filename']}:{error['line']}:{error['column']}: "
        f"{error['message']}"
    )

    if error['expected']:
        error_msg += f"\n  Expected: {', '.join(error['expected'])}"

    if error['got']:
        error_msg += f"\n  Got: {error['got']}"

    if error['context']:
        error_msg += f"\n{error['context']}"

    return error_msg


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def offset_to_position(source_text: str, offset: int) -> Tuple[int, int]:
    """Return the 1-based (line, column) of a character offset"""
    if not source_text:
        return 1, 1
    offset = max(0, min(offset, len(source_text)))
    return lineno(offset, source_text), col(offset, source_text)


def get_context_lines(source_text: str, line_num: int, col_num: int, context_lines: int = 1) -> str:
    """Get context lines around the error with a caret under the offending column"""
    lines = source_text.split('\n')
    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    context_parts = []
    for i in range(start_line, end_line):
        line_prefix = f"{i+1:4d}: "
        context_parts.append(f"{line_prefix}{lines[i]}")
        if i == line_num - 1:
            context_parts.append(f"{'':6}{' ' * (col_num - 1)}^")

    return '\n'.join(context_parts)


def describe_token(token: Any) -> str:
    """Human readable description of a token for 'expected X, got Y' messages"""
    if token is None:
        return "nothing"
    kind = getattr(token, 'kind', None)
    kind_name = getattr(kind, 'value', str(kind))
    if kind_name == "end of input":
        return "end of input"
    if kind_name == "newline":
        return "end of line"
    return f"{kind_name} '{token.text}'"


def format_node_path(path: Tuple[int, ...]) -> str:
    """Render a child-index path like [2][1] (empty path is the root)"""
    if not path:
        return "<root>"
    return "".join(f"[{index}]" for index in path)


# ============================================================================
# EXCEPTION CLASSES
# ============================================================================

class ExprTreeError(Exception):
    """Base class for every error raised by the expression engine"""
    pass


class LexError(ExprTreeError):
    """Malformed token: unterminated literal or an unrecognized character"""
    def __init__(self, message: str, offset: int, char: str, span=None,
                 source_text: str = ""):
        self.message = message
        self.offset = offset
        self.char = char
        self.span = span
        self.context = ""
        if source_text:
            line_num, col_num = offset_to_position(source_text, offset)
            self.context = get_context_lines(source_text, line_num, col_num)
        super().__init__(message)

    def __str__(self) -> str:
        filename = getattr(self.span, 'filename', "<input>")
        line_num = getattr(self.span, 'line', 0)
        col_num = getattr(self.span, 'column', 0)
        error_dict = make_parse_error(
            self.message, self.offset, line_num, col_num,
            got=repr(self.char), context=self.context, filename=filename
        )
        return format_parse_error(error_dict, kind="Lex")


class ParseError(ExprTreeError):
    """Malformed grammar, with the offending token's position"""
    def __init__(self, message: str, span=None, expected: Optional[List[str]] = None,
                 found: Optional[str] = None, context: Optional[str] = None):
        self.message = message
        self.span = span
        self.expected = expected or []
        self.found = found
        self.context = context
        super().__init__(message)

    @property
    def offset(self) -> int:
        return getattr(self.span, 'start', 0)

    def to_dict(self) -> Dict:
        return make_parse_error(
            self.message,
            self.offset,
            getattr(self.span, 'line', 0),
            getattr(self.span, 'column', 0),
            self.expected,
            self.found,
            self.context,
            getattr(self.span, 'filename', "<input>"),
        )

    def __str__(self) -> str:
        return format_parse_error(self.to_dict())


class StructuralError(ExprTreeError):
    """A malformed tree was handed to the deparser or a construction function"""
    def __init__(self, message: str, path: Tuple[int, ...] = ()):
        self.message = message
        self.path = tuple(path)
        super().__init__(message)

    def __str__(self) -> str:
        if self.path:
            return f"{self.message} (at node {format_node_path(self.path)})"
        return self.message


class ConstructionError(StructuralError):
    """Invalid input to a node constructor or builder"""
    pass


class ChildIndexError(ExprTreeError, IndexError):
    """Out-of-bounds child access"""
    def __init__(self, index: int, length: int):
        self.index = index
        self.length = length
        super().__init__(f"child index {index} out of range for node with {length} children")


class StandardizationError(ExprTreeError):
    """Argument names cannot be matched unambiguously against the formals"""
    def __init__(self, message: str, argument: Optional[str] = None,
                 candidates: Optional[List[str]] = None):
        self.message = message
        self.argument = argument
        self.candidates = candidates or []
        super().__init__(message)


class MissingArgumentError(ExprTreeError):
    """The missing-argument value was used as an ordinary value (raised by evaluators)"""
    def __init__(self, name: Optional[str] = None):
        self.name = name
        if name:
            message = f"argument \"{name}\" is missing, with no default"
        else:
            message = "the missing argument cannot be used as a value"
        super().__init__(message)
