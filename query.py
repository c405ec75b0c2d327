"""
Tree query and navigation API
Indexed and sliced access, name lookup, argument standardization, equality
"""

import logging
from typing import Any, Dict, List, Optional, Union

from deparsing import deparse
from error_handling import ChildIndexError, ConstructionError, StandardizationError, StructuralError
from nodes import Argument, Call, FormalList, Node, Symbol, is_missing

logger = logging.getLogger(__name__)

DOTS = '...'


def _require_node(node: Any) -> Node:
    if not isinstance(node, Node):
        raise StructuralError(f"expected a node, got {type(node).__name__}")
    return node


def _require_call(call: Any) -> Call:
    if not isinstance(call, Call):
        raise StructuralError(f"expected a call, got {type(call).__name__}")
    return call


def child(node: Node, index: int) -> Node:
    """Return the index-th child (0 is the head of a call)"""
    return _require_node(node).child(index)


def child_slice(node: Node, start: int, stop: Optional[int] = None) -> Node:
    """Contiguous children [start, stop) as a new node of the same variant

    For a call the first selected child becomes the head and the names of
    the remaining arguments are kept.
    """
    _require_node(node)
    length = len(node)
    if stop is None:
        stop = length
    for index in (start, stop):
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index <= length:
            raise ChildIndexError(index, length)

    if isinstance(node, FormalList):
        return FormalList(node.formals[start:stop])

    if not isinstance(node, Call):
        raise ConstructionError(f"cannot slice a {type(node).__name__}")
    if start >= stop:
        raise ConstructionError("a call slice needs at least one child for the head")

    children = node.children
    names = (None,) + node.names
    head = children[start]
    if not isinstance(head, (Symbol, Call)) or is_missing(head):
        raise ConstructionError(f"child {start} cannot be a call head")
    args = tuple(Argument(children[i], names[i]) for i in range(start + 1, stop))
    return Call(head, args)


def by_name(call: Call, name: str) -> Optional[Node]:
    """First argument value carrying name, or None"""
    for arg in _require_call(call).args:
        if arg.name == name:
            return arg.value
    return None


def arg_names(call: Call) -> List[Optional[str]]:
    return list(_require_call(call).names)


def function_formals(node: Node) -> FormalList:
    """The formal list of a `function(...) body` call"""
    call = _require_call(node)
    if call.head_name == 'function' and call.args and isinstance(call.args[0].value, FormalList):
        return call.args[0].value
    raise StructuralError("not a function definition")


def identical(a: Any, b: Any) -> bool:
    """Structural equality of two trees"""
    return isinstance(a, Node) and isinstance(b, Node) and a == b


def same_node(a: Any, b: Any) -> bool:
    """Identity of two node references"""
    return a is b


# ============================================================================
# ARGUMENT STANDARDIZATION
# ============================================================================

def standardise_call(call: Call, formals: Union[FormalList, Call]) -> Call:
    """Rewrite a call so every argument carries its matching formal's name

    Matching runs in three passes: exact names, then unique prefixes of the
    formals declared before `...`, then positions in declaration order. Any
    arguments left over go to `...` when it is declared. The result lists
    arguments in formal order; `...` arguments keep their own names.

    Against formals (a, b, c), f(c = 3, 1, 2) becomes f(a = 1, b = 2, c = 3).
    """
    call = _require_call(call)
    if isinstance(formals, Call):
        formals = function_formals(formals)
    if not isinstance(formals, FormalList):
        raise StructuralError(f"expected a formal list, got {type(formals).__name__}")

    names = list(formals.names)
    has_dots = DOTS in names
    before_dots = names[:names.index(DOTS)] if has_dots else names

    matched: Dict[str, Argument] = {}
    pending = list(enumerate(call.args))

    # Exact names
    remaining = []
    for position, arg in pending:
        if arg.name is not None and arg.name != DOTS and arg.name in names:
            if arg.name in matched:
                raise StandardizationError(
                    f"formal argument \"{arg.name}\" matched by multiple actual arguments",
                    argument=arg.name
                )
            matched[arg.name] = arg
        else:
            remaining.append((position, arg))
    pending = remaining
    exact = set(matched)

    # Unique prefixes
    remaining = []
    for position, arg in pending:
        if arg.name is None:
            remaining.append((position, arg))
            continue
        candidates = [name for name in before_dots if name.startswith(arg.name) and name not in exact]
        if len(candidates) > 1:
            raise StandardizationError(
                f"argument {position + 1} matches multiple formal arguments: {', '.join(candidates)}",
                argument=arg.name, candidates=candidates
            )
        if candidates:
            if candidates[0] in matched:
                raise StandardizationError(
                    f"formal argument \"{candidates[0]}\" matched by multiple actual arguments",
                    argument=arg.name
                )
            matched[candidates[0]] = arg
        else:
            remaining.append((position, arg))
    pending = remaining

    # Positions
    free = iter([name for name in before_dots if name not in matched])
    dots: List[Argument] = []
    for position, arg in pending:
        if arg.name is None:
            name = next(free, None)
            if name is not None:
                matched[name] = arg
                continue
        if has_dots:
            dots.append(arg)
        else:
            raise StandardizationError(f"unused argument {_describe_argument(arg)}", argument=arg.name)

    args = []
    for name in names:
        if name == DOTS:
            args.extend(dots)
        elif name in matched and not is_missing(matched[name].value):
            args.append(Argument(matched[name].value, name))
    logger.debug("standardised %d arguments against formals %s", len(call.args), names)
    return call.with_args(args)


def _describe_argument(arg: Argument) -> str:
    value = deparse(arg.value)
    if arg.name is not None:
        return f"({arg.name} = {value})"
    return f"({value})"
