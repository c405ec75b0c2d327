"""
Tree construction API
Builders for calls, formal lists and functions; purely structural, never evaluates
"""

from collections.abc import Mapping
from typing import Any, Iterable, List, Optional, Sequence, Union

from error_handling import ConstructionError
from nodes import Argument, Call, Constant, Formal, FormalList, MISSING_ARG, Node, Symbol, is_missing


class _Remove:
    """Marker value for modify_call: drop every argument with that name"""

    def __repr__(self) -> str:
        return "REMOVE"


REMOVE = _Remove()


class Splice:
    """Collection expanded in place when passed to a builder"""

    def __init__(self, items: Any):
        if isinstance(items, Call):
            self.arguments = list(items.args)
        elif isinstance(items, Mapping):
            self.arguments = [Argument(as_node(value), _check_name(name)) for name, value in items.items()]
        elif isinstance(items, (str, bytes)) or not isinstance(items, Iterable):
            raise ConstructionError(f"cannot splice {type(items).__name__}; expected a sequence, mapping or call")
        else:
            self.arguments = []
            for item in items:
                self.arguments.extend(_arguments(item))

    def __repr__(self) -> str:
        return f"Splice({self.arguments!r})"


def splice(collection: Any) -> Splice:
    """Mark a sequence of nodes/arguments/pairs, a name->value mapping or a
    call's argument list for in-place expansion, preserving order and names"""
    return Splice(collection)


def sym(name: str) -> Symbol:
    return Symbol(name)


def const(value: Any) -> Constant:
    return Constant(value)


def as_node(value: Any) -> Node:
    """Nodes pass through; Python scalars become constants"""
    if isinstance(value, Node):
        return value
    if isinstance(value, (Splice, _Remove)):
        raise ConstructionError(f"{value!r} is not a value")
    return Constant(value)


def _check_name(name: Any) -> Optional[str]:
    if name is None:
        return None
    if not isinstance(name, str) or not name:
        raise ConstructionError(f"argument names must be non-empty strings, got {name!r}")
    return name


def _is_pair(item: Any) -> bool:
    return (
        isinstance(item, (tuple, list)) and len(item) == 2 and
        (item[0] is None or isinstance(item[0], str)) and not isinstance(item, Argument)
    )


def _arguments(item: Any) -> List[Argument]:
    if isinstance(item, Splice):
        return list(item.arguments)
    if isinstance(item, Argument):
        return [Argument(as_node(item.value), _check_name(item.name))]
    if _is_pair(item):
        name, value = item
        return [Argument(as_node(value), _check_name(name))]
    return [Argument(as_node(item))]


def _as_head(head: Any) -> Node:
    if isinstance(head, str):
        return Symbol(head)
    if isinstance(head, Call) or (isinstance(head, Symbol) and not is_missing(head)):
        return head
    raise ConstructionError(f"call head must be a name, symbol or call, got {head!r}")


def make_call(head: Union[str, Node], *args: Any, **named: Any) -> Call:
    """Build a call from a head and its arguments

    Positional arguments may be nodes, Argument instances, (name, value)
    pairs (name None for an unnamed slot), Python scalars or splice()
    collections; keyword arguments are appended as named arguments.

    make_call("<-", (None, sym("y")), make_call("*", sym("x"), 10))
    """
    arguments = []
    for item in args:
        arguments.extend(_arguments(item))
    for name, value in named.items():
        arguments.append(Argument(as_node(value), name))
    return Call(_as_head(head), tuple(arguments))


def as_call(items: Sequence[Any]) -> Call:
    """Build a call from a sequence whose first element is the head"""
    items = list(items)
    if not items:
        raise ConstructionError("a call needs at least a head")
    return make_call(items[0], *items[1:])


def _formal(item: Any) -> Formal:
    if isinstance(item, Formal):
        return item
    if isinstance(item, str):
        return Formal(item)
    if isinstance(item, (tuple, list)) and len(item) == 2:
        name, default = item
        return Formal(name, MISSING_ARG if default is None else as_node(default))
    raise ConstructionError(f"cannot build a formal from {item!r}")


def make_formal_list(*pairs: Any, **defaults: Any) -> FormalList:
    """Build a formal list from names, (name, default) pairs, Formals or mappings

    A default of None means the parameter has no default; pass a Formal
    with empty_default=True for an explicitly empty one.
    """
    formals = []
    for item in pairs:
        if isinstance(item, FormalList):
            formals.extend(item.formals)
        elif isinstance(item, Mapping):
            formals.extend(_formal(pair) for pair in item.items())
        else:
            formals.append(_formal(item))
    formals.extend(_formal(pair) for pair in defaults.items())
    return FormalList(tuple(formals))


def make_function(formals: Any, body: Any) -> Call:
    """Build `function(formals) body`"""
    if not isinstance(formals, FormalList):
        if isinstance(formals, Mapping):
            formals = make_formal_list(formals)
        else:
            formals = make_formal_list(*formals)
    return Call(Symbol('function'), (Argument(formals), Argument(as_node(body))))


def modify_call(call: Call, *args: Any, **named: Any) -> Call:
    """Return a copy of call with named arguments replaced, added or removed

    Each keyword replaces the first argument carrying that name, or is
    appended when there is none; REMOVE deletes every argument of that name.
    Positional arguments are appended in order.
    """
    if not isinstance(call, Call):
        raise ConstructionError(f"modify_call needs a call, got {type(call).__name__}")
    arguments = list(call.args)
    for name, value in named.items():
        if value is REMOVE:
            arguments = [arg for arg in arguments if arg.name != name]
            continue
        replacement = Argument(as_node(value), name)
        for index, arg in enumerate(arguments):
            if arg.name == name:
                arguments[index] = replacement
                break
        else:
            arguments.append(replacement)
    for item in args:
        arguments.extend(_arguments(item))
    return call.with_args(arguments)
