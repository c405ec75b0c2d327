"""
Expression tree node model
Four closed variants (Constant, Symbol, Call, FormalList) plus the missing argument
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NamedTuple, Optional, Tuple

from error_handling import ChildIndexError, ConstructionError
from lexing import is_syntactic_name


class ConstantKind(Enum):
    LOGICAL = "logical"
    INTEGER = "integer"
    DOUBLE = "double"
    CHARACTER = "character"
    NULL = "NULL"


# Atomic kinds that never appear as tree leaves
_EXCLUDED_ATOMIC = (complex, bytes, bytearray)


def _classify(value: Any) -> ConstantKind:
    if value is None:
        return ConstantKind.NULL
    if isinstance(value, bool):
        return ConstantKind.LOGICAL
    if isinstance(value, int):
        return ConstantKind.INTEGER
    if isinstance(value, float):
        return ConstantKind.DOUBLE
    if isinstance(value, str):
        return ConstantKind.CHARACTER
    if isinstance(value, _EXCLUDED_ATOMIC):
        raise ConstructionError(f"{type(value).__name__} values cannot be embedded in an expression tree")
    raise ConstructionError(f"cannot use object of type {type(value).__name__} as a constant")


class Node:
    """Base class of the four node variants

    Every node exposes its children as a tuple; leaves have none. Nodes are
    immutable: replace_child returns a new tree.
    """
    __slots__ = ()

    @property
    def children(self) -> Tuple['Node', ...]:
        return ()

    def __len__(self) -> int:
        return len(self.children)

    def __bool__(self) -> bool:
        return True

    def child(self, index: int) -> 'Node':
        children = self.children
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(children):
            raise ChildIndexError(index, len(children))
        return children[index]

    def replace_child(self, index: int, new_child: 'Node') -> 'Node':
        raise ChildIndexError(index, 0)


@dataclass(frozen=True, eq=False)
class Constant(Node):
    """Scalar leaf: logical, integer, double, character or NULL"""
    value: Any
    kind: ConstantKind = field(init=False)

    def __post_init__(self):
        value = self.value
        if isinstance(value, Node):
            raise ConstructionError("a constant cannot wrap a tree node")
        if isinstance(value, (list, tuple)):
            if len(value) != 1:
                raise ConstructionError(
                    f"constants must be scalars, got an aggregate of length {len(value)}"
                )
            value = value[0]
            if isinstance(value, (list, tuple, Node)):
                raise ConstructionError("constants must be scalars, got a nested aggregate")
            object.__setattr__(self, 'value', value)
        object.__setattr__(self, 'kind', _classify(value))

    def _is_nan(self) -> bool:
        return self.kind is ConstantKind.DOUBLE and math.isnan(self.value)

    def __eq__(self, other):
        if not isinstance(other, Constant):
            return NotImplemented
        if self.kind is not other.kind:
            return False
        if self._is_nan() and other._is_nan():
            return True
        return self.value == other.value

    def __hash__(self):
        return hash((self.kind, 'NaN' if self._is_nan() else self.value))


@dataclass(frozen=True)
class Symbol(Node):
    """Name referring to a binding"""
    name: str
    needs_quoting: bool = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        if not isinstance(self.name, str):
            raise ConstructionError(f"symbol names must be strings, got {type(self.name).__name__}")
        object.__setattr__(self, 'needs_quoting', not is_syntactic_name(self.name))


MISSING_ARG = None


class MissingArgument(Symbol):
    """The empty symbol marking a deliberately unfilled argument or default

    Only one instance exists, created when this module is imported. It is
    distinct from Symbol("") and compares equal only to itself.
    """

    def __init__(self):
        if MISSING_ARG is not None:
            raise ConstructionError("the missing argument is a singleton; use missing_arg()")
        super().__init__("")

    def __eq__(self, other):
        return other is self

    def __hash__(self):
        return id(self)

    def __repr__(self) -> str:
        return "MISSING_ARG"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (missing_arg, ())


MISSING_ARG = MissingArgument()


def missing_arg() -> MissingArgument:
    """Accessor for the process-wide missing argument"""
    return MISSING_ARG


def is_missing(node: Any) -> bool:
    return node is MISSING_ARG


class Argument(NamedTuple):
    """Call argument slot: a value node and an optional name"""
    value: Node
    name: Optional[str] = None


@dataclass(frozen=True)
class Call(Node):
    """Application: head (Symbol or Call) plus ordered, optionally named arguments"""
    head: Node
    args: Tuple[Argument, ...] = ()

    def __post_init__(self):
        if not isinstance(self.head, (Symbol, Call)) or is_missing(self.head):
            raise ConstructionError(
                f"call head must be a symbol or a call, got {_describe(self.head)}"
            )
        args = tuple(self.args)
        for position, arg in enumerate(args, 1):
            if not isinstance(arg, Argument):
                raise ConstructionError(f"argument {position} must be an Argument, got {_describe(arg)}")
            if not isinstance(arg.value, Node):
                raise ConstructionError(f"argument {position} value must be a node, got {_describe(arg.value)}")
            if arg.name is not None and (not isinstance(arg.name, str) or not arg.name):
                raise ConstructionError(f"argument {position} name must be a non-empty string or None")
        object.__setattr__(self, 'args', args)

    @property
    def children(self) -> Tuple[Node, ...]:
        return (self.head,) + tuple(arg.value for arg in self.args)

    @property
    def names(self) -> Tuple[Optional[str], ...]:
        return tuple(arg.name for arg in self.args)

    @property
    def head_name(self) -> Optional[str]:
        """Name of the head when it is a symbol"""
        return self.head.name if isinstance(self.head, Symbol) else None

    def replace_child(self, index: int, new_child: Node) -> 'Call':
        self.child(index)
        if index == 0:
            return Call(new_child, self.args)
        args = list(self.args)
        args[index - 1] = Argument(new_child, args[index - 1].name)
        return Call(self.head, tuple(args))

    def with_args(self, args) -> 'Call':
        return Call(self.head, tuple(args))


class Formal(NamedTuple):
    """Declared parameter: name, default (missing when absent), explicit empty flag"""
    name: str
    default: Node = MISSING_ARG
    empty_default: bool = False

    @property
    def has_default(self) -> bool:
        return not is_missing(self.default)


@dataclass(frozen=True)
class FormalList(Node):
    """Ordered parameter declarations of a callable"""
    formals: Tuple[Formal, ...] = ()

    def __post_init__(self):
        formals = tuple(self.formals)
        seen = set()
        for position, formal in enumerate(formals, 1):
            if not isinstance(formal, Formal):
                raise ConstructionError(f"formal {position} must be a Formal, got {_describe(formal)}")
            if not isinstance(formal.name, str) or not formal.name:
                raise ConstructionError(f"formal {position} needs a non-empty name")
            if formal.name in seen:
                raise ConstructionError(f"repeated formal argument '{formal.name}'")
            seen.add(formal.name)
            if not isinstance(formal.default, Node):
                raise ConstructionError(f"default of '{formal.name}' must be a node, got {_describe(formal.default)}")
            if formal.empty_default and not is_missing(formal.default):
                raise ConstructionError(f"'{formal.name}' cannot have both a default and an empty default")
        object.__setattr__(self, 'formals', formals)

    @property
    def children(self) -> Tuple[Node, ...]:
        return tuple(formal.default for formal in self.formals)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(formal.name for formal in self.formals)

    def get(self, name: str) -> Optional[Formal]:
        for formal in self.formals:
            if formal.name == name:
                return formal
        return None

    def replace_child(self, index: int, new_child: Node) -> 'FormalList':
        self.child(index)
        formals = list(self.formals)
        old = formals[index]
        formals[index] = Formal(old.name, new_child, old.empty_default and is_missing(new_child))
        return FormalList(tuple(formals))


def _describe(value: Any) -> str:
    if isinstance(value, Node):
        return type(value).__name__
    return f"{type(value).__name__} {value!r}"
