"""
Utilities module for expression trees
Walking, searching, rewriting and printing helpers shared by tools and evaluators
"""

from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from construction import as_node
from error_handling import MissingArgumentError, StructuralError
from nodes import Argument, Call, Constant, Formal, FormalList, Node, Symbol, is_missing


Path = Tuple[int, ...]


# ==================== TRAVERSAL ====================

def walk(node: Node) -> Iterator[Tuple[Path, Node]]:
  """
  Pre-order traversal yielding every node with its child-index path

  Args:
    node: Root of the tree

  Returns:
    Iterator of (path, node) pairs; the root has the empty path

  Examples:
    [p for p, _ in walk(parse_expr("f(a)"))] -> [(), (0,), (1,)]
  """
  stack = [((), node)]
  while stack:
    path, current = stack.pop()
    if not isinstance(current, Node):
      raise StructuralError(f"expected a node, got {type(current).__name__}", path)
    yield path, current
    children = current.children
    for index in range(len(children) - 1, -1, -1):
      stack.append((path + (index,), children[index]))


def find_nodes(node: Node, predicate: Callable[[Node], bool]) -> List[Node]:
  """Find all nodes satisfying predicate, in pre-order"""
  return [current for _, current in walk(node) if predicate(current)]


def find_calls(node: Node, name: Optional[str] = None) -> List[Call]:
  """
  Find calls, optionally only those whose head is the symbol name

  Args:
    node: Root of the tree
    name: Head symbol name to filter on

  Returns:
    Matching calls in pre-order
  """
  return find_nodes(
    node,
    lambda n: isinstance(n, Call) and (name is None or n.head_name == name)
  )


def find_symbols(node: Node, include_heads: bool = True) -> List[str]:
  """
  Distinct symbol names in order of first appearance

  Args:
    node: Root of the tree
    include_heads: Also report symbols used as call heads

  Returns:
    List of names; the missing argument is never reported
  """
  heads = set()
  if not include_heads:
    heads = {path + (0,) for path, n in walk(node) if isinstance(n, Call)}

  names = []
  seen = set()
  for path, current in walk(node):
    if not isinstance(current, Symbol) or is_missing(current) or path in heads:
      continue
    if current.name not in seen:
      seen.add(current.name)
      names.append(current.name)
  return names


# ==================== REWRITING ====================

def with_children(node: Node, children: Sequence[Node]) -> Node:
  """
  Rebuild a node around new children, keeping names and formal flags

  Args:
    node: Template node
    children: Replacement children, same count as node.children

  Returns:
    New node of the same variant
  """
  if len(children) != len(node.children):
    raise StructuralError(
      f"{type(node).__name__} has {len(node.children)} children, got {len(children)}"
    )
  if isinstance(node, Call):
    args = tuple(Argument(value, arg.name) for value, arg in zip(children[1:], node.args))
    return Call(children[0], args)
  if isinstance(node, FormalList):
    return FormalList(tuple(
      Formal(formal.name, default, formal.empty_default and is_missing(default))
      for formal, default in zip(node.formals, children)
    ))
  return node


def transform(node: Node, function: Callable[[Node], Node]) -> Node:
  """
  Bottom-up rewrite: children are transformed before their parent

  Args:
    node: Root of the tree
    function: Called on every rebuilt node, returns its replacement

  Returns:
    The rewritten tree; untouched subtrees are shared with the input
  """
  if not isinstance(node, Node):
    raise StructuralError(f"expected a node, got {type(node).__name__}")
  children = node.children
  if children:
    new_children = [transform(c, function) for c in children]
    if any(new is not old for new, old in zip(new_children, children)):
      node = with_children(node, new_children)
  return function(node)


def substitute(node: Node, bindings: Mapping[str, Any]) -> Node:
  """
  Replace symbols by name with the bound trees (or scalars as constants)

  Args:
    node: Root of the tree
    bindings: Symbol name -> replacement

  Returns:
    New tree; symbols without a binding are kept

  Examples:
    substitute(parse_expr("x + y"), {"y": 2}) -> parse_expr("x + 2")
  """
  replacements = {name: as_node(value) for name, value in bindings.items()}

  def replace(current: Node) -> Node:
    if isinstance(current, Symbol) and not is_missing(current):
      return replacements.get(current.name, current)
    return current

  return transform(node, replace)


# ==================== PRINTING & EXPORT ====================

def describe_node(node: Node) -> str:
  """One-line label used by pretty_print_tree"""
  if isinstance(node, Constant):
    return f"Constant({node.kind.value}: {node.value!r})"
  if is_missing(node):
    return "MissingArgument"
  if isinstance(node, Symbol):
    return f"Symbol({node.name!r})"
  if isinstance(node, Call):
    return "Call"
  if isinstance(node, FormalList):
    return "FormalList"
  raise StructuralError(f"expected a node, got {type(node).__name__}")


def pretty_print_tree(node: Node, indent: int = 0) -> str:
  """Pretty print a tree for debugging, one node per line"""
  result = "  " * indent + describe_node(node) + "\n"

  if isinstance(node, Call):
    result += pretty_print_tree(node.head, indent + 1)
    for arg in node.args:
      if arg.name is not None:
        result += "  " * (indent + 1) + f"{arg.name} =\n"
        result += pretty_print_tree(arg.value, indent + 2)
      else:
        result += pretty_print_tree(arg.value, indent + 1)
  elif isinstance(node, FormalList):
    for formal in node.formals:
      if formal.has_default or formal.empty_default:
        result += "  " * (indent + 1) + f"{formal.name} =\n"
        result += pretty_print_tree(formal.default, indent + 2)
      else:
        result += "  " * (indent + 1) + f"{formal.name}\n"

  return result


def tree_to_dict(node: Node) -> Dict[str, Any]:
  """Convert a tree to a dictionary representation"""
  if isinstance(node, Constant):
    return {"type": "Constant", "kind": node.kind.value, "value": node.value}
  if is_missing(node):
    return {"type": "MissingArgument"}
  if isinstance(node, Symbol):
    return {"type": "Symbol", "name": node.name}
  if isinstance(node, Call):
    return {
      "type": "Call",
      "head": tree_to_dict(node.head),
      "args": [{"name": arg.name, "value": tree_to_dict(arg.value)} for arg in node.args],
    }
  if isinstance(node, FormalList):
    return {
      "type": "FormalList",
      "formals": [
        {
          "name": formal.name,
          "default": tree_to_dict(formal.default) if formal.has_default else None,
          "empty_default": formal.empty_default,
        }
        for formal in node.formals
      ],
    }
  raise StructuralError(f"expected a node, got {type(node).__name__}")


# ==================== EVALUATOR CONTRACT ====================

def ensure_bindable(value: Any, name: Optional[str] = None) -> Any:
  """
  Guard used by evaluators before binding or reading a value

  Args:
    value: Value about to be bound
    name: Variable or parameter name for the error message

  Returns:
    value unchanged

  Raises:
    MissingArgumentError if value is the missing argument
  """
  if is_missing(value):
    raise MissingArgumentError(name)
  return value
