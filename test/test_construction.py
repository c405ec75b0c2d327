"""
Tree construction tests
Builders, splicing, formal lists, functions and call modification
"""

import pytest
from construction import (
  REMOVE, as_call, as_node, const, make_call, make_formal_list, make_function,
  modify_call, splice, sym,
)
from parsing import parse_expr
from nodes import Argument, Call, Constant, Formal, FormalList, MISSING_ARG, Symbol
from error_handling import ConstructionError


class TestMakeCall:
  """Building calls from heads and arguments"""

  def test_string_head_becomes_symbol(self):
    assert make_call("f") == Call(Symbol("f"))

  def test_node_head(self):
    inner = make_call("f")
    assert make_call(inner, 1).head is inner

  def test_scalars_become_constants(self):
    assert make_call("c", 1, "a", True, None) == parse_expr('c(1, "a", TRUE, NULL)')

  def test_pairs_and_arguments(self):
    tree = make_call("f", (None, sym("a")), ("n", 1), Argument(sym("b"), "m"))
    assert tree == parse_expr("f(a, n = 1, m = b)")

  def test_keyword_arguments_are_appended(self):
    assert make_call("f", 1, x=2) == parse_expr("f(1, x = 2)")

  def test_missing_placeholder(self):
    assert make_call("[", sym("x"), 1, MISSING_ARG) == parse_expr("x[1, ]")

  def test_matches_parsed_infix(self):
    expected = parse_expr("y <- x * 10")
    assert make_call("<-", sym("y"), make_call("*", sym("x"), 10)) == expected

  def test_length_one_list_is_a_scalar(self):
    assert make_call("f", [10]) == make_call("f", 10)

  def test_aggregates_rejected(self):
    with pytest.raises(ConstructionError):
      make_call("f", [1, 2, 3])

  @pytest.mark.parametrize("head", [1, Constant("f"), MISSING_ARG, None])
  def test_invalid_head(self, head):
    with pytest.raises(ConstructionError):
      make_call(head)

  def test_invalid_argument_name(self):
    with pytest.raises(ConstructionError):
      make_call("f", ("", 1))

  def test_never_validates_semantics(self):
    assert make_call("no such function", 1).head == Symbol("no such function")


class TestSplice:
  """In-place expansion of argument collections"""

  def test_splice_sequence(self):
    args = [sym("a"), ("n", 2), 3]
    assert make_call("f", 0, splice(args), 4) == parse_expr("f(0, a, n = 2, 3, 4)")

  def test_splice_mapping(self):
    assert make_call("f", splice({"x": 1, "y": sym("z")})) == parse_expr("f(x = 1, y = z)")

  def test_splice_call_arguments(self):
    source = parse_expr("g(1, k = 2)")
    assert make_call("f", splice(source)) == parse_expr("f(1, k = 2)")

  def test_empty_splice(self):
    assert make_call("f", splice([])) == make_call("f")

  def test_cannot_splice_scalars(self):
    with pytest.raises(ConstructionError):
      splice(5)
    with pytest.raises(ConstructionError):
      splice("abc")


class TestAsCall:
  """Calls from a head-first sequence"""

  def test_head_then_arguments(self):
    assert as_call(["f", 1, ("x", 2)]) == parse_expr("f(1, x = 2)")

  def test_head_only(self):
    assert as_call([sym("f")]) == Call(Symbol("f"))

  def test_empty_sequence_rejected(self):
    with pytest.raises(ConstructionError, match="head"):
      as_call([])


class TestFormalLists:
  """Declared parameters"""

  def test_names_pairs_and_keywords(self):
    formals = make_formal_list("x", ("y", 2), z=sym("x"))
    assert formals == FormalList((
      Formal("x"), Formal("y", Constant(2)), Formal("z", Symbol("x")),
    ))

  def test_none_means_no_default(self):
    assert make_formal_list(("x", None)) == make_formal_list("x")

  def test_mapping_and_formals(self):
    formals = make_formal_list({"a": 1}, Formal("b", MISSING_ARG, empty_default=True))
    assert formals.names == ("a", "b")
    assert formals.get("b").empty_default

  def test_duplicate_names_rejected(self):
    with pytest.raises(ConstructionError):
      make_formal_list("x", ("x", 1))

  def test_empty_name_rejected(self):
    with pytest.raises(ConstructionError):
      make_formal_list("")

  def test_matches_parsed_function(self):
    parsed = parse_expr("function(x, y = 2) x")
    assert make_function(make_formal_list("x", ("y", 2)), sym("x")) == parsed
    assert make_function(["x", ("y", 2)], sym("x")) == parsed


class TestModifyCall:
  """Copy-and-edit of existing calls"""

  @pytest.fixture
  def original(self):
    return parse_expr("f(1, x = 2, y = 3, x = 4)")

  def test_replace_first_named(self, original):
    assert modify_call(original, x=sym("z")) == parse_expr("f(1, x = z, y = 3, x = 4)")

  def test_append_absent_name(self, original):
    assert modify_call(original, w=5) == parse_expr("f(1, x = 2, y = 3, x = 4, w = 5)")

  def test_remove_every_match(self, original):
    assert modify_call(original, x=REMOVE) == parse_expr("f(1, y = 3)")

  def test_positional_appended(self, original):
    assert modify_call(original, 9) == parse_expr("f(1, x = 2, y = 3, x = 4, 9)")

  def test_original_untouched(self, original):
    modify_call(original, x=REMOVE)
    assert original == parse_expr("f(1, x = 2, y = 3, x = 4)")

  def test_needs_a_call(self):
    with pytest.raises(ConstructionError):
      modify_call(sym("f"), x=1)


class TestShorthands:
  """sym, const and as_node"""

  def test_sym_and_const(self):
    assert sym("x") == Symbol("x")
    assert const(1.5) == Constant(1.5)

  def test_as_node(self):
    node = sym("x")
    assert as_node(node) is node
    assert as_node(3) == Constant(3)
    with pytest.raises(ConstructionError):
      as_node(REMOVE)
