"""
Deparser tests
Canonical rendering, minimal parentheses and round-trips through the parser
"""

import pytest
from deparsing import deparse, deparse_lines, Deparser
from parsing import parse, parse_expr
from construction import make_call, make_formal_list, make_function, sym
from nodes import Argument, Call, Constant, Formal, MISSING_ARG, Symbol
from error_handling import StructuralError


def call(name, *args):
  return Call(Symbol(name), tuple(Argument(a) for a in args))


a, b, c = Symbol("a"), Symbol("b"), Symbol("c")


ROUND_TRIP_SOURCES = [
  "1 + 2 * 3",
  "(1 + 2) * 3",
  "a - (b - c)",
  "a^b^c",
  "(a^b)^c",
  "-a^2",
  "(-a)^2",
  "2^-1",
  "-(a + b)",
  "--a",
  "!a == b",
  "!(a == b)",
  "a && !b || c",
  "(a < b) < c",
  "a <- b <- c",
  "(a <- b) <- c",
  "x = y <- 1",
  "1 -> x",
  "y ~ x + z",
  "~x | y",
  "~(a ~ b)",
  "a %in% b %in% c",
  "a %% 2",
  "1:10",
  "-1:2",
  "a$b$c",
  "a$b(1)",
  "x@slot",
  "pkg::f(x)",
  "base:::g",
  'x$"name"',
  "x$`a b`",
  "f()(a, 1)",
  "(a + b)(1)",
  "f(x = 1, 2, `a b` = 3)",
  'f("y" = 1)',
  "f(x = )",
  "f(, b)",
  "f(a, )",
  "f(,)",
  "f((a = 1))",
  "x[1]",
  "x[1, ]",
  "x[[\"a\"]]",
  "x[[a[1]]]",
  "x[-1]",
  "(-1)[1]",
  "x[]",
  "f()[1]$b",
  "function(x, y = 2, z = ) x + y",
  "\\(x) x * 2",
  "function(x = function(y) y) x",
  "function(...) list(...)",
  "(function(x) x)(2)",
  "(function(x) x) + 1",
  "a * (function(x) x) + 1",
  "a * function(x) x + 1",
  "if (a) b",
  "if (a) b else c",
  "if (a) b else if (c) d else e",
  "if (a) (if (b) c) else d",
  "if (c) x <- (if (a) b) else d",
  "(if (a) b) + 1",
  "x <- if (a) b else c",
  "f(if (a) b, c)",
  "for (i in 1:10) print(i)",
  "for (`my i` in x) next",
  "while (TRUE) break",
  "repeat {\n  next\n}",
  "{\n  a\n  b\n}",
  "{}",
  "f({\n  a\n})",
  "if (a) {\n  b\n} else {\n  c\n}",
  "function(x) {\n  if (x) 1\n  else 2\n}",
  "TRUE & FALSE | NULL",
  "Inf + -Inf + NaN",
  "1e-10 + 1e+20 + 0.5 + 0x10 + 5L",
  "'single' == \"double\\n\\t\\\\\"",
  "`my var` <- `if`",
  "f(`if` = 1)",
]


class TestRoundTrip:
  """parse(deparse(t)) == t for parsed trees"""

  @pytest.mark.parametrize("source", ROUND_TRIP_SOURCES)
  def test_round_trip(self, source):
    for tree in parse(source):
      text = deparse(tree)
      assert parse(text) == [tree], text

  @pytest.mark.parametrize("source", ROUND_TRIP_SOURCES)
  def test_deparse_is_stable(self, source):
    for tree in parse(source):
      text = deparse(tree)
      assert deparse(parse_expr(text)) == text


class TestConstants:
  """Literal syntax of each constant kind"""

  @pytest.mark.parametrize("value,text", [
    (True, "TRUE"),
    (False, "FALSE"),
    (None, "NULL"),
    (10, "10"),
    (1.5, "1.5"),
    (1.0, "1.0"),
    (1e20, "1e+20"),
    (float("inf"), "Inf"),
    (float("-inf"), "-Inf"),
    (float("nan"), "NaN"),
    ('a"b\n', '"a\\"b\\n"'),
    ("back\\slash", '"back\\\\slash"'),
  ])
  def test_literals(self, value, text):
    assert deparse(Constant(value)) == text

  def test_negative_constant_is_parenthesized_as_base(self):
    assert deparse(make_call("^", -1, 2)) == "(-1)^2"
    assert deparse(make_call("+", -1, 2)) == "-1 + 2"


class TestSymbols:
  """Bare and quoted names"""

  def test_bare(self):
    assert deparse(Symbol("x.y_1")) == "x.y_1"

  @pytest.mark.parametrize("name,text", [
    ("my var", "`my var`"),
    ("if", "`if`"),
    ("+", "`+`"),
    ("a`b", "`a\\`b`"),
    ("", "``"),
  ])
  def test_quoted(self, name, text):
    assert deparse(Symbol(name)) == text

  def test_missing_argument_renders_empty(self):
    assert deparse(MISSING_ARG) == ""


class TestOperatorRendering:
  """Infix, prefix and fallback call syntax"""

  def test_minimal_parentheses(self):
    assert deparse(parse_expr("((1 + 2)) + (3)")) == "1 + 2 + 3"
    assert deparse(parse_expr("1 + (2 + 3)")) == "1 + (2 + 3)"
    assert deparse(parse_expr("(a * b) + c")) == "a * b + c"

  def test_unspaced_operators(self):
    assert deparse(parse_expr("a ^ b : c $ d")) == "a^b:c$d"
    assert deparse(parse_expr("pkg :: f")) == "pkg::f"

  def test_prefix(self):
    assert deparse(make_call("-", sym("x"))) == "-x"
    assert deparse(make_call("!", make_call("==", sym("a"), sym("b")))) == "!(a == b)"

  def test_wrong_arity_falls_back_to_call_syntax(self):
    assert deparse(make_call("+", 1, 2, 3)) == "`+`(1, 2, 3)"
    assert deparse(make_call("*", 1)) == "`*`(1)"

  def test_named_operands_fall_back_to_call_syntax(self):
    assert deparse(make_call("+", x=1, y=2)) == "`+`(x = 1, y = 2)"

  def test_access_needs_a_name_operand(self):
    assert deparse(make_call("$", sym("x"), make_call("f"))) == "`$`(x, f())"

  def test_assignment_argument_is_parenthesized(self):
    assert deparse(make_call("f", make_call("=", sym("a"), 1))) == "f((a = 1))"


class TestKeywordForms:
  """Surface syntax for functions, conditionals, loops and blocks"""

  def test_function(self):
    tree = make_function(["x", ("y", 2)], make_call("+", sym("x"), sym("y")))
    assert deparse(tree) == "function(x, y = 2) x + y"

  def test_formal_list(self):
    formals = make_formal_list("x", ("y", 2), Formal("z", MISSING_ARG, empty_default=True))
    assert deparse(formals) == "x, y = 2, z = "

  def test_dangling_if_is_parenthesized(self):
    tree = call("if", a, call("if", b, c), Symbol("d"))
    assert deparse(tree) == "if (a) (if (b) c) else d"

  def test_keyword_form_as_left_operand(self):
    tree = make_call("+", make_function(["x"], sym("x")), 1)
    assert deparse(tree) == "(function(x) x) + 1"

  def test_keyword_form_as_head(self):
    tree = Call(make_function(["x"], sym("x")), (Argument(Constant(2)),))
    assert deparse(tree) == "(function(x) x)(2)"

  def test_block_lines(self):
    tree = parse_expr("{a; {b}}")
    assert deparse_lines(tree) == ["{", "    a", "    {", "        b", "    }", "}"]

  def test_custom_indent(self):
    assert Deparser(indent="  ").deparse(parse_expr("{a}")) == "{\n  a\n}"

  def test_loops(self):
    assert deparse(parse_expr("for (i in x) f(i)")) == "for (i in x) f(i)"
    assert deparse(parse_expr("while (a) b")) == "while (a) b"
    assert deparse(parse_expr("repeat break")) == "repeat break"

  def test_lambda_renders_as_function(self):
    assert deparse(parse_expr("\\(x) x")) == "function(x) x"


class TestStructuralErrors:
  """Malformed trees fail fast with a node path"""

  def test_non_node(self):
    with pytest.raises(StructuralError):
      deparse(object())

  def test_corrupt_argument_reports_path(self):
    inner = make_call("g", 1)
    object.__setattr__(inner, "args", ("not an argument",))
    outer = make_call("f", sym("x"), inner)
    with pytest.raises(StructuralError) as exc_info:
      deparse(outer)
    assert exc_info.value.path == (2, 1)
    assert "[2][1]" in str(exc_info.value)

  def test_corrupt_head(self):
    tree = make_call("f")
    object.__setattr__(tree, "head", Constant(1))
    with pytest.raises(StructuralError) as exc_info:
      deparse(tree)
    assert exc_info.value.path == (0,)
