"""
Lexer tests
Token kinds, operator classes, literals, spans and lexical errors
"""

import pytest
from lexing import Lexer, OperatorClass, TokenKind, create_lexer, is_syntactic_name, tokenize
from error_handling import LexError


def kinds(text):
  return [t.kind for t in tokenize(text)]


def texts(text):
  return [t.text for t in tokenize(text)[:-1]]


class TestTokenKinds:
  """Classification of lexemes"""

  def test_identifiers_and_keywords(self):
    tokens = tokenize("x if .hidden my_var.2")
    assert [t.kind for t in tokens] == [
      TokenKind.IDENTIFIER, TokenKind.KEYWORD, TokenKind.IDENTIFIER,
      TokenKind.IDENTIFIER, TokenKind.END_OF_INPUT,
    ]
    assert tokens[3].value == "my_var.2"

  def test_dots_are_identifiers(self):
    tokens = tokenize("... ..1")
    assert [t.value for t in tokens[:-1]] == ["...", "..1"]
    assert all(t.kind is TokenKind.IDENTIFIER for t in tokens[:-1])

  def test_backtick_name_is_identifier(self):
    token = tokenize("`my var`")[0]
    assert token.kind is TokenKind.IDENTIFIER
    assert token.value == "my var"
    assert token.quoted

  def test_end_of_input_always_last(self):
    assert kinds("") == [TokenKind.END_OF_INPUT]
    assert kinds("a")[-1] is TokenKind.END_OF_INPUT

  def test_whitespace_and_comments_dropped(self):
    assert texts("a   + # comment\tignored\n b") == ["a", "+", "\n", "b"]

  def test_newline_is_significant(self):
    assert kinds("a\nb") == [
      TokenKind.IDENTIFIER, TokenKind.NEWLINE, TokenKind.IDENTIFIER, TokenKind.END_OF_INPUT,
    ]

  def test_newline_survives_surrounding_whitespace(self):
    assert texts("a \t\n  \n\tb") == ["a", "\n", "\n", "b"]
    assert tokenize("x\n  y")[2].span.line == 2


class TestLiterals:
  """Number and string literals"""

  @pytest.mark.parametrize("text,value", [
    ("10", 10),
    ("1.5", 1.5),
    (".5", 0.5),
    ("1.", 1.0),
    ("1e3", 1000.0),
    ("2.5E-1", 0.25),
    ("0x1F", 31),
    ("5L", 5),
    ("1e3L", 1000),
    ("0x10L", 16),
  ])
  def test_numbers(self, text, value):
    token = tokenize(text)[0]
    assert token.kind is TokenKind.NUMBER
    assert token.value == value
    assert type(token.value) is type(value)

  def test_string_escapes(self):
    token = tokenize(r'"a\n\t\"b\\"')[0]
    assert token.kind is TokenKind.STRING
    assert token.value == 'a\n\t"b\\'

  def test_single_quoted_string(self):
    assert tokenize("'it\\'s'")[0].value == "it's"

  def test_hash_inside_string_is_not_a_comment(self):
    assert tokenize('"# not a comment"')[0].value == "# not a comment"


class TestOperators:
  """Operator classification and longest match"""

  def test_longest_match(self):
    assert texts("a<<-b->>c:::d") == ["a", "<<-", "b", "->>", "c", ":::", "d"]

  def test_prefix_capable(self):
    for text in ["+", "-", "!", "~"]:
      assert tokenize(text)[0].op_class is OperatorClass.PREFIX_CAPABLE

  def test_strictly_infix(self):
    for text in ["*", "/", "^", "==", "<-", "&&", "$", "@", "::"]:
      assert tokenize(text)[0].op_class is OperatorClass.INFIX

  def test_custom_infix(self):
    token = tokenize("%in%")[0]
    assert token.kind is TokenKind.OPERATOR
    assert token.op_class is OperatorClass.CUSTOM_INFIX
    assert token.value == "%in%"

  def test_lambda(self):
    assert tokenize("\\(x) x")[0].op_class is OperatorClass.LAMBDA

  def test_punctuation(self):
    assert all(t.kind is TokenKind.PUNCTUATION for t in tokenize("()[]{},;")[:-1])


class TestSpans:
  """Source positions"""

  def test_offsets_lines_and_columns(self):
    tokens = create_lexer("demo.R").tokenize("a <- 1\n  b")
    b = tokens[-2]
    assert b.text == "b"
    assert (b.span.start, b.span.end) == (9, 10)
    assert (b.span.line, b.span.column) == (2, 3)
    assert str(b.span) == "demo.R:2:3"

  def test_tabs_keep_offsets(self):
    token = tokenize("\tx")[0]
    assert token.span.start == 1
    assert token.span.column == 2

  def test_scan_is_restartable(self):
    sequence = Lexer().scan("a + b")
    assert [t.text for t in sequence] == [t.text for t in sequence]


class TestLexErrors:
  """Unterminated literals and unknown characters"""

  def test_unterminated_string(self):
    with pytest.raises(LexError) as exc_info:
      tokenize('x <- "abc')
    assert exc_info.value.offset == 5
    assert exc_info.value.char == '"'
    assert "unterminated string" in exc_info.value.message

  def test_unterminated_quoted_name(self):
    with pytest.raises(LexError, match="unterminated quoted name"):
      tokenize("`abc")

  def test_fractional_integer_literal(self):
    with pytest.raises(LexError, match="not a whole number") as exc_info:
      tokenize("x + 1.5L")
    assert exc_info.value.offset == 4
    assert exc_info.value.char == "1.5L"

  def test_unrecognized_character(self):
    with pytest.raises(LexError) as exc_info:
      tokenize("a ? b")
    assert exc_info.value.offset == 2
    assert exc_info.value.char == "?"

  def test_error_message_has_position_and_caret(self):
    with pytest.raises(LexError) as exc_info:
      create_lexer("f.R").tokenize("ok\nbad ? here")
    text = str(exc_info.value)
    assert "f.R:2:5" in text
    assert "^" in text

  def test_lazy_scan_raises_when_reached(self):
    tokens = iter(Lexer().scan("a ?"))
    assert next(tokens).text == "a"
    with pytest.raises(LexError):
      next(tokens)


class TestSyntacticNames:
  """Identifier grammar used for quoting decisions"""

  @pytest.mark.parametrize("name", ["x", "x1", ".x", "my.var", "a_b", "..."])
  def test_syntactic(self, name):
    assert is_syntactic_name(name)

  @pytest.mark.parametrize("name", ["", "1x", "_x", ".1", "my var", "if", "TRUE", "+"])
  def test_non_syntactic(self, name):
    assert not is_syntactic_name(name)
