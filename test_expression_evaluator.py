# test_expression_evaluator.py

import decimal
from decimal import Decimal

import pytest

from expression_evaluator import (
    MAX_HISTORY,
    CalculatorError,
    ErrorKind,
    EvalError,
    ExpressionEvaluator,
    LexError,
    Parser,
    TokenType,
    tokenize,
)


@pytest.fixture
def ev():
    return ExpressionEvaluator()


def types_of(text, last_answer=Decimal(0)):
    return [t.type for t in tokenize(text, last_answer)]


# ---------------------------
# Tokenizer Tests
# ---------------------------

def test_tokenizer_simple_expression():
    toks = tokenize("1 + 2")
    assert [t.type for t in toks] == [
        TokenType.NUMBER, TokenType.OPERATOR, TokenType.NUMBER, TokenType.EOF
    ]
    assert [t.value for t in toks] == ['1', '+', '2', '']
    assert toks[0].number == Decimal(1)
    assert toks[-1].pos == 5


def test_tokenizer_decimal_numbers():
    toks = tokenize(".5 + 2.25")
    assert toks[0].number == Decimal("0.5")
    assert toks[2].number == Decimal("2.25")


def test_tokenizer_x_after_digit_is_multiplication():
    toks = tokenize("10x5")
    assert [t.type for t in toks] == [
        TokenType.NUMBER, TokenType.OPERATOR, TokenType.NUMBER, TokenType.EOF
    ]
    assert toks[1].value == '*'
    assert toks[1].pos == 2


def test_tokenizer_x_after_paren_is_multiplication():
    toks = tokenize("(2+3)X4")
    assert toks[5].type == TokenType.OPERATOR
    assert toks[5].value == '*'


def test_tokenizer_unit_then_x_is_multiplication():
    toks = tokenize("10bx50k")
    assert [(t.type, t.value) for t in toks] == [
        (TokenType.NUMBER, '10'),
        (TokenType.UNIT, 'b'),
        (TokenType.OPERATOR, '*'),
        (TokenType.NUMBER, '50'),
        (TokenType.UNIT, 'k'),
        (TokenType.EOF, ''),
    ]


def test_tokenizer_leading_x_is_variable():
    toks = tokenize("x")
    assert toks[0].type == TokenType.VARIABLE
    assert toks[0].value == 'x'


def test_tokenizer_dollar_variable_keeps_x():
    toks = tokenize("$myXvar")
    assert toks[0].type == TokenType.VARIABLE
    assert toks[0].value == 'myxvar'
    assert toks[0].pos == 0


def test_tokenizer_zero_x_is_not_multiplication():
    assert types_of("0x5") == [TokenType.NUMBER, TokenType.VARIABLE, TokenType.EOF]
    # only a bare "0" is guarded
    assert types_of("010x5") == [
        TokenType.NUMBER, TokenType.OPERATOR, TokenType.NUMBER, TokenType.EOF
    ]


def test_tokenizer_units_only_after_numbers():
    assert types_of("5 K") == [TokenType.NUMBER, TokenType.UNIT, TokenType.EOF]
    assert types_of("k") == [TokenType.VARIABLE, TokenType.EOF]
    assert types_of("(5)k") == [
        TokenType.LPAREN, TokenType.NUMBER, TokenType.RPAREN, TokenType.VARIABLE, TokenType.EOF
    ]


def test_tokenizer_functions_are_case_insensitive():
    toks = tokenize("SQRT(4)")
    assert toks[0].type == TokenType.FUNCTION
    assert toks[0].value == 'sqrt'


def test_tokenizer_ans_is_a_number_token():
    toks = tokenize("ans", Decimal(7))
    assert toks[0].type == TokenType.NUMBER
    assert toks[0].number == Decimal(7)


def test_tokenizer_unexpected_character():
    with pytest.raises(LexError) as e:
        tokenize("1 @ 2")
    assert e.value.kind == ErrorKind.UNEXPECTED_CHARACTER
    assert e.value.position == 2
    assert "'@'" in e.value.message


@pytest.mark.parametrize("text, pos", [(".", 0), ("1+.", 2)])
def test_tokenizer_invalid_number(text, pos):
    with pytest.raises(LexError) as e:
        tokenize(text)
    assert e.value.kind == ErrorKind.INVALID_NUMBER
    assert e.value.position == pos


# ---------------------------
# Arithmetic Tests
# ---------------------------

@pytest.mark.parametrize("a, b", [
    (10 ** 30 + 7, 10 ** 30 - 3),
    (123456789012345678901234567890, 987654321098765432109876543210),
    (-(10 ** 31), 999),
])
def test_add_sub_mul_are_exact(ev, a, b):
    assert ev.evaluate(f"{a}+{b}") == Decimal(a + b)
    assert ev.evaluate(f"{a}-{b}") == Decimal(a - b)
    assert ev.evaluate(f"{a}*{b}") == Decimal(a * b)


def test_decimal_addition_is_exact(ev):
    assert ev.evaluate("0.1+0.2") == Decimal("0.3")


def test_division_keeps_at_least_fifty_digits():
    ev = ExpressionEvaluator(decimal_precision=10)
    assert ev.precision == 50
    assert str(ev.evaluate("1/3")) == "0." + "3" * 50


def test_division_rounds_half_up():
    ev = ExpressionEvaluator()
    assert str(ev.evaluate("2/3")) == "0." + "6" * 49 + "7"


def test_division_strips_trailing_zeros(ev):
    result = ev.evaluate("10/4")
    assert result == Decimal("2.5")
    assert str(result) == "2.5"


def test_higher_configured_precision_is_used():
    ev = ExpressionEvaluator(decimal_precision=80)
    assert str(ev.evaluate("1/3")) == "0." + "3" * 80


@pytest.mark.parametrize("expr, expected", [
    ("2+3*4", 14),
    ("(2+3)*4", 20),
    ("10-4-3", 3),
    ("100/10/2", 5),
    ("2^3^2", 512),
    ("2*-3", -6),
    ("--3", 3),
    ("+5", 5),
    ("-2^2", 4),
    ("10%3", 1),
    ("-7%3", -1),
    ("5.5%2", Decimal("1.5")),
    ("2^-1", Decimal("0.5")),
    ("(-2)^3", -8),
    ("0^0", 1),
])
def test_operators_and_precedence(ev, expr, expected):
    assert ev.evaluate(expr) == Decimal(expected)


@pytest.mark.parametrize("expr, expected", [
    ("5k", 5000),
    ("1.5m", 1500000),
    ("2b", 2000000000),
    ("1t", 1000000000000),
    ("3s", 192),
    ("2e", 320),
    ("2h", 3456),
    ("1sc", 1728),
    ("1dc", 3456),
    ("1eb", 2880),
    ("2.5K*2", 5000),
])
def test_unit_suffixes(ev, expr, expected):
    assert ev.evaluate(expr) == Decimal(expected)


@pytest.mark.parametrize("expr, expected", [
    ("10x5", 50),
    ("(2+3)x4", 20),
    ("10kx5", 50000),
    ("10bx50k", Decimal("5E14")),
])
def test_x_multiplication(ev, expr, expected):
    assert ev.evaluate(expr) == Decimal(expected)


def test_x_as_variable(ev):
    ev.set_variable("x", 3)
    assert ev.evaluate("x") == 3
    assert ev.evaluate("x*2") == 6
    assert ev.evaluate("$x+1") == 4


@pytest.mark.parametrize("expr, expected", [
    ("sqrt(16)", 4),
    ("abs(-5)", 5),
    ("floor(2.7)", 2),
    ("floor(-2.5)", -3),
    ("ceil(2.1)", 3),
    ("ceil(-2.1)", -2),
    ("round(2.5)", 3),
    ("round(-2.5)", -3),
    ("round(2.4)", 2),
    ("sqrt(abs(-16)) + round(2.4)", 6),
])
def test_functions(ev, expr, expected):
    assert ev.evaluate(expr) == Decimal(expected)


def test_sqrt_uses_float_approximation(ev):
    assert str(ev.evaluate("sqrt(2)")).startswith("1.41421356237309")


def test_large_power_rounds_to_precision(ev):
    result = ev.evaluate("3^1000")
    assert len(result.as_tuple().digits) <= 50


# ---------------------------
# Error Tests
# ---------------------------

@pytest.mark.parametrize("expr, kind, pos", [
    ("5+", ErrorKind.UNFINISHED_EXPRESSION, 1),
    ("5 *", ErrorKind.UNFINISHED_EXPRESSION, 2),
    ("2^", ErrorKind.UNFINISHED_EXPRESSION, 1),
    ("5/0", ErrorKind.DIVISION_BY_ZERO, 1),
    ("5/(2-2)", ErrorKind.DIVISION_BY_ZERO, 1),
    ("5%0", ErrorKind.MODULO_BY_ZERO, 1),
    ("2^1001", ErrorKind.EXPONENT_TOO_LARGE, 1),
    ("2^-1001", ErrorKind.EXPONENT_TOO_LARGE, 1),
    ("(-8)^0.5", ErrorKind.NEGATIVE_POWER, 4),
    ("2^0.5", ErrorKind.NEGATIVE_POWER, 1),
    ("0^-1", ErrorKind.DIVISION_BY_ZERO, 1),
    ("sqrt(-4)", ErrorKind.NEGATIVE_SQRT, 0),
    ("1+foo", ErrorKind.UNDEFINED_VARIABLE, 2),
    ("sqrt 4", ErrorKind.EXPECTED_PARENTHESIS, 0),
    ("sqrt", ErrorKind.EXPECTED_PARENTHESIS, 0),
    ("1+sqrt(4", ErrorKind.EXPECTED_CLOSING_PAREN, 2),
    ("(1+2", ErrorKind.UNMATCHED_PARENTHESIS, 0),
    ("5 5", ErrorKind.UNEXPECTED_TOKEN, 2),
    ("2)", ErrorKind.UNEXPECTED_TOKEN, 1),
    ("*5", ErrorKind.UNEXPECTED_TOKEN, 0),
    ("5*)", ErrorKind.UNEXPECTED_TOKEN, 2),
    ("-", ErrorKind.UNEXPECTED_END, 1),
])
def test_evaluation_errors(ev, expr, kind, pos):
    with pytest.raises(EvalError) as e:
        ev.evaluate(expr)
    assert e.value.kind == kind
    assert e.value.position == pos


@pytest.mark.parametrize("expr", ["", "   ", None])
def test_empty_expression(ev, expr):
    with pytest.raises(EvalError) as e:
        ev.evaluate(expr)
    assert e.value.kind == ErrorKind.EMPTY_EXPRESSION
    assert e.value.position == 0


def test_undefined_variable_message_names_variable(ev):
    with pytest.raises(EvalError) as e:
        ev.evaluate("$price*2")
    assert "price" in e.value.message


def test_lex_errors_are_calculator_errors(ev):
    with pytest.raises(CalculatorError) as e:
        ev.evaluate("5 # 3")
    assert e.value.kind == ErrorKind.UNEXPECTED_CHARACTER


def test_x_after_number_with_nothing_following_is_unfinished(ev):
    with pytest.raises(EvalError) as e:
        ev.evaluate("10x")
    assert e.value.kind == ErrorKind.UNFINISHED_EXPRESSION


# ---------------------------
# Result Size Tests
# ---------------------------

HUGE = "(((((10^1000)^1000)^1000)^1000)^1000)^500"


def test_results_below_the_digit_limit_are_kept(ev):
    result = ev.evaluate("(10^1000)^9*10^999")
    assert result.adjusted() == 9999


@pytest.mark.parametrize("expr, pos", [
    ("(10^1000)^10", 9),
    ("(10^1000)^5*(10^1000)^5", 11),
    ("(10^1000)^9*10^999/0.01", 18),
    ("(10^1000)^9*10^999+(10^1000)^9*10^999*9", 18),
    (HUGE, 13),
    (HUGE + "*" + HUGE, 13),
    ("(((((10^1000)^1000)^1000)^1000)^1000)^1000", 13),
])
def test_oversized_results_are_typed_errors(ev, expr, pos):
    with pytest.raises(EvalError) as e:
        ev.evaluate(expr)
    assert e.value.kind == ErrorKind.RESULT_TOO_LARGE
    assert e.value.position == pos
    assert e.value.message == "Result too large"
    assert ev.history() == []


def test_oversized_unit_multiplication(ev):
    ev.evaluate("(10^1000)^9*10^999")
    with pytest.raises(EvalError) as e:
        ev.evaluate("ans k")
    assert e.value.kind == ErrorKind.RESULT_TOO_LARGE
    assert e.value.position == 4


def test_zero_to_negative_power_is_division_by_zero(ev):
    with pytest.raises(EvalError) as e:
        ev.evaluate("0^-3")
    assert e.value.kind == ErrorKind.DIVISION_BY_ZERO
    assert e.value.position == 1


@pytest.mark.parametrize("signal, kind", [
    (decimal.Overflow, ErrorKind.RESULT_TOO_LARGE),
    (decimal.DivisionByZero, ErrorKind.DIVISION_BY_ZERO),
    (decimal.InvalidOperation, ErrorKind.INVALID_NUMBER),
])
def test_arithmetic_signals_become_eval_errors(ev, monkeypatch, signal, kind):
    def failing_parse(self):
        raise signal()

    monkeypatch.setattr(Parser, "parse", failing_parse)
    with pytest.raises(EvalError) as e:
        ev.evaluate("1+1")
    assert e.value.kind == kind
    assert isinstance(e.value.__cause__, signal)
    assert ev.last_answer() == 0


# ---------------------------
# Variables, ans and History Tests
# ---------------------------

def test_last_answer_defaults_to_zero(ev):
    assert ev.last_answer() == 0
    assert ev.evaluate("ans+1") == 1


def test_ans_uses_previous_result(ev):
    ev.evaluate("5")
    assert ev.evaluate("ans*2") == 10
    assert ev.last_answer() == 10


def test_quiet_evaluation_updates_ans_but_not_history(ev):
    assert ev.evaluate_quiet("3+4") == 7
    assert ev.last_answer() == 7
    assert ev.history() == []


def test_failed_evaluation_keeps_ans_and_history(ev):
    ev.evaluate("2+2")
    with pytest.raises(EvalError):
        ev.evaluate("1/0")
    assert ev.last_answer() == 4
    assert ev.history() == ["2+2"]


def test_history_is_bounded_to_most_recent(ev):
    exprs = [f"{i}+1" for i in range(20)]
    for expr in exprs:
        ev.evaluate(expr)
    assert len(ev.history()) == MAX_HISTORY == 15
    assert ev.history() == exprs[-15:]


def test_history_skips_immediate_repeats_only(ev):
    for expr in ["1+1", "1+1", "2+2", "1+1"]:
        ev.evaluate(expr)
    assert ev.history() == ["1+1", "2+2", "1+1"]


def test_history_returns_a_copy(ev):
    ev.evaluate("1+1")
    ev.history().append("junk")
    assert ev.history() == ["1+1"]


def test_clear_history(ev):
    ev.evaluate("1+1")
    ev.clear_history()
    assert ev.history() == []
    assert ev.last_answer() == 2


def test_set_variable_from_expression(ev):
    ev.set_variable("x", "10*5")
    assert ev.evaluate("x+5") == 55
    assert ev.history() == ["10*5", "x+5"]


def test_set_variable_is_case_insensitive(ev):
    ev.set_variable("Price", Decimal("2.5"))
    assert ev.evaluate("$PRICE*2") == 5
    assert ev.evaluate("price") == Decimal("2.5")


def test_set_variable_overwrites(ev):
    ev.set_variable("a", 1)
    ev.set_variable("A", 2)
    assert ev.variables == {"a": Decimal(2)}


def test_set_variable_with_bad_expression_leaves_variables_alone(ev):
    with pytest.raises(EvalError):
        ev.set_variable("a", "1/0")
    assert ev.variables == {}


def test_describe_variables_empty(ev):
    assert ev.describe_variables() == "No variables defined"


def test_describe_variables_sorted_and_formatted(ev):
    ev.set_variable("b", 2000)
    ev.set_variable("a", Decimal("1.5"))
    assert ev.describe_variables() == "Variables (2):\n  $a = 1.5\n  $b = 2,000"


def test_reset_forgets_everything(ev):
    ev.set_variable("a", 1)
    ev.evaluate("5")
    ev.reset()
    assert ev.variables == {}
    assert ev.history() == []
    assert ev.last_answer() == 0
