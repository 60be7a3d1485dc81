# expression_evaluator.py
"""
Arbitrary-precision expression evaluator with game-economy unit suffixes.

Pipeline: raw string -> Tokenizer -> list of Token -> Parser (recursive descent,
one method per precedence level, each returning (value, next_pos)) -> Decimal.

Supported:
  - Operators: + - * / ^ % and 'x' as a multiplication shorthand (10x5, (2+3)x4, 10kx5)
  - Functions: sqrt, abs, floor, ceil, round
  - Unit suffixes after a number: k m b t (currency), s e (items), h sc dc eb (storage)
  - Variables: ans (last result) and custom variables ($name or bare name)

Addition, subtraction, multiplication, modulo and unit suffixes are exact.
Only division and integer powers round, to max(configured precision, 50)
significant digits using ROUND_HALF_UP.
Results with more than 10000 integer digits are rejected with RESULT_TOO_LARGE.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import (
    MAX_EMAX,
    MAX_PREC,
    MIN_EMIN,
    ROUND_CEILING,
    ROUND_FLOOR,
    ROUND_HALF_UP,
    Context,
    Decimal,
    DecimalException,
    DivisionByZero,
    Overflow,
)
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from result_formatter import format_grouped

logger = logging.getLogger(__name__)

# Hardcoded: store max 15 calculations in history
MAX_HISTORY = 15

# Division and power never round below this many significant digits
MIN_PRECISION = 50

MAX_EXPONENT = Decimal(1000)

# Results are rejected beyond this many integer digits, so they stay printable
MAX_RESULT_DIGITS = 10000

# Exact arithmetic: results are never rounded at this precision
EXACT = Context(prec=MAX_PREC, Emax=MAX_EMAX, Emin=MIN_EMIN, rounding=ROUND_HALF_UP)

UNITS: Dict[str, Decimal] = {
    'k': Decimal('1000'),
    'm': Decimal('1000000'),
    'b': Decimal('1000000000'),
    't': Decimal('1000000000000'),
    's': Decimal('64'),      # stack
    'e': Decimal('160'),     # enchanted
    'h': Decimal('1728'),    # shulker (27 stacks)
    'sc': Decimal('1728'),   # small chest
    'dc': Decimal('3456'),   # double chest
    'eb': Decimal('2880'),   # ender chest (45 stacks)
}

FUNCTIONS = frozenset({'sqrt', 'abs', 'floor', 'ceil', 'round'})

OPERATOR_CHARS = '+-*/^%'


# --------------------------
# Exceptions
# --------------------------

class ErrorKind(Enum):
    EMPTY_EXPRESSION = 'empty_expression'
    INVALID_NUMBER = 'invalid_number'
    UNEXPECTED_CHARACTER = 'unexpected_character'
    UNFINISHED_EXPRESSION = 'unfinished_expression'
    DIVISION_BY_ZERO = 'division_by_zero'
    MODULO_BY_ZERO = 'modulo_by_zero'
    EXPONENT_TOO_LARGE = 'exponent_too_large'
    NEGATIVE_POWER = 'negative_power'
    UNDEFINED_VARIABLE = 'undefined_variable'
    EXPECTED_PARENTHESIS = 'expected_parenthesis'
    EXPECTED_CLOSING_PAREN = 'expected_closing_paren'
    UNMATCHED_PARENTHESIS = 'unmatched_parenthesis'
    UNEXPECTED_TOKEN = 'unexpected_token'
    UNEXPECTED_END = 'unexpected_end'
    NEGATIVE_SQRT = 'negative_sqrt'
    UNKNOWN_FUNCTION = 'unknown_function'
    RESULT_TOO_LARGE = 'result_too_large'


ERROR_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.EMPTY_EXPRESSION: "Empty expression",
    ErrorKind.INVALID_NUMBER: "Invalid number",
    ErrorKind.UNEXPECTED_CHARACTER: "Unexpected character '{0}'",
    ErrorKind.UNFINISHED_EXPRESSION: "Unfinished expression",
    ErrorKind.DIVISION_BY_ZERO: "Division by zero",
    ErrorKind.MODULO_BY_ZERO: "Modulo by zero",
    ErrorKind.EXPONENT_TOO_LARGE: "Exponent too large (max 1000)",
    ErrorKind.NEGATIVE_POWER: "Cannot raise to a non-integer power",
    ErrorKind.UNDEFINED_VARIABLE: "Undefined variable: {0}",
    ErrorKind.EXPECTED_PARENTHESIS: "Expected '(' after {0}",
    ErrorKind.EXPECTED_CLOSING_PAREN: "Expected ')'",
    ErrorKind.UNMATCHED_PARENTHESIS: "Unmatched parenthesis",
    ErrorKind.UNEXPECTED_TOKEN: "Unexpected token '{0}'",
    ErrorKind.UNEXPECTED_END: "Unexpected end of expression",
    ErrorKind.NEGATIVE_SQRT: "Cannot take square root of a negative number",
    ErrorKind.UNKNOWN_FUNCTION: "Unknown function: {0}",
    ErrorKind.RESULT_TOO_LARGE: "Result too large",
}


class CalculatorError(Exception):
    """Base class for calculator errors. Carries the kind and the source position."""

    def __init__(self, kind: ErrorKind, position: int, *args):
        self.kind = kind
        self.message = ERROR_MESSAGES[kind].format(*args)
        self.position = position
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.name}, {self.message!r}, pos={self.position})"


class LexError(CalculatorError):
    """Raised when a character cannot start any token."""
    pass


class EvalError(CalculatorError):
    """Raised for structural or semantic errors while evaluating."""
    pass


# --------------------------
# Tokenizer
# --------------------------

class TokenType:
    """Enumeration of token types."""
    NUMBER = 'NUMBER'
    OPERATOR = 'OPERATOR'
    LPAREN = 'LPAREN'
    RPAREN = 'RPAREN'
    FUNCTION = 'FUNCTION'
    VARIABLE = 'VARIABLE'
    UNIT = 'UNIT'
    EOF = 'EOF'


@dataclass
class Token:
    """A token with its type, source text, position and, for numbers, its value."""
    type: str
    value: str
    pos: int
    number: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Token({self.type}, {self.value!r}, pos={self.pos})"


class Tokenizer:
    """Converts an expression string into a list of tokens.

    The letter 'x' is ambiguous: it is multiplication right after a digit, a ')'
    or a unit suffix, and an identifier character everywhere else. A number that
    is exactly "0" never takes 'x' as multiplication, so "0x..." stays hex-like.
    """

    def __init__(self, text: str, last_answer: Decimal = Decimal(0)):
        self.text = text
        self.last_answer = last_answer
        self.pos = 0
        self.len = len(text)
        self.tokens: List[Token] = []

    def _peek(self, n: int = 0) -> str:
        i = self.pos + n
        return self.text[i] if i < self.len else ''

    def _advance(self, n: int = 1) -> None:
        self.pos += n

    def _last_type(self) -> Optional[str]:
        return self.tokens[-1].type if self.tokens else None

    def _read_number(self) -> Token:
        start = self.pos
        has_dot = False
        while True:
            ch = self._peek()
            if ch.isdecimal():
                self._advance()
            elif ch == '.' and not has_dot:
                has_dot = True
                self._advance()
            else:
                break
        raw = self.text[start:self.pos]
        if raw in ('', '.'):
            raise LexError(ErrorKind.INVALID_NUMBER, start)
        return Token(TokenType.NUMBER, raw, start, Decimal(raw))

    def _x_is_multiplication(self) -> bool:
        if self.pos == 0:
            return False
        prev = self.text[self.pos - 1]
        last = self.tokens[-1] if self.tokens else None
        if prev.isdecimal():
            # "0x" looks like a hex prefix
            return not (last is not None and last.type == TokenType.NUMBER and last.value == '0')
        if prev == ')':
            return True
        return last is not None and last.type == TokenType.UNIT

    def _read_identifier(self) -> Token:
        start = self.pos
        explicit = self._peek() == '$'
        if explicit:
            self._advance()
        name_start = self.pos
        while True:
            ch = self._peek()
            if not (ch.isalnum() or ch == '_'):
                break
            # "10bx50k" reads as 10b * 50k; "$myxvar" keeps its x
            if ch in 'xX' and self.pos > name_start and not explicit:
                break
            self._advance()
        name = self.text[name_start:self.pos].lower()

        if name in FUNCTIONS:
            return Token(TokenType.FUNCTION, name, start)
        if name in UNITS:
            # units only make sense right after a number
            if self._last_type() == TokenType.NUMBER:
                return Token(TokenType.UNIT, name, start)
            return Token(TokenType.VARIABLE, name, start)
        if name == 'ans':
            return Token(TokenType.NUMBER, name, start, self.last_answer)
        return Token(TokenType.VARIABLE, name, start)

    def tokenize(self) -> List[Token]:
        while True:
            ch = self._peek()
            if ch == '':
                break
            if ch.isspace():
                self._advance()
            elif ch.isdecimal() or ch == '.':
                self.tokens.append(self._read_number())
            elif ch in OPERATOR_CHARS:
                self.tokens.append(Token(TokenType.OPERATOR, ch, self.pos))
                self._advance()
            elif ch in 'xX' and self._x_is_multiplication():
                self.tokens.append(Token(TokenType.OPERATOR, '*', self.pos))
                self._advance()
            elif ch == '(':
                self.tokens.append(Token(TokenType.LPAREN, ch, self.pos))
                self._advance()
            elif ch == ')':
                self.tokens.append(Token(TokenType.RPAREN, ch, self.pos))
                self._advance()
            elif ch == '$' or ch.isalpha():
                self.tokens.append(self._read_identifier())
            else:
                raise LexError(ErrorKind.UNEXPECTED_CHARACTER, self.pos, ch)
        self.tokens.append(Token(TokenType.EOF, '', self.len))
        return self.tokens


def tokenize(text: str, last_answer: Decimal = Decimal(0)) -> List[Token]:
    """Tokenize `text`; `ans` resolves to `last_answer`."""
    return Tokenizer(text, last_answer).tokenize()


# --------------------------
# Parser / Evaluator
# --------------------------

ParseResult = Tuple[Decimal, int]


class Parser:
    """
    Recursive descent evaluator over a token list.
    Grammar (lowest to highest precedence):
        expression : addsub
        addsub     : muldiv (('+'|'-') muldiv)*
        muldiv     : power (('*'|'/'|'%') power)*
        power      : unary ('^' power)?          right-associative
        unary      : ('-'|'+') unary | postfix
        postfix    : primary UNIT?
        primary    : NUMBER | VARIABLE | FUNCTION '(' expression ')' | '(' expression ')'
    Every level takes a token index and returns (value, next index).
    """

    def __init__(self, tokens: List[Token], variables: Dict[str, Decimal], context: Context):
        self.tokens = tokens
        self.variables = variables
        self.context = context

    def parse(self) -> Decimal:
        value, pos = self.expression(0)
        tok = self.tokens[pos]
        if tok.type != TokenType.EOF:
            raise EvalError(ErrorKind.UNEXPECTED_TOKEN, tok.pos, tok.value)
        return value

    def expression(self, pos: int) -> ParseResult:
        return self.add_sub(pos)

    def _is_operator(self, pos: int, ops: str) -> bool:
        tok = self.tokens[pos]
        return tok.type == TokenType.OPERATOR and tok.value in ops

    def _check_operand(self, pos: int) -> None:
        """Operator at `pos` followed directly by end of input means the user is still typing."""
        if self.tokens[pos + 1].type == TokenType.EOF:
            raise EvalError(ErrorKind.UNFINISHED_EXPRESSION, self.tokens[pos].pos)

    @staticmethod
    def _bounded(value: Decimal, tok: Token) -> Decimal:
        """Reject results with more than MAX_RESULT_DIGITS integer digits, blaming `tok`."""
        if not value.is_zero() and value.adjusted() >= MAX_RESULT_DIGITS:
            raise EvalError(ErrorKind.RESULT_TOO_LARGE, tok.pos)
        return value

    def add_sub(self, pos: int) -> ParseResult:
        left, pos = self.mul_div(pos)
        while self._is_operator(pos, '+-'):
            tok = self.tokens[pos]
            op = tok.value
            self._check_operand(pos)
            right, pos = self.mul_div(pos + 1)
            if op == '+':
                left = EXACT.add(left, right)
            else:
                left = EXACT.subtract(left, right)
            left = self._bounded(left, tok)
        return left, pos

    def mul_div(self, pos: int) -> ParseResult:
        left, pos = self.power(pos)
        while self._is_operator(pos, '*/%'):
            tok = self.tokens[pos]
            self._check_operand(pos)
            right, pos = self.power(pos + 1)
            if tok.value == '*':
                left = EXACT.multiply(left, right)
            elif tok.value == '/':
                if right.is_zero():
                    raise EvalError(ErrorKind.DIVISION_BY_ZERO, tok.pos)
                left = self.context.divide(left, right).normalize(self.context)
            else:
                if right.is_zero():
                    raise EvalError(ErrorKind.MODULO_BY_ZERO, tok.pos)
                left = EXACT.remainder(left, right)
            left = self._bounded(left, tok)
        return left, pos

    def power(self, pos: int) -> ParseResult:
        base, pos = self.unary(pos)
        if not self._is_operator(pos, '^'):
            return base, pos
        tok = self.tokens[pos]
        self._check_operand(pos)
        exponent, pos = self.power(pos + 1)

        if exponent.copy_abs() > MAX_EXPONENT:
            raise EvalError(ErrorKind.EXPONENT_TOO_LARGE, tok.pos)
        # negative^fraction has no real result, and fractional powers are not supported at all
        if exponent != exponent.to_integral_value():
            raise EvalError(ErrorKind.NEGATIVE_POWER, tok.pos)
        if exponent.is_zero():
            return Decimal(1), pos
        if base.is_zero() and exponent < 0:
            raise EvalError(ErrorKind.DIVISION_BY_ZERO, tok.pos)
        try:
            result = self.context.power(base, exponent.to_integral_value())
        except Overflow as e:
            logger.debug(f"Power {base}^{exponent} overflowed: {e!r}")
            raise EvalError(ErrorKind.RESULT_TOO_LARGE, tok.pos) from e
        return self._bounded(result, tok), pos

    def unary(self, pos: int) -> ParseResult:
        if self._is_operator(pos, '-'):
            value, pos = self.unary(pos + 1)
            return value.copy_negate(), pos
        if self._is_operator(pos, '+'):
            return self.unary(pos + 1)
        return self.postfix(pos)

    def postfix(self, pos: int) -> ParseResult:
        value, pos = self.primary(pos)
        tok = self.tokens[pos]
        if tok.type == TokenType.UNIT:
            return self._bounded(EXACT.multiply(value, UNITS[tok.value]), tok), pos + 1
        return value, pos

    def primary(self, pos: int) -> ParseResult:
        tok = self.tokens[pos]

        if tok.type == TokenType.NUMBER:
            return tok.number, pos + 1

        if tok.type == TokenType.VARIABLE:
            if tok.value not in self.variables:
                raise EvalError(ErrorKind.UNDEFINED_VARIABLE, tok.pos, tok.value)
            return self.variables[tok.value], pos + 1

        if tok.type == TokenType.FUNCTION:
            if self.tokens[pos + 1].type != TokenType.LPAREN:
                raise EvalError(ErrorKind.EXPECTED_PARENTHESIS, tok.pos, tok.value)
            arg, end = self.expression(pos + 2)
            if self.tokens[end].type != TokenType.RPAREN:
                raise EvalError(ErrorKind.EXPECTED_CLOSING_PAREN, tok.pos)
            return self.apply_function(tok.value, arg, tok.pos), end + 1

        if tok.type == TokenType.LPAREN:
            inner, end = self.expression(pos + 1)
            if self.tokens[end].type != TokenType.RPAREN:
                raise EvalError(ErrorKind.UNMATCHED_PARENTHESIS, tok.pos)
            return inner, end + 1

        if tok.type == TokenType.EOF:
            raise EvalError(ErrorKind.UNEXPECTED_END, tok.pos)
        raise EvalError(ErrorKind.UNEXPECTED_TOKEN, tok.pos, tok.value)

    def apply_function(self, name: str, arg: Decimal, pos: int) -> Decimal:
        if name == 'sqrt':
            if arg < 0:
                raise EvalError(ErrorKind.NEGATIVE_SQRT, pos)
            # float approximation, re-rounded to the working precision
            root = math.sqrt(float(arg))
            if not math.isfinite(root):
                raise EvalError(ErrorKind.INVALID_NUMBER, pos)
            return self.context.create_decimal_from_float(root)
        if name == 'abs':
            return arg.copy_abs()
        if name == 'floor':
            return arg.quantize(Decimal(1), rounding=ROUND_FLOOR, context=EXACT)
        if name == 'ceil':
            return arg.quantize(Decimal(1), rounding=ROUND_CEILING, context=EXACT)
        if name == 'round':
            return arg.quantize(Decimal(1), rounding=ROUND_HALF_UP, context=EXACT)
        raise EvalError(ErrorKind.UNKNOWN_FUNCTION, pos, name)


def _decimal_error_kind(e: DecimalException) -> ErrorKind:
    if isinstance(e, Overflow):
        return ErrorKind.RESULT_TOO_LARGE
    if isinstance(e, DivisionByZero):
        return ErrorKind.DIVISION_BY_ZERO
    return ErrorKind.INVALID_NUMBER


# --------------------------
# Evaluator with variables and history
# --------------------------

class ExpressionEvaluator:
    """
    Evaluates expressions and keeps the state around them: custom variables,
    the last answer (`ans`) and a bounded history of committed expressions.

    `evaluate_quiet` is for live re-evaluation on every keystroke and never
    touches history; `evaluate` is for committed calculations and records them.
    Both update the last answer.
    """

    def __init__(self, decimal_precision: int = MIN_PRECISION):
        self.precision = max(decimal_precision, MIN_PRECISION)
        self.context = Context(prec=self.precision, rounding=ROUND_HALF_UP,
                               Emax=MAX_EMAX, Emin=MIN_EMIN)
        self.variables: Dict[str, Decimal] = {}
        self._history: List[str] = []
        self._last_answer = Decimal(0)

    def _compute(self, expr: Optional[str]) -> Decimal:
        if expr is None or not expr.strip():
            raise EvalError(ErrorKind.EMPTY_EXPRESSION, 0)
        tokens = tokenize(expr, self._last_answer)
        logger.debug(f"Tokens for {expr!r}: {tokens}")
        try:
            result = Parser(tokens, self.variables, self.context).parse()
        except DecimalException as e:
            logger.debug(f"Arithmetic failure in {expr!r}: {e!r}")
            raise EvalError(_decimal_error_kind(e), 0) from e
        self._last_answer = result
        logger.debug(f"{expr!r} = {result}")
        return result

    def evaluate_quiet(self, expr: str) -> Decimal:
        """Evaluate without adding to history (for live display)."""
        return self._compute(expr)

    def evaluate(self, expr: str) -> Decimal:
        """Evaluate and add the expression to history."""
        result = self._compute(expr)
        self.record(expr)
        return result

    def record(self, expr: str) -> None:
        """Append to history unless it repeats the newest entry; keep the newest 15."""
        if self._history and self._history[-1] == expr:
            return
        self._history.append(expr)
        del self._history[:-MAX_HISTORY]

    def set_variable(self, name: str, value: Union[str, Decimal, int]) -> Decimal:
        """Assign a variable. A string value is evaluated (and recorded) first."""
        if isinstance(value, str):
            value = self.evaluate(value)
        elif not isinstance(value, Decimal):
            value = Decimal(value)
        self.variables[name.lower()] = value
        return value

    def last_answer(self) -> Decimal:
        return self._last_answer

    def history(self) -> List[str]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()
        logger.info("Calculation history cleared")

    def reset(self) -> None:
        """Forget variables, history and the last answer."""
        self.variables.clear()
        self._history.clear()
        self._last_answer = Decimal(0)

    def describe_variables(self) -> str:
        if not self.variables:
            return "No variables defined"
        lines = [f"Variables ({len(self.variables)}):"]
        for name in sorted(self.variables):
            lines.append(f"  ${name} = {format_grouped(self.variables[name])}")
        return "\n".join(lines)
