"""
calculation/expression.py

Arithmetic for ``custom`` formulas.

A custom expression is a template such as
``"({carbon.scope1} + {carbon.scope2}) / {financials.revenue} * 10000"``.
Placeholders are replaced by accessor values, the resulting text is checked
against a strict character whitelist and then evaluated by a small
recursive-descent parser. Nothing here hands text to the interpreter.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable
from decimal import Decimal

from calculation.errors import ExpressionError

PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")
_ALLOWED_RE = re.compile(r"^[0-9+\-*/(). ]*$")
_TOKEN_RE = re.compile(r"\s*(?:(\d+(?:\.\d*)?|\.\d+)|(.))")

MAX_NESTING = 100


def substitute_placeholders(
    template: str,
    resolve: Callable[[str], float],
) -> tuple[str, dict[str, float]]:
    """
    Replace every ``{name}`` in *template* with ``resolve(name)``.

    Returns the substituted text and the resolved values keyed by name.
    Exceptions raised by *resolve* propagate unchanged.
    """

    variables: dict[str, float] = {}

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1).strip()
        if name not in variables:
            variables[name] = resolve(name)
        return format_number(variables[name])

    return PLACEHOLDER_RE.sub(_replace, template), variables


def format_number(value: float) -> str:
    """
    Render *value* as plain decimal text the parser accepts.

    No exponent notation; negatives are parenthesized so that ``a - {x}``
    stays well formed.
    """

    number = float(value)
    if not math.isfinite(number):
        raise ExpressionError(f"non-finite value in expression: {value}")
    text = format(Decimal(repr(number)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text.startswith("-"):
        return f"({text})"
    return text


def evaluate_expression(text: str) -> float:
    """
    Evaluate an arithmetic expression over ``+ - * /`` and parentheses.

    Raises
    ------
    ExpressionError
        On a disallowed character, a syntax error or a division by zero.
    """

    if not _ALLOWED_RE.match(text):
        raise ExpressionError("expression contains disallowed characters")
    tokens = _tokenize(text)
    if not tokens:
        raise ExpressionError("expression is empty")
    return _Parser(tokens).parse()


def _tokenize(text: str) -> list[str]:
    tokens: list[str] = []
    for match in _TOKEN_RE.finditer(text):
        number, symbol = match.groups()
        if number is not None:
            tokens.append(number)
        elif symbol is not None and not symbol.isspace():
            tokens.append(symbol)
    return tokens


class _Parser:
    """
    Grammar::

        expr    := term (("+" | "-") term)*
        term    := unary (("*" | "/") unary)*
        unary   := ("+" | "-")* primary
        primary := NUMBER | "(" expr ")"
    """

    def __init__(self, tokens: list[str]) -> None:
        self._tokens = tokens
        self._pos = 0
        self._depth = 0

    def parse(self) -> float:
        value = self._expr()
        if self._pos != len(self._tokens):
            raise ExpressionError(f"unexpected token {self._tokens[self._pos]!r}")
        return value

    def _peek(self) -> str | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> str:
        token = self._peek()
        if token is None:
            raise ExpressionError("unexpected end of expression")
        self._pos += 1
        return token

    def _expr(self) -> float:
        value = self._term()
        while self._peek() in ("+", "-"):
            if self._next() == "+":
                value += self._term()
            else:
                value -= self._term()
        return value

    def _term(self) -> float:
        value = self._unary()
        while self._peek() in ("*", "/"):
            operator = self._next()
            operand = self._unary()
            if operator == "*":
                value *= operand
            elif operand == 0:
                raise ExpressionError("division by zero in expression")
            else:
                value /= operand
        return value

    def _unary(self) -> float:
        sign = 1.0
        while self._peek() in ("+", "-"):
            if self._next() == "-":
                sign = -sign
        return sign * self._primary()

    def _primary(self) -> float:
        token = self._next()
        if token == "(":
            self._depth += 1
            if self._depth > MAX_NESTING:
                raise ExpressionError("expression nested too deeply")
            value = self._expr()
            self._depth -= 1
            if self._next() != ")":
                raise ExpressionError("expected ')'")
            return value
        try:
            return float(token)
        except ValueError:
            raise ExpressionError(f"unexpected token {token!r}") from None
