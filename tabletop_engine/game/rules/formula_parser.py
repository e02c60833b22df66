# tabletop_engine/game/rules/formula_parser.py
"""
Whitelisted integer arithmetic for formula strings stored on effects.

Grammar:
    expr   := term (('+' | '-') term)*
    term   := factor (('*' | '/') factor)*
    factor := ('-' | '+') factor | INT | NAME | '(' expr ')'

Only one NAME is recognised (the variable given to evaluate_formula). Nothing is
ever passed to eval().
"""
import re
from typing import List, Optional, Tuple

from tabletop_engine.exceptions import FormulaError

_TOKEN_RE = re.compile(r'\s*(?:(\d+)|([A-Za-z_][A-Za-z0-9_]*)|(.))')

Token = Tuple[str, str]  # (kind, text); kind in {"int", "name", "op", "end"}


def tokenize(expression: str) -> List[Token]:
    tokens: List[Token] = []
    for match in _TOKEN_RE.finditer(expression.strip()):
        number, name, other = match.groups()
        if number is not None:
            tokens.append(("int", number))
        elif name is not None:
            tokens.append(("name", name))
        elif other is not None:
            if other not in "+-*/()":
                raise FormulaError(f"Unexpected character '{other}' in formula '{expression}'.")
            tokens.append(("op", other))
    tokens.append(("end", ""))
    return tokens


class _Parser:

    def __init__(self, expression: str, variable: str, value: Optional[int]):
        self.expression = expression
        self.variable = variable
        self.value = value
        self.tokens = tokenize(expression)
        self.pos = 0

    def peek(self) -> Token:
        return self.tokens[self.pos]

    def take(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def parse(self) -> int:
        result = self.expr()
        kind, text = self.peek()
        if kind != "end":
            raise FormulaError(f"Unexpected token '{text}' in formula '{self.expression}'.")
        return result

    def expr(self) -> int:
        result = self.term()
        while self.peek() in (("op", "+"), ("op", "-")):
            _, op = self.take()
            right = self.term()
            result = result + right if op == "+" else result - right
        return result

    def term(self) -> int:
        result = self.factor()
        while self.peek() in (("op", "*"), ("op", "/")):
            _, op = self.take()
            right = self.factor()
            if op == "*":
                result = result * right
            else:
                if right == 0:
                    raise FormulaError(f"Division by zero in formula '{self.expression}'.")
                # truncate toward zero
                quotient = abs(result) // abs(right)
                result = quotient if (result >= 0) == (right > 0) else -quotient
        return result

    def factor(self) -> int:
        kind, text = self.take()
        if kind == "op" and text in "+-":
            operand = self.factor()
            return -operand if text == "-" else operand
        if kind == "int":
            return int(text)
        if kind == "name":
            if text != self.variable:
                raise FormulaError(f"Unknown name '{text}' in formula '{self.expression}'. Only '{self.variable}' is allowed.")
            if self.value is None:
                raise FormulaError(f"No value supplied for '{self.variable}' in formula '{self.expression}'.")
            return self.value
        if kind == "op" and text == "(":
            result = self.expr()
            closing = self.take()
            if closing != ("op", ")"):
                raise FormulaError(f"Missing ')' in formula '{self.expression}'.")
            return result
        if kind == "end":
            raise FormulaError(f"Formula '{self.expression}' ends unexpectedly.")
        raise FormulaError(f"Unexpected token '{text}' in formula '{self.expression}'.")


def evaluate_formula(expression: str, variable: str = "stacks", value: Optional[int] = None) -> int:
    """
    Evaluates an arithmetic formula over integers and one named variable.

    >>> evaluate_formula("2 * stacks + 1", value=3)
    7

    Raises:
        FormulaError: On any token outside the whitelist, a malformed expression
                      or division by zero.
    """
    if not isinstance(expression, str) or not expression.strip():
        raise FormulaError("Formula must be a non-empty string.")
    return _Parser(expression, variable, value).parse()
