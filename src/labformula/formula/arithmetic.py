"""Restricted arithmetic evaluation for substituted expressions.

Parses with the closed grammar in grammar.py and folds the tree into a
float. There is no route from here into Python's own eval.
"""

import math

from lark import Lark, Transformer, v_args
from lark.exceptions import LarkError, VisitError

from labformula.core.exceptions import EvaluationError
from labformula.formula.grammar import ARITHMETIC_GRAMMAR


class ArithmeticTransformer(Transformer):
    """Fold an arithmetic parse tree into a float."""

    @v_args(inline=True)
    def number(self, token):
        return float(token)

    @v_args(inline=True)
    def add(self, left, right):
        return left + right

    @v_args(inline=True)
    def sub(self, left, right):
        return left - right

    @v_args(inline=True)
    def mul(self, left, right):
        return left * right

    @v_args(inline=True)
    def div(self, left, right):
        if right == 0:
            raise ZeroDivisionError("division by zero")
        return left / right

    @v_args(inline=True)
    def neg(self, operand):
        return -operand

    @v_args(inline=True)
    def pos(self, operand):
        return operand


class ArithmeticEvaluator:
    """
    Evaluator for purely numeric expressions.

    The LALR parser is built once per instance and is stateless between
    calls, so one instance can be shared.
    """

    def __init__(self):
        self._parser = Lark(ARITHMETIC_GRAMMAR, parser="lalr")
        self._transformer = ArithmeticTransformer()

    def evaluate(self, text: str) -> float:
        """
        Evaluate an arithmetic expression.

        Args:
            text: Expression containing only numbers, + - * / and parentheses

        Returns:
            Finite float result

        Raises:
            EvaluationError: If the expression is malformed, divides by zero
                or produces a non-finite result
        """
        try:
            tree = self._parser.parse(text)
        except LarkError as e:
            raise EvaluationError(f"Invalid arithmetic expression: {text}", substituted=text) from e

        try:
            value = self._transformer.transform(tree)
        except VisitError as e:
            if isinstance(e.orig_exc, ZeroDivisionError):
                raise EvaluationError(
                    f"Division by zero in expression: {text}", substituted=text
                ) from e
            raise EvaluationError(f"Cannot evaluate expression: {text}", substituted=text) from e

        if not isinstance(value, float) or not math.isfinite(value):
            raise EvaluationError(
                f"Expression did not evaluate to a finite number: {text}", substituted=text
            )
        return value


_default_evaluator: ArithmeticEvaluator | None = None


def get_arithmetic_evaluator() -> ArithmeticEvaluator:
    """Lazily build the shared ArithmeticEvaluator."""
    global _default_evaluator
    if _default_evaluator is None:
        _default_evaluator = ArithmeticEvaluator()
    return _default_evaluator


def evaluate_arithmetic(text: str) -> float:
    """Evaluate with the shared ArithmeticEvaluator."""
    return get_arithmetic_evaluator().evaluate(text)
