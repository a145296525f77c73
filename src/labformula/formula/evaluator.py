"""Expression and condition evaluator for labformula.

Evaluates the sides of parsed conditions against a variable binding table
(variable name -> number for one data column) and folds the condition
outcomes of a formula strictly left to right.
"""

import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from labformula.core.config import Settings, settings as default_settings
from labformula.core.exceptions import EvaluationError, VariableNotFoundError
from labformula.core.logging import get_logger
from labformula.formula.arithmetic import ArithmeticEvaluator, get_arithmetic_evaluator
from labformula.formula.normalizer import normalize
from labformula.formula.parser import (
    Condition,
    collapse_whitespace,
    has_arithmetic,
    is_number,
    parse_formula,
    strip_brackets,
    strip_enclosing_parentheses,
)

logger = get_logger(__name__)

_BRACKET_REFERENCE = re.compile(r"\[([^\]]+)\]")
# A name between operators: a letter followed by word characters, possibly
# several space-separated words
_IDENTIFIER_SPAN = re.compile(r"[^\W\d]\w*(?:[ \t]+\w+)*")
_SYMBOL = re.compile(r"[^\w\s]")
_ALLOWED_ARITHMETIC = re.compile(r"^[-+*/()\d.\s]+$")
_DISALLOWED_CHARACTER = re.compile(r"[^-+*/()\d.\s]")
_EMPTY_GROUPS = ("()", "(-)", "(+)")


@dataclass(frozen=True)
class ConditionResult:
    """Both evaluated sides of a condition and whether it holds."""

    left: float
    right: float
    holds: bool
    missing_variables: tuple[str, ...] = ()


@dataclass
class FormulaEvaluation:
    """Outcome of evaluating every condition of one formula."""

    is_valid: bool
    result: bool
    message: str
    condition_results: list[ConditionResult] = field(default_factory=list)
    left_result: float | None = None
    right_result: float | None = None
    missing_variables: list[str] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [
            f"Variable '{name}' not found in data, substituted with 0"
            for name in self.missing_variables
        ]


def format_number(value: float) -> str:
    """Render a float in positional notation (never 1e-05 style)."""
    text = format(Decimal(repr(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def compare(left: float, operator: str, right: float, epsilon: float = 1e-10) -> bool:
    """
    Apply a comparison operator.

    == and != tolerate floating point noise up to epsilon; the ordering
    operators compare exactly.
    """
    if operator == ">":
        return left > right
    if operator == "<":
        return left < right
    if operator == ">=":
        return left >= right
    if operator == "<=":
        return left <= right
    if operator in ("==", "="):
        return abs(left - right) < epsilon
    if operator == "!=":
        return abs(left - right) >= epsilon
    raise ValueError(f"Unknown comparison operator: {operator}")


def combine(conditions: Sequence[Condition], outcomes: Sequence[bool]) -> bool:
    """
    Fold condition outcomes in source order.

    The logical operator of condition i joins it to condition i + 1. There
    is no precedence: AND does not bind tighter than OR.
    """
    if len(conditions) != len(outcomes):
        raise ValueError("Each condition needs exactly one outcome")
    if not outcomes:
        return False

    result = outcomes[0]
    for index in range(1, len(outcomes)):
        logical = conditions[index - 1].logical_operator
        if logical == "AND":
            result = result and outcomes[index]
        elif logical == "OR":
            result = result or outcomes[index]
        else:
            raise ValueError(f"Condition {index - 1} is not joined to the next one")
    return result


class ExpressionEvaluator:
    """
    Evaluates condition sides against variable bindings.

    A side is one of:
    - a number ("312")
    - a single variable ("İletkenlik"), looked up exact, then
      case-insensitively, then by normalized name
    - arithmetic over variables and numbers ("(Orto Fosfat - Alkalinite) * 2")

    In arithmetic, a name missing from the bindings is replaced by 0 and
    reported through the ``missing`` list and a warning log rather than
    failing the whole expression.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        arithmetic: ArithmeticEvaluator | None = None,
    ):
        self.settings = settings or default_settings
        self._arithmetic = arithmetic or get_arithmetic_evaluator()

    # ==========================================================================
    # Expressions
    # ==========================================================================

    def evaluate(
        self,
        expression: str,
        bindings: Mapping[str, float],
        missing: list[str] | None = None,
    ) -> float:
        """
        Evaluate one side of a condition.

        Args:
            expression: Side text
            bindings: Variable values for one data column
            missing: Optional list receiving names substituted with 0

        Returns:
            Finite float value

        Raises:
            VariableNotFoundError: If a single-variable side is not bound
            EvaluationError: If the side cannot be reduced to a finite number
        """
        body = strip_enclosing_parentheses(str(expression))
        if not body:
            raise EvaluationError("Empty expression", expression=expression)

        if is_number(body):
            return float(body)

        if not has_arithmetic(body):
            return self.lookup(strip_brackets(body), bindings)

        if missing is None:
            missing = []
        substituted = self.substitute(body, bindings, missing)
        return self._evaluate_arithmetic(expression, substituted)

    def lookup(self, name: str, bindings: Mapping[str, float]) -> float:
        """Value of a single variable; raises VariableNotFoundError on a miss."""
        value = self._find(collapse_whitespace(name), bindings)
        if value is None:
            raise VariableNotFoundError(name)
        if not math.isfinite(value):
            raise EvaluationError(f"Variable '{name}' has no numeric value", expression=name)
        return value

    def substitute(
        self,
        expression: str,
        bindings: Mapping[str, float],
        missing: list[str],
    ) -> str:
        """
        Replace variable names in arithmetic with their values.

        Bracketed references go first. Bound names holding characters other
        than letters, digits and spaces ("Debi (m3)") are replaced next,
        longest first. Every remaining identifier span, a run of
        space-separated words between operators, is then resolved as one
        name, so "Toplam Fosfor" never picks up the value of "Fosfor". A
        span without a value becomes 0 and is appended to missing.
        """

        def replace_bracket(match: re.Match) -> str:
            name = collapse_whitespace(match.group(1))
            value = self._find(name, bindings)
            if value is None:
                self._record_missing(name, expression, missing)
                return "0"
            return format_number(value)

        text = _BRACKET_REFERENCE.sub(replace_bracket, expression)

        symbolic = [name for name in bindings if _SYMBOL.search(name)]
        for name in sorted(symbolic, key=len, reverse=True):
            if name.lower() not in text.lower():
                continue
            pattern = re.compile(
                rf"(?<![\w.])(?<!\w[ \t]){re.escape(name)}(?![\w.])(?![ \t]\w)",
                re.IGNORECASE,
            )
            replacement = format_number(bindings[name])
            text = pattern.sub(lambda _: replacement, text)

        def replace_span(match: re.Match) -> str:
            name = collapse_whitespace(match.group(0))
            value = self._find(name, bindings)
            if value is not None:
                return format_number(value)
            self._record_missing(name, expression, missing)
            return "0"

        text = _IDENTIFIER_SPAN.sub(replace_span, text)
        return collapse_whitespace(text)

    def _find(self, name: str, bindings: Mapping[str, float]) -> float | None:
        if name in bindings:
            return bindings[name]

        lowered = name.lower()
        for key, value in bindings.items():
            if key.lower() == lowered:
                return value

        normalized = normalize(name)
        for key, value in bindings.items():
            if normalize(key) == normalized:
                return value
        return None

    def _record_missing(self, name: str, expression: str, missing: list[str]) -> None:
        if name not in missing:
            missing.append(name)
        logger.warning(
            "Variable not found in data, substituted with 0",
            extra={"variable": name, "expression": expression},
        )

    def _evaluate_arithmetic(self, expression: str, substituted: str) -> float:
        if not substituted:
            raise EvaluationError(
                "Empty expression after variable replacement", expression=expression
            )

        if not _ALLOWED_ARITHMETIC.match(substituted):
            invalid = sorted(set(_DISALLOWED_CHARACTER.findall(substituted)))
            raise EvaluationError(
                f"Invalid characters in expression: {', '.join(invalid)}",
                expression=expression,
                substituted=substituted,
            )

        compact = re.sub(r"\s+", "", substituted)
        if any(group in compact for group in _EMPTY_GROUPS):
            raise EvaluationError(
                "Expression contains empty or invalid parentheses",
                expression=expression,
                substituted=substituted,
            )

        try:
            return self._arithmetic.evaluate(substituted)
        except EvaluationError as e:
            e.details["expression"] = expression
            raise

    # ==========================================================================
    # Conditions
    # ==========================================================================

    def evaluate_condition(
        self,
        condition: Condition,
        bindings: Mapping[str, float],
    ) -> ConditionResult:
        """Evaluate both sides of a condition and apply its comparator."""
        missing: list[str] = []
        left = self.evaluate(condition.left_expression, bindings, missing)
        right = self.evaluate(condition.right_expression, bindings, missing)
        holds = compare(left, condition.operator, right, self.settings.comparison_epsilon)

        logger.debug(
            "Condition evaluated",
            extra={"condition": str(condition), "left": left, "right": right, "holds": holds},
        )
        return ConditionResult(left=left, right=right, holds=holds, missing_variables=tuple(missing))

    def evaluate_conditions(
        self,
        conditions: Sequence[Condition],
        bindings: Mapping[str, float],
    ) -> FormulaEvaluation:
        """
        Evaluate every condition and fold the outcomes.

        An empty condition list is reported as an invalid formula. Errors
        from individual conditions propagate to the caller.
        """
        if not conditions:
            return FormulaEvaluation(
                is_valid=False,
                result=False,
                message="No valid conditions found in formula",
            )

        results = [self.evaluate_condition(condition, bindings) for condition in conditions]
        result = combine(conditions, [r.holds for r in results])

        missing: list[str] = []
        for condition_result in results:
            missing.extend(n for n in condition_result.missing_variables if n not in missing)

        return FormulaEvaluation(
            is_valid=True,
            result=result,
            message="Condition met" if result else "Condition not met",
            condition_results=results,
            left_result=results[0].left,
            right_result=results[0].right,
            missing_variables=missing,
        )

    def evaluate_formula(
        self,
        formula: str | Sequence[Condition],
        bindings: Mapping[str, float],
    ) -> FormulaEvaluation:
        """Parse (when given text) and evaluate a whole formula."""
        conditions = parse_formula(formula) if isinstance(formula, str) else formula
        return self.evaluate_conditions(conditions, bindings)


def evaluate_expression(expression: str, bindings: Mapping[str, float]) -> float:
    """
    Convenience function to evaluate a single side.

    Args:
        expression: Side text
        bindings: Variable values

    Returns:
        Evaluation result
    """
    return ExpressionEvaluator().evaluate(expression, bindings)


def evaluate_formula(formula: str, bindings: Mapping[str, float]) -> FormulaEvaluation:
    """Convenience function to evaluate formula text against bindings."""
    return ExpressionEvaluator().evaluate_formula(formula, bindings)
