"""Formula parser for labformula.

Splits formula text into an ordered list of conditions joined by AND/OR
and classifies each side of a condition as a constant, a single variable
or an arithmetic combination.

There is no formal grammar at this level. Variable names may contain
spaces and non-ASCII letters ("Toplam Fosfor", "İletkenlik"), so
conditions are cut with regular expressions and only the arithmetic that
remains after variable substitution goes through the lark grammar.

AND and OR have no relative precedence: "A > 1 OR B > 1 AND C > 1" is
read strictly left to right as ((A > 1 OR B > 1) AND C > 1).
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from labformula.core.exceptions import ParseError
from labformula.core.logging import get_logger

if TYPE_CHECKING:
    from labformula.formula.cache import ParseCache

logger = get_logger(__name__)

COMPARISON_OPERATORS = (">=", "<=", "==", "!=", ">", "<")
LOGICAL_OPERATORS = ("AND", "OR")

_BRACKET_REFERENCE = re.compile(r"\[([^\]]+)\]")
_LOGICAL_SPLIT = re.compile(r"\s+(AND|OR)\s+", re.IGNORECASE)
# Lazy left side: the first comparison operator in the clause wins
_COMPARISON = re.compile(r"^(.*?)\s*(>=|<=|==|!=|>|<|=)\s*(.*)$", re.DOTALL)
_NUMBER = re.compile(r"^-?(\d+\.?\d*|\.\d+)$")
_ARITHMETIC = re.compile(r"[+\-*/]")
_OPERATOR_SPLIT = re.compile(r"([+\-*/])")
_OPERATOR_SPACING = re.compile(r"\s*([+\-*/])\s*")
_WHITESPACE = re.compile(r"\s+")


# AST Node types
@dataclass(frozen=True)
class Constant:
    value: float

    @property
    def variables(self) -> list[str]:
        return []


@dataclass(frozen=True)
class Variable:
    name: str

    @property
    def variables(self) -> list[str]:
        return [self.name]


@dataclass(frozen=True)
class Combination:
    """Flattened arithmetic: terms interleaved with operators."""

    terms: tuple[Constant | Variable, ...]
    operators: tuple[str, ...]

    def __post_init__(self):
        if len(self.terms) != len(self.operators) + 1:
            raise ValueError("Combination needs exactly one more term than operators")

    @property
    def variables(self) -> list[str]:
        names: list[str] = []
        for term in self.terms:
            if isinstance(term, Variable) and term.name not in names:
                names.append(term.name)
        return names


Expression = Constant | Variable | Combination


@dataclass(frozen=True)
class Condition:
    """
    One comparison of a formula.

    logical_operator joins this condition to the next one and is None on
    the last condition.
    """

    left_expression: str
    operator: str
    right_expression: str
    logical_operator: str | None = None

    @property
    def left(self) -> Expression:
        return parse_expression(self.left_expression)

    @property
    def right(self) -> Expression:
        return parse_expression(self.right_expression)

    @property
    def variables(self) -> list[str]:
        names = list(self.left.variables)
        names.extend(name for name in self.right.variables if name not in names)
        return names

    def __str__(self) -> str:
        return f"{self.left_expression} {self.operator} {self.right_expression}"


# =============================================================================
# Text helpers
# =============================================================================


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def strip_brackets(text: str) -> str:
    """Turn [Variable Name] references into plain Variable Name."""
    return _BRACKET_REFERENCE.sub(r"\1", text)


def is_enclosed(text: str) -> bool:
    """True when the first '(' is closed by the last character of text."""
    if not (text.startswith("(") and text.endswith(")")):
        return False
    depth = 0
    for index, char in enumerate(text):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index == len(text) - 1
    return False


def strip_enclosing_parentheses(text: str) -> str:
    """Remove one level of parentheses wrapping the whole text."""
    text = text.strip()
    if is_enclosed(text):
        return text[1:-1].strip()
    return text


def is_number(text: str) -> bool:
    return bool(_NUMBER.match(text.strip()))


def has_arithmetic(text: str) -> bool:
    return bool(_ARITHMETIC.search(text))


def _prepare_side(text: str) -> str:
    if is_number(text):
        return text
    if not has_arithmetic(text):
        return collapse_whitespace(text)

    spaced = collapse_whitespace(_OPERATOR_SPACING.sub(r" \1 ", text))
    spaced = re.sub(r"\(\s+", "(", spaced)
    spaced = re.sub(r"\s+\)", ")", spaced)
    if not is_enclosed(spaced):
        spaced = f"({spaced})"
    return spaced


def _strip_group_parentheses(piece: str) -> str:
    # A name never starts with "(", but it may end with a balanced ")" as in "Debi (m3)"
    piece = piece.strip().lstrip("(").strip()
    while piece.endswith(")") and piece.count(")") > piece.count("("):
        piece = piece[:-1].rstrip()
    return piece


def _make_term(piece: str, sign: str) -> Constant | Variable:
    if is_number(piece):
        return Constant(float(sign + piece))
    return Variable(collapse_whitespace(piece))


# =============================================================================
# Parsing
# =============================================================================


def parse_expression(text: str) -> Expression:
    """
    Classify one side of a condition.

    Args:
        text: Side text, e.g. "312", "İletkenlik" or "(Orto Fosfat - Alkalinite)"

    Returns:
        Constant, Variable or Combination

    Raises:
        ParseError: If the side is empty or its operators do not alternate with terms
    """
    body = strip_enclosing_parentheses(strip_brackets(text))
    if not body:
        raise ParseError("Empty expression", formula=text)

    if is_number(body):
        return Constant(float(body))

    if not has_arithmetic(body):
        return Variable(collapse_whitespace(body))

    terms: list[Constant | Variable] = []
    operators: list[str] = []
    sign = ""
    expect_term = True

    for index, token in enumerate(_OPERATOR_SPLIT.split(body)):
        if index % 2 == 1:
            if not expect_term:
                operators.append(token)
                expect_term = True
            elif token in "+-":
                # Unary sign folds into the next term
                sign = "-" if (sign == "-") != (token == "-") else ""
            else:
                raise ParseError(f"Unexpected operator '{token}' in expression", formula=text)
            continue

        piece = _strip_group_parentheses(token)
        if not piece:
            continue
        terms.append(_make_term(piece, sign))
        sign = ""
        expect_term = False

    if expect_term:
        raise ParseError("Expression ends with an operator", formula=text)

    return Combination(tuple(terms), tuple(operators))


def split_clauses(text: str) -> list[tuple[str, str | None]]:
    """
    Split formula text into (clause, following logical operator) pairs.

    A dangling AND/OR at either end yields an empty clause, so "A > 10 AND"
    is two clauses, the second one empty.
    """
    cleaned = strip_brackets(text.strip())
    if not cleaned:
        return []
    # Padding lets a leading or trailing operator match the split pattern
    parts = _LOGICAL_SPLIT.split(f" {cleaned} ")
    clauses = []
    for index in range(0, len(parts), 2):
        logical = parts[index + 1].upper() if index + 1 < len(parts) else None
        clauses.append((parts[index].strip(), logical))
    return clauses


def count_clauses(text: str) -> int:
    """Number of AND/OR separated clauses, parsable or not."""
    return len(split_clauses(text or ""))


def parse_formula(text: str) -> list[Condition]:
    """
    Parse formula text into conditions.

    A lone "=" is read as "==". Clauses with an empty side (">10", "A >",
    "<") are skipped, so a formula made only of such clauses parses to an
    empty list, which callers treat as an invalid formula.

    Args:
        text: Formula text, e.g. "[İletkenlik] > 312 AND pH < 7"

    Returns:
        Ordered list of conditions
    """
    conditions: list[Condition] = []

    for clause, logical in split_clauses(text or ""):
        match = _COMPARISON.match(clause)
        if not match:
            logger.debug("Clause has no comparison operator: %r", clause)
            continue

        left, operator, right = (group.strip() for group in match.groups())
        if not left or not right:
            logger.debug("Clause has an empty side: %r", clause)
            continue

        if operator == "=":
            operator = "=="

        conditions.append(
            Condition(
                left_expression=_prepare_side(left),
                operator=operator,
                right_expression=_prepare_side(right),
                logical_operator=logical,
            )
        )

    if conditions and conditions[-1].logical_operator is not None:
        conditions[-1] = replace(conditions[-1], logical_operator=None)

    return conditions


def _format_side(text: str) -> str:
    expression = parse_expression(text)
    if isinstance(expression, Variable):
        return f"[{expression.name}]"
    return text


def format_conditions(conditions: Sequence[Condition]) -> str:
    """
    Build formula text from conditions.

    Single variables are written as [Name] references and combinations keep
    their parenthesized text, so parse_formula() reads the result back into
    the same conditions. A missing operator between two conditions is
    written as AND.
    """
    parts: list[str] = []
    for index, condition in enumerate(conditions):
        if index > 0:
            parts.append(conditions[index - 1].logical_operator or "AND")
        parts.append(
            f"{_format_side(condition.left_expression)} {condition.operator} "
            f"{_format_side(condition.right_expression)}"
        )
    return " ".join(parts)


def extract_variables(text: str) -> list[str]:
    """Distinct variable names referenced by a formula, in order of appearance."""
    names: list[str] = []
    for condition in parse_formula(text):
        names.extend(name for name in condition.variables if name not in names)
    return names


class FormulaParser:
    """
    Parser for condition formulas.

    Goes through a caller-owned ParseCache when one is given; conditions
    are immutable so cached lists can be handed out freely.
    """

    def __init__(self, cache: "ParseCache | None" = None):
        self._cache = cache

    @property
    def cache(self) -> "ParseCache | None":
        return self._cache

    def parse(self, formula: str) -> list[Condition]:
        """
        Parse a formula string into conditions.

        Args:
            formula: Formula string to parse

        Returns:
            Ordered list of conditions (empty for an unparsable formula)
        """
        if self._cache is not None:
            cached = self._cache.get(formula)
            if cached is not None:
                return list(cached)

        conditions = parse_formula(formula)

        if self._cache is not None:
            self._cache.put(formula, tuple(conditions))
        return conditions

    def validate(self, formula: str) -> tuple[bool, str | None]:
        """
        Validate formula syntax.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not formula or not formula.strip():
            return False, "Formula cannot be empty"

        conditions = self.parse(formula)
        if not conditions:
            return False, "No valid conditions found in formula"

        if len(conditions) != count_clauses(formula):
            return False, "Formula contains a condition with a missing side or operator"

        try:
            for condition in conditions:
                parse_expression(condition.left_expression)
                parse_expression(condition.right_expression)
        except ParseError as e:
            return False, e.message
        return True, None

    def get_variables(self, formula: str) -> list[str]:
        """Distinct variable names referenced by a formula."""
        names: list[str] = []
        for condition in self.parse(formula):
            names.extend(name for name in condition.variables if name not in names)
        return names
