"""Target variable resolution (the unidirectional rule).

A table-scope formula highlights exactly one variable per data column: the
variable its single condition is testing. Each side of the condition is
classified by the variables it references:

    CONSTANT   no variable           "312"
    SINGLE     one bare variable     "İletkenlik"
    MIXED      one variable plus     "Alkalinite + 3"
               arithmetic
    MULTIPLE   several variables     "Orto Fosfat - Alkalinite"

The target is the SINGLE side (the left one when both are SINGLE). Two
MULTIPLE sides, or two CONSTANT sides, leave nothing to highlight;
arithmetic around the only variable of a side hides which cell is being
tested and is rejected as well.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from labformula.core.config import Settings, settings as default_settings
from labformula.core.exceptions import (
    AmbiguousTargetError,
    ParseError,
    ScopeViolationError,
    VariableNotFoundError,
)
from labformula.core.logging import get_logger
from labformula.formula.normalizer import match_variable, normalize
from labformula.formula.parser import Condition, Expression, Variable
from labformula.schemas.formula import FormulaScope

logger = get_logger(__name__)


class SideKind(str, Enum):
    """Classification of one side of a condition."""

    CONSTANT = "constant"
    SINGLE = "single"
    MIXED = "mixed"
    MULTIPLE = "multiple"


def classify_side(expression: Expression) -> SideKind:
    """Classify a parsed side by its distinct variable references."""
    names = expression.variables
    if not names:
        return SideKind.CONSTANT
    if len(names) > 1:
        return SideKind.MULTIPLE
    if isinstance(expression, Variable):
        return SideKind.SINGLE
    return SideKind.MIXED


@dataclass(frozen=True)
class TargetResolution:
    """
    Result of resolving a formula against a table's variables.

    Attributes:
        target_variable: Table variable to highlight, or None when the
            formula (workspace scope) has no single target
        left_variables: Variables on the left sides, as written
        right_variables: Variables on the right sides, as written
        resolved: Name as written -> matching table variable
    """

    target_variable: str | None
    left_variables: list[str] = field(default_factory=list)
    right_variables: list[str] = field(default_factory=list)
    resolved: dict[str, str] = field(default_factory=dict)

    @property
    def variables(self) -> list[str]:
        """Every referenced table variable, left sides first."""
        names: list[str] = []
        for written in self.left_variables + self.right_variables:
            name = self.resolved.get(written, written)
            if name not in names:
                names.append(name)
        return names


def resolve_variables(
    names: Iterable[str],
    available: Sequence[str],
    settings: Settings | None = None,
) -> tuple[dict[str, str], list[str]]:
    """
    Match formula identifiers against the table's variables.

    Returns:
        Tuple of (name as written -> table variable, names without a match)
    """
    settings = settings or default_settings
    resolved: dict[str, str] = {}
    missing: list[str] = []
    for name in names:
        if name in resolved or name in missing:
            continue
        match = match_variable(
            name,
            available,
            threshold=settings.fuzzy_token_threshold,
            min_length=settings.fuzzy_min_token_length,
        )
        if match is None:
            missing.append(name)
        else:
            resolved[name] = match
            if match != name:
                logger.debug("Matched variable %r to %r", name, match)
    return resolved, missing


class TargetResolver:
    """Applies scope rules and picks the variable a formula highlights."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or default_settings

    def resolve(
        self,
        conditions: Sequence[Condition],
        available: Sequence[str],
        scope: FormulaScope | str = FormulaScope.TABLE,
        formula: str | None = None,
    ) -> TargetResolution:
        """
        Resolve the target variable of a parsed formula.

        Args:
            conditions: Parsed conditions
            available: Variable names present in the table
            scope: Formula scope
            formula: Original text, only used in error details

        Returns:
            TargetResolution

        Raises:
            ParseError: If there are no conditions or a side is malformed
            ScopeViolationError: If a table-scope formula breaks the unidirectional rule
            AmbiguousTargetError: If no single variable can be chosen
            VariableNotFoundError: If a referenced variable is not in the table
        """
        scope = FormulaScope(scope)
        if not conditions:
            raise ParseError("No valid conditions found in formula", formula=formula)

        if scope is FormulaScope.TABLE and len(conditions) > 1:
            raise ScopeViolationError(
                "Table-scope formulas support a single comparison; "
                f"found {len(conditions)} conditions joined with AND/OR",
                formula=formula,
            )

        sides = [(condition.left, condition.right) for condition in conditions]

        left_variables: list[str] = []
        right_variables: list[str] = []
        for left, right in sides:
            left_variables.extend(n for n in left.variables if n not in left_variables)
            right_variables.extend(n for n in right.variables if n not in right_variables)

        resolved, missing = resolve_variables(
            left_variables + right_variables, available, self.settings
        )
        if missing:
            raise VariableNotFoundError(missing, formula=formula, available=list(available))

        target: str | None = None
        if scope is FormulaScope.TABLE:
            target = self._choose_target(*sides[0], resolved, formula)
        elif len(sides) == 1:
            try:
                target = self._choose_target(*sides[0], resolved, formula)
            except (ScopeViolationError, AmbiguousTargetError):
                target = None

        return TargetResolution(
            target_variable=target,
            left_variables=left_variables,
            right_variables=right_variables,
            resolved=resolved,
        )

    def _choose_target(
        self,
        left: Expression,
        right: Expression,
        resolved: dict[str, str],
        formula: str | None,
    ) -> str:
        left_kind = classify_side(left)
        right_kind = classify_side(right)
        context = {
            "formula": formula,
            "left_variables": left.variables,
            "right_variables": right.variables,
        }

        if left_kind is SideKind.MULTIPLE and right_kind is SideKind.MULTIPLE:
            raise AmbiguousTargetError("Both sides contain multiple variables", **context)
        if left_kind is SideKind.CONSTANT and right_kind is SideKind.CONSTANT:
            raise AmbiguousTargetError("Formula contains no variables", **context)

        if left_kind is SideKind.SINGLE:
            target, other = left.variables[0], right
        elif right_kind is SideKind.SINGLE:
            target, other = right.variables[0], left
        elif SideKind.MIXED in (left_kind, right_kind):
            raise ScopeViolationError(
                "Arithmetic is not allowed on the single-variable side; "
                'write "Variable > Other + 3" instead of "Variable + 3 > Other"',
                **context,
            )
        else:
            raise ScopeViolationError(
                "One side of a table-scope formula must be a single variable", **context
            )

        table_name = resolved.get(target, target)
        others = {normalize(resolved.get(name, name)) for name in other.variables}
        if normalize(table_name) in others:
            raise ScopeViolationError(
                f"Variable '{target}' is used on both sides of the comparison", **context
            )
        return table_name


def resolve_target(
    conditions: Sequence[Condition],
    available: Sequence[str],
    scope: FormulaScope | str = FormulaScope.TABLE,
) -> TargetResolution:
    """Convenience function for TargetResolver.resolve()."""
    return TargetResolver().resolve(conditions, available, scope)
