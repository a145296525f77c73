"""Formula service: the single entry point used by the surrounding application."""

from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Any, Optional

from labformula.core.config import Settings, settings as default_settings
from labformula.core.logging import LoggerMixin
from labformula.formula.cache import ParseCache
from labformula.formula.checks import PairCheck, evaluate_pair, loq_highlights
from labformula.formula.evaluator import ExpressionEvaluator
from labformula.formula.highlighter import HighlightAggregator
from labformula.formula.parser import Condition, FormulaParser, format_conditions
from labformula.formula.validator import FormulaValidator
from labformula.schemas.formula import (
    CheckResult,
    Formula,
    FormulaScope,
    FormulaSummary,
    HighlightedCell,
    TableData,
    ValidationResult,
)


def _as_formula(formula: Formula | dict[str, Any]) -> Formula:
    return formula if isinstance(formula, Formula) else Formula.model_validate(formula)


class FormulaService(LoggerMixin):
    """Service for validating formulas and highlighting table cells.

    Owns one ParseCache shared by every operation; call clear_cache() after
    formulas are edited in bulk.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or default_settings
        self.cache = ParseCache(self.settings.parse_cache_size)
        evaluator = ExpressionEvaluator(self.settings)
        self.parser = FormulaParser(self.cache)
        self.aggregator = HighlightAggregator(self.settings, self.cache, evaluator)
        self.validator = FormulaValidator(self.settings, self.cache, evaluator)

    # ==========================================================================
    # Highlighting
    # ==========================================================================

    def applicable_formulas(
        self,
        formulas: Iterable[Formula | dict[str, Any]],
        table_id: Optional[str] = None,
    ) -> list[Formula]:
        """Active formulas that apply to a table.

        Workspace formulas apply to every table. Table formulas apply only to
        their own table, except formulas saved without a table id, which
        apply everywhere. Without a table_id every active formula applies.
        """
        applicable = []
        for formula in map(_as_formula, formulas):
            if not formula.active:
                continue
            if (
                table_id is not None
                and formula.scope is FormulaScope.TABLE
                and formula.table_id is not None
                and formula.table_id != table_id
            ):
                continue
            applicable.append(formula)
        return applicable

    def highlight_cells(
        self,
        formulas: Iterable[Formula | dict[str, Any]],
        table: TableData | dict[str, Any],
        table_id: Optional[str] = None,
    ) -> list[HighlightedCell]:
        """Apply formulas to table data and return highlighted cells.

        Args:
            formulas: Formulas defined for the workspace
            table: Table payload with a Variable column
            table_id: Table being displayed, used for scope filtering

        Returns:
            Highlighted cells, one per (row, column)
        """
        applicable = self.applicable_formulas(formulas, table_id)
        self.logger.debug(
            "Highlighting table",
            extra={"table_id": table_id, "formulas": len(applicable)},
        )
        return self.aggregator.evaluate(applicable, table)

    def check_loq(self, table: TableData | dict[str, Any]) -> list[HighlightedCell]:
        """Highlight values below the limit of quantification of their row."""
        cells = loq_highlights(table, self.settings)
        self.logger.debug("LOQ check", extra={"cells": len(cells)})
        return cells

    def check_pair(
        self, check: PairCheck | str, first: Any, second: Any
    ) -> Optional[CheckResult]:
        """Run a built-in pair check such as total vs component."""
        return evaluate_pair(check, first, second)

    # ==========================================================================
    # Validation
    # ==========================================================================

    def validate_formula(
        self,
        text: str,
        available_variables: Sequence[str],
        scope: FormulaScope | str = FormulaScope.TABLE,
        table_id: Optional[str] = None,
    ) -> ValidationResult:
        """Validate a formula against the variables of a table."""
        return self.validator.validate(text, available_variables, scope, table_id)

    def validate_scope_constraints(
        self,
        formula: Formula | dict[str, Any],
        available_tables: Sequence[str],
    ) -> ValidationResult:
        """Check that a formula's table link matches its scope.

        Args:
            formula: Formula to check
            available_tables: Table IDs present in the workspace

        Returns:
            ValidationResult
        """
        formula = _as_formula(formula)

        if formula.scope is FormulaScope.WORKSPACE:
            if formula.table_id:
                return ValidationResult(
                    is_valid=False,
                    error="Workspace-scope formulas cannot be linked to a table",
                )
            return ValidationResult(is_valid=True)

        if not formula.table_id:
            return ValidationResult(
                is_valid=False,
                error="Table-scope formulas must be linked to a table",
            )
        if formula.table_id not in available_tables:
            return ValidationResult(
                is_valid=False,
                error=f"Table '{formula.table_id}' was not found in the workspace",
            )
        return ValidationResult(is_valid=True)

    # ==========================================================================
    # Reporting
    # ==========================================================================

    def summarize(self, formulas: Iterable[Formula | dict[str, Any]]) -> FormulaSummary:
        """Generate formula counts for reports."""
        formulas = [_as_formula(f) for f in formulas]
        by_type = Counter(f.type.value for f in formulas)
        return FormulaSummary(
            total_formulas=len(formulas),
            active_formulas=sum(1 for f in formulas if f.active),
            table_formulas=sum(1 for f in formulas if f.scope is FormulaScope.TABLE),
            workspace_formulas=sum(1 for f in formulas if f.scope is FormulaScope.WORKSPACE),
            formulas_by_type=dict(by_type),
        )

    def format_formula(self, conditions: Sequence[Condition]) -> str:
        """Formula text for conditions, readable back by the parser."""
        return format_conditions(conditions)

    def extract_variables(self, text: str) -> list[str]:
        """Distinct variable names referenced by a formula."""
        return self.parser.get_variables(text)

    def clear_cache(self) -> None:
        """Drop every cached parse."""
        self.cache.clear()
        self.logger.debug("Parse cache cleared")
