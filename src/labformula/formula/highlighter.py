"""Highlight aggregation for labformula.

Runs every active formula against every data column of a table and merges
the results into one HighlightedCell per (row, column). A cell touched by
several formulas keeps the first formula's color and lists every
contributor in formula_details, in evaluation order; drawing several
colors in one cell is up to the renderer.

Row ids are always f"{row_id_prefix}{index + row_id_base}" with the
zero-based position of the row in the table payload, so "row-1" is the
first data row with the default settings.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from labformula.core.config import Settings, settings as default_settings
from labformula.core.exceptions import EvaluationError, FormulaError, VariableNotFoundError
from labformula.core.logging import get_logger
from labformula.formula.cache import ParseCache
from labformula.formula.evaluator import ExpressionEvaluator, FormulaEvaluation
from labformula.formula.parser import Condition, FormulaParser
from labformula.formula.targets import TargetResolution, TargetResolver
from labformula.formula.variables import ColumnBindings, TableVariables, format_row_id
from labformula.schemas.formula import (
    Formula,
    FormulaDetail,
    HighlightedCell,
    TableData,
)

logger = get_logger(__name__)


def bind_aliases(bindings: dict[str, float], resolved: dict[str, str]) -> dict[str, float]:
    """Also bind names written in a formula that matched a table variable fuzzily."""
    aliases = {
        written: bindings[name]
        for written, name in resolved.items()
        if written != name and name in bindings and written not in bindings
    }
    if not aliases:
        return bindings
    return {**bindings, **aliases}


@dataclass(frozen=True)
class _PreparedFormula:
    formula: Formula
    conditions: list[Condition]
    resolution: TargetResolution


class HighlightAggregator:
    """
    Produces the highlighted cells of a table.

    Work per call is linear in formulas x data columns x rows: each formula
    is parsed and resolved once per table, each column's bindings are
    built once and shared by every formula.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        cache: ParseCache | None = None,
        evaluator: ExpressionEvaluator | None = None,
    ):
        self.settings = settings or default_settings
        self.parser = FormulaParser(cache)
        self.evaluator = evaluator or ExpressionEvaluator(self.settings)
        self.resolver = TargetResolver(self.settings)

    def row_id(self, index: int) -> str:
        """Canonical id of the row at a zero-based index."""
        return format_row_id(index, self.settings)

    def evaluate(
        self,
        formulas: Iterable[Formula | dict[str, Any]],
        table: TableData | dict[str, Any],
    ) -> list[HighlightedCell]:
        """
        Evaluate formulas against a table.

        Args:
            formulas: Formulas to apply; inactive ones are ignored
            table: Table payload with a Variable column

        Returns:
            Highlighted cells in order of first creation
        """
        active = [
            f if isinstance(f, Formula) else Formula.model_validate(f) for f in formulas
        ]
        active = [f for f in active if f.active]

        table = table if isinstance(table, TableData) else TableData.model_validate(table)
        if not active or not table.data:
            return []

        try:
            layout = TableVariables.from_table(table, self.settings)
        except ValueError as e:
            logger.warning("Table cannot be evaluated: %s", e)
            return []

        prepared = [
            p for p in (self._prepare(f, layout.available_variables) for f in active) if p
        ]
        if not prepared:
            return []

        cells: dict[tuple[str, str], HighlightedCell] = {}
        for column in layout.iter_bindings():
            if not column.values:
                continue
            for item in prepared:
                self._apply(item, column, layout, cells)

        logger.debug(
            "Highlight evaluation finished",
            extra={
                "formulas": len(prepared),
                "columns": len(layout.data_columns),
                "cells": len(cells),
            },
        )
        return list(cells.values())

    # ==========================================================================
    # Steps
    # ==========================================================================

    def _prepare(self, formula: Formula, available: Sequence[str]) -> _PreparedFormula | None:
        conditions = self.parser.parse(formula.text)
        if not conditions:
            logger.warning(
                "Skipping formula without valid conditions",
                extra={"formula_id": formula.id, "formula": formula.text},
            )
            return None

        try:
            resolution = self.resolver.resolve(
                conditions, available, formula.scope, formula=formula.text
            )
        except FormulaError as e:
            logger.warning(
                "Skipping formula: %s",
                e.message,
                extra={"formula_id": formula.id, "code": e.code},
            )
            return None

        return _PreparedFormula(formula, conditions, resolution)

    def _apply(
        self,
        item: _PreparedFormula,
        column: ColumnBindings,
        layout: TableVariables,
        cells: dict[tuple[str, str], HighlightedCell],
    ) -> None:
        formula = item.formula
        bindings = bind_aliases(column.values, item.resolution.resolved)
        try:
            evaluation = self.evaluator.evaluate_conditions(item.conditions, bindings)
        except VariableNotFoundError as e:
            # The tested variable has no value in this column
            logger.debug(
                "No value for formula in column: %s",
                e.message,
                extra={"formula_id": formula.id, "column": column.column},
            )
            return
        except EvaluationError as e:
            logger.warning(
                "Formula evaluation failed: %s",
                e.message,
                extra={"formula_id": formula.id, "column": column.column, **e.details},
            )
            if self.settings.highlight_evaluation_errors:
                self._flag_error(item, column, layout, cells)
            return

        if evaluation.missing_variables:
            logger.warning(
                "Formula used 0 for variables without a value",
                extra={
                    "formula_id": formula.id,
                    "column": column.column,
                    "missing_variables": evaluation.missing_variables,
                },
            )

        if not (evaluation.is_valid and evaluation.result):
            return

        detail = FormulaDetail(
            id=formula.id,
            name=formula.name,
            formula_text=formula.text,
            left_result=evaluation.left_result,
            right_result=evaluation.right_result,
            color=formula.color,
            warnings=evaluation.warnings,
        )
        for variable in self._highlight_variables(item, evaluation):
            index = self._row_of(variable, column, layout)
            if index is None:
                continue
            self._merge(cells, self.row_id(index), column.column, detail, formula.name)

    def _highlight_variables(
        self, item: _PreparedFormula, evaluation: FormulaEvaluation
    ) -> list[str]:
        resolution = item.resolution
        if resolution.target_variable is not None:
            return [resolution.target_variable]

        # No single target: highlight the first condition that holds
        for condition, result in zip(item.conditions, evaluation.condition_results):
            if result.holds:
                return self._table_variables(condition, resolution)
        return []

    def _table_variables(self, condition: Condition, resolution: TargetResolution) -> list[str]:
        names: list[str] = []
        for written in condition.variables:
            name = resolution.resolved.get(written, written)
            if name not in names:
                names.append(name)
        return names

    def _flag_error(
        self,
        item: _PreparedFormula,
        column: ColumnBindings,
        layout: TableVariables,
        cells: dict[tuple[str, str], HighlightedCell],
    ) -> None:
        formula = item.formula
        if item.resolution.target_variable is not None:
            variables = [item.resolution.target_variable]
        else:
            variables = self._table_variables(item.conditions[0], item.resolution)

        detail = FormulaDetail(
            id=formula.id,
            name=formula.name,
            formula_text=formula.text,
            color=self.settings.error_highlight_color,
        )
        message = f"{formula.name} (evaluation error)"
        for variable in variables:
            index = self._row_of(variable, column, layout)
            if index is not None:
                self._merge(cells, self.row_id(index), column.column, detail, message)

    def _row_of(
        self, variable: str, column: ColumnBindings, layout: TableVariables
    ) -> int | None:
        # The row whose value was used; names without a value in this column
        # fall back to their last row in the table
        if variable in column.rows:
            return column.rows[variable]
        return layout.row_index.get(variable)

    def _merge(
        self,
        cells: dict[tuple[str, str], HighlightedCell],
        row: str,
        column: str,
        detail: FormulaDetail,
        message: str,
    ) -> None:
        key = (row, column)
        cell = cells.get(key)
        if cell is None:
            cells[key] = HighlightedCell(
                row=row,
                col=column,
                color=detail.color,
                message=message,
                formula_ids=[detail.id],
                formula_details=[detail],
            )
            logger.debug("New highlight", extra={"row": row, "col": column, "formula_id": detail.id})
            return

        if detail.id in cell.formula_ids:
            return
        cell.formula_ids.append(detail.id)
        cell.formula_details.append(detail)
        cell.message = f"{cell.message}, {message}"


def evaluate_formulas_for_table(
    formulas: Iterable[Formula | dict[str, Any]],
    table: TableData | dict[str, Any],
    settings: Settings | None = None,
    cache: ParseCache | None = None,
) -> list[HighlightedCell]:
    """Convenience function for HighlightAggregator.evaluate()."""
    return HighlightAggregator(settings, cache).evaluate(formulas, table)
