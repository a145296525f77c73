"""Built-in plausibility checks for laboratory results.

These run next to user formulas and need no formula text:

- LOQ check: a measured value below the limit of quantification of its row
- Total vs component: a total lower than one of its components
- WAD vs total cyanide: weak acid dissociable cyanide above total cyanide
- Total phosphorus vs orthophosphate: total phosphorus not above orthophosphate

Inputs are raw cell values and are read with parse_numeric(), so reported
values such as "<0.01" count as 0.01. A check whose inputs do not read as
numbers returns None.
"""

from collections.abc import Callable
from enum import Enum
from typing import Any

from labformula.core.config import Settings, settings as default_settings
from labformula.core.logging import get_logger
from labformula.formula.evaluator import format_number
from labformula.formula.variables import TableVariables, format_row_id, parse_numeric
from labformula.schemas.formula import CheckResult, FormulaDetail, HighlightedCell, TableData

logger = get_logger(__name__)

PASS_COLOR = "#55ff55"
LOQ_CHECK_ID = "loq-check"
LOQ_CHECK_NAME = "LOQ Check"
LOQ_COLOR = "#ff5555"


class PairCheck(str, Enum):
    """Checks comparing two related parameters of one sample."""

    TOTAL_VS_COMPONENT = "TOTAL_VS_COMPONENT"
    WAD_VS_TOTAL_CYANIDE = "WAD_VS_TOTAL_CYANIDE"
    TOTAL_PHOSPHORUS_VS_ORTHOPHOSPHATE = "TOTAL_PHOSPHORUS_VS_ORTHOPHOSPHATE"


def _check_pair(
    first: Any,
    second: Any,
    name: str,
    color: str,
    flagged: Callable[[float, float], bool],
    message: str,
) -> CheckResult | None:
    a = parse_numeric(first)
    b = parse_numeric(second)
    if a is None or b is None:
        return None
    if flagged(a, b):
        return CheckResult(
            result=True,
            message=message.format(format_number(a), format_number(b)),
            color=color,
            formula_name=name,
        )
    return CheckResult(result=False, color=PASS_COLOR, formula_name=name)


def evaluate_loq(value: Any, loq: Any) -> CheckResult | None:
    """
    Compare a measured value with its limit of quantification.

    Args:
        value: Measured value, e.g. 0.004 or "<0.01"
        loq: Limit of quantification, e.g. "<0.01"

    Returns:
        Flagged result when value < loq, a passing result otherwise, or None
        when either input is not a number
    """
    return _check_pair(
        value,
        loq,
        LOQ_CHECK_NAME,
        LOQ_COLOR,
        lambda measured, limit: measured < limit,
        "Value {} is less than LOQ {}",
    )


def evaluate_total_vs_component(total: Any, component: Any) -> CheckResult | None:
    """Flag a total that is lower than one of its components."""
    return _check_pair(
        total,
        component,
        "Total vs Component",
        "#ffaa00",
        lambda t, c: t < c,
        "Total value {} is less than component value {}",
    )


def evaluate_wad_vs_total_cyanide(wad: Any, total: Any) -> CheckResult | None:
    """Flag WAD cyanide above total cyanide."""
    return _check_pair(
        wad,
        total,
        "WAD vs Total Cyanide",
        "#ff00ff",
        lambda w, t: w > t,
        "WAD Cyanide {} is greater than Total Cyanide {}",
    )


def evaluate_total_phosphorus_vs_orthophosphate(total: Any, ortho: Any) -> CheckResult | None:
    """Flag total phosphorus that is not greater than orthophosphate."""
    return _check_pair(
        total,
        ortho,
        "Total Phosphor vs Orthophosphat",
        "#aa55ff",
        lambda t, o: t <= o,
        "Total Phosphor {} is not greater than Orthophosphat {}",
    )


PAIR_CHECKS: dict[PairCheck, Callable[[Any, Any], CheckResult | None]] = {
    PairCheck.TOTAL_VS_COMPONENT: evaluate_total_vs_component,
    PairCheck.WAD_VS_TOTAL_CYANIDE: evaluate_wad_vs_total_cyanide,
    PairCheck.TOTAL_PHOSPHORUS_VS_ORTHOPHOSPHATE: evaluate_total_phosphorus_vs_orthophosphate,
}


def evaluate_pair(check: PairCheck | str, first: Any, second: Any) -> CheckResult | None:
    """Run one of the pair checks by name; arguments follow the check's own order."""
    return PAIR_CHECKS[PairCheck(check)](first, second)


def loq_highlights(
    table: TableData | dict[str, Any],
    settings: Settings | None = None,
) -> list[HighlightedCell]:
    """
    Highlight data cells below the LOQ of their row.

    Rows without a numeric LOQ are skipped, as are tables without a LOQ
    column.

    Args:
        table: Table payload with a Variable column
        settings: Optional settings (LOQ column, row ids)

    Returns:
        One highlighted cell per flagged value, in row then column order
    """
    settings = settings or default_settings
    try:
        layout = TableVariables.from_table(table, settings)
    except ValueError as e:
        logger.warning("Table cannot be checked: %s", e)
        return []

    if settings.loq_column not in layout.columns:
        return []
    loq_index = layout.columns.index(settings.loq_column)
    positions = [
        (column, layout.columns.index(column))
        for column in layout.data_columns
        if column != settings.loq_column
    ]

    cells: list[HighlightedCell] = []
    for index, row in enumerate(layout.rows):
        loq = row[loq_index] if loq_index < len(row) else None
        limit = parse_numeric(loq)
        if limit is None:
            continue
        for column, position in positions:
            value = row[position] if position < len(row) else None
            check = evaluate_loq(value, loq)
            if check is None or not check.result:
                continue
            detail = FormulaDetail(
                id=LOQ_CHECK_ID,
                name=LOQ_CHECK_NAME,
                formula_text=f"Value < {format_number(limit)}",
                left_result=parse_numeric(value),
                right_result=limit,
                color=check.color,
            )
            cells.append(
                HighlightedCell(
                    row=format_row_id(index, settings),
                    col=column,
                    color=check.color,
                    message=check.message,
                    formula_ids=[LOQ_CHECK_ID],
                    formula_details=[detail],
                )
            )

    logger.debug("LOQ check finished", extra={"cells": len(cells)})
    return cells
