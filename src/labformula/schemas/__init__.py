"""Pydantic schemas for labformula."""

from labformula.schemas.formula import (
    CheckResult,
    Formula,
    FormulaDetail,
    FormulaScope,
    FormulaSummary,
    FormulaType,
    HighlightedCell,
    TableData,
    ValidationResult,
)

__all__ = [
    "CheckResult",
    "Formula",
    "FormulaDetail",
    "FormulaScope",
    "FormulaSummary",
    "FormulaType",
    "HighlightedCell",
    "TableData",
    "ValidationResult",
]
