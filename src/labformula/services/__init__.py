"""Service layer modules."""

from labformula.services.formula_service import FormulaService

__all__ = ["FormulaService"]
