"""
labformula - Condition formulas and cell highlighting for laboratory tables.

Formulas such as "İletkenlik > 312" or "(Orto Fosfat - Alkalinite) > 0" are
evaluated against every data column of a table, and the cells they flag are
returned as colored highlights for a spreadsheet-like viewer.
"""

__version__ = "0.1.0"

from labformula.services.formula_service import FormulaService

__all__ = ["FormulaService", "__version__"]
